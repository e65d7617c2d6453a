"""
Turn-based hex-grid combat core.

Core modules:
- hex_math: Axial coordinates, distance, neighbours, lines
- map: Hex grid tiles and terrain schema
- pathfinding: A* over terrain-weighted hexes
- rules: Movement, range and line-of-sight checks
- state: Combat state model and snapshots
- units: Combatant records and rosters
- combat_math: Effect resolution engine interface and dice engine
- controller: Turn state machine
- ai: Tactical agents for computer-controlled combatants
- vision: Visible tiles, party fog of war, explored memory
- config / encounter: YAML and .env loading
"""

from .hex_math import (
    AxialCoord, DIRECTIONS, offset_to_axial, axial_to_offset,
    hex_distance, neighbors, hex_line, coords_in_radius,
)
from .map import HexGrid, Tile, TerrainType, TerrainInfo
from .pathfinding import find_path, path_cost, reachable_tiles
from .rules import CombatRules
from .state import (
    CombatState, CombatPhase, CombatAction, TargetMode, Selection, LogEntry,
    create_empty_combat_state, snapshot,
)
from .units import (
    Combatant, Attributes, Weapon, Spell, ResourcePool,
    combatant_from_dict, load_roster, PARTY, HOSTILE,
)
from .combat_math import CombatMathEngine, CombatEffect, DiceCombatEngine
from .controller import TurnController
from .ai import CombatAgent, SimpleTacticalAgent, AgentConfig, AIDecision
from .vision import VisionSystem, FogMemory, TileVisibility
from .config import CombatConfig, load_config
from .encounter import Encounter, load_encounter, build_encounter

__all__ = [
    # Hex math
    "AxialCoord", "DIRECTIONS", "offset_to_axial", "axial_to_offset",
    "hex_distance", "neighbors", "hex_line", "coords_in_radius",
    # Map
    "HexGrid", "Tile", "TerrainType", "TerrainInfo",
    "find_path", "path_cost", "reachable_tiles",
    # Rules and state
    "CombatRules", "CombatState", "CombatPhase", "CombatAction", "TargetMode",
    "Selection", "LogEntry", "create_empty_combat_state", "snapshot",
    # Combatants
    "Combatant", "Attributes", "Weapon", "Spell", "ResourcePool",
    "combatant_from_dict", "load_roster", "PARTY", "HOSTILE",
    # Engine and controller
    "CombatMathEngine", "CombatEffect", "DiceCombatEngine", "TurnController",
    "CombatAgent", "SimpleTacticalAgent", "AgentConfig", "AIDecision",
    # Vision
    "VisionSystem", "FogMemory", "TileVisibility",
    # Loading
    "CombatConfig", "load_config", "Encounter", "load_encounter", "build_encounter",
]
