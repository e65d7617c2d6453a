"""
Encounter definitions.

An encounter YAML file describes the battle map, the combatants and
where they stand:

    name: Goblin ambush
    grid:
      radius: 6
      terrain: grass
      seed: 7
      tiles:            # optional per-tile overrides
        - {q: 1, r: 0, terrain: forest, features: [tree_large]}
    combatants:
      - {id: fighter, name: Aldric, alignment: party, ...}
    positions:
      fighter: [0, 0]
"""

import logging
import random
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import EncounterError
from .hex_math import AxialCoord, coord
from .map import HexGrid, TerrainType, tile_from_record
from .units import Combatant, combatant_from_dict

logger = logging.getLogger(__name__)


@dataclass
class Encounter:
    """Everything TurnController.start_encounter needs."""
    name: str
    fighters: list[Combatant] = field(default_factory=list)
    grid: Optional[HexGrid] = None
    positions: dict[str, AxialCoord] = field(default_factory=dict)
    terrain: Optional[str] = None


def build_grid(section: Optional[dict], data_path: Path | str = "data") -> HexGrid:
    """Generate a grid from the 'grid' section of an encounter."""
    section = section or {}
    terrain = section.get("terrain", TerrainType.OPEN.value)
    try:
        terrain = TerrainType(terrain)
    except ValueError:
        raise EncounterError(f"Unknown grid terrain {terrain!r}") from None

    grid = HexGrid.generate(
        radius=int(section.get("radius", 6)),
        terrain=terrain,
        rng=random.Random(section.get("seed")),
        elevation_variation=bool(section.get("elevation_variation", False)),
        base_height=int(section.get("base_height", 0)),
        feature_density=float(section.get("feature_density", 0.0)),
        data_path=data_path,
    )

    for record in section.get("tiles", []):
        try:
            grid.add_tile(tile_from_record(record))
        except (KeyError, TypeError, ValueError) as e:
            raise EncounterError(f"Invalid tile {record!r}: {e}") from e

    return grid


def build_encounter(data: dict, data_path: Path | str = "data", name: str = "encounter") -> Encounter:
    """Build an Encounter from a parsed mapping."""
    if not isinstance(data, dict):
        raise EncounterError("Encounter must be a mapping")

    fighters = [combatant_from_dict(entry) for entry in data.get("combatants", [])]
    ids = [f.id for f in fighters]
    duplicates = {i for i in ids if ids.count(i) > 1}
    if duplicates:
        raise EncounterError(f"Duplicate combatant ids: {sorted(duplicates)}")

    grid = build_grid(data.get("grid"), data_path)

    positions = {}
    for combatant_id, position in (data.get("positions") or {}).items():
        if combatant_id not in ids:
            raise EncounterError(f"Position given for unknown combatant {combatant_id!r}")
        try:
            position = coord(position)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise EncounterError(f"Invalid position for {combatant_id}: {position!r}") from e
        if position not in grid:
            raise EncounterError(f"{combatant_id} is placed off the map at {tuple(position)}")
        positions[combatant_id] = position

    occupied = list(positions.values())
    if len(set(occupied)) != len(occupied):
        raise EncounterError("Two combatants share a starting tile")

    unplaced = [i for i in ids if i not in positions]
    if unplaced:
        logger.warning(f"Combatants without a position: {unplaced}")

    return Encounter(
        name=data.get("name", name),
        fighters=fighters,
        grid=grid,
        positions=positions,
        terrain=(data.get("grid") or {}).get("terrain"),
    )


def load_encounter(filepath: Path | str, data_path: Path | str = "data") -> Encounter:
    """Load an encounter YAML file."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise EncounterError(f"Encounter not found: {filepath}")

    try:
        with open(filepath) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise EncounterError(f"Cannot parse {filepath}: {e}") from e

    encounter = build_encounter(data, data_path, name=filepath.stem)
    logger.info(f"Loaded encounter '{encounter.name}': {len(encounter.fighters)} combatants, {len(encounter.grid)} tiles")
    return encounter
