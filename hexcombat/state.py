"""
Combat state model.

CombatState is the single mutable root of an encounter. Only the turn
controller mutates it; everyone else gets a snapshot copy.
"""

import copy
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .hex_math import AxialCoord
from .map import HexGrid
from .units import Combatant, Spell


class CombatPhase(Enum):
    IDLE = "idle"
    AWAITING_COMMAND = "awaiting-command"
    CHOOSING_TARGET = "choosing-target"
    RESOLVING = "resolving"


class CombatAction(Enum):
    MOVE = "move"
    ATTACK = "attack"
    CAST = "cast"
    DEFEND = "defend"
    PASS = "pass"
    CANCEL = "cancel"
    READY = "ready"
    USE_SKILL = "use-skill"


class TargetMode(Enum):
    ANY = "any"
    TILE = "tile"
    CHARACTER = "character"
    SELF = "self"


# Actions that wait for a target selection before executing
TARGETED_ACTIONS = (CombatAction.MOVE, CombatAction.ATTACK, CombatAction.CAST)


@dataclass(frozen=True)
class Selection:
    """A tile or character picked in the presentation layer."""
    type: str  # "tile" or "character"
    q: Optional[int] = None
    r: Optional[int] = None
    id: Optional[str] = None

    @classmethod
    def tile(cls, q: int, r: int) -> "Selection":
        return cls(type="tile", q=q, r=r)

    @classmethod
    def character(cls, combatant_id: str) -> "Selection":
        return cls(type="character", id=combatant_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Selection":
        return cls(type=data.get("type", "tile"), q=data.get("q"), r=data.get("r"), id=data.get("id"))

    @property
    def is_tile(self) -> bool:
        return self.type == "tile" and self.q is not None and self.r is not None

    @property
    def is_character(self) -> bool:
        return self.type == "character" and self.id is not None

    @property
    def coord(self) -> Optional[AxialCoord]:
        if self.q is None or self.r is None:
            return None
        return AxialCoord(self.q, self.r)


@dataclass(frozen=True)
class LogEntry:
    """Structured combat log line."""
    msg: str
    type: str = "info"
    timestamp: float = field(default_factory=time.time)


@dataclass
class CombatState:
    """Complete encounter state."""
    phase: CombatPhase = CombatPhase.IDLE
    active_combatant_id: Optional[str] = None
    selected_object: Optional[Selection] = None
    pending_action: Optional[CombatAction] = None
    selected_spell: Optional[Spell] = None
    target_mode: TargetMode = TargetMode.ANY
    grid: HexGrid = field(default_factory=lambda: HexGrid(terrain_info={}))
    positions: dict[str, AxialCoord] = field(default_factory=dict)
    combatants_by_id: dict[str, Combatant] = field(default_factory=dict)
    initiative_order: list[str] = field(default_factory=list)
    round: int = 1
    log: list[LogEntry] = field(default_factory=list)
    terrain: Any = None

    def get(self, combatant_id: Optional[str]) -> Optional[Combatant]:
        if combatant_id is None:
            return None
        return self.combatants_by_id.get(combatant_id)

    @property
    def active_combatant(self) -> Optional[Combatant]:
        return self.get(self.active_combatant_id)

    def occupant_at(self, position, ignore_id: Optional[str] = None) -> Optional[str]:
        """Id of the combatant standing on position, if any."""
        for combatant_id, pos in self.positions.items():
            if combatant_id != ignore_id and pos == position:
                return combatant_id
        return None

    def ordered_combatants(self) -> list[Combatant]:
        """Combatants in initiative order (unordered ones last)."""
        seen = [self.combatants_by_id[cid] for cid in self.initiative_order if cid in self.combatants_by_id]
        rest = [c for cid, c in self.combatants_by_id.items() if cid not in self.initiative_order]
        return seen + rest

    def check_invariants(self) -> list[str]:
        """List of violated state invariants (empty when consistent)."""
        problems = []
        active = self.active_combatant
        if self.active_combatant_id is not None:
            if active is None:
                problems.append(f"active combatant {self.active_combatant_id} not in table")
            elif active.remaining_attacks <= 0:
                problems.append(f"active combatant {active.id} has no remaining attacks")
        stray = set(self.positions) - set(self.combatants_by_id)
        if stray:
            problems.append(f"positions for unknown combatants: {sorted(stray)}")
        if sorted(self.initiative_order) != sorted(self.combatants_by_id):
            problems.append("initiative order is not a permutation of combatant ids")
        return problems


def create_empty_combat_state() -> CombatState:
    return CombatState()


def snapshot(state: CombatState) -> CombatState:
    """Deep copy handed to observers and collaborators. The grid is read-only and shared."""
    memo = {id(state.grid): state.grid}
    return copy.deepcopy(state, memo)


def clear_pending_action(state: CombatState):
    state.pending_action = None
    state.selected_spell = None
    state.target_mode = TargetMode.ANY
