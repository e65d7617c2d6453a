"""
Movement and range rules.

Gatekeeper consulted before any command reaches the turn controller's
mutation path. Line of sight is delegated to an injected resolver so this
module does not depend on the vision algorithms.
"""

import logging
from typing import Callable, Optional

from .config import CombatConfig
from .hex_math import coord, hex_distance
from .pathfinding import find_path, path_cost
from .state import CombatState
from .units import Combatant

logger = logging.getLogger(__name__)

LineOfSightResolver = Callable[[CombatState, str, str], bool]


class CombatRules:
    """Range, reach and sight checks for one encounter configuration."""

    def __init__(
        self,
        config: Optional[CombatConfig] = None,
        line_of_sight: Optional[LineOfSightResolver] = None,
    ):
        self.config = config or CombatConfig()
        self._line_of_sight = line_of_sight

    def set_line_of_sight_resolver(self, resolver: Optional[LineOfSightResolver]):
        self._line_of_sight = resolver if callable(resolver) else None

    # Movement
    def move_range_hex(self, fighter: Combatant) -> int:
        """Per-action move range in hexes."""
        speed = fighter.attributes.speed
        attacks = max(fighter.attributes.attacks_per_round, 1)
        feet_per_action = speed / attacks
        return max(1, int(feet_per_action // self.config.movement.feet_per_hex))

    def can_reach_tile(self, state: CombatState, fighter_id: str, destination) -> bool:
        """Whether the fighter can move to destination with one action."""
        if not state or not fighter_id or destination is None:
            return False
        fighter = state.get(fighter_id)
        current = state.positions.get(fighter_id)
        if not fighter or current is None:
            return False

        destination = coord(destination)
        move_range = self.move_range_hex(fighter)
        if hex_distance(current, destination) > move_range:
            return False

        if state.occupant_at(destination, ignore_id=fighter_id):
            return False
        if self.config.movement.reach_check == "range" or len(state.grid) == 0:
            return True

        tile = state.grid.get_tile(destination)
        if tile is None:
            return False

        occupied = {pos for cid, pos in state.positions.items() if cid != fighter_id}
        path = find_path(
            current, destination, state.grid,
            ignore_water=fighter.attributes.ignore_water,
            elevation_penalty=self.config.movement.elevation_penalty,
            max_cost=move_range,
            blocked=occupied,
        )
        if not path:
            return False
        cost = path_cost(
            path, state.grid,
            ignore_water=fighter.attributes.ignore_water,
            elevation_penalty=self.config.movement.elevation_penalty,
        )
        return cost <= move_range

    # Attacks
    def attack_range_hex(self, attacker: Combatant) -> int:
        """Derive attack range in hexes from the equipped weapon."""
        weapon = attacker.equipped_weapon
        if weapon is not None and weapon.range_hex is not None:
            return weapon.range_hex
        if weapon is not None and weapon.range_feet is not None:
            return max(1, weapon.range_feet // self.config.movement.feet_per_hex)
        return self.config.movement.default_attack_range_hex

    def can_attack_target(
        self,
        state: CombatState,
        attacker_id: str,
        target_id: str,
        range_hex: Optional[int] = None,
    ) -> bool:
        """Simple distance-based range check for attacks."""
        if not state or not attacker_id or not target_id:
            return False
        attacker = state.get(attacker_id)
        target = state.get(target_id)
        if not attacker or not target:
            return False

        attacker_pos = state.positions.get(attacker_id)
        target_pos = state.positions.get(target_id)
        if attacker_pos is None or target_pos is None:
            return False

        max_range = range_hex if range_hex is not None else self.attack_range_hex(attacker)
        return hex_distance(attacker_pos, target_pos) <= max_range

    def has_line_of_sight(self, state: CombatState, from_id: str, to_id: str) -> bool:
        if self._line_of_sight is None:
            return True
        try:
            return bool(self._line_of_sight(state, from_id, to_id))
        except Exception as e:
            logger.warning(f"Line of sight resolver error ({from_id} -> {to_id}): {e}")
            return True

    def can_perform_ranged_attack(
        self,
        state: CombatState,
        attacker_id: str,
        target_id: str,
        range_hex: Optional[int] = None,
    ) -> bool:
        """Combined range and line-of-sight validation."""
        if not self.can_attack_target(state, attacker_id, target_id, range_hex):
            return False
        return self.has_line_of_sight(state, attacker_id, target_id)
