"""
Tactical agents for computer-controlled combatants.

An agent looks at a read-only snapshot and returns exactly one decision
for the active combatant. The turn controller executes the decision
through the same validated path as a human command.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .hex_math import AxialCoord, hex_distance, neighbors
from .rules import CombatRules
from .state import CombatAction, CombatState
from .units import Combatant
from .vision import VisionSystem

logger = logging.getLogger(__name__)


@dataclass
class AgentConfig:
    """Configuration for a tactical agent."""
    name: str = "simple"
    require_visibility: bool = False  # only consider enemies the party can see


@dataclass(frozen=True)
class AIDecision:
    """One action chosen for the active combatant."""
    action: CombatAction
    target_id: Optional[str] = None
    destination: Optional[AxialCoord] = None
    reason: str = ""


class CombatAgent(ABC):
    """Base class for combat decision makers."""

    def __init__(self, config: Optional[AgentConfig] = None):
        self.config = config or AgentConfig()

    @abstractmethod
    def decide(self, state: CombatState, actor_id: str, rules: CombatRules) -> AIDecision:
        """Choose one action for actor_id. Must always return a decision."""


class SimpleTacticalAgent(CombatAgent):
    """
    Attack the nearest enemy in range and sight, otherwise step toward the
    nearest enemy, otherwise pass.

    Work per decision is bounded by enemy count plus six neighbour checks.
    """

    def __init__(self, config: Optional[AgentConfig] = None, vision: Optional[VisionSystem] = None):
        super().__init__(config)
        self.vision = vision

    def decide(self, state: CombatState, actor_id: str, rules: CombatRules) -> AIDecision:
        actor = state.get(actor_id)
        if actor is None:
            return AIDecision(CombatAction.PASS, reason="unknown combatant")

        enemies = self.find_enemies(state, actor)
        if not enemies:
            return AIDecision(CombatAction.PASS, reason=f"{actor.name} has no valid targets")

        attacker_pos = state.positions.get(actor_id)
        if attacker_pos is None:
            return AIDecision(CombatAction.PASS, reason=f"{actor.name} is not on the map")

        positioned = [e for e in enemies if e.id in state.positions]

        # 1. Nearest enemy that can be attacked right now; min() keeps scan order on ties
        in_range = [e for e in positioned if rules.can_perform_ranged_attack(state, actor_id, e.id)]
        if in_range:
            target = min(in_range, key=lambda e: hex_distance(attacker_pos, state.positions[e.id]))
            return AIDecision(
                CombatAction.ATTACK,
                target_id=target.id,
                reason=f"{actor.name} attacks {target.name}",
            )

        # 2. Advance on the nearest enemy
        if not positioned:
            return AIDecision(CombatAction.PASS, reason=f"{actor.name} cannot locate enemies")
        closest = min(positioned, key=lambda e: hex_distance(attacker_pos, state.positions[e.id]))
        step = self.step_toward(state, actor_id, state.positions[closest.id], rules)
        if step is None:
            return AIDecision(CombatAction.PASS, reason=f"{actor.name} cannot advance")

        return AIDecision(
            CombatAction.MOVE,
            target_id=closest.id,
            destination=step,
            reason=f"{actor.name} moves toward {closest.name}",
        )

    def find_enemies(self, state: CombatState, actor: Combatant) -> list[Combatant]:
        """Living enemies in initiative scan order."""
        enemies = [c for c in state.ordered_combatants() if actor.is_enemy(c) and c.is_alive()]
        if self.config.require_visibility and self.vision is not None:
            seen = set(self.vision.visible_enemies(state, actor.alignment))
            enemies = [e for e in enemies if e.id in seen]
        return enemies

    def step_toward(
        self,
        state: CombatState,
        actor_id: str,
        target: AxialCoord,
        rules: CombatRules,
    ) -> Optional[AxialCoord]:
        """Adjacent walkable, free hex that gets strictly closer to target."""
        origin = state.positions[actor_id]
        actor = state.get(actor_id)
        best = None
        best_dist = hex_distance(origin, target)

        for candidate in neighbors(origin):
            tile = state.grid.get_tile(candidate)
            if tile is None:
                continue
            if not state.grid.is_passable(tile, actor.attributes.ignore_water):
                continue
            if state.occupant_at(candidate, ignore_id=actor_id):
                continue
            dist = hex_distance(candidate, target)
            if dist < best_dist and rules.can_reach_tile(state, actor_id, candidate):
                best_dist = dist
                best = candidate

        return best
