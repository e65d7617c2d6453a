"""
Combat-math collaborator.

CombatMathEngine is the interface the turn controller calls for effect
resolution. Turn advancement (initiative, who may act, round resets) has
a reference implementation in the base class; engines override only what
they need. Effect hooks return CombatEffect values and never touch the
controller's combatant table directly.

DiceCombatEngine is a small d20 implementation so encounters can run end
to end.
"""

import logging
import random
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from .hex_math import AxialCoord, hex_distance
from .state import CombatState, Selection
from .units import Combatant, Spell

logger = logging.getLogger(__name__)


@dataclass
class CombatEffect:
    """What an action changed, applied to the combatant table by the controller."""
    actor_id: str
    action: str
    success: bool = True
    resource_deltas: dict[str, dict[str, int]] = field(default_factory=dict)
    add_conditions: dict[str, set[str]] = field(default_factory=dict)
    remove_conditions: dict[str, set[str]] = field(default_factory=dict)
    destination: Optional[AxialCoord] = None
    messages: list[str] = field(default_factory=list)

    def change_pool(self, combatant_id: str, pool: str, delta: int):
        pools = self.resource_deltas.setdefault(combatant_id, {})
        pools[pool] = pools.get(pool, 0) + delta

    def add_condition(self, combatant_id: str, condition: str):
        self.add_conditions.setdefault(combatant_id, set()).add(condition)

    def remove_condition(self, combatant_id: str, condition: str):
        self.remove_conditions.setdefault(combatant_id, set()).add(condition)


class CombatMathEngine(ABC):
    """Interface of the effect-resolution engine."""

    # Turn advancement (reference implementation)
    def initialize_combat(
        self,
        fighters: list[Combatant],
        terrain: Any = None,
        positions: Optional[dict[str, AxialCoord]] = None,
    ) -> list[str]:
        """Return the initiative order; highest initiative first, ties keep input order."""
        ordered = sorted(fighters, key=lambda f: -f.attributes.initiative)
        return [f.id for f in ordered]

    def can_act(self, fighter: Combatant) -> bool:
        """Alive, conscious and not disabled by a condition."""
        return fighter.is_alive() and not fighter.is_disabled()

    def next_active(self, state: CombatState, current_id: Optional[str] = None) -> Optional[str]:
        """Next combatant after current_id (wrapping) that can act and has attacks left."""
        order = state.initiative_order
        if not order:
            return None

        start = 0
        if current_id in order:
            start = (order.index(current_id) + 1) % len(order)

        for offset in range(len(order)):
            fighter = state.get(order[(start + offset) % len(order)])
            if fighter and self.can_act(fighter) and fighter.remaining_attacks > 0:
                return fighter.id
        return None

    def start_next_round(self, state: CombatState) -> dict[str, int]:
        """New per-round allotment for every combatant."""
        return {
            fighter.id: fighter.attacks_per_round if self.can_act(fighter) else 0
            for fighter in state.combatants_by_id.values()
        }

    def end_round(self, state: CombatState) -> Optional[CombatEffect]:
        """Effect applied as a round closes, before the next allotment. None by default."""
        return None

    # Effect resolution
    @abstractmethod
    def move(self, state: CombatState, actor_id: str, destination: AxialCoord) -> CombatEffect:
        ...

    @abstractmethod
    def strike(self, state: CombatState, attacker_id: str, target_id: str) -> CombatEffect:
        ...

    @abstractmethod
    def cast_spell(
        self, state: CombatState, caster_id: str, spell: Spell, target: Selection
    ) -> CombatEffect:
        ...

    @abstractmethod
    def defend(self, state: CombatState, actor_id: str) -> CombatEffect:
        ...


# Matches "d20", "2d6", "2d6+3", "1d8 - 1" and plain integers
_DICE_RE = re.compile(r"^\s*(?:(\d*)d(\d+))?\s*([+-]?\s*\d+)?\s*$", re.IGNORECASE)


def parse_dice(notation: str) -> tuple[int, int, int]:
    """Parse NdM±K into (num_dice, sides, modifier). Raises ValueError."""
    m = _DICE_RE.match(str(notation))
    if not m or not any(m.groups()):
        raise ValueError(f"Invalid dice notation: {notation!r}")
    n_str, sides_str, mod_str = m.groups()
    if sides_str is None:
        return (0, 0, int(mod_str.replace(" ", "")))
    num_dice = 1 if not n_str else int(n_str)
    modifier = int(mod_str.replace(" ", "")) if mod_str else 0
    return (num_dice, int(sides_str), modifier)


class DiceCombatEngine(CombatMathEngine):
    """d20 strike rolls against armor rating, weapon and spell damage dice."""

    DEFEND_BONUS = 4
    CRITICAL_ROLL = 20
    FUMBLE_ROLL = 1

    def __init__(self, rng_seed: Optional[int] = None):
        self.rng = random.Random(rng_seed)
        self.initiative_rolls: dict[str, int] = {}

    def roll(self, notation: str) -> int:
        num_dice, sides, modifier = parse_dice(notation)
        return sum(self.rng.randint(1, sides) for _ in range(num_dice)) + modifier

    def initialize_combat(self, fighters, terrain=None, positions=None) -> list[str]:
        """Roll d20 + initiative bonus; highest first, ties keep input order."""
        self.initiative_rolls = {
            f.id: self.rng.randint(1, 20) + f.attributes.initiative for f in fighters
        }
        ordered = sorted(fighters, key=lambda f: -self.initiative_rolls[f.id])
        for f in ordered:
            logger.debug(f"{f.name} initiative: {self.initiative_rolls[f.id]}")
        return [f.id for f in ordered]

    def end_round(self, state: CombatState) -> Optional[CombatEffect]:
        """Defensive stances last until the round is over."""
        effect = CombatEffect(actor_id="", action="end-round")
        for fighter in state.combatants_by_id.values():
            if "defending" in fighter.conditions:
                effect.remove_condition(fighter.id, "defending")
        return effect if effect.remove_conditions else None

    def move(self, state, actor_id, destination) -> CombatEffect:
        effect = CombatEffect(actor_id=actor_id, action="move")
        effect.destination = destination
        actor = state.get(actor_id)
        origin = state.positions.get(actor_id)
        if actor and origin is not None:
            effect.messages.append(
                f"{actor.name} moves {hex_distance(origin, destination)} hex "
                f"to ({destination.q}, {destination.r})"
            )
        return effect

    def strike(self, state, attacker_id, target_id) -> CombatEffect:
        effect = CombatEffect(actor_id=attacker_id, action="attack")
        attacker = state.get(attacker_id)
        target = state.get(target_id)
        if not attacker or not target:
            effect.success = False
            return effect

        weapon = attacker.equipped_weapon
        natural = self.rng.randint(1, 20)
        bonus = attacker.attributes.strike + (weapon.strike_bonus if weapon else 0)
        total = natural + bonus
        defense = target.attributes.armor_rating
        if "defending" in target.conditions:
            defense += self.DEFEND_BONUS

        weapon_name = weapon.name if weapon else "bare hands"
        if natural == self.FUMBLE_ROLL or (natural != self.CRITICAL_ROLL and total < defense):
            effect.success = False
            effect.messages.append(
                f"{attacker.name} attacks {target.name} with {weapon_name} and misses ({total} vs {defense})"
            )
            return effect

        damage = max(0, self.roll(weapon.damage if weapon else "1d4"))
        if natural == self.CRITICAL_ROLL:
            damage *= 2
        effect.change_pool(target_id, "hp", -damage)
        effect.messages.append(
            f"{attacker.name} hits {target.name} with {weapon_name} for {damage} damage"
            + (" (critical)" if natural == self.CRITICAL_ROLL else "")
        )
        self._check_down(target, damage, effect)
        return effect

    def cast_spell(self, state, caster_id, spell, target) -> CombatEffect:
        effect = CombatEffect(actor_id=caster_id, action="cast")
        caster = state.get(caster_id)
        if not caster:
            effect.success = False
            return effect

        if spell.cost:
            pool = caster.pools.get(spell.pool)
            if pool is None or pool.current < spell.cost:
                effect.success = False
                effect.messages.append(f"{caster.name} lacks the {spell.pool} to cast {spell.name}")
                return effect
            effect.change_pool(caster_id, spell.pool, -spell.cost)

        for target_id in self._spell_targets(state, caster_id, spell, target):
            victim = state.get(target_id)
            if spell.damage:
                damage = max(0, self.roll(spell.damage))
                effect.change_pool(target_id, "hp", -damage)
                effect.messages.append(f"{caster.name}'s {spell.name} deals {damage} damage to {victim.name}")
                self._check_down(victim, damage, effect)
            if spell.healing:
                healed = max(0, self.roll(spell.healing))
                effect.change_pool(target_id, "hp", healed)
                effect.messages.append(f"{caster.name}'s {spell.name} heals {victim.name} for {healed}")
                hp = victim.hp
                if hp and hp.current <= 0 < hp.current + healed and "unconscious" in victim.conditions:
                    effect.remove_condition(target_id, "unconscious")
            if spell.condition:
                effect.add_condition(target_id, spell.condition)
                effect.messages.append(f"{victim.name} is {spell.condition}")

        if not effect.messages:
            effect.messages.append(f"{caster.name} casts {spell.name}")
        return effect

    def defend(self, state, actor_id) -> CombatEffect:
        effect = CombatEffect(actor_id=actor_id, action="defend")
        effect.add_condition(actor_id, "defending")
        actor = state.get(actor_id)
        if actor:
            effect.messages.append(f"{actor.name} takes a defensive stance")
        return effect

    def _spell_targets(self, state: CombatState, caster_id: str, spell: Spell, target: Selection) -> list[str]:
        if spell.target_mode == "self":
            return [caster_id]
        if target.is_character and spell.area_radius <= 0:
            return [target.id] if state.get(target.id) else []

        center = target.coord
        if center is None and target.is_character:
            center = state.positions.get(target.id)
        if center is None:
            return []
        return [
            cid for cid in state.initiative_order
            if cid in state.positions and hex_distance(state.positions[cid], center) <= spell.area_radius
        ]

    def _check_down(self, target: Combatant, damage: int, effect: CombatEffect):
        """Flag a target whose hit points this effect takes to zero or below."""
        hp = target.hp
        if hp is None:
            return
        if hp.current - damage <= -hp.maximum:
            effect.add_condition(target.id, "dead")
            effect.messages.append(f"{target.name} is slain")
        elif hp.current - damage <= 0:
            effect.add_condition(target.id, "unconscious")
            effect.messages.append(f"{target.name} falls unconscious")
