from pathlib import Path

import pytest

from hexcombat.combat_math import CombatEffect, CombatMathEngine
from hexcombat.map import HexGrid, default_terrain_info
from hexcombat.units import PARTY, Attributes, Combatant, ResourcePool

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class ScriptedEngine(CombatMathEngine):
    """Deterministic engine: every strike hits for a fixed amount."""

    def __init__(self, damage: int = 3):
        self.damage = damage
        self.calls = []

    def move(self, state, actor_id, destination):
        self.calls.append(("move", actor_id, destination))
        return CombatEffect(actor_id=actor_id, action="move", destination=destination)

    def strike(self, state, attacker_id, target_id):
        self.calls.append(("strike", attacker_id, target_id))
        effect = CombatEffect(actor_id=attacker_id, action="attack")
        effect.change_pool(target_id, "hp", -self.damage)
        effect.messages.append(f"{attacker_id} hits {target_id}")
        return effect

    def cast_spell(self, state, caster_id, spell, target):
        self.calls.append(("cast", caster_id, spell.id, target))
        effect = CombatEffect(actor_id=caster_id, action="cast")
        if spell.cost:
            effect.change_pool(caster_id, spell.pool, -spell.cost)
        if target.is_character and spell.damage:
            effect.change_pool(target.id, "hp", -self.damage)
        if spell.condition:
            effect.add_condition(target.id if target.is_character else caster_id, spell.condition)
        return effect

    def defend(self, state, actor_id):
        self.calls.append(("defend", actor_id))
        effect = CombatEffect(actor_id=actor_id, action="defend")
        effect.add_condition(actor_id, "defending")
        return effect


def build_fighter(
    fighter_id,
    alignment=PARTY,
    speed=10,
    attacks=1,
    initiative=0,
    hp=10,
    ai=False,
    weapon=None,
    spells=None,
    pools=None,
):
    all_pools = {"hp": ResourcePool(hp, hp)}
    for name, value in (pools or {}).items():
        all_pools[name] = ResourcePool(value, value)
    return Combatant(
        id=fighter_id,
        name=fighter_id.title(),
        alignment=alignment,
        attributes=Attributes(speed=speed, attacks_per_round=attacks, initiative=initiative),
        pools=all_pools,
        equipped_weapon=weapon,
        spells=list(spells or []),
        ai_controlled=ai,
    )


@pytest.fixture
def terrain_info():
    return default_terrain_info()


@pytest.fixture
def open_grid(terrain_info):
    return HexGrid.generate(radius=6, terrain_info=terrain_info)


@pytest.fixture
def make_fighter():
    return build_fighter


@pytest.fixture
def engine():
    return ScriptedEngine()


@pytest.fixture
def data_dir():
    return DATA_DIR
