import pytest

from hexcombat.combat_math import CombatMathEngine, DiceCombatEngine, parse_dice
from hexcombat.hex_math import AxialCoord
from hexcombat.state import CombatState, Selection
from hexcombat.units import HOSTILE, Spell, Weapon


class FixedRng:
    """Stands in for random.Random: every roll lands on value."""

    def __init__(self, value):
        self.value = value

    def randint(self, low, high):
        return max(low, min(high, self.value))


def _state(*fighters, positions=None):
    return CombatState(
        combatants_by_id={f.id: f for f in fighters},
        initiative_order=[f.id for f in fighters],
        positions=positions or {},
    )


def test_parse_dice() -> None:
    assert parse_dice("d20") == (1, 20, 0)
    assert parse_dice("2d6+3") == (2, 6, 3)
    assert parse_dice("1d8 - 1") == (1, 8, -1)
    assert parse_dice("4") == (0, 0, 4)
    assert parse_dice(7) == (0, 0, 7)
    for bad in ("", "abc", "2x6"):
        with pytest.raises(ValueError):
            parse_dice(bad)


def test_roll_bounds() -> None:
    engine = DiceCombatEngine(rng_seed=11)
    for _ in range(50):
        assert 3 <= engine.roll("2d6+1") <= 13


def test_reference_initiative_is_stable(make_fighter, engine) -> None:
    fighters = [
        make_fighter("a", initiative=1),
        make_fighter("b", initiative=3),
        make_fighter("c", initiative=1),
    ]
    assert engine.initialize_combat(fighters) == ["b", "a", "c"]


def test_dice_initiative_is_permutation(make_fighter) -> None:
    fighters = [make_fighter(name) for name in ("a", "b", "c", "d")]
    order = DiceCombatEngine(rng_seed=3).initialize_combat(fighters)
    assert sorted(order) == ["a", "b", "c", "d"]


def test_next_active_wraps_and_skips(make_fighter, engine) -> None:
    a, b, c = make_fighter("a"), make_fighter("b"), make_fighter("c")
    a.remaining_attacks, b.remaining_attacks, c.remaining_attacks = 1, 0, 1
    state = _state(a, b, c)
    assert engine.next_active(state, "a") == "c"
    assert engine.next_active(state, "c") == "a"
    assert engine.next_active(state, None) == "a"

    c.conditions.add("stunned")
    assert engine.next_active(state, "a") == "a"

    a.remaining_attacks = 0
    assert engine.next_active(state, "a") is None


def test_start_next_round_allotments(make_fighter, engine) -> None:
    a = make_fighter("a", attacks=2)
    b = make_fighter("b", attacks=3)
    b.conditions.add("unconscious")
    assert engine.start_next_round(_state(a, b)) == {"a": 2, "b": 0}


def test_base_engine_requires_effect_hooks() -> None:
    with pytest.raises(TypeError):
        CombatMathEngine()


def test_strike_critical_doubles_damage(make_fighter) -> None:
    attacker = make_fighter("a", weapon=Weapon(name="Club", damage="3"))
    target = make_fighter("b", alignment=HOSTILE, hp=10)
    engine = DiceCombatEngine()
    engine.rng = FixedRng(20)

    effect = engine.strike(_state(attacker, target), "a", "b")
    assert effect.success
    assert effect.resource_deltas == {"b": {"hp": -6}}
    assert "critical" in effect.messages[0]
    assert target.hp.current == 10  # effects never touch the table


def test_strike_fumble_misses(make_fighter) -> None:
    attacker = make_fighter("a")
    attacker.attributes.strike = 30
    target = make_fighter("b", alignment=HOSTILE)
    engine = DiceCombatEngine()
    engine.rng = FixedRng(1)

    effect = engine.strike(_state(attacker, target), "a", "b")
    assert not effect.success
    assert effect.resource_deltas == {}


def test_defending_raises_armor(make_fighter) -> None:
    attacker = make_fighter("a", weapon=Weapon(damage="2"))
    target = make_fighter("b", alignment=HOSTILE)
    engine = DiceCombatEngine()
    engine.rng = FixedRng(12)  # 12 vs armor 10 hits, vs 14 misses

    assert engine.strike(_state(attacker, target), "a", "b").success
    target.conditions.add("defending")
    assert not engine.strike(_state(attacker, target), "a", "b").success


def test_strike_can_drop_target(make_fighter) -> None:
    attacker = make_fighter("a", weapon=Weapon(damage="5"))
    target = make_fighter("b", alignment=HOSTILE, hp=4)
    engine = DiceCombatEngine()
    engine.rng = FixedRng(15)

    effect = engine.strike(_state(attacker, target), "a", "b")
    assert effect.add_conditions == {"b": {"unconscious"}}


def test_defending_lasts_until_round_ends(make_fighter) -> None:
    actor = make_fighter("a")
    other = make_fighter("b", alignment=HOSTILE)
    engine = DiceCombatEngine()
    effect = engine.defend(_state(actor), "a")
    assert effect.add_conditions == {"a": {"defending"}}

    actor.conditions.add("defending")
    move = engine.move(_state(actor, positions={"a": AxialCoord(0, 0)}), "a", AxialCoord(1, 0))
    assert move.destination == AxialCoord(1, 0)
    assert move.remove_conditions == {}

    end = engine.end_round(_state(actor, other))
    assert end.remove_conditions == {"a": {"defending"}}

    actor.conditions.clear()
    assert engine.end_round(_state(actor, other)) is None


def test_cast_spell_costs_and_damage(make_fighter) -> None:
    bolt = Spell(id="bolt", name="Bolt", damage="4", cost=3)
    caster = make_fighter("a", spells=[bolt], pools={"ppe": 5})
    target = make_fighter("b", alignment=HOSTILE)
    engine = DiceCombatEngine()

    effect = engine.cast_spell(_state(caster, target), "a", bolt, Selection.character("b"))
    assert effect.resource_deltas == {"a": {"ppe": -3}, "b": {"hp": -4}}

    caster.pools["ppe"].current = 1
    effect = engine.cast_spell(_state(caster, target), "a", bolt, Selection.character("b"))
    assert not effect.success
    assert effect.resource_deltas == {}


def test_area_spell_hits_everyone_in_radius(make_fighter) -> None:
    blast = Spell(id="blast", name="Blast", target_mode="tile", damage="1", area_radius=1)
    caster = make_fighter("a", spells=[blast])
    near = make_fighter("b", alignment=HOSTILE)
    far = make_fighter("c", alignment=HOSTILE)
    state = _state(caster, near, far, positions={
        "a": AxialCoord(-3, 0), "b": AxialCoord(1, 0), "c": AxialCoord(3, 0),
    })

    effect = DiceCombatEngine().cast_spell(state, "a", blast, Selection.tile(0, 0))
    assert set(effect.resource_deltas) == {"b"}


def test_healing_revives_unconscious(make_fighter) -> None:
    heal = Spell(id="heal", name="Heal", healing="5")
    caster = make_fighter("a", spells=[heal])
    patient = make_fighter("b", hp=10)
    patient.hp.current = -2
    patient.conditions.add("unconscious")

    effect = DiceCombatEngine().cast_spell(_state(caster, patient), "a", heal, Selection.character("b"))
    assert effect.resource_deltas == {"b": {"hp": 5}}
    assert effect.remove_conditions == {"b": {"unconscious"}}
