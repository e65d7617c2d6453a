import logging

import pytest

from hexcombat.config import CombatConfig, load_config
from hexcombat.encounter import build_encounter, load_encounter
from hexcombat.errors import ConfigError, EncounterError
from hexcombat.hex_math import AxialCoord
from hexcombat.map import TerrainType, load_terrain_info
from hexcombat.units import combatant_from_dict, load_roster


def test_defaults_when_config_missing(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("HEXCOMBAT_SEED", raising=False)
    config = load_config(tmp_path)
    assert config.movement.feet_per_hex == 5
    assert config.movement.reach_check == "path"
    assert config.ai.max_actions_per_event == 200
    assert config.seed is None


def test_shipped_config(data_dir, monkeypatch) -> None:
    monkeypatch.delenv("HEXCOMBAT_SEED", raising=False)
    config = load_config(data_dir)
    assert config.vision.cover_block_threshold == 3.0
    assert config.movement.default_attack_range_hex == 6


def test_config_file_and_env_seed(tmp_path, monkeypatch, caplog) -> None:
    schema = tmp_path / "schema"
    schema.mkdir()
    (schema / "combat.yaml").write_text(
        "movement:\n  reach_check: range\n  sprint: true\nai:\n  max_actions_per_event: 10\n"
    )
    monkeypatch.setenv("HEXCOMBAT_SEED", "42")

    with caplog.at_level(logging.WARNING):
        config = load_config(tmp_path)
    assert config.movement.reach_check == "range"
    assert config.ai.max_actions_per_event == 10
    assert config.seed == 42
    assert "sprint" in caplog.text


def test_invalid_config_values(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("HEXCOMBAT_SEED", raising=False)
    with pytest.raises(ConfigError):
        CombatConfig.from_dict({"movement": {"reach_check": "teleport"}})

    schema = tmp_path / "schema"
    schema.mkdir()
    (schema / "combat.yaml").write_text("movement: [unclosed\n")
    with pytest.raises(ConfigError):
        load_config(tmp_path)

    monkeypatch.setenv("HEXCOMBAT_SEED", "lucky")
    (schema / "combat.yaml").write_text("log_limit: 50\n")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_terrain_schema_overrides(tmp_path, data_dir) -> None:
    shipped = load_terrain_info(data_dir)
    assert shipped["forest"].movement_cost == 1.5
    assert not shipped["water"].passable
    assert not shipped["wall"].passable  # code default kept when the file omits it

    schema = tmp_path / "schema"
    schema.mkdir()
    (schema / "terrain.yaml").write_text("terrain_types:\n  forest:\n    movement_cost: 2.5\n")
    assert load_terrain_info(tmp_path)["forest"].movement_cost == 2.5


def test_combatant_from_dict() -> None:
    fighter = combatant_from_dict({
        "id": "mira",
        "alignment": "party",
        "speed": 15,
        "pools": {"hp": 12, "ppe": {"max": 20, "current": 8}},
        "weapon": {"name": "Staff", "range_hex": 1},
        "spells": [{"id": "bolt", "name": "Bolt", "damage": "2d6"}],
        "ai": True,
    })
    assert fighter.attributes.speed == 15
    assert fighter.hp.current == 12
    assert fighter.pools["ppe"].current == 8
    assert fighter.equipped_weapon.range_hex == 1
    assert fighter.get_spell("bolt").damage == "2d6"
    assert fighter.ai_controlled

    with pytest.raises(EncounterError):
        combatant_from_dict(["not", "a", "mapping"])
    with pytest.raises(EncounterError):
        combatant_from_dict({"id": "x", "spells": [{"id": "s", "name": "S", "colour": "red"}]})
    with pytest.raises(EncounterError, match="target_mode"):
        combatant_from_dict({"id": "x", "spells": [{"id": "s", "name": "S", "target_mode": "area"}]})


def test_load_roster(tmp_path) -> None:
    roster = tmp_path / "roster.yaml"
    roster.write_text("combatants:\n  - {id: a}\n  - {id: b}\n")
    assert [f.id for f in load_roster(roster)] == ["a", "b"]

    roster.write_text("combatants:\n  - {id: a}\n  - {id: a}\n")
    with pytest.raises(EncounterError):
        load_roster(roster)
    with pytest.raises(EncounterError):
        load_roster(tmp_path / "missing.yaml")


def test_load_shipped_encounter(data_dir) -> None:
    encounter = load_encounter(data_dir / "encounters" / "goblin_ambush.yaml", data_dir)
    assert encounter.name == "Goblin Ambush"
    assert {f.id for f in encounter.fighters} == {"aldric", "mira", "gob_archer", "gob_brute"}
    assert encounter.positions["gob_brute"] == AxialCoord(3, 0)
    assert encounter.grid.get_tile((1, -1)).terrain == TerrainType.FOREST
    assert encounter.grid.get_tile((-1, 2)).height == 2
    assert len(encounter.grid) == 127


def test_encounter_validation(data_dir) -> None:
    base = {
        "grid": {"radius": 2},
        "combatants": [{"id": "a"}, {"id": "b"}],
        "positions": {"a": [0, 0], "b": [1, 0]},
    }
    encounter = build_encounter(base, data_dir)
    assert encounter.grid.get_tile((0, 0)).terrain == TerrainType.OPEN

    with pytest.raises(EncounterError):
        build_encounter({**base, "positions": {"a": [9, 0]}}, data_dir)
    with pytest.raises(EncounterError):
        build_encounter({**base, "positions": {"a": [0, 0], "b": [0, 0]}}, data_dir)
    with pytest.raises(EncounterError):
        build_encounter({**base, "positions": {"c": [0, 0]}}, data_dir)
    with pytest.raises(EncounterError):
        build_encounter({**base, "grid": {"terrain": "lava"}}, data_dir)
    with pytest.raises(EncounterError):
        build_encounter({**base, "combatants": [{"id": "a"}, {"id": "a"}]}, data_dir)
    with pytest.raises(EncounterError):
        load_encounter(data_dir / "encounters" / "missing.yaml", data_dir)
