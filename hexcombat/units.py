"""
Combatant records for the tactical combat core.

Combatants are stored once in the controller's table keyed by id;
everything else refers to them by id.
"""

import logging
import uuid
import yaml
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from .errors import EncounterError

logger = logging.getLogger(__name__)

PARTY = "party"
HOSTILE = "hostile"

# Conditions that stop a combatant from taking actions
DISABLING_CONDITIONS = frozenset({
    "dead", "unconscious", "paralyzed", "asleep", "stunned", "fled",
})

SPELL_TARGET_MODES = ("character", "tile", "self")


@dataclass
class Weapon:
    """Equipped weapon. Range may be given in hexes or in feet."""
    name: str = "Unarmed"
    damage: str = "1d4"
    range_hex: Optional[int] = None
    range_feet: Optional[int] = None
    strike_bonus: int = 0


@dataclass
class Spell:
    """Castable spell or targeted effect."""
    id: str
    name: str
    target_mode: str = "character"  # one of SPELL_TARGET_MODES
    range_hex: Optional[int] = None
    requires_los: bool = True
    damage: Optional[str] = None  # dice notation
    healing: Optional[str] = None
    cost: int = 0
    pool: str = "ppe"
    area_radius: int = 0
    condition: Optional[str] = None  # applied to each target hit


@dataclass
class ResourcePool:
    """Bounded resource such as hit points or spell energy."""
    current: int
    maximum: int

    def apply(self, delta: int) -> int:
        """Change current by delta, capped at maximum. Returns the applied delta."""
        before = self.current
        self.current = min(self.maximum, self.current + delta)
        return self.current - before


@dataclass
class Attributes:
    speed: int = 10  # feet per round
    attacks_per_round: int = 2
    initiative: int = 0
    strike: int = 0
    armor_rating: int = 10
    vision_range: Optional[int] = None  # hexes, None uses config default
    ignore_water: bool = False


@dataclass
class Combatant:
    """A fighter taking part in an encounter."""
    id: str
    name: str
    alignment: str = HOSTILE
    attributes: Attributes = field(default_factory=Attributes)
    pools: dict[str, ResourcePool] = field(default_factory=dict)
    equipped_weapon: Optional[Weapon] = None
    spells: list[Spell] = field(default_factory=list)
    remaining_attacks: int = 0
    ai_controlled: bool = False
    conditions: set[str] = field(default_factory=set)
    facing: float = 0.0  # degrees, used by limited field-of-view vision

    @property
    def hp(self) -> Optional[ResourcePool]:
        return self.pools.get("hp")

    @property
    def attacks_per_round(self) -> int:
        return max(0, self.attributes.attacks_per_round)

    def is_alive(self) -> bool:
        if "dead" in self.conditions:
            return False
        return self.hp is None or self.hp.current > 0

    def is_disabled(self) -> bool:
        return bool(self.conditions & DISABLING_CONDITIONS)

    def is_enemy(self, other: "Combatant") -> bool:
        """Different alignments are hostile to each other."""
        return other.id != self.id and other.alignment != self.alignment

    def get_spell(self, spell_id: str) -> Optional[Spell]:
        for spell in self.spells:
            if spell.id == spell_id:
                return spell
        return None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["conditions"] = sorted(self.conditions)
        return data


def combatant_from_dict(data: dict) -> Combatant:
    """Create a Combatant from a roster/encounter mapping."""
    if not isinstance(data, dict):
        raise EncounterError(f"Combatant entry must be a mapping, got {type(data).__name__}")

    fighter_id = str(data.get("id") or uuid.uuid4())
    name = data.get("name", fighter_id)

    attrs = data.get("attributes", {})
    attributes = Attributes(
        speed=int(attrs.get("speed", data.get("speed", 10))),
        attacks_per_round=int(attrs.get("attacks_per_round", data.get("attacks_per_round", 2))),
        initiative=int(attrs.get("initiative", 0)),
        strike=int(attrs.get("strike", 0)),
        armor_rating=int(attrs.get("armor_rating", 10)),
        vision_range=attrs.get("vision_range"),
        ignore_water=bool(attrs.get("ignore_water", False)),
    )

    pools = {}
    for pool_name, value in (data.get("pools") or {}).items():
        if isinstance(value, dict):
            maximum = int(value.get("max", value.get("maximum", value.get("current", 0))))
            pools[pool_name] = ResourcePool(current=int(value.get("current", maximum)), maximum=maximum)
        else:
            pools[pool_name] = ResourcePool(current=int(value), maximum=int(value))

    weapon = None
    weapon_data = data.get("weapon") or data.get("equipped_weapon")
    if weapon_data:
        weapon = Weapon(
            name=weapon_data.get("name", "Weapon"),
            damage=weapon_data.get("damage", "1d6"),
            range_hex=weapon_data.get("range_hex"),
            range_feet=weapon_data.get("range_feet"),
            strike_bonus=int(weapon_data.get("strike_bonus", 0)),
        )

    spells = []
    for spell_data in data.get("spells", []):
        try:
            spell = Spell(**spell_data)
        except TypeError as e:
            raise EncounterError(f"Invalid spell for {fighter_id}: {e}") from e
        if spell.target_mode not in SPELL_TARGET_MODES:
            raise EncounterError(f"Spell {spell.id} of {fighter_id} has unknown target_mode {spell.target_mode!r}")
        spells.append(spell)

    return Combatant(
        id=fighter_id,
        name=name,
        alignment=data.get("alignment", HOSTILE),
        attributes=attributes,
        pools=pools,
        equipped_weapon=weapon,
        spells=spells,
        ai_controlled=bool(data.get("ai_controlled", data.get("ai", False))),
        conditions=set(data.get("conditions", [])),
        facing=float(data.get("facing", 0.0)),
    )


def load_roster(filepath: Path | str) -> list[Combatant]:
    """Load combatants from a YAML roster file (top-level 'combatants' list)."""
    filepath = Path(filepath)
    if not filepath.exists():
        raise EncounterError(f"Roster not found: {filepath}")

    with open(filepath) as f:
        data = yaml.safe_load(f) or {}

    fighters = [combatant_from_dict(entry) for entry in data.get("combatants", [])]
    ids = [f.id for f in fighters]
    duplicates = {i for i in ids if ids.count(i) > 1}
    if duplicates:
        raise EncounterError(f"Duplicate combatant ids in {filepath}: {sorted(duplicates)}")

    logger.info(f"Loaded {len(fighters)} combatants from {filepath}")
    return fighters
