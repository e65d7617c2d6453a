"""
Configuration for the combat core.

Values come from data/schema/combat.yaml when present, falling back to
the defaults below. A few settings can be overridden from the
environment (or a .env file):

- HEXCOMBAT_DATA_PATH: data directory (default "data")
- HEXCOMBAT_LOG_LEVEL: log level for the CLI runner
- HEXCOMBAT_SEED: RNG seed for the dice engine
"""

import os
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigError

logger = logging.getLogger(__name__)

REACH_CHECKS = ("path", "range")


@dataclass
class MovementConfig:
    feet_per_hex: int = 5
    reach_check: str = "path"  # "path" or "range"
    elevation_penalty: float = 0.5
    default_attack_range_hex: int = 6


@dataclass
class VisionConfig:
    radius: int = 12
    fov_angle: float = 360.0
    cover_block_threshold: float = 3.0
    memory_decay_rounds: int = 0  # 0 keeps explored tiles forever


@dataclass
class AIConfig:
    max_actions_per_event: int = 200
    require_visibility: bool = False


@dataclass
class CombatConfig:
    """All tunables of the combat core."""
    movement: MovementConfig = field(default_factory=MovementConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    ai: AIConfig = field(default_factory=AIConfig)
    log_limit: int = 1000
    seed: Optional[int] = None
    data_path: Path = Path("data")

    def __post_init__(self):
        if self.movement.reach_check not in REACH_CHECKS:
            raise ConfigError(
                f"movement.reach_check must be one of {REACH_CHECKS}, "
                f"got {self.movement.reach_check!r}"
            )
        if self.movement.feet_per_hex <= 0:
            raise ConfigError("movement.feet_per_hex must be positive")
        if self.ai.max_actions_per_event < 1:
            raise ConfigError("ai.max_actions_per_event must be at least 1")

    @classmethod
    def from_dict(cls, data: dict, data_path: Path | str = "data") -> "CombatConfig":
        """Build a config from a parsed combat.yaml mapping."""
        data = data or {}
        try:
            return cls(
                movement=_section(MovementConfig, data.get("movement")),
                vision=_section(VisionConfig, data.get("vision")),
                ai=_section(AIConfig, data.get("ai")),
                log_limit=int(data.get("log_limit", 1000)),
                seed=data.get("seed"),
                data_path=Path(data_path),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid combat config: {e}") from e


def _section(section_cls, values: Optional[dict]):
    values = values or {}
    known = {f.name for f in fields(section_cls)}
    unknown = set(values) - known
    if unknown:
        logger.warning(f"Ignoring unknown {section_cls.__name__} keys: {sorted(unknown)}")
    return section_cls(**{k: v for k, v in values.items() if k in known})


def load_config(data_path: Path | str | None = None) -> CombatConfig:
    """Load combat config, honouring .env and environment overrides."""
    load_dotenv()

    data_path = Path(data_path or os.getenv("HEXCOMBAT_DATA_PATH", "data"))
    config_path = data_path / "schema" / "combat.yaml"

    data = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {config_path}: {e}") from e
    else:
        logger.info(f"Combat config not found at {config_path}, using defaults")

    config = CombatConfig.from_dict(data, data_path)

    seed = os.getenv("HEXCOMBAT_SEED")
    if seed:
        try:
            config.seed = int(seed)
        except ValueError as e:
            raise ConfigError(f"HEXCOMBAT_SEED must be an integer, got {seed!r}") from e

    return config
