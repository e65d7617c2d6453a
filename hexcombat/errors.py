"""
Exceptions raised by the combat core.

Loading problems (config, encounter files) propagate to the caller.
IllegalCommand and IllegalTarget are raised inside the turn controller
and turned into combat log entries at its public boundary.
"""


class HexCombatError(Exception):
    """Base class for all hexcombat errors."""


class ConfigError(HexCombatError):
    """Configuration file is unreadable or has invalid values."""


class EncounterError(HexCombatError):
    """Encounter definition is malformed."""


class IllegalCommand(HexCombatError):
    """A command arrived for an actor that is not allowed to act."""


class IllegalTarget(HexCombatError):
    """The selected target or tile fails a range, reach or sight check."""
