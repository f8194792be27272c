"""Exception and warning types for gridepi.

ConfigurationError is bad input, caught at setup time.
InvariantViolation is a bug in the engine; it is never recovered from.
"""


class ConfigurationError(ValueError):
    """A configuration value is out of range or of the wrong type."""


class InvariantViolation(RuntimeError):
    """Engine bookkeeping disagrees with the population it describes."""


class CountRepairWarning(RuntimeWarning):
    """The count clamp had to change a published value."""
