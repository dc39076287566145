"""
Error and warning types for trial simulation.
"""


class ConfigurationError(ValueError):
    """Invalid simulation configuration. Raised before any replicate is generated."""


class UnderpoweredReplicateWarning(UserWarning):
    """Fewer events occurred over full follow-up than an analysis requested."""


class NumericDegeneracyWarning(UserWarning):
    """A statistic was clamped or could not be estimated for an analysis."""
