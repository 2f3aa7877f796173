"""
Exception types raised by the field plant counter.

Degenerate distributions (empty histograms, zero probability mass) are not
errors: they are resolved where they occur by substituting zero.
"""


class FieldCounterError(Exception):
    """Base class for every error raised by this package."""


class InvalidImage(FieldCounterError, ValueError):
    """The input is not a usable image (None, wrong shape/dtype, or empty)."""


class ConfigurationError(FieldCounterError, ValueError):
    """A parameter or configuration value is out of range or unknown."""


class ClusteringCancelled(FieldCounterError):
    """A clustering pass was stopped through its cancel event."""
