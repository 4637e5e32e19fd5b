"""
Somnus exception hierarchy.

All somnus exceptions inherit from SomnusError, making it easy for consumers
to catch engine-level errors while still distinguishing specific failure modes.

Data-sufficiency problems (thin history, missing stage buckets) are not
exceptions: they degrade confidence and surface as flags on the output.
"""


class SomnusError(Exception):
    """Base exception class for all somnus errors."""


class ValidationError(SomnusError, ValueError):
    """Raised for malformed input (end <= start, unknown stage, negative minutes)."""


class ConfigurationError(SomnusError):
    """Raised for configuration errors (missing keys, invalid values)."""


class DataProcessingError(SomnusError):
    """Raised when an input document cannot be read or decoded."""
