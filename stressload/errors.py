"""
Exception hierarchy for stress-load.
"""


class StressError(Exception):
    """Base class for every error raised by stress-load."""


# --------------------------------------------
# ARGUMENT ERRORS (fatal at startup)
# --------------------------------------------
class ArgumentError(StressError):
    """Bad command line input; raised before any load starts."""


class InvalidPercentage(ArgumentError):
    pass


class InvalidSizeFormat(ArgumentError):
    pass


class UnsupportedUnit(ArgumentError):
    pass


class InvalidDuration(ArgumentError):
    pass


class NoLoadSpecified(ArgumentError):
    def __init__(self, message="At least one load type must be specified"):
        super().__init__(message)


# --------------------------------------------
# RUNTIME ERRORS (controller-local)
# --------------------------------------------
class ProbeUnavailable(StressError):
    """The OS refused to report free space; the caller retries next cycle."""


class ResourceExhaustion(StressError):
    pass


class InsufficientResource(ResourceExhaustion):
    """Computed target footprint is zero or negative."""
