"""Exception hierarchy shared by the timecode and frame-rate modules."""


class SourcePrintError(Exception):
    pass


class TimecodeError(SourcePrintError, ValueError):
    """Base class for timecode and frame-rate failures."""
    pass


class TimecodeParseError(TimecodeError):
    """Raised for a malformed timecode string or an out-of-range field."""
    pass


class TimecodeRateError(TimecodeError):
    """Raised when a frame rate is non-positive or cannot be represented."""
    pass
