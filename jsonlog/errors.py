"""Exception types raised (or recovered from) by the logger."""


class JsonLogError(Exception):
    """Base class for every jsonlog error."""


class InvalidLevel(JsonLogError, ValueError):
    """Severity argument is neither a known word nor a rank 0..7."""

    def __init__(self, level):
        self.level = level
        super().__init__(f"Invalid log level: {level!r}")


class ColumnResolutionFailure(JsonLogError):
    """A column function raised while an event was being composed."""

    def __init__(self, column: str, cause: BaseException):
        self.column = column
        self.cause = cause
        super().__init__(f"Column {column!r} failed: {type(cause).__name__}: {cause}")


class SinkWriteFailure(JsonLogError, OSError):
    """Appending to (or truncating) the log file failed."""

    def __init__(self, path: str, cause: BaseException | None = None):
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Failed to write to file[{path}]{detail}")


class MaintenanceOnly(JsonLogError, RuntimeError):
    """Operation is only allowed outside of an inbound request (CLI mode)."""
