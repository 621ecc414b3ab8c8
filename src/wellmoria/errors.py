"""Exception types for the Wellmoria fitness core.

Sensor and store errors are caught where the call happens and turned into
status (availability, last known value). Only explicit user actions, such as
adding water, let them reach the caller.
"""


class WellmoriaError(Exception):
    """Base class for all library errors."""


class MalformedRecordError(WellmoriaError, ValueError):
    """A record read from the remote store has the wrong shape."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed record at {path}: {reason}")


class SensorUnavailable(WellmoriaError):
    """The step sensor is missing or failed to answer."""


class StoreError(WellmoriaError):
    """A remote store operation failed."""


class TransientWriteFailure(StoreError):
    """A remote write failed (network, quota). Retrying later is expected to work."""

    def __init__(self, path: str, cause: Exception = None):
        self.path = path
        self.cause = cause
        message = f"Write to {path} failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
