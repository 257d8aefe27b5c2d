from enum import Enum


class BackendError(Exception):
    """Base class for all backend IPC failures."""


class SpawnError(BackendError):
    """The backend executable could not be started."""


class TransportError(BackendError):
    """A pipe to the backend process broke."""


class WriteError(TransportError):
    pass


class ReadError(TransportError):
    pass


class ProtocolError(BackendError):
    """A wire record could not be decoded.

    Non-fatal errors are skipped and decoding continues with the next record.
    """

    fatal: bool

    def __init__(self, message: str, fatal: bool = False):
        super().__init__(message)
        self.fatal = fatal


class UnsupportedRequestError(ProtocolError):
    """The selected protocol has no encoding for a request."""

    def __init__(self, message: str):
        super().__init__(message, fatal=True)


class ConnectError(BackendError):
    pass


class ErrorReason(Enum):
    DISCONNECTED = "disconnected"  # close() was called
    BACKEND_DIED = "backend_died"  # pipe broke or process exited


class ClientError(BackendError):
    reason: ErrorReason

    def __init__(self, reason: ErrorReason, message: str | None = None):
        super().__init__(message or reason.value)
        self.reason = reason
