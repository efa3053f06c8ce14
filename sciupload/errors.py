"""
Error taxonomy for sciupload.

Transport failures are values classified by kind, so the retry policy can
split retryable from terminal errors at the call site.
"""
from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification of a transport failure."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    LOCAL_IO = "local_io"
    ALREADY_EXISTS = "already_exists"
    CLIENT_ERROR = "client_error"
    INTERNAL = "internal"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset({ErrorKind.SERVER_ERROR, ErrorKind.NETWORK_ERROR})


class SciUploadError(Exception):
    """Base class for all sciupload errors."""


class ConfigurationError(SciUploadError):
    """Raised when an upload request is invalid. Aborts before scheduling."""


class TransportError(SciUploadError):
    """A single failed transport call."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.kind.value} (HTTP {self.status_code}): {self.message}"
        return f"{self.kind.value}: {self.message}"

    def __repr__(self) -> str:
        return f"TransportError({self.kind.name}, {self.message!r}, status_code={self.status_code})"

    @classmethod
    def not_found(cls, message: str, status_code: Optional[int] = 404):
        return cls(ErrorKind.NOT_FOUND, message, status_code)

    @classmethod
    def unauthorized(cls, message: str, status_code: Optional[int] = 401):
        return cls(ErrorKind.UNAUTHORIZED, message, status_code)

    @classmethod
    def server_error(cls, message: str, status_code: Optional[int] = 500):
        return cls(ErrorKind.SERVER_ERROR, message, status_code)

    @classmethod
    def network_error(cls, message: str):
        return cls(ErrorKind.NETWORK_ERROR, message)

    @classmethod
    def local_io(cls, message: str):
        return cls(ErrorKind.LOCAL_IO, message)
