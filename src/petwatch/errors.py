"""Error taxonomy shared by the remote client, local storage and the CLI."""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorKind(str, Enum):
    """How a remote failure should be treated by the offline layer."""

    TRANSIENT = "transient"
    AUTHORIZATION = "authorization"
    PERMANENT = "permanent"

    @property
    def queueable(self) -> bool:
        """Whether a mutation failing this way may be queued for replay."""
        return self is ErrorKind.TRANSIENT


class PetwatchError(Exception):
    """Base exception for petwatch errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint


class RemoteError(PetwatchError):
    """A call against the remote service failed."""

    kind: ErrorKind = ErrorKind.PERMANENT

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code


class TransientError(RemoteError):
    """Timeout, connection failure or server-side error. Worth retrying."""

    kind = ErrorKind.TRANSIENT


class AuthorizationError(RemoteError):
    """The credential was rejected (401/403)."""

    kind = ErrorKind.AUTHORIZATION


class PermanentError(RemoteError):
    """Validation failure or malformed response. Retrying will not help."""

    kind = ErrorKind.PERMANENT


class StorageError(PetwatchError):
    """Local storage could not be read or written."""


class CacheStorageError(StorageError):
    """The response cache directory could not be read or written."""


class QueueStorageError(StorageError):
    """The mutation queue file could not be read or written."""


def classify_http_error(exc: httpx.HTTPError) -> RemoteError:
    """Translate an httpx exception into the petwatch error taxonomy.

    Args:
        exc: The exception raised by httpx.

    Returns:
        A RemoteError subclass matching the failure.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return AuthorizationError(
                f"Access denied ({status})",
                status_code=status,
                hint="Your token may have expired. Set a fresh one with: "
                "petwatch config set token <token>",
            )
        if status >= 500:
            return TransientError(
                f"Server error ({status})",
                status_code=status,
                hint="The service is having trouble. Try again later.",
            )
        return PermanentError(
            f"Request rejected ({status}): {exc.response.text}",
            status_code=status,
            hint="Check that the pet or device id is correct.",
        )
    if isinstance(exc, httpx.TimeoutException):
        return TransientError(f"Request timed out: {exc!s}")
    if isinstance(exc, httpx.ConnectError):
        return TransientError(
            f"Failed to connect to server: {exc!s}",
            hint="Check your internet connection.",
        )
    return TransientError(f"Request failed: {exc!s}")
