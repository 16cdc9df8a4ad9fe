"""Closed error taxonomy shared by the fetch client, cache layer and repository.

Errors are values, not exceptions: every failure is an immutable `ErrorRecord`
tagged with an `ErrorKind`. Callers branch on `record.kind`; message text is
for humans only and may be reworded freely.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """The five failure categories a caller can observe."""
    NETWORK = "network"
    SERVER = "server"
    CACHE = "cache"
    NOT_FOUND = "not_found"
    AUTHORIZATION = "authorization"


@dataclass(frozen=True)
class ErrorRecord:
    """A failure created at its origin and propagated unchanged."""
    kind: ErrorKind
    message: str
    cause: Optional[BaseException] = None
    identifier: Optional[str] = None  # requested resource id, set for NOT_FOUND
    status_code: Optional[int] = None

    @classmethod
    def network(cls, message: str, *, cause: Optional[BaseException] = None) -> "ErrorRecord":
        return cls(ErrorKind.NETWORK, message, cause=cause)

    @classmethod
    def server(
        cls,
        message: str,
        *,
        cause: Optional[BaseException] = None,
        status_code: Optional[int] = None,
    ) -> "ErrorRecord":
        return cls(ErrorKind.SERVER, message, cause=cause, status_code=status_code)

    @classmethod
    def cache(cls, message: str, *, cause: Optional[BaseException] = None) -> "ErrorRecord":
        return cls(ErrorKind.CACHE, message, cause=cause)

    @classmethod
    def not_found(cls, identifier: str, *, status_code: Optional[int] = 404) -> "ErrorRecord":
        return cls(
            ErrorKind.NOT_FOUND,
            f"City not found: {identifier}",
            identifier=identifier,
            status_code=status_code,
        )

    @classmethod
    def authorization(cls, message: str, *, status_code: Optional[int] = 401) -> "ErrorRecord":
        return cls(ErrorKind.AUTHORIZATION, message, status_code=status_code)

    @property
    def allows_stale_fallback(self) -> bool:
        """True when serving previously cached data may mask this failure."""
        return self.kind in (ErrorKind.NETWORK, ErrorKind.SERVER)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


FRIENDLY_MESSAGES = {
    ErrorKind.NETWORK: "No internet connection. Please check your network settings.",
    ErrorKind.SERVER: "Server error occurred. Please try again later.",
    ErrorKind.CACHE: "Error accessing cached data.",
    ErrorKind.NOT_FOUND: "City not found. Please check the spelling and try again.",
    ErrorKind.AUTHORIZATION: "Invalid API key or unauthorized access. Please check your API key.",
}


def friendly_message(error: ErrorRecord) -> str:
    """Map an error to the text a presentation layer should show."""
    if error.kind is ErrorKind.NOT_FOUND and error.identifier:
        return f"City not found: {error.identifier}. Please check the spelling."
    return FRIENDLY_MESSAGES[error.kind]
