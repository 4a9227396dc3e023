"""
hsmsigner Exception Types

Errors raised while obtaining a signature from the local security module.

Failures are distinguished by an explicit ``ErrorKind`` tag rather than by
subclass identity. Callers match on ``error.kind``:

    try:
        signature = await client.sign("mymodule", b"payload")
    except HsmSignerError as e:
        if e.kind is ErrorKind.PERMANENT_COMMUNICATION:
            ...
"""

from __future__ import annotations

from enum import Enum, auto
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from hsmsigner.core.types import ErrorPayload


class ErrorKind(Enum):
    """Failure category of a signing call."""

    VALIDATION = auto()  # Malformed caller input, never retried
    FRAMING = auto()  # Channel ended or produced unparsable structure
    TRANSIENT_COMMUNICATION = auto()  # Response status >= 500
    PERMANENT_COMMUNICATION = auto()  # 4xx, connection failure, or retries exhausted


class SignerError(Exception):
    """Base exception for all hsmsigner errors."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class HsmSignerError(SignerError):
    """
    Tagged signing failure.

    Attributes:
        kind: Failure category
        status_code: Response status code, when a response was received
        payload: Structured error body, when the response carried one
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        status_code: Optional[int] = None,
        payload: Optional["ErrorPayload"] = None,
    ) -> None:
        super().__init__(message, code=status_code)
        self.kind = kind
        self.status_code = status_code
        self.payload = payload

    @property
    def is_communication(self) -> bool:
        """True if the error came from the exchange with the module."""
        return self.kind in (
            ErrorKind.TRANSIENT_COMMUNICATION,
            ErrorKind.PERMANENT_COMMUNICATION,
        )

    @classmethod
    def validation(cls, message: str) -> "HsmSignerError":
        return cls(message, ErrorKind.VALIDATION)

    @classmethod
    def framing(cls, message: str) -> "HsmSignerError":
        return cls(message, ErrorKind.FRAMING)

    def __repr__(self) -> str:
        return (
            f"HsmSignerError({self.message!r}, kind={self.kind.name}, "
            f"status_code={self.status_code!r})"
        )
