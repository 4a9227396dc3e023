"""
hsmsigner Core Types

Data model for the sign exchange with the local security module.

Design Principles:
- Immutable: request/response values use frozen attrs
- Validated: type constraints enforced at construction
- Short-lived: a SignRequest is built per call and discarded afterwards
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

import attrs
from attrs import field, validators

from hsmsigner.core.exceptions import HsmSignerError


# =============================================================================
# ENUMS
# =============================================================================


class SignAlgorithm(Enum):
    """
    Signing algorithms understood by the security module.

    Values are the wire tags sent in the ``algo`` field.
    """

    HMAC_SHA256 = "HMACSHA256"


# =============================================================================
# WIRE PAYLOADS
# =============================================================================


@attrs.define(frozen=True, slots=True)
class SignRequest:
    """
    Sign request sent to the module.

    INVARIANT: key_id and data are non-empty
    """

    key_id: str = field(validator=[validators.instance_of(str), validators.min_len(1)])
    data: bytes = field(
        validator=[validators.instance_of(bytes), validators.min_len(1)], repr=False
    )
    algo: SignAlgorithm = field(
        default=SignAlgorithm.HMAC_SHA256,
        validator=validators.instance_of(SignAlgorithm),
    )

    def to_wire(self) -> Dict[str, str]:
        """Serialize to the JSON-ready wire shape."""
        return {
            "keyId": self.key_id,
            "algo": self.algo.value,
            "data": base64.b64encode(self.data).decode("ascii"),
        }


@attrs.define(frozen=True, slots=True)
class SignResponse:
    """Successful sign response carrying the digest bytes."""

    digest: bytes = field(validator=validators.instance_of(bytes), repr=False)

    @classmethod
    def from_wire(cls, body: Mapping[str, Any]) -> SignResponse:
        """
        Parse a decoded JSON success body.

        Raises:
            HsmSignerError: FRAMING if the digest is missing or not base64
        """
        digest = body.get("digest") if isinstance(body, Mapping) else None
        if not isinstance(digest, str):
            raise HsmSignerError.framing("Sign response has no digest")
        try:
            return cls(digest=base64.b64decode(digest, validate=True))
        except ValueError as e:
            raise HsmSignerError.framing(f"Sign response digest is not base64: {e}") from e

    def to_base64(self) -> str:
        return base64.b64encode(self.digest).decode("ascii")


@attrs.define(frozen=True, slots=True)
class ErrorPayload:
    """Error body of a non-success response."""

    message: Optional[str] = None

    @classmethod
    def from_wire(cls, body: Any) -> ErrorPayload:
        if isinstance(body, Mapping):
            message = body.get("message")
            if isinstance(message, str):
                return cls(message=message)
        return cls()


# =============================================================================
# RETRY STATE
# =============================================================================


@attrs.define
class RetryAttemptState:
    """
    Progress of one retry executor invocation.

    Created fresh per invocation and discarded on completion.
    """

    attempt: int = 0
    elapsed_delay: float = 0.0
    last_error: Optional[BaseException] = None

    def record_failure(self, error: BaseException) -> None:
        self.last_error = error

    def record_delay(self, delay: float) -> None:
        self.elapsed_delay += delay


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================


@runtime_checkable
class SignatureProvider(Protocol):
    """Anything that can sign data with a named key held elsewhere."""

    async def sign(self, key_name: str, data: Any) -> str:
        """Return the base64 signature of ``data`` under ``key_name``."""
        ...
