"""
hsmsigner Core Module

Foundational types shared by the transport, retry and signing layers.

Components:
- types: Wire payloads, retry state, provider interface
- exceptions: Tagged error type and error kinds
"""

from hsmsigner.core.types import (
    SignAlgorithm,
    SignRequest,
    SignResponse,
    ErrorPayload,
    RetryAttemptState,
    SignatureProvider,
)
from hsmsigner.core.exceptions import (
    ErrorKind,
    SignerError,
    HsmSignerError,
)

__all__ = [
    # Types
    "SignAlgorithm",
    "SignRequest",
    "SignResponse",
    "ErrorPayload",
    "RetryAttemptState",
    "SignatureProvider",
    # Exceptions
    "ErrorKind",
    "SignerError",
    "HsmSignerError",
]
