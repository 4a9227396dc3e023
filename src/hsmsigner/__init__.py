"""
hsmsigner - Signing Client for Local Security Modules

Obtains signatures from a local HSM over a unix socket or TCP channel,
without ever seeing the key material.

Features:
- Minimal HTTP framer over a buffered byte stream
- Exponential backoff retry of transient (5xx) failures
- Tagged errors (ErrorKind) and Result-returning variants
- SAS token generation from module-held keys

Example Usage:
    import asyncio
    from hsmsigner import SigningClient, SignerConfig

    client = SigningClient(SignerConfig("unix:///var/run/iotedge/workload.sock"))
    signature = asyncio.run(client.sign("mymodule", b"data to sign"))
"""

from hsmsigner.core.types import SignAlgorithm, SignRequest, SignResponse, ErrorPayload
from hsmsigner.core.exceptions import ErrorKind, HsmSignerError
from hsmsigner.retry import ExponentialBackoff, RetryExecutor, StatusCodeClassifier
from hsmsigner.signing import (
    SignerConfig,
    SigningClient,
    build_shared_access_signature,
    create_signing_client,
)

__version__ = "0.1.0"

__all__ = [
    # Main API
    "SigningClient",
    "SignerConfig",
    "create_signing_client",
    "build_shared_access_signature",
    # Retry
    "ExponentialBackoff",
    "RetryExecutor",
    "StatusCodeClassifier",
    # Types
    "SignAlgorithm",
    "SignRequest",
    "SignResponse",
    "ErrorPayload",
    # Errors
    "ErrorKind",
    "HsmSignerError",
    # Metadata
    "__version__",
]
