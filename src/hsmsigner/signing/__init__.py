"""
hsmsigner Signing Module

Signing client for the local security module and SAS token building.

Components:
- config: SignerConfig
- client: SigningClient
- token: Shared access signature tokens
"""

from hsmsigner.signing.config import DEFAULT_API_VERSION, SignerConfig
from hsmsigner.signing.client import SigningClient, create_signing_client
from hsmsigner.signing.token import (
    build_shared_access_signature,
    module_audience,
)

__all__ = [
    "DEFAULT_API_VERSION",
    "SignerConfig",
    "SigningClient",
    "create_signing_client",
    "build_shared_access_signature",
    "module_audience",
]
