"""
hsmsigner Shared Access Signature Tokens

Builds hub SAS tokens whose signature comes from a SignatureProvider, so
the signing key never leaves the security module.

Token format:
    SharedAccessSignature sr={audience}&sig={signature}&se={expiry}

The string signed is ``"{url-encoded audience}\\n{expiry}"`` where expiry is
in seconds since the Unix epoch.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import quote

import structlog

from hsmsigner.core.exceptions import HsmSignerError
from hsmsigner.core.types import SignatureProvider

logger = structlog.get_logger()

DEFAULT_TOKEN_TTL = timedelta(hours=1)


def module_audience(hostname: str, device_id: str, module_id: str) -> str:
    """Resource URI a module token is scoped to."""
    return f"{hostname}/devices/{quote(device_id, safe='')}/modules/{quote(module_id, safe='')}"


def string_to_sign(audience: str, expiry: int) -> str:
    return f"{quote(audience, safe='')}\n{expiry}"


async def build_shared_access_signature(
    provider: SignatureProvider,
    key_name: str,
    audience: str,
    ttl: timedelta = DEFAULT_TOKEN_TTL,
    now: Optional[datetime] = None,
) -> str:
    """
    Build a SAS token signed by the provider.

    Args:
        provider: Signs with the key held by the module
        key_name: Key identifier (the module id)
        audience: Resource URI the token is valid for
        ttl: Token lifetime
        now: Issue time (default: current UTC time)

    Returns:
        SAS token string

    Raises:
        HsmSignerError: VALIDATION for an empty audience or non-positive ttl;
            any error raised by the provider
    """
    if not audience:
        raise HsmSignerError.validation("audience must not be empty")
    if ttl <= timedelta(0):
        raise HsmSignerError.validation("ttl must be positive")

    if now is None:
        now = datetime.now(timezone.utc)
    expiry = int((now + ttl).timestamp())

    signature = await provider.sign(key_name, string_to_sign(audience, expiry))

    logger.debug("sas_token_built", key_name=key_name, audience=audience, expiry=expiry)

    return (
        "SharedAccessSignature "
        f"sr={quote(audience, safe='')}"
        f"&sig={quote(signature, safe='')}"
        f"&se={expiry}"
    )
