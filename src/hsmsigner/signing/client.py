"""
hsmsigner Signing Client

Obtains HMAC signatures from the local security module, which holds the
key material and never exposes it.

Flow:
1. Validate caller input (no network interaction on failure)
2. Build a SignRequest
3. Run the sign exchange under the retry executor
   (status >= 500 is transient, everything else is final)
4. Return the digest as base64 text, or raise one tagged error

Each attempt opens its own channel. Concurrent sign calls never share a
channel or reader.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Union

import attrs
import structlog
from returns.result import Failure, Result, Success

from hsmsigner.core.exceptions import ErrorKind, HsmSignerError
from hsmsigner.core.types import SignAlgorithm, SignRequest, SignResponse
from hsmsigner.retry.backoff import StatusCodeClassifier
from hsmsigner.retry.executor import RetryExecutor
from hsmsigner.signing.config import DEFAULT_API_VERSION, SignerConfig
from hsmsigner.transport.channel import Channel, ProviderEndpoint, open_channel
from hsmsigner.transport.http_exchange import HttpExchange

logger = structlog.get_logger()

ChannelFactory = Callable[[], Awaitable[Channel]]

GENERIC_ERROR_MESSAGE = "Error calling sign"


def _retry_from_config(client: "SigningClient") -> RetryExecutor:
    return RetryExecutor(
        backoff=client.config.backoff(),
        classifier=StatusCodeClassifier(),
        max_attempts=client.config.max_attempts,
    )


@attrs.define
class SigningClient:
    """
    Client for the module's sign API.

    Example:
        client = SigningClient(SignerConfig("unix:///var/run/iotedge/workload.sock"))
        signature = await client.sign("mymodule", b"data to sign")

        # Result-returning variant
        result = await client.try_sign("mymodule", b"data to sign")
        match result:
            case Success(signature): ...
            case Failure(error): ...

    Attributes:
        config: Endpoint, API version and retry bounds
        retry: Retry executor; built from config when not supplied
        channel_factory: Opens a channel per attempt; defaults to
            connecting to config.provider_uri
    """

    config: SignerConfig
    retry: RetryExecutor = attrs.Factory(_retry_from_config, takes_self=True)
    channel_factory: Optional[ChannelFactory] = None
    algorithm: SignAlgorithm = SignAlgorithm.HMAC_SHA256

    _endpoint: ProviderEndpoint = attrs.field(init=False)
    _exchange: HttpExchange = attrs.field(init=False)
    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    def __attrs_post_init__(self) -> None:
        self._endpoint = self.config.endpoint
        self._exchange = HttpExchange(
            host=self._endpoint.host_header,
            api_version=self.config.api_version,
            buffer_size=self.config.buffer_size,
        )

    @property
    def endpoint(self) -> ProviderEndpoint:
        return self._endpoint

    async def sign(self, key_name: str, data: Union[bytes, str]) -> str:
        """
        Sign data with the named key.

        Args:
            key_name: Key identifier held by the module (the module id)
            data: Bytes to sign; text is UTF-8 encoded

        Returns:
            Base64-encoded signature

        Raises:
            HsmSignerError: VALIDATION for empty input (before any I/O);
                FRAMING for a malformed or truncated exchange;
                PERMANENT_COMMUNICATION for any other failed exchange,
                including exhausted retries
        """
        payload = _validate(key_name, data)
        request = SignRequest(key_id=key_name, data=payload, algo=self.algorithm)

        self._logger.info("sign_start", key_name=key_name, length=len(payload))

        try:
            response = await self.retry.execute(lambda: self._sign_once(key_name, request))
        except HsmSignerError as e:
            if not e.is_communication:
                self._logger.error(
                    "sign_failed",
                    key_name=key_name,
                    kind=e.kind.name,
                    error=e.message,
                )
                raise

            self._logger.error(
                "sign_failed",
                key_name=key_name,
                kind=ErrorKind.PERMANENT_COMMUNICATION.name,
                status=e.status_code,
                error=e.message,
            )
            raise HsmSignerError(
                e.message or GENERIC_ERROR_MESSAGE,
                ErrorKind.PERMANENT_COMMUNICATION,
                status_code=e.status_code,
                payload=e.payload,
            ) from e

        self._logger.info("sign_succeeded", key_name=key_name)
        return response.to_base64()

    async def try_sign(
        self, key_name: str, data: Union[bytes, str]
    ) -> Result[str, HsmSignerError]:
        """
        Sign data, returning the outcome as a Result.

        Returns:
            Success(signature) or Failure(HsmSignerError)
        """
        try:
            return Success(await self.sign(key_name, data))
        except HsmSignerError as e:
            return Failure(e)

    async def _sign_once(self, key_name: str, request: SignRequest) -> SignResponse:
        """
        One attempt: open a channel, exchange, close.

        Connection setup and the exchange are each bounded by
        config.timeout; expiry raises PERMANENT_COMMUNICATION.
        """
        if self.channel_factory is not None:
            channel = await self.channel_factory()
        else:
            channel = await open_channel(self._endpoint, timeout=self.config.timeout)

        try:
            return await asyncio.wait_for(
                self._exchange.sign(channel, key_name, request),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            self._logger.error(
                "hsm_exchange_timeout",
                key_name=key_name,
                timeout=self.config.timeout,
            )
            raise HsmSignerError(
                f"Timed out waiting for sign response from {self._endpoint}",
                ErrorKind.PERMANENT_COMMUNICATION,
            ) from e


def _validate(key_name: Any, data: Any) -> bytes:
    """Check caller input and return the payload bytes."""
    if not isinstance(key_name, str) or not key_name:
        raise HsmSignerError.validation("key_name must be a non-empty string")
    if isinstance(data, str):
        data = data.encode("utf-8")
    if not isinstance(data, (bytes, bytearray)) or not data:
        raise HsmSignerError.validation("data must be non-empty bytes or text")
    return bytes(data)


def create_signing_client(
    provider_uri: str,
    api_version: str = DEFAULT_API_VERSION,
    **kwargs: Any,
) -> SigningClient:
    """
    Create a signing client for a provider endpoint.

    Args:
        provider_uri: ``unix://<socket path>`` or ``http://host:port``
        api_version: Sign API version
        **kwargs: Further SignerConfig values (max_attempts, timeout, ...)

    Returns:
        Configured SigningClient
    """
    return SigningClient(
        config=SignerConfig(provider_uri=provider_uri, api_version=api_version, **kwargs)
    )
