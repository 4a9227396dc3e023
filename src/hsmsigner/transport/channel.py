"""
hsmsigner Channel Layer

Raw byte-oriented duplex channels to the security module.

Supports:
- Unix domain sockets (``unix:///var/run/iotedge/workload.sock``)
- TCP (``http://127.0.0.1:15580``)

A channel is opened per exchange and closed afterwards. It performs no
buffering; see ``BufferedStreamReader`` for the read side.
"""

from __future__ import annotations

import asyncio
from enum import Enum, auto
from typing import Any, Optional, Protocol
from urllib.parse import urlsplit

import attrs
import structlog

from hsmsigner.core.exceptions import ErrorKind, HsmSignerError

logger = structlog.get_logger()


# =============================================================================
# CHANNEL INTERFACE
# =============================================================================


class Channel(Protocol):
    """Byte-oriented duplex channel."""

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes. ``b""`` denotes end of stream."""
        ...

    def write(self, data: bytes) -> None:
        ...

    async def flush(self) -> None:
        ...

    async def close(self) -> None:
        ...


# =============================================================================
# ENDPOINT
# =============================================================================


class EndpointScheme(Enum):
    """Provider endpoint transport."""
    UNIX = auto()
    TCP = auto()


@attrs.define(frozen=True, slots=True)
class ProviderEndpoint:
    """
    Parsed provider address.

    For UNIX endpoints ``path`` is the socket path; for TCP endpoints
    ``host`` and ``port`` are set.
    """

    scheme: EndpointScheme
    host: str = "localhost"
    port: Optional[int] = None
    path: Optional[str] = None

    @classmethod
    def parse(cls, uri: str) -> ProviderEndpoint:
        """
        Parse a provider URI.

        Examples:
            "unix:///var/run/iotedge/workload.sock"
            "http://127.0.0.1:15580"

        Raises:
            HsmSignerError: VALIDATION for empty or unsupported URIs
        """
        if not uri:
            raise HsmSignerError.validation("Provider URI must not be empty")

        parts = urlsplit(uri)
        scheme = parts.scheme.lower()

        if scheme == "unix":
            if not parts.path:
                raise HsmSignerError.validation(f"Unix provider URI has no socket path: {uri}")
            return cls(scheme=EndpointScheme.UNIX, path=parts.path)

        if scheme == "http":
            if not parts.hostname:
                raise HsmSignerError.validation(f"Provider URI has no host: {uri}")
            try:
                port = parts.port or 80
            except ValueError as e:
                raise HsmSignerError.validation(f"Invalid provider port: {uri}") from e
            return cls(scheme=EndpointScheme.TCP, host=parts.hostname, port=port)

        raise HsmSignerError.validation(f"Unsupported provider URI scheme: {uri}")

    @property
    def host_header(self) -> str:
        if self.scheme == EndpointScheme.TCP and self.port not in (None, 80):
            return f"{self.host}:{self.port}"
        return self.host

    def __str__(self) -> str:
        if self.scheme == EndpointScheme.UNIX:
            return f"unix://{self.path}"
        return f"http://{self.host}:{self.port}"


# =============================================================================
# ASYNCIO STREAM CHANNEL
# =============================================================================


def _channel_error(action: str, error: OSError) -> HsmSignerError:
    logger.error("hsm_channel_failed", action=action, error=str(error))
    return HsmSignerError(
        f"Channel {action} failed: {error}",
        ErrorKind.PERMANENT_COMMUNICATION,
    )


@attrs.define
class StreamChannel:
    """
    Channel over an asyncio reader/writer pair.

    Socket errors (reset, broken pipe) raise PERMANENT_COMMUNICATION.
    """

    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter

    async def read(self, size: int) -> bytes:
        try:
            return await self.reader.read(size)
        except OSError as e:
            raise _channel_error("read", e) from e

    def write(self, data: bytes) -> None:
        try:
            self.writer.write(data)
        except OSError as e:
            raise _channel_error("write", e) from e

    async def flush(self) -> None:
        try:
            await self.writer.drain()
        except OSError as e:
            raise _channel_error("flush", e) from e

    async def close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            logger.debug("hsm_channel_close_failed", error=str(e))


async def open_channel(endpoint: ProviderEndpoint, timeout: float = 10.0) -> StreamChannel:
    """
    Open a channel to the provider endpoint.

    Args:
        endpoint: Parsed provider address
        timeout: Seconds allowed for connection establishment

    Returns:
        Connected StreamChannel

    Raises:
        HsmSignerError: PERMANENT_COMMUNICATION if the connection fails
    """
    try:
        if endpoint.scheme == EndpointScheme.UNIX:
            connect: Any = asyncio.open_unix_connection(endpoint.path)
        else:
            connect = asyncio.open_connection(endpoint.host, endpoint.port)
        reader, writer = await asyncio.wait_for(connect, timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error("hsm_connect_timeout", endpoint=str(endpoint), timeout=timeout)
        raise HsmSignerError(
            f"Timed out connecting to {endpoint}",
            ErrorKind.PERMANENT_COMMUNICATION,
        ) from e
    except OSError as e:
        logger.error("hsm_connect_failed", endpoint=str(endpoint), error=str(e))
        raise HsmSignerError(
            f"Failed to connect to {endpoint}: {e}",
            ErrorKind.PERMANENT_COMMUNICATION,
        ) from e

    logger.debug("hsm_channel_opened", endpoint=str(endpoint))
    return StreamChannel(reader=reader, writer=writer)
