"""
hsmsigner Transport Layer

Byte channels and the protocol exchange with the security module.

Components:
- channel: Channel interface, unix/TCP asyncio channels
- buffered_stream: Read-side buffering with line reads
- http_exchange: Request serialization and response framing
"""

from hsmsigner.transport.channel import (
    Channel,
    EndpointScheme,
    ProviderEndpoint,
    StreamChannel,
    open_channel,
)
from hsmsigner.transport.buffered_stream import BufferedStreamReader
from hsmsigner.transport.http_exchange import HttpExchange, HttpResponse, sign_path

__all__ = [
    # Channels
    "Channel",
    "EndpointScheme",
    "ProviderEndpoint",
    "StreamChannel",
    "open_channel",
    # Buffering
    "BufferedStreamReader",
    # Exchange
    "HttpExchange",
    "HttpResponse",
    "sign_path",
]
