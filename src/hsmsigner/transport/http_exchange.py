"""
hsmsigner Protocol Exchange

Minimal HTTP/1.1 framer for the sign call to the security module.

Protocol:
- Request: request line, header lines, JSON body (Content-Length framed)
- Response: status line and header lines terminated by an empty line,
  then a body delimited by Content-Length, chunked transfer encoding,
  or end of stream

A malformed or truncated exchange is a FRAMING error. This layer never
retries; retry belongs to the caller.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote

import attrs
import structlog

from hsmsigner.core.exceptions import ErrorKind, HsmSignerError
from hsmsigner.core.types import ErrorPayload, SignRequest, SignResponse
from hsmsigner.transport.buffered_stream import BufferedStreamReader
from hsmsigner.transport.channel import Channel

logger = structlog.get_logger()

SIGN_PATH_TEMPLATE = "/modules/{name}/sign?api-version={api_version}"
HTTP_VERSION = "HTTP/1.1"
MAX_HEADER_LINES = 100
MAX_BODY_SIZE = 1024 * 1024  # 1MB


# =============================================================================
# RESPONSE
# =============================================================================


@attrs.define(frozen=True, slots=True)
class HttpResponse:
    """Parsed response: status, headers (lower-cased names) and raw body."""

    status_code: int
    reason: str = ""
    headers: Dict[str, str] = attrs.Factory(dict)
    body: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """
        Decode the body as JSON.

        Raises:
            HsmSignerError: FRAMING if the body is not valid JSON
        """
        try:
            return json.loads(self.body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise HsmSignerError.framing(f"Response body is not valid JSON: {e}") from e


# =============================================================================
# REQUEST SERIALIZATION
# =============================================================================


def sign_path(key_name: str, api_version: str) -> str:
    """Build the sign resource path for a key."""
    return SIGN_PATH_TEMPLATE.format(
        name=quote(key_name, safe=""),
        api_version=quote(api_version, safe=""),
    )


def encode_request(
    method: str,
    path: str,
    host: str,
    body: bytes,
    content_type: str = "application/json",
) -> bytes:
    """Serialize a request with a Content-Length framed body."""
    lines = [
        f"{method} {path} {HTTP_VERSION}",
        f"Host: {host}",
        f"Content-Type: {content_type}",
        f"Content-Length: {len(body)}",
        "Connection: close",
        "",
        "",
    ]
    return "\r\n".join(lines).encode("ascii") + body


# =============================================================================
# RESPONSE PARSING
# =============================================================================


def parse_status_line(line: str) -> Tuple[int, str]:
    """
    Parse ``HTTP/1.1 200 OK`` into (200, "OK").

    Raises:
        HsmSignerError: FRAMING for anything else
    """
    parts = line.split(" ", 2)
    if len(parts) < 2 or not parts[0].startswith("HTTP/"):
        raise HsmSignerError.framing(f"Malformed status line: {line!r}")
    try:
        status = int(parts[1])
    except ValueError as e:
        raise HsmSignerError.framing(f"Malformed status code: {line!r}") from e
    if not 100 <= status <= 999:
        raise HsmSignerError.framing(f"Status code out of range: {status}")
    return status, parts[2] if len(parts) == 3 else ""


async def read_headers(reader: BufferedStreamReader) -> Dict[str, str]:
    """Read header lines up to and including the empty boundary line."""
    headers: Dict[str, str] = {}
    for _ in range(MAX_HEADER_LINES):
        line = await reader.read_line()
        if line == "":
            return headers
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise HsmSignerError.framing(f"Malformed header line: {line!r}")
        key = name.strip().lower()
        value = value.strip()
        headers[key] = f"{headers[key]}, {value}" if key in headers else value
    raise HsmSignerError.framing(f"More than {MAX_HEADER_LINES} header lines")


async def read_exact(reader: BufferedStreamReader, length: int) -> bytes:
    """Read exactly ``length`` bytes or fail with FRAMING."""
    data = bytearray()
    while len(data) < length:
        chunk = await reader.read(length - len(data))
        if not chunk:
            raise HsmSignerError.framing(
                f"Body truncated: expected {length} bytes, got {len(data)}"
            )
        data += chunk
    return bytes(data)


async def read_to_end(reader: BufferedStreamReader) -> bytes:
    """Read until the channel signals end of stream."""
    data = bytearray()
    while True:
        chunk = await reader.read(reader.capacity)
        if not chunk:
            return bytes(data)
        data += chunk
        if len(data) > MAX_BODY_SIZE:
            raise HsmSignerError.framing(f"Response too large: over {MAX_BODY_SIZE} bytes")


async def read_chunked(reader: BufferedStreamReader) -> bytes:
    """Read a chunked transfer-encoded body, discarding any trailers."""
    data = bytearray()
    while True:
        size_line = await reader.read_line()
        size_text = size_line.split(";", 1)[0].strip()
        try:
            size = int(size_text, 16)
        except ValueError as e:
            raise HsmSignerError.framing(f"Malformed chunk size: {size_line!r}") from e
        if size < 0 or len(data) + size > MAX_BODY_SIZE:
            raise HsmSignerError.framing(f"Invalid chunk size: {size}")

        if size == 0:
            # Trailer section ends with an empty line
            while await reader.read_line() != "":
                pass
            return bytes(data)

        data += await read_exact(reader, size)
        if await reader.read_line() != "":
            raise HsmSignerError.framing("Chunk not terminated by CRLF")


async def read_response(reader: BufferedStreamReader) -> HttpResponse:
    """
    Read a full response through the buffered reader.

    Raises:
        HsmSignerError: FRAMING for malformed or truncated responses
    """
    status, reason = parse_status_line(await reader.read_line())
    headers = await read_headers(reader)

    if "chunked" in headers.get("transfer-encoding", "").lower():
        body = await read_chunked(reader)
    elif "content-length" in headers:
        try:
            length = int(headers["content-length"])
        except ValueError as e:
            raise HsmSignerError.framing(
                f"Malformed Content-Length: {headers['content-length']!r}"
            ) from e
        if length < 0 or length > MAX_BODY_SIZE:
            raise HsmSignerError.framing(f"Invalid Content-Length: {length}")
        body = await read_exact(reader, length)
    else:
        body = await read_to_end(reader)

    return HttpResponse(status_code=status, reason=reason, headers=headers, body=body)


# =============================================================================
# SIGN EXCHANGE
# =============================================================================


@attrs.define
class HttpExchange:
    """
    One sign request/response exchange over a channel.

    The channel is owned by the exchange for its duration and closed
    afterwards.

    Example:
        exchange = HttpExchange(host="localhost", api_version="2018-06-28")
        response = await exchange.sign(channel, "mymodule", request)
    """

    host: str
    api_version: str
    buffer_size: int = 2048

    _logger: Any = attrs.Factory(lambda: structlog.get_logger())

    async def send(self, channel: Channel, method: str, path: str, body: bytes) -> HttpResponse:
        """Write a request and read the full response."""
        reader = BufferedStreamReader(channel, capacity=self.buffer_size)
        async with reader:
            reader.write(encode_request(method, path, self.host, body))
            await reader.flush()
            self._logger.debug("hsm_request_sent", method=method, path=path, length=len(body))

            response = await read_response(reader)
            self._logger.debug(
                "hsm_response_received",
                status=response.status_code,
                length=len(response.body),
            )
            return response

    async def sign(self, channel: Channel, key_name: str, request: SignRequest) -> SignResponse:
        """
        Perform the sign call.

        Returns:
            SignResponse for a 2xx status

        Raises:
            HsmSignerError: FRAMING for malformed exchanges;
                TRANSIENT_COMMUNICATION for status >= 500;
                PERMANENT_COMMUNICATION for any other non-2xx status
        """
        body = json.dumps(request.to_wire()).encode("utf-8")
        response = await self.send(channel, "POST", sign_path(key_name, self.api_version), body)

        if response.is_success:
            return SignResponse.from_wire(response.json())

        raise error_from_response(response)


def error_from_response(response: HttpResponse) -> HsmSignerError:
    """Build the tagged error for a non-success response."""
    try:
        payload: Optional[ErrorPayload] = ErrorPayload.from_wire(response.json())
    except HsmSignerError:
        payload = None

    if payload is not None and payload.message:
        message = payload.message
    else:
        message = response.text or response.reason or f"HTTP {response.status_code}"

    kind = (
        ErrorKind.TRANSIENT_COMMUNICATION
        if response.status_code >= 500
        else ErrorKind.PERMANENT_COMMUNICATION
    )
    return HsmSignerError(message, kind, status_code=response.status_code, payload=payload)
