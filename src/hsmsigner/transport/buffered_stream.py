"""
hsmsigner Buffered Stream Reader

Read-side buffering over a raw duplex channel.

Underlying reads are batched into a fixed-capacity buffer; byte-level and
line-level reads are served from it. Writes, flushes and close go straight
to the inner channel.

The reader exclusively owns the channel's read side. Reading the inner
channel directly while the reader is in use loses buffered bytes.
"""

from __future__ import annotations

from typing import Any, Union

import attrs
import structlog

from hsmsigner.core.exceptions import HsmSignerError
from hsmsigner.transport.channel import Channel

logger = structlog.get_logger()

CR = 0x0D
LF = 0x0A
DEFAULT_BUFFER_SIZE = 2048
DEFAULT_MAX_LINE_LENGTH = 8192


@attrs.define
class BufferedStreamReader:
    """
    Buffering wrapper around a Channel.

    INVARIANT: 0 <= _offset, 0 <= _count, _offset + _count <= capacity
    INVARIANT: the buffer is refilled only when _count == 0

    Example:
        reader = BufferedStreamReader(channel)
        status_line = await reader.read_line()
        chunk = await reader.read(512)
    """

    inner: Channel
    capacity: int = attrs.field(default=DEFAULT_BUFFER_SIZE, validator=attrs.validators.gt(0))
    max_line_length: int = attrs.field(
        default=DEFAULT_MAX_LINE_LENGTH, validator=attrs.validators.gt(0)
    )

    _buffer: bytearray = attrs.field(init=False)
    _offset: int = attrs.field(default=0, init=False)
    _count: int = attrs.field(default=0, init=False)

    def __attrs_post_init__(self) -> None:
        self._buffer = bytearray(self.capacity)

    @property
    def buffered(self) -> int:
        """Number of unconsumed bytes held in the buffer."""
        return self._count

    async def _fill(self) -> None:
        """Perform exactly one underlying read into the empty buffer."""
        data = await self.inner.read(self.capacity)
        if len(data) > self.capacity:
            raise HsmSignerError.framing(
                f"Channel returned {len(data)} bytes for a {self.capacity} byte read"
            )
        self._buffer[: len(data)] = data
        self._offset = 0
        self._count = len(data)

    async def readinto(self, destination: Union[bytearray, memoryview]) -> int:
        """
        Copy buffered bytes into ``destination``.

        Refills the buffer with one underlying read when it is empty.
        Returns the number of bytes copied; 0 means no data is currently
        available (end of stream) and is left for the caller to interpret.
        """
        if self._count == 0:
            await self._fill()

        copied = min(self._count, len(destination))
        if copied:
            destination[:copied] = self._buffer[self._offset : self._offset + copied]
            self._offset += copied
            self._count -= copied
        return copied

    async def read(self, max_count: int) -> bytes:
        """Return up to ``max_count`` bytes; ``b""`` at end of stream."""
        if max_count <= 0:
            return b""
        destination = bytearray(min(max_count, self.capacity))
        copied = await self.readinto(destination)
        return bytes(destination[:copied])

    async def read_line(self) -> str:
        """
        Read one CRLF-terminated line, returned without the terminator.

        Bytes are consumed one at a time. A lone LF or CR is kept as part
        of the line.

        Raises:
            HsmSignerError: FRAMING if the stream ends before CRLF or the
                line grows past max_line_length
        """
        line = bytearray()
        single = bytearray(1)
        cr_found = False

        while True:
            if await self.readinto(single) == 0:
                raise HsmSignerError.framing("Unexpected end of stream")

            byte = single[0]
            if cr_found and byte == LF:
                del line[-1]
                return line.decode("latin-1")

            line.append(byte)
            # A trailing CR may still be the start of the terminator
            if len(line) > self.max_line_length + (byte == CR):
                raise HsmSignerError.framing(
                    f"Line exceeds {self.max_line_length} bytes"
                )
            cr_found = byte == CR

    # -------------------------------------------------------------------------
    # Pass-through to the inner channel
    # -------------------------------------------------------------------------

    def write(self, data: bytes) -> None:
        self.inner.write(data)

    async def flush(self) -> None:
        await self.inner.flush()

    async def close(self) -> None:
        await self.inner.close()

    async def __aenter__(self) -> "BufferedStreamReader":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
