"""
In-memory channels for tests.

FakeChannel serves a scripted list of chunks, one per underlying read,
and records every write and read so tests can assert on channel traffic.
"""

import asyncio
import json
from typing import Iterable, List, Optional


class FakeChannel:
    """Channel returning scripted chunks; b"" once the script is exhausted."""

    def __init__(self, chunks: Iterable[bytes] = ()) -> None:
        self.chunks: List[bytes] = list(chunks)
        self.written = bytearray()
        self.reads = 0
        self.flushes = 0
        self.closed = False

    async def read(self, size: int) -> bytes:
        self.reads += 1
        if not self.chunks:
            return b""
        chunk = self.chunks.pop(0)
        if len(chunk) > size:
            self.chunks.insert(0, chunk[size:])
            chunk = chunk[:size]
        return chunk

    def write(self, data: bytes) -> None:
        self.written += data

    async def flush(self) -> None:
        self.flushes += 1

    async def close(self) -> None:
        self.closed = True


class ChannelScript:
    """
    Channel factory handing out one FakeChannel per attempt.

    Each entry in ``responses`` is the raw response for one attempt.
    """

    def __init__(self, responses: Iterable[bytes]) -> None:
        self.responses = list(responses)
        self.opened: List[FakeChannel] = []

    async def __call__(self) -> FakeChannel:
        raw = self.responses.pop(0) if self.responses else b""
        channel = FakeChannel([raw])
        self.opened.append(channel)
        return channel

    @property
    def attempts(self) -> int:
        return len(self.opened)


def http_response(
    status: int,
    body: Optional[object] = None,
    reason: str = "",
    chunked: bool = False,
    content_length: bool = True,
) -> bytes:
    """Serialize a response the way the module would send it."""
    if body is None:
        payload = b""
    elif isinstance(body, bytes):
        payload = body
    else:
        payload = json.dumps(body).encode("utf-8")

    head = [f"HTTP/1.1 {status} {reason}".rstrip(), "Content-Type: application/json"]
    if chunked:
        head.append("Transfer-Encoding: chunked")
        encoded = f"{len(payload):x}\r\n".encode() + payload + b"\r\n0\r\n\r\n" if payload else b"0\r\n\r\n"
    else:
        if content_length:
            head.append(f"Content-Length: {len(payload)}")
        encoded = payload
    return ("\r\n".join(head) + "\r\n\r\n").encode("ascii") + encoded


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class StalledChannel(FakeChannel):
    """Channel that accepts the request but never answers."""

    async def read(self, size: int) -> bytes:
        self.reads += 1
        await asyncio.Event().wait()
        return b""


class ResettingStreamReader:
    """Stand-in for asyncio.StreamReader whose peer reset the connection."""

    async def read(self, size: int) -> bytes:
        raise ConnectionResetError(104, "Connection reset by peer")


class BrokenPipeStreamWriter:
    """Stand-in for asyncio.StreamWriter whose peer went away."""

    def __init__(self, fail_on_write: bool = False, fail_on_drain: bool = True) -> None:
        self.fail_on_write = fail_on_write
        self.fail_on_drain = fail_on_drain
        self.closed = False

    def write(self, data: bytes) -> None:
        if self.fail_on_write:
            raise BrokenPipeError(32, "Broken pipe")

    async def drain(self) -> None:
        if self.fail_on_drain:
            raise BrokenPipeError(32, "Broken pipe")

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        pass
