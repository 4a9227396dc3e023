"""
Unit tests for hsmsigner.transport.channel module.

Tests provider URI parsing and connection error mapping.
"""

import asyncio
import socket
import struct

import pytest
from returns.result import Failure

from hsmsigner.core.exceptions import ErrorKind, HsmSignerError
from hsmsigner.transport.channel import (
    EndpointScheme,
    ProviderEndpoint,
    StreamChannel,
    open_channel,
)
from hsmsigner.signing.client import create_signing_client
from tests.fakes import BrokenPipeStreamWriter, ResettingStreamReader


class TestProviderEndpoint:

    def test_parse_unix(self):
        endpoint = ProviderEndpoint.parse("unix:///var/run/iotedge/workload.sock")
        assert endpoint.scheme == EndpointScheme.UNIX
        assert endpoint.path == "/var/run/iotedge/workload.sock"
        assert endpoint.host_header == "localhost"

    def test_parse_tcp(self):
        endpoint = ProviderEndpoint.parse("http://127.0.0.1:15580")
        assert endpoint.scheme == EndpointScheme.TCP
        assert (endpoint.host, endpoint.port) == ("127.0.0.1", 15580)
        assert endpoint.host_header == "127.0.0.1:15580"

    def test_parse_tcp_default_port(self):
        endpoint = ProviderEndpoint.parse("http://edged")
        assert endpoint.port == 80
        assert endpoint.host_header == "edged"

    @pytest.mark.parametrize(
        "uri", ["", "https://host", "unix://", "http://", "http://host:notaport", "workload.sock"]
    )
    def test_invalid_uris(self, uri):
        with pytest.raises(HsmSignerError) as exc_info:
            ProviderEndpoint.parse(uri)
        assert exc_info.value.kind is ErrorKind.VALIDATION


class TestOpenChannel:

    @pytest.mark.asyncio
    async def test_connection_refused(self, tmp_path):
        endpoint = ProviderEndpoint.parse(f"unix://{tmp_path}/missing.sock")
        with pytest.raises(HsmSignerError) as exc_info:
            await open_channel(endpoint, timeout=1.0)
        assert exc_info.value.kind is ErrorKind.PERMANENT_COMMUNICATION
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_unix_round_trip(self, tmp_path):
        """Test a StreamChannel over a real unix socket server."""
        path = str(tmp_path / "hsm.sock")

        async def handle(reader, writer):
            data = await reader.readexactly(4)
            writer.write(data.upper())
            await writer.drain()
            writer.close()

        server = await asyncio.start_unix_server(handle, path=path)
        try:
            channel = await open_channel(ProviderEndpoint.parse(f"unix://{path}"))
            assert isinstance(channel, StreamChannel)
            channel.write(b"ping")
            await channel.flush()
            assert await channel.read(16) == b"PING"
            await channel.close()
        finally:
            server.close()
            await server.wait_closed()


class TestStreamChannelErrors:
    """Tests for socket errors raised mid-exchange."""

    @pytest.mark.asyncio
    async def test_read_reset_is_permanent_communication(self):
        """Test a connection reset during read raises PERMANENT_COMMUNICATION."""
        channel = StreamChannel(reader=ResettingStreamReader(), writer=BrokenPipeStreamWriter())
        with pytest.raises(HsmSignerError) as exc_info:
            await channel.read(16)
        error = exc_info.value
        assert error.kind is ErrorKind.PERMANENT_COMMUNICATION
        assert error.status_code is None
        assert isinstance(error.__cause__, ConnectionResetError)

    @pytest.mark.asyncio
    async def test_flush_broken_pipe_is_permanent_communication(self):
        channel = StreamChannel(reader=ResettingStreamReader(), writer=BrokenPipeStreamWriter())
        with pytest.raises(HsmSignerError) as exc_info:
            await channel.flush()
        assert exc_info.value.kind is ErrorKind.PERMANENT_COMMUNICATION

    def test_write_broken_pipe_is_permanent_communication(self):
        writer = BrokenPipeStreamWriter(fail_on_write=True)
        channel = StreamChannel(reader=ResettingStreamReader(), writer=writer)
        with pytest.raises(HsmSignerError) as exc_info:
            channel.write(b"request")
        assert exc_info.value.kind is ErrorKind.PERMANENT_COMMUNICATION

    @pytest.mark.asyncio
    async def test_try_sign_returns_failure_when_peer_resets(self):
        """Test a module aborting the connection yields Failure, not an OSError."""

        async def handle(reader, writer):
            await reader.readuntil(b"\r\n\r\n")
            sock = writer.get_extra_info("socket")
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            writer.transport.abort()

        server = await asyncio.start_server(handle, host="127.0.0.1", port=0)
        port = server.sockets[0].getsockname()[1]
        try:
            client = create_signing_client(f"http://127.0.0.1:{port}", timeout=5.0)
            result = await client.try_sign("mymodule", b"data")
        finally:
            server.close()
            await server.wait_closed()

        assert isinstance(result, Failure)
        assert isinstance(result.failure(), HsmSignerError)
