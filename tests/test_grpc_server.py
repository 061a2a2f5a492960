"""End-to-end tests: gRPC server on an ephemeral port and the async client."""

import json
from contextlib import asynccontextmanager

import pytest

from cli.client import GridFSClient, RemoteError
from common.constants import DISPATCH_METHOD
from common.protocol import RequestEnvelope
from common.types import FileRecord
from gridserver.dispatcher import Dispatcher
from gridserver.grpc_server import create_server

FILE_ID = "507f191e810c19729de860ea"


class RecordingClient(GridFSClient):
    """GridFSClient that remembers the sub-address of every request."""

    def __init__(self, config):
        super().__init__(config)
        self.methods = []

    async def request(self, method, body):
        self.methods.append(method)
        return await super().request(method, body)


@asynccontextmanager
async def running(ctx, temp_config):
    server = create_server(Dispatcher(ctx), ctx.config.address)
    port = server.add_insecure_port("127.0.0.1:0")
    await server.start()

    temp_config.data["server_host"] = "127.0.0.1"
    temp_config.data["server_port"] = port
    temp_config.data["max_retries"] = 0
    client = RecordingClient(temp_config)
    try:
        async with client:
            yield client
    finally:
        await server.stop(None)


class TestGrpcTransport:

    @pytest.mark.asyncio
    async def test_file_record_over_sub_address(self, seeded_ctx, temp_config):
        async with running(seeded_ctx, temp_config) as client:
            record = await client.get_file(FILE_ID)

        assert record.length == 10
        assert record.chunk_size == 4
        assert record.filename == "letters.txt"

    @pytest.mark.asyncio
    async def test_dispatch_address_routes_by_action(self, seeded_ctx, temp_config):
        body = RequestEnvelope({"action": "getMetaData", "id": FILE_ID}).to_json()
        async with running(seeded_ctx, temp_config) as client:
            reply = await client.request(DISPATCH_METHOD, body)

        assert reply.body["status"] == "ok"
        assert reply.body["length"] == 10

    @pytest.mark.asyncio
    async def test_error_reply_raises_remote_error(self, ctx, temp_config):
        async with running(ctx, temp_config) as client:
            with pytest.raises(RemoteError, match="File does not exist"):
                await client.get_file(FILE_ID)

    @pytest.mark.asyncio
    async def test_binary_reply_carries_continuation(self, seeded_ctx, temp_config):
        async with running(seeded_ctx, temp_config) as client:
            followed = await client.get_chunk(FILE_ID, 0, follow=True)
            plain = await client.get_chunk(FILE_ID, 0)

        assert followed.payload == b"ABCD"
        assert followed.continuation is not None
        assert plain.continuation is None

    @pytest.mark.asyncio
    async def test_stream_takes_three_rounds(self, seeded_ctx, temp_config):
        record = FileRecord(id=FILE_ID, length=10, chunk_size=4)
        async with running(seeded_ctx, temp_config) as client:
            chunks = [data async for data in client.iter_chunks(record)]

        assert chunks == [b"ABCD", b"EFGH", b"IJ"]
        assert client.methods == ["getChunk", "continue", "continue"]

    @pytest.mark.asyncio
    async def test_byte_range(self, seeded_ctx, temp_config):
        async with running(seeded_ctx, temp_config) as client:
            window = await client.read_range(FILE_ID, 2, 7)
            with pytest.raises(RemoteError, match="must be less than"):
                await client.read_range(FILE_ID, 5, 2)

        assert window == b"CDEFGH"


class TestClientTransfers:
    """Upload and download whole files through the server."""

    @pytest.mark.asyncio
    async def test_upload_then_download(self, ctx, temp_config, sample_file, tmp_path):
        dest = tmp_path / "out" / "copy.txt"
        async with running(ctx, temp_config) as client:
            record = await client.upload(sample_file, chunk_size=4, metadata={"tag": "x"})
            downloaded = await client.download(record.id, dest)

        assert dest.read_bytes() == sample_file.read_bytes()
        assert downloaded.length == len(sample_file.read_bytes())
        assert downloaded.filename == "test.txt"
        assert downloaded.content_type == "text/plain"
        assert downloaded.metadata == {"tag": "x"}

    @pytest.mark.asyncio
    async def test_upload_sends_chunks_before_record(self, ctx, temp_config, tmp_path):
        path = tmp_path / "eight.bin"
        path.write_bytes(b"ABCDEFGH")
        async with running(ctx, temp_config) as client:
            await client.upload(path, files_id=FILE_ID, chunk_size=4, bucket="media")

        assert client.methods == ["saveChunk", "saveChunk", "saveFile"]
        assert ctx.chunks.get_chunk(FILE_ID, 1, bucket="media") == b"EFGH"

    @pytest.mark.asyncio
    async def test_download_exact_multiple(self, ctx, temp_config, tmp_path):
        path = tmp_path / "eight.bin"
        path.write_bytes(b"ABCDEFGH")
        dest = tmp_path / "eight.out"
        async with running(ctx, temp_config) as client:
            await client.upload(path, files_id=FILE_ID, chunk_size=4)
            client.methods.clear()
            await client.download(FILE_ID, dest)

        assert dest.read_bytes() == b"ABCDEFGH"
        assert client.methods == ["getFile", "getChunk", "continue", "continue"]

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, ctx, temp_config, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")
        async with running(ctx, temp_config) as client:
            with pytest.raises(ValueError, match="empty"):
                await client.upload(path)

        assert client.methods == []

    @pytest.mark.asyncio
    async def test_unreachable_server(self, temp_config):
        temp_config.data["server_host"] = "127.0.0.1"
        temp_config.data["server_port"] = 1
        temp_config.data["max_retries"] = 0
        temp_config.data["timeout"] = 2
        async with GridFSClient(temp_config) as client:
            with pytest.raises(ConnectionError):
                await client.get_file(FILE_ID)


def test_request_envelope_is_plain_json():
    body = RequestEnvelope({"action": "getFile", "id": FILE_ID}).to_json()
    assert json.loads(body) == {"action": "getFile", "id": FILE_ID}
