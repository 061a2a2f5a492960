"""gRPC client for the GridFS bus address."""

import asyncio
import mimetypes
import secrets
import uuid
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import grpc

from common.constants import (
    CONTINUATION_KEY,
    CONTINUE_METHOD,
    REPLY_KIND_JSON,
    REPLY_KIND_KEY,
    SAVE_CHUNK_METHOD,
)
from common.exceptions import GridFSError
from common.logging_config import get_logger
from common.protocol import Reply, RequestEnvelope, encode_frame
from common.types import FileRecord, now_millis
from gridserver.streaming import is_final_chunk
from cli.config import Config

logger = get_logger(__name__)


class RemoteError(GridFSError):
    """The server answered with an error reply."""
    pass


def new_object_id() -> str:
    """Random 24 hex character id for a new file."""
    return secrets.token_hex(12)


class GridFSClient:
    """
    Async client for one bus address with retry on transport failures.

    Use as an async context manager; the channel lives for the duration
    of the block.
    """

    def __init__(self, config: Config):
        """
        Initialize client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.address = config.get_address()
        self.channel: Optional[grpc.aio.Channel] = None
        logger.info(f"Initialized GridFSClient [target={config.get_target()}, address={self.address}]")

    async def __aenter__(self) -> 'GridFSClient':
        self.channel = grpc.aio.insecure_channel(self.config.get_target())
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.channel is not None:
            await self.channel.close()
            self.channel = None

    async def request(self, method: str, body: bytes) -> Reply:
        """
        Send one message to a sub-address and wait for the reply.

        Args:
            method: Sub-address (action name, saveChunk or continue)
            body: Raw message body

        Returns:
            Reply rebuilt from the body and trailing metadata

        Raises:
            ConnectionError: If the server cannot be reached after retries
        """
        if self.channel is None:
            raise RuntimeError("GridFSClient must be used inside 'async with'")

        retry_config = self.config.get_retry_config()
        max_retries = retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']
        request_id = uuid.uuid4().hex[:8]

        stub = self.channel.unary_unary(
            f'/{self.address}/{method}',
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

        logger.debug(f"Making request: {method} size={len(body)} [request_id={request_id}]")

        for attempt in range(max_retries + 1):
            try:
                call = stub(body, timeout=self.config.get_timeout())
                data = await call
                trailing = dict(await call.trailing_metadata() or ())
                break
            except grpc.aio.AioRpcError as e:
                retryable = e.code() in (grpc.StatusCode.UNAVAILABLE, grpc.StatusCode.DEADLINE_EXCEEDED)
                if retryable and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} code={e.code().name}, retrying in {delay}s [request_id={request_id}]"
                    )
                    await asyncio.sleep(delay)
                    continue
                logger.error(f"Request failed: {method} code={e.code().name} [request_id={request_id}]")
                if e.code() == grpc.StatusCode.UNAVAILABLE:
                    raise ConnectionError("Cannot connect to GridFS server. Is it running?") from e
                if e.code() == grpc.StatusCode.DEADLINE_EXCEEDED:
                    raise ConnectionError("Request timed out. Server may be overloaded.") from e
                raise ConnectionError(f"Request failed: {e.code().name} {e.details()}") from e

        kind = trailing.get(REPLY_KIND_KEY, REPLY_KIND_JSON)
        reply = Reply.from_bytes(data, kind, trailing.get(CONTINUATION_KEY))
        logger.debug(f"Response received: {method} kind={kind} [request_id={request_id}]")
        return reply

    async def call(self, action: str, **fields: Any) -> Reply:
        """
        Send a structured request to the sub-address of an action.

        Raises:
            RemoteError: If the server replied with an error
        """
        reply = await self.request(action, RequestEnvelope(fields).to_json())
        if reply.is_error:
            raise RemoteError(reply.body.get('message', 'unknown error'))
        return reply

    async def save_file(self, record: FileRecord, bucket: Optional[str] = None) -> None:
        doc = record.to_document()
        doc['id'] = doc.pop('_id')
        await self.call('saveFile', bucket=bucket or self.config.get_bucket(), **doc)

    async def get_file(self, files_id: str, bucket: Optional[str] = None) -> FileRecord:
        """
        Fetch the file record.

        Raises:
            RemoteError: If the file does not exist or the id is invalid
        """
        reply = await self.call('getFile', id=files_id, bucket=bucket or self.config.get_bucket())
        return FileRecord.from_document({**reply.body, '_id': files_id.lower()})

    async def save_chunk(self, files_id: str, n: int, data: bytes, bucket: Optional[str] = None) -> None:
        """
        Store one chunk using the binary frame.

        Raises:
            RemoteError: If the server rejected the chunk
        """
        header = {'files_id': files_id, 'n': n, 'bucket': bucket or self.config.get_bucket()}
        reply = await self.request(SAVE_CHUNK_METHOD, encode_frame(header, data))
        if reply.is_error:
            raise RemoteError(reply.body.get('message', 'unknown error'))

    async def get_chunk(self, files_id: str, n: int, bucket: Optional[str] = None, follow: bool = False) -> Reply:
        return await self.call(
            'getChunk',
            files_id=files_id,
            n=n,
            reply=follow,
            bucket=bucket or self.config.get_bucket()
        )

    async def iter_chunks(self, record: FileRecord, bucket: Optional[str] = None) -> AsyncIterator[bytes]:
        """
        Stream a file's chunks in order, one round trip per chunk.

        Stops at the first chunk shorter than the record's chunkSize. Content
        that is an exact multiple of chunkSize costs one extra empty round.

        Yields:
            Non-empty chunk bytes
        """
        reply = await self.get_chunk(record.id, 0, bucket=bucket, follow=True)
        while True:
            data = reply.payload or b''
            if data:
                yield data
            if is_final_chunk(data, record.chunk_size) or reply.continuation is None:
                return
            reply = await self.request(CONTINUE_METHOD, reply.continuation.encode('ascii'))
            if reply.is_error:
                raise RemoteError(reply.body.get('message', 'unknown error'))

    async def read_range(self, files_id: str, start: int, end: int, bucket: Optional[str] = None) -> bytes:
        """
        Read bytes [start, end] of the file content.

        Raises:
            RemoteError: If the range is invalid or the file does not exist
        """
        reply = await self.call(
            'getByteRange',
            id=files_id,
            bucket=bucket or self.config.get_bucket(),
            **{'from': start, 'to': end}
        )
        return reply.payload or b''

    async def upload(
        self,
        path: Path,
        files_id: Optional[str] = None,
        chunk_size: Optional[int] = None,
        bucket: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> FileRecord:
        """
        Upload a local file: every chunk first, then the file record.

        Args:
            path: Local file to upload
            files_id: ObjectId to store under (random when omitted)
            chunk_size: Chunk size in bytes (config default when omitted)
            bucket: Target bucket (config default when omitted)
            metadata: Optional user metadata

        Returns:
            The stored FileRecord

        Raises:
            ValueError: If the file is empty
            RemoteError: If the server rejected a chunk or the record
        """
        files_id = files_id or new_object_id()
        chunk_size = chunk_size or self.config.get_chunk_size()

        length = 0
        n = 0
        with open(path, 'rb') as f:
            while True:
                data = f.read(chunk_size)
                if not data:
                    break
                await self.save_chunk(files_id, n, data, bucket=bucket)
                length += len(data)
                n += 1

        if length == 0:
            raise ValueError(f"cannot upload empty file {path}")

        content_type, _ = mimetypes.guess_type(str(path))
        record = FileRecord(
            id=files_id,
            length=length,
            chunk_size=chunk_size,
            upload_date=now_millis(),
            filename=Path(path).name,
            content_type=content_type,
            metadata=metadata,
        )
        await self.save_file(record, bucket=bucket)
        logger.info(f"Uploaded {path} as {files_id} [chunks={n}, length={length}]")
        return record

    async def download(self, files_id: str, dest: Path, bucket: Optional[str] = None) -> FileRecord:
        """
        Download a file's content into dest by streaming its chunks.

        Returns:
            The FileRecord of the downloaded file
        """
        record = await self.get_file(files_id, bucket=bucket)
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with open(dest, 'wb') as f:
            async for data in self.iter_chunks(record, bucket=bucket):
                f.write(data)
        logger.info(f"Downloaded {files_id} to {dest} [length={record.length}]")
        return record
