"""Action dispatcher: validates requests, routes them and builds replies.

Every error raised while handling a request is caught here, logged and
turned into an error reply. Nothing propagates to the transport.
"""

import time
import uuid
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from common.exceptions import (
    GridFSError,
    FrameParseError,
    StorageError,
    UnsupportedActionError,
    ValidationError,
)
from common.logging_config import get_logger
from common.protocol import Reply, RequestEnvelope, decode_frame
from common.types import ChunkCursor
from gridserver.context import ServerContext
from gridserver.schemas import (
    GetByteRangeRequest,
    GetChunkRequest,
    GetFileRequest,
    SaveChunkHeader,
    SaveFileRequest,
    parse_request,
)
from gridserver.streaming import validate_range

logger = get_logger(__name__)


class Action(str, Enum):
    """Structured operations addressable by name."""
    GET_FILE = "getFile"
    GET_METADATA = "getMetaData"
    GET_CHUNK = "getChunk"
    SAVE_FILE = "saveFile"
    GET_BYTE_RANGE = "getByteRange"

    @classmethod
    def parse(cls, name: Any) -> 'Action':
        """
        Raises:
            UnsupportedActionError: If name is not a known action
        """
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedActionError(f"action {name} is not supported") from None


Handler = Callable[[Dict[str, Any]], Awaitable[Reply]]


class Dispatcher:
    """
    Entry points for the three message kinds on the bus: structured
    requests, binary saveChunk frames and continuation handles.
    """

    def __init__(self, ctx: ServerContext):
        self.ctx = ctx
        self._handlers: Dict[Action, Handler] = {
            Action.GET_FILE: self._get_file,
            Action.GET_METADATA: self._get_file,
            Action.GET_CHUNK: self._get_chunk,
            Action.SAVE_FILE: self._save_file,
            Action.GET_BYTE_RANGE: self._get_byte_range,
        }
        missing = set(Action) - set(self._handlers)
        if missing:
            raise RuntimeError(f"no handler for actions: {sorted(a.value for a in missing)}")

    async def dispatch(self, fields: Dict[str, Any], action: Optional[Action] = None) -> Reply:
        """
        Handle a structured request.

        Args:
            fields: Decoded request body
            action: Fixed action when the request came on a per-operation
                    sub-address; otherwise read from the 'action' field
        """
        name = action.value if action is not None else str(fields.get("action"))

        async def handle() -> Reply:
            resolved = action
            if resolved is None:
                if fields.get("action") is None:
                    raise ValidationError("action must be specified", field="action")
                resolved = Action.parse(fields["action"])
            return await self._handlers[resolved](fields)

        return await self._guarded(name, handle)

    async def dispatch_bytes(self, body: bytes, action: Optional[Action] = None) -> Reply:
        """Handle a structured request still in its JSON wire form."""
        name = action.value if action is not None else "dispatch"
        try:
            envelope = RequestEnvelope.from_json(body)
        except ValueError as e:
            logger.warning(f"Rejected undecodable request for {name}: {e}")
            return Reply.error(f"request body is not a valid JSON object: {e}")
        return await self.dispatch(envelope.fields, action)

    async def save_chunk_frame(self, body: bytes) -> Reply:
        """Handle a binary saveChunk frame."""
        async def handle() -> Reply:
            try:
                frame = decode_frame(body)
            except FrameParseError as e:
                raise FrameParseError(
                    f"error parsing saveChunk frame, see the documentation for the correct format: {e}"
                ) from e

            if not frame.payload:
                raise ValidationError("chunk data is missing", field="data")
            header = parse_request(SaveChunkHeader, frame.header)

            await self.ctx.run(
                self.ctx.chunks.save_chunk,
                header.files_id,
                header.n,
                frame.payload,
                bucket=header.bucket
            )
            return Reply.ok()

        return await self._guarded("saveChunk", handle)

    async def continue_stream(self, handle: Union[bytes, str]) -> Reply:
        """Handle a continuation handle sent back by a streaming client."""
        async def step() -> Reply:
            try:
                text = handle.decode("ascii") if isinstance(handle, bytes) else handle
                cursor = ChunkCursor.from_handle(text.strip())
            except ValueError as e:
                raise ValidationError(f"continuation handle is malformed: {e}", field="continuation") from e

            try:
                request = parse_request(GetChunkRequest, {
                    "bucket": cursor.bucket,
                    "files_id": cursor.files_id,
                    "n": cursor.n,
                })
            except ValidationError as e:
                raise ValidationError(f"continuation handle is malformed: {e}", field="continuation") from e

            cursor = ChunkCursor(bucket=request.bucket, files_id=request.files_id, n=request.n)
            return await self._stream_step(cursor, follow=True)

        return await self._guarded("continue", step)

    async def _guarded(self, name: str, handler: Callable[[], Awaitable[Reply]]) -> Reply:
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()
        logger.debug(f"Request started: {name} [request_id={request_id}]")

        try:
            reply = await handler()
        except (ValidationError, UnsupportedActionError, FrameParseError) as e:
            logger.warning(f"{name} rejected: {e} [request_id={request_id}]")
            return Reply.error(str(e))
        except StorageError as e:
            logger.error(f"{name} failed in store: {e} [request_id={request_id}]", exc_info=True)
            return Reply.error(str(e))
        except GridFSError as e:
            logger.error(f"{name} failed: {e} [request_id={request_id}]")
            return Reply.error(str(e))
        except Exception as e:
            logger.error(f"Unexpected error in {name} [request_id={request_id}]", exc_info=True)
            return Reply.error(f"Unexpected error in {name}: {e}")

        duration = time.time() - start_time
        logger.info(f"Request completed: {name} kind={reply.kind} duration={duration:.3f}s [request_id={request_id}]")
        return reply

    async def _stream_step(self, cursor: ChunkCursor, follow: bool) -> Reply:
        data = await self.ctx.run(self.ctx.engine.fetch, cursor)
        continuation = cursor.advance().to_handle() if follow and data else None
        return Reply.binary(data, continuation)

    async def _get_file(self, fields: Dict[str, Any]) -> Reply:
        request = parse_request(GetFileRequest, fields)
        record = await self.ctx.run(self.ctx.files.get_file, request.id, bucket=request.bucket)
        return Reply.ok(record.to_reply())

    async def _get_chunk(self, fields: Dict[str, Any]) -> Reply:
        request = parse_request(GetChunkRequest, fields)
        cursor = ChunkCursor(bucket=request.bucket, files_id=request.files_id, n=request.n)
        return await self._stream_step(cursor, follow=request.reply)

    async def _save_file(self, fields: Dict[str, Any]) -> Reply:
        request = parse_request(SaveFileRequest, fields)
        await self.ctx.run(self.ctx.files.save_file, request.to_record(), bucket=request.bucket)
        return Reply.ok()

    async def _get_byte_range(self, fields: Dict[str, Any]) -> Reply:
        request = parse_request(GetByteRangeRequest, fields)
        validate_range(request.start, request.end)
        data = await self.ctx.run(
            self.ctx.engine.read_range,
            request.id,
            request.start,
            request.end,
            bucket=request.bucket
        )
        return Reply.binary(data)
