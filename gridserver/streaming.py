"""Streaming reply engine: client-driven chunk streams and byte-range reads.

Sequential streaming is a chain of independent round trips. The whole
stream position lives in a ChunkCursor that the client carries between
rounds, so the server holds nothing for a stream and an abandoned stream
costs nothing. The client stops when a chunk is shorter than the file's
chunkSize; a file whose length is an exact multiple of chunkSize therefore
ends with one extra round returning an empty chunk.

Byte-range reads reassemble the logical content from consecutive chunks.
"""

from common.exceptions import ByteRangeError
from common.logging_config import get_logger
from common.types import ChunkCursor, FileRecord
from store.chunk_repository import ChunkRepository
from store.file_repository import FileRepository

logger = get_logger(__name__)


def is_final_chunk(data: bytes, chunk_size: int) -> bool:
    """
    Termination rule of a sequential stream.

    A chunk shorter than chunk_size (an empty one included) is the last one.
    A full-size final chunk cannot be told apart from "more follows".
    """
    return len(data) < chunk_size


def validate_range(start: int, end: int) -> None:
    """
    Raises:
        ByteRangeError: If start < 0 or start >= end
    """
    if start < 0:
        raise ByteRangeError(f"from must be greater than or equal to 0, got {start}", field="from")
    if start >= end:
        raise ByteRangeError(f"from ({start}) must be less than to ({end})", field="to")


class ChunkInputStream:
    """
    Sequential reader over the concatenated chunks of one file.

    Chunks are fetched lazily, one at a time. Reading stops at the first
    absent chunk or after the file's last chunk index.
    """

    def __init__(self, chunks: ChunkRepository, record: FileRecord, bucket: str):
        self.chunks = chunks
        self.record = record
        self.bucket = bucket
        self._next_n = 0
        self._buffer = b''
        self._offset = 0
        self._exhausted = False

    @property
    def position(self) -> int:
        """Byte offset of the next byte read() returns."""
        consumed_chunks = self._next_n - (1 if self._buffer else 0)
        return consumed_chunks * self.record.chunk_size + self._offset

    def _load_next(self) -> bool:
        if self._exhausted or self._next_n >= self.record.num_chunks:
            self._exhausted = True
            return False

        data = self.chunks.get_chunk(self.record.id, self._next_n, bucket=self.bucket)
        self._next_n += 1
        if not data:
            self._exhausted = True
            self._buffer = b''
            self._offset = 0
            return False

        self._buffer = data
        self._offset = 0
        return True

    def skip(self, count: int) -> int:
        """
        Advance by count bytes.

        Whole chunks are jumped over without being fetched; only the chunk
        holding the new position is read.

        Returns:
            Number of bytes skipped, less than count when the end was reached
        """
        if count <= 0:
            return 0

        start = self.position
        target = start + count
        chunk_size = self.record.chunk_size

        target_n = target // chunk_size
        if target_n >= self._next_n or not self._buffer:
            self._next_n = target_n
            self._buffer = b''
            self._offset = 0
            if not self._load_next():
                return min(count, max(0, self.record.length - start))
            self._offset = min(target % chunk_size, len(self._buffer))
        else:
            self._offset = min(self._offset + count, len(self._buffer))

        return self.position - start

    def read(self, size: int) -> bytes:
        """
        Read up to size bytes; fewer only at the end of the content.

        Never reads past record.length, even when the last stored chunk
        holds more bytes than the record declares.
        """
        parts = []
        remaining = min(size, max(0, self.record.length - self.position))
        while remaining > 0:
            if self._offset >= len(self._buffer) and not self._load_next():
                break
            piece = self._buffer[self._offset:self._offset + remaining]
            self._offset += len(piece)
            remaining -= len(piece)
            parts.append(piece)
        return b''.join(parts)


class StreamingReplyEngine:
    """
    Multi-round transfers built on the chunk and file stores.

    All methods are blocking and are run off the reactor by the dispatcher.
    """

    def __init__(self, chunks: ChunkRepository, files: FileRepository):
        self.chunks = chunks
        self.files = files

    def fetch(self, cursor: ChunkCursor) -> bytes:
        """
        One streaming step: the chunk the cursor points at.

        Returns:
            Chunk bytes, b"" when the cursor is past the last stored chunk
        """
        data = self.chunks.get_chunk(cursor.files_id, cursor.n, bucket=cursor.bucket)
        logger.debug(f"Streamed chunk [bucket={cursor.bucket}, files_id={cursor.files_id}, n={cursor.n}, size={len(data)}]")
        return data

    def open_stream(self, files_id: str, bucket: str) -> ChunkInputStream:
        """
        Raises:
            NotFoundError: If the file record does not exist
        """
        record = self.files.get_file(files_id, bucket=bucket)
        return ChunkInputStream(self.chunks, record, bucket)

    def read_range(self, files_id: str, start: int, end: int, bucket: str) -> bytes:
        """
        Read the inclusive byte window [start, end] of the file content.

        Content shorter than the window is returned as is; a window starting
        at or past the end yields b"".

        Raises:
            ByteRangeError: If start < 0 or start >= end (checked before any store access)
            NotFoundError: If the file record does not exist
        """
        validate_range(start, end)
        stream = self.open_stream(files_id, bucket)
        skipped = stream.skip(start)
        if skipped < start:
            return b''

        data = stream.read(end - start + 1)
        logger.debug(f"Read byte range [bucket={bucket}, id={files_id}, from={start}, to={end}, size={len(data)}]")
        return data
