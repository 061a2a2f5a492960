"""Chunk store: keyed read/write of single chunk records."""

from typing import Optional

from common.constants import DEFAULT_BUCKET
from common.exceptions import ValidationError
from common.logging_config import get_logger
from common.types import ChunkRecord, is_object_id
from store.database import DocumentStore
from store.migrations import BucketSetup, chunks_collection

logger = get_logger(__name__)


class ChunkRepository:
    """
    Reads and writes ChunkRecords keyed by (bucket, files_id, n).

    Writes are upserts: resending a chunk replaces the stored one, so a
    retried write is harmless.
    """

    def __init__(self, store: DocumentStore, setup: Optional[BucketSetup] = None):
        self.store = store
        self.setup = setup or BucketSetup(store)

    def save_chunk(self, files_id: str, n: int, data: bytes, bucket: str = DEFAULT_BUCKET) -> ChunkRecord:
        """
        Store one chunk, replacing any previous value for the same key.

        Args:
            files_id: ObjectId of the owning file
            n: 0-based chunk index
            data: Chunk bytes, must not be empty
            bucket: Namespace of the file

        Returns:
            The stored ChunkRecord

        Raises:
            ValidationError: If data is empty, files_id malformed or n negative
            StorageError: If the store call fails
        """
        if not data:
            raise ValidationError("chunk data is missing", field="data")
        if not is_object_id(files_id):
            raise ValidationError(f"files_id {files_id} is not a valid ObjectId", field="files_id")
        if n < 0:
            raise ValidationError("n must be greater than or equal to 0", field="n")

        chunk = ChunkRecord(files_id=files_id.lower(), n=n, data=bytes(data))

        self.setup.ensure(bucket)
        self.store.upsert(
            chunks_collection(bucket),
            {'files_id': chunk.files_id, 'n': chunk.n},
            chunk.to_document()
        )
        logger.debug(f"Saved chunk [bucket={bucket}, files_id={chunk.files_id}, n={n}, size={len(chunk.data)}]")
        return chunk

    def get_chunk(self, files_id: str, n: int, bucket: str = DEFAULT_BUCKET) -> bytes:
        """
        Fetch chunk bytes.

        Returns:
            The chunk data, or b"" when no chunk is stored under the key
        """
        doc = self.store.find_one(chunks_collection(bucket), {'files_id': files_id.lower(), 'n': n})
        if doc is None:
            logger.debug(f"Chunk not present [bucket={bucket}, files_id={files_id}, n={n}]")
            return b''
        return ChunkRecord.from_document(doc).data
