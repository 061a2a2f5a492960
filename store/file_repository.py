"""File metadata store: keyed read/write of whole-file records."""

from typing import Optional

from common.constants import DEFAULT_BUCKET
from common.exceptions import NotFoundError, ValidationError
from common.logging_config import get_logger
from common.types import FileRecord, is_object_id, now_millis
from store.database import DocumentStore
from store.migrations import BucketSetup, files_collection

logger = get_logger(__name__)


class FileRepository:
    def __init__(self, store: DocumentStore, setup: Optional[BucketSetup] = None):
        self.store = store
        self.setup = setup or BucketSetup(store)

    def save_file(self, record: FileRecord, bucket: str = DEFAULT_BUCKET) -> FileRecord:
        """
        Upsert a file record by (bucket, id).

        A missing or non-positive upload date is replaced by the current time.

        Raises:
            ValidationError: If id is malformed or length/chunkSize are not positive
            StorageError: If the store call fails
        """
        if not is_object_id(record.id):
            raise ValidationError(f"id {record.id} is not a valid ObjectId", field="id")
        if record.length is None or record.length <= 0:
            raise ValidationError("length must be greater than zero", field="length")
        if record.chunk_size is None or record.chunk_size <= 0:
            raise ValidationError("chunkSize must be greater than zero", field="chunkSize")

        record.id = record.id.lower()
        if not record.upload_date or record.upload_date <= 0:
            record.upload_date = now_millis()

        self.setup.ensure(bucket)
        self.store.upsert(files_collection(bucket), {'_id': record.id}, record.to_document())
        logger.info(
            f"Saved file [bucket={bucket}, id={record.id}, length={record.length}, chunkSize={record.chunk_size}]"
        )
        return record

    def get_file(self, files_id: str, bucket: str = DEFAULT_BUCKET) -> FileRecord:
        """
        Raises:
            NotFoundError: If no record exists for (bucket, id)
        """
        doc = self.store.find_one(files_collection(bucket), {'_id': files_id.lower()})
        if doc is None:
            raise NotFoundError(f"File does not exist: {files_id}")
        return FileRecord.from_document(doc)
