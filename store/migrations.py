"""Idempotent per-bucket index setup for the files and chunks collections."""

from typing import Iterable, Set

from common.logging_config import get_logger
from store.database import DocumentStore

logger = get_logger(__name__)


def files_collection(bucket: str) -> str:
    return f"{bucket}.files"


def chunks_collection(bucket: str) -> str:
    return f"{bucket}.chunks"


def ensure_bucket_indexes(store: DocumentStore, bucket: str) -> None:
    """
    Create the standard indexes of a bucket. Safe to run repeatedly.

    chunks: unique (files_id, n)
    files: (filename, uploadDate)
    """
    store.ensure_index(chunks_collection(bucket), ('files_id', 'n'), unique=True)
    store.ensure_index(files_collection(bucket), ('filename', 'uploadDate'))
    logger.debug(f"Indexes ensured [bucket={bucket}]")


class BucketSetup:
    """
    Runs ensure_bucket_indexes once per bucket for the lifetime of a store.

    Buckets listed at startup are prepared eagerly; buckets first seen in a
    request are prepared on that first use.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._prepared: Set[str] = set()

    def migrate(self, buckets: Iterable[str]) -> int:
        """
        Prepare buckets eagerly.

        Returns:
            Number of buckets prepared by this call
        """
        count = 0
        for bucket in buckets:
            if bucket not in self._prepared:
                self.ensure(bucket)
                count += 1
        if count:
            logger.info(f"Prepared indexes for {count} bucket(s)")
        return count

    def ensure(self, bucket: str) -> None:
        if bucket in self._prepared:
            return
        ensure_bucket_indexes(self.store, bucket)
        self._prepared.add(bucket)

    def is_prepared(self, bucket: str) -> bool:
        return bucket in self._prepared
