"""Storage layer: document store adapter and record repositories."""

from store.database import DocumentStore
from store.chunk_repository import ChunkRepository
from store.file_repository import FileRepository
from store.migrations import BucketSetup

__all__ = [
    "DocumentStore",
    "ChunkRepository",
    "FileRepository",
    "BucketSetup",
]
