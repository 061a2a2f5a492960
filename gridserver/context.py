"""Server context: every resource a request handler needs, built once at startup."""

import asyncio
import functools
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, TypeVar

from common.exceptions import StorageError
from common.logging_config import get_logger
from gridserver.config import ServerConfig
from gridserver.streaming import StreamingReplyEngine
from store.chunk_repository import ChunkRepository
from store.database import DocumentStore
from store.file_repository import FileRepository
from store.migrations import BucketSetup

logger = get_logger(__name__)

T = TypeVar("T")


class ServerContext:
    """
    Holds the document store, the repositories built on it and the worker
    pool that runs blocking store calls off the reactor.

    The store may be None when it could not be opened at startup; handlers
    stay registered and every store-backed request fails with StorageError.
    """

    def __init__(self, config: ServerConfig, store: Optional[DocumentStore]):
        self.config = config
        self.store = store
        self._chunks: Optional[ChunkRepository] = None
        self._files: Optional[FileRepository] = None
        self._engine: Optional[StreamingReplyEngine] = None

        if store is not None:
            setup = BucketSetup(store)
            setup.migrate(config.buckets)
            self._chunks = ChunkRepository(store, setup)
            self._files = FileRepository(store, setup)
            self._engine = StreamingReplyEngine(self._chunks, self._files)

        self.executor = ThreadPoolExecutor(
            max_workers=config.pool_size,
            thread_name_prefix="gridfs-store"
        )

    @classmethod
    def init(cls, config: ServerConfig, store: Optional[DocumentStore] = None) -> 'ServerContext':
        """
        Open the store (unless one is given) and prepare configured buckets.

        A store failure is logged, not raised.
        """
        if store is None:
            try:
                store = DocumentStore(config.db_path, config.pool_size)
            except StorageError as e:
                logger.error(f"Failed to connect to document store: {e}")
                store = None

        try:
            return cls(config, store)
        except StorageError as e:
            logger.error(f"Failed to prepare bucket indexes: {e}")
            store.close()
            return cls(config, None)

    @property
    def available(self) -> bool:
        return self.store is not None

    def require_store(self) -> None:
        if self.store is None:
            raise StorageError("document store is not available")

    @property
    def chunks(self) -> ChunkRepository:
        self.require_store()
        return self._chunks

    @property
    def files(self) -> FileRepository:
        self.require_store()
        return self._files

    @property
    def engine(self) -> StreamingReplyEngine:
        self.require_store()
        return self._engine

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run a blocking store call on the worker pool.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, functools.partial(fn, *args, **kwargs))

    def shutdown(self) -> None:
        """Release the worker pool and the store."""
        self.executor.shutdown(wait=True)
        if self.store is not None:
            self.store.close()
        logger.info("Server context shut down")
