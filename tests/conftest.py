"""Shared pytest fixtures for all tests."""

from pathlib import Path
from typing import Generator

import pytest

from cli.config import Config
from common.types import FileRecord
from gridserver.config import ServerConfig
from gridserver.context import ServerContext
from store.database import DocumentStore

FILE_ID = "507f191e810c19729de860ea"


class CountingStore(DocumentStore):
    """DocumentStore that counts upsert and find_one calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.reset_counts()

    def reset_counts(self) -> None:
        self.upserts = 0
        self.finds = 0

    @property
    def calls(self) -> int:
        return self.upserts + self.finds

    def upsert(self, collection, key, document):
        self.upserts += 1
        return super().upsert(collection, key, document)

    def find_one(self, collection, key):
        self.finds += 1
        return super().find_one(collection, key)


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .gridfs directory
    """
    config_dir = tmp_path / '.gridfs'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def store(tmp_path) -> Generator[CountingStore, None, None]:
    """
    Fresh SQLite document store in a temporary directory.
    """
    db = CountingStore(str(tmp_path / "gridfs.db"), pool_size=2)
    yield db
    db.close()


@pytest.fixture
def server_config(tmp_path) -> ServerConfig:
    return ServerConfig(db_path=str(tmp_path / "gridfs.db"), pool_size=2, port=0, host="127.0.0.1")


@pytest.fixture
def ctx(server_config, store) -> Generator[ServerContext, None, None]:
    """
    Server context over the counting store. Counters start at zero.
    """
    context = ServerContext(server_config, store)
    store.reset_counts()
    yield context
    context.executor.shutdown(wait=True)


@pytest.fixture
def seeded_ctx(ctx, store) -> ServerContext:
    """
    Context holding one file: chunkSize 4, chunks "ABCD", "EFGH", "IJ".
    """
    ctx.files.save_file(FileRecord(id=FILE_ID, length=10, chunk_size=4, filename="letters.txt"))
    for n, data in enumerate([b"ABCD", b"EFGH", b"IJ"]):
        ctx.chunks.save_chunk(FILE_ID, n, data)
    store.reset_counts()
    return ctx


@pytest.fixture
def sample_file(tmp_path) -> Path:
    """
    Create a sample file for testing file uploads.

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path
