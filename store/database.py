"""Document store on SQLite: pooled connections, upsert/find by key, indexes.

Each collection (``<bucket>.files``, ``<bucket>.chunks``) is one table holding
JSON documents keyed by the canonical JSON of their key fields. Binary values
are stored as ``{"$binary": <base64>}``.
"""

import base64
import json
import queue
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

from common.constants import DEFAULT_POOL_SIZE
from common.exceptions import StorageError
from common.logging_config import get_logger

logger = get_logger(__name__)

MEMORY_DB = ':memory:'


def encode_document(value: Any) -> Any:
    """Replace bytes values with their JSON-safe tagged form."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {'$binary': base64.b64encode(bytes(value)).decode('ascii')}
    if isinstance(value, dict):
        return {k: encode_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [encode_document(v) for v in value]
    return value


def decode_document(value: Any) -> Any:
    """Inverse of encode_document."""
    if isinstance(value, dict):
        if len(value) == 1 and '$binary' in value:
            return base64.b64decode(value['$binary'])
        return {k: decode_document(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_document(v) for v in value]
    return value


def document_key(key: Dict[str, Any]) -> str:
    """Canonical primary key string for a key document."""
    return json.dumps(key, sort_keys=True, separators=(',', ':'))


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def index_name(collection: str, fields: Sequence[str]) -> str:
    return f"idx_{collection}_{'_'.join(fields)}"


class DocumentStore:
    """
    Narrow document store interface used by the chunk and file stores.

    Calls are blocking; the server issues them from worker threads. The
    connection pool is shared by those threads.
    """

    def __init__(self, db_path: str, pool_size: int = DEFAULT_POOL_SIZE):
        """
        Open the database and fill the connection pool.

        Args:
            db_path: SQLite database file (':memory:' forces a single connection)
            pool_size: Number of pooled connections

        Raises:
            StorageError: If the database cannot be opened
        """
        if pool_size < 1:
            raise StorageError(f"pool_size must be at least 1, got {pool_size}")

        self.db_path = db_path
        if db_path == MEMORY_DB:
            pool_size = 1
        else:
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.pool_size = pool_size
        self._pool: "queue.Queue[sqlite3.Connection]" = queue.Queue(maxsize=pool_size)
        self._collections: set = set()
        self._closed = False

        try:
            for _ in range(pool_size):
                self._pool.put(self._connect())
        except sqlite3.Error as e:
            self.close()
            raise StorageError(f"Failed to open document store at {db_path}: {e}") from e

        logger.info(f"Opened document store [path={db_path}, pool_size={pool_size}]")

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if self.db_path != MEMORY_DB:
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Borrow a pooled connection. sqlite3 errors surface as StorageError.
        """
        if self._closed:
            raise StorageError("document store is closed")

        conn = self._pool.get()
        try:
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(f"document store error: {e}") from e
        finally:
            self._pool.put(conn)

    def _ensure_collection(self, conn: sqlite3.Connection, collection: str) -> None:
        if collection in self._collections:
            return
        conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {quote_identifier(collection)} (
                doc_key TEXT PRIMARY KEY,
                document TEXT NOT NULL
            )
            """
        )
        conn.commit()
        self._collections.add(collection)

    def _collection_exists(self, conn: sqlite3.Connection, collection: str) -> bool:
        """Reads never create collections; only known or existing tables are queried."""
        if collection in self._collections:
            return True
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (collection,)
        ).fetchone()
        if row is None:
            return False
        self._collections.add(collection)
        return True

    def upsert(self, collection: str, key: Dict[str, Any], document: Dict[str, Any]) -> None:
        """
        Insert the document or replace the one stored under the same key.
        """
        with self.connection() as conn:
            self._ensure_collection(conn, collection)
            conn.execute(
                f"""
                INSERT INTO {quote_identifier(collection)} (doc_key, document)
                VALUES (?, ?)
                ON CONFLICT(doc_key) DO UPDATE SET document = excluded.document
                """,
                (document_key(key), json.dumps(encode_document(document)))
            )
            conn.commit()

    def find_one(self, collection: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Fetch the document stored under key, or None.
        """
        with self.connection() as conn:
            if not self._collection_exists(conn, collection):
                return None
            row = conn.execute(
                f"SELECT document FROM {quote_identifier(collection)} WHERE doc_key = ?",
                (document_key(key),)
            ).fetchone()

        if row is None:
            return None
        return decode_document(json.loads(row["document"]))

    def count(self, collection: str) -> int:
        with self.connection() as conn:
            if not self._collection_exists(conn, collection):
                return 0
            row = conn.execute(f"SELECT COUNT(*) AS n FROM {quote_identifier(collection)}").fetchone()
        return row["n"]

    def ensure_index(self, collection: str, fields: Sequence[str], unique: bool = False) -> str:
        """
        Create an index over document fields if it does not exist yet.

        Returns:
            The index name
        """
        name = index_name(collection, fields)
        columns = ", ".join(f"json_extract(document, '$.{f}')" for f in fields)
        with self.connection() as conn:
            self._ensure_collection(conn, collection)
            conn.execute(
                f"CREATE {'UNIQUE ' if unique else ''}INDEX IF NOT EXISTS "
                f"{quote_identifier(name)} ON {quote_identifier(collection)} ({columns})"
            )
            conn.commit()
        return name

    def list_indexes(self, collection: str) -> List[str]:
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ? AND sql IS NOT NULL",
                (collection,)
            ).fetchall()
        return [row["name"] for row in rows]

    def close(self) -> None:
        """Close every pooled connection."""
        self._closed = True
        while True:
            try:
                conn = self._pool.get_nowait()
            except queue.Empty:
                break
            conn.close()
        logger.info(f"Closed document store [path={self.db_path}]")
