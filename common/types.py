"""Shared data type definitions (FileRecord, ChunkRecord, ChunkCursor)."""

import base64
import binascii
import json
import math
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

_OBJECT_ID_RE = re.compile(r"[0-9a-fA-F]{24}")


def is_object_id(value: Any) -> bool:
    """True for a 24 character hex string (ObjectId form)."""
    return isinstance(value, str) and _OBJECT_ID_RE.fullmatch(value) is not None


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class FileRecord:
    """
    Whole-file metadata record, identified by (bucket, id).
    """
    id: str
    length: int
    chunk_size: int
    upload_date: int = 0
    filename: Optional[str] = None
    content_type: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @property
    def num_chunks(self) -> int:
        """Number of chunks the content is split into."""
        return math.ceil(self.length / self.chunk_size)

    def to_document(self) -> Dict[str, Any]:
        """
        Build the stored document. Optional fields are omitted when absent.
        """
        doc: Dict[str, Any] = {
            '_id': self.id,
            'length': self.length,
            'chunkSize': self.chunk_size,
            'uploadDate': self.upload_date,
        }
        if self.filename is not None:
            doc['filename'] = self.filename
        if self.content_type is not None:
            doc['contentType'] = self.content_type
        if self.metadata is not None:
            doc['metadata'] = self.metadata
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'FileRecord':
        return cls(
            id=doc['_id'],
            length=doc['length'],
            chunk_size=doc['chunkSize'],
            upload_date=doc.get('uploadDate', 0),
            filename=doc.get('filename'),
            content_type=doc.get('contentType'),
            metadata=doc.get('metadata'),
        )

    def to_reply(self) -> Dict[str, Any]:
        """Fields returned by getFile."""
        reply = self.to_document()
        del reply['_id']
        return reply


@dataclass(frozen=True)
class ChunkRecord:
    """
    One numbered fragment of a file, identified by (bucket, files_id, n).
    """
    files_id: str
    n: int
    data: bytes

    def to_document(self) -> Dict[str, Any]:
        return {'files_id': self.files_id, 'n': self.n, 'data': self.data}

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> 'ChunkRecord':
        return cls(files_id=doc['files_id'], n=doc['n'], data=doc['data'])


@dataclass(frozen=True)
class ChunkCursor:
    """
    Complete state of a sequential chunk stream.

    The server keeps nothing between rounds; the cursor travels to the
    client as an opaque continuation handle and comes back with the next
    request.
    """
    bucket: str
    files_id: str
    n: int = 0

    def advance(self) -> 'ChunkCursor':
        """Cursor for the following chunk."""
        return ChunkCursor(bucket=self.bucket, files_id=self.files_id, n=self.n + 1)

    def to_handle(self) -> str:
        """Serialize to an opaque, metadata-safe handle string."""
        raw = json.dumps(
            {'b': self.bucket, 'f': self.files_id, 'n': self.n},
            separators=(',', ':')
        ).encode('utf-8')
        return base64.urlsafe_b64encode(raw).decode('ascii')

    @classmethod
    def from_handle(cls, handle: str) -> 'ChunkCursor':
        """
        Deserialize a handle produced by to_handle.

        Raises:
            ValueError: If the handle is not a valid cursor
        """
        try:
            obj = json.loads(base64.urlsafe_b64decode(handle.encode('ascii')))
            cursor = cls(bucket=obj['b'], files_id=obj['f'], n=obj['n'])
        except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as e:
            raise ValueError(f"invalid continuation handle: {e}") from e

        if not isinstance(cursor.n, int) or isinstance(cursor.n, bool) or cursor.n < 0:
            raise ValueError("invalid continuation handle: bad chunk index")
        if not isinstance(cursor.bucket, str) or not isinstance(cursor.files_id, str):
            raise ValueError("invalid continuation handle: bad file reference")
        return cursor
