"""Wire formats: the hybrid saveChunk frame and the reply envelope."""

import json
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from common.constants import (
    FRAME_LENGTH_PREFIX_BYTES,
    REPLY_KIND_BINARY,
    REPLY_KIND_JSON,
)
from common.exceptions import FrameParseError

_LENGTH_PREFIX = struct.Struct('>I')


@dataclass
class Frame:
    """
    A decoded saveChunk message.

    Layout: 4-byte big-endian header length L, L bytes of UTF-8 JSON
    header, then the raw payload up to the end of the message.
    """
    header: Dict[str, Any]
    payload: bytes


def decode_frame(buf: bytes) -> Frame:
    """
    Split a binary message into its JSON header and raw payload.

    Args:
        buf: Complete message body

    Returns:
        Decoded Frame

    Raises:
        FrameParseError: If the buffer is truncated or the header is not a JSON object
    """
    if len(buf) < FRAME_LENGTH_PREFIX_BYTES:
        raise FrameParseError(
            f"frame is {len(buf)} bytes, shorter than the {FRAME_LENGTH_PREFIX_BYTES}-byte length prefix"
        )

    (header_len,) = _LENGTH_PREFIX.unpack_from(buf, 0)
    header_end = FRAME_LENGTH_PREFIX_BYTES + header_len
    if len(buf) < header_end:
        raise FrameParseError(
            f"frame header declares {header_len} bytes but only {len(buf) - FRAME_LENGTH_PREFIX_BYTES} are present"
        )

    try:
        header = json.loads(bytes(buf[FRAME_LENGTH_PREFIX_BYTES:header_end]).decode('utf-8'))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise FrameParseError(f"frame header is not valid JSON: {e}") from e

    if not isinstance(header, dict):
        raise FrameParseError("frame header must be a JSON object")

    return Frame(header=header, payload=bytes(buf[header_end:]))


def encode_frame(header: Dict[str, Any], payload: bytes) -> bytes:
    """
    Build a saveChunk message. Used on the caller side only.

    Args:
        header: JSON-serializable header fields (files_id, n, bucket)
        payload: Raw chunk bytes

    Returns:
        Encoded message
    """
    header_bytes = json.dumps(header).encode('utf-8')
    return _LENGTH_PREFIX.pack(len(header_bytes)) + header_bytes + payload


@dataclass
class Reply:
    """
    Uniform reply to any bus request.

    Exactly one of body (structured envelope) or payload (raw bytes) is set.
    A continuation handle may accompany a raw payload.
    """
    body: Optional[Dict[str, Any]] = None
    payload: Optional[bytes] = None
    continuation: Optional[str] = None

    @classmethod
    def ok(cls, fields: Optional[Dict[str, Any]] = None) -> 'Reply':
        body = dict(fields or {})
        body['status'] = 'ok'
        return cls(body=body)

    @classmethod
    def error(cls, message: str) -> 'Reply':
        return cls(body={'status': 'error', 'message': message})

    @classmethod
    def binary(cls, payload: bytes, continuation: Optional[str] = None) -> 'Reply':
        return cls(payload=payload, continuation=continuation)

    @property
    def kind(self) -> str:
        return REPLY_KIND_JSON if self.body is not None else REPLY_KIND_BINARY

    @property
    def is_error(self) -> bool:
        return self.body is not None and self.body.get('status') == 'error'

    def to_bytes(self) -> bytes:
        """Serialize for the transport."""
        if self.body is not None:
            return json.dumps(self.body).encode('utf-8')
        return self.payload or b''

    @classmethod
    def from_bytes(cls, data: bytes, kind: str, continuation: Optional[str] = None) -> 'Reply':
        """Rebuild a reply on the caller side from body bytes and reply metadata."""
        if kind == REPLY_KIND_JSON:
            return cls(body=json.loads(data))
        return cls(payload=data, continuation=continuation)


@dataclass
class RequestEnvelope:
    """A structured request: the decoded JSON body of a bus message."""
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> bytes:
        return json.dumps(self.fields).encode('utf-8')

    @classmethod
    def from_json(cls, data: bytes) -> 'RequestEnvelope':
        """
        Raises:
            ValueError: If the body is not a JSON object
        """
        obj = json.loads(data)
        if not isinstance(obj, dict):
            raise ValueError("request body must be a JSON object")
        return cls(fields=obj)
