"""Tests for the saveChunk frame codec, reply envelope and stream cursor."""

import json
import struct

import pytest

from common.constants import REPLY_KIND_BINARY, REPLY_KIND_JSON
from common.exceptions import FrameParseError
from common.protocol import Reply, RequestEnvelope, decode_frame, encode_frame
from common.types import ChunkCursor, FileRecord, is_object_id


class TestFrameCodec:
    """Test the length-prefixed header + payload frame."""

    def test_decode_hand_built_frame(self):
        header = json.dumps({"files_id": "507f191e810c19729de860ea", "n": 3}).encode("utf-8")
        buf = struct.pack(">I", len(header)) + header + b"\x00\x01payload"

        frame = decode_frame(buf)

        assert frame.header == {"files_id": "507f191e810c19729de860ea", "n": 3}
        assert frame.payload == b"\x00\x01payload"

    def test_encode_then_decode(self):
        frame = decode_frame(encode_frame({"files_id": "a" * 24, "n": 0, "bucket": "media"}, b"ABCD"))

        assert frame.header["bucket"] == "media"
        assert frame.payload == b"ABCD"

    def test_empty_payload_is_allowed_by_codec(self):
        frame = decode_frame(encode_frame({"n": 0}, b""))
        assert frame.payload == b""

    @pytest.mark.parametrize("buf", [b"", b"\x00", b"\x00\x00\x01"])
    def test_shorter_than_prefix(self, buf):
        with pytest.raises(FrameParseError, match="length prefix"):
            decode_frame(buf)

    def test_header_length_past_end(self):
        buf = struct.pack(">I", 100) + b'{"n": 0}'
        with pytest.raises(FrameParseError, match="declares 100 bytes"):
            decode_frame(buf)

    def test_header_not_json(self):
        buf = struct.pack(">I", 5) + b"nope!" + b"data"
        with pytest.raises(FrameParseError, match="not valid JSON"):
            decode_frame(buf)

    def test_header_not_utf8(self):
        buf = struct.pack(">I", 2) + b"\xff\xfe" + b"data"
        with pytest.raises(FrameParseError):
            decode_frame(buf)

    def test_header_must_be_object(self):
        header = b"[1, 2]"
        buf = struct.pack(">I", len(header)) + header
        with pytest.raises(FrameParseError, match="JSON object"):
            decode_frame(buf)


class TestReply:
    """Test reply envelope construction and wire form."""

    def test_ok_adds_status(self):
        reply = Reply.ok({"length": 10})
        assert reply.body == {"length": 10, "status": "ok"}
        assert reply.kind == REPLY_KIND_JSON
        assert not reply.is_error

    def test_error_body(self):
        reply = Reply.error("length must be specified")
        assert reply.is_error
        assert json.loads(reply.to_bytes()) == {"status": "error", "message": "length must be specified"}

    def test_binary_reply(self):
        reply = Reply.binary(b"ABCD", continuation="handle")
        assert reply.kind == REPLY_KIND_BINARY
        assert reply.to_bytes() == b"ABCD"
        assert not reply.is_error

    def test_from_bytes_uses_kind(self):
        assert Reply.from_bytes(b'{"status": "ok"}', REPLY_KIND_JSON).body == {"status": "ok"}

        binary = Reply.from_bytes(b'{"status": "ok"}', REPLY_KIND_BINARY, "h")
        assert binary.payload == b'{"status": "ok"}'
        assert binary.continuation == "h"

    def test_request_envelope_rejects_non_object(self):
        with pytest.raises(ValueError):
            RequestEnvelope.from_json(b'"getFile"')
        with pytest.raises(ValueError):
            RequestEnvelope.from_json(b'{broken')


class TestChunkCursor:
    """Test the opaque continuation handle."""

    def test_handle_restores_cursor(self):
        cursor = ChunkCursor(bucket="media", files_id="507f191e810c19729de860ea", n=7)
        assert ChunkCursor.from_handle(cursor.to_handle()) == cursor

    def test_advance(self):
        cursor = ChunkCursor(bucket="fs", files_id="507f191e810c19729de860ea")
        assert cursor.advance().n == 1
        assert cursor.n == 0

    def test_handle_is_metadata_safe(self):
        handle = ChunkCursor(bucket="fs", files_id="507f191e810c19729de860ea", n=2).to_handle()
        assert handle.isascii()
        assert " " not in handle and "\n" not in handle

    @pytest.mark.parametrize("handle", ["", "not base64!!", "bm90IGpzb24="])
    def test_malformed_handle(self, handle):
        with pytest.raises(ValueError):
            ChunkCursor.from_handle(handle)

    def test_negative_index_rejected(self):
        handle = ChunkCursor(bucket="fs", files_id="507f191e810c19729de860ea", n=-1).to_handle()
        with pytest.raises(ValueError, match="chunk index"):
            ChunkCursor.from_handle(handle)


class TestRecords:
    """Test record helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("507f191e810c19729de860ea", True),
        ("507F191E810C19729DE860EA", True),
        ("507f191e810c19729de860e", False),
        ("507f191e810c19729de860eaa", False),
        ("507f191e810c19729de860eg", False),
        ("507f191e810c19729de860ea\n", False),
        (1234, False),
    ])
    def test_is_object_id(self, value, expected):
        assert is_object_id(value) is expected

    @pytest.mark.parametrize("length,chunk_size,expected", [(10, 4, 3), (8, 4, 2), (1, 4, 1)])
    def test_num_chunks(self, length, chunk_size, expected):
        assert FileRecord(id="a" * 24, length=length, chunk_size=chunk_size).num_chunks == expected

    def test_document_omits_absent_optionals(self):
        doc = FileRecord(id="a" * 24, length=10, chunk_size=4, upload_date=5).to_document()
        assert doc == {"_id": "a" * 24, "length": 10, "chunkSize": 4, "uploadDate": 5}

    def test_reply_drops_id(self):
        record = FileRecord(id="a" * 24, length=10, chunk_size=4, upload_date=5, filename="x.txt")
        assert record.to_reply() == {"length": 10, "chunkSize": 4, "uploadDate": 5, "filename": "x.txt"}
