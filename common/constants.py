"""Project-wide constants (bus address, default bucket, wire format sizes)."""

DEFAULT_ADDRESS: str = "et.mongo.gridfs"
DEFAULT_BUCKET: str = "fs"

DEFAULT_HOST: str = "0.0.0.0"
DEFAULT_PORT: int = 50061
DEFAULT_DB_PATH: str = "/app/data/gridfs.db"
DEFAULT_POOL_SIZE: int = 10

DEFAULT_CHUNK_SIZE_BYTES: int = 255 * 1024  # 255 KiB, same as GridFS drivers

FRAME_LENGTH_PREFIX_BYTES: int = 4

# Sub-addresses (gRPC method names under the base address)
DISPATCH_METHOD: str = "dispatch"
SAVE_CHUNK_METHOD: str = "saveChunk"
CONTINUE_METHOD: str = "continue"

# Trailing metadata keys on every reply
REPLY_KIND_KEY: str = "x-reply-kind"
CONTINUATION_KEY: str = "x-continuation"
REPLY_KIND_JSON: str = "json"
REPLY_KIND_BINARY: str = "binary"

GRPC_SHUTDOWN_GRACE_SECONDS: int = 5
