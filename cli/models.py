"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class PutCommand:
    """Upload a local file."""

    path: str
    chunk_size: Optional[int] = None
    bucket: Optional[str] = None
    command: Literal["put"] = "put"


@dataclass(frozen=True)
class InfoCommand:
    """Show a file record."""

    files_id: str
    bucket: Optional[str] = None
    command: Literal["info"] = "info"


@dataclass(frozen=True)
class CatCommand:
    """Print file content."""

    files_id: str
    bucket: Optional[str] = None
    command: Literal["cat"] = "cat"


@dataclass(frozen=True)
class GetCommand:
    """Download file content to a local path."""

    files_id: str
    output_path: str
    bucket: Optional[str] = None
    command: Literal["get"] = "get"


@dataclass(frozen=True)
class RangeCommand:
    """Print an inclusive byte window of file content."""

    files_id: str
    start: int
    end: int
    bucket: Optional[str] = None
    command: Literal["range"] = "range"


@dataclass(frozen=True)
class BucketCommand:
    """Show or set the default bucket."""

    bucket: Optional[str] = None
    command: Literal["bucket"] = "bucket"


CommandRequest = (
    PutCommand
    | InfoCommand
    | CatCommand
    | GetCommand
    | RangeCommand
    | BucketCommand
)
