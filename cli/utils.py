"""Utility functions for CLI output."""

import json
from datetime import datetime, timezone

from common.types import FileRecord


def format_file_size(size_bytes: int) -> str:
    """
    Format file size in bytes to human-readable format with appropriate unit.

    Uses binary units (1024-based) and automatically selects the most
    appropriate unit (B, KiB, MiB, GiB, TiB).

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted string with size and unit (e.g., "1.50 MiB", "512 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"

    units = ['KiB', 'MiB', 'GiB', 'TiB']
    size = size_bytes / 1024.0

    for unit in units:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0

    return f"{size:.2f} PiB"


def format_upload_date(millis: int) -> str:
    """Epoch milliseconds as an ISO-8601 UTC timestamp."""
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).isoformat(timespec='milliseconds')


def format_record(record: FileRecord) -> str:
    """Multi-line description of a file record."""
    lines = [
        f"ID:           {record.id}",
        f"Filename:     {record.filename or '-'}",
        f"Length:       {format_file_size(record.length)} ({record.length} bytes)",
        f"Chunk size:   {format_file_size(record.chunk_size)} ({record.num_chunks} chunk(s))",
        f"Uploaded:     {format_upload_date(record.upload_date)}",
        f"Content type: {record.content_type or '-'}",
    ]
    if record.metadata:
        lines.append(f"Metadata:     {json.dumps(record.metadata)}")
    return "\n".join(lines)
