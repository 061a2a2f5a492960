"""Command handler functions for CLI operations."""

import asyncio
from contextlib import aclosing
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from common.logging_config import get_logger
from cli.client import GridFSClient, RemoteError
from cli.config import Config
from cli.constants import CAT_PREVIEW_LIMIT_BYTES, GREEN, RESET
from cli.models import (
    BucketCommand,
    CatCommand,
    GetCommand,
    InfoCommand,
    PutCommand,
    RangeCommand,
)
from cli.utils import format_file_size, format_record

logger = get_logger(__name__)

T = TypeVar("T")

_client: Optional[GridFSClient] = None


def get_client() -> GridFSClient:
    """
    Get or create global GridFSClient instance.

    Returns:
        GridFSClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new GridFSClient instance")
        config = Config(Path.home() / '.gridfs' / 'config.json')
        _client = GridFSClient(config)
    return _client


def _run(client: GridFSClient, operation: Callable[[GridFSClient], Awaitable[T]]) -> T:
    """Run one client operation on a fresh event loop with an open channel."""
    async def runner() -> T:
        async with client:
            return await operation(client)
    return asyncio.run(runner())


def _execute(name: str, client: GridFSClient, operation: Callable[[GridFSClient], Awaitable[str]]) -> str:
    try:
        return _run(client, operation)
    except RemoteError as e:
        logger.warning(f"{name} rejected by server: {e}")
        return f"Error: {e}"
    except ConnectionError as e:
        logger.error(f"Connection error during {name}: {e}")
        return f"Error: {e}"
    except (OSError, ValueError) as e:
        logger.warning(f"{name} failed locally: {e}")
        return f"Error: {e}"
    except Exception as e:
        logger.error(f"Unexpected error during {name}: {e}", exc_info=True)
        return f"Unexpected error during {name}: {e}"


def handle_put(cmd: PutCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'put' command.

    Args:
        cmd: PutCommand with local path and optional chunk size
        client: Optional GridFSClient for dependency injection (testing)

    Returns:
        Success or error message with the new file id
    """
    logger.info(f"Executing put command: path={cmd.path} chunk_size={cmd.chunk_size}")
    if client is None:
        client = get_client()

    path = Path(cmd.path)
    if not path.is_file():
        return f"Error: {cmd.path} is not a file"

    async def operation(c: GridFSClient) -> str:
        record = await c.upload(path, chunk_size=cmd.chunk_size, bucket=cmd.bucket)
        return (
            f"{GREEN}Uploaded{RESET} {record.filename} "
            f"(ID: {record.id}, Size: {format_file_size(record.length)}, Chunks: {record.num_chunks})"
        )

    return _execute("put", client, operation)


def handle_info(cmd: InfoCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'info' command.

    Args:
        cmd: InfoCommand with file id
        client: Optional GridFSClient for dependency injection (testing)

    Returns:
        Formatted file record or error message
    """
    if client is None:
        client = get_client()

    async def operation(c: GridFSClient) -> str:
        return format_record(await c.get_file(cmd.files_id, bucket=cmd.bucket))

    return _execute("info", client, operation)


def handle_cat(cmd: CatCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'cat' command.

    Content past CAT_PREVIEW_LIMIT_BYTES is not printed.
    """
    if client is None:
        client = get_client()

    async def operation(c: GridFSClient) -> str:
        record = await c.get_file(cmd.files_id, bucket=cmd.bucket)
        content = bytearray()
        async with aclosing(c.iter_chunks(record, bucket=cmd.bucket)) as chunks:
            async for data in chunks:
                content.extend(data)
                if len(content) >= CAT_PREVIEW_LIMIT_BYTES:
                    break
        text = bytes(content[:CAT_PREVIEW_LIMIT_BYTES]).decode('utf-8', errors='replace')
        if record.length > CAT_PREVIEW_LIMIT_BYTES:
            text += f"\n... ({format_file_size(record.length - CAT_PREVIEW_LIMIT_BYTES)} more, use 'get')"
        return text

    return _execute("cat", client, operation)


def handle_get(cmd: GetCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'get' command.

    Args:
        cmd: GetCommand with file id and output path
        client: Optional GridFSClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing get command: id={cmd.files_id} output_path={cmd.output_path}")
    if client is None:
        client = get_client()

    async def operation(c: GridFSClient) -> str:
        record = await c.download(cmd.files_id, Path(cmd.output_path), bucket=cmd.bucket)
        return f"{GREEN}Downloaded{RESET} {record.id} to {cmd.output_path} ({format_file_size(record.length)})"

    return _execute("get", client, operation)


def handle_range(cmd: RangeCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'range' command.

    Args:
        cmd: RangeCommand with file id and inclusive byte bounds
        client: Optional GridFSClient for dependency injection (testing)

    Returns:
        Decoded byte window or error message
    """
    if client is None:
        client = get_client()

    async def operation(c: GridFSClient) -> str:
        data = await c.read_range(cmd.files_id, cmd.start, cmd.end, bucket=cmd.bucket)
        if not data:
            return "(no bytes in range)"
        return data.decode('utf-8', errors='replace')

    return _execute("range", client, operation)


def handle_bucket(cmd: BucketCommand, client: Optional[GridFSClient] = None) -> str:
    """
    Handle 'bucket' command. Only touches local configuration.
    """
    if client is None:
        client = get_client()
    if cmd.bucket is None:
        return f"Current bucket: {client.config.get_bucket()}"
    client.config.set_bucket(cmd.bucket)
    return f"Default bucket set to {cmd.bucket}"
