"""Command parser for CLI input."""

import shlex
from typing import Optional

from cli.models import (
    BucketCommand,
    CatCommand,
    CommandRequest,
    GetCommand,
    InfoCommand,
    PutCommand,
    RangeCommand,
)


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse user input into a CommandRequest object.

    Args:
        input_line: Raw user input from REPL

    Returns:
        CommandRequest object (one of Put/Info/Cat/Get/Range/Bucket)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not input_line.strip():
        raise ParseError("Empty command")

    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]
    args, bucket = _pop_bucket(tokens[1:])

    if command_name == "put":
        return _parse_put(args, bucket)
    elif command_name == "info":
        return InfoCommand(files_id=_single_id("info", args), bucket=bucket)
    elif command_name == "cat":
        return CatCommand(files_id=_single_id("cat", args), bucket=bucket)
    elif command_name == "get":
        return _parse_get(args, bucket)
    elif command_name == "range":
        return _parse_range(args, bucket)
    elif command_name == "bucket":
        return _parse_bucket(args)
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _pop_bucket(args: list[str]) -> tuple[list[str], Optional[str]]:
    """Extract an optional '--bucket <name>' from args."""
    if "--bucket" not in args:
        return args, None
    index = args.index("--bucket")
    if index + 1 >= len(args):
        raise ParseError("--bucket requires a bucket name")
    bucket = args[index + 1]
    return args[:index] + args[index + 2:], bucket


def _to_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"{name} must be an integer, got '{value}'")


def _single_id(command: str, args: list[str]) -> str:
    if len(args) != 1:
        raise ParseError(f"{command} requires exactly 1 argument: <file_id>")
    return args[0]


def _parse_put(args: list[str], bucket: Optional[str]) -> PutCommand:
    """Parse 'put <path> [chunk_size]' command."""
    if len(args) not in (1, 2):
        raise ParseError("put requires 1 or 2 arguments: <path> [chunk_size]")

    chunk_size = _to_int(args[1], "chunk_size") if len(args) == 2 else None
    if chunk_size is not None and chunk_size <= 0:
        raise ParseError("chunk_size must be greater than zero")

    return PutCommand(path=args[0], chunk_size=chunk_size, bucket=bucket)


def _parse_get(args: list[str], bucket: Optional[str]) -> GetCommand:
    """Parse 'get <file_id> <output_path>' command."""
    if len(args) != 2:
        raise ParseError("get requires exactly 2 arguments: <file_id> <output_path>")

    files_id, output_path = args
    return GetCommand(files_id=files_id, output_path=output_path, bucket=bucket)


def _parse_range(args: list[str], bucket: Optional[str]) -> RangeCommand:
    """Parse 'range <file_id> <from> <to>' command."""
    if len(args) != 3:
        raise ParseError("range requires exactly 3 arguments: <file_id> <from> <to>")

    return RangeCommand(
        files_id=args[0],
        start=_to_int(args[1], "from"),
        end=_to_int(args[2], "to"),
        bucket=bucket,
    )


def _parse_bucket(args: list[str]) -> BucketCommand:
    """Parse 'bucket [name]' command."""
    if len(args) > 1:
        raise ParseError("bucket takes at most 1 argument: [name]")
    return BucketCommand(bucket=args[0] if args else None)
