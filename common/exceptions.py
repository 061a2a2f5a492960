"""Exception classes shared by the server, the store and the client."""

from typing import Optional


class GridFSError(Exception):
    """
    Base exception class for all chunk store errors.
    """
    pass


class ValidationError(GridFSError):
    """
    Raised when a request field is missing, malformed or out of range.
    Never reaches the store layer.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ByteRangeError(ValidationError):
    """
    Raised when a byte-range request has from < 0 or from >= to.
    """
    pass


class NotFoundError(GridFSError):
    """
    Raised when a file record is required but absent.
    """
    pass


class FrameParseError(GridFSError):
    """
    Raised when a binary saveChunk frame cannot be decoded.
    """
    pass


class UnsupportedActionError(GridFSError):
    """
    Raised when a request names an action the dispatcher does not know.
    """
    pass


class StorageError(GridFSError):
    """
    Raised when the underlying document store fails or is unavailable.
    """
    pass
