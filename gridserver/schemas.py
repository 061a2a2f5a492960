"""Pydantic request models for every bus operation.

Field names follow the wire (camelCase where the protocol uses it).
Validation failures are translated into field-specific ValidationErrors.
"""

from typing import Any, Dict, Optional, Type, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from common.constants import DEFAULT_BUCKET
from common.exceptions import ValidationError
from common.types import FileRecord, is_object_id

BUCKET_PATTERN = r"^[A-Za-z0-9_\-]+$"

RequestT = TypeVar("RequestT", bound=BaseModel)


def _object_id(value: str) -> str:
    if not is_object_id(value):
        raise ValueError(f"{value} is not a valid ObjectId")
    return value.lower()


class BusRequest(BaseModel):
    """Common settings: strict types, unknown fields ignored, optional bucket."""
    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    bucket: str = Field(default=DEFAULT_BUCKET, pattern=BUCKET_PATTERN)


class GetFileRequest(BusRequest):
    id: str

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _object_id(value)


class SaveFileRequest(BusRequest):
    id: str
    length: int = Field(gt=0)
    chunk_size: int = Field(alias="chunkSize", gt=0)
    upload_date: Optional[int] = Field(default=None, alias="uploadDate")
    filename: Optional[str] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _object_id(value)

    def to_record(self) -> FileRecord:
        return FileRecord(
            id=self.id,
            length=self.length,
            chunk_size=self.chunk_size,
            upload_date=self.upload_date or 0,
            filename=self.filename,
            content_type=self.content_type,
            metadata=self.metadata,
        )


class SaveChunkHeader(BusRequest):
    files_id: str
    n: int = Field(ge=0)

    @field_validator("files_id")
    @classmethod
    def check_files_id(cls, value: str) -> str:
        return _object_id(value)


class GetChunkRequest(BusRequest):
    files_id: str = Field(validation_alias=AliasChoices("files_id", "id"))
    n: int = Field(ge=0)
    reply: bool = False

    @field_validator("files_id")
    @classmethod
    def check_files_id(cls, value: str) -> str:
        return _object_id(value)


class GetByteRangeRequest(BusRequest):
    """Range checks (from >= 0, from < to) belong to the streaming engine."""
    id: str
    start: int = Field(alias="from")
    end: int = Field(alias="to")

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _object_id(value)


def _describe(error: Dict[str, Any]) -> ValidationError:
    field = ".".join(str(part) for part in error.get("loc", ())) or "request"
    kind = error.get("type")
    ctx = error.get("ctx") or {}

    if kind == "missing":
        message = f"{field} must be specified"
    elif kind == "greater_than_equal":
        message = f"{field} must be greater than or equal to {ctx.get('ge')}"
    elif kind == "greater_than":
        message = f"{field} must be greater than {ctx.get('gt')}"
    elif kind == "int_type":
        message = f"{field} must be an integer"
    elif kind == "bool_type":
        message = f"{field} must be a boolean"
    elif kind == "string_type":
        message = f"{field} must be a string"
    elif kind == "value_error":
        message = f"{field} {ctx.get('error')}"
    else:
        message = f"{field} is invalid: {error.get('msg')}"
    return ValidationError(message, field=field)


def parse_request(model: Type[RequestT], fields: Dict[str, Any]) -> RequestT:
    """
    Validate request fields against a model.

    Raises:
        ValidationError: Describing the first failing field
    """
    try:
        return model.model_validate(fields)
    except pydantic.ValidationError as e:
        raise _describe(e.errors()[0]) from None
