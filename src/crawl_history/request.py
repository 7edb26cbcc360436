"""
Request model and key codec.

Success records are keyed by a hash of method + URL. Failure records are keyed
by the serialized request so they can be decoded back for retry.
"""

import hashlib
from typing import Any, Protocol

from pydantic import BaseModel, Field, ValidationError, field_validator

from crawl_history.core.errors import DecodeError


class Record(Protocol):
    """Anything with a URL and an HTTP method can be recorded as a success."""

    url: str
    method: str


class Request(BaseModel):
    """A crawl request as seen by the history tracker."""

    spider: str = Field(min_length=1)
    url: str = Field(min_length=1)
    method: str = "GET"
    rule: str = ""
    priority: int = 0
    headers: dict[str, str] = Field(default_factory=dict)
    post_data: str = ""
    temp: dict[str, Any] = Field(default_factory=dict)

    @field_validator("method")
    @classmethod
    def _upper_method(cls, v: str) -> str:
        return (v or "GET").upper()


def record_key(record: Record) -> str:
    """Stable key for a succeeded record (sha256 of method + URL)."""
    method = (record.method or "GET").upper()
    return hashlib.sha256(f"{method} {record.url}".encode()).hexdigest()


def serialize(request: Request) -> str:
    """Encode a request into its failure key."""
    return request.model_dump_json()


def unserialize(key: str) -> Request:
    """
    Decode a failure key back into a request.

    Raises:
        DecodeError: if the key is not a serialized request
    """
    try:
        return Request.model_validate_json(key)
    except ValidationError as e:
        raise DecodeError(f"cannot decode request from key {key[:80]!r}: {e}") from e


def spider_name_of(request: Request) -> str:
    return request.spider
