"""Input validation for entries written by `Bucket.put`."""
from __future__ import annotations
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from diskbucket.errors import BucketError, ErrorKind
from diskbucket.storage.codec import DELIMITER, KEY_MAX_LENGTH, META_MAX_LENGTH

_PATH_SEPARATORS = ("/", "\\")


def _has_control_chars(v: str) -> bool:
    return any(ord(c) < 0x20 or ord(c) == 0x7F for c in v)


def _is_encodable(v: str) -> bool:
    try:
        v.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class EntryFields(BaseModel):
    key: str = Field(min_length=1, max_length=KEY_MAX_LENGTH)
    meta: str = Field(default="", max_length=META_MAX_LENGTH)

    @field_validator("key")
    @classmethod
    def _check_key(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("key must not be blank")
        if DELIMITER in v:
            raise ValueError(f"key must not contain {DELIMITER!r}")
        if _has_control_chars(v):
            raise ValueError("key must not contain control characters")
        if not _is_encodable(v):
            raise ValueError("key must be valid UTF-8")
        if any(c in v for c in _PATH_SEPARATORS):
            raise ValueError("key must not contain path separators")
        return v

    @field_validator("meta")
    @classmethod
    def _check_meta(cls, v: str) -> str:
        if DELIMITER in v:
            raise ValueError(f"meta must not contain {DELIMITER!r}")
        if _has_control_chars(v):
            raise ValueError("meta must not contain control characters")
        if not _is_encodable(v):
            raise ValueError("meta must be valid UTF-8")
        return v


def validate_fields(key: str, meta: str, blob_name: str, index_name: str) -> Optional[BucketError]:
    """Return a VALIDATION error describing bad input, or None if it is valid."""
    try:
        EntryFields(key=key, meta=meta)
    except ValidationError as e:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        return BucketError(ErrorKind.VALIDATION, messages, {"key": key})
    if blob_name == index_name:
        return BucketError(
            ErrorKind.VALIDATION,
            "blob name conflicts with the index file name",
            {"key": key, "blob_name": blob_name},
        )
    return None
