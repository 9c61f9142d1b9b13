"""Wire types for the armory registry.

Request and response bodies are pydantic models. Failures cross the wire as
a single :class:`ErrorInfo` whose ``code`` is one of the values of the error
enumerations below; each operation has its own closed set of codes and
:class:`GeneralError` applies to every operation.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from ..targets import Triple


class UnrecognizedErrorCode(ValueError):
    """Raised when an error code is not part of the expected enumeration."""

    def __init__(self, code: str, kind: str):
        super().__init__(f"unrecognized {kind} error code: {code!r}")
        self.code = code
        self.kind = kind


class ErrorInfo(BaseModel):
    """Error information, the only body sent for a failed operation."""

    code: str


class _ErrorCode(str, Enum):
    """Base for per-operation error enumerations."""

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(code=self.value)

    @classmethod
    def from_error_info(cls, info: ErrorInfo):
        for member in cls:
            if member.value == info.code:
                return member
        raise UnrecognizedErrorCode(info.code, cls.__name__)

    def __str__(self) -> str:
        return self.value


class GeneralError(_ErrorCode):
    """Errors that can occur for any operation."""

    PASSWORD_MISSING = "password_missing"
    PASSWORD_INVALID = "password_invalid"


class PublishError(_ErrorCode):
    INVALID_ENCODING = "invalid_encoding"
    VERSION_EXISTS = "version_exists"
    INTERNAL_ERROR = "internal_error"


class GetError(_ErrorCode):
    PACKAGE_NOT_FOUND = "package_not_found"
    INTERNAL_ERROR = "internal_error"


class GetInfoError(_ErrorCode):
    PACKAGE_NOT_FOUND = "package_not_found"
    INTERNAL_ERROR = "internal_error"


class ListError(_ErrorCode):
    INTERNAL_ERROR = "internal_error"


def check_path_segment(value: str, field_name: str = "name") -> str:
    """Validate a value used as a single storage path segment.

    Leading dots are reserved for the store's temporary upload files.
    """
    if not value:
        raise ValueError(f"{field_name} must not be empty")
    if "/" in value or "\\" in value:
        raise ValueError(f"{field_name} must not contain path separators")
    if "\x00" in value:
        raise ValueError(f"{field_name} must not contain NUL characters")
    if value.startswith("."):
        raise ValueError(f"{field_name} must not start with '.'")
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        raise ValueError(f"{field_name} must be valid unicode text") from None
    return value


class PublishInput(BaseModel):
    name: str
    version: str
    triple: Triple
    content: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return check_path_segment(v, "name")

    @field_validator("version")
    @classmethod
    def _version(cls, v: str) -> str:
        return check_path_segment(v, "version")


class PublishOutput(BaseModel):
    pass


class GetInput(BaseModel):
    name: str
    version: Optional[str] = None
    triple: Triple

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return check_path_segment(v, "name")

    @field_validator("version")
    @classmethod
    def _version(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return check_path_segment(v, "version")


class GetOutput(BaseModel):
    name: str
    version: str
    content: str


class GetInfoInput(BaseModel):
    name: str
    triple: Triple

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return check_path_segment(v, "name")


class GetInfoOutput(BaseModel):
    name: str
    versions: list[str]


class ListInput(BaseModel):
    triple: Triple


class ListOutput(BaseModel):
    packages: list[str]
