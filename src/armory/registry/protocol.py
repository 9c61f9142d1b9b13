"""Request/response codec for the armory registry.

Success or failure is carried in the ``x-ok`` response header rather than in
the body or the status code, because the body shape depends on it: a typed
output when ``x-ok: true``, an :class:`ErrorInfo` when ``x-ok: false``.
A fully processed request always answers with HTTP 200.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Mapping, Optional, Type, TypeVar

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .models import ErrorInfo

OK_HEADER = "x-ok"
PASSWORD_HEADER = "x-password"

M = TypeVar("M", bound=BaseModel)


class ProtocolError(Exception):
    """Raised when a response does not follow the protocol."""


class InvalidContentEncoding(ValueError):
    """Raised when artifact content is not valid base64."""


def output_response(output: BaseModel) -> JSONResponse:
    return JSONResponse(content=output.model_dump(mode="json"), headers={OK_HEADER: "true"})


def error_response(error) -> JSONResponse:
    info: ErrorInfo = error.to_error_info()
    return JSONResponse(content=info.model_dump(mode="json"), headers={OK_HEADER: "false"})


def encode_content(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_content(text: str) -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise InvalidContentEncoding(f"content is not valid base64: {e}") from e


def read_success_indicator(headers: Mapping[str, str]) -> bool:
    """Return the value of the ``x-ok`` header.

    Raises:
        ProtocolError: the header is missing or not literally ``true``/``false``.
    """
    value: Optional[str] = headers.get(OK_HEADER)
    if value is None:
        raise ProtocolError(f"'{OK_HEADER}' response header is missing")
    if value == "true":
        return True
    if value == "false":
        return False
    raise ProtocolError(f"'{OK_HEADER}' response header is malformed: {value!r}")


def _load_json(body: bytes, what: str):
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise ProtocolError(f"{what} is malformed: {e}") from e


def decode_error_info(body: bytes) -> ErrorInfo:
    data = _load_json(body, "error message")
    try:
        return ErrorInfo.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"error message is malformed: {e}") from e


def decode_output(body: bytes, model: Type[M]) -> M:
    data = _load_json(body, "output")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"output is malformed: {e}") from e
