"""Client for the armory registry.

Failures are reported in three tiers, never conflated:

* :class:`TransportError` - the exchange itself failed or could not be
  decoded (unreachable server, missing or malformed ``x-ok`` header,
  malformed body, unknown error code).
* :class:`GeneralRequestError` - an error that can occur for any operation
  (authentication).
* :class:`OperationError` - the operation's own domain error.
"""

from __future__ import annotations

import logging
from typing import Optional, Type, TypeVar

import httpx
from pydantic import BaseModel

from ..targets import Triple
from .models import (
    GeneralError,
    GetError,
    GetInfoError,
    GetInfoInput,
    GetInfoOutput,
    GetInput,
    GetOutput,
    ListError,
    ListInput,
    ListOutput,
    PublishError,
    PublishInput,
    PublishOutput,
    UnrecognizedErrorCode,
)
from .protocol import (
    PASSWORD_HEADER,
    InvalidContentEncoding,
    ProtocolError,
    decode_content,
    decode_error_info,
    decode_output,
    encode_content,
    read_success_indicator,
)

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_URL = "http://localhost:3000"

M = TypeVar("M", bound=BaseModel)


class RegistryError(Exception):
    """Base class for client errors."""

    retryable = False


class TransportError(RegistryError):
    """The request could not be transmitted or the response could not be decoded."""

    retryable = True


class GeneralRequestError(RegistryError):
    """An error that is not tied to a specific operation."""

    def __init__(self, error: GeneralError):
        super().__init__(f"request rejected: {error.value}")
        self.error = error


class OperationError(RegistryError):
    """An error returned by the requested operation."""

    def __init__(self, operation: str, error):
        super().__init__(f"'{operation}' failed: {error.value}")
        self.operation = operation
        self.error = error

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.error.value == "internal_error"


def _interpret(operation: str, response: httpx.Response, output_model: Type[M], error_type) -> M:
    try:
        ok = read_success_indicator(response.headers)
    except ProtocolError as e:
        raise TransportError(f"{e} (HTTP {response.status_code})") from e

    if ok:
        try:
            return decode_output(response.content, output_model)
        except ProtocolError as e:
            raise TransportError(str(e)) from e

    try:
        info = decode_error_info(response.content)
    except ProtocolError as e:
        raise TransportError(str(e)) from e

    try:
        general = GeneralError.from_error_info(info)
    except UnrecognizedErrorCode:
        pass
    else:
        raise GeneralRequestError(general)

    try:
        specific = error_type.from_error_info(info)
    except UnrecognizedErrorCode as e:
        raise TransportError(f"failed to parse error code: {e}") from e
    raise OperationError(operation, specific)


def _password_headers(password: Optional[str]) -> dict[str, str]:
    if password is None:
        return {}
    return {PASSWORD_HEADER: password}


def _decode_fetched(output: GetOutput) -> tuple[str, bytes]:
    try:
        return output.version, decode_content(output.content)
    except InvalidContentEncoding as e:
        raise TransportError(f"package content is malformed: {e}") from e


class RegistryClient:
    """Synchronous client for the armory registry."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        password: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.password = password
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout)

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def close(self):
        if self._owns_client:
            self._client.close()

    def _send(self, operation: str, path: str, payload: BaseModel, output_model: Type[M], error_type) -> M:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.post(url, json=payload.model_dump(mode="json"), headers=_password_headers(self.password))
        except httpx.HTTPError as e:
            raise TransportError(f"failed to send request to {url}: {e}") from e
        logger.debug("%s %s -> HTTP %d", operation, url, response.status_code)
        return _interpret(operation, response, output_model, error_type)

    def health(self) -> bool:
        """Check if the registry is reachable."""
        try:
            response = self._client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    def publish(self, input: PublishInput) -> PublishOutput:
        return self._send("publish", "/publish", input, PublishOutput, PublishError)

    def get(self, input: GetInput) -> GetOutput:
        return self._send("get", "/get", input, GetOutput, GetError)

    def get_info(self, input: GetInfoInput) -> GetInfoOutput:
        return self._send("get-info", "/get-info", input, GetInfoOutput, GetInfoError)

    def list_packages(self, input: ListInput) -> ListOutput:
        return self._send("list", "/list", input, ListOutput, ListError)

    def publish_bytes(self, name: str, version: str, triple: Triple, data: bytes) -> PublishOutput:
        """Publish raw artifact bytes."""
        return self.publish(PublishInput(name=name, version=version, triple=triple, content=encode_content(data)))

    def fetch(self, name: str, triple: Triple, version: Optional[str] = None) -> tuple[str, bytes]:
        """Fetch an artifact, returning ``(resolved_version, content)``."""
        return _decode_fetched(self.get(GetInput(name=name, version=version, triple=triple)))


class AsyncRegistryClient:
    """Async client for the armory registry."""

    def __init__(
        self,
        base_url: str = DEFAULT_REGISTRY_URL,
        password: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.password = password
        self.timeout = timeout
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self._client.aclose()

    async def _send(self, operation: str, path: str, payload: BaseModel, output_model: Type[M], error_type) -> M:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.post(url, json=payload.model_dump(mode="json"), headers=_password_headers(self.password))
        except httpx.HTTPError as e:
            raise TransportError(f"failed to send request to {url}: {e}") from e
        return _interpret(operation, response, output_model, error_type)

    async def health(self) -> bool:
        try:
            response = await self._client.get(f"{self.base_url}/health")
            return response.status_code == 200
        except httpx.HTTPError:
            return False

    async def publish(self, input: PublishInput) -> PublishOutput:
        return await self._send("publish", "/publish", input, PublishOutput, PublishError)

    async def get(self, input: GetInput) -> GetOutput:
        return await self._send("get", "/get", input, GetOutput, GetError)

    async def get_info(self, input: GetInfoInput) -> GetInfoOutput:
        return await self._send("get-info", "/get-info", input, GetInfoOutput, GetInfoError)

    async def list_packages(self, input: ListInput) -> ListOutput:
        return await self._send("list", "/list", input, ListOutput, ListError)

    async def publish_bytes(self, name: str, version: str, triple: Triple, data: bytes) -> PublishOutput:
        return await self.publish(PublishInput(name=name, version=version, triple=triple, content=encode_content(data)))

    async def fetch(self, name: str, triple: Triple, version: Optional[str] = None) -> tuple[str, bytes]:
        return _decode_fetched(await self.get(GetInput(name=name, version=version, triple=triple)))
