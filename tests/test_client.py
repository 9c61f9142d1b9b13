"""Tests for the registry client."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from armory.registry.client import (
    AsyncRegistryClient,
    GeneralRequestError,
    OperationError,
    RegistryClient,
    TransportError,
)
from armory.registry.models import (
    GeneralError,
    GetError,
    GetInfoError,
    GetInfoInput,
    GetInput,
    ListError,
    ListInput,
    ListOutput,
    PublishError,
)
from armory.registry.protocol import OK_HEADER, PASSWORD_HEADER
from armory.registry.server import ServerSettings, create_app
from armory.targets import Triple

LINUX = Triple.X86_64_LINUX


@pytest.fixture
def client(http):
    return RegistryClient("http://testserver", http_client=http)


def _mock_client(handler, password=None) -> RegistryClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return RegistryClient("http://registry.test", password=password, http_client=http)


# ---------------------------------------------------------------------------
# Against the real app
# ---------------------------------------------------------------------------

def test_publish_and_fetch(client):
    client.publish_bytes("tool", "1.0.0", LINUX, b"\x7fELF")
    assert client.fetch("tool", LINUX, "1.0.0") == ("1.0.0", b"\x7fELF")


def test_fetch_latest(client):
    client.publish_bytes("tool", "2", LINUX, b"two")
    client.publish_bytes("tool", "10", LINUX, b"ten")
    assert client.fetch("tool", LINUX) == ("2", b"two")


def test_get_info_and_list(client):
    client.publish_bytes("tool", "1.0.0", LINUX, b"a")
    client.publish_bytes("tool", "1.1.0", LINUX, b"b")
    client.publish_bytes("other", "0.1.0", Triple.AARCH64_DARWIN, b"c")

    info = client.get_info(GetInfoInput(name="tool", triple=LINUX))
    assert info.versions == ["1.0.0", "1.1.0"]
    assert client.list_packages(ListInput(triple=LINUX)).packages == ["tool"]


def test_not_found_is_operation_error(client):
    with pytest.raises(OperationError) as excinfo:
        client.get(GetInput(name="missing", triple=LINUX))
    assert excinfo.value.error is GetError.PACKAGE_NOT_FOUND
    assert excinfo.value.operation == "get"
    assert excinfo.value.retryable is False

    with pytest.raises(OperationError) as excinfo:
        client.get_info(GetInfoInput(name="missing", triple=LINUX))
    assert excinfo.value.error is GetInfoError.PACKAGE_NOT_FOUND


def test_conflict_is_operation_error(client):
    client.publish_bytes("tool", "1.0.0", LINUX, b"A")
    client.publish_bytes("tool", "1.0.0", LINUX, b"A")
    with pytest.raises(OperationError) as excinfo:
        client.publish_bytes("tool", "1.0.0", LINUX, b"B")
    assert excinfo.value.error is PublishError.VERSION_EXISTS
    assert "version_exists" in str(excinfo.value)


def test_health(client):
    assert client.health() is True


@pytest.fixture
def secured_http(registry_home):
    app = create_app(ServerSettings(home=registry_home, password="s3cret"))
    with TestClient(app) as http:
        yield http


def test_missing_password_is_general_error(secured_http):
    client = RegistryClient("http://testserver", http_client=secured_http)
    with pytest.raises(GeneralRequestError) as excinfo:
        client.get(GetInput(name="anything", triple=LINUX))
    assert excinfo.value.error is GeneralError.PASSWORD_MISSING
    assert excinfo.value.retryable is False


def test_wrong_password_is_general_error(secured_http):
    client = RegistryClient("http://testserver", password="nope", http_client=secured_http)
    with pytest.raises(GeneralRequestError) as excinfo:
        client.list_packages(ListInput(triple=LINUX))
    assert excinfo.value.error is GeneralError.PASSWORD_INVALID


def test_correct_password(secured_http):
    client = RegistryClient("http://testserver", password="s3cret", http_client=secured_http)
    client.publish_bytes("tool", "1.0.0", LINUX, b"x")
    assert client.fetch("tool", LINUX) == ("1.0.0", b"x")


def test_unprocessable_request_is_transport_error(http):
    client = RegistryClient("http://testserver", http_client=http)
    with pytest.raises(TransportError, match="HTTP 422"):
        client._send("list", "/list", _RawBody({"triple": "bogus"}), ListOutput, ListError)


class _RawBody:
    def __init__(self, data):
        self.data = data

    def model_dump(self, mode="json"):
        return self.data


# ---------------------------------------------------------------------------
# Protocol violations
# ---------------------------------------------------------------------------

def test_missing_ok_header_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, json={"packages": []}))
    with pytest.raises(TransportError, match="missing") as excinfo:
        client.list_packages(ListInput(triple=LINUX))
    assert excinfo.value.retryable is True


def test_missing_ok_header_with_error_body_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, json={"code": "package_not_found"}))
    with pytest.raises(TransportError):
        client.get(GetInput(name="tool", triple=LINUX))


def test_malformed_ok_header_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "yes"}, json={"packages": []}))
    with pytest.raises(TransportError, match="malformed"):
        client.list_packages(ListInput(triple=LINUX))


def test_unparseable_success_body_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "true"}, content=b"<html>oops"))
    with pytest.raises(TransportError, match="output is malformed"):
        client.list_packages(ListInput(triple=LINUX))


def test_success_body_wrong_shape_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "true"}, json={"code": "internal_error"}))
    with pytest.raises(TransportError):
        client.get(GetInput(name="tool", triple=LINUX))


def test_unparseable_error_body_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "false"}, content=b"boom"))
    with pytest.raises(TransportError, match="error message is malformed"):
        client.get(GetInput(name="tool", triple=LINUX))


def test_unknown_error_code_is_transport_error():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "false"}, json={"code": "version_exists"}))
    with pytest.raises(TransportError, match="failed to parse error code"):
        client.get(GetInput(name="tool", triple=LINUX))


def test_general_error_decoded_before_specific():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "false"}, json={"code": "password_invalid"}))
    with pytest.raises(GeneralRequestError) as excinfo:
        client.list_packages(ListInput(triple=LINUX))
    assert excinfo.value.error is GeneralError.PASSWORD_INVALID


def test_internal_error_is_retryable():
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "false"}, json={"code": "internal_error"}))
    with pytest.raises(OperationError) as excinfo:
        client.list_packages(ListInput(triple=LINUX))
    assert excinfo.value.error is ListError.INTERNAL_ERROR
    assert excinfo.value.retryable is True


def test_connection_failure_is_transport_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = _mock_client(handler)
    with pytest.raises(TransportError, match="failed to send request"):
        client.list_packages(ListInput(triple=LINUX))
    assert client.health() is False


def test_malformed_content_in_get_output_is_transport_error():
    body = {"name": "tool", "version": "1", "content": "***"}
    client = _mock_client(lambda request: httpx.Response(200, headers={OK_HEADER: "true"}, json=body))
    with pytest.raises(TransportError, match="content is malformed"):
        client.fetch("tool", LINUX)


def test_request_shape_and_password_header():
    seen = {}

    def handler(request: httpx.Request):
        seen["path"] = request.url.path
        seen["password"] = request.headers.get(PASSWORD_HEADER)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, headers={OK_HEADER: "true"}, json={})

    client = _mock_client(handler, password="s3cret")
    client.publish_bytes("tool", "1.0.0", LINUX, b"hi")

    assert seen == {
        "path": "/publish",
        "password": "s3cret",
        "body": {"name": "tool", "version": "1.0.0", "triple": "x86_64_linux", "content": "aGk="},
    }


def test_no_password_header_without_password():
    seen = {}

    def handler(request: httpx.Request):
        seen["has_password"] = PASSWORD_HEADER in request.headers
        return httpx.Response(200, headers={OK_HEADER: "true"}, json={"packages": []})

    _mock_client(handler).list_packages(ListInput(triple=LINUX))
    assert seen["has_password"] is False


def test_base_url_trailing_slash():
    client = RegistryClient("http://registry.test/")
    assert client.base_url == "http://registry.test"
    client.close()


# ---------------------------------------------------------------------------
# Async client
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_async_client_round_trip(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        client = AsyncRegistryClient("http://test", http_client=http)
        await client.publish_bytes("tool", "1.0.0", LINUX, b"async")
        assert await client.fetch("tool", LINUX) == ("1.0.0", b"async")
        assert (await client.list_packages(ListInput(triple=LINUX))).packages == ["tool"]
        assert await client.health() is True


@pytest.mark.asyncio
async def test_async_client_error_tiers(registry_home):
    app = create_app(ServerSettings(home=registry_home, password="pw"))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        anonymous = AsyncRegistryClient("http://test", http_client=http)
        with pytest.raises(GeneralRequestError):
            await anonymous.get_info(GetInfoInput(name="tool", triple=LINUX))

        authed = AsyncRegistryClient("http://test", password="pw", http_client=http)
        with pytest.raises(OperationError) as excinfo:
            await authed.get(GetInput(name="tool", triple=LINUX))
        assert excinfo.value.error is GetError.PACKAGE_NOT_FOUND


@pytest.mark.asyncio
async def test_async_client_password_header():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request.headers.get(PASSWORD_HEADER))
        return httpx.Response(200, headers={OK_HEADER: "true"}, json={"packages": []})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
        await AsyncRegistryClient("http://registry.test", password="s3cret", http_client=http).list_packages(
            ListInput(triple=LINUX)
        )
        await AsyncRegistryClient("http://registry.test", http_client=http).list_packages(ListInput(triple=LINUX))

    assert seen == ["s3cret", None]
