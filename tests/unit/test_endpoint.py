"""Tests for HttpEndpointClient.

Coverage goals:
- JSON, text and empty response bodies
- Request headers (content type, bearer token, extras)
- Error statuses and transport failures mapped to EndpointError
"""

import json

import httpx
import pytest
import pytest_asyncio
import respx

from change_relay.endpoint import EndpointClient, HttpEndpointClient
from change_relay.exceptions import EndpointError

URL = "https://api.example.com/v1/shorten"


@pytest_asyncio.fixture
async def client():
    """Create an endpoint client and close it after the test."""
    endpoint = HttpEndpointClient(URL, bearer_token="secret-token", timeout=5.0)
    yield endpoint
    await endpoint.aclose()


def test_implements_protocol() -> None:
    assert isinstance(HttpEndpointClient(URL), EndpointClient)


# ============================================================================
# Successful calls
# ============================================================================


@pytest.mark.asyncio
async def test_post_sends_json_and_returns_json(client: HttpEndpointClient) -> None:
    with respx.mock:
        route = respx.post(URL).mock(return_value=httpx.Response(200, json={"link": "short.ly/x"}))

        body = await client.post({"url": "https://example.com"})

        assert body == {"link": "short.ly/x"}
        request = route.calls.last.request
        assert json.loads(request.content) == {"url": "https://example.com"}
        assert request.headers["Content-Type"] == "application/json"


@pytest.mark.asyncio
async def test_bearer_token_is_sent(client: HttpEndpointClient) -> None:
    with respx.mock:
        route = respx.post(URL).mock(return_value=httpx.Response(200, json={}))
        await client.post("x")
        assert route.calls.last.request.headers["Authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_no_token_no_authorization_header() -> None:
    endpoint = HttpEndpointClient(URL, headers={"X-Trace": "t1"})
    try:
        with respx.mock:
            route = respx.post(URL).mock(return_value=httpx.Response(200, json={}))
            await endpoint.post("x")
            headers = route.calls.last.request.headers
            assert "Authorization" not in headers
            assert headers["X-Trace"] == "t1"
    finally:
        await endpoint.aclose()


@pytest.mark.asyncio
async def test_scalar_payload(client: HttpEndpointClient) -> None:
    with respx.mock:
        route = respx.post(URL).mock(return_value=httpx.Response(200, json="ok"))
        assert await client.post("abc") == "ok"
        assert json.loads(route.calls.last.request.content) == "abc"


@pytest.mark.asyncio
async def test_text_response(client: HttpEndpointClient) -> None:
    with respx.mock:
        respx.post(URL).mock(return_value=httpx.Response(200, text="plain answer"))
        assert await client.post({}) == "plain answer"


@pytest.mark.asyncio
async def test_empty_response(client: HttpEndpointClient) -> None:
    with respx.mock:
        respx.post(URL).mock(return_value=httpx.Response(204))
        assert await client.post({}) is None


# ============================================================================
# Failures
# ============================================================================


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [400, 401, 404, 429, 500, 503])
async def test_error_status_raises(client: HttpEndpointClient, status_code: int) -> None:
    with respx.mock:
        respx.post(URL).mock(return_value=httpx.Response(status_code, json={"error": "no"}))

        with pytest.raises(EndpointError) as exc_info:
            await client.post({})

        assert exc_info.value.status_code == status_code


@pytest.mark.asyncio
async def test_timeout_raises(client: HttpEndpointClient) -> None:
    with respx.mock:
        respx.post(URL).mock(side_effect=httpx.TimeoutException("Connection timeout"))

        with pytest.raises(EndpointError) as exc_info:
            await client.post({})

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.cause, httpx.TimeoutException)


@pytest.mark.asyncio
async def test_connect_error_raises(client: HttpEndpointClient) -> None:
    with respx.mock:
        respx.post(URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        with pytest.raises(EndpointError) as exc_info:
            await client.post({})

        assert isinstance(exc_info.value.cause, httpx.ConnectError)
