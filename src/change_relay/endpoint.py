"""External endpoint client.

Posts a record's input to the configured URL and hands back the decoded
response. The client owns one ``httpx.AsyncClient`` so connections are
pooled across events; its timeout is the only bound on how long a call can
take.

Examples:
    Posting a payload::

        from change_relay.endpoint import HttpEndpointClient

        client = HttpEndpointClient(
            "https://api.example.com/v1/shorten",
            bearer_token="secret",
            timeout=10.0,
        )
        body = await client.post({"url": "https://example.com"})
        await client.aclose()
"""

import time
from typing import Any, Protocol, runtime_checkable

import httpx

from change_relay.exceptions import EndpointError
from change_relay.observability.logging import get_logger
from change_relay.observability.metrics import record_endpoint_latency

logger = get_logger(__name__)


@runtime_checkable
class EndpointClient(Protocol):
    """Anything that can deliver a payload and return the response body."""

    async def post(self, payload: Any) -> Any:
        """Send ``payload`` and return the decoded response body.

        Raises:
            EndpointError: On transport failure or an error status.
        """
        ...


class HttpEndpointClient(EndpointClient):
    """JSON-over-HTTP endpoint client backed by httpx.

    Attributes:
        url: Endpoint the payload is posted to.
    """

    def __init__(
        self,
        url: str,
        *,
        bearer_token: str | None = None,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: Endpoint the payload is posted to.
            bearer_token: Sent as ``Authorization: Bearer <token>`` if set.
            timeout: Request timeout in seconds.
            headers: Extra headers for every request.
            transport: Custom httpx transport, mostly for tests.
        """
        self.url = url
        default_headers = {"Content-Type": "application/json"}
        if bearer_token:
            default_headers["Authorization"] = f"Bearer {bearer_token}"
        default_headers.update(headers or {})
        self._client = httpx.AsyncClient(
            headers=default_headers,
            timeout=timeout,
            transport=transport,
        )

    async def post(self, payload: Any) -> Any:
        """Post ``payload`` as JSON.

        Args:
            payload: JSON-serializable request body.

        Returns:
            The decoded JSON body, or the text body if it is not JSON.

        Raises:
            EndpointError: On transport failure or a non-2xx status.
        """
        start_time = time.perf_counter()
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            latency_ms = int((time.perf_counter() - start_time) * 1000)
            record_endpoint_latency(latency_ms)
            raise EndpointError(f"Request to {self.url} failed: {e}", cause=e) from e

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        record_endpoint_latency(latency_ms)

        if not response.is_success:
            raise EndpointError(
                f"Endpoint {self.url} answered {response.status_code}",
                status_code=response.status_code,
            )

        logger.debug(
            "endpoint.responded",
            status_code=response.status_code,
            latency_ms=latency_ms,
        )
        return _decode(response)

    async def aclose(self) -> None:
        """Close pooled connections."""
        await self._client.aclose()


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
