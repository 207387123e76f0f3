"""RouterOS REST API client with async HTTP support.

Provides async HTTP client for the RouterOS v7 REST API with:
- Lazily created, per-instance cached HTTP client (the API is stateless)
- Timeout enforcement
- Error mapping to strongly-typed exceptions
- Request/response logging

Design principles:
- Use httpx for modern async HTTP
- Map HTTP errors to protocol exceptions carrying the upstream status
- Never log credentials or sensitive data
- No automatic retries: timeouts are raised as retryable errors and the
  caller decides
"""

import logging
from typing import Any

import httpx

from routeros_gateway.infra.routeros.exceptions import (
    ProtocolError,
    RouterOSNetworkError,
    RouterOSServerError,
    RouterOSTimeoutError,
    error_for_status,
)
from routeros_gateway.infra.routeros.tls import device_ssl_context

logger = logging.getLogger(__name__)

HTTPS_PORT = 443


def extract_error_message(payload: Any, fallback: str) -> str:
    """Pick the most descriptive message from a RouterOS error body.

    RouterOS answers errors with `{"error": 400, "message": "Bad Request",
    "detail": "no such command"}`; `detail` is the specific part.

    Args:
        payload: Decoded error body (any JSON value)
        fallback: Text to use when no structured field is present

    Returns:
        Human-readable error message
    """
    if isinstance(payload, dict):
        for key in ("detail", "message", "error"):
            value = payload.get(key)
            if value and isinstance(value, str):
                return value
    return fallback


class RouterOSRestClient:
    """Async HTTP client for RouterOS REST API.

    Manages HTTP connections to a single RouterOS device. The base URL is
    `{scheme}://{host}:{port}/rest` where the scheme is https only on
    port 443.

    Example:
        client = RouterOSRestClient(
            host="192.168.1.1",
            port=443,
            username="admin",
            password="secret",
        )

        # GET request
        resource = await client.get("/system/resource")

        # PATCH request
        await client.patch("/system/identity", {"name": "new-router-name"})

        # Cleanup
        await client.close()
    """

    def __init__(
        self,
        host: str,
        port: int = 80,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: float = 15.0,
        tls_port: int = HTTPS_PORT,
    ) -> None:
        """Initialize RouterOS REST client.

        Args:
            host: RouterOS device hostname or IP
            port: REST port (default: 80)
            username: RouterOS username
            password: RouterOS password
            timeout_seconds: Request timeout in seconds
            tls_port: Port on which https is used instead of http
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password or ""

        scheme = "https" if port == tls_port else "http"
        self.base_url = f"{scheme}://{host}:{port}/rest"
        self.timeout = httpx.Timeout(timeout_seconds)

        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client.

        Returns:
            Configured httpx.AsyncClient

        Raises:
            ValueError: If username not set
        """
        if not self.username:
            raise ValueError("Username not set for REST client")

        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                auth=(self.username, self.password),
                timeout=self.timeout,
                verify=device_ssl_context(),
                follow_redirects=False,
            )

        return self._client

    async def close(self) -> None:
        """Close HTTP client and cleanup connections."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Execute HTTP request with error handling.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            path: API path below /rest (e.g., "/system/resource")
            json: JSON request body (for POST/PUT/PATCH)
            params: Query parameters

        Returns:
            Decoded JSON response (object or list), {} for empty bodies

        Raises:
            RouterOSTimeoutError: On timeout
            RouterOSNetworkError: On network errors
            RouterOSClientError: On 4xx errors
            RouterOSServerError: On 5xx errors
        """
        client = await self._get_client()

        logger.debug(f"REST {method} {path}", extra={"method": method, "resource_path": path})

        try:
            response = await client.request(
                method=method,
                url=path,
                json=json,
                params=params or None,
            )
        except httpx.TimeoutException as e:
            raise RouterOSTimeoutError(
                f"Request timeout after {self.timeout.read}s: {method} {path}"
            ) from e
        except httpx.TransportError as e:
            raise RouterOSNetworkError(
                f"Network error: {method} {path}: {type(e).__name__}: {e}"
            ) from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise RouterOSServerError(
                f"Invalid JSON from device: {method} {path}", response_body=response.text
            ) from e

    @staticmethod
    def _error_from_response(response: httpx.Response) -> ProtocolError:
        """Map an HTTP error response to a ProtocolError.

        The message is the most specific field of the RouterOS error body,
        else the raw body, else the bare status.
        """
        body = response.text
        try:
            payload = response.json()
        except ValueError:
            payload = None
        message = extract_error_message(payload, body or f"HTTP {response.status_code}")
        logger.debug(
            f"REST error {response.status_code}: {message}",
            extra={"status_code": response.status_code},
        )
        return error_for_status(response.status_code, message, body)

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Execute GET request.

        Example:
            routes = await client.get("/ip/route", {"check-gateway": "ping"})
        """
        return await self.request("GET", path, params=params)

    async def post(self, path: str, data: dict[str, Any]) -> Any:
        """Execute POST request (RouterOS commands such as `print` or `ping`)."""
        return await self.request("POST", path, json=data)

    async def put(self, path: str, data: dict[str, Any]) -> Any:
        """Execute PUT request (creates an item).

        Example:
            await client.put("/queue/simple", {"name": "alice", "target": "10.0.0.5"})
        """
        return await self.request("PUT", path, json=data)

    async def patch(self, path: str, data: dict[str, Any]) -> Any:
        """Execute PATCH request (updates an item in place)."""
        return await self.request("PATCH", path, json=data)

    async def delete(self, path: str) -> Any:
        """Execute DELETE request.

        Example:
            await client.delete("/system/scheduler/*5")
        """
        return await self.request("DELETE", path)
