"""Protocol sessions: one capability interface over both RouterOS APIs.

Business logic talks to a `RouterSession` and never to a protocol client.
The two variants translate the same operations into different wire calls:

| Operation        | LegacySession                       | RestSession                     |
|------------------|-------------------------------------|---------------------------------|
| find             | `{path}/print` + `?key=value` words | `GET /{path}?key=value`         |
| add              | `{path}/add` + `=key=value` words   | `PUT /{path}`                   |
| update           | `{path}/set` with `.id`             | `PATCH /{path}/{id}`            |
| remove           | `{path}/remove` with `.id`          | `DELETE /{path}/{id}`           |
| print_with_flags | `{path}/print` + `=flag=` words     | `POST /{path}/print {flag: true}` |

Resource paths are slash-separated without a leading slash
("ip/firewall/address-list"). All results are normalized so items carry
their identifier under `id`.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import Any

from routeros_gateway.infra.observability.tracing import trace_device_call
from routeros_gateway.infra.routeros.legacy_client import RouterOSLegacyClient
from routeros_gateway.infra.routeros.normalize import (
    DEVICE_ID_KEY,
    normalize_legacy,
    normalize_rest,
)
from routeros_gateway.infra.routeros.rest_client import RouterOSRestClient

logger = logging.getLogger(__name__)

READ_METHOD = "GET"
PRINT_SUFFIX = "/print"
COMMAND_EXECUTED = {"message": "Command executed"}


def legacy_command(path: str, action: str | None = None) -> str:
    """Build a legacy API command word.

    Example:
        >>> legacy_command("ip/route", "print")
        '/ip/route/print'
        >>> legacy_command("/ip/route/print")
        '/ip/route/print'
    """
    command = "/" + path.strip("/")
    if action:
        command += "/" + action
    return command


def rest_path(method: str, path: str) -> str:
    """Build a REST path, dropping the `print` verb from reads.

    REST reads are plain GETs on the resource; the command vocabulary's
    `print` only exists on the legacy API.

    Example:
        >>> rest_path("GET", "ip/route/print")
        '/ip/route'
        >>> rest_path("POST", "ip/route/print")
        '/ip/route/print'
    """
    path = "/" + path.strip("/")
    if method.upper() == READ_METHOD and path.endswith(PRINT_SUFFIX):
        path = path[: -len(PRINT_SUFFIX)]
    return path


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _rest_value(value: Any) -> Any:
    # RouterOS REST expects every attribute value as a string
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


def _has_properties(items: list[dict[str, Any]], present: Sequence[str]) -> list[dict[str, Any]]:
    if not present:
        return items
    return [item for item in items if all(item.get(key) for key in present)]


class RouterSession(ABC):
    """Capability interface over a connected RouterOS protocol client.

    Use as an async context manager; the session is released on every exit
    path:

        async with session:
            routes = await session.find("ip/route", present=["check-gateway"])
    """

    api_type: str

    def __init__(self, router_id: str | None = None) -> None:
        self.router_id = router_id

    async def open(self) -> None:
        """Acquire the underlying protocol session (no-op when stateless)."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying protocol session."""

    async def __aenter__(self) -> "RouterSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _log_extra(self, path: str) -> dict[str, Any]:
        return {"router_id": self.router_id, "api_type": self.api_type, "resource_path": path}

    async def find(
        self,
        path: str,
        criteria: Mapping[str, Any] | None = None,
        present: Sequence[str] = (),
    ) -> list[dict[str, Any]]:
        """Find items whose properties equal `criteria` and that carry
        every property named in `present`.

        Returns:
            Normalized items in device order ([] when nothing matches)
        """
        with trace_device_call(self.api_type, "find", path):
            items = await self._find(path, dict(criteria or {}), present)
        return _has_properties(items, present)

    async def add(self, path: str, values: Mapping[str, Any]) -> str | None:
        """Create an item and return its device identifier (if reported)."""
        with trace_device_call(self.api_type, "add", path):
            return await self._add(path, dict(values))

    async def update(self, path: str, item_id: str, values: Mapping[str, Any]) -> None:
        """Set properties of an existing item."""
        with trace_device_call(self.api_type, "update", path, {"routeros.item_id": item_id}):
            await self._update(path, item_id, dict(values))

    async def remove(self, path: str, item_id: str) -> None:
        """Delete an item."""
        with trace_device_call(self.api_type, "remove", path, {"routeros.item_id": item_id}):
            await self._remove(path, item_id)

    async def request(
        self,
        method: str,
        path: str,
        body: Mapping[str, Any] | None = None,
        query: Mapping[str, Any] | None = None,
    ) -> Any:
        """Pass a raw call through to the device.

        Args:
            method: HTTP method of the inbound call
            path: Resource path including any command verb ("ip/route/print")
            body: Parameters (written as-is)
            query: Query filters

        Returns:
            Normalized response body
        """
        with trace_device_call(self.api_type, "request", path, {"http.method": method.upper()}):
            return await self._request(method.upper(), path, body, dict(query or {}))

    async def print_with_flags(self, path: str, *flags: str) -> list[dict[str, Any]]:
        """Run `print` on a resource with boolean flags such as "stats" or "detail"."""
        with trace_device_call(self.api_type, "print", path):
            return await self._print_with_flags(path, flags)

    async def probe(self) -> Any:
        """Read system resources; proves connectivity and credentials."""
        with trace_device_call(self.api_type, "probe", "system/resource"):
            return await self._probe()

    @abstractmethod
    async def _find(
        self, path: str, criteria: dict[str, Any], present: Sequence[str]
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def _add(self, path: str, values: dict[str, Any]) -> str | None: ...

    @abstractmethod
    async def _update(self, path: str, item_id: str, values: dict[str, Any]) -> None: ...

    @abstractmethod
    async def _remove(self, path: str, item_id: str) -> None: ...

    @abstractmethod
    async def _request(
        self, method: str, path: str, body: Mapping[str, Any] | None, query: dict[str, Any]
    ) -> Any: ...

    @abstractmethod
    async def _print_with_flags(self, path: str, flags: Sequence[str]) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def _probe(self) -> Any: ...


class LegacySession(RouterSession):
    """Session over the binary API. Connects on open, disconnects on close."""

    api_type = "legacy"

    def __init__(self, client: RouterOSLegacyClient, router_id: str | None = None) -> None:
        super().__init__(router_id)
        self.client = client

    async def open(self) -> None:
        await self.client.connect()

    async def close(self) -> None:
        await self.client.close()

    async def _find(
        self, path: str, criteria: dict[str, Any], present: Sequence[str]
    ) -> list[dict[str, Any]]:
        words = [f"?{key}={_query_value(value)}" for key, value in criteria.items()]
        words.extend(f"?{key}" for key in present)
        replies = await self.client.execute_safe(legacy_command(path, "print"), *words)
        return normalize_legacy(replies)

    async def _add(self, path: str, values: dict[str, Any]) -> str | None:
        replies = await self.client.write(legacy_command(path, "add"), values)
        for reply in replies:
            if "ret" in reply:
                return reply["ret"]
        return None

    async def _update(self, path: str, item_id: str, values: dict[str, Any]) -> None:
        await self.client.write(legacy_command(path, "set"), {DEVICE_ID_KEY: item_id, **values})

    async def _remove(self, path: str, item_id: str) -> None:
        await self.client.write(legacy_command(path, "remove"), {DEVICE_ID_KEY: item_id})

    async def _request(
        self, method: str, path: str, body: Mapping[str, Any] | None, query: dict[str, Any]
    ) -> Any:
        command = legacy_command(path)
        if method != READ_METHOD and body:
            await self.client.write(command, body)
            return dict(COMMAND_EXECUTED)

        words = [f"?{key}={_query_value(value)}" for key, value in query.items()]
        replies = await self.client.execute_safe(command, *words)
        return normalize_legacy(replies)

    async def _print_with_flags(self, path: str, flags: Sequence[str]) -> list[dict[str, Any]]:
        words = [f"={flag}=" for flag in flags]
        replies = await self.client.execute_safe(legacy_command(path, "print"), *words)
        return normalize_legacy(replies)

    async def _probe(self) -> Any:
        replies = await self.client.execute_safe(legacy_command("system/resource", "print"))
        return normalize_legacy(replies)


class RestSession(RouterSession):
    """Session over the REST API. Stateless; close releases the HTTP pool."""

    api_type = "rest"

    def __init__(self, client: RouterOSRestClient, router_id: str | None = None) -> None:
        super().__init__(router_id)
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    async def _find(
        self, path: str, criteria: dict[str, Any], present: Sequence[str]
    ) -> list[dict[str, Any]]:
        params = {key: _query_value(value) for key, value in criteria.items()}
        result = await self.client.get(rest_path(READ_METHOD, path), params=params or None)
        if not isinstance(result, list):
            logger.warning(
                f"Expected a list from GET {path}, got {type(result).__name__}",
                extra=self._log_extra(path),
            )
            return []
        return normalize_rest(result)

    async def _add(self, path: str, values: dict[str, Any]) -> str | None:
        encoded = {key: _rest_value(value) for key, value in values.items()}
        result = await self.client.put(rest_path("PUT", path), encoded)
        if isinstance(result, dict):
            return result.get(DEVICE_ID_KEY)
        return None

    async def _update(self, path: str, item_id: str, values: dict[str, Any]) -> None:
        encoded = {key: _rest_value(value) for key, value in values.items()}
        await self.client.patch(f"{rest_path('PATCH', path)}/{item_id}", encoded)

    async def _remove(self, path: str, item_id: str) -> None:
        await self.client.delete(f"{rest_path('DELETE', path)}/{item_id}")

    async def _request(
        self, method: str, path: str, body: Mapping[str, Any] | None, query: dict[str, Any]
    ) -> Any:
        result = await self.client.request(
            method,
            rest_path(method, path),
            json=dict(body) if body is not None and method != READ_METHOD else None,
            params={key: _query_value(value) for key, value in query.items()} or None,
        )
        return normalize_rest(result)

    async def _print_with_flags(self, path: str, flags: Sequence[str]) -> list[dict[str, Any]]:
        result = await self.client.post(
            rest_path("POST", path) + PRINT_SUFFIX, {flag: True for flag in flags}
        )
        return normalize_rest(result if isinstance(result, list) else [])

    async def _probe(self) -> Any:
        return normalize_rest(await self.client.get(rest_path(READ_METHOD, "system/resource")))
