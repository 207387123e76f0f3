"""RouterOS legacy API client (binary, length-prefixed sentences).

Wraps `librouteros` for the session-oriented API service on ports
8728/8729. The underlying socket API is blocking, so every call runs in a
worker thread and is bounded by the socket timeout.

Design principles:
- One session per gateway call: explicit connect, guaranteed close
  (devices cap concurrent API sessions)
- Port 8729 means API-SSL (TLS 1.2+, self-signed certificates accepted)
- "!empty" replies are recovered into an empty result by `execute_safe`
- librouteros/socket errors are mapped to the protocol error taxonomy
"""

import asyncio
import functools
import logging
import socket
from collections.abc import Mapping
from typing import Any

from librouteros import connect
from librouteros.exceptions import (
    ConnectionClosed,
    FatalError,
    LibRouterosError,
    MultiTrapError,
    TrapError,
)

from routeros_gateway.infra.routeros.exceptions import (
    EMPTY_REPLY_MARKER,
    ProtocolError,
    RouterOSNetworkError,
    RouterOSTimeoutError,
    RouterOSTrapError,
    TransientEmptyResult,
)
from routeros_gateway.infra.routeros.tls import device_ssl_context

logger = logging.getLogger(__name__)

API_PORT = 8728
API_SSL_PORT = 8729


def classify_legacy_error(exc: BaseException) -> ProtocolError | TransientEmptyResult:
    """Map a librouteros or socket error to a gateway exception.

    Args:
        exc: Error raised by librouteros or the socket layer

    Returns:
        TransientEmptyResult when the reply carries the "!empty" marker,
        otherwise the matching ProtocolError subclass
    """
    message = str(exc) or type(exc).__name__

    if EMPTY_REPLY_MARKER in message:
        return TransientEmptyResult(message)

    if isinstance(exc, (socket.timeout, TimeoutError)):
        return RouterOSTimeoutError(f"Legacy API timeout: {message}")
    if isinstance(exc, TrapError):
        return RouterOSTrapError(getattr(exc, "message", message), getattr(exc, "category", None))
    if isinstance(exc, MultiTrapError):
        return RouterOSTrapError(message)
    if isinstance(exc, FatalError):
        return RouterOSTrapError(f"Fatal reply: {message}")
    if isinstance(exc, (ConnectionClosed, OSError)):
        return RouterOSNetworkError(f"Legacy API connection error: {message}")
    return ProtocolError(message)


class RouterOSLegacyClient:
    """Async facade over a blocking librouteros session.

    Example:
        client = RouterOSLegacyClient(
            host="192.168.88.1",
            port=8729,
            username="admin",
            password="secret",
        )

        async with client:
            routes = await client.execute_safe("/ip/route/print", "?check-gateway")
            await client.write("/ip/route/set", {".id": "*3", "disabled": "no"})
    """

    def __init__(
        self,
        host: str,
        port: int = API_PORT,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: float = 15.0,
        tls_port: int = API_SSL_PORT,
    ) -> None:
        """Initialize legacy client. No I/O happens until `connect()`.

        Args:
            host: RouterOS device hostname or IP
            port: API port (8728 plain, 8729 API-SSL)
            username: RouterOS username
            password: RouterOS password
            timeout_seconds: Connect and per-reply socket timeout
            tls_port: Port on which the API is wrapped in TLS
        """
        self.host = host
        self.port = port
        self.username = username
        self.password = password or ""
        self.timeout_seconds = timeout_seconds
        self.use_tls = port == tls_port

        self._api: Any = None

    @property
    def connected(self) -> bool:
        return self._api is not None

    def _connect_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "username": self.username,
            "password": self.password,
            "port": self.port,
            "timeout": self.timeout_seconds,
        }
        if self.use_tls:
            kwargs["ssl_wrapper"] = functools.partial(
                device_ssl_context().wrap_socket, server_hostname=self.host
            )
        return kwargs

    async def connect(self) -> None:
        """Open the API session and log in.

        Raises:
            ProtocolError: On login failure, timeout or connectivity loss
        """
        if self._api is not None:
            return
        if not self.username:
            raise ValueError("Username not set for legacy client")

        try:
            self._api = await asyncio.to_thread(connect, **self._connect_kwargs())
        except (LibRouterosError, OSError) as e:
            raise classify_legacy_error(e) from e

        logger.info(
            f"Legacy API session opened: {self.host}:{self.port}",
            extra={"api_type": "legacy", "tls": self.use_tls},
        )

    async def close(self) -> None:
        """Close the API session. Safe to call more than once."""
        if self._api is None:
            return
        api, self._api = self._api, None
        try:
            await asyncio.to_thread(api.close)
        except (LibRouterosError, OSError) as e:
            logger.warning(f"Error while closing legacy API session to {self.host}: {e}")
        else:
            logger.debug(f"Legacy API session closed: {self.host}:{self.port}")

    async def __aenter__(self) -> "RouterOSLegacyClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _require_api(self) -> Any:
        if self._api is None:
            raise RuntimeError("Legacy client is not connected. Call connect() first.")
        return self._api

    async def _run(self, func: Any, *args: Any, **kwargs: Any) -> list[dict[str, Any]]:
        def consume() -> list[dict[str, Any]]:
            return [dict(reply) for reply in func(*args, **kwargs)]

        try:
            return await asyncio.to_thread(consume)
        except (LibRouterosError, OSError) as e:
            raise classify_legacy_error(e) from e

    async def execute(self, command: str, *words: str) -> list[dict[str, Any]]:
        """Send a raw sentence (command word plus attribute/query words).

        Args:
            command: Command path, e.g. "/ip/firewall/address-list/print"
            words: Additional words, e.g. "?list=authorized-dhcp-users"

        Returns:
            Raw reply dictionaries in device order

        Raises:
            TransientEmptyResult: When the device answers "!empty"
            ProtocolError: For any other failure
        """
        api = self._require_api()
        logger.debug(f"Legacy {command}", extra={"api_type": "legacy", "resource_path": command})
        return await self._run(api.rawCmd, command, *words)

    async def execute_safe(self, command: str, *words: str) -> list[dict[str, Any]]:
        """Like `execute`, but a "no matching records" reply yields [].

        Keeps legacy reads equivalent to REST reads, which return an empty
        array for the same situation.
        """
        try:
            return await self.execute(command, *words)
        except TransientEmptyResult:
            return []

    async def write(
        self, command: str, params: Mapping[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Run a command with `=key=value` attribute words.

        Args:
            command: Command path, e.g. "/queue/simple/add"
            params: Attributes, e.g. {"name": "alice", "max-limit": "10M/10M"}

        Returns:
            Raw reply dictionaries (e.g. [{"ret": "*1A"}] for add)
        """
        api = self._require_api()
        logger.debug(f"Legacy {command}", extra={"api_type": "legacy", "resource_path": command})
        try:
            return await self._run(api, command, **dict(params or {}))
        except TransientEmptyResult:
            return []
