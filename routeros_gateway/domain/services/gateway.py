"""Generic gateway operations.

Provides the protocol-agnostic passthrough used by the panel for arbitrary
resource paths, plus connection testing and interface statistics.

Responsibilities:
- Resolve the router through the directory before any device I/O
- Open one scoped session per call
- Return (status, normalized body) with upstream status and the most
  descriptive upstream message on failure
"""

import logging
from typing import Any

from routeros_gateway.config import Settings
from routeros_gateway.domain.exceptions import ConfigurationError
from routeros_gateway.domain.models import DeviceRecord
from routeros_gateway.domain.services.directory import RouterDirectory, resolve_device
from routeros_gateway.infra.observability.metrics import record_gateway_request
from routeros_gateway.infra.routeros.exceptions import ProtocolError
from routeros_gateway.infra.routeros.factory import SESSION_BUILDERS, open_session

logger = logging.getLogger(__name__)

CONNECTION_OK_MESSAGE = "Connection successful!"
INCOMPLETE_CONFIG_MESSAGE = "Incomplete router configuration provided for testing."


class GatewayService:
    """Passthrough and diagnostic operations on a router.

    Example:
        service = GatewayService(directory, settings)

        status, routes = await service.proxy("7", "ip/route/print", "GET")
        status, result = await service.test_connection(device_record)
    """

    def __init__(
        self,
        directory: RouterDirectory,
        settings: Settings,
        session_opener: Any = open_session,
    ) -> None:
        """Initialize gateway service.

        Args:
            directory: Router directory used to resolve router IDs
            settings: Application settings
            session_opener: Async context manager factory (device, settings) -> session
        """
        self.directory = directory
        self.settings = settings
        self.open_session = session_opener

    async def proxy(
        self,
        router_id: str,
        resource_path: str,
        method: str = "GET",
        body: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        authorization: str | None = None,
    ) -> tuple[int, Any]:
        """Pass a call through to a router's API.

        Args:
            router_id: Router identifier
            resource_path: Resource path, e.g. "ip/route/print"
            method: HTTP method of the inbound call
            body: Request parameters
            query: Query filters
            authorization: Caller's Authorization header (for the directory)

        Returns:
            Tuple of (status code, normalized body); failures yield the
            upstream status and {"message": ...}

        Raises:
            RouterNotFoundError: If the router is unknown
            ConfigurationError: If the router record is incomplete
        """
        device = await resolve_device(self.directory, router_id, authorization)
        path = resource_path.strip("/")

        try:
            async with self.open_session(device, self.settings) as session:
                result = await session.request(method, path, body, query)
        except ProtocolError as e:
            logger.error(
                f"Proxy error ({path}): {e.message}",
                extra={
                    "router_id": router_id,
                    "api_type": device.api_type,
                    "resource_path": path,
                    "method": method,
                    "status_code": e.status_code,
                },
            )
            record_gateway_request("proxy", False)
            return e.status_code, {"message": e.message}

        record_gateway_request("proxy", True)
        return 200, result

    async def test_connection(self, device: DeviceRecord) -> tuple[int, dict[str, Any]]:
        """Check that an (unsaved) router record can log in and read resources.

        Args:
            device: Candidate router record

        Returns:
            Tuple of (status code, {"success": bool, "message": str})
        """
        if not device.host or not device.user or not device.api_type:
            return 400, {"success": False, "message": INCOMPLETE_CONFIG_MESSAGE}
        if device.api_type not in SESSION_BUILDERS:
            raise ConfigurationError(
                f"Invalid router configuration: unsupported api_type '{device.api_type}'"
            )

        try:
            async with self.open_session(device, self.settings) as session:
                await session.probe()
        except ProtocolError as e:
            logger.warning(
                f"Test connection to {device.host} failed: {e.message}",
                extra={"api_type": device.api_type, "status_code": e.status_code},
            )
            record_gateway_request("test_connection", False)
            return e.status_code, {"success": False, "message": f"Connection failed: {e.message}"}

        record_gateway_request("test_connection", True)
        return 200, {"success": True, "message": CONNECTION_OK_MESSAGE}

    async def interface_stats(
        self, router_id: str, authorization: str | None = None
    ) -> list[dict[str, Any]]:
        """List interfaces with traffic counters.

        Raises:
            RouterNotFoundError: If the router is unknown
            ProtocolError: On device failure
        """
        device = await resolve_device(self.directory, router_id, authorization)
        async with self.open_session(device, self.settings) as session:
            interfaces = await session.print_with_flags("interface", "stats", "detail")

        record_gateway_request("interface_stats", True)
        return interfaces
