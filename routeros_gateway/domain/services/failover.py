"""WAN failover via check-gateway routes.

Failover is "enabled" when at least one route carrying a check-gateway
probe is not disabled. Toggling is all-or-nothing: every monitored route
gets `disabled = not enabled`.
"""

import logging
from typing import Any

from routeros_gateway.config import Settings
from routeros_gateway.domain.models import FailoverStatus
from routeros_gateway.domain.services.directory import RouterDirectory, resolve_device
from routeros_gateway.infra.observability.metrics import (
    record_artifact_upsert,
    record_gateway_request,
)
from routeros_gateway.infra.routeros.factory import open_session
from routeros_gateway.infra.routeros.session import RouterSession

logger = logging.getLogger(__name__)

ROUTE_PATH = "ip/route"
CHECK_GATEWAY = "check-gateway"
NO_MONITORED_ROUTES_MESSAGE = "No routes with check-gateway found."


def is_disabled(route: dict[str, Any]) -> bool:
    """Whether a route is disabled.

    The legacy API reports "true"/"false" strings, REST may report either
    strings or booleans; an absent flag means enabled.
    """
    value = route.get("disabled")
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes")
    return False


class FailoverService:
    """Service for reading and toggling WAN failover.

    Example:
        service = FailoverService(directory, settings)
        status = await service.status("7")
        await service.configure("7", enabled=False)
    """

    def __init__(
        self,
        directory: RouterDirectory,
        settings: Settings,
        session_opener: Any = open_session,
    ) -> None:
        self.directory = directory
        self.settings = settings
        self.open_session = session_opener

    async def monitored_routes(self, session: RouterSession) -> list[dict[str, Any]]:
        """Routes carrying a check-gateway probe, in device order."""
        return await session.find(ROUTE_PATH, present=[CHECK_GATEWAY])

    async def status(self, router_id: str, authorization: str | None = None) -> FailoverStatus:
        """Read the failover state of a router.

        Raises:
            RouterNotFoundError: If the router is unknown
            ProtocolError: On device failure
        """
        device = await resolve_device(self.directory, router_id, authorization)
        async with self.open_session(device, self.settings) as session:
            routes = await self.monitored_routes(session)

        record_gateway_request("failover_status", True)
        if not routes:
            return FailoverStatus(enabled=False, message=NO_MONITORED_ROUTES_MESSAGE)
        return FailoverStatus(
            enabled=any(not is_disabled(route) for route in routes),
            monitored_routes=len(routes),
        )

    async def configure(
        self, router_id: str, enabled: bool, authorization: str | None = None
    ) -> dict[str, Any]:
        """Enable or disable every monitored route.

        Returns:
            {"message": ..., "routes": <number of routes changed>}
        """
        device = await resolve_device(self.directory, router_id, authorization)
        async with self.open_session(device, self.settings) as session:
            routes = await self.monitored_routes(session)
            for route in routes:
                await session.update(ROUTE_PATH, route["id"], {"disabled": not enabled})
                record_artifact_upsert("route", "updated")

        state = "enabled" if enabled else "disabled"
        record_gateway_request("failover_configure", True)
        logger.info(
            f"Failover routes {state} ({len(routes)} routes)",
            extra={"router_id": router_id, "api_type": device.api_type},
        )
        return {"message": f"Failover routes {state}", "routes": len(routes)}
