"""RouterOS device access.

Business code opens a session from a device record and works against the
`RouterSession` interface; the protocol clients underneath are the legacy
binary API (librouteros) and the v7 REST API (httpx).

    async with open_session(device, settings) as session:
        routes = await session.find("ip/route", present=["check-gateway"])
"""

from routeros_gateway.infra.routeros.exceptions import (
    ProtocolError,
    RouterOSConnectionError,
    RouterOSError,
    RouterOSTrapError,
    error_for_status,
)
from routeros_gateway.infra.routeros.factory import create_session, open_session, validate_device
from routeros_gateway.infra.routeros.legacy_client import RouterOSLegacyClient
from routeros_gateway.infra.routeros.rest_client import RouterOSRestClient
from routeros_gateway.infra.routeros.session import LegacySession, RestSession, RouterSession

__all__ = [
    "LegacySession",
    "ProtocolError",
    "RestSession",
    "RouterOSConnectionError",
    "RouterOSError",
    "RouterOSLegacyClient",
    "RouterOSRestClient",
    "RouterOSTrapError",
    "RouterSession",
    "create_session",
    "error_for_status",
    "open_session",
    "validate_device",
]
