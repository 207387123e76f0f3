"""Protocol client factory.

The single place where a device record's `api_type` is dispatched on. The
factory validates the record, builds the matching protocol client without
any network I/O, and wraps it in the matching session variant.

Example:
    async with open_session(device, settings) as session:
        resource = await session.probe()
"""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from routeros_gateway.config import Settings
from routeros_gateway.domain.exceptions import ConfigurationError
from routeros_gateway.domain.models import LEGACY_API, REST_API, DeviceRecord
from routeros_gateway.infra.routeros.legacy_client import RouterOSLegacyClient
from routeros_gateway.infra.routeros.rest_client import RouterOSRestClient
from routeros_gateway.infra.routeros.session import LegacySession, RestSession, RouterSession

logger = logging.getLogger(__name__)


def _legacy_session(device: DeviceRecord, settings: Settings) -> RouterSession:
    client = RouterOSLegacyClient(
        host=device.host,
        port=device.effective_port,
        username=device.user,
        password=device.password,
        timeout_seconds=settings.device_timeout_seconds,
        tls_port=settings.legacy_tls_port,
    )
    return LegacySession(client, router_id=device.id)


def _rest_session(device: DeviceRecord, settings: Settings) -> RouterSession:
    client = RouterOSRestClient(
        host=device.host,
        port=device.effective_port,
        username=device.user,
        password=device.password,
        timeout_seconds=settings.device_timeout_seconds,
        tls_port=settings.rest_tls_port,
    )
    return RestSession(client, router_id=device.id)


SESSION_BUILDERS: dict[str, Callable[[DeviceRecord, Settings], RouterSession]] = {
    LEGACY_API: _legacy_session,
    REST_API: _rest_session,
}


def validate_device(device: DeviceRecord) -> None:
    """Check that a device record can be turned into a client.

    Raises:
        ConfigurationError: If host or user is empty, or api_type is unknown
    """
    context = {"router_id": device.id}
    if not device.host:
        raise ConfigurationError("Invalid router configuration: host is required", context=context)
    if not device.user:
        raise ConfigurationError("Invalid router configuration: user is required", context=context)
    if device.api_type not in SESSION_BUILDERS:
        raise ConfigurationError(
            f"Invalid router configuration: unsupported api_type '{device.api_type}'",
            context={**context, "supported": sorted(SESSION_BUILDERS)},
        )


def create_session(device: DeviceRecord, settings: Settings) -> RouterSession:
    """Build an unopened session for a device.

    Args:
        device: Device record from the router directory
        settings: Application settings (timeouts, TLS ports)

    Returns:
        LegacySession or RestSession, not yet connected

    Raises:
        ConfigurationError: If the record is incomplete
    """
    validate_device(device)
    session = SESSION_BUILDERS[device.api_type](device, settings)
    logger.debug(
        f"Created {device.api_type} session for {device.host}:{device.effective_port}",
        extra={"router_id": device.id, "api_type": device.api_type},
    )
    return session


@asynccontextmanager
async def open_session(device: DeviceRecord, settings: Settings) -> AsyncIterator[RouterSession]:
    """Open a session for the duration of one gateway call.

    The session is closed on every exit path, including failures in the
    middle of a command sequence.
    """
    session = create_session(device, settings)
    async with session:
        yield session
