"""Tests for GatewayService (passthrough, connection test, interface stats)."""

import pytest

from routeros_gateway.domain.exceptions import ConfigurationError, RouterNotFoundError
from routeros_gateway.domain.models import DeviceRecord
from routeros_gateway.domain.services.gateway import (
    CONNECTION_OK_MESSAGE,
    INCOMPLETE_CONFIG_MESSAGE,
    GatewayService,
)
from routeros_gateway.infra.routeros.exceptions import ProtocolError


@pytest.fixture
def service(directory, settings, session_opener) -> GatewayService:
    return GatewayService(directory, settings, session_opener)


class TestProxy:
    @pytest.mark.asyncio
    async def test_read_returns_normalized_items(self, service, fake_device, fake_session) -> None:
        fake_device.seed("ip/route/print", {"dst-address": "0.0.0.0/0"})

        status, body = await service.proxy("1", "/ip/route/print/", "get", query={"disabled": "false"})

        assert status == 200
        assert body == [{".id": "*1", "dst-address": "0.0.0.0/0", "id": "*1"}]
        assert fake_session.calls == [("request", "GET", "ip/route/print", None, {"disabled": "false"})]

    @pytest.mark.asyncio
    async def test_resolves_router_through_directory(self, service, session_opener) -> None:
        await service.proxy("2", "system/identity", "GET")

        assert [device.host for device in session_opener.devices] == ["10.0.0.2"]

    @pytest.mark.asyncio
    async def test_device_error_maps_to_status_and_message(self, service, fake_session) -> None:
        fake_session.fail_on = "request"

        status, body = await service.proxy("1", "ip/route", "POST", {"gateway": "x"})

        assert status == 500
        assert body == {"message": "request failed"}
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_unknown_router_raises(self, service, session_opener) -> None:
        with pytest.raises(RouterNotFoundError):
            await service.proxy("missing", "ip/route", "GET")

        assert session_opener.devices == []


class TestConnection:
    @pytest.mark.asyncio
    async def test_success(self, service, fake_session) -> None:
        device = DeviceRecord(host="10.0.0.9", user="api", password="pw", api_type="legacy")

        status, body = await service.test_connection(device)

        assert status == 200
        assert body == {"success": True, "message": CONNECTION_OK_MESSAGE}
        assert fake_session.calls == [("probe",)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["host", "user", "api_type"])
    async def test_incomplete_record(self, service, session_opener, missing: str) -> None:
        data = {"host": "10.0.0.9", "user": "api", "api_type": "rest", missing: None}

        status, body = await service.test_connection(DeviceRecord.model_validate(data))

        assert status == 400
        assert body == {"success": False, "message": INCOMPLETE_CONFIG_MESSAGE}
        assert session_opener.devices == []

    @pytest.mark.asyncio
    async def test_unknown_api_type(self, service) -> None:
        device = DeviceRecord(host="10.0.0.9", user="api", api_type="telnet")

        with pytest.raises(ConfigurationError, match="telnet"):
            await service.test_connection(device)

    @pytest.mark.asyncio
    async def test_failure_reports_device_message(self, service, fake_session) -> None:
        fake_session.fail_on = "probe"
        device = DeviceRecord(host="10.0.0.9", user="api", api_type="rest")

        status, body = await service.test_connection(device)

        assert status == 500
        assert body == {"success": False, "message": "Connection failed: probe failed"}


class TestInterfaceStats:
    @pytest.mark.asyncio
    async def test_prints_with_stats_and_detail(self, service, fake_device, fake_session) -> None:
        fake_device.seed("interface", {"name": "ether1", "rx-byte": "1024"})

        interfaces = await service.interface_stats("1")

        assert interfaces[0]["name"] == "ether1"
        assert fake_session.calls == [("print", "interface", ("stats", "detail"))]

    @pytest.mark.asyncio
    async def test_device_error_propagates(self, service, fake_session) -> None:
        fake_session.fail_on = "print"

        with pytest.raises(ProtocolError):
            await service.interface_stats("1")
