"""Tests for protocol sessions (wire translation of session operations)."""

from unittest.mock import AsyncMock

import pytest

from routeros_gateway.infra.routeros.legacy_client import RouterOSLegacyClient
from routeros_gateway.infra.routeros.rest_client import RouterOSRestClient
from routeros_gateway.infra.routeros.session import (
    LegacySession,
    RestSession,
    legacy_command,
    rest_path,
)


def _legacy(replies: list[dict] | None = None) -> tuple[LegacySession, AsyncMock]:
    client = AsyncMock(spec=RouterOSLegacyClient)
    client.execute_safe.return_value = replies or []
    client.write.return_value = []
    return LegacySession(client, router_id="2"), client


def _rest(result: object = None) -> tuple[RestSession, AsyncMock]:
    client = AsyncMock(spec=RouterOSRestClient)
    client.get.return_value = result if result is not None else []
    client.request.return_value = result if result is not None else []
    client.put.return_value = {".id": "*9"}
    client.post.return_value = result if result is not None else []
    return RestSession(client, router_id="1"), client


class TestPathTranslation:
    def test_rest_read_strips_print(self) -> None:
        assert rest_path("GET", "ip/route/print") == "/ip/route"
        assert rest_path("get", "/ip/route/print/") == "/ip/route"

    def test_rest_non_read_keeps_print(self) -> None:
        assert rest_path("POST", "interface/print") == "/interface/print"

    def test_rest_plain_path(self) -> None:
        assert rest_path("GET", "system/resource") == "/system/resource"

    def test_legacy_keeps_print(self) -> None:
        assert legacy_command("ip/route/print") == "/ip/route/print"
        assert legacy_command("ip/route", "set") == "/ip/route/set"

    @pytest.mark.asyncio
    async def test_proxy_read_same_call_per_protocol(self) -> None:
        rest_session, rest_client = _rest([{".id": "*1"}])
        legacy_session, legacy_client = _legacy([{".id": "*1"}])

        rest_result = await rest_session.request("GET", "ip/route/print")
        legacy_result = await legacy_session.request("GET", "ip/route/print")

        assert rest_client.request.await_args.args[:2] == ("GET", "/ip/route")
        legacy_client.execute_safe.assert_awaited_once_with("/ip/route/print")
        assert rest_result == legacy_result == [{".id": "*1", "id": "*1"}]


class TestLegacySession:
    @pytest.mark.asyncio
    async def test_open_and_close_manage_connection(self) -> None:
        session, client = _legacy()

        async with session:
            client.connect.assert_awaited_once()

        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_close_on_failure(self) -> None:
        session, client = _legacy()

        with pytest.raises(RuntimeError):
            async with session:
                raise RuntimeError("boom")

        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_find_builds_query_words(self) -> None:
        session, client = _legacy(
            [{".id": "*1", "address": "10.0.0.5", "list": "authorized-dhcp-users"}]
        )

        result = await session.find(
            "ip/firewall/address-list", {"address": "10.0.0.5", "list": "authorized-dhcp-users"}
        )

        client.execute_safe.assert_awaited_once_with(
            "/ip/firewall/address-list/print",
            "?address=10.0.0.5",
            "?list=authorized-dhcp-users",
        )
        assert result[0]["id"] == "*1"

    @pytest.mark.asyncio
    async def test_find_present_filters_items(self) -> None:
        session, client = _legacy(
            [
                {".id": "*1", "check_gateway": "ping"},
                {".id": "*2", "check-gateway": ""},
            ]
        )

        result = await session.find("ip/route", present=["check-gateway"])

        client.execute_safe.assert_awaited_once_with("/ip/route/print", "?check-gateway")
        assert [route["id"] for route in result] == ["*1"]

    @pytest.mark.asyncio
    async def test_add_returns_ret(self) -> None:
        session, client = _legacy()
        client.write.return_value = [{"ret": "*1A"}]

        item_id = await session.add("queue/simple", {"name": "alice", "max-limit": "10M/10M"})

        assert item_id == "*1A"
        client.write.assert_awaited_once_with(
            "/queue/simple/add", {"name": "alice", "max-limit": "10M/10M"}
        )

    @pytest.mark.asyncio
    async def test_update_and_remove_use_id_attribute(self) -> None:
        session, client = _legacy()

        await session.update("ip/route", "*3", {"disabled": False})
        await session.remove("system/scheduler", "*7")

        assert client.write.await_args_list[0].args == ("/ip/route/set", {".id": "*3", "disabled": False})
        assert client.write.await_args_list[1].args == ("/system/scheduler/remove", {".id": "*7"})

    @pytest.mark.asyncio
    async def test_request_with_body_writes(self) -> None:
        session, client = _legacy()

        result = await session.request("POST", "ip/dns/set", {"servers": "1.1.1.1"})

        assert result == {"message": "Command executed"}
        client.write.assert_awaited_once_with("/ip/dns/set", {"servers": "1.1.1.1"})
        client.execute_safe.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_request_without_body_reads(self) -> None:
        session, client = _legacy([{".id": "*1", "mac_address": "AA:BB:CC:DD:EE:FF"}])

        result = await session.request("POST", "interface/ethernet/print", None, {"name": "ether1"})

        client.execute_safe.assert_awaited_once_with("/interface/ethernet/print", "?name=ether1")
        assert result == [{".id": "*1", "mac-address": "AA:BB:CC:DD:EE:FF", "id": "*1"}]

    @pytest.mark.asyncio
    async def test_print_with_flags(self) -> None:
        session, client = _legacy([{".id": "*1", "rx_byte": "10"}])

        result = await session.print_with_flags("interface", "stats", "detail")

        client.execute_safe.assert_awaited_once_with("/interface/print", "=stats=", "=detail=")
        assert result[0]["rx-byte"] == "10"

    @pytest.mark.asyncio
    async def test_probe(self) -> None:
        session, client = _legacy([{"uptime": "1d"}])

        await session.probe()

        client.execute_safe.assert_awaited_once_with("/system/resource/print")


class TestRestSession:
    @pytest.mark.asyncio
    async def test_open_is_noop_close_releases_client(self) -> None:
        session, client = _rest()

        async with session:
            pass

        client.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_find_uses_query_params(self) -> None:
        session, client = _rest([{".id": "*4", "name": "deactivate-dhcp-10-0-0-5"}])

        result = await session.find("system/scheduler", {"name": "deactivate-dhcp-10-0-0-5"})

        client.get.assert_awaited_once_with(
            "/system/scheduler", params={"name": "deactivate-dhcp-10-0-0-5"}
        )
        assert result == [{".id": "*4", "name": "deactivate-dhcp-10-0-0-5", "id": "*4"}]

    @pytest.mark.asyncio
    async def test_find_present_filters_client_side(self) -> None:
        session, client = _rest(
            [
                {".id": "*1", "check-gateway": "ping", "disabled": "false"},
                {".id": "*2", "disabled": "false"},
            ]
        )

        result = await session.find("ip/route", present=["check-gateway"])

        client.get.assert_awaited_once_with("/ip/route", params=None)
        assert [route["id"] for route in result] == ["*1"]

    @pytest.mark.asyncio
    async def test_find_non_list_is_empty(self) -> None:
        session, _ = _rest({"unexpected": "object"})

        assert await session.find("ip/route") == []

    @pytest.mark.asyncio
    async def test_add_puts_string_values(self) -> None:
        session, client = _rest()

        item_id = await session.add("queue/simple", {"name": "alice", "limit-at": 5, "disabled": False})

        assert item_id == "*9"
        client.put.assert_awaited_once_with(
            "/queue/simple", {"name": "alice", "limit-at": "5", "disabled": "false"}
        )

    @pytest.mark.asyncio
    async def test_update_patches_item(self) -> None:
        session, client = _rest()

        await session.update("ip/route", "*3", {"disabled": True})

        client.patch.assert_awaited_once_with("/ip/route/*3", {"disabled": "true"})

    @pytest.mark.asyncio
    async def test_remove_deletes_item(self) -> None:
        session, client = _rest()

        await session.remove("system/scheduler", "*7")

        client.delete.assert_awaited_once_with("/system/scheduler/*7")

    @pytest.mark.asyncio
    async def test_request_passes_method_and_body(self) -> None:
        session, client = _rest({".id": "*1", "name": "x"})

        result = await session.request("patch", "ip/dns", {"servers": "1.1.1.1"}, {"a": 1})

        client.request.assert_awaited_once_with(
            "PATCH", "/ip/dns", json={"servers": "1.1.1.1"}, params={"a": "1"}
        )
        assert result["id"] == "*1"

    @pytest.mark.asyncio
    async def test_print_with_flags_posts(self) -> None:
        session, client = _rest([{".id": "*1", "rx-byte": 10}])

        await session.print_with_flags("interface", "stats", "detail")

        client.post.assert_awaited_once_with("/interface/print", {"stats": True, "detail": True})

    @pytest.mark.asyncio
    async def test_probe(self) -> None:
        session, client = _rest({"uptime": "1d"})

        assert await session.probe() == {"uptime": "1d"}
        client.get.assert_awaited_once_with("/system/resource")
