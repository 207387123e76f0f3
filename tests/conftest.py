"""Shared pytest fixtures.

These fixtures live at `tests/` scope so they are available to every test
module.

Key goals:
- Prevent global singletons (settings, correlation ID) from leaking state
  across tests.
- Provide an in-memory RouterOS device and session so services can be
  exercised without a router.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

import pytest

from routeros_gateway import config as config_module
from routeros_gateway.config import Settings
from routeros_gateway.domain.models import DeviceRecord
from routeros_gateway.domain.services.directory import StaticRouterDirectory
from routeros_gateway.infra.observability.logging import correlation_id_var, router_id_var
from routeros_gateway.infra.routeros.exceptions import ProtocolError
from routeros_gateway.infra.routeros.session import RouterSession


@pytest.fixture(autouse=True)
def _reset_global_singletons() -> None:
    """Ensure global singletons do not leak between tests."""
    config_module._settings = None
    token = correlation_id_var.set("")
    router_token = router_id_var.set(None)
    yield
    router_id_var.reset(router_token)
    correlation_id_var.reset(token)
    config_module._settings = None


class FakeDevice:
    """In-memory RouterOS configuration: resource path -> list of items."""

    def __init__(self, tables: Mapping[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {
            path: [dict(item) for item in items] for path, items in (tables or {}).items()
        }
        self._next_id = 1
        for items in self.tables.values():
            for item in items:
                if ".id" not in item:
                    item[".id"] = self._allocate_id()

    def _allocate_id(self) -> str:
        item_id = f"*{self._next_id:X}"
        self._next_id += 1
        return item_id

    def table(self, path: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(path, [])

    def seed(self, path: str, *items: dict[str, Any]) -> list[str]:
        """Add items to a table, returning their allocated IDs."""
        ids = []
        for values in items:
            item = {".id": self._allocate_id(), **values}
            self.table(path).append(item)
            ids.append(item[".id"])
        return ids


class FakeSession(RouterSession):
    """RouterSession over a FakeDevice, recording every call."""

    api_type = "fake"

    def __init__(self, device: FakeDevice, router_id: str | None = "1") -> None:
        super().__init__(router_id)
        self.device = device
        self.calls: list[tuple[Any, ...]] = []
        self.opened = False
        self.closed = False
        self.fail_on: str | None = None

    async def open(self) -> None:
        self.opened = True

    async def close(self) -> None:
        self.closed = True

    def _check(self, operation: str) -> None:
        if self.fail_on == operation:
            raise ProtocolError(f"{operation} failed", 500)

    async def _find(
        self, path: str, criteria: dict[str, Any], present: Sequence[str]
    ) -> list[dict[str, Any]]:
        self.calls.append(("find", path, criteria, tuple(present)))
        self._check("find")
        items = [
            item
            for item in self.device.table(path)
            if all(str(item.get(key)) == str(value) for key, value in criteria.items())
        ]
        return [{**item, "id": item[".id"]} for item in items]

    async def _add(self, path: str, values: dict[str, Any]) -> str | None:
        self.calls.append(("add", path, values))
        self._check("add")
        item = {".id": self.device._allocate_id(), **values}
        self.device.table(path).append(item)
        return item[".id"]

    async def _update(self, path: str, item_id: str, values: dict[str, Any]) -> None:
        self.calls.append(("update", path, item_id, values))
        self._check("update")
        for item in self.device.table(path):
            if item[".id"] == item_id:
                item.update(values)
                return
        raise ProtocolError("no such item", 404)

    async def _remove(self, path: str, item_id: str) -> None:
        self.calls.append(("remove", path, item_id))
        self._check("remove")
        table = self.device.table(path)
        table[:] = [item for item in table if item[".id"] != item_id]

    async def _request(
        self, method: str, path: str, body: Mapping[str, Any] | None, query: dict[str, Any]
    ) -> Any:
        self.calls.append(("request", method, path, body, query))
        self._check("request")
        return [{**item, "id": item[".id"]} for item in self.device.table(path)]

    async def _print_with_flags(self, path: str, flags: Sequence[str]) -> list[dict[str, Any]]:
        self.calls.append(("print", path, tuple(flags)))
        self._check("print")
        return [{**item, "id": item[".id"]} for item in self.device.table(path)]

    async def _probe(self) -> Any:
        self.calls.append(("probe",))
        self._check("probe")
        return {"uptime": "1d"}


class SessionOpener:
    """Stand-in for `open_session` handing out one FakeSession."""

    def __init__(self, session: FakeSession) -> None:
        self.session = session
        self.devices: list[DeviceRecord] = []

    @asynccontextmanager
    async def __call__(self, device: DeviceRecord, settings: Settings) -> AsyncIterator[FakeSession]:
        self.devices.append(device)
        async with self.session:
            yield self.session


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def fake_device() -> FakeDevice:
    return FakeDevice()


@pytest.fixture
def fake_session(fake_device: FakeDevice) -> FakeSession:
    return FakeSession(fake_device)


@pytest.fixture
def session_opener(fake_session: FakeSession) -> SessionOpener:
    return SessionOpener(fake_session)


@pytest.fixture
def directory() -> StaticRouterDirectory:
    return StaticRouterDirectory(
        [
            DeviceRecord(id="1", host="10.0.0.1", user="api", password="pw", api_type="rest"),
            DeviceRecord(id="2", host="10.0.0.2", user="api", password="pw", api_type="legacy"),
        ]
    )
