"""Router directory: resolves router IDs to device records.

Device records are owned by the panel service; the gateway only reads
them, once per call, and passes them explicitly into the client factory.

Two implementations:
- HttpRouterDirectory: `GET {base_url}/api/db/routers/{id}` on the panel
  service, forwarding the caller's Authorization header
- StaticRouterDirectory: fixed records, optionally loaded from YAML/JSON
"""

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

import httpx
import yaml
from pydantic import ValidationError

from routeros_gateway.config import Settings
from routeros_gateway.domain.exceptions import (
    ConfigurationError,
    DirectoryError,
    RouterNotFoundError,
)
from routeros_gateway.domain.models import DeviceRecord
from routeros_gateway.infra.observability.logging import bind_router_id

logger = logging.getLogger(__name__)

PANEL_UNREACHABLE_MESSAGE = "Internal Server Error: Could not communicate with main panel service."


class RouterDirectory(Protocol):
    """Lookup of device records by router ID."""

    async def get(self, router_id: str, authorization: str | None = None) -> DeviceRecord | None:
        """Return the device record, or None when the router is unknown."""
        ...

    async def close(self) -> None: ...


class StaticRouterDirectory:
    """In-memory directory for standalone deployments and tests.

    Example:
        directory = StaticRouterDirectory.from_file("routers.yaml")
        device = await directory.get("1")
    """

    def __init__(self, records: Iterable[DeviceRecord] = ()) -> None:
        self._records: dict[str, DeviceRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: DeviceRecord) -> None:
        if not record.id:
            raise ValueError("Directory records need an id")
        self._records[record.id] = record

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, router_id: str, authorization: str | None = None) -> DeviceRecord | None:
        record = self._records.get(str(router_id))
        return record.model_copy() if record is not None else None

    async def close(self) -> None:
        pass

    @classmethod
    def from_data(cls, data: Any) -> "StaticRouterDirectory":
        """Build from a list of records or a mapping of router ID to record.

        Example:
            StaticRouterDirectory.from_data({"1": {"host": "10.0.0.1", "user": "api",
                                                   "api_type": "rest"}})
        """
        if data is None:
            return cls()
        if isinstance(data, Mapping):
            data = data.get("routers", data)
        if isinstance(data, Mapping):
            records = [
                DeviceRecord.model_validate({**dict(value), "id": key})
                for key, value in data.items()
            ]
        elif isinstance(data, list):
            records = [DeviceRecord.model_validate(item) for item in data]
        else:
            raise ValueError(f"Unsupported router directory format: {type(data).__name__}")
        return cls(records)

    @classmethod
    def from_file(cls, path: Path | str) -> "StaticRouterDirectory":
        """Load records from a YAML (.yaml/.yml) or JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the format is unsupported
        """
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Router directory file not found: {file_path}")

        suffix = file_path.suffix.lower()
        with open(file_path) as f:
            if suffix in [".yaml", ".yml"]:
                data = yaml.safe_load(f)
            elif suffix == ".json":
                data = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported router directory format: {suffix}. Use .yaml, .yml, or .json"
                )

        directory = cls.from_data(data)
        logger.info(f"Loaded {len(directory)} router records from {file_path}")
        return directory


class HttpRouterDirectory:
    """Directory backed by the panel service's router database API."""

    def __init__(self, base_url: str, timeout_seconds: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = httpx.Timeout(timeout_seconds)
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def get(self, router_id: str, authorization: str | None = None) -> DeviceRecord | None:
        """Fetch a router record from the panel service.

        Args:
            router_id: Router identifier
            authorization: Caller's Authorization header, forwarded as-is

        Returns:
            DeviceRecord, or None if the panel reports 404 or an empty body

        Raises:
            DirectoryError: Panel unreachable or answering with another error,
                or answering with a record that does not validate
        """
        headers = {"Authorization": authorization} if authorization else {}
        path = f"/api/db/routers/{quote(str(router_id), safe='')}"

        try:
            response = await self._get_client().get(path, headers=headers)
        except httpx.HTTPError as e:
            logger.error(
                f"Error fetching router config from panel for ID {router_id}: {e}",
                extra={"router_id": router_id},
            )
            raise DirectoryError(PANEL_UNREACHABLE_MESSAGE, context={"router_id": router_id}) from e

        if response.status_code == 404:
            logger.warning(f"Router ID {router_id} not found in panel", extra={"router_id": router_id})
            return None

        if response.status_code >= 400:
            message = "Router not found"
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict) and payload.get("message"):
                message = str(payload["message"])
            raise DirectoryError(
                message, status_code=response.status_code, context={"router_id": router_id}
            )

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise DirectoryError(
                "Panel returned an invalid router record", context={"router_id": router_id}
            ) from e
        if not payload:
            return None

        try:
            record = DeviceRecord.model_validate(payload)
        except ValidationError as e:
            logger.error(
                f"Panel returned an invalid record for router ID {router_id}: {e}",
                extra={"router_id": router_id},
            )
            raise DirectoryError(
                "Panel returned an invalid router record", context={"router_id": router_id}
            ) from e
        if record.id is None:
            record.id = str(router_id)
        return record


def create_directory(settings: Settings) -> RouterDirectory:
    """Build the directory configured in settings.

    A `directory_file` wins over `directory_url`.
    """
    if settings.directory_file is not None:
        return StaticRouterDirectory.from_file(settings.directory_file)
    return HttpRouterDirectory(settings.directory_url, settings.directory_timeout_seconds)


async def resolve_device(
    directory: RouterDirectory, router_id: str, authorization: str | None = None
) -> DeviceRecord:
    """Look up a router, failing fast before any device I/O.

    Raises:
        RouterNotFoundError: If the directory has no record for the ID
        DirectoryError: If the directory cannot be queried
    """
    if not router_id:
        raise ConfigurationError("Router ID missing")
    device = await directory.get(router_id, authorization)
    if device is None:
        raise RouterNotFoundError(router_id)
    bind_router_id(str(router_id))
    return device
