"""Subscriber billing automation.

Keeps the device-side artifacts of a subscriber in line with their billing
state. Every artifact is upserted by its natural key, so repeating an
update converges to the same device state:

- address-list entry (address + authorized list): comment set to the
  lease state JSON; never created here (provisioning owns it)
- simple queue (subscriber identifier): `max-limit` updated, or created
  bound to the subscriber address
- scheduler job (name derived from the address): removed and re-created
  with the new start date/time; a one-shot deactivation script
"""

import contextlib
import logging
from datetime import datetime
from typing import Any

from routeros_gateway.config import Settings
from routeros_gateway.domain.expiration import (
    compute_expiration,
    format_due_date,
    format_scheduler_datetime,
)
from routeros_gateway.domain.models import (
    BillingUpdate,
    BillingUpdateResult,
    CommentPayload,
)
from routeros_gateway.domain.scripts import (
    build_deactivation_script,
    format_rate_limit,
    scheduler_job_name,
)
from routeros_gateway.domain.services.directory import RouterDirectory, resolve_device
from routeros_gateway.infra.locks import KeyedLock
from routeros_gateway.infra.observability.metrics import (
    record_artifact_upsert,
    record_gateway_request,
)
from routeros_gateway.infra.routeros.factory import open_session
from routeros_gateway.infra.routeros.session import RouterSession

logger = logging.getLogger(__name__)

ADDRESS_LIST_PATH = "ip/firewall/address-list"
QUEUE_PATH = "queue/simple"
SCHEDULER_PATH = "system/scheduler"

# One-shot scheduler job
RUN_ONCE_INTERVAL = "0s"


def build_comment(update: BillingUpdate, expires_at: datetime) -> CommentPayload:
    """Lease state stored on the subscriber's address-list entry."""
    due_date, due_date_time = format_due_date(expires_at)
    return CommentPayload(
        customer_info=update.customer_info,
        contact_number=update.contact_number,
        email=update.email,
        plan_name=(update.plan.name or "") if update.plan is not None else "",
        due_date=due_date,
        due_date_time=due_date_time,
        plan_type=update.plan_type or "prepaid",
    )


class BillingService:
    """Service for subscriber renewal and lease expiration.

    Example:
        service = BillingService(directory, settings)
        result = await service.update_subscriber(
            "7",
            BillingUpdate(address="10.0.0.5", macAddress="AA:BB:CC:DD:EE:FF",
                          customerInfo="alice", graceDays=3, speedLimit=10),
        )
    """

    def __init__(
        self,
        directory: RouterDirectory,
        settings: Settings,
        session_opener: Any = open_session,
        locks: KeyedLock | None = None,
    ) -> None:
        """Initialize billing service.

        Args:
            directory: Router directory used to resolve router IDs
            settings: Application settings (list names, time zone, locking)
            session_opener: Async context manager factory (device, settings) -> session
            locks: Per-subscriber upsert locks (shared across requests)
        """
        self.directory = directory
        self.settings = settings
        self.open_session = session_opener
        self.locks = locks if locks is not None else KeyedLock()

    def _upsert_guard(self, router_id: str, address: str) -> Any:
        if self.settings.serialize_upserts:
            return self.locks.hold((router_id, address))
        return contextlib.nullcontext()

    async def update_subscriber(
        self,
        router_id: str,
        update: BillingUpdate,
        authorization: str | None = None,
        now: datetime | None = None,
    ) -> BillingUpdateResult:
        """Apply a subscriber's billing state to the router.

        Everything that goes into device scripts is computed and validated
        before the session is opened.

        Args:
            router_id: Router identifier
            update: Subscriber update
            authorization: Caller's Authorization header (for the directory)
            now: Current time (defaults to local time)

        Returns:
            BillingUpdateResult describing the applied changes

        Raises:
            RouterNotFoundError: If the router is unknown
            ScriptValidationError: If address or hardware address is malformed
            ProtocolError: On device failure
        """
        settings = self.settings
        device = await resolve_device(self.directory, router_id, authorization)

        expires_at = compute_expiration(
            update.expires_at,
            update.grace_days,
            update.grace_time,
            update.plan,
            now,
            tz=settings.device_tz,
        )
        on_event = build_deactivation_script(
            update.address,
            update.mac_address,
            authorized_list=settings.authorized_list,
            pending_list=settings.pending_list,
            pending_timeout=settings.pending_timeout,
        )
        job_name = scheduler_job_name(update.address, settings.scheduler_name_prefix)
        start_date, start_time = format_scheduler_datetime(expires_at, settings.device_tz)
        max_limit = format_rate_limit(update.speed_limit) if update.speed_limit else None
        comment = build_comment(update, expires_at).to_comment()

        result = BillingUpdateResult(expires_at=expires_at, scheduler_name=job_name)

        async with self._upsert_guard(router_id, update.address):
            async with self.open_session(device, settings) as session:
                result.comment_updated = await self.update_address_list_comment(
                    session, update.address, comment
                )
                if max_limit is not None and update.customer_info:
                    result.queue_action = await self.upsert_queue(
                        session, update.customer_info, update.address, max_limit
                    )
                result.scheduler_replaced = await self.upsert_scheduler(
                    session, job_name, start_date, start_time, on_event
                )

        record_gateway_request("update_subscriber", True)
        logger.info(
            f"Subscriber {update.address} expires {start_date} {start_time}",
            extra={"router_id": router_id, "address": update.address, "api_type": device.api_type},
        )
        return result

    async def update_address_list_comment(
        self, session: RouterSession, address: str, comment: str
    ) -> bool:
        """Set the comment of the subscriber's authorized address-list entry.

        Returns:
            True if an entry was updated, False if none exists
        """
        list_name = self.settings.authorized_list
        entries = await session.find(ADDRESS_LIST_PATH, {"address": address, "list": list_name})
        if not entries:
            logger.warning(
                f"No {list_name} entry for {address}, comment not updated",
                extra={"router_id": session.router_id, "address": address, "artifact": "address_list"},
            )
            record_artifact_upsert("address_list", "skipped")
            return False

        await session.update(ADDRESS_LIST_PATH, entries[0]["id"], {"comment": comment})
        record_artifact_upsert("address_list", "updated")
        return True

    async def upsert_queue(
        self, session: RouterSession, name: str, target: str, max_limit: str
    ) -> str:
        """Update the limit of the subscriber's simple queue, or create it.

        Returns:
            "updated" or "created"
        """
        queues = await session.find(QUEUE_PATH, {"name": name})
        if queues:
            if len(queues) > 1:
                logger.warning(
                    f"{len(queues)} simple queues named {name!r}, updating the first",
                    extra={"router_id": session.router_id, "artifact": "queue"},
                )
            await session.update(QUEUE_PATH, queues[0]["id"], {"max-limit": max_limit})
            record_artifact_upsert("queue", "updated")
            return "updated"

        await session.add(QUEUE_PATH, {"name": name, "target": target, "max-limit": max_limit})
        record_artifact_upsert("queue", "created")
        return "created"

    async def upsert_scheduler(
        self,
        session: RouterSession,
        name: str,
        start_date: str,
        start_time: str,
        on_event: str,
    ) -> bool:
        """Replace the subscriber's deactivation job.

        Jobs are removed and re-created rather than patched; every job
        carrying the name is removed so duplicates converge to one.

        Returns:
            True if an existing job was replaced
        """
        existing = await session.find(SCHEDULER_PATH, {"name": name})
        for job in existing:
            await session.remove(SCHEDULER_PATH, job["id"])

        await session.add(
            SCHEDULER_PATH,
            {
                "name": name,
                "start-date": start_date,
                "start-time": start_time,
                "interval": RUN_ONCE_INTERVAL,
                "on-event": on_event,
            },
        )
        record_artifact_upsert("scheduler", "replaced" if existing else "created")
        logger.debug(
            f"Scheduler job {name} set for {start_date} {start_time}",
            extra={"router_id": session.router_id, "artifact": "scheduler"},
        )
        return bool(existing)
