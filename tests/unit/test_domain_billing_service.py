"""Tests for BillingService (subscriber upserts on an in-memory device)."""

import json
from datetime import UTC, datetime, timedelta

import pytest

from routeros_gateway.config import Settings
from routeros_gateway.domain.exceptions import RouterNotFoundError, ScriptValidationError
from routeros_gateway.domain.expiration import format_scheduler_datetime
from routeros_gateway.domain.models import BillingUpdate
from routeros_gateway.domain.scripts import build_deactivation_script
from routeros_gateway.domain.services.billing import (
    ADDRESS_LIST_PATH,
    QUEUE_PATH,
    SCHEDULER_PATH,
    BillingService,
    build_comment,
)
from routeros_gateway.infra.routeros.exceptions import ProtocolError

NOW = datetime(2024, 3, 10, 9, 30, tzinfo=UTC)


def _update(**overrides: object) -> BillingUpdate:
    data = {
        "address": "10.0.0.5",
        "macAddress": "AA:BB:CC:DD:EE:FF",
        "customerInfo": "alice",
        "contactNumber": "09171234567",
        "email": "alice@example.com",
        "plan": {"name": "Fiber 10", "cycle_days": 30},
        "planType": "postpaid",
    }
    data.update(overrides)
    return BillingUpdate.model_validate(data)


@pytest.fixture
def service(directory, settings, session_opener) -> BillingService:
    return BillingService(directory, settings, session_opener)


class TestSchedulerUpsert:
    @pytest.mark.asyncio
    async def test_second_update_replaces_job(self, service, fake_device) -> None:
        first = datetime(2024, 4, 1, 8, 0, tzinfo=UTC)
        second = datetime(2024, 5, 1, 20, 45, tzinfo=UTC)

        await service.update_subscriber("1", _update(expiresAt=first.isoformat()), now=NOW)
        result = await service.update_subscriber("1", _update(expiresAt=second.isoformat()), now=NOW)

        jobs = fake_device.table(SCHEDULER_PATH)
        assert len(jobs) == 1
        start_date, start_time = format_scheduler_datetime(second)
        assert jobs[0]["name"] == "deactivate-dhcp-10-0-0-5"
        assert jobs[0]["start-date"] == start_date
        assert jobs[0]["start-time"] == start_time
        assert jobs[0]["interval"] == "0s"
        assert jobs[0]["on-event"] == build_deactivation_script("10.0.0.5", "AA:BB:CC:DD:EE:FF")
        assert result.scheduler_replaced is True

    @pytest.mark.asyncio
    async def test_duplicate_jobs_converge(self, service, fake_device) -> None:
        fake_device.seed(
            SCHEDULER_PATH,
            {"name": "deactivate-dhcp-10-0-0-5", "start-date": "jan/01/2024"},
            {"name": "deactivate-dhcp-10-0-0-5", "start-date": "jan/02/2024"},
            {"name": "deactivate-dhcp-10-0-0-6", "start-date": "jan/03/2024"},
        )

        await service.update_subscriber("1", _update(), now=NOW)

        names = sorted(job["name"] for job in fake_device.table(SCHEDULER_PATH))
        assert names == ["deactivate-dhcp-10-0-0-5", "deactivate-dhcp-10-0-0-6"]

    @pytest.mark.asyncio
    async def test_find_then_replace_order(self, service, fake_session, fake_device) -> None:
        (job_id,) = fake_device.seed(SCHEDULER_PATH, {"name": "deactivate-dhcp-10-0-0-5"})

        await service.update_subscriber("1", _update(), now=NOW)

        scheduler_calls = [call for call in fake_session.calls if SCHEDULER_PATH in call]
        assert [call[0] for call in scheduler_calls] == ["find", "remove", "add"]
        assert scheduler_calls[1] == ("remove", SCHEDULER_PATH, job_id)


class TestQueueUpsert:
    @pytest.mark.asyncio
    async def test_create_then_update_limit(self, service, fake_device) -> None:
        first = await service.update_subscriber("1", _update(speedLimit=10), now=NOW)

        queues = fake_device.table(QUEUE_PATH)
        assert first.queue_action == "created"
        assert queues == [
            {".id": queues[0][".id"], "name": "alice", "target": "10.0.0.5", "max-limit": "10M/10M"}
        ]

        second = await service.update_subscriber("1", _update(speedLimit=20), now=NOW)

        assert second.queue_action == "updated"
        assert len(fake_device.table(QUEUE_PATH)) == 1
        assert fake_device.table(QUEUE_PATH)[0]["max-limit"] == "20M/20M"
        assert fake_device.table(QUEUE_PATH)[0]["target"] == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_update_touches_only_limit(self, service, fake_session, fake_device) -> None:
        (queue_id,) = fake_device.seed(
            QUEUE_PATH, {"name": "alice", "target": "10.0.0.99", "max-limit": "5M/5M"}
        )

        await service.update_subscriber("1", _update(speedLimit=15), now=NOW)

        updates = [call for call in fake_session.calls if call[0] == "update" and call[1] == QUEUE_PATH]
        assert updates == [("update", QUEUE_PATH, queue_id, {"max-limit": "15M/15M"})]
        assert fake_device.table(QUEUE_PATH)[0]["target"] == "10.0.0.99"

    @pytest.mark.asyncio
    async def test_no_speed_limit_skips_queue(self, service, fake_session, fake_device) -> None:
        result = await service.update_subscriber("1", _update(), now=NOW)

        assert result.queue_action == "skipped"
        assert fake_device.table(QUEUE_PATH) == []
        assert not any(QUEUE_PATH in call for call in fake_session.calls)


class TestAddressListComment:
    @pytest.mark.asyncio
    async def test_comment_set_on_existing_entry(self, service, fake_device) -> None:
        fake_device.seed(
            ADDRESS_LIST_PATH,
            {"address": "10.0.0.5", "list": "pending-dhcp-users"},
            {"address": "10.0.0.5", "list": "authorized-dhcp-users"},
        )
        expires = datetime(2024, 4, 9, 16, 0, tzinfo=UTC)

        result = await service.update_subscriber(
            "1", _update(expiresAt="2024-04-09T16:00:00Z"), now=NOW
        )

        pending, authorized = fake_device.table(ADDRESS_LIST_PATH)
        assert result.comment_updated is True
        assert "comment" not in pending
        assert json.loads(authorized["comment"]) == {
            "customerInfo": "alice",
            "contactNumber": "09171234567",
            "email": "alice@example.com",
            "planName": "Fiber 10",
            "dueDate": "2024-04-09",
            "dueDateTime": "2024-04-09T16:00:00.000Z",
            "planType": "postpaid",
        }
        assert result.expires_at == expires

    @pytest.mark.asyncio
    async def test_missing_entry_is_noop(self, service, fake_session, fake_device) -> None:
        result = await service.update_subscriber("1", _update(), now=NOW)

        assert result.comment_updated is False
        assert fake_device.table(ADDRESS_LIST_PATH) == []
        assert not any(
            call[0] in ("add", "update") and call[1] == ADDRESS_LIST_PATH
            for call in fake_session.calls
        )


class TestUpdateSubscriber:
    @pytest.mark.asyncio
    async def test_expiration_from_plan(self, service) -> None:
        result = await service.update_subscriber("1", _update(), now=NOW)

        assert result.expires_at == NOW + timedelta(days=30)
        assert result.scheduler_name == "deactivate-dhcp-10-0-0-5"
        assert result.message == "Updated successfully"

    @pytest.mark.asyncio
    async def test_unknown_router(self, service, session_opener) -> None:
        with pytest.raises(RouterNotFoundError):
            await service.update_subscriber("99", _update(), now=NOW)

        assert session_opener.devices == []

    @pytest.mark.asyncio
    async def test_bad_address_fails_before_device_io(self, service, session_opener) -> None:
        with pytest.raises(ScriptValidationError):
            await service.update_subscriber("1", _update(address="10.0.0.300"), now=NOW)

        assert session_opener.devices == []

    @pytest.mark.asyncio
    async def test_session_closed_on_device_failure(self, service, fake_session) -> None:
        fake_session.fail_on = "add"

        with pytest.raises(ProtocolError):
            await service.update_subscriber("1", _update(), now=NOW)

        assert fake_session.opened
        assert fake_session.closed

    @pytest.mark.asyncio
    async def test_lock_released_after_update(self, service) -> None:
        await service.update_subscriber("1", _update(), now=NOW)

        assert len(service.locks) == 0

    @pytest.mark.asyncio
    async def test_works_without_locking(self, directory, session_opener, fake_device) -> None:
        service = BillingService(
            directory, Settings(_env_file=None, serialize_upserts=False), session_opener
        )

        await service.update_subscriber("1", _update(), now=NOW)

        assert len(fake_device.table(SCHEDULER_PATH)) == 1

    @pytest.mark.asyncio
    async def test_grace_time_on_device_timezone(
        self, directory, session_opener, fake_device
    ) -> None:
        settings = Settings(_env_file=None, device_timezone="Asia/Manila")
        service = BillingService(directory, settings, session_opener)
        now = datetime(2024, 3, 10, 1, 0, tzinfo=UTC)

        await service.update_subscriber(
            "1", _update(graceDays=1, graceTime="14:00"), now=now
        )

        (job,) = fake_device.table(SCHEDULER_PATH)
        assert job["start-date"] == "mar/11/2024"
        assert job["start-time"] == "14:00:00"


class TestBuildComment:
    def test_defaults(self) -> None:
        update = BillingUpdate.model_validate({"address": "10.0.0.5"})

        comment = build_comment(update, datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC))

        assert json.loads(comment.to_comment()) == {
            "planName": "",
            "dueDate": "2024-01-02",
            "dueDateTime": "2024-01-02T03:04:05.000Z",
            "planType": "prepaid",
        }
