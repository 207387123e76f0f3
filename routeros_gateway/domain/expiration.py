"""Subscriber expiration computation.

Pure functions, no I/O. The expiration precedence is:

1. manual expiration timestamp, used verbatim;
2. grace days from now, optionally pinned to a HH:MM time of day on the
   current date (device clock) before the days are added;
3. plan cycle length in days from now;
4. now (immediate expiration).
"""

from datetime import UTC, datetime, timedelta, tzinfo

from routeros_gateway.domain.models import Plan

# RouterOS scheduler month abbreviations (start-date is mmm/dd/yyyy)
MONTHS = ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec")


def _aware(value: datetime) -> datetime:
    # Naive timestamps are local wall-clock time
    if value.tzinfo is None:
        return value.astimezone()
    return value


def compute_expiration(
    manual_expires_at: datetime | None = None,
    grace_days: float | None = None,
    grace_time: str | None = None,
    plan: Plan | None = None,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> datetime:
    """Compute the absolute expiration timestamp of a subscriber.

    Args:
        manual_expires_at: Explicit expiration, wins over everything else
        grace_days: Days of grace from now (ignored unless positive)
        grace_time: "HH:MM" time of day applied to today before adding grace days
        plan: Billing plan; its cycle_days is used when positive
        now: Current time (defaults to the local time)
        tz: Time zone of the device clock the grace time of day is read on
            (None for the gateway's local time)

    Returns:
        Timezone-aware expiration timestamp

    Example:
        >>> now = datetime(2024, 3, 10, 9, 30, tzinfo=UTC)
        >>> compute_expiration(grace_days=1, grace_time="14:00", now=now, tz=UTC)
        datetime.datetime(2024, 3, 11, 14, 0, tzinfo=datetime.timezone.utc)
    """
    current = (now if now is not None else datetime.now()).astimezone(tz)

    if manual_expires_at is not None:
        return _aware(manual_expires_at)

    if grace_days is not None and grace_days > 0:
        start = current
        if grace_time:
            hours, minutes = (int(part) for part in grace_time.split(":"))
            start = start.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        return start + timedelta(days=grace_days)

    if plan is not None and plan.cycle_days is not None and plan.cycle_days > 0:
        return current + timedelta(days=plan.cycle_days)

    return current


def format_scheduler_datetime(expires_at: datetime, tz: tzinfo | None = None) -> tuple[str, str]:
    """Render a timestamp as RouterOS scheduler start-date and start-time.

    Args:
        expires_at: Expiration timestamp
        tz: Time zone of the device clock (None for the gateway's local time)

    Returns:
        Tuple of ("mmm/dd/yyyy", "HH:MM:SS")

    Example:
        >>> format_scheduler_datetime(datetime(2024, 3, 5, 7, 4, 9, tzinfo=UTC), UTC)
        ('mar/05/2024', '07:04:09')
    """
    local = _aware(expires_at).astimezone(tz)
    start_date = f"{MONTHS[local.month - 1]}/{local.day:02d}/{local.year:04d}"
    return start_date, local.strftime("%H:%M:%S")


def format_due_date(expires_at: datetime) -> tuple[str, str]:
    """Render the comment payload due date and due timestamp (both UTC).

    Example:
        >>> format_due_date(datetime(2024, 3, 5, 7, 4, 9, tzinfo=UTC))
        ('2024-03-05', '2024-03-05T07:04:09.000Z')
    """
    utc = _aware(expires_at).astimezone(UTC)
    due_date_time = utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return utc.date().isoformat(), due_date_time
