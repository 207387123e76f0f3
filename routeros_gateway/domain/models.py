"""Domain models for the RouterOS gateway.

Pydantic models for device records resolved from the router directory and
for the request/response payloads of the billing and failover operations.
Wire names are camelCase (as sent by the panel); attributes are snake_case.
"""

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

LEGACY_API = "legacy"
REST_API = "rest"

# Ports assumed when a device record carries none
DEFAULT_PORTS = {LEGACY_API: 8728, REST_API: 80}

_GRACE_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class DeviceRecord(BaseModel):
    """Router connection record as stored by the panel service.

    Fields are deliberately permissive here: completeness is checked by the
    client factory, which raises ConfigurationError before any device I/O.
    """

    model_config = ConfigDict(extra="ignore")

    id: str | None = Field(default=None, description="Router identifier in the panel")
    host: str = Field(default="", description="Router hostname or IP address")
    user: str = Field(default="", description="API username")
    password: str = Field(default="", description="API password (may be empty)")
    port: int | None = Field(default=None, ge=1, le=65535, description="API port")
    api_type: str = Field(default="", description="Protocol variant: 'legacy' or 'rest'")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Panel IDs are database integers; keep them as strings."""
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("host", "user", "password", "api_type", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("api_type")
    @classmethod
    def normalize_api_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("port", mode="before")
    @classmethod
    def coerce_port(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @property
    def effective_port(self) -> int:
        """Configured port, or the protocol's default port."""
        if self.port:
            return self.port
        return DEFAULT_PORTS.get(self.api_type, DEFAULT_PORTS[REST_API])


class Plan(BaseModel):
    """Billing plan attached to a subscriber update."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = None
    cycle_days: float | None = Field(default=None, description="Billing cycle length in days")

    @field_validator("cycle_days", mode="before")
    @classmethod
    def blank_cycle_days(cls, v: Any) -> Any:
        return _blank_to_none(v)


class BillingUpdate(BaseModel):
    """Subscriber renewal / lease update request."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: str = Field(..., description="Subscriber IPv4 address")
    mac_address: str | None = Field(default=None, alias="macAddress")
    customer_info: str | None = Field(
        default=None, alias="customerInfo", description="Subscriber identifier (queue name)"
    )
    plan: Plan | None = None
    plan_type: str | None = Field(default=None, alias="planType")
    grace_days: float | None = Field(default=None, alias="graceDays")
    grace_time: str | None = Field(default=None, alias="graceTime", description="HH:MM")
    expires_at: datetime | None = Field(
        default=None, alias="expiresAt", description="Manual expiration (ISO 8601)"
    )
    contact_number: str | None = Field(default=None, alias="contactNumber")
    email: str | None = None
    speed_limit: float | None = Field(
        default=None, alias="speedLimit", description="Symmetric limit in Mbit/s"
    )
    downtime_days: float | None = Field(default=None, alias="downtimeDays")

    @field_validator(
        "mac_address",
        "grace_days",
        "grace_time",
        "expires_at",
        "speed_limit",
        "downtime_days",
        mode="before",
    )
    @classmethod
    def blank_optional(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("contact_number", mode="before")
    @classmethod
    def coerce_contact_number(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("grace_time")
    @classmethod
    def validate_grace_time(cls, v: str | None) -> str | None:
        """Validate HH:MM time of day."""
        if v is not None and not _GRACE_TIME_PATTERN.match(v.strip()):
            raise ValueError(f"graceTime must be HH:MM, got '{v}'")
        return v.strip() if v is not None else v

    @model_validator(mode="after")
    def validate_queue_name(self) -> "BillingUpdate":
        """A speed limit needs the subscriber identifier to name the queue."""
        if self.speed_limit and not self.customer_info:
            raise ValueError("customerInfo is required when speedLimit is given")
        return self


class CommentPayload(BaseModel):
    """Lease state stored as JSON in the address-list entry comment."""

    model_config = ConfigDict(populate_by_name=True)

    customer_info: str | None = Field(default=None, alias="customerInfo")
    contact_number: str | None = Field(default=None, alias="contactNumber")
    email: str | None = None
    plan_name: str | None = Field(default=None, alias="planName")
    due_date: str = Field(..., alias="dueDate", description="UTC date, YYYY-MM-DD")
    due_date_time: str = Field(..., alias="dueDateTime", description="UTC timestamp")
    plan_type: str = Field(default="prepaid", alias="planType")

    def to_comment(self) -> str:
        """Serialize as compact JSON with wire names, absent fields omitted."""
        return self.model_dump_json(by_alias=True, exclude_none=True)


class BillingUpdateResult(BaseModel):
    """What the billing upsert did on the device."""

    message: str = "Updated successfully"
    expires_at: datetime
    scheduler_name: str
    scheduler_replaced: bool = False
    comment_updated: bool = False
    queue_action: Literal["created", "updated", "skipped"] = "skipped"


class FailoverRequest(BaseModel):
    """Toggle request for check-gateway routes."""

    enabled: bool


class FailoverStatus(BaseModel):
    """WAN failover state derived from check-gateway routes."""

    enabled: bool
    message: str | None = None
    monitored_routes: int = 0
