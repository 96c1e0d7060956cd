"""Data transfer objects mirroring the pet hub API."""

import re
from datetime import UTC, datetime, time, timedelta
from enum import Enum, IntEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

_CLOCK_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class LockState(IntEnum):
    """Lock modes understood by pet flaps."""

    UNLOCKED = 0
    KEEP_IN = 1
    KEEP_OUT = 2
    LOCKED = 3

    @classmethod
    def parse(cls, value: str) -> "LockState":
        """Parse a lock state from a name such as ``keep-in`` or a numeric code."""
        if value.isdigit():
            return cls(int(value))
        try:
            return cls[value.strip().upper().replace("-", "_")]
        except KeyError as exc:
            raise ValueError(f"Unknown lock state '{value}'") from exc

    @property
    def label(self) -> str:
        """Human readable name."""
        return self.name.lower().replace("_", "-")


class Location(IntEnum):
    """Where a pet currently is."""

    INSIDE = 1
    OUTSIDE = 2

    @classmethod
    def parse(cls, value: str) -> "Location":
        """Parse a location from ``inside``/``outside`` or a numeric code."""
        if value.isdigit():
            return cls(int(value))
        try:
            return cls[value.strip().upper()]
        except KeyError as exc:
            raise ValueError(f"Unknown location '{value}'") from exc

    @property
    def label(self) -> str:
        """Human readable name."""
        return self.name.lower()


class ApiModel(BaseModel):
    """Base model for payloads received from the service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CurfewTime(ApiModel):
    """A single curfew window for a flap."""

    enabled: bool = Field(..., description="Whether the window is active")
    lock_time: str = Field(..., description="Lock time as HH:MM")
    unlock_time: str = Field(..., description="Unlock time as HH:MM")

    @field_validator("lock_time", "unlock_time")
    @classmethod
    def _check_clock(cls, value: str) -> str:
        if not _CLOCK_PATTERN.match(value):
            raise ValueError(f"'{value}' is not a valid HH:MM time")
        return value


class Position(ApiModel):
    """Last known position of a pet."""

    tag_id: int | None = None
    where: int | None = Field(None, description="Location code")
    since: str | None = None


class Pet(ApiModel):
    """A pet registered to the household."""

    id: int
    name: str
    gender: int | None = None
    date_of_birth: str | None = None
    weight: str | None = None
    comments: str | None = None
    household_id: int
    species_id: int | None = None
    breed_id: int | None = None
    tag_id: int | None = None
    position: Position | None = None

    @property
    def location(self) -> int | None:
        """Location code from the last known position, if any."""
        if self.position is None:
            return None
        return self.position.where


class LockingStatus(ApiModel):
    """Locking status reported by a flap."""

    mode: int
    curfew: list[CurfewTime] | None = None


class DeviceStatus(ApiModel):
    """Live status reported by a device."""

    locking: LockingStatus | None = None
    online: bool | None = None
    battery: float | None = None
    signal_strength: float | None = None


class DeviceControl(ApiModel):
    """Desired control state of a device."""

    locking: int | None = None
    curfew: list[CurfewTime] | None = None


class Device(ApiModel):
    """A hub, flap or feeder registered to the household."""

    id: int
    name: str
    product_id: int
    household_id: int
    serial_number: str | None = None
    mac_address: str | None = None
    parent_device_id: int | None = None
    status: DeviceStatus | None = None
    control: DeviceControl | None = None


class PetLocationUpdate(BaseModel):
    """One item of a batch location update."""

    pet_id: int
    location: Location


class SetLockStateCommand(BaseModel):
    """Device command that changes the lock mode."""

    kind: Literal["set_lock_state"] = "set_lock_state"
    lock_state: LockState


class SetCurfewCommand(BaseModel):
    """Device command that replaces the curfew windows."""

    kind: Literal["set_curfew"] = "set_curfew"
    curfew_times: list[CurfewTime]


DeviceCommandBody = Annotated[
    SetLockStateCommand | SetCurfewCommand,
    Field(discriminator="kind"),
]


class DeviceCommand(BaseModel):
    """One item of a batch device control request."""

    device_id: int
    command: DeviceCommandBody


class BatchError(BaseModel):
    """Failure of a single batch item."""

    id: int
    error: str
    transient: bool = False


class BatchResult(BaseModel):
    """Partial result of a batch mutation."""

    successful: list[int] = Field(default_factory=list)
    failed: list[BatchError] = Field(default_factory=list)
    total_processed: int = 0

    @property
    def failed_ids(self) -> list[int]:
        """Identifiers of every failed item."""
        return [item.id for item in self.failed]

    @property
    def transient_failed_ids(self) -> list[int]:
        """Identifiers of items that failed in a way worth retrying."""
        return [item.id for item in self.failed if item.transient]


class DateRange(BaseModel):
    """Inclusive UTC time window for history queries."""

    start: datetime
    end: datetime

    @classmethod
    def parse(cls, value: str, now: datetime | None = None) -> "DateRange":
        """Parse ``today``, ``week``, ``month`` or ``YYYY-MM-DD,YYYY-MM-DD``.

        Args:
            value: The range expression
            now: Reference time (defaults to the current UTC time)

        Returns:
            The parsed date range

        Raises:
            ValueError: If the expression is not understood
        """
        now = now or datetime.now(UTC)
        text = value.strip().lower()
        if text == "today":
            return cls(start=datetime.combine(now.date(), time.min, tzinfo=UTC), end=now)
        if text == "week":
            return cls(start=now - timedelta(days=7), end=now)
        if text == "month":
            return cls(start=now - timedelta(days=30), end=now)

        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 2:
            raise ValueError(
                "Date range must be 'today', 'week', 'month' or 'YYYY-MM-DD,YYYY-MM-DD'"
            )
        try:
            start_day = datetime.strptime(parts[0], "%Y-%m-%d").date()
            end_day = datetime.strptime(parts[1], "%Y-%m-%d").date()
        except ValueError as exc:
            raise ValueError(f"Invalid date in '{value}'. Use YYYY-MM-DD format") from exc
        if start_day > end_day:
            raise ValueError("Start date must be before end date")
        return cls(
            start=datetime.combine(start_day, time.min, tzinfo=UTC),
            end=datetime.combine(end_day, time(23, 59, 59), tzinfo=UTC),
        )

    @property
    def days(self) -> int:
        """Number of whole days covered, at least one."""
        return max((self.end - self.start).days, 1)

    def cache_token(self) -> str:
        """Normalized form used to build cache keys."""
        return f"{self.start:%Y%m%d}_to_{self.end:%Y%m%d}"


class HistoryKind(str, Enum):
    """Kinds of per-pet history the dashboard endpoint provides."""

    FEEDING = "feeding"
    DRINKING = "drinking"
    ACTIVITY = "activity"

    @property
    def section(self) -> str:
        """Name of the block holding this kind in the dashboard payload."""
        return "movement" if self is HistoryKind.ACTIVITY else self.value


class HistoryDay(BaseModel):
    """Daily aggregate for one history kind.

    ``amount`` is grams eaten, millilitres drunk or seconds spent outside.
    """

    date: datetime
    amount: float


class PetHistory(BaseModel):
    """Daily history of a pet over a date range."""

    pet_id: int
    kind: HistoryKind
    days: list[HistoryDay] = Field(default_factory=list)
    total: float = 0.0
    visits: int | None = None
    range_days: int = 1

    @property
    def daily_average(self) -> float:
        """Average amount per day over the requested range."""
        return self.total / max(self.range_days, 1)
