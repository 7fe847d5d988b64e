"""Restaurant configuration schemas

The restaurant configuration is stored as a single JSON document and validated
here on every write and every load, so engine code can rely on typed fields.
"""

import re
from datetime import date
from enum import Enum
from typing import Annotated, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


def _check_hhmm(value: str) -> str:
    if not HHMM.match(value):
        raise ValueError(f"time must be HH:MM, got {value!r}")
    return value


ClockTime = Annotated[str, AfterValidator(_check_hhmm)]

# Slot starts after midnight keep counting from the service day ("24:30")
SLOT_HHMM = re.compile(r"^([0-3]\d|4[0-7]):[0-5]\d$")


def _check_slot_time(value: str) -> str:
    if not SLOT_HHMM.match(value):
        raise ValueError(f"time must be HH:MM, got {value!r}")
    return value


SlotTime = Annotated[str, AfterValidator(_check_slot_time)]


class DepositType(str, Enum):
    """Refundable pre-authorization vs. captured commitment fee"""
    HOLD = "hold"
    DEPOSIT = "deposit"


class DaySchedule(BaseModel):
    """Operating hours template for one weekday"""
    is_closed: bool = False
    open_time: Optional[ClockTime] = None
    close_time: Optional[ClockTime] = None
    max_covers: Optional[int] = Field(default=None, ge=1)


class SpecialDepositRule(BaseModel):
    """Deposit rule scoped by date range and/or party size; first match wins"""
    label: str = ""
    enabled: bool = True
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_party_size: Optional[int] = Field(default=None, ge=1)
    requires_deposit: bool = True
    amount: int = Field(default=0, ge=0)
    message: Optional[str] = None

    @model_validator(mode="after")
    def check_range(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self

    def matches(self, day: date, party_size: int) -> bool:
        if not self.enabled:
            return False
        if self.start_date and day < self.start_date:
            return False
        if self.end_date and day > self.end_date:
            return False
        if self.min_party_size and party_size < self.min_party_size:
            return False
        return True


class RestaurantConfig(BaseModel):
    """Typed restaurant configuration consumed by the booking engine"""

    restaurant_name: str = "Restaurant"
    timezone: str = "America/New_York"
    currency: str = "usd"

    # Hours
    open_time: ClockTime = "17:00"
    close_time: ClockTime = "22:00"
    weekly_schedule: Dict[str, DaySchedule] = Field(default_factory=dict)
    slot_interval: int = Field(default=30, ge=5)
    last_seating_buffer_min: int = Field(default=90, ge=0)
    max_covers_per_slot: int = Field(default=40, ge=1)
    max_party_size: int = Field(default=8, ge=1)

    # Dining duration by party size (minutes)
    dining_durations: Dict[int, int] = Field(default_factory=dict)
    default_duration_min: int = Field(default=90, ge=5)

    # Deposits
    deposit_enabled: bool = False
    deposit_type: DepositType = DepositType.HOLD
    deposit_amount: int = Field(default=0, ge=0)
    deposit_min_party_size: int = Field(default=2, ge=1)
    deposit_message: str = "A refundable deposit may be required to hold your table."
    special_deposit_rules: List[SpecialDepositRule] = Field(default_factory=list)

    # No-show charging
    noshow_charge_enabled: bool = False
    noshow_charge_amount: int = Field(default=0, ge=0)

    # Guest-facing windows
    counter_offer_hours: int = Field(default=2, ge=1)
    self_service_cutoff_hours: int = Field(default=2, ge=0)
    reminder_lead_hours: int = Field(default=24, ge=1)

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown IANA time zone: {value!r}")
        return value

    @field_validator("weekly_schedule")
    @classmethod
    def check_weekdays(cls, value: Dict[str, DaySchedule]) -> Dict[str, DaySchedule]:
        normalized = {}
        for key, day in value.items():
            short = key.strip().lower()[:3]
            if short not in WEEKDAY_KEYS:
                raise ValueError(f"unknown weekday: {key!r}")
            normalized[short] = day
        return normalized

    @field_validator("dining_durations")
    @classmethod
    def check_durations(cls, value: Dict[int, int]) -> Dict[int, int]:
        previous = 0
        for size in sorted(value):
            if size < 1 or value[size] < 5:
                raise ValueError("dining durations need party sizes >= 1 and at least 5 minutes")
            if value[size] < previous:
                raise ValueError("dining durations must not decrease as party size grows")
            previous = value[size]
        return value

    def day_schedule(self, day: date) -> DaySchedule:
        """Weekly template entry for a date, filled from the global defaults"""
        template = self.weekly_schedule.get(WEEKDAY_KEYS[day.weekday()])
        if template is None:
            return DaySchedule(open_time=self.open_time, close_time=self.close_time)
        return DaySchedule(
            is_closed=template.is_closed,
            open_time=template.open_time or self.open_time,
            close_time=template.close_time or self.close_time,
            max_covers=template.max_covers,
        )


class DepositInfo(BaseModel):
    """Deposit decision reported to guests and staff"""
    required: bool
    amount: int
    min_party: int
    type: DepositType
    source: str
    label: Optional[str] = None
    message: Optional[str] = None
