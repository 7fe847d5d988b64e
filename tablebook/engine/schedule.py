"""Schedule resolution, dining durations and slot availability"""

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.engine.errors import InvalidPartySize, NoCapacity, SlotUnavailable
from tablebook.engine.timeutil import Clock, get_zone, local_now, minutes_to_time, time_to_minutes
from tablebook.models.reservation import ACTIVE_STATUSES, Reservation
from tablebook.models.schedule import DayOverride
from tablebook.schemas.settings import RestaurantConfig

logger = structlog.get_logger()

MINUTES_PER_DAY = 24 * 60


class ResolvedHours(BaseModel):
    """Effective operating window for one date, in minutes after local midnight"""
    day: date
    is_closed: bool
    open_min: int = 0
    close_min: int = 0
    max_covers: int
    source: str  # override, weekly, default


class Slot(BaseModel):
    time: str
    available: bool
    reason: Optional[str] = None
    remaining_covers: Optional[int] = None


def resolve_hours(config: RestaurantConfig, day: date, override: Optional[DayOverride] = None) -> ResolvedHours:
    """Merge the weekly template with a date override; override fields win"""
    template = config.day_schedule(day)
    source = "weekly" if config.weekly_schedule else "default"
    is_closed = template.is_closed
    open_time = template.open_time
    close_time = template.close_time
    max_covers = template.max_covers or config.max_covers_per_slot

    if override is not None:
        source = "override"
        if override.is_closed:
            is_closed = True
        else:
            # Special hours on a normally closed weekday reopen the date
            if override.open_time or override.close_time:
                is_closed = False
            open_time = override.open_time or open_time
            close_time = override.close_time or close_time
        if override.max_covers:
            max_covers = override.max_covers

    if is_closed:
        return ResolvedHours(day=day, is_closed=True, max_covers=max_covers, source=source)

    open_min = time_to_minutes(open_time)
    close_min = time_to_minutes(close_time)
    if close_min <= open_min:
        # Closing after midnight
        close_min += MINUTES_PER_DAY
    return ResolvedHours(
        day=day,
        is_closed=False,
        open_min=open_min,
        close_min=close_min,
        max_covers=max_covers,
        source=source,
    )


def dining_duration(config: RestaurantConfig, party_size: int) -> int:
    """Expected dining minutes for a party size

    Exact table entry, else the largest defined size below it, else the
    smallest defined size, else the configured default.
    """
    table: Dict[int, int] = config.dining_durations
    if not table:
        return config.default_duration_min
    if party_size in table:
        return table[party_size]
    smaller = [size for size in table if size <= party_size]
    if smaller:
        return table[max(smaller)]
    return table[min(table)]


def slot_starts(config: RestaurantConfig, hours: ResolvedHours) -> List[int]:
    """Slot start minutes; a slot must start strictly before close minus the last-seating buffer"""
    if hours.is_closed:
        return []
    cutoff = hours.close_min - config.last_seating_buffer_min
    starts = []
    current = hours.open_min
    while current < cutoff:
        starts.append(current)
        current += config.slot_interval
    return starts


def _overlapping_covers(reservations: List[Reservation], start: int, end: int) -> int:
    covers = 0
    for reservation in reservations:
        r_start = time_to_minutes(reservation.time)
        r_end = time_to_minutes(reservation.end_time)
        if r_start < end and start < r_end:
            covers += reservation.party_size
    return covers


class AvailabilityService:
    """Slot listing and validation against the persisted schedule"""

    def __init__(self, db: AsyncSession, config: RestaurantConfig, clock: Clock):
        self.db = db
        self.config = config
        self.clock = clock
        self.zone = get_zone(config.timezone)

    def validate_party_size(self, party_size: int) -> None:
        if party_size < 1 or party_size > self.config.max_party_size:
            raise InvalidPartySize(party_size, self.config.max_party_size)

    def now(self) -> datetime:
        return local_now(self.clock, self.zone)

    async def get_override(self, day: date) -> Optional[DayOverride]:
        result = await self.db.execute(select(DayOverride).where(DayOverride.date == day))
        return result.scalar_one_or_none()

    async def resolve(self, day: date) -> ResolvedHours:
        return resolve_hours(self.config, day, await self.get_override(day))

    async def _active_reservations(
        self, day: date, exclude_id: Optional[uuid.UUID] = None
    ) -> List[Reservation]:
        query = select(Reservation).where(
            Reservation.date == day,
            Reservation.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        if exclude_id is not None:
            query = query.where(Reservation.id != exclude_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_slots(self, day: date, party_size: int) -> List[Slot]:
        """Ordered slots for a date; empty when the date is closed"""
        self.validate_party_size(party_size)
        hours = await self.resolve(day)
        starts = slot_starts(self.config, hours)
        if not starts:
            return []

        now = self.now()
        today = now.date()
        if day < today:
            return [Slot(time=minutes_to_time(s), available=False, reason="past_date") for s in starts]
        if day == today:
            now_min = now.hour * 60 + now.minute
            starts = [s for s in starts if s >= now_min]

        duration = dining_duration(self.config, party_size)
        booked = await self._active_reservations(day)
        slots = []
        for start in starts:
            remaining = hours.max_covers - _overlapping_covers(booked, start, start + duration)
            if remaining >= party_size:
                slots.append(Slot(time=minutes_to_time(start), available=True, remaining_covers=remaining))
            else:
                slots.append(
                    Slot(
                        time=minutes_to_time(start),
                        available=False,
                        reason="no_capacity",
                        remaining_covers=max(remaining, 0),
                    )
                )
        return slots

    async def check_slot(
        self,
        day: date,
        time: str,
        party_size: int,
        exclude_id: Optional[uuid.UUID] = None,
        enforce_capacity: bool = True,
    ) -> int:
        """Raise SlotUnavailable unless the time is bookable; returns the dining duration"""
        self.validate_party_size(party_size)
        start = time_to_minutes(time)
        now = self.now()
        if day < now.date():
            raise SlotUnavailable("Date is in the past", reason="past_date", date=day.isoformat())

        hours = await self.resolve(day)
        if start not in slot_starts(self.config, hours):
            raise SlotUnavailable(
                "Restaurant is not taking reservations at this time",
                reason="closed",
                date=day.isoformat(),
                time=minutes_to_time(start),
            )
        if day == now.date() and start < now.hour * 60 + now.minute:
            raise SlotUnavailable("Time has already passed", reason="past_time", time=minutes_to_time(start))

        duration = dining_duration(self.config, party_size)
        if enforce_capacity:
            booked = await self._active_reservations(day, exclude_id=exclude_id)
            remaining = hours.max_covers - _overlapping_covers(booked, start, start + duration)
            if remaining < party_size:
                logger.info(
                    "slot_no_capacity",
                    date=day.isoformat(),
                    time=minutes_to_time(start),
                    party_size=party_size,
                    remaining=remaining,
                )
                raise NoCapacity(date=day.isoformat(), time=minutes_to_time(start))
        return duration
