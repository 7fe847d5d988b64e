"""Waitlist manager

Active entries (waiting or notified) always hold positions 1..N in join
order. Every operation that changes the active set renumbers in the same
transaction.
"""

import uuid
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.database import unit_of_work
from tablebook.engine.audit import record_audit
from tablebook.engine.booking import ensure_no_duplicate, insert_reservation, unique_code
from tablebook.engine.errors import DuplicateRequest, InvalidTransition, NotFound
from tablebook.engine.guests import get_or_create_guest, normalize_phone
from tablebook.engine.notifier import Notifier
from tablebook.engine.schedule import AvailabilityService, dining_duration
from tablebook.engine.timeutil import Clock, add_minutes, minutes_to_time, utc_to_local, utcnow
from tablebook.engine.turn_time import TurnTimeEstimator
from tablebook.models.reservation import Reservation, ReservationSource, ReservationStatus
from tablebook.models.table import RestaurantTable
from tablebook.models.waitlist import ACTIVE_WAITLIST_STATUSES, WaitlistEntry, WaitlistStatus
from tablebook.schemas.settings import RestaurantConfig
from tablebook.schemas.waitlist import WaitlistJoin

logger = structlog.get_logger()

# action -> (allowed source states, target state)
WAITLIST_TRANSITIONS = {
    "notify": ({WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED}, WaitlistStatus.NOTIFIED),
    "seat": ({WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED}, WaitlistStatus.SEATED),
    "cancel": ({WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED}, WaitlistStatus.CANCELLED),
    "remove": ({WaitlistStatus.WAITING, WaitlistStatus.NOTIFIED}, WaitlistStatus.LEFT),
}


class WaitlistManager:
    """Join, notify, seat and remove walk-in parties"""

    def __init__(
        self,
        db: AsyncSession,
        config: RestaurantConfig,
        notifier: Notifier,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.config = config
        self.notifier = notifier
        self.clock = clock
        self.availability = AvailabilityService(db, config, clock)
        self.estimator = TurnTimeEstimator(db, config, clock)

    async def list_active(self) -> List[WaitlistEntry]:
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES))
            .order_by(WaitlistEntry.position)
        )
        return list(result.scalars().all())

    async def get(self, entry_id: uuid.UUID) -> WaitlistEntry:
        entry = await self.db.get(WaitlistEntry, entry_id)
        if entry is None:
            raise NotFound("Waitlist entry not found", entry_id=str(entry_id))
        return entry

    async def renumber(self) -> List[WaitlistEntry]:
        """Assign 1..N to active entries in join order; clear positions of inactive ones"""
        await self.db.flush()
        result = await self.db.execute(
            select(WaitlistEntry)
            .where(WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES))
            # Entries joining in the same instant keep their relative order
            .order_by(WaitlistEntry.joined_at, WaitlistEntry.position)
        )
        active = list(result.scalars().all())
        for index, entry in enumerate(active, start=1):
            entry.position = index

        stale = await self.db.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.status.not_in(ACTIVE_WAITLIST_STATUSES),
                WaitlistEntry.position.is_not(None),
            )
        )
        for entry in stale.scalars().all():
            entry.position = None

        logger.info("waitlist_renumbered", active=len(active))
        return active

    async def join(self, data: WaitlistJoin) -> WaitlistEntry:
        self.availability.validate_party_size(data.party_size)
        phone = normalize_phone(data.guest_phone)
        result = await self.db.execute(
            select(WaitlistEntry.id).where(
                WaitlistEntry.guest_phone == phone,
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        if result.first() is not None:
            raise DuplicateRequest("This phone number is already on the waitlist")

        async with unit_of_work(self.db):
            current = await self.list_active()
            position = max((e.position or 0 for e in current), default=0) + 1
            estimate = await self.estimator.estimate_wait(data.party_size, position)
            guest = await get_or_create_guest(self.db, data.guest_name, phone, data.guest_email)
            entry = WaitlistEntry(
                guest_id=guest.id if guest else None,
                guest_name=data.guest_name,
                guest_phone=phone,
                guest_email=data.guest_email,
                party_size=data.party_size,
                notes=data.notes,
                status=WaitlistStatus.WAITING.value,
                position=position,
                estimated_wait=estimate.estimated_minutes,
                joined_at=self.clock(),
            )
            self.db.add(entry)
            await self.renumber()
            record_audit(
                self.db,
                "waitlist_join",
                "waitlist_entry",
                entry.id,
                actor=data.guest_name,
                actor_type="guest",
                after=entry.status,
            )

        logger.info(
            "waitlist_joined",
            entry_id=str(entry.id),
            party_size=entry.party_size,
            position=entry.position,
            estimated_wait=entry.estimated_wait,
        )
        self.notifier.send(
            "waitlist_joined",
            entry.guest_phone,
            {
                "restaurant_name": self.config.restaurant_name,
                "position": entry.position,
                "minutes": entry.estimated_wait,
            },
            waitlist_entry_id=str(entry.id),
        )
        return entry

    async def act(
        self,
        entry_id: uuid.UUID,
        action: str,
        actor: Optional[str] = None,
        create_reservation: bool = True,
        table_id: Optional[uuid.UUID] = None,
    ) -> WaitlistEntry:
        entry = await self.get(entry_id)
        sources, target = WAITLIST_TRANSITIONS[action]
        if WaitlistStatus(entry.status) not in sources:
            raise InvalidTransition(action, entry.status)
        if table_id is not None:
            table = await self.db.get(RestaurantTable, table_id)
            if table is None or not table.is_active:
                raise NotFound("Table not found", table_id=str(table_id))

        before = entry.status
        now = self.clock()
        async with unit_of_work(self.db):
            entry.status = target.value
            if target == WaitlistStatus.NOTIFIED:
                entry.notified_at = now
            elif target == WaitlistStatus.SEATED:
                entry.seated_at = now
                if create_reservation:
                    reservation = await self._seat_reservation(entry, table_id)
                    entry.reservation_id = reservation.id
            else:
                entry.left_at = now
            await self.renumber()
            record_audit(
                self.db,
                f"waitlist_{action}",
                "waitlist_entry",
                entry.id,
                actor=actor,
                before=before,
                after=entry.status,
            )

        logger.info(
            "waitlist_transition",
            entry_id=str(entry.id),
            action=action,
            from_status=before,
            to_status=entry.status,
        )
        if target == WaitlistStatus.NOTIFIED:
            self.notifier.send(
                "waitlist_ready",
                entry.guest_phone,
                {"restaurant_name": self.config.restaurant_name},
                waitlist_entry_id=str(entry.id),
            )
        return entry

    async def _seat_reservation(self, entry: WaitlistEntry, table_id: Optional[uuid.UUID]) -> Reservation:
        """Seated reservation for a promoted entry, sharing its guest identity"""
        local = self.availability.now()
        time = minutes_to_time(local.hour * 60 + local.minute)
        duration = dining_duration(self.config, entry.party_size)
        now = self.clock()
        await ensure_no_duplicate(self.db, entry.guest_phone, local.date(), time)
        reservation = Reservation(
            code=await unique_code(self.db),
            payments=[],
            guest_id=entry.guest_id,
            guest_name=entry.guest_name,
            guest_phone=entry.guest_phone,
            guest_email=entry.guest_email,
            party_size=entry.party_size,
            date=local.date(),
            time=time,
            end_time=add_minutes(time, duration),
            duration_min=duration,
            status=ReservationStatus.SEATED.value,
            source=ReservationSource.WAITLIST.value,
            table_id=table_id,
            notes=entry.notes,
            approved_at=now,
            seated_at=now,
            created_by="waitlist",
            created_at=now,
            updated_at=now,
        )
        await insert_reservation(self.db, reservation)
        logger.info("waitlist_reservation_created", entry_id=str(entry.id), reservation_id=str(reservation.id))
        return reservation

    async def active_for_phone(self, phone: str) -> Optional[WaitlistEntry]:
        result = await self.db.execute(
            select(WaitlistEntry).where(
                WaitlistEntry.guest_phone == normalize_phone(phone),
                WaitlistEntry.status.in_(ACTIVE_WAITLIST_STATUSES),
            )
        )
        return result.scalars().first()

    async def close_stale(self) -> int:
        """Mark active entries from earlier days as left"""
        today = self.availability.now().date()
        now = self.clock()
        async with unit_of_work(self.db):
            closed = 0
            for entry in await self.list_active():
                if utc_to_local(entry.joined_at, self.availability.zone).date() < today:
                    entry.status = WaitlistStatus.LEFT.value
                    entry.left_at = now
                    closed += 1
            if closed:
                await self.renumber()
        logger.info("waitlist_stale_closed", count=closed)
        return closed
