"""Guest records and visit statistics"""

import re
import uuid
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.models.guest import Guest
from tablebook.models.reservation import Reservation, ReservationStatus

logger = structlog.get_logger()

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Digits only; a leading North American country code is dropped"""
    if not phone:
        return None
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    return digits or None


def phone_matches_last4(phone: Optional[str], last4: str) -> bool:
    digits = normalize_phone(phone)
    supplied = _NON_DIGITS.sub("", last4 or "")
    return bool(digits) and len(supplied) == 4 and digits.endswith(supplied)


async def get_or_create_guest(
    db: AsyncSession, name: str, phone: Optional[str], email: Optional[str] = None
) -> Optional[Guest]:
    """Guest for a normalized phone; walk-ins without a phone get no profile"""
    phone = normalize_phone(phone)
    if phone is None:
        return None
    result = await db.execute(select(Guest).where(Guest.phone == phone))
    guest = result.scalar_one_or_none()
    if guest is None:
        guest = Guest(phone=phone, name=name, email=email)
        db.add(guest)
        await db.flush()
    elif email and not guest.email:
        guest.email = email
    return guest


async def refresh_guest_stats(db: AsyncSession, guest_id: uuid.UUID) -> Optional[Guest]:
    """Recompute visit and no-show counters from the guest's reservations"""
    guest = await db.get(Guest, guest_id)
    if guest is None:
        return None

    visits = await db.execute(
        select(
            func.count(Reservation.id),
            func.coalesce(func.sum(Reservation.party_size), 0),
            func.min(Reservation.date),
            func.max(Reservation.date),
        ).where(
            Reservation.guest_id == guest_id,
            Reservation.status == ReservationStatus.COMPLETED.value,
        )
    )
    total_visits, total_covers, first_visit, last_visit = visits.one()

    no_shows = await db.execute(
        select(func.count(Reservation.id)).where(
            Reservation.guest_id == guest_id,
            Reservation.status == ReservationStatus.NO_SHOW.value,
        )
    )

    guest.total_visits = total_visits
    guest.total_covers = total_covers
    guest.first_visit_date = first_visit
    guest.last_visit_date = last_visit
    guest.total_no_shows = no_shows.scalar_one()

    logger.info(
        "guest_stats_updated",
        guest_id=str(guest_id),
        total_visits=guest.total_visits,
        total_no_shows=guest.total_no_shows,
    )
    return guest
