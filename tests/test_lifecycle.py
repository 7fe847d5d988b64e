"""Tests for the reservation lifecycle"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from tablebook.engine.errors import (
    DuplicateRequest,
    InvalidTransition,
    SlotUnavailable,
    ValidationError,
    VerificationFailed,
)
from tablebook.engine.lifecycle import Action, TRANSITIONS, apply_transition, target_status
from tablebook.models.audit import AuditLog
from tablebook.models.guest import Guest
from tablebook.models.reservation import Reservation, ReservationStatus
from tablebook.schemas.reservation import ReservationAction, ReservationRequest, StaffReservationCreate

from conftest import NOW, request_payload


def _reservation(status: str = "pending", time: str = "19:00") -> Reservation:
    return Reservation(
        id=uuid4(),
        code="TB-TEST",
        payments=[],
        guest_name="Ada Guest",
        party_size=2,
        time=time,
        end_time="20:30",
        duration_min=90,
        status=status,
    )


def test_every_action_has_a_guard():
    assert set(TRANSITIONS) == set(Action)


@pytest.mark.parametrize(
    "action,current",
    [
        (Action.CONFIRM, "pending"),
        (Action.SEAT, "pending"),
        (Action.COMPLETE, "approved"),
        (Action.COUNTER, "approved"),
        (Action.APPROVE, "completed"),
        (Action.CANCEL, "cancelled"),
        (Action.NOSHOW, "seated"),
        (Action.EXPIRE, "approved"),
    ],
)
def test_guard_rejects_illegal_transitions(action, current):
    with pytest.raises(InvalidTransition) as exc_info:
        target_status(action, current)
    assert exc_info.value.current_status == current


def test_counter_keeps_original_time():
    reservation = _reservation()
    target = apply_transition(reservation, Action.COUNTER, NOW, counter_offer_hours=2, new_time="20:30")

    assert target == ReservationStatus.COUNTER_OFFERED
    assert reservation.original_time == "19:00"
    assert reservation.time == "20:30"
    assert reservation.end_time == "22:00"
    assert reservation.counter_expires_at == NOW + timedelta(hours=2)


def test_counter_needs_a_time():
    with pytest.raises(ValidationError):
        apply_transition(_reservation(), Action.COUNTER, NOW, counter_offer_hours=2)


def test_cancel_stamps_only_cancelled_at():
    reservation = _reservation(status="approved")
    apply_transition(reservation, Action.CANCEL, NOW, counter_offer_hours=2)

    assert reservation.status == "cancelled"
    assert reservation.cancelled_at == NOW
    assert reservation.completed_at is None


@pytest.mark.asyncio
async def test_request_lands_pending_and_notifies(booking, notifier, test_db):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))

    assert reservation.status == ReservationStatus.PENDING.value
    assert reservation.code.startswith("TB-")
    assert reservation.guest_phone == "5551234567"
    assert reservation.end_time == "20:30"
    assert notifier.templates == ["request_received"]

    guest = (await test_db.execute(select(Guest))).scalar_one()
    assert reservation.guest_id == guest.id


@pytest.mark.asyncio
async def test_duplicate_request_is_rejected(booking):
    await booking.request_reservation(ReservationRequest(**request_payload()))

    with pytest.raises(DuplicateRequest):
        await booking.request_reservation(ReservationRequest(**request_payload(phone="555-123-4567")))


@pytest.mark.asyncio
async def test_rejected_action_leaves_record_unchanged(booking, test_db):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))
    updated_at = reservation.updated_at

    with pytest.raises(InvalidTransition):
        await booking.act(reservation.id, ReservationAction(action="seat"), actor="Host")

    assert reservation.status == ReservationStatus.PENDING.value
    assert reservation.seated_at is None
    assert reservation.updated_at == updated_at
    actions = (await test_db.execute(select(AuditLog.action))).scalars().all()
    assert actions == ["request"]


@pytest.mark.asyncio
async def test_full_service_flow(booking, notifier, clock, test_db):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))

    await booking.act(reservation.id, ReservationAction(action="approve"), actor="Host")
    await booking.act(reservation.id, ReservationAction(action="confirm"), actor="Host")
    clock.advance(60)
    await booking.act(reservation.id, ReservationAction(action="arrive"), actor="Host")
    await booking.act(reservation.id, ReservationAction(action="seat"), actor="Host")
    clock.advance(75)
    await booking.act(reservation.id, ReservationAction(action="complete"), actor="Host")

    assert reservation.status == ReservationStatus.COMPLETED.value
    assert reservation.approved_at == NOW
    assert reservation.seated_at == NOW + timedelta(minutes=60)
    assert reservation.completed_at == NOW + timedelta(minutes=135)
    assert notifier.templates == ["request_received", "approved", "confirmed"]

    guest = await test_db.get(Guest, reservation.guest_id)
    assert guest.total_visits == 1
    assert guest.total_covers == 2

    with pytest.raises(InvalidTransition):
        await booking.act(reservation.id, ReservationAction(action="complete"), actor="Host")


@pytest.mark.asyncio
async def test_counter_offer_then_guest_accepts(booking, notifier):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))

    await booking.act(
        reservation.id, ReservationAction(action="counter", new_time="20:30"), actor="Host"
    )
    assert reservation.status == ReservationStatus.COUNTER_OFFERED.value
    assert reservation.original_time == "19:00"
    assert notifier.sent[-1]["template"] == "counter_offered"
    assert notifier.sent[-1]["variables"]["original_time"] == "19:00"

    await booking.act(reservation.id, ReservationAction(action="approve"), actor="Ada Guest", actor_type="guest")
    assert reservation.status == ReservationStatus.APPROVED.value
    assert reservation.time == "20:30"
    assert reservation.counter_expires_at is None


@pytest.mark.asyncio
async def test_counter_must_be_on_the_schedule(booking):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))

    with pytest.raises(SlotUnavailable):
        await booking.act(reservation.id, ReservationAction(action="counter", new_time="23:00"), actor="Host")
    assert reservation.status == ReservationStatus.PENDING.value


@pytest.mark.asyncio
async def test_lapsed_counter_offers_expire(booking, clock):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))
    await booking.act(reservation.id, ReservationAction(action="counter", new_time="20:00"), actor="Host")

    assert await booking.expire_stale() == 0
    clock.advance(3 * 60)
    assert await booking.expire_stale() == 1
    assert reservation.status == ReservationStatus.EXPIRED.value


@pytest.mark.asyncio
async def test_staff_walk_in_is_seated_now(booking, tables):
    reservation = await booking.create_staff_reservation(
        StaffReservationCreate(source="walk_in", guest_name="Walk In", party_size=3, table_id=tables["T4"].id),
        actor="Host",
    )

    assert reservation.status == ReservationStatus.SEATED.value
    assert reservation.time == "12:00"
    assert reservation.table_id == tables["T4"].id
    assert reservation.guest_id is None


@pytest.mark.asyncio
async def test_staff_booking_may_exceed_capacity(booking, notifier):
    booking.config.max_covers_per_slot = 4
    await booking.request_reservation(ReservationRequest(**request_payload(party_size=4)))

    reservation = await booking.create_staff_reservation(
        StaffReservationCreate(
            guest_name="Regular",
            guest_phone="5559876543",
            party_size=4,
            date="2026-06-05",
            time="19:00",
        ),
        actor="Manager",
    )
    assert reservation.status == ReservationStatus.APPROVED.value
    assert reservation.created_by == "Manager"
    assert notifier.templates[-1] == "approved"


@pytest.mark.asyncio
async def test_self_service_cancel_and_cutoff(booking, clock):
    reservation = await booking.request_reservation(ReservationRequest(**request_payload()))

    with pytest.raises(VerificationFailed):
        await booking.self_service(reservation.code, "0000", "cancel")

    found = await booking.self_service(reservation.code.lower(), "4567", "lookup")
    assert found.id == reservation.id

    # Friday 19:00 in New York is 23:00 UTC; one hour before is inside the cutoff
    clock.now = datetime(2026, 6, 5, 22, 0)
    with pytest.raises(ValidationError):
        await booking.self_service(reservation.code, "4567", "cancel")

    clock.now = NOW
    cancelled = await booking.self_service(reservation.code, "4567", "cancel")
    assert cancelled.status == ReservationStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_reminders_go_out_once_inside_lead_window(booking, clock, notifier):
    reservation = await booking.create_staff_reservation(
        StaffReservationCreate(
            guest_name="Regular",
            guest_phone="5559876543",
            party_size=2,
            date="2026-06-05",
            time="19:00",
        ),
        actor="Manager",
    )

    assert await booking.send_reminders() == 0

    # Within 24 hours of Friday 19:00 New York time
    clock.now = datetime(2026, 6, 5, 0, 0)
    assert await booking.send_reminders() == 1
    assert reservation.reminder_sent_at == clock.now
    assert notifier.templates[-1] == "reminder"

    assert await booking.send_reminders() == 0


@pytest.mark.asyncio
async def test_counter_into_guests_own_booking_is_a_duplicate(booking, test_db):
    later = await booking.request_reservation(ReservationRequest(**request_payload(time="20:00")))
    earlier = await booking.request_reservation(ReservationRequest(**request_payload(time="19:00")))

    with pytest.raises(DuplicateRequest):
        await booking.act(earlier.id, ReservationAction(action="counter", new_time="20:00"), actor="Host")

    await test_db.refresh(earlier)
    assert earlier.status == ReservationStatus.PENDING.value
    assert earlier.time == "19:00"
    assert earlier.original_time is None
    assert later.status == ReservationStatus.PENDING.value

    # The same time stays available to the reservation that already holds it
    await booking.act(later.id, ReservationAction(action="counter", new_time="20:00"), actor="Host")
    assert later.status == ReservationStatus.COUNTER_OFFERED.value
