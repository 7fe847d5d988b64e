"""Booking service: requests, staff entry, lifecycle actions and guest self-service"""

import secrets
import uuid
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.database import unit_of_work
from tablebook.engine.audit import record_audit
from tablebook.engine.deposits import evaluate_deposit
from tablebook.engine.errors import (
    AlreadyProcessed,
    DuplicateRequest,
    InvalidTransition,
    NotFound,
    ValidationError,
    VerificationFailed,
)
from tablebook.engine.guests import get_or_create_guest, normalize_phone, phone_matches_last4, refresh_guest_stats
from tablebook.engine.lifecycle import RELEASES_PAYMENT, Action, apply_transition, target_status
from tablebook.engine.notifier import Notifier, format_amount
from tablebook.engine.payments import NoShowCharge, PaymentOrchestrator
from tablebook.engine.schedule import AvailabilityService, Slot, dining_duration
from tablebook.engine.timeutil import Clock, add_minutes, local_to_utc, minutes_to_time, time_to_minutes, utcnow
from tablebook.gateways.base import PaymentGateway, ProcessorIntent
from tablebook.models.payment import PaymentType, ReservationPayment
from tablebook.models.reservation import ACTIVE_STATUSES, Reservation, ReservationSource, ReservationStatus
from tablebook.models.table import RestaurantTable
from tablebook.schemas.reservation import ReservationAction, ReservationRequest, StaffReservationCreate
from tablebook.schemas.settings import DepositInfo, RestaurantConfig

logger = structlog.get_logger()

CODE_PREFIX = "TB-"
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 4

# Templates sent after a successful staff action
ACTION_TEMPLATES = {
    Action.APPROVE: "approved",
    Action.DECLINE: "declined",
    Action.COUNTER: "counter_offered",
    Action.CONFIRM: "confirmed",
    Action.CANCEL: "cancelled",
}


def generate_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def unique_code(db: AsyncSession) -> str:
    """Random short code not yet used by any reservation"""
    while True:
        code = generate_code()
        result = await db.execute(select(Reservation.id).where(Reservation.code == code))
        if result.scalar_one_or_none() is None:
            return code


def duplicate_request(day: date, time: str) -> DuplicateRequest:
    return DuplicateRequest(
        "You already have a request for this date and time",
        date=day.isoformat(),
        time=time,
    )


async def ensure_no_duplicate(
    db: AsyncSession,
    phone: Optional[str],
    day: date,
    time: str,
    exclude_id: Optional[uuid.UUID] = None,
) -> None:
    """One active reservation per phone, date and start time"""
    if phone is None:
        return
    query = select(Reservation.id).where(
        Reservation.guest_phone == phone,
        Reservation.date == day,
        Reservation.time == time,
        Reservation.status.in_([s.value for s in ACTIVE_STATUSES]),
    )
    if exclude_id is not None:
        query = query.where(Reservation.id != exclude_id)
    result = await db.execute(query)
    if result.first() is not None:
        raise duplicate_request(day, time)


async def insert_reservation(db: AsyncSession, reservation: Reservation) -> Reservation:
    db.add(reservation)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race against a concurrent identical request
        raise duplicate_request(reservation.date, reservation.time) from e
    return reservation


class BookingService:
    """Entry point for every reservation operation; each call is one transaction"""

    def __init__(
        self,
        db: AsyncSession,
        config: RestaurantConfig,
        gateway: PaymentGateway,
        notifier: Notifier,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.config = config
        self.notifier = notifier
        self.clock = clock
        self.availability = AvailabilityService(db, config, clock)
        self.payments = PaymentOrchestrator(db, gateway, config, clock)

    def _variables(self, reservation: Reservation, **extra: Any) -> Dict[str, Any]:
        return {
            "restaurant_name": self.config.restaurant_name,
            "code": reservation.code,
            "guest_name": reservation.guest_name,
            "party_size": reservation.party_size,
            "date": reservation.date.strftime("%a %b %d"),
            "time": reservation.time,
            **extra,
        }

    def _notify(self, template: str, reservation: Reservation, **extra: Any) -> None:
        self.notifier.send(
            template,
            reservation.guest_phone,
            self._variables(reservation, **extra),
            reservation_id=str(reservation.id),
        )

    async def get_availability(self, day: date, party_size: int) -> Tuple[List[Slot], DepositInfo, int]:
        slots = await self.availability.list_slots(day, party_size)
        deposit = evaluate_deposit(self.config, day, party_size)
        return slots, deposit, dining_duration(self.config, party_size)

    async def get(self, reservation_id: uuid.UUID) -> Reservation:
        reservation = await self.db.get(Reservation, reservation_id)
        if reservation is None:
            raise NotFound("Reservation not found", reservation_id=str(reservation_id))
        return reservation

    async def get_by_code(self, code: str) -> Reservation:
        result = await self.db.execute(select(Reservation).where(Reservation.code == code.strip().upper()))
        reservation = result.scalar_one_or_none()
        if reservation is None:
            raise NotFound("Reservation not found")
        return reservation

    async def list(
        self,
        day: Optional[date] = None,
        status: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Reservation]:
        query = select(Reservation)
        if day is not None:
            query = query.where(Reservation.date == day)
        if status:
            query = query.where(Reservation.status == status)
        query = query.order_by(Reservation.date, Reservation.time).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def request_reservation(self, data: ReservationRequest) -> Reservation:
        """Guest booking request; lands in pending"""
        time = minutes_to_time(time_to_minutes(data.time))
        duration = await self.availability.check_slot(data.date, time, data.party_size)
        phone = normalize_phone(data.guest_phone)
        await ensure_no_duplicate(self.db, phone, data.date, time)
        deposit = evaluate_deposit(self.config, data.date, data.party_size)
        now = self.clock()

        async with unit_of_work(self.db):
            guest = await get_or_create_guest(self.db, data.guest_name, phone, data.guest_email)
            reservation = Reservation(
                code=await unique_code(self.db),
                payments=[],
                guest_id=guest.id if guest else None,
                guest_name=data.guest_name,
                guest_phone=phone,
                guest_email=data.guest_email,
                party_size=data.party_size,
                date=data.date,
                time=time,
                end_time=add_minutes(time, duration),
                duration_min=duration,
                status=ReservationStatus.PENDING.value,
                source=ReservationSource.WIDGET.value,
                requires_deposit=deposit.required,
                deposit_amount=deposit.amount,
                special_requests=data.special_requests,
                created_at=now,
                updated_at=now,
            )
            await insert_reservation(self.db, reservation)
            record_audit(
                self.db,
                "request",
                "reservation",
                reservation.id,
                actor=data.guest_name,
                actor_type="guest",
                after=reservation.status,
            )

        logger.info(
            "reservation_requested",
            reservation_id=str(reservation.id),
            code=reservation.code,
            date=reservation.date.isoformat(),
            time=reservation.time,
            party_size=reservation.party_size,
            deposit_required=deposit.required,
        )
        self._notify("request_received", reservation)
        return reservation

    async def create_staff_reservation(self, data: StaffReservationCreate, actor: str) -> Reservation:
        """Walk-ins start seated now; staff bookings start approved"""
        self.availability.validate_party_size(data.party_size)
        table = await self._get_table(data.table_id) if data.table_id else None
        now = self.clock()
        local = self.availability.now()

        if data.source == ReservationSource.WALK_IN.value:
            day = local.date()
            time = minutes_to_time(local.hour * 60 + local.minute)
            duration = dining_duration(self.config, data.party_size)
            status = ReservationStatus.SEATED
        else:
            if data.date is None or data.time is None:
                raise ValidationError("Date and time are required for staff reservations")
            day = data.date
            time = minutes_to_time(time_to_minutes(data.time))
            # Staff may overbook; the time still has to be on the schedule
            duration = await self.availability.check_slot(day, time, data.party_size, enforce_capacity=False)
            status = ReservationStatus.APPROVED

        phone = normalize_phone(data.guest_phone)
        await ensure_no_duplicate(self.db, phone, day, time)
        deposit = evaluate_deposit(self.config, day, data.party_size)

        async with unit_of_work(self.db):
            guest = await get_or_create_guest(self.db, data.guest_name, phone, data.guest_email)
            reservation = Reservation(
                code=await unique_code(self.db),
                payments=[],
                guest_id=guest.id if guest else None,
                guest_name=data.guest_name,
                guest_phone=phone,
                guest_email=data.guest_email,
                party_size=data.party_size,
                date=day,
                time=time,
                end_time=add_minutes(time, duration),
                duration_min=duration,
                status=status.value,
                source=data.source,
                table_id=table.id if table else None,
                requires_deposit=deposit.required and status == ReservationStatus.APPROVED,
                deposit_amount=deposit.amount if status == ReservationStatus.APPROVED else 0,
                special_requests=data.special_requests,
                notes=data.notes,
                approved_at=now,
                seated_at=now if status == ReservationStatus.SEATED else None,
                created_by=actor,
                created_at=now,
                updated_at=now,
            )
            await insert_reservation(self.db, reservation)
            record_audit(self.db, "create", "reservation", reservation.id, actor=actor, after=status.value)

        logger.info(
            "reservation_created_by_staff",
            reservation_id=str(reservation.id),
            source=data.source,
            status=status.value,
            actor=actor,
        )
        if status == ReservationStatus.APPROVED:
            self._notify("approved", reservation)
        return reservation

    async def _get_table(self, table_id: uuid.UUID) -> RestaurantTable:
        table = await self.db.get(RestaurantTable, table_id)
        if table is None or not table.is_active:
            raise NotFound("Table not found", table_id=str(table_id))
        return table

    async def act(
        self,
        reservation_id: uuid.UUID,
        data: ReservationAction,
        actor: Optional[str],
        actor_type: str = "staff",
    ) -> Reservation:
        """Run one guarded lifecycle action and its cascading effects atomically"""
        reservation = await self.get(reservation_id)
        action = Action(data.action)
        before = reservation.status
        day, current_time = reservation.date, reservation.time
        # Guard first so a rejected action never touches the record
        target_status(action, before)

        if data.table_id is not None:
            await self._get_table(data.table_id)
        new_time: Optional[str] = None
        if action == Action.COUNTER:
            if not data.new_time:
                raise ValidationError("A counter-offer needs a proposed time")
            new_time = minutes_to_time(time_to_minutes(data.new_time))
            await self.availability.check_slot(
                reservation.date,
                new_time,
                reservation.party_size,
                exclude_id=reservation.id,
                enforce_capacity=False,
            )
            await ensure_no_duplicate(
                self.db, reservation.guest_phone, reservation.date, new_time, exclude_id=reservation.id
            )

        charge: Optional[NoShowCharge] = None
        try:
            async with unit_of_work(self.db):
                target = apply_transition(
                    reservation,
                    action,
                    now=self.clock(),
                    counter_offer_hours=self.config.counter_offer_hours,
                    new_time=new_time,
                    table_id=data.table_id,
                )
                released: Optional[ReservationPayment] = None
                if action in RELEASES_PAYMENT:
                    released = await self.payments.release_pending(
                        reservation, include_deposits=action != Action.COMPLETE
                    )
                if action == Action.NOSHOW:
                    charge = await self.payments.charge_no_show(reservation)
                if action in (Action.COMPLETE, Action.NOSHOW) and reservation.guest_id is not None:
                    await refresh_guest_stats(self.db, reservation.guest_id)
                record_audit(
                    self.db,
                    action.value,
                    "reservation",
                    reservation.id,
                    actor=actor,
                    actor_type=actor_type,
                    before=before,
                    after=target.value,
                    reason=data.reason,
                    payment_released=str(released.id) if released else None,
                    noshow_charge=charge.model_dump() if charge else None,
                )
        except IntegrityError as e:
            # A concurrent booking took the same phone and slot
            raise duplicate_request(day, new_time or current_time) from e

        logger.info(
            "reservation_transition",
            reservation_id=str(reservation.id),
            action=action.value,
            from_status=before,
            to_status=target.value,
            actor=actor,
        )

        template = ACTION_TEMPLATES.get(action)
        if template == "counter_offered":
            self._notify(
                template,
                reservation,
                original_time=reservation.original_time,
                hours=self.config.counter_offer_hours,
            )
        elif template:
            self._notify(template, reservation)
        if charge is not None and charge.success:
            self._notify("noshow_charged", reservation, amount=format_amount(charge.amount, self.config.currency))
        return reservation

    async def _verify(self, reservation: Reservation, code: str, phone_last4: str) -> None:
        if reservation.code.upper() != code.strip().upper() or not phone_matches_last4(
            reservation.guest_phone, phone_last4
        ):
            logger.warning("guest_verification_failed", reservation_id=str(reservation.id))
            raise VerificationFailed("Reservation code or phone number does not match")

    async def self_service(self, code: str, phone_last4: str, action: str) -> Reservation:
        """Guest lookup or cancellation by code and last four phone digits"""
        try:
            reservation = await self.get_by_code(code)
        except NotFound:
            raise VerificationFailed("Reservation code or phone number does not match") from None
        await self._verify(reservation, code, phone_last4)
        if action == "lookup":
            return reservation

        if reservation.status in (ReservationStatus.ARRIVED.value, ReservationStatus.SEATED.value):
            raise InvalidTransition("cancel", reservation.status)
        start = local_to_utc(reservation.date, reservation.time, self.availability.zone).replace(tzinfo=None)
        cutoff = timedelta(hours=self.config.self_service_cutoff_hours)
        if not reservation.is_terminal and start - self.clock() < cutoff:
            raise ValidationError(
                "Online cancellation has closed for this reservation; please call the restaurant",
                cutoff_hours=self.config.self_service_cutoff_hours,
            )
        return await self.act(
            reservation.id,
            ReservationAction(action="cancel", reason="guest self-service"),
            actor=reservation.guest_name,
            actor_type="guest",
        )

    async def create_payment_intent(
        self, reservation_id: uuid.UUID, code: str, phone_last4: str
    ) -> Tuple[ReservationPayment, Optional[str]]:
        """Verified guest request for the deposit or hold intent"""
        reservation = await self.get(reservation_id)
        await self._verify(reservation, code, phone_last4)
        if reservation.is_terminal:
            raise AlreadyProcessed("Reservation is no longer active", status=reservation.status)
        if not reservation.requires_deposit or reservation.deposit_amount <= 0:
            raise ValidationError("No deposit is required for this reservation")

        payment_type = PaymentType(self.config.deposit_type.value)
        async with unit_of_work(self.db):
            payment, client_secret = await self.payments.create_hold(
                reservation, reservation.deposit_amount, payment_type
            )
            record_audit(
                self.db,
                "payment_intent",
                "payment",
                payment.id,
                actor=reservation.guest_name,
                actor_type="guest",
                after=payment.status,
                reservation_id=str(reservation.id),
            )
        return payment, client_secret

    async def expire_stale(self) -> int:
        """Expire lapsed counter-offers and pending requests whose start has passed"""
        now = self.clock()
        result = await self.db.execute(
            select(Reservation).where(
                Reservation.status.in_(
                    [ReservationStatus.PENDING.value, ReservationStatus.COUNTER_OFFERED.value]
                )
            )
        )
        expired = 0
        for reservation in result.scalars().all():
            start = local_to_utc(reservation.date, reservation.time, self.availability.zone).replace(tzinfo=None)
            lapsed = reservation.counter_expires_at is not None and reservation.counter_expires_at <= now
            if not lapsed and start > now:
                continue
            try:
                await self.act(
                    reservation.id,
                    ReservationAction(action="expire", reason="expired"),
                    actor="expiry job",
                    actor_type="system",
                )
                expired += 1
            except Exception as e:
                logger.error("reservation_expire_failed", reservation_id=str(reservation.id), error=str(e))
        return expired

    async def send_reminders(self) -> int:
        """Remind guests of approved bookings starting within the lead window"""
        now = self.clock()
        horizon = now + timedelta(hours=self.config.reminder_lead_hours)
        result = await self.db.execute(
            select(Reservation).where(
                Reservation.status.in_([ReservationStatus.APPROVED.value, ReservationStatus.CONFIRMED.value]),
                Reservation.reminder_sent_at.is_(None),
                Reservation.guest_phone.is_not(None),
            )
        )
        due = []
        for reservation in result.scalars().all():
            start = local_to_utc(reservation.date, reservation.time, self.availability.zone).replace(tzinfo=None)
            if now < start <= horizon:
                due.append(reservation)

        async with unit_of_work(self.db):
            for reservation in due:
                reservation.reminder_sent_at = now
        for reservation in due:
            self._notify("reminder", reservation)
        logger.info("reservation_reminders_queued", count=len(due))
        return len(due)

    async def upcoming_for_phone(self, phone: str) -> Optional[Reservation]:
        """Soonest active reservation for a phone, today or later"""
        today = self.availability.now().date()
        result = await self.db.execute(
            select(Reservation)
            .where(
                Reservation.guest_phone == normalize_phone(phone),
                Reservation.date >= today,
                Reservation.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
            .order_by(Reservation.date, Reservation.time)
        )
        return result.scalars().first()

    async def get_payment(self, payment_id: uuid.UUID) -> ReservationPayment:
        payment = await self.db.get(ReservationPayment, payment_id)
        if payment is None:
            raise NotFound("Payment not found", payment_id=str(payment_id))
        return payment

    async def payment_action(
        self, payment_id: uuid.UUID, action: str, amount: Optional[int], actor: Optional[str]
    ) -> ReservationPayment:
        """Staff capture, release or refund of a reservation payment"""
        payment = await self.get_payment(payment_id)
        before = payment.status
        async with unit_of_work(self.db):
            if action == "capture":
                await self.payments.capture(payment, amount)
            elif action == "release":
                await self.payments.release(payment)
            elif action == "refund":
                await self.payments.refund(payment, amount)
            else:
                raise ValidationError(f"Unknown payment action: {action}")
            record_audit(
                self.db,
                action,
                "payment",
                payment.id,
                actor=actor,
                before=before,
                after=payment.status,
                amount=amount,
            )
        return payment

    async def reconcile_processor_event(self, intent: ProcessorIntent) -> Optional[ReservationPayment]:
        """Apply a processor webhook to the matching local payment"""
        result = await self.db.execute(
            select(ReservationPayment).where(ReservationPayment.processor_intent_id == intent.id)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            logger.warning("processor_event_unmatched", intent_id=intent.id, processor_status=intent.status)
            return None
        before = payment.status
        async with unit_of_work(self.db):
            changed = self.payments.apply_processor_state(payment, intent)
            if changed:
                record_audit(
                    self.db,
                    "processor_event",
                    "payment",
                    payment.id,
                    actor="stripe",
                    actor_type="system",
                    before=before,
                    after=payment.status,
                )
        logger.info(
            "processor_event_applied",
            payment_id=str(payment.id),
            processor_status=intent.status,
            status=payment.status,
            changed=changed,
        )
        return payment
