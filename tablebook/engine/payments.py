"""Payment orchestration tied to reservation transitions

Nothing here commits. Callers run these methods inside unit_of_work so local
payment rows change in the same transaction as the reservation they belong to,
and only after the processor call has succeeded.
"""

import uuid
from typing import Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from tablebook.engine.errors import (
    AlreadyProcessed,
    BookingError,
    InvalidTransition,
    PaymentProcessorError,
    ValidationError,
)
from tablebook.engine.timeutil import Clock
from tablebook.gateways.base import AWAITING_PAYMENT, PaymentGateway, ProcessorIntent
from tablebook.models.payment import PaymentStatus, PaymentType, ReservationPayment
from tablebook.models.reservation import Reservation
from tablebook.schemas.settings import RestaurantConfig

logger = structlog.get_logger()

# Smallest amount the processor accepts, in minor units
MIN_CHARGE = 50


class NoShowCharge(BaseModel):
    """Outcome of a no-show charge attempt"""
    attempted: bool
    success: bool
    amount: int = 0
    reason: Optional[str] = None


class PaymentOrchestrator:
    """Create, capture, release and refund reservation payments"""

    def __init__(self, db: AsyncSession, gateway: PaymentGateway, config: RestaurantConfig, clock: Clock):
        self.db = db
        self.gateway = gateway
        self.config = config
        self.clock = clock

    async def _reconciled(
        self,
        payment: ReservationPayment,
        call: Callable[[], Awaitable[ProcessorIntent]],
        desired: frozenset,
    ) -> ProcessorIntent:
        """Run a processor call; on failure accept the intent if it already reached a desired state"""
        try:
            return await call()
        except PaymentProcessorError:
            try:
                intent = await self.gateway.retrieve_intent(payment.processor_intent_id)
            except PaymentProcessorError:
                intent = None
            if intent is not None and intent.status in desired:
                logger.info(
                    "payment_reconciled",
                    payment_id=str(payment.id),
                    processor_status=intent.status,
                )
                return intent
            raise

    def _move(self, payment: ReservationPayment, new_status: PaymentStatus) -> None:
        if not payment.can_transition_to(new_status):
            raise InvalidTransition(new_status.value, payment.status)
        payment.status = new_status.value

    async def create_hold(
        self, reservation: Reservation, amount: int, payment_type: PaymentType
    ) -> Tuple[ReservationPayment, Optional[str]]:
        """Create (or reuse) the processor intent for a reservation; returns the client secret"""
        if amount < MIN_CHARGE:
            raise ValidationError(f"Amount must be at least {MIN_CHARGE}", amount=amount)

        existing = reservation.payment
        if existing is not None:
            if existing.status != PaymentStatus.PENDING.value:
                raise AlreadyProcessed(
                    "Payment has already been processed",
                    payment_id=str(existing.id),
                    payment_status=existing.status,
                )
            intent = await self.gateway.retrieve_intent(existing.processor_intent_id)
            existing.processor_status = intent.status
            if intent.status in ("requires_capture", "processing", "succeeded"):
                raise AlreadyProcessed(
                    "Payment has already been authorized",
                    payment_id=str(existing.id),
                    processor_status=intent.status,
                )
            if (
                intent.status in AWAITING_PAYMENT
                and existing.amount == amount
                and existing.type == payment_type.value
            ):
                return existing, intent.client_secret

            # Stale intent: cancel it before creating its replacement
            if intent.status != "canceled":
                await self._reconciled(
                    existing,
                    lambda: self.gateway.cancel_intent(existing.processor_intent_id),
                    frozenset({"canceled"}),
                )
            self._move(existing, PaymentStatus.CANCELLED)
            existing.processor_status = "canceled"
            existing.cancelled_at = self.clock()
            await self.db.flush()
            logger.info("payment_superseded", payment_id=str(existing.id), reservation_id=str(reservation.id))

        payment_id = uuid.uuid4()
        intent = await self.gateway.create_intent(
            amount=amount,
            currency=self.config.currency,
            manual_capture=payment_type == PaymentType.HOLD,
            metadata={
                "reservation_id": str(reservation.id),
                "reservation_code": reservation.code,
                "payment_type": payment_type.value,
            },
            idempotency_key=f"payment-{payment_id}",
        )
        payment = ReservationPayment(
            id=payment_id,
            reservation_id=reservation.id,
            type=payment_type.value,
            status=PaymentStatus.PENDING.value,
            amount=amount,
            currency=self.config.currency,
            processor_intent_id=intent.id,
            processor_status=intent.status,
            created_at=self.clock(),
        )
        self.db.add(payment)
        reservation.payments.append(payment)
        await self.db.flush()

        logger.info(
            "payment_hold_created",
            payment_id=str(payment.id),
            reservation_id=str(reservation.id),
            amount=amount,
            payment_type=payment_type.value,
        )
        return payment, intent.client_secret

    async def capture(self, payment: ReservationPayment, amount: Optional[int] = None) -> ReservationPayment:
        if payment.status == PaymentStatus.CAPTURED.value:
            return payment
        if not payment.can_transition_to(PaymentStatus.CAPTURED):
            raise InvalidTransition("capture", payment.status)
        if amount is not None and not MIN_CHARGE <= amount <= payment.amount:
            raise ValidationError(
                f"Capture amount must be between {MIN_CHARGE} and {payment.amount}",
                amount=amount,
            )

        if payment.type == PaymentType.DEPOSIT.value:
            # Deposits capture automatically once the guest pays
            intent = await self.gateway.retrieve_intent(payment.processor_intent_id)
            if intent.status != "succeeded":
                payment.processor_status = intent.status
                raise PaymentProcessorError(
                    "Deposit has not been paid",
                    payment_id=str(payment.id),
                    processor_status=intent.status,
                )
        else:
            intent = await self._reconciled(
                payment,
                lambda: self.gateway.capture_intent(
                    payment.processor_intent_id, amount, idempotency_key=f"capture-{payment.id}"
                ),
                frozenset({"succeeded"}),
            )

        self._move(payment, PaymentStatus.CAPTURED)
        payment.processor_status = intent.status
        payment.amount_captured = intent.amount_received or amount or payment.amount
        payment.captured_at = self.clock()
        logger.info("payment_captured", payment_id=str(payment.id), amount=payment.amount_captured)
        return payment

    async def release(self, payment: ReservationPayment) -> ReservationPayment:
        """Cancel an uncaptured intent so the guest is never charged"""
        if payment.status == PaymentStatus.RELEASED.value:
            return payment
        if not payment.can_transition_to(PaymentStatus.RELEASED):
            raise InvalidTransition("release", payment.status)

        intent = await self._reconciled(
            payment,
            lambda: self.gateway.cancel_intent(payment.processor_intent_id),
            frozenset({"canceled"}),
        )
        self._move(payment, PaymentStatus.RELEASED)
        payment.processor_status = intent.status
        payment.released_at = self.clock()
        logger.info("payment_released", payment_id=str(payment.id), reservation_id=str(payment.reservation_id))
        return payment

    async def refund(self, payment: ReservationPayment, amount: Optional[int] = None) -> ReservationPayment:
        if payment.status == PaymentStatus.REFUNDED.value:
            return payment
        if not payment.can_transition_to(PaymentStatus.REFUNDED):
            raise InvalidTransition("refund", payment.status)
        refundable = payment.amount_captured or payment.amount
        if amount is not None and not 0 < amount <= refundable:
            raise ValidationError(f"Refund amount must be between 1 and {refundable}", amount=amount)

        # The idempotency key makes a retried refund a no-op at the processor
        refund = await self.gateway.refund_intent(
            payment.processor_intent_id, amount, idempotency_key=f"refund-{payment.id}"
        )
        self._move(payment, PaymentStatus.REFUNDED)
        payment.amount_refunded = refund.amount
        payment.refunded_at = self.clock()
        logger.info("payment_refunded", payment_id=str(payment.id), amount=refund.amount)
        return payment

    async def release_pending(self, reservation: Reservation, include_deposits: bool) -> Optional[ReservationPayment]:
        """Release a still-pending hold; optionally void an unpaid deposit too"""
        payment = reservation.payment
        if payment is None or payment.status != PaymentStatus.PENDING.value:
            return None
        if payment.type == PaymentType.HOLD.value:
            return await self.release(payment)
        if not include_deposits:
            return None

        intent = await self.gateway.retrieve_intent(payment.processor_intent_id)
        if intent.status == "succeeded":
            # Paid but not yet reconciled; leave it for a staff refund
            self._move(payment, PaymentStatus.CAPTURED)
            payment.processor_status = intent.status
            payment.amount_captured = intent.amount_received
            payment.captured_at = self.clock()
            return payment
        return await self.release(payment)

    async def charge_no_show(self, reservation: Reservation) -> NoShowCharge:
        """Charge held funds for a no-show; reports failure instead of raising"""
        if not self.config.noshow_charge_enabled:
            return NoShowCharge(attempted=False, success=False, reason="disabled")
        payment = reservation.payment
        if payment is None:
            return NoShowCharge(attempted=False, success=False, reason="no_payment")

        try:
            if payment.type == PaymentType.DEPOSIT.value:
                if payment.status == PaymentStatus.PENDING.value:
                    await self.capture(payment)
                if payment.status != PaymentStatus.CAPTURED.value:
                    return NoShowCharge(attempted=False, success=False, reason=f"payment_{payment.status}")
                return NoShowCharge(attempted=True, success=True, amount=payment.amount_captured)

            if payment.status != PaymentStatus.PENDING.value:
                return NoShowCharge(attempted=False, success=False, reason=f"payment_{payment.status}")
            amount = min(self.config.noshow_charge_amount or payment.amount, payment.amount)
            if amount < MIN_CHARGE:
                return NoShowCharge(attempted=False, success=False, reason="below_minimum")
            await self.capture(payment, amount)
            return NoShowCharge(attempted=True, success=True, amount=payment.amount_captured)
        except BookingError as e:
            payment.failure_reason = e.detail
            logger.warning(
                "noshow_charge_failed",
                reservation_id=str(reservation.id),
                payment_id=str(payment.id),
                error=e.detail,
            )
            return NoShowCharge(attempted=True, success=False, reason=e.code)

    def apply_processor_state(self, payment: ReservationPayment, intent: ProcessorIntent) -> bool:
        """Reconcile a payment from a processor event; never regresses status"""
        payment.processor_status = intent.status
        if payment.status != PaymentStatus.PENDING.value:
            return False
        if intent.status == "succeeded":
            self._move(payment, PaymentStatus.CAPTURED)
            payment.amount_captured = intent.amount_received
            payment.captured_at = self.clock()
            return True
        if intent.status == "canceled":
            self._move(payment, PaymentStatus.RELEASED)
            payment.released_at = self.clock()
            return True
        return False
