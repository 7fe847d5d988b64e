"""Stripe payment gateway"""

import asyncio
from typing import Any, Dict, Optional

import stripe
import structlog

from tablebook.engine.errors import PaymentProcessorError
from tablebook.gateways.base import PaymentGateway, ProcessorIntent, ProcessorRefund

logger = structlog.get_logger()


def to_processor_intent(obj: Any) -> ProcessorIntent:
    return ProcessorIntent(
        id=obj.id,
        status=obj.status,
        amount=obj.amount,
        amount_capturable=getattr(obj, "amount_capturable", None) or 0,
        amount_received=getattr(obj, "amount_received", None) or 0,
        currency=getattr(obj, "currency", None) or "usd",
        client_secret=getattr(obj, "client_secret", None),
    )


class StripeGateway(PaymentGateway):
    """Stripe PaymentIntents; blocking SDK calls run in a worker thread"""

    def __init__(self, api_key: str, timeout: int = 20):
        self.api_key = api_key
        # Retries belong to the caller; a timeout surfaces as a failed action
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout)

    async def _call(self, operation: str, func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            logger.error(
                "stripe_call_failed",
                operation=operation,
                error=str(e),
                code=getattr(e, "code", None),
            )
            raise PaymentProcessorError(
                f"Payment processor error during {operation}",
                operation=operation,
                processor_code=getattr(e, "code", None),
            ) from e

    async def create_intent(
        self,
        amount: int,
        currency: str,
        manual_capture: bool,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> ProcessorIntent:
        intent = await self._call(
            "create_intent",
            stripe.PaymentIntent.create,
            amount=amount,
            currency=currency,
            capture_method="manual" if manual_capture else "automatic",
            automatic_payment_methods={"enabled": True},
            metadata=metadata,
            idempotency_key=idempotency_key,
        )
        return to_processor_intent(intent)

    async def retrieve_intent(self, intent_id: str) -> ProcessorIntent:
        intent = await self._call("retrieve_intent", stripe.PaymentIntent.retrieve, intent_id)
        return to_processor_intent(intent)

    async def capture_intent(
        self, intent_id: str, amount: Optional[int], idempotency_key: str
    ) -> ProcessorIntent:
        params: Dict[str, Any] = {"idempotency_key": idempotency_key}
        if amount is not None:
            params["amount_to_capture"] = amount
        intent = await self._call("capture_intent", stripe.PaymentIntent.capture, intent_id, **params)
        return to_processor_intent(intent)

    async def cancel_intent(self, intent_id: str) -> ProcessorIntent:
        intent = await self._call("cancel_intent", stripe.PaymentIntent.cancel, intent_id)
        return to_processor_intent(intent)

    async def refund_intent(
        self, intent_id: str, amount: Optional[int], idempotency_key: str
    ) -> ProcessorRefund:
        params: Dict[str, Any] = {"payment_intent": intent_id, "idempotency_key": idempotency_key}
        if amount is not None:
            params["amount"] = amount
        refund = await self._call("refund_intent", stripe.Refund.create, **params)
        return ProcessorRefund(id=refund.id, status=refund.status, amount=refund.amount)
