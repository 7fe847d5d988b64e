"""Base payment gateway interface"""

from abc import ABC, abstractmethod
from typing import Dict, Optional

from pydantic import BaseModel

# Processor-side intent states that still wait on the guest
AWAITING_PAYMENT = frozenset({"requires_payment_method", "requires_confirmation", "requires_action"})


class ProcessorIntent(BaseModel):
    """Processor view of a payment intent"""
    id: str
    status: str
    amount: int
    amount_capturable: int = 0
    amount_received: int = 0
    currency: str = "usd"
    client_secret: Optional[str] = None


class ProcessorRefund(BaseModel):
    id: str
    status: str
    amount: int


class PaymentGateway(ABC):
    """Abstract base class for payment processors

    Implementations raise PaymentProcessorError for any failed call and never
    retry on their own.
    """

    @abstractmethod
    async def create_intent(
        self,
        amount: int,
        currency: str,
        manual_capture: bool,
        metadata: Dict[str, str],
        idempotency_key: str,
    ) -> ProcessorIntent:
        """Create an intent the guest confirms client-side"""
        pass

    @abstractmethod
    async def retrieve_intent(self, intent_id: str) -> ProcessorIntent:
        pass

    @abstractmethod
    async def capture_intent(
        self, intent_id: str, amount: Optional[int], idempotency_key: str
    ) -> ProcessorIntent:
        """Capture an authorized intent, optionally for less than the held amount"""
        pass

    @abstractmethod
    async def cancel_intent(self, intent_id: str) -> ProcessorIntent:
        pass

    @abstractmethod
    async def refund_intent(
        self, intent_id: str, amount: Optional[int], idempotency_key: str
    ) -> ProcessorRefund:
        pass
