"""Booking engine error taxonomy"""

from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base class for errors surfaced to API callers"""

    code = "booking_error"
    http_status = 400

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "detail": self.detail, **self.context}


class ValidationError(BookingError):
    """Malformed or out-of-range input, rejected before touching the store"""

    code = "validation_error"


class InvalidPartySize(ValidationError):
    code = "invalid_party_size"

    def __init__(self, party_size: int, max_party_size: int):
        super().__init__(
            f"Party size must be between 1 and {max_party_size}",
            party_size=party_size,
            max_party_size=max_party_size,
        )


class DuplicateRequest(BookingError):
    code = "duplicate_request"
    http_status = 409


class InvalidTransition(BookingError):
    """A lifecycle action was attempted from a state that does not allow it"""

    code = "invalid_transition"
    http_status = 409

    def __init__(self, action: str, current_status: str):
        super().__init__(
            f"Cannot {action} from {current_status}",
            action=action,
            current_status=current_status,
        )
        self.action = action
        self.current_status = current_status


class SlotUnavailable(BookingError):
    code = "slot_unavailable"
    http_status = 409

    def __init__(self, detail: str, reason: Optional[str] = None, **context: Any):
        super().__init__(detail, reason=reason, **context)
        self.reason = reason


class NoCapacity(SlotUnavailable):
    code = "no_capacity"

    def __init__(self, detail: str = "No capacity left for this time", **context: Any):
        super().__init__(detail, reason="no_capacity", **context)


class PaymentProcessorError(BookingError):
    """The payment processor call failed or returned an unexpected state"""

    code = "payment_processor_error"
    http_status = 502


class VerificationFailed(BookingError):
    code = "verification_failed"
    http_status = 403


class AlreadyProcessed(BookingError):
    code = "already_processed"
    http_status = 409


class NotFound(BookingError):
    code = "not_found"
    http_status = 404
