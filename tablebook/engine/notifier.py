"""Guest notifications

The engine hands notifications to a Notifier after its transaction commits.
Delivery happens in a Celery worker, so a broker or SMS outage never fails the
request that triggered it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger()

TEMPLATES: Dict[str, str] = {
    "request_received": (
        "{restaurant_name}: we received your request for {party_size} on {date} at {time}. "
        "Code {code}. We'll text you once it is confirmed."
    ),
    "approved": (
        "{restaurant_name}: your reservation for {party_size} on {date} at {time} is confirmed. "
        "Code {code}. Reply CANCEL to cancel."
    ),
    "declined": "{restaurant_name}: sorry, we can't accommodate your request for {date} at {time}.",
    "counter_offered": (
        "{restaurant_name}: {original_time} is unavailable on {date}. We can seat {party_size} at {time}. "
        "Reply YES within {hours} hours to accept."
    ),
    "confirmed": "{restaurant_name}: thanks for confirming. See you on {date} at {time}!",
    "cancelled": "{restaurant_name}: your reservation {code} for {date} at {time} has been cancelled.",
    "reminder": (
        "{restaurant_name}: reminder of your reservation for {party_size} on {date} at {time}. "
        "Reply YES to confirm or CANCEL to cancel."
    ),
    "noshow_charged": (
        "{restaurant_name}: we missed you on {date}. A no-show fee of {amount} was charged per our policy."
    ),
    "waitlist_joined": (
        "{restaurant_name}: you're #{position} on the waitlist. Estimated wait: about {minutes} minutes. "
        "Reply CANCEL to leave the list."
    ),
    "waitlist_ready": "{restaurant_name}: your table is ready! Please check in with the host.",
}


def render(template: str, variables: Dict[str, Any]) -> str:
    """Fill a template; unknown templates raise KeyError"""
    return TEMPLATES[template].format(**variables)


def format_amount(amount: int, currency: str = "usd") -> str:
    if currency.lower() == "usd":
        return f"${amount / 100:.2f}"
    return f"{amount / 100:.2f} {currency.upper()}"


class Notifier(ABC):
    """Fire-and-forget notification dispatch"""

    @abstractmethod
    def send(
        self,
        template: str,
        to: Optional[str],
        variables: Dict[str, Any],
        reservation_id: Optional[str] = None,
        waitlist_entry_id: Optional[str] = None,
    ) -> None:
        pass


class CeleryNotifier(Notifier):
    """Queue a send_notification task; dispatch failures are logged only"""

    def __init__(self, celery_app):
        self.celery_app = celery_app

    def send(
        self,
        template: str,
        to: Optional[str],
        variables: Dict[str, Any],
        reservation_id: Optional[str] = None,
        waitlist_entry_id: Optional[str] = None,
    ) -> None:
        if not to:
            logger.info("notification_skipped", template=template, reason="no_recipient")
            return
        try:
            self.celery_app.send_task(
                "send_notification",
                args=[template, to, variables],
                kwargs={"reservation_id": reservation_id, "waitlist_entry_id": waitlist_entry_id},
            )
        except Exception as e:
            logger.error(
                "notification_dispatch_failed",
                template=template,
                reservation_id=reservation_id,
                waitlist_entry_id=waitlist_entry_id,
                error=str(e),
            )
