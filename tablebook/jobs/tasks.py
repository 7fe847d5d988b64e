"""Background job tasks"""

import asyncio
from typing import Any, Dict, Optional
from uuid import UUID

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient
import structlog

from tablebook.config import Settings, get_settings
from tablebook.database import session_scope
from tablebook.jobs.celery_app import celery_app

logger = structlog.get_logger()


def run_async(coro):
    """Run a coroutine to completion from a synchronous task"""
    return asyncio.run(coro)


async def _record_delivery(
    template: str,
    to: str,
    body: Optional[str],
    variables: Dict[str, Any],
    status: str,
    reservation_id: Optional[str],
    waitlist_entry_id: Optional[str],
    message_sid: Optional[str] = None,
    error: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    from tablebook.models.notification import NotificationLog

    async with session_scope(settings or get_settings()) as db:
        db.add(
            NotificationLog(
                template=template,
                recipient=to,
                body=body,
                variables_json=variables,
                status=status,
                provider_message_id=message_sid,
                error=error,
                reservation_id=UUID(reservation_id) if reservation_id else None,
                waitlist_entry_id=UUID(waitlist_entry_id) if waitlist_entry_id else None,
            )
        )
        await db.commit()


def deliver_sms(client: TwilioClient, from_number: str, to: str, body: str) -> str:
    """Send one SMS; returns the provider message id"""
    message = client.messages.create(body=body, from_=from_number, to=to)
    return message.sid


def _e164(phone: str) -> str:
    digits = "".join(ch for ch in phone if ch.isdigit())
    if phone.startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


@celery_app.task(name="send_notification")
def send_notification(
    template: str,
    to: str,
    variables: Dict[str, Any],
    reservation_id: Optional[str] = None,
    waitlist_entry_id: Optional[str] = None,
):
    """Render a template and deliver it by SMS; every attempt is logged"""
    from tablebook.engine.notifier import render

    settings = get_settings()
    body = render(template, variables)

    if not settings.twilio_account_sid or not settings.twilio_phone_number:
        logger.info("notification_skipped", template=template, reason="sms_not_configured")
        run_async(
            _record_delivery(
                template, to, body, variables, "skipped", reservation_id, waitlist_entry_id, settings=settings
            )
        )
        return

    client = TwilioClient(settings.twilio_account_sid, settings.twilio_auth_token)
    try:
        sid = deliver_sms(client, settings.twilio_phone_number, _e164(to), body)
    except TwilioException as e:
        logger.error(
            "notification_delivery_failed",
            template=template,
            reservation_id=reservation_id,
            waitlist_entry_id=waitlist_entry_id,
            error=str(e),
        )
        run_async(
            _record_delivery(
                template, to, body, variables, "failed", reservation_id, waitlist_entry_id,
                error=str(e), settings=settings,
            )
        )
        return

    logger.info("notification_sent", template=template, reservation_id=reservation_id, message_sid=sid)
    run_async(
        _record_delivery(
            template, to, body, variables, "sent", reservation_id, waitlist_entry_id,
            message_sid=sid, settings=settings,
        )
    )


async def _with_services(job):
    """Run a job coroutine with a fresh session and the stored configuration"""
    from tablebook.engine.booking import BookingService
    from tablebook.engine.notifier import CeleryNotifier
    from tablebook.engine.settings_store import load_restaurant_config
    from tablebook.engine.waitlist import WaitlistManager
    from tablebook.gateways.stripe_gateway import StripeGateway

    settings = get_settings()
    notifier = CeleryNotifier(celery_app)
    gateway = StripeGateway(settings.stripe_secret_key, timeout=settings.stripe_timeout_seconds)

    async with session_scope(settings) as db:
        config = await load_restaurant_config(db)
        return await job(
            BookingService(db, config, gateway, notifier),
            WaitlistManager(db, config, notifier),
        )


@celery_app.task(name="expire_counter_offers")
def expire_counter_offers():
    """Expire lapsed counter-offers and pending requests that were never answered"""
    logger.info("expire_counter_offers_started")

    async def _expire(service, manager):
        return await service.expire_stale()

    count = run_async(_with_services(_expire))
    logger.info("expire_counter_offers_finished", expired=count)


@celery_app.task(name="send_reservation_reminders")
def send_reservation_reminders():
    """Send reminders for upcoming reservations"""
    logger.info("send_reservation_reminders_started")

    async def _remind(service, manager):
        return await service.send_reminders()

    count = run_async(_with_services(_remind))
    logger.info("send_reservation_reminders_finished", queued=count)


@celery_app.task(name="close_stale_waitlist")
def close_stale_waitlist():
    """Close waitlist entries left over from previous days"""
    logger.info("close_stale_waitlist_started")

    async def _close(service, manager):
        return await manager.close_stale()

    count = run_async(_with_services(_close))
    logger.info("close_stale_waitlist_finished", closed=count)
