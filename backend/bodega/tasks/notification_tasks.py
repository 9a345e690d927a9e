"""Bodega WMS - Notification delivery Celery tasks."""
import asyncio
import logging

from bodega.core.exceptions import EmailDeliveryError
from bodega.db.session import async_session_maker
from bodega.services.document_renderer import render_dispatch_completed
from bodega.services.email_service import EmailService
from bodega.services.settings_service import SettingsService
from bodega.worker import celery_app

logger = logging.getLogger(__name__)

EVENT_DISPATCH_COMPLETED = "onDispatchCompleted"


@celery_app.task(bind=True, max_retries=3)
def send_notification_event(self, event_name: str, payload: dict) -> int:
    """
    Deliver a notification event. Returns the number of recipients mailed.
    Email failures back off exponentially (5s, 10s, 20s).
    """
    try:
        return asyncio.run(deliver_notification(event_name, payload))
    except EmailDeliveryError as exc:
        delay = (2 ** self.request.retries) * 5
        logger.warning("Notification %s failed, retrying in %ss: %s", event_name, delay, exc)
        raise self.retry(exc=exc, countdown=delay)


async def deliver_notification(
    event_name: str,
    payload: dict,
    email_service: EmailService | None = None,
    session_maker=None,
) -> int:
    if event_name != EVENT_DISPATCH_COMPLETED:
        logger.info("No handler for notification event %s", event_name)
        return 0

    async with (session_maker or async_session_maker)() as db:
        recipients = await SettingsService.get_notification_recipients(db)

    if not recipients:
        logger.info("No recipients configured for %s, skipping", event_name)
        return 0

    subject, html = render_dispatch_completed(payload)
    await (email_service or EmailService.from_settings()).send_email(to=recipients, subject=subject, html=html)
    return len(recipients)
