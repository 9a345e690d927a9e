"""Bodega WMS - Fire-and-forget notification events."""
import logging

from kombu.exceptions import OperationalError

logger = logging.getLogger(__name__)


class NotificationService:
    """Enqueues events for the Celery worker; never blocks the caller on delivery."""

    @staticmethod
    def trigger_event(event_name: str, payload: dict) -> bool:
        from bodega.tasks.notification_tasks import send_notification_event

        try:
            send_notification_event.delay(event_name, payload)
        except OperationalError as exc:
            logger.error("Could not enqueue notification %s: %s", event_name, exc)
            return False
        logger.info("Notification %s enqueued", event_name)
        return True
