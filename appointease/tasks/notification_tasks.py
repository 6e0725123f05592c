# ===== appointease/tasks/notification_tasks.py =====
import asyncio
import logging
from typing import Any, Dict

import httpx

from appointease.config.celery_config import celery_app
from appointease.config.settings import get_settings

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3)
def send_appointment_notification(self, payload: Dict[str, Any]):
    """
    Deliver an appointment event to the notification collaborator

    Args:
        payload: AppointmentNotificationPayload as JSON-compatible dict
    """
    settings = get_settings()
    event_type = payload.get("event_type")
    appointment_id = payload.get("appointment_id")

    if not settings.NOTIFICATION_WEBHOOK_URL:
        logger.info(f"No notification endpoint configured, dropping {event_type} for {appointment_id}")
        return {"status": "skipped", "appointment_id": appointment_id}

    try:
        logger.info(f"Delivering {event_type} for appointment {appointment_id}")

        response = httpx.post(
            settings.NOTIFICATION_WEBHOOK_URL,
            json=payload,
            headers={
                "X-Event-Type": event_type or "",
                "X-Correlation-ID": payload.get("correlation_id") or "",
            },
            timeout=settings.NOTIFICATION_TIMEOUT_SECONDS,
        )
        response.raise_for_status()

        logger.info(f"Delivered {event_type} for appointment {appointment_id}")
        return {"status": "success", "appointment_id": appointment_id}

    except Exception as exc:
        logger.error(f"Failed to deliver {event_type} for appointment {appointment_id}: {exc}")

        # Retry with exponential backoff: 1min, 2min, 4min
        raise self.retry(
            exc=exc,
            countdown=60 * (2 ** self.request.retries)
        )


async def _run_with_worker_session(handler):
    # Each asyncio.run needs its own engine; pooled connections can't cross event loops
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from appointease.config.database import build_engine

    engine = build_engine(pooled=False)
    try:
        session_factory = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
        async with session_factory() as db:
            return await handler(db)
    finally:
        await engine.dispose()


@celery_app.task
def dispatch_due_reminders():
    """Send reminders for appointments starting within REMINDER_LEAD_HOURS"""
    from appointease.services.appointment.status_service import AppointmentStatusService

    async def handler(db):
        return await AppointmentStatusService(db).dispatch_due_reminders()

    sent = asyncio.run(_run_with_worker_session(handler))
    logger.info(f"Reminder sweep finished: {sent} reminder(s) dispatched")
    return {"status": "success", "reminders_sent": sent}


@celery_app.task
def complete_elapsed_appointments():
    """Mark confirmed appointments whose time window has passed as completed"""
    from appointease.services.appointment.status_service import AppointmentStatusService

    async def handler(db):
        return await AppointmentStatusService(db).complete_elapsed()

    completed = asyncio.run(_run_with_worker_session(handler))
    logger.info(f"Completion sweep finished: {completed} appointment(s) completed")
    return {"status": "success", "completed": completed}
