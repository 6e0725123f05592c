# appointease/services/notification/notification_service.py
"""Fire-and-forget appointment events for the notification worker"""
import asyncio
import logging
from typing import Optional

from appointease.config.settings import get_settings
from appointease.models.appointment import Appointment
from appointease.models.business import Customer
from appointease.models.service import Service
from appointease.schemas.task_payloads import AppointmentNotificationPayload, NotificationEvent
from appointease.tasks.notification_tasks import send_appointment_notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Queues appointment events; never raises into the caller"""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id
        self.settings = get_settings()

    def build_payload(
            self,
            event_type: NotificationEvent,
            appointment: Appointment,
            service: Optional[Service] = None,
            customer: Optional[Customer] = None
    ) -> AppointmentNotificationPayload:
        return AppointmentNotificationPayload(
            event_type=event_type,
            appointment_id=str(appointment.id),
            business_id=str(appointment.business_id),
            customer_id=str(appointment.customer_id),
            staff_id=str(appointment.staff_id),
            service_name=service.name if service else None,
            customer_email=customer.email if customer else None,
            appointment_date=appointment.date.isoformat(),
            duration_minutes=appointment.duration_minutes,
            status=appointment.status.value,
            payment_status=appointment.payment_status.value,
            correlation_id=self.correlation_id,
        )

    async def dispatch(
            self,
            event_type: NotificationEvent,
            appointment: Appointment,
            service: Optional[Service] = None,
            customer: Optional[Customer] = None
    ) -> bool:
        """
        Queue an event after a successful commit.

        The broker publish is blocking, so it runs in the default executor
        and the event loop keeps serving other requests while it waits.
        Delivery problems are logged and swallowed: the appointment change
        has already been committed and must stand.

        Returns:
            True if the event was queued
        """
        try:
            payload = self.build_payload(event_type, appointment, service, customer).model_dump(mode="json")

            loop = asyncio.get_running_loop()
            await asyncio.wait_for(
                loop.run_in_executor(None, send_appointment_notification.delay, payload),
                timeout=self.settings.NOTIFICATION_QUEUE_TIMEOUT_SECONDS,
            )

            logger.info(f"Queued {event_type} notification for appointment {appointment.id}")
            return True
        except asyncio.TimeoutError:
            logger.error(f"Timeout queueing {event_type} notification for appointment {appointment.id}")
            return False
        except Exception as e:
            logger.error(f"Failed to queue {event_type} notification for appointment {appointment.id}: {e}")
            return False
