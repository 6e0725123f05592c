# ============================================================================
# FILE: appointease/api/v1/webhooks/payments.py
# Payment gateway callbacks - shared-secret authenticated
# ============================================================================
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from appointease.api.dependencies import get_notifier, verify_payment_webhook
from appointease.config.database import get_db
from appointease.core.retry import with_store_retry
from appointease.schemas.scheduling import AppointmentResponse, PaymentCallback
from appointease.services.appointment.status_service import AppointmentStatusService
from appointease.services.notification.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post(
    "/payments",
    response_model=AppointmentResponse,
    dependencies=[Depends(verify_payment_webhook)],
)
async def payment_callback(
        callback: PaymentCallback,
        notifier: NotificationService = Depends(get_notifier),
        db: AsyncSession = Depends(get_db)
):
    """
    Record a payment outcome reported by the gateway.
    Repeated callbacks with the same status are accepted and ignored.
    """
    logger.info(
        f"Payment callback for appointment {callback.appointment_id}: "
        f"{callback.payment_status.value} (ref={callback.gateway_reference})"
    )
    service = AppointmentStatusService(db, notifier)
    return await with_store_retry(
        lambda: service.record_payment(callback.appointment_id, callback.payment_status),
        db=db,
    )
