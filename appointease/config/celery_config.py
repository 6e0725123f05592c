# appointease/config/celery_config.py
"""Celery configuration and task routing"""
from celery import Celery
from celery.schedules import crontab
from kombu import Queue

from appointease.config.settings import get_settings

settings = get_settings()


def create_celery_app() -> Celery:
    """Create and configure the Celery app used by the notification worker"""
    app = Celery(
        "appointease",
        broker=settings.CELERY_BROKER_URL,
        backend=settings.CELERY_RESULT_BACKEND,
        include=["appointease.tasks.notification_tasks"],
    )

    app.conf.update(
        task_serializer=settings.CELERY_TASK_SERIALIZER,
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,

        # Task routing
        task_routes={
            "appointease.tasks.notification_tasks.send_appointment_notification": {"queue": "notifications"},
            "appointease.tasks.notification_tasks.dispatch_due_reminders": {"queue": "maintenance"},
            "appointease.tasks.notification_tasks.complete_elapsed_appointments": {"queue": "maintenance"},
        },

        # Queue definitions
        task_queues=(
            Queue("notifications", routing_key="notifications"),
            Queue("maintenance", routing_key="maintenance"),
        ),

        # Worker settings
        worker_max_tasks_per_child=1000,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        broker_connection_retry_on_startup=True,

        # Periodic sweeps (run with `celery beat`)
        beat_schedule={
            "dispatch-due-reminders": {
                "task": "appointease.tasks.notification_tasks.dispatch_due_reminders",
                "schedule": crontab(minute="*/15"),
            },
            "complete-elapsed-appointments": {
                "task": "appointease.tasks.notification_tasks.complete_elapsed_appointments",
                "schedule": crontab(minute=f"*/{settings.COMPLETION_SWEEP_MINUTES}"),
            },
        },
    )
    return app


# Create the Celery app instance
celery_app = create_celery_app()
