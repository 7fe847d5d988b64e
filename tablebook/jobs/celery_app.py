"""Celery application configuration"""

from celery import Celery

from tablebook.config import Settings, get_settings


def create_celery_app(settings: Settings) -> Celery:
    app = Celery(
        "tablebook",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=[
            "tablebook.jobs.tasks",
        ],
    )

    # Configure Celery
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_time_limit=120,
        worker_prefetch_multiplier=1,
        task_acks_late=True,
        task_reject_on_worker_lost=True,

        # Beat schedule for periodic tasks
        beat_schedule={
            "expire-counter-offers": {
                "task": "expire_counter_offers",
                "schedule": 300.0,  # Every 5 minutes
            },
            "send-reservation-reminders": {
                "task": "send_reservation_reminders",
                "schedule": 3600.0,  # Every hour
            },
            "close-stale-waitlist": {
                "task": "close_stale_waitlist",
                "schedule": 86400.0,  # Daily
            },
        },
    )
    return app


# Worker and beat entry point: `celery -A tablebook.jobs.celery_app worker`
celery_app = create_celery_app(get_settings())
