"""
Celery application configuration.

Celery uses Redis as both the message broker and result backend. The worker
pool is the bounded pool that processes inbound chat events after the webhook
has already acknowledged them; WORKER_CONCURRENCY caps simultaneous events and
a warm shutdown drains the ones in flight.
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging
from app.core.config import settings
from app.core.logging_config import setup_logging

# Create Celery instance
celery_app = Celery(
    "screening_worker",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL
)

# Configure Celery
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_time_limit=settings.TASK_TIME_LIMIT,
    task_soft_time_limit=settings.TASK_SOFT_TIME_LIMIT,
    task_ignore_result=True,  # Results live in the database, not the backend

    # Result backend
    result_expires=3600,

    # Worker behavior
    worker_concurrency=settings.WORKER_CONCURRENCY,
    worker_prefetch_multiplier=1,  # Only fetch 1 task at a time
    worker_max_tasks_per_child=50,  # Restart worker after 50 tasks (prevent memory leaks)
)

# Auto-discover tasks from app.tasks module
celery_app.autodiscover_tasks(['app'])


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Use the application's JSON log format inside the worker."""
    setup_logging(settings.LOG_LEVEL, settings.JSON_LOGS)
