"""
Celery application configuration
Task queue for campaign email, bulk upload processing and housekeeping
"""
import logging
from celery import Celery
from celery.schedules import crontab

from core.config import settings
from core.logging_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

# Initialize Celery app
celery_app = Celery(
    "thevideopool",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "workers.email_tasks",
        "workers.upload_tasks",
        "workers.maintenance_tasks",
    ]
)

# Celery configuration
celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_track_started=True,
    task_time_limit=3600,  # 1 hour max per task
    task_soft_time_limit=3000,  # 50 minutes soft limit
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=50,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=settings.CELERY_TASK_ALWAYS_EAGER,
)

# Periodic tasks (Celery Beat schedule)
celery_app.conf.beat_schedule = {
    # Start scheduled campaigns whose time has come
    'dispatch-scheduled-campaigns': {
        'task': 'workers.email_tasks.dispatch_scheduled_campaigns',
        'schedule': crontab(minute='*'),
    },
    # Remove bulk download archives older than BULK_DOWNLOAD_MAX_AGE_HOURS
    'cleanup-bulk-downloads': {
        'task': 'workers.maintenance_tasks.cleanup_bulk_downloads',
        'schedule': crontab(minute=0),
    },
    # Clear lapsed memberships daily at 00:30
    'expire-memberships': {
        'task': 'workers.maintenance_tasks.expire_memberships',
        'schedule': crontab(hour=0, minute=30),
    },
}

# Task routes (queue assignment)
celery_app.conf.task_routes = {
    'workers.email_tasks.*': {'queue': 'email'},
    'workers.upload_tasks.*': {'queue': 'video_processing'},
    'workers.maintenance_tasks.*': {'queue': 'default'},
}

# Default queue
celery_app.conf.task_default_queue = 'default'

# Retry policy
celery_app.conf.task_default_retry_delay = 60
celery_app.conf.task_max_retries = 3

logger.info("✅ Celery app configured")
