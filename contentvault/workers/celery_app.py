"""
Celery application instance and configuration.
"""

from celery import Celery
from celery.schedules import crontab

from contentvault.core.config import settings

# Create Celery application
celery_app = Celery(
    "contentvault",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes
    task_soft_time_limit=8 * 60,  # 8 minutes
    result_expires=3600,  # 1 hour
    # Concurrency bound for embedding jobs
    worker_concurrency=settings.EMBEDDING_WORKER_CONCURRENCY,
    # At-least-once: ack after the task body ran, redeliver if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    'reprocess-failed-embedding-jobs': {
        'task': 'embedding.reprocess_failed_jobs',
        'schedule': crontab(minute='0', hour='*/2'),  # Every 2 hours
        'options': {'queue': 'embedding'},
    },
    'cleanup-orphaned-vectors': {
        'task': 'embedding.cleanup_orphaned_vectors',
        'schedule': crontab(minute='0', hour='3'),  # Daily at 3 AM
        'options': {'queue': 'embedding'},
    },
    'get-pipeline-stats': {
        'task': 'embedding.get_pipeline_stats',
        'schedule': crontab(minute='*/15'),  # Every 15 minutes
        'options': {'queue': 'monitoring'},
    },
}

# Task routing
celery_app.conf.task_routes = {
    'embedding.get_pipeline_stats': {'queue': 'monitoring'},
    'embedding.*': {'queue': 'embedding'},
}

# Auto-discover tasks from contentvault.tasks
celery_app.autodiscover_tasks(['contentvault.tasks'], related_name='embedding_tasks')
