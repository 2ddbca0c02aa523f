"""
Celery configuration for background scrape jobs.
"""

import socket

import structlog
from celery import Celery, Task
from celery.schedules import crontab
from celery.signals import task_postrun, task_prerun, worker_ready, worker_shutdown
from kombu import Exchange, Queue

from retail_scraper.config.settings import settings

logger = structlog.get_logger(__name__)

celery_app = Celery(
    "retail_scraper",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["retail_scraper.tasks.scraping"],
)

celery_app.conf.update(
    task_routes={
        "scraping/*": {"queue": "scraping"},
        "scrape/*": {"queue": "scraping"},
        "scrape.step.*": {"queue": "scraping"},
        "app/*": {"queue": "scheduled"},
    },

    # Task serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Steps are checkpointed in the result backend, so a lost worker
    # redelivers only the step it was running
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    worker_prefetch_multiplier=1,
    result_expires=86400,

    task_annotations={
        "*": {
            "time_limit": 600,       # 10 minutes
            "soft_time_limit": 540,
        },
        "app/price-update.scheduled": {
            "time_limit": 3600,
            "soft_time_limit": 3300,
        },
    },

    # A browser per worker process is heavy
    worker_concurrency=2,
    worker_max_tasks_per_child=50,

    broker_connection_retry_on_startup=True,

    beat_schedule={
        "price-update-daily": {
            "task": "app/price-update.scheduled",
            "schedule": crontab(hour=settings.PRICE_UPDATE_HOUR, minute=0),
            "options": {"queue": "scheduled"},
        },
    },

    task_default_queue="default",
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("scraping", Exchange("scraping"), routing_key="scraping"),
        Queue("scheduled", Exchange("scheduled"), routing_key="scheduled"),
    ),
)


@worker_ready.connect
def worker_ready_handler(sender=None, **kwargs):
    """Handle worker ready signal."""
    logger.info("Celery worker ready", hostname=socket.gethostname())


@worker_shutdown.connect
def worker_shutdown_handler(sender=None, **kwargs):
    """Handle worker shutdown signal."""
    logger.info("Celery worker shutting down", hostname=socket.gethostname())


@task_prerun.connect
def task_prerun_handler(sender=None, task_id=None, task=None, args=None, kwargs=None, **kwds):
    logger.info("Task starting", task_id=task_id, task_name=task.name if task else None)


@task_postrun.connect
def task_postrun_handler(sender=None, task_id=None, task=None, retval=None, state=None, **kwds):
    logger.info(
        "Task finished",
        task_id=task_id,
        task_name=task.name if task else None,
        state=state,
        success=state == "SUCCESS",
    )


class CallbackTask(Task):
    """Base task that logs failures, retries and successes."""

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        logger.error(
            "Task failed",
            task_id=task_id,
            task_name=self.name,
            exception=str(exc),
            exception_type=type(exc).__name__,
            args=args,
            kwargs=kwargs,
            traceback=str(einfo),
            worker=socket.gethostname(),
        )

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        logger.warning(
            "Task retry",
            task_id=task_id,
            task_name=self.name,
            exception=str(exc),
            retry_count=self.request.retries,
            max_retries=self.max_retries,
            worker=socket.gethostname(),
        )

    def on_success(self, retval, task_id, args, kwargs):
        logger.info(
            "Task completed successfully",
            task_id=task_id,
            task_name=self.name,
            result_type=type(retval).__name__ if retval is not None else None,
            worker=socket.gethostname(),
        )
