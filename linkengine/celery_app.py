from celery import Celery
from linkengine.core.config import settings

SCRAPE_TASK_NAME = "linkengine.tasks.execute_scrape_job"
SCRAPE_QUEUE = "scraping"

celery_app = Celery(
    "linkengine",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["linkengine.tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_routes={
        SCRAPE_TASK_NAME: {"queue": SCRAPE_QUEUE},
    },
    task_default_queue="default",
    task_create_missing_queues=True,
    # At-least-once: a job is acknowledged only after it ran, and requeued if the worker dies
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,
)
