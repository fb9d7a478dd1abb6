"""
Celery Worker Configuration
Runs the bill ledger export off the request path, with Redis as broker and
result backend.

Run with:
    celery -A snappy_serve.celery_worker worker -Q bill_ledger --loglevel=info
"""

from celery import Celery

from snappy_serve.core.config import get_settings

settings = get_settings()

celery_app = Celery(
    'snappy_serve',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['snappy_serve.tasks'],
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    # Every ledger task lands on one queue; the health check stays on the default
    task_routes={
        'snappy_serve.tasks.export_bill_to_excel': {'queue': settings.ledger_queue},
        'snappy_serve.tasks.clear_bill_ledger': {'queue': settings.ledger_queue},
    },

    worker_concurrency=settings.worker_concurrency,
    worker_prefetch_multiplier=1,

    # An export result only matters to whoever checks right after billing
    result_expires=900,

    # A bill picked up by a worker that dies is exported again; the ledger skips
    # bill ids it already holds
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    broker_connection_retry_on_startup=True,
)


if __name__ == '__main__':
    celery_app.start()
