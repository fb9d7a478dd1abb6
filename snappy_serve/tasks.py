"""
Celery Tasks
Background tasks for the bill ledger.
"""

import time
from datetime import datetime

from celery.utils.log import get_task_logger

from snappy_serve.celery_worker import celery_app
from snappy_serve.services.excel_manager import ExcelManager

logger = get_task_logger(__name__)


@celery_app.task(
    bind=True,
    max_retries=3,
    default_retry_delay=5,
    autoretry_for=(Exception,),
    retry_backoff=True
)
def export_bill_to_excel(self, bill_data: dict) -> dict:
    """
    Append a bill to the Excel ledger.
    This task runs asynchronously via Celery worker.

    Args:
        bill_data: Bill document as returned by the API

    Returns:
        dict: Result of the export operation
    """
    task_id = self.request.id
    bill_id = bill_data.get('id', 'unknown')

    logger.info(f"Task {task_id}: Exporting bill {bill_id}")
    start_time = time.time()

    result = ExcelManager.export_bill(bill_data)

    elapsed = round(time.time() - start_time, 3)
    result['task_id'] = task_id
    result['processing_time_seconds'] = elapsed

    if result['success']:
        logger.info(f"Task {task_id}: Bill {bill_id} done in {elapsed}s")
    else:
        logger.warning(f"Task {task_id}: Bill {bill_id} failed - {result['message']}")

    return result


@celery_app.task
def health_check() -> dict:
    """
    Simple health check task to verify Celery is working.
    """
    return {
        'status': 'healthy',
        'worker': 'celery',
        'timestamp': datetime.now().isoformat()
    }


@celery_app.task
def clear_bill_ledger() -> dict:
    """
    Clear the Excel ledger (for testing/reset purposes).
    """
    success = ExcelManager.clear_all()
    return {
        'success': success,
        'message': 'Bill ledger cleared' if success else 'Failed to clear bill ledger',
        'timestamp': datetime.now().isoformat()
    }
