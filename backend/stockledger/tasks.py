# Overview: Background settlement tasks (at-least-once delivery, bounded attempts).

from __future__ import annotations

from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from celery.utils.log import get_task_logger
from celery.utils.time import get_exponential_backoff_interval
from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError

from .celery_app import AppContextTask
from .extensions import db
from .services import sales_service, settlement_service

logger = get_task_logger(__name__)

# Both tasks may be delivered more than once. Each attempt re-reads the
# sale and ledger state; the conditional PENDING -> PROCESSING claim keeps
# a redelivery from writing a second set of exits. Attempts and time limits
# come from the app config (SETTLEMENT_MAX_ATTEMPTS, SETTLEMENT_TIME_LIMIT).
RETRYABLE_ERRORS = (OperationalError, SoftTimeLimitExceeded)


class SettlementTask(AppContextTask):
    """Marks the sale FAILED once every attempt is used up."""

    abstract = True

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        flask_app = self._flask_app()
        if has_app_context() or flask_app is None:
            self._fail_sale(exc, kwargs)
        else:
            with flask_app.app_context():
                self._fail_sale(exc, kwargs)

    def _fail_sale(self, exc, kwargs) -> None:
        db.session.rollback()
        tracking_id = kwargs.get("tracking_id")
        sale_id = kwargs.get("sale_id")
        if sale_id is None and tracking_id:
            sale = sales_service.get_sale_by_tracking_id(tracking_id)
            sale_id = sale.id if sale is not None else None
        if sale_id is None:
            logger.error("Job failed for sale tracking ID %s before a sale existed: %s", tracking_id, exc)
            return
        logger.error("Job failed for sale %s (tracking ID %s): %s", sale_id, tracking_id, exc)
        settlement_service.mark_failed(sale_id, str(exc) or type(exc).__name__, tracking_id)


_task_options = dict(
    bind=True,
    base=SettlementTask,
    acks_late=True,
)


def _retry_transient(task, exc):
    """Retry after a transient error; re-raises exc once every attempt is used."""
    attempts = current_app.config["SETTLEMENT_MAX_ATTEMPTS"]
    countdown = get_exponential_backoff_interval(
        factor=1, retries=task.request.retries, maximum=600, full_jitter=True,
    )
    logger.warning(
        "Transient failure on attempt %s of %s: %s", task.request.retries + 1, attempts, exc,
    )
    raise task.retry(exc=exc, max_retries=attempts - 1, countdown=countdown)


@shared_task(name="stockledger.process_sale", **_task_options)
def process_sale_task(self, *, company_id: int, items: list, notes: str | None, tracking_id: str) -> dict:
    """Create (once per tracking id) and settle a sale submitted asynchronously."""
    logger.info("Processing sale with tracking ID: %s (attempt %s)", tracking_id, self.request.retries + 1)
    try:
        sale = sales_service.create_sale_for_tracking_id(company_id, items, notes, tracking_id)
        sale = settlement_service.settle_sale(sale.id, tracking_id=tracking_id, raise_on_failure=False)
    except RETRYABLE_ERRORS as exc:
        _retry_transient(self, exc)
    return {"sale_id": sale.id, "status": sale.status}


@shared_task(name="stockledger.settle_sale", **_task_options)
def settle_sale_task(self, *, sale_id: int, tracking_id: str | None = None) -> dict:
    try:
        sale = settlement_service.settle_sale(sale_id, tracking_id=tracking_id, raise_on_failure=False)
    except RETRYABLE_ERRORS as exc:
        _retry_transient(self, exc)
    return {"sale_id": sale.id, "status": sale.status}
