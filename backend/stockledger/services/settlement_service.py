"""
Settlement: turns a PENDING sale into committed inventory exits.

State machine:

    PENDING -> PROCESSING -> COMPLETED
                          -> FAILED

The claim (PENDING -> PROCESSING), the stock checks, one EXIT per line item
and the flip to COMPLETED run in a single transaction. If anything in it
fails the transaction rolls back and the sale is back at PENDING, never
partially settled. A business failure (insufficient stock, no lines) is then
recorded as FAILED in its own short transaction.

The claim is a conditional UPDATE ... WHERE status = 'PENDING'. A sale seen in
PROCESSING, COMPLETED or FAILED is left alone, which makes redelivered
settlement requests no-ops with respect to the ledger.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..errors import InsufficientStock, InvalidSaleTransition, SaleNotFound
from ..extensions import db, status_cache
from ..models import (
    Sale,
    SaleLineItem,
    SALE_PENDING,
    SALE_PROCESSING,
    SALE_COMPLETED,
    SALE_FAILED,
    SALE_TERMINAL_STATUSES,
)
from ..time_utils import utcnow
from .concurrency import begin_immediate, run_with_retry
from .document_service import new_tracking_id
from .inventory_service import _record_exit_inner
from .products_service import require_company, require_product_for_company
from .sales_service import create_sale, normalize_items, require_sale
from .stock_policy import lock_products, require_available_stock

logger = logging.getLogger(__name__)

SETTLEMENT_FAILURES = (InsufficientStock, InvalidSaleTransition)


def _claim(sale_id: int) -> bool:
    result = db.session.execute(
        update(Sale)
        .where(Sale.id == sale_id, Sale.status == SALE_PENDING)
        .values(status=SALE_PROCESSING)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def _settle_locked(sale: Sale, lines: list[SaleLineItem]) -> Sale:
    if not lines:
        raise InvalidSaleTransition(
            f"Cannot settle sale {sale.sale_number} with no line items",
            details={"sale_id": sale.id},
        )

    products = lock_products(sale.company_id, [line.product_id for line in lines])
    require_available_stock(products, lines)

    for line in lines:
        _record_exit_inner(
            product=products[line.product_id],
            quantity=line.quantity,
            sale_id=sale.id,
            sale_line_item_id=line.id,
            notes=f"Sale {sale.sale_number}",
        )

    sale.status = SALE_COMPLETED
    sale.completed_at = utcnow()
    return sale


def mark_failed(sale_id: int, reason: str, tracking_id: str | None = None) -> Sale | None:
    """
    Move a non-terminal sale to FAILED and keep the reason for inspection.

    Returns the sale, or None when it does not exist. Terminal sales are
    returned unchanged.
    """
    def _op():
        db.session.execute(
            update(Sale)
            .where(Sale.id == sale_id, Sale.status.notin_(SALE_TERMINAL_STATUSES))
            .values(status=SALE_FAILED, failure_reason=reason[:1000])
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return db.session.get(Sale, sale_id, populate_existing=True)

    sale = run_with_retry(_op)
    if sale is not None:
        logger.error(
            "Sale %s (id=%s, tracking ID: %s) failed: %s",
            sale.sale_number, sale.id, tracking_id or sale.tracking_id, reason,
        )
    return sale


def settle_sale(sale_id: int, *, tracking_id: str | None = None, raise_on_failure: bool = True) -> Sale:
    """
    Settle one sale.

    Business failures move the sale to FAILED; with raise_on_failure the
    error is re-raised for synchronous callers. Transient database errors
    propagate after the transaction rolled back, leaving the sale PENDING
    for the next attempt.
    """
    def _op():
        begin_immediate()
        if not _claim(sale_id):
            db.session.rollback()
            sale = db.session.get(Sale, sale_id, populate_existing=True)
            if sale is None:
                raise SaleNotFound(sale_id)
            logger.info(
                "Sale %s (id=%s) is %s; not settling again",
                sale.sale_number, sale.id, sale.status,
            )
            return sale, None, False

        sale = db.session.get(Sale, sale_id, populate_existing=True)
        logger.info(
            "Settling sale %s (id=%s, tracking ID: %s)",
            sale.sale_number, sale.id, tracking_id or sale.tracking_id,
        )
        lines = (
            db.session.query(SaleLineItem)
            .filter_by(sale_id=sale_id)
            .order_by(SaleLineItem.id.asc())
            .all()
        )
        try:
            _settle_locked(sale, lines)
        except SETTLEMENT_FAILURES as exc:
            db.session.rollback()
            return None, exc, False

        db.session.commit()
        return sale, None, True

    sale, failure, settled = run_with_retry(_op)

    if failure is not None:
        mark_failed(sale_id, failure.message, tracking_id)
        if raise_on_failure:
            raise failure
        return require_sale(sale_id)

    if settled:
        status_cache.invalidate(sale.company_id)
        logger.info(
            "Sale %s (tracking ID: %s) completed successfully",
            sale.sale_number, tracking_id or sale.tracking_id,
        )
    return sale


def submit_sale(company_id: int, items, notes: str | None = None) -> Sale:
    """Synchronous path: create the sale and settle it before returning."""
    sale = create_sale(company_id, items, notes)
    return settle_sale(sale.id)


def enqueue_sale(company_id: int, items, notes: str | None = None) -> str:
    """
    Asynchronous path: hand creation and settlement to the queue.

    Item shape, quantities, the company and product ownership are checked
    before returning, so a queued submission normally fails only on stock or
    transient errors, which leave a FAILED sale behind.
    Callers poll the sale by the returned tracking id.
    """
    from ..tasks import process_sale_task

    normalized = normalize_items(items)
    require_company(company_id)
    for product_id in dict.fromkeys(item.product_id for item in normalized):
        require_product_for_company(company_id, product_id)
    tracking_id = new_tracking_id()
    process_sale_task.delay(
        company_id=company_id,
        items=[[item.product_id, item.quantity] for item in normalized],
        notes=notes,
        tracking_id=tracking_id,
    )
    logger.info("Sale submission queued with tracking ID: %s", tracking_id)
    return tracking_id


def request_settlement(sale_id: int) -> None:
    """Queue settlement of an existing PENDING sale."""
    from ..tasks import settle_sale_task

    require_sale(sale_id)
    settle_sale_task.delay(sale_id=sale_id)
