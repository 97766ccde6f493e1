"""
Sale aggregate builder.

Builds a PENDING sale header plus its line items in one transaction. Prices
and costs are snapshotted from the product at creation, so later catalog
edits never change recorded sales. Settlement is a separate step
(settlement_service).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from ..errors import SaleNotFound, ValidationError
from ..extensions import db
from ..models import Sale, SaleLineItem, SALE_PENDING
from ..time_utils import utcnow
from .concurrency import run_with_retry
from .document_service import generate_sale_number
from .inventory_service import validate_quantity
from .products_service import require_company, require_product_for_company

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 1000


@dataclass(frozen=True)
class SaleItem:
    product_id: int
    quantity: int


def normalize_items(items) -> list[SaleItem]:
    """
    Accept SaleItem, (product_id, quantity) pairs or {"product_id", "quantity"} dicts.

    Shape and quantity are checked here; product existence and tenancy are
    checked by create_sale.
    """
    if not items:
        raise ValidationError("A sale requires at least one item")

    normalized = []
    for raw in items:
        if isinstance(raw, SaleItem):
            item = raw
        elif isinstance(raw, dict):
            if "product_id" not in raw or "quantity" not in raw:
                raise ValidationError("Each item needs product_id and quantity", details={"item": raw})
            item = SaleItem(product_id=raw["product_id"], quantity=raw["quantity"])
        else:
            try:
                product_id, quantity = raw
            except (TypeError, ValueError):
                raise ValidationError("Each item needs product_id and quantity", details={"item": repr(raw)})
            item = SaleItem(product_id=product_id, quantity=quantity)
        validate_quantity(item.quantity)
        normalized.append(item)
    return normalized


def _validate_notes(notes: str | None) -> None:
    if notes is not None and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes may not exceed {MAX_NOTES_LENGTH} characters")


def create_sale(
    company_id: int,
    items,
    notes: str | None = None,
    *,
    tracking_id: str | None = None,
) -> Sale:
    """
    Create a PENDING sale with computed line and header totals.

    Every product is validated before the first write; either the header and
    all lines exist with consistent totals, or nothing does.
    """
    lines = normalize_items(items)
    _validate_notes(notes)

    def _op():
        require_company(company_id)
        products = {}
        for item in lines:
            if item.product_id not in products:
                products[item.product_id] = require_product_for_company(company_id, item.product_id)

        now = utcnow()
        sale = Sale(
            company_id=company_id,
            sale_number=generate_sale_number(now),
            tracking_id=tracking_id,
            total_amount_cents=0,
            total_cost_cents=0,
            total_profit_cents=0,
            status=SALE_PENDING,
            sale_date=now,
            notes=notes,
        )
        db.session.add(sale)
        db.session.flush()

        total_amount = 0
        total_cost = 0
        for item in lines:
            product = products[item.product_id]
            subtotal = item.quantity * product.sale_price_cents
            cost_total = item.quantity * product.cost_price_cents
            db.session.add(SaleLineItem(
                sale_id=sale.id,
                product_id=product.id,
                quantity=item.quantity,
                unit_price_cents=product.sale_price_cents,
                unit_cost_cents=product.cost_price_cents,
                subtotal_cents=subtotal,
                cost_total_cents=cost_total,
                profit_cents=subtotal - cost_total,
            ))
            total_amount += subtotal
            total_cost += cost_total

        sale.total_amount_cents = total_amount
        sale.total_cost_cents = total_cost
        sale.total_profit_cents = total_amount - total_cost

        db.session.commit()
        return sale

    sale = run_with_retry(_op)
    logger.info(
        "Sale %s created with id %s (company=%s, lines=%s, tracking=%s)",
        sale.sale_number, sale.id, company_id, len(lines), tracking_id,
    )
    return sale


def create_sale_for_tracking_id(company_id: int, items, notes: str | None, tracking_id: str) -> Sale:
    """
    Idempotent creation keyed by tracking id.

    A redelivered submission returns the sale created by the first delivery
    instead of creating a second one.
    """
    existing = get_sale_by_tracking_id(tracking_id)
    if existing is not None:
        return existing
    try:
        return create_sale(company_id, items, notes, tracking_id=tracking_id)
    except IntegrityError:
        db.session.rollback()
        existing = get_sale_by_tracking_id(tracking_id)
        if existing is None:
            raise
        return existing


def get_sale_by_id(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)


def require_sale(sale_id: int) -> Sale:
    sale = get_sale_by_id(sale_id)
    if sale is None:
        raise SaleNotFound(sale_id)
    return sale


def get_sale_by_tracking_id(tracking_id: str) -> Sale | None:
    return db.session.query(Sale).filter_by(tracking_id=tracking_id).first()
