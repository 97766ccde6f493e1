# Overview: Inventory ledger; append-only movements, derived stock, valuation and staleness.

# backend/stockledger/services/inventory_service.py

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import case, func, or_

from ..errors import InsufficientStock, InvalidMoney, InvalidQuantity, ProductCompanyMismatch, ProductNotFound
from ..extensions import db, status_cache
from ..models import Company, InventoryMovement, Product, MOVEMENT_ENTRY, MOVEMENT_EXIT
from ..time_utils import normalize_datetime, utcnow
from .concurrency import begin_immediate, lock_for_update, run_with_retry
from .products_service import require_company, require_product_for_company

logger = logging.getLogger(__name__)

"""
Inventory Ledger Invariants (authoritative)

- Stock is never stored; it is SUM(+quantity for ENTRY, -quantity for EXIT).
- quantity is always > 0 on disk. The sign is carried by type.
- Movements are append-only: the ledger never updates or deletes a row.
- An EXIT is refused with InsufficientStock when current stock < quantity.
  The check and the insert happen under the product's write lock
  (SELECT ... FOR UPDATE, or BEGIN IMMEDIATE on SQLite).
- EXIT rows use the product's current cost price as unit_cost_cents.
- Every committed ENTRY/EXIT invalidates the company's inventory status
  snapshot. Invalidation runs after commit and never fails the write.
"""

_signed_quantity = case(
    (InventoryMovement.type == MOVEMENT_ENTRY, InventoryMovement.quantity),
    else_=-InventoryMovement.quantity,
)


def validate_quantity(quantity) -> int:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise InvalidQuantity(quantity)
    return quantity


def validate_money(field: str, value) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidMoney(field, value)
    return value


def current_stock(product_id: int, as_of: datetime | None = None) -> int:
    """Signed sum of all movements for a product; 0 when it has none."""
    q = db.session.query(func.coalesce(func.sum(_signed_quantity), 0)).filter(
        InventoryMovement.product_id == product_id,
    )
    if as_of is not None:
        q = q.filter(InventoryMovement.entry_date <= as_of)
    return int(q.scalar() or 0)


def list_movements(*, company_id: int, product_id: int, limit: int = 200) -> list[InventoryMovement]:
    require_product_for_company(company_id, product_id)
    return (
        db.session.query(InventoryMovement)
        .filter_by(company_id=company_id, product_id=product_id)
        .order_by(InventoryMovement.entry_date.desc(), InventoryMovement.id.desc())
        .limit(limit)
        .all()
    )


def lock_product(company_id: int, product_id: int) -> Product:
    """Load a product under a write lock and check it belongs to company_id."""
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFound(product_id)
    if product.company_id != company_id:
        raise ProductCompanyMismatch(product_id, company_id)
    return product


def _record_entry_inner(
    *,
    product: Product,
    quantity: int,
    unit_cost_cents: int | None,
    entry_date: datetime,
    notes: str | None = None,
) -> InventoryMovement:
    movement = InventoryMovement(
        company_id=product.company_id,
        product_id=product.id,
        type=MOVEMENT_ENTRY,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        entry_date=entry_date,
        notes=notes,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_entry(
    *,
    company_id: int,
    product_id: int,
    quantity: int,
    unit_cost_cents: int,
    notes: str | None = None,
    entry_date: datetime | None = None,
) -> InventoryMovement:
    """
    Append an ENTRY movement (stock increase).

    Entries do not serialize against each other or against exits beyond the
    atomic insert, so no product lock is taken here.
    """
    validate_quantity(quantity)
    validate_money("unit_cost_cents", unit_cost_cents)

    def _op():
        product = require_product_for_company(company_id, product_id)
        movement = _record_entry_inner(
            product=product,
            quantity=quantity,
            unit_cost_cents=unit_cost_cents,
            entry_date=normalize_datetime(entry_date) if entry_date else utcnow(),
            notes=notes,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    status_cache.invalidate(company_id)
    logger.info(
        "Inventory entry %s recorded: company=%s product=%s quantity=%s",
        movement.id, company_id, product_id, quantity,
    )
    return movement


def register_inventory_entry(
    *,
    company_id: int,
    product_id: int,
    quantity: int,
    unit_cost_cents: int,
    notes: str | None = None,
) -> InventoryMovement:
    """Outward entry point for stock receipts: checks the tenant, then records the entry."""
    validate_quantity(quantity)
    validate_money("unit_cost_cents", unit_cost_cents)
    require_company(company_id)
    return record_entry(
        company_id=company_id,
        product_id=product_id,
        quantity=quantity,
        unit_cost_cents=unit_cost_cents,
        notes=notes,
    )


def _record_exit_inner(
    *,
    product: Product,
    quantity: int,
    sale_id: int | None = None,
    sale_line_item_id: int | None = None,
    notes: str | None = None,
) -> InventoryMovement:
    """Core EXIT logic without locking, retry, or commit.

    The caller must already hold the product's write lock.
    """
    available = current_stock(product.id)
    if available < quantity:
        raise InsufficientStock(product.id, quantity, available, sku=product.sku)

    movement = InventoryMovement(
        company_id=product.company_id,
        product_id=product.id,
        type=MOVEMENT_EXIT,
        quantity=quantity,
        unit_cost_cents=product.cost_price_cents,
        sale_id=sale_id,
        sale_line_item_id=sale_line_item_id,
        entry_date=utcnow(),
        notes=notes,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def record_exit(
    *,
    company_id: int,
    product_id: int,
    quantity: int,
    sale_id: int | None = None,
    notes: str | None = None,
) -> InventoryMovement:
    """Append an EXIT movement, refusing any exit that would drive stock negative."""
    validate_quantity(quantity)

    def _op():
        begin_immediate()
        product = lock_product(company_id, product_id)
        movement = _record_exit_inner(
            product=product,
            quantity=quantity,
            sale_id=sale_id,
            notes=notes,
        )
        db.session.commit()
        return movement

    movement = run_with_retry(_op)
    status_cache.invalidate(company_id)
    logger.info(
        "Inventory exit %s recorded: company=%s product=%s quantity=%s sale=%s",
        movement.id, company_id, product_id, quantity, sale_id,
    )
    return movement


def _compute_inventory_status(company_id: int) -> list[dict]:
    entry_value = case(
        (
            InventoryMovement.type == MOVEMENT_ENTRY,
            InventoryMovement.quantity * func.coalesce(InventoryMovement.unit_cost_cents, 0),
        ),
        else_=0,
    )
    rows = (
        db.session.query(
            Product,
            func.coalesce(func.sum(_signed_quantity), 0).label("stock"),
            func.coalesce(func.sum(entry_value), 0).label("total_value"),
        )
        .outerjoin(InventoryMovement, InventoryMovement.product_id == Product.id)
        .filter(Product.company_id == company_id, Product.is_active.is_(True))
        .group_by(Product.id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )

    status = []
    for product, stock, total_value in rows:
        stock = int(stock or 0)
        status.append(
            {
                "product_id": product.id,
                "sku": product.sku,
                "name": product.name,
                "current_stock": stock,
                "cost_price_cents": product.cost_price_cents,
                "sale_price_cents": product.sale_price_cents,
                # Gross cost of every ENTRY; not reduced by exits
                "total_value_cents": int(total_value or 0),
                "projected_profit_cents": stock * (product.sale_price_cents - product.cost_price_cents),
            }
        )
    return status


def inventory_status(company_id: int) -> list[dict]:
    """Per-product stock and valuation for a company's active products, cached per company."""
    return status_cache.remember(company_id, lambda: _compute_inventory_status(company_id))


def get_inventory_status(company_id: int) -> list[dict]:
    require_company(company_id)
    return inventory_status(company_id)


def stale_products(company_id: int, days_old: int = 90) -> list[Product]:
    """
    Products with no movement recorded since now - days_old.

    Products that never had a movement count as stale.
    """
    cutoff = utcnow() - timedelta(days=days_old)

    last_movement = (
        db.session.query(
            InventoryMovement.product_id.label("product_id"),
            func.max(InventoryMovement.created_at).label("last_at"),
        )
        .group_by(InventoryMovement.product_id)
        .subquery()
    )

    return (
        db.session.query(Product)
        .outerjoin(last_movement, last_movement.c.product_id == Product.id)
        .filter(
            Product.company_id == company_id,
            or_(last_movement.c.last_at.is_(None), last_movement.c.last_at < cutoff),
        )
        .order_by(Product.id.asc())
        .all()
    )


def archive_stale_products(days_old: int = 90) -> dict[int, list[Product]]:
    """
    Deactivate stale active products of every active company.

    Returns the deactivated products keyed by company id.
    """
    archived: dict[int, list[Product]] = {}
    companies = db.session.query(Company).filter_by(is_active=True).order_by(Company.id.asc()).all()

    for company in companies:
        stale = [p for p in stale_products(company.id, days_old) if p.is_active]
        if not stale:
            continue
        for product in stale:
            product.is_active = False
        archived[company.id] = stale

    db.session.commit()
    for company_id, products in archived.items():
        status_cache.invalidate(company_id)
        logger.info("Archived %s stale products for company %s", len(products), company_id)
    return archived
