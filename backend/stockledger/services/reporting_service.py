"""
Sales reporting over completed sales: cursor-paged listing and window metrics.

- Only COMPLETED sales are reported, with start <= sale_date <= end.
  A bare date as the end bound covers that whole day.
- The optional SKU filter keeps sales having at least one line whose product
  (in the same company) carries that SKU.
- Listing order is (sale_date DESC, id DESC). The cursor encodes the last
  row's (sale_date, id); the next page holds rows strictly after it.
- Metrics: total_amount/total_profit sum whole sale headers, while
  total_quantity sums only the matching SKU's lines when a SKU is given.
  The historical report computes them this way.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import date, datetime

from flask import current_app
from sqlalchemy import and_, exists, func, or_, select

from ..errors import InvalidCursor, InvalidDateRange, InvalidPageSize
from ..extensions import db
from ..models import Product, Sale, SaleLineItem, SALE_COMPLETED
from ..time_utils import day_end, day_start, normalize_datetime, parse_iso_datetime


def _coerce_bound(value, *, is_end: bool) -> datetime:
    if isinstance(value, datetime):
        return normalize_datetime(value)
    if isinstance(value, date):
        return day_end(value) if is_end else day_start(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            if len(text) == 10:
                parsed = date.fromisoformat(text)
                return day_end(parsed) if is_end else day_start(parsed)
            parsed_dt = parse_iso_datetime(text)
        except ValueError:
            raise InvalidDateRange(f"Invalid date: {value!r}")
        if parsed_dt is not None:
            return parsed_dt
    raise InvalidDateRange(f"Invalid date: {value!r}")


def _resolve_window(start, end) -> tuple[datetime, datetime]:
    start_dt = _coerce_bound(start, is_end=False)
    end_dt = _coerce_bound(end, is_end=True)
    if end_dt < start_dt:
        raise InvalidDateRange(
            "end date must be on or after start date",
            details={"start": start_dt.isoformat(), "end": end_dt.isoformat()},
        )
    return start_dt, end_dt


def _completed_sales_query(company_id: int, start_dt: datetime, end_dt: datetime, sku: str | None):
    query = db.session.query(Sale).filter(
        Sale.company_id == company_id,
        Sale.status == SALE_COMPLETED,
        Sale.sale_date >= start_dt,
        Sale.sale_date <= end_dt,
    )
    if sku:
        query = query.filter(
            exists().where(
                SaleLineItem.sale_id == Sale.id,
                SaleLineItem.product_id == Product.id,
                Product.company_id == company_id,
                Product.sku == sku,
            )
        )
    return query


def encode_cursor(sale: Sale) -> str:
    payload = json.dumps({"sale_date": sale.sale_date.isoformat(), "id": sale.id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        sale_date = normalize_datetime(datetime.fromisoformat(payload["sale_date"]))
        sale_id = int(payload["id"])
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
        raise InvalidCursor()
    return sale_date, sale_id


def _resolve_page_size(page_size: int | None) -> int:
    maximum = current_app.config.get("SALES_REPORT_MAX_PAGE_SIZE", 100)
    if page_size is None:
        return current_app.config.get("SALES_REPORT_DEFAULT_PAGE_SIZE", 15)
    if not isinstance(page_size, int) or isinstance(page_size, bool) or not 1 <= page_size <= maximum:
        raise InvalidPageSize(page_size, maximum)
    return page_size


def sales_report(
    *,
    company_id: int,
    start,
    end,
    sku: str | None = None,
    page_size: int | None = None,
    cursor: str | None = None,
) -> dict:
    """One page of completed sales, newest first, plus the cursor for the next page."""
    start_dt, end_dt = _resolve_window(start, end)
    size = _resolve_page_size(page_size)

    query = _completed_sales_query(company_id, start_dt, end_dt, sku)
    if cursor:
        last_date, last_id = decode_cursor(cursor)
        query = query.filter(
            or_(
                Sale.sale_date < last_date,
                and_(Sale.sale_date == last_date, Sale.id < last_id),
            )
        )

    rows = query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(size + 1).all()
    has_more = len(rows) > size
    rows = rows[:size]

    return {
        "items": rows,
        "page_size": size,
        "cursor": cursor,
        "next_cursor": encode_cursor(rows[-1]) if has_more else None,
    }


def sales_metrics(*, company_id: int, start, end, sku: str | None = None) -> dict:
    start_dt, end_dt = _resolve_window(start, end)
    base = _completed_sales_query(company_id, start_dt, end_dt, sku)

    totals = base.with_entities(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_amount_cents), 0),
        func.coalesce(func.sum(Sale.total_profit_cents), 0),
    ).one()

    sale_ids = base.with_entities(Sale.id).subquery()
    quantity_query = db.session.query(
        func.coalesce(func.sum(SaleLineItem.quantity), 0)
    ).filter(SaleLineItem.sale_id.in_(select(sale_ids.c.id)))
    if sku:
        quantity_query = quantity_query.join(Product, Product.id == SaleLineItem.product_id).filter(
            Product.company_id == company_id,
            Product.sku == sku,
        )

    return {
        "total_sales": int(totals[0] or 0),
        "total_amount_cents": int(totals[1] or 0),
        "total_profit_cents": int(totals[2] or 0),
        "total_quantity": int(quantity_query.scalar() or 0),
    }
