# Overview: Stock availability decisions for exits and settlement.

from __future__ import annotations

from ..errors import InsufficientStock
from ..models import Product
from .inventory_service import current_stock, lock_product


def has_available_stock(product_id: int, quantity: int) -> bool:
    """
    True when current stock covers quantity.

    Pure read. Callers that write an exit afterwards must evaluate this inside
    the same locked transaction as the write.
    """
    return current_stock(product_id) >= quantity


def lock_products(company_id: int, product_ids) -> dict[int, Product]:
    """Take write locks on products in ascending id order to avoid lock cycles."""
    return {pid: lock_product(company_id, pid) for pid in sorted(set(product_ids))}


def find_shortages(products: dict[int, Product], lines) -> list[dict]:
    """
    Compare requested quantities (summed per product) against current stock.

    Returns one dict per short product, in product id order.
    """
    requested: dict[int, int] = {}
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + line.quantity

    shortages = []
    for product_id in sorted(requested):
        qty = requested[product_id]
        if has_available_stock(product_id, qty):
            continue
        shortages.append({
            "product_id": product_id,
            "sku": products[product_id].sku,
            "required": qty,
            "available": current_stock(product_id),
        })
    return shortages


def require_available_stock(products: dict[int, Product], lines) -> None:
    """Raise InsufficientStock naming the first short product; details list all of them."""
    shortages = find_shortages(products, lines)
    if not shortages:
        return
    first = shortages[0]
    exc = InsufficientStock(first["product_id"], first["required"], first["available"], sku=first["sku"])
    exc.details["items"] = shortages
    raise exc
