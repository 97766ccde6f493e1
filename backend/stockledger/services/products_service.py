# backend/stockledger/services/products_service.py
"""
Product directory lookups used by the ledger and sale services.

Catalog management (price edits, activation) lives outside the core; the
create helper exists for bootstrap commands and tests.
"""
from __future__ import annotations

from ..errors import CompanyNotFound, InvalidMoney, ProductCompanyMismatch, ProductNotFound
from ..extensions import db
from ..models import Company, Product


def find_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def find_product_by_sku(company_id: int, sku: str) -> Product | None:
    return db.session.query(Product).filter_by(company_id=company_id, sku=sku).first()


def require_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None:
        raise CompanyNotFound(company_id)
    return company


def require_product_for_company(company_id: int, product_id: int) -> Product:
    """Resolve a product and check tenancy. Raises before any write happens."""
    product = find_product(product_id)
    if product is None:
        raise ProductNotFound(product_id)
    if product.company_id != company_id:
        raise ProductCompanyMismatch(product_id, company_id)
    return product


def create_product(
    *,
    company_id: int,
    sku: str,
    name: str,
    cost_price_cents: int,
    sale_price_cents: int,
    is_active: bool = True,
) -> Product:
    require_company(company_id)
    for field, value in (("cost_price_cents", cost_price_cents), ("sale_price_cents", sale_price_cents)):
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidMoney(field, value)

    product = Product(
        company_id=company_id,
        sku=sku,
        name=name,
        cost_price_cents=cost_price_cents,
        sale_price_cents=sale_price_cents,
        is_active=is_active,
    )
    db.session.add(product)
    db.session.commit()
    return product
