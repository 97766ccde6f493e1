# Overview: Flask CLI command groups for bootstrap, inventory maintenance, and settlement.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP (PowerShell: $env:FLASK_APP="stockledger").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed-demo
#   Create a demo company with two products and opening stock.
#
# Inventory maintenance:
# - python -m flask inventory status --company-id 1
#   Print stock, valuation and projected profit per active product.
# - python -m flask inventory archive-stale --days 90
#   Deactivate products with no movements in the last N days, for every active company.
#
# Settlement:
# - python -m flask sales settle 42
#   Settle one PENDING sale synchronously.
# - python -m flask sales settle-pending --older-than 5
#   Queue settlement for PENDING sales created more than N minutes ago.

import click
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import db
from .models import Company, Sale, SALE_PENDING
from .services import inventory_service, products_service, settlement_service
from .time_utils import utcnow


def _cents(value: int) -> str:
    sign = "-" if value < 0 else ""
    value = abs(value)
    return f"{sign}{value // 100}.{value % 100:02d}"


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed-demo')
@click.option('--name', default='Demo Company', help='Company name')
@click.option('--code', default='DEMO', help='Company code')
@with_appcontext
def seed_demo(name, code):
    """Create a demo company, two products and opening stock (idempotent)."""
    company = db.session.query(Company).filter_by(code=code).first()
    if company is None:
        company = Company(name=name, code=code, is_active=True)
        db.session.add(company)
        db.session.commit()
        click.echo(f"PASS Created company: {company.name} (ID: {company.id})")
    else:
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    demo_products = [
        ("PROD-001", "Wireless Mouse", 10000, 15000, 100),
        ("PROD-002", "Mechanical Keyboard", 20000, 30000, 40),
    ]
    for sku, product_name, cost, price, opening in demo_products:
        product = products_service.find_product_by_sku(company.id, sku)
        if product is not None:
            click.echo(f"  - {sku} already present")
            continue
        product = products_service.create_product(
            company_id=company.id,
            sku=sku,
            name=product_name,
            cost_price_cents=cost,
            sale_price_cents=price,
        )
        inventory_service.record_entry(
            company_id=company.id,
            product_id=product.id,
            quantity=opening,
            unit_cost_cents=cost,
            notes="Opening stock",
        )
        click.echo(f"  - {sku} created with {opening} units")


@click.group('inventory')
def inventory_group():
    """Inventory inspection and maintenance."""


@inventory_group.command('status')
@click.option('--company-id', type=int, required=True)
@with_appcontext
def inventory_status(company_id):
    try:
        rows = inventory_service.get_inventory_status(company_id)
    except LedgerError as e:
        raise click.ClickException(e.message)

    if not rows:
        click.echo("No active products.")
        return
    for row in rows:
        click.echo(
            f"{row['sku']:<16} {row['name']:<32} stock={row['current_stock']:>6} "
            f"value={_cents(row['total_value_cents']):>12} "
            f"projected_profit={_cents(row['projected_profit_cents']):>12}"
        )


@inventory_group.command('archive-stale')
@click.option('--days', type=int, default=None, help='Number of days to consider inventory as stale')
@with_appcontext
def archive_stale(days):
    """Deactivate products with no inventory movements in the given number of days."""
    if days is None:
        days = current_app.config["STALE_INVENTORY_DAYS"]
    click.echo(f"Searching for stale inventory records (no updates in {days} days)...")

    archived = inventory_service.archive_stale_products(days)
    total = 0
    for company_id, products in archived.items():
        company = db.session.get(Company, company_id)
        click.echo(f"Company: {company.name} - Found {len(products)} stale products")
        for product in products:
            click.echo(f"  - Product: {product.sku} - {product.name}")
        total += len(products)

    if total == 0:
        click.echo("No stale inventory records found.")
    else:
        click.echo(f"Total stale inventory records found: {total}")


@click.group('sales')
def sales_group():
    """Sale settlement commands."""


@sales_group.command('settle')
@click.argument('sale_id', type=int)
@with_appcontext
def settle(sale_id):
    """Settle a PENDING sale now."""
    try:
        sale = settlement_service.settle_sale(sale_id)
    except LedgerError as e:
        raise click.ClickException(e.message)
    click.echo(f"Sale {sale.sale_number} is {sale.status}")


@sales_group.command('settle-pending')
@click.option('--older-than', 'older_than', type=int, default=5, help='Minutes since creation')
@with_appcontext
def settle_pending(older_than):
    """Queue settlement for sales stuck in PENDING."""
    cutoff = utcnow() - timedelta(minutes=older_than)
    sales = (
        db.session.query(Sale)
        .filter(Sale.status == SALE_PENDING, Sale.created_at <= cutoff)
        .order_by(Sale.id.asc())
        .all()
    )
    for sale in sales:
        settlement_service.request_settlement(sale.id)
        click.echo(f"  - queued {sale.sale_number} (id={sale.id})")
    click.echo(f"Queued {len(sales)} pending sales")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(sales_group)
