from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

SALE_PENDING = "PENDING"
SALE_PROCESSING = "PROCESSING"
SALE_COMPLETED = "COMPLETED"
SALE_FAILED = "FAILED"
SALE_TERMINAL_STATUSES = (SALE_COMPLETED, SALE_FAILED)


class Sale(db.Model):
    """
    Sale header.

    Totals are derived from the line items at creation and never edited
    afterwards. Status transitions after creation belong to the settlement
    service: PENDING -> PROCESSING -> COMPLETED | FAILED.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_company_status_date", "company_id", "status", "sale_date", "id"),
        db.Index("ix_sales_sale_number", "sale_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    # Human-readable, e.g. "SALE-20250101-00042"; uniqueness is best-effort
    sale_number = db.Column(db.String(64), nullable=False)

    # Correlates an asynchronous submission with the sale it produced
    tracking_id = db.Column(db.String(64), nullable=True, unique=True)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cost_cents = db.Column(db.Integer, nullable=False, default=0)
    total_profit_cents = db.Column(db.Integer, nullable=False, default=0)

    status = db.Column(db.String(16), nullable=False, default=SALE_PENDING, index=True)
    failure_reason = db.Column(db.String(1000), nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.String(1000), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    company = db.relationship("Company", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleLineItem",
        backref="sale",
        lazy=True,
        order_by="SaleLineItem.id",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} number={self.sale_number!r} status={self.status}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "company_id": self.company_id,
            "sale_number": self.sale_number,
            "tracking_id": self.tracking_id,
            "total_amount_cents": self.total_amount_cents,
            "total_cost_cents": self.total_cost_cents,
            "total_profit_cents": self.total_profit_cents,
            "status": self.status,
            "failure_reason": self.failure_reason,
            "sale_date": to_utc_z(self.sale_date),
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "notes": self.notes,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleLineItem(db.Model):
    """Line item with prices snapshotted from the product at sale creation."""
    __tablename__ = "sale_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    cost_total_cents = db.Column(db.Integer, nullable=False)
    profit_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "sku": self.product.sku if self.product is not None else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "unit_cost_cents": self.unit_cost_cents,
            "subtotal_cents": self.subtotal_cents,
            "cost_total_cents": self.cost_total_cents,
            "profit_cents": self.profit_cents,
        }
