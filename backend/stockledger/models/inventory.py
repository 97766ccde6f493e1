from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

MOVEMENT_ENTRY = "ENTRY"
MOVEMENT_EXIT = "EXIT"
MOVEMENT_TYPES = (MOVEMENT_ENTRY, MOVEMENT_EXIT)


class Product(db.Model):
    """
    Product master data, owned by the catalog.

    The ledger and sale services only read products. Prices are stored in
    cents; sale lines snapshot them so later edits never touch recorded sales.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("company_id", "sku", name="uq_products_company_sku"),
        db.Index("ix_products_company_active", "company_id", "is_active"),
        db.CheckConstraint("cost_price_cents >= 0", name="ck_products_cost_nonneg"),
        db.CheckConstraint("sale_price_cents >= 0", name="ck_products_price_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sale_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    company = db.relationship("Company", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "sku": self.sku,
            "name": self.name,
            "cost_price_cents": self.cost_price_cents,
            "sale_price_cents": self.sale_price_cents,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class InventoryMovement(db.Model):
    """
    Append-only ledger row. quantity is always positive; the sign comes from type.

    EXIT rows written by settlement carry sale_id and sale_line_item_id. The
    unique constraint on (sale_id, sale_line_item_id) makes a second exit for
    the same sale line impossible at the storage layer.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_company_product", "company_id", "product_id"),
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        db.UniqueConstraint("sale_id", "sale_line_item_id", name="uq_movements_sale_line"),
        db.CheckConstraint("quantity > 0", name="ck_movements_quantity_positive"),
        db.CheckConstraint(
            "type IN (" + ", ".join(f"'{t}'" for t in MOVEMENT_TYPES) + ")",
            name="ck_movements_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Nullable only for historical rows imported without a cost
    unit_cost_cents = db.Column(db.Integer, nullable=True)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)
    sale_line_item_id = db.Column(db.Integer, db.ForeignKey("sale_line_items.id"), nullable=True)

    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.String(1000), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    @property
    def signed_quantity(self) -> int:
        return self.quantity if self.type == MOVEMENT_ENTRY else -self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "signed_quantity": self.signed_quantity,
            "unit_cost_cents": self.unit_cost_cents,
            "sale_id": self.sale_id,
            "sale_line_item_id": self.sale_line_item_id,
            "entry_date": to_utc_z(self.entry_date),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
