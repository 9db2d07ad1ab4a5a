from __future__ import annotations

from ..extensions import db
from posledger.time_utils import to_utc_z, utcnow

# Three fractional digits for weighed goods (kg, l)
QUANTITY_TYPE = db.Numeric(14, 3, asdecimal=True)


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name}


class Supplier(db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    phone = db.Column(db.String(32), nullable=True)
    gstin = db.Column(db.String(32), nullable=True)
    address = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "gstin": self.gstin,
            "address": self.address,
        }


class Product(db.Model):
    """
    Catalog item and its current stock level.

    quantity_on_hand is a stored balance, decremented by checkout in the same
    transaction that writes the sale. The audit log is the movement history.

    version_id is bumped on every update so a stale read-modify-write raises
    StaleDataError instead of silently overwriting another checkout's decrement.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Barcode / SKU as scanned at the till
    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    description = db.Column(db.Text, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    # MRP and cost in cents
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)  # Basis points (e.g., 1200 = 12%)

    quantity_on_hand = db.Column(QUANTITY_TYPE, nullable=False, default=0)
    reorder_level = db.Column(QUANTITY_TYPE, nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=False, default="pcs")
    warehouse = db.Column(db.String(120), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def needs_reorder(self) -> bool:
        return self.quantity_on_hand <= self.reorder_level

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "quantity_on_hand": str(self.quantity_on_hand),
            "reorder_level": str(self.reorder_level),
            "needs_reorder": self.needs_reorder,
            "unit": self.unit,
            "warehouse": self.warehouse,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
