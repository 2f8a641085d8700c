from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from stockroom.time_utils import to_utc_z, utcnow


# Movement types recorded in stock_movements
MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_SALE = "SALE"
MOVEMENT_ADJUSTMENT_IN = "ADJUSTMENT_IN"
MOVEMENT_ADJUSTMENT_OUT = "ADJUSTMENT_OUT"
MOVEMENT_TRANSFER = "TRANSFER"

MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_SALE,
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
    MOVEMENT_TRANSFER,
)

QUANTITY_TYPE = db.Numeric(14, 3)


def format_quantity(value) -> str | None:
    """Render a Decimal quantity without trailing zeros ("10.500" -> "10.5")."""
    if value is None:
        return None
    normalized = Decimal(value).normalize()
    return format(normalized, "f")


class Inventory(db.Model):
    """
    On-hand stock of one product in one warehouse.

    INVARIANTS:
    - One row per (product_id, warehouse_id); created lazily on first inbound
      adjustment or transfer.
    - quantity_on_hand >= 0 after every committed mutation. The CHECK
      constraint backs up the service-level guard.
    - Every change to quantity_on_hand is paired with a StockMovement row
      written in the same transaction.
    """
    __tablename__ = "inventories"
    __table_args__ = (
        db.UniqueConstraint("product_id", "warehouse_id", name="uq_inventories_product_warehouse"),
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_inventories_quantity_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    quantity_on_hand = db.Column(QUANTITY_TYPE, nullable=False, default=Decimal("0"))
    minimum_stock = db.Column(QUANTITY_TYPE, nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product", backref=db.backref("inventories", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("inventories", lazy=True))

    def __repr__(self) -> str:
        return (
            f"<Inventory product_id={self.product_id} warehouse_id={self.warehouse_id} "
            f"on_hand={self.quantity_on_hand}>"
        )

    def to_dict(self) -> dict:
        warehouse = self.warehouse
        return {
            "id": self.id,
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "quantity_on_hand": format_quantity(self.quantity_on_hand),
            "minimum_stock": format_quantity(self.minimum_stock),
            "is_low_stock": self.quantity_on_hand <= self.minimum_stock,
            "product": {
                "id": self.product.id,
                "sku": self.product.sku,
                "name": self.product.name,
            } if self.product else None,
            "warehouse": {
                "id": warehouse.id,
                "name": warehouse.name,
                "outlet_id": warehouse.outlet_id,
                "outlet_name": warehouse.outlet.name if warehouse.outlet else None,
            } if warehouse else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only log of every quantity change.

    Warehouse columns by type:
    - ADJUSTMENT_OUT: from_warehouse_id
    - ADJUSTMENT_IN:  to_warehouse_id
    - TRANSFER:       both

    Rows are never updated or deleted.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_business_created", "business_id", "created_at"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    from_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    to_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=True, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    quantity = db.Column(QUANTITY_TYPE, nullable=False)
    notes = db.Column(db.String(255), nullable=True)

    # Actor; plain integer, users live in the identity service
    created_by_user_id = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")
    from_warehouse = db.relationship("Warehouse", foreign_keys=[from_warehouse_id])
    to_warehouse = db.relationship("Warehouse", foreign_keys=[to_warehouse_id])
    outlet = db.relationship("Outlet")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "from_warehouse_id": self.from_warehouse_id,
            "from_warehouse_name": self.from_warehouse.name if self.from_warehouse else None,
            "to_warehouse_id": self.to_warehouse_id,
            "to_warehouse_name": self.to_warehouse.name if self.to_warehouse else None,
            "outlet_id": self.outlet_id,
            "type": self.type,
            "quantity": format_quantity(self.quantity),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
