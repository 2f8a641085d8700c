from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Business(db.Model):
    """
    Multi-tenant root: every tenant is a Business.

    All outlets, products, price tiers and customers belong to exactly one
    business. Nothing in the schema stops a row from referencing another
    tenant's data, so isolation is enforced in the service layer
    (see services/tenant_service.py).
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Outlet(db.Model):
    """
    A selling location within a business.

    default_price_tier_id drives the second level of the pricing cascade
    (customer tier -> outlet default tier -> business default tier).
    """
    __tablename__ = "outlets"
    __table_args__ = (
        db.UniqueConstraint("business_id", "code", name="uq_outlets_business_code"),
        db.Index("ix_outlets_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True)

    default_price_tier_id = db.Column(db.Integer, db.ForeignKey("price_tiers.id"), nullable=True, index=True)
    default_warehouse_id = db.Column(
        db.Integer,
        db.ForeignKey("warehouses.id", use_alter=True, name="fk_outlets_default_warehouse"),
        nullable=True,
    )

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business", backref=db.backref("outlets", lazy=True))
    default_price_tier = db.relationship("PriceTier", foreign_keys=[default_price_tier_id])
    default_warehouse = db.relationship("Warehouse", foreign_keys=[default_warehouse_id], post_update=True)

    def __repr__(self) -> str:
        return f"<Outlet id={self.id} name={self.name!r} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "code": self.code,
            "default_price_tier_id": self.default_price_tier_id,
            "default_warehouse_id": self.default_warehouse_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Warehouse(db.Model):
    """Stock-holding location. Tenant is derived through its outlet."""
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("outlet_id", "code", name="uq_warehouses_outlet_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    outlet = db.relationship(
        "Outlet",
        foreign_keys=[outlet_id],
        backref=db.backref("warehouses", lazy=True),
    )

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} name={self.name!r} outlet_id={self.outlet_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "outlet_id": self.outlet_id,
            "name": self.name,
            "code": self.code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
