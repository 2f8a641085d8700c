from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    MULTI-TENANT: Products are scoped to a business via business_id.

    Prices are authoritative in integer cents; tax_rate_bps is basis points
    (825 = 8.25%). Tier overrides never change the tax rate.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("business_id", "sku", name="uq_products_business_sku"),
        db.Index("ix_products_business_name", "business_id", "name"),
        db.Index("ix_products_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    base_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=True)
    tax_rate_bps = db.Column(db.Integer, nullable=True)

    # Soft delete
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    business = db.relationship("Business", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "sku": self.sku,
            "name": self.name,
            "base_price_cents": self.base_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "tax_rate_bps": self.tax_rate_bps,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PriceTier(db.Model):
    """
    Named price tier (Retail, Wholesale, Member...).

    INVARIANT: at most one tier per business has is_default=True.
    pricing_service clears the other defaults in the same transaction
    that sets a new one.
    """
    __tablename__ = "price_tiers"
    __table_args__ = (
        db.UniqueConstraint("business_id", "code", name="uq_price_tiers_business_code"),
        db.Index("ix_price_tiers_business_default", "business_id", "is_default"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text, nullable=True)
    is_default = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<PriceTier id={self.id} code={self.code!r} default={self.is_default}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "code": self.code}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "is_default": self.is_default,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductPriceTier(db.Model):
    """
    Price override for (product, tier, outlet).

    outlet_id=NULL means "global for this tier". The NULL case is part of
    the natural key: plain UNIQUE treats NULLs as distinct, so a partial
    unique index covers the global rows.
    """
    __tablename__ = "product_price_tiers"
    __table_args__ = (
        db.UniqueConstraint(
            "product_id", "price_tier_id", "outlet_id",
            name="uq_product_price_tiers_product_tier_outlet",
        ),
        db.Index(
            "uq_product_price_tiers_product_tier_global",
            "product_id",
            "price_tier_id",
            unique=True,
            sqlite_where=db.text("outlet_id IS NULL"),
            postgresql_where=db.text("outlet_id IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    price_tier_id = db.Column(db.Integer, db.ForeignKey("price_tiers.id"), nullable=False, index=True)
    outlet_id = db.Column(db.Integer, db.ForeignKey("outlets.id"), nullable=True, index=True)

    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("tier_prices", lazy=True))
    price_tier = db.relationship("PriceTier", backref=db.backref("product_prices", lazy=True))
    outlet = db.relationship("Outlet")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "price_tier_id": self.price_tier_id,
            "outlet_id": self.outlet_id,
            "price_cents": self.price_cents,
            "price_tier": self.price_tier.to_summary() if self.price_tier else None,
            "outlet_name": self.outlet.name if self.outlet else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
