from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    MULTI-TENANT: Customers are scoped to a business via business_id.
    price_tier_id, when set, wins over every other tier in price resolution.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("business_id", "email", name="uq_customers_business_email"),
        db.Index("ix_customers_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    price_tier_id = db.Column(db.Integer, db.ForeignKey("price_tiers.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    business = db.relationship("Business", backref=db.backref("customers", lazy=True))
    price_tier = db.relationship("PriceTier")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "price_tier_id": self.price_tier_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
