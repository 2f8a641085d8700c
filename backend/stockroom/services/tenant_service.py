"""
Multi-Tenant Service: tenant validation and scoping helpers.

Every engine entry point is scoped to a business, and every id supplied by
a client must be checked against that business before it is used.

SECURITY INVARIANTS:
1. Entry points reject a missing business_id with BusinessIdRequired.
2. An id that does not exist and an id owned by another business raise the
   same NotFound error, so callers cannot probe other tenants.
3. Cross-tenant hits are logged at WARNING.

USAGE:
    from stockroom.services.tenant_service import require_business_id, require_product

    business_id = require_business_id(business_id)
    product = require_product(product_id, business_id)
"""
from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..errors import (
    BusinessIdRequired,
    CustomerNotFound,
    OutletNotFound,
    PriceTierNotFound,
    ProductNotFound,
    WarehouseNotFound,
)
from ..models import Customer, Outlet, PriceTier, Product, Warehouse


def require_business_id(business_id) -> int:
    if business_id is None or business_id == "":
        raise BusinessIdRequired()
    return business_id


def _log_cross_tenant_attempt(entity: str, entity_id, owner_id, business_id) -> None:
    current_app.logger.warning(
        "Cross-tenant lookup denied: %s %s belongs to business %s, not %s",
        entity, entity_id, owner_id, business_id,
    )


def require_product(product_id, business_id: int) -> Product:
    product = db.session.get(Product, product_id) if product_id is not None else None
    if product is None:
        raise ProductNotFound()
    if product.business_id != business_id:
        _log_cross_tenant_attempt("product", product_id, product.business_id, business_id)
        raise ProductNotFound()  # Don't reveal it exists in another business
    return product


def require_outlet(outlet_id, business_id: int) -> Outlet:
    outlet = db.session.get(Outlet, outlet_id) if outlet_id is not None else None
    if outlet is None:
        raise OutletNotFound()
    if outlet.business_id != business_id:
        _log_cross_tenant_attempt("outlet", outlet_id, outlet.business_id, business_id)
        raise OutletNotFound()
    return outlet


def require_customer(customer_id, business_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id) if customer_id is not None else None
    if customer is None:
        raise CustomerNotFound()
    if customer.business_id != business_id:
        _log_cross_tenant_attempt("customer", customer_id, customer.business_id, business_id)
        raise CustomerNotFound()
    return customer


def require_price_tier(price_tier_id, business_id: int) -> PriceTier:
    tier = db.session.get(PriceTier, price_tier_id) if price_tier_id is not None else None
    if tier is None:
        raise PriceTierNotFound()
    if tier.business_id != business_id:
        _log_cross_tenant_attempt("price tier", price_tier_id, tier.business_id, business_id)
        raise PriceTierNotFound()
    return tier


def require_warehouse(warehouse_id, business_id: int) -> Warehouse:
    """Warehouses carry no business_id; ownership comes from the outlet."""
    row = (
        db.session.query(Warehouse, Outlet.business_id)
        .join(Outlet, Warehouse.outlet_id == Outlet.id)
        .filter(Warehouse.id == warehouse_id)
        .first()
    ) if warehouse_id is not None else None
    if row is None:
        raise WarehouseNotFound()
    warehouse, owner_id = row
    if owner_id != business_id:
        _log_cross_tenant_attempt("warehouse", warehouse_id, owner_id, business_id)
        raise WarehouseNotFound()
    return warehouse
