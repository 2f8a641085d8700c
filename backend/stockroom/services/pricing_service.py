# Overview: Price tier resolution, price quotes, and tier/override maintenance.

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, ValidationError
from ..models import PriceTier, Product, ProductPriceTier
from ..validation import MAX_PRICE_CENTS, parse_int, parse_quantity
from .audit_service import (
    ENTITY_PRICE_TIER,
    ENTITY_PRODUCT_PRICE_TIER,
    EVENT_PRICE_TIER_CREATED,
    EVENT_PRICE_TIER_UPDATED,
    EVENT_PRODUCT_PRICE_SET,
    build_audit_log_data,
    enqueue_audit_log_job,
)
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import (
    require_business_id,
    require_customer,
    require_outlet,
    require_price_tier,
    require_product,
)
"""
Stockroom Pricing Resolution (authoritative)

Tier cascade, first match wins:
1. customer's price tier            -> tier_source="customer"
2. outlet's default price tier      -> tier_source="outlet"
3. business tier with is_default    -> tier_source="default"
4. none                             -> tier_source="base"

Price within the resolved tier, first match wins:
1. override for (product, tier, outlet)   -> price_source="outlet_tier_price"
2. override for (product, tier, NULL)     -> price_source="global_tier_price"
3. product.base_price_cents               -> price_source="base_price"

A level that is absent (no customer given, customer without a tier, outlet
without a default tier, no default tier, no override) is skipped, never an
error. An id that is supplied but unknown to the business IS an error.

tax_rate_bps always comes from the product (0 when NULL).

resolve_price is a pure read: no writes, safe to repeat.
"""

TIER_SOURCE_CUSTOMER = "customer"
TIER_SOURCE_OUTLET = "outlet"
TIER_SOURCE_DEFAULT = "default"
TIER_SOURCE_BASE = "base"

PRICE_SOURCE_OUTLET_TIER = "outlet_tier_price"
PRICE_SOURCE_GLOBAL_TIER = "global_tier_price"
PRICE_SOURCE_BASE = "base_price"


@dataclass(frozen=True)
class PriceResolution:
    product_id: int
    product_name: str
    effective_price_cents: int
    base_price_cents: int
    cost_price_cents: int | None
    tax_rate_bps: int
    price_tier: dict | None
    tier_source: str
    price_source: str

    def to_dict(self) -> dict:
        return asdict(self)


def _resolve_tier(business_id: int, outlet, customer) -> tuple[PriceTier | None, str]:
    if customer is not None:
        tier = customer.price_tier
        if tier is not None and tier.business_id == business_id:
            return tier, TIER_SOURCE_CUSTOMER

    if outlet is not None:
        tier = outlet.default_price_tier
        if tier is not None and tier.business_id == business_id:
            return tier, TIER_SOURCE_OUTLET

    tier = (
        db.session.query(PriceTier)
        .filter_by(business_id=business_id, is_default=True)
        .order_by(PriceTier.id.asc())
        .first()
    )
    if tier is not None:
        return tier, TIER_SOURCE_DEFAULT

    return None, TIER_SOURCE_BASE


def _find_tier_price(product_id: int, price_tier_id: int, outlet_id: int | None) -> tuple[int, str] | None:
    if outlet_id is not None:
        outlet_price = db.session.query(ProductPriceTier).filter_by(
            product_id=product_id,
            price_tier_id=price_tier_id,
            outlet_id=outlet_id,
        ).first()
        if outlet_price is not None:
            return outlet_price.price_cents, PRICE_SOURCE_OUTLET_TIER

    global_price = db.session.query(ProductPriceTier).filter(
        ProductPriceTier.product_id == product_id,
        ProductPriceTier.price_tier_id == price_tier_id,
        ProductPriceTier.outlet_id.is_(None),
    ).first()
    if global_price is not None:
        return global_price.price_cents, PRICE_SOURCE_GLOBAL_TIER

    return None


def resolve_price(
    product_id: int,
    outlet_id: int | None = None,
    customer_id: int | None = None,
    *,
    business_id: int,
) -> PriceResolution:
    """
    Resolve the effective unit price of a product.

    Raises:
        BusinessIdRequired: business_id missing
        ProductNotFound / OutletNotFound / CustomerNotFound: unknown id or
            id owned by another business
    """
    business_id = require_business_id(business_id)
    product = require_product(product_id, business_id)
    outlet = require_outlet(outlet_id, business_id) if outlet_id is not None else None
    customer = require_customer(customer_id, business_id) if customer_id is not None else None

    tier, tier_source = _resolve_tier(business_id, outlet, customer)

    effective_price_cents = product.base_price_cents
    price_source = PRICE_SOURCE_BASE
    if tier is not None:
        found = _find_tier_price(product.id, tier.id, outlet.id if outlet is not None else None)
        if found is not None:
            effective_price_cents, price_source = found

    return PriceResolution(
        product_id=product.id,
        product_name=product.name,
        effective_price_cents=effective_price_cents,
        base_price_cents=product.base_price_cents,
        cost_price_cents=product.cost_price_cents,
        tax_rate_bps=product.tax_rate_bps or 0,
        price_tier=tier.to_summary() if tier is not None else None,
        tier_source=tier_source,
        price_source=price_source,
    )


def get_price_quote(
    items: list[dict],
    outlet_id: int | None = None,
    customer_id: int | None = None,
    *,
    business_id: int,
) -> list[dict]:
    """
    Quote several products at once.

    Each item is resolved on its own; items never influence each other.
    Each item may carry a quantity (default 1) used for line_total_cents.
    """
    business_id = require_business_id(business_id)
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    if outlet_id is not None:
        outlet_id = parse_int(outlet_id, name="outlet_id")
    if customer_id is not None:
        customer_id = parse_int(customer_id, name="customer_id")

    quotes = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or item.get("product_id") is None:
            raise ValidationError(f"Item {index}: missing 'product_id'")

        product_id = parse_int(item["product_id"], name=f"items[{index}].product_id")
        quantity = parse_quantity(item.get("quantity", 1), name=f"items[{index}].quantity")
        resolution = resolve_price(
            product_id,
            outlet_id,
            customer_id,
            business_id=business_id,
        )
        line_total = (Decimal(resolution.effective_price_cents) * quantity).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        quotes.append({
            **resolution.to_dict(),
            "quantity": format(quantity.normalize(), "f"),
            "line_total_cents": int(line_total),
        })

    return quotes


# ---------------------------------------------------------------------------
# Price tiers
# ---------------------------------------------------------------------------

def get_price_tiers(business_id: int) -> list[PriceTier]:
    business_id = require_business_id(business_id)
    return (
        db.session.query(PriceTier)
        .filter_by(business_id=business_id)
        .order_by(PriceTier.name.asc())
        .all()
    )


def _clean_tier_data(data: dict, *, partial: bool) -> dict:
    if not isinstance(data, dict):
        raise ValidationError("Invalid price tier payload")

    fields: dict = {}
    for key in ("name", "code"):
        if key in data:
            value = data[key]
            if value is None or str(value).strip() == "":
                raise ValidationError(f"{key} cannot be blank")
            fields[key] = str(value).strip()
        elif not partial:
            raise ValidationError(f"{key} is required")

    if "description" in data:
        fields["description"] = data["description"]
    if "is_default" in data:
        if not isinstance(data["is_default"], bool):
            raise ValidationError("is_default must be a boolean")
        fields["is_default"] = data["is_default"]

    return fields


def clear_default_tiers(business_id: int, *, exclude_id: int | None = None) -> None:
    """
    Unset is_default on the business's current default tier(s).

    Runs inside the caller's transaction, with the rows locked, so the
    unset and the following set commit together.
    """
    query = db.session.query(PriceTier).filter_by(business_id=business_id, is_default=True)
    if exclude_id is not None:
        query = query.filter(PriceTier.id != exclude_id)
    for tier in lock_for_update(query).all():
        tier.is_default = False
    db.session.flush()


def _ensure_code_available(business_id: int, code: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(PriceTier.id).filter_by(business_id=business_id, code=code)
    if exclude_id is not None:
        query = query.filter(PriceTier.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"Price tier code '{code}' already exists", code="PRICE_TIER_CODE_EXISTS")


def create_price_tier(data: dict, business_id: int, *, user_id: int | None = None) -> PriceTier:
    """
    Create a price tier. Setting is_default clears the previous default in
    the same transaction.
    """
    business_id = require_business_id(business_id)
    fields = _clean_tier_data(data, partial=False)

    def _op():
        _ensure_code_available(business_id, fields["code"])
        if fields.get("is_default"):
            clear_default_tiers(business_id)

        tier = PriceTier(business_id=business_id, **fields)
        db.session.add(tier)
        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("Price tier already exists", code="PRICE_TIER_CODE_EXISTS")
        db.session.commit()
        return tier

    tier = run_with_retry(_op)

    current_app.logger.info(
        "Price tier created: id=%s business_id=%s default=%s", tier.id, business_id, tier.is_default,
    )
    enqueue_audit_log_job(build_audit_log_data(
        event_type=EVENT_PRICE_TIER_CREATED,
        business_id=business_id,
        user_id=user_id,
        outlet_id=None,
        entity_type=ENTITY_PRICE_TIER,
        entity_id=tier.id,
        payload={"name": tier.name, "code": tier.code, "is_default": tier.is_default},
    ))
    return tier


def update_price_tier(tier_id: int, data: dict, business_id: int, *, user_id: int | None = None) -> PriceTier:
    business_id = require_business_id(business_id)
    fields = _clean_tier_data(data, partial=True)

    def _op():
        tier = require_price_tier(tier_id, business_id)
        tier = lock_for_update(db.session.query(PriceTier).filter_by(id=tier.id)).first()

        if "code" in fields:
            _ensure_code_available(business_id, fields["code"], exclude_id=tier.id)
        if fields.get("is_default"):
            clear_default_tiers(business_id, exclude_id=tier.id)

        for key, value in fields.items():
            setattr(tier, key, value)

        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("Price tier already exists", code="PRICE_TIER_CODE_EXISTS")
        db.session.commit()
        return tier

    tier = run_with_retry(_op)

    current_app.logger.info("Price tier updated: id=%s business_id=%s", tier.id, business_id)
    enqueue_audit_log_job(build_audit_log_data(
        event_type=EVENT_PRICE_TIER_UPDATED,
        business_id=business_id,
        user_id=user_id,
        outlet_id=None,
        entity_type=ENTITY_PRICE_TIER,
        entity_id=tier.id,
        payload={"name": tier.name, "code": tier.code, "changes": sorted(fields)},
    ))
    return tier


# ---------------------------------------------------------------------------
# Product price overrides
# ---------------------------------------------------------------------------

def get_product_prices(product_id: int, business_id: int) -> list[ProductPriceTier]:
    business_id = require_business_id(business_id)
    product = require_product(product_id, business_id)
    return (
        db.session.query(ProductPriceTier)
        .filter_by(product_id=product.id)
        .order_by(ProductPriceTier.created_at.desc(), ProductPriceTier.id.desc())
        .all()
    )


def set_product_price(data: dict, business_id: int, *, user_id: int | None = None) -> ProductPriceTier:
    """
    Upsert the override for (product, tier, outlet|NULL).

    NULL outlet_id is a real key value here: setting a global price twice
    updates the same row.
    """
    business_id = require_business_id(business_id)
    product_id = data.get("product_id")
    price_tier_id = data.get("price_tier_id")
    outlet_id = data.get("outlet_id")
    price_cents = data.get("price_cents")

    if price_tier_id is None:
        raise ValidationError("price_tier_id is required")
    if not isinstance(price_cents, int) or isinstance(price_cents, bool):
        raise ValidationError("price_cents must be an integer")
    if price_cents < 0:
        raise ValidationError("price_cents must be >= 0")
    if price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS}")

    def _op():
        product = require_product(product_id, business_id)
        tier = require_price_tier(price_tier_id, business_id)
        outlet = require_outlet(outlet_id, business_id) if outlet_id is not None else None

        query = db.session.query(ProductPriceTier).filter(
            ProductPriceTier.product_id == product.id,
            ProductPriceTier.price_tier_id == tier.id,
        )
        if outlet is None:
            query = query.filter(ProductPriceTier.outlet_id.is_(None))
        else:
            query = query.filter(ProductPriceTier.outlet_id == outlet.id)

        row = lock_for_update(query).first()
        if row is None:
            row = ProductPriceTier(
                product_id=product.id,
                price_tier_id=tier.id,
                outlet_id=outlet.id if outlet is not None else None,
                price_cents=price_cents,
            )
            db.session.add(row)
        else:
            row.price_cents = price_cents

        try:
            db.session.flush()
        except IntegrityError:
            raise ConflictError("Price override already exists", code="PRODUCT_PRICE_EXISTS")
        db.session.commit()
        return row

    row = run_with_retry(_op)

    current_app.logger.info(
        "Product price set: product_id=%s tier_id=%s outlet_id=%s price_cents=%s",
        row.product_id, row.price_tier_id, row.outlet_id, row.price_cents,
    )
    enqueue_audit_log_job(build_audit_log_data(
        event_type=EVENT_PRODUCT_PRICE_SET,
        business_id=business_id,
        user_id=user_id,
        outlet_id=row.outlet_id,
        entity_type=ENTITY_PRODUCT_PRICE_TIER,
        entity_id=row.id,
        payload={
            "product_id": row.product_id,
            "price_tier_id": row.price_tier_id,
            "outlet_id": row.outlet_id,
            "price_cents": row.price_cents,
        },
    ))
    return row
