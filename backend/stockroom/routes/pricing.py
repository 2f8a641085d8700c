# backend/stockroom/routes/pricing.py
"""
Pricing routes.

All routes require tenant context (X-Business-Id / X-User-Id).
- Quotes resolve the effective price for a product at an outlet, optionally
  for a customer.
- Tier and override writes are audited after commit.
"""
from flask import Blueprint, g, request

from ..errors import ValidationError
from ..models import PriceTier, ProductPriceTier
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_tenant
from ..responses import error_response, success_response


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")

PRICE_TIER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "description", "is_default"},
    required_on_create={"name", "code"},
)

PRICE_TIER_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "code", "description", "is_default"},
)

PRODUCT_PRICE_POLICY = ModelValidationPolicy(
    writable_fields={"price_tier_id", "outlet_id", "price_cents"},
    required_on_create={"price_tier_id", "price_cents"},
)


def _int_arg(name: str, *, required: bool = False):
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        if required:
            raise ValidationError(f"{name} is required")
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


@pricing_bp.get("/quote")
@require_tenant
def price_quote_route():
    """
    Resolve the price of a single product.

    Query: product_id (required), outlet_id (defaults to X-Outlet-Id),
    customer_id.
    """
    from ..services.pricing_service import resolve_price

    try:
        product_id = _int_arg("product_id", required=True)
        outlet_id = _int_arg("outlet_id")
        if outlet_id is None:
            outlet_id = g.outlet_id
        customer_id = _int_arg("customer_id")

        resolution = resolve_price(product_id, outlet_id, customer_id, business_id=g.business_id)
        return success_response(resolution.to_dict())
    except Exception as e:
        return error_response(e)


@pricing_bp.post("/quote")
@require_tenant
def price_quote_batch_route():
    """
    Quote several products for one outlet/customer.

    Body: {"items": [{"product_id": 1, "quantity": "2"}], "outlet_id": 1,
    "customer_id": 5}
    """
    from ..services.pricing_service import get_price_quote

    payload = request.get_json(silent=True) or {}

    try:
        outlet_id = payload.get("outlet_id", g.outlet_id)
        quotes = get_price_quote(
            payload.get("items"),
            outlet_id,
            payload.get("customer_id"),
            business_id=g.business_id,
        )
        return success_response(quotes)
    except Exception as e:
        return error_response(e)


@pricing_bp.get("/tiers")
@require_tenant
def list_price_tiers_route():
    from ..services.pricing_service import get_price_tiers

    try:
        tiers = get_price_tiers(g.business_id)
        return success_response([t.to_dict() for t in tiers])
    except Exception as e:
        return error_response(e)


@pricing_bp.post("/tiers")
@require_tenant
def create_price_tier_route():
    """
    Create a price tier.

    Setting is_default=true clears the previous default in the same
    transaction.
    """
    from ..services.pricing_service import create_price_tier

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=PriceTier,
            payload=payload,
            policy=PRICE_TIER_CREATE_POLICY,
            partial=False,
        )
        tier = create_price_tier(patch, g.business_id, user_id=g.user_id)
        return success_response(tier.to_dict(), 201)
    except Exception as e:
        return error_response(e)


@pricing_bp.put("/tiers/<int:tier_id>")
@require_tenant
def update_price_tier_route(tier_id: int):
    from ..services.pricing_service import update_price_tier

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=PriceTier,
            payload=payload,
            policy=PRICE_TIER_UPDATE_POLICY,
            partial=True,
        )
        tier = update_price_tier(tier_id, patch, g.business_id, user_id=g.user_id)
        return success_response(tier.to_dict())
    except Exception as e:
        return error_response(e)


@pricing_bp.get("/products/<int:product_id>/prices")
@require_tenant
def list_product_prices_route(product_id: int):
    from ..services.pricing_service import get_product_prices

    try:
        rows = get_product_prices(product_id, g.business_id)
        return success_response([r.to_dict() for r in rows])
    except Exception as e:
        return error_response(e)


@pricing_bp.post("/products/<int:product_id>/prices")
@require_tenant
def set_product_price_route(product_id: int):
    """
    Upsert a tier price override.

    Omit outlet_id (or send null) for the tier's global price.
    """
    from ..services.pricing_service import set_product_price

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=ProductPriceTier,
            payload=payload,
            policy=PRODUCT_PRICE_POLICY,
            partial=False,
        )
        row = set_product_price({**patch, "product_id": product_id}, g.business_id, user_id=g.user_id)
        return success_response(row.to_dict())
    except Exception as e:
        return error_response(e)
