# backend/stockroom/routes/inventory.py
"""
Inventory routes.

All routes require tenant context (X-Business-Id / X-User-Id).
- Listing supports product/warehouse/outlet filters and low_stock=true.
- Adjust and transfer are atomic; stock never goes negative.

Time semantics:
- start_date/end_date accept ISO-8601 dates or datetimes; a bare end_date
  covers the whole day.
"""
from flask import Blueprint, g, request

from ..errors import ValidationError
from ..models import StockMovement
from ..validation import ModelValidationPolicy, validate_payload
from ..decorators import require_tenant
from ..responses import error_response, success_response


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")

INVENTORY_ADJUST_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "warehouse_id", "quantity", "type", "outlet_id", "notes"},
    required_on_create={"product_id", "warehouse_id", "quantity", "type"},
    aliases={"warehouse_id": "to_warehouse_id"},
)

INVENTORY_TRANSFER_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "from_warehouse_id", "to_warehouse_id", "quantity", "outlet_id", "notes"},
    required_on_create={"product_id", "from_warehouse_id", "to_warehouse_id", "quantity"},
)


def _list_filters(*int_keys: str) -> dict:
    filters: dict = {}
    for key in int_keys:
        raw = request.args.get(key)
        if raw is None or raw.strip() == "":
            continue
        try:
            filters[key] = int(raw)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    filters["page"] = request.args.get("page")
    filters["limit"] = request.args.get("limit")
    return filters


def _paged(result: dict) -> dict:
    return {
        "items": [row.to_dict() for row in result["items"]],
        "pagination": result["pagination"],
    }


@inventory_bp.get("")
@require_tenant
def list_inventory_route():
    """
    List inventory rows ordered by outlet then product.

    Query: product_id, warehouse_id, outlet_id, low_stock, page, limit.
    """
    from ..services.inventory_service import get_inventory

    try:
        filters = _list_filters("product_id", "warehouse_id", "outlet_id")
        filters["low_stock"] = request.args.get("low_stock")
        return success_response(_paged(get_inventory(filters, g.business_id)))
    except Exception as e:
        return error_response(e)


@inventory_bp.post("/adjust")
@require_tenant
def adjust_inventory_route():
    """
    Apply a manual stock correction.

    Body: product_id, warehouse_id, quantity (> 0), type (ADJUSTMENT_IN or
    ADJUSTMENT_OUT), outlet_id, notes. outlet_id defaults to X-Outlet-Id.
    """
    from ..services.inventory_service import adjust_inventory

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=INVENTORY_ADJUST_POLICY,
            partial=False,
        )
        patch.setdefault("outlet_id", g.outlet_id)
        inventory = adjust_inventory(patch, g.user_id, g.business_id)
        return success_response(inventory.to_dict(), 201)
    except Exception as e:
        return error_response(e)


@inventory_bp.post("/transfer")
@require_tenant
def transfer_inventory_route():
    """
    Move stock between two warehouses of the business.

    Returns both affected inventory rows.
    """
    from ..services.inventory_service import transfer_inventory

    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(
            model=StockMovement,
            payload=payload,
            policy=INVENTORY_TRANSFER_POLICY,
            partial=False,
        )
        patch.setdefault("outlet_id", g.outlet_id)
        result = transfer_inventory(patch, g.user_id, g.business_id)
        return success_response({
            "source": result["source"].to_dict(),
            "destination": result["destination"].to_dict(),
        }, 201)
    except Exception as e:
        return error_response(e)


@inventory_bp.get("/movements")
@require_tenant
def list_stock_movements_route():
    """
    List stock movements, newest first.

    Query: product_id, warehouse_id (source or destination), outlet_id, type,
    start_date, end_date, page, limit.
    """
    from ..services.inventory_service import get_stock_movements

    try:
        filters = _list_filters("product_id", "warehouse_id", "outlet_id")
        filters["type"] = request.args.get("type")
        filters["start_date"] = request.args.get("start_date")
        filters["end_date"] = request.args.get("end_date")
        return success_response(_paged(get_stock_movements(filters, g.business_id)))
    except Exception as e:
        return error_response(e)
