# Overview: Service-layer operations for inventory; encapsulates stock rules and database work.

# backend/stockroom/services/inventory_service.py

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import or_, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import (
    InsufficientInventory,
    InvalidAdjustmentType,
    InvalidQuantity,
    NegativeInventoryError,
    SameWarehouseTransfer,
    SourceInventoryNotFound,
    ValidationError,
)
from ..models import Inventory, Outlet, Product, StockMovement, Warehouse
from ..models.inventory import (
    MOVEMENT_ADJUSTMENT_IN,
    MOVEMENT_ADJUSTMENT_OUT,
    MOVEMENT_TRANSFER,
    MOVEMENT_TYPES,
    format_quantity,
)
from ..pagination import normalize_page, pagination_meta
from ..validation import MAX_QUANTITY, QUANTITY_STEP, parse_quantity
from stockroom.time_utils import parse_range_bound
from .audit_service import (
    ENTITY_INVENTORY,
    ENTITY_STOCK_MOVEMENT,
    EVENT_INVENTORY_ADJUSTED,
    EVENT_INVENTORY_TRANSFERRED,
    build_audit_log_data,
    enqueue_audit_log_job,
)
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import require_business_id, require_outlet, require_product, require_warehouse
"""
Stockroom Inventory Invariants (authoritative)

Inventory model:
- On-hand stock is a stored quantity per (product, warehouse) in `inventories`.
- Rows are created lazily by the first inbound adjustment or transfer.
- Every quantity change appends exactly one StockMovement in the same DB
  transaction; movements are never updated or deleted.

Business invariants:
- quantity_on_hand may never go negative after a committed mutation.
- Adjustments are ADJUSTMENT_IN or ADJUSTMENT_OUT with a positive quantity.
- A transfer moves the same quantity out of the source and into the
  destination, so the product's total across warehouses is unchanged.

Atomicity:
- Read-check-write runs in one transaction with the inventory rows locked
  (SELECT ... FOR UPDATE).
- New quantities are computed in Decimal from the locked row, quantized to
  0.001 and written with UPDATE ... WHERE quantity_on_hand = <value read>,
  so no arithmetic happens in SQL and a concurrent write on backends that
  ignore row locks surfaces as StaleDataError (retried).
- Any validation failure happens before the first write; any later failure
  rolls the whole transaction back.

Audit:
- Audit jobs are enqueued after commit and are best-effort (see
  audit_service); a queue failure never undoes a committed stock change.
"""

ADJUSTMENT_TYPES = (MOVEMENT_ADJUSTMENT_IN, MOVEMENT_ADJUSTMENT_OUT)

ZERO = Decimal("0")


def _inventory_query(product_id: int, warehouse_id: int):
    return db.session.query(Inventory).filter_by(product_id=product_id, warehouse_id=warehouse_id)


def _write_quantity(inventory: Inventory, new_quantity: Decimal) -> None:
    """
    Compare-and-set `quantity_on_hand` to a value computed in Python.

    The WHERE clause pins the value read under lock; a mismatch means
    another writer got there first and raises StaleDataError, which
    run_with_retry retries from a fresh read.
    """
    result = db.session.execute(
        update(Inventory)
        .where(Inventory.id == inventory.id, Inventory.quantity_on_hand == inventory.quantity_on_hand)
        .values(quantity_on_hand=new_quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise StaleDataError(f"inventory {inventory.id} changed while being updated")
    db.session.refresh(inventory)


def _increment(inventory: Inventory, quantity: Decimal) -> None:
    new_quantity = (inventory.quantity_on_hand + quantity).quantize(QUANTITY_STEP)
    if new_quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"quantity_on_hand cannot exceed {MAX_QUANTITY}")
    _write_quantity(inventory, new_quantity)


def _decrement(inventory: Inventory, quantity: Decimal, error_cls) -> None:
    """Decrement in exact decimal arithmetic; raises `error_cls` if the row does not cover `quantity`."""
    new_quantity = (inventory.quantity_on_hand - quantity).quantize(QUANTITY_STEP)
    if new_quantity < ZERO:
        raise error_cls()
    _write_quantity(inventory, new_quantity)


def _add_stock(product_id: int, warehouse_id: int, inventory: Inventory | None, quantity: Decimal) -> Inventory:
    """
    Increase stock, creating the row on first inbound movement.

    A concurrent insert of the same (product, warehouse) surfaces as an
    IntegrityError, which callers retry; the retry finds the row and
    increments it instead.
    """
    if inventory is None:
        inventory = Inventory(
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity_on_hand=quantity,
            minimum_stock=ZERO,
        )
        db.session.add(inventory)
        db.session.flush()
        return inventory

    _increment(inventory, quantity)
    return inventory


def adjust_inventory(data: dict, user_id: int | None, business_id: int) -> Inventory:
    """
    Apply an ADJUSTMENT_IN or ADJUSTMENT_OUT to one (product, warehouse).

    data: product_id, warehouse_id, quantity, type, outlet_id (optional),
    notes (optional).

    Raises:
        BusinessIdRequired, InvalidAdjustmentType, InvalidQuantity
        ProductNotFound, WarehouseNotFound, OutletNotFound
        NegativeInventoryError: ADJUSTMENT_OUT larger than on-hand; no write
            is issued
    """
    business_id = require_business_id(business_id)

    movement_type = data.get("type")
    if movement_type not in ADJUSTMENT_TYPES:
        raise InvalidAdjustmentType()
    quantity = parse_quantity(data.get("quantity"))

    product_id = data.get("product_id")
    warehouse_id = data.get("warehouse_id")
    outlet_id = data.get("outlet_id")
    notes = data.get("notes")

    def _op():
        product = require_product(product_id, business_id)
        warehouse = require_warehouse(warehouse_id, business_id)
        if outlet_id is not None:
            require_outlet(outlet_id, business_id)

        inventory = lock_for_update(_inventory_query(product.id, warehouse.id)).first()
        current = inventory.quantity_on_hand if inventory is not None else ZERO

        if movement_type == MOVEMENT_ADJUSTMENT_OUT:
            if current - quantity < 0:
                raise NegativeInventoryError()
            _decrement(inventory, quantity, NegativeInventoryError)
        else:
            inventory = _add_stock(product.id, warehouse.id, inventory, quantity)

        db.session.add(StockMovement(
            business_id=business_id,
            product_id=product.id,
            from_warehouse_id=warehouse.id if movement_type == MOVEMENT_ADJUSTMENT_OUT else None,
            to_warehouse_id=warehouse.id if movement_type == MOVEMENT_ADJUSTMENT_IN else None,
            outlet_id=outlet_id,
            type=movement_type,
            quantity=quantity,
            notes=notes,
            created_by_user_id=user_id,
        ))

        db.session.commit()
        return inventory

    inventory = run_with_retry(_op, retry_on=(IntegrityError,))

    signed = quantity if movement_type == MOVEMENT_ADJUSTMENT_IN else -quantity
    current_app.logger.info(
        "Inventory adjusted: product_id=%s warehouse_id=%s type=%s quantity=%s",
        inventory.product_id, inventory.warehouse_id, movement_type, format_quantity(signed),
    )
    enqueue_audit_log_job(build_audit_log_data(
        event_type=EVENT_INVENTORY_ADJUSTED,
        business_id=business_id,
        user_id=user_id,
        outlet_id=outlet_id,
        entity_type=ENTITY_INVENTORY,
        entity_id=inventory.id,
        payload={
            "product_id": inventory.product_id,
            "warehouse_id": inventory.warehouse_id,
            "type": movement_type,
            "quantity": format_quantity(signed),
        },
    ))
    return inventory


def transfer_inventory(data: dict, user_id: int | None, business_id: int) -> dict:
    """
    Move stock of one product between two warehouses of the same business.

    data: product_id, from_warehouse_id, to_warehouse_id, quantity,
    outlet_id (optional), notes (optional).

    Returns {"source": Inventory, "destination": Inventory}.

    Raises:
        SameWarehouseTransfer: checked before any inventory read
        SourceInventoryNotFound, InsufficientInventory
        BusinessIdRequired, InvalidQuantity, ProductNotFound,
        WarehouseNotFound, OutletNotFound
    """
    business_id = require_business_id(business_id)

    from_warehouse_id = data.get("from_warehouse_id")
    to_warehouse_id = data.get("to_warehouse_id")
    if from_warehouse_id is not None and from_warehouse_id == to_warehouse_id:
        raise SameWarehouseTransfer()
    quantity = parse_quantity(data.get("quantity"))

    product_id = data.get("product_id")
    outlet_id = data.get("outlet_id")
    notes = data.get("notes")

    def _op():
        product = require_product(product_id, business_id)
        source_warehouse = require_warehouse(from_warehouse_id, business_id)
        destination_warehouse = require_warehouse(to_warehouse_id, business_id)
        if outlet_id is not None:
            require_outlet(outlet_id, business_id)

        # Lock in warehouse-id order so opposite transfers cannot deadlock
        rows = lock_for_update(
            db.session.query(Inventory)
            .filter(
                Inventory.product_id == product.id,
                Inventory.warehouse_id.in_([source_warehouse.id, destination_warehouse.id]),
            )
            .order_by(Inventory.warehouse_id.asc())
        ).all()
        by_warehouse = {row.warehouse_id: row for row in rows}

        source = by_warehouse.get(source_warehouse.id)
        if source is None:
            raise SourceInventoryNotFound()
        if source.quantity_on_hand < quantity:
            raise InsufficientInventory()

        _decrement(source, quantity, InsufficientInventory)
        destination = _add_stock(
            product.id,
            destination_warehouse.id,
            by_warehouse.get(destination_warehouse.id),
            quantity,
        )

        db.session.add(StockMovement(
            business_id=business_id,
            product_id=product.id,
            from_warehouse_id=source_warehouse.id,
            to_warehouse_id=destination_warehouse.id,
            outlet_id=outlet_id,
            type=MOVEMENT_TRANSFER,
            quantity=quantity,
            notes=notes,
            created_by_user_id=user_id,
        ))

        db.session.commit()
        return {"source": source, "destination": destination}

    result = run_with_retry(_op, retry_on=(IntegrityError,))

    current_app.logger.info(
        "Inventory transferred: product_id=%s from=%s to=%s quantity=%s",
        product_id, from_warehouse_id, to_warehouse_id, format_quantity(quantity),
    )
    enqueue_audit_log_job(build_audit_log_data(
        event_type=EVENT_INVENTORY_TRANSFERRED,
        business_id=business_id,
        user_id=user_id,
        outlet_id=outlet_id,
        entity_type=ENTITY_STOCK_MOVEMENT,
        entity_id=f"{product_id}-{from_warehouse_id}-{to_warehouse_id}",
        payload={
            "product_id": product_id,
            "from_warehouse_id": from_warehouse_id,
            "to_warehouse_id": to_warehouse_id,
            "quantity": format_quantity(quantity),
        },
    ))
    return result


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("1", "true", "yes")


def _inventory_order():
    return (Outlet.name.asc(), Product.name.asc(), Inventory.id.asc())


def _low_stock_page(business_id: int, product_id, warehouse_id, outlet_id, page) -> tuple[list[int], int]:
    """
    Low-stock ids via raw SQL.

    The ORM filter API has no column-to-column comparison, so
    quantity_on_hand <= minimum_stock is hand-written. Scoping conditions and
    ordering must stay identical to the declarative path in get_inventory.
    """
    conditions = [
        "p.business_id = :business_id",
        "o.business_id = :business_id",
        "i.quantity_on_hand <= i.minimum_stock",
    ]
    params: dict = {"business_id": business_id}

    if product_id is not None:
        conditions.append("i.product_id = :product_id")
        params["product_id"] = product_id
    if warehouse_id is not None:
        conditions.append("i.warehouse_id = :warehouse_id")
        params["warehouse_id"] = warehouse_id
    if outlet_id is not None:
        conditions.append("w.outlet_id = :outlet_id")
        params["outlet_id"] = outlet_id

    from_clause = (
        "FROM inventories i "
        "JOIN products p ON p.id = i.product_id "
        "JOIN warehouses w ON w.id = i.warehouse_id "
        "JOIN outlets o ON o.id = w.outlet_id "
        "WHERE " + " AND ".join(conditions)
    )

    total = db.session.execute(text(f"SELECT COUNT(*) {from_clause}"), params).scalar() or 0
    ids = db.session.execute(
        text(
            f"SELECT i.id {from_clause} "
            "ORDER BY o.name ASC, p.name ASC, i.id ASC "
            "LIMIT :limit OFFSET :offset"
        ),
        {**params, "limit": page.limit, "offset": page.offset},
    ).scalars().all()
    return list(ids), int(total)


def get_inventory(filters: dict | None, business_id: int) -> dict:
    """
    List inventory rows for a business.

    filters: product_id, warehouse_id, outlet_id, low_stock, page, limit.
    Ordered by outlet name, then product name.
    """
    business_id = require_business_id(business_id)
    filters = filters or {}
    page = normalize_page(filters.get("page"), filters.get("limit"))

    product_id = filters.get("product_id")
    warehouse_id = filters.get("warehouse_id")
    outlet_id = filters.get("outlet_id")

    if _as_bool(filters.get("low_stock")):
        ids, total = _low_stock_page(business_id, product_id, warehouse_id, outlet_id, page)
        rows = db.session.query(Inventory).filter(Inventory.id.in_(ids)).all() if ids else []
        position = {inventory_id: index for index, inventory_id in enumerate(ids)}
        items = sorted(rows, key=lambda row: position[row.id])
        return {"items": items, "pagination": pagination_meta(total, page)}

    query = (
        db.session.query(Inventory)
        .join(Product, Inventory.product_id == Product.id)
        .join(Warehouse, Inventory.warehouse_id == Warehouse.id)
        .join(Outlet, Warehouse.outlet_id == Outlet.id)
        .filter(Product.business_id == business_id, Outlet.business_id == business_id)
    )
    if product_id is not None:
        query = query.filter(Inventory.product_id == product_id)
    if warehouse_id is not None:
        query = query.filter(Inventory.warehouse_id == warehouse_id)
    if outlet_id is not None:
        query = query.filter(Warehouse.outlet_id == outlet_id)

    total = query.count()
    items = query.order_by(*_inventory_order()).offset(page.offset).limit(page.limit).all()
    return {"items": items, "pagination": pagination_meta(total, page)}


def get_stock_movements(filters: dict | None, business_id: int) -> dict:
    """
    List stock movements for a business, newest first.

    filters: product_id, warehouse_id (matches source or destination),
    outlet_id, type, start_date, end_date (inclusive), page, limit.
    """
    business_id = require_business_id(business_id)
    filters = filters or {}
    page = normalize_page(filters.get("page"), filters.get("limit"))

    query = db.session.query(StockMovement).filter(StockMovement.business_id == business_id)

    if filters.get("product_id") is not None:
        query = query.filter(StockMovement.product_id == filters["product_id"])

    if filters.get("warehouse_id") is not None:
        warehouse_id = filters["warehouse_id"]
        query = query.filter(or_(
            StockMovement.from_warehouse_id == warehouse_id,
            StockMovement.to_warehouse_id == warehouse_id,
        ))

    if filters.get("outlet_id") is not None:
        query = query.filter(StockMovement.outlet_id == filters["outlet_id"])

    movement_type = filters.get("type")
    if movement_type:
        if movement_type not in MOVEMENT_TYPES:
            raise ValidationError(f"type must be one of {', '.join(MOVEMENT_TYPES)}")
        query = query.filter(StockMovement.type == movement_type)

    try:
        start = parse_range_bound(filters.get("start_date"))
        end = parse_range_bound(filters.get("end_date"), end=True)
    except ValueError:
        raise ValidationError("start_date/end_date must be ISO-8601 dates")
    if start is not None:
        query = query.filter(StockMovement.created_at >= start)
    if end is not None:
        query = query.filter(StockMovement.created_at <= end)

    total = query.count()
    items = (
        query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .offset(page.offset)
        .limit(page.limit)
        .all()
    )
    return {"items": items, "pagination": pagination_meta(total, page)}
