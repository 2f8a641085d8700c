# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-tenant access is denied for core resources.

These tests create two businesses with separate outlets, warehouses and
products, then verify that:
1. Ids owned by Business B behave exactly like unknown ids for Business A
2. Cross-tenant lookups are logged
3. Listings never include another business's rows
4. A rejected cross-tenant write leaves the other tenant's stock untouched
"""

import logging
from decimal import Decimal

import pytest

from stockroom.errors import (
    BusinessIdRequired,
    CustomerNotFound,
    OutletNotFound,
    ProductNotFound,
    WarehouseNotFound,
)
from stockroom.models import Inventory, StockMovement
from stockroom.services.inventory_service import adjust_inventory, get_inventory, get_stock_movements
from stockroom.services.pricing_service import resolve_price
from stockroom.services.tenant_service import (
    require_business_id,
    require_outlet,
    require_product,
    require_warehouse,
)


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_product_valid(self, db_session, tenant_a):
        result = require_product(tenant_a["product"].id, tenant_a["business"].id)
        assert result.id == tenant_a["product"].id

    def test_require_product_cross_tenant(self, db_session, tenant_a, tenant_b):
        with pytest.raises(ProductNotFound):
            require_product(tenant_b["product"].id, tenant_a["business"].id)

    def test_require_warehouse_uses_outlet_business(self, db_session, tenant_a, tenant_b):
        assert require_warehouse(tenant_a["backroom"].id, tenant_a["business"].id).id == tenant_a["backroom"].id
        with pytest.raises(WarehouseNotFound):
            require_warehouse(tenant_b["backroom"].id, tenant_a["business"].id)

    def test_cross_tenant_error_matches_unknown_id(self, db_session, tenant_a, tenant_b):
        with pytest.raises(OutletNotFound) as foreign:
            require_outlet(tenant_b["outlet"].id, tenant_a["business"].id)
        with pytest.raises(OutletNotFound) as unknown:
            require_outlet(999999, tenant_a["business"].id)

        assert foreign.value.to_dict() == unknown.value.to_dict()

    @pytest.mark.parametrize("business_id", [None, ""])
    def test_business_id_required(self, business_id):
        with pytest.raises(BusinessIdRequired) as exc_info:
            require_business_id(business_id)
        assert exc_info.value.message == "business_id is required"

    def test_cross_tenant_access_is_logged(self, db_session, tenant_a, tenant_b, caplog):
        with caplog.at_level(logging.WARNING):
            with pytest.raises(ProductNotFound):
                require_product(tenant_b["product"].id, tenant_a["business"].id)

        assert "Cross-tenant lookup denied" in caplog.text


class TestPricingIsolation:

    def test_foreign_product(self, db_session, tenant_a, tenant_b):
        with pytest.raises(ProductNotFound):
            resolve_price(tenant_b["product"].id, business_id=tenant_a["business"].id)

    def test_foreign_outlet(self, db_session, tenant_a, tenant_b):
        with pytest.raises(OutletNotFound):
            resolve_price(tenant_a["product"].id, tenant_b["outlet"].id, business_id=tenant_a["business"].id)

    def test_foreign_customer(self, db_session, tenant_a, tenant_b, make_customer):
        customer = make_customer(tenant_b["business"])
        with pytest.raises(CustomerNotFound):
            resolve_price(tenant_a["product"].id, None, customer.id, business_id=tenant_a["business"].id)


class TestInventoryIsolation:

    def test_adjust_foreign_product_leaves_stock_untouched(self, db_session, tenant_a, tenant_b, stock):
        stock(tenant_b["product"], tenant_b["warehouse"], 10)

        with pytest.raises(ProductNotFound):
            adjust_inventory(
                {
                    "product_id": tenant_b["product"].id,
                    "warehouse_id": tenant_b["warehouse"].id,
                    "quantity": 10,
                    "type": "ADJUSTMENT_OUT",
                },
                user_id=1,
                business_id=tenant_a["business"].id,
            )

        db_session.expire_all()
        row = db_session.query(Inventory).filter_by(product_id=tenant_b["product"].id).one()
        assert row.quantity_on_hand == Decimal("10")
        assert db_session.query(StockMovement).count() == 0

    def test_adjust_into_foreign_warehouse(self, db_session, tenant_a, tenant_b):
        with pytest.raises(WarehouseNotFound):
            adjust_inventory(
                {
                    "product_id": tenant_a["product"].id,
                    "warehouse_id": tenant_b["warehouse"].id,
                    "quantity": 1,
                    "type": "ADJUSTMENT_IN",
                },
                user_id=1,
                business_id=tenant_a["business"].id,
            )
        assert db_session.query(Inventory).count() == 0

    def test_listings_exclude_other_business(self, db_session, tenant_a, tenant_b, stock):
        stock(tenant_b["product"], tenant_b["warehouse"], 3)

        assert get_inventory({}, tenant_a["business"].id)["items"] == []
        assert get_inventory({"warehouse_id": tenant_b["warehouse"].id}, tenant_a["business"].id)["items"] == []
        assert get_inventory({"low_stock": True}, tenant_a["business"].id)["items"] == []
        assert get_stock_movements({}, tenant_a["business"].id)["items"] == []
