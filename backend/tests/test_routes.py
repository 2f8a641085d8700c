# Overview: Pytest coverage for the HTTP surface (status codes and envelopes).

"""
Route Tests

Exercise the blueprints through the Flask test client: tenant headers,
the {success, data} / {success, error, code} envelopes and the status code
for each error class.
"""

from decimal import Decimal

from stockroom.models import AuditLog, Business, Inventory, PriceTier, ProductPriceTier

from conftest import tenant_headers


class TestTenantHeaders:

    def test_missing_headers_rejected(self, client, db_session):
        response = client.get('/api/pricing/tiers')
        assert response.status_code == 401
        assert response.json["success"] is False
        assert response.json["code"] == "TENANT_CONTEXT_REQUIRED"

    def test_non_numeric_business_rejected(self, client, db_session):
        response = client.get('/api/pricing/tiers', headers={"X-Business-Id": "abc", "X-User-Id": "1"})
        assert response.status_code == 401


class TestPricingRoutes:

    def test_quote_example(self, client, db_session, tenant_a, make_tier):
        outlet = tenant_a["outlet"]
        product = tenant_a["product"]
        tier = make_tier(tenant_a["business"], "WHOLESALE")
        outlet.default_price_tier_id = tier.id
        db_session.add(ProductPriceTier(product_id=product.id, price_tier_id=tier.id, price_cents=1200))
        db_session.commit()

        response = client.get(
            f'/api/pricing/quote?product_id={product.id}',
            headers=tenant_headers(tenant_a["business"], outlet=outlet),
        )

        assert response.status_code == 200
        data = response.json["data"]
        assert response.json["success"] is True
        assert data["effective_price_cents"] == 1200
        assert data["tax_rate_bps"] == 0
        assert data["tier_source"] == "outlet"
        assert data["price_source"] == "global_tier_price"

    def test_quote_requires_product_id(self, client, db_session, tenant_a):
        response = client.get('/api/pricing/quote', headers=tenant_headers(tenant_a["business"]))
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"

    def test_quote_foreign_product_is_404(self, client, db_session, tenant_a, tenant_b):
        response = client.get(
            f'/api/pricing/quote?product_id={tenant_b["product"].id}',
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 404
        assert response.json == {"success": False, "error": "Product not found", "code": "PRODUCT_NOT_FOUND"}

    def test_batch_quote(self, client, db_session, tenant_a):
        response = client.post(
            '/api/pricing/quote',
            json={"items": [{"product_id": tenant_a["product"].id, "quantity": 2}]},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 200
        assert response.json["data"][0]["line_total_cents"] == 4000

    def test_batch_quote_rejects_non_integer_outlet(self, client, db_session, tenant_a):
        response = client.post(
            '/api/pricing/quote',
            json={"items": [{"product_id": tenant_a["product"].id}], "outlet_id": {"x": 1}},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert response.json == {
            "success": False,
            "error": "outlet_id must be an integer",
            "code": "VALIDATION_ERROR",
        }

    def test_batch_quote_rejects_non_integer_product_id(self, client, db_session, tenant_a):
        response = client.post(
            '/api/pricing/quote',
            json={"items": [{"product_id": [tenant_a["product"].id]}]},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"
        assert response.json["error"] == "items[0].product_id must be an integer"

    def test_batch_quote_accepts_numeric_string_ids(self, client, db_session, tenant_a):
        response = client.post(
            '/api/pricing/quote',
            json={
                "items": [{"product_id": str(tenant_a["product"].id), "quantity": "1.5"}],
                "outlet_id": str(tenant_a["outlet"].id),
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 200
        assert response.json["data"][0]["product_id"] == tenant_a["product"].id
        assert response.json["data"][0]["line_total_cents"] == 3000

    def test_create_and_update_tier(self, client, db_session, tenant_a):
        headers = tenant_headers(tenant_a["business"])

        created = client.post(
            '/api/pricing/tiers',
            json={"name": "Retail", "code": "RETAIL", "is_default": True},
            headers=headers,
        )
        assert created.status_code == 201
        tier_id = created.json["data"]["id"]

        updated = client.put(f'/api/pricing/tiers/{tier_id}', json={"name": "Retail Plus"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json["data"]["name"] == "Retail Plus"
        assert updated.json["data"]["is_default"] is True

        listed = client.get('/api/pricing/tiers', headers=headers)
        assert [t["code"] for t in listed.json["data"]] == ["RETAIL"]

    def test_duplicate_tier_code_is_409(self, client, db_session, tenant_a, make_tier):
        make_tier(tenant_a["business"], "RETAIL")

        response = client.post(
            '/api/pricing/tiers',
            json={"name": "Retail", "code": "RETAIL"},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 409
        assert response.json["code"] == "PRICE_TIER_CODE_EXISTS"

    def test_tier_unknown_field_rejected(self, client, db_session, tenant_a):
        response = client.post(
            '/api/pricing/tiers',
            json={"name": "Retail", "code": "RETAIL", "business_id": 99},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert db_session.query(PriceTier).count() == 0

    def test_set_and_list_product_prices(self, client, db_session, tenant_a, make_tier):
        tier = make_tier(tenant_a["business"], "RETAIL")
        headers = tenant_headers(tenant_a["business"])
        url = f'/api/pricing/products/{tenant_a["product"].id}/prices'

        response = client.post(url, json={"price_tier_id": tier.id, "price_cents": 1500}, headers=headers)
        assert response.status_code == 200
        assert response.json["data"]["outlet_id"] is None
        assert response.json["data"]["price_tier"]["code"] == "RETAIL"

        listed = client.get(url, headers=headers)
        assert [p["price_cents"] for p in listed.json["data"]] == [1500]

    def test_price_rejects_float_cents(self, client, db_session, tenant_a, make_tier):
        tier = make_tier(tenant_a["business"], "RETAIL")
        response = client.post(
            f'/api/pricing/products/{tenant_a["product"].id}/prices',
            json={"price_tier_id": tier.id, "price_cents": 12.5},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400

    def test_price_out_of_range_is_400(self, client, db_session, tenant_a, make_tier):
        tier = make_tier(tenant_a["business"], "RETAIL")
        url = f'/api/pricing/products/{tenant_a["product"].id}/prices'
        headers = tenant_headers(tenant_a["business"])

        negative = client.post(url, json={"price_tier_id": tier.id, "price_cents": -1}, headers=headers)
        too_large = client.post(url, json={"price_tier_id": tier.id, "price_cents": 1_000_000_000}, headers=headers)

        assert negative.status_code == 400
        assert negative.json["error"] == "price_cents must be >= 0"
        assert too_large.status_code == 400
        assert too_large.json["error"] == "price_cents cannot exceed 999999999"
        assert db_session.query(ProductPriceTier).count() == 0


class TestInventoryRoutes:

    def test_adjust_and_list(self, client, db_session, tenant_a):
        headers = tenant_headers(tenant_a["business"], outlet=tenant_a["outlet"])

        response = client.post(
            '/api/inventory/adjust',
            json={
                "product_id": tenant_a["product"].id,
                "warehouse_id": tenant_a["warehouse"].id,
                "quantity": "7.5",
                "type": "ADJUSTMENT_IN",
            },
            headers=headers,
        )
        assert response.status_code == 201
        assert response.json["data"]["quantity_on_hand"] == "7.5"

        listed = client.get('/api/inventory', headers=headers)
        assert listed.status_code == 200
        assert listed.json["data"]["pagination"]["total"] == 1

        movements = client.get('/api/inventory/movements', headers=headers)
        item = movements.json["data"]["items"][0]
        assert item["type"] == "ADJUSTMENT_IN"
        assert item["outlet_id"] == tenant_a["outlet"].id
        assert item["created_by_user_id"] == 1

    def test_negative_adjustment_is_409(self, client, db_session, tenant_a, stock):
        stock(tenant_a["product"], tenant_a["warehouse"], 1)

        response = client.post(
            '/api/inventory/adjust',
            json={
                "product_id": tenant_a["product"].id,
                "warehouse_id": tenant_a["warehouse"].id,
                "quantity": 2,
                "type": "ADJUSTMENT_OUT",
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 409
        assert response.json == {
            "success": False,
            "error": "Adjustment would result in negative inventory",
            "code": "NEGATIVE_INVENTORY",
        }

    def test_invalid_adjustment_type_is_400(self, client, db_session, tenant_a):
        response = client.post(
            '/api/inventory/adjust',
            json={
                "product_id": tenant_a["product"].id,
                "warehouse_id": tenant_a["warehouse"].id,
                "quantity": 2,
                "type": "SHRINK",
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert response.json["code"] == "INVALID_ADJUSTMENT_TYPE"

    def test_adjust_missing_fields_is_400(self, client, db_session, tenant_a):
        response = client.post(
            '/api/inventory/adjust',
            json={"product_id": tenant_a["product"].id},
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert response.json["code"] == "VALIDATION_ERROR"

    def test_transfer(self, client, db_session, tenant_a, stock):
        stock(tenant_a["product"], tenant_a["warehouse"], 10)

        response = client.post(
            '/api/inventory/transfer',
            json={
                "product_id": tenant_a["product"].id,
                "from_warehouse_id": tenant_a["warehouse"].id,
                "to_warehouse_id": tenant_a["backroom"].id,
                "quantity": 3,
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 201
        assert response.json["data"]["source"]["quantity_on_hand"] == "7"
        assert response.json["data"]["destination"]["quantity_on_hand"] == "3"

    def test_same_warehouse_transfer_is_400(self, client, db_session, tenant_a):
        response = client.post(
            '/api/inventory/transfer',
            json={
                "product_id": tenant_a["product"].id,
                "from_warehouse_id": tenant_a["warehouse"].id,
                "to_warehouse_id": tenant_a["warehouse"].id,
                "quantity": 3,
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400
        assert response.json["code"] == "SAME_WAREHOUSE_TRANSFER"

    def test_insufficient_transfer_is_409(self, client, db_session, tenant_a, stock):
        stock(tenant_a["product"], tenant_a["warehouse"], 1)

        response = client.post(
            '/api/inventory/transfer',
            json={
                "product_id": tenant_a["product"].id,
                "from_warehouse_id": tenant_a["warehouse"].id,
                "to_warehouse_id": tenant_a["backroom"].id,
                "quantity": 3,
            },
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 409
        assert response.json["code"] == "INSUFFICIENT_INVENTORY"

    def test_low_stock_listing(self, client, db_session, tenant_a, stock):
        stock(tenant_a["product"], tenant_a["warehouse"], 1, minimum=5)
        stock(tenant_a["product"], tenant_a["backroom"], 50, minimum=5)

        response = client.get('/api/inventory?low_stock=true', headers=tenant_headers(tenant_a["business"]))

        items = response.json["data"]["items"]
        assert [i["warehouse_id"] for i in items] == [tenant_a["warehouse"].id]
        assert items[0]["is_low_stock"] is True

    def test_movement_bad_filter_is_400(self, client, db_session, tenant_a):
        response = client.get(
            '/api/inventory/movements?warehouse_id=abc',
            headers=tenant_headers(tenant_a["business"]),
        )
        assert response.status_code == 400


class TestSystemRoutes:

    def test_health(self, client, db_session):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "healthy"
        assert response.json["checks"]["audit_queue"]["details"]["backlog"] == 0

    def test_health_degraded_without_queue(self, client, db_session, broken_audit_queue):
        response = client.get('/api/health')
        assert response.status_code == 200
        assert response.json["status"] == "degraded"


class TestCli:

    def test_seed_demo_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "seed-demo"])
        second = runner.invoke(args=["system", "seed-demo"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        db_session.expire_all()
        assert db_session.query(PriceTier).filter_by(is_default=True).count() == 1
        assert db_session.query(Inventory).count() == 3
        quantities = {row.quantity_on_hand for row in db_session.query(Inventory).all()}
        assert quantities == {Decimal("100")}

    def test_seed_demo_replaces_existing_default_tier(self, app, db_session, make_tier):
        business = Business(name="Demo Business", code="DEMO", is_active=True)
        db_session.add(business)
        db_session.commit()
        make_tier(business, "VIP", is_default=True)

        result = app.test_cli_runner().invoke(args=["system", "seed-demo"])

        assert result.exit_code == 0, result.output
        db_session.expire_all()
        defaults = db_session.query(PriceTier).filter_by(business_id=business.id, is_default=True).all()
        assert [tier.code for tier in defaults] == ["RETAIL"]

    def test_audit_drain(self, app, db_session, client, tenant_a):
        client.post(
            '/api/pricing/tiers',
            json={"name": "Retail", "code": "RETAIL"},
            headers=tenant_headers(tenant_a["business"]),
        )

        result = app.test_cli_runner().invoke(args=["audit", "drain", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert "processed=1" in result.output
        db_session.expire_all()
        assert db_session.query(AuditLog).one().event_type == "PRICE_TIER_CREATED"
