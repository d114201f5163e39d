"""
HTTP API tests.

Verifies:
- Health and version endpoints
- Domain errors map to typed JSON (400 / 404 / 409)
- Order-to-shipment flow through the API keeps accounts and statements consistent
- Aggregation view follows committed orders
"""

import pytest


@pytest.fixture
def parties(client, db_session):
    supplier = client.post("/api/parties/suppliers", json={"name": "Green Farm"}).get_json()
    customer = client.post("/api/parties/customers", json={"name": "Corner Bistro"}).get_json()
    return supplier, customer


@pytest.fixture
def stocked(client, parties):
    supplier, _customer = parties
    product = client.post(
        "/api/inventory/products",
        json={
            "name": "Cabbage",
            "main_category": "vegetables",
            "supplier_id": supplier["id"],
            "purchase_price": 100,
            "sale_price": 150,
        },
    ).get_json()
    client.post(f"/api/inventory/products/{product['id']}/lots", json={"quantity": 10, "price": 100, "lot_date": "2025-01-01"})
    return product


# =============================================================================
# SYSTEM
# =============================================================================


class TestSystem:
    def test_health_is_degraded_before_first_cycle(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "degraded"
        assert body["checks"]["cutoff"]["status"] == "degraded"

    def test_health_is_healthy_with_an_open_cycle(self, client, db_session):
        client.get("/api/cutoff")
        body = client.get("/health").get_json()
        assert body["status"] == "healthy"

    def test_version(self, client, db_session):
        body = client.get("/version").get_json()
        assert body["api_version"] == "1.0.0"
        assert body["business_timezone"] == "Asia/Seoul"
        assert len(body["business_date"]) == 10


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorResponses:
    def test_validation_error_is_400(self, client, db_session):
        resp = client.post("/api/inventory/products", json={})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_ERROR"

    def test_missing_product_is_404(self, client, db_session):
        resp = client.get("/api/inventory/products/9999")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NOT_FOUND"

    def test_overdrawn_consume_is_409_with_details(self, client, stocked):
        resp = client.post(f"/api/inventory/products/{stocked['id']}/consume", json={"quantity": 11})
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"] == {"product_id": stocked["id"], "requested": 11, "available": 10}

    def test_statement_requires_period(self, client, parties):
        supplier, _customer = parties
        resp = client.get(f"/api/statements/supplier/{supplier['id']}")
        assert resp.status_code == 400

    def test_unknown_party_type_is_400(self, client, parties):
        _supplier, customer = parties
        resp = client.get(f"/api/statements/vendor/{customer['id']}/verify")
        assert resp.status_code == 400

    def test_non_object_body_is_400(self, client, db_session):
        resp = client.post("/api/orders", json=[1, 2, 3])
        assert resp.status_code == 400


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryRoutes:
    def test_receive_and_consume(self, client, stocked):
        pid = stocked["id"]
        resp = client.post(f"/api/inventory/products/{pid}/lots", json={"quantity": 5, "price": 110, "lot_date": "2025-01-03"})
        assert resp.status_code == 201
        assert resp.get_json()["stock_quantity"] == 15
        assert [lot["lot_date"] for lot in resp.get_json()["lots"]] == ["2025-01-01", "2025-01-03"]

        body = client.post(f"/api/inventory/products/{pid}/consume", json={"quantity": 12}).get_json()
        assert body["cost_amount"] == 10 * 100 + 2 * 110
        assert body["stock_quantity"] == 3

        history = client.get(f"/api/inventory/products/{pid}/lots").get_json()
        assert history["count"] == 2
        assert history["items"][0]["lot_date"] == "2025-01-03"


# =============================================================================
# ORDER FLOW
# =============================================================================


class TestOrderFlow:
    def test_order_ship_statement_and_verify(self, client, parties, stocked):
        _supplier, customer = parties
        resp = client.post(
            "/api/orders",
            json={"customer_id": customer["id"], "items": [{"product_id": stocked["id"], "quantity": 4}]},
        )
        assert resp.status_code == 201
        order = resp.get_json()
        assert order["status"] == "confirmed"
        assert order["total_amount"] == 600

        resp = client.post(f"/api/orders/{order['id']}/ship", json={})
        assert resp.status_code == 201
        shipped = resp.get_json()
        assert shipped["order"]["status"] == "completed"
        assert shipped["ledger"]["total_amount"] == 600
        assert shipped["ledger"]["total_cost"] == 400

        today = client.get("/version").get_json()["business_date"]
        statement = client.get(
            f"/api/statements/customer/{customer['id']}", query_string={"start": today, "end": today}
        ).get_json()
        assert statement["closing_balance"] == 600
        assert [e["type"] for e in statement["entries"]] == ["sale"]

        account = client.get(f"/api/parties/customers/{customer['id']}/account").get_json()
        assert account["current_balance"] == 600

        verify = client.get(f"/api/statements/customer/{customer['id']}/verify").get_json()
        assert verify["in_sync"] is True

    def test_shipping_twice_is_409(self, client, parties, stocked):
        _supplier, customer = parties
        order = client.post(
            "/api/orders",
            json={"customer_id": customer["id"], "items": [{"product_id": stocked["id"], "quantity": 1}]},
        ).get_json()
        client.post(f"/api/orders/{order['id']}/ship", json={})

        resp = client.post(f"/api/orders/{order['id']}/ship", json={})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "BUSINESS_RULE_VIOLATION"

    def test_payment_reduces_balance(self, client, parties):
        supplier, _customer = parties
        client.post("/api/ledgers/purchases", json={"supplier_id": supplier["id"], "amount": 100000})
        resp = client.post("/api/ledgers/payouts", json={"supplier_id": supplier["id"], "amount": 40000})
        assert resp.status_code == 201
        assert resp.get_json()["payout_number"].startswith("SP-")

        account = client.get(f"/api/parties/suppliers/{supplier['id']}/account").get_json()
        assert account["current_balance"] == 60000


# =============================================================================
# CUTOFF AND AGGREGATION
# =============================================================================


class TestCutoffAndAggregation:
    def test_close_switches_phase(self, client, db_session):
        before = client.get("/api/cutoff").get_json()
        resp = client.post("/api/cutoff/close", json={"closed_by": "ops"})
        assert resp.status_code == 200
        after = client.get("/api/cutoff").get_json()
        assert after["cycle_id"] != before["cycle_id"]
        assert after["phase"] != before["phase"]
        assert after["last_closed_by"] == "ops"

    def test_aggregation_follows_new_orders(self, client, parties, stocked):
        _supplier, customer = parties
        assert client.get("/api/aggregation").get_json()["total_amount"] == 0

        client.post(
            "/api/orders",
            json={"customer_id": customer["id"], "items": [{"product_id": stocked["id"], "quantity": 2}]},
        )

        tree = client.get("/api/aggregation").get_json()
        assert tree["total_amount"] == 300
        leaf = tree["categories"][0]["suppliers"][0]["products"][0]
        assert leaf["product_id"] == stocked["id"]
        assert leaf["stock_quantity"] == 10

        stats = client.get("/api/aggregation/statistics").get_json()["statistics"]
        assert stats["total"]["count"] == 1
