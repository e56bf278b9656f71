"""
HTTP layer tests.

Verifies:
- Identity headers and role gate (401 / 403)
- Request -> core operation mapping and response shapes
- Error mapping: 400 / 404 / 409 with structured bodies
"""

from decimal import Decimal

import pytest

from textile_erp.extensions import db
from textile_erp.models import CreditSale
from textile_erp.services import credit_service, invoice_service, production_service, stock_service

from conftest import on_hand, role_headers


@pytest.fixture
def director_headers():
    return role_headers("Director", user_id=1)


@pytest.fixture
def officer_headers():
    return role_headers("Officer", user_id=2)


@pytest.fixture
def accountant_headers():
    return role_headers("Accountant", user_id=3)


@pytest.fixture
def sales_headers():
    return role_headers("Sales Assistant", user_id=4)


def _invoice_payload(customer, branch, product, method="credit", quantity=5, price=20):
    return {
        "customer_id": customer.id,
        "branch_id": branch.id,
        "payment_method": method,
        "items": [{"id": product.id, "quantity": quantity, "price": price}],
    }


# =============================================================================
# ROLE GATE
# =============================================================================


class TestRoleGate:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/inventory/adjust"),
            ("POST", "/api/inventory/transfer"),
            ("GET", "/api/inventory/stock"),
            ("POST", "/api/sales/invoice"),
            ("GET", "/api/finance/credits"),
            ("POST", "/api/finance/payment"),
            ("POST", "/api/production/record"),
            ("GET", "/api/production/orders"),
        ],
    )
    def test_requires_identity(self, client, method, path):
        resp = getattr(client, method.lower())(path, json={})
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_unknown_role_is_anonymous(self, client):
        resp = client.get("/api/inventory/stock", headers=role_headers("Janitor"))
        assert resp.status_code == 401

    def test_sales_assistant_cannot_adjust_stock(self, client, sales_headers, main_warehouse, product):
        resp = client.post("/api/inventory/adjust", headers=sales_headers, json={
            "product_id": product.id, "warehouse_id": main_warehouse.id, "quantity": 1, "direction": "in",
        })
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Permission denied"
        assert on_hand(main_warehouse.id, product.id) == Decimal("0")

    def test_sales_assistant_cannot_record_payment(self, client, sales_headers):
        resp = client.post("/api/finance/payment", headers=sales_headers, json={
            "credit_id": 1, "amount": 1, "payment_method": "cash",
        })
        assert resp.status_code == 403

    def test_administrator_passes_every_gate(self, client, main_warehouse, product):
        resp = client.post("/api/inventory/adjust", headers=role_headers("Administrator"), json={
            "product_id": product.id, "warehouse_id": main_warehouse.id, "quantity": 3, "direction": "in",
        })
        assert resp.status_code == 200


# =============================================================================
# INVENTORY
# =============================================================================


class TestInventoryRoutes:

    def test_adjust_returns_position(self, client, officer_headers, main_warehouse, product):
        resp = client.post("/api/inventory/adjust", headers=officer_headers, json={
            "product_id": product.id, "warehouse_id": main_warehouse.id, "quantity": 100, "type": "receipt",
        })

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"] == "Stock updated successfully"
        assert body["position"]["quantity_on_hand"] == "100.000"
        assert body["transaction"]["created_by_user_id"] == 2

    def test_adjust_out_beyond_stock_is_409(self, client, officer_headers, main_warehouse, stocked):
        resp = client.post("/api/inventory/adjust", headers=officer_headers, json={
            "product_id": stocked.id, "warehouse_id": main_warehouse.id, "quantity": 150, "direction": "out",
        })

        assert resp.status_code == 409
        body = resp.get_json()
        assert body["on_hand"] == "100.000"
        assert body["requested"] == "150.000"

    def test_adjust_missing_fields_is_400(self, client, officer_headers):
        resp = client.post("/api/inventory/adjust", headers=officer_headers, json={"quantity": 1})
        assert resp.status_code == 400
        assert "Missing required fields" in resp.get_json()["error"]

    def test_transfer_and_history(self, client, officer_headers, main_warehouse, second_warehouse, stocked):
        resp = client.post("/api/inventory/transfer", headers=officer_headers, json={
            "product_id": stocked.id,
            "from_warehouse_id": main_warehouse.id,
            "to_warehouse_id": second_warehouse.id,
            "quantity": 30,
        })
        assert resp.status_code == 200
        assert resp.get_json()["message"] == "Transfer successful"

        history = client.get(
            f"/api/inventory/history?warehouse_id={second_warehouse.id}", headers=officer_headers,
        ).get_json()
        assert [h["type"] for h in history] == ["transfer_in"]
        assert history[0]["warehouse_name"] == "Dyeing Store"

    def test_transfer_same_warehouse_is_400(self, client, officer_headers, main_warehouse, stocked):
        resp = client.post("/api/inventory/transfer", headers=officer_headers, json={
            "product_id": stocked.id,
            "from_warehouse_id": main_warehouse.id,
            "to_warehouse_id": main_warehouse.id,
            "quantity": 1,
        })
        assert resp.status_code == 400

    def test_stock_and_warehouses_listing(self, client, sales_headers, second_warehouse, stocked):
        stock = client.get("/api/inventory/stock", headers=sales_headers).get_json()
        assert stock[0]["product_code"] == "FAB-001"
        assert stock[0]["stock_status"] == "Adequate"

        warehouses = client.get("/api/inventory/warehouses", headers=sales_headers).get_json()
        assert {w["code"] for w in warehouses} == {"WH-MAIN", "WH-DYE"}

    def test_history_rejects_bad_type(self, client, sales_headers):
        resp = client.get("/api/inventory/history?type=teleport", headers=sales_headers)
        assert resp.status_code == 400

    def test_valuation_requires_finance_role(self, client, sales_headers, accountant_headers, stocked):
        assert client.get("/api/inventory/valuation", headers=sales_headers).status_code == 403

        resp = client.get("/api/inventory/valuation", headers=accountant_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["total_value"] == "1000.00"
        assert body["items"][0]["stock_value"] == "1000.00"


# =============================================================================
# SALES + FINANCE
# =============================================================================


class TestSalesAndFinanceRoutes:

    def test_invoice_create_fetch_and_pay(self, client, sales_headers, accountant_headers, branch, customer, main_warehouse, stocked):
        resp = client.post("/api/sales/invoice", headers=sales_headers,
                           json=_invoice_payload(customer, branch, stocked))
        assert resp.status_code == 201
        body = resp.get_json()
        invoice_id = body["invoiceId"]
        assert body["invoice_number"].startswith("INV-")

        detail = client.get(f"/api/sales/{invoice_id}", headers=sales_headers).get_json()
        assert detail["header"]["total_amount"] == "100.00"
        assert detail["header"]["status"] == "pending"
        assert detail["items"][0]["product_code"] == "FAB-001"
        assert detail["items"][0]["line_total"] == "100.00"

        credits = client.get("/api/finance/credits", headers=accountant_headers).get_json()
        assert len(credits) == 1
        credit_id = credits[0]["id"]
        assert credits[0]["balance_amount"] == "100.00"

        resp = client.post("/api/finance/payment", headers=accountant_headers, json={
            "credit_id": credit_id, "amount": 100, "payment_method": "cash", "reference": "RCPT-9",
        })
        assert resp.status_code == 200
        assert resp.get_json()["credit"]["status"] == "paid"

        detail = client.get(f"/api/sales/{invoice_id}", headers=sales_headers).get_json()
        assert detail["header"]["status"] == "paid"
        assert detail["header"]["paid_amount"] == "100.00"

        history = client.get(f"/api/finance/payment-history/{credit_id}", headers=accountant_headers).get_json()
        assert [p["payment_reference"] for p in history] == ["RCPT-9"]

    def test_overpayment_is_400_with_max_allowed(self, client, sales_headers, accountant_headers, branch, customer, main_warehouse, stocked):
        client.post("/api/sales/invoice", headers=sales_headers, json=_invoice_payload(customer, branch, stocked))
        credit = db.session.query(CreditSale).one()

        resp = client.post("/api/finance/payment", headers=accountant_headers, json={
            "credit_id": credit.id, "amount": "100.01", "payment_method": "cash",
        })

        assert resp.status_code == 400
        assert resp.get_json()["max_allowed"] == "100.00"
        assert db.session.get(CreditSale, credit.id).status == "pending"

    def test_sub_cent_payment_is_400(self, client, sales_headers, accountant_headers, branch, customer, main_warehouse, stocked):
        client.post("/api/sales/invoice", headers=sales_headers, json=_invoice_payload(customer, branch, stocked))
        credit = db.session.query(CreditSale).one()

        resp = client.post("/api/finance/payment", headers=accountant_headers, json={
            "credit_id": credit.id, "amount": "100.004", "payment_method": "cash",
        })

        assert resp.status_code == 400
        assert "decimal places" in resp.get_json()["error"]
        assert db.session.get(CreditSale, credit.id).status == "pending"

    def test_payment_unknown_credit_is_404(self, client, accountant_headers):
        resp = client.post("/api/finance/payment", headers=accountant_headers, json={
            "credit_id": 404, "amount": 1, "payment_method": "cash",
        })
        assert resp.status_code == 404

    def test_invoice_with_no_items_is_400(self, client, sales_headers, branch, customer, main_warehouse):
        payload = {"customer_id": customer.id, "branch_id": branch.id, "payment_method": "cash", "items": []}
        resp = client.post("/api/sales/invoice", headers=sales_headers, json=payload)
        assert resp.status_code == 400

    def test_invoice_beyond_stock_is_409(self, client, sales_headers, branch, customer, main_warehouse, stocked):
        resp = client.post("/api/sales/invoice", headers=sales_headers,
                           json=_invoice_payload(customer, branch, stocked, quantity=1000))
        assert resp.status_code == 409
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("100")

    def test_unknown_invoice_is_404(self, client, sales_headers):
        assert client.get("/api/sales/999", headers=sales_headers).status_code == 404

    def test_cancel_invoice(self, client, sales_headers, accountant_headers, branch, customer, main_warehouse, stocked):
        invoice_id = client.post(
            "/api/sales/invoice", headers=sales_headers,
            json=_invoice_payload(customer, branch, stocked, method="cash"),
        ).get_json()["invoiceId"]

        assert client.post(f"/api/sales/{invoice_id}/cancel", headers=sales_headers).status_code == 403

        resp = client.post(f"/api/sales/{invoice_id}/cancel", headers=accountant_headers)
        assert resp.status_code == 200
        assert resp.get_json()["invoice"]["status"] == "cancelled"
        assert on_hand(main_warehouse.id, stocked.id) == Decimal("100")

        assert client.post(f"/api/sales/{invoice_id}/cancel", headers=accountant_headers).status_code == 409

    def test_list_invoices(self, client, sales_headers, branch, customer, main_warehouse, stocked):
        client.post("/api/sales/invoice", headers=sales_headers,
                    json=_invoice_payload(customer, branch, stocked, method="cash", quantity=1))

        invoices = client.get("/api/sales/", headers=sales_headers).get_json()
        assert len(invoices) == 1
        assert invoices[0]["customer_name"] == "Lanka Apparel"
        assert invoices[0]["branch_name"] == "Head Office"

    def test_credit_aging(self, client, sales_headers, accountant_headers, branch, customer, main_warehouse, stocked):
        client.post("/api/sales/invoice", headers=sales_headers, json=_invoice_payload(customer, branch, stocked))

        report = client.get("/api/finance/credit-aging", headers=accountant_headers).get_json()
        assert report[0]["customer_code"] == "C-001"
        assert report[0]["buckets"]["current"] == "100.00"


# =============================================================================
# PRODUCTION + SYSTEM
# =============================================================================


class TestProductionRoutes:

    def test_record_production(self, client, officer_headers, center, main_warehouse, second_warehouse, yarn, product):
        client.post("/api/inventory/adjust", headers=officer_headers, json={
            "product_id": yarn.id, "warehouse_id": main_warehouse.id, "quantity": 10, "direction": "in",
        })

        payload = {
            "center_id": center.id,
            "date": "2026-02-05",
            "input_product_id": yarn.id,
            "input_warehouse_id": main_warehouse.id,
            "input_qty": 10,
            "output_product_id": product.id,
            "output_warehouse_id": second_warehouse.id,
            "output_qty": 5,
        }
        resp = client.post("/api/production/record", headers=officer_headers, json=payload)
        assert resp.status_code == 200
        assert resp.get_json()["production_id"] == 1

        resp = client.post("/api/production/record", headers=officer_headers, json=payload)
        assert resp.status_code == 409

        history = client.get("/api/production/history", headers=officer_headers).get_json()
        assert len(history) == 1
        assert history[0]["center_name"] == "Weaving Center"
        assert history[0]["input_name"] == "Cotton Yarn"

    def test_order_lifecycle(self, client, officer_headers, center, product):
        resp = client.post("/api/production/orders", headers=officer_headers, json={
            "center_id": center.id, "product_id": product.id, "planned_quantity": 200, "date": "2026-02-05",
        })
        assert resp.status_code == 201
        order = resp.get_json()["order"]
        assert order["order_number"] == "PO-20260205-00001"

        url = f"/api/production/orders/{order['id']}/status"
        assert client.patch(url, headers=officer_headers, json={"status": "completed"}).status_code == 409
        assert client.patch(url, headers=officer_headers, json={"status": "in_progress"}).status_code == 200

        resp = client.patch(url, headers=officer_headers, json={"status": "completed", "actual_quantity": 190})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["actual_quantity"] == "190.000"

        orders = client.get("/api/production/orders?status=completed", headers=officer_headers).get_json()
        assert [o["id"] for o in orders] == [order["id"]]

    def test_centers(self, client, officer_headers, center):
        centers = client.get("/api/production/centers", headers=officer_headers).get_json()
        assert [c["code"] for c in centers] == ["PC-01"]


def test_health_reports_missing_default_warehouse(client):
    body = client.get("/api/system/health").get_json()
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["reference_data"]["status"] == "degraded"


def test_health_ok_with_reference_data(client, main_warehouse):
    resp = client.get("/api/system/health")
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "healthy"


def _datastore_down(*args, **kwargs):
    raise RuntimeError("datastore unavailable")


@pytest.mark.parametrize(
    "path,service,attr",
    [
        ("/api/inventory/stock", stock_service, "list_stock"),
        ("/api/inventory/history", stock_service, "list_stock_history"),
        ("/api/inventory/warehouses", stock_service, "list_warehouses"),
        ("/api/inventory/valuation", stock_service, "stock_valuation"),
        ("/api/sales/", invoice_service, "list_invoices"),
        ("/api/sales/1", invoice_service, "get_invoice"),
        ("/api/finance/credits", credit_service, "list_outstanding_credits"),
        ("/api/finance/payment-history/1", credit_service, "get_payment_history"),
        ("/api/finance/credit-aging", credit_service, "credit_aging_report"),
        ("/api/production/history", production_service, "list_production_history"),
        ("/api/production/centers", production_service, "list_centers"),
        ("/api/production/orders", production_service, "list_orders"),
    ],
)
def test_read_endpoints_map_unexpected_errors_to_500(client, monkeypatch, path, service, attr):
    monkeypatch.setattr(service, attr, _datastore_down)

    resp = client.get(path, headers=role_headers("Director"))

    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Internal server error"}
