# Overview: HTTP-level tests for the ledger blueprints and their JSON error contract.

from datetime import timedelta

from backoffice.errors import StorageError
from backoffice.services import scheduler_service
from backoffice.time_utils import to_utc_z, utcnow


def _sale_body(item, quantity="4"):
    return {
        "customerName": "Jane Doe",
        "saleDate": to_utc_z(utcnow()),
        "paymentMethod": "cash",
        "items": [{
            "inventoryId": item.id,
            "productName": item.product_name,
            "quantity": quantity,
            "unitPrice": "12.50",
        }],
    }


def _quote_body(item, quantity="2", valid_days=30):
    now = utcnow()
    return {
        "customerName": "Acme Builders",
        "quoteDate": to_utc_z(now),
        "validUntil": to_utc_z(now + timedelta(days=valid_days)),
        "items": [{
            "inventoryId": item.id,
            "productName": item.product_name,
            "quantity": quantity,
            "unitPrice": "12.50",
        }],
    }


def _invoice_body(total="1000.00"):
    now = utcnow()
    return {
        "clientName": "Acme Builders",
        "issueDate": to_utc_z(now),
        "dueDate": to_utc_z(now + timedelta(days=30)),
        "items": [{"description": "Services", "quantity": "1", "unitPrice": total}],
    }


def _assert_error(response, status, code):
    assert response.status_code == status
    body = response.get_json()
    assert body["code"] == code
    assert body["error"]
    assert isinstance(body["details"], dict)
    return body


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["details"]["sales"] == 0
        assert body["checks"]["scheduler"]["enabled"] is False
        assert body["checks"]["scheduler"]["details"]["expiration_sweeper"]["running"] is False

    def test_cors_headers(self, client, db_session):
        response = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


class TestInventoryRoutes:
    def test_adjust_and_list_movements(self, client, db_session, make_item):
        item = make_item(stock="10")

        response = client.put(f"/api/inventory/{item.id}/adjust-stock", json={"adjustment": "-3", "reason": "breakage"})
        assert response.status_code == 200
        assert response.get_json()["currentStock"] == "7.00"

        response = client.get(f"/api/inventory/{item.id}/movements")
        body = response.get_json()
        assert [m["newStock"] for m in body["movements"]] == ["10.00", "7.00"]

        response = client.get(f"/api/stock-movements?inventoryId={item.id}&limit=1")
        assert response.get_json()["count"] == 1

    def test_adjust_below_zero(self, client, db_session, make_item):
        item = make_item(stock="1")
        response = client.put(f"/api/inventory/{item.id}/adjust-stock", json={"adjustment": "-2"})
        _assert_error(response, 409, "insufficient_stock")

    def test_unknown_item(self, client, db_session):
        response = client.get("/api/inventory/999/movements")
        _assert_error(response, 404, "not_found")


class TestPurchaseRoutes:
    def test_create_and_fetch(self, client, db_session):
        body = {
            "purchaseDate": "2026-03-02T09:30:00Z",
            "supplier": "Ferretería Central",
            "paymentMethod": "cash",
            "items": [{
                "product": "Printer paper",
                "quantity": "3",
                "unitPrice": "4.25",
                "category": "Office",
                "productType": "supply",
            }],
        }

        response = client.post("/api/purchases/enhanced", json=body)
        assert response.status_code == 201
        purchase_id = response.get_json()["id"]

        response = client.get(f"/api/purchases/{purchase_id}")
        assert response.status_code == 200
        assert response.get_json()["totalAmount"] == "12.75"

        assert client.get("/api/purchases").get_json()["count"] == 1
        assert client.delete(f"/api/purchases/{purchase_id}").status_code == 200
        _assert_error(client.delete(f"/api/purchases/{purchase_id}"), 404, "not_found")

    def test_invalid_body(self, client, db_session):
        response = client.post("/api/purchases/enhanced", json={"supplier": "X", "items": []})
        _assert_error(response, 400, "invalid_input")


class TestSaleRoutes:
    def test_create_and_delete(self, client, db_session, make_item):
        item = make_item(stock="10")
        period = utcnow().strftime("%Y%m")

        assert client.get("/api/sales/generate-number").get_json() == {"saleNumber": f"V{period}0001"}

        response = client.post("/api/sales", json=_sale_body(item))
        assert response.status_code == 201
        sale = response.get_json()
        assert sale["saleNumber"] == f"V{period}0001"
        assert sale["total"] == "50.00"

        response = client.delete(f"/api/sales/{sale['id']}")
        assert response.status_code == 200
        assert response.get_json()["sale"]["saleNumber"] == sale["saleNumber"]
        _assert_error(client.get(f"/api/sales/{sale['id']}"), 404, "not_found")

    def test_insufficient_stock(self, client, db_session, make_item):
        item = make_item(stock="3")
        body = _assert_error(client.post("/api/sales", json=_sale_body(item, quantity="5")), 409, "insufficient_stock")
        assert body["details"]["line_index"] == 0

    def test_non_json_body(self, client, db_session):
        response = client.post("/api/sales", data="nope", content_type="text/plain")
        _assert_error(response, 400, "invalid_input")


class TestQuoteRoutes:
    def test_full_lifecycle(self, client, db_session, make_item):
        item = make_item(stock="10")

        response = client.post("/api/quotes", json=_quote_body(item, quantity="2"))
        assert response.status_code == 201
        quote = response.get_json()
        assert quote["status"] == "draft"
        assert quote["expiry"]["status"] == "valid"
        assert quote["warnings"] == []

        for status in ("sent", "accepted"):
            response = client.patch(f"/api/quotes/{quote['id']}/status", json={"status": status})
            assert response.status_code == 200
            assert response.get_json()["status"] == status

        response = client.post(f"/api/quotes/{quote['id']}/convert-to-sale", json={"paymentMethod": "card"})
        assert response.status_code == 201
        body = response.get_json()
        assert body["quote"]["status"] == "converted"
        assert body["sale"]["paymentMethod"] == "card"
        assert body["sale"]["quoteId"] == quote["id"]

        _assert_error(client.delete(f"/api/quotes/{quote['id']}"), 409, "invalid_state")

    def test_illegal_transition(self, client, db_session, make_item):
        item = make_item()
        quote = client.post("/api/quotes", json=_quote_body(item)).get_json()

        _assert_error(client.patch(f"/api/quotes/{quote['id']}/status", json={"status": "accepted"}), 409, "invalid_state")
        _assert_error(client.patch(f"/api/quotes/{quote['id']}/status", json={}), 400, "invalid_input")
        _assert_error(client.post(f"/api/quotes/{quote['id']}/convert-to-sale"), 409, "invalid_state")

    def test_accepted_quote_cannot_be_expired_by_hand(self, client, db_session, make_item):
        item = make_item()
        quote = client.post("/api/quotes", json=_quote_body(item)).get_json()
        for status in ("sent", "accepted"):
            client.patch(f"/api/quotes/{quote['id']}/status", json={"status": status})

        response = client.patch(f"/api/quotes/{quote['id']}/status", json={"status": "expired"})

        _assert_error(response, 409, "invalid_state")
        assert client.get(f"/api/quotes/{quote['id']}").get_json()["status"] == "accepted"

    def test_sweep_storage_failure_is_retryable(self, client, db_session, monkeypatch):
        def busy(now=None):
            raise StorageError("Database is busy, retry the operation", {"attempts": 3})

        monkeypatch.setattr(scheduler_service, "expire_quotes", busy)

        body = _assert_error(client.post("/api/quotes/update-expired"), 503, "storage_error")
        assert body["details"] == {"attempts": 3}

    def test_date_errors_are_listed(self, client, db_session, make_item):
        item = make_item()
        body = _assert_error(client.post("/api/quotes", json=_quote_body(item, valid_days=2)), 400, "invalid_input")
        assert "Quote must be valid for at least 7 days" in body["details"]["errors"]

    def test_update_expired_and_stats(self, client, db_session, make_item):
        item = make_item()
        client.post("/api/quotes", json=_quote_body(item))

        response = client.post("/api/quotes/update-expired")
        assert response.status_code == 200
        assert response.get_json() == {"checked": 0, "expired": 0, "successful": 0, "failed": 0}

        stats = client.get("/api/quotes/stats").get_json()
        assert stats["byStatus"]["draft"]["count"] == 1
        assert client.get("/api/quotes?status=draft").get_json()["count"] == 1
        _assert_error(client.get("/api/quotes?status=bogus"), 400, "invalid_input")


class TestReceivableRoutes:
    def test_invoice_payment_flow(self, client, db_session):
        response = client.post("/api/invoices", json=_invoice_body("1000.00"))
        assert response.status_code == 201
        invoice = response.get_json()
        assert invoice["balanceDue"] == "1000.00"
        assert invoice["paymentStatus"] == "pending"

        payment = {"invoiceId": invoice["id"], "paymentAmount": "400", "paymentMethod": "transfer"}
        response = client.post("/api/accounts-receivable/payment", json=payment)
        assert response.status_code == 201
        body = response.get_json()
        assert body["invoice"]["balanceDue"] == "600.00"
        assert body["invoice"]["paymentStatus"] == "partial"
        payment_id = body["payment"]["id"]

        overpay = {**payment, "paymentAmount": "600.01"}
        _assert_error(client.post("/api/accounts-receivable/payment", json=overpay), 400, "invalid_amount")

        detail = client.get(f"/api/accounts-receivable/invoice/{invoice['id']}").get_json()
        assert len(detail["payments"]) == 1

        response = client.delete(f"/api/accounts-receivable/payment/{payment_id}")
        assert response.status_code == 200
        assert response.get_json()["invoice"]["balanceDue"] == "1000.00"

    def test_overdue_sweep_storage_failure_is_retryable(self, client, db_session, monkeypatch):
        def busy(now=None):
            raise StorageError("Database is busy, retry the operation", {"attempts": 3})

        monkeypatch.setattr(scheduler_service, "mark_overdue_invoices", busy)

        _assert_error(client.post("/api/accounts-receivable/mark-overdue"), 503, "storage_error")

    def test_reports(self, client, db_session):
        client.post("/api/invoices", json=_invoice_body("250.00"))

        assert client.get("/api/accounts-receivable/stats").get_json()["totalPending"] == "250.00"
        assert client.get("/api/accounts-receivable/pending").get_json()["count"] == 1
        assert client.get("/api/accounts-receivable/overdue").get_json()["count"] == 0
        assert client.get("/api/accounts-receivable/aging").get_json()["current"] == "250.00"
        assert client.post("/api/accounts-receivable/mark-overdue").get_json() == {
            "success": True,
            "markedOverdue": 0,
        }

    def test_unknown_payment_method(self, client, db_session):
        payment = {"invoiceId": 1, "paymentAmount": "10", "paymentMethod": "barter"}
        _assert_error(client.post("/api/accounts-receivable/payment", json=payment), 400, "invalid_input")
