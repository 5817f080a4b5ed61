"""HTTP surface: status codes, error translation and one full receivables flow."""
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy.exc import OperationalError

from ledgerbook.services import customer_service


def money(value):
    return Decimal(str(value))


def _customer(client, name="Shah Traders", opening="0"):
    resp = client.post(
        "/customers",
        json={"company_name": name, "opening_balance": opening, "as_of_date": (date.today() - timedelta(days=60)).isoformat()},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _invoice(client, customer_id, amount, due_in_days=30):
    today = date.today()
    resp = client.post(
        "/invoices",
        json={
            "customer_id": customer_id,
            "issue_date": (today - timedelta(days=5)).isoformat(),
            "due_date": (today + timedelta(days=due_in_days)).isoformat(),
            "items": [{"description": "Panaflex", "amount": amount}],
        },
    )
    assert resp.status_code == 201, resp.text
    invoice = resp.json()
    sent = client.post(f"/invoices/{invoice['id']}/send")
    assert sent.status_code == 200
    return sent.json()


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.headers["X-Content-Type-Options"] == "nosniff"


def test_unknown_customer_is_404(client):
    resp = client.get("/customers/999")
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Customer not found"


def test_validation_error_is_422(client):
    resp = client.post("/customers", json={"company_name": ""})
    assert resp.status_code == 422


def test_database_failure_is_hidden(client, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    monkeypatch.setattr(customer_service, "list_customers", broken)
    resp = client.get("/customers")
    assert resp.status_code == 500
    assert "disk" not in resp.json()["detail"]


def test_receivables_flow(client):
    customer = _customer(client, opening="1000")
    inv_a = _invoice(client, customer["id"], "2000", due_in_days=5)
    inv_b = _invoice(client, customer["id"], "1500", due_in_days=20)
    assert inv_a["status"] == "sent"

    preview = client.post(
        "/payments/allocation-preview", json={"customer_id": customer["id"], "amount": "4500"}
    ).json()
    assert money(preview["opening_balance_amount"]) == Decimal("1000")
    assert {int(k): money(v) for k, v in preview["invoice_amounts"].items()} == {
        inv_a["id"]: Decimal("2000"),
        inv_b["id"]: Decimal("1500"),
    }

    resp = client.post(
        "/payments",
        json={
            "customer_id": customer["id"],
            "payment_date": date.today().isoformat(),
            "total_received": "4500",
            "payment_method": "bank_transfer",
            "auto_allocate": True,
        },
    )
    assert resp.status_code == 201, resp.text
    payment = resp.json()
    assert payment["status"] == "completed"
    assert len(payment["applications"]) == 3

    ledger = client.get(f"/ledger/{customer['id']}").json()
    assert [row["type"] for row in ledger] == ["opening_balance", "invoice", "invoice", "payment"]
    assert money(ledger[-1]["balance"]) == Decimal("0")

    status = client.get(f"/customers/{customer['id']}/opening-balance").json()
    assert money(status["remaining_amount"]) == Decimal("0")

    blocked = client.delete(f"/invoices/{inv_a['id']}")
    assert blocked.status_code == 409

    paid_by = client.get(f"/payments/{payment['id']}/invoices").json()
    assert len(paid_by["invoices"]) == 2

    assert client.delete(f"/payments/{payment['id']}").status_code == 200
    assert money(client.get(f"/customers/{customer['id']}").json()["current_balance"]) == Decimal("4500")
    assert client.delete(f"/invoices/{inv_a['id']}").status_code == 200


def test_bad_allocation_is_400(client):
    customer = _customer(client)
    invoice = _invoice(client, customer["id"], "500")
    resp = client.post(
        "/payments",
        json={
            "customer_id": customer["id"],
            "payment_date": date.today().isoformat(),
            "total_received": "900",
            "invoice_allocations": [{"invoice_id": invoice["id"], "amount": "900"}],
        },
    )
    assert resp.status_code == 400
    assert "exceeds pending amount" in resp.json()["detail"]


def test_customer_delete_check(client):
    customer = _customer(client)
    _invoice(client, customer["id"], "100")

    check = client.get(f"/customers/{customer['id']}/can-delete").json()
    assert check["can_delete"] is False
    assert client.delete(f"/customers/{customer['id']}").status_code == 409


def test_settings_prefix_drives_numbering(client):
    resp = client.patch("/settings", json={"invoice_prefix": "bill"})
    assert resp.status_code == 200
    assert resp.json()["invoice_prefix"] == "BILL"

    assert client.get("/invoices/next-number").json()["invoice_number"] == f"BILL-{date.today().year}-001"

    customer = _customer(client)
    invoice = _invoice(client, customer["id"], "100")
    assert invoice["invoice_number"].startswith("BILL-")


def test_adjustment_and_consistency(client):
    customer = _customer(client, opening="300")
    resp = client.post(
        f"/ledger/{customer['id']}/adjustments",
        json={"date": date.today().isoformat(), "credit": "50", "description": "Rounding"},
    )
    assert resp.status_code == 201, resp.text

    summary = client.get(f"/ledger/{customer['id']}/summary").json()
    assert money(summary["closing_balance"]) == Decimal("250")
    check = client.get(f"/ledger/{customer['id']}/consistency").json()
    assert check["is_consistent"] is True


def test_reports_and_search(client):
    customer = _customer(client, name="Noor Printing", opening="100")
    _invoice(client, customer["id"], "400")

    dashboard = client.get("/reports/dashboard").json()
    assert dashboard["total_invoices"] == 1
    assert dashboard["recent_activity"][0]["type"] == "invoice"

    parties = client.get("/reports/parties-balances").json()
    assert money(parties["totals"]["receivable"]) == Decimal("500")

    hits = client.get("/search", params={"q": "Noor"}).json()
    assert hits[0]["type"] == "customer"


def test_discount_routes(client):
    customer = _customer(client)
    invoice = _invoice(client, customer["id"], "1000")
    resp = client.post(
        "/discounts",
        json={"customer_id": customer["id"], "amount": "100", "date": date.today().isoformat(), "invoice_id": invoice["id"]},
    )
    assert resp.status_code == 201, resp.text
    discount = resp.json()
    assert money(discount["invoice_applied_amount"]) == Decimal("100")

    listed = client.get(f"/discounts/customer/{customer['id']}").json()
    assert money(listed["total"]) == Decimal("100")

    assert client.delete(f"/discounts/{discount['id']}").status_code == 200
    assert money(client.get(f"/invoices/{invoice['id']}").json()["pending_amount"]) == Decimal("1000")


def test_products(client):
    resp = client.post("/products", json={"name": "Star Flex", "default_rate": "12.5"})
    assert resp.status_code == 201
    product = resp.json()
    assert client.post("/products", json={"name": "star flex"}).status_code == 400

    client.patch(f"/products/{product['id']}", json={"status": "inactive"})
    assert client.get("/products", params={"active_only": True}).json() == []
    assert client.delete(f"/products/{product['id']}").status_code == 200
