from __future__ import annotations

from finapp.models import today_local


def _category_id(client, name: str) -> int:
    res = client.get("/api/categories")
    assert res.status_code == 200
    for c in res.json():
        if c["name"] == name:
            return c["id"]
    raise AssertionError(f"category {name} not found")


def _create_account(client, balance: float = 1000) -> dict:
    res = client.post("/api/accounts", json={"bank_name": "Main bank", "balance": balance})
    assert res.status_code == 201, res.text
    return res.json()


def _create_fixed_account(client, **overrides) -> dict:
    payload = {
        "description": "Office rent",
        "amount": 300,
        "periodicity": "monthly",
        "start_date": "2026-01-10",
        "category_id": _category_id(client, "Rent"),
    }
    payload.update(overrides)
    res = client.post("/api/fixed-accounts", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_and_read_fixed_account(client):
    body = _create_fixed_account(client, reminder_days=5)
    fa = body["fixed_account"]
    first = body["first_transaction"]

    assert fa["type"] == "expense"
    assert fa["next_due_date"] == "2026-02-10"
    assert fa["reminder_days"] == 5
    assert fa["category"]["name"] == "Rent"
    assert first["due_date"] == "2026-01-10"
    assert first["status"] == "pending"

    res = client.get(f"/api/fixed-accounts/{fa['id']}")
    assert res.status_code == 200
    assert res.json()["description"] == "Office rent"

    res = client.get("/api/fixed-accounts")
    assert [row["id"] for row in res.json()] == [fa["id"]]


def test_create_validation_errors(client):
    rent = _category_id(client, "Rent")
    base = {"description": "x", "amount": 10, "periodicity": "monthly", "start_date": "2026-01-10", "category_id": rent}

    assert client.post("/api/fixed-accounts", json={**base, "amount": 0}).status_code == 422
    assert client.post("/api/fixed-accounts", json={**base, "periodicity": "biweekly"}).status_code == 422
    assert client.post("/api/fixed-accounts", json={**base, "reminder_days": 31}).status_code == 422
    assert client.post("/api/fixed-accounts", json={**base, "description": "   "}).status_code == 422

    res = client.post("/api/fixed-accounts", json={**base, "category_id": 99999})
    assert res.status_code == 404
    assert res.json()["detail"] == "Category not found"

    res = client.post("/api/fixed-accounts", json={**base, "type": "income"})
    assert res.status_code == 400


def test_statistics_route_is_not_shadowed_by_id(client):
    _create_fixed_account(client)
    res = client.get("/api/fixed-accounts/statistics")
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["total"] == 1
    assert body["by_periodicity"]["monthly"] == 1
    assert body["by_category"]["Rent"]["count"] == 1
    assert body["by_status"]["pending"] == 1


def test_update_toggle_delete(client):
    fa = _create_fixed_account(client)["fixed_account"]

    res = client.put(f"/api/fixed-accounts/{fa['id']}", json={"amount": 320.5})
    assert res.status_code == 200, res.text
    assert res.json()["amount"] == 320.5
    assert res.json()["next_due_date"] == "2026-02-10"

    res = client.put(f"/api/fixed-accounts/{fa['id']}", json={"description": None})
    assert res.status_code == 422

    res = client.put(f"/api/fixed-accounts/{fa['id']}", json={"start_date": "2026-03-05"})
    assert res.json()["next_due_date"] == "2026-03-05"

    res = client.patch(f"/api/fixed-accounts/{fa['id']}/toggle")
    assert res.status_code == 200
    assert res.json()["is_active"] is False

    res = client.delete(f"/api/fixed-accounts/{fa['id']}")
    assert res.status_code == 204
    assert client.get(f"/api/fixed-accounts/{fa['id']}").status_code == 404


def test_pay_fixed_account_endpoint(client):
    acc = _create_account(client)
    fa = _create_fixed_account(client)["fixed_account"]

    res = client.post(f"/api/fixed-accounts/{fa['id']}/pay", json={"account_id": acc["id"], "payment_date": "2026-01-09"})
    assert res.status_code == 200, res.text
    body = res.json()
    assert len(body["paid_transactions"]) == 1
    assert body["paid_transactions"][0]["status"] == "paid"
    assert body["created_transactions"][0]["description"] == "Fixed account: Office rent"
    assert body["total_amount"] == 300

    assert client.get(f"/api/accounts/{acc['id']}").json()["balance"] == 700
    assert client.get(f"/api/fixed-accounts/{fa['id']}").json()["is_paid"] is True

    ledger = client.get("/api/transactions", params={"fixed_account_id": fa["id"]})
    assert ledger.headers["X-Total-Count"] == "1"


def test_pay_inactive_fixed_account_is_rejected(client):
    _create_account(client)
    fa = _create_fixed_account(client)["fixed_account"]
    client.patch(f"/api/fixed-accounts/{fa['id']}/toggle")

    res = client.post(f"/api/fixed-accounts/{fa['id']}/pay")
    assert res.status_code == 400
    assert res.json()["detail"] == "Fixed account is inactive"


def test_occurrence_listing_and_filters(client):
    fa = _create_fixed_account(client)["fixed_account"]
    _create_fixed_account(client, description="Payroll", category_id=_category_id(client, "Salary"))

    res = client.get("/api/fixed-account-transactions")
    assert res.status_code == 200
    body = res.json()
    assert body["pagination"] == {"page": 1, "limit": 20, "total": 2, "pages": 1}
    assert body["items"][0]["fixed_account"]["id"] == fa["id"]

    res = client.get("/api/fixed-account-transactions", params={"category_id": fa["category_id"]})
    assert res.json()["pagination"]["total"] == 1

    res = client.get("/api/fixed-account-transactions", params={"status": "paid"})
    assert res.json()["items"] == []

    res = client.get("/api/fixed-account-transactions", params={"due_date_from": "2026-02-01"})
    assert res.json()["pagination"]["total"] == 0


def test_batch_payment_endpoint(client):
    acc = _create_account(client, balance=100)
    first = _create_fixed_account(client)["first_transaction"]

    res = client.post(
        "/api/fixed-account-transactions/pay",
        json={"transaction_ids": [first["id"]], "payment_date": "2026-01-10", "account_id": acc["id"]},
    )
    assert res.status_code == 400
    assert res.json()["detail"] == "Insufficient balance in bank account"

    res = client.post(
        "/api/fixed-account-transactions/pay",
        json={"transaction_ids": [], "payment_date": "2026-01-10", "account_id": acc["id"]},
    )
    assert res.status_code == 422

    res = client.post(
        "/api/fixed-account-transactions/pay",
        json={"transaction_ids": [first["id"]], "payment_date": "2026-01-10", "account_id": 99999},
    )
    assert res.status_code == 404


def test_occurrence_update_and_cancel(client):
    first = _create_fixed_account(client)["first_transaction"]
    url = f"/api/fixed-account-transactions/{first['id']}"

    assert client.put(url, json={}).status_code == 400

    res = client.put(url, json={"observations": "waiting for invoice", "payment_method": "pix"})
    assert res.status_code == 200, res.text
    assert res.json()["observations"] == "waiting for invoice"
    assert res.json()["payment_method"] == "pix"

    res = client.post(f"{url}/cancel")
    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"
    assert res.json()["observations"].startswith("waiting for invoice\n[CANCELLED at ")

    assert client.post(f"{url}/cancel").status_code == 400

    detail = client.get(url).json()
    assert detail["fixed_account"]["description"] == "Office rent"
    assert detail["transaction"] is None

    assert client.get("/api/fixed-account-transactions/99999").status_code == 404


def test_paid_occurrence_cannot_be_updated(client):
    acc = _create_account(client)
    first = _create_fixed_account(client)["first_transaction"]
    client.post(
        "/api/fixed-account-transactions/pay",
        json={"transaction_ids": [first["id"]], "payment_date": "2026-01-10", "account_id": acc["id"]},
    )

    res = client.put(f"/api/fixed-account-transactions/{first['id']}", json={"observations": "late"})
    assert res.status_code == 400

    detail = client.get(f"/api/fixed-account-transactions/{first['id']}").json()
    assert detail["transaction"]["amount"] == 300


def test_job_endpoints(client):
    _create_fixed_account(client, start_date=today_local().isoformat())

    res = client.post("/api/fixed-account-jobs/process")
    assert res.status_code == 200, res.text
    assert res.json()["status"] == "success"

    res = client.post("/api/fixed-account-jobs/notifications", json={"user_id": 1})
    assert res.status_code == 200
    assert res.json()["notifications_created"] == 1

    res = client.post("/api/fixed-account-jobs/run-all")
    assert set(res.json()) == {"processing", "notifications"}

    history = client.get("/api/fixed-account-jobs/history", params={"job_name": "fixed_account_processing"}).json()
    assert history["pagination"]["total"] == 2

    stats = client.get("/api/fixed-account-jobs/stats", params={"period": "month"}).json()
    assert stats["total_executions"] == 4
    assert stats["success_rate"] == 100.0
    assert client.get("/api/fixed-account-jobs/stats", params={"period": "year"}).status_code == 422

    config = client.get("/api/fixed-account-jobs/config").json()
    assert config["jobs"][0]["schedule"] == "0 6 * * *"

    notes = client.get("/api/notifications", params={"unread_only": True}).json()
    assert len(notes) == 1
    assert notes[0]["priority"] == "high"
    res = client.patch(f"/api/notifications/{notes[0]['id']}/read")
    assert res.json()["is_read"] is True
    assert client.get("/api/notifications", params={"unread_only": True}).json() == []


def test_supporting_entities(client):
    res = client.post("/api/suppliers", json={"name": "Landlord", "email": "landlord@example.com"})
    assert res.status_code == 201, res.text
    assert client.post("/api/suppliers", json={"name": "Landlord"}).status_code == 409
    assert [s["name"] for s in client.get("/api/suppliers").json()] == ["Landlord"]

    res = client.post("/api/categories", json={"name": "Gym", "type": "expense", "color": "#123456"})
    assert res.status_code == 201
    assert res.json()["user_id"] == 1
    expense_names = {c["name"] for c in client.get("/api/categories", params={"type": "expense"}).json()}
    assert {"Gym", "Rent"} <= expense_names
    assert "Salary" not in expense_names

    assert client.get("/api/accounts/99999").status_code == 404
    assert client.get("/health").json() == {"status": "ok"}
