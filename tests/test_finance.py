from app.models.finance import Package


def test_expenses_crud(client, admin_headers):
    response = client.post(
        "/api/finance/expenses",
        headers=admin_headers,
        json={"category": "Rent", "amount": 25000, "date": "2026-06-01", "notes": "June"},
    )
    assert response.status_code == 201
    expense_id = response.json()["expense"]["id"]

    listing = client.get("/api/finance/expenses", headers=admin_headers).json()["expenses"]
    assert [e["category"] for e in listing] == ["Rent"]

    assert client.delete(f"/api/finance/expenses/{expense_id}", headers=admin_headers).status_code == 200
    assert client.delete(f"/api/finance/expenses/{expense_id}", headers=admin_headers).status_code == 404


def test_expense_amount_must_be_positive(client, admin_headers):
    response = client.post(
        "/api/finance/expenses",
        headers=admin_headers,
        json={"category": "Rent", "amount": 0, "date": "2026-06-01"},
    )
    assert response.status_code == 422


def test_budget_upsert(client, admin_headers):
    payload = {"month": "2026-06", "revenueTarget": 150000, "expenseLimits": {"Rent": 25000}}
    response = client.post("/api/finance/budgets", headers=admin_headers, json=payload)
    assert response.json()["budget"] == payload

    payload["revenueTarget"] = 175000
    client.post("/api/finance/budgets", headers=admin_headers, json=payload)
    budgets = client.get("/api/finance/budgets", headers=admin_headers).json()["budgets"]
    assert budgets == [payload]


def test_budget_month_format(client, admin_headers):
    response = client.post("/api/finance/budgets", headers=admin_headers, json={"month": "June"})
    assert response.status_code == 422


def test_fee_structure(client, db, admin_headers, guitar):
    key = str(guitar.id)
    response = client.post(
        "/api/finance/fees",
        headers=admin_headers,
        json={"fees": {key: {"monthly": 3000, "quarterly": 8500}}},
    )
    assert response.status_code == 200

    packages = {p.name: p for p in db.query(Package).all()}
    assert packages["Monthly"].classes_count == 8
    assert packages["Quarterly"].classes_count == 24

    client.post("/api/finance/fees", headers=admin_headers, json={"fees": {key: {"monthly": 3200}}})
    fees = client.get("/api/finance/fees", headers=admin_headers).json()["fees"]
    assert fees == {key: {"monthly": 3200, "quarterly": 0}}
    assert db.query(Package).count() == 2


def test_finance_is_admin_only(client, teacher_headers):
    assert client.get("/api/finance/expenses", headers=teacher_headers).status_code == 403
