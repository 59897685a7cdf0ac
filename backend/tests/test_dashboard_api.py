from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from finance_tracker.main import app, persistence

client = TestClient(app)


def _post(kind: str, payload: dict) -> dict:
    res = client.post(f"/api/v1/{kind}", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def _transaction(amount: str, tx_type: str, when: datetime, user_id: int = 1) -> dict:
    return _post(
        "transactions",
        {"description": f"{tx_type} {amount}", "amount": amount, "date": when.isoformat(), "type": tx_type, "userId": user_id},
    )


def _event(amount: str, when: datetime, user_id: int = 1) -> dict:
    return _post(
        "events",
        {
            "title": f"Bill {amount}",
            "amount": amount,
            "date": when.isoformat(),
            "priority": "high",
            "category": "Housing",
            "userId": user_id,
        },
    )


def test_dashboard_for_user_without_records() -> None:
    res = client.get("/api/v1/dashboard", params={"userId": 7})
    assert res.status_code == 200
    assert res.json() == {
        "totalBalance": 0,
        "monthlyExpenses": 0,
        "savingsRate": 0,
        "upcomingBills": 0,
        "recentTransactions": [],
        "upcomingEvents": [],
        "goals": [],
        "accounts": [],
    }


def test_dashboard_summarizes_current_month_and_bills() -> None:
    now = datetime.now(timezone.utc)
    for balance in ("12500.80", "8400", "-1350.50"):
        _post(
            "accounts",
            {
                "name": f"Account {balance}",
                "accountNumber": "****0001",
                "bankName": "Bank",
                "accountType": "checking",
                "balance": balance,
                "userId": 1,
            },
        )
    _transaction("1000", "income", now)
    _transaction("1500", "expense", now)
    _event("10", now + timedelta(days=29))
    _event("20", now + timedelta(days=31))
    _event("40", now - timedelta(days=1))

    res = client.get("/api/v1/dashboard", params={"userId": 1})
    assert res.status_code == 200
    body = res.json()
    assert body["totalBalance"] == 19550.30
    assert body["monthlyExpenses"] == 1500
    assert body["savingsRate"] == -50
    assert body["upcomingBills"] == 10
    assert len(body["recentTransactions"]) == 2
    assert [e["title"] for e in body["upcomingEvents"]] == ["Bill 10", "Bill 20"]
    assert len(body["accounts"]) == 3


def test_dashboard_invalid_user_id() -> None:
    res = client.get("/api/v1/dashboard", params={"userId": "abc"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_INPUT"


def test_dashboard_fetch_failure_returns_500(monkeypatch) -> None:
    def broken(user_id: int) -> list:
        raise RuntimeError("storage unavailable")

    monkeypatch.setattr(persistence.goals, "list", broken)
    res = client.get("/api/v1/dashboard", params={"userId": 1})
    assert res.status_code == 500
    assert res.json()["error"] == {
        "code": "AGGREGATION_FAILURE",
        "message": "Error fetching dashboard data",
        "details": [],
    }


def test_expense_breakdown_endpoint() -> None:
    now = datetime.now(timezone.utc)
    food = _post("categories", {"name": "Food", "icon": "utensils", "color": "#10B981", "userId": 1})
    _post(
        "transactions",
        {"description": "Lunch", "amount": "30", "date": now.isoformat(), "type": "expense", "categoryId": food["id"], "userId": 1},
    )
    _transaction("10", "expense", now)
    res = client.get("/api/v1/dashboard/expense-breakdown", params={"userId": 1})
    assert res.status_code == 200
    body = res.json()
    assert [(i["name"], i["amount"], i["percentage"]) for i in body] == [("Food", 30, 75), ("Uncategorized", 10, 25)]


def test_expense_breakdown_rejects_unknown_timeframe() -> None:
    res = client.get("/api/v1/dashboard/expense-breakdown", params={"userId": 1, "timeframe": "forever"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_INPUT"


def test_income_expense_series_endpoint() -> None:
    _transaction("3450", "income", datetime.now(timezone.utc))
    res = client.get("/api/v1/dashboard/income-expense", params={"userId": 1, "months": 3})
    assert res.status_code == 200
    body = res.json()
    assert len(body) == 3
    assert body[-1]["income"] == 3450
    assert body[0]["income"] == 0
