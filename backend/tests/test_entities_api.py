from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fastapi.testclient import TestClient

from finance_tracker.main import app

client = TestClient(app)


def _iso(moment: datetime) -> str:
    return moment.isoformat()


def _create_account(user_id: int = 1, **overrides) -> dict:
    payload = {
        "name": "Chase Checking",
        "accountNumber": "****4567",
        "bankName": "Chase Bank",
        "accountType": "checking",
        "balance": "12500.80",
        "notes": "Main checking account",
        "userId": user_id,
    }
    payload.update(overrides)
    res = client.post("/api/v1/accounts", json=payload)
    assert res.status_code == 201
    return res.json()


def test_health_endpoint() -> None:
    res = client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_category_crud_flow() -> None:
    create = client.post("/api/v1/categories", json={"name": "Food", "icon": "utensils", "color": "#10B981", "userId": 1})
    assert create.status_code == 201
    category = create.json()
    assert category["id"] == 1

    listed = client.get("/api/v1/categories", params={"userId": 1})
    assert listed.status_code == 200
    assert [c["name"] for c in listed.json()] == ["Food"]

    updated = client.put(f"/api/v1/categories/{category['id']}", json={"name": "Groceries"})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Groceries"
    assert updated.json()["color"] == "#10B981"

    deleted = client.delete(f"/api/v1/categories/{category['id']}")
    assert deleted.status_code == 204
    assert deleted.content == b""
    assert client.get("/api/v1/categories", params={"userId": 1}).json() == []


def test_transaction_with_non_numeric_amount_is_rejected_and_not_stored() -> None:
    res = client.post(
        "/api/v1/transactions",
        json={
            "description": "Mystery",
            "amount": "a lot",
            "date": "2024-05-12T10:00:00Z",
            "type": "expense",
            "userId": 1,
        },
    )
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert [d["field"] for d in body["error"]["details"]] == ["amount"]
    assert client.get("/api/v1/transactions", params={"userId": 1}).json() == []


def test_missing_required_fields_are_listed() -> None:
    res = client.post("/api/v1/events", json={"title": "Rent", "userId": 1})
    assert res.status_code == 400
    fields = {d["field"] for d in res.json()["error"]["details"]}
    assert fields == {"amount", "date", "priority", "category"}


def test_partial_account_update_preserves_other_fields() -> None:
    account = _create_account()
    res = client.patch(f"/api/v1/accounts/{account['id']}", json={"balance": "100.25"})
    assert res.status_code == 200
    body = res.json()
    assert Decimal(str(body["balance"])) == Decimal("100.25")
    assert body["name"] == "Chase Checking"
    assert body["bankName"] == "Chase Bank"
    assert body["notes"] == "Main checking account"


def test_update_with_null_required_field_is_rejected() -> None:
    account = _create_account()
    res = client.put(f"/api/v1/accounts/{account['id']}", json={"name": None})
    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["field"] == "name"


def test_update_missing_entity_returns_404() -> None:
    res = client.put("/api/v1/goals/999", json={"title": "Nope"})
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "NOT_FOUND"


def test_delete_missing_entity_returns_404() -> None:
    res = client.delete("/api/v1/events/999")
    assert res.status_code == 404
    assert res.json()["error"]["message"] == "event not found: 999"


def test_non_numeric_path_id_is_invalid_input() -> None:
    res = client.delete("/api/v1/accounts/abc")
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "INVALID_INPUT"


def test_list_requires_numeric_user_id() -> None:
    for params in ({"userId": "abc"}, {"userId": "-3"}, {}):
        res = client.get("/api/v1/goals", params=params)
        assert res.status_code == 400
        assert res.json()["error"]["code"] == "INVALID_INPUT"


def test_list_only_returns_owner_records() -> None:
    _create_account(user_id=1, name="Mine")
    _create_account(user_id=2, name="Theirs")
    res = client.get("/api/v1/accounts", params={"userId": 2})
    assert [a["name"] for a in res.json()] == ["Theirs"]


def test_transaction_dates_come_back_as_utc() -> None:
    res = client.post(
        "/api/v1/transactions",
        json={
            "description": "Salary Deposit",
            "amount": 3450,
            "date": "2024-05-05T09:00:00+02:00",
            "type": "income",
            "userId": 1,
        },
    )
    assert res.status_code == 201
    stored = datetime.fromisoformat(res.json()["date"].replace("Z", "+00:00"))
    assert stored == datetime(2024, 5, 5, 7, tzinfo=timezone.utc)


def test_goal_progress_endpoint() -> None:
    goal = client.post(
        "/api/v1/goals",
        json={
            "title": "Emergency Fund",
            "targetAmount": "12000",
            "currentAmount": "8400",
            "targetDate": _iso(datetime.now(timezone.utc) + timedelta(days=200)),
            "status": "on_track",
            "userId": 1,
        },
    ).json()
    res = client.get(f"/api/v1/goals/{goal['id']}/progress")
    assert res.status_code == 200
    body = res.json()
    assert body["goalId"] == goal["id"]
    assert body["percentage"] == 70
    assert body["status"] == "on_track"
    assert body["recommendedStatus"] in {"on_track", "falling_behind", "completed", "just_started"}


def test_goal_progress_for_missing_goal() -> None:
    assert client.get("/api/v1/goals/42/progress").status_code == 404


def test_event_date_out_of_range_is_rejected() -> None:
    res = client.post(
        "/api/v1/events",
        json={
            "title": "Far future bill",
            "amount": "10",
            "date": "9999-12-31T23:00:00-05:00",
            "priority": "low",
            "category": "Misc",
            "userId": 1,
        },
    )
    assert res.status_code == 400
    body = res.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert [d["field"] for d in body["error"]["details"]] == ["date"]
    assert client.get("/api/v1/events", params={"userId": 1}).json() == []


def test_unrepresentable_balance_is_rejected() -> None:
    res = client.post(
        "/api/v1/accounts",
        json={
            "name": "Huge",
            "accountNumber": "****9999",
            "bankName": "Bank",
            "accountType": "other",
            "balance": "1e400",
            "userId": 7,
        },
    )
    assert res.status_code == 400
    assert res.json()["error"]["details"][0]["field"] == "balance"
    assert client.get("/api/v1/dashboard", params={"userId": 7}).json()["totalBalance"] == 0
