from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

import structlog

from ..persistence import Persistence

logger = structlog.get_logger(__name__)

DEMO_USERNAME = "johndoe"

CATEGORIES = [
    ("Housing", "home", "#4F46E5"),
    ("Food", "utensils", "#10B981"),
    ("Transportation", "car", "#F43F5E"),
    ("Entertainment", "film", "#FBBF24"),
    ("Utilities", "bolt", "#60A5FA"),
    ("Shopping", "shopping-bag", "#9333EA"),
    ("Income", "wallet", "#10B981"),
]


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def seed_demo_data(persistence: Persistence, now: Optional[datetime] = None) -> dict[str, Any]:
    """Load the demo user and its sample records unless the demo user already exists.

    Upcoming events are dated relative to ``now`` so the dashboard always has
    something due in the next two weeks.
    """
    current = now or datetime.now(timezone.utc)
    existing = persistence.users.find_one("username", DEMO_USERNAME)
    if existing is not None:
        return {"seeded": False, "userId": existing["id"]}

    user = persistence.register_user(
        {"username": DEMO_USERNAME, "password": "password123", "fullName": "John Doe", "email": "john@example.com"}
    )
    uid = user["id"]
    cats = {
        name: persistence.categories.create({"name": name, "icon": icon, "color": color, "userId": uid})
        for name, icon, color in CATEGORIES
    }

    checking = persistence.accounts.create(
        {
            "name": "Chase Checking",
            "accountNumber": "****4567",
            "bankName": "Chase Bank",
            "accountType": "checking",
            "balance": Decimal("12500.80"),
            "notes": "Main checking account",
            "credentials": {},
            "userId": uid,
        }
    )
    persistence.accounts.create(
        {
            "name": "Savings",
            "accountNumber": "****7890",
            "bankName": "Bank of America",
            "accountType": "savings",
            "balance": Decimal("8400"),
            "notes": "Emergency fund",
            "credentials": {},
            "userId": uid,
        }
    )
    card = persistence.accounts.create(
        {
            "name": "Credit Card",
            "accountNumber": "****1234",
            "bankName": "Citi",
            "accountType": "credit_card",
            "balance": Decimal("-1350.50"),
            "notes": "Rewards card",
            "credentials": {},
            "userId": uid,
        }
    )

    transactions = [
        ("Amazon Purchase", "42.99", _utc(2023, 5, 12), "expense", "Shopping", checking, "Purchased household items"),
        ("Netflix Subscription", "14.99", _utc(2023, 5, 10), "expense", "Entertainment", card, "Monthly subscription"),
        ("Salary Deposit", "3450.00", _utc(2023, 5, 5), "income", "Income", checking, "Monthly salary"),
        ("Uber Ride", "18.50", _utc(2023, 5, 3), "expense", "Transportation", card, "Trip to downtown"),
    ]
    for description, amount, when, tx_type, category, account, notes in transactions:
        persistence.transactions.create(
            {
                "description": description,
                "amount": Decimal(amount),
                "date": when,
                "type": tx_type,
                "categoryId": cats[category]["id"],
                "accountId": account["id"],
                "notes": notes,
                "userId": uid,
            }
        )

    goals = [
        ("Emergency Fund", "Save 6 months of expenses", "12000", "8400", _utc(2023, 12, 31), "on_track"),
        ("Vacation Fund", "Trip to Europe", "5000", "1800", _utc(2023, 7, 31), "falling_behind"),
        ("New Car", "Down payment", "8000", "500", _utc(2024, 3, 31), "just_started"),
    ]
    for title, description, target, saved, target_date, status in goals:
        persistence.goals.create(
            {
                "title": title,
                "description": description,
                "targetAmount": Decimal(target),
                "currentAmount": Decimal(saved),
                "targetDate": target_date,
                "status": status,
                "userId": uid,
            }
        )

    events = [
        ("Rent Payment", "Monthly rent", "1200", 2, "high", "Housing"),
        ("Car Insurance", "Monthly premium", "95.50", 5, "medium", "Insurance"),
        ("Mom's Birthday Gift", "Buy a necklace", "150", 8, "low", "Gifts"),
        ("Electric Bill", "Monthly utility bill", "85.40", 12, "medium", "Utilities"),
    ]
    for title, description, amount, days_ahead, priority, category in events:
        persistence.events.create(
            {
                "title": title,
                "description": description,
                "amount": Decimal(amount),
                "date": current + timedelta(days=days_ahead),
                "priority": priority,
                "category": category,
                "userId": uid,
            }
        )

    logger.info("demo_data_seeded", user_id=uid)
    return {"seeded": True, "userId": uid}
