"""Dashboard aggregation.

Every call re-reads the user's transactions, accounts, goals and events and
derives the summary from scratch; nothing is cached between requests. Money
is accumulated as ``Decimal`` and only turned into floats when the payload
is rendered.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Iterable, Optional

import structlog

from ..config import settings
from ..errors import AggregationFailure, parse_id
from ..persistence import Persistence
from ..schemas import as_utc

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


@dataclass
class DashboardSummary:
    total_balance: Decimal = ZERO
    monthly_expenses: Decimal = ZERO
    monthly_income: Decimal = ZERO
    savings_rate: int = 0
    upcoming_bills: Decimal = ZERO
    recent_transactions: list[dict[str, Any]] = field(default_factory=list)
    upcoming_events: list[dict[str, Any]] = field(default_factory=list)
    goals: list[dict[str, Any]] = field(default_factory=list)
    accounts: list[dict[str, Any]] = field(default_factory=list)

    def as_payload(self) -> dict[str, Any]:
        return {
            "totalBalance": float(self.total_balance),
            "monthlyExpenses": float(self.monthly_expenses),
            "savingsRate": self.savings_rate,
            "upcomingBills": float(self.upcoming_bills),
            "recentTransactions": self.recent_transactions,
            "upcomingEvents": self.upcoming_events,
            "goals": self.goals,
            "accounts": self.accounts,
        }


def to_decimal(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def next_month_start(now: datetime) -> datetime:
    start = month_start(now)
    if start.month == 12:
        return start.replace(year=start.year + 1, month=1)
    return start.replace(month=start.month + 1)


def total_balance(accounts: Iterable[dict[str, Any]]) -> Decimal:
    return sum((to_decimal(a.get("balance")) for a in accounts), ZERO)


def sum_by_type(
    transactions: Iterable[dict[str, Any]],
    tx_type: str,
    start: datetime,
    end: Optional[datetime] = None,
) -> Decimal:
    """Sum of ``amount`` for one transaction type dated at or after ``start``.

    With ``end`` left as None the window is open-ended, so future-dated
    transactions are counted too.
    """
    total = ZERO
    for tx in transactions:
        if tx.get("type") != tx_type:
            continue
        when = as_utc(tx["date"])
        if when < start or (end is not None and when >= end):
            continue
        total += to_decimal(tx.get("amount"))
    return total


def savings_rate(income: Decimal, expenses: Decimal) -> int:
    if income <= 0:
        return 0
    rate = (income - expenses) / income * 100
    # Halves round toward positive infinity: 12.5 -> 13, -12.5 -> -12.
    return int((rate + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


def upcoming_bills(events: Iterable[dict[str, Any]], now: datetime, window_days: int = 30) -> Decimal:
    horizon = now + timedelta(days=window_days)
    return sum(
        (to_decimal(e.get("amount")) for e in events if now < as_utc(e["date"]) < horizon),
        ZERO,
    )


def recent_transactions(transactions: Iterable[dict[str, Any]], limit: int = 5) -> list[dict[str, Any]]:
    ordered = sorted(transactions, key=lambda tx: as_utc(tx["date"]), reverse=True)
    return ordered[:limit]


def upcoming_events(events: Iterable[dict[str, Any]], now: datetime, limit: int = 5) -> list[dict[str, Any]]:
    future = [e for e in events if as_utc(e["date"]) > now]
    future.sort(key=lambda e: as_utc(e["date"]))
    return future[:limit]


def summarize(
    transactions: list[dict[str, Any]],
    accounts: list[dict[str, Any]],
    goals: list[dict[str, Any]],
    events: list[dict[str, Any]],
    now: datetime,
    window_days: int = 30,
    limit: int = 5,
    bounded_month: bool = False,
) -> DashboardSummary:
    start = month_start(now)
    end = next_month_start(now) if bounded_month else None
    expenses = sum_by_type(transactions, "expense", start, end)
    income = sum_by_type(transactions, "income", start, end)
    return DashboardSummary(
        total_balance=total_balance(accounts),
        monthly_expenses=expenses,
        monthly_income=income,
        savings_rate=savings_rate(income, expenses),
        upcoming_bills=upcoming_bills(events, now, window_days),
        recent_transactions=recent_transactions(transactions, limit),
        upcoming_events=upcoming_events(events, now, limit),
        goals=goals,
        accounts=accounts,
    )


async def fetch_user_records(persistence: Persistence, user_id: int) -> tuple[list, list, list, list]:
    """Read the four collections concurrently. Any failure fails the whole read."""
    fetches = (
        persistence.transactions.list,
        persistence.accounts.list,
        persistence.goals.list,
        persistence.events.list,
    )
    try:
        transactions, accounts, goals, events = await asyncio.gather(
            *(asyncio.to_thread(fetch, user_id) for fetch in fetches)
        )
    except Exception as exc:
        logger.error("dashboard_fetch_failed", user_id=user_id, error=repr(exc))
        raise AggregationFailure() from exc
    return transactions, accounts, goals, events


async def build_dashboard(
    persistence: Persistence,
    user_id: Any,
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
    limit: Optional[int] = None,
    bounded_month: Optional[bool] = None,
) -> DashboardSummary:
    uid = parse_id(user_id, "userId")
    current = as_utc(now) if now is not None else datetime.now(timezone.utc)
    transactions, accounts, goals, events = await fetch_user_records(persistence, uid)
    summary = summarize(
        transactions,
        accounts,
        goals,
        events,
        current,
        window_days=settings.upcoming_window_days if window_days is None else window_days,
        limit=settings.dashboard_list_limit if limit is None else limit,
        bounded_month=settings.monthly_window_bounded if bounded_month is None else bounded_month,
    )
    logger.info(
        "dashboard_built",
        user_id=uid,
        transactions=len(transactions),
        accounts=len(accounts),
        goals=len(goals),
        events=len(events),
    )
    return summary
