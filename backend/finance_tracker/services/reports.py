from calendar import month_abbr
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

from ..schemas import GoalStatus, as_utc
from .dashboard import ZERO, month_start, next_month_start, to_decimal

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#9CA3AF"


def _percent(part: Decimal, whole: Decimal) -> int:
    if whole <= 0:
        return 0
    return int((part / whole * 100).to_integral_value(rounding=ROUND_HALF_UP))


def expense_breakdown(
    transactions: Iterable[dict[str, Any]],
    categories: Iterable[dict[str, Any]],
    start: datetime,
    end: Optional[datetime] = None,
) -> list[dict[str, Any]]:
    """Expense totals per category inside ``[start, end)``, largest first.

    Transactions whose ``categoryId`` is missing or no longer resolves are
    grouped under a single "Uncategorized" bucket.
    """
    by_id = {c["id"]: c for c in categories}
    totals: dict[Optional[int], Decimal] = {}
    for tx in transactions:
        if tx.get("type") != "expense":
            continue
        when = as_utc(tx["date"])
        if when < start or (end is not None and when >= end):
            continue
        key = tx.get("categoryId") if tx.get("categoryId") in by_id else None
        totals[key] = totals.get(key, ZERO) + to_decimal(tx.get("amount"))

    grand_total = sum(totals.values(), ZERO)
    items = []
    for category_id, amount in totals.items():
        category = by_id.get(category_id)
        items.append(
            {
                "categoryId": category_id,
                "name": category["name"] if category else UNCATEGORIZED_NAME,
                "color": category["color"] if category else UNCATEGORIZED_COLOR,
                "amount": float(amount),
                "percentage": _percent(amount, grand_total),
            }
        )
    items.sort(key=lambda item: (-item["amount"], item["name"].lower()))
    return items


def _shift_month(moment: datetime, months: int) -> datetime:
    total = (moment.month - 1) + months
    return moment.replace(year=moment.year + total // 12, month=total % 12 + 1, day=1)


def timeframe_window(timeframe: str, now: datetime) -> tuple[datetime, datetime]:
    this_month = month_start(now)
    if timeframe == "this_month":
        return this_month, next_month_start(now)
    if timeframe == "last_month":
        return _shift_month(this_month, -1), this_month
    if timeframe == "last_3_months":
        return _shift_month(this_month, -2), next_month_start(now)
    if timeframe == "this_year":
        return this_month.replace(month=1), this_month.replace(year=this_month.year + 1, month=1)
    raise ValueError(f"unknown timeframe: {timeframe}")


def income_expense_series(transactions: Iterable[dict[str, Any]], months: int, now: datetime) -> list[dict[str, Any]]:
    """Income and expenses per calendar month for the last ``months`` months, oldest first."""
    rows = list(transactions)
    first = _shift_month(month_start(now), -(months - 1))
    series = []
    for offset in range(months):
        start = _shift_month(first, offset)
        end = next_month_start(start)
        income = expenses = ZERO
        for tx in rows:
            when = as_utc(tx["date"])
            if not (start <= when < end):
                continue
            if tx.get("type") == "income":
                income += to_decimal(tx.get("amount"))
            elif tx.get("type") == "expense":
                expenses += to_decimal(tx.get("amount"))
        series.append(
            {
                "name": month_abbr[start.month],
                "year": start.year,
                "month": start.month,
                "income": float(income),
                "expenses": float(expenses),
            }
        )
    return series


def goal_progress(goal: dict[str, Any]) -> int:
    target = to_decimal(goal.get("targetAmount"))
    if target <= 0:
        return 0
    return min(_percent(to_decimal(goal.get("currentAmount")), target), 100)


def recommend_goal_status(goal: dict[str, Any], now: datetime, started_at: Optional[datetime] = None) -> GoalStatus:
    """Suggest a status from saved progress and the time left until ``targetDate``.

    Advisory only: the stored ``status`` is never changed by this helper.
    Without ``started_at`` the expected pace is judged against the last
    twelve months before the target date.
    """
    progress = goal_progress(goal)
    if progress >= 100:
        return GoalStatus.completed
    if progress < 10:
        return GoalStatus.just_started
    target_date = as_utc(goal["targetDate"])
    if now >= target_date:
        return GoalStatus.falling_behind
    start = as_utc(started_at) if started_at is not None else _shift_month(target_date, -12)
    span = (target_date - start).total_seconds()
    if span <= 0:
        return GoalStatus.on_track
    elapsed = min(max((now - start).total_seconds() / span, 0.0), 1.0)
    return GoalStatus.on_track if progress >= elapsed * 100 else GoalStatus.falling_behind
