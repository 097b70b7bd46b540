"""
Derived analytics over a user's subscriptions.

Everything here is a pure function of the subscription list, a target
currency and a reference date. Costs are always converted into the target
currency before they are summed.
"""

import math
import random
from datetime import date, datetime, time
from typing import Dict, Iterable, List, Optional, Sequence, Union

from currencies import convert
from schemas import CATEGORY_NAMES, Subscription

RENEWAL_WINDOW_DAYS = 7
TREND_MONTHS = 6

DateLike = Union[date, datetime]


def days_until_renewal(renewal_date: date, as_of: DateLike) -> int:
    """Whole days until renewal, rounded up.

    With a plain date the difference is exact. With a datetime the renewal is
    taken as midnight of its day in as_of's timezone, so any time after
    midnight today still counts today as 0.
    """
    if isinstance(as_of, datetime):
        renewal_at = datetime.combine(renewal_date, time.min, tzinfo=as_of.tzinfo)
        return math.ceil((renewal_at - as_of).total_seconds() / 86400)
    return (renewal_date - as_of).days


def urgency_level(days: int) -> str:
    if days < 0:
        return "overdue"
    if days <= 3:
        return "critical"
    if days <= 7:
        return "warning"
    if days <= 14:
        return "info"
    return "safe"


def total_monthly_cost(subs: Iterable[Subscription], target_currency: str) -> float:
    return sum(convert(s.cost, s.currency, target_currency) for s in subs)


def category_breakdown(subs: Iterable[Subscription], target_currency: str) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for s in subs:
        totals[s.category] = totals.get(s.category, 0.0) + convert(s.cost, s.currency, target_currency)
    return {name: totals[name] for name in CATEGORY_NAMES if totals.get(name, 0) > 0}


def currency_breakdown(subs: Iterable[Subscription]) -> Dict[str, float]:
    # each bucket holds a single currency, so raw costs are safe to add
    totals: Dict[str, float] = {}
    for s in subs:
        totals[s.currency] = totals.get(s.currency, 0.0) + s.cost
    return totals


def upcoming_renewals(subs: Iterable[Subscription], as_of: DateLike) -> List[Subscription]:
    return [s for s in subs if 0 <= days_until_renewal(s.renewal_date, as_of) <= RENEWAL_WINDOW_DAYS]


def most_expensive_category(subs: Sequence[Subscription], target_currency: str) -> Optional[str]:
    breakdown = category_breakdown(subs, target_currency)
    if not breakdown:
        return None
    return max(breakdown, key=breakdown.get)


def average_cost(subs: Sequence[Subscription], target_currency: str) -> float:
    if not subs:
        return 0.0
    return total_monthly_cost(subs, target_currency) / len(subs)


def _shift_month(day: date, months: int) -> date:
    index = day.year * 12 + day.month - 1 + months
    return date(index // 12, index % 12 + 1, 1)


def monthly_trend(
    subs: Sequence[Subscription],
    target_currency: str,
    as_of: DateLike,
    rng: Optional[random.Random] = None,
) -> List[dict]:
    """Six monthly points ending with the current month.

    No history is stored, so each point is the current total scaled by a
    random factor in [0.85, 1.15]. The series is a placeholder for charts.
    """
    rng = rng or random.Random()
    total = total_monthly_cost(subs, target_currency)
    today = as_of.date() if isinstance(as_of, datetime) else as_of
    points = []
    for offset in range(TREND_MONTHS - 1, -1, -1):
        month = _shift_month(today, -offset)
        points.append({"month": month.strftime("%b"), "cost": round(total * rng.uniform(0.85, 1.15), 2)})
    return points


def year_over_year(subs: Sequence[Subscription], target_currency: str, as_of: DateLike) -> List[dict]:
    total = total_monthly_cost(subs, target_currency)
    return [
        {"year": str(as_of.year - 1), "cost": round(total * 0.75, 2)},
        {"year": str(as_of.year), "cost": round(total, 2)},
    ]


def summarize(
    subs: Sequence[Subscription],
    target_currency: str,
    as_of: DateLike,
    rng: Optional[random.Random] = None,
) -> dict:
    total = total_monthly_cost(subs, target_currency)
    renewals = []
    for s in upcoming_renewals(subs, as_of):
        days = days_until_renewal(s.renewal_date, as_of)
        renewals.append({**s.to_json(), "daysUntilRenewal": days, "urgency": urgency_level(days)})

    return {
        "totalSubscriptions": len(subs),
        "currency": target_currency,
        "totalMonthlyCost": round(total, 2),
        "totalAnnualCost": round(total * 12, 2),
        "averageCost": round(average_cost(subs, target_currency), 2),
        "categoryBreakdown": {k: round(v, 2) for k, v in category_breakdown(subs, target_currency).items()},
        "currencyBreakdown": {k: round(v, 2) for k, v in currency_breakdown(subs).items()},
        "mostExpensiveCategory": most_expensive_category(subs, target_currency),
        "upcomingRenewals": renewals,
        "monthlyTrend": monthly_trend(subs, target_currency, as_of, rng),
        "yearOverYear": year_over_year(subs, target_currency, as_of),
        "illustrative": ["monthlyTrend", "yearOverYear"],
    }
