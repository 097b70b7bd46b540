"""
Export renderers for a user's subscription list.

CSV keeps the raw stored cost and currency. The text report converts every
cost into the user's preferred currency.
"""

import csv
import io
from datetime import date
from typing import Optional, Sequence

from analytics import total_monthly_cost
from currencies import convert, currency_symbol
from schemas import CATEGORIES, Subscription, User

CSV_HEADER = ["Name", "Cost", "Currency", "Category", "RenewalDate"]
RULE = "━" * 40


def to_csv(subs: Sequence[Subscription]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for s in subs:
        writer.writerow([s.name, f"{s.cost:.2f}", s.currency, s.category, s.renewal_date.isoformat()])
    return buf.getvalue()


def to_report(user: Optional[User], subs: Sequence[Subscription], as_of: date) -> str:
    currency = user.preferred_currency if user else "USD"
    symbol = currency_symbol(currency)

    lines = ["SUBSENTRY - SUBSCRIPTION REPORT", f"Generated: {as_of.isoformat()}"]
    if user:
        lines.append(f"User: {user.name}")
    lines += ["", RULE, ""]

    for category in CATEGORIES:
        in_category = [s for s in subs if s.category == category.name]
        if not in_category:
            continue
        lines.append(f"{category.icon} {category.name.upper()}")
        lines.append("─" * 40)
        for s in in_category:
            cost = convert(s.cost, s.currency, currency)
            lines.append(f"  • {s.name}")
            lines.append(f"    {symbol}{cost:.2f}/mo - Renews: {s.renewal_date.isoformat()}")
            lines.append("")

    lines.append(RULE)
    lines.append(f"TOTAL MONTHLY COST: {symbol}{total_monthly_cost(subs, currency):.2f}")
    lines.append(f"TOTAL SUBSCRIPTIONS: {len(subs)}")
    return "\n".join(lines) + "\n"


def export_filename(kind: str, as_of: date, extension: str) -> str:
    return f"{kind}-{as_of.isoformat()}.{extension}"
