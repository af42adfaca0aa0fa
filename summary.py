from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from models import Category, InternProfile, TimeEntry

# Characters encodeURIComponent leaves alone.
MAILTO_SAFE = "-_.!~*'()"


@dataclass
class CategoryTotal:
    hours: float = 0.0
    count: int = 0


@dataclass(frozen=True)
class Report:
    subject: str
    body: str


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def week_bounds(now: Optional[datetime] = None) -> Tuple[date, date]:
    """Sunday through Saturday of the week containing ``now``."""
    today = _as_date(now or datetime.now())
    days_back = (today.weekday() + 1) % 7
    start = today - timedelta(days=days_back)
    end = start + timedelta(days=6)
    return start, end


def current_week_entries(entries: Iterable[TimeEntry], now: Optional[datetime] = None) -> List[TimeEntry]:
    # Future-dated entries in the same window are kept; there is no upper bound.
    week_start, _ = week_bounds(now)
    return [entry for entry in entries if entry.date >= week_start]


def category_totals(entries: Iterable[TimeEntry]) -> Dict[Category, CategoryTotal]:
    totals = {category: CategoryTotal() for category in Category}
    for entry in entries:
        total = totals[entry.category]
        total.hours += entry.total_hours
        total.count += 1
    return totals


def format_long_date(value: date) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def format_short_date(value: date) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def build_report(
    profile: InternProfile, week_entries: Iterable[TimeEntry], now: Optional[datetime] = None
) -> Report:
    week_entries = list(week_entries)
    week_start, week_end = week_bounds(now)
    totals = category_totals(week_entries)
    total_hours = sum(total.hours for total in totals.values())

    lines = [
        f"Weekly Time Report - {format_long_date(week_start)} to {format_long_date(week_end)}",
        "",
        f"Intern: {profile.name}",
        f"Email: {profile.email}",
        f"Supervisor: {profile.supervisor}",
        f"Intern Type: {profile.intern_type.label}",
        "",
        "WEEKLY SUMMARY:",
        f"Total Hours: {total_hours:.1f} hours",
        "",
    ]
    for category, total in totals.items():
        lines.append(f"{category.label}: {total.hours:.1f} hours ({total.count} entries)")

    lines.append("")
    lines.append("DETAILED ENTRIES:")
    lines.append("=" * 50)
    for entry in sorted(week_entries, key=lambda item: item.date):
        lines.append("")
        lines.append(f"Date: {format_short_date(entry.date)}")
        lines.append(f"Category: {entry.category.label}")
        lines.append(f"Activity: {entry.activity}")
        lines.append(f"Time: {entry.time_in} - {entry.time_out} ({entry.total_hours:.1f} hours)")
        if entry.notes:
            lines.append(f"Notes: {entry.notes}")
        lines.append("-" * 30)

    body = "\n".join(lines) + "\n"
    subject = f"Weekly Time Report - {profile.name} - Week of {format_long_date(week_start)}"
    return Report(subject=subject, body=body)


def mailto_link(report: Report, recipient: str) -> str:
    subject = quote(report.subject, safe=MAILTO_SAFE)
    body = quote(report.body, safe=MAILTO_SAFE)
    return f"mailto:{recipient}?subject={subject}&body={body}"
