from datetime import date, datetime
from urllib.parse import unquote

import pytest

from models import Category, InternProfile, InternType, TimeEntry
from summary import (
    Report,
    build_report,
    category_totals,
    current_week_entries,
    format_long_date,
    mailto_link,
    week_bounds,
)

WEDNESDAY = datetime(2024, 6, 12, 15, 30)


def make_entry(entry_id, day, category=Category.SERVICE, time_in="09:00", time_out="11:30", **fields):
    from models import compute_hours

    values = {
        "id": entry_id,
        "date": day,
        "category": category,
        "activity": f"Activity {entry_id}",
        "time_in": time_in,
        "time_out": time_out,
        "total_hours": compute_hours(time_in, time_out),
    }
    values.update(fields)
    return TimeEntry(**values)


@pytest.mark.parametrize(
    "now, expected",
    [
        (datetime(2024, 6, 12, 15, 30), (date(2024, 6, 9), date(2024, 6, 15))),
        (datetime(2024, 6, 9, 0, 0), (date(2024, 6, 9), date(2024, 6, 15))),
        (datetime(2024, 6, 15, 23, 59), (date(2024, 6, 9), date(2024, 6, 15))),
        (datetime(2024, 1, 1, 8, 0), (date(2023, 12, 31), date(2024, 1, 6))),
    ],
)
def test_week_bounds(now, expected):
    assert week_bounds(now) == expected


def test_current_week_boundary():
    saturday_before = make_entry("a", date(2024, 6, 8))
    sunday = make_entry("b", date(2024, 6, 9))
    tuesday = make_entry("c", date(2024, 6, 11))
    entries = [tuesday, saturday_before, sunday]
    assert current_week_entries(entries, WEDNESDAY) == [tuesday, sunday]


def test_current_week_has_no_upper_bound():
    later_this_week = make_entry("a", date(2024, 6, 14))
    next_month = make_entry("b", date(2024, 7, 20))
    assert current_week_entries([later_this_week, next_month], WEDNESDAY) == [later_this_week, next_month]


def test_category_totals_example():
    totals = category_totals([make_entry("a", date(2024, 6, 10))])
    assert list(totals) == [Category.MENTORSHIP, Category.SERVICE, Category.SUPPORT, Category.COURSEWORK]
    assert totals[Category.SERVICE].hours == 2.5
    assert totals[Category.SERVICE].count == 1
    for category in (Category.MENTORSHIP, Category.SUPPORT, Category.COURSEWORK):
        assert totals[category].hours == 0
        assert totals[category].count == 0


def test_category_totals_sum_to_grand_total():
    entries = [
        make_entry("a", date(2024, 6, 10), Category.SERVICE, "09:00", "10:20"),
        make_entry("b", date(2024, 6, 11), Category.SERVICE, "13:00", "13:40"),
        make_entry("c", date(2024, 6, 11), Category.COURSEWORK, "19:00", "21:10"),
        make_entry("d", date(2024, 6, 12), Category.MENTORSHIP, "08:00", "08:05"),
    ]
    totals = category_totals(entries)
    assert sum(total.hours for total in totals.values()) == pytest.approx(
        sum(entry.total_hours for entry in entries)
    )
    assert sum(total.count for total in totals.values()) == len(entries)
    assert totals[Category.SUPPORT].count == 0


def test_category_totals_empty():
    totals = category_totals([])
    assert len(totals) == 4
    assert all(total.hours == 0 and total.count == 0 for total in totals.values())


def test_format_long_date():
    assert format_long_date(date(2024, 6, 9)) == "Jun 9, 2024"


def test_build_report():
    profile = InternProfile(
        name="Sam Rivera",
        email="sam@example.org",
        supervisor="Pastor Lee",
        intern_type=InternType.FIRST_SEMESTER,
    )
    entries = [
        make_entry("b", date(2024, 6, 12), Category.MENTORSHIP, "14:00", "15:00", notes="Met with small group"),
        make_entry("a", date(2024, 6, 10), Category.SERVICE, "09:00", "11:30"),
    ]
    report = build_report(profile, entries, WEDNESDAY)
    assert report.subject == "Weekly Time Report - Sam Rivera - Week of Jun 9, 2024"
    assert report.body == (
        "Weekly Time Report - Jun 9, 2024 to Jun 15, 2024\n"
        "\n"
        "Intern: Sam Rivera\n"
        "Email: sam@example.org\n"
        "Supervisor: Pastor Lee\n"
        "Intern Type: First Semester\n"
        "\n"
        "WEEKLY SUMMARY:\n"
        "Total Hours: 3.5 hours\n"
        "\n"
        "Mentorship Hours: 1.0 hours (1 entries)\n"
        "Service Volunteer Hours: 2.5 hours (1 entries)\n"
        "Support Ministry Hours: 0.0 hours (0 entries)\n"
        "Canvas Coursework: 0.0 hours (0 entries)\n"
        "\n"
        "DETAILED ENTRIES:\n"
        + "=" * 50 + "\n"
        "\n"
        "Date: 6/10/2024\n"
        "Category: Service Volunteer Hours\n"
        "Activity: Activity a\n"
        "Time: 09:00 - 11:30 (2.5 hours)\n"
        + "-" * 30 + "\n"
        "\n"
        "Date: 6/12/2024\n"
        "Category: Mentorship Hours\n"
        "Activity: Activity b\n"
        "Time: 14:00 - 15:00 (1.0 hours)\n"
        "Notes: Met with small group\n"
        + "-" * 30 + "\n"
    )


def test_build_report_returning_intern_with_no_entries():
    profile = InternProfile(name="Jo", intern_type=InternType.RETURNING)
    report = build_report(profile, [], WEDNESDAY)
    assert "Intern Type: Returning\n" in report.body
    assert "Total Hours: 0.0 hours\n" in report.body
    assert report.body.endswith("DETAILED ENTRIES:\n" + "=" * 50 + "\n")


def test_mailto_link():
    report = Report(subject="Weekly Time Report - Sam - Week of Jun 9, 2024", body="Line one\nLine & two")
    link = mailto_link(report, "supervisor@example.org")
    assert link.startswith("mailto:supervisor@example.org?subject=")
    query = link.split("?", 1)[1]
    subject, body = query.split("&", 1)
    assert subject == "subject=Weekly%20Time%20Report%20-%20Sam%20-%20Week%20of%20Jun%209%2C%202024"
    assert body == "body=Line%20one%0ALine%20%26%20two"
    assert unquote(body[len("body="):]) == report.body
