from datetime import date, datetime, timezone

from exports import export_filename, to_csv, to_report
from schemas import User
from tests.conftest import make_sub


def test_csv_has_header_and_one_row_per_subscription():
    subs = [make_sub("Netflix", 15.49, "USD"), make_sub("Spotify", 9.2, "EUR", renewal=date(2026, 11, 5))]
    lines = to_csv(subs).splitlines()

    assert len(lines) == 3
    assert lines[0] == "Name,Cost,Currency,Category,RenewalDate"
    assert lines[1] == "Netflix,15.49,USD,Entertainment,2026-11-01"
    assert lines[2] == "Spotify,9.20,EUR,Entertainment,2026-11-05"


def test_csv_quotes_names_with_commas():
    lines = to_csv([make_sub("Foo, Bar & Co", 1.0)]).splitlines()
    assert lines[1].startswith('"Foo, Bar & Co",1.00,')


def test_csv_empty():
    assert to_csv([]) == "Name,Cost,Currency,Category,RenewalDate\n"


def test_report_converts_into_preferred_currency():
    user = User(
        id="u1",
        name="Ada",
        email="ada@example.com",
        preferred_currency="EUR",
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    subs = [
        make_sub("Netflix", 10.0, "USD", "Entertainment"),
        make_sub("Gym", 9.2, "EUR", "Health"),
    ]
    report = to_report(user, subs, date(2026, 10, 19))

    assert "Generated: 2026-10-19" in report
    assert "User: Ada" in report
    assert "€9.20/mo" in report
    assert "TOTAL MONTHLY COST: €18.40" in report
    assert "TOTAL SUBSCRIPTIONS: 2" in report
    assert report.index("ENTERTAINMENT") < report.index("HEALTH")
    assert "EDUCATION" not in report


def test_report_without_user_defaults_to_usd():
    report = to_report(None, [make_sub("Netflix", 15.49)], date(2026, 10, 19))
    assert "User:" not in report
    assert "TOTAL MONTHLY COST: $15.49" in report


def test_export_filename():
    assert export_filename("subscriptions", date(2026, 10, 19), "csv") == "subscriptions-2026-10-19.csv"
