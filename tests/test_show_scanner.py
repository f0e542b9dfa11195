from datetime import date, time

from lineup.services.email_log_service import record_email_outcome
from lineup.services.show_scanner import find_due_shows

TODAY = date(2026, 10, 19)


def test_only_todays_timed_shows_with_items_are_due(make_show):
    make_show("due", on=TODAY, at=time(14, 0))
    make_show("tomorrow", on=date(2026, 10, 20), at=time(14, 0))
    make_show("untimed", on=TODAY, at=None)
    make_show("empty", on=TODAY, at=time(14, 0), items=[])

    assert [show.id for show in find_due_shows(TODAY)] == ["due"]


def test_successfully_emailed_shows_are_excluded(make_show):
    make_show("sent", on=TODAY)
    make_show("failed", on=TODAY)

    record_email_outcome("sent", True)
    record_email_outcome("failed", False, "SMTP error")

    assert [show.id for show in find_due_shows(TODAY)] == ["failed"]


def test_break_only_lineup_still_counts_as_having_items(make_show):
    make_show("breaks", on=TODAY, items=[{"name": "News", "is_break": True}])

    assert [show.id for show in find_due_shows(TODAY)] == ["breaks"]
