"""Tests voor de iCal export."""
from datetime import date, timedelta

from food_roster.calendar_generator import generate_ical
from food_roster.models import Week


def make_weeks() -> list[Week]:
    return [
        Week(id=1, start_date=date(2026, 1, 5), prep="Valdo", share="Acha"),
        Week(id=2, start_date=date(2026, 1, 19), prep="Kezia", share="Valdo"),
    ]


def test_two_events_per_week():
    cal = generate_ical(make_weeks(), today=date(2026, 1, 19))
    events = cal.walk("VEVENT")

    assert len(events) == 4
    summaries = [str(e.get("summary")) for e in events]
    assert "Food Prep - Valdo" in summaries
    assert "Sharing - Acha" in summaries


def test_events_span_seven_days():
    cal = generate_ical(make_weeks(), today=date(2026, 1, 19))
    event = cal.walk("VEVENT")[0]

    start = event.decoded("dtstart")
    end = event.decoded("dtend")
    assert start == date(2026, 1, 5)
    assert end - start == timedelta(days=7)


def test_filter_member():
    cal = generate_ical(make_weeks(), filter_member="valdo", today=date(2026, 1, 19))
    summaries = [str(e.get("summary")) for e in cal.walk("VEVENT")]

    assert summaries == ["Food Prep - Valdo", "Sharing - Valdo"]
    assert str(cal.get("x-wr-calname")) == "Food Roster valdo"


def test_no_alarm_for_past_weeks():
    cal = generate_ical(make_weeks(), today=date(2026, 1, 19))
    events = cal.walk("VEVENT")

    # Week van 5 januari is voorbij, week van 19 januari niet
    assert [len(e.walk("VALARM")) for e in events] == [0, 0, 1, 1]
