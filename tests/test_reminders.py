"""
Tests voor de herinneringslogica.

Een herinnering gaat uit vanaf `lead_days` dagen voor het slot tot en met
de laatste dag van het slot, maximaal één keer per week en taak.
"""
import pytest
from datetime import date, datetime

from food_roster.models import Week, RosterState, PREP, SHARE
from food_roster.reminders import (
    REMINDER_TITLE,
    due_reminders,
    find_current_week,
    get_turn_status,
    mark_notified,
    prune_markers,
)


@pytest.fixture
def roster() -> RosterState:
    state = RosterState(
        members=["Valdo", "Acha", "Kezia"],
        weeks=[
            Week(id=1, start_date=date(2026, 1, 19), prep="Valdo", share="Acha"),
            Week(id=2, start_date=date(2026, 2, 2), prep="Kezia", share="Valdo"),
        ],
        user_name="Valdo",
    )
    state.notifications.enabled = True
    return state


NOW = datetime(2026, 1, 21, 9, 0)


class TestCurrentWeek:

    def test_find_current_week(self, roster):
        assert find_current_week(roster.weeks, date(2026, 1, 19)).id == 1
        assert find_current_week(roster.weeks, date(2026, 1, 25)).id == 1
        assert find_current_week(roster.weeks, date(2026, 1, 26)) is None
        assert find_current_week(roster.weeks, date(2026, 2, 8)).id == 2

    def test_turn_status_prep(self, roster):
        status = get_turn_status(roster, date(2026, 1, 21))
        assert status.duty == PREP
        assert status.week.id == 1
        assert status.message == "🍳 Hey Valdo! It's your FOOD PREP week (Fortnightly)!"

    def test_turn_status_share(self, roster):
        status = get_turn_status(roster, date(2026, 2, 3))
        assert status.duty == SHARE
        assert "SHARING" in status.message

    def test_no_turn_without_user(self, roster):
        roster.user_name = ""
        assert get_turn_status(roster, date(2026, 1, 21)) is None

    def test_no_turn_for_other_member(self, roster):
        roster.user_name = "Kezia"
        assert get_turn_status(roster, date(2026, 1, 21)) is None

    def test_no_turn_between_slots(self, roster):
        assert get_turn_status(roster, date(2026, 1, 28)) is None


class TestDueReminders:

    def test_disabled_notifications(self, roster):
        roster.notifications.enabled = False
        assert due_reminders(roster, date(2026, 1, 21)) == []

    def test_reminder_during_slot(self, roster):
        reminders = due_reminders(roster, date(2026, 1, 21))

        assert len(reminders) == 1
        reminder = reminders[0]
        assert reminder.duty == PREP
        assert reminder.title == REMINDER_TITLE
        assert reminder.dedupe_key == "1:prep"
        assert reminder.body == "🍳 Hey Valdo! It's your FOOD PREP week (Fortnightly)!"

    def test_reminder_is_sent_once(self, roster):
        today = date(2026, 1, 21)
        for reminder in due_reminders(roster, today):
            mark_notified(roster, reminder, NOW)

        assert due_reminders(roster, today) == []
        assert due_reminders(roster, date(2026, 1, 22)) == []
        assert roster.last_notified["1:prep"] == NOW

    def test_reminder_ahead_of_slot(self, roster):
        reminders = due_reminders(roster, date(2026, 2, 1))

        assert [r.dedupe_key for r in reminders] == ["2:share"]
        assert reminders[0].body.startswith("🤝 Heads up Valdo!")
        assert "Mon 02 Feb" in reminders[0].body

    def test_no_reminder_before_lead_window(self, roster):
        assert due_reminders(roster, date(2026, 1, 31)) == []

    def test_lead_days_zero(self, roster):
        roster.notifications.lead_days = 0
        assert due_reminders(roster, date(2026, 2, 1)) == []
        assert len(due_reminders(roster, date(2026, 2, 2))) == 1

    def test_changed_duty_gives_new_reminder(self, roster):
        today = date(2026, 1, 21)
        for reminder in due_reminders(roster, today):
            mark_notified(roster, reminder, NOW)

        roster.weeks[0].prep = "Kezia"
        roster.weeks[0].share = "Valdo"

        reminders = due_reminders(roster, today)
        assert [r.dedupe_key for r in reminders] == ["1:share"]


class TestPruneMarkers:

    def test_prune_removed_weeks(self, roster):
        roster.last_notified = {"1:prep": NOW, "2:share": NOW, "9:prep": NOW}
        roster.weeks.pop(0)

        assert prune_markers(roster) == 2
        assert list(roster.last_notified) == ["2:share"]
