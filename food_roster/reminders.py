"""Beslislogica voor beurt-herinneringen.

Hier wordt alleen bepaald OF er herinnerd moet worden en met welke tekst.
Het versturen zelf gebeurt in push_notifications, aangeroepen door main.
"""
from datetime import date, datetime, timedelta
from typing import Optional
from dataclasses import dataclass

from .models import Week, RosterState, PREP, SHARE

REMINDER_TITLE = "Your Fortnightly Turn!"

DUTY_LABELS = {PREP: "FOOD PREP", SHARE: "SHARING"}
DUTY_EMOJIS = {PREP: "🍳", SHARE: "🤝"}


@dataclass
class TurnStatus:
    """De huidige gebruiker heeft deze week een taak."""
    week: Week
    duty: str
    message: str


@dataclass
class TurnReminder:
    """Een herinnering die nu verstuurd moet worden."""
    week: Week
    duty: str
    title: str
    body: str
    dedupe_key: str


def find_current_week(weeks: list[Week], today: date) -> Optional[Week]:
    """Het slot waar vandaag in valt (start t/m start + 6 dagen)."""
    for week in weeks:
        if week.start_date <= today <= week.end_date:
            return week
    return None


def dedupe_key(week: Week, duty: str) -> str:
    return f"{week.id}:{duty}"


def turn_message(user_name: str, duty: str) -> str:
    return f"{DUTY_EMOJIS[duty]} Hey {user_name}! It's your {DUTY_LABELS[duty]} week (Fortnightly)!"


def upcoming_message(user_name: str, duty: str, start_date: date) -> str:
    return (
        f"{DUTY_EMOJIS[duty]} Heads up {user_name}! Your {DUTY_LABELS[duty]} week "
        f"(Fortnightly) starts {start_date.strftime('%a %d %b')}."
    )


def get_turn_status(state: RosterState, today: date) -> Optional[TurnStatus]:
    """Heeft de huidige gebruiker in het lopende slot prep of share?"""
    if not state.user_name:
        return None

    week = find_current_week(state.weeks, today)
    if week is None:
        return None

    duty = week.duty_of(state.user_name)
    if duty is None:
        return None

    return TurnStatus(week=week, duty=duty, message=turn_message(state.user_name, duty))


def due_reminders(state: RosterState, today: date) -> list[TurnReminder]:
    """
    Alle herinneringen die nu verstuurd moeten worden.

    Een slot telt mee vanaf `lead_days` dagen voor de start tot en met de
    laatste dag. Per week en taak wordt maximaal één keer herinnerd; de
    markers in state.last_notified maken herhaald aanroepen veilig.
    """
    if not state.user_name or not state.notifications.enabled:
        return []

    lead = timedelta(days=state.notifications.lead_days)
    reminders = []

    for week in state.weeks:
        if not (week.start_date - lead <= today <= week.end_date):
            continue

        duty = week.duty_of(state.user_name)
        if duty is None:
            continue

        key = dedupe_key(week, duty)
        if key in state.last_notified:
            continue

        if week.start_date <= today:
            body = turn_message(state.user_name, duty)
        else:
            body = upcoming_message(state.user_name, duty, week.start_date)

        reminders.append(TurnReminder(
            week=week,
            duty=duty,
            title=REMINDER_TITLE,
            body=body,
            dedupe_key=key
        ))

    return reminders


def mark_notified(state: RosterState, reminder: TurnReminder, now: datetime):
    state.last_notified[reminder.dedupe_key] = now


def prune_markers(state: RosterState) -> int:
    """Verwijder markers van weken die niet meer bestaan."""
    week_ids = {str(w.id) for w in state.weeks}
    stale = [k for k in state.last_notified if k.split(":", 1)[0] not in week_ids]
    for key in stale:
        del state.last_notified[key]
    return len(stale)
