"""iCal generator voor het roster."""
from datetime import date, datetime, timedelta
from typing import Optional
from icalendar import Calendar, Event, Alarm

from .models import Week, PREP, SHARE

DUTY_TITLES = {PREP: "Food Prep", SHARE: "Sharing"}

# Herinnering een dag voor de start van het slot
REMINDER_BEFORE = timedelta(days=-1)


def generate_ical(weeks: list[Week], filter_member: Optional[str] = None,
                  calendar_name: Optional[str] = None, today: Optional[date] = None) -> Calendar:
    """
    Genereer een iCal calendar van het rooster.

    Elke week levert twee all-day events van 7 dagen op: één voor prep
    en één voor share.

    Args:
        weeks: Weken uit het rooster
        filter_member: Optioneel - alleen de taken van één lid
        calendar_name: Optioneel - aangepaste kalendernaam
        today: Peildatum voor herinneringen (default: vandaag)

    Returns:
        icalendar.Calendar object
    """
    if today is None:
        today = date.today()

    if calendar_name:
        cal_name = calendar_name
    elif filter_member:
        cal_name = f'Food Roster {filter_member}'
    else:
        cal_name = 'Food Roster'

    cal = Calendar()
    cal.add('prodid', '-//Food Roster//EN')
    cal.add('version', '2.0')
    cal.add('x-wr-calname', cal_name)

    for week in weeks:
        for duty, person in ((PREP, week.prep), (SHARE, week.share)):
            if filter_member and person.lower() != filter_member.lower():
                continue

            event = Event()
            event.add('summary', f"{DUTY_TITLES[duty]} - {person}")
            event.add('dtstart', week.start_date)
            # DTEND is exclusief bij all-day events
            event.add('dtend', week.start_date + timedelta(days=7))
            event.add('description', f"{DUTY_TITLES[duty]}: {person} "
                                     f"({week.start_date.isoformat()} - {week.end_date.isoformat()})")
            event.add('uid', f"{week.start_date.isoformat()}-{duty}@food-roster")
            event.add('dtstamp', datetime.now())
            event.add('transp', 'TRANSPARENT')

            if week.end_date >= today:
                alarm = Alarm()
                alarm.add('action', 'DISPLAY')
                alarm.add('description', f'Reminder: {DUTY_TITLES[duty]} week')
                alarm.add('trigger', REMINDER_BEFORE)
                event.add_component(alarm)

            cal.add_component(event)

    return cal
