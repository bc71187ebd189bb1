"""Core logica voor een eerlijke verdeling van eten klaarmaken en delen."""
from datetime import date, timedelta
from typing import Callable, Optional
from dataclasses import dataclass, field

from .models import Week, RosterState, UNASSIGNED, PREP, SHARE
from .database import today_local

# Elk slot begint op een maandag (date.weekday(): 0=maandag)
ANCHOR_WEEKDAY = 0

# Per maand twee slots: de eerste maandag vanaf dag 1 en vanaf dag 15
SLOT_ANCHOR_DAYS = (1, 15)

# Harde grens voor de generator, voorkomt een oneindige loop
MAX_MONTHS_SCANNED = 24

DEFAULT_WEEK_COUNT = 10
DEFAULT_REGENERATE_COUNT = 4
MIN_MEMBERS = 2

DEFAULT_MEMBERS = [
    "Valdo", "Nathan C", "Acha", "Cornelius", "Yowil", "Kezia", "Joy",
    "Hansel", "Stanley", "Dicky", "Andrew Wilaras", "Andrew Wijaya", "Kiki",
]

SHARE_MODES = ("free", "fixed")


class RosterError(ValueError):
    """Basis voor alle fouten uit de roster engine."""


class ValidationError(RosterError):
    """Invoer schendt een invariant (bijv. prep == share)."""


class NotFoundError(RosterError):
    """Week of lid bestaat niet (meer)."""


class InvalidStateError(RosterError):
    """Operatie kan niet met de huidige ledenlijst."""


@dataclass
class DutyCount:
    """Hoe vaak iemand elke taak heeft gedaan."""
    prep: int = 0
    share: int = 0

    @property
    def total(self) -> int:
        return self.prep + self.share


@dataclass
class EditResult:
    """Resultaat van een handmatige aanpassing."""
    week: Week
    fixed_share_detached: bool
    recalculated: list[Week] = field(default_factory=list)


# === Frequenties ===

def compute_frequencies(
    members: list[str],
    weeks: list[Week],
    up_to_index: Optional[int] = None
) -> dict[str, DutyCount]:
    """
    Tel per lid hoe vaak die prep en share heeft gehad.

    Args:
        members: Huidige leden, iedereen begint op 0
        weeks: Weken in datumvolgorde
        up_to_index: Optioneel - alleen weken 0..up_to_index (inclusief) tellen

    Namen die niet (meer) in de ledenlijst staan worden overgeslagen.
    """
    frequencies = {m: DutyCount() for m in members}
    counted = weeks if up_to_index is None else weeks[:up_to_index + 1]

    for week in counted:
        if week.prep in frequencies:
            frequencies[week.prep].prep += 1
        if week.share in frequencies:
            frequencies[week.share].share += 1

    return frequencies


def _count(frequencies: dict[str, DutyCount], member: str) -> DutyCount:
    return frequencies.get(member) or DutyCount()


def _bump(frequencies: dict[str, DutyCount], member: str, duty: str):
    if member in frequencies:
        counts = frequencies[member]
        if duty == PREP:
            counts.prep += 1
        else:
            counts.share += 1


# === Rotatie en toewijzing ===

def get_fixed_sharing_person(rotation: list[str], members: list[str], index: int) -> str:
    """Wie deelt er volgens de vaste rotatie op positie `index`.

    Zonder rotatie wordt de ledenlijst zelf als rotatie gebruikt.
    """
    if rotation:
        return rotation[index % len(rotation)]
    if not members:
        raise InvalidStateError("No members to rotate over")
    return members[index % len(members)]


def assign_prep_given_share(
    members: list[str],
    frequencies: dict[str, DutyCount],
    share_person: str
) -> str:
    """Kies prep bij een vaststaande share: minste keer prep, gelijkspel op ledenvolgorde."""
    candidates = [m for m in members if m != share_person]
    if not candidates:
        return UNASSIGNED

    # sorted() is stabiel, dus bij gelijke telling wint de eerste in de lijst
    candidates = sorted(candidates, key=lambda m: _count(frequencies, m).prep)
    return candidates[0]


def assign_both(members: list[str], frequencies: dict[str, DutyCount]) -> tuple[str, str]:
    """
    Kies prep en share samen (vrije modus).

    - prep: laagste totaal (prep + share)
    - share: van de overige leden degene die het minst gedeeld heeft

    Gelijkspel gaat altijd naar wie eerder in de ledenlijst staat.
    """
    if len(members) < MIN_MEMBERS:
        return UNASSIGNED, UNASSIGNED

    by_total = sorted(members, key=lambda m: _count(frequencies, m).total)
    prep = by_total[0]

    remaining = [m for m in members if m != prep]
    share = min(remaining, key=lambda m: _count(frequencies, m).share)

    return prep, share


# === Kalender ===

def next_weekday(day: date, weekday: int = ANCHOR_WEEKDAY) -> date:
    """Eerstvolgende `weekday` op of na `day`."""
    return day + timedelta(days=(weekday - day.weekday()) % 7)


def month_slots(year: int, month: int) -> tuple[date, ...]:
    """De twee startdata van de slots in een maand."""
    return tuple(next_weekday(date(year, month, d)) for d in SLOT_ANCHOR_DAYS)


def first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def week_of_month(day: date) -> int:
    """Weeknummer binnen de maand, met zondag als eerste dag van de week."""
    first_weekday = day.replace(day=1).isoweekday() % 7  # 0=zondag
    return (day.day + first_weekday + 6) // 7


def week_exists(state: RosterState, day: date) -> bool:
    return any(w.start_date == day for w in state.weeks)


class RosterEngine:
    """Engine voor het genereren en bijwerken van het rooster.

    Alle methodes werken op een meegegeven RosterState. Opslaan en
    opnieuw tonen is de verantwoordelijkheid van de aanroeper.
    """

    def __init__(self, today: Callable[[], date] = today_local):
        self._today = today

    def today(self) -> date:
        return self._today()

    # === Nieuwe weken ===

    def initial_state(self) -> RosterState:
        """Standaard rooster als er nog niets is opgeslagen."""
        state = RosterState(members=list(DEFAULT_MEMBERS))
        self.generate_weeks(state, DEFAULT_WEEK_COUNT)
        return state

    def generate_weeks(self, state: RosterState, count: int = 1) -> list[Week]:
        """
        Maak tot `count` nieuwe weken aan, vanaf het begin van deze maand.

        Een slot wordt alleen een week als het vandaag of later is, er nog geen
        week op die datum bestaat en het na de laatste bestaande week valt.
        Na MAX_MONTHS_SCANNED maanden wordt gestopt, ook als `count` niet gehaald is.

        Returns:
            De aangemaakte weken (in datumvolgorde)
        """
        if count < 1:
            raise ValidationError("Count must be at least 1")
        self._check_can_assign(state)

        today = self.today()
        month_start = today.replace(day=1)
        created = []
        months_scanned = 0

        while len(created) < count and months_scanned < MAX_MONTHS_SCANNED:
            for slot in month_slots(month_start.year, month_start.month):
                if len(created) >= count:
                    break
                if slot < today or week_exists(state, slot):
                    continue
                if state.weeks and state.weeks[-1].start_date >= slot:
                    continue
                created.append(self._create_week(state, slot))

            month_start = first_of_next_month(month_start)
            months_scanned += 1

        return created

    def add_week(self, state: RosterState) -> list[Week]:
        """Eén extra week achteraan het rooster."""
        return self.generate_weeks(state, 1)

    def create_single_week(self, state: RosterState, start_date: date) -> Week:
        """Maak een week aan op een specifieke datum.

        In vaste modus krijgt ook een tussengevoegde week de volgende
        rotatiepositie, dus de rotatie volgt dan de aanmaakvolgorde. Bij
        regenerate_roster worden de toekomstige weken weer in datumvolgorde
        genummerd.
        """
        if week_exists(state, start_date):
            raise ValidationError(f"A week starting {start_date.isoformat()} already exists")
        self._check_can_assign(state)
        return self._create_week(state, start_date)

    def _check_can_assign(self, state: RosterState):
        if state.share_mode == "fixed" and not state.fixed_rotation and not state.members:
            raise InvalidStateError("Fixed sharing needs a rotation or at least one member")

    def _create_week(self, state: RosterState, start_date: date) -> Week:
        frequencies = compute_frequencies(state.members, state.weeks)

        if state.share_mode == "fixed":
            rotation_index = state.next_rotation_index
            share = get_fixed_sharing_person(state.fixed_rotation, state.members, rotation_index)
            prep = assign_prep_given_share(state.members, frequencies, share)
            state.next_rotation_index += 1
            fixed_share = True
        else:
            rotation_index = None
            prep, share = assign_both(state.members, frequencies)
            fixed_share = False

        week = Week(
            id=state.next_week_id,
            start_date=start_date,
            prep=prep,
            share=share,
            fixed_share=fixed_share,
            rotation_index=rotation_index,
        )
        state.next_week_id += 1
        state.weeks.append(week)
        state.weeks.sort(key=lambda w: w.start_date)
        return week

    def regenerate_roster(self, state: RosterState) -> list[Week]:
        """Gooi alle toekomstige weken weg en genereer ze opnieuw.

        De vaste rotatie gaat verder vanaf de eerste weggegooide positie.
        """
        self._check_can_assign(state)
        today = self.today()

        future = [w for w in state.weeks if w.start_date > today]
        state.weeks = [w for w in state.weeks if w.start_date <= today]

        dropped_indexes = [w.rotation_index for w in future if w.rotation_index is not None]
        if dropped_indexes:
            state.next_rotation_index = min(dropped_indexes)

        return self.generate_weeks(state, len(future) or DEFAULT_REGENERATE_COUNT)

    def remove_week(self, state: RosterState, week_id: int) -> Week:
        index = state.index_of(week_id)
        if index is None:
            raise NotFoundError(f"Week {week_id} not found")
        return state.weeks.pop(index)

    # === Aanpassen en herberekenen ===

    def edit_week(
        self,
        state: RosterState,
        week_id: int,
        new_prep: str,
        new_share: str = "",
        recalc_future: bool = False
    ) -> EditResult:
        """
        Pas prep (en optioneel share) van een week handmatig aan.

        Een lege new_share laat de huidige share staan. Als de share verandert,
        verliest de week voorgoed fixed_share.

        Args:
            state: Het rooster
            week_id: Welke week
            new_prep: Nieuwe prep persoon (verplicht)
            new_share: Nieuwe share persoon of "" voor ongewijzigd
            recalc_future: Alle latere weken opnieuw verdelen

        Raises:
            NotFoundError: week bestaat niet
            ValidationError: prep en share zijn dezelfde persoon
        """
        week = state.find_week(week_id)
        if week is None:
            raise NotFoundError(f"Week {week_id} not found")

        new_prep = (new_prep or "").strip()
        new_share = (new_share or "").strip()
        if not new_prep:
            raise ValidationError("Food prep person is required")

        share = new_share or week.share
        if new_prep == share:
            raise ValidationError("Food prep and sharing must be different people")

        previous_share = week.share
        week.prep = new_prep
        week.share = share
        week.manually_edited = True
        detached = self._detach_if_changed(week, previous_share)

        result = EditResult(week=week, fixed_share_detached=detached)
        if recalc_future and state.weeks[-1].id != week.id:
            result.recalculated = self.recalculate_from(state, week.id)
        return result

    def recalculate_from(self, state: RosterState, week_id: int) -> list[Week]:
        """
        Verdeel alle weken na `week_id` opnieuw.

        Startpunt zijn de frequenties t/m de gegeven week. Weken die nog een
        onaangetaste vaste share hebben houden die share en krijgen alleen een
        nieuwe prep; alle andere weken worden volledig opnieuw verdeeld.
        Twee keer achter elkaar uitvoeren geeft hetzelfde resultaat.

        Returns:
            De opnieuw verdeelde weken
        """
        index = state.index_of(week_id)
        if index is None:
            raise NotFoundError(f"Week {week_id} not found")
        if index == len(state.weeks) - 1:
            return []

        running = compute_frequencies(state.members, state.weeks, index)
        updated = []

        for week in state.weeks[index + 1:]:
            if week.fixed_share and not week.manually_edited:
                week.prep = assign_prep_given_share(state.members, running, week.share)
                _bump(running, week.prep, PREP)
            else:
                previous_share = week.share
                week.prep, week.share = assign_both(state.members, running)
                _bump(running, week.prep, PREP)
                _bump(running, week.share, SHARE)
                self._detach_if_changed(week, previous_share)
            updated.append(week)

        return updated

    def _detach_if_changed(self, week: Week, previous_share: str) -> bool:
        """Zet fixed_share uit als de share van de week is veranderd. Nooit andersom.

        Vergelijkt met de share die de week al had, niet met de huidige rotatie:
        een rotatie- of ledenwijziging raakt bestaande weken niet.
        """
        if not week.fixed_share or week.share == previous_share:
            return False
        week.fixed_share = False
        return True

    # === Leden, rotatie en profiel ===

    def add_member(self, state: RosterState, name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Member name is required")
        if name in state.members:
            raise ValidationError(f"Member '{name}' already exists")
        state.members.append(name)
        return name

    def remove_member(self, state: RosterState, index: int) -> str:
        """Verwijder een lid op positie. Historische weken blijven staan."""
        if index < 0 or index >= len(state.members):
            raise NotFoundError(f"No member at position {index}")
        if len(state.members) <= MIN_MEMBERS:
            raise InvalidStateError(f"Need at least {MIN_MEMBERS} members for rostering")

        removed = state.members.pop(index)
        if state.user_name == removed:
            state.user_name = ""
        return removed

    def set_fixed_rotation(self, state: RosterState, rotation: list[str], share_mode: str = "fixed"):
        """Stel de vaste deel-rotatie in. Geldt alleen voor nieuw te genereren weken."""
        if share_mode not in SHARE_MODES:
            raise ValidationError(f"Unknown share mode '{share_mode}'")
        state.fixed_rotation = [r.strip() for r in rotation if r and r.strip()]
        state.share_mode = share_mode

    def set_user_name(self, state: RosterState, name: str):
        name = (name or "").strip()
        if name and name not in state.members:
            raise NotFoundError(f"Member '{name}' not found")
        state.user_name = name

    def set_notifications(self, state: RosterState, enabled: bool, lead_days: Optional[int] = None):
        if lead_days is not None:
            if lead_days < 0:
                raise ValidationError("lead_days cannot be negative")
            state.notifications.lead_days = lead_days
        state.notifications.enabled = enabled

    # === Overzicht ===

    def get_stats(self, state: RosterState) -> dict:
        """Per lid hoe vaak prep/share, plus totalen."""
        frequencies = compute_frequencies(state.members, state.weeks)
        return {
            "total_prep": sum(c.prep for c in frequencies.values()),
            "total_share": sum(c.share for c in frequencies.values()),
            "members": [
                {
                    "name": name,
                    "prep": counts.prep,
                    "share": counts.share,
                    "is_me": name == state.user_name,
                }
                for name, counts in frequencies.items()
            ],
        }


engine = RosterEngine()
