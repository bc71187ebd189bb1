"""
Pytest fixtures voor het testen van het roster algoritme.

Deze fixtures maken het mogelijk om de engine te testen ZONDER database
en zonder systeemklok, zodat tests snel, deterministisch en reproduceerbaar zijn.
"""
import pytest
from datetime import date, datetime, timedelta
from unittest.mock import patch
from typing import Optional
from zoneinfo import ZoneInfo

from food_roster.models import RosterState, PushSubscription
from food_roster.roster_engine import RosterEngine


# === MOCK DATA ===

@pytest.fixture
def members() -> list[str]:
    """Drie leden; volgorde is de tie-break volgorde."""
    return ["Valdo", "Acha", "Kezia"]


class FixedClock:
    """Configureerbare "huidige datum" voor tests."""

    def __init__(self, current: date):
        self.current = current
        self._timezone = ZoneInfo("Europe/Amsterdam")

    def __call__(self) -> date:
        return self.current

    def advance_days(self, days: int):
        """Ga N dagen vooruit in de tijd."""
        self.current += timedelta(days=days)

    def now_local(self) -> datetime:
        return datetime.combine(self.current, datetime.min.time().replace(hour=12), tzinfo=self._timezone)


@pytest.fixture
def clock() -> FixedClock:
    # 2026-01-19 is een maandag en de tweede slot-maandag van januari
    return FixedClock(date(2026, 1, 19))


@pytest.fixture
def engine(clock) -> RosterEngine:
    return RosterEngine(today=clock)


@pytest.fixture
def state(members) -> RosterState:
    """Leeg rooster in vrije modus."""
    return RosterState(members=list(members))


@pytest.fixture
def fixed_state(members) -> RosterState:
    """Leeg rooster met vaste deel-rotatie [Acha, Kezia]."""
    return RosterState(members=list(members), fixed_rotation=["Acha", "Kezia"], share_mode="fixed")


# === MOCK DATABASE ===

class MockStorage:
    """
    In-memory mock van de opslag voor de API tests.

    Bewaart een diepe kopie bij elke save, zodat tests kunnen zien wat
    er echt is opgeslagen.
    """

    def __init__(self, state: Optional[RosterState] = None):
        self.saved: Optional[RosterState] = state.model_copy(deep=True) if state else None
        self.save_count = 0
        self.subscriptions: list[PushSubscription] = []
        self.deliveries: list[dict] = []

    def init_db(self):
        pass

    def load_roster_state(self) -> Optional[RosterState]:
        return self.saved.model_copy(deep=True) if self.saved else None

    def save_roster_state(self, state: RosterState):
        self.saved = state.model_copy(deep=True)
        self.save_count += 1

    def clear_roster_state(self) -> bool:
        existed = self.saved is not None
        self.saved = None
        return existed

    def add_push_subscription(self, member_name, endpoint, p256dh, auth) -> PushSubscription:
        sub = PushSubscription(
            id=str(len(self.subscriptions) + 1),
            member_name=member_name,
            endpoint=endpoint,
            p256dh=p256dh,
            auth=auth
        )
        self.subscriptions.append(sub)
        return sub

    def deliver(self, member_name, title, body, dedupe_key=""):
        self.deliveries.append({
            "member_name": member_name,
            "title": title,
            "body": body,
            "dedupe_key": dedupe_key
        })
        return {"success": 1, "failed": 0}


@pytest.fixture
def storage(state) -> MockStorage:
    return MockStorage(state)


@pytest.fixture
def client(storage, clock):
    """
    Een TestClient met gemockte opslag, push en klok.

    Dit patcht alle database imports in main zodat de MockStorage
    wordt gebruikt in plaats van een echte database.
    """
    from fastapi.testclient import TestClient
    from food_roster import main

    with patch.multiple(
        'food_roster.main',
        init_db=storage.init_db,
        load_roster_state=storage.load_roster_state,
        save_roster_state=storage.save_roster_state,
        clear_roster_state=storage.clear_roster_state,
        add_push_subscription=storage.add_push_subscription,
        deliver=storage.deliver,
        now_local=clock.now_local,
        engine=RosterEngine(today=clock),
    ):
        main.reset_state()
        test_client = TestClient(main.app)
        test_client.headers.update({"Authorization": f"Bearer {main.API_KEY}"})
        # Geef toegang tot storage voor test manipulatie
        test_client.storage = storage
        yield test_client
        main.reset_state()


# === TEST UTILITIES ===

def assignments(state: RosterState) -> list[tuple[str, str]]:
    """(prep, share) per week, in datumvolgorde."""
    return [(w.prep, w.share) for w in state.weeks]


def total_counts(state: RosterState) -> dict[str, int]:
    """Totaal aantal taken (prep + share) per lid."""
    counts = {m: 0 for m in state.members}
    for week in state.weeks:
        if week.prep in counts:
            counts[week.prep] += 1
        if week.share in counts:
            counts[week.share] += 1
    return counts


def assert_roster_invariants(state: RosterState):
    """Gesorteerd, unieke data en prep != share (behalve placeholder)."""
    dates = [w.start_date for w in state.weeks]
    assert dates == sorted(dates), f"Weken niet gesorteerd: {dates}"
    assert len(set(dates)) == len(dates), f"Dubbele data: {dates}"
    if len(state.members) >= 2:
        for week in state.weeks:
            assert week.prep != week.share, \
                f"Week {week.start_date} heeft {week.prep} voor beide taken"
