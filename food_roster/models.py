"""Data models voor de Food Roster (weekrooster voor eten klaarmaken en delen)."""
from datetime import datetime, date, timedelta
from typing import Optional, Literal
from pydantic import BaseModel, Field

# Placeholder als er te weinig leden zijn om twee verschillende mensen in te delen
UNASSIGNED = "TBD"

PREP = "prep"
SHARE = "share"


class Week(BaseModel):
    """Eén roosterslot: 7 dagen vanaf een maandag.

    Een week wordt aangemaakt door de generator, aangepast door edit/recalculatie
    en alleen expliciet verwijderd. De volgorde van de lijst volgt altijd start_date.
    """
    id: int
    start_date: date
    prep: str  # Wie het eten klaarmaakt
    share: str  # Wie deelt
    fixed_share: bool = False  # share komt uit de vaste rotatie
    rotation_index: Optional[int] = None  # Positie in de vaste rotatie
    manually_edited: bool = False

    @property
    def end_date(self) -> date:
        return self.start_date + timedelta(days=6)

    def duty_of(self, member_name: str) -> Optional[str]:
        """Welke taak heeft dit lid deze week (prep, share of geen)."""
        if not member_name:
            return None
        if self.prep == member_name:
            return PREP
        if self.share == member_name:
            return SHARE
        return None


class NotificationSettings(BaseModel):
    """Instellingen voor herinneringen aan de huidige gebruiker."""
    enabled: bool = False
    lead_days: int = Field(default=1, ge=0)  # Hoeveel dagen voor het slot herinneren


class RosterState(BaseModel):
    """Het volledige rooster als één waarde.

    De presentatielaag bezit precies één instantie en geeft die door aan
    alle engine-functies; de engine houdt zelf geen state vast.
    """
    members: list[str] = Field(default_factory=list)
    weeks: list[Week] = Field(default_factory=list)
    fixed_rotation: list[str] = Field(default_factory=list)
    share_mode: Literal["free", "fixed"] = "free"
    next_rotation_index: int = 0
    next_week_id: int = 1
    user_name: str = ""
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    # Dedupe markers: "<week_id>:<duty>" -> moment van versturen
    last_notified: dict[str, datetime] = Field(default_factory=dict)

    def find_week(self, week_id: int) -> Optional[Week]:
        for week in self.weeks:
            if week.id == week_id:
                return week
        return None

    def index_of(self, week_id: int) -> Optional[int]:
        for i, week in enumerate(self.weeks):
            if week.id == week_id:
                return i
        return None


class PushSubscription(BaseModel):
    """Web Push subscription van een device."""
    id: str
    member_name: str
    endpoint: str
    p256dh: str
    auth: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
