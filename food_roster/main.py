"""FastAPI app voor de Food Roster."""
import os
import threading
from datetime import date
from typing import Optional
from dotenv import load_dotenv
from fastapi import FastAPI, APIRouter, HTTPException, Depends, Header, Response
from pydantic import BaseModel, Field

from .models import RosterState, Week
from .roster_engine import (
    engine, week_of_month, RosterError, NotFoundError, InvalidStateError
)
from .reminders import get_turn_status, due_reminders, mark_notified, prune_markers
from .database import (
    init_db, load_roster_state, save_roster_state, clear_roster_state,
    add_push_subscription, now_local
)
from .push_notifications import deliver, get_vapid_public_key
from .calendar_generator import generate_ical

load_dotenv()

app = FastAPI(
    title="Food Roster",
    description="Fortnightly food prep and sharing roster",
    version="1.0.0"
)

# API Key voor authenticatie (kan worden overschreven via environment variable)
API_KEY = os.getenv("API_KEY", "food-roster-secret-key")

# Het ene rooster van deze app; elke mutatie gebeurt onder _lock
_state: Optional[RosterState] = None
_lock = threading.Lock()


async def verify_api_key(authorization: Optional[str] = Header(None)):
    """Verifieer de API key uit de Authorization header."""
    if authorization is None:
        raise HTTPException(status_code=401, detail="API key required")

    # Verwacht "Bearer <api_key>" format
    if authorization.startswith("Bearer "):
        token = authorization[7:]
    else:
        token = authorization

    if token != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return token


api = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])


def get_state() -> RosterState:
    """Laad het rooster eenmalig; zonder opgeslagen data het standaard rooster."""
    global _state
    if _state is None:
        state = load_roster_state()
        if state is None:
            state = engine.initial_state()
            save_roster_state(state)
        _state = state
    return _state


def reset_state():
    """Vergeet het geladen rooster (volgende request laadt opnieuw)."""
    global _state
    _state = None


def _http_error(e: RosterError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, InvalidStateError):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def serialize_week(week: Week, state: RosterState, today: date) -> dict:
    is_current = week.start_date <= today <= week.end_date
    return {
        "id": week.id,
        "start_date": week.start_date.isoformat(),
        "end_date": week.end_date.isoformat(),
        "week_of_month": week_of_month(week.start_date),
        "prep": week.prep,
        "share": week.share,
        "fixed_share": week.fixed_share,
        "rotation_index": week.rotation_index,
        "manually_edited": week.manually_edited,
        "is_past": week.end_date < today,
        "is_current": is_current,
        "is_my_turn": is_current and week.duty_of(state.user_name) is not None,
    }


def serialize_roster(state: RosterState) -> dict:
    today = engine.today()
    status = get_turn_status(state, today)
    return {
        "members": state.members,
        "fixed_rotation": state.fixed_rotation,
        "share_mode": state.share_mode,
        "user_name": state.user_name,
        "notifications": state.notifications.model_dump(),
        "week_count": len(state.weeks),
        "weeks": [serialize_week(w, state, today) for w in state.weeks],
        "turn": {"duty": status.duty, "week_id": status.week.id, "message": status.message} if status else None,
    }


# Startup event
@app.on_event("startup")
async def startup():
    """Maak tabellen aan bij het opstarten."""
    try:
        init_db()
    except Exception as e:
        print(f"Database init error (might be OK on first run): {e}")


# Health check
@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# === Request models ===

class GenerateRequest(BaseModel):
    count: int = Field(default=1, ge=1)


class SingleWeekRequest(BaseModel):
    start_date: date


class EditWeekRequest(BaseModel):
    prep: str
    share: Optional[str] = None  # Leeg = share ongewijzigd
    recalc_future: bool = False


class MemberRequest(BaseModel):
    name: str


class RotationRequest(BaseModel):
    rotation: list[str] = Field(default_factory=list)
    share_mode: str = "fixed"


class ProfileRequest(BaseModel):
    user_name: str


class NotificationRequest(BaseModel):
    enabled: bool
    lead_days: Optional[int] = None


class PushSubscribeRequest(BaseModel):
    member_name: str
    endpoint: str
    p256dh: str
    auth: str


# === Rooster ===

@api.get("/roster")
async def get_roster():
    """Het volledige rooster met de beurt van de huidige gebruiker."""
    with _lock:
        return serialize_roster(get_state())


@api.get("/stats")
async def get_stats():
    """Hoe vaak iedereen prep en share heeft gehad."""
    with _lock:
        return engine.get_stats(get_state())


@api.post("/weeks/generate")
async def generate_weeks(request: GenerateRequest):
    """Genereer nieuwe weken na de laatste bestaande week."""
    with _lock:
        state = get_state()
        try:
            created = engine.generate_weeks(state, request.count)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        today = engine.today()
        return {
            "success": True,
            "message": f"{len(created)} weeks added",
            "created": [serialize_week(w, state, today) for w in created]
        }


@api.post("/weeks")
async def add_week():
    """Voeg één week toe (de knop 'Add Week')."""
    with _lock:
        state = get_state()
        try:
            created = engine.add_week(state)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        today = engine.today()
        return {"success": True, "created": [serialize_week(w, state, today) for w in created]}


@api.post("/weeks/single")
async def create_single_week(request: SingleWeekRequest):
    """Maak een week op een specifieke datum."""
    with _lock:
        state = get_state()
        try:
            week = engine.create_single_week(state, request.start_date)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return {"success": True, "week": serialize_week(week, state, engine.today())}


@api.put("/weeks/{week_id}")
async def edit_week(week_id: int, request: EditWeekRequest):
    """Pas een week handmatig aan, optioneel met herberekening van latere weken."""
    with _lock:
        state = get_state()
        try:
            result = engine.edit_week(
                state,
                week_id,
                request.prep,
                request.share or "",
                request.recalc_future
            )
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        today = engine.today()
        return {
            "success": True,
            "week": serialize_week(result.week, state, today),
            "fixed_share_detached": result.fixed_share_detached,
            "recalculated": [serialize_week(w, state, today) for w in result.recalculated]
        }


@api.post("/weeks/{week_id}/recalculate")
async def recalculate_from(week_id: int):
    """Verdeel alle weken na deze week opnieuw."""
    with _lock:
        state = get_state()
        try:
            updated = engine.recalculate_from(state, week_id)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        today = engine.today()
        return {"success": True, "recalculated": [serialize_week(w, state, today) for w in updated]}


@api.delete("/weeks/{week_id}")
async def remove_week(week_id: int):
    with _lock:
        state = get_state()
        try:
            removed = engine.remove_week(state, week_id)
        except RosterError as e:
            raise _http_error(e)
        prune_markers(state)
        save_roster_state(state)
        return {"success": True, "removed_id": removed.id}


@api.post("/roster/regenerate")
async def regenerate_roster():
    """Genereer alle toekomstige weken opnieuw.

    LET OP: handmatige aanpassingen in toekomstige weken gaan verloren!
    """
    with _lock:
        state = get_state()
        try:
            created = engine.regenerate_roster(state)
        except RosterError as e:
            raise _http_error(e)
        prune_markers(state)
        save_roster_state(state)
        return {"success": True, "message": f"{len(created)} weeks regenerated"}


@api.delete("/roster")
async def clear_roster():
    """Wis alles: leden, weken en instellingen."""
    global _state
    with _lock:
        clear_roster_state()
        _state = RosterState()
        save_roster_state(_state)
        return {"success": True}


# === Leden en instellingen ===

@api.post("/members")
async def add_member(request: MemberRequest):
    with _lock:
        state = get_state()
        try:
            name = engine.add_member(state, request.name)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return {"success": True, "members": state.members, "added": name}


@api.delete("/members/{index}")
async def remove_member(index: int):
    with _lock:
        state = get_state()
        try:
            name = engine.remove_member(state, index)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return {"success": True, "members": state.members, "removed": name}


@api.put("/rotation")
async def set_rotation(request: RotationRequest):
    """Stel de vaste deel-rotatie in (geldt voor nieuwe weken)."""
    with _lock:
        state = get_state()
        try:
            engine.set_fixed_rotation(state, request.rotation, request.share_mode)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return {"success": True, "fixed_rotation": state.fixed_rotation, "share_mode": state.share_mode}


@api.put("/profile")
async def set_profile(request: ProfileRequest):
    with _lock:
        state = get_state()
        try:
            engine.set_user_name(state, request.user_name)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return serialize_roster(state)


@api.put("/notifications")
async def set_notifications(request: NotificationRequest):
    with _lock:
        state = get_state()
        try:
            engine.set_notifications(state, request.enabled, request.lead_days)
        except RosterError as e:
            raise _http_error(e)
        save_roster_state(state)
        return {"success": True, "notifications": state.notifications.model_dump()}


# === Beurt en herinneringen ===

@api.get("/turn")
async def get_turn():
    """Heeft de huidige gebruiker deze week een taak?"""
    with _lock:
        state = get_state()
        status = get_turn_status(state, engine.today())
        if status is None:
            return {"my_turn": False}
        return {"my_turn": True, "duty": status.duty, "week_id": status.week.id, "message": status.message}


@api.post("/turn/check")
async def check_turn():
    """Periodieke check (bijv. elke minuut): verstuur herinneringen die nu nodig zijn.

    Veilig om vaak aan te roepen; per week en taak gaat er maar één herinnering uit.
    """
    with _lock:
        state = get_state()
        reminders = due_reminders(state, engine.today())
        sent = []
        for reminder in reminders:
            deliver(state.user_name, reminder.title, reminder.body, reminder.dedupe_key)
            mark_notified(state, reminder, now_local())
            sent.append({"week_id": reminder.week.id, "duty": reminder.duty, "body": reminder.body})
        if sent:
            save_roster_state(state)
        return {"sent": sent}


@api.post("/push/subscribe")
async def push_subscribe(request: PushSubscribeRequest):
    subscription = add_push_subscription(request.member_name, request.endpoint, request.p256dh, request.auth)
    return {"success": True, "subscription_id": subscription.id}


@api.get("/push/public-key")
async def push_public_key():
    return {"public_key": get_vapid_public_key()}


app.include_router(api)


# === Kalender ===

@app.get("/calendar.ics")
async def calendar_feed(key: str, member: Optional[str] = None):
    """iCal feed, de key zit in de URL omdat agenda-apps geen headers sturen."""
    if key != API_KEY:
        raise HTTPException(status_code=401, detail="Invalid API key")
    with _lock:
        state = get_state()
        cal = generate_ical(state.weeks, filter_member=member, today=engine.today())
    return Response(content=cal.to_ical(), media_type="text/calendar")


# === Local development ===

if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8080))
    uvicorn.run(app, host="0.0.0.0", port=port)
