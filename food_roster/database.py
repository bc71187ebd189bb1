"""PostgreSQL opslag voor de Food Roster (Vercel/Supabase Postgres)."""
import os
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo
import psycopg2
from psycopg2.extras import RealDictCursor, Json

from .models import RosterState, PushSubscription

# Timezone van de groep
TIMEZONE = ZoneInfo(os.getenv("ROSTER_TIMEZONE", "Europe/Amsterdam"))

# Het hele rooster staat als één snapshot in deze rij
ROSTER_STATE_ID = 1


def now_local() -> datetime:
    """Geef huidige tijd in lokale timezone."""
    return datetime.now(TIMEZONE)


def today_local() -> date:
    """Geef huidige datum in lokale timezone."""
    return datetime.now(TIMEZONE).date()


DATABASE_URL_VARS = ("POSTGRES_URL", "DATABASE_URL", "SUPABASE_DB_URL", "POSTGRES_URL_NON_POOLING")
KEPT_URL_PARAMS = {"sslmode", "connect_timeout", "application_name"}


def get_database_url():
    """Eerste gezette database URL, met alleen query parameters die psycopg2 kent."""
    url = next((os.getenv(name) for name in DATABASE_URL_VARS if os.getenv(name)), "")
    if "?" not in url:
        return url

    base_url, query = url.split("?", 1)
    kept = [param for param in query.split("&") if param.split("=")[0] in KEPT_URL_PARAMS]
    return base_url + "?" + ("&".join(kept) if kept else "sslmode=require")


DATABASE_URL = get_database_url()


def get_db():
    """Maak een database connectie."""
    conn = psycopg2.connect(DATABASE_URL, cursor_factory=RealDictCursor, sslmode='require')
    return conn


def init_db():
    """Maak de database tabellen aan."""
    conn = get_db()
    cur = conn.cursor()

    # Eén rij met het volledige rooster (leden, weken, rotatie, instellingen)
    cur.execute("""
        CREATE TABLE IF NOT EXISTS roster_state (
            id INTEGER PRIMARY KEY,
            data JSONB NOT NULL,
            updated_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """)

    cur.execute("""
        CREATE TABLE IF NOT EXISTS push_subscriptions (
            id SERIAL PRIMARY KEY,
            member_name VARCHAR(100) NOT NULL,
            endpoint TEXT UNIQUE NOT NULL,
            p256dh TEXT NOT NULL,
            auth TEXT NOT NULL,
            created_at TIMESTAMPTZ DEFAULT CURRENT_TIMESTAMP
        )
    """)

    conn.commit()
    cur.close()
    conn.close()
    print("Roster tabellen aangemaakt!")


# Roster snapshot
def load_roster_state() -> Optional[RosterState]:
    """Laad het opgeslagen rooster. None als er nog niets is opgeslagen."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("SELECT data FROM roster_state WHERE id = %s", (ROSTER_STATE_ID,))
    row = cur.fetchone()
    cur.close()
    conn.close()
    if row:
        return RosterState.model_validate(row["data"])
    return None


def save_roster_state(state: RosterState):
    """Sla het volledige rooster op (upsert)."""
    conn = get_db()
    cur = conn.cursor()

    try:
        cur.execute("""
            INSERT INTO roster_state (id, data, updated_at)
            VALUES (%s, %s, CURRENT_TIMESTAMP)
            ON CONFLICT (id) DO UPDATE
            SET data = EXCLUDED.data, updated_at = CURRENT_TIMESTAMP
        """, (ROSTER_STATE_ID, Json(state.model_dump(mode="json"))))
        conn.commit()

    except Exception as e:
        conn.rollback()
        print(f"Opslaan rooster mislukt: {e}")
        raise e

    finally:
        cur.close()
        conn.close()


def clear_roster_state() -> bool:
    """Verwijder het opgeslagen rooster."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM roster_state WHERE id = %s", (ROSTER_STATE_ID,))
    deleted = cur.rowcount > 0
    conn.commit()
    cur.close()
    conn.close()
    return deleted


# Push subscriptions
def _row_to_subscription(r) -> PushSubscription:
    return PushSubscription(
        id=str(r["id"]),
        member_name=r["member_name"],
        endpoint=r["endpoint"],
        p256dh=r["p256dh"],
        auth=r["auth"],
        created_at=r["created_at"]
    )


def add_push_subscription(member_name: str, endpoint: str, p256dh: str, auth: str) -> PushSubscription:
    """Registreer een device. Een bestaand endpoint wordt overschreven."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("""
        INSERT INTO push_subscriptions (member_name, endpoint, p256dh, auth)
        VALUES (%s, %s, %s, %s)
        ON CONFLICT (endpoint) DO UPDATE
        SET member_name = EXCLUDED.member_name, p256dh = EXCLUDED.p256dh, auth = EXCLUDED.auth
        RETURNING id, member_name, endpoint, p256dh, auth, created_at
    """, (member_name, endpoint, p256dh, auth))
    row = cur.fetchone()
    conn.commit()
    cur.close()
    conn.close()
    return _row_to_subscription(row)


def get_push_subscriptions_for_member(member_name: str) -> list[PushSubscription]:
    """Haal alle devices van een lid op."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("""
        SELECT id, member_name, endpoint, p256dh, auth, created_at
        FROM push_subscriptions WHERE member_name = %s
    """, (member_name,))
    rows = cur.fetchall()
    cur.close()
    conn.close()
    return [_row_to_subscription(r) for r in rows]


def get_all_push_subscriptions() -> list[PushSubscription]:
    """Haal alle geregistreerde devices op."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("SELECT id, member_name, endpoint, p256dh, auth, created_at FROM push_subscriptions")
    rows = cur.fetchall()
    cur.close()
    conn.close()
    return [_row_to_subscription(r) for r in rows]


def delete_push_subscription_by_endpoint(endpoint: str) -> bool:
    """Verwijder een verlopen device."""
    conn = get_db()
    cur = conn.cursor()
    cur.execute("DELETE FROM push_subscriptions WHERE endpoint = %s", (endpoint,))
    deleted = cur.rowcount > 0
    conn.commit()
    cur.close()
    conn.close()
    return deleted
