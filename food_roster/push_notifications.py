"""Push notification service voor de Food Roster."""
import os
import json
from pywebpush import webpush, WebPushException

from .database import (
    get_push_subscriptions_for_member,
    get_all_push_subscriptions,
    delete_push_subscription_by_endpoint
)

VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY", "")
VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY", "")
VAPID_CLAIMS_EMAIL = os.getenv("VAPID_CLAIMS_EMAIL", "mailto:admin@example.com")

# Zelfde tag vervangt een eerdere melding op het device
NOTIFICATION_TAG = "turn-notification"


def get_vapid_public_key() -> str:
    """Geef de public key terug voor gebruik in de frontend."""
    return VAPID_PUBLIC_KEY


def _send(subscription, payload: str) -> None:
    webpush(
        subscription_info={
            "endpoint": subscription.endpoint,
            "keys": {
                "p256dh": subscription.p256dh,
                "auth": subscription.auth
            }
        },
        data=payload,
        vapid_private_key=VAPID_PRIVATE_KEY,
        vapid_claims={"sub": VAPID_CLAIMS_EMAIL}
    )


def _build_payload(title: str, body: str, dedupe_key: str = "", data: dict = None) -> str:
    return json.dumps({
        "title": title,
        "body": body,
        "tag": NOTIFICATION_TAG,
        "requireInteraction": True,
        "data": {"dedupe_key": dedupe_key, **(data or {})}
    })


def deliver(member_name: str, title: str, body: str, dedupe_key: str = "") -> dict:
    """Stuur een herinnering naar alle devices van een lid.

    Fire-and-forget: de roster engine kijkt niet naar het resultaat.

    Args:
        member_name: Naam van het lid
        title: Titel van de notificatie
        body: Body tekst van de notificatie
        dedupe_key: "<week_id>:<taak>", gaat mee in de payload

    Returns:
        Dict met success count en failed endpoints
    """
    if not VAPID_PRIVATE_KEY:
        return {"error": "VAPID keys not configured", "success": 0, "failed": 0}

    subscriptions = get_push_subscriptions_for_member(member_name)
    if not subscriptions:
        return {"error": f"No subscriptions for {member_name}", "success": 0, "failed": 0}

    payload = _build_payload(title, body, dedupe_key, {"type": "turn_reminder"})

    success_count = 0
    failed_endpoints = []

    for sub in subscriptions:
        try:
            _send(sub, payload)
            success_count += 1
        except WebPushException as e:
            if e.response is not None and e.response.status_code == 410:
                delete_push_subscription_by_endpoint(sub.endpoint)
            print(f"Push naar {member_name} mislukt: {e}")
            failed_endpoints.append({
                "endpoint": sub.endpoint[:50] + "...",
                "error": str(e)
            })

    return {
        "success": success_count,
        "failed": len(failed_endpoints),
        "failed_details": failed_endpoints if failed_endpoints else None
    }


def send_push_to_all(title: str, body: str, data: dict = None) -> dict:
    """Stuur een notificatie naar alle geregistreerde devices (bijv. nieuw rooster)."""
    if not VAPID_PRIVATE_KEY:
        return {"error": "VAPID keys not configured"}

    all_subs = get_all_push_subscriptions()
    if not all_subs:
        return {"error": "No subscriptions found", "total": 0}

    payload = _build_payload(title, body, data=data)
    results = {"total": len(all_subs), "success": 0, "failed": 0}

    for sub in all_subs:
        try:
            _send(sub, payload)
            results["success"] += 1
        except WebPushException as e:
            if e.response is not None and e.response.status_code == 410:
                delete_push_subscription_by_endpoint(sub.endpoint)
            results["failed"] += 1

    return results
