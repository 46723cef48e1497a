import random
import uuid
from datetime import datetime, timezone

from faker import Faker

fake = Faker()

# ---------------------------------------------------------
# 1. Classification values seen from the desktop agent
# ---------------------------------------------------------
PRODUCTIVITY_OPTS = ["productive", "unproductive", "neutral"]

APP_CATALOG = [
    {"app": "Google Chrome", "url": "https://github.com/pulls", "title": "Pull requests", "status": "productive"},
    {"app": "Google Chrome", "url": "https://mail.google.com", "title": "Inbox", "status": "productive"},
    {"app": "Google Chrome", "url": "https://www.youtube.com", "title": "YouTube", "status": "unproductive"},
    {"app": "Slack", "url": "", "title": "general | team", "status": "productive"},
    {"app": "Visual Studio Code", "url": "", "title": "main.py - backend", "status": "productive"},
    {"app": "Spotify", "url": "", "title": "Daily Mix 1", "status": "neutral"},
    {"app": "Microsoft Excel", "url": "", "title": "Q3 budget.xlsx", "status": "productive"},
    {"app": "Firefox", "url": "https://news.ycombinator.com", "title": "Hacker News", "status": "neutral"},
]


def build_activity_json(user_id=None, org_id=None, activity_uuid=None, app=None, when=None):
    """Single activity sample, shaped like the desktop agent's payload."""
    entry = app if app else random.choice(APP_CATALOG)
    ts = when if when else datetime.now(timezone.utc)

    return {
        "activity_uuid": activity_uuid or str(uuid.uuid4()),
        "user_id": user_id or f"USR-{fake.uuid4()[:8]}",
        "organization_id": org_id or f"ORG-{random.randint(1, 20):03d}",
        "timestamp": ts.isoformat().replace("+00:00", "Z"),
        "app_name": entry["app"],
        "url": entry["url"],
        "page_title": entry["title"],
        "productivity_status": entry["status"],
        "meridian": "AM" if ts.hour < 12 else "PM",
        "ip_address": fake.ipv4_private(),
        "mac_address": fake.mac_address(),
        "mouse_movement": random.random() < 0.8,
        "mouse_clicks": random.randint(0, 120),
        "keys_clicks": random.randint(0, 600),
        "status": random.choice([0, 1, 1, 1]),
        "cpu_usage": f"{random.uniform(1, 95):.1f}%",
        "ram_usage": f"{random.uniform(20, 90):.1f}%",
        "screenshot_uid": str(uuid.uuid4()),
        "thumbnail_uid": str(uuid.uuid4()),
        "device_user_name": fake.user_name()[:50],
    }


def build_malformed_json():
    """Payload the consumer must reject without stopping."""
    broken = build_activity_json()
    choice = random.choice(["no_uuid", "bad_type", "bad_timestamp"])
    if choice == "no_uuid":
        broken.pop("activity_uuid")
    elif choice == "bad_type":
        broken["mouse_clicks"] = "many"
    else:
        broken["timestamp"] = "yesterday"
    return broken
