"""
Input validation for influencer profiles and recommendations.

All checks raise `ValueError` with a message that is safe to show to the user;
the API layer turns these into 400 responses.
"""

from __future__ import annotations

import math
import re
from datetime import datetime

from eatwithme.core.time import parse_datetime
from eatwithme.domain.models import PlaceInput

# Usernames live at `/@{username}`, so anything that could shadow a route is reserved.
RESERVED_USERNAMES = frozenset(
    {
        "admin",
        "api",
        "dashboard",
        "login",
        "logout",
        "signup",
        "auth",
        "place",
        "places",
        "settings",
        "profile",
        "help",
        "support",
        "about",
        "terms",
        "privacy",
        "search",
        "discover",
        "explore",
        "app",
        "www",
        "null",
        "undefined",
    }
)

_USERNAME_RE = re.compile(r"^[a-z0-9_]+$")


def clean_username(username: str) -> str:
    """Normalize and validate a new username."""
    clean = username.strip().lower()
    if len(clean) < 3 or len(clean) > 30:
        raise ValueError("Username must be 3-30 characters")
    if not _USERNAME_RE.match(clean):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    if clean.startswith("_") or clean.endswith("_"):
        raise ValueError("Username cannot start or end with underscore")
    if clean in RESERVED_USERNAMES:
        raise ValueError("This username is reserved")
    return clean


def clean_display_name(display_name: str | None) -> str:
    if not display_name or not display_name.strip():
        raise ValueError("Display name is required")
    return display_name.strip()[:100]


def clean_instagram(handle: str | None) -> str | None:
    if not handle:
        return None
    return handle.replace("@", "").strip()[:50] or None


def clean_youtube(url: str | None) -> str | None:
    if not url:
        return None
    return url.strip()[:200] or None


def clean_optional(text: str | None) -> str | None:
    if text is None:
        return None
    return text.strip() or None


def parse_coordinates(place: PlaceInput) -> tuple[float, float]:
    """Return (lat, lon) as floats, rejecting non-numeric or out-of-range values."""
    try:
        lat = float(place.latitude)  # type: ignore[arg-type]
        lon = float(place.longitude)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid coordinates") from exc
    if math.isnan(lat) or math.isnan(lon) or not (-90 <= lat <= 90) or not (-180 <= lon <= 180):
        raise ValueError("Invalid coordinates")
    return lat, lon


def require_place_fields(place: PlaceInput) -> None:
    if not place.name or not place.address or not place.city or place.latitude is None or place.longitude is None:
        raise ValueError("Missing place details")


def require_dishes(dishes: list[str]) -> list[str]:
    if not dishes:
        raise ValueError("At least one dish is required")
    return dishes


def parse_offer_expiry(value: str | None, tz_name: str) -> datetime | None:
    if not value:
        return None
    try:
        return parse_datetime(value, tz_name)
    except ValueError as exc:
        raise ValueError(f"Invalid offer expiry: {value!r}") from exc
