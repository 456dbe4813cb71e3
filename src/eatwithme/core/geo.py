"""
Geospatial helpers.

A tiny geometry layer shared by the discovery view, the API and the CLI:
- great-circle distances on a spherical Earth (mean radius 6371 km)
- a human-readable distance label for list cards
- Google Maps directions links
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from math import asin, cos, isfinite, radians, sin, sqrt

EARTH_RADIUS_KM = 6371.0
DIRECTIONS_URL = "https://www.google.com/maps/dir/?api=1&destination={lat},{lon}"


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute great-circle (haversine) distance in kilometers."""
    p1 = radians(lat1)
    p2 = radians(lat2)
    dlat = p2 - p1
    dlon = radians(lon2) - radians(lon1)

    h = sin(dlat / 2) ** 2 + cos(p1) * cos(p2) * sin(dlon / 2) ** 2
    # Float error can push h a hair above 1.0 for antipodal points.
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, h)))


def format_distance(km: float) -> str:
    """Render a distance for display.

    - below 1 km: meters rounded half-up to the nearest 10 (`"450 m"`)
    - 1 km and above: one decimal place (`"2.3 km"`)

    A sub-kilometer value that rounds up to 1000 m is shown as `"1.0 km"`.
    """
    km = float(km)
    if not isfinite(km) or km < 0:
        raise ValueError(f"distance must be a finite non-negative number, got {km!r}")

    if km < 1:
        # Decimal of the shortest repr, so 0.145 km is a true tie and rounds up.
        tens = (Decimal(repr(km)) * 100).to_integral_value(rounding=ROUND_HALF_UP)
        meters = int(tens) * 10
        if meters < 1000:
            return f"{meters} m"
        km = 1.0
    return f"{km:.1f} km"


def directions_url(lat: float, lon: float) -> str:
    """Return a Google Maps directions link to the given coordinates."""
    return DIRECTIONS_URL.format(lat=lat, lon=lon)
