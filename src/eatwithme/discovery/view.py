"""
List/map view composition.

Turns a collection of places (with their recommendations) into:
- list cards, ordered by proximity when the visitor location is known,
  otherwise by a configurable fallback policy
- map markers (independent of list order)

Sorting is always stable, so ties keep the input order.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Iterable, Sequence

from eatwithme.core.geo import directions_url, distance_km, format_distance
from eatwithme.core.time import utcnow
from eatwithme.domain.models import GeoPoint, MapMarker, PlaceCard, PlaceWithRecommendations

DEFAULT_FALLBACK_ORDER: tuple[str, ...] = ("offer_first", "name")


def has_active_offer(item: PlaceWithRecommendations, now: datetime) -> bool:
    return any(v.recommendation.offer_active(now) for v in item.recommendations)


def _latest_recommendation_ts(item: PlaceWithRecommendations) -> float:
    if not item.recommendations:
        return float("-inf")
    return max(v.recommendation.created_at.timestamp() for v in item.recommendations)


def _fallback_key(rule: str, now: datetime) -> Callable[[PlaceWithRecommendations], object]:
    if rule == "offer_first":
        return lambda item: 0 if has_active_offer(item, now) else 1
    if rule == "name":
        return lambda item: item.place.name.casefold()
    if rule == "newest":
        return lambda item: -_latest_recommendation_ts(item)
    raise ValueError(f"Unknown fallback rule {rule!r}; expected offer_first, name or newest")


def sort_places(
    items: Sequence[PlaceWithRecommendations],
    visitor: GeoPoint | None = None,
    *,
    fallback_order: Iterable[str] | None = None,
    now: datetime | None = None,
) -> list[PlaceWithRecommendations]:
    """Order places for the list view.

    With a visitor location: ascending great-circle distance.
    Without one: the fallback rules, applied in priority order (first rule wins).
    """
    if visitor is not None:
        return sorted(
            items,
            key=lambda item: distance_km(visitor.lat, visitor.lon, item.place.latitude, item.place.longitude),
        )

    rules = list(DEFAULT_FALLBACK_ORDER if fallback_order is None else fallback_order)
    now = now or utcnow()
    keys = [_fallback_key(rule, now) for rule in rules]
    return sorted(items, key=lambda item: tuple(k(item) for k in keys))


def compose_list(
    items: Sequence[PlaceWithRecommendations],
    visitor: GeoPoint | None = None,
    *,
    fallback_order: Iterable[str] | None = None,
    now: datetime | None = None,
) -> list[PlaceCard]:
    """Sorted list cards annotated with distance (when known), offer flag and directions link."""
    now = now or utcnow()
    cards: list[PlaceCard] = []
    for item in sort_places(items, visitor, fallback_order=fallback_order, now=now):
        place = item.place
        km: float | None = None
        label: str | None = None
        if visitor is not None:
            km = distance_km(visitor.lat, visitor.lon, place.latitude, place.longitude)
            label = format_distance(km)
        cards.append(
            PlaceCard(
                place=place,
                recommendations=item.recommendations,
                distance_km=km,
                distance_label=label,
                has_active_offer=has_active_offer(item, now),
                directions_url=directions_url(place.latitude, place.longitude),
            )
        )
    return cards


def map_markers(items: Iterable[PlaceWithRecommendations]) -> list[MapMarker]:
    return [
        MapMarker(
            id=item.place.id,
            name=item.place.name,
            address=item.place.address,
            latitude=item.place.latitude,
            longitude=item.place.longitude,
        )
        for item in items
    ]
