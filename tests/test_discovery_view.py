from datetime import datetime, timedelta, timezone

import pytest

from eatwithme.discovery.view import compose_list, map_markers, sort_places
from eatwithme.domain.models import (
    GeoPoint,
    Influencer,
    Place,
    PlaceWithRecommendations,
    Recommendation,
    RecommendationView,
)

VISITOR = GeoPoint(lat=17.385, lon=78.4867)
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
KM_PER_DEG_LAT = 111.19492664455873


def _item(name, *, lat, lon=78.4867, offer=False, offer_expiry=None, created_at=None):
    place = Place(id=name.lower(), name=name, address=f"{name} Road", city="Hyderabad", latitude=lat, longitude=lon)
    influencer = Influencer(auth_id="a1", username="hyd_foodie", display_name="Hyd Foodie")
    rec = Recommendation(
        influencer_id=influencer.id,
        place_id=place.id,
        dishes=["Biryani"],
        has_offer=offer,
        offer_expiry=offer_expiry,
        created_at=created_at or NOW,
    )
    return PlaceWithRecommendations(place=place, recommendations=[RecommendationView(recommendation=rec, influencer=influencer)])


def _north(km):
    return VISITOR.lat + km / KM_PER_DEG_LAT


def test_sort_by_distance_keeps_input_order_for_ties():
    p3 = _item("P3", lat=_north(2.0))
    p1 = _item("P1", lat=_north(2.0))
    p2 = _item("P2", lat=_north(0.5))

    ordered = sort_places([p3, p1, p2], VISITOR)

    assert [i.place.name for i in ordered] == ["P2", "P3", "P1"]


def test_compose_list_annotates_distance():
    cards = compose_list([_item("Far", lat=_north(2.0)), _item("Near", lat=_north(0.5))], VISITOR, now=NOW)

    assert [c.place.name for c in cards] == ["Near", "Far"]
    assert cards[0].distance_km == pytest.approx(0.5, abs=0.01)
    assert cards[0].distance_label == "500 m"
    assert cards[1].distance_label == "2.0 km"
    assert cards[0].directions_url.startswith("https://www.google.com/maps/dir/?api=1&destination=")


def test_fallback_puts_active_offers_first_then_alphabetical():
    items = [
        _item("zaika", lat=17.40),
        _item("Bawarchi", lat=17.41),
        _item("Shah Ghouse", lat=17.36, offer=True),
        _item("alpha Cafe", lat=17.42),
    ]

    cards = compose_list(items, None, now=NOW)

    assert [c.place.name for c in cards] == ["Shah Ghouse", "alpha Cafe", "Bawarchi", "zaika"]
    assert cards[0].has_active_offer
    assert all(c.distance_km is None and c.distance_label is None for c in cards)


def test_expired_offer_does_not_count():
    items = [
        _item("Beta", lat=17.40),
        _item("Alpha", lat=17.41, offer=True, offer_expiry=NOW - timedelta(days=1)),
        _item("Gamma", lat=17.42, offer=True, offer_expiry=NOW + timedelta(days=1)),
    ]

    names = [i.place.name for i in sort_places(items, None, now=NOW)]

    assert names == ["Gamma", "Alpha", "Beta"]


def test_fallback_is_deterministic():
    items = [_item(n, lat=17.4) for n in ["Delta", "alpha", "Charlie", "bravo"]]

    first = [i.place.id for i in sort_places(items, None, now=NOW)]
    second = [i.place.id for i in sort_places(items, None, now=NOW)]

    assert first == second == ["alpha", "bravo", "charlie", "delta"]


def test_fallback_order_is_configurable():
    items = [
        _item("Old", lat=17.4, created_at=NOW - timedelta(days=10)),
        _item("New", lat=17.4, created_at=NOW),
        _item("Mid", lat=17.4, created_at=NOW - timedelta(days=2)),
    ]

    assert [i.place.name for i in sort_places(items, None, fallback_order=["newest"], now=NOW)] == ["New", "Mid", "Old"]
    assert [i.place.name for i in sort_places(items, None, fallback_order=[], now=NOW)] == ["Old", "New", "Mid"]


def test_unknown_fallback_rule_is_rejected():
    with pytest.raises(ValueError, match="Unknown fallback rule"):
        sort_places([_item("A", lat=17.4)], None, fallback_order=["rating"])


def test_map_markers_follow_input_not_list_order():
    items = [_item("Far", lat=_north(3.0)), _item("Near", lat=_north(0.2))]

    markers = map_markers(items)

    assert [m.name for m in markers] == ["Far", "Near"]
    assert markers[1].latitude == items[1].place.latitude
