import pytest
from starlette.testclient import TestClient

from eatwithme.api.app import app
from eatwithme.api.routes import get_store
from eatwithme.domain.models import StoredEvent
from eatwithme.store.json_store import JsonStore

ALICE = {"X-Auth-User": "auth-alice"}
BOB = {"X-Auth-User": "auth-bob"}

PARADISE = {
    "name": "Paradise Biryani",
    "address": "SD Road",
    "city": "Hyderabad",
    "latitude": 17.4416,
    "longitude": 78.4874,
    "googlePlaceId": "g-paradise",
}


@pytest.fixture()
def client():
    store = JsonStore()
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as c:
        c.store = store
        yield c
    app.dependency_overrides.clear()


def _create_profile(c, headers, username, display_name="Someone"):
    resp = c.post("/api/influencer/create", json={"username": username, "displayName": display_name}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["influencer"]


def _create_rec(c, headers, place=None, dishes=("Chicken Biryani",)):
    resp = c.post(
        "/api/recommendation/create",
        json={"place": place or PARADISE, "recommendation": {"dishes": list(dishes), "videoUrl": "https://v/1"}},
        headers=headers,
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Influencer profile
# ---------------------------------------------------------------------------


def test_create_profile_normalizes_fields(client):
    resp = client.post(
        "/api/influencer/create",
        json={"username": "  Hyd_Foodie ", "displayName": "  Hyd Foodie ", "instagram": "@hyd.foodie"},
        headers=ALICE,
    )

    assert resp.status_code == 200
    influencer = resp.json()["influencer"]
    assert influencer["username"] == "hyd_foodie"
    assert influencer["display_name"] == "Hyd Foodie"
    assert influencer["instagram"] == "hyd.foodie"
    assert influencer["auth_id"] == "auth-alice"


def test_create_profile_requires_login(client):
    resp = client.post("/api/influencer/create", json={"username": "abc", "displayName": "A"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "UNAUTHENTICATED"


@pytest.mark.parametrize(
    "username, message",
    [
        ("ab", "Username must be 3-30 characters"),
        ("a" * 31, "Username must be 3-30 characters"),
        ("hyd-foodie", "Username can only contain letters, numbers, and underscores"),
        ("_hyd", "Username cannot start or end with underscore"),
        ("dashboard", "This username is reserved"),
    ],
)
def test_create_profile_rejects_bad_usernames(client, username, message):
    resp = client.post("/api/influencer/create", json={"username": username, "displayName": "X"}, headers=ALICE)
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == message


def test_one_profile_per_user_and_unique_usernames(client):
    _create_profile(client, ALICE, "hyd_foodie")

    again = client.post("/api/influencer/create", json={"username": "other_name", "displayName": "X"}, headers=ALICE)
    taken = client.post("/api/influencer/create", json={"username": "HYD_FOODIE", "displayName": "X"}, headers=BOB)

    assert again.status_code == 400
    assert again.json()["detail"]["message"] == "You already have a profile"
    assert taken.status_code == 400
    assert taken.json()["detail"]["message"] == "Username already taken"


def test_update_profile(client):
    _create_profile(client, ALICE, "hyd_foodie")

    resp = client.post(
        "/api/influencer/update",
        json={"displayName": " New Name ", "bio": "  Biryani hunter ", "instagram": "", "youtube": " https://yt/x "},
        headers=ALICE,
    )

    assert resp.status_code == 200
    influencer = resp.json()["influencer"]
    assert influencer["display_name"] == "New Name"
    assert influencer["bio"] == "Biryani hunter"
    assert influencer["instagram"] is None
    assert influencer["youtube"] == "https://yt/x"
    assert influencer["username"] == "hyd_foodie"


def test_update_profile_requires_existing_profile_and_display_name(client):
    missing = client.post("/api/influencer/update", json={"displayName": "X"}, headers=BOB)
    assert missing.status_code == 404

    _create_profile(client, BOB, "street_bites")
    blank = client.post("/api/influencer/update", json={"displayName": "   "}, headers=BOB)
    assert blank.status_code == 400
    assert blank.json()["detail"]["message"] == "Display name is required"


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


def test_create_recommendation_creates_place_once(client):
    _create_profile(client, ALICE, "hyd_foodie")
    _create_profile(client, BOB, "street_bites")

    first = _create_rec(client, ALICE)
    second = _create_rec(client, BOB, dishes=["Mutton Biryani"])

    assert first["place"]["id"] == second["place"]["id"]
    assert first["place"]["category"] == "restaurant"
    assert len(client.store.list_places()) == 1
    assert len(client.store.recommendations_for_place(first["place"]["id"])) == 2


def test_create_recommendation_matches_manual_place_by_name_and_city(client):
    _create_profile(client, ALICE, "hyd_foodie")
    manual = {k: v for k, v in PARADISE.items() if k != "googlePlaceId"}

    first = _create_rec(client, ALICE, place=manual)
    second = _create_rec(client, ALICE, place=manual, dishes=["Kebab"])

    assert first["place"]["id"] == second["place"]["id"]


@pytest.mark.parametrize(
    "place, dishes, message",
    [
        ({**PARADISE, "city": ""}, ["Biryani"], "Missing place details"),
        ({**PARADISE, "latitude": 95}, ["Biryani"], "Invalid coordinates"),
        ({**PARADISE, "longitude": "east"}, ["Biryani"], "Invalid coordinates"),
        (PARADISE, [], "At least one dish is required"),
        (PARADISE, ["  "], "At least one dish is required"),
    ],
)
def test_create_recommendation_validation(client, place, dishes, message):
    _create_profile(client, ALICE, "hyd_foodie")
    resp = client.post(
        "/api/recommendation/create",
        json={"place": place, "recommendation": {"dishes": dishes}},
        headers=ALICE,
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["message"] == message
    assert client.store.list_places() == []


def test_create_recommendation_needs_profile(client):
    resp = client.post(
        "/api/recommendation/create",
        json={"place": PARADISE, "recommendation": {"dishes": ["Biryani"]}},
        headers=BOB,
    )
    assert resp.status_code == 404


def test_update_recommendation_with_offer(client):
    _create_profile(client, ALICE, "hyd_foodie")
    rec_id = _create_rec(client, ALICE)["recommendation"]["id"]

    resp = client.post(
        "/api/recommendation/update",
        json={
            "recommendationId": rec_id,
            "dishes": ["Haleem"],
            "hasOffer": True,
            "offerDetails": "10% off",
            "offerExpiry": "2030-01-31",
            "notes": "Ramzan only",
        },
        headers=ALICE,
    )

    assert resp.status_code == 200
    rec = resp.json()["recommendation"]
    assert rec["dishes"] == ["Haleem"]
    assert rec["has_offer"] is True
    assert rec["offer_details"] == "10% off"
    assert rec["offer_expiry"].startswith("2030-01-31T00:00:00")
    assert rec["video_url"] is None


def test_update_recommendation_clears_offer_fields_without_offer(client):
    _create_profile(client, ALICE, "hyd_foodie")
    rec_id = _create_rec(client, ALICE)["recommendation"]["id"]

    resp = client.post(
        "/api/recommendation/update",
        json={"recommendationId": rec_id, "dishes": ["Haleem"], "offerDetails": "ignored", "offerExpiry": "2030-01-31"},
        headers=ALICE,
    )

    rec = resp.json()["recommendation"]
    assert rec["has_offer"] is False
    assert rec["offer_details"] is None
    assert rec["offer_expiry"] is None


def test_update_recommendation_errors(client):
    _create_profile(client, ALICE, "hyd_foodie")
    _create_profile(client, BOB, "street_bites")
    rec_id = _create_rec(client, ALICE)["recommendation"]["id"]

    no_id = client.post("/api/recommendation/update", json={"dishes": ["x"]}, headers=ALICE)
    no_dishes = client.post("/api/recommendation/update", json={"recommendationId": rec_id, "dishes": []}, headers=ALICE)
    missing = client.post("/api/recommendation/update", json={"recommendationId": "nope", "dishes": ["x"]}, headers=ALICE)
    not_owner = client.post("/api/recommendation/update", json={"recommendationId": rec_id, "dishes": ["x"]}, headers=BOB)

    assert no_id.status_code == 400
    assert no_dishes.status_code == 400
    assert missing.status_code == 404
    assert not_owner.status_code == 403
    assert not_owner.json()["detail"]["message"] == "Not authorized to edit this recommendation"


def test_delete_last_recommendation_removes_place_and_its_events(client):
    _create_profile(client, ALICE, "hyd_foodie")
    created = _create_rec(client, ALICE)
    place_id = created["place"]["id"]
    client.store.add_event(StoredEvent(type="direction_click", place_id=place_id, session_id="s1"))
    client.store.add_event(StoredEvent(type="page_view", session_id="s1"))

    resp = client.post(
        "/api/recommendation/delete", json={"recommendationId": created["recommendation"]["id"]}, headers=ALICE
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "place_deleted": True}
    assert client.store.get_place(place_id) is None
    assert [e.type for e in client.store.recent_events()] == ["page_view"]


def test_delete_keeps_place_with_other_recommendations(client):
    _create_profile(client, ALICE, "hyd_foodie")
    _create_profile(client, BOB, "street_bites")
    mine = _create_rec(client, ALICE)
    _create_rec(client, BOB)

    resp = client.post("/api/recommendation/delete", json={"recommendationId": mine["recommendation"]["id"]}, headers=ALICE)

    assert resp.json()["place_deleted"] is False
    assert client.store.get_place(mine["place"]["id"]) is not None


def test_delete_only_own_recommendations(client):
    _create_profile(client, ALICE, "hyd_foodie")
    _create_profile(client, BOB, "street_bites")
    rec_id = _create_rec(client, ALICE)["recommendation"]["id"]

    resp = client.post("/api/recommendation/delete", json={"recommendationId": rec_id}, headers=BOB)
    no_id = client.post("/api/recommendation/delete", json={}, headers=BOB)

    assert resp.status_code == 403
    assert no_id.status_code == 400
    assert client.store.get_recommendation(rec_id) is not None


# ---------------------------------------------------------------------------
# Discovery reads + pages
# ---------------------------------------------------------------------------

NIMRAH = {
    "name": "Nimrah Cafe",
    "address": "Charminar Road",
    "city": "Hyderabad",
    "latitude": 17.3613,
    "longitude": 78.4740,
}


def test_places_sorted_by_visitor_location(client):
    _create_profile(client, ALICE, "hyd_foodie")
    _create_rec(client, ALICE, place=PARADISE)
    _create_rec(client, ALICE, place=NIMRAH, dishes=["Irani Chai"])

    near_charminar = client.get("/api/places", params={"lat": 17.3616, "lon": 78.4747}).json()
    no_location = client.get("/api/places").json()

    assert [p["place"]["name"] for p in near_charminar["places"]] == ["Nimrah Cafe", "Paradise Biryani"]
    assert near_charminar["places"][0]["distance_label"].endswith(" m")
    assert [p["place"]["name"] for p in no_location["places"]] == ["Nimrah Cafe", "Paradise Biryani"]
    assert no_location["places"][0]["distance_km"] is None
    assert [m["name"] for m in no_location["markers"]] == ["Paradise Biryani", "Nimrah Cafe"]


def test_places_rejects_out_of_range_location(client):
    resp = client.get("/api/places", params={"lat": 123, "lon": 78})
    assert resp.status_code == 400


def test_influencer_and_place_reads(client):
    _create_profile(client, ALICE, "hyd_foodie", display_name="Hyd Foodie")
    created = _create_rec(client, ALICE)

    profile = client.get("/api/influencers/@hyd_foodie")
    place = client.get(f"/api/places/{created['place']['id']}")

    assert profile.status_code == 200
    assert profile.json()["influencer"]["display_name"] == "Hyd Foodie"
    assert profile.json()["count"] == 1
    assert place.status_code == 200
    assert place.json()["place"]["recommendations"][0]["influencer"]["username"] == "hyd_foodie"
    assert client.get("/api/influencers/nobody").status_code == 404
    assert client.get("/api/places/missing").status_code == 404


def test_pages_render(client):
    _create_profile(client, ALICE, "hyd_foodie", display_name="Hyd Foodie")
    created = _create_rec(client, ALICE)

    home = client.get("/", params={"lat": 17.44, "lon": 78.48})
    profile = client.get("/@hyd_foodie")
    place = client.get(f"/place/{created['place']['id']}")
    missing = client.get("/place/missing")

    assert home.status_code == 200
    assert "Paradise Biryani" in home.text
    assert profile.status_code == 200
    assert "Hyd Foodie" in profile.text
    assert place.status_code == 200
    assert "Chicken Biryani" in place.text
    assert missing.status_code == 404
