"""
API routes.

Endpoints:
- POST `/api/event/track`: store one analytics event.
- GET  `/api/test-events`: newest stored events (debugging aid).
- POST `/api/influencer/create|update`: influencer profile management.
- POST `/api/recommendation/create|update|delete`: recommendation management.
- GET  `/api/places`, `/api/places/{place_id}`, `/api/influencers/{username}`: discovery reads.

Write endpoints require an authenticated user (see `eatwithme.api.auth`).
Errors use `{"detail": {"code": ..., "message": ...}}`.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException

from eatwithme.api.auth import AuthUser, require_user
from eatwithme.config.settings import get_settings
from eatwithme.core.env import resolve_project_path
from eatwithme.discovery.view import compose_list, map_markers
from eatwithme.domain import validation
from eatwithme.domain.models import (
    EVENT_TYPES,
    GeoPoint,
    Influencer,
    InfluencerCreateRequest,
    InfluencerUpdateRequest,
    Place,
    Recommendation,
    RecommendationCreateRequest,
    RecommendationDeleteRequest,
    RecommendationUpdateRequest,
    StoredEvent,
    TrackEventRequest,
)
from eatwithme.store.json_store import JsonStore

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache
def get_store() -> JsonStore:
    settings = get_settings()
    path = resolve_project_path(settings.store.path) if settings.store.path else None
    return JsonStore(path)


def _fail(status_code: int, code: str, message: str) -> NoReturn:
    raise HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _bad_request(message: str) -> NoReturn:
    _fail(400, "VALIDATION_ERROR", message)


def _require_influencer(user: AuthUser, store: JsonStore) -> Influencer:
    influencer = store.get_influencer_by_auth(user.id)
    if influencer is None:
        _fail(404, "NOT_FOUND", "Influencer profile not found")
    return influencer


def _owned_recommendation(recommendation_id: str | None, influencer: Influencer, store: JsonStore, action: str) -> Recommendation:
    if not recommendation_id:
        _bad_request("Recommendation ID required")
    recommendation = store.get_recommendation(recommendation_id)
    if recommendation is None:
        _fail(404, "NOT_FOUND", "Recommendation not found")
    if recommendation.influencer_id != influencer.id:
        _fail(403, "FORBIDDEN", f"Not authorized to {action} this recommendation")
    return recommendation


def _visitor(lat: float | None, lon: float | None) -> GeoPoint | None:
    if lat is None or lon is None:
        return None
    try:
        return GeoPoint(lat=lat, lon=lon)
    except ValueError as e:
        _bad_request(f"Invalid visitor location: {e}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@router.post("/api/event/track")
def post_track_event(payload: TrackEventRequest, store: JsonStore = Depends(get_store)) -> dict:
    """Store one event sent by a visitor's tracker."""
    if not payload.type or not payload.session_id:
        _bad_request("Missing required fields")
    if payload.type not in EVENT_TYPES:
        _bad_request(f"Unknown event type: {payload.type}")

    try:
        store.add_event(
            StoredEvent(
                type=payload.type,
                place_id=payload.place_id or None,
                influencer_id=payload.influencer_id or None,
                recommendation_id=payload.recommendation_id or None,
                session_id=payload.session_id,
                metadata=payload.metadata or None,
            )
        )
    except Exception as e:
        logger.exception("Event tracking error")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to track event"}) from e
    return {"success": True}


@router.get("/api/test-events")
def get_test_events(store: JsonStore = Depends(get_store)) -> dict:
    """Return the newest stored events."""
    limit = get_settings().discovery.recent_events_limit
    events = store.recent_events(limit)
    return {"count": len(events), "events": [e.model_dump(mode="json") for e in events]}


# ---------------------------------------------------------------------------
# Influencer profile
# ---------------------------------------------------------------------------


@router.post("/api/influencer/create")
def post_influencer_create(
    payload: InfluencerCreateRequest,
    user: AuthUser = Depends(require_user),
    store: JsonStore = Depends(get_store),
) -> dict:
    """Create the logged-in user's influencer profile."""
    if not payload.username or not payload.display_name:
        _bad_request("Username and display name are required")
    try:
        username = validation.clean_username(payload.username)
        display_name = validation.clean_display_name(payload.display_name)
    except ValueError as e:
        _bad_request(str(e))

    if store.get_influencer_by_auth(user.id) is not None:
        _bad_request("You already have a profile")
    if store.get_influencer_by_username(username) is not None:
        _bad_request("Username already taken")

    influencer = Influencer(
        auth_id=user.id,
        username=username,
        display_name=display_name,
        instagram=validation.clean_instagram(payload.instagram),
        youtube=validation.clean_youtube(payload.youtube),
    )
    try:
        store.add_influencer(influencer)
    except ValueError as e:
        # Lost a race with a concurrent create.
        _bad_request(str(e))
    except Exception as e:
        logger.exception("Error creating influencer")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to create profile"}) from e
    logger.info("Created influencer @%s", influencer.username)
    return {"influencer": influencer.model_dump(mode="json")}


@router.post("/api/influencer/update")
def post_influencer_update(
    payload: InfluencerUpdateRequest,
    user: AuthUser = Depends(require_user),
    store: JsonStore = Depends(get_store),
) -> dict:
    """Update display name, bio and social links (the username is fixed)."""
    influencer = _require_influencer(user, store)
    try:
        display_name = validation.clean_display_name(payload.display_name)
    except ValueError as e:
        _bad_request(str(e))

    try:
        updated = store.update_influencer(
            influencer.id,
            display_name=display_name,
            bio=validation.clean_optional(payload.bio),
            instagram=validation.clean_instagram(payload.instagram),
            youtube=validation.clean_youtube(payload.youtube),
        )
    except Exception as e:
        logger.exception("Error updating influencer")
        raise HTTPException(status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to update profile"}) from e
    return {"influencer": updated.model_dump(mode="json")}


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


@router.post("/api/recommendation/create")
def post_recommendation_create(
    payload: RecommendationCreateRequest,
    user: AuthUser = Depends(require_user),
    store: JsonStore = Depends(get_store),
) -> dict:
    """Publish a recommendation, creating the place on first mention."""
    influencer = _require_influencer(user, store)
    place_in = payload.place
    try:
        validation.require_place_fields(place_in)
        lat, lon = validation.parse_coordinates(place_in)
        dishes = validation.require_dishes(payload.recommendation.dishes)
    except ValueError as e:
        _bad_request(str(e))

    try:
        # Google place id is the most reliable match; name + city covers manual entries.
        place = None
        if place_in.google_place_id:
            place = store.find_place_by_google_id(place_in.google_place_id)
        if place is None:
            place = store.find_place_by_name_city(place_in.name, place_in.city)
        if place is None:
            place = store.add_place(
                Place(
                    name=place_in.name,
                    address=place_in.address,
                    area=place_in.area or None,
                    city=place_in.city,
                    latitude=lat,
                    longitude=lon,
                    location_notes=validation.clean_optional(place_in.location_notes),
                    category=place_in.category or "restaurant",
                    google_place_id=place_in.google_place_id or None,
                )
            )
            logger.info("Created place %s (%s)", place.name, place.id)

        rec_in = payload.recommendation
        recommendation = store.add_recommendation(
            Recommendation(
                influencer_id=influencer.id,
                place_id=place.id,
                dishes=dishes,
                video_url=rec_in.video_url or None,
                is_sponsored=bool(rec_in.is_sponsored),
                notes=validation.clean_optional(rec_in.notes),
            )
        )
    except Exception as e:
        logger.exception("Error creating recommendation")
        raise HTTPException(
            status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to create recommendation"}
        ) from e

    return {"recommendation": recommendation.model_dump(mode="json"), "place": place.model_dump(mode="json")}


@router.post("/api/recommendation/update")
def post_recommendation_update(
    payload: RecommendationUpdateRequest,
    user: AuthUser = Depends(require_user),
    store: JsonStore = Depends(get_store),
) -> dict:
    """Edit dishes, video, offer and notes of one of the user's recommendations."""
    influencer = _require_influencer(user, store)
    if not payload.recommendation_id:
        _bad_request("Recommendation ID required")
    try:
        dishes = validation.require_dishes(payload.dishes)
        offer_expiry = (
            validation.parse_offer_expiry(payload.offer_expiry, get_settings().app.timezone)
            if payload.has_offer
            else None
        )
    except ValueError as e:
        _bad_request(str(e))

    recommendation = _owned_recommendation(payload.recommendation_id, influencer, store, "edit")
    try:
        updated = store.update_recommendation(
            recommendation.id,
            dishes=dishes,
            video_url=payload.video_url or None,
            has_offer=bool(payload.has_offer),
            offer_details=(payload.offer_details or None) if payload.has_offer else None,
            offer_expiry=offer_expiry,
            notes=payload.notes or None,
        )
    except Exception as e:
        logger.exception("Error updating recommendation")
        raise HTTPException(
            status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to update recommendation"}
        ) from e
    return {"recommendation": updated.model_dump(mode="json")}


@router.post("/api/recommendation/delete")
def post_recommendation_delete(
    payload: RecommendationDeleteRequest,
    user: AuthUser = Depends(require_user),
    store: JsonStore = Depends(get_store),
) -> dict:
    """Delete one of the user's recommendations; an orphaned place goes with it."""
    influencer = _require_influencer(user, store)
    recommendation = _owned_recommendation(payload.recommendation_id, influencer, store, "delete")
    try:
        place_deleted = store.delete_recommendation(recommendation.id)
    except Exception as e:
        logger.exception("Error deleting recommendation")
        raise HTTPException(
            status_code=500, detail={"code": "INTERNAL_ERROR", "message": "Failed to delete recommendation"}
        ) from e
    if place_deleted:
        logger.info("Deleted orphaned place %s", recommendation.place_id)
    return {"success": True, "place_deleted": place_deleted}


# ---------------------------------------------------------------------------
# Discovery reads
# ---------------------------------------------------------------------------


@router.get("/api/places")
def get_places(lat: float | None = None, lon: float | None = None, store: JsonStore = Depends(get_store)) -> dict:
    """All places for the discovery page, sorted by proximity when `lat`/`lon` are given."""
    items = store.places_with_recommendations()
    cards = compose_list(items, _visitor(lat, lon), fallback_order=get_settings().discovery.fallback_order)
    return {
        "count": len(cards),
        "places": [c.model_dump(mode="json") for c in cards],
        "markers": [m.model_dump(mode="json") for m in map_markers(items)],
    }


@router.get("/api/places/{place_id}")
def get_place(place_id: str, lat: float | None = None, lon: float | None = None, store: JsonStore = Depends(get_store)) -> dict:
    """One place with every recommendation for it."""
    item = store.place_with_recommendations(place_id)
    if item is None:
        _fail(404, "NOT_FOUND", "Place not found")
    card = compose_list([item], _visitor(lat, lon))[0]
    return {"place": card.model_dump(mode="json")}


@router.get("/api/influencers/{username}")
def get_influencer(
    username: str, lat: float | None = None, lon: float | None = None, store: JsonStore = Depends(get_store)
) -> dict:
    """An influencer profile and the places they recommend."""
    influencer = store.get_influencer_by_username(username.replace("@", "").strip().lower())
    if influencer is None:
        _fail(404, "NOT_FOUND", "Influencer not found")
    items = store.places_for_influencer(influencer.id)
    cards = compose_list(items, _visitor(lat, lon), fallback_order=get_settings().discovery.fallback_order)
    return {
        "influencer": influencer.model_dump(mode="json"),
        "count": len(cards),
        "places": [c.model_dump(mode="json") for c in cards],
        "markers": [m.model_dump(mode="json") for m in map_markers(items)],
    }
