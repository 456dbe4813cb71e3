"""
Domain models (Pydantic).

These types represent the stable "contract" between layers:
- stored records (`Influencer`, `Place`, `Recommendation`, `StoredEvent`)
- API inputs (`TrackEventRequest`, profile and recommendation payloads)
- discovery output (`PlaceCard`, `MapMarker`)

API payload fields use camelCase aliases to match what the browser sends;
Python code uses snake_case.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal, get_args
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from eatwithme.core.time import utcnow


EventType = Literal[
    "page_view",
    "direction_click",
    "video_click",
    "marker_click",
    "list_view",
    "map_view",
]
EVENT_TYPES: tuple[str, ...] = get_args(EventType)


def new_id() -> str:
    return uuid4().hex


class CamelModel(BaseModel):
    """Accepts both camelCase (wire) and snake_case (Python) field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GeoPoint(BaseModel):
    """A geographic point in decimal degrees."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class Influencer(BaseModel):
    id: str = Field(default_factory=new_id)
    auth_id: str
    username: str
    display_name: str
    bio: str | None = None
    instagram: str | None = None
    youtube: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Place(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    address: str
    area: str | None = None
    city: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    location_notes: str | None = None
    category: str = "restaurant"
    google_place_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Recommendation(BaseModel):
    id: str = Field(default_factory=new_id)
    influencer_id: str
    place_id: str
    dishes: list[str] = Field(..., min_length=1)
    video_url: str | None = None
    is_sponsored: bool = False
    has_offer: bool = False
    offer_details: str | None = None
    offer_expiry: datetime | None = None
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)

    def offer_active(self, now: datetime) -> bool:
        if not self.has_offer:
            return False
        return self.offer_expiry is None or self.offer_expiry > now


class StoredEvent(BaseModel):
    id: str = Field(default_factory=new_id)
    type: EventType
    place_id: str | None = None
    influencer_id: str | None = None
    recommendation_id: str | None = None
    session_id: str
    metadata: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Client-side event (what the tracker sends)
# ---------------------------------------------------------------------------


class TrackedEvent(BaseModel):
    """One client interaction, ready for transmission."""

    type: EventType
    place_id: str | None = None
    influencer_id: str | None = None
    recommendation_id: str | None = None
    session_id: str
    metadata: dict[Any, Any] | None = None

    def dedup_key(self) -> str:
        return f"{self.type}-{self.place_id or ''}-{self.influencer_id or ''}-{self.recommendation_id or ''}"

    def _metadata_json(self) -> str | None:
        if not self.metadata:
            return None
        # Keys become strings; values json cannot encode fall back to str().
        return json.dumps({str(k): v for k, v in self.metadata.items()}, default=str)

    def to_wire(self) -> dict[str, Any]:
        """JSON body for `POST /api/event/track` (metadata is pre-serialized)."""
        return {
            "type": self.type,
            "placeId": self.place_id,
            "influencerId": self.influencer_id,
            "recommendationId": self.recommendation_id,
            "sessionId": self.session_id,
            "metadata": self._metadata_json(),
        }


# ---------------------------------------------------------------------------
# API payloads
# ---------------------------------------------------------------------------


class TrackEventRequest(CamelModel):
    # Kept loose so the route can answer with its own 400 message.
    type: str | None = None
    place_id: str | None = None
    influencer_id: str | None = None
    recommendation_id: str | None = None
    session_id: str | None = None
    metadata: str | None = None


class InfluencerCreateRequest(CamelModel):
    username: str | None = None
    display_name: str | None = None
    instagram: str | None = None
    youtube: str | None = None


class InfluencerUpdateRequest(CamelModel):
    display_name: str | None = None
    bio: str | None = None
    instagram: str | None = None
    youtube: str | None = None


class PlaceInput(CamelModel):
    name: str | None = None
    address: str | None = None
    area: str | None = None
    city: str | None = None
    latitude: float | str | None = None
    longitude: float | str | None = None
    location_notes: str | None = None
    category: str | None = None
    google_place_id: str | None = None


class RecommendationInput(CamelModel):
    dishes: list[str] = Field(default_factory=list)
    video_url: str | None = None
    is_sponsored: bool = False
    notes: str | None = None

    @field_validator("dishes")
    @classmethod
    def _strip_dishes(cls, dishes: list[str]) -> list[str]:
        return [d.strip() for d in dishes if d and d.strip()]


class RecommendationCreateRequest(CamelModel):
    place: PlaceInput = Field(default_factory=PlaceInput)
    recommendation: RecommendationInput = Field(default_factory=RecommendationInput)


class RecommendationUpdateRequest(CamelModel):
    recommendation_id: str | None = None
    dishes: list[str] = Field(default_factory=list)
    video_url: str | None = None
    has_offer: bool = False
    offer_details: str | None = None
    offer_expiry: str | None = None
    notes: str | None = None

    @field_validator("dishes")
    @classmethod
    def _strip_dishes(cls, dishes: list[str]) -> list[str]:
        return [d.strip() for d in dishes if d and d.strip()]


class RecommendationDeleteRequest(CamelModel):
    recommendation_id: str | None = None


# ---------------------------------------------------------------------------
# Discovery output
# ---------------------------------------------------------------------------


class RecommendationView(BaseModel):
    """A recommendation joined with its influencer, for display."""

    recommendation: Recommendation
    influencer: Influencer


class PlaceWithRecommendations(BaseModel):
    place: Place
    recommendations: list[RecommendationView] = Field(default_factory=list)


class PlaceCard(BaseModel):
    """One list-view entry: place + recommendations + optional proximity annotation."""

    place: Place
    recommendations: list[RecommendationView] = Field(default_factory=list)
    distance_km: float | None = None
    distance_label: str | None = None
    has_active_offer: bool = False
    directions_url: str


class MapMarker(BaseModel):
    id: str
    name: str
    address: str
    latitude: float
    longitude: float
