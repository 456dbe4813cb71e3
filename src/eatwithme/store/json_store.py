"""
JSON-document store for influencers, places, recommendations and events.

The whole dataset is one JSON file (default: `data/eatwithme.json`):
- reads are served from memory,
- every mutation rewrites the file via a temporary file + atomic replace,
  and is undone in memory when that write fails,
- `path=None` keeps everything in memory (tests, demos).

An `RLock` serializes mutations so the API can serve concurrent requests from
a thread pool.
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from pathlib import Path
from threading import RLock
from typing import Any, Iterable, Iterator

from pydantic import TypeAdapter

from eatwithme.domain.models import (
    Influencer,
    Place,
    PlaceWithRecommendations,
    Recommendation,
    RecommendationView,
    StoredEvent,
)

logger = logging.getLogger(__name__)

_INFLUENCERS = TypeAdapter(list[Influencer])
_PLACES = TypeAdapter(list[Place])
_RECOMMENDATIONS = TypeAdapter(list[Recommendation])
_EVENTS = TypeAdapter(list[StoredEvent])


class JsonStore:
    def __init__(self, path: Path | None = None):
        self._path = Path(path) if path is not None else None
        self._lock = RLock()
        self._influencers: dict[str, Influencer] = {}
        self._places: dict[str, Place] = {}
        self._recommendations: dict[str, Recommendation] = {}
        self._events: list[StoredEvent] = []
        if self._path is not None and self._path.exists():
            self._load(self._path)

    @property
    def path(self) -> Path | None:
        return self._path

    # -- persistence -------------------------------------------------------

    def _load(self, path: Path) -> None:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise ValueError(f"Invalid store root object in {path}; expected a mapping.")
        self._influencers = {i.id: i for i in _INFLUENCERS.validate_python(raw.get("influencers", []))}
        self._places = {p.id: p for p in _PLACES.validate_python(raw.get("places", []))}
        self._recommendations = {
            r.id: r for r in _RECOMMENDATIONS.validate_python(raw.get("recommendations", []))
        }
        self._events = _EVENTS.validate_python(raw.get("events", []))
        logger.info(
            "Loaded store %s (%d places, %d recommendations, %d influencers)",
            path,
            len(self._places),
            len(self._recommendations),
            len(self._influencers),
        )

    def _dump(self) -> dict[str, Any]:
        return {
            "influencers": _INFLUENCERS.dump_python(list(self._influencers.values()), mode="json"),
            "places": _PLACES.dump_python(list(self._places.values()), mode="json"),
            "recommendations": _RECOMMENDATIONS.dump_python(list(self._recommendations.values()), mode="json"),
            "events": _EVENTS.dump_python(self._events, mode="json"),
        }

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self._dump(), ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        """Apply a change and save it; restore the previous state if anything raises."""
        with self._lock:
            snapshot = (
                dict(self._influencers),
                dict(self._places),
                dict(self._recommendations),
                list(self._events),
            )
            try:
                yield
                self._save()
            except Exception:
                self._influencers, self._places, self._recommendations, self._events = snapshot
                raise

    # -- influencers -------------------------------------------------------

    def get_influencer(self, influencer_id: str) -> Influencer | None:
        return self._influencers.get(influencer_id)

    def get_influencer_by_auth(self, auth_id: str) -> Influencer | None:
        return next((i for i in self._influencers.values() if i.auth_id == auth_id), None)

    def get_influencer_by_username(self, username: str) -> Influencer | None:
        return next((i for i in self._influencers.values() if i.username == username), None)

    def add_influencer(self, influencer: Influencer) -> Influencer:
        with self._mutation():
            if self.get_influencer_by_auth(influencer.auth_id) is not None:
                raise ValueError("You already have a profile")
            if self.get_influencer_by_username(influencer.username) is not None:
                raise ValueError("Username already taken")
            self._influencers[influencer.id] = influencer
        return influencer

    def update_influencer(self, influencer_id: str, **changes: Any) -> Influencer:
        with self._mutation():
            current = self._influencers[influencer_id]
            updated = current.model_copy(update=changes)
            self._influencers[influencer_id] = updated
        return updated

    # -- places ------------------------------------------------------------

    def get_place(self, place_id: str) -> Place | None:
        return self._places.get(place_id)

    def find_place_by_google_id(self, google_place_id: str) -> Place | None:
        return next((p for p in self._places.values() if p.google_place_id == google_place_id), None)

    def find_place_by_name_city(self, name: str, city: str) -> Place | None:
        return next((p for p in self._places.values() if p.name == name and p.city == city), None)

    def add_place(self, place: Place) -> Place:
        with self._mutation():
            if place.google_place_id and self.find_place_by_google_id(place.google_place_id):
                raise ValueError(f"place with google_place_id {place.google_place_id!r} already exists")
            self._places[place.id] = place
        return place

    def list_places(self) -> list[Place]:
        return list(self._places.values())

    # -- recommendations ---------------------------------------------------

    def get_recommendation(self, recommendation_id: str) -> Recommendation | None:
        return self._recommendations.get(recommendation_id)

    def add_recommendation(self, recommendation: Recommendation) -> Recommendation:
        with self._mutation():
            if recommendation.place_id not in self._places:
                raise KeyError(recommendation.place_id)
            if recommendation.influencer_id not in self._influencers:
                raise KeyError(recommendation.influencer_id)
            self._recommendations[recommendation.id] = recommendation
        return recommendation

    def update_recommendation(self, recommendation_id: str, **changes: Any) -> Recommendation:
        with self._mutation():
            current = self._recommendations[recommendation_id]
            updated = Recommendation.model_validate({**current.model_dump(), **changes})
            self._recommendations[recommendation_id] = updated
        return updated

    def delete_recommendation(self, recommendation_id: str) -> bool:
        """Delete a recommendation; drop its place (and the place's events) if orphaned.

        Returns True when the place was deleted as well.
        """
        with self._mutation():
            recommendation = self._recommendations.pop(recommendation_id)
            place_id = recommendation.place_id
            remaining = sum(1 for r in self._recommendations.values() if r.place_id == place_id)
            place_deleted = False
            if remaining == 0:
                self._events = [e for e in self._events if e.place_id != place_id]
                place_deleted = self._places.pop(place_id, None) is not None
        return place_deleted

    def recommendations_for_place(self, place_id: str) -> list[Recommendation]:
        return [r for r in self._recommendations.values() if r.place_id == place_id]

    def recommendations_by_influencer(self, influencer_id: str) -> list[Recommendation]:
        return [r for r in self._recommendations.values() if r.influencer_id == influencer_id]

    # -- events ------------------------------------------------------------

    def add_event(self, event: StoredEvent) -> StoredEvent:
        with self._mutation():
            self._events.append(event)
        return event

    def recent_events(self, limit: int = 10) -> list[StoredEvent]:
        ordered = sorted(self._events, key=lambda e: e.created_at, reverse=True)
        return ordered[: max(0, int(limit))]

    # -- joined views ------------------------------------------------------

    def _views(self, recommendations: Iterable[Recommendation]) -> list[RecommendationView]:
        out: list[RecommendationView] = []
        for r in recommendations:
            influencer = self._influencers.get(r.influencer_id)
            if influencer is None:
                continue
            out.append(RecommendationView(recommendation=r, influencer=influencer))
        return out

    def place_with_recommendations(self, place_id: str) -> PlaceWithRecommendations | None:
        place = self._places.get(place_id)
        if place is None:
            return None
        return PlaceWithRecommendations(place=place, recommendations=self._views(self.recommendations_for_place(place_id)))

    def places_with_recommendations(self) -> list[PlaceWithRecommendations]:
        """All places in insertion order, each with its recommendations."""
        by_place: dict[str, list[Recommendation]] = {}
        for r in self._recommendations.values():
            by_place.setdefault(r.place_id, []).append(r)
        return [
            PlaceWithRecommendations(place=p, recommendations=self._views(by_place.get(p.id, [])))
            for p in self._places.values()
        ]

    def places_for_influencer(self, influencer_id: str) -> list[PlaceWithRecommendations]:
        """Places recommended by one influencer (only their recommendations attached)."""
        by_place: dict[str, list[Recommendation]] = {}
        for r in self.recommendations_by_influencer(influencer_id):
            by_place.setdefault(r.place_id, []).append(r)
        out: list[PlaceWithRecommendations] = []
        for place_id, recs in by_place.items():
            place = self._places.get(place_id)
            if place is not None:
                out.append(PlaceWithRecommendations(place=place, recommendations=self._views(recs)))
        return out
