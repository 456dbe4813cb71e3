# src/eatwithme/api/app.py
"""
FastAPI application wiring.

This file creates the `FastAPI` instance, mounts static assets, and serves the
server-rendered pages (discovery, influencer profile, place detail).
JSON endpoints live in `eatwithme.api.routes`.
"""

from __future__ import annotations

import os
from pathlib import Path

from fastapi import Depends, FastAPI, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.middleware.cors import CORSMiddleware

from eatwithme.config.settings import get_settings
from eatwithme.core.logging import configure_logging
from eatwithme.discovery.view import compose_list, map_markers
from eatwithme.domain.models import GeoPoint
from eatwithme.store.json_store import JsonStore

from .routes import get_store, router

configure_logging()

app = FastAPI(title="EatWithMe API", version="0.1.0")

# CORS: allow a separately hosted frontend to post events.
# - EATWITHME_CORS_ORIGINS="http://localhost:3000,https://eatwithme.app"
cors_origins = [s.strip() for s in os.getenv("EATWITHME_CORS_ORIGINS", "").split(",") if s.strip()]
if cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(router)

BASE_DIR = Path(__file__).resolve().parent.parent
TEMPLATES_DIR = BASE_DIR / "web" / "templates"
STATIC_DIR = BASE_DIR / "web" / "static"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


def _visitor(lat: float | None, lon: float | None) -> GeoPoint | None:
    # Pages degrade to the fallback order instead of failing on a bad location.
    if lat is None or lon is None:
        return None
    try:
        return GeoPoint(lat=lat, lon=lon)
    except ValueError:
        return None


def _not_found(request: Request, message: str) -> HTMLResponse:
    return templates.TemplateResponse(
        request, "not_found.html", {"app_name": get_settings().app.name, "message": message}, status_code=404
    )


@app.get("/", response_class=HTMLResponse)
def index(
    request: Request, lat: float | None = None, lon: float | None = None, store: JsonStore = Depends(get_store)
) -> HTMLResponse:
    """Discovery page: every place, nearest first when the visitor shares a location."""
    settings = get_settings()
    items = store.places_with_recommendations()
    visitor = _visitor(lat, lon)
    cards = compose_list(items, visitor, fallback_order=settings.discovery.fallback_order)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "app_name": settings.app.name,
            "cards": cards,
            "markers": [m.model_dump() for m in map_markers(items)],
            "visitor": visitor,
        },
    )


@app.get("/@{username}", response_class=HTMLResponse)
def influencer_page(
    request: Request,
    username: str,
    lat: float | None = None,
    lon: float | None = None,
    store: JsonStore = Depends(get_store),
) -> HTMLResponse:
    """Public influencer profile with their recommended places."""
    settings = get_settings()
    influencer = store.get_influencer_by_username(username.strip().lower())
    if influencer is None:
        return _not_found(request, "Influencer not found")
    items = store.places_for_influencer(influencer.id)
    visitor = _visitor(lat, lon)
    cards = compose_list(items, visitor, fallback_order=settings.discovery.fallback_order)
    return templates.TemplateResponse(
        request,
        "influencer.html",
        {
            "app_name": settings.app.name,
            "influencer": influencer,
            "cards": cards,
            "markers": [m.model_dump() for m in map_markers(items)],
            "visitor": visitor,
            "profile_url": f"{settings.app.public_base_url}/@{influencer.username}",
        },
    )


@app.get("/place/{place_id}", response_class=HTMLResponse)
def place_page(
    request: Request,
    place_id: str,
    lat: float | None = None,
    lon: float | None = None,
    store: JsonStore = Depends(get_store),
) -> HTMLResponse:
    """Place detail with every recommendation for it."""
    item = store.place_with_recommendations(place_id)
    if item is None:
        return _not_found(request, "Place not found")
    card = compose_list([item], _visitor(lat, lon))[0]
    return templates.TemplateResponse(
        request, "place.html", {"app_name": get_settings().app.name, "card": card}
    )
