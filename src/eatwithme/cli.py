"""
EatWithMe CLI entrypoint.

This CLI is intended for quick local demos and debugging without the web UI:
- `places`: list places, nearest first when a location is given
- `distance`: great-circle distance between two points
- `track`: send one analytics event to the ingestion endpoint
- `events`: show the newest stored events
- `serve`: run the API + pages with uvicorn
"""

from __future__ import annotations

import argparse
import json
from typing import Any

from eatwithme.config.settings import get_settings
from eatwithme.core.env import resolve_project_path
from eatwithme.core.geo import distance_km, format_distance
from eatwithme.core.logging import configure_logging
from eatwithme.discovery.view import compose_list
from eatwithme.domain.models import EVENT_TYPES, GeoPoint
from eatwithme.store.json_store import JsonStore
from eatwithme.tracking.session import FileStorage, SessionIdProvider
from eatwithme.tracking.tracker import HttpEventTransport, build_tracker


def _parse_meta_pairs(pairs: list[str]) -> dict[str, str]:
    """Parse `KEY=VALUE` CLI arguments into a metadata dict."""
    out: dict[str, str] = {}
    for pair in pairs:
        if "=" not in pair:
            raise ValueError(f"Invalid --meta '{pair}', expected KEY=VALUE")
        key, value = pair.split("=", 1)
        out[key.strip()] = value
    return out


def _open_store(path: str | None) -> JsonStore:
    settings = get_settings()
    raw = path or settings.store.path
    return JsonStore(resolve_project_path(raw) if raw else None)


def _cmd_places(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = _open_store(args.store)

    visitor = None
    if args.lat is not None and args.lon is not None:
        visitor = GeoPoint(lat=float(args.lat), lon=float(args.lon))

    cards = compose_list(store.places_with_recommendations(), visitor, fallback_order=settings.discovery.fallback_order)
    if args.json:
        print(json.dumps([c.model_dump(mode="json") for c in cards], ensure_ascii=False, indent=2))
        return 0

    for i, card in enumerate(cards, start=1):
        distance = f" ({card.distance_label})" if card.distance_label else ""
        offer = " [offer]" if card.has_active_offer else ""
        print(f"{i}. {card.place.name}{distance}{offer} - {card.place.address}, {card.place.city}")
        for view in card.recommendations:
            print(f"   {view.influencer.display_name}: {', '.join(view.recommendation.dishes)}")
    if not cards:
        print("No places yet.")
    return 0


def _cmd_distance(args: argparse.Namespace) -> int:
    km = distance_km(float(args.lat1), float(args.lon1), float(args.lat2), float(args.lon2))
    print(f"{km:.3f} km ({format_distance(km)})")
    return 0


def _cmd_track(args: argparse.Namespace) -> int:
    settings = get_settings()
    storage = FileStorage(resolve_project_path(settings.tracking.session_file))
    session = SessionIdProvider(storage, key=settings.tracking.session_key)

    kwargs: dict[str, Any] = {}
    if args.endpoint:
        kwargs["transport"] = HttpEventTransport(args.endpoint, timeout_seconds=settings.tracking.timeout_seconds)

    metadata = _parse_meta_pairs(args.meta) if args.meta else None
    with build_tracker(settings, session=session, **kwargs) as tracker:
        pending = tracker.track(
            args.type,
            place_id=args.place_id,
            influencer_id=args.influencer_id,
            recommendation_id=args.recommendation_id,
            metadata=metadata,
        )
        if pending is None:
            print("skipped (no session or duplicate)")
            return 0
        ok = pending.result()
    print("sent" if ok else "failed (see log)")
    return 0 if ok else 1


def _cmd_events(args: argparse.Namespace) -> int:
    store = _open_store(args.store)
    events = store.recent_events(int(args.limit))
    print(json.dumps({"count": len(events), "events": [e.model_dump(mode="json") for e in events]}, indent=2))
    return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("eatwithme.api.app:app", host=args.host, port=int(args.port), reload=bool(args.reload))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="eatwithme", description="EatWithMe local tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("places", help="List places (nearest first with --lat/--lon)")
    p.add_argument("--lat", type=float)
    p.add_argument("--lon", type=float)
    p.add_argument("--store", help="Store JSON path (default: settings.store.path)")
    p.add_argument("--json", action="store_true", help="Print JSON instead of text")
    p.set_defaults(func=_cmd_places)

    p = sub.add_parser("distance", help="Great-circle distance between two points")
    p.add_argument("lat1", type=float)
    p.add_argument("lon1", type=float)
    p.add_argument("lat2", type=float)
    p.add_argument("lon2", type=float)
    p.set_defaults(func=_cmd_distance)

    p = sub.add_parser("track", help="Send one analytics event")
    p.add_argument("type", choices=EVENT_TYPES)
    p.add_argument("--place-id")
    p.add_argument("--influencer-id")
    p.add_argument("--recommendation-id")
    p.add_argument("--meta", action="append", help="Metadata KEY=VALUE (repeatable)")
    p.add_argument("--endpoint", help="Override settings.tracking.endpoint")
    p.set_defaults(func=_cmd_track)

    p = sub.add_parser("events", help="Show the newest stored events")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--store", help="Store JSON path (default: settings.store.path)")
    p.set_defaults(func=_cmd_events)

    p = sub.add_parser("serve", help="Run the web app")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=8000)
    p.add_argument("--reload", action="store_true")
    p.set_defaults(func=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return int(args.func(args))
    except ValueError as e:
        parser.error(str(e))
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
