from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from eatwithme.core.env import resolve_project_path
from eatwithme.core.geo import distance_km
from eatwithme.domain import validation
from eatwithme.domain.models import Influencer, Place, PlaceInput, Recommendation
from eatwithme.store.json_store import JsonStore


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _find_place(store: JsonStore, place_in: PlaceInput, lat: float, lon: float, radius_m: float) -> Place | None:
    if place_in.google_place_id:
        found = store.find_place_by_google_id(place_in.google_place_id)
        if found is not None:
            return found
    found = store.find_place_by_name_city(place_in.name or "", place_in.city or "")
    if found is not None:
        return found
    if radius_m <= 0:
        return None
    # Same name within a few meters: a re-entered pin for the same place.
    name = (place_in.name or "").strip().casefold()
    for p in store.list_places():
        if p.name.strip().casefold() != name:
            continue
        if distance_km(lat, lon, p.latitude, p.longitude) * 1000 <= radius_m:
            return p
    return None


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Import influencers, places and recommendations from a seed JSON file.")
    p.add_argument("--store", type=str, default="data/eatwithme.json")
    p.add_argument("--in-json", type=str, required=True)
    p.add_argument(
        "--dedupe-radius-m",
        type=float,
        default=40.0,
        help="Reuse an existing place with the same name within this radius (0 disables).",
    )
    args = p.parse_args(argv)

    store = JsonStore(resolve_project_path(args.store))
    payload = _read_json(resolve_project_path(args.in_json))
    if not isinstance(payload, dict):
        raise SystemExit("Unsupported JSON shape: expected an object with 'influencers' and 'recommendations'.")

    added_influencers = 0
    added_places = 0
    added_recs = 0
    bad = 0

    for row in payload.get("influencers") or []:
        try:
            username = validation.clean_username(str(row.get("username") or ""))
            display_name = validation.clean_display_name(row.get("display_name"))
        except ValueError as e:
            print("Skipping influencer:", row.get("username"), "-", e)
            bad += 1
            continue
        if store.get_influencer_by_username(username) is not None:
            continue
        store.add_influencer(
            Influencer(
                auth_id=str(row.get("auth_id") or f"seed:{username}"),
                username=username,
                display_name=display_name,
                bio=validation.clean_optional(row.get("bio")),
                instagram=validation.clean_instagram(row.get("instagram")),
                youtube=validation.clean_youtube(row.get("youtube")),
            )
        )
        added_influencers += 1

    for row in payload.get("recommendations") or []:
        influencer = store.get_influencer_by_username(str(row.get("username") or "").strip().lower())
        if influencer is None:
            bad += 1
            continue
        place_in = PlaceInput.model_validate(row.get("place") or {})
        try:
            validation.require_place_fields(place_in)
            lat, lon = validation.parse_coordinates(place_in)
            dishes = validation.require_dishes([str(d).strip() for d in row.get("dishes") or [] if str(d).strip()])
        except ValueError as e:
            print("Skipping recommendation at", place_in.name, "-", e)
            bad += 1
            continue

        place = _find_place(store, place_in, lat, lon, float(args.dedupe_radius_m))
        if place is None:
            place = store.add_place(
                Place(
                    name=place_in.name,
                    address=place_in.address,
                    area=place_in.area or None,
                    city=place_in.city,
                    latitude=lat,
                    longitude=lon,
                    location_notes=place_in.location_notes or None,
                    category=place_in.category or "restaurant",
                    google_place_id=place_in.google_place_id or None,
                )
            )
            added_places += 1

        store.add_recommendation(
            Recommendation(
                influencer_id=influencer.id,
                place_id=place.id,
                dishes=dishes,
                video_url=row.get("video_url") or None,
                is_sponsored=bool(row.get("is_sponsored")),
                has_offer=bool(row.get("has_offer")),
                offer_details=row.get("offer_details") or None,
                notes=row.get("notes") or None,
            )
        )
        added_recs += 1

    print("Wrote store:", store.path)
    print("Influencers:", added_influencers, "Places:", added_places, "Recommendations:", added_recs, "Bad:", bad)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
