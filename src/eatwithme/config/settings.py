# src/eatwithme/config/settings.py
"""
Application settings (Pydantic).

Settings are loaded from `src/eatwithme/config/defaults.yaml`, then optionally overridden by:
- an external YAML file via `EATWITHME_CONFIG_PATH`
- environment variables (e.g., `EATWITHME_LOG_LEVEL`, `EATWITHME_STORE_PATH`)

Design rule:
- Tuning knobs (debounce window, cache bound, fallback ordering) live in YAML,
  not hard-coded in business logic.
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field

from eatwithme.core.env import load_dotenv_if_present


FallbackRule = Literal["offer_first", "name", "newest"]


def _read_package_yaml(filename: str) -> dict[str, Any]:
    """Read a YAML file packaged inside `eatwithme.config`."""
    text = resources.files("eatwithme.config").joinpath(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {filename}; expected a mapping.")
    return data


def _read_yaml_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML file from disk and return its mapping root."""
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid YAML root object for {path}; expected a mapping.")
    return data


class AppSettings(BaseModel):
    name: str = "EatWithMe"
    timezone: str = "Asia/Kolkata"
    log_level: str = "INFO"
    public_base_url: str = "https://eatwithme.app"


class StoreSettings(BaseModel):
    path: str | None = "data/eatwithme.json"


class TrackingSettings(BaseModel):
    endpoint: str = "http://127.0.0.1:8000/api/event/track"
    session_key: str = "eatwithme_session"
    session_file: str = ".cache/eatwithme/session.json"
    debounce_ms: int = Field(2000, ge=0)
    max_cache_entries: int = Field(100, ge=1)
    timeout_seconds: float = Field(5, gt=0)
    max_workers: int = Field(2, ge=1)


class DiscoverySettings(BaseModel):
    fallback_order: list[FallbackRule] = Field(default_factory=lambda: ["offer_first", "name"])
    recent_events_limit: int = Field(10, ge=1, le=100)


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    tracking: TrackingSettings = Field(default_factory=TrackingSettings)
    discovery: DiscoverySettings = Field(default_factory=DiscoverySettings)


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Overlay selected environment variables onto raw settings payload.

    Note: We intentionally keep this whitelist small.
    """
    load_dotenv_if_present()
    data = dict(data)

    log_level = os.getenv("EATWITHME_LOG_LEVEL")
    if log_level:
        data.setdefault("app", {})["log_level"] = log_level

    store_path = os.getenv("EATWITHME_STORE_PATH")
    if store_path:
        data.setdefault("store", {})["path"] = store_path

    endpoint = os.getenv("EATWITHME_TRACK_ENDPOINT")
    if endpoint:
        data.setdefault("tracking", {})["endpoint"] = endpoint

    return data


@lru_cache
def get_settings() -> Settings:
    """Load and validate settings (cached)."""
    load_dotenv_if_present()
    config_path = os.getenv("EATWITHME_CONFIG_PATH")
    raw = _read_yaml_file(config_path) if config_path else _read_package_yaml("defaults.yaml")
    raw = _apply_env_overrides(raw)
    return Settings.model_validate(raw)


@lru_cache
def get_logging_config() -> dict[str, Any]:
    """Load logging configuration (cached)."""
    return _read_package_yaml("logging.yaml")
