"""
Project-root and `.env` helpers.

The API, the CLI and the seed script may start from any working directory.
Relative paths in settings (`data/eatwithme.json`, the session file) are
resolved against the project root found here, and a repo-local `.env` is
loaded once without overriding variables already set in the process.

Overrides:
- `EATWITHME_PROJECT_ROOT`: use this directory as the root
- `EATWITHME_ENV_FILE`: load this env file (its directory becomes the root)
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_ROOT_MARKERS = (".env", ".git")


def _is_project_root(path: Path) -> bool:
    if any((path / marker).exists() for marker in _ROOT_MARKERS):
        return True
    return (path / "pyproject.toml").is_file() and (path / "src").is_dir()


def _search_up(start: Path) -> Path | None:
    start = start.resolve()
    return next((p for p in (start, *start.parents) if _is_project_root(p)), None)


def _explicit_env_file() -> Path | None:
    raw = os.getenv("EATWITHME_ENV_FILE")
    return Path(raw).expanduser().resolve() if raw else None


@lru_cache
def get_project_root() -> Path:
    """Return the project root directory (cached)."""
    override = os.getenv("EATWITHME_PROJECT_ROOT")
    if override:
        return Path(override).expanduser().resolve()

    env_file = _explicit_env_file()
    if env_file is not None:
        return env_file.parent

    # cwd first, then the installed package location
    return _search_up(Path.cwd()) or _search_up(Path(__file__).parent) or Path.cwd().resolve()


@lru_cache
def load_dotenv_if_present() -> Path | None:
    """Load the env file once; return its path, or None when there is none."""
    env_path = _explicit_env_file() or get_project_root() / ".env"
    if not env_path.is_file():
        return None
    load_dotenv(dotenv_path=env_path, override=False)
    return env_path


def resolve_project_path(path: str | Path) -> Path:
    """Resolve a possibly-relative path against the project root."""
    p = Path(path).expanduser()
    if p.is_absolute():
        return p
    return (get_project_root() / p).resolve()
