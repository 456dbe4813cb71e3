"""
Per-visitor session identity.

A session id is an opaque random token that correlates events coming from the
same visitor without identifying them. It is created lazily on first access,
stored under a fixed key, and never changes afterwards.

Where it is stored is an injected capability (`SessionStorage`):
- `MemoryStorage`: one process, e.g. tests or a long-lived client object
- `FileStorage`: a small JSON file that survives restarts (the CLI's "browser profile")
- `NullStorage`: server-side contexts with no visitor storage; yields `""`,
  which callers treat as "do not track"
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

SESSION_KEY = "eatwithme_session"


class SessionStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...


class NullStorage:
    """No persistent visitor storage available."""

    def get(self, key: str) -> str | None:
        return None

    def set(self, key: str, value: str) -> None:
        return None


class MemoryStorage:
    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def clear(self) -> None:
        self._data.clear()


class FileStorage:
    """Key/value strings persisted in one JSON file."""

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError(f"{self._path} does not hold a JSON object")
        return {str(k): str(v) for k, v in raw.items()}

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)


class SessionIdProvider:
    """Read-or-create the visitor's session id in the given storage."""

    def __init__(self, storage: SessionStorage, *, key: str = SESSION_KEY):
        self._storage = storage
        self._key = key

    def get_session_id(self) -> str:
        """Return the stored token, creating it on first use.

        Returns `""` when the storage cannot keep a value (server context,
        unreadable file); never raises.
        """
        try:
            session_id = self._storage.get(self._key)
            if not session_id:
                session_id = str(uuid.uuid4())
                self._storage.set(self._key, session_id)
                # Storages that drop writes cannot correlate events.
                if self._storage.get(self._key) != session_id:
                    return ""
            return session_id
        except (OSError, ValueError) as exc:
            logger.debug("Session storage unavailable: %s", exc)
            return ""
