import json
import threading
from collections import defaultdict
from typing import Any, Callable

from omnitutor.config import settings
from omnitutor.database import KeyValueStore

# Per-course collections, each persisted under its own key.
COURSE_COLLECTIONS = (
    "sessions",
    "active_session",
    "materials",
    "folders",
    "synthesis",
    "chat",  # legacy single-transcript layout
)


class StorageService:
    """JSON documents on top of a ``KeyValueStore``.

    Every collection mutation goes through :meth:`update`, which re-reads the
    stored value and applies ``fn`` to it under a per-key lock.  Flows that
    resume after an ``await`` therefore always build on the latest snapshot.
    """

    def __init__(self, kv: KeyValueStore, prefix: str | None = None) -> None:
        self.kv = kv
        self.prefix = prefix or settings.storage_prefix
        self._locks: defaultdict[str, threading.RLock] = defaultdict(threading.RLock)

    # ------------------------------------------------------------------
    # Key layout
    # ------------------------------------------------------------------
    def global_key(self, name: str) -> str:
        return f"{self.prefix}_{name}"

    def course_key(self, collection: str, course_id: str) -> str:
        return f"{self.prefix}_{collection}_{course_id}"

    # ------------------------------------------------------------------
    # Raw values
    # ------------------------------------------------------------------
    def read_text(self, key: str, default: str = "") -> str:
        value = self.kv.get(key)
        return default if value is None else value

    def write_text(self, key: str, text: str) -> None:
        self.kv.set(key, text)

    def read_json(self, key: str, default: Any = None) -> Any:
        raw = self.kv.get(key)
        if raw is None:
            return default
        return json.loads(raw)

    def write_json(self, key: str, data: dict | list) -> None:
        self.kv.set(key, json.dumps(data))

    def exists(self, key: str) -> bool:
        return self.kv.get(key) is not None

    def remove(self, key: str) -> None:
        self.kv.delete(key)

    # ------------------------------------------------------------------
    # Read-modify-write
    # ------------------------------------------------------------------
    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Apply ``fn`` to the current JSON value of ``key`` and store the result.

        ``fn`` may raise to abort the write; the stored value is then untouched.
        Returns the new value.
        """
        with self._locks[key]:
            current = self.read_json(key, default)
            updated = fn(current)
            self.write_json(key, updated)
            return updated

    def lock(self, key: str) -> threading.RLock:
        """Lock guarding ``key``; hold it to update several keys atomically."""
        return self._locks[key]

    def drop_course(self, course_id: str) -> None:
        """Release every per-course entry."""
        for collection in COURSE_COLLECTIONS:
            self.kv.delete(self.course_key(collection, course_id))
