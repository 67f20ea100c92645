"""Bounded, content-keyed memoization for computed totals."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from .models import Project

logger = logging.getLogger(__name__)


def fingerprint(project: Project) -> str:
    """Stable hash of everything that affects totals and payments."""
    payload = project.model_dump_json(include={"categories", "settings"})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class TotalsCache:
    """
    Owned by the caller and passed into the entry points.

    Keys are content fingerprints, so an edited project can never be served
    a stale entry. When full, the whole cache is cleared.
    """

    def __init__(self, max_entries: int = 1000):
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self._entries: dict[tuple[str, str], Any] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, kind: str, key: str) -> Any | None:
        value = self._entries.get((kind, key))
        if value is None:
            self.misses += 1
            logger.debug("cache miss %s %s", kind, key[:12])
            return None
        self.hits += 1
        logger.debug("cache hit %s %s", kind, key[:12])
        return value.model_copy(deep=True)

    def put(self, kind: str, key: str, value: Any) -> None:
        if len(self._entries) >= self.max_entries and (kind, key) not in self._entries:
            logger.debug("cache full (%d entries), clearing", len(self._entries))
            self._entries.clear()
        self._entries[(kind, key)] = value.model_copy(deep=True)

    def invalidate(self, project: Project) -> None:
        # keys may carry a suffix (e.g. the limits digest) after "|"
        key = fingerprint(project)
        for entry in [k for k in self._entries if k[1].split("|")[0] == key]:
            del self._entries[entry]

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, Any]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "size": len(self._entries),
            "hit_rate": round(self.hits / total * 100, 2) if total else 0.0,
        }
