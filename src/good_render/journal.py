from __future__ import annotations

import copy
import threading
from collections.abc import Mapping
from typing import Any

INDEX_KEY = "index"


class RenderDataJournal:
    """Data passed to indexed renders, kept for export to client-side code.

    Entries are keyed by template name and then by the value of the reserved
    ``index`` field. Each entry is a deep copy taken at render time, so later
    mutation of the caller's dict does not leak in.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, dict[Any, dict[str, Any]]] = {}

    def record(self, name: str, index: Any, data: Mapping[str, Any]) -> None:
        snapshot = copy.deepcopy(dict(data))
        with self._lock:
            self._entries.setdefault(name, {})[index] = snapshot

    def get(self, name: str) -> dict[Any, dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._entries.get(name, {}))

    def snapshot(self) -> dict[str, dict[Any, dict[str, Any]]]:
        with self._lock:
            return copy.deepcopy(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._entries

    def __len__(self) -> int:
        with self._lock:
            return sum(len(entries) for entries in self._entries.values())


__all__ = ["INDEX_KEY", "RenderDataJournal"]
