from __future__ import annotations

import bisect
import logging
from collections.abc import Iterator, Mapping
from enum import Enum

from .errors import InvalidArgumentError, TemplateNotFoundError
from .locking import ReadWriteLock
from .store import TemplateStore, normalize_name

logger = logging.getLogger(__name__)


class AddResult(str, Enum):
    """Outcome of :meth:`PartialRegistry.add`."""

    INSERTED = "inserted"
    ALREADY_PRESENT = "already_present"

    def __bool__(self) -> bool:
        return self is AddResult.INSERTED


class SortedMap:
    """Array-backed mapping that keeps its keys in ascending order.

    Lookups go through a dict; ordered iteration goes through a parallel key
    list maintained with :mod:`bisect`, so inserts and removals are O(n) and
    iteration never needs a sort.
    """

    __slots__ = ("_keys", "_values")

    def __init__(self) -> None:
        self._keys: list[str] = []
        self._values: dict[str, str] = {}

    def insert(self, key: str, value: str) -> bool:
        if key in self._values:
            return False
        bisect.insort(self._keys, key)
        self._values[key] = value
        return True

    def pop(self, key: str) -> bool:
        if key not in self._values:
            return False
        del self._values[key]
        index = bisect.bisect_left(self._keys, key)
        del self._keys[index]
        return True

    def clear(self) -> None:
        self._keys.clear()
        self._values.clear()

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def keys(self) -> list[str]:
        return list(self._keys)

    def items(self) -> list[tuple[str, str]]:
        return [(key, self._values[key]) for key in self._keys]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._keys)


class PartialsView(Mapping[str, str]):
    """Live, read-only view over a registry's partials in key order."""

    def __init__(self, registry: PartialRegistry):
        self._registry = registry

    def __getitem__(self, name: str) -> str:
        with self._registry._lock.read():
            value = self._registry._entries.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def __iter__(self) -> Iterator[str]:
        with self._registry._lock.read():
            keys = self._registry._entries.keys()
        return iter(keys)

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __repr__(self) -> str:
        return f"PartialsView({dict(self.items())!r})"


class PartialRegistry:
    """Named sub-templates handed to the compiler on every compilation.

    Partials are read from the template store when added and kept sorted by
    name so that the compiler always sees them in the same order. Reads may
    run concurrently; ``add``/``remove``/``clear`` are exclusive.

    Example:
        ```python
        registry = PartialRegistry(TemplateStore("templates"))
        registry.add("layout/header")          # AddResult.INSERTED
        registry.add("layout/header")          # AddResult.ALREADY_PRESENT
        registry.add_all("components")
        list(registry.all())                   # sorted names
        ```
    """

    def __init__(self, store: TemplateStore, lock: ReadWriteLock | None = None):
        self.store = store
        self._lock = lock or ReadWriteLock()
        self._entries = SortedMap()
        self._view = PartialsView(self)

    def add(self, name: str) -> AddResult:
        """Register ``name`` as a partial.

        Raises:
            InvalidArgumentError: ``name`` is empty.
            TemplateNotFoundError: the store has no such template.
        """
        if not name:
            raise InvalidArgumentError("Can't add partial without name")
        name = normalize_name(name)

        source = self.store.resolve(name)
        with self._lock.write():
            inserted = self._entries.insert(name, source)
        if not inserted:
            logger.debug("Partial %r already registered", name)
            return AddResult.ALREADY_PRESENT
        logger.debug("Registered partial %r", name)
        return AddResult.INSERTED

    def add_all(self, folder: str) -> list[str]:
        """Register every template found under ``folder``.

        Returns the names that were newly inserted.
        """
        if not folder:
            raise InvalidArgumentError("Can't add partials without folder name")
        if not self.store.folder_exists(folder):
            path = self.store.folder_path(folder)
            raise TemplateNotFoundError(
                folder, path, f"Can't add partials in {folder!r}, folder {path} does not exist"
            )

        inserted = []
        for name in self.store.list_all(folder):
            if not self.store.exists(name):
                logger.debug("Skipping non-template file %r in %r", name, folder)
                continue
            if self.add(name) is AddResult.INSERTED:
                inserted.append(name)
        logger.info("Registered %d partial(s) from %r", len(inserted), folder)
        return inserted

    def remove(self, name: str) -> bool:
        if name:
            name = normalize_name(name)
        with self._lock.write():
            removed = self._entries.pop(name)
        if removed:
            logger.debug("Removed partial %r", name)
        return removed

    def clear(self) -> None:
        with self._lock.write():
            self._entries.clear()

    def all(self) -> Mapping[str, str]:
        return self._view

    def snapshot(self) -> dict[str, str]:
        """Ordered copy of the current partials, safe to hand to a compiler."""
        with self._lock.read():
            return dict(self._entries.items())

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._entries

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._entries)

    def __repr__(self) -> str:
        return f"PartialRegistry({self._entries.keys()!r})"


__all__ = ["AddResult", "PartialRegistry", "PartialsView", "SortedMap"]
