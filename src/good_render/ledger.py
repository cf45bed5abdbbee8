"""Startup staleness check for the persistent artifact tier.

The ledger is a JSON file mapping every template name to the modification time
(whole seconds) it had when the ledger was last written::

    {
      "emails/welcome": 1718031240,
      "layout/header": 1718031199
    }

On :meth:`InvalidationLedger.check` the stored map is compared with the live
template tree. If any template known to both has a newer mtime on disk, the
whole artifact tier is deleted; artifacts compiled against an edited partial
would otherwise survive. Templates that are new since the last check, or have
been deleted, do not trigger a drop: new ones compile on first use and deleted
ones are never requested. The fresh map is then written back unconditionally.

The check deletes directories that render calls read from, so run it before
serving traffic, not alongside it.
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import orjson

from .cache import remove_cache_dir
from .errors import CacheIOError, ConfigurationError
from .store import TemplateStore

logger = logging.getLogger(__name__)

ModificationMap = dict[str, int]


@dataclass
class LedgerCheckResult:
    """Outcome of one ledger check."""

    stale: bool
    dropped: bool
    changed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modification_map: ModificationMap = field(default_factory=dict)


class InvalidationLedger:
    def __init__(self, path: Path | str, cache_root: Path | str, store: TemplateStore):
        self.path = Path(path)
        self.cache_root = Path(cache_root)
        self.store = store

    def __repr__(self) -> str:
        return f"InvalidationLedger(path={str(self.path)!r}, cache_root={str(self.cache_root)!r})"

    def validate(self) -> None:
        """Refuse a ledger that lives inside the directory it may delete."""
        ledger = self.path.expanduser().resolve()
        cache_root = self.cache_root.expanduser().resolve()
        if ledger == cache_root or ledger.is_relative_to(cache_root):
            raise ConfigurationError(
                f"Cache map file '{self.path}' can't be placed in cache directory "
                f"'{self.cache_root}', specify any other place."
            )

    def load(self) -> ModificationMap:
        """Read the stored map; a missing, unreadable or malformed file is empty."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("Can't read template cache map %s: %s", self.path, exc)
            return {}

        try:
            data = orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            logger.warning("Ignoring corrupt template cache map %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring template cache map %s: not a JSON object", self.path)
            return {}

        result: ModificationMap = {}
        for name, value in data.items():
            if isinstance(value, bool) or not isinstance(value, int | float):
                logger.warning("Ignoring bad timestamp for %r in %s", name, self.path)
                continue
            result[str(name)] = int(value)
        return result

    def scan(self) -> ModificationMap:
        """Build a fresh map from the live template tree."""
        return dict(self.store.modification_times())

    def save(self, modification_map: ModificationMap) -> None:
        payload = orjson.dumps(
            modification_map, option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS
        )
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", dir=directory, prefix=f".{self.path.name}.", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheIOError(f"Can't write template cache map '{self.path}'") from exc

    def check(self) -> LedgerCheckResult:
        """Compare, drop the artifact tier if anything was edited, persist the fresh map."""
        self.validate()

        previous = self.load()
        current = self.scan()

        changed = sorted(
            name
            for name, mtime in current.items()
            if name in previous and previous[name] < mtime
        )
        added = sorted(set(current) - set(previous))
        removed = sorted(set(previous) - set(current))
        stale = bool(changed)

        dropped = False
        if stale:
            logger.info(
                "Template(s) changed since last run (%s); dropping cache at %s",
                ", ".join(changed),
                self.cache_root,
            )
            dropped = remove_cache_dir(self.cache_root)

        self.save(current)
        logger.debug(
            "Template cache map written to %s (%d templates)", self.path, len(current)
        )
        return LedgerCheckResult(
            stale=stale,
            dropped=dropped,
            changed=changed,
            added=added,
            removed=removed,
            modification_map=current,
        )


__all__ = ["InvalidationLedger", "LedgerCheckResult", "ModificationMap"]
