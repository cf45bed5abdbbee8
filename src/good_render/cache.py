from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass, fields
from pathlib import Path

from .compiler import CompiledArtifact, Compiler, Renderer
from .errors import (
    CacheIOError,
    CompileError,
    CorruptArtifactError,
    GoodRenderError,
    InvalidArgumentError,
    TemplateNotFoundError,
)
from .locking import KeyedLocks, ReadWriteLock
from .partials import PartialRegistry
from .store import TemplateStore

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".json"


def remove_cache_dir(root: Path) -> bool:
    """Delete the artifact directory ``root``; ``False`` if it didn't exist."""
    if not root.exists():
        return False
    try:
        shutil.rmtree(root)
    except OSError as exc:
        raise CacheIOError(f"Can't remove cache dir '{root}'") from exc
    logger.info("Dropped persistent template cache at %s", root)
    return True


@dataclass
class CacheStats:
    """Counters describing where renderers came from."""

    memory_hits: int = 0
    disk_hits: int = 0
    compilations: int = 0
    writes: int = 0
    discarded: int = 0

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class MemoryTier:
    """Process-lifetime map of template name to loaded renderer."""

    def __init__(self, lock: ReadWriteLock | None = None):
        self._lock = lock or ReadWriteLock()
        self._renderers: dict[str, Renderer] = {}

    def get(self, name: str) -> Renderer | None:
        with self._lock.read():
            return self._renderers.get(name)

    def put(self, name: str, renderer: Renderer) -> None:
        with self._lock.write():
            self._renderers[name] = renderer

    def discard(self, name: str) -> bool:
        with self._lock.write():
            return self._renderers.pop(name, None) is not None

    def clear(self) -> None:
        with self._lock.write():
            self._renderers.clear()

    def names(self) -> list[str]:
        with self._lock.read():
            return sorted(self._renderers)

    def __contains__(self, name: object) -> bool:
        with self._lock.read():
            return name in self._renderers

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._renderers)


class ArtifactCache:
    """Two-tier cache of compiled renderers.

    Lookup order is memory tier, then the artifact file under ``root``, then a
    fresh compilation. A compilation writes the artifact atomically and then
    loads it back from disk, so whatever ends up in memory is exactly what the
    next process will read.

    Compilation of a given name is single-flight: concurrent misses for the
    same template wait on a per-name lock and pick up the artifact written by
    the first caller.
    """

    def __init__(
        self,
        root: Path | str,
        store: TemplateStore,
        registry: PartialRegistry,
        compiler: Compiler,
        memory: MemoryTier | None = None,
        use_memory_cache: bool = True,
    ):
        self.root = Path(root)
        self.store = store
        self.registry = registry
        self.compiler = compiler
        self.memory = memory if memory is not None else MemoryTier()
        self.use_memory_cache = use_memory_cache
        self.stats = CacheStats()
        self._stats_lock = threading.Lock()
        self._compile_locks = KeyedLocks()

    def __repr__(self) -> str:
        return (
            f"ArtifactCache(root={str(self.root)!r}, memory={len(self.memory)}, "
            f"use_memory_cache={self.use_memory_cache})"
        )

    def artifact_path(self, name: str) -> Path:
        """Deterministic artifact file for ``name``; directories mirror its segments."""
        if not name:
            raise InvalidArgumentError("Template name must not be empty")
        relative = name.replace("\\", "/").strip("/")
        path = self.root / f"{relative}{ARTIFACT_SUFFIX}"
        try:
            path.resolve().relative_to(self.root.resolve())
        except ValueError:
            raise TemplateNotFoundError(
                name, path, f"Template {name!r} escapes the cache root"
            ) from None
        return path

    def has_artifact(self, name: str) -> bool:
        return self.artifact_path(name).is_file()

    def get_renderer(self, name: str) -> Renderer:
        """Return a renderer for ``name``, compiling and persisting it on a full miss.

        Raises:
            TemplateNotFoundError: no cached artifact and no source for ``name``.
            CompileError: the compiler rejected the source.
            CacheIOError: the artifact couldn't be written.
        """
        if self.use_memory_cache:
            renderer = self.memory.get(name)
            if renderer is not None:
                self._count("memory_hits")
                return renderer

        path = self.artifact_path(name)
        with self._compile_locks.hold(name):
            if self.use_memory_cache:
                renderer = self.memory.get(name)
                if renderer is not None:
                    self._count("memory_hits")
                    return renderer

            renderer = self._load_cached(name, path)
            if renderer is not None:
                self._count("disk_hits")
                logger.debug("Loaded template %r from %s", name, path)
            else:
                artifact = self._compile(name)
                self._write(path, artifact)
                renderer = self._load(name, path)

            if self.use_memory_cache:
                self.memory.put(name, renderer)
            return renderer

    def compile_ephemeral(self, name: str) -> Renderer:
        """Compile ``name`` in-process, bypassing and leaving both tiers untouched."""
        artifact = self._compile(name)
        return self.compiler.load(artifact)

    def clear_memory(self) -> None:
        self.memory.clear()

    def drop_persistent(self) -> bool:
        """Delete the whole persistent tier, root included. Also clears memory."""
        self.memory.clear()
        return remove_cache_dir(self.root)

    def _compile(self, name: str) -> CompiledArtifact:
        source = self.store.resolve(name)
        partials = self.registry.snapshot()
        try:
            artifact = self.compiler.compile(source, partials, name=name)
        except GoodRenderError:
            raise
        except Exception as exc:
            raise CompileError(
                f"Can't compile template {name!r}: {exc}", name=name
            ) from exc
        self._count("compilations")
        logger.info("Compiled template %r", name)
        return artifact

    def _write(self, path: Path, artifact: CompiledArtifact) -> None:
        payload = self.compiler.dumps(artifact)
        directory = path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheIOError(
                f"Can't create dir '{directory}' to save template cache"
            ) from exc

        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "wb", dir=directory, prefix=f".{path.stem}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise CacheIOError(
                f"Can't save template {artifact.name!r} cache to '{path}'"
            ) from exc
        self._count("writes")

    def _read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheIOError(f"Can't read template cache '{path}'") from exc

    def _load(self, name: str, path: Path) -> Renderer:
        data = self._read(path)
        if data is None:
            raise CacheIOError(f"Template cache '{path}' disappeared after writing {name!r}")
        return self.compiler.load(self.compiler.loads(data))

    def _load_cached(self, name: str, path: Path) -> Renderer | None:
        """Load an existing artifact, discarding it if it can't be used."""
        data = self._read(path)
        if data is None:
            return None
        try:
            return self.compiler.load(self.compiler.loads(data))
        except CorruptArtifactError as exc:
            logger.warning("Discarding unusable artifact for %r at %s: %s", name, path, exc)
            self._count("discarded")
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as unlink_exc:
                raise CacheIOError(f"Can't remove corrupt cache file '{path}'") from unlink_exc
            return None

    def _count(self, counter: str) -> None:
        with self._stats_lock:
            setattr(self.stats, counter, getattr(self.stats, counter) + 1)


__all__ = ["ARTIFACT_SUFFIX", "ArtifactCache", "CacheStats", "MemoryTier", "remove_cache_dir"]
