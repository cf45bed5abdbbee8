from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .cache import ArtifactCache, MemoryTier
from .compiler import Compiler, Jinja2Compiler, Renderer
from .config import RenderCacheConfig
from .errors import InvalidArgumentError, RenderError
from .journal import INDEX_KEY, RenderDataJournal
from .ledger import InvalidationLedger, LedgerCheckResult
from .partials import AddResult, PartialRegistry
from .store import TemplateStore

logger = logging.getLogger(__name__)


@dataclass
class RenderState:
    """Mutable state owned by one pipeline: partials, loaded renderers, render data."""

    registry: PartialRegistry
    memory: MemoryTier = field(default_factory=MemoryTier)
    journal: RenderDataJournal = field(default_factory=RenderDataJournal)

    @classmethod
    def create(cls, store: TemplateStore) -> RenderState:
        return cls(registry=PartialRegistry(store))


class RenderPipeline:
    """Render named templates through the compiled-template cache.

    PURPOSE: Front door of the package. Wires a template store, partial
    registry, two-tier artifact cache and invalidation ledger together from a
    single :class:`RenderCacheConfig`.

    LIFECYCLE:
    1. Construct with a config (and optionally a custom compiler)
    2. ``initialize()`` once at startup: creates directories and runs the
       ledger check, dropping stale artifacts
    3. Register partials with ``add_partial`` / ``add_partials``
    4. ``render(name, data)`` as often as needed

    USAGE:
    ```python
    pipeline = create_pipeline(RenderCacheConfig(templates_dir=Path("views")))
    pipeline.add_partials("components")
    html = pipeline.render("pages/home", {"user": user, "index": 0})
    ```

    Partials are baked into an artifact when it is compiled. Registering a
    partial after a template has been cached does not affect that template
    until its artifact is dropped.
    """

    def __init__(
        self,
        config: RenderCacheConfig | None = None,
        compiler: Compiler | None = None,
        state: RenderState | None = None,
    ):
        self.config = config or RenderCacheConfig()
        self.store = TemplateStore(self.config.templates_dir, self.config.templates_extension)
        self.compiler: Compiler = compiler or Jinja2Compiler(
            use_sandbox=self.config.sandboxed,
            autoescape=self.config.autoescape,
        )
        self.state = state or RenderState.create(self.store)
        self.cache = ArtifactCache(
            self.config.cache_dir,
            self.store,
            self.state.registry,
            self.compiler,
            memory=self.state.memory,
            use_memory_cache=self.config.use_memory_cache,
        )
        self.ledger = InvalidationLedger(
            self.config.ledger_path, self.config.cache_dir, self.store
        )
        self.initialized = False

    def __repr__(self) -> str:
        return (
            f"RenderPipeline(templates_dir={str(self.config.templates_dir)!r}, "
            f"cache_dir={str(self.config.cache_dir)!r}, partials={len(self.state.registry)})"
        )

    def initialize(self) -> LedgerCheckResult:
        """Create missing directories and drop the artifact tier if templates changed.

        Must run before render traffic starts. Raises ``ConfigurationError``
        before touching the filesystem if the ledger lives inside the cache.
        """
        self.ledger.validate()
        self.config.ensure_directories()
        result = self.check_cache()
        self.initialized = True
        return result

    def check_cache(self) -> LedgerCheckResult:
        """Run the ledger check again; not safe while renders are in flight."""
        result = self.ledger.check()
        if result.dropped:
            self.cache.clear_memory()
        return result

    # Rendering

    def render(
        self,
        name: str,
        data: Mapping[str, Any] | None = None,
        use_cache: bool = True,
    ) -> str:
        """Render template ``name`` with ``data``.

        Args:
            name: Template name, e.g. ``"emails/welcome"``.
            data: Template variables. If it has a non-null ``index`` (``str`` or
                ``int``), a copy is recorded in the render-data journal for
                client export.
            use_cache: ``False`` compiles in-process without touching either
                cache tier. Meant for debugging.

        Raises:
            InvalidArgumentError: ``name`` is empty, or ``index`` is neither a
                string nor an integer.
            TemplateNotFoundError: the template doesn't exist.
            CompileError: the template failed to compile.
            RenderError: no renderer could be obtained, or rendering failed.
        """
        if not name:
            raise InvalidArgumentError("Can't render template. Template name empty")
        data = {} if data is None else data
        index = data.get(INDEX_KEY)
        if index is not None and (isinstance(index, bool) or not isinstance(index, str | int)):
            raise InvalidArgumentError(
                f"Can't render template {name!r}. {INDEX_KEY!r} must be a string or "
                f"an integer, got {type(index).__name__}"
            )

        renderer = self.get_renderer(name, use_cache=use_cache)
        if renderer is None or not callable(renderer):
            raise RenderError(f"Can't render template {name!r}. Renderer not available")

        if index is not None:
            self.state.journal.record(name, index, data)

        return renderer(data)

    def get_renderer(self, name: str, use_cache: bool = True) -> Renderer:
        if use_cache:
            return self.cache.get_renderer(name)
        logger.debug("Compiling %r without cache", name)
        return self.cache.compile_ephemeral(name)

    def get_template(self, name: str) -> str:
        """Raw source of ``name``, e.g. for client-side rendering."""
        return self.store.resolve(name)

    def use_memory_cache(self, enabled: bool = True) -> None:
        """Toggle the memory tier. Disabling it also empties it."""
        self.cache.use_memory_cache = bool(enabled)
        if not enabled:
            self.cache.clear_memory()

    # Partials

    @property
    def partials(self) -> Mapping[str, str]:
        return self.state.registry.all()

    def add_partial(self, name: str) -> AddResult:
        return self.state.registry.add(name)

    def add_partials(self, folder: str) -> list[str]:
        return self.state.registry.add_all(folder)

    def remove_partial(self, name: str) -> bool:
        return self.state.registry.remove(name)

    def clear_partials(self) -> None:
        self.state.registry.clear()

    # Export

    @property
    def journal(self) -> RenderDataJournal:
        return self.state.journal

    def render_data(self) -> dict[str, dict[Any, dict[str, Any]]]:
        return self.state.journal.snapshot()

    def export_templates(self) -> str:
        from .export import export_templates

        return export_templates(self)


def create_pipeline(
    config: RenderCacheConfig | None = None,
    compiler: Compiler | None = None,
) -> RenderPipeline:
    """Build a pipeline and run its startup check."""
    pipeline = RenderPipeline(config, compiler=compiler)
    pipeline.initialize()
    return pipeline


__all__ = ["RenderPipeline", "RenderState", "create_pipeline"]
