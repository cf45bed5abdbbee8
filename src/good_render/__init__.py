"""good_render - compiled-template cache.

Templates are compiled once, persisted as artifacts and served from memory and
disk across render calls. A ledger of template modification times drops the
persisted artifacts when any source is edited.
"""

import logging

from .cache import ArtifactCache, CacheStats, MemoryTier
from .compiler import CompiledArtifact, Compiler, Jinja2Compiler, JinjaRenderer, Renderer
from .config import RenderCacheConfig, find_config_file
from .errors import (
    CacheIOError,
    CompileError,
    ConfigurationError,
    CorruptArtifactError,
    GoodRenderError,
    InvalidArgumentError,
    RenderError,
    TemplateNotFoundError,
)
from .journal import RenderDataJournal
from .ledger import InvalidationLedger, LedgerCheckResult
from .partials import AddResult, PartialRegistry
from .pipeline import RenderPipeline, RenderState, create_pipeline
from .store import TemplateStore

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    # Pipeline
    "RenderPipeline",
    "RenderState",
    "create_pipeline",
    # Components
    "TemplateStore",
    "PartialRegistry",
    "AddResult",
    "ArtifactCache",
    "MemoryTier",
    "CacheStats",
    "InvalidationLedger",
    "LedgerCheckResult",
    "RenderDataJournal",
    # Compiler
    "Compiler",
    "CompiledArtifact",
    "Jinja2Compiler",
    "JinjaRenderer",
    "Renderer",
    # Config
    "RenderCacheConfig",
    "find_config_file",
    # Errors
    "GoodRenderError",
    "InvalidArgumentError",
    "TemplateNotFoundError",
    "CompileError",
    "CacheIOError",
    "ConfigurationError",
    "CorruptArtifactError",
    "RenderError",
]
