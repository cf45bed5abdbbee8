"""Typed configuration for the template cache.

The four layout options are ``templates_dir`` (template store root),
``cache_dir`` (persistent artifact tier root), ``cache_map_dir`` (directory
holding the invalidation ledger, which must not be ``cache_dir``) and
``templates_extension`` (file extension of template sources, ``hbs`` by
default). Everything else tunes the compiler and the memory tier.

Configuration can be built directly, read from a ``good-render.yaml`` file, or
overridden with ``GOOD_RENDER_*`` environment variables::

    config = RenderCacheConfig.load()  # discovers good-render.yaml upward from CWD
    config = RenderCacheConfig(templates_dir=Path("views"), cache_dir=Path("/tmp/views"))
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import CacheIOError, ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "good-render.yaml"
DEFAULT_TEMPLATES_DIR = Path("templates")
DEFAULT_CACHE_DIR = Path(".template-cache") / "artifacts"
DEFAULT_CACHE_MAP_DIR = Path(".template-cache")
DEFAULT_TEMPLATES_EXTENSION = "hbs"
DEFAULT_LEDGER_FILENAME = "map.json"

ENV_PREFIX = "GOOD_RENDER_"
_ENV_FIELDS = (
    "templates_dir",
    "cache_dir",
    "cache_map_dir",
    "templates_extension",
)
_PATH_FIELDS = ("templates_dir", "cache_dir", "cache_map_dir")


class RenderCacheConfig(BaseModel):
    """Layout and behaviour of a render pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    templates_dir: Path = Field(
        default_factory=lambda: Path.cwd() / DEFAULT_TEMPLATES_DIR,
        description="Root of the template store",
    )
    cache_dir: Path = Field(
        default_factory=lambda: Path.cwd() / DEFAULT_CACHE_DIR,
        description="Root of the persistent artifact tier",
    )
    cache_map_dir: Path = Field(
        default_factory=lambda: Path.cwd() / DEFAULT_CACHE_MAP_DIR,
        description="Directory holding the invalidation ledger; must differ from cache_dir",
    )
    templates_extension: str = Field(
        default=DEFAULT_TEMPLATES_EXTENSION,
        description="Extension of template source files, without the dot",
    )
    ledger_filename: str = Field(
        default=DEFAULT_LEDGER_FILENAME,
        description="File name of the invalidation ledger inside cache_map_dir",
    )
    use_memory_cache: bool = Field(
        default=True,
        description="Keep loaded renderers in process memory",
    )
    autoescape: bool = Field(
        default=True,
        description="HTML-escape interpolated values",
    )
    sandboxed: bool = Field(
        default=True,
        description="Compile templates inside a Jinja2 sandbox",
    )

    @field_validator("templates_extension")
    @classmethod
    def _strip_extension_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value:
            raise ValueError("templates_extension must not be empty")
        return value

    @field_validator("ledger_filename")
    @classmethod
    def _plain_filename(cls, value: str) -> str:
        if not value or Path(value).name != value:
            raise ValueError("ledger_filename must be a bare file name")
        return value

    @model_validator(mode="after")
    def _check_layout(self) -> RenderCacheConfig:
        if _same_path(self.cache_map_dir, self.cache_dir):
            raise ConfigurationError(
                f"cache_map_dir can't be the same as cache_dir ({self.cache_dir})"
            )
        return self

    @property
    def ledger_path(self) -> Path:
        return self.cache_map_dir / self.ledger_filename

    def ensure_directories(self) -> None:
        """Create any missing template, cache and ledger directories."""
        for label, directory in (
            ("template", self.templates_dir),
            ("cache", self.cache_dir),
            ("cache map", self.cache_map_dir),
        ):
            if directory.is_dir():
                continue
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise CacheIOError(
                    f"Can't create {label} dir '{directory}'"
                ) from exc
            logger.debug("Created %s directory %s", label, directory)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], base_dir: Path | None = None
    ) -> RenderCacheConfig:
        """Build a config from plain data, resolving relative paths against ``base_dir``."""
        values = dict(data)
        if base_dir is not None:
            for key in _PATH_FIELDS:
                if values.get(key) is not None:
                    path = Path(values[key]).expanduser()
                    values[key] = path if path.is_absolute() else base_dir / path
        return cls(**values)

    @classmethod
    def from_file(cls, path: Path | str) -> RenderCacheConfig:
        path = Path(path)
        try:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except OSError as exc:
            raise CacheIOError(f"Can't read config file '{path}'") from exc
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in config file '{path}': {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"Config file '{path}' must contain a mapping")
        return cls.from_mapping(raw, base_dir=path.parent)

    @classmethod
    def load(
        cls,
        path: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> RenderCacheConfig:
        """Load config from a file (explicit or discovered), then env, then overrides."""
        environ = os.environ if environ is None else environ
        data: dict[str, Any] = {}
        base_dir: Path | None = None

        config_file = Path(path) if path is not None else find_config_file()
        if config_file is not None:
            base = cls.from_file(config_file)
            data.update(base.model_dump())
            base_dir = config_file.parent
            logger.debug("Loaded render config from %s", config_file)

        for key in _ENV_FIELDS:
            value = environ.get(f"{ENV_PREFIX}{key.upper()}")
            if value:
                data[key] = value

        data.update({key: value for key, value in overrides.items() if value is not None})
        return cls.from_mapping(data, base_dir=base_dir or Path.cwd())


def find_config_file(start: Path | None = None) -> Path | None:
    """Find good-render.yaml in ``start`` (default CWD) or any parent."""
    current = start or Path.cwd()
    for directory in [current] + list(current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def _same_path(a: Path, b: Path) -> bool:
    return a.expanduser().resolve() == b.expanduser().resolve()


__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TEMPLATES_EXTENSION",
    "DEFAULT_LEDGER_FILENAME",
    "RenderCacheConfig",
    "find_config_file",
]
