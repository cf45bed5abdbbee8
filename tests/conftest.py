import logging
import os
from collections.abc import Mapping
from pathlib import Path

import pytest

from good_render import (
    CompiledArtifact,
    Jinja2Compiler,
    RenderCacheConfig,
    RenderPipeline,
)

logging.getLogger("good_render").setLevel(logging.DEBUG)


class CountingCompiler(Jinja2Compiler):
    """Jinja2 compiler that records every compile call."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.compiled: list[str | None] = []
        self.seen_partials: list[dict[str, str]] = []

    @property
    def calls(self) -> int:
        return len(self.compiled)

    def compile(
        self, source: str, partials: Mapping[str, str], name: str | None = None
    ) -> CompiledArtifact:
        self.compiled.append(name)
        self.seen_partials.append(dict(partials))
        return super().compile(source, partials, name=name)


@pytest.fixture
def templates_dir(tmp_path: Path) -> Path:
    path = tmp_path / "templates"
    path.mkdir()
    return path


@pytest.fixture
def write_template(templates_dir: Path):
    """Write ``name`` (e.g. ``"emails/welcome"``) under the template root."""

    def _write(name: str, source: str, extension: str = "hbs", mtime: int | None = None) -> Path:
        path = templates_dir / f"{name}.{extension}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        if mtime is not None:
            os.utime(path, (mtime, mtime))
        return path

    return _write


@pytest.fixture
def config(tmp_path: Path, templates_dir: Path) -> RenderCacheConfig:
    return RenderCacheConfig(
        templates_dir=templates_dir,
        cache_dir=tmp_path / "cache" / "artifacts",
        cache_map_dir=tmp_path / "cache",
    )


@pytest.fixture
def compiler() -> CountingCompiler:
    return CountingCompiler()


@pytest.fixture
def pipeline(config: RenderCacheConfig, compiler: CountingCompiler) -> RenderPipeline:
    pipeline = RenderPipeline(config, compiler=compiler)
    pipeline.initialize()
    return pipeline


@pytest.fixture(autouse=True)
def _isolate_package_logger():
    """Restore the package logger's handlers and level after each test."""
    logger = logging.getLogger("good_render")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
