"""Template compiler: turns a source plus partials into a persistable artifact.

The cache never stores generated code. A :class:`CompiledArtifact` is plain
data (the validated source, the partial sources it was compiled against and a
checksum) serialized with orjson. :meth:`Jinja2Compiler.load` rehydrates it into
a :class:`Renderer` by building a Jinja2 template over an in-memory loader.
"""

from __future__ import annotations

import datetime
import hashlib
import logging
from collections.abc import Callable, Mapping
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Protocol, runtime_checkable

import orjson
from jinja2 import (
    DictLoader,
    Environment,
    TemplateError,
    TemplateSyntaxError,
    meta,
    nodes,
)
from jinja2.sandbox import SandboxedEnvironment
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CompileError, CorruptArtifactError, RenderError

logger = logging.getLogger(__name__)

ARTIFACT_FORMAT_VERSION = 1


def _jinja_version() -> str:
    try:
        return version("jinja2")
    except PackageNotFoundError:
        return "unknown"


def compute_checksum(source: str, partials: Mapping[str, str]) -> str:
    payload = orjson.dumps(
        {"source": source, "partials": dict(partials)},
        option=orjson.OPT_SORT_KEYS,
    )
    return hashlib.sha256(payload).hexdigest()


class CompiledArtifact(BaseModel):
    """Serializable result of a successful compilation."""

    model_config = ConfigDict(frozen=True)

    format_version: int = ARTIFACT_FORMAT_VERSION
    name: str | None = None
    compiler: str = "jinja2"
    compiler_version: str = Field(default_factory=_jinja_version)
    source: str
    partials: dict[str, str] = Field(default_factory=dict)
    checksum: str
    compiled_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def verify(self) -> bool:
        return self.checksum == compute_checksum(self.source, self.partials)


@runtime_checkable
class Renderer(Protocol):
    name: str | None

    def __call__(self, data: Mapping[str, Any] | None = None) -> str: ...


@runtime_checkable
class Compiler(Protocol):
    """What the cache needs from a template compiler."""

    def compile(
        self, source: str, partials: Mapping[str, str], name: str | None = None
    ) -> CompiledArtifact: ...

    def load(self, artifact: CompiledArtifact) -> Renderer: ...

    def dumps(self, artifact: CompiledArtifact) -> bytes: ...

    def loads(self, data: bytes) -> CompiledArtifact: ...


class JinjaRenderer:
    """Callable wrapper around a Jinja2 template."""

    def __init__(self, template: Any, name: str | None = None):
        self._template = template
        self.name = name

    def __call__(self, data: Mapping[str, Any] | None = None) -> str:
        try:
            return self._template.render(dict(data or {}))
        except TemplateError as exc:
            raise RenderError(f"Failed to render template {self.name!r}: {exc}") from exc
        except Exception as exc:
            raise RenderError(
                f"Template {self.name!r} raised {type(exc).__name__} while rendering: {exc}"
            ) from exc

    def __repr__(self) -> str:
        return f"JinjaRenderer(name={self.name!r})"


def create_environment(
    partials: Mapping[str, str] | None = None,
    use_sandbox: bool = True,
    autoescape: bool = True,
    keep_trailing_newline: bool = True,
    additional_filters: dict[str, Callable] | None = None,
    additional_globals: dict[str, Any] | None = None,
) -> Environment:
    """Create a Jinja2 environment whose loader serves ``partials`` by name."""
    env_cls = SandboxedEnvironment if use_sandbox else Environment
    env = env_cls(
        loader=DictLoader(dict(partials or {})),
        autoescape=autoescape,
        keep_trailing_newline=keep_trailing_newline,
    )
    if additional_filters:
        env.filters.update(additional_filters)
    if additional_globals:
        env.globals.update(additional_globals)
    return env


class Jinja2Compiler:
    """Compile templates with Jinja2.

    ``compile`` parses and code-generates the source to surface syntax errors,
    and checks that every statically referenced template (``include``,
    ``import``, ``extends``) is present in the partials, recursively. Dynamic
    references (``{% include some_var %}``) can only fail at render time.
    """

    name = "jinja2"

    def __init__(
        self,
        use_sandbox: bool = True,
        autoescape: bool = True,
        keep_trailing_newline: bool = True,
        filters: dict[str, Callable] | None = None,
        globals: dict[str, Any] | None = None,
    ):
        self.use_sandbox = use_sandbox
        self.autoescape = autoescape
        self.keep_trailing_newline = keep_trailing_newline
        self.filters = dict(filters or {})
        self.globals = dict(globals or {})

    def environment(self, partials: Mapping[str, str] | None = None) -> Environment:
        return create_environment(
            partials,
            use_sandbox=self.use_sandbox,
            autoescape=self.autoescape,
            keep_trailing_newline=self.keep_trailing_newline,
            additional_filters=self.filters,
            additional_globals=self.globals,
        )

    def compile(
        self, source: str, partials: Mapping[str, str], name: str | None = None
    ) -> CompiledArtifact:
        partials = dict(partials)
        env = self.environment(partials)

        self._check(env, source, name, partials, seen=set())

        artifact = CompiledArtifact(
            name=name,
            compiler=self.name,
            source=source,
            partials=partials,
            checksum=compute_checksum(source, partials),
        )
        logger.debug("Compiled template %r against %d partial(s)", name, len(partials))
        return artifact

    def _check(
        self,
        env: Environment,
        source: str,
        name: str | None,
        partials: Mapping[str, str],
        seen: set[str],
    ) -> None:
        try:
            ast = env.parse(source, name=name)
            env.compile(ast, name=name)
        except TemplateSyntaxError as exc:
            where = f" (line {exc.lineno})" if exc.lineno else ""
            raise CompileError(
                f"Can't compile template {exc.name or name!r}{where}: {exc.message}",
                name=exc.name or name,
                lineno=exc.lineno,
            ) from exc
        except TemplateError as exc:
            raise CompileError(f"Can't compile template {name!r}: {exc}", name=name) from exc

        for reference in _referenced_templates(ast):
            if reference in seen:
                continue
            if reference not in partials:
                raise CompileError(
                    f"Template {name!r} references unknown partial {reference!r}",
                    name=name,
                )
            seen.add(reference)
            self._check(env, partials[reference], reference, partials, seen)

    def load(self, artifact: CompiledArtifact) -> JinjaRenderer:
        if artifact.compiler != self.name:
            raise CorruptArtifactError(
                f"Artifact {artifact.name!r} was built by {artifact.compiler!r}, not {self.name!r}"
            )
        if not artifact.verify():
            raise CorruptArtifactError(f"Artifact {artifact.name!r} failed checksum verification")
        env = self.environment(artifact.partials)
        try:
            template = env.from_string(artifact.source)
        except TemplateError as exc:
            raise CorruptArtifactError(f"Artifact {artifact.name!r} can't be loaded: {exc}") from exc
        return JinjaRenderer(template, name=artifact.name)

    def dumps(self, artifact: CompiledArtifact) -> bytes:
        return orjson.dumps(artifact.model_dump(mode="json"))

    def loads(self, data: bytes) -> CompiledArtifact:
        try:
            artifact = CompiledArtifact.model_validate(orjson.loads(data))
        except (orjson.JSONDecodeError, ValidationError) as exc:
            raise CorruptArtifactError(f"Can't decode artifact: {exc}") from exc
        if artifact.format_version != ARTIFACT_FORMAT_VERSION:
            raise CorruptArtifactError(
                f"Unsupported artifact format {artifact.format_version}"
            )
        return artifact


def _referenced_templates(ast: nodes.Template) -> list[str]:
    return [ref for ref in meta.find_referenced_templates(ast) if ref is not None]


__all__ = [
    "ARTIFACT_FORMAT_VERSION",
    "CompiledArtifact",
    "Compiler",
    "Jinja2Compiler",
    "JinjaRenderer",
    "Renderer",
    "compute_checksum",
    "create_environment",
]
