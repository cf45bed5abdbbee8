"""Exception hierarchy for good_render.

Every failure surfaced by the store, registry, cache, ledger and pipeline is a
``GoodRenderError``. Subclasses also inherit from the closest builtin so that
callers catching ``ValueError`` / ``LookupError`` / ``OSError`` keep working.
"""


class GoodRenderError(Exception):
    """Base class for all good_render errors."""


class InvalidArgumentError(GoodRenderError, ValueError):
    """A required argument (template name, folder name) was empty or missing."""


class TemplateNotFoundError(GoodRenderError, LookupError):
    """A template or template folder does not exist in the store."""

    def __init__(self, name: str, path: object | None = None, message: str | None = None):
        self.name = name
        self.path = path
        if message is None:
            message = f"Template {name!r} not found"
            if path is not None:
                message += f" at {path}"
        super().__init__(message)


class CompileError(GoodRenderError):
    """The compiler rejected a template source."""

    def __init__(self, message: str, name: str | None = None, lineno: int | None = None):
        self.name = name
        self.lineno = lineno
        super().__init__(message)


class CacheIOError(GoodRenderError, OSError):
    """Creating, reading or writing a cache directory or file failed."""


class ConfigurationError(GoodRenderError):
    """The cache layout is invalid, e.g. the ledger lives inside the cache."""


class CorruptArtifactError(GoodRenderError):
    """A persisted artifact could not be decoded or failed its checksum."""


class RenderError(GoodRenderError):
    """No usable renderer was available, or the renderer failed while running."""


__all__ = [
    "GoodRenderError",
    "InvalidArgumentError",
    "TemplateNotFoundError",
    "CompileError",
    "CacheIOError",
    "ConfigurationError",
    "CorruptArtifactError",
    "RenderError",
]
