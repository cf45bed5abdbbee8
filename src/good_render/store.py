from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from .errors import CacheIOError, InvalidArgumentError, TemplateNotFoundError

logger = logging.getLogger(__name__)


class TemplateStore:
    """Read-only access to a directory tree of template sources.

    A template name is the path of the file relative to ``root``, with ``/``
    separators and without the extension: ``root/emails/welcome.hbs`` is the
    template ``emails/welcome``.
    """

    def __init__(self, root: Path | str, extension: str = "hbs"):
        self.root = Path(root)
        self.extension = extension.lstrip(".")

    def __repr__(self) -> str:
        return f"TemplateStore(root={str(self.root)!r}, extension={self.extension!r})"

    @property
    def suffix(self) -> str:
        return f".{self.extension}"

    def path_for(self, name: str) -> Path:
        """Deterministic source path for ``name``."""
        name = normalize_name(name)
        path = self.root / f"{name}{self.suffix}"
        if not _is_within(path, self.root):
            raise TemplateNotFoundError(name, path, f"Template {name!r} escapes the store root")
        return path

    def folder_path(self, folder: str) -> Path:
        folder = normalize_name(folder)
        path = self.root / folder
        if not _is_within(path, self.root):
            raise TemplateNotFoundError(folder, path, f"Folder {folder!r} escapes the store root")
        return path

    def exists(self, name: str) -> bool:
        try:
            return self.path_for(name).is_file()
        except TemplateNotFoundError:
            return False

    def folder_exists(self, folder: str) -> bool:
        try:
            return self.folder_path(folder).is_dir()
        except TemplateNotFoundError:
            return False

    def resolve(self, name: str) -> str:
        """Return the source text of ``name``.

        Raises:
            InvalidArgumentError: ``name`` is empty.
            TemplateNotFoundError: no file exists at the template's path.
            CacheIOError: the file exists but can't be read.
        """
        if not name:
            raise InvalidArgumentError("Template name must not be empty")
        path = self.path_for(name)
        if not path.is_file():
            raise TemplateNotFoundError(name, path)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CacheIOError(f"Can't read template {name!r} at {path}") from exc

    def list_all(self, folder: str | None = None) -> Iterator[str]:
        """Yield every template name under the root, or under ``folder``.

        Every regular file counts, whatever its extension; the extension is only
        stripped when it matches the store's. Traversal order is filesystem
        dependent.
        """
        for name, _path in self._walk(folder):
            yield name

    def modification_times(self, folder: str | None = None) -> Iterator[tuple[str, int]]:
        """Yield ``(name, mtime)`` pairs with mtimes truncated to whole seconds."""
        for name, path in self._walk(folder):
            try:
                mtime = int(path.stat().st_mtime)
            except FileNotFoundError:
                # removed between listing and stat
                continue
            yield name, mtime

    def _walk(self, folder: str | None) -> Iterator[tuple[str, Path]]:
        start = self.root if not folder else self.folder_path(folder)
        if not start.is_dir():
            return

        def _on_error(exc: OSError) -> None:
            logger.warning("Skipping unreadable path during traversal: %s", exc)

        for dirpath, dirnames, filenames in os.walk(start, onerror=_on_error):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if not path.is_file():
                    continue
                yield self._name_for(path), path

    def _name_for(self, path: Path) -> str:
        relative = path.relative_to(self.root).as_posix()
        if relative.endswith(self.suffix):
            relative = relative[: -len(self.suffix)]
        return relative


def normalize_name(name: str) -> str:
    """Canonical template name: forward slashes, no leading or trailing slash."""
    return name.replace("\\", "/").strip("/")


def _is_within(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
    except ValueError:
        return False
    return True


__all__ = ["TemplateStore", "normalize_name"]
