"""Source driver reading migrations from a virtual file system."""

from __future__ import annotations

import errno
import io
import posixpath
from collections.abc import Mapping
from typing import Any

from .driver import SourceDriver, register
from .httpfs import PartialDriver


def _clean(name: str) -> str:
    return posixpath.normpath("/" + name).lstrip("/")


class MapFileSystem:
    """A read-only file system backed by a mapping of paths to contents."""

    def __init__(self, files: Mapping[str, str | bytes]):
        self._files = {
            _clean(name): body.encode() if isinstance(body, str) else bytes(body)
            for name, body in files.items()
        }

    def _is_dir(self, key: str) -> bool:
        if not key:
            return True
        prefix = key + "/"
        return any(name.startswith(prefix) for name in self._files)

    def open(self, name: str) -> io.BytesIO:
        """Open the file ``name``."""
        key = _clean(name)
        if key in self._files:
            return io.BytesIO(self._files[key])
        if self._is_dir(key):
            raise IsADirectoryError(errno.EISDIR, "is a directory", name)
        raise FileNotFoundError(errno.ENOENT, "file does not exist", name)

    def listdir(self, name: str) -> list[tuple[str, bool]]:
        """Return the entries of directory ``name`` as (name, is_dir) pairs."""
        key = _clean(name)
        if key in self._files:
            raise NotADirectoryError(errno.ENOTDIR, "not a directory", name)
        if not self._is_dir(key):
            raise FileNotFoundError(errno.ENOENT, "file does not exist", name)
        prefix = key + "/" if key else ""
        entries: dict[str, bool] = {}
        for path in self._files:
            if not path.startswith(prefix):
                continue
            head, sep, _ = path[len(prefix):].partition("/")
            entries[head] = entries.get(head, False) or bool(sep)
        return sorted(entries.items())


class VfsSource(PartialDriver):
    """Migrations served from a virtual file system."""

    def __init__(self, fs: Any = None, path: str = ""):
        super().__init__()
        self.fs = fs
        self.path = path

    def open(self, url: str) -> SourceDriver:
        raise ValueError("vfs source cannot be opened from a URL; use with_instance")


def with_instance(fs: Any, search_path: str) -> VfsSource:
    """Return a source reading migrations from ``search_path`` (default '/')."""
    if not search_path:
        search_path = "/"
    driver = VfsSource(fs, search_path)
    driver.init(fs, search_path)
    return driver


register("vfs", VfsSource())