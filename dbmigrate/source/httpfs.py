"""Source drivers that read migrations from a file-system-like object.

A file system here is any object with two methods:

* ``open(name)`` returns a binary file object for the file ``name``.
* ``listdir(name)`` returns ``(entry_name, is_dir)`` pairs for the
  directory ``name``.

Both raise ``OSError`` subclasses when a name cannot be served.
"""

from __future__ import annotations

import errno
import os
import posixpath
from typing import BinaryIO, Any

from .driver import SourceDriver
from .migrations import Migrations
from .parse import ParseError, parse


def _not_exist(op: str, path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, f"{op}: file does not exist", path)


def _clean(name: str) -> str:
    """Normalise ``name`` to a relative slash path; the root becomes ''."""
    return posixpath.normpath("/" + name).lstrip("/")


class LocalFileSystem:
    """A file system rooted at a directory on disk."""

    def __init__(self, root: str | os.PathLike[str]):
        self.root = os.fspath(root)

    def _resolve(self, name: str) -> str:
        cleaned = _clean(name)
        if not cleaned:
            return self.root
        return os.path.join(self.root, *cleaned.split("/"))

    def open(self, name: str) -> BinaryIO:
        """Open the file ``name`` for binary reading."""
        return open(self._resolve(name), "rb")

    def listdir(self, name: str) -> list[tuple[str, bool]]:
        """Return the entries of directory ``name`` as (name, is_dir) pairs."""
        with os.scandir(self._resolve(name)) as entries:
            return sorted((entry.name, entry.is_dir()) for entry in entries)


class PartialDriver(SourceDriver):
    """Everything a file-system source needs except ``open``.

    Call ``init`` before use.
    """

    def __init__(self) -> None:
        self._migrations = Migrations()
        self._fs: Any = None
        self._path = ""

    def init(self, fs: Any, path: str) -> None:
        """Read the migration index from directory ``path`` of ``fs``."""
        migrations = Migrations()
        for name, is_dir in fs.listdir(path):
            if is_dir:
                continue
            try:
                migration = parse(name)
            except ParseError:
                continue
            migrations.append(migration)
        self._fs = fs
        self._path = path
        self._migrations = migrations

    def close(self) -> None:
        return None

    def first(self) -> int:
        version = self._migrations.first()
        if version is None:
            raise _not_exist("first", self._path)
        return version

    def prev(self, version: int) -> int:
        found = self._migrations.prev(version)
        if found is None:
            raise _not_exist(f"prev for version {version}", self._path)
        return found

    def next(self, version: int) -> int:
        found = self._migrations.next(version)
        if found is None:
            raise _not_exist(f"next for version {version}", self._path)
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        migration = self._migrations.up(version)
        if migration is None:
            raise _not_exist(f"read up for version {version}", self._path)
        return self._open(posixpath.join(self._path, migration.raw)), migration.identifier

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        migration = self._migrations.down(version)
        if migration is None:
            raise _not_exist(f"read down for version {version}", self._path)
        return self._open(posixpath.join(self._path, migration.raw)), migration.identifier

    def _open(self, path: str) -> BinaryIO:
        try:
            return self._fs.open(path)
        except OSError as exc:
            if exc.filename is not None:
                raise
            code = exc.errno if exc.errno is not None else errno.EIO
            raise OSError(code, f"open: {exc.strerror or exc}", path) from exc


class HttpFsDriver(PartialDriver):
    """A source over a ready-made file system; it cannot be opened by URL."""

    def open(self, url: str) -> SourceDriver:
        raise ValueError("open cannot be called on the httpfs passthrough driver")


def new(fs: Any, path: str) -> HttpFsDriver:
    """Return a driver reading migrations from directory ``path`` of ``fs``."""
    driver = HttpFsDriver()
    driver.init(fs, path)
    return driver