"""Source driver reading migrations from named in-memory assets."""

from __future__ import annotations

import errno
import io
from collections.abc import Callable
from dataclasses import dataclass, field

from .driver import SourceDriver, register
from .migrations import DuplicateMigrationError, Migrations
from .parse import ParseError, parse

AssetFunc = Callable[[str], bytes]


def _not_exist(op: str, path: str) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, f"{op}: file does not exist", path)


@dataclass
class AssetSource:
    """Asset names together with the function that loads an asset's bytes."""

    names: list[str]
    asset_func: AssetFunc


def resource(names, asset_func: AssetFunc) -> AssetSource:
    """Bundle ``names`` and ``asset_func`` into an AssetSource."""
    return AssetSource(names=list(names), asset_func=asset_func)


@dataclass(eq=False)
class BindataSource(SourceDriver):
    """Migrations served from an AssetSource."""

    path: str = "<bindata>"
    asset_source: AssetSource | None = None
    migrations: Migrations = field(default_factory=Migrations)
    closed: bool = field(default=False, repr=False)

    def open(self, url: str) -> SourceDriver:
        raise ValueError("bindata source cannot be opened from a URL; use with_instance")

    def close(self) -> None:
        """Mark the source as closed; assets need no releasing."""
        self.closed = True

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise _not_exist("first", self.path)
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise _not_exist(f"prev for version {version}", self.path)
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise _not_exist(f"next for version {version}", self.path)
        return found

    def read_up(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.up(version)
        if migration is None:
            raise _not_exist(f"read version {version}", self.path)
        return io.BytesIO(self.asset_source.asset_func(migration.raw)), migration.identifier

    def read_down(self, version: int) -> tuple[io.BytesIO, str]:
        migration = self.migrations.down(version)
        if migration is None:
            raise _not_exist(f"read version {version}", self.path)
        return io.BytesIO(self.asset_source.asset_func(migration.raw)), migration.identifier


def with_instance(instance) -> BindataSource:
    """Return a source serving the migrations named in an AssetSource."""
    if not isinstance(instance, AssetSource):
        raise TypeError("expects AssetSource")
    driver = BindataSource(asset_source=instance)
    for name in instance.names:
        try:
            migration = parse(name)
        except ParseError:
            continue
        try:
            driver.migrations.append(migration)
        except DuplicateMigrationError as exc:
            raise ValueError(f"unable to parse file {name}") from exc
    return driver


register("bindata", BindataSource())