"""In-memory index of migration files for source drivers."""

from __future__ import annotations

import bisect
from dataclasses import dataclass
from enum import Enum


class Direction(str, Enum):
    """Direction of a migration file."""

    DOWN = "down"
    UP = "up"


@dataclass
class SourceMigration:
    """A single migration file as known to a source."""

    version: int
    identifier: str = ""
    direction: Direction = Direction.UP
    raw: str = ""


class DuplicateMigrationError(ValueError):
    """Raised when a version and direction occur twice."""

    def __init__(self, migration: SourceMigration, name: str | None = None):
        self.migration = migration
        self.name = name if name is not None else migration.raw
        super().__init__(f"duplicate migration file: {self.name}")


class Migrations:
    """Migrations keyed by version and direction, in version order."""

    def __init__(self) -> None:
        self._index: list[int] = []
        self._migrations: dict[int, dict[Direction, SourceMigration]] = {}

    def append(self, migration: SourceMigration) -> None:
        """Add ``migration``; raise DuplicateMigrationError if already present."""
        by_direction = self._migrations.get(migration.version)
        if by_direction is None:
            by_direction = self._migrations[migration.version] = {}
            bisect.insort(self._index, migration.version)
        if migration.direction in by_direction:
            raise DuplicateMigrationError(migration)
        by_direction[migration.direction] = migration

    def __len__(self) -> int:
        return len(self._index)

    def __iter__(self):
        return iter(self._index)

    def __contains__(self, version: object) -> bool:
        return version in self._migrations

    def first(self) -> int | None:
        """Return the lowest version, or None when empty."""
        return self._index[0] if self._index else None

    def prev(self, version: int) -> int | None:
        """Return the version before ``version``, or None."""
        pos = self._find_pos(version)
        if pos >= 1:
            return self._index[pos - 1]
        return None

    def next(self, version: int) -> int | None:
        """Return the version after ``version``, or None."""
        pos = self._find_pos(version)
        if pos >= 0 and pos + 1 < len(self._index):
            return self._index[pos + 1]
        return None

    def up(self, version: int) -> SourceMigration | None:
        """Return the up migration for ``version``, or None."""
        return self._migrations.get(version, {}).get(Direction.UP)

    def down(self, version: int) -> SourceMigration | None:
        """Return the down migration for ``version``, or None."""
        return self._migrations.get(version, {}).get(Direction.DOWN)

    def _find_pos(self, version: int) -> int:
        ix = bisect.bisect_left(self._index, version)
        if ix < len(self._index) and self._index[ix] == version:
            return ix
        return -1