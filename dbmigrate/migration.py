"""A migration as read from a source and run against a database."""

from __future__ import annotations

import io
import queue
from dataclasses import dataclass, field
from datetime import datetime
from typing import BinaryIO

DEFAULT_BUFFER_SIZE = 100000


class _PipeReader(io.RawIOBase):
    """Reading end of the pipe filled by Migration.buffer."""

    def __init__(self, chunks: "queue.Queue[bytes | BaseException | None]"):
        super().__init__()
        self._chunks = chunks
        self._pending = b""
        self._eof = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        while not self._pending:
            if self._eof:
                return 0
            item = self._chunks.get()
            if item is None:
                self._eof = True
                return 0
            if isinstance(item, BaseException):
                self._eof = True
                raise item
            self._pending = item
        count = min(len(buffer), len(self._pending))
        buffer[:count] = self._pending[:count]
        self._pending = self._pending[count:]
        return count


@dataclass
class Migration:
    """A migration body together with the version it leads to.

    ``target_version`` of -1 stands for no version at all.
    """

    identifier: str = ""
    version: int = 0
    target_version: int = 0
    body: BinaryIO | None = None
    buffered_body: BinaryIO | None = None
    buffer_size: int = 0
    scheduled: datetime | None = None
    started_buffering: datetime | None = None
    finished_buffering: datetime | None = None
    finished_reading: datetime | None = None
    bytes_read: int = 0
    _chunks: "queue.Queue | None" = field(default=None, init=False, repr=False, compare=False)

    def __str__(self) -> str:
        return f"{self.identifier} [{self.version}=>{self.target_version}]"

    def log_string(self) -> str:
        """Describe the migration for humans, e.g. ``5/u create_users``."""
        direction = "d" if self.target_version < self.version else "u"
        return f"{self.version}/{direction} {self.identifier}"

    def buffer(self) -> None:
        """Feed ``body`` into ``buffered_body``; blocks until it is consumed."""
        if self.body is None:
            return
        chunks = self._chunks
        self.started_buffering = datetime.now()
        total = 0
        try:
            chunk = self.body.read(self.buffer_size)
            self.finished_buffering = datetime.now()
            while chunk:
                chunks.put(chunk)
                total += len(chunk)
                chunk = self.body.read(self.buffer_size)
        except Exception as exc:
            chunks.put(exc)
            raise
        self.finished_reading = datetime.now()
        self.bytes_read = total
        chunks.put(None)
        self.body.close()


def new_migration(body, identifier: str, version: int, target_version: int) -> Migration:
    """Create a migration; a ``None`` body makes it an empty migration."""
    now = datetime.now()
    migration = Migration(
        identifier=identifier,
        version=version,
        target_version=target_version,
        scheduled=now,
    )
    if body is None:
        if not identifier:
            migration.identifier = "<empty>"
        migration.started_buffering = now
        migration.finished_buffering = now
        migration.finished_reading = now
        return migration

    chunks: queue.Queue = queue.Queue(maxsize=2)
    migration.body = body
    migration.buffer_size = DEFAULT_BUFFER_SIZE
    migration.buffered_body = _PipeReader(chunks)
    migration._chunks = chunks
    return migration