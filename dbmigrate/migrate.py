"""Runs migrations read from a source against a database.

A database driver is any object with these methods:

* ``lock()`` and ``unlock()`` take and release an exclusive lock.
* ``version()`` returns ``(version, dirty)``. A version of NIL_VERSION means
  that no migration has been applied.
* ``set_version(version, dirty)`` records the current version.
* ``run(body)`` executes a migration read from the binary file ``body``.
* ``drop()`` deletes everything in the database.
* ``close()`` releases the connection.

Drivers signal failure by raising.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterable, Iterator
from contextlib import closing, contextmanager
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import urlsplit

from .migration import Migration, new_migration
from .source.driver import SourceDriver, open_source
from .util import new_multi_error, to_uint

NIL_VERSION = -1

DEFAULT_PREFETCH_MIGRATIONS = 10
"""How many migrations are read ahead of the one being run."""

DEFAULT_LOCK_TIMEOUT = 15.0
"""Seconds a database driver has to acquire its lock."""


class MigrateError(Exception):
    """Base class of the errors raised while migrating."""


class NoChangeError(MigrateError):
    """Nothing had to be done."""

    def __init__(self, message: str = "no change"):
        super().__init__(message)


class NilVersionError(MigrateError):
    """No migration has been applied yet."""

    def __init__(self, message: str = "no migration"):
        super().__init__(message)


class InvalidVersionError(MigrateError):
    """A version below -1 was given."""

    def __init__(self, message: str = "version must be >= -1"):
        super().__init__(message)


class LockedError(MigrateError):
    """The database is already locked by this instance."""

    def __init__(self, message: str = "database locked"):
        super().__init__(message)


class LockTimeoutError(MigrateError):
    """The database lock could not be acquired in time."""

    def __init__(self, message: str = "timeout: can't acquire database lock"):
        super().__init__(message)


class ShortLimitError(MigrateError):
    """The source ran out of migrations before a step limit was reached."""

    def __init__(self, short: int):
        self.short = short
        super().__init__(f"limit {short} short")


class DirtyError(MigrateError):
    """The database was left in a dirty state by a failed migration."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Dirty database version {version}. Fix and force version.")


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


_END = object()


def _scheme_from_url(url: str) -> str:
    if not url:
        raise ValueError("URL cannot be empty")
    scheme = urlsplit(url).scheme
    if not scheme:
        raise ValueError("no scheme")
    return scheme


def _elapsed(start: datetime | None, end: datetime | None) -> timedelta:
    if start is None or end is None:
        return timedelta(0)
    return end - start


class Migrate:
    """Moves a database between the versions offered by a source."""

    def __init__(
        self,
        source_name: str,
        source: SourceDriver,
        database_name: str,
        database: Any,
        *,
        log: logging.Logger | None = None,
    ):
        self.source_name = source_name
        self.source = source
        self.database_name = database_name
        self.database = database
        self.log = log
        self.prefetch_migrations = DEFAULT_PREFETCH_MIGRATIONS
        self.lock_timeout = DEFAULT_LOCK_TIMEOUT
        self._stop_requested = threading.Event()
        self._state_lock = threading.Lock()
        self._is_locked = False

    def __enter__(self) -> "Migrate":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close the source and the database."""
        self._log_verbose("Closing source and database")
        errors = []
        for driver in (self.source, self.database):
            try:
                driver.close()
            except Exception as exc:
                errors.append(exc)
        if len(errors) == 1:
            raise errors[0]
        if errors:
            raise new_multi_error(*errors)

    def migrate(self, version: int) -> None:
        """Migrate up or down to ``version``."""
        target = to_uint(version)
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read(current, target))

    def steps(self, n: int) -> None:
        """Apply ``n`` migrations: up if positive, down if negative."""
        if n == 0:
            raise NoChangeError()
        with self._locked():
            current = self._clean_version()
            if n > 0:
                self._run_migrations(self._read_up(current, n))
            else:
                self._run_migrations(self._read_down(current, -n))

    def up(self) -> None:
        """Apply all up migrations."""
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read_up(current, -1))

    def down(self) -> None:
        """Apply all down migrations."""
        with self._locked():
            current = self._clean_version()
            self._run_migrations(self._read_down(current, -1))

    def drop(self) -> None:
        """Delete everything in the database."""
        with self._locked():
            self.database.drop()

    def run(self, *args: Migration) -> None:
        """Run the given migrations without consulting the source."""
        if not args:
            raise NoChangeError()
        with self._locked():
            self._clean_version()
            self._run_migrations(self._scheduled(args))

    def force(self, version: int) -> None:
        """Set the version and clear the dirty state without running anything."""
        if version < -1:
            raise InvalidVersionError()
        with self._locked():
            self.database.set_version(version, False)

    def version(self) -> tuple[int, bool]:
        """Return the current version and whether it is dirty."""
        version, dirty = self.database.version()
        if version == NIL_VERSION:
            raise NilVersionError()
        return to_uint(version), dirty

    def request_stop(self) -> None:
        """Stop running migrations at the next safe point."""
        self._stop_requested.set()

    # reading migrations

    def _read(self, from_: int, to: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(from_)
        if to >= 0:
            self._version_exists(to)
        if from_ == to:
            raise NoChangeError()

        if from_ < to:
            if from_ == -1:
                first = self.source.first()
                yield self._schedule(self._new_migration(first, first))
                from_ = first
            while from_ < to:
                if self._stop():
                    return
                following = self.source.next(from_)
                yield self._schedule(self._new_migration(following, following))
                from_ = following
            return

        while from_ > to and from_ >= 0:
            if self._stop():
                return
            try:
                previous = self.source.prev(from_)
            except FileNotFoundError:
                if to != -1:
                    raise
                previous = None
            if previous is None:
                yield self._schedule(self._new_migration(from_, -1))
                return
            yield self._schedule(self._new_migration(from_, previous))
            from_ = previous

    def _read_up(self, from_: int, limit: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(from_)
        if limit == 0:
            raise NoChangeError()

        count = 0
        while count < limit or limit == -1:
            if self._stop():
                return
            if from_ == -1:
                first = self.source.first()
                yield self._schedule(self._new_migration(first, first))
                from_ = first
                count += 1
                continue
            try:
                following = self.source.next(from_)
            except FileNotFoundError:
                if limit == -1 and count == 0:
                    raise NoChangeError() from None
                if limit == -1:
                    return
                if count == 0:
                    raise
                raise ShortLimitError(limit - count) from None
            yield self._schedule(self._new_migration(following, following))
            from_ = following
            count += 1

    def _read_down(self, from_: int, limit: int) -> Iterator[Migration]:
        if from_ >= 0:
            self._version_exists(from_)
        if limit == 0:
            raise NoChangeError()
        if from_ == -1 and limit == -1:
            raise NoChangeError()
        if from_ == -1 and limit > 0:
            raise FileNotFoundError("file does not exist")

        count = 0
        while count < limit or limit == -1:
            if self._stop():
                return
            try:
                previous = self.source.prev(from_)
            except FileNotFoundError:
                previous = None
            if previous is None:
                if limit == -1 or limit - count > 0:
                    first = self.source.first()
                    yield self._schedule(self._new_migration(first, -1))
                    count += 1
                if count < limit:
                    raise ShortLimitError(limit - count)
                return
            yield self._schedule(self._new_migration(from_, previous))
            from_ = previous
            count += 1

    def _scheduled(self, migrations: Iterable[Migration]) -> Iterator[Migration]:
        for migration in migrations:
            if self.prefetch_migrations > 0 and migration.body is not None:
                self._log_verbose("Start buffering %s", migration.log_string())
            else:
                self._log_verbose("Scheduled %s", migration.log_string())
            yield self._schedule(migration)

    def _version_exists(self, version: int) -> None:
        last_error: FileNotFoundError | None = None
        for read in (self.source.read_up, self.source.read_down):
            try:
                body, _ = read(version)
            except FileNotFoundError as exc:
                last_error = exc
                continue
            body.close()
            return
        error = FileNotFoundError(f"no migration found for version {version}: {last_error}")
        self._log_error(error)
        raise error from last_error

    def _new_migration(self, version: int, target_version: int) -> Migration:
        read = self.source.read_up if target_version >= version else self.source.read_down
        try:
            body, identifier = read(version)
        except FileNotFoundError:
            migration = new_migration(None, "", version, target_version)
        else:
            migration = new_migration(body, identifier, version, target_version)

        if self.prefetch_migrations > 0 and migration.body is not None:
            self._log_verbose("Start buffering %s", migration.log_string())
        else:
            self._log_verbose("Scheduled %s", migration.log_string())
        return migration

    def _schedule(self, migration: Migration) -> Migration:
        if migration.body is not None:
            threading.Thread(target=self._buffer, args=(migration,), daemon=True).start()
        return migration

    def _buffer(self, migration: Migration) -> None:
        try:
            migration.buffer()
        except Exception as exc:
            self._log_error(exc)

    # running migrations

    def _prefetch(self, items: Iterator[Migration]) -> Iterator[Migration]:
        """Read ``items`` in a background thread, a few ahead of the consumer."""
        pending: queue.Queue = queue.Queue(maxsize=max(1, self.prefetch_migrations))
        abandoned = threading.Event()

        def put(item: object) -> bool:
            while not abandoned.is_set():
                try:
                    pending.put(item, timeout=0.05)
                    return True
                except queue.Full:
                    continue
            return False

        def produce() -> None:
            try:
                for item in items:
                    if not put(item):
                        return
            except BaseException as exc:
                put(_Failure(exc))
                return
            put(_END)

        threading.Thread(target=produce, daemon=True).start()
        try:
            while True:
                item = pending.get()
                if item is _END:
                    return
                if isinstance(item, _Failure):
                    raise item.error
                yield item
        finally:
            abandoned.set()

    def _run_migrations(self, items: Iterator[Migration]) -> None:
        with closing(self._prefetch(items)) as stream:
            for migration in stream:
                if self._stop():
                    return
                if not isinstance(migration, Migration):
                    raise TypeError(f"unknown type: {type(migration).__name__} with value: {migration!r}")

                self.database.set_version(migration.target_version, True)
                if migration.body is not None:
                    self._log_verbose("Read and execute %s", migration.log_string())
                    self.database.run(migration.buffered_body)
                self.database.set_version(migration.target_version, False)

                end = datetime.now()
                read_time = _elapsed(migration.started_buffering, migration.finished_reading)
                run_time = _elapsed(migration.finished_reading, end)
                if self.log is not None:
                    if self._verbose():
                        self.log.info(
                            "Finished %s (read %s, ran %s)",
                            migration.log_string(),
                            read_time,
                            run_time,
                        )
                    else:
                        self.log.info("%s (%s)", migration.log_string(), read_time + run_time)

    def _clean_version(self) -> int:
        version, dirty = self.database.version()
        if dirty:
            raise DirtyError(version)
        return version

    def _stop(self) -> bool:
        return self._stop_requested.is_set()

    # locking

    def _lock(self) -> None:
        with self._state_lock:
            if self._is_locked:
                raise LockedError()
            outcome: dict[str, BaseException] = {}

            def acquire() -> None:
                try:
                    self.database.lock()
                except BaseException as exc:
                    outcome["error"] = exc

            worker = threading.Thread(target=acquire, daemon=True)
            worker.start()
            worker.join(self.lock_timeout)
            if worker.is_alive():
                raise LockTimeoutError()
            if "error" in outcome:
                raise outcome["error"]
            self._is_locked = True

    def _unlock(self) -> None:
        with self._state_lock:
            self.database.unlock()
            self._is_locked = False

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self._lock()
        try:
            yield
        except BaseException as exc:
            try:
                self._unlock()
            except Exception as unlock_error:
                raise new_multi_error(exc, unlock_error) from exc
            raise
        self._unlock()

    # logging

    def _verbose(self) -> bool:
        return self.log is not None and self.log.isEnabledFor(logging.DEBUG)

    def _log_verbose(self, message: str, *args: object) -> None:
        if self._verbose():
            self.log.debug(message, *args)

    def _log_error(self, error: BaseException) -> None:
        if self.log is not None:
            self.log.error("error: %s", error)


def new_with_database_instance(source_url: str, database_name: str, database: Any) -> Migrate:
    """Open the source named by ``source_url`` and pair it with ``database``."""
    source_name = _scheme_from_url(source_url)
    source = open_source(source_url)
    return Migrate(source_name, source, database_name, database)


def new_with_instance(
    source_name: str, source: SourceDriver, database_name: str, database: Any
) -> Migrate:
    """Pair an existing source with an existing database."""
    return Migrate(source_name, source, database_name, database)