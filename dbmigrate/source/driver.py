"""The source driver interface and the global driver registry."""

from __future__ import annotations

import abc
import threading
from typing import BinaryIO
from urllib.parse import urlsplit

_drivers: dict[str, "SourceDriver"] = {}
_drivers_lock = threading.RLock()


class SourceDriver(abc.ABC):
    """Interface every migration source must implement.

    Lookups that find nothing raise ``FileNotFoundError``.
    """

    @abc.abstractmethod
    def open(self, url: str) -> "SourceDriver":
        """Return a new driver configured from ``url``."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release the underlying source."""

    @abc.abstractmethod
    def first(self) -> int:
        """Return the lowest available version."""

    @abc.abstractmethod
    def prev(self, version: int) -> int:
        """Return the version before ``version``."""

    @abc.abstractmethod
    def next(self, version: int) -> int:
        """Return the version after ``version``."""

    @abc.abstractmethod
    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        """Return the up migration body and its identifier, without reading it."""

    @abc.abstractmethod
    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        """Return the down migration body and its identifier, without reading it."""


def register(name: str, driver: SourceDriver) -> None:
    """Register ``driver`` under the URL scheme ``name``."""
    if driver is None:
        raise ValueError("register driver is None")
    with _drivers_lock:
        if name in _drivers:
            raise ValueError(f"register called twice for driver {name}")
        _drivers[name] = driver


def open_source(url: str) -> SourceDriver:
    """Open a new driver instance chosen by the scheme of ``url``."""
    scheme = urlsplit(url).scheme
    if not scheme:
        raise ValueError("source driver: invalid URL scheme")
    with _drivers_lock:
        driver = _drivers.get(scheme)
    if driver is None:
        raise ValueError(f"source driver: unknown driver '{scheme}' (forgotten import?)")
    return driver.open(url)


def list_drivers() -> list[str]:
    """Return the names of all registered drivers."""
    with _drivers_lock:
        return sorted(_drivers)