"""Source driver reading migrations from a local directory (``file://``)."""

from __future__ import annotations

import os
from urllib.parse import unquote, urlsplit

from .driver import register
from .httpfs import LocalFileSystem, PartialDriver


class FileSource(PartialDriver):
    """Migrations stored as files in one directory."""

    def __init__(self, url: str = "", path: str = ""):
        super().__init__()
        self.url = url
        self.path = path

    def open(self, url: str) -> "FileSource":
        parts = urlsplit(url)
        path = parts.netloc + unquote(parts.path)
        if not path:
            path = os.getcwd()
        elif not path.startswith("/"):
            path = os.path.abspath(path)
        driver = FileSource(url=url, path=path)
        driver.init(LocalFileSystem(path), "")
        return driver


register("file", FileSource())