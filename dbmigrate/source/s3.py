"""Source driver reading migrations from an S3 bucket.

The client is any object offering ``list_objects(Bucket=, Prefix=, Delimiter=)``
returning ``{"Contents": [{"Key": ...}, ...]}`` and ``get_object(Bucket=, Key=)``
returning ``{"Body": <readable>}``.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any, BinaryIO
from urllib.parse import urlsplit

from .driver import SourceDriver
from .migrations import DuplicateMigrationError, Migrations, SourceMigration
from .parse import ParseError, parse


@dataclass
class S3Config:
    """Bucket and key prefix holding the migrations."""

    bucket: str = ""
    prefix: str = ""


def parse_uri(uri: str) -> S3Config:
    """Turn ``s3://bucket/prefix`` into an S3Config."""
    parts = urlsplit(uri)
    prefix = parts.path.strip("/")
    if prefix:
        prefix += "/"
    return S3Config(bucket=parts.netloc, prefix=prefix)


@dataclass(eq=False)
class S3Source(SourceDriver):
    """Migrations stored as objects under a prefix of an S3 bucket."""

    client: Any = None
    config: S3Config = field(default_factory=S3Config)
    migrations: Migrations = field(default_factory=Migrations)
    closed: bool = field(default=False, repr=False)

    def open(self, url: str) -> "S3Source":
        if self.client is None:
            raise ValueError("s3 source needs a client; create it with with_instance")
        return with_instance(self.client, parse_uri(url))

    def _load_migrations(self) -> None:
        output = self.client.list_objects(
            Bucket=self.config.bucket, Prefix=self.config.prefix, Delimiter="/"
        )
        for item in output.get("Contents", []):
            key = item["Key"]
            try:
                migration = parse(posixpath.basename(key))
            except ParseError:
                continue
            try:
                self.migrations.append(migration)
            except DuplicateMigrationError as exc:
                raise ValueError(f"unable to parse file {key}") from exc

    def close(self) -> None:
        """Mark the source as closed; the client belongs to the caller."""
        self.closed = True

    def first(self) -> int:
        version = self.migrations.first()
        if version is None:
            raise FileNotFoundError("file does not exist")
        return version

    def prev(self, version: int) -> int:
        found = self.migrations.prev(version)
        if found is None:
            raise FileNotFoundError("file does not exist")
        return found

    def next(self, version: int) -> int:
        found = self.migrations.next(version)
        if found is None:
            raise FileNotFoundError("file does not exist")
        return found

    def read_up(self, version: int) -> tuple[BinaryIO, str]:
        migration = self.migrations.up(version)
        if migration is None:
            raise FileNotFoundError("file does not exist")
        return self._open(migration)

    def read_down(self, version: int) -> tuple[BinaryIO, str]:
        migration = self.migrations.down(version)
        if migration is None:
            raise FileNotFoundError("file does not exist")
        return self._open(migration)

    def _open(self, migration: SourceMigration) -> tuple[BinaryIO, str]:
        key = posixpath.join(self.config.prefix, migration.raw)
        output = self.client.get_object(Bucket=self.config.bucket, Key=key)
        return output["Body"], migration.identifier


def with_instance(client: Any, config: S3Config) -> S3Source:
    """Return a source listing ``config``'s prefix with ``client``."""
    driver = S3Source(client=client, config=config)
    driver._load_migrations()
    return driver