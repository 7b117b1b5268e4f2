"""Parsing of migration file names such as ``123_name.up.sql``."""

from __future__ import annotations

import re

from .migrations import Direction, SourceMigration

REGEX = re.compile(
    r"([0-9]+)_(.*)\.(" + Direction.DOWN.value + "|" + Direction.UP.value + r")\.(.*)"
)

_MAX_VERSION = 2**64 - 1


class ParseError(ValueError):
    """Raised when a file name is not a migration file name."""

    def __init__(self, message: str = "no match"):
        super().__init__(message)


def parse(raw: str) -> SourceMigration:
    """Parse ``raw`` into a SourceMigration."""
    match = REGEX.fullmatch(raw)
    if match is None:
        raise ParseError()
    version = int(match.group(1))
    if version > _MAX_VERSION:
        raise ParseError(f"version {match.group(1)} out of range")
    return SourceMigration(
        version=version,
        identifier=match.group(2),
        direction=Direction(match.group(3)),
        raw=raw,
    )