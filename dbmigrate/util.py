"""Small helpers shared by the migration code."""

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


class MultiError(Exception):
    """Several errors reported as one."""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__(self.errors)

    def __str__(self) -> str:
        return " and ".join(text for text in map(str, self.errors) if text)


def new_multi_error(*args) -> MultiError:
    """Combine the errors given, leaving out ``None``."""
    return MultiError(error for error in args if error is not None)


def to_uint(n: int) -> int:
    """Return ``n``, which must not be negative."""
    if n < 0:
        raise ValueError(f"to_uint({n}) expects input >= 0")
    return n


def filter_custom_query(url: str) -> str:
    """Return ``url`` without query parameters whose names start with ``x-``."""
    parts = urlsplit(url)
    kept: dict[str, list[str]] = {}
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if not key.startswith("x-"):
            kept.setdefault(key, []).append(value)
    query = urlencode([(key, value) for key in sorted(kept) for value in kept[key]])
    return urlunsplit(parts._replace(query=query))