"""Builders for the SET, WHERE and INSERT fragments used by sessions.

Only values are parameterized. Table and column names are interpolated
verbatim, so they must come from application code and never from user input.
"""

from __future__ import annotations

from typing import Any, Mapping

from .errors import UsageError


def is_list_value(value: object) -> bool:
    """Return True when ``value`` expands into one placeholder per element."""

    return isinstance(value, (list, tuple))


def build_set(fields: Mapping[str, Any]) -> str:
    """Render ``k1 = :k1, k2 = :k2`` for an UPDATE statement."""

    return ", ".join(f"{key} = :{key}" for key in fields)


def build_where(fields: Mapping[str, Any], prefix: str = "") -> str:
    """Render an AND-joined condition, expanding list values into ``IN (...)``.

    ``prefix`` is prepended to placeholder names (not column names) so a WHERE
    clause can share a statement with a SET clause over the same columns.
    """

    terms: list[str] = []
    for key, value in fields.items():
        name = f"{prefix}{key}"
        if is_list_value(value):
            if not value:
                raise UsageError(f"Cannot build an IN () condition for '{key}' from an empty list.")
            placeholders = ", ".join(f":{name}_{index}" for index in range(len(value)))
            terms.append(f"{key} IN ({placeholders})")
        else:
            terms.append(f"{key} = :{name}")
    return " AND ".join(terms)


def build_insert_clause(fields: Mapping[str, Any]) -> str:
    """Render ``(c1, c2) VALUES (:c1, :c2)``."""

    if not fields:
        raise UsageError("Nothing to insert: provide at least one field.")
    listed = [key for key, value in fields.items() if is_list_value(value)]
    if listed:
        raise UsageError(f"Cannot insert list values into column(s): {', '.join(listed)}.")
    columns = ", ".join(fields)
    placeholders = ", ".join(f":{key}" for key in fields)
    return f"({columns}) VALUES ({placeholders})"


__all__ = ["build_insert_clause", "build_set", "build_where", "is_list_value"]
