"""Helpers for the ``filter_query`` parameter of story listings.

The API expects filters as bracketed query keys::

    filter_query[category][in]=news,sports

:func:`build_filter_query` produces those keys from a nested mapping so that
callers can write ``{"category": {"in": ["news", "sports"]}}`` instead.
"""

from __future__ import annotations

import enum
from typing import Any, Mapping


class IS(str, enum.Enum):
    """Values accepted by the ``is`` filter operation."""

    EMPTY_ARRAY = "empty_array"
    NOT_EMPTY_ARRAY = "not_empty_array"
    EMPTY = "empty"
    NOT_EMPTY = "not_empty"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"
    NOT_NULL = "not_null"


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(_format_value(item) for item in value)
    if isinstance(value, enum.Enum):
        return str(value.value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_filter_query(filters: Mapping[str, Mapping[str, Any]]) -> dict[str, str]:
    """Flatten ``{field: {operation: value}}`` into ``filter_query[...]`` params.

    Sequences are comma-joined; ``None`` values are skipped.

    Example::

        >>> build_filter_query({"category": {"in": ["news", "sports"]}})
        {'filter_query[category][in]': 'news,sports'}
    """
    params: dict[str, str] = {}
    for field, operations in filters.items():
        for operation, value in operations.items():
            if value is None:
                continue
            params[f"filter_query[{field}][{operation}]"] = _format_value(value)
    return params


def i18n_field(field: str, language_code: str) -> str:
    """Name of the translated variant of *field*, e.g. ``title__i18n__pt_br``."""
    return f"{field}__i18n__{language_code.replace('-', '_')}"


def nested_field(field: str, index: int, prop: str) -> str:
    return f"{field}.{index}.{prop}"


def nested_property(field: str, prop: str) -> str:
    return f"{field}.{prop}"
