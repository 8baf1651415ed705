"""Conversion between space-delimited scope strings and scope collections."""

from __future__ import annotations

import re
from collections.abc import Iterable

_SCOPE_SEPARATOR = re.compile(r" +")


def scope_iterable_to_string(scopes: Iterable[str] | None) -> str | None:
    """Join scopes into a space-delimited string, preserving first occurrence order.

    Returns None for a missing or empty collection.

    Raises:
        ValueError: If any scope is not a string, is empty or contains a space
    """
    if scopes is None:
        return None
    if isinstance(scopes, str):
        scopes = [scopes]

    unique: dict[str, None] = {}
    for scope in scopes:
        if scope is not None and not isinstance(scope, str):
            raise ValueError(f"scope entries must be strings, got {type(scope).__name__}")
        if not scope:
            raise ValueError("individual scopes cannot be null or empty")
        if " " in scope:
            raise ValueError(f"scope {scope!r} must not contain spaces")
        unique[scope] = None

    if not unique:
        return None
    return " ".join(unique)


def scope_string_to_list(scope: str | None) -> list[str] | None:
    """Split a scope string into its ordered, de-duplicated entries."""
    if not scope or not scope.strip():
        return None
    return list(dict.fromkeys(_SCOPE_SEPARATOR.split(scope.strip())))


def scope_string_to_set(scope: str | None) -> set[str] | None:
    entries = scope_string_to_list(scope)
    return set(entries) if entries is not None else None


def normalize_scope(scope: str | Iterable[str] | None) -> str | None:
    """Accept either a scope string or an iterable of scopes."""
    if scope is None:
        return None
    if isinstance(scope, str):
        return scope_iterable_to_string(scope_string_to_list(scope))
    if not isinstance(scope, Iterable):
        raise ValueError(
            f"scope must be a string or a collection of strings, got {type(scope).__name__}"
        )
    return scope_iterable_to_string(scope)
