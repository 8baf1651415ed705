"""Typed JSON accessors used by the message models.

Field-level typing of the persisted and wire forms is declared on the
pydantic models themselves; these helpers cover the untyped edges: decoding
a JSON object from text and coercing extension values to strings.
"""

from __future__ import annotations

import json
from collections.abc import Collection, Mapping
from typing import Any


def parse_json_object(data: str | bytes | Mapping[str, Any]) -> dict[str, Any]:
    """Decode a JSON object from text, bytes, or an existing mapping.

    Raises:
        ValueError: If the data is not valid JSON or not a JSON object
            (``json.JSONDecodeError`` is a ``ValueError``)
    """
    if isinstance(data, Mapping):
        return dict(data)

    if not data:
        raise ValueError("json cannot be null or empty")

    decoded = json.loads(data)
    if not isinstance(decoded, dict):
        raise ValueError(f"expected a JSON object, got {type(decoded).__name__}")
    return decoded


def json_value_to_string(value: Any) -> str:
    """Render a JSON value the way it appears on the wire."""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def extract_additional_json_parameters(
    json_obj: Mapping[str, Any], built_in_keys: Collection[str]
) -> dict[str, str]:
    """Collect the non-built-in members of a wire JSON object as strings."""
    return {
        key: json_value_to_string(value)
        for key, value in json_obj.items()
        if key not in built_in_keys and value is not None
    }
