"""Extension-parameter processing.

Every protocol message may carry vendor or extension parameters alongside
the fields this package interprets. Those keys must never collide with the
message's built-in parameters.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping


def check_additional_params(
    params: Mapping[str, str | None] | None, built_in_keys: Collection[str]
) -> dict[str, str]:
    """Clean an additional-parameter mapping for a message type.

    Entries with a null or empty key or value are dropped.

    Args:
        params: Candidate additional parameters
        built_in_keys: Keys reserved by the message type

    Returns:
        A new dict containing only the retained entries

    Raises:
        ValueError: If a key is reserved by the message type
    """
    if params is None:
        return {}

    cleaned: dict[str, str] = {}
    for key, value in params.items():
        if key in built_in_keys:
            raise ValueError(
                f"Parameter {key} is directly supported via the message fields "
                "and cannot be used as an additional parameter"
            )
        if not key or value is None or value == "":
            continue
        if not isinstance(value, str):
            raise ValueError(f"additional parameter {key} must be a string")
        cleaned[key] = value
    return cleaned
