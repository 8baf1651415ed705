"""URI helpers for query-parameter extraction and construction."""

from __future__ import annotations

from collections.abc import Collection, Mapping
from urllib.parse import parse_qs, urlencode, urlparse, urlsplit, urlunsplit


def check_uri(value: str, name: str = "uri") -> str:
    """Check a URI is absolute (has a scheme).

    Custom-scheme redirect URIs such as ``com.example.app:/callback`` are
    accepted.

    Raises:
        ValueError: If the value is empty or has no scheme
    """
    if not value:
        raise ValueError(f"{name} cannot be empty")
    parsed = urlparse(value)
    if not parsed.scheme:
        raise ValueError(f"{name} must be an absolute URI with a scheme: {value}")
    return value


def get_query_parameters(uri: str) -> dict[str, str]:
    """Return the first value for every query parameter of a URI.

    Empty values are dropped. When the query is empty, the fragment is
    parsed instead to support the implicit-flow redirect form.
    """
    parsed = urlparse(uri)
    raw = parsed.query or parsed.fragment
    query_params = parse_qs(raw)
    return {key: values[0] for key, values in query_params.items() if values}


def get_query_parameter(uri: str, key: str) -> str | None:
    return get_query_parameters(uri).get(key)


def get_long_query_parameter(uri: str, key: str) -> int | None:
    value = get_query_parameter(uri, key)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"query parameter {key} is not an integer: {value}") from e


def extract_additional_parameters(
    uri: str, built_in_keys: Collection[str]
) -> dict[str, str]:
    """Return the query parameters of a URI whose keys are not built in."""
    return {
        key: value
        for key, value in get_query_parameters(uri).items()
        if key not in built_in_keys
    }


def append_query_parameters(uri: str, params: Mapping[str, str | None]) -> str:
    """Append non-null parameters to a URI, keeping any existing query."""
    items = [(key, value) for key, value in params.items() if value is not None]
    if not items:
        return uri

    scheme, netloc, path, query, fragment = urlsplit(uri)
    encoded = urlencode(items)
    query = f"{query}&{encoded}" if query else encoded
    return urlunsplit((scheme, netloc, path, query, fragment))
