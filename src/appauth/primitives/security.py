"""Security utilities for OAuth 2.0 flows.

Provides cryptographically secure generation of the opaque ``state``
parameter and constant-time state comparison.
"""

from __future__ import annotations

import secrets

from appauth.primitives.encoding import base64url_encode

STATE_LENGTH_BYTES = 16


def generate_state() -> str:
    """Generate a random state parameter.

    The state parameter provides CSRF protection by ensuring the redirect
    matches the original authorization request.

    Returns:
        Base64url encoded random string (22 characters)
    """
    return base64url_encode(secrets.token_bytes(STATE_LENGTH_BYTES))


def states_match(expected: str | None, actual: str | None) -> bool:
    """Compare state values without leaking timing information."""
    if expected is None or actual is None:
        return expected is actual
    return secrets.compare_digest(expected, actual)
