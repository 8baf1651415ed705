"""Base64url helpers shared by PKCE and random parameter generation."""

from __future__ import annotations

import base64


def base64url_encode(data: bytes) -> str:
    """Encode bytes as base64url without padding (RFC 7636 Appendix A)."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")
