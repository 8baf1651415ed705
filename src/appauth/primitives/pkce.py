"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 code verifier generation and code challenge derivation
to bind an authorization code to the client that requested it.
"""

from __future__ import annotations

import hashlib
import re
import secrets

from appauth.primitives.encoding import base64url_encode

CODE_CHALLENGE_METHOD_S256 = "S256"
CODE_CHALLENGE_METHOD_PLAIN = "plain"

MIN_CODE_VERIFIER_LENGTH = 43
MAX_CODE_VERIFIER_LENGTH = 128

# 64 random bytes encode to 86 base64url characters
DEFAULT_CODE_VERIFIER_ENTROPY = 64
MIN_CODE_VERIFIER_ENTROPY = 32
MAX_CODE_VERIFIER_ENTROPY = 96

_CODE_VERIFIER_PATTERN = re.compile(r"^[0-9a-zA-Z\-._~]{43,128}$")


def check_code_verifier(code_verifier: str) -> str:
    """Validate a code verifier against RFC 7636 Section 4.1.

    The verifier must be 43-128 characters long and use only unreserved
    characters: [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

    Returns:
        The verifier, unchanged

    Raises:
        ValueError: If the verifier is malformed
    """
    if not (MIN_CODE_VERIFIER_LENGTH <= len(code_verifier) <= MAX_CODE_VERIFIER_LENGTH):
        raise ValueError(
            f"code_verifier must be {MIN_CODE_VERIFIER_LENGTH}-"
            f"{MAX_CODE_VERIFIER_LENGTH} characters"
        )
    if not _CODE_VERIFIER_PATTERN.match(code_verifier):
        raise ValueError("code_verifier contains characters outside the unreserved set")
    return code_verifier


def generate_code_verifier(entropy_bytes: int = DEFAULT_CODE_VERIFIER_ENTROPY) -> str:
    """Generate a cryptographically secure code verifier.

    Args:
        entropy_bytes: Number of random bytes to encode (32-96)

    Returns:
        Base64url encoded verifier of 43-128 characters
    """
    if not (MIN_CODE_VERIFIER_ENTROPY <= entropy_bytes <= MAX_CODE_VERIFIER_ENTROPY):
        raise ValueError(
            f"entropy_bytes must be between {MIN_CODE_VERIFIER_ENTROPY} and "
            f"{MAX_CODE_VERIFIER_ENTROPY}"
        )
    return base64url_encode(secrets.token_bytes(entropy_bytes))


def derive_code_challenge(
    code_verifier: str, method: str = CODE_CHALLENGE_METHOD_S256
) -> str:
    """Derive the code challenge for a verifier.

    RFC 7636 Section 4.2: For S256, the code challenge is
    BASE64URL-ENCODE(SHA256(ASCII(code_verifier))). For plain, the challenge
    is the verifier itself.

    Raises:
        ValueError: If the method is not S256 or plain
    """
    if method == CODE_CHALLENGE_METHOD_S256:
        digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
        return base64url_encode(digest)
    if method == CODE_CHALLENGE_METHOD_PLAIN:
        return code_verifier
    raise ValueError(
        f"Cannot derive a code challenge for method {method!r}; "
        "supply the challenge explicitly"
    )
