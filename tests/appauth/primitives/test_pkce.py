"""Tests for PKCE verifier generation and challenge derivation."""

import base64
import hashlib

import pytest

from appauth.primitives.pkce import (
    CODE_CHALLENGE_METHOD_PLAIN,
    CODE_CHALLENGE_METHOD_S256,
    check_code_verifier,
    derive_code_challenge,
    generate_code_verifier,
)


class TestCodeVerifierGeneration:
    def test_default_verifier_is_valid(self):
        # Act
        verifier = generate_code_verifier()

        # Assert
        assert len(verifier) == 86
        assert check_code_verifier(verifier) == verifier

    @pytest.mark.parametrize("entropy, expected_length", [(32, 43), (96, 128)])
    def test_entropy_bounds_map_to_length_bounds(self, entropy, expected_length):
        # Act
        verifier = generate_code_verifier(entropy)

        # Assert
        assert len(verifier) == expected_length
        check_code_verifier(verifier)

    @pytest.mark.parametrize("entropy", [31, 97])
    def test_out_of_range_entropy_is_rejected(self, entropy):
        with pytest.raises(ValueError):
            generate_code_verifier(entropy)

    def test_verifiers_are_unique(self):
        verifiers = {generate_code_verifier() for _ in range(50)}
        assert len(verifiers) == 50


class TestCodeVerifierValidation:
    @pytest.mark.parametrize(
        "verifier",
        [
            "a" * 42,
            "a" * 129,
            "a" * 42 + "+",
            "a" * 42 + "=",
            "a" * 42 + " ",
        ],
    )
    def test_invalid_verifiers_are_rejected(self, verifier):
        with pytest.raises(ValueError):
            check_code_verifier(verifier)

    def test_unreserved_characters_are_accepted(self):
        verifier = "abcXYZ0123456789-._~" * 3
        assert check_code_verifier(verifier) == verifier


class TestCodeChallenge:
    def test_s256_matches_rfc7636_appendix_b(self):
        # Arrange
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        # Act
        challenge = derive_code_challenge(verifier, CODE_CHALLENGE_METHOD_S256)

        # Assert
        assert challenge == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_s256_is_unpadded_base64url_of_sha256(self):
        # Arrange
        verifier = generate_code_verifier()
        expected = (
            base64.urlsafe_b64encode(hashlib.sha256(verifier.encode("ascii")).digest())
            .decode("ascii")
            .rstrip("=")
        )

        # Act
        challenge = derive_code_challenge(verifier)

        # Assert
        assert challenge == expected
        assert "=" not in challenge
        assert len(challenge) == 43

    def test_plain_returns_verifier(self):
        verifier = generate_code_verifier()
        assert derive_code_challenge(verifier, CODE_CHALLENGE_METHOD_PLAIN) == verifier

    def test_unknown_method_cannot_be_derived(self):
        with pytest.raises(ValueError, match="supply the challenge explicitly"):
            derive_code_challenge(generate_code_verifier(), "S512")
