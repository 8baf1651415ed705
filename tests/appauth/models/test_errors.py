"""Tests for the authorization error taxonomy."""

import pytest

from appauth.models.errors import (
    AuthorizationException,
    AuthorizationRequestErrors,
    ErrorType,
    GeneralErrors,
    RegistrationRequestErrors,
    TokenRequestErrors,
)


class TestErrorTemplates:
    def test_codes_are_stable(self):
        assert GeneralErrors.NETWORK_ERROR.code == 3
        assert GeneralErrors.STATE_MISMATCH.code == 9
        assert AuthorizationRequestErrors.ACCESS_DENIED.code == 1002
        assert AuthorizationRequestErrors.LOGIN_REQUIRED.code == 1010
        assert TokenRequestErrors.INVALID_GRANT.code == 2002
        assert RegistrationRequestErrors.INVALID_REDIRECT_URI.code == 4001

    def test_types_match_category(self):
        assert GeneralErrors.JSON_DESERIALIZATION_ERROR.type == ErrorType.GENERAL
        assert AuthorizationRequestErrors.OTHER.type == ErrorType.OAUTH_AUTHORIZATION
        assert TokenRequestErrors.OTHER.type == ErrorType.OAUTH_TOKEN
        assert RegistrationRequestErrors.OTHER.type == ErrorType.OAUTH_REGISTRATION

    def test_codes_are_unique_within_each_category(self):
        for category in (
            AuthorizationRequestErrors,
            TokenRequestErrors,
            RegistrationRequestErrors,
        ):
            codes = [template.code for template in category.templates()]
            assert len(codes) == len(set(codes))

    def test_by_string_finds_template(self):
        assert TokenRequestErrors.by_string("invalid_grant") is TokenRequestErrors.INVALID_GRANT
        assert (
            AuthorizationRequestErrors.by_string("consent_required")
            is AuthorizationRequestErrors.CONSENT_REQUIRED
        )

    @pytest.mark.parametrize("error", ["something_new", None])
    def test_by_string_falls_back_to_other(self, error):
        assert TokenRequestErrors.by_string(error) is TokenRequestErrors.OTHER


class TestAuthorizationException:
    def test_from_template_attaches_root_cause(self):
        # Arrange
        cause = OSError("connection reset")

        # Act
        error = AuthorizationException.from_template(GeneralErrors.NETWORK_ERROR, cause)

        # Assert
        assert error == GeneralErrors.NETWORK_ERROR
        assert error.root_cause is cause
        assert error.__cause__ is cause
        assert error.error_description == "Network error"

    def test_from_oauth_template_prefers_provider_values(self):
        # Act
        error = AuthorizationException.from_oauth_template(
            TokenRequestErrors.INVALID_GRANT,
            "invalid_grant",
            "refresh token revoked",
            "https://idp.example.com/errors/revoked",
        )

        # Assert
        assert error.code == 2002
        assert error.error_description == "refresh token revoked"
        assert error.error_uri == "https://idp.example.com/errors/revoked"

    def test_from_oauth_redirect(self):
        # Arrange
        uri = (
            "com.test.app:/oidc_callback?error=access_denied"
            "&error_description=User+said+no&state=abc"
        )

        # Act
        error = AuthorizationException.from_oauth_redirect(uri)

        # Assert
        assert error == AuthorizationRequestErrors.ACCESS_DENIED
        assert error.type == ErrorType.OAUTH_AUTHORIZATION
        assert error.error == "access_denied"
        assert error.error_description == "User said no"

    def test_from_oauth_redirect_with_unknown_error(self):
        error = AuthorizationException.from_oauth_redirect("app:/cb?error=vendor_specific")
        assert error == AuthorizationRequestErrors.OTHER
        assert error.error == "vendor_specific"

    def test_from_oauth_redirect_requires_error(self):
        with pytest.raises(ValueError):
            AuthorizationException.from_oauth_redirect("app:/cb?code=abc")

    def test_json_round_trip(self):
        # Arrange
        error = AuthorizationException.from_oauth_template(
            TokenRequestErrors.INVALID_CLIENT, "invalid_client", "bad secret", None
        )

        # Act
        json_obj = error.to_json()
        restored = AuthorizationException.from_json(error.to_json_string())

        # Assert
        assert json_obj == {
            "type": 2,
            "code": 2001,
            "error": "invalid_client",
            "description": "bad secret",
        }
        assert restored == error
        assert restored.error_description == "bad secret"
        assert restored.root_cause is None

    def test_from_json_requires_type_and_code(self):
        with pytest.raises(ValueError, match="code"):
            AuthorizationException.from_json({"type": 0})

    def test_equality_ignores_description(self):
        a = AuthorizationException(ErrorType.OAUTH_TOKEN, 2002, "invalid_grant", "one")
        b = AuthorizationException(ErrorType.OAUTH_TOKEN, 2002, "invalid_grant", "two")
        assert a == b
        assert hash(a) == hash(b)
        assert a != TokenRequestErrors.INVALID_CLIENT

    def test_str_includes_error_details(self):
        text = str(TokenRequestErrors.INVALID_GRANT)
        assert "OAUTH_TOKEN:2002" in text
        assert "invalid_grant" in text
