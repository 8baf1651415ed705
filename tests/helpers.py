"""Shared test values and builders."""

from __future__ import annotations

from typing import Any

from appauth.models.authorization import AuthorizationRequest, AuthorizationResponse
from appauth.models.configuration import ServiceConfiguration
from appauth.models.tokens import TokenRequest, TokenResponse

TEST_CLIENT_ID = "test_client_id"
TEST_CLIENT_SECRET = "test_client_secret"
TEST_STATE = "$TAT3"
TEST_NONCE = "NONC3"
TEST_REDIRECT_URI = "com.test.app:/oidc_callback"
TEST_AUTH_CODE = "zxcvbnmjk"
TEST_ACCESS_TOKEN = "aaabbbccc"
TEST_ID_TOKEN = "abc.def.ghi"
TEST_REFRESH_TOKEN = "asdfghjkl"
TEST_CODE_VERIFIER = "0123456789_0123456789_0123456789_0123456789"

TEST_ISSUER = "https://testidp.example.com"
TEST_AUTH_ENDPOINT = "https://testidp.example.com/authorize"
TEST_TOKEN_ENDPOINT = "https://testidp.example.com/token"
TEST_REGISTRATION_ENDPOINT = "https://testidp.example.com/register"
TEST_JWKS_URI = "https://testidp.example.com/jwks"

TEST_START_TIME = 1_700_000_000_000


class FixedClock:
    """Clock whose current time only moves when told to."""

    def __init__(self, now_ms: int = TEST_START_TIME):
        self.now_ms = now_ms

    def current_time_millis(self) -> int:
        return self.now_ms

    def advance(self, millis: int) -> None:
        self.now_ms += millis


def discovery_document(**overrides: Any) -> dict[str, Any]:
    document: dict[str, Any] = {
        "issuer": TEST_ISSUER,
        "authorization_endpoint": TEST_AUTH_ENDPOINT,
        "token_endpoint": TEST_TOKEN_ENDPOINT,
        "registration_endpoint": TEST_REGISTRATION_ENDPOINT,
        "jwks_uri": TEST_JWKS_URI,
        "response_types_supported": ["code", "token"],
        "subject_types_supported": ["public"],
        "id_token_signing_alg_values_supported": ["RS256"],
    }
    document.update(overrides)
    return {key: value for key, value in document.items() if value is not None}


def service_configuration() -> ServiceConfiguration:
    return ServiceConfiguration(
        authorization_endpoint=TEST_AUTH_ENDPOINT,
        token_endpoint=TEST_TOKEN_ENDPOINT,
        registration_endpoint=TEST_REGISTRATION_ENDPOINT,
    )


def authorization_request(**overrides: Any) -> AuthorizationRequest:
    values: dict[str, Any] = {
        "configuration": service_configuration(),
        "client_id": TEST_CLIENT_ID,
        "response_type": "code",
        "redirect_uri": TEST_REDIRECT_URI,
        "state": TEST_STATE,
        "code_verifier": TEST_CODE_VERIFIER,
    }
    values.update(overrides)
    return AuthorizationRequest(**values)


def authorization_code_response(**overrides: Any) -> AuthorizationResponse:
    values: dict[str, Any] = {
        "request": authorization_request(),
        "state": TEST_STATE,
        "authorization_code": TEST_AUTH_CODE,
    }
    values.update(overrides)
    return AuthorizationResponse(**values)


def code_exchange_request() -> TokenRequest:
    return authorization_code_response().create_token_exchange_request()


def token_response(**overrides: Any) -> TokenResponse:
    values: dict[str, Any] = {
        "request": code_exchange_request(),
        "token_type": "bearer",
        "access_token": TEST_ACCESS_TOKEN,
        "access_token_expiration_time": TEST_START_TIME + 120_000,
        "id_token": TEST_ID_TOKEN,
        "refresh_token": TEST_REFRESH_TOKEN,
    }
    values.update(overrides)
    return TokenResponse(**values)
