"""Tests for dynamic client registration messages and client authentication."""

import base64

import pytest
from pydantic import ValidationError

from appauth.models.client_authentication import (
    ClientSecretBasic,
    ClientSecretPost,
    NoClientAuthentication,
)
from appauth.models.errors import MissingArgumentError
from appauth.models.registration import RegistrationRequest, RegistrationResponse
from tests.helpers import (
    TEST_CLIENT_ID,
    TEST_CLIENT_SECRET,
    TEST_REDIRECT_URI,
    FixedClock,
    service_configuration,
)


def registration_request(**overrides):
    values = {
        "configuration": service_configuration(),
        "redirect_uris": [TEST_REDIRECT_URI],
    }
    values.update(overrides)
    return RegistrationRequest(**values)


class TestRegistrationRequest:
    def test_request_parameters_are_native(self):
        # Arrange
        request = registration_request(
            response_types=["code"],
            grant_types=["authorization_code", "refresh_token"],
            token_endpoint_auth_method="client_secret_basic",
            additional_parameters={"client_name": "Test App"},
        )

        # Act
        params = request.request_parameters()

        # Assert
        assert params == {
            "redirect_uris": [TEST_REDIRECT_URI],
            "application_type": "native",
            "response_types": ["code"],
            "grant_types": ["authorization_code", "refresh_token"],
            "token_endpoint_auth_method": "client_secret_basic",
            "client_name": "Test App",
        }

    def test_redirect_uris_are_required(self):
        with pytest.raises(ValidationError, match="redirect_uris"):
            registration_request(redirect_uris=[])

    def test_redirect_uris_must_be_absolute(self):
        with pytest.raises(ValidationError):
            registration_request(redirect_uris=["relative/path"])

    def test_application_type_is_reserved(self):
        with pytest.raises(ValidationError, match="application_type"):
            registration_request(additional_parameters={"application_type": "web"})

    def test_json_round_trip(self):
        request = registration_request(subject_type="pairwise")
        assert RegistrationRequest.from_json(request.to_json_string()) == request


class TestRegistrationResponse:
    def setup_method(self):
        self.request = registration_request()
        self.clock = FixedClock(now_ms=2_000_000_000)

    def test_full_response(self):
        # Act
        response = RegistrationResponse.from_response_json(
            self.request,
            {
                "client_id": TEST_CLIENT_ID,
                "client_id_issued_at": "34",
                "client_secret": TEST_CLIENT_SECRET,
                "client_secret_expires_at": 78,
                "registration_access_token": "reg-token",
                "registration_client_uri": "https://testidp.example.com/register/client",
                "token_endpoint_auth_method": "client_secret_basic",
                "software_id": "4NRB1-0XZABZI9E6-5SM3R",
            },
        )

        # Assert
        assert response.client_id == TEST_CLIENT_ID
        assert response.client_id_issued_at == 34
        assert response.client_secret_expires_at == 78
        assert response.registration_access_token == "reg-token"
        assert response.additional_parameters == {"software_id": "4NRB1-0XZABZI9E6-5SM3R"}

    @pytest.mark.parametrize(
        "body, missing",
        [
            ({}, "client_id"),
            (
                {"client_id": TEST_CLIENT_ID, "client_secret": TEST_CLIENT_SECRET},
                "client_secret_expires_at",
            ),
            (
                {"client_id": TEST_CLIENT_ID, "registration_access_token": "reg-token"},
                "registration_client_uri",
            ),
            (
                {
                    "client_id": TEST_CLIENT_ID,
                    "registration_client_uri": "https://testidp.example.com/register/c",
                },
                "registration_access_token",
            ),
        ],
    )
    def test_missing_field_is_named(self, body, missing):
        with pytest.raises(MissingArgumentError) as exc_info:
            RegistrationResponse.from_response_json(self.request, body)
        assert exc_info.value.missing_field == missing

    def test_secret_that_never_expires(self):
        response = RegistrationResponse.from_response_json(
            self.request,
            {
                "client_id": TEST_CLIENT_ID,
                "client_secret": TEST_CLIENT_SECRET,
                "client_secret_expires_at": 0,
            },
        )
        assert not response.has_client_secret_expired(self.clock)

    def test_secret_expiry_is_in_seconds(self):
        # Arrange
        response = RegistrationResponse.from_response_json(
            self.request,
            {
                "client_id": TEST_CLIENT_ID,
                "client_secret": TEST_CLIENT_SECRET,
                "client_secret_expires_at": 2_000_000,
            },
        )

        # Assert
        assert not response.has_client_secret_expired(self.clock)
        self.clock.advance(1)
        assert response.has_client_secret_expired(self.clock)

    def test_json_round_trip(self):
        # Arrange
        response = RegistrationResponse.from_response_json(
            self.request,
            {
                "client_id": TEST_CLIENT_ID,
                "client_secret": TEST_CLIENT_SECRET,
                "client_secret_expires_at": 0,
            },
        )

        # Act
        restored = RegistrationResponse.from_json(response.to_json_string())

        # Assert
        assert restored == response
        assert restored.request == self.request


class TestClientAuthentication:
    def test_public_client_sends_client_id(self):
        auth = NoClientAuthentication()
        assert auth.request_headers(TEST_CLIENT_ID) == {}
        assert auth.request_parameters(TEST_CLIENT_ID) == {"client_id": TEST_CLIENT_ID}

    def test_client_secret_basic(self):
        # Arrange
        auth = ClientSecretBasic("s3cr3t:with/specials")

        # Act
        headers = auth.request_headers("client id")

        # Assert
        scheme, encoded = headers["Authorization"].split(" ")
        assert scheme == "Basic"
        assert base64.b64decode(encoded).decode() == "client%20id:s3cr3t%3Awith%2Fspecials"
        assert auth.request_parameters("client id") == {}

    def test_client_secret_post(self):
        auth = ClientSecretPost(TEST_CLIENT_SECRET)
        assert auth.request_headers(TEST_CLIENT_ID) == {}
        assert auth.request_parameters(TEST_CLIENT_ID) == {
            "client_id": TEST_CLIENT_ID,
            "client_secret": TEST_CLIENT_SECRET,
        }

    @pytest.mark.parametrize("auth_class", [ClientSecretBasic, ClientSecretPost])
    def test_empty_secret_is_rejected(self, auth_class):
        with pytest.raises(ValueError):
            auth_class("")
