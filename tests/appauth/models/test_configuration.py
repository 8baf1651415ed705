"""Tests for provider metadata parsing and service configuration."""

import json

import pytest
from pydantic import ValidationError

from appauth.models.configuration import ServiceConfiguration
from appauth.models.discovery import ProviderMetadata
from appauth.models.errors import MissingArgumentError
from tests.helpers import (
    TEST_AUTH_ENDPOINT,
    TEST_ISSUER,
    TEST_REGISTRATION_ENDPOINT,
    TEST_TOKEN_ENDPOINT,
    discovery_document,
    service_configuration,
)


class TestProviderMetadata:
    def test_required_fields_are_parsed(self):
        # Act
        metadata = ProviderMetadata.from_json(json.dumps(discovery_document()))

        # Assert
        assert metadata.issuer == TEST_ISSUER
        assert metadata.authorization_endpoint == TEST_AUTH_ENDPOINT
        assert metadata.token_endpoint == TEST_TOKEN_ENDPOINT
        assert metadata.response_types_supported == ["code", "token"]

    def test_defaults_apply_for_absent_optional_fields(self):
        # Act
        metadata = ProviderMetadata.from_json(discovery_document())

        # Assert
        assert metadata.response_modes_supported == ["query", "fragment"]
        assert metadata.grant_types_supported == ["authorization_code", "implicit"]
        assert metadata.token_endpoint_auth_methods_supported == ["client_secret_basic"]
        assert metadata.claim_types_supported == ["normal"]
        assert metadata.claims_parameter_supported is False
        assert metadata.request_uri_parameter_supported is True
        assert metadata.scopes_supported is None

    @pytest.mark.parametrize(
        "missing",
        [
            "issuer",
            "authorization_endpoint",
            "token_endpoint",
            "jwks_uri",
            "response_types_supported",
            "subject_types_supported",
        ],
    )
    def test_missing_required_field_names_the_field(self, missing):
        # Arrange
        document = discovery_document(**{missing: None})

        # Act & Assert
        with pytest.raises(MissingArgumentError) as exc_info:
            ProviderMetadata.from_json(document)
        assert exc_info.value.missing_field == missing

    def test_malformed_json_is_not_a_missing_field(self):
        with pytest.raises(ValueError) as exc_info:
            ProviderMetadata.from_json('{"issuer": "https://idp.example.com",}')
        assert not isinstance(exc_info.value, MissingArgumentError)

    def test_invalid_endpoint_is_rejected(self):
        with pytest.raises(ValidationError):
            ProviderMetadata.from_json(discovery_document(token_endpoint="not a uri"))

    def test_non_standard_members_are_retained(self):
        # Act
        metadata = ProviderMetadata.from_json(discovery_document(vendor_feature="on"))

        # Assert
        assert metadata.get("vendor_feature") == "on"
        assert metadata.document["vendor_feature"] == "on"
        assert metadata.get("claims_parameter_supported") is False
        assert metadata.get("unknown", "fallback") == "fallback"


class TestServiceConfiguration:
    def test_from_discovery(self):
        # Arrange
        metadata = ProviderMetadata.from_json(discovery_document())

        # Act
        config = ServiceConfiguration.from_discovery(metadata)

        # Assert
        assert config.authorization_endpoint == TEST_AUTH_ENDPOINT
        assert config.token_endpoint == TEST_TOKEN_ENDPOINT
        assert config.registration_endpoint == TEST_REGISTRATION_ENDPOINT
        assert config.discovery_doc == metadata

    def test_json_round_trip_without_discovery(self):
        # Arrange
        config = service_configuration()

        # Act
        restored = ServiceConfiguration.from_json(config.to_json_string())

        # Assert
        assert restored == config
        assert restored.discovery_doc is None

    def test_json_round_trip_keeps_discovery_document(self):
        # Arrange
        config = ServiceConfiguration.from_discovery(
            ProviderMetadata.from_json(discovery_document(vendor_feature="on"))
        )

        # Act
        restored = ServiceConfiguration.from_json(config.to_json())

        # Assert
        assert restored == config
        assert restored.discovery_doc.issuer == TEST_ISSUER
        assert restored.discovery_doc.get("vendor_feature") == "on"

    def test_equality_is_by_endpoints(self):
        # Arrange
        with_doc = ServiceConfiguration.from_discovery(
            ProviderMetadata.from_json(discovery_document())
        )

        # Assert
        assert with_doc == service_configuration()
        assert hash(with_doc) == hash(service_configuration())

    def test_invalid_endpoint_is_rejected(self):
        with pytest.raises(ValueError):
            ServiceConfiguration(authorization_endpoint="", token_endpoint=TEST_TOKEN_ENDPOINT)

    def test_is_immutable(self):
        config = service_configuration()
        with pytest.raises(ValidationError):
            config.token_endpoint = "https://other.example.com/token"

    @pytest.mark.parametrize("issuer", [TEST_ISSUER, TEST_ISSUER + "/"])
    def test_build_discovery_uri(self, issuer):
        assert (
            ServiceConfiguration.build_discovery_uri(issuer)
            == "https://testidp.example.com/.well-known/openid-configuration"
        )
