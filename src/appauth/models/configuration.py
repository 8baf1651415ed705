"""Authorization service configuration.

Describes the endpoints of an authorization server, either supplied
directly or derived from an OpenID Provider discovery document.
"""

from __future__ import annotations

from typing import Any

from pydantic import field_serializer, field_validator

from appauth.models.base import MessageModel
from appauth.models.discovery import ProviderMetadata
from appauth.primitives.json_fields import parse_json_object
from appauth.primitives.uri import check_uri

WELL_KNOWN_PATH = ".well-known"
OPENID_CONFIGURATION_RESOURCE = "openid-configuration"


class ServiceConfiguration(MessageModel):
    """Endpoints of an authorization server.

    Two configurations are equal when their endpoint URIs are equal; the
    discovery document snapshot does not take part in equality.
    """

    authorization_endpoint: str
    token_endpoint: str
    registration_endpoint: str | None = None
    discovery_doc: ProviderMetadata | None = None

    @field_validator("authorization_endpoint", "token_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        return check_uri(v, "endpoint")

    @field_validator("registration_endpoint")
    @classmethod
    def validate_registration_endpoint(cls, v: str | None) -> str | None:
        if v is not None:
            check_uri(v, "registration_endpoint")
        return v

    @field_validator("discovery_doc", mode="before")
    @classmethod
    def validate_discovery_doc(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return ProviderMetadata.from_json(v)
        return v

    @field_serializer("discovery_doc")
    def serialize_discovery_doc(
        self, discovery_doc: ProviderMetadata | None
    ) -> dict[str, Any] | None:
        return discovery_doc.document if discovery_doc is not None else None

    @classmethod
    def from_discovery(cls, discovery_doc: ProviderMetadata) -> ServiceConfiguration:
        """Derive a configuration from validated provider metadata."""
        return cls(
            authorization_endpoint=discovery_doc.authorization_endpoint,
            token_endpoint=discovery_doc.token_endpoint,
            registration_endpoint=discovery_doc.registration_endpoint,
            discovery_doc=discovery_doc,
        )

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> ServiceConfiguration:
        """Restore a configuration.

        When a discovery document is present the endpoints are re-derived
        from it, so both forms stay consistent.
        """
        json_obj = parse_json_object(data)
        if json_obj.get("discovery_doc") is not None:
            return cls.from_discovery(ProviderMetadata.from_json(json_obj["discovery_doc"]))
        return cls.model_validate(json_obj)

    @staticmethod
    def build_discovery_uri(issuer: str) -> str:
        """Build the OpenID discovery URI for an issuer.

        Example: ``https://accounts.example.com`` becomes
        ``https://accounts.example.com/.well-known/openid-configuration``
        """
        check_uri(issuer, "issuer")
        return f"{issuer.rstrip('/')}/{WELL_KNOWN_PATH}/{OPENID_CONFIGURATION_RESOURCE}"

    def _endpoints(self) -> tuple[str, str, str | None]:
        return (
            self.authorization_endpoint,
            self.token_endpoint,
            self.registration_endpoint,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ServiceConfiguration):
            return NotImplemented
        return self._endpoints() == other._endpoints()

    def __hash__(self) -> int:
        return hash(self._endpoints())
