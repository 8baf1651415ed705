"""OpenID Provider metadata (OpenID Connect Discovery 1.0, Section 3).

Parses a discovery document, enforcing the mandatory members and applying
the defaults OpenID Connect Discovery defines for absent optional members.
Non-standard members are retained so callers can inspect vendor extensions.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from appauth.models.errors import MissingArgumentError
from appauth.primitives.json_fields import parse_json_object
from appauth.primitives.uri import check_uri

MANDATORY_FIELDS = (
    "issuer",
    "authorization_endpoint",
    "token_endpoint",
    "jwks_uri",
    "response_types_supported",
    "subject_types_supported",
)


class ProviderMetadata(BaseModel):
    """OpenID Provider metadata returned from a discovery endpoint."""

    model_config = ConfigDict(frozen=True, extra="allow")

    # Required
    issuer: str
    authorization_endpoint: str
    token_endpoint: str
    jwks_uri: str
    response_types_supported: list[str] = Field(min_length=1)
    subject_types_supported: list[str] = Field(min_length=1)

    # Optional endpoints
    userinfo_endpoint: str | None = None
    registration_endpoint: str | None = None
    end_session_endpoint: str | None = None
    revocation_endpoint: str | None = None
    introspection_endpoint: str | None = None

    # Optional capabilities, with their Discovery 1.0 defaults
    scopes_supported: list[str] | None = None
    response_modes_supported: list[str] = Field(
        default_factory=lambda: ["query", "fragment"]
    )
    grant_types_supported: list[str] = Field(
        default_factory=lambda: ["authorization_code", "implicit"]
    )
    acr_values_supported: list[str] | None = None
    id_token_signing_alg_values_supported: list[str] = Field(
        default_factory=lambda: ["RS256"]
    )
    id_token_encryption_alg_values_supported: list[str] | None = None
    id_token_encryption_enc_values_supported: list[str] | None = None
    userinfo_signing_alg_values_supported: list[str] | None = None
    request_object_signing_alg_values_supported: list[str] | None = None
    token_endpoint_auth_methods_supported: list[str] = Field(
        default_factory=lambda: ["client_secret_basic"]
    )
    token_endpoint_auth_signing_alg_values_supported: list[str] | None = None
    display_values_supported: list[str] | None = None
    claim_types_supported: list[str] = Field(default_factory=lambda: ["normal"])
    claims_supported: list[str] | None = None
    code_challenge_methods_supported: list[str] | None = None
    service_documentation: str | None = None
    claims_locales_supported: list[str] | None = None
    ui_locales_supported: list[str] | None = None
    claims_parameter_supported: bool = False
    request_parameter_supported: bool = False
    request_uri_parameter_supported: bool = True
    require_request_uri_registration: bool = False
    op_policy_uri: str | None = None
    op_tos_uri: str | None = None

    @field_validator(
        "authorization_endpoint",
        "token_endpoint",
        "jwks_uri",
        "userinfo_endpoint",
        "registration_endpoint",
        "end_session_endpoint",
    )
    @classmethod
    def validate_endpoint(cls, v: str | None) -> str | None:
        if v is not None:
            check_uri(v, "endpoint")
        return v

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> ProviderMetadata:
        """Parse a discovery document.

        Raises:
            json.JSONDecodeError: If the document is not valid JSON
            MissingArgumentError: If a mandatory member is absent
            pydantic.ValidationError: If a member has the wrong type or value
        """
        document = parse_json_object(data)
        for field_name in MANDATORY_FIELDS:
            if document.get(field_name) is None:
                raise MissingArgumentError(field_name)
        return cls.model_validate(document)

    @property
    def document(self) -> dict[str, Any]:
        """The discovery document as received, including non-standard members."""
        document = self.model_dump(mode="json", exclude_unset=True)
        document.update(self.model_extra or {})
        return document

    def get(self, key: str, default: Any = None) -> Any:
        """Look up any member, standard or not, by its JSON name."""
        if key in type(self).model_fields:
            return getattr(self, key)
        return (self.model_extra or {}).get(key, default)
