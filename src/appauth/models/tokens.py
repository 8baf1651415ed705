"""Token endpoint messages (RFC 6749 Sections 4.1.3, 5 and 6).

Contains the token request sent to the token endpoint, covering both the
authorization code exchange and refresh grants, and the token response.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

from pydantic import (
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from appauth.models.base import ExtensibleMessageModel, check_not_empty_if_defined
from appauth.models.configuration import ServiceConfiguration
from appauth.primitives.clock import SYSTEM_CLOCK, Clock, expiration_from_expires_in
from appauth.primitives.json_fields import (
    extract_additional_json_parameters,
    parse_json_object,
)
from appauth.primitives.pkce import check_code_verifier
from appauth.primitives.scope import normalize_scope, scope_string_to_set
from appauth.primitives.uri import check_uri


def _parse_expires_in(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"expires_in must be an integer, got {type(value).__name__}")
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"expires_in is not an integer: {value}") from e


class GrantType:
    """Grant type values (RFC 6749)."""

    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"
    PASSWORD = "password"
    CLIENT_CREDENTIALS = "client_credentials"
    IMPLICIT = "implicit"


class TokenRequest(ExtensibleMessageModel):
    """A token endpoint request.

    When ``grant_type`` is omitted it is inferred: ``authorization_code`` if
    an authorization code is present, otherwise ``refresh_token`` if a
    refresh token is present. Extension grants are accepted as-is.
    """

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "client_id",
            "code",
            "code_verifier",
            "grant_type",
            "redirect_uri",
            "refresh_token",
            "scope",
        }
    )

    configuration: ServiceConfiguration
    client_id: str = Field(min_length=1)
    grant_type: str = Field(min_length=1)
    redirect_uri: str | None = None
    authorization_code: str | None = Field(default=None, alias="code")
    refresh_token: str | None = None
    code_verifier: str | None = None
    scope: str | None = None

    @model_validator(mode="before")
    @classmethod
    def infer_grant_type(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("grant_type") is not None:
            return data

        data = dict(data)
        if data.get("authorization_code", data.get("code")) is not None:
            data["grant_type"] = GrantType.AUTHORIZATION_CODE
        elif data.get("refresh_token") is not None:
            data["grant_type"] = GrantType.REFRESH_TOKEN
        else:
            raise ValueError("grant_type not specified and cannot be inferred")
        return data

    @model_validator(mode="after")
    def check_grant_requirements(self) -> TokenRequest:
        if self.grant_type == GrantType.AUTHORIZATION_CODE:
            if self.authorization_code is None:
                raise ValueError(
                    "authorization code must be specified for "
                    "grant_type = authorization_code"
                )
            if self.redirect_uri is None:
                raise ValueError(
                    "no redirect URI specified on token request for code exchange"
                )
        if self.grant_type == GrantType.REFRESH_TOKEN and self.refresh_token is None:
            raise ValueError(
                "refresh token must be specified for grant_type = refresh_token"
            )
        return self

    @field_validator("configuration", mode="before")
    @classmethod
    def validate_configuration(cls, v: Any) -> Any:
        if isinstance(v, (dict, str, bytes)):
            return ServiceConfiguration.from_json(v)
        return v

    @field_serializer("configuration")
    def serialize_configuration(self, configuration: ServiceConfiguration) -> dict[str, Any]:
        return configuration.to_json()

    @field_validator("redirect_uri")
    @classmethod
    def validate_redirect_uri(cls, v: str | None) -> str | None:
        if v is not None:
            check_uri(v, "redirect_uri")
        return v

    @field_validator("authorization_code", "refresh_token")
    @classmethod
    def validate_optional_strings(cls, v: str | None, info: ValidationInfo) -> str | None:
        return check_not_empty_if_defined(v, info.field_name)

    @field_validator("code_verifier")
    @classmethod
    def validate_code_verifier(cls, v: str | None) -> str | None:
        if v is not None:
            check_code_verifier(v)
        return v

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v: str | Iterable[str] | None) -> str | None:
        return normalize_scope(v)

    def get_scope_set(self) -> set[str] | None:
        return scope_string_to_set(self.scope)

    def request_parameters(self) -> dict[str, str]:
        """Form parameters for the token endpoint, excluding client authentication."""
        params: dict[str, str | None] = {
            "grant_type": self.grant_type,
            "redirect_uri": self.redirect_uri,
            "code": self.authorization_code,
            "refresh_token": self.refresh_token,
            "code_verifier": self.code_verifier,
            "scope": self.scope,
        }
        params.update(self.additional_parameters)
        return {key: value for key, value in params.items() if value is not None}


class TokenResponse(ExtensibleMessageModel):
    """A token endpoint response (RFC 6749 Section 5.1).

    The expiry is held as an absolute instant in milliseconds. An absent
    refresh token means the previously issued refresh token, if any, is
    still the current one.
    """

    TOKEN_TYPE_BEARER: ClassVar[str] = "bearer"

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "token_type",
            "access_token",
            "expires_in",
            "refresh_token",
            "id_token",
            "scope",
        }
    )

    request: TokenRequest
    token_type: str | None = None
    access_token: str | None = None
    access_token_expiration_time: int | None = Field(default=None, alias="expires_at")
    id_token: str | None = None
    refresh_token: str | None = None
    scope: str | None = None

    @field_validator("request", mode="before")
    @classmethod
    def validate_request(cls, v: Any) -> Any:
        if isinstance(v, (dict, str, bytes)):
            return TokenRequest.from_json(v)
        return v

    @field_serializer("request")
    def serialize_request(self, request: TokenRequest) -> dict[str, Any]:
        return request.to_json()

    @field_validator("token_type", "access_token", "id_token", "refresh_token")
    @classmethod
    def validate_optional_strings(cls, v: str | None, info: ValidationInfo) -> str | None:
        return check_not_empty_if_defined(v, info.field_name)

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v: str | Iterable[str] | None) -> str | None:
        return normalize_scope(v)

    @classmethod
    def from_response_json(
        cls,
        request: TokenRequest,
        data: str | bytes | dict[str, Any],
        clock: Clock = SYSTEM_CLOCK,
    ) -> TokenResponse:
        """Build a response from the token endpoint's JSON body.

        A relative ``expires_in`` takes precedence over an absolute
        ``expires_at`` and is converted using the given clock.

        Raises:
            ValueError: If the body is malformed or a field is invalid
        """
        json_obj = parse_json_object(data)

        expiration = json_obj.get("expires_at")
        if json_obj.get("expires_in") is not None:
            expiration = expiration_from_expires_in(
                _parse_expires_in(json_obj["expires_in"]), clock
            )

        return cls(
            request=request,
            token_type=json_obj.get("token_type"),
            access_token=json_obj.get("access_token"),
            access_token_expiration_time=expiration,
            id_token=json_obj.get("id_token"),
            refresh_token=json_obj.get("refresh_token"),
            scope=json_obj.get("scope"),
            additional_parameters=extract_additional_json_parameters(
                json_obj, cls.BUILT_IN_PARAMS | {"expires_at"}
            ),
        )

    @classmethod
    def from_json(
        cls,
        data: str | bytes | dict[str, Any],
        request: TokenRequest | None = None,
    ) -> TokenResponse:
        """Restore a persisted response.

        Raises:
            ValueError: If no request is given and none is embedded
        """
        json_obj = parse_json_object(data)
        if request is not None:
            json_obj["request"] = request
        elif "request" not in json_obj:
            raise ValueError("token request not provided and not found in JSON")
        return cls.model_validate(json_obj)

    def get_scope_set(self) -> set[str] | None:
        return scope_string_to_set(self.scope)
