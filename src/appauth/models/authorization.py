"""Authorization endpoint messages (RFC 6749 Section 4, OpenID Connect Core 3).

Contains the authorization request sent through the user agent and the
response parsed from the redirect URI.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, ClassVar

from pydantic import (
    Field,
    ValidationInfo,
    field_serializer,
    field_validator,
    model_validator,
)

from appauth.models.base import (
    ExtensibleMessageModel,
    check_not_empty_if_defined,
)
from appauth.models.configuration import ServiceConfiguration
from appauth.models.tokens import GrantType, TokenRequest
from appauth.primitives.clock import SYSTEM_CLOCK, Clock, expiration_from_expires_in
from appauth.primitives.json_fields import parse_json_object
from appauth.primitives.pkce import (
    CODE_CHALLENGE_METHOD_S256,
    check_code_verifier,
    derive_code_challenge,
    generate_code_verifier,
)
from appauth.primitives.scope import normalize_scope, scope_string_to_list, scope_string_to_set
from appauth.primitives.security import generate_state
from appauth.primitives.uri import (
    append_query_parameters,
    check_uri,
    extract_additional_parameters,
    get_long_query_parameter,
    get_query_parameters,
)


class ResponseType:
    """Response type values (OAuth 2.0 Multiple Response Type Encoding)."""

    CODE = "code"
    TOKEN = "token"
    ID_TOKEN = "id_token"


class Scope:
    """Scope values defined by OpenID Connect Core Section 5.4."""

    OPENID = "openid"
    PROFILE = "profile"
    EMAIL = "email"
    ADDRESS = "address"
    PHONE = "phone"


class Display:
    PAGE = "page"
    POPUP = "popup"
    TOUCH = "touch"
    WAP = "wap"


class Prompt:
    NONE = "none"
    LOGIN = "login"
    CONSENT = "consent"
    SELECT_ACCOUNT = "select_account"


class ResponseMode:
    QUERY = "query"
    FRAGMENT = "fragment"
    FORM_POST = "form_post"


class AuthorizationRequest(ExtensibleMessageModel):
    """An authorization request (RFC 6749 Section 4.1.1).

    A random ``state`` is generated when none is supplied. PKCE is enabled by
    default: unless ``code_verifier`` is given (or explicitly ``None`` to
    opt out), a verifier is generated and an ``S256`` challenge derived from
    it. The verifier is kept on the request so it can be sent again at token
    exchange time; only the challenge is sent to the authorization endpoint.
    """

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "client_id",
            "code_challenge",
            "code_challenge_method",
            "display",
            "login_hint",
            "nonce",
            "prompt",
            "redirect_uri",
            "response_mode",
            "response_type",
            "scope",
            "state",
        }
    )

    configuration: ServiceConfiguration
    client_id: str = Field(min_length=1)
    response_type: str = Field(min_length=1)
    redirect_uri: str
    scope: str | None = None
    state: str | None = Field(default_factory=generate_state)
    nonce: str | None = None
    display: str | None = None
    login_hint: str | None = None
    prompt: str | None = None
    response_mode: str | None = None
    code_verifier: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None

    @model_validator(mode="before")
    @classmethod
    def apply_pkce_defaults(cls, data: Any) -> Any:
        """Generate or derive the PKCE parameters before field validation."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        challenge_given = (
            data.get("code_challenge") is not None
            or data.get("code_challenge_method") is not None
        )
        if "code_verifier" not in data and not challenge_given:
            data["code_verifier"] = generate_code_verifier()

        verifier = data.get("code_verifier")
        if verifier is None:
            if challenge_given:
                raise ValueError(
                    "code_verifier is required with code_challenge or code_challenge_method"
                )
            return data

        check_code_verifier(verifier)
        if data.get("code_challenge") is None:
            method = data.get("code_challenge_method") or CODE_CHALLENGE_METHOD_S256
            data["code_challenge"] = derive_code_challenge(verifier, method)
            data["code_challenge_method"] = method
        elif not data.get("code_challenge_method"):
            raise ValueError("code_challenge_method must be set with code_challenge")
        return data

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
    def validate_redirect_uri(cls, v: str) -> str:
        return check_uri(v, "redirect_uri")

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v: str | Iterable[str] | None) -> str | None:
        return normalize_scope(v)

    @field_validator("state", "nonce", "display", "login_hint", "prompt", "response_mode")
    @classmethod
    def validate_optional_strings(cls, v: str | None, info: ValidationInfo) -> str | None:
        return check_not_empty_if_defined(v, info.field_name)

    def get_scope_set(self) -> set[str] | None:
        return scope_string_to_set(self.scope)

    @property
    def scopes(self) -> list[str] | None:
        return scope_string_to_list(self.scope)

    def request_parameters(self) -> dict[str, str]:
        """The query parameters sent to the authorization endpoint."""
        params: dict[str, str | None] = {
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "response_type": self.response_type,
            "state": self.state,
            "nonce": self.nonce,
            "login_hint": self.login_hint,
            "display": self.display,
            "prompt": self.prompt,
            "response_mode": self.response_mode,
            "scope": self.scope,
        }
        if self.code_verifier is not None:
            params["code_challenge"] = self.code_challenge
            params["code_challenge_method"] = self.code_challenge_method
        params.update(self.additional_parameters)
        return {key: value for key, value in params.items() if value is not None}

    def to_uri(self) -> str:
        """Build the complete authorization URL."""
        return append_query_parameters(
            self.configuration.authorization_endpoint, self.request_parameters()
        )

    def to_json(self) -> dict[str, Any]:
        # An absent state or verifier must stay absent after a round trip
        # instead of being regenerated.
        json_obj = super().to_json()
        json_obj.setdefault("state", None)
        json_obj.setdefault("code_verifier", None)
        return json_obj


class AuthorizationResponse(ExtensibleMessageModel):
    """A response from the authorization endpoint (RFC 6749 Section 4.1.2).

    The echoed ``state`` is stored as received; matching it against the
    request is done where the redirect is received, see
    ``appauth.services.authorization.handle_authorization_redirect``.
    """

    TOKEN_TYPE_BEARER: ClassVar[str] = "bearer"

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "request",
            "token_type",
            "state",
            "code",
            "access_token",
            "expires_in",
            "id_token",
            "scope",
        }
    )

    request: AuthorizationRequest
    state: str | None = None
    token_type: str | None = None
    authorization_code: str | None = Field(default=None, alias="code")
    access_token: str | None = None
    access_token_expiration_time: int | None = Field(default=None, alias="expires_at")
    id_token: str | None = None
    scope: str | None = None

    @field_validator("request", mode="before")
    @classmethod
    def validate_request(cls, v: Any) -> Any:
        if isinstance(v, (dict, str, bytes)):
            return AuthorizationRequest.from_json(v)
        return v

    @field_serializer("request")
    def serialize_request(self, request: AuthorizationRequest) -> dict[str, Any]:
        return request.to_json()

    @field_validator("state", "token_type", "authorization_code", "access_token", "id_token")
    @classmethod
    def validate_optional_strings(cls, v: str | None, info: ValidationInfo) -> str | None:
        return check_not_empty_if_defined(v, info.field_name)

    @field_validator("scope", mode="before")
    @classmethod
    def validate_scope(cls, v: str | Iterable[str] | None) -> str | None:
        return normalize_scope(v)

    @classmethod
    def from_uri(
        cls,
        request: AuthorizationRequest,
        uri: str,
        clock: Clock = SYSTEM_CLOCK,
    ) -> AuthorizationResponse:
        """Parse a successful authorization redirect.

        A relative ``expires_in`` is converted to an absolute expiration
        instant using the given clock.
        """
        params = get_query_parameters(uri)
        expires_in = get_long_query_parameter(uri, "expires_in")
        return cls(
            request=request,
            state=params.get("state"),
            token_type=params.get("token_type"),
            authorization_code=params.get("code"),
            access_token=params.get("access_token"),
            access_token_expiration_time=expiration_from_expires_in(expires_in, clock),
            id_token=params.get("id_token"),
            scope=params.get("scope"),
            additional_parameters=extract_additional_parameters(
                uri, cls.BUILT_IN_PARAMS
            ),
        )

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> AuthorizationResponse:
        json_obj = parse_json_object(data)
        if "request" not in json_obj:
            raise ValueError("authorization request not provided and not found in JSON")
        return cls.model_validate(json_obj)

    def get_scope_set(self) -> set[str] | None:
        return scope_string_to_set(self.scope)

    def has_access_token_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        return (
            self.access_token_expiration_time is not None
            and clock.current_time_millis() > self.access_token_expiration_time
        )

    def create_token_exchange_request(
        self, additional_parameters: Mapping[str, str] | None = None
    ) -> TokenRequest:
        """Create the token request that exchanges this response's code.

        Raises:
            RuntimeError: If the response carries no authorization code
        """
        if self.authorization_code is None:
            raise RuntimeError("authorization_code not available for exchange request")

        return TokenRequest(
            configuration=self.request.configuration,
            client_id=self.request.client_id,
            grant_type=GrantType.AUTHORIZATION_CODE,
            redirect_uri=self.request.redirect_uri,
            scope=self.request.scope,
            code_verifier=self.request.code_verifier,
            authorization_code=self.authorization_code,
            additional_parameters=dict(additional_parameters or {}),
        )


