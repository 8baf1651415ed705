"""Error taxonomy for OAuth 2.0 and OpenID Connect failures.

Failures that a caller is expected to handle (network errors, malformed
provider documents, provider-reported OAuth error codes) are represented by
``AuthorizationException`` values. Each carries a category ``type`` and a
stable numeric ``code`` so callers can branch on, for example, a revoked
refresh token versus an unreachable network. Exceptions serialize to a
compact JSON form so they can cross the same persistence boundary as
successful responses.

Contract violations (invalid arguments) are plain ``ValueError`` instances
and are never represented here.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any

from appauth.primitives.json_fields import parse_json_object
from appauth.primitives.uri import get_query_parameters

KEY_TYPE = "type"
KEY_CODE = "code"
KEY_ERROR = "error"
KEY_ERROR_DESCRIPTION = "description"
KEY_ERROR_URI = "uri"

PARAM_ERROR = "error"
PARAM_ERROR_DESCRIPTION = "error_description"
PARAM_ERROR_URI = "error_uri"


class ErrorType(IntEnum):
    GENERAL = 0
    OAUTH_AUTHORIZATION = 1
    OAUTH_TOKEN = 2
    RESOURCE_SERVER_AUTHORIZATION = 3
    OAUTH_REGISTRATION = 4


class MissingArgumentError(ValueError):
    """Raised when a required field is absent from a provider document."""

    def __init__(self, missing_field: str):
        super().__init__(f"Missing mandatory field: {missing_field}")
        self.missing_field = missing_field


class AuthorizationException(Exception):
    """A classifiable, serializable OAuth failure.

    Instances are immutable. Two exceptions are equal when their type and
    code match, regardless of description or root cause.
    """

    def __init__(
        self,
        type: int,
        code: int,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
        root_cause: BaseException | None = None,
    ):
        super().__init__(error_description or error or f"{int(type)}:{code}")
        self._type = ErrorType(type)
        self._code = code
        self._error = error
        self._error_description = error_description
        self._error_uri = error_uri
        self._root_cause = root_cause
        if root_cause is not None:
            self.__cause__ = root_cause

    @property
    def type(self) -> ErrorType:
        return self._type

    @property
    def code(self) -> int:
        return self._code

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def error_description(self) -> str | None:
        return self._error_description

    @property
    def error_uri(self) -> str | None:
        return self._error_uri

    @property
    def root_cause(self) -> BaseException | None:
        return self._root_cause

    @classmethod
    def from_template(
        cls, template: AuthorizationException, root_cause: BaseException | None
    ) -> AuthorizationException:
        """Create an exception from a template, attaching a root cause."""
        return cls(
            template.type,
            template.code,
            template.error,
            template.error_description,
            template.error_uri,
            root_cause,
        )

    @classmethod
    def from_oauth_template(
        cls,
        template: AuthorizationException,
        error: str | None,
        error_description: str | None,
        error_uri: str | None,
    ) -> AuthorizationException:
        """Create an exception from a template, overriding the OAuth fields.

        Provider supplied values replace the template's defaults when present.
        """
        return cls(
            template.type,
            template.code,
            error if error is not None else template.error,
            error_description
            if error_description is not None
            else template.error_description,
            error_uri if error_uri is not None else template.error_uri,
            None,
        )

    @classmethod
    def from_oauth_redirect(cls, redirect_uri: str) -> AuthorizationException:
        """Build an authorization-endpoint error from a redirect URI.

        Raises:
            ValueError: If the redirect does not carry an ``error`` parameter
        """
        params = get_query_parameters(redirect_uri)
        error = params.get(PARAM_ERROR)
        if error is None:
            raise ValueError("redirect URI does not contain an error parameter")
        template = AuthorizationRequestErrors.by_string(error)
        return cls.from_oauth_template(
            template,
            error,
            params.get(PARAM_ERROR_DESCRIPTION),
            params.get(PARAM_ERROR_URI),
        )

    def to_json(self) -> dict[str, Any]:
        json_obj: dict[str, Any] = {KEY_TYPE: int(self._type), KEY_CODE: self._code}
        if self._error is not None:
            json_obj[KEY_ERROR] = self._error
        if self._error_description is not None:
            json_obj[KEY_ERROR_DESCRIPTION] = self._error_description
        if self._error_uri is not None:
            json_obj[KEY_ERROR_URI] = self._error_uri
        return json_obj

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    @classmethod
    def from_json(cls, data: str | bytes | dict[str, Any]) -> AuthorizationException:
        """Restore an exception from its compact JSON form.

        Raises:
            ValueError: If the JSON is malformed or lacks type or code
        """
        json_obj = parse_json_object(data)
        for key in (KEY_TYPE, KEY_CODE):
            if key not in json_obj:
                raise MissingArgumentError(key)
        return cls(
            int(json_obj[KEY_TYPE]),
            int(json_obj[KEY_CODE]),
            json_obj.get(KEY_ERROR),
            json_obj.get(KEY_ERROR_DESCRIPTION),
            json_obj.get(KEY_ERROR_URI),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AuthorizationException):
            return NotImplemented
        return self._type == other._type and self._code == other._code

    def __hash__(self) -> int:
        return hash((self._type, self._code))

    def __repr__(self) -> str:
        return (
            f"AuthorizationException(type={self._type.name}, code={self._code}, "
            f"error={self._error!r}, description={self._error_description!r})"
        )

    def __str__(self) -> str:
        parts = [f"[{self._type.name}:{self._code}]"]
        if self._error:
            parts.append(self._error)
        if self._error_description:
            parts.append(f"- {self._error_description}")
        if self._error_uri:
            parts.append(f"(see {self._error_uri})")
        return " ".join(parts)


def _general(code: int, description: str) -> AuthorizationException:
    return AuthorizationException(ErrorType.GENERAL, code, None, description)


def _authorization(
    code: int, error: str | None, description: str | None = None
) -> AuthorizationException:
    return AuthorizationException(
        ErrorType.OAUTH_AUTHORIZATION, code, error, description
    )


def _token(code: int, error: str | None, description: str | None = None) -> AuthorizationException:
    return AuthorizationException(ErrorType.OAUTH_TOKEN, code, error, description)


def _registration(
    code: int, error: str | None, description: str | None = None
) -> AuthorizationException:
    return AuthorizationException(
        ErrorType.OAUTH_REGISTRATION, code, error, description
    )


class _ErrorCategory:
    """Base for the template collections; ``OTHER`` is the lookup fallback."""

    OTHER: AuthorizationException

    @classmethod
    def templates(cls) -> list[AuthorizationException]:
        return [
            value
            for name, value in vars(cls).items()
            if not name.startswith("_") and isinstance(value, AuthorizationException)
        ]

    @classmethod
    def by_string(cls, error: str | None) -> AuthorizationException:
        for template in cls.templates():
            if template.error is not None and template.error == error:
                return template
        return cls.OTHER


class GeneralErrors:
    """Errors that do not originate from an OAuth endpoint."""

    INVALID_DISCOVERY_DOCUMENT = _general(0, "Invalid discovery document")
    USER_CANCELED_AUTH_FLOW = _general(1, "User cancelled flow")
    PROGRAM_CANCELED_AUTH_FLOW = _general(2, "Flow cancelled programmatically")
    NETWORK_ERROR = _general(3, "Network error")
    SERVER_ERROR = _general(4, "Server error")
    JSON_DESERIALIZATION_ERROR = _general(5, "JSON deserialization error")
    TOKEN_RESPONSE_CONSTRUCTION_ERROR = _general(6, "Token response construction error")
    INVALID_REGISTRATION_RESPONSE = _general(7, "Invalid registration response")
    STATE_MISMATCH = _general(9, "Response state param did not match request state")


class AuthorizationRequestErrors(_ErrorCategory):
    """Authorization endpoint errors (RFC 6749 Section 4.1.2.1, OIDC Core 3.1.2.6)."""

    INVALID_REQUEST = _authorization(
        1000, "invalid_request", "The request is missing a required parameter or is malformed"
    )
    UNAUTHORIZED_CLIENT = _authorization(
        1001, "unauthorized_client", "The client is not authorized to use this method"
    )
    ACCESS_DENIED = _authorization(
        1002, "access_denied", "The resource owner or server denied the request"
    )
    UNSUPPORTED_RESPONSE_TYPE = _authorization(
        1003, "unsupported_response_type", "The response type is not supported"
    )
    INVALID_SCOPE = _authorization(
        1004, "invalid_scope", "The requested scope is invalid, unknown, or malformed"
    )
    SERVER_ERROR = _authorization(
        1005, "server_error", "The authorization server encountered an unexpected condition"
    )
    TEMPORARILY_UNAVAILABLE = _authorization(
        1006, "temporarily_unavailable", "The authorization server is temporarily unavailable"
    )
    CLIENT_ERROR = _authorization(1007, None, "Client error")
    OTHER = _authorization(1008, None, "Unrecognized authorization error")
    INTERACTION_REQUIRED = _authorization(1009, "interaction_required")
    LOGIN_REQUIRED = _authorization(1010, "login_required")
    ACCOUNT_SELECTION_REQUIRED = _authorization(1011, "account_selection_required")
    CONSENT_REQUIRED = _authorization(1012, "consent_required")
    INVALID_REQUEST_URI = _authorization(1013, "invalid_request_uri")
    INVALID_REQUEST_OBJECT = _authorization(1014, "invalid_request_object")
    REQUEST_NOT_SUPPORTED = _authorization(1015, "request_not_supported")
    REQUEST_URI_NOT_SUPPORTED = _authorization(1016, "request_uri_not_supported")
    REGISTRATION_NOT_SUPPORTED = _authorization(1017, "registration_not_supported")


class TokenRequestErrors(_ErrorCategory):
    """Token endpoint errors (RFC 6749 Section 5.2)."""

    INVALID_REQUEST = _token(
        2000, "invalid_request", "The request is missing a required parameter or is malformed"
    )
    INVALID_CLIENT = _token(2001, "invalid_client", "Client authentication failed")
    INVALID_GRANT = _token(
        2002,
        "invalid_grant",
        "The authorization grant or refresh token is invalid, expired, or revoked",
    )
    UNAUTHORIZED_CLIENT = _token(
        2003, "unauthorized_client", "The client is not authorized to use this grant type"
    )
    UNSUPPORTED_GRANT_TYPE = _token(
        2004, "unsupported_grant_type", "The grant type is not supported"
    )
    INVALID_SCOPE = _token(
        2005, "invalid_scope", "The requested scope is invalid, unknown, or malformed"
    )
    CLIENT_ERROR = _token(2006, None, "Client error")
    OTHER = _token(2007, None, "Unrecognized token error")


class RegistrationRequestErrors(_ErrorCategory):
    """Registration endpoint errors (RFC 7591 Section 3.2.2)."""

    INVALID_REQUEST = _registration(
        4000, "invalid_request", "The registration request is malformed"
    )
    INVALID_REDIRECT_URI = _registration(
        4001, "invalid_redirect_uri", "One or more redirect URIs are invalid"
    )
    INVALID_CLIENT_METADATA = _registration(
        4002, "invalid_client_metadata", "One or more client metadata values are invalid"
    )
    CLIENT_ERROR = _registration(4003, None, "Client error")
    OTHER = _registration(4004, None, "Unrecognized registration error")
