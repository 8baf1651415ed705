"""Dynamic client registration messages (RFC 7591, OpenID Connect Registration).

Contains the registration request describing a native client and the
registration response carrying the issued client credentials.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic import Field, field_serializer, field_validator

from appauth.models.base import ExtensibleMessageModel
from appauth.models.configuration import ServiceConfiguration
from appauth.models.errors import MissingArgumentError
from appauth.primitives.clock import SYSTEM_CLOCK, Clock
from appauth.primitives.json_fields import (
    extract_additional_json_parameters,
    parse_json_object,
)
from appauth.primitives.uri import check_uri

APPLICATION_TYPE_NATIVE = "native"


class RegistrationRequest(ExtensibleMessageModel):
    """A client registration request for a native application."""

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "redirect_uris",
            "response_types",
            "grant_types",
            "application_type",
            "subject_type",
            "token_endpoint_auth_method",
        }
    )

    configuration: ServiceConfiguration
    redirect_uris: list[str] = Field(min_length=1)
    response_types: list[str] | None = None
    grant_types: list[str] | None = None
    subject_type: str | None = None
    token_endpoint_auth_method: str | None = None

    @property
    def application_type(self) -> str:
        return APPLICATION_TYPE_NATIVE

    @field_validator("configuration", mode="before")
    @classmethod
    def validate_configuration(cls, v: Any) -> Any:
        if isinstance(v, (dict, str, bytes)):
            return ServiceConfiguration.from_json(v)
        return v

    @field_serializer("configuration")
    def serialize_configuration(self, configuration: ServiceConfiguration) -> dict[str, Any]:
        return configuration.to_json()

    @field_validator("redirect_uris")
    @classmethod
    def validate_redirect_uris(cls, v: list[str]) -> list[str]:
        for uri in v:
            check_uri(uri, "redirect_uri")
        return v

    @field_validator("response_types", "grant_types")
    @classmethod
    def validate_string_lists(cls, v: list[str] | None) -> list[str] | None:
        if v is not None and any(not value for value in v):
            raise ValueError("list entries must not be empty")
        return v

    def request_parameters(self) -> dict[str, Any]:
        """JSON body sent to the registration endpoint."""
        params: dict[str, Any] = {
            "redirect_uris": list(self.redirect_uris),
            "application_type": self.application_type,
        }
        if self.response_types is not None:
            params["response_types"] = list(self.response_types)
        if self.grant_types is not None:
            params["grant_types"] = list(self.grant_types)
        if self.subject_type is not None:
            params["subject_type"] = self.subject_type
        if self.token_endpoint_auth_method is not None:
            params["token_endpoint_auth_method"] = self.token_endpoint_auth_method
        params.update(self.additional_parameters)
        return params


class RegistrationResponse(ExtensibleMessageModel):
    """A successful client registration response (RFC 7591 Section 3.2.1).

    Expiry and issue instants are seconds since the epoch, as on the wire.
    """

    BUILT_IN_PARAMS: ClassVar[frozenset[str]] = frozenset(
        {
            "client_id",
            "client_secret",
            "client_secret_expires_at",
            "registration_access_token",
            "registration_client_uri",
            "client_id_issued_at",
            "token_endpoint_auth_method",
        }
    )

    request: RegistrationRequest
    client_id: str = Field(min_length=1)
    client_id_issued_at: int | None = None
    client_secret: str | None = None
    client_secret_expires_at: int | None = None
    registration_access_token: str | None = None
    registration_client_uri: str | None = None
    token_endpoint_auth_method: str | None = None

    @field_validator("request", mode="before")
    @classmethod
    def validate_request(cls, v: Any) -> Any:
        if isinstance(v, (dict, str, bytes)):
            return RegistrationRequest.from_json(v)
        return v

    @field_serializer("request")
    def serialize_request(self, request: RegistrationRequest) -> dict[str, Any]:
        return request.to_json()

    @field_validator("registration_client_uri")
    @classmethod
    def validate_registration_client_uri(cls, v: str | None) -> str | None:
        if v is not None:
            check_uri(v, "registration_client_uri")
        return v

    @staticmethod
    def check_mandatory_fields(json_obj: dict[str, Any]) -> None:
        """Check the conditionally required members of a registration response.

        Raises:
            MissingArgumentError: Naming the first missing member
        """
        if json_obj.get("client_id") is None:
            raise MissingArgumentError("client_id")

        if (
            json_obj.get("client_secret") is not None
            and json_obj.get("client_secret_expires_at") is None
        ):
            raise MissingArgumentError("client_secret_expires_at")

        has_access_token = json_obj.get("registration_access_token") is not None
        has_client_uri = json_obj.get("registration_client_uri") is not None
        if has_access_token != has_client_uri:
            raise MissingArgumentError(
                "registration_client_uri"
                if has_access_token
                else "registration_access_token"
            )

    @classmethod
    def from_response_json(
        cls, request: RegistrationRequest, data: str | bytes | dict[str, Any]
    ) -> RegistrationResponse:
        """Build a response from the registration endpoint's JSON body.

        Raises:
            MissingArgumentError: If a required member is absent
            ValueError: If the body is malformed or a member is invalid
        """
        json_obj = parse_json_object(data)
        cls.check_mandatory_fields(json_obj)
        return cls(
            request=request,
            client_id=json_obj["client_id"],
            client_id_issued_at=json_obj.get("client_id_issued_at"),
            client_secret=json_obj.get("client_secret"),
            client_secret_expires_at=json_obj.get("client_secret_expires_at"),
            registration_access_token=json_obj.get("registration_access_token"),
            registration_client_uri=json_obj.get("registration_client_uri"),
            token_endpoint_auth_method=json_obj.get("token_endpoint_auth_method"),
            additional_parameters=extract_additional_json_parameters(
                json_obj, cls.BUILT_IN_PARAMS
            ),
        )

    @classmethod
    def from_json(
        cls,
        data: str | bytes | dict[str, Any],
        request: RegistrationRequest | None = None,
    ) -> RegistrationResponse:
        """Restore a persisted response.

        Raises:
            ValueError: If no request is given and none is embedded
        """
        json_obj = parse_json_object(data)
        if request is not None:
            json_obj["request"] = request
        elif "request" not in json_obj:
            raise ValueError("registration request not provided and not found in JSON")
        cls.check_mandatory_fields(json_obj)
        return cls.model_validate(json_obj)

    def has_client_secret_expired(self, clock: Clock = SYSTEM_CLOCK) -> bool:
        """True once the client secret's expiry has passed.

        A ``client_secret_expires_at`` of 0 means the secret does not expire.
        """
        if not self.client_secret_expires_at:
            return False
        return clock.current_time_millis() > self.client_secret_expires_at * 1000
