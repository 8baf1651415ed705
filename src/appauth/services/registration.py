"""Dynamic client registration service.

Implements RFC 7591 (OAuth 2.0 Dynamic Client Registration Protocol) for
native clients.
"""

from __future__ import annotations

import logging

import httpx

from appauth.models.errors import (
    AuthorizationException,
    GeneralErrors,
    MissingArgumentError,
    RegistrationRequestErrors,
)
from appauth.models.registration import RegistrationRequest, RegistrationResponse
from appauth.primitives.json_fields import parse_json_object

logger = logging.getLogger(__name__)


class OAuth2Registration:
    """Registers clients with an authorization server's registration endpoint."""

    def __init__(self, timeout: float = 30.0):
        """Initialize registration.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def perform_registration_request(
        self,
        request: RegistrationRequest,
        initial_access_token: str | None = None,
    ) -> RegistrationResponse | AuthorizationException:
        """Register a new client.

        Args:
            request: Client metadata to register
            initial_access_token: Optional bearer token for protected
                registration endpoints (RFC 7591 Section 3.1)

        Returns:
            The registration response, or the categorized failure

        Raises:
            ValueError: If the configuration has no registration endpoint
        """
        registration_endpoint = request.configuration.registration_endpoint
        if registration_endpoint is None:
            raise ValueError("configuration has no registration_endpoint")

        logger.debug(f"Registering client at {registration_endpoint}")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if initial_access_token:
            headers["Authorization"] = f"Bearer {initial_access_token}"

        try:
            response = await self._http_client.post(
                registration_endpoint,
                json=request.request_parameters(),
                headers=headers,
            )
        except httpx.HTTPError as e:
            logger.error(f"Network error during registration: {e}")
            return AuthorizationException.from_template(GeneralErrors.NETWORK_ERROR, e)

        return self._parse_registration_response(request, response)

    def _parse_registration_response(
        self, request: RegistrationRequest, response: httpx.Response
    ) -> RegistrationResponse | AuthorizationException:
        try:
            json_obj = parse_json_object(response.content)
        except ValueError as e:
            logger.error(
                f"Registration endpoint returned a non-JSON body (HTTP {response.status_code})"
            )
            return AuthorizationException.from_template(
                GeneralErrors.JSON_DESERIALIZATION_ERROR, e
            )

        if "error" in json_obj:
            error = json_obj.get("error")
            error_description = json_obj.get("error_description")
            logger.warning(
                f"Client registration failed with {response.status_code}: "
                f"{error} - {error_description}"
            )
            return AuthorizationException.from_oauth_template(
                RegistrationRequestErrors.by_string(error),
                error,
                error_description,
                json_obj.get("error_uri"),
            )

        if response.is_error:
            logger.error(f"Registration endpoint returned HTTP {response.status_code}")
            return AuthorizationException.from_template(
                GeneralErrors.SERVER_ERROR,
                httpx.HTTPStatusError(
                    f"HTTP {response.status_code}",
                    request=response.request,
                    response=response,
                ),
            )

        try:
            registration_response = RegistrationResponse.from_response_json(request, json_obj)
        except MissingArgumentError as e:
            logger.error(f"Registration response missing {e.missing_field}")
            return AuthorizationException.from_template(
                GeneralErrors.INVALID_REGISTRATION_RESPONSE, e
            )
        except ValueError as e:
            logger.error(f"Invalid registration response: {e}")
            return AuthorizationException.from_template(
                GeneralErrors.INVALID_REGISTRATION_RESPONSE, e
            )

        logger.info(f"Successfully registered client {registration_response.client_id}")
        return registration_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
