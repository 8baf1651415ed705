"""OAuth 2.0 token endpoint service.

Implements RFC 6749 token endpoint interactions for both the authorization
code exchange (Section 4.1.3) and refresh (Section 6) grants, with PKCE
(RFC 7636) code verifiers carried on the request.
"""

from __future__ import annotations

import logging

import httpx

from appauth.models.client_authentication import (
    ClientAuthentication,
    NoClientAuthentication,
)
from appauth.models.errors import (
    AuthorizationException,
    GeneralErrors,
    TokenRequestErrors,
)
from appauth.models.tokens import TokenRequest, TokenResponse
from appauth.primitives.clock import SYSTEM_CLOCK, Clock
from appauth.primitives.json_fields import parse_json_object

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Performs token requests against an authorization server.

    Requests are sent as ``application/x-www-form-urlencoded`` with the
    configured client authentication applied. Every outcome is returned as
    either a ``TokenResponse`` or an ``AuthorizationException``:

    - provider ``error`` responses map onto ``TokenRequestErrors``
    - transport failures map onto ``GeneralErrors.NETWORK_ERROR``
    - bodies that are not JSON objects map onto ``GeneralErrors.JSON_DESERIALIZATION_ERROR``
    - bodies with invalid token fields map onto
      ``GeneralErrors.TOKEN_RESPONSE_CONSTRUCTION_ERROR``
    """

    def __init__(
        self,
        timeout: float = 30.0,
        client_authentication: ClientAuthentication | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ):
        """Initialize the token manager.

        Args:
            timeout: HTTP request timeout in seconds
            client_authentication: How the client authenticates to the token
                endpoint, defaults to a public client
            clock: Time source used to compute token expiry
        """
        self.timeout = timeout
        self.client_authentication = client_authentication or NoClientAuthentication()
        self.clock = clock
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def perform_token_request(
        self, request: TokenRequest
    ) -> TokenResponse | AuthorizationException:
        """Send a token request and parse the outcome.

        Args:
            request: Code exchange or refresh request

        Returns:
            The token response, or the categorized failure
        """
        token_endpoint = request.configuration.token_endpoint
        logger.debug(
            f"Sending {request.grant_type} token request to {token_endpoint} "
            f"for client {request.client_id}"
        )

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        headers.update(self.client_authentication.request_headers(request.client_id))

        form_data = request.request_parameters()
        form_data.update(self.client_authentication.request_parameters(request.client_id))

        try:
            response = await self._http_client.post(
                token_endpoint, data=form_data, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"Network error during token request: {e}")
            return AuthorizationException.from_template(GeneralErrors.NETWORK_ERROR, e)

        return self._parse_token_response(request, response)

    def _parse_token_response(
        self, request: TokenRequest, response: httpx.Response
    ) -> TokenResponse | AuthorizationException:
        """Parse a token endpoint response (RFC 6749 Sections 5.1 and 5.2)."""
        try:
            json_obj = parse_json_object(response.content)
        except ValueError as e:
            logger.error(
                f"Token endpoint returned a non-JSON body (HTTP {response.status_code})"
            )
            return AuthorizationException.from_template(
                GeneralErrors.JSON_DESERIALIZATION_ERROR, e
            )

        if "error" in json_obj:
            error = json_obj.get("error")
            error_description = json_obj.get("error_description")
            logger.warning(
                f"Token request failed with {response.status_code}: "
                f"{error} - {error_description}"
            )
            return AuthorizationException.from_oauth_template(
                TokenRequestErrors.by_string(error),
                error,
                error_description,
                json_obj.get("error_uri"),
            )

        if response.is_error:
            logger.error(f"Token endpoint returned HTTP {response.status_code}")
            return AuthorizationException.from_template(
                GeneralErrors.SERVER_ERROR,
                httpx.HTTPStatusError(
                    f"HTTP {response.status_code}",
                    request=response.request,
                    response=response,
                ),
            )

        try:
            token_response = TokenResponse.from_response_json(request, json_obj, self.clock)
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid token response: {e}")
            return AuthorizationException.from_template(
                GeneralErrors.TOKEN_RESPONSE_CONSTRUCTION_ERROR, e
            )

        logger.info(f"Token request ({request.grant_type}) successful")
        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
