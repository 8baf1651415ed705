"""High-level OAuth 2.0 / OpenID Connect client.

Coordinates discovery, dynamic registration, the interactive authorization
step and token exchange, folding each result into an ``AuthState``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from appauth.models.authorization import AuthorizationRequest, AuthorizationResponse
from appauth.models.client_authentication import ClientAuthentication
from appauth.models.configuration import ServiceConfiguration
from appauth.models.errors import AuthorizationException
from appauth.models.registration import RegistrationRequest, RegistrationResponse
from appauth.models.tokens import TokenRequest, TokenResponse
from appauth.primitives.clock import SYSTEM_CLOCK, Clock
from appauth.services.authorization import (
    AuthorizationHandler,
    ManualAuthorizationHandler,
    perform_authorization,
)
from appauth.services.discovery import OAuth2Discovery
from appauth.services.registration import OAuth2Registration
from appauth.services.tokens import OAuth2TokenManager
from appauth.state import DEFAULT_EXPIRY_MARGIN_MS, AuthState

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Entry point for authorizing against an OAuth 2.0 provider.

    Network operations return their result or an ``AuthorizationException``;
    they never raise for provider or transport failures.
    """

    def __init__(
        self,
        authorization_handler: AuthorizationHandler | None = None,
        client_authentication: ClientAuthentication | None = None,
        timeout: float = 30.0,
        clock: Clock = SYSTEM_CLOCK,
        expiry_margin_ms: int = DEFAULT_EXPIRY_MARGIN_MS,
    ):
        """Initialize the service.

        Args:
            authorization_handler: Handler for the user authorization step
            client_authentication: Token endpoint client authentication,
                defaults to a public client
            timeout: HTTP request timeout in seconds
            clock: Time source for expiry decisions
            expiry_margin_ms: Refresh margin for states created by this service
        """
        self.authorization_handler = (
            authorization_handler or ManualAuthorizationHandler()
        )
        self.clock = clock
        self.expiry_margin_ms = expiry_margin_ms

        self.discovery = OAuth2Discovery(timeout=timeout)
        self.registration = OAuth2Registration(timeout=timeout)
        self.token_manager = OAuth2TokenManager(
            timeout=timeout,
            client_authentication=client_authentication,
            clock=clock,
        )

    async def fetch_configuration(
        self, issuer: str | None = None, discovery_uri: str | None = None
    ) -> ServiceConfiguration | AuthorizationException:
        """Discover configuration by issuer or by explicit discovery URL.

        Raises:
            ValueError: Unless exactly one of issuer and discovery_uri is given
        """
        if (issuer is None) == (discovery_uri is None):
            raise ValueError("exactly one of issuer or discovery_uri must be provided")

        if issuer is not None:
            return await self.discovery.fetch_from_issuer(issuer)
        return await self.discovery.fetch_from_url(discovery_uri)

    async def register_client(
        self,
        request: RegistrationRequest,
        initial_access_token: str | None = None,
    ) -> RegistrationResponse | AuthorizationException:
        logger.debug("Registering client")
        return await self.registration.perform_registration_request(
            request, initial_access_token
        )

    async def authorize(
        self, request: AuthorizationRequest
    ) -> AuthorizationResponse | AuthorizationException:
        """Run the interactive authorization step for a request."""
        return await perform_authorization(request, self.authorization_handler, self.clock)

    async def perform_token_request(
        self, request: TokenRequest
    ) -> TokenResponse | AuthorizationException:
        return await self.token_manager.perform_token_request(request)

    async def authenticate(
        self,
        request: AuthorizationRequest,
        additional_parameters: Mapping[str, str] | None = None,
    ) -> AuthState:
        """Authorize and exchange the code, returning the resulting state.

        Authorization failures and provider-reported token errors are recorded
        on the returned state rather than raised. A transport failure during
        the exchange leaves the state ``AUTHORIZED_NO_TOKEN``, so the exchange
        can be retried from ``last_authorization_response``.
        """
        logger.info(
            f"Starting authentication with {request.configuration.authorization_endpoint}"
        )
        state = AuthState(clock=self.clock, expiry_margin_ms=self.expiry_margin_ms)

        result = await self.authorize(request)
        if isinstance(result, AuthorizationException):
            state.update_from_authorization(None, result)
            return state
        state.update_from_authorization(result, None)

        if result.authorization_code is None:
            # Implicit or id_token-only flows carry no code to exchange
            return state

        logger.debug("Exchanging authorization code for tokens")
        token_result = await self.perform_token_request(
            result.create_token_exchange_request(additional_parameters)
        )
        if isinstance(token_result, AuthorizationException):
            state.update_from_token_response(None, token_result)
        else:
            state.update_from_token_response(token_result, None)
            logger.info("Successfully authenticated")
        return state

    async def close(self) -> None:
        """Close all service connections."""
        await self.discovery.close()
        await self.registration.close()
        await self.token_manager.close()
