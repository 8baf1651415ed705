"""Interactive authorization step.

The user-facing part of the flow (opening a browser, receiving the redirect)
is delegated to an ``AuthorizationHandler``. This module turns whatever the
handler returns into either an ``AuthorizationResponse`` or an
``AuthorizationException``.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol

from appauth.models.authorization import AuthorizationRequest, AuthorizationResponse
from appauth.models.errors import (
    PARAM_ERROR,
    AuthorizationException,
    AuthorizationRequestErrors,
    GeneralErrors,
)
from appauth.primitives.clock import SYSTEM_CLOCK, Clock
from appauth.primitives.security import states_match
from appauth.primitives.uri import get_query_parameters

logger = logging.getLogger(__name__)


class AuthorizationHandler(Protocol):
    """Protocol for handling the user authorization step.

    Allows different strategies for user agent interaction, for example
    returning the URL to the developer, driving a browser and a loopback
    listener, or a custom UI integration.
    """

    async def handle_authorization(self, auth_url: str) -> str | None:
        """Present the authorization URL and return the redirect URI.

        Args:
            auth_url: Authorization URL for the user to visit

        Returns:
            The redirect URI received after authorization, or None if the
            user abandoned the flow
        """
        ...


class ManualAuthorizationHandler:
    """Authorization handler that delegates to a caller-supplied callback.

    Suitable for CLI tools and custom integrations: the callback is given the
    authorization URL and returns the redirect URI the user ended up on.
    """

    def __init__(
        self,
        callback_handler: Callable[[str], Awaitable[str | None] | str | None] | None = None,
    ):
        """Initialize the manual handler.

        Args:
            callback_handler: Sync or async function called with the
                authorization URL, returning the redirect URI
        """
        self.callback_handler = callback_handler

    async def handle_authorization(self, auth_url: str) -> str | None:
        """Delegate to the callback, or raise if none was configured."""
        if self.callback_handler is None:
            raise NotImplementedError(
                f"Please visit {auth_url} and provide the redirect URI"
            )
        result = self.callback_handler(auth_url)
        if inspect.isawaitable(result):
            result = await result
        return result


def handle_authorization_redirect(
    request: AuthorizationRequest,
    redirect_uri: str | None,
    clock: Clock = SYSTEM_CLOCK,
) -> AuthorizationResponse | AuthorizationException:
    """Interpret the redirect that completed an authorization request.

    Args:
        request: The request that started the flow
        redirect_uri: The redirect URI received, or None if the flow was
            abandoned
        clock: Time source for the access token expiry (implicit flow)

    Returns:
        - ``GeneralErrors.USER_CANCELED_AUTH_FLOW`` when there is no redirect
        - an authorization error category for an OAuth ``error`` redirect
        - ``GeneralErrors.STATE_MISMATCH`` when the echoed state differs
        - ``AuthorizationRequestErrors.OTHER`` when the response is malformed
        - otherwise the parsed ``AuthorizationResponse``
    """
    if redirect_uri is None:
        logger.warning("Authorization flow was cancelled by the user")
        return AuthorizationException.from_template(
            GeneralErrors.USER_CANCELED_AUTH_FLOW, None
        )

    params = get_query_parameters(redirect_uri)
    if PARAM_ERROR in params:
        error = AuthorizationException.from_oauth_redirect(redirect_uri)
        logger.warning(
            f"Authorization redirect contained error: {error.error} - "
            f"{error.error_description}"
        )
        return error

    if not states_match(request.state, params.get("state")):
        logger.warning("Authorization redirect state did not match request state")
        return AuthorizationException.from_template(GeneralErrors.STATE_MISMATCH, None)

    try:
        response = AuthorizationResponse.from_uri(request, redirect_uri, clock)
    except ValueError as e:
        logger.error(f"Invalid authorization response: {e}")
        return AuthorizationException.from_template(AuthorizationRequestErrors.OTHER, e)

    logger.info(f"Authorization succeeded for client {request.client_id}")
    return response


async def perform_authorization(
    request: AuthorizationRequest,
    handler: AuthorizationHandler,
    clock: Clock = SYSTEM_CLOCK,
) -> AuthorizationResponse | AuthorizationException:
    """Run the interactive step for a request through the given handler."""
    logger.debug(f"Starting authorization for client {request.client_id}")
    redirect_uri = await handler.handle_authorization(request.to_uri())
    return handle_authorization_redirect(request, redirect_uri, clock)
