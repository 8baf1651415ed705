"""Authorization session state.

``AuthState`` folds the results of authorization, token and registration
requests into a single object that knows whether the caller is authorized,
whether the access token needs refreshing, and how to refresh it. It
round-trips through a JSON object so callers can persist it verbatim.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import threading
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from appauth.models.authorization import AuthorizationResponse
from appauth.models.configuration import ServiceConfiguration
from appauth.models.errors import (
    AuthorizationException,
    ErrorType,
    TokenRequestErrors,
)
from appauth.models.registration import RegistrationResponse
from appauth.models.tokens import GrantType, TokenRequest, TokenResponse
from appauth.primitives.clock import SYSTEM_CLOCK, Clock
from appauth.primitives.json_fields import parse_json_object
from appauth.primitives.scope import scope_string_to_set

logger = logging.getLogger(__name__)

# An access token is refreshed this long before its stated expiry so that it
# does not lapse while a request using it is in flight. May be set to 0.
DEFAULT_EXPIRY_MARGIN_MS = 60_000

STATE_VERSION = 1

KEY_VERSION = "version"
KEY_CONFIG = "config"
KEY_REFRESH_TOKEN = "refresh_token"
KEY_SCOPE = "scope"
KEY_LAST_AUTHORIZATION_RESPONSE = "last_authorization_response"
KEY_LAST_TOKEN_RESPONSE = "last_token_response"
KEY_AUTHORIZATION_EXCEPTION = "authorization_exception"
KEY_LAST_REGISTRATION_RESPONSE = "last_registration_response"


class AuthStatus(Enum):
    UNAUTHORIZED = "unauthorized"
    AUTHORIZED_NO_TOKEN = "authorized_no_token"
    AUTHORIZED = "authorized"
    NEEDS_REFRESH = "needs_refresh"
    ERROR = "error"


class TokenExchanger(Protocol):
    """Performs token requests; ``OAuth2TokenManager`` is the default."""

    async def perform_token_request(
        self, request: TokenRequest
    ) -> TokenResponse | AuthorizationException: ...


@dataclass(frozen=True)
class FreshTokens:
    access_token: str | None
    id_token: str | None


# Invoked as action(access_token, id_token, error); exactly one of the
# tokens-or-error outcomes is meaningful. May be sync or async.
FreshTokenAction = Callable[
    [str | None, str | None, AuthorizationException | None], Awaitable[None] | None
]


async def _invoke_action(
    action: FreshTokenAction,
    access_token: str | None,
    id_token: str | None,
    error: AuthorizationException | None,
) -> None:
    result = action(access_token, id_token, error)
    if inspect.isawaitable(result):
        await result


class AuthState:
    """Tracks the authorization and token state of a session.

    Mutated only by ``update_from_authorization``,
    ``update_from_token_response``, ``update_from_registration_response``
    and explicit invalidation through ``needs_token_refresh``.

    At most one token refresh is in flight per instance: concurrent callers
    of ``perform_action_with_fresh_tokens`` are queued behind it and each
    receives its result, in the order they were queued. Two instances are
    fully independent. An instance must be used from a single event loop,
    since queued callers await a refresh task bound to that loop.
    """

    def __init__(
        self,
        authorization_response: AuthorizationResponse | None = None,
        authorization_exception: AuthorizationException | None = None,
        *,
        config: ServiceConfiguration | None = None,
        registration_response: RegistrationResponse | None = None,
        clock: Clock = SYSTEM_CLOCK,
        expiry_margin_ms: int = DEFAULT_EXPIRY_MARGIN_MS,
    ):
        """Create an empty state, or one initialized from an authorization result.

        Args:
            authorization_response: Result of a successful authorization
            authorization_exception: Result of a failed authorization
            config: Service configuration, when known without an authorization
            registration_response: Result of a dynamic client registration
            clock: Time source for expiry decisions
            expiry_margin_ms: How long before expiry a token counts as expired
        """
        if expiry_margin_ms < 0:
            raise ValueError("expiry_margin_ms must not be negative")

        self._clock = clock
        self._expiry_margin_ms = expiry_margin_ms

        self._config = config
        self._refresh_token: str | None = None
        self._scope: str | None = None
        self._last_authorization_response: AuthorizationResponse | None = None
        self._last_token_response: TokenResponse | None = None
        self._last_registration_response: RegistrationResponse | None = None
        self._authorization_exception: AuthorizationException | None = None
        self._needs_token_refresh_override = False

        self._pending_actions_lock = threading.Lock()
        self._pending_actions: list[FreshTokenAction] = []
        self._refresh_task: asyncio.Task[None] | None = None

        if registration_response is not None:
            self.update_from_registration_response(registration_response)
        if authorization_response is not None or authorization_exception is not None:
            self.update_from_authorization(authorization_response, authorization_exception)

    # Accessors

    @property
    def expiry_margin_ms(self) -> int:
        return self._expiry_margin_ms

    @property
    def authorization_service_configuration(self) -> ServiceConfiguration | None:
        return self._config

    @property
    def refresh_token(self) -> str | None:
        return self._refresh_token

    @property
    def scope(self) -> str | None:
        return self._scope

    def get_scope_set(self) -> set[str] | None:
        return scope_string_to_set(self._scope)

    @property
    def last_authorization_response(self) -> AuthorizationResponse | None:
        return self._last_authorization_response

    @property
    def last_token_response(self) -> TokenResponse | None:
        return self._last_token_response

    @property
    def last_registration_response(self) -> RegistrationResponse | None:
        return self._last_registration_response

    @property
    def authorization_exception(self) -> AuthorizationException | None:
        return self._authorization_exception

    @property
    def access_token(self) -> str | None:
        """The current access token, preferring the latest token response."""
        if self._authorization_exception is not None:
            return None
        if self._last_token_response is not None and self._last_token_response.access_token:
            return self._last_token_response.access_token
        if self._last_authorization_response is not None:
            return self._last_authorization_response.access_token
        return None

    @property
    def access_token_expiration_time(self) -> int | None:
        if self._authorization_exception is not None:
            return None
        if self._last_token_response is not None and self._last_token_response.access_token:
            return self._last_token_response.access_token_expiration_time
        if (
            self._last_authorization_response is not None
            and self._last_authorization_response.access_token
        ):
            return self._last_authorization_response.access_token_expiration_time
        return None

    @property
    def id_token(self) -> str | None:
        if self._authorization_exception is not None:
            return None
        if self._last_token_response is not None and self._last_token_response.id_token:
            return self._last_token_response.id_token
        if self._last_authorization_response is not None:
            return self._last_authorization_response.id_token
        return None

    @property
    def client_secret(self) -> str | None:
        if self._last_registration_response is None:
            return None
        return self._last_registration_response.client_secret

    @property
    def client_secret_expiration_time(self) -> int | None:
        """Client secret expiry in seconds since the epoch; 0 means never."""
        if self._last_registration_response is None:
            return None
        return self._last_registration_response.client_secret_expires_at

    def has_client_secret_expired(self) -> bool:
        if self._last_registration_response is None:
            return False
        return self._last_registration_response.has_client_secret_expired(self._clock)

    @property
    def is_authorized(self) -> bool:
        """True when no error is recorded and an access or id token is held."""
        return self._authorization_exception is None and (
            self.access_token is not None or self.id_token is not None
        )

    @property
    def needs_token_refresh(self) -> bool:
        """True when the access token is absent, expired, or explicitly invalidated.

        A token counts as expired once ``expiration <= now + expiry_margin_ms``.
        A token without a stated expiry is treated as valid.
        """
        if self._needs_token_refresh_override:
            return True

        expiration = self.access_token_expiration_time
        if expiration is None:
            return self.access_token is None
        return expiration <= self._clock.current_time_millis() + self._expiry_margin_ms

    @needs_token_refresh.setter
    def needs_token_refresh(self, value: bool) -> None:
        self._needs_token_refresh_override = value

    @property
    def status(self) -> AuthStatus:
        if self._authorization_exception is not None:
            return AuthStatus.ERROR
        if self._last_authorization_response is None and self._last_token_response is None:
            return AuthStatus.UNAUTHORIZED
        if self.needs_token_refresh:
            if self._refresh_token is not None:
                return AuthStatus.NEEDS_REFRESH
            return AuthStatus.AUTHORIZED_NO_TOKEN
        return AuthStatus.AUTHORIZED

    # Transitions

    def update_from_authorization(
        self,
        response: AuthorizationResponse | None,
        exception: AuthorizationException | None,
    ) -> None:
        """Record the outcome of an authorization request.

        A success replaces the session: prior tokens and errors are dropped.
        A failure is recorded and clears the prior authorization and tokens.

        Raises:
            ValueError: Unless exactly one of response and exception is given
        """
        if (response is None) == (exception is None):
            raise ValueError("exactly one of response or exception must be provided")

        if exception is not None:
            logger.warning(f"Recording authorization failure: {exception}")
            self._authorization_exception = exception
            self._last_authorization_response = None
            self._last_token_response = None
            self._refresh_token = None
            return

        self._config = response.request.configuration
        self._last_authorization_response = response
        self._last_token_response = None
        self._refresh_token = None
        self._authorization_exception = None
        self._needs_token_refresh_override = False
        self._scope = response.scope if response.scope is not None else response.request.scope

    def update_from_token_response(
        self,
        response: TokenResponse | None,
        exception: AuthorizationException | None,
    ) -> None:
        """Record the outcome of a token request.

        Only provider-reported token errors are recorded; transport failures
        leave the state untouched. A response without a refresh token keeps
        the previous one.

        Raises:
            ValueError: Unless exactly one of response and exception is given
        """
        if (response is None) == (exception is None):
            raise ValueError("exactly one of response or exception must be provided")

        if exception is not None:
            if exception.type == ErrorType.OAUTH_TOKEN:
                logger.warning(f"Recording token request failure: {exception}")
                self._authorization_exception = exception
            return

        if self._authorization_exception is not None:
            logger.warning(
                f"Clearing recorded authorization failure after successful token "
                f"response: {self._authorization_exception}"
            )
            self._authorization_exception = None

        self._last_token_response = response
        if response.refresh_token is not None:
            self._refresh_token = response.refresh_token
        if response.scope is not None:
            self._scope = response.scope
        self._needs_token_refresh_override = False

    def update_from_registration_response(self, response: RegistrationResponse) -> None:
        """Start a fresh session for a newly registered client."""
        self._last_registration_response = response
        self._config = response.request.configuration
        self._refresh_token = None
        self._scope = None
        self._last_authorization_response = None
        self._last_token_response = None
        self._authorization_exception = None
        self._needs_token_refresh_override = False

    def create_token_refresh_request(
        self, additional_parameters: Mapping[str, str] | None = None
    ) -> TokenRequest:
        """Build a refresh request from the stored refresh token.

        Raises:
            RuntimeError: Without a refresh token or prior authorization
        """
        if self._refresh_token is None:
            raise RuntimeError("No refresh token available for refresh request")
        if self._last_authorization_response is None:
            raise RuntimeError(
                "No authorization configuration available for refresh request"
            )

        request = self._last_authorization_response.request
        return TokenRequest(
            configuration=request.configuration,
            client_id=request.client_id,
            grant_type=GrantType.REFRESH_TOKEN,
            refresh_token=self._refresh_token,
            additional_parameters=dict(additional_parameters or {}),
        )

    # Fresh tokens

    async def perform_action_with_fresh_tokens(
        self,
        token_exchanger: TokenExchanger,
        action: FreshTokenAction,
        additional_parameters: Mapping[str, str] | None = None,
    ) -> None:
        """Run ``action`` with a valid access token, refreshing first if needed.

        The action is invoked exactly once, with either the tokens or the
        error. Exceptions raised by the action are logged and do not affect
        other queued actions. Returns once the action has run.

        Args:
            token_exchanger: Performs the refresh request
            action: Callable taking (access_token, id_token, error)
            additional_parameters: Extra parameters for the refresh request
        """
        if not self.needs_token_refresh:
            await _invoke_action(action, self.access_token, self.id_token, None)
            return

        if self._refresh_token is None:
            error = AuthorizationException.from_template(
                TokenRequestErrors.CLIENT_ERROR,
                RuntimeError("No refresh token available and token has expired"),
            )
            await _invoke_action(action, None, None, error)
            return

        with self._pending_actions_lock:
            self._pending_actions.append(action)
            if self._refresh_task is None:
                logger.debug("Starting token refresh")
                self._refresh_task = asyncio.create_task(
                    self._refresh_and_dispatch(token_exchanger, additional_parameters)
                )
            refresh_task = self._refresh_task

        await asyncio.shield(refresh_task)

    async def get_fresh_tokens(
        self,
        token_exchanger: TokenExchanger,
        additional_parameters: Mapping[str, str] | None = None,
    ) -> FreshTokens | AuthorizationException:
        """Return fresh tokens, refreshing first if needed."""
        outcome: list[FreshTokens | AuthorizationException] = []

        def capture(
            access_token: str | None,
            id_token: str | None,
            error: AuthorizationException | None,
        ) -> None:
            outcome.append(error if error is not None else FreshTokens(access_token, id_token))

        await self.perform_action_with_fresh_tokens(
            token_exchanger, capture, additional_parameters
        )
        return outcome[0]

    async def _refresh_and_dispatch(
        self,
        token_exchanger: TokenExchanger,
        additional_parameters: Mapping[str, str] | None,
    ) -> None:
        try:
            request = self.create_token_refresh_request(additional_parameters)
            result = await token_exchanger.perform_token_request(request)
        except Exception as e:
            logger.exception("Token refresh failed unexpectedly")
            result = AuthorizationException.from_template(TokenRequestErrors.CLIENT_ERROR, e)

        if isinstance(result, AuthorizationException):
            self.update_from_token_response(None, result)
            access_token, id_token, error = None, None, result
        else:
            self.update_from_token_response(result, None)
            logger.info("Token refresh successful")
            access_token, id_token, error = self.access_token, self.id_token, None

        with self._pending_actions_lock:
            actions = self._pending_actions
            self._pending_actions = []
            self._refresh_task = None

        for action in actions:
            try:
                await _invoke_action(action, access_token, id_token, error)
            except Exception:
                logger.exception("Fresh token action raised an exception")

    # Persistence

    def to_json(self) -> dict[str, Any]:
        json_obj: dict[str, Any] = {KEY_VERSION: STATE_VERSION}
        if self._config is not None:
            json_obj[KEY_CONFIG] = self._config.to_json()
        if self._refresh_token is not None:
            json_obj[KEY_REFRESH_TOKEN] = self._refresh_token
        if self._scope is not None:
            json_obj[KEY_SCOPE] = self._scope
        if self._last_authorization_response is not None:
            json_obj[KEY_LAST_AUTHORIZATION_RESPONSE] = (
                self._last_authorization_response.to_json()
            )
        if self._last_token_response is not None:
            json_obj[KEY_LAST_TOKEN_RESPONSE] = self._last_token_response.to_json()
        if self._authorization_exception is not None:
            json_obj[KEY_AUTHORIZATION_EXCEPTION] = self._authorization_exception.to_json()
        if self._last_registration_response is not None:
            json_obj[KEY_LAST_REGISTRATION_RESPONSE] = (
                self._last_registration_response.to_json()
            )
        return json_obj

    def to_json_string(self) -> str:
        return json.dumps(self.to_json())

    @classmethod
    def from_json(
        cls,
        data: str | bytes | dict[str, Any],
        clock: Clock = SYSTEM_CLOCK,
        expiry_margin_ms: int = DEFAULT_EXPIRY_MARGIN_MS,
    ) -> AuthState:
        """Restore a state persisted with ``to_json``.

        Raises:
            ValueError: If the JSON is malformed or from a newer version
        """
        json_obj = parse_json_object(data)
        version = json_obj.get(KEY_VERSION, STATE_VERSION)
        if version > STATE_VERSION:
            raise ValueError(f"unsupported AuthState version: {version}")

        state = cls(clock=clock, expiry_margin_ms=expiry_margin_ms)
        if json_obj.get(KEY_CONFIG) is not None:
            state._config = ServiceConfiguration.from_json(json_obj[KEY_CONFIG])
        state._refresh_token = json_obj.get(KEY_REFRESH_TOKEN)
        state._scope = json_obj.get(KEY_SCOPE)
        if json_obj.get(KEY_LAST_AUTHORIZATION_RESPONSE) is not None:
            state._last_authorization_response = AuthorizationResponse.from_json(
                json_obj[KEY_LAST_AUTHORIZATION_RESPONSE]
            )
        if json_obj.get(KEY_LAST_TOKEN_RESPONSE) is not None:
            state._last_token_response = TokenResponse.from_json(
                json_obj[KEY_LAST_TOKEN_RESPONSE]
            )
        if json_obj.get(KEY_AUTHORIZATION_EXCEPTION) is not None:
            state._authorization_exception = AuthorizationException.from_json(
                json_obj[KEY_AUTHORIZATION_EXCEPTION]
            )
        if json_obj.get(KEY_LAST_REGISTRATION_RESPONSE) is not None:
            state._last_registration_response = RegistrationResponse.from_json(
                json_obj[KEY_LAST_REGISTRATION_RESPONSE]
            )
        return state
