"""OpenID Provider discovery service.

Fetches an OpenID Connect Discovery 1.0 metadata document and derives a
``ServiceConfiguration`` from it.
"""

from __future__ import annotations

import logging

import httpx
from pydantic import ValidationError

from appauth.models.configuration import ServiceConfiguration
from appauth.models.discovery import ProviderMetadata
from appauth.models.errors import (
    AuthorizationException,
    GeneralErrors,
    MissingArgumentError,
)
from appauth.primitives.json_fields import parse_json_object

logger = logging.getLogger(__name__)


class OAuth2Discovery:
    """Retrieves authorization server configuration from discovery documents.

    Failures are returned rather than raised, and are categorized so that a
    transport problem, unparseable JSON and a non-conformant provider
    document can be told apart:

    - ``GeneralErrors.NETWORK_ERROR`` for transport failures and HTTP error statuses
    - ``GeneralErrors.JSON_DESERIALIZATION_ERROR`` for a body that is not a JSON object
    - ``GeneralErrors.INVALID_DISCOVERY_DOCUMENT`` for missing or invalid fields
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize discovery.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def fetch_from_issuer(
        self, issuer: str
    ) -> ServiceConfiguration | AuthorizationException:
        """Fetch configuration from the issuer's well-known discovery URI.

        Args:
            issuer: Issuer URL, e.g. ``https://accounts.example.com``

        Returns:
            The derived configuration, or the categorized failure
        """
        return await self.fetch_from_url(ServiceConfiguration.build_discovery_uri(issuer))

    async def fetch_from_url(
        self, discovery_uri: str
    ) -> ServiceConfiguration | AuthorizationException:
        """Fetch configuration from an explicit discovery document URL.

        Args:
            discovery_uri: Full URL of the discovery document

        Returns:
            The derived configuration, or the categorized failure
        """
        logger.debug(f"Fetching discovery document from: {discovery_uri}")

        try:
            response = await self._http_client.get(
                discovery_uri, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Network error fetching discovery document: {e}")
            return AuthorizationException.from_template(GeneralErrors.NETWORK_ERROR, e)

        return self.parse_discovery_document(response.content)

    @staticmethod
    def parse_discovery_document(
        content: str | bytes,
    ) -> ServiceConfiguration | AuthorizationException:
        """Validate a raw discovery document and derive its configuration."""
        try:
            json_obj = parse_json_object(content)
        except ValueError as e:
            logger.error(f"Discovery document is not a JSON object: {e}")
            return AuthorizationException.from_template(
                GeneralErrors.JSON_DESERIALIZATION_ERROR, e
            )

        try:
            metadata = ProviderMetadata.from_json(json_obj)
        except (MissingArgumentError, ValidationError) as e:
            logger.error(f"Invalid discovery document: {e}")
            return AuthorizationException.from_template(
                GeneralErrors.INVALID_DISCOVERY_DOCUMENT, e
            )

        logger.info(f"Discovered configuration for issuer {metadata.issuer}")
        return ServiceConfiguration.from_discovery(metadata)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()
