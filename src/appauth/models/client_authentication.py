"""Client authentication methods for the token endpoint (RFC 6749 Section 2.3)."""

from __future__ import annotations

import base64
from typing import Protocol
from urllib.parse import quote


class ClientAuthentication(Protocol):
    """Contributes client credentials to a token endpoint request."""

    def request_headers(self, client_id: str) -> dict[str, str]: ...

    def request_parameters(self, client_id: str) -> dict[str, str]: ...


class NoClientAuthentication:
    """Public client: identifies itself with ``client_id`` only."""

    NAME = "none"

    def request_headers(self, client_id: str) -> dict[str, str]:
        return {}

    def request_parameters(self, client_id: str) -> dict[str, str]:
        return {"client_id": client_id}


class ClientSecretBasic:
    """HTTP Basic authentication with the client id and secret."""

    NAME = "client_secret_basic"

    def __init__(self, client_secret: str):
        if not client_secret:
            raise ValueError("client_secret cannot be empty")
        self._client_secret = client_secret

    def request_headers(self, client_id: str) -> dict[str, str]:
        # RFC 6749 Section 2.3.1: form-encode both parts before joining
        credentials = f"{quote(client_id, safe='')}:{quote(self._client_secret, safe='')}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    def request_parameters(self, client_id: str) -> dict[str, str]:
        return {}


class ClientSecretPost:
    """Client id and secret sent as form parameters."""

    NAME = "client_secret_post"

    def __init__(self, client_secret: str):
        if not client_secret:
            raise ValueError("client_secret cannot be empty")
        self._client_secret = client_secret

    def request_headers(self, client_id: str) -> dict[str, str]:
        return {}

    def request_parameters(self, client_id: str) -> dict[str, str]:
        return {"client_id": client_id, "client_secret": self._client_secret}
