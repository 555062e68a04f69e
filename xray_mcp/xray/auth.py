"""
Xray Cloud Authentication.

Exchanges the API key pair (client id / client secret) for a bearer token and
caches it. Xray Cloud tokens are valid for 24 hours; the cached token is
dropped one hour early and never presented after that point.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional

import requests
from loguru import logger

from xray_mcp.xray.errors import AuthenticationError

DEFAULT_AUTH_URL = "https://xray.cloud.getxray.app/api/v1/authenticate"
TOKEN_LIFETIME_SEC = 23 * 60 * 60


class TokenManager:
    """
    Session holder for one set of Xray Cloud credentials.

    The token is fetched lazily on the first ``ensure_token()`` call and
    reused until ``now >= expires_at``. A failed exchange leaves the cache
    empty, so the next call authenticates from scratch.

    Attributes:
        client_id: Xray API key client id.
        auth_url: Authentication endpoint.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        auth_url: str = DEFAULT_AUTH_URL,
        timeout_sec: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client_id = client_id
        self._client_secret = client_secret
        self.auth_url = auth_url
        self._timeout_sec = timeout_sec
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @property
    def has_valid_token(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    @property
    def expires_at(self) -> float:
        return self._expires_at

    def ensure_token(self, session: Any) -> str:
        """
        Return a valid bearer token, authenticating if needed.

        Args:
            session: requests.Session used for the credential exchange.

        Returns:
            The bearer token string.

        Raises:
            AuthenticationError: If the endpoint rejects the credentials or
                cannot be reached.
        """
        if self.has_valid_token:
            return self._token  # type: ignore[return-value]

        logger.debug(f"Authenticating with Xray Cloud: {self.auth_url}")
        try:
            response = session.post(
                self.auth_url,
                json={"client_id": self.client_id, "client_secret": self._client_secret},
                headers={"Content-Type": "application/json"},
                timeout=self._timeout_sec,
            )
        except requests.exceptions.RequestException as e:
            raise AuthenticationError(f"Authentication failed: {e}") from e

        if not response.ok:
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        token = self._parse_token(response)
        if not token:
            raise AuthenticationError(
                "Authentication failed: empty token in response",
                status_code=response.status_code,
                body=response.text,
            )

        self._token = token
        self._expires_at = self._clock() + TOKEN_LIFETIME_SEC
        logger.debug("Xray Cloud token acquired")
        return token

    @staticmethod
    def _parse_token(response: Any) -> str:
        """The endpoint answers with a JSON string; accept a bare body too."""
        try:
            body = response.json()
        except ValueError:
            body = response.text
        if not isinstance(body, str):
            return ""
        return body.strip().strip('"')
