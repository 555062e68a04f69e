"""
Xray Client Errors.

Every failure raised by the Xray client derives from XrayClientError so that
the tool layer can catch a single type at its boundary. The subclasses let
callers tell "credentials rejected", "request failed", "vendor rejected the
query" and "record does not exist" apart.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional


class XrayClientError(Exception):
    """Raised when an Xray API operation fails."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(XrayClientError):
    """Raised when the client credential exchange is rejected or unreachable."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class GraphQLTransportError(XrayClientError):
    """Raised on a network failure or a non-2xx reply from the GraphQL endpoint."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.body = body


class GraphQLLogicError(XrayClientError):
    """Raised when a GraphQL response carries a non-empty ``errors`` array."""

    def __init__(self, errors: List[Any], status_code: Optional[int] = None) -> None:
        self.errors = list(errors)
        super().__init__(
            f"GraphQL errors: {json.dumps(self.errors, default=str)}",
            status_code=status_code,
        )


class NotFoundError(XrayClientError):
    """Raised when a key lookup matches zero records."""

    def __init__(self, message: str, key: str = "") -> None:
        super().__init__(message)
        self.key = key


class UnsupportedOperationError(XrayClientError):
    """Raised for operations this client deliberately does not implement."""
