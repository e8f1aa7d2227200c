"""Azure authentication exceptions."""

from __future__ import annotations


class AuthError(Exception):
    """Base exception for credential acquisition errors."""


class CodeNotReceivedError(AuthError):
    """Raised when the browser redirect never delivered an authorization code."""

    def __init__(self, reason: str = "code not received"):
        self.reason = reason
        super().__init__(f"Authorization code not received: {reason}")


class TokenEndpointError(AuthError):
    """Raised when the token endpoint call fails or returns an unusable body."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
