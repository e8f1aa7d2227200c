"""Token models for the Microsoft identity platform."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class Credential:
    """Access/refresh token bundle with a locally computed expiry.

    ``expires_at`` is stamped once, when the token is acquired, as
    ``acquired_at + expires_in``. A credential without it is never valid.
    """

    access_token: str
    token_type: str
    expires_in: int
    refresh_token: str | None = None
    id_token: str | None = None
    expires_at: int | None = None

    @classmethod
    def from_token_response(cls, data: dict[str, Any], now: float | None = None) -> Credential:
        """Build a credential from a token endpoint response.

        Args:
            data: Decoded JSON body of the token endpoint response.
            now: Acquisition time (epoch seconds). Defaults to the current time.

        Raises:
            ValueError: If the response lacks the fields a credential needs.
        """
        if not isinstance(data, dict):
            raise ValueError("Token response is not a JSON object")

        access_token = data.get("access_token")
        if not access_token or not isinstance(access_token, str):
            raise ValueError("Token response has no access_token")

        try:
            expires_in = int(data["expires_in"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError("Token response has no usable expires_in") from e

        acquired_at = int(time.time() if now is None else now)
        return cls(
            access_token=access_token,
            token_type=data.get("token_type") or "Bearer",
            expires_in=expires_in,
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_at=acquired_at + expires_in,
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        """Rebuild a credential exactly as it was stored."""
        expires_at = data.get("expires_at")
        return cls(
            access_token=data["access_token"],
            token_type=data.get("token_type", "Bearer"),
            expires_in=int(data.get("expires_in", 0)),
            refresh_token=data.get("refresh_token"),
            id_token=data.get("id_token"),
            expires_at=int(expires_at) if expires_at is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    def is_valid(self, now: float | None = None) -> bool:
        """Check whether the access token is still usable."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return current < self.expires_at

    def seconds_remaining(self, now: float | None = None) -> int:
        if self.expires_at is None:
            return 0
        current = time.time() if now is None else now
        return max(0, int(self.expires_at - current))
