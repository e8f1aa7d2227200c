"""Access token lifecycle: cached, then refreshed, then interactive.

Each run resolves a token through an ordered chain of attempts:

1. CACHED       - the stored credential is still valid (no network call)
2. REFRESHED    - the stored refresh token buys a new credential
3. INTERACTIVE  - the user signs in through the browser; the local
                  redirect listener captures the authorization code

A failed refresh falls through to the interactive step. The credential file
is written at most once per run, and only after a fully parsed response.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from collections.abc import Callable
from datetime import timedelta
from enum import Enum
from typing import Any

from kindle_sender.azure.callback import CallbackListener
from kindle_sender.azure.exceptions import AuthError, CodeNotReceivedError
from kindle_sender.azure.identity import IdentityClient
from kindle_sender.azure.models import Credential
from kindle_sender.azure.token_store import TokenStore
from kindle_sender.config import DeliverySettings

logger = logging.getLogger(__name__)


class TokenSource(str, Enum):
    CACHED = "cached"
    REFRESHED = "refreshed"
    INTERACTIVE = "interactive"


class AuthenticationManager:
    """Hands out an access token for the Graph API.

    Example:
        >>> manager = AuthenticationManager.from_settings(settings)
        >>> token = manager.obtain_access_token()
        >>> manager.last_source
        <TokenSource.CACHED: 'cached'>
    """

    def __init__(
        self,
        identity: IdentityClient,
        store: TokenStore,
        listener_factory: Callable[..., CallbackListener] = CallbackListener.from_redirect_uri,
        open_browser: bool = True,
        callback_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the manager.

        Args:
            identity: Token endpoint client.
            store: Where the credential is persisted.
            listener_factory: Builds the redirect listener from
                (redirect_uri, expected_state=...).
            open_browser: Open the sign-in URL in the default browser.
            callback_timeout: Seconds to wait for the redirect (None = forever).
            clock: Current time in epoch seconds.
        """
        self.identity = identity
        self.store = store
        self.listener_factory = listener_factory
        self.open_browser = open_browser
        self.callback_timeout = callback_timeout
        self.clock = clock
        self.last_source: TokenSource | None = None

    @classmethod
    def from_settings(
        cls,
        settings: DeliverySettings,
        store: TokenStore | None = None,
        open_browser: bool = True,
    ) -> AuthenticationManager:
        identity = IdentityClient(
            client_id=settings.client_id,
            client_secret=settings.client_secret,
            tenant_id=settings.tenant_id,
            redirect_uri=settings.callback_uri,
        )
        return cls(
            identity,
            store or TokenStore(),
            open_browser=open_browser,
            callback_timeout=settings.callback_timeout,
        )

    def obtain_access_token(self) -> str:
        """Return a usable access token.

        Raises:
            AuthError: If no step of the chain produced a credential.
        """
        logger.info("Authenticating with Azure...")
        cached = self.store.load()

        attempts: list[tuple[TokenSource, Callable[[], Credential | None]]] = [
            (TokenSource.CACHED, lambda: self._use_cached(cached)),
            (TokenSource.REFRESHED, lambda: self._refresh(cached)),
            (TokenSource.INTERACTIVE, self._sign_in),
        ]

        for source, attempt in attempts:
            credential = attempt()
            if credential is not None:
                self.last_source = source
                logger.info(f"Using {source.value} access token")
                return credential.access_token

        raise AuthError("No access token could be obtained")

    def _use_cached(self, cached: Credential | None) -> Credential | None:
        if cached is not None and cached.is_valid(self.clock()):
            return cached
        return None

    def _refresh(self, cached: Credential | None) -> Credential | None:
        if cached is None or not cached.refresh_token:
            return None

        try:
            credential = self.identity.refresh(cached.refresh_token)
        except AuthError as e:
            logger.warning(f"Refresh failed, starting a new sign-in: {e}")
            return None

        self.store.save(credential)
        return credential

    def _sign_in(self) -> Credential:
        url, state = self.identity.authorization_url()

        with self.listener_factory(self.identity.redirect_uri, expected_state=state) as listener:
            logger.info(f"Please open the following URL in your browser:\n{url}")
            if self.open_browser:
                webbrowser.open(url)

            try:
                code = listener.await_authorization_code(timeout=self.callback_timeout)
            except CodeNotReceivedError:
                raise
            except AuthError as e:
                raise CodeNotReceivedError(str(e)) from e

        credential = self.identity.exchange(code, self.identity.redirect_uri)
        self.store.save(credential)
        return credential

    def token_info(self) -> dict[str, Any]:
        """Describe the stored credential without touching the network."""
        credential = self.store.load()
        if credential is None:
            return {"status": "no_token"}

        now = self.clock()
        remaining = credential.seconds_remaining(now)
        return {
            "status": "valid" if credential.is_valid(now) else "expired",
            "expires_in": str(timedelta(seconds=remaining)) if credential.expires_at else "unknown",
            "has_refresh_token": bool(credential.refresh_token),
            "token_type": credential.token_type,
            "path": str(self.store.path),
        }

    def logout(self) -> bool:
        """Forget the stored credential."""
        return self.store.clear()
