"""Microsoft identity platform token endpoint client using Authlib.

Covers only the two grants kindle-sender needs:
- authorization_code: exchange the code captured by the local redirect
- refresh_token: renew an expired access token without user interaction
"""

from __future__ import annotations

import logging
import time

import httpx
from authlib.common.security import generate_token
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import OAuth2Client
from authlib.oauth2 import OAuth2Error

from kindle_sender.azure.exceptions import TokenEndpointError
from kindle_sender.azure.models import Credential

logger = logging.getLogger(__name__)

AUTHORITY = "https://login.microsoftonline.com"

# Scopes requested at each step
AUTHORIZE_SCOPES = ["offline_access", "Mail.Send"]
EXCHANGE_SCOPE = "Mail.Send"
REFRESH_SCOPE = "https://graph.microsoft.com/.default"


class IdentityClient:
    """Token endpoint client for one Azure app registration.

    Example:
        >>> client = IdentityClient("client-id", "secret", "common", "http://localhost:8080/callback")
        >>> url, state = client.authorization_url()
        >>> credential = client.exchange(code_from_redirect)
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        tenant_id: str,
        redirect_uri: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the identity client.

        Args:
            client_id: Azure application (client) ID.
            client_secret: Azure application client secret.
            tenant_id: Azure tenant ID or "common".
            redirect_uri: Redirect URI registered on the app.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant_id = tenant_id
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self._transport = transport

    @property
    def authorize_url(self) -> str:
        return f"{AUTHORITY}/{self.tenant_id}/oauth2/v2.0/authorize"

    @property
    def token_url(self) -> str:
        return f"{AUTHORITY}/{self.tenant_id}/oauth2/v2.0/token"

    def _session(self) -> OAuth2Client:
        kwargs = {"timeout": self.timeout}
        if self._transport is not None:
            kwargs["transport"] = self._transport

        session = OAuth2Client(
            client_id=self.client_id,
            client_secret=self.client_secret,
            redirect_uri=self.redirect_uri,
            token_endpoint_auth_method="client_secret_post",
            **kwargs,
        )
        session.register_compliance_hook("access_token_response", _ensure_success)
        session.register_compliance_hook("refresh_token_response", _ensure_success)
        return session

    def authorization_url(self, state: str | None = None) -> tuple[str, str]:
        """Build the URL the user opens to sign in.

        Returns:
            Tuple of (url, state). The state must come back on the redirect.
        """
        state = state or generate_token(32)
        with self._session() as session:
            url, state = session.create_authorization_url(
                self.authorize_url,
                state=state,
                scope=" ".join(AUTHORIZE_SCOPES),
                response_mode="query",
            )
        return url, state

    def exchange(self, code: str, redirect_uri: str | None = None) -> Credential:
        """Exchange an authorization code for a credential.

        Raises:
            TokenEndpointError: On transport failure, error status, or bad body.
        """
        logger.info("Exchanging authorization code for a token")
        with self._session() as session:
            return self._request_token(
                "exchanging code for token",
                lambda: session.fetch_token(
                    self.token_url,
                    grant_type="authorization_code",
                    code=code,
                    redirect_uri=redirect_uri or self.redirect_uri,
                    scope=EXCHANGE_SCOPE,
                ),
            )

    def refresh(self, refresh_token: str) -> Credential:
        """Use a refresh token to obtain a new credential.

        Raises:
            TokenEndpointError: On transport failure, error status, or bad body.
        """
        logger.info("Refreshing access token")
        with self._session() as session:
            return self._request_token(
                "refreshing token",
                lambda: session.refresh_token(
                    self.token_url,
                    refresh_token=refresh_token,
                    scope=REFRESH_SCOPE,
                ),
            )

    @staticmethod
    def _request_token(action: str, call) -> Credential:
        try:
            response = call()
        except TokenEndpointError:
            raise
        except (OAuthError, OAuth2Error) as e:
            raise TokenEndpointError(f"Error {action}: {e}") from e
        except httpx.HTTPError as e:
            raise TokenEndpointError(f"Error {action}: request failed: {e}") from e
        except ValueError as e:
            raise TokenEndpointError(f"Error {action}: response is not JSON: {e}") from e
        except TypeError as e:
            # authlib chokes on JSON bodies that aren't objects (null, 123, [1])
            raise TokenEndpointError(f"Error {action}: response is not a JSON object: {e}") from e

        if not isinstance(response, dict):
            raise TokenEndpointError(
                f"Error {action}: response is not a JSON object: {type(response).__name__}"
            )

        try:
            return Credential.from_token_response(dict(response), now=time.time())
        except (TypeError, ValueError) as e:
            raise TokenEndpointError(f"Error {action}: {e}") from e


def _ensure_success(response: httpx.Response) -> httpx.Response:
    if not response.is_success:
        raise TokenEndpointError(
            f"Token endpoint returned {response.status_code}: {response.text}",
            status_code=response.status_code,
            body=response.text,
        )
    return response
