"""Azure (Microsoft identity platform) authentication for kindle-sender."""

from kindle_sender.azure.callback import CallbackListener, CodeHandoff
from kindle_sender.azure.exceptions import (
    AuthError,
    CodeNotReceivedError,
    TokenEndpointError,
)
from kindle_sender.azure.identity import IdentityClient
from kindle_sender.azure.manager import AuthenticationManager, TokenSource
from kindle_sender.azure.models import Credential
from kindle_sender.azure.token_store import TokenStore

__all__ = [
    "AuthenticationManager",
    "TokenSource",
    "IdentityClient",
    "CallbackListener",
    "CodeHandoff",
    "TokenStore",
    "Credential",
    "AuthError",
    "CodeNotReceivedError",
    "TokenEndpointError",
]
