"""Sending e-books by email through Microsoft Graph.

Usage:
    from kindle_sender.mail import GraphMailClient

    with GraphMailClient(receivers=["me@kindle.com"]) as client:
        client.send(access_token, "books/novel.epub")
"""

from __future__ import annotations

from kindle_sender.mail.client import GraphMailClient
from kindle_sender.mail.exceptions import SendError
from kindle_sender.mail.models import EmailPayload, FileAttachment

__all__ = [
    "GraphMailClient",
    "EmailPayload",
    "FileAttachment",
    "SendError",
]
