"""Microsoft Graph mail client for sending e-books as attachments."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import httpx

from kindle_sender.mail.exceptions import SendError
from kindle_sender.mail.models import DEFAULT_SUBJECT, EmailPayload, FileAttachment

logger = logging.getLogger(__name__)


class GraphMailClient:
    """Send one file per email through Graph ``/me/sendMail``.

    Example:
        >>> with GraphMailClient(receivers=["me@kindle.com"]) as client:
        ...     client.send(access_token, "books/novel.epub")
    """

    SEND_MAIL_URL = "https://graph.microsoft.com/v1.0/me/sendMail"

    def __init__(
        self,
        receivers: Sequence[str],
        subject: str = DEFAULT_SUBJECT,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the mail client.

        Args:
            receivers: Kindle addresses every file is sent to.
            subject: Subject line of each email.
            timeout: Request timeout in seconds (attachments can be large).
            transport: Optional httpx transport (used by tests).
        """
        self.receivers = list(receivers)
        self.subject = subject
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def build_payload(self, filename: str, content: bytes) -> EmailPayload:
        return EmailPayload(
            recipients=self.receivers,
            subject=self.subject,
            attachments=[FileAttachment(name=filename, content=content)],
        )

    def send(self, access_token: str, file_path: str | Path) -> None:
        """Send a file to every receiver.

        Args:
            access_token: Graph access token with Mail.Send.
            file_path: File to attach.

        Raises:
            SendError: If the file can't be read, has no name, or Graph
                rejects the request.
        """
        path = Path(file_path)
        if not path.name:
            raise SendError(f"Failed to get filename from file path: {file_path}")

        try:
            content = path.read_bytes()
        except OSError as e:
            raise SendError(f"Failed to read file {path}: {e}") from e

        payload = self.build_payload(path.name, content)
        headers = {"Authorization": f"Bearer {access_token}"}

        try:
            response = self._client.post(self.SEND_MAIL_URL, headers=headers, json=payload.to_graph())
        except httpx.HTTPError as e:
            raise SendError(f"Failed to send email: {e}") from e

        if not response.is_success:
            raise SendError(
                f"Failed to send email: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        logger.debug(f"Email with attachment {path.name} sent ({len(content)} bytes)")

    def close(self):
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
