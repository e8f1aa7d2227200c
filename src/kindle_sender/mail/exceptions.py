"""Mail gateway exceptions."""

from __future__ import annotations


class SendError(Exception):
    """Failed to send one file through the mail gateway."""

    def __init__(self, message: str, status_code: int | None = None, body: str | None = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message)
