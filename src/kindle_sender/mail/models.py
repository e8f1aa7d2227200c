"""Graph sendMail payload models."""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

FILE_ATTACHMENT_TYPE = "#microsoft.graph.fileAttachment"
DEFAULT_SUBJECT = "Your Kindle File"


@dataclass
class FileAttachment:
    """A file attached inline as base64."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def content_bytes(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def to_graph(self) -> dict[str, Any]:
        return {
            "@odata.type": FILE_ATTACHMENT_TYPE,
            "name": self.name,
            "contentType": self.content_type,
            "contentBytes": self.content_bytes,
        }


@dataclass
class EmailPayload:
    """One email with attachments, shaped for POST /me/sendMail.

    Attributes:
        recipients: Addresses placed in toRecipients.
        subject: Subject line.
        body: Plain-text body (empty by convention for Kindle deliveries).
        attachments: File attachments.
        save_to_sent_items: Keep a copy in the sender's Sent Items.
    """

    recipients: list[str]
    subject: str = DEFAULT_SUBJECT
    body: str = ""
    attachments: list[FileAttachment] = field(default_factory=list)
    save_to_sent_items: bool = True

    def to_graph(self) -> dict[str, Any]:
        return {
            "message": {
                "subject": self.subject,
                "body": {"contentType": "Text", "content": self.body},
                "toRecipients": [
                    {"emailAddress": {"address": address}} for address in self.recipients
                ],
                "attachments": [attachment.to_graph() for attachment in self.attachments],
            },
            "saveToSentItems": self.save_to_sent_items,
        }
