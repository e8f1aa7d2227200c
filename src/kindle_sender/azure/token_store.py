"""Persistent storage for the OAuth credential."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from kindle_sender.azure.models import Credential
from kindle_sender.config import TOKEN_FILE

logger = logging.getLogger(__name__)


class TokenStore:
    """Read and write the credential JSON file.

    The file is replaced wholesale on every save. A missing or unreadable
    file simply means there is no cached credential.
    """

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path else TOKEN_FILE

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> Credential | None:
        """Load the stored credential, or None if there isn't a usable one."""
        if not self.path.exists():
            logger.info("No existing token found")
            return None

        try:
            with open(self.path) as f:
                data = json.load(f)
            credential = Credential.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

        logger.debug(f"Loaded token from {self.path}")
        return credential

    def save(self, credential: Credential) -> None:
        """Overwrite the stored credential."""
        self.path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            json.dump(credential.to_dict(), f, indent=2)
        os.replace(tmp_path, self.path)

        logger.info(f"Token saved to {self.path}")

    def clear(self) -> bool:
        """Delete the stored credential. Returns True if a file was removed."""
        if not self.path.exists():
            return False
        self.path.unlink()
        logger.info(f"Token removed from {self.path}")
        return True
