"""Send every pending e-book and move the delivered ones.

One run: list the to-send folder, authenticate once, then for each file send
it and move it to the sent folder. Per-file failures are recorded and the run
carries on; only an authentication failure stops it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from kindle_sender.azure.exceptions import AuthError
from kindle_sender.azure.manager import AuthenticationManager
from kindle_sender.config import DeliverySettings
from kindle_sender.delivery.exceptions import DeliveryFailedError, OrchestrationError
from kindle_sender.delivery.files import FileService
from kindle_sender.mail.client import GraphMailClient
from kindle_sender.mail.exceptions import SendError

logger = logging.getLogger(__name__)


class FileStatus(str, Enum):
    SENT = "sent"
    SEND_FAILED = "send_failed"
    # The email went out but the file stayed in the to-send folder, so a
    # later run would deliver it again.
    RELOCATION_FAILED = "relocation_failed"


@dataclass
class FileResult:
    """Outcome for one file of the batch."""

    path: Path
    status: FileStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is FileStatus.SENT


@dataclass
class BatchOutcome:
    """Result of one delivery run.

    Attributes:
        results: Per-file results in processing order.
    """

    results: list[FileResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for result in self.results if result.ok)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def relocation_failures(self) -> list[FileResult]:
        return [r for r in self.results if r.status is FileStatus.RELOCATION_FAILED]

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def raise_for_failures(self) -> None:
        """Raise DeliveryFailedError if any file was not delivered."""
        if self.failed:
            raise DeliveryFailedError(self.failed, self.succeeded)


class DeliveryOrchestrator:
    """Drive one delivery run.

    Example:
        >>> orchestrator = DeliveryOrchestrator(settings, auth, mailer)
        >>> outcome = orchestrator.run()
        >>> print(f"Sent: {outcome.succeeded}/{outcome.total}")
    """

    def __init__(
        self,
        settings: DeliverySettings,
        auth: AuthenticationManager,
        mailer: GraphMailClient,
        files: FileService | None = None,
    ):
        self.settings = settings
        self.auth = auth
        self.mailer = mailer
        self.files = files or FileService()

    def pending_files(self) -> list[Path]:
        """Files waiting in the to-send folder.

        Raises:
            OrchestrationError: If the folder can't be read.
        """
        try:
            return self.files.list_files(self.settings.source_directory)
        except OSError as e:
            raise OrchestrationError(
                f"Error reading directory {self.settings.source_directory}: {e}"
            ) from e

    def run(self, dry_run: bool = False) -> BatchOutcome:
        """Send all pending files.

        Args:
            dry_run: Only log what would be sent; no authentication, no email.

        Returns:
            The batch outcome. Check ``outcome.ok`` or call
            ``outcome.raise_for_failures()``.

        Raises:
            OrchestrationError: If authentication fails or the folder can't be read.
        """
        logger.info("Starting file sending process...")
        files = self.pending_files()

        if not files:
            logger.info("No files found in directory to send.")
            return BatchOutcome()

        logger.info(f"Found {len(files)} files to send")

        if dry_run:
            for path in files:
                logger.info(f"[DRY-RUN] Would send '{path.name}' to {', '.join(self.settings.receivers)}")
            return BatchOutcome()

        try:
            access_token = self.auth.obtain_access_token()
        except AuthError as e:
            raise OrchestrationError(f"Authentication failed: {e}") from e

        outcome = BatchOutcome()
        for path in files:
            outcome.results.append(self._deliver(access_token, path))

        logger.info(
            f"Sending process completed. Successfully sent: {outcome.succeeded}, "
            f"Failed: {outcome.failed}"
        )
        for result in outcome.relocation_failures:
            logger.warning(
                f"'{result.path.name}' was emailed but is still in {self.settings.source_directory}; "
                "move it by hand to avoid sending it twice"
            )
        return outcome

    def _deliver(self, access_token: str, path: Path) -> FileResult:
        logger.info(f"Sending file: {path.name}")

        try:
            self.mailer.send(access_token, path)
        except SendError as e:
            logger.warning(f"Failed to send file {path.name}: {e}")
            return FileResult(path, FileStatus.SEND_FAILED, str(e))

        logger.info(f"Successfully sent file: {path.name}")

        try:
            self.files.move_file(path, self.settings.destination_directory)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to move file {path.name}: {e}")
            return FileResult(path, FileStatus.RELOCATION_FAILED, str(e))

        logger.info(f"Moved file to sent directory: {path.name}")
        return FileResult(path, FileStatus.SENT)
