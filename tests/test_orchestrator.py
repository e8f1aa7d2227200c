"""Tests for the delivery run."""

import errno
import os
from unittest.mock import MagicMock, patch

import httpx
import pytest

from kindle_sender.azure import AuthError
from kindle_sender.delivery import (
    DeliveryFailedError,
    DeliveryOrchestrator,
    FileService,
    FileStatus,
    OrchestrationError,
)
from kindle_sender.mail import GraphMailClient


@pytest.fixture
def auth():
    auth = MagicMock()
    auth.obtain_access_token.return_value = "access-token"
    return auth


def _mailer(handler):
    return GraphMailClient(receivers=["reader@kindle.com"], transport=httpx.MockTransport(handler))


def _accept_all(request):
    return httpx.Response(202)


class TestRun:
    """Test a full run against a mocked Graph endpoint."""

    def test_empty_directory(self, settings, auth):
        """Should finish with nothing sent and never authenticate."""
        outcome = DeliveryOrchestrator(settings, auth, _mailer(_accept_all)).run()

        assert outcome.total == 0
        assert outcome.ok is True
        auth.obtain_access_token.assert_not_called()

    def test_all_sent_and_moved(self, settings, auth):
        """Should send every file and move each one to the sent folder."""
        (settings.source_directory / "book1.epub").write_bytes(b"12345")
        (settings.source_directory / "book2.epub").write_bytes(b"1234567890")
        posted = []

        def handler(request):
            posted.append(request)
            return httpx.Response(202)

        outcome = DeliveryOrchestrator(settings, auth, _mailer(handler)).run()

        assert (outcome.succeeded, outcome.failed) == (2, 0)
        assert len(posted) == 2
        auth.obtain_access_token.assert_called_once()
        assert list(settings.source_directory.iterdir()) == []
        assert (settings.destination_directory / "book1.epub").read_bytes() == b"12345"
        assert (settings.destination_directory / "book2.epub").read_bytes() == b"1234567890"

    def test_partial_failure(self, settings, auth):
        """Should keep going after a rejected file and leave it in place."""
        (settings.source_directory / "book1.epub").write_bytes(b"12345")
        (settings.source_directory / "book2.epub").write_bytes(b"1234567890")

        def handler(request):
            if b"book2.epub" in request.content:
                return httpx.Response(413, text="too large")
            return httpx.Response(202)

        outcome = DeliveryOrchestrator(settings, auth, _mailer(handler)).run()

        assert (outcome.succeeded, outcome.failed) == (1, 1)
        statuses = {result.path.name: result.status for result in outcome.results}
        assert statuses == {"book1.epub": FileStatus.SENT, "book2.epub": FileStatus.SEND_FAILED}
        assert (settings.source_directory / "book2.epub").exists()
        assert (settings.destination_directory / "book1.epub").exists()
        with pytest.raises(DeliveryFailedError, match="Failed to process 1 files"):
            outcome.raise_for_failures()

    def test_relocation_failure(self, settings, auth):
        """Should report a sent file that couldn't be moved."""
        (settings.source_directory / "book.epub").write_bytes(b"new")
        settings.destination_directory.mkdir()
        (settings.destination_directory / "book.epub").write_bytes(b"old")

        outcome = DeliveryOrchestrator(settings, auth, _mailer(_accept_all)).run()

        (result,) = outcome.results
        assert result.status is FileStatus.RELOCATION_FAILED
        assert outcome.relocation_failures == [result]
        assert outcome.failed == 1
        assert (settings.source_directory / "book.epub").exists()
        assert (settings.destination_directory / "book.epub").read_bytes() == b"old"

    def test_auth_failure_stops_run(self, settings, auth):
        """Should abort before sending when no token can be obtained."""
        (settings.source_directory / "book.epub").write_bytes(b"data")
        auth.obtain_access_token.side_effect = AuthError("no code")
        mailer = MagicMock()

        with pytest.raises(OrchestrationError, match="Authentication failed"):
            DeliveryOrchestrator(settings, auth, mailer).run()
        mailer.send.assert_not_called()
        assert (settings.source_directory / "book.epub").exists()

    def test_dry_run(self, settings, auth):
        """Should neither authenticate nor send in dry-run mode."""
        (settings.source_directory / "book.epub").write_bytes(b"data")
        mailer = MagicMock()

        outcome = DeliveryOrchestrator(settings, auth, mailer).run(dry_run=True)

        assert outcome.total == 0
        auth.obtain_access_token.assert_not_called()
        mailer.send.assert_not_called()
        assert (settings.source_directory / "book.epub").exists()

    def test_vanished_file(self, settings, auth):
        """Should record a file deleted after listing as a send failure."""
        (settings.source_directory / "book1.epub").write_bytes(b"a")
        (settings.source_directory / "book2.epub").write_bytes(b"b")

        def handler(request):
            (settings.source_directory / "book2.epub").unlink(missing_ok=True)
            return httpx.Response(202)

        outcome = DeliveryOrchestrator(settings, auth, _mailer(handler)).run()

        statuses = [result.status for result in outcome.results]
        assert statuses == [FileStatus.SENT, FileStatus.SEND_FAILED]

    def test_missing_source_directory(self, settings, auth, tmp_path):
        """Should raise OrchestrationError when the folder can't be read."""
        (tmp_path / "to-send").rmdir()
        with pytest.raises(OrchestrationError, match="Error reading directory"):
            DeliveryOrchestrator(settings, auth, _mailer(_accept_all)).run()


class TestFileService:
    """Test listing and moving files."""

    def test_list_files_skips_directories(self, tmp_path):
        """Should list regular files only, sorted by name."""
        (tmp_path / "b.epub").write_bytes(b"")
        (tmp_path / "a.mobi").write_bytes(b"")
        (tmp_path / "nested").mkdir()
        assert [p.name for p in FileService().list_files(tmp_path)] == ["a.mobi", "b.epub"]

    def test_move_creates_destination(self, tmp_path):
        """Should create the destination folder."""
        source = tmp_path / "book.epub"
        source.write_bytes(b"data")
        moved = FileService().move_file(source, tmp_path / "sent" / "2024")
        assert moved == tmp_path / "sent" / "2024" / "book.epub"
        assert moved.read_bytes() == b"data"
        assert not source.exists()

    def test_move_never_overwrites(self, tmp_path):
        """Should refuse to replace an existing file."""
        source = tmp_path / "book.epub"
        source.write_bytes(b"new")
        (tmp_path / "sent").mkdir()
        (tmp_path / "sent" / "book.epub").write_bytes(b"old")
        with pytest.raises(FileExistsError):
            FileService().move_file(source, tmp_path / "sent")

    def test_move_never_overwrites_late_arrival(self, tmp_path):
        """Should keep a file that appears in the destination mid-move."""
        source = tmp_path / "book.epub"
        source.write_bytes(b"new")
        sent = tmp_path / "sent"
        real_link = os.link

        def link_after_arrival(src, dst):
            (sent / "book.epub").write_bytes(b"late")
            return real_link(src, dst)

        with patch("kindle_sender.delivery.files.os.link", side_effect=link_after_arrival):
            with pytest.raises(FileExistsError):
                FileService().move_file(source, sent)
        assert (sent / "book.epub").read_bytes() == b"late"
        assert source.read_bytes() == b"new"

    def test_move_across_filesystems(self, tmp_path):
        """Should copy then delete when hard links aren't possible."""
        source = tmp_path / "book.epub"
        source.write_bytes(b"data")
        cross_device = OSError(errno.EXDEV, "Invalid cross-device link")

        with patch("kindle_sender.delivery.files.os.link", side_effect=cross_device):
            moved = FileService().move_file(source, tmp_path / "sent")
        assert moved.read_bytes() == b"data"
        assert not source.exists()

    def test_move_across_filesystems_never_overwrites(self, tmp_path):
        """Should refuse to replace an existing file on the copy path too."""
        source = tmp_path / "book.epub"
        source.write_bytes(b"new")
        (tmp_path / "sent").mkdir()
        (tmp_path / "sent" / "book.epub").write_bytes(b"old")
        cross_device = OSError(errno.EXDEV, "Invalid cross-device link")

        with patch("kindle_sender.delivery.files.os.link", side_effect=cross_device):
            with pytest.raises(FileExistsError):
                FileService().move_file(source, tmp_path / "sent")
        assert (tmp_path / "sent" / "book.epub").read_bytes() == b"old"
        assert source.exists()
