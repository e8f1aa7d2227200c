"""Shared fixtures."""

import pytest

from kindle_sender.config import DeliverySettings


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at temporary to-send and sent folders."""
    source = tmp_path / "to-send"
    source.mkdir()
    return DeliverySettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        tenant_id="common",
        source_directory=source,
        destination_directory=tmp_path / "sent",
        receivers=("reader@kindle.com", "other@kindle.com"),
        callback_uri="http://localhost:8080/callback",
    )
