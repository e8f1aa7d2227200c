"""Tests for the credential model and its file storage."""

import json
import os
import stat

import pytest

from kindle_sender.azure import Credential, TokenStore


class TestCredential:
    """Test credential parsing and validity."""

    def test_from_token_response_stamps_expiry(self):
        """Should compute expires_at from acquisition time + expires_in."""
        credential = Credential.from_token_response(
            {
                "access_token": "at",
                "refresh_token": "rt",
                "id_token": "idt",
                "expires_in": 3600,
                "token_type": "Bearer",
            },
            now=1_000,
        )
        assert credential.expires_at == 4_600
        assert credential.refresh_token == "rt"
        assert credential.id_token == "idt"

    def test_missing_access_token(self):
        """Should reject a response without access_token."""
        with pytest.raises(ValueError, match="access_token"):
            Credential.from_token_response({"expires_in": 3600, "token_type": "Bearer"})

    def test_missing_expires_in(self):
        """Should reject a response without expires_in."""
        with pytest.raises(ValueError, match="expires_in"):
            Credential.from_token_response({"access_token": "at", "token_type": "Bearer"})

    def test_validity_window(self):
        """Should be valid strictly before expires_at."""
        credential = Credential("at", "Bearer", 3600, expires_at=2_000)
        assert credential.is_valid(now=1_999) is True
        assert credential.is_valid(now=2_000) is False

    def test_without_expires_at_never_valid(self):
        """Should treat a credential without expires_at as expired."""
        credential = Credential("at", "Bearer", 3600)
        assert credential.is_valid(now=0) is False
        assert credential.seconds_remaining(now=0) == 0

    def test_from_dict_keeps_stored_expiry(self):
        """Should not recompute expires_at when loading."""
        credential = Credential.from_dict(
            {"access_token": "at", "token_type": "Bearer", "expires_in": 3600, "expires_at": 42}
        )
        assert credential.expires_at == 42


class TestTokenStore:
    """Test reading and writing the credential file."""

    def test_load_missing_file(self, tmp_path):
        """Should return None when no token exists."""
        assert TokenStore(tmp_path / "auth.json").load() is None

    def test_save_and_load(self, tmp_path):
        """Should persist every credential field."""
        store = TokenStore(tmp_path / "nested" / "auth.json")
        credential = Credential("at", "Bearer", 3600, "rt", "idt", 12345)

        store.save(credential)

        assert store.load() == credential
        data = json.loads(store.path.read_text())
        assert data == {
            "access_token": "at",
            "token_type": "Bearer",
            "expires_in": 3600,
            "refresh_token": "rt",
            "id_token": "idt",
            "expires_at": 12345,
        }

    def test_save_overwrites(self, tmp_path):
        """Should replace the file instead of merging."""
        store = TokenStore(tmp_path / "auth.json")
        store.save(Credential("old", "Bearer", 3600, refresh_token="old-rt", expires_at=1))
        store.save(Credential("new", "Bearer", 60, expires_at=2))

        loaded = store.load()
        assert loaded.access_token == "new"
        assert loaded.refresh_token is None

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_save_owner_only(self, tmp_path):
        """Should write the token file readable by the owner only."""
        store = TokenStore(tmp_path / "auth.json")
        store.save(Credential("at", "Bearer", 3600, expires_at=1))
        assert stat.S_IMODE(store.path.stat().st_mode) == 0o600

    def test_load_corrupt_file(self, tmp_path):
        """Should ignore an unreadable token file."""
        path = tmp_path / "auth.json"
        path.write_text("{broken")
        assert TokenStore(path).load() is None

    def test_load_wrong_shape(self, tmp_path):
        """Should ignore a token file without access_token."""
        path = tmp_path / "auth.json"
        path.write_text(json.dumps({"token": "google-style"}))
        assert TokenStore(path).load() is None

    def test_clear(self, tmp_path):
        """Should delete the file and report whether one existed."""
        store = TokenStore(tmp_path / "auth.json")
        store.save(Credential("at", "Bearer", 3600, expires_at=1))

        assert store.clear() is True
        assert store.exists() is False
        assert store.clear() is False

