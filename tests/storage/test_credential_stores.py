"""Tests for credential stores."""

import json
import sys

import pytest

from authflow.models.errors import CredentialStoreError
from authflow.models.tokens import TokenResult
from authflow.storage.file import JsonFileCredentialStore
from authflow.storage.memory import InMemoryCredentialStore


def make_token(**overrides) -> TokenResult:
    values = {
        "access_token": "access-1",
        "expires_at": 1_700_000_000.0,
        "refresh_token": "refresh-1",
        "scope": "read write",
    }
    values.update(overrides)
    return TokenResult(**values)


class TestInMemoryCredentialStore:
    def test_save_load_clear(self):
        store = InMemoryCredentialStore()
        assert store.load() is None

        store.save(make_token())
        assert store.load() == make_token()

        store.save(make_token(access_token="access-2"))
        assert store.load().access_token == "access-2"

        store.clear()
        assert store.load() is None

    def test_initial_token(self):
        assert InMemoryCredentialStore(make_token()).load() == make_token()


class TestJsonFileCredentialStore:
    def test_round_trip(self, tmp_path):
        # Arrange
        store = JsonFileCredentialStore(tmp_path / "tokens.json")

        # Act
        store.save(make_token())

        # Assert
        assert store.load() == make_token()
        data = json.loads((tmp_path / "tokens.json").read_text())
        assert data["access_token"] == "access-1"
        assert data["refresh_token"] == "refresh-1"

    def test_load_missing_file(self, tmp_path):
        assert JsonFileCredentialStore(tmp_path / "missing.json").load() is None

    def test_creates_parent_directories(self, tmp_path):
        store = JsonFileCredentialStore(tmp_path / "a" / "b" / "tokens.json")

        store.save(make_token())

        assert store.load() is not None

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
    def test_file_is_private(self, tmp_path):
        token_file = tmp_path / "tokens.json"

        JsonFileCredentialStore(token_file).save(make_token())

        assert token_file.stat().st_mode & 0o777 == 0o600

    def test_overwrite_replaces_token(self, tmp_path):
        store = JsonFileCredentialStore(tmp_path / "tokens.json")
        store.save(make_token(access_token="a-much-longer-first-access-token"))

        store.save(make_token(access_token="short"))

        assert store.load().access_token == "short"

    @pytest.mark.parametrize("content", ["not json", '{"token_type": "Bearer"}', "[]"])
    def test_corrupt_file_loads_as_none(self, tmp_path, content):
        token_file = tmp_path / "tokens.json"
        token_file.write_text(content)

        assert JsonFileCredentialStore(token_file).load() is None

    def test_clear(self, tmp_path):
        token_file = tmp_path / "tokens.json"
        store = JsonFileCredentialStore(token_file)
        store.save(make_token())

        store.clear()
        store.clear()

        assert not token_file.exists()
        assert store.load() is None

    def test_save_failure_raises(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonFileCredentialStore(blocker / "tokens.json")

        with pytest.raises(CredentialStoreError):
            store.save(make_token())
