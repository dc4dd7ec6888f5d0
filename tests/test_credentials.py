# Tests for auth/credentials.py
# Created: 2026-10-03

import json
import stat
import time
from unittest.mock import patch

import pytest

from pocketcal.auth.credentials import Credential, CredentialStore, Found, NotFound
from pocketcal.auth.errors import CredentialStoreError


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path / "oauth" / "google_calendar.json")


# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------


class TestCredential:
    def test_defaults(self):
        cred = Credential(access_token="a")
        assert cred.refresh_token is None
        assert cred.expiry is None
        assert cred.scopes == frozenset()
        assert cred.token_type == "Bearer"
        assert not cred.can_refresh

    def test_record_shape(self):
        cred = Credential(
            access_token="a",
            refresh_token="r",
            expiry=1234567890.5,
            scopes=frozenset({"b", "a"}),
        )
        record = cred.to_record()
        assert record["access_token"] == "a"
        assert record["refresh_token"] == "r"
        assert record["expiry"] == 1234567890.5
        assert record["scopes"] == ["a", "b"]

    def test_from_google_token_layout(self):
        cred = Credential.from_record(
            {
                "access_token": "ya29",
                "refresh_token": "1//r",
                "expiry_date": 1700000000000,
                "scope": "https://www.googleapis.com/auth/calendar openid",
            }
        )
        assert cred.expiry == 1700000000.0
        assert cred.scopes == {"https://www.googleapis.com/auth/calendar", "openid"}

    def test_from_record_without_access_token(self):
        with pytest.raises(ValueError, match="access_token"):
            Credential.from_record({"refresh_token": "r"})


# ---------------------------------------------------------------------------
# CredentialStore
# ---------------------------------------------------------------------------


class TestCredentialStore:
    def test_save_and_load_round_trip(self, store):
        cred = Credential(
            access_token="access123",
            refresh_token="refresh456",
            expiry=time.time() + 3600,
            scopes=frozenset({"email", "https://www.googleapis.com/auth/calendar"}),
        )
        store.save(cred)

        loaded = store.load()
        assert isinstance(loaded, Found)
        assert loaded.credential == cred

    def test_round_trip_without_optional_fields(self, store):
        cred = Credential(access_token="only-access")
        store.save(cred)

        loaded = store.load()
        assert isinstance(loaded, Found)
        assert loaded.credential.refresh_token is None
        assert loaded.credential.expiry is None
        assert loaded.credential == cred

    def test_load_missing_is_not_found(self, store):
        result = store.load()
        assert isinstance(result, NotFound)
        assert "no credential file" in result.reason

    def test_load_corrupt_is_not_found(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert isinstance(store.load(), NotFound)

    def test_load_record_without_token_is_not_found(self, store):
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"refresh_token": "r"}))
        assert isinstance(store.load(), NotFound)

    def test_save_overwrites(self, store):
        store.save(Credential(access_token="first"))
        store.save(Credential(access_token="second"))
        loaded = store.load()
        assert isinstance(loaded, Found)
        assert loaded.credential.access_token == "second"

    def test_file_permissions(self, store):
        store.save(Credential(access_token="secret"))
        mode = store.path.stat().st_mode
        # Owner read+write only
        assert mode & stat.S_IRUSR
        assert mode & stat.S_IWUSR
        assert not (mode & stat.S_IRGRP)
        assert not (mode & stat.S_IROTH)

    def test_failed_save_keeps_previous_record(self, store):
        store.save(Credential(access_token="good"))

        with patch("pocketcal.auth.credentials.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CredentialStoreError, match="disk full"):
                store.save(Credential(access_token="bad"))

        loaded = store.load()
        assert isinstance(loaded, Found)
        assert loaded.credential.access_token == "good"
        # No temp files left behind
        assert [p.name for p in store.path.parent.iterdir()] == [store.path.name]
