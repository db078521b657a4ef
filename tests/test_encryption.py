"""Tests for SQLCipher-encrypted stores.

Skipped when the sqlcipher3 driver is not installed.
"""

import logging

import pytest

from cipherstore.errors import StoreOpenError
from cipherstore.store import EncryptedStore

CORRECT = "correct_password"
WRONG = "wrong_password"

JOHN = {"id": "1", "name": "John", "lastName": "Doe", "age": 30}
JANE = {"id": "1", "name": "Jane", "lastName": "Smith", "age": 25}


@pytest.fixture(autouse=True)
def require_sqlcipher(sqlcipher):
    yield


class TestEncryptedStore:
    """Create, reopen and reject encrypted stores."""

    def test_create_and_access_with_passphrase(self, users_schema, tmp_path):
        with EncryptedStore.open(users_schema, tmp_path / "enc.db", passphrase="test_password_123") as store:
            assert store.encrypted
            store.insert(JOHN)

            assert store.get_by_id("1") == JOHN
            assert store.query() == [JOHN]

    def test_reopen_with_correct_passphrase(self, users_schema, tmp_path):
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert(JANE)

        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            assert store.query() == [JANE]

    def test_wrong_passphrase_fails(self, users_schema, tmp_path):
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert(JANE)
            assert len(store.query()) == 1

        with pytest.raises(StoreOpenError) as exc_info:
            EncryptedStore.open(users_schema, path, passphrase=WRONG)

        error = exc_info.value
        assert error.operation == "open"
        assert error.path == str(path)
        assert WRONG not in str(error)
        assert CORRECT not in str(error)

    def test_wrong_passphrase_leaves_data_intact(self, users_schema, tmp_path):
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert(JANE)

        with pytest.raises(StoreOpenError):
            EncryptedStore.open(users_schema, path, passphrase=WRONG)

        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            assert store.query() == [JANE]

    def test_encrypted_file_without_passphrase_fails(self, users_schema, tmp_path):
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert(JANE)

        with pytest.raises(StoreOpenError):
            EncryptedStore.open(users_schema, path)

    def test_plain_file_with_passphrase_fails(self, users_schema, tmp_path):
        path = tmp_path / "plain.db"
        with EncryptedStore.open(users_schema, path) as store:
            store.insert(JOHN)

        with pytest.raises(StoreOpenError):
            EncryptedStore.open(users_schema, path, passphrase=CORRECT)

    def test_file_contents_are_not_plaintext(self, users_schema, tmp_path):
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert({"id": "1", "name": "Unmistakable", "lastName": "Marker", "age": 1})

        raw = path.read_bytes()
        assert not raw.startswith(b"SQLite format 3")
        assert b"Unmistakable" not in raw

    def test_passphrase_with_quotes(self, users_schema, tmp_path):
        path = tmp_path / "quoted.db"
        passphrase = 'pa"ss\'word'
        with EncryptedStore.open(users_schema, path, passphrase=passphrase) as store:
            store.insert(JOHN)

        with EncryptedStore.open(users_schema, path, passphrase=passphrase) as store:
            assert store.get_by_id("1") == JOHN

    def test_rename_and_reopen_keeps_passphrase(self, users_schema, tmp_path):
        with EncryptedStore.open(users_schema, tmp_path / "a.db", passphrase=CORRECT) as store:
            store.rename(tmp_path / "b.db")
            store.reopen()
            store.insert(JOHN)

        with pytest.raises(StoreOpenError):
            EncryptedStore.open(users_schema, tmp_path / "b.db", passphrase=WRONG)
        with EncryptedStore.open(users_schema, tmp_path / "b.db", passphrase=CORRECT) as store:
            assert store.query() == [JOHN]

    def test_passphrase_never_logged(self, users_schema, tmp_path, caplog):
        caplog.set_level(logging.DEBUG, logger="cipherstore")
        path = tmp_path / "enc.db"
        with EncryptedStore.open(users_schema, path, passphrase=CORRECT) as store:
            store.insert(JOHN)
        with pytest.raises(StoreOpenError) as exc_info:
            EncryptedStore.open(users_schema, path, passphrase=WRONG)

        assert "Engine URL: sqlite+pysqlcipher://:****@" in caplog.text
        assert CORRECT not in caplog.text
        assert WRONG not in caplog.text
        assert WRONG not in str(exc_info.value)


class TestMockedPassphrase:
    """Passphrases are ignored in memory mode."""

    def test_mocked_ignores_passphrase(self, users_schema, tmp_path, caplog):
        with EncryptedStore.open(users_schema, mocked=True, passphrase=CORRECT) as store:
            assert not store.encrypted
            store.insert(JOHN)
            assert store.query() == [JOHN]

        assert "Passphrase ignored" in caplog.text
        assert list(tmp_path.iterdir()) == []
