"""Pytest configuration for cipherstore tests."""

import os

import pytest

from cipherstore.schema import Column, FieldType, TableSchema


@pytest.fixture(autouse=True)
def clean_cipherstore_env(monkeypatch, tmp_path):
    """Clear cipherstore environment variables and run inside a temp directory."""
    for var in [k for k in os.environ if k.startswith("CIPHERSTORE_")]:
        monkeypatch.delenv(var, raising=False)

    # Relative store paths and .env lookups resolve under tmp_path
    monkeypatch.chdir(tmp_path)

    yield


@pytest.fixture
def users_schema() -> TableSchema:
    """The users table: text primary key plus name, lastName and age."""
    return TableSchema.create(
        "users",
        [
            Column(name="id", type=FieldType.TEXT, is_primary_key=True),
            Column(name="name", type=FieldType.TEXT),
            Column(name="lastName", type=FieldType.TEXT),
            Column(name="age", type=FieldType.INTEGER),
        ],
    )


@pytest.fixture
def all_types_schema() -> TableSchema:
    """One column of every field type, keyed by an integer."""
    return TableSchema.create(
        "samples",
        [
            Column(name="sample_id", type=FieldType.INTEGER, is_primary_key=True),
            Column(name="label", type=FieldType.TEXT),
            Column(name="weight", type=FieldType.REAL),
            Column(name="payload", type=FieldType.BLOB),
        ],
    )


@pytest.fixture
def sqlcipher():
    """Skip encryption tests when the SQLCipher driver is not installed."""
    return pytest.importorskip("sqlcipher3")
