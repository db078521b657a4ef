"""Encrypted single-table record store.

EncryptedStore owns one database file (or a private in-memory database),
the schema of the one table it holds, and a single live connection. Records
pass through RecordCodec on the way in and out; filters are rendered by
render_filters into bound WHERE clauses.

Example:
    schema = TableSchema.create("users", [...])
    with EncryptedStore.open(schema, "users.db", passphrase="s3cret") as store:
        store.insert({"id": "1", "name": "John", "lastName": "Doe", "age": 30})
        store.get_by_id("1")
        store.query([Filter("age", Operator.GREATER_THAN, 18)])
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.schema import CreateTable

from cipherstore.backends import Backend, FileBackend, MemoryBackend
from cipherstore.codec import RecordCodec, Scalar, coerce_scalar
from cipherstore.config import StoreConfig
from cipherstore.errors import (
    ConstraintError,
    SchemaError,
    StoreIOError,
    StoreOpenError,
)
from cipherstore.filters import Filter, render_filters
from cipherstore.log import redact
from cipherstore.schema import FieldType, TableSchema

logger = logging.getLogger(__name__)

_OPEN_CHECK_SQL = "SELECT count(*) FROM sqlite_master"


class EncryptedStore:
    """Handle on one single-table store.

    Use :meth:`open` (or :meth:`open_async`) to create a handle; the
    constructor does not connect. Statements on a handle are serialized, and
    each operation runs to completion before the next starts.
    """

    def __init__(
        self,
        schema: TableSchema,
        name: str | Path | None = None,
        passphrase: str | None = None,
        mocked: bool = False,
        record_type: type | None = None,
        config: StoreConfig | None = None,
    ):
        """Initialize the handle without connecting.

        Args:
            schema: Table schema
            name: File name or path; defaults to "<table>.db". Relative paths
                resolve under config.storage_dir.
            passphrase: SQLCipher passphrase; None or "" for a plain file
            mocked: Use a private in-memory database instead of a file
            record_type: Type decoded rows are built into (default: dict)
            config: Store configuration (default: StoreConfig())
        """
        self.schema = schema
        self.mocked = mocked
        self.config = config or StoreConfig()
        self._name = str(name) if name is not None else f"{schema.name}.db"
        self._passphrase = passphrase or None
        self._codec = RecordCodec(schema, record_type)
        self._table = schema.to_table()
        self._lock = threading.RLock()
        self._engine: Engine | None = None
        self._backend: Backend | None = None

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @classmethod
    def open(
        cls,
        schema: TableSchema,
        path: str | Path | None = None,
        passphrase: str | None = None,
        mocked: bool = False,
        record_type: type | None = None,
        config: StoreConfig | None = None,
    ) -> EncryptedStore:
        """Open or create a store and apply its schema.

        Raises:
            StoreOpenError: If the file cannot be read under the given
                passphrase (wrong passphrase, not a database, corrupt).
            StoreIOError: If the table cannot be created.
        """
        store = cls(
            schema,
            name=path,
            passphrase=passphrase,
            mocked=mocked,
            record_type=record_type,
            config=config,
        )
        store.connect()
        try:
            store.ensure_schema()
        except Exception:
            store.close()
            raise
        return store

    @classmethod
    async def open_async(cls, schema: TableSchema, *args: Any, **kwargs: Any) -> EncryptedStore:
        """Async variant of :meth:`open`."""
        return await asyncio.to_thread(cls.open, schema, *args, **kwargs)

    @property
    def name(self) -> str:
        """Logical file name future opens resolve to."""
        return self._name

    @property
    def path(self) -> Path | None:
        """Resolved file path future opens resolve to; None when mocked."""
        if self.mocked:
            return None
        return self.config.resolve_path(self._name)

    @property
    def location(self) -> str:
        """Location of the live connection, or of the bound name if closed."""
        if self._backend is not None:
            return self._backend.location
        return f":memory:{self._name}" if self.mocked else str(self.path)

    @property
    def encrypted(self) -> bool:
        return self._passphrase is not None and not self.mocked

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    def _make_backend(self) -> Backend:
        if self.mocked:
            return MemoryBackend(self._name, self.config, passphrase=self._passphrase)
        return FileBackend(self.path, self._passphrase, self.config)

    def connect(self) -> None:
        """Connect to the bound location and verify it is readable.

        Raises:
            StoreOpenError: If the file cannot be read under the passphrase.
        """
        with self._lock:
            if self._engine is not None:
                return

            backend = self._make_backend()
            try:
                engine = backend.create_engine()
            except ImportError as e:
                raise StoreOpenError(
                    f"Database driver unavailable: {e}",
                    operation="open",
                    path=backend.location,
                ) from e

            try:
                with engine.connect() as conn:
                    conn.execute(text(_OPEN_CHECK_SQL)).scalar_one()
            except SQLAlchemyError as e:
                engine.dispose()
                if self.encrypted:
                    reason = "wrong passphrase or not a database"
                else:
                    reason = "not a readable database"
                raise StoreOpenError(
                    f"Cannot open store ({reason}): {self._describe(e)}",
                    operation="open",
                    path=backend.location,
                ) from e

            self._backend = backend
            self._engine = engine
            logger.info(f"Store opened: {backend.location} (table={self.schema.name})")

    def close(self) -> None:
        """Release the connection. In-memory data is discarded."""
        with self._lock:
            if self._engine is None:
                return
            self._engine.dispose()
            location = self._backend.location if self._backend else self._name
            self._engine = None
            self._backend = None
            logger.info(f"Store closed: {location}")

    def rename(self, new_name: str | Path) -> None:
        """Rebind the logical file name.

        Only future opens are affected; an open connection stays on its
        current file until :meth:`reopen` is called.
        """
        with self._lock:
            old = self._name
            self._name = str(new_name)
            logger.info(f"Store renamed: {old} -> {self._name}")

    def reopen(self) -> None:
        """Close the current connection and open the bound name.

        Raises:
            StoreOpenError: If the bound file cannot be opened.
        """
        with self._lock:
            self.close()
            self.connect()
            self.ensure_schema()

    def __enter__(self) -> EncryptedStore:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> EncryptedStore:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close_async()

    # =========================================================================
    # Error handling
    # =========================================================================

    def _describe(self, error: BaseException) -> str:
        cause = getattr(error, "orig", None) or error
        return redact(str(cause), self._passphrase)

    def _require_engine(self, operation: str) -> Engine:
        if self._engine is None:
            raise StoreIOError("Store is closed", operation=operation, path=self.location)
        return self._engine

    @contextmanager
    def _engine_errors(self, operation: str) -> Iterator[None]:
        """Wrap engine failures in store errors carrying operation and path."""
        try:
            yield
        except IntegrityError as e:
            raise ConstraintError(
                f"Constraint violated on table '{self.schema.name}': {self._describe(e)}",
                operation=operation,
                path=self.location,
            ) from e
        except SQLAlchemyError as e:
            raise StoreIOError(
                f"Store operation failed: {self._describe(e)}",
                operation=operation,
                path=self.location,
            ) from e

    def _primary_key_column(self):
        key = self.schema.primary_key
        if key is None:
            raise SchemaError(f"Table '{self.schema.name}' has no primary key")
        return self._table.c[key]

    def _insert_row(self, record: Any, operation: str) -> dict[str, Scalar]:
        """Encode a record for insertion, dropping an unset INTEGER key.

        Raises:
            ConstraintError: If a non-INTEGER primary key is unset.
        """
        row = self._codec.encode(record)
        key = self.schema.primary_key
        if key is None or row[key] is not None:
            return row
        if self.schema.column(key).type != FieldType.INTEGER:
            raise ConstraintError(
                f"Primary key '{key}' of table '{self.schema.name}' may not be null",
                operation=operation,
                path=self.location,
            )
        # SQLite assigns INTEGER keys (rowid)
        del row[key]
        return row

    def _where(self, stmt, filters: Sequence[Filter]):
        clause, params = render_filters(filters, self.schema)
        if clause:
            stmt = stmt.where(text(clause).bindparams(**params))
        return stmt

    # =========================================================================
    # Operations
    # =========================================================================

    def ensure_schema(self) -> None:
        """Create the table if it does not exist. Existing rows are kept."""
        with self._lock, self._engine_errors("ensure_schema"):
            with self._require_engine("ensure_schema").begin() as conn:
                conn.execute(CreateTable(self._table, if_not_exists=True))
        logger.debug(f"Schema ensured for table '{self.schema.name}'")

    def insert(self, record: Any) -> Scalar:
        """Encode and insert one record.

        Returns:
            The primary-key value of the inserted row (None without one)

        Raises:
            ConstraintError: If the primary key already exists or is unset
                (non-INTEGER keys).
        """
        row = self._insert_row(record, "insert")
        key = self.schema.primary_key
        with self._lock, self._engine_errors("insert"):
            with self._require_engine("insert").begin() as conn:
                result = conn.execute(insert(self._table).values(**row))
                inserted = result.inserted_primary_key if key is not None else None
        logger.debug(f"Inserted row into '{self.schema.name}'")
        if key is None:
            return None
        return inserted[0] if inserted else row.get(key)

    def insert_many(self, records: Iterable[Any]) -> int:
        """Insert records in one transaction; nothing is kept if any fails.

        Returns:
            Number of rows inserted

        Raises:
            ConstraintError: If any primary key collides.
        """
        rows = [self._insert_row(r, "insert_many") for r in records]
        if not rows:
            return 0
        with self._lock, self._engine_errors("insert_many"):
            with self._require_engine("insert_many").begin() as conn:
                for row in rows:
                    conn.execute(insert(self._table).values(**row))
        logger.debug(f"Inserted {len(rows)} rows into '{self.schema.name}'")
        return len(rows)

    def update(self, record: Any) -> bool:
        """Replace the non-key columns of the row sharing the record's key.

        Returns:
            True if a row was updated
        """
        pk = self._primary_key_column()
        row = self._codec.encode(record)
        key = row.pop(pk.name)
        if not row:
            return self.get_by_id(key) is not None
        with self._lock, self._engine_errors("update"):
            with self._require_engine("update").begin() as conn:
                updated = conn.execute(
                    update(self._table).where(pk == key).values(**row)
                ).rowcount
        return updated > 0

    def get_by_id(self, key: Any) -> Any | None:
        """Fetch the record whose primary key equals ``key``.

        Returns:
            Decoded record, or None if there is no such row

        Raises:
            SchemaError: If the table has no primary key.
            StoreIOError: If the connection is unusable.
        """
        pk = self._primary_key_column()
        key = coerce_scalar(self.schema.column(pk.name), key)
        with self._lock, self._engine_errors("get_by_id"):
            with self._require_engine("get_by_id").connect() as conn:
                row = conn.execute(select(self._table).where(pk == key)).mappings().first()
        if row is None:
            return None
        return self._codec.decode(row)

    def query(self, filters: Sequence[Filter] = ()) -> list[Any]:
        """Fetch all records matching every filter.

        No ordering is imposed; rows come back in the engine's natural order.

        Raises:
            FilterError: On an unknown column, an unsupported operator or a
                value the column cannot hold, before the store is touched.
        """
        stmt = self._where(select(self._table), filters)
        with self._lock, self._engine_errors("query"):
            with self._require_engine("query").connect() as conn:
                rows = conn.execute(stmt).mappings().all()
        return [self._codec.decode(row) for row in rows]

    def count(self, filters: Sequence[Filter] = ()) -> int:
        """Count records matching every filter."""
        stmt = self._where(select(func.count()).select_from(self._table), filters)
        with self._lock, self._engine_errors("count"):
            with self._require_engine("count").connect() as conn:
                return int(conn.execute(stmt).scalar_one())

    def delete(self, key: Any) -> bool:
        """Delete the row with the given primary key.

        Returns:
            True if a row was deleted
        """
        pk = self._primary_key_column()
        key = coerce_scalar(self.schema.column(pk.name), key)
        with self._lock, self._engine_errors("delete"):
            with self._require_engine("delete").begin() as conn:
                deleted = conn.execute(delete(self._table).where(pk == key)).rowcount
        return deleted > 0

    def clear(self) -> None:
        """Delete every row. The table itself is kept."""
        with self._lock, self._engine_errors("clear"):
            with self._require_engine("clear").begin() as conn:
                cleared = conn.execute(delete(self._table)).rowcount
        logger.info(f"Cleared {cleared} rows from '{self.schema.name}'")

    # =========================================================================
    # Async variants
    # =========================================================================

    async def ensure_schema_async(self) -> None:
        await asyncio.to_thread(self.ensure_schema)

    async def insert_async(self, record: Any) -> Scalar:
        return await asyncio.to_thread(self.insert, record)

    async def insert_many_async(self, records: Iterable[Any]) -> int:
        return await asyncio.to_thread(self.insert_many, list(records))

    async def update_async(self, record: Any) -> bool:
        return await asyncio.to_thread(self.update, record)

    async def get_by_id_async(self, key: Any) -> Any | None:
        return await asyncio.to_thread(self.get_by_id, key)

    async def query_async(self, filters: Sequence[Filter] = ()) -> list[Any]:
        return await asyncio.to_thread(self.query, filters)

    async def count_async(self, filters: Sequence[Filter] = ()) -> int:
        return await asyncio.to_thread(self.count, filters)

    async def delete_async(self, key: Any) -> bool:
        return await asyncio.to_thread(self.delete, key)

    async def clear_async(self) -> None:
        await asyncio.to_thread(self.clear)

    async def reopen_async(self) -> None:
        await asyncio.to_thread(self.reopen)

    async def close_async(self) -> None:
        await asyncio.to_thread(self.close)
