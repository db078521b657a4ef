"""Table schema model.

A TableSchema describes the single table a store holds: its name and an
ordered sequence of typed columns, at most one of which is the primary key.
Schemas are immutable and validated once at construction.
"""

import re
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy import Column as SAColumn
from sqlalchemy import Float, Integer, LargeBinary, MetaData, Table, Text
from sqlalchemy.dialects import sqlite
from sqlalchemy.schema import CreateTable

from cipherstore.errors import SchemaError

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FieldType(str, Enum):
    """Scalar storage types supported by a column."""

    TEXT = "text"
    INTEGER = "integer"
    REAL = "real"
    BLOB = "blob"


_SA_TYPES = {
    FieldType.TEXT: Text,
    FieldType.INTEGER: Integer,
    FieldType.REAL: Float,
    FieldType.BLOB: LargeBinary,
}


class Column(BaseModel):
    """A typed column, optionally the table's primary key."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Column name")
    type: FieldType = Field(description="Scalar storage type")
    is_primary_key: bool = Field(default=False, description="Primary key flag")


class TableSchema(BaseModel):
    """Immutable description of a single table.

    Build instances through :meth:`create`, which validates the column set:

        schema = TableSchema.create(
            "users",
            [
                Column(name="id", type=FieldType.TEXT, is_primary_key=True),
                Column(name="name", type=FieldType.TEXT),
                Column(name="age", type=FieldType.INTEGER),
            ],
        )
    """

    model_config = ConfigDict(frozen=True)

    name: str
    columns: tuple[Column, ...]

    @classmethod
    def create(
        cls,
        name: str,
        columns: Iterable[Column | Mapping[str, Any]],
    ) -> "TableSchema":
        """Validate and build a schema.

        Args:
            name: Table name
            columns: Column declarations, as Column instances or mappings

        Returns:
            TableSchema

        Raises:
            SchemaError: If there are no columns, more than one primary key,
                duplicate or invalid names, or an unknown column type.
        """
        if not isinstance(name, str) or not _IDENTIFIER.match(name):
            raise SchemaError(f"Invalid table name: {name!r}")

        parsed: list[Column] = []
        for column in columns:
            if isinstance(column, Column):
                parsed.append(column)
                continue
            try:
                parsed.append(Column.model_validate(column))
            except ValidationError as e:
                raise SchemaError(f"Invalid column declaration {column!r}: {e}") from e

        if not parsed:
            raise SchemaError(f"Table '{name}' must declare at least one column")

        seen: set[str] = set()
        for column in parsed:
            if not _IDENTIFIER.match(column.name):
                raise SchemaError(f"Invalid column name: {column.name!r}")
            key = column.name.lower()
            if key in seen:
                raise SchemaError(f"Duplicate column name: {column.name!r}")
            seen.add(key)

        primary_keys = [c.name for c in parsed if c.is_primary_key]
        if len(primary_keys) > 1:
            raise SchemaError(
                f"Table '{name}' declares {len(primary_keys)} primary keys "
                f"({', '.join(primary_keys)}); at most one is allowed"
            )

        return cls(name=name, columns=tuple(parsed))

    @property
    def primary_key(self) -> str | None:
        """Name of the primary-key column, or None."""
        for column in self.columns:
            if column.is_primary_key:
                return column.name
        return None

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def has_column(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def column(self, name: str) -> Column:
        """Get a column by name.

        Raises:
            KeyError: If the column is not declared.
        """
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(name)

    def column_pairs(self) -> list[tuple[str, FieldType]]:
        """Ordered (name, type) pairs."""
        return [(c.name, c.type) for c in self.columns]

    def to_table(self, metadata: MetaData | None = None) -> Table:
        """Build the SQLAlchemy Table for this schema."""
        metadata = metadata if metadata is not None else MetaData()
        return Table(
            self.name,
            metadata,
            *[
                SAColumn(c.name, _SA_TYPES[c.type], primary_key=c.is_primary_key)
                for c in self.columns
            ],
        )

    def create_table_sql(self) -> str:
        """The CREATE TABLE IF NOT EXISTS statement, in the SQLite dialect."""
        statement = CreateTable(self.to_table(), if_not_exists=True)
        return str(statement.compile(dialect=sqlite.dialect())).strip()
