"""Row mapping between application records and column/value dicts."""

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from cipherstore.errors import CodecError, SchemaError
from cipherstore.schema import Column, FieldType, TableSchema

Scalar = str | int | float | bytes | None
Row = dict[str, Scalar]

# SQLite INTEGER is a signed 64-bit value
INTEGER_MIN = -(2**63)
INTEGER_MAX = 2**63 - 1


def coerce_scalar(column: Column, value: Any) -> Scalar:
    """Coerce a value to the scalar type of its column.

    None passes through for every type.

    Raises:
        CodecError: If the value cannot be represented in the column type.
    """
    if value is None:
        return None

    kind = column.type
    if kind == FieldType.TEXT:
        if isinstance(value, str):
            try:
                value.encode("utf-8")
            except UnicodeEncodeError as e:
                raise CodecError(
                    f"Column '{column.name}' (text) cannot hold a string that is "
                    f"not valid UTF-8: {e.reason}"
                ) from e
            return value
    elif kind == FieldType.INTEGER:
        # bool is an int subclass; store it as 0/1
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, int):
            if not INTEGER_MIN <= value <= INTEGER_MAX:
                raise CodecError(
                    f"Column '{column.name}' (integer) cannot hold {value}: "
                    "outside the signed 64-bit range"
                )
            return value
    elif kind == FieldType.REAL:
        if isinstance(value, bool):
            return float(value)
        if isinstance(value, (int, float)):
            try:
                value = float(value)
            except OverflowError as e:
                raise CodecError(
                    f"Column '{column.name}' (real) cannot hold {value}: too large"
                ) from e
            # SQLite stores NaN as NULL
            if math.isnan(value):
                raise CodecError(f"Column '{column.name}' (real) cannot hold NaN")
            return value
    elif kind == FieldType.BLOB:
        if isinstance(value, bytes):
            return value
        if isinstance(value, (bytearray, memoryview)):
            return bytes(value)

    raise CodecError(
        f"Column '{column.name}' ({kind.value}) cannot hold "
        f"{type(value).__name__} value {value!r}"
    )


class RecordCodec:
    """Encode and decode records against a table schema.

    Records may be plain mappings, pydantic models, or objects that expose
    ``to_row()`` / ``from_row(mapping)``. When ``record_type`` is given,
    decoded rows are built into that type; otherwise plain dicts are returned.
    """

    def __init__(self, schema: TableSchema, record_type: type | None = None):
        self.schema = schema
        self.record_type = record_type

    def _as_mapping(self, record: Any) -> Mapping[str, Any]:
        if isinstance(record, Mapping):
            return record
        if isinstance(record, BaseModel):
            return record.model_dump()
        to_row = getattr(record, "to_row", None)
        if callable(to_row):
            return to_row()
        raise CodecError(
            f"Cannot encode {type(record).__name__}: expected a mapping, "
            "a pydantic model, or an object with to_row()"
        )

    def encode(self, record: Any) -> Row:
        """Encode a record into a column-name to scalar dict.

        Only declared columns are kept; missing columns encode as None.

        Raises:
            CodecError: If a value does not fit its column type.
        """
        data = self._as_mapping(record)
        return {
            column.name: coerce_scalar(column, data.get(column.name))
            for column in self.schema.columns
        }

    def decode(self, row: Mapping[str, Any]) -> Any:
        """Decode a column-name mapping into a record.

        Columns absent from ``row`` decode as None and keys not declared in the
        schema are ignored.

        Raises:
            CodecError: If the row cannot be built into ``record_type``.
        """
        values: Row = {}
        for column in self.schema.columns:
            value = row.get(column.name)
            # SQLite hands back REAL columns holding integral values as int
            if column.type == FieldType.REAL and isinstance(value, int):
                value = float(value)
            values[column.name] = value

        if self.record_type is None:
            return values
        if isinstance(self.record_type, type) and issubclass(self.record_type, BaseModel):
            try:
                return self.record_type.model_validate(values)
            except ValidationError as e:
                raise CodecError(
                    f"Row does not validate as {self.record_type.__name__}: {e}"
                ) from e
        from_row = getattr(self.record_type, "from_row", None)
        if callable(from_row):
            return from_row(values)
        return self.record_type(**values)

    def primary_key_of(self, record: Any) -> Scalar:
        """Extract the primary-key value of a record.

        Raises:
            SchemaError: If the schema has no primary key.
        """
        key = self.schema.primary_key
        if key is None:
            raise SchemaError(f"Table '{self.schema.name}' has no primary key")
        return self.encode(record)[key]
