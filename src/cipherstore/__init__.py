"""cipherstore - schema-described single-table record store.

A typed persistence layer over SQLite with optional SQLCipher whole-file
encryption, exposing insert / get_by_id / query / clear on one table.
"""

from importlib.metadata import version

from cipherstore.codec import RecordCodec
from cipherstore.config import StoreConfig
from cipherstore.errors import (
    CipherStoreError,
    CodecError,
    ConstraintError,
    FilterError,
    SchemaError,
    StoreError,
    StoreIOError,
    StoreOpenError,
)
from cipherstore.filters import Filter, FilterBuilder, Operator, render_filters
from cipherstore.schema import Column, FieldType, TableSchema
from cipherstore.store import EncryptedStore

__version__ = version("cipherstore")
__all__ = [
    "CipherStoreError",
    "CodecError",
    "Column",
    "ConstraintError",
    "EncryptedStore",
    "FieldType",
    "Filter",
    "FilterBuilder",
    "FilterError",
    "Operator",
    "RecordCodec",
    "SchemaError",
    "StoreConfig",
    "StoreError",
    "StoreIOError",
    "StoreOpenError",
    "TableSchema",
    "render_filters",
    "__version__",
]
