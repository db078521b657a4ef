"""Exception hierarchy for cipherstore.

Validation errors (SchemaError, FilterError, CodecError) are raised before any
statement reaches the engine. Engine-originated failures derive from
StoreError and carry the operation and file path that failed.
"""


class CipherStoreError(Exception):
    """Base exception for cipherstore errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SchemaError(CipherStoreError):
    """Invalid table or column declaration."""

    pass


class FilterError(CipherStoreError):
    """Invalid filter: unknown column or unsupported operator."""

    UNKNOWN_COLUMN = "unknown_column"
    UNSUPPORTED_OPERATOR = "unsupported_operator"
    INVALID_VALUE = "invalid_value"

    def __init__(self, message: str, reason: str = UNKNOWN_COLUMN):
        super().__init__(message)
        self.reason = reason


class CodecError(CipherStoreError):
    """A record value cannot be represented in its column's type."""

    pass


class StoreError(CipherStoreError):
    """Base exception for failures surfaced by the storage engine."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        path: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.path = path

    def __str__(self) -> str:
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.path:
            context.append(f"path={self.path}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class ConstraintError(StoreError):
    """Primary-key collision on insert."""

    pass


class StoreOpenError(StoreError):
    """File could not be opened: wrong passphrase, not a database, or corrupt."""

    pass


class StoreIOError(StoreError):
    """Any other engine failure during a read or write."""

    pass
