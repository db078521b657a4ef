"""Filter expressions and WHERE clause construction."""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from cipherstore.codec import coerce_scalar
from cipherstore.errors import CodecError, FilterError
from cipherstore.schema import Column, FieldType, TableSchema


class Operator(str, Enum):
    """Comparison operators supported in filters."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    GREATER_OR_EQUAL = "greater_or_equal"
    LESS_THAN = "less_than"
    LESS_OR_EQUAL = "less_or_equal"
    LIKE = "like"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"


# SQL template per operator; {col} is the quoted column, {param} the bind name
_OPERATOR_SQL = {
    Operator.EQUALS: "{col} = :{param}",
    Operator.NOT_EQUALS: "{col} != :{param}",
    Operator.GREATER_THAN: "{col} > :{param}",
    Operator.GREATER_OR_EQUAL: "{col} >= :{param}",
    Operator.LESS_THAN: "{col} < :{param}",
    Operator.LESS_OR_EQUAL: "{col} <= :{param}",
    Operator.LIKE: "{col} LIKE :{param}",
    Operator.IS_NULL: "{col} IS NULL",
    Operator.IS_NOT_NULL: "{col} IS NOT NULL",
}

_UNARY = {Operator.IS_NULL, Operator.IS_NOT_NULL}


@dataclass(frozen=True)
class Filter:
    """A single (column, operator, value) predicate.

    Filters are not bound to a schema; column names are checked when the
    filters are rendered against one.
    """

    column: str
    operator: Operator | str = Operator.EQUALS
    value: Any = None


class FilterBuilder:
    """Build WHERE clauses with automatic named-parameter indexing.

    Example:
        fb = FilterBuilder()
        fb.add_param('"age" > :{}', 18)
        fb.add('"name" IS NOT NULL')

        where_clause = fb.build()   # '"age" > :p1 AND "name" IS NOT NULL'
        params = fb.values          # {"p1": 18}
    """

    def __init__(self, start_idx: int = 1):
        """Initialize the filter builder.

        Args:
            start_idx: Starting parameter index
        """
        self._conditions: list[str] = []
        self._values: dict[str, Any] = {}
        self._param_idx = start_idx

    @property
    def values(self) -> dict[str, Any]:
        """Bind parameter values keyed by parameter name."""
        return self._values

    def add(self, condition: str) -> "FilterBuilder":
        """Add a condition without parameters.

        Returns:
            Self for chaining
        """
        self._conditions.append(condition)
        return self

    def add_param(self, condition_template: str, value: Any) -> "FilterBuilder":
        """Add a condition with a single parameter.

        Args:
            condition_template: SQL with a ":{}" placeholder for the bind name
                (e.g., '"age" > :{}')
            value: Parameter value

        Returns:
            Self for chaining
        """
        name = f"p{self._param_idx}"
        self._conditions.append(condition_template.replace(":{}", f":{name}"))
        self._values[name] = value
        self._param_idx += 1
        return self

    def build(self, default: str = "") -> str:
        """Build the WHERE clause string.

        Args:
            default: Value to return if no conditions

        Returns:
            Conditions joined by AND
        """
        if not self._conditions:
            return default
        return " AND ".join(self._conditions)

    def __bool__(self) -> bool:
        return bool(self._conditions)

    def __len__(self) -> int:
        return len(self._conditions)


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def coerce_operator(operator: Operator | str) -> Operator:
    """Resolve an operator value or name to an Operator.

    Raises:
        FilterError: If the operator is not supported.
    """
    if isinstance(operator, Operator):
        return operator
    if isinstance(operator, str):
        try:
            return Operator(operator)
        except ValueError:
            pass
    raise FilterError(
        f"Unsupported operator: {operator!r}",
        reason=FilterError.UNSUPPORTED_OPERATOR,
    )


def _bind_value(f: Filter, operator: Operator, schema: TableSchema) -> Any:
    """Coerce a filter value to the type it is compared against.

    LIKE patterns are always text; other operators take the column's type.
    """
    if f.value is None:
        raise FilterError(
            f"Operator '{operator.value}' on '{f.column}' requires a value; "
            "use is_null to match missing values",
            reason=FilterError.INVALID_VALUE,
        )
    column = schema.column(f.column)
    if operator == Operator.LIKE:
        column = Column(name=column.name, type=FieldType.TEXT)
    try:
        return coerce_scalar(column, f.value)
    except CodecError as e:
        raise FilterError(
            f"Invalid value for '{operator.value}' on '{f.column}': {e.message}",
            reason=FilterError.INVALID_VALUE,
        ) from e


def validate_filters(filters: Sequence[Filter], schema: TableSchema) -> None:
    """Check every filter against the schema without rendering.

    Raises:
        FilterError: On an unknown column, an unsupported operator, or a value
            that does not fit the compared column.
    """
    for f in filters:
        if not schema.has_column(f.column):
            raise FilterError(
                f"Unknown column '{f.column}' for table '{schema.name}'",
                reason=FilterError.UNKNOWN_COLUMN,
            )
        operator = coerce_operator(f.operator)
        if operator not in _UNARY:
            _bind_value(f, operator, schema)


def render_filters(
    filters: Sequence[Filter],
    schema: TableSchema,
) -> tuple[str, dict[str, Any]]:
    """Render AND-combined filters into a WHERE clause and bind parameters.

    Rendering is deterministic: parameters are numbered in filter order.
    An empty sequence renders to ("", {}).

    Args:
        filters: Filters to combine
        schema: Schema the filters are applied to

    Returns:
        (clause, params) tuple; the clause uses named binds (:p1, :p2, ...)

    Raises:
        FilterError: On an unknown column, an unsupported operator, or an
            invalid value.
    """
    validate_filters(filters, schema)

    fb = FilterBuilder()
    for f in filters:
        operator = coerce_operator(f.operator)
        template = _OPERATOR_SQL[operator].replace("{col}", quote_identifier(f.column))
        if operator in _UNARY:
            fb.add(template)
        else:
            fb.add_param(template.replace("{param}", "{}"), _bind_value(f, operator, schema))

    return fb.build(), fb.values
