"""
Value Handling for Generated SQL

Values from tool parameters are bound as $n parameters when a query runs.
sanitize_value() renders the same values as literals for the query text
that is logged and shown to users; coerce_value() converts loosely typed
tool input (mostly strings) into the Python type asyncpg expects for the
target column.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

_INTEGER_TYPES = {"smallint", "integer", "bigint"}
_DECIMAL_TYPES = {"numeric", "decimal", "money"}
_FLOAT_TYPES = {"real", "double precision"}
_TEXT_TYPES = {"text", "character varying", "varchar", "character", "char", "bpchar", "citext", "name"}
_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0"}


def sanitize_value(value: Any) -> str:
    """
    Render a scalar as a SQL literal.

    Strings are single-quoted with embedded quotes doubled, numbers are
    emitted bare, booleans become TRUE/FALSE and None becomes NULL. Any
    other value is converted with str() and quoted like a string.
    """
    if value is None:
        return "NULL"
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """
    Wrap a table or column name in double quotes.

    Only call this with names that were checked against the catalog. The
    name is spliced verbatim apart from doubling embedded double quotes.
    """
    return '"' + name.replace('"', '""') + '"'


def as_text(value: Any) -> Any:
    """Scalars as the string text columns and LIKE patterns expect; None is kept."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def coerce_value(value: Any, data_type: str | None) -> Any:
    """
    Convert a parameter to the Python type matching a catalog data_type.

    Values that already have a suitable type, and columns of types not
    listed here, pass through unchanged.

    Raises:
        ValueError: If the value cannot represent the column type
    """
    if value is None or data_type is None:
        return value

    kind = data_type.lower()
    if kind in _TEXT_TYPES:
        return as_text(value)

    try:
        if kind in _INTEGER_TYPES:
            if isinstance(value, str):
                return int(value.strip())
            if isinstance(value, float) and value.is_integer():
                return int(value)
            return value

        if kind in _DECIMAL_TYPES:
            if isinstance(value, (str, int, float)) and not isinstance(value, bool):
                return Decimal(str(value).strip())
            return value

        if kind in _FLOAT_TYPES:
            if isinstance(value, str):
                return float(value.strip())
            if isinstance(value, int) and not isinstance(value, bool):
                return float(value)
            return value

        if kind == "boolean" and isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            raise ValueError(f"not a boolean: {value!r}")

        if kind == "date" and isinstance(value, str):
            text = value.strip()
            try:
                return date.fromisoformat(text)
            except ValueError:
                return datetime.fromisoformat(text).date()

        if kind.startswith("timestamp") and isinstance(value, str):
            return datetime.fromisoformat(value.strip())

    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{value!r} is not a valid {data_type} value") from exc

    return value
