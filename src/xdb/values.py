"""
Value model for XDB rows.

A stored value is one of int, float, str, bytes, bool or None. This
module turns statement literals into values, coerces values to a
column's declared type, and compares values for WHERE and ORDER BY.

Comparison rules:
    - Numbers (int and float) compare with each other
    - Text compares with text, bytes with bytes, booleans with booleans
    - Anything involving None, or mixing kinds, has no ordering
    - Equality never crosses kinds, except that None equals None
"""

import base64
import math
import re
from typing import Any, TypeAlias

from xdb.errors import StatementValidationError

Value: TypeAlias = int | float | str | bytes | bool | None
Row: TypeAlias = dict[str, Any]

BLOB_MARKER = "$blob"

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")


# =============================================================================
# Literals
# =============================================================================


def parse_literal(raw: str) -> Value:
    """
    Convert the text of a literal into a value.

    NULL becomes None, TRUE/FALSE become booleans, quoted strings are
    unquoted, X'..' becomes bytes and numbers become int or float.
    Anything else is kept as text. Numeric text never becomes a boolean.

    Args:
        raw: Literal as written in the statement

    Returns:
        The parsed value
    """
    text = raw.strip()
    upper = text.upper()

    if upper == "NULL":
        return None
    if upper == "TRUE":
        return True
    if upper == "FALSE":
        return False

    if len(text) >= 2 and text[0] == text[-1] and text[0] in ("'", '"'):
        quote = text[0]
        return text[1:-1].replace(quote * 2, quote)

    if len(text) >= 3 and upper.startswith("X'") and text.endswith("'"):
        try:
            return bytes.fromhex(text[2:-1])
        except ValueError as e:
            raise StatementValidationError(
                message=f"Invalid hex literal: {text}",
                statement=raw,
            ) from e

    number = parse_number(text)
    if number is not None:
        return number
    return text


def parse_number(text: str) -> int | float | None:
    """Parse decimal text as int or float, or return None."""
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return None


# =============================================================================
# Coercion
# =============================================================================


def coerce_to_column(value: Value, column_type: str, column: str = "") -> Value:
    """
    Coerce a value to a column's declared type.

    Args:
        value: The incoming value
        column_type: One of INTEGER, REAL, TEXT, BLOB
        column: Column name, used in error messages

    Returns:
        The coerced value (None stays None)

    Raises:
        StatementValidationError: If the value cannot be converted, or
            would not be finite
    """
    if value is None:
        return None

    kind = str(getattr(column_type, "value", column_type)).upper()

    if kind == "INTEGER":
        return _to_integer(value, column)
    if kind == "REAL":
        return _to_real(value, column)
    if kind == "TEXT":
        return render_text(value)
    if kind == "BLOB":
        if isinstance(value, float) and not math.isfinite(value):
            raise _conversion_error(value, "BLOB", column)
        return value

    raise StatementValidationError(message=f"Unknown column type: {column_type}")


def _to_integer(value: Value, column: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if math.isfinite(value):
            return int(value)
    elif isinstance(value, str):
        number = parse_number(value.strip())
        if number is not None and math.isfinite(number):
            return int(number)
    raise _conversion_error(value, "INTEGER", column)


def _to_real(value: Value, column: str) -> float:
    # Stored reals must be finite JSON numbers.
    number: int | float | None = None
    if isinstance(value, (bool, int, float)):
        number = value
    elif isinstance(value, str):
        number = parse_number(value.strip())
    if number is not None:
        try:
            result = float(number)
        except OverflowError:
            result = math.inf
        if math.isfinite(result):
            return result
    raise _conversion_error(value, "REAL", column)


def _conversion_error(value: Value, kind: str, column: str) -> StatementValidationError:
    return StatementValidationError(
        message=f"Cannot convert {value!r} to {kind} for column '{column}'",
    )


def render_text(value: Value) -> str:
    """Render a value the way TEXT columns store it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if value is None:
        return ""
    return str(value)


# =============================================================================
# Comparison
# =============================================================================


def _kind(value: Value) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "text"
    if isinstance(value, bytes):
        return "blob"
    return "null"


def values_equal(left: Value, right: Value) -> bool:
    """Strict equality: kinds must match; None equals None."""
    if _kind(left) != _kind(right):
        return False
    return left == right


def compare_values(left: Value, right: Value) -> int | None:
    """
    Order two values.

    Returns:
        -1, 0 or 1, or None if the pair has no ordering
    """
    kind = _kind(left)
    if kind == "null" or kind != _kind(right):
        return None
    if left < right:  # type: ignore[operator]
        return -1
    if left > right:  # type: ignore[operator]
        return 1
    return 0


# =============================================================================
# JSON encoding
# =============================================================================


def encode_value(value: Any) -> Any:
    """Wrap bytes in a marker object so they survive JSON."""
    if isinstance(value, bytes):
        return {BLOB_MARKER: base64.b64encode(value).decode("ascii")}
    return value


def decode_value(value: Any) -> Any:
    """Reverse encode_value."""
    if isinstance(value, dict) and set(value) == {BLOB_MARKER}:
        return base64.b64decode(value[BLOB_MARKER])
    return value
