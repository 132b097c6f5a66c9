"""
Cell parsing rules shared by schema inference and import coercion.

Inference classifies a column by asking these parsers whether its sampled
cells parse; the import executor later uses the very same parsers to coerce
every streamed cell, so a column inferred as ``number`` imports as numbers.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional, Tuple, Union

from sheetflow.api.schemas.shared import ColumnType

TRUE_LITERALS = frozenset({"true", "yes", "y", "t", "1"})
FALSE_LITERALS = frozenset({"false", "no", "n", "f", "0"})

# Formats without a time component come first so plain dates stay dates.
DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d/%m/%Y",
    "%m-%d-%Y",
    "%d-%m-%Y",
    "%d.%m.%Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%B %d, %Y",
)
DATETIME_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
)


class Unparsable(ValueError):
    """A non-empty cell does not parse as the requested column type."""


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_number(value: str) -> Union[int, float]:
    """
    Parse integers and decimals, tolerating thousands separators, a leading
    currency sign and accounting-style negatives such as ``(12.50)``.
    """
    normalized = value.strip().replace(",", "")
    if normalized.startswith("(") and normalized.endswith(")"):
        normalized = f"-{normalized[1:-1].strip()}"
    sign = ""
    if normalized[:1] in ("-", "+"):
        sign, normalized = normalized[0], normalized[1:]
    if normalized.startswith("$"):
        normalized = normalized[1:]
    if not normalized:
        raise Unparsable(value)
    try:
        number = Decimal(sign + normalized)
    except InvalidOperation:
        raise Unparsable(value) from None
    if not number.is_finite():
        raise Unparsable(value)
    if number == number.to_integral_value():
        return int(number)
    return float(number)


def parse_boolean(value: str) -> bool:
    literal = value.strip().lower()
    if literal in TRUE_LITERALS:
        return True
    if literal in FALSE_LITERALS:
        return False
    raise Unparsable(value)


def parse_date(value: str) -> str:
    """Parse against the fixed format list and return an ISO 8601 string."""
    text = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).isoformat()
        except ValueError:
            continue
    raise Unparsable(value)


def parse_string(value: str) -> str:
    return value.strip()


PARSERS: Dict[ColumnType, Callable[[str], Any]] = {
    ColumnType.NUMBER: parse_number,
    ColumnType.BOOLEAN: parse_boolean,
    ColumnType.DATE: parse_date,
    ColumnType.STRING: parse_string,
}

# Most specific first; string always matches and is the fallback.
INFERENCE_PRIORITY = (ColumnType.NUMBER, ColumnType.BOOLEAN, ColumnType.DATE)


def matches(value: str, column_type: ColumnType) -> bool:
    try:
        PARSERS[column_type](value)
    except Unparsable:
        return False
    return True


def coerce_cell(value: Optional[str], column_type: Union[ColumnType, str]) -> Tuple[Any, bool]:
    """
    Coerce a raw cell for storage.

    Returns:
        ``(value, ok)``: blank cells become ``(None, True)``; cells that do not
        parse become ``(None, False)`` so the caller can count them.
    """
    if is_blank(value):
        return None, True
    try:
        return PARSERS[ColumnType(column_type)](value), True
    except Unparsable:
        return None, False
