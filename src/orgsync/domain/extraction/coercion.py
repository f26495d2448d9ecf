"""Coercion of weakly-typed warehouse values into typed field values.

``coerce_value`` returns either ``Coerced`` or ``CoercionFailure``; it never raises
for bad input so a single bad cell cannot abort the row it belongs to.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Final

from orgsync.domain.model import FieldType

_TRUE_VALUES: Final[frozenset[str]] = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"false", "f", "no", "n", "0"})
_EPOCH_DAYS = re.compile(r"^-?\d+$")
_EPOCH_SECONDS = re.compile(r"^-?\d+(\.\d+)?$")
_GROUPED_NUMBER = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
_EPOCH: Final[date] = date(1970, 1, 1)


@dataclass(slots=True, frozen=True)
class CodeTable:
    """Small lookup table for single-letter codes with a fallback."""

    values: dict[str, str] = field(default_factory=dict[str, str])
    fallback: str = "Other"

    def translate(self, code: str) -> str:
        return self.values.get(code.strip().upper(), self.fallback)


CODE_TABLES: Final[dict[str, CodeTable]] = {
    "gender": CodeTable(values={"M": "Male", "F": "Female", "U": "Unknown"}, fallback="Other"),
}


@dataclass(slots=True, frozen=True)
class Coerced:
    value: object


@dataclass(slots=True, frozen=True)
class CoercionFailure:
    field_name: str
    field_type: FieldType
    raw_value: str
    reason: str

    def describe(self) -> str:
        return (
            f"Cannot read {self.raw_value!r} as {self.field_type} "
            f"for {self.field_name}: {self.reason}"
        )


type CoercionResult = Coerced | CoercionFailure


def coerce_value(field_name: str, raw_value: str, field_type: FieldType) -> CoercionResult:
    """Coerce a non-blank raw string according to ``field_type``."""

    try:
        match field_type:
            case FieldType.TEXT | FieldType.EMAIL:
                return Coerced(raw_value)
            case FieldType.CODE:
                table = CODE_TABLES.get(field_name)
                return Coerced(table.translate(raw_value) if table else raw_value)
            case FieldType.INTEGER:
                return Coerced(_parse_integer(raw_value))
            case FieldType.DECIMAL:
                return Coerced(_parse_decimal(raw_value))
            case FieldType.BOOLEAN:
                return Coerced(_parse_boolean(raw_value))
            case FieldType.DATE:
                return Coerced(_parse_date(raw_value))
            case FieldType.DATETIME:
                return Coerced(_parse_datetime(raw_value))
    except (ValueError, OverflowError, InvalidOperation) as exc:
        return CoercionFailure(
            field_name=field_name,
            field_type=field_type,
            raw_value=raw_value,
            reason=str(exc) or type(exc).__name__,
        )


def _parse_decimal(value: str) -> Decimal:
    if "," in value:
        # Commas are accepted only as thousands separators; "1,5" is rejected.
        if not _GROUPED_NUMBER.match(value):
            raise ValueError("comma is not a thousands separator")
        value = value.replace(",", "")
    number = Decimal(value)
    if not number.is_finite():
        raise ValueError("not a finite number")
    return number


def _parse_integer(value: str) -> int:
    number = _parse_decimal(value)
    if number != number.to_integral_value():
        raise ValueError("not a whole number")
    return int(number)


def _parse_boolean(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError("not a recognised boolean")


def _parse_date(value: str) -> date:
    # Warehouse DATE columns arrive as days since the epoch.
    if _EPOCH_DAYS.match(value):
        return _EPOCH + timedelta(days=int(value))
    return date.fromisoformat(value[:10])


def _parse_datetime(value: str) -> datetime:
    # Warehouse TIMESTAMP columns arrive as fractional epoch seconds.
    if _EPOCH_SECONDS.match(value):
        return datetime.fromtimestamp(float(value), tz=UTC)
    normalized = value.strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


__all__ = [
    "CODE_TABLES",
    "CodeTable",
    "Coerced",
    "CoercionFailure",
    "CoercionResult",
    "coerce_value",
]
