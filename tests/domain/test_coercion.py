from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from orgsync.domain.extraction.coercion import (
    CODE_TABLES,
    Coerced,
    CoercionFailure,
    coerce_value,
)
from orgsync.domain.model import FieldType


@pytest.mark.parametrize(
    ("raw", "field_type", "expected"),
    [
        ("42", FieldType.INTEGER, 42),
        ("1,250", FieldType.INTEGER, 1250),
        ("12.50", FieldType.DECIMAL, Decimal("12.50")),
        ("-1,234,567.5", FieldType.DECIMAL, Decimal("-1234567.5")),
        ("Yes", FieldType.BOOLEAN, True),
        ("0", FieldType.BOOLEAN, False),
        ("2024-03-05", FieldType.DATE, date(2024, 3, 5)),
        ("19787", FieldType.DATE, date(2024, 3, 5)),
        ("2024-03-05T10:00:00Z", FieldType.DATETIME, datetime(2024, 3, 5, 10, tzinfo=UTC)),
        ("0", FieldType.DATETIME, datetime(1970, 1, 1, tzinfo=UTC)),
        ("Plain text", FieldType.TEXT, "Plain text"),
    ],
)
def test_coerce_value_converts_declared_types(
    raw: str, field_type: FieldType, expected: object
) -> None:
    assert coerce_value("field", raw, field_type) == Coerced(expected)


@pytest.mark.parametrize(
    ("raw", "field_type"),
    [
        ("forty", FieldType.INTEGER),
        ("1.5", FieldType.INTEGER),
        ("NaN", FieldType.DECIMAL),
        ("1,5", FieldType.DECIMAL),
        ("12,34,567", FieldType.INTEGER),
        ("maybe", FieldType.BOOLEAN),
        ("05/03/2024", FieldType.DATE),
        ("yesterday", FieldType.DATETIME),
    ],
)
def test_coerce_value_reports_failures_without_raising(raw: str, field_type: FieldType) -> None:
    result = coerce_value("field", raw, field_type)

    assert isinstance(result, CoercionFailure)
    assert result.raw_value == raw
    assert result.field_type is field_type
    assert repr(raw) in result.describe()


def test_naive_datetime_is_treated_as_utc() -> None:
    result = coerce_value("source_updated_at", "2024-03-05 10:00:00", FieldType.DATETIME)

    assert result == Coerced(datetime(2024, 3, 5, 10, tzinfo=UTC))


def test_code_fields_translate_with_fallback() -> None:
    assert coerce_value("gender", "f", FieldType.CODE) == Coerced("Female")
    assert coerce_value("gender", "X", FieldType.CODE) == Coerced(CODE_TABLES["gender"].fallback)


def test_code_field_without_table_passes_through() -> None:
    assert coerce_value("specialty", "DDS", FieldType.CODE) == Coerced("DDS")
