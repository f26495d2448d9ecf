from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select

from orgsync.adapters.sqlalchemy import SqlAlchemyErrorSink
from orgsync.adapters.sqlalchemy.mappings import error_log_table
from orgsync.adapters.sqlalchemy.unit_of_work import session_factory
from orgsync.domain.model import ErrorCode, ErrorLogEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    import pytest
    from sqlalchemy.engine import Engine

    from orgsync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork


def _stored_entries() -> list[ErrorLogEntry]:
    with session_factory()() as session:
        return list(session.scalars(select(ErrorLogEntry).order_by(error_log_table.c.id)))


def test_append_persists_entries(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _ = sqlite_unit_of_work
    sink = SqlAlchemyErrorSink()

    sink.append(
        [
            ErrorLogEntry(
                operation="extract.chunk",
                message="Row has no value for the practitioner external key",
                error_code=ErrorCode.MISSING_EXTERNAL_KEY,
                partition_id="SP_PRACTITIONERS#0",
                row_snapshot='{"NPI": null}',
            ),
            ErrorLogEntry(
                operation="resolve.parent",
                message="Record not found",
                error_code=ErrorCode.PERSISTENCE,
                record_id="42",
            ),
        ]
    )

    stored = _stored_entries()
    assert [entry.operation for entry in stored] == ["extract.chunk", "resolve.parent"]
    assert stored[0].error_code is ErrorCode.MISSING_EXTERNAL_KEY
    assert stored[0].partition_id == "SP_PRACTITIONERS#0"
    assert stored[1].record_id == "42"
    assert all(entry.created_at is not None for entry in stored)


def test_append_ignores_empty_input(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    _ = sqlite_unit_of_work

    SqlAlchemyErrorSink().append([])

    assert _stored_entries() == []


def test_append_logs_instead_of_raising_when_the_store_fails(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    sqlite_engine: Engine,
    caplog: pytest.LogCaptureFixture,
) -> None:
    _ = sqlite_unit_of_work
    error_log_table.drop(sqlite_engine)
    entry = ErrorLogEntry(
        operation="extract.fetch", message="timeout", error_code=ErrorCode.TRANSPORT
    )

    with caplog.at_level(logging.ERROR, logger="orgsync.adapters.sqlalchemy.error_sink"):
        SqlAlchemyErrorSink().append([entry])

    assert "Could not write 1 error log entries" in caplog.text
