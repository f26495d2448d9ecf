"""Append-only error-log sink that never raises."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from orgsync.adapters.sqlalchemy.unit_of_work import session_factory

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.orm import Session, sessionmaker

    from orgsync.domain.model import ErrorLogEntry

log = getLogger(__name__)


class SqlAlchemyErrorSink:
    """Writes entries in their own transaction, independent of any unit of work."""

    def __init__(self, factory: sessionmaker[Session] | None = None) -> None:
        self._factory = factory or session_factory()

    def append(self, entries: Sequence[ErrorLogEntry]) -> None:
        if not entries:
            return
        try:
            with self._factory() as session, session.begin():
                session.add_all(entries)
        except SQLAlchemyError:
            log.exception("Could not write %d error log entries", len(entries))
            return
        log.debug("Wrote %d error log entries", len(entries))
