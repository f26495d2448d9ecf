"""Engine lifecycle and the SQLAlchemy unit of work over the record store."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from orgsync.adapters.sqlalchemy.mappings import create_all_tables, start_mappers
from orgsync.adapters.sqlalchemy.repositories import (
    SqlAlchemyCompanyRepository,
    SqlAlchemyJunctionRepository,
    SqlAlchemyPracticeLocationRepository,
    SqlAlchemyPractitionerRepository,
    SqlAlchemySettingsRepository,
    SqlAlchemySubsidiaryRepository,
    describe_failure,
)
from orgsync.config.storage import get_database_config
from orgsync.domain.errors import PersistenceError
from orgsync.domain.ports.unit_of_work import StoreRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Connection, Engine

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when the store is used before ``startup`` or configured twice."""


@dataclass(slots=True)
class _StoreState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = (
            sessionmaker(bind=engine, expire_on_commit=False) if engine is not None else None
        )

    def require_sessions(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "Record store not initialised; call "
                "orgsync.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self.sessions


_STATE = _StoreState()


def _sqlite_on_connect(dbapi_connection: Any, connection_record: Any) -> None:
    _ = connection_record
    dbapi_connection.isolation_level = None


def _sqlite_on_begin(connection: Connection) -> None:
    connection.exec_driver_sql("BEGIN")


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite opens transactions lazily, which breaks SAVEPOINT; emit BEGIN ourselves.
    if event.contains(engine, "begin", _sqlite_on_begin):
        return
    event.listen(engine, "connect", _sqlite_on_connect)
    event.listen(engine, "begin", _sqlite_on_begin)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the store to an engine, map the model and create missing tables."""

    if _STATE.engine is not None and not force:
        raise StartupError("Record store already initialised. Pass force=True to rebind.")

    if engine is None:
        config = get_database_config()
        engine = create_engine(database_uri or config.uri, echo=config.echo)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    start_mappers()
    create_all_tables(engine)
    _STATE.bind(engine)
    log.debug("Record store bound to %s", engine.url.render_as_string())


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def session_factory() -> sessionmaker[Session]:
    return _STATE.require_sessions()


def shutdown() -> None:
    """Dispose the engine and forget it (tests rebind per case)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.bind(None)


class SqlAlchemyUnitOfWork:
    """One session over the record and configuration repositories.

    Leaving the block without ``commit`` discards the work; leaving it through an
    exception rolls back explicitly first.
    """

    def __init__(self) -> None:
        self._sessions = _STATE.require_sessions()
        self._session: Session | None = None
        self._repositories: StoreRepositories | None = None

    def __enter__(self) -> SqlAlchemyUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        self._session = self._sessions()
        self._repositories = StoreRepositories(
            companies=SqlAlchemyCompanyRepository(self._session),
            subsidiaries=SqlAlchemySubsidiaryRepository(self._session),
            practice_locations=SqlAlchemyPracticeLocationRepository(self._session),
            practitioners=SqlAlchemyPractitionerRepository(self._session),
            junctions=SqlAlchemyJunctionRepository(self._session),
            settings=SqlAlchemySettingsRepository(self._session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(f"Commit failed: {describe_failure(exc)}") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> StoreRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session


if TYPE_CHECKING:
    from orgsync.domain.ports.unit_of_work import StoreUnitOfWork

    _uow_check: StoreUnitOfWork = SqlAlchemyUnitOfWork()
