"""HTTP client for the warehouse statement API."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx
from pydantic import ValidationError

from orgsync import __version__
from orgsync.adapters.http_resilience import ResilientClient
from orgsync.config.errors import ConfigurationError
from orgsync.config.warehouse import WarehouseConfig, get_warehouse_config
from orgsync.domain.errors import TransportError
from orgsync.domain.model import SubmittedQuery
from orgsync.domain.ports.fetching import WarehouseSource

from .schema import PartitionResponse, StatementErrorResponse, SubmitResponse

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Coroutine
    from types import TracebackType

    from pydantic import BaseModel

    from orgsync.config.http_resilience import ResilienceConfig
    from orgsync.domain.model import RawRow

log = getLogger(__name__)

STATEMENTS_PATH: Final[str] = "/api/v2/statements"
_PROCEDURE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_$]*(\.[A-Za-z_][A-Za-z0-9_$]*){0,2}$")
_DATE_LITERAL = re.compile(r"^[0-9A-Za-z:.+\- ]*$")


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def build_statement(procedure_name: str, start_date: str, end_date: str) -> str:
    """Render the ``CALL`` statement; names and dates are checked, never escaped."""

    if not _PROCEDURE_NAME.match(procedure_name):
        raise ConfigurationError(f"Invalid procedure name: {procedure_name!r}")
    for value in (start_date, end_date):
        if not _DATE_LITERAL.match(value):
            raise ConfigurationError(f"Invalid date parameter: {value!r}")
    return f"CALL {procedure_name}('{start_date}', '{end_date}')"


@dataclass(slots=True)
class WarehouseClient:
    """Synchronous facade over one ``ResilientClient`` and one event loop.

    The resilient client is created on first use and reused for every submit and
    partition fetch until ``close``, so its rate limit spans the whole run.
    """

    config: WarehouseConfig = field(default_factory=get_warehouse_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )
    _runner: asyncio.Runner | None = field(default=None, init=False, repr=False)
    _client: ResilientClient | None = field(default=None, init=False, repr=False)

    def __enter__(self) -> WarehouseClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def submit(self, procedure_name: str, start_date: str, end_date: str) -> SubmittedQuery:
        statement = build_statement(procedure_name, start_date, end_date)
        return self._run(self._submit_async(statement))

    def fetch_partition(self, index: int, handle: str) -> list[RawRow]:
        if index < 0:
            raise ValueError("Partition index must not be negative")
        if not handle:
            raise TransportError("Missing continuation handle")
        return self._run(self._fetch_partition_async(index, handle))

    def close(self) -> None:
        runner, client = self._runner, self._client
        self._runner = None
        self._client = None
        if runner is None:
            return
        try:
            if client is not None:
                runner.run(client.aclose())
        finally:
            runner.close()

    def _run[TResult](self, operation: Coroutine[Any, Any, TResult]) -> TResult:
        if self._runner is None:
            self._runner = asyncio.Runner()
        return self._runner.run(operation)

    def _session(self) -> ResilientClient:
        # Created inside the runner's loop so the limiter and transport bind to it.
        if self._client is None or self._client.is_closed:
            self._client = self.client_factory(self.config.resilience)
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json",
            "User-Agent": f"orgsync/{__version__}",
        }

    def _submit_body(self, statement: str) -> dict[str, object]:
        body: dict[str, object] = {
            "statement": statement,
            "timeout": self.config.statement_timeout_seconds,
            "database": self.config.database,
            "schema": self.config.schema,
            "warehouse": self.config.warehouse,
        }
        if self.config.role:
            body["role"] = self.config.role
        return body

    async def _submit_async(self, statement: str) -> SubmittedQuery:
        log.debug("Submitting statement: %s", statement)
        response = await self._perform(
            self._session().post(
                STATEMENTS_PATH,
                json=self._submit_body(statement),
                headers=self._headers(),
            ),
            operation="submit",
        )
        envelope = _validate(SubmitResponse, response, operation="submit")
        if envelope.partition_count < 1:
            raise TransportError("Submit response carries no partition info")
        if not envelope.column_names:
            raise TransportError("Submit response carries no column metadata")
        return SubmittedQuery(
            column_names=envelope.column_names,
            partition_count=envelope.partition_count,
            handle=envelope.statement_handle,
        )

    async def _fetch_partition_async(self, index: int, handle: str) -> list[RawRow]:
        response = await self._perform(
            self._session().get(
                f"{STATEMENTS_PATH}/{handle}",
                params={"partition": index},
                headers=self._headers(),
            ),
            operation=f"fetch partition {index}",
        )
        payload = _validate(PartitionResponse, response, operation=f"fetch partition {index}")
        return [list(row) for row in payload.data]

    async def _perform(
        self, request: Awaitable[httpx.Response], *, operation: str
    ) -> httpx.Response:
        try:
            response = await request
        except httpx.HTTPError as exc:
            raise TransportError(f"Warehouse {operation} failed: {exc}") from exc
        if response.status_code != httpx.codes.OK:
            raise TransportError(
                f"Warehouse {operation} returned HTTP {response.status_code}: "
                f"{_error_message(response)}",
                status_code=response.status_code,
            )
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        error = StatementErrorResponse.model_validate(response.json())
    except (ValueError, ValidationError):
        return response.text[:200] or response.reason_phrase
    return error.message or response.reason_phrase


def _validate[TModel: BaseModel](
    model: type[TModel], response: httpx.Response, *, operation: str
) -> TModel:
    try:
        return model.model_validate(response.json())
    except ValueError as exc:
        raise TransportError(f"Malformed warehouse {operation} response: {exc}") from exc


if TYPE_CHECKING:
    _source_check: WarehouseSource = WarehouseClient()
