from __future__ import annotations

import json
import time
from typing import TYPE_CHECKING

import httpx
import pytest

from orgsync.adapters.http_resilience import ResilientClient
from orgsync.adapters.warehouse import STATEMENTS_PATH, WarehouseClient, build_statement
from orgsync.config import ConfigurationError, RateLimit, ResilienceConfig, WarehouseConfig
from orgsync.domain.errors import TransportError
from orgsync.domain.model import SubmittedQuery

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

BASE_URL = "https://warehouse.example"

SUBMIT_PAYLOAD: dict[str, object] = {
    "statementHandle": "H1",
    "message": "Statement executed successfully.",
    "resultSetMetaData": {
        "numRows": 3,
        "rowType": [{"name": "NPI", "type": "text"}, {"name": "PRACTICE_LOCATION_ID"}],
        "partitionInfo": [{"rowCount": 2}, {"rowCount": 1}],
    },
    "data": [["111", "P1"], ["111", "P2"]],
}


type ClientBuilder = Callable[..., WarehouseClient]


@pytest.fixture
def make_client() -> Iterator[ClientBuilder]:
    clients: list[WarehouseClient] = []

    def build(
        handler: Callable[[httpx.Request], httpx.Response],
        *,
        role: str | None = None,
        ratelimit: RateLimit | None = None,
        created: list[ResilientClient] | None = None,
    ) -> WarehouseClient:
        config = WarehouseConfig(
            token="secret-token",
            database="ANALYTICS",
            schema="ORG",
            warehouse="ETL_WH",
            role=role,
            resilience=ResilienceConfig(
                name="warehouse-test", base_url=BASE_URL, ratelimit=ratelimit
            ),
        )

        def factory(resilience: ResilienceConfig) -> ResilientClient:
            client = ResilientClient(resilience, transport=httpx.MockTransport(handler))
            if created is not None:
                created.append(client)
            return client

        warehouse = WarehouseClient(config=config, client_factory=factory)
        clients.append(warehouse)
        return warehouse

    yield build
    for warehouse in clients:
        warehouse.close()


def test_submit_posts_statement_and_parses_envelope(make_client: ClientBuilder) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=SUBMIT_PAYLOAD)

    client = make_client(handler, role="LOADER")

    query = client.submit("SP_PRACTITIONERS", "2024-01-01", "2024-01-31")

    assert query == SubmittedQuery(
        column_names=("NPI", "PRACTICE_LOCATION_ID"), partition_count=2, handle="H1"
    )
    (request,) = requests
    assert request.method == "POST"
    assert request.url == f"{BASE_URL}{STATEMENTS_PATH}"
    assert request.headers["Authorization"] == "Bearer secret-token"
    body = json.loads(request.content)
    assert body == {
        "statement": "CALL SP_PRACTITIONERS('2024-01-01', '2024-01-31')",
        "timeout": 60,
        "database": "ANALYTICS",
        "schema": "ORG",
        "warehouse": "ETL_WH",
        "role": "LOADER",
    }


def test_fetch_partition_reuses_handle_and_returns_rows(make_client: ClientBuilder) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"data": [["111", "P3"], ["222", None]]})

    rows = make_client(handler).fetch_partition(1, "H1")

    assert rows == [["111", "P3"], ["222", None]]
    (request,) = requests
    assert request.method == "GET"
    assert request.url.path == f"{STATEMENTS_PATH}/H1"
    assert request.url.params["partition"] == "1"


@pytest.mark.parametrize("status", [202, 400, 500])
def test_non_200_status_is_a_transport_error(make_client: ClientBuilder, status: int) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(status, json={"code": "390", "message": "nope"})

    with pytest.raises(TransportError) as excinfo:
        make_client(handler).submit("SP_PRACTITIONERS", "2024-01-01", "2024-01-31")

    assert excinfo.value.status_code == status


@pytest.mark.parametrize(
    "payload",
    [
        {"statementHandle": "H1"},
        {"statementHandle": "H1", "resultSetMetaData": {"rowType": [{"name": "NPI"}]}},
        {
            "statementHandle": "H1",
            "resultSetMetaData": {"rowType": [{"name": "NPI"}], "partitionInfo": []},
        },
        {"resultSetMetaData": {"rowType": [{"name": "NPI"}], "partitionInfo": [{}]}},
    ],
)
def test_malformed_submit_envelope_is_a_transport_error(
    make_client: ClientBuilder, payload: dict[str, object]
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json=payload)

    with pytest.raises(TransportError):
        make_client(handler).submit("SP_PRACTITIONERS", "2024-01-01", "2024-01-31")


def test_non_json_partition_is_a_transport_error(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, text="<html>gateway</html>")

    with pytest.raises(TransportError, match="Malformed"):
        make_client(handler).fetch_partition(0, "H1")


def test_network_failure_is_a_transport_error(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="connection refused"):
        make_client(handler).fetch_partition(0, "H1")


def test_one_resilient_client_serves_the_whole_run(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json=SUBMIT_PAYLOAD)
        return httpx.Response(200, json={"data": [["111", "P1"]]})

    created: list[ResilientClient] = []
    client = make_client(handler, created=created)

    query = client.submit("SP_PRACTITIONERS", "2024-01-01", "2024-01-31")
    for index in range(query.partition_count):
        client.fetch_partition(index, query.handle)

    assert len(created) == 1


def test_rate_limit_spans_submit_and_fetches(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json=SUBMIT_PAYLOAD)
        return httpx.Response(200, json={"data": []})

    client = make_client(handler, ratelimit=RateLimit(max_calls=1, per_seconds=0.2))

    started = time.perf_counter()
    query = client.submit("SP_PRACTITIONERS", "2024-01-01", "2024-01-31")
    client.fetch_partition(0, query.handle)
    client.fetch_partition(1, query.handle)
    elapsed = time.perf_counter() - started

    # One call per 0.2s: the two fetches wait for the bucket to drain.
    assert elapsed >= 0.3


def test_close_releases_the_http_client(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json={"data": []})

    created: list[ResilientClient] = []
    client = make_client(handler, created=created)
    client.fetch_partition(0, "H1")

    client.close()
    client.close()

    (resilient,) = created
    assert resilient.is_closed


def test_client_is_recreated_after_close(make_client: ClientBuilder) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        _ = request
        return httpx.Response(200, json={"data": [["111", "P1"]]})

    created: list[ResilientClient] = []
    client = make_client(handler, created=created)
    with client:
        client.fetch_partition(0, "H1")

    assert client.fetch_partition(1, "H1") == [["111", "P1"]]
    assert len(created) == 2


@pytest.mark.parametrize(
    ("procedure", "start"),
    [
        ("SP; DROP TABLE x", "2024-01-01"),
        ("SP_PRACTITIONERS", "2024-01-01'); --"),
    ],
)
def test_build_statement_rejects_unsafe_input(procedure: str, start: str) -> None:
    with pytest.raises(ConfigurationError):
        build_statement(procedure, start, "2024-01-31")
