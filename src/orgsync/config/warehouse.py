"""Analytical warehouse configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

WAREHOUSE_TIMEOUT_SECONDS = 120.0
DEFAULT_STATEMENT_TIMEOUT_SECONDS = 60


@dataclass(frozen=True)
class WarehouseConfig:
    """Holds warehouse API credentials and session defaults."""

    token: str
    database: str
    schema: str
    warehouse: str
    resilience: ResilienceConfig
    role: str | None = None
    statement_timeout_seconds: int = DEFAULT_STATEMENT_TIMEOUT_SECONDS


def get_warehouse_config(*, resilience: ResilienceConfig | None = None) -> WarehouseConfig:
    values = require_env_vars(
        (
            "WAREHOUSE_BASE_URL",
            "WAREHOUSE_TOKEN",
            "WAREHOUSE_DATABASE",
            "WAREHOUSE_SCHEMA",
            "WAREHOUSE_NAME",
        )
    )
    return WarehouseConfig(
        token=values["WAREHOUSE_TOKEN"],
        database=values["WAREHOUSE_DATABASE"],
        schema=values["WAREHOUSE_SCHEMA"],
        warehouse=values["WAREHOUSE_NAME"],
        role=optional_env_var("WAREHOUSE_ROLE"),
        resilience=resilience
        or ResilienceConfig(
            name="warehouse",
            base_url=values["WAREHOUSE_BASE_URL"],
            timeout_seconds=WAREHOUSE_TIMEOUT_SECONDS,
            retry=RetryPolicy(),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers={"Accept": "application/json"},
        ),
    )
