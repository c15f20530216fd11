"""
Shared fixtures: an in-memory catalog connector standing in for PostgreSQL,
a runtime wired to it, and the --run-integration switch.
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest

from dbanalyst.connectors.base import BaseConnector, QueryResult
from dbanalyst.querylog import QueryLog
from dbanalyst.resilience.circuit_breaker import CircuitBreaker
from dbanalyst.resilience.retry import RetryPolicy
from dbanalyst.runtime import AnalyticsRuntime

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests (requires a reachable PostgreSQL database)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly enabled."""
    if config.getoption("--run-integration"):
        return
    skip_integration = pytest.mark.skip(
        reason="Integration tests disabled (use --run-integration to enable)."
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ============================================================================
# Environment and Configuration
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """
    Keep tests independent of the developer's environment.

    Disables .env loading and clears the cached settings before and after
    each test.
    """
    from dbanalyst.config import clear_settings_cache

    monkeypatch.setenv("DBANALYST_ENV_SOURCE", "environment")
    for name in ("DATABASE_URL", "DATABASE_SCHEMA_NAME", "LOG_FILE", "TOOLS_POLICY_PATH"):
        monkeypatch.delenv(name, raising=False)
    clear_settings_cache()
    yield
    clear_settings_cache()


# ============================================================================
# Fake Database
# ============================================================================


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


def result(rows: list[dict[str, Any]]) -> QueryResult:
    return QueryResult(
        rows=rows,
        row_count=len(rows),
        columns=list(rows[0].keys()) if rows else [],
    )


class CatalogConnector(BaseConnector):
    """
    In-memory connector answering catalog lookups from a table/column map.

    Non-catalog queries are answered by ``responses``: a list of
    (substring, outcome) pairs, first match wins. An outcome is a row list,
    an exception to raise, or a callable (query, params) -> rows. Every executed
    (query, params) pair is kept in ``calls``.
    """

    def __init__(self, tables: dict[str, dict[str, str]], schema_name: str = "public"):
        super().__init__(host="localhost", port=5432, database="test", user="test", password="")
        self.tables = tables
        self.schema_name = schema_name
        self.responses: list[tuple[str, Any]] = []
        self.calls: list[tuple[str, list[Any] | None]] = []
        self.connect_calls = 0

    def respond(self, fragment: str, outcome: Any) -> None:
        self.responses.append((fragment, outcome))

    @property
    def queries(self) -> list[str]:
        return [query for query, _ in self.calls if "information_schema" not in query]

    async def connect(self) -> None:
        self.connect_calls += 1
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def execute(self, query, params=None, timeout=None) -> QueryResult:
        self.calls.append((query, params))
        if "information_schema.tables" in query:
            return result(
                [{"table_name": name, "table_schema": self.schema_name} for name in self.tables]
            )
        if "information_schema.columns" in query:
            columns = self.tables.get(params[1], {})
            return result(
                [
                    {
                        "column_name": name,
                        "data_type": data_type,
                        "is_nullable": "YES",
                        "column_default": None,
                    }
                    for name, data_type in columns.items()
                ]
            )
        for fragment, outcome in self.responses:
            if fragment in query:
                if isinstance(outcome, BaseException):
                    raise outcome
                if callable(outcome):
                    return result(outcome(query, params))
                return result(outcome)
        return result([])


FIBRE_TABLES = {
    "projects": {
        "id": "integer",
        "name": "text",
        "status": "text",
        "region": "text",
        "budget": "numeric",
        "start_date": "date",
    },
    "installs": {
        "id": "integer",
        "technician_id": "integer",
        "region": "text",
        "duration_hours": "double precision",
        "installed_at": "timestamp without time zone",
    },
}


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog_connector() -> CatalogConnector:
    return CatalogConnector(FIBRE_TABLES)


@pytest.fixture
def fast_policy() -> RetryPolicy:
    """Retry policy without real waiting (sleep is still patched where delays matter)."""
    return RetryPolicy(max_attempts=3, initial_delay_ms=0, max_delay_ms=0, timeout_ms=None)


@pytest.fixture
def runtime(catalog_connector, fast_policy, fake_clock) -> AnalyticsRuntime:
    return AnalyticsRuntime(
        catalog_connector,
        breaker=CircuitBreaker(clock=fake_clock),
        retry_policy=fast_policy,
        query_log=QueryLog(),
    )


@pytest.fixture
def mock_postgres_connector():
    """
    Mock PostgreSQL connector for testing.

    Usage:
        def test_query(mock_postgres_connector):
            mock_postgres_connector.execute.return_value = QueryResult(...)
    """
    connector = AsyncMock()
    connector.is_connected = True
    connector.connect = AsyncMock()
    connector.close = AsyncMock()
    connector.execute = AsyncMock()

    return connector
