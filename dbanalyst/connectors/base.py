"""
Connector Interface

The executor the analytics tools ultimately run SQL on. A connector only
knows how to open a pool, run one parameterized statement and close the
pool; catalog discovery, retries and circuit breaking live above it
(dbanalyst.query.schema and dbanalyst.resilience).

Failures are raised as ConnectionError (cannot reach the server) or
QueryError (the statement failed); their messages are worded so the error
normalizer classifies them.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class QueryResult(BaseModel):
    """Rows of one executed statement, as column-name keyed dicts."""

    rows: list[dict[str, Any]] = Field(..., description="Result rows in server order")
    row_count: int = Field(..., description="len(rows)")
    columns: list[str] = Field(default_factory=list, description="Column names in select order")
    execution_time_ms: float = Field(default=0.0, description="Server round trip in ms")


class ConnectorError(Exception):
    """Base class for connector failures."""


class ConnectionError(ConnectorError):
    """The database could not be reached or the pool is unusable."""


class QueryError(ConnectorError):
    """A statement was sent but failed (syntax, unknown relation, timeout...)."""


class BaseConnector(ABC):
    """
    Pooled async connection to one database.

    Subclasses implement connect(), execute() and close(). Statements use
    ``$1, $2, ...`` placeholders with values passed separately.

    Usage:
        async with PostgresConnector.from_url(url) as connector:
            result = await connector.execute(
                'SELECT COUNT(*) FROM "projects" WHERE "status" = $1', ["active"]
            )
    """

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        pool_size: int = 10,
        timeout: int = 30,
        **kwargs: Any,
    ):
        """
        Args:
            pool_size: Maximum pooled connections
            timeout: Default per-statement timeout in seconds
            **kwargs: Passed through to the driver when the pool is created
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.pool_size = pool_size
        self.timeout = timeout
        self.kwargs = kwargs

        self._pool = None
        self._connected = False

        logger.debug(
            f"Configured {type(self).__name__}",
            extra={"target": self.target, "pool_size": pool_size, "timeout": timeout},
        )

    @property
    def target(self) -> str:
        """``user@host:port/database`` (never includes the password)."""
        return f"{self.user}@{self.host}:{self.port}/{self.database}"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the pool. Calling it on a connected connector is a no-op.

        Raises:
            ConnectionError: If the server cannot be reached
        """

    @abstractmethod
    async def execute(
        self,
        query: str,
        params: list[Any] | None = None,
        timeout: int | None = None,
    ) -> QueryResult:
        """
        Run one statement.

        Args:
            query: SQL with $n placeholders
            params: Values for the placeholders
            timeout: Statement timeout in seconds (defaults to self.timeout)

        Raises:
            ConnectionError: If the connector is not connected
            QueryError: If the statement fails
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the pool. Safe to call more than once."""

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    def __repr__(self) -> str:
        state = "connected" if self._connected else "disconnected"
        return f"<{type(self).__name__} {self.target} ({state})>"
