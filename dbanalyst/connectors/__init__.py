"""Database connectors the analytics tools execute SQL through."""

from dbanalyst.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
)
from dbanalyst.connectors.postgres import PostgresConnector

__all__ = [
    "BaseConnector",
    "ConnectionError",
    "ConnectorError",
    "PostgresConnector",
    "QueryError",
    "QueryResult",
]
