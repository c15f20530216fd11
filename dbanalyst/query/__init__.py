"""Query construction: request models, catalog validation and SQL composition."""

from dbanalyst.query.builder import BuiltQuery, QueryBuilder, metric_expression
from dbanalyst.query.models import (
    AggregateRequest,
    CompareRequest,
    Filter,
    FilterOperator,
    Metric,
    QueryRequest,
    RankRequest,
)
from dbanalyst.query.readonly import ensure_read_only
from dbanalyst.query.sanitizer import quote_identifier, sanitize_value
from dbanalyst.query.schema import SchemaValidator

__all__ = [
    "AggregateRequest",
    "BuiltQuery",
    "CompareRequest",
    "Filter",
    "FilterOperator",
    "Metric",
    "QueryBuilder",
    "QueryRequest",
    "RankRequest",
    "SchemaValidator",
    "ensure_read_only",
    "metric_expression",
    "quote_identifier",
    "sanitize_value",
]
