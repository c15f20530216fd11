"""
SQL Query Builder

Turns validated aggregate, compare and rank requests into parameterized
SQL. Identifiers are checked against the catalog before they are quoted
into the text; values never appear in the text, they are bound as $n
parameters (coerced to the column's type first).

The generated shapes:

    aggregate  SELECT ["g",] <metric> FROM "t" [WHERE ...] [GROUP BY "g"]
               [ORDER BY <"g" or metric> ASC|DESC] LIMIT n
    compare    SELECT <metric> FROM "t" WHERE "c" = $1 [AND ...]   (x2)
    rank       SELECT "r" AS entity, <metric> AS value FROM "t" [WHERE ...]
               GROUP BY "r" ORDER BY value DESC|ASC NULLS LAST LIMIT n
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from dbanalyst.errors import invalid_input
from dbanalyst.query.models import (
    AggregateRequest,
    CompareRequest,
    Filter,
    FilterOperator,
    Metric,
    RankRequest,
)
from dbanalyst.query.sanitizer import as_text, coerce_value, quote_identifier, sanitize_value
from dbanalyst.query.schema import SchemaValidator

logger = logging.getLogger(__name__)

# a quoted identifier matches as a whole and is kept verbatim
_PLACEHOLDER = re.compile(r'"(?:[^"]|"")*"|\$(\d+)')

# count is special-cased: COUNT(*) when no column is given
_METRIC_TEMPLATES = {
    Metric.SUM: "SUM({col})",
    Metric.AVG: "ROUND(AVG({col})::numeric, 2)",
    Metric.MIN: "MIN({col})",
    Metric.MAX: "MAX({col})",
    Metric.DISTINCT: "COUNT(DISTINCT {col})",
}


@dataclass(frozen=True)
class BuiltQuery:
    """Parameterized SQL plus the values bound to its placeholders."""

    sql: str
    params: tuple[Any, ...] = ()

    def render(self) -> str:
        """SQL text with each placeholder replaced by its sanitized literal."""
        return _PLACEHOLDER.sub(self._literal, self.sql)

    def _literal(self, match: re.Match) -> str:
        if match.group(1) is None:
            return match.group(0)
        return sanitize_value(self.params[int(match.group(1)) - 1])


def metric_expression(metric: Metric, column: str | None) -> str:
    if metric is Metric.COUNT:
        return f"COUNT({quote_identifier(column)})" if column else "COUNT(*)"
    if not column:
        raise invalid_input(
            f"Metric '{metric.value}' requires a column parameter.", metric=metric.value
        )
    return _METRIC_TEMPLATES[metric].format(col=quote_identifier(column))


class _Binder:
    """Collects parameter values and hands out $n placeholders."""

    def __init__(self, table: str, column_types: dict[str, str]):
        self.table = table
        self.column_types = column_types
        self.params: list[Any] = []

    def bind(self, column: str, value: Any, coerce: bool = True) -> str:
        if coerce:
            data_type = self.column_types.get(column)
            try:
                value = coerce_value(value, data_type)
            except ValueError as exc:
                raise invalid_input(
                    f"Value {value!r} is not valid for column '{column}' "
                    f"({data_type}) in table '{self.table}'.",
                    table=self.table,
                    column=column,
                ) from exc
        self.params.append(value)
        return f"${len(self.params)}"

    def condition(self, filter_: Filter) -> str:
        if filter_.operator is FilterOperator.LIKE:
            placeholder = self.bind(filter_.column, as_text(filter_.value), coerce=False)
        else:
            placeholder = self.bind(filter_.column, filter_.value)
        return f"{quote_identifier(filter_.column)} {filter_.operator.value} {placeholder}"

    def conditions(self, filters: list[Filter]) -> list[str]:
        return [self.condition(filter_) for filter_ in filters]


class QueryBuilder:
    """
    Compose SQL for the analytics operations.

    Every build validates the table and each referenced column (metric
    column, grouping/compare/rank column, filter columns) before producing
    text, so an unknown identifier fails without a query round trip.
    """

    def __init__(self, validator: SchemaValidator):
        self.validator = validator

    async def _resolve(self, table: str, columns: list[str | None]) -> dict[str, str]:
        await self.validator.require_table(table)
        await self.validator.require_columns(table, columns)
        return {column.name: column.data_type for column in await self.validator.describe_table(table)}

    async def build_aggregate(self, request: AggregateRequest) -> BuiltQuery:
        column_types = await self._resolve(
            request.table,
            [request.column, request.group_by, *(f.column for f in request.filters)],
        )
        binder = _Binder(request.table, column_types)
        metric_expr = metric_expression(request.metric, request.column)

        select_exprs = [metric_expr]
        if request.group_by:
            select_exprs.insert(0, quote_identifier(request.group_by))

        parts = [
            f"SELECT {', '.join(select_exprs)}",
            f"FROM {quote_identifier(request.table)}",
        ]

        conditions = binder.conditions(request.filters)
        if conditions:
            parts.append(f"WHERE {' AND '.join(conditions)}")

        if request.group_by:
            parts.append(f"GROUP BY {quote_identifier(request.group_by)}")

        if request.order_direction:
            order_target = quote_identifier(request.group_by) if request.group_by else metric_expr
            parts.append(f"ORDER BY {order_target} {request.order_direction.upper()}")

        parts.append(f"LIMIT {request.limit}")

        query = BuiltQuery(sql=" ".join(parts), params=tuple(binder.params))
        logger.debug("Built aggregate query", extra={"sql": query.sql, "table": request.table})
        return query

    async def build_compare(self, request: CompareRequest) -> tuple[BuiltQuery, BuiltQuery]:
        column_types = await self._resolve(
            request.table,
            [request.column, request.compare_by, *(f.column for f in request.filters)],
        )
        return (
            self._compare_query(request, request.value1, column_types),
            self._compare_query(request, request.value2, column_types),
        )

    def _compare_query(
        self, request: CompareRequest, value: Any, column_types: dict[str, str]
    ) -> BuiltQuery:
        binder = _Binder(request.table, column_types)
        conditions = [
            f"{quote_identifier(request.compare_by)} = {binder.bind(request.compare_by, value)}",
            *binder.conditions(request.filters),
        ]
        sql = (
            f"SELECT {metric_expression(request.metric, request.column)} "
            f"FROM {quote_identifier(request.table)} "
            f"WHERE {' AND '.join(conditions)}"
        )
        return BuiltQuery(sql=sql, params=tuple(binder.params))

    async def build_rank(self, request: RankRequest) -> BuiltQuery:
        column_types = await self._resolve(
            request.table,
            [request.column, request.rank_by, *(f.column for f in request.filters)],
        )
        binder = _Binder(request.table, column_types)
        rank_col = quote_identifier(request.rank_by)
        direction = "DESC" if request.direction == "top" else "ASC"

        parts = [
            f"SELECT {rank_col} AS entity, "
            f"{metric_expression(request.metric, request.column)} AS value",
            f"FROM {quote_identifier(request.table)}",
        ]
        conditions = binder.conditions(request.filters)
        if conditions:
            parts.append(f"WHERE {' AND '.join(conditions)}")
        parts.append(f"GROUP BY {rank_col}")
        parts.append(f"ORDER BY value {direction} NULLS LAST")
        parts.append(f"LIMIT {request.limit}")

        return BuiltQuery(sql=" ".join(parts), params=tuple(binder.params))
