"""
Query Request Models

Structured parameters accepted by the aggregate, compare and rank
operations. Invariants that only depend on the request itself (a metric
that needs a column has one, limits are positive) are enforced at
construction; identifier existence is checked later against the catalog.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

Scalar = str | int | float | bool | None


class Metric(StrEnum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"
    DISTINCT = "distinct"

    @property
    def requires_column(self) -> bool:
        return self is not Metric.COUNT


class FilterOperator(StrEnum):
    EQ = "="
    NE = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="
    LIKE = "LIKE"


class Filter(BaseModel):
    """Single WHERE condition; filters are ANDed in declaration order."""

    column: str = Field(..., min_length=1, description="Column to filter on")
    operator: FilterOperator = Field(..., description="Comparison operator")
    value: Scalar = Field(None, description="Value to compare against")

    model_config = ConfigDict(frozen=True)

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v


class _MetricRequest(BaseModel):
    table: str = Field(..., min_length=1, description="Name of the table to query")
    metric: Metric = Field(..., description="Type of aggregation to perform")
    column: str | None = Field(
        None, description="Column to aggregate (required for every metric except count)"
    )
    filters: list[Filter] = Field(default_factory=list, description="WHERE clause filters")

    model_config = ConfigDict(frozen=True)

    @field_validator("filters", mode="before")
    @classmethod
    def default_filters(cls, v: Any) -> Any:
        return [] if v is None else v

    @model_validator(mode="after")
    def check_metric_column(self):
        if self.metric.requires_column and not self.column:
            raise PydanticCustomError(
                "missing_parameter",
                "Metric '{metric}' requires a column parameter. "
                "Please specify which column to calculate {metric} for.",
                {"metric": self.metric.value, "parameter": "column"},
            )
        return self


class AggregateRequest(_MetricRequest):
    kind: Literal["aggregate"] = "aggregate"
    group_by: str | None = Field(None, description="Column to group results by")
    order_direction: Literal["asc", "desc"] | None = Field(
        None, description="Sort order for results"
    )
    limit: int = Field(default=100, gt=0, description="Maximum number of result rows")


class CompareRequest(_MetricRequest):
    kind: Literal["compare"] = "compare"
    compare_by: str = Field(..., min_length=1, description="Column the two values belong to")
    value1: Scalar = Field(..., description="Baseline value of compare_by")
    value2: Scalar = Field(..., description="Value of compare_by compared against the baseline")

    @field_validator("metric")
    @classmethod
    def reject_distinct(cls, v: Metric) -> Metric:
        if v is Metric.DISTINCT:
            raise PydanticCustomError(
                "invalid_metric",
                "Metric 'distinct' cannot be compared. Use count, sum, avg, min or max.",
            )
        return v


class RankRequest(_MetricRequest):
    kind: Literal["rank"] = "rank"
    rank_by: str = Field(..., min_length=1, description="Column whose values are ranked")
    direction: Literal["top", "bottom"] = Field(
        default="top", description="Highest-first (top) or lowest-first (bottom)"
    )
    limit: int = Field(default=10, gt=0, description="Number of ranked entities to return")


QueryRequest = Annotated[
    AggregateRequest | CompareRequest | RankRequest,
    Field(discriminator="kind"),
]
