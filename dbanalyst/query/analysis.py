"""Derived figures for aggregate, compare and rank results."""

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from dbanalyst.errors import AgentError, ErrorCode

Trend = Literal["up", "down", "stable"]

# |percent change| below this is reported as stable
STABLE_THRESHOLD_PERCENT = 1.0


class Comparison(BaseModel):
    value1_result: float
    value2_result: float
    difference: float
    percent_change: float = Field(..., description="Rounded to 2 decimal places")
    trend: Trend
    insight: str


class Ranking(BaseModel):
    rank: int
    entity: Any
    value: float
    percentage: float = Field(..., description="Share of the returned rows' total, in percent")


class RankSummary(BaseModel):
    total_entities: int
    total_value: float
    avg_value: float


def to_number(value: Any, *, label: str = "value") -> float | int:
    """
    Coerce an aggregate result to a number; NULL counts as 0.

    Raises:
        AgentError: CALCULATION_ERROR for non-numeric values
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise AgentError(
            ErrorCode.CALCULATION_ERROR,
            f"Cannot use non-numeric {label} {value!r} in a calculation",
            context={"value": str(value)},
        ) from exc


def format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    return str(value)


def extract_aggregated_value(rows: list[dict[str, Any]], grouped: bool) -> Any:
    """
    Scalar result of an ungrouped single-row aggregate, else None.

    Numeric results become int/float; other results (e.g. MIN over a text
    or date column) are returned as strings.
    """
    if grouped or len(rows) != 1 or not rows[0]:
        return None
    value = next(iter(rows[0].values()))
    if value is None:
        return None
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return to_number(value)
    return str(value)


def percent_change(value1: float, value2: float) -> float:
    if value1 != 0:
        return (value2 - value1) / value1 * 100
    return 100.0 if value2 > 0 else 0.0


def classify_trend(change: float) -> Trend:
    if abs(change) < STABLE_THRESHOLD_PERCENT:
        return "stable"
    return "up" if change > 0 else "down"


def compare_values(metric: str, value1: Any, value2: Any) -> Comparison:
    """Difference, percent change, trend and a one-sentence insight for two results."""
    result1 = to_number(value1, label="value1 result")
    result2 = to_number(value2, label="value2 result")
    difference = result2 - result1
    change = percent_change(result1, result2)
    trend = classify_trend(change)

    if trend == "stable":
        insight = (
            f"{metric} remained stable between the two periods/entities "
            f"({change:.1f}% change)"
        )
    elif trend == "up":
        insight = (
            f"{metric} increased by {format_number(abs(difference))} ({change:.1f}%) "
            f"from {format_number(result1)} to {format_number(result2)}"
        )
    else:
        insight = (
            f"{metric} decreased by {format_number(abs(difference))} ({abs(change):.1f}%) "
            f"from {format_number(result1)} to {format_number(result2)}"
        )

    return Comparison(
        value1_result=result1,
        value2_result=result2,
        difference=difference,
        percent_change=round(change, 2),
        trend=trend,
        insight=insight,
    )


def rank_rows(rows: list[dict[str, Any]]) -> tuple[list[Ranking], RankSummary]:
    """
    Annotate ordered (entity, value) rows with rank and percentage share.

    Ranks follow row order (1-based). Shares are relative to the total of
    the given rows, not the full population behind them.
    """
    values = [to_number(row.get("value")) for row in rows]
    total = sum(values)

    rankings = [
        Ranking(
            rank=index,
            entity=row.get("entity"),
            value=value,
            percentage=round(value * 100 / total, 2) if total else 0.0,
        )
        for index, (row, value) in enumerate(zip(rows, values), start=1)
    ]
    summary = RankSummary(
        total_entities=len(rankings),
        total_value=round(total, 2),
        avg_value=round(total / len(rankings), 2) if rankings else 0.0,
    )
    return rankings, summary
