from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, NamedTuple, Optional, Tuple, Union

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """
    Round half-up to 2 decimals. Every average, final and mean in the engine
    goes through this helper so displayed finals and rankings agree to the cent.
    """
    return float(Decimal(repr(float(value))).quantize(_CENT, rounding=ROUND_HALF_UP))


def mean2(values: Iterable[float]) -> Optional[float]:
    """Rounded arithmetic mean, or None for an empty input."""
    values = list(values)
    if not values:
        return None
    return round2(sum(values) / len(values))


class RelativeAverage(NamedTuple):
    average: Optional[float]
    total_percentage: float
    count_weighted: int


NOT_COMPUTABLE = RelativeAverage(None, 0, 0)


WeightedItem = Union[Tuple[float, Optional[float]], Any]


def _as_pair(item: WeightedItem) -> Tuple[float, Optional[float]]:
    if hasattr(item, "grade") and hasattr(item, "percentage"):
        return item.grade, item.percentage
    grade, pct = item
    return grade, pct


def relative_average(items: Iterable[WeightedItem]) -> RelativeAverage:
    """
    PROMEDIO RELATIVO PONDERADO (extrapolated to a 100% basis).

    Items are objects exposing `grade` and `percentage` (e.g. `Grade`) or
    plain (grade, percentage) pairs; both may be mixed. Only items with
    percentage > 0 count.
    Formula: round2( Σ(grade × pct) / Σ(pct) )

    A single 20% activity graded 4.0 averages 4.0, not 0.8. Compare with
    `finals.period_final`, which keeps the raw weighted contribution.
    """
    weighted = [(grade, pct) for grade, pct in map(_as_pair, items) if pct is not None and pct > 0]
    if not weighted:
        return NOT_COMPUTABLE

    total_pct = sum(pct for _, pct in weighted)
    products = sum(grade * pct for grade, pct in weighted)

    return RelativeAverage(
        average=round2(products / total_pct),
        total_percentage=total_pct,
        count_weighted=len(weighted),
    )
