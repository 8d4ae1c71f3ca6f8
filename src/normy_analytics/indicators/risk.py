from typing import List, Optional

from normy_analytics.indicators.aggregation import AggregationService, ScopedValue
from normy_analytics.models import ALL, Scope
from normy_analytics.utils.periods import ANNUAL, Period


class RiskDetector:
    """
    Academic risk rules.

    A low average alone is not enough: early in the period a single bad mark
    would flag half the school. Two evidence floors must be met as well.
    """

    # --- Threshold ---
    MAX_AVERAGE = 3.0

    # --- Evidence floors ---
    MIN_PERCENTAGE = 40
    MIN_ACTIVITIES = 3

    @staticmethod
    def has_enough_data(total_percentage: float, count_weighted: int) -> bool:
        return (total_percentage >= RiskDetector.MIN_PERCENTAGE
                and count_weighted >= RiskDetector.MIN_ACTIVITIES)

    @staticmethod
    def is_at_risk(average: Optional[float], total_percentage: float, count_weighted: int) -> bool:
        if average is None:
            return False
        return average < RiskDetector.MAX_AVERAGE and RiskDetector.has_enough_data(total_percentage, count_weighted)


def at_risk_students(
    service: AggregationService,
    period: Period = ANNUAL,
    scope: Scope = ALL,
    subject: Optional[str] = None,
) -> List[ScopedValue]:
    """
    Students flagged at risk, lowest average first. With a subject, the
    student's average, percentage and activity count in that subject are used.
    """
    if subject is not None:
        scope = scope.with_subject(subject)
    flagged = [
        v for v in service.scoped_values(period, scope)
        if RiskDetector.is_at_risk(v.average, v.total_percentage, v.count_weighted)
    ]
    return sorted(flagged, key=lambda v: v.average)


def has_sufficient_data_for_risk_view(service: AggregationService, period: Period = ANNUAL, scope: Scope = ALL) -> bool:
    """
    True when at least one student in scope meets both evidence floors,
    whether or not anyone is flagged. Lets the UI tell "nobody at risk"
    apart from "too early to say".
    """
    return any(
        RiskDetector.has_enough_data(v.total_percentage, v.count_weighted)
        for v in service.scoped_values(period, scope)
    )
