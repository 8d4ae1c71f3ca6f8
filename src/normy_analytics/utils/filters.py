from typing import Dict, Iterable, Optional


class PerformanceBands:
    """
    Centralizes the performance scale used by every distribution view.

    bajo      avg < 3.0
    basico    3.0 <= avg < 4.0
    alto      4.0 <= avg <= 4.5   (upper bound inclusive: 4.50 is still "alto")
    superior  avg > 4.5
    """

    BAJO = "bajo"
    BASICO = "basico"
    ALTO = "alto"
    SUPERIOR = "superior"
    ORDER = (BAJO, BASICO, ALTO, SUPERIOR)

    BASIC_FROM = 3.0
    HIGH_FROM = 4.0
    HIGH_UNTIL = 4.5

    @staticmethod
    def level(average: float) -> str:
        if average < PerformanceBands.BASIC_FROM:
            return PerformanceBands.BAJO
        if average < PerformanceBands.HIGH_FROM:
            return PerformanceBands.BASICO
        if average <= PerformanceBands.HIGH_UNTIL:
            return PerformanceBands.ALTO
        return PerformanceBands.SUPERIOR

    @staticmethod
    def count(averages: Iterable[float]) -> Dict[str, int]:
        """Bucket counts, every band present even when empty."""
        counts = {band: 0 for band in PerformanceBands.ORDER}
        for avg in averages:
            counts[PerformanceBands.level(avg)] += 1
        return counts

    @staticmethod
    def has_data(average: Optional[float]) -> bool:
        """
        Students without a positive average are "no data yet", not zero.
        They are left out of every mean, ranking and distribution.
        """
        return average is not None and average > 0
