from typing import Dict, Iterable, List, Optional

from normy_analytics.indicators.weighted import round2
from normy_analytics.models import FINAL_DEFINITIVA, FINAL_PERIODO, Activity, DerivedGrade
from normy_analytics.snapshot import Snapshot
from normy_analytics.utils.periods import ANNUAL_PERIOD, PERIODS

# Annual final always divides by the number of periods in the year,
# not by the number of periods that have data.
ANNUAL_DIVISOR = len(PERIODS)


def period_final(student_code: str, subject: str, period: int, snapshot: Snapshot) -> Optional[float]:
    """
    "Final Periodo" as shown on the teacher's grade sheet.

    Sums grade × pct / 100 over the weighted activities of the student's
    classroom that the student already has a grade for. The sum is NOT divided
    by the collected percentage: it only equals the real final once the
    period's weights reach 100% and every activity is graded.

    Returns None if the student is unknown or no weighted activity is graded.
    """
    student = snapshot.student(student_code)
    if student is None:
        return None

    activities = [
        a for a in snapshot.activities_for(subject, student.grade_level, student.classroom, period)
        if a.is_weighted
    ]

    total = 0.0
    graded = False
    for activity in activities:
        grade = snapshot.grade_for(student_code, activity)
        if grade is not None:
            total += grade.grade * activity.percentage
            graded = True

    if not graded:
        return None
    return round2(total / 100)


def annual_final(student_code: str, subject: str, snapshot: Snapshot) -> Optional[float]:
    """
    "Final Definitiva": Σ period finals / 4, missing periods counting as 0.
    None only when all four periods are None.
    """
    finals = [period_final(student_code, subject, p, snapshot) for p in PERIODS]
    if all(f is None for f in finals):
        return None
    return round2(sum(f or 0 for f in finals) / ANNUAL_DIVISOR)


def recompute_finals(student_code: str, subject: str, period: int, snapshot: Snapshot) -> List[DerivedGrade]:
    """
    Derived rows to persist after a grade edit in `period`: the period's
    "Final Periodo" and the annual "Final Definitiva" (period 0).
    A value that is not computable yields no row.
    """
    student = snapshot.student(student_code)
    if student is None:
        return []

    rows = []
    final_p = period_final(student_code, subject, period, snapshot)
    if final_p is not None:
        rows.append(DerivedGrade(student_code, subject, student.grade_level, student.classroom,
                                 period, FINAL_PERIODO, final_p))

    final_a = annual_final(student_code, subject, snapshot)
    if final_a is not None:
        rows.append(DerivedGrade(student_code, subject, student.grade_level, student.classroom,
                                 ANNUAL_PERIOD, FINAL_DEFINITIVA, final_a))
    return rows


def all_finals(student_code: str, subject: str, snapshot: Snapshot) -> List[DerivedGrade]:
    """Every derived row of a student/subject: the computable period finals, then the annual final."""
    student = snapshot.student(student_code)
    if student is None:
        return []

    rows = []
    for p in PERIODS:
        final_p = period_final(student_code, subject, p, snapshot)
        if final_p is not None:
            rows.append(DerivedGrade(student_code, subject, student.grade_level, student.classroom,
                                     p, FINAL_PERIODO, final_p))

    final_a = annual_final(student_code, subject, snapshot)
    if final_a is not None:
        rows.append(DerivedGrade(student_code, subject, student.grade_level, student.classroom,
                                 ANNUAL_PERIOD, FINAL_DEFINITIVA, final_a))
    return rows


def student_finals(student_code: str, snapshot: Snapshot, subjects: Optional[Iterable[str]] = None) -> Dict[str, Dict]:
    """
    Consolidated sheet for one student: per subject, the four period finals
    and the annual final.
    """
    if subjects is None:
        subjects = snapshot.subjects_of(student_code)

    sheet = {}
    for subject in subjects:
        sheet[subject] = {
            "periodos": {p: period_final(student_code, subject, p, snapshot) for p in PERIODS},
            "final_definitiva": annual_final(student_code, subject, snapshot),
        }
    return sheet


def period_percentage_used(activities: Iterable[Activity], period: int) -> float:
    """Sum of the assigned percentages in a period (shown on the period tabs)."""
    return sum(a.percentage for a in activities if a.period == period and a.percentage is not None)


def annual_percentage_average(activities: Iterable[Activity]) -> float:
    activities = list(activities)
    total = sum(period_percentage_used(activities, p) for p in PERIODS)
    return round2(total / ANNUAL_DIVISOR)
