from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from normy_analytics.indicators.weighted import (
    NOT_COMPUTABLE, RelativeAverage, mean2, relative_average, round2,
)
from normy_analytics.models import ALL, Scope, Student
from normy_analytics.snapshot import Snapshot
from normy_analytics.utils.filters import PerformanceBands
from normy_analytics.utils.periods import (
    ANNUAL, PERIODS, Period, normalize_text, parse_period, period_label, sort_grade_levels,
    spanish_sort_key,
)


@dataclass(frozen=True)
class StudentAverage:
    student_code: str
    full_name: str
    grade_level: str
    classroom: str
    average: float
    total_percentage: float
    count_weighted: int
    period_averages: Dict[int, float] = field(default_factory=dict)
    subject_averages: Dict[str, RelativeAverage] = field(default_factory=dict)


@dataclass(frozen=True)
class ClassroomAverage:
    grade_level: str
    classroom: str
    average: float
    student_count: int


@dataclass(frozen=True)
class GradeAverage:
    grade_level: str
    average: float
    student_count: int


@dataclass(frozen=True)
class SubjectAverage:
    subject: str
    average: float
    grade_count: int


@dataclass(frozen=True)
class EvolutionPoint:
    period: int
    label: str
    average: Optional[float]

    @property
    def display_value(self) -> float:
        """Charts read 0 as "no data"."""
        return self.average if self.average is not None else 0.0


@dataclass(frozen=True)
class ScopedValue:
    """What a ranking/distribution/risk view looks at for one student."""
    student: StudentAverage
    average: float
    total_percentage: float
    count_weighted: int


class AggregationService:
    """
    Averages, rankings and distributions over one Snapshot.

    The snapshot is immutable, so results are memoized per (period, scope).
    Build a new service after patching the snapshot.
    """

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot
        self._cache: Dict[Tuple, object] = {}

    # --- Per-student building blocks ---
    def student_period_average(self, student_code: str, period: int, subject: Optional[str] = None) -> RelativeAverage:
        """
        Cross-subject average for one period: relative average of each subject,
        then the rounded mean of those subject averages. Percentage and activity
        counts are summed over the subjects that have an average.
        """
        period = parse_period(period)
        by_subject: Dict[str, list] = OrderedDict()
        for g in self.snapshot.grades_of(student_code):
            if g.period != period or (subject is not None and g.subject != subject):
                continue
            by_subject.setdefault(g.subject, []).append(g)

        averages = []
        total_pct = 0.0
        count = 0
        for grades in by_subject.values():
            result = relative_average(self.snapshot.weighted_pairs(grades))
            if result.average is not None:
                averages.append(result.average)
                total_pct += result.total_percentage
                count += result.count_weighted

        if not averages:
            return NOT_COMPUTABLE
        return RelativeAverage(mean2(averages), total_pct, count)

    def student_annual_average(self, student_code: str, subject: Optional[str] = None) -> RelativeAverage:
        """
        Annual average combined like the annual final: Σ period averages / 4,
        periods without data counting as 0. None when no period has data.
        """
        results = [self.student_period_average(student_code, p, subject) for p in PERIODS]
        if all(r.average is None for r in results):
            return NOT_COMPUTABLE
        return RelativeAverage(
            average=round2(sum(r.average or 0 for r in results) / len(PERIODS)),
            total_percentage=sum(r.total_percentage for r in results),
            count_weighted=sum(r.count_weighted for r in results),
        )

    def _subject_averages_for(self, student_code: str, period: Period) -> Dict[str, RelativeAverage]:
        grades = [
            g for g in self.snapshot.grades_of(student_code)
            if g.period in PERIODS and (period == ANNUAL or g.period == period)
        ]
        by_subject: Dict[str, list] = OrderedDict()
        for g in grades:
            by_subject.setdefault(g.subject, []).append(g)

        result = {}
        for subject, subject_grades in by_subject.items():
            avg = relative_average(self.snapshot.weighted_pairs(subject_grades))
            if PerformanceBands.has_data(avg.average):
                result[subject] = avg
        return result

    # --- Student level ---
    def student_averages(self, period: Period = ANNUAL, scope: Scope = ALL) -> List[StudentAverage]:
        """
        Averages of every student in scope, in snapshot order. Students without
        a positive average are left out. The scope's subject does not change
        the overall average; it is read by the per-subject views.
        """
        period = parse_period(period)
        key = ("students", period, scope.without_subject())
        if key in self._cache:
            return list(self._cache[key])

        rows = []
        for student in self.snapshot.students:
            if not scope.includes_student(student):
                continue
            rows_item = self._student_average(student, period)
            if rows_item is not None:
                rows.append(rows_item)

        self._cache[key] = rows
        return list(rows)

    def _student_average(self, student: Student, period: Period) -> Optional[StudentAverage]:
        if period == ANNUAL:
            result = self.student_annual_average(student.code)
        else:
            result = self.student_period_average(student.code, period)

        if not PerformanceBands.has_data(result.average):
            return None

        period_averages = {}
        for p in PERIODS:
            avg = self.student_period_average(student.code, p).average
            if avg is not None:
                period_averages[p] = avg

        return StudentAverage(
            student_code=student.code,
            full_name=student.full_name,
            grade_level=student.grade_level,
            classroom=student.classroom,
            average=result.average,
            total_percentage=result.total_percentage,
            count_weighted=result.count_weighted,
            period_averages=period_averages,
            subject_averages=self._subject_averages_for(student.code, period),
        )

    def scoped_values(self, period: Period = ANNUAL, scope: Scope = ALL) -> List[ScopedValue]:
        """
        The value each view should rank/bucket: the overall average, or the
        student's average in `scope.subject` when a subject is selected.
        """
        period = parse_period(period)
        values = []
        for s in self.student_averages(period, scope):
            if scope.subject is None:
                values.append(ScopedValue(s, s.average, s.total_percentage, s.count_weighted))
                continue
            subject_avg = s.subject_averages.get(scope.subject)
            if subject_avg is not None:
                values.append(ScopedValue(s, subject_avg.average, subject_avg.total_percentage,
                                          subject_avg.count_weighted))
        return values

    # --- Group level ---
    def scope_average(self, period: Period = ANNUAL, scope: Scope = ALL) -> Optional[float]:
        """Mean of the included student values in scope; None when nobody has data."""
        return mean2(v.average for v in self.scoped_values(period, scope))

    def institution_average(self, period: Period = ANNUAL) -> Optional[float]:
        return self.scope_average(period, ALL)

    def classrooms(self, grade_level: Optional[str] = None) -> List[Tuple[str, str]]:
        seen = []
        for s in self.snapshot.students:
            pair = (s.grade_level, s.classroom)
            if pair not in seen and (grade_level in (None, "all") or s.grade_level == grade_level):
                seen.append(pair)
        return seen

    def grade_levels(self) -> List[str]:
        return sort_grade_levels(s.grade_level for s in self.snapshot.students)

    def classroom_averages(self, period: Period = ANNUAL, grade_level: Optional[str] = None) -> List[ClassroomAverage]:
        result = []
        for grade, classroom in self.classrooms(grade_level):
            students = self.student_averages(period, Scope(grade_level=grade, classroom=classroom))
            if students:
                result.append(ClassroomAverage(grade, classroom, mean2(s.average for s in students), len(students)))
        return result

    def grade_averages(self, period: Period = ANNUAL) -> List[GradeAverage]:
        result = []
        for grade in self.grade_levels():
            students = self.student_averages(period, Scope(grade_level=grade))
            if students:
                result.append(GradeAverage(grade, mean2(s.average for s in students), len(students)))
        return result

    # --- Subject level ---
    def _pooled_grades(self, period: Period, scope: Scope):
        period = parse_period(period)
        return [
            g for g in self.snapshot.grades
            if g.period in PERIODS
            and (period == ANNUAL or g.period == period)
            and scope.includes_grade(g)
        ]

    def subject_average(self, subject: str, period: Period = ANNUAL, scope: Scope = ALL) -> RelativeAverage:
        """Relative average over every weighted grade of `subject` in scope, pooled."""
        return relative_average(self.snapshot.weighted_pairs(self._pooled_grades(period, scope.with_subject(subject))))

    def subject_averages(self, period: Period = ANNUAL, scope: Scope = ALL) -> List[SubjectAverage]:
        """Subjects with data in scope, best average first."""
        period = parse_period(period)
        key = ("subjects", period, scope)
        if key in self._cache:
            return list(self._cache[key])

        by_subject: Dict[str, list] = OrderedDict()
        for g in self._pooled_grades(period, scope):
            by_subject.setdefault(g.subject, []).append(g)

        rows = []
        for subject, grades in by_subject.items():
            pairs = [p for p in self.snapshot.weighted_pairs(grades) if p[1] is not None and p[1] > 0]
            avg = relative_average(pairs)
            if PerformanceBands.has_data(avg.average):
                rows.append(SubjectAverage(subject, avg.average, len(pairs)))

        rows.sort(key=lambda r: (-r.average, spanish_sort_key(r.subject)))
        self._cache[key] = rows
        return list(rows)

    def subjects_in_scope(self, grade_level: Optional[str] = None, classroom: Optional[str] = None) -> List[str]:
        """
        Subjects assigned to the grade/classroom by the teachers' assignments
        (accent- and case-insensitive match). Falls back to the subjects seen
        in grades when there are no assignments.
        """
        grade_norm = normalize_text(grade_level) if grade_level not in (None, "all") else None
        room_norm = normalize_text(classroom) if classroom not in (None, "all") else None

        slots = [slot for a in self.snapshot.assignments for slot in a.expand()]
        if slots:
            subjects = {
                s.subject for s in slots
                if (grade_norm is None or normalize_text(s.grade_level) == grade_norm)
                and (room_norm is None or normalize_text(s.classroom) == room_norm)
            }
        else:
            subjects = {
                g.subject for g in self.snapshot.grades
                if (grade_norm is None or normalize_text(g.grade_level) == grade_norm)
                and (room_norm is None or normalize_text(g.classroom) == room_norm)
            }
        return sorted(subjects, key=spanish_sort_key)

    # --- Views ---
    def ranking(self, period: Period = ANNUAL, scope: Scope = ALL, limit: Optional[int] = 10) -> List[ScopedValue]:
        """Highest average first; ties by full name (last name first), Spanish collation."""
        ordered = sorted(
            self.scoped_values(period, scope),
            key=lambda v: (-v.average, spanish_sort_key(v.student.full_name)),
        )
        return ordered if limit is None else ordered[:limit]

    def distribution(self, period: Period = ANNUAL, scope: Scope = ALL, subject: Optional[str] = None) -> Dict[str, int]:
        """Counts per performance band. With a subject, the students' averages in that subject are bucketed."""
        if subject is not None:
            scope = scope.with_subject(subject)
        return PerformanceBands.count(v.average for v in self.scoped_values(period, scope))

    def evolution(self, scope: Scope = ALL) -> List[EvolutionPoint]:
        """Four-period trend of the scope's mean."""
        return [
            EvolutionPoint(p, period_label(p), self.scope_average(p, scope))
            for p in PERIODS
        ]
