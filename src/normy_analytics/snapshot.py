from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from normy_analytics.models import (
    RESERVED_ACTIVITY_NAMES, Activity, DerivedGrade, Grade, InvalidRecordError, Student,
    TeacherAssignment,
)
from normy_analytics.utils.logger import get_logger

logger = get_logger(__name__)

GradeKey = Tuple[str, str, str, str, int, str]


def _grade_key(grade: Grade) -> GradeKey:
    return (grade.student_code, grade.subject, grade.grade_level,
            grade.classroom, grade.period, grade.activity_name)


class Snapshot:
    """
    Read-only view of the grade book for one analysis session.

    Built once from the store; never mutated. Edits produce a new Snapshot
    through `with_grade` / `with_derived`. Reserved "Final Periodo" /
    "Final Definitiva" rows live in `derived`, never in `grades`.
    """

    def __init__(
        self,
        grades: Iterable[Grade] = (),
        activities: Iterable[Activity] = (),
        students: Iterable[Student] = (),
        derived: Iterable[DerivedGrade] = (),
        assignments: Iterable[TeacherAssignment] = (),
    ):
        # Same key twice: the last row wins, as in the store
        by_key: Dict[GradeKey, Grade] = {}
        for g in grades:
            if g.is_derived:
                raise ValueError(f"'{g.activity_name}' es una nota calculada; use DerivedGrade")
            by_key[_grade_key(g)] = g

        self.grades: Tuple[Grade, ...] = tuple(by_key.values())
        self.activities: Tuple[Activity, ...] = tuple(activities)
        self.students: Tuple[Student, ...] = tuple(students)
        self.derived: Tuple[DerivedGrade, ...] = tuple(derived)
        self.assignments: Tuple[TeacherAssignment, ...] = tuple(assignments)

        self._grade_by_key = by_key
        self._grades_by_student: Dict[str, List[Grade]] = defaultdict(list)
        for g in self.grades:
            self._grades_by_student[g.student_code].append(g)

        self._activity_by_key: Dict[Tuple, Activity] = {}
        self._activities_by_slot: Dict[Tuple, List[Activity]] = defaultdict(list)
        for a in self.activities:
            self._activity_by_key[a.key] = a
            self._activities_by_slot[(a.subject, a.grade_level, a.classroom, a.period)].append(a)

        self._student_by_code: Dict[str, Student] = {s.code: s for s in self.students}

    # --- Construction from store rows ---
    @classmethod
    def from_rows(
        cls,
        grade_rows: Iterable[dict] = (),
        activity_rows: Iterable[dict] = (),
        student_rows: Iterable[dict] = (),
        assignment_rows: Iterable[dict] = (),
        teacher_names: Optional[Dict[str, str]] = None,
    ) -> "Snapshot":
        """
        Parses raw store rows. Rows that fail validation (grade outside [0, 5],
        percentage outside [0, 100], missing keys) are skipped and reported in
        the log; the engine itself never re-validates.
        """
        teacher_names = teacher_names or {}
        grades, derived, activities, students, assignments = [], [], [], [], []
        skipped = 0

        for row in grade_rows:
            try:
                if row.get('nombre_actividad') in RESERVED_ACTIVITY_NAMES:
                    derived.append(DerivedGrade.from_row(row))
                else:
                    grades.append(Grade.from_row(row))
            except InvalidRecordError as e:
                skipped += 1
                logger.warning(f"Nota omitida ({row.get('codigo_estudiantil')}): {e}")

        for row in activity_rows:
            try:
                activities.append(Activity.from_row(row))
            except InvalidRecordError as e:
                skipped += 1
                logger.warning(f"Actividad omitida ({row.get('nombre_actividad')}): {e}")

        for row in student_rows:
            try:
                students.append(Student.from_row(row))
            except InvalidRecordError as e:
                skipped += 1
                logger.warning(f"Estudiante omitido: {e}")

        for row in assignment_rows:
            key = str(row.get('id') or '')
            assignments.append(TeacherAssignment.from_row(row, teacher_name=teacher_names.get(key, '')))

        if skipped:
            logger.warning(f"{skipped} registros inválidos fueron omitidos al construir el snapshot")

        return cls(grades, activities, students, derived, assignments)

    # --- Lookups ---
    def student(self, code: str) -> Optional[Student]:
        return self._student_by_code.get(code)

    def grades_of(self, student_code: str) -> List[Grade]:
        return self._grades_by_student.get(student_code, [])

    def grade_for(self, student_code: str, activity: Activity) -> Optional[Grade]:
        return self._grade_by_key.get((student_code,) + activity.key)

    def activities_for(self, subject: str, grade_level: str, classroom: str, period: int) -> List[Activity]:
        return self._activities_by_slot.get((subject, grade_level, classroom, period), [])

    def weight_of(self, grade: Grade) -> Optional[float]:
        """The Activity owns the percentage; a Grade without an Activity falls back to its own."""
        activity = self._activity_by_key.get(grade.activity_key)
        if activity is not None:
            return activity.percentage
        return grade.percentage

    def weighted_pairs(self, grades: Iterable[Grade]) -> List[Tuple[float, Optional[float]]]:
        """(grade, percentage) pairs ready for relative_average."""
        return [(g.grade, self.weight_of(g)) for g in grades]

    def subjects_of(self, student_code: str) -> List[str]:
        seen = []
        for g in self.grades_of(student_code):
            if g.subject not in seen:
                seen.append(g.subject)
        return seen

    # --- Local patches (write path) ---
    def with_grade(self, grade: Grade) -> "Snapshot":
        """New snapshot with `grade` inserted or replacing the row with the same key."""
        return Snapshot(self.grades + (grade,), self.activities, self.students,
                        self.derived, self.assignments)

    def with_derived(self, rows: Iterable[DerivedGrade]) -> "Snapshot":
        """New snapshot whose derived rows are replaced by `rows` on matching keys."""
        new_rows = list(rows)
        replaced = {(r.student_code, r.subject, r.grade_level, r.classroom, r.period, r.activity_name)
                    for r in new_rows}
        kept = [d for d in self.derived
                if (d.student_code, d.subject, d.grade_level, d.classroom, d.period, d.activity_name) not in replaced]
        return Snapshot(self.grades, self.activities, self.students, kept + new_rows, self.assignments)

    def __repr__(self):
        return (f"Snapshot(grades={len(self.grades)}, activities={len(self.activities)}, "
                f"students={len(self.students)}, derived={len(self.derived)})")
