"""
Record types consumed by the engine.

Field names are English; the store uses the Spanish column names handled by
the `from_row` constructors (codigo_estudiantil, asignatura, grado, salon, ...).
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

FINAL_PERIODO = "Final Periodo"
FINAL_DEFINITIVA = "Final Definitiva"
RESERVED_ACTIVITY_NAMES = (FINAL_PERIODO, FINAL_DEFINITIVA)

MIN_GRADE = 0.0
MAX_GRADE = 5.0
MAX_PERCENTAGE = 100.0


class InvalidRecordError(ValueError):
    """A store row that cannot be turned into a record (missing keys, bad types, out of range)."""


def _to_float(value, column: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"Valor no numérico en '{column}': {value!r}")


def _to_percentage(value) -> Optional[float]:
    if value is None:
        return None
    pct = _to_float(value, 'porcentaje')
    if not 0 <= pct <= MAX_PERCENTAGE:
        raise InvalidRecordError(f"Porcentaje fuera de rango [0, 100]: {pct}")
    return pct


def _to_period(value, allow_annual: bool) -> int:
    try:
        period = int(value)
    except (TypeError, ValueError):
        raise InvalidRecordError(f"Periodo inválido: {value!r}")
    lowest = 0 if allow_annual else 1
    if not lowest <= period <= 4:
        raise InvalidRecordError(f"Periodo fuera de rango: {period}")
    return period


def _required(row: Dict[str, Any], column: str) -> str:
    value = row.get(column)
    if value is None or str(value).strip() == '':
        raise InvalidRecordError(f"Falta la columna '{column}'")
    return str(value)


@dataclass(frozen=True)
class Grade:
    """One teacher-entered mark: student x subject x period x activity."""
    student_code: str
    subject: str
    grade_level: str
    classroom: str
    period: int
    activity_name: str
    percentage: Optional[float]
    grade: float
    comment: Optional[str] = None
    notified: bool = False

    @property
    def is_derived(self) -> bool:
        return self.activity_name in RESERVED_ACTIVITY_NAMES

    @property
    def activity_key(self) -> Tuple[str, str, str, int, str]:
        return (self.subject, self.grade_level, self.classroom, self.period, self.activity_name)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Grade":
        grade = _to_float(row.get('nota'), 'nota')
        if not MIN_GRADE <= grade <= MAX_GRADE:
            raise InvalidRecordError(f"Nota fuera de rango [0, 5]: {grade}")
        return cls(
            student_code=_required(row, 'codigo_estudiantil'),
            subject=_required(row, 'asignatura'),
            grade_level=_required(row, 'grado'),
            classroom=_required(row, 'salon'),
            period=_to_period(row.get('periodo'), allow_annual=True),
            activity_name=_required(row, 'nombre_actividad'),
            percentage=_to_percentage(row.get('porcentaje')),
            grade=grade,
            comment=row.get('comentario'),
            notified=bool(row.get('notificado', False)),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'codigo_estudiantil': self.student_code,
            'asignatura': self.subject,
            'grado': self.grade_level,
            'salon': self.classroom,
            'periodo': self.period,
            'nombre_actividad': self.activity_name,
            'porcentaje': self.percentage,
            'nota': self.grade,
            'comentario': self.comment,
            'notificado': self.notified,
        }


@dataclass(frozen=True)
class DerivedGrade:
    """
    A computed "Final Periodo" (period 1..4) or "Final Definitiva" (period 0).
    Kept apart from Grade so it never enters raw-activity aggregations.
    """
    student_code: str
    subject: str
    grade_level: str
    classroom: str
    period: int
    activity_name: str
    grade: float
    comment: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DerivedGrade":
        name = _required(row, 'nombre_actividad')
        if name not in RESERVED_ACTIVITY_NAMES:
            raise InvalidRecordError(f"'{name}' no es una nota calculada")
        return cls(
            student_code=_required(row, 'codigo_estudiantil'),
            subject=_required(row, 'asignatura'),
            grade_level=_required(row, 'grado'),
            classroom=_required(row, 'salon'),
            period=_to_period(row.get('periodo'), allow_annual=True),
            activity_name=name,
            grade=_to_float(row.get('nota'), 'nota'),
            comment=row.get('comentario'),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            'codigo_estudiantil': self.student_code,
            'asignatura': self.subject,
            'grado': self.grade_level,
            'salon': self.classroom,
            'periodo': self.period,
            'nombre_actividad': self.activity_name,
            'porcentaje': None,
            'nota': self.grade,
            'comentario': self.comment,
            'notificado': False,
        }


@dataclass(frozen=True)
class Activity:
    """Defines an activity and its weight inside one period of a subject/classroom."""
    subject: str
    grade_level: str
    classroom: str
    period: int
    name: str
    percentage: Optional[float]

    @property
    def key(self) -> Tuple[str, str, str, int, str]:
        return (self.subject, self.grade_level, self.classroom, self.period, self.name)

    @property
    def is_weighted(self) -> bool:
        return self.percentage is not None and self.percentage > 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Activity":
        return cls(
            subject=_required(row, 'asignatura'),
            grade_level=_required(row, 'grado'),
            classroom=_required(row, 'salon'),
            period=_to_period(row.get('periodo'), allow_annual=False),
            name=_required(row, 'nombre_actividad'),
            percentage=_to_percentage(row.get('porcentaje')),
        )


@dataclass(frozen=True)
class Student:
    code: str
    first_name: str
    last_name: str
    grade_level: str
    classroom: str

    @property
    def full_name(self) -> str:
        # Apellidos primero, igual que en las planillas
        return f"{self.last_name} {self.first_name}"

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Student":
        return cls(
            code=_required(row, 'codigo_estudiantil'),
            first_name=str(row.get('nombre_estudiante') or '').strip(),
            last_name=str(row.get('apellidos_estudiante') or '').strip(),
            grade_level=_required(row, 'grado_estudiante'),
            classroom=_required(row, 'salon_estudiante'),
        )


@dataclass(frozen=True)
class AssignmentSlot:
    """One subject taught by one teacher in one grade level and classroom."""
    subject: str
    grade_level: str
    classroom: str
    teacher_code: str
    teacher_name: str


@dataclass(frozen=True)
class TeacherAssignment:
    teacher_code: str
    teacher_name: str
    subjects: Tuple[str, ...] = ()
    grade_levels: Tuple[str, ...] = ()
    classrooms: Tuple[str, ...] = ()

    def expand(self) -> List[AssignmentSlot]:
        """
        Expands the three lists into subject/grade/classroom slots.
        Lists of equal length are zipped position by position; otherwise the
        cartesian product is used. An empty list yields no slots.
        """
        if not (self.subjects and self.grade_levels and self.classrooms):
            return []

        if len(self.subjects) == len(self.grade_levels) == len(self.classrooms):
            combos = zip(self.subjects, self.grade_levels, self.classrooms)
        else:
            combos = (
                (s, g, c)
                for s in self.subjects
                for g in self.grade_levels
                for c in self.classrooms
            )
        return [
            AssignmentSlot(subject=s, grade_level=g, classroom=c,
                           teacher_code=self.teacher_code, teacher_name=self.teacher_name)
            for s, g, c in combos
        ]

    @classmethod
    def from_row(cls, row: Dict[str, Any], teacher_name: str = '') -> "TeacherAssignment":
        def as_tuple(value):
            return tuple(str(v) for v in value) if isinstance(value, (list, tuple)) else ()

        return cls(
            teacher_code=str(row.get('codigo') or row.get('id') or ''),
            teacher_name=teacher_name or str(row.get('nombre') or ''),
            subjects=as_tuple(row.get('Asignatura(s)')),
            grade_levels=as_tuple(row.get('Grado(s)')),
            classrooms=as_tuple(row.get('Salon(es)')),
        )


@dataclass(frozen=True)
class Scope:
    """
    Query filter. Every dimension is optional; None (or the literal "all")
    means "do not filter on this axis".
    """
    grade_level: Optional[str] = None
    classroom: Optional[str] = None
    subject: Optional[str] = None
    student_code: Optional[str] = None

    def __post_init__(self):
        for name in ('grade_level', 'classroom', 'subject', 'student_code'):
            if getattr(self, name) == "all":
                object.__setattr__(self, name, None)

    def includes_student(self, student: Student) -> bool:
        if self.grade_level is not None and student.grade_level != self.grade_level:
            return False
        if self.classroom is not None and student.classroom != self.classroom:
            return False
        if self.student_code is not None and student.code != self.student_code:
            return False
        return True

    def includes_grade(self, grade: Grade) -> bool:
        if self.grade_level is not None and grade.grade_level != self.grade_level:
            return False
        if self.classroom is not None and grade.classroom != self.classroom:
            return False
        if self.subject is not None and grade.subject != self.subject:
            return False
        if self.student_code is not None and grade.student_code != self.student_code:
            return False
        return True

    def without_subject(self) -> "Scope":
        return Scope(self.grade_level, self.classroom, None, self.student_code)

    def with_subject(self, subject: Optional[str]) -> "Scope":
        return Scope(self.grade_level, self.classroom, subject, self.student_code)


ALL = Scope()
