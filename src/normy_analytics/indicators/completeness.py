from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional

from normy_analytics.models import ALL, Scope
from normy_analytics.snapshot import Snapshot
from normy_analytics.utils.periods import Period, periods_for, sort_grade_levels

# Scan caps. They bound the work done per call; they are not a statement about
# how many problems exist. Check `truncated` before reading the list as complete.
MAX_DETAILS = 50
MAX_AUDIT_ISSUES = 200

FULL_PERCENTAGE = 100


def _round_points(value: float) -> int:
    return int(Decimal(repr(float(value))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CompletenessDetail:
    subject: str
    student: str
    student_code: str
    period: int
    registered_percentage: int
    missing_percentage: int
    description: str


@dataclass(frozen=True)
class CompletenessResult:
    complete: bool
    details: List[CompletenessDetail]
    truncated: bool = False


def check_completeness(snapshot: Snapshot, period: Period, scope: Scope = ALL) -> CompletenessResult:
    """
    Flags every (student, subject, period) whose graded weight is above 0 and
    below 100%. Nothing graded yet (0%) is "not started", not incomplete.

    Students are scanned in snapshot order. Once more than MAX_DETAILS details
    are collected the scan stops and the result is cut to MAX_DETAILS with
    truncated=True.
    """
    details: List[CompletenessDetail] = []
    periods = periods_for(period)

    for student in snapshot.students:
        if not scope.includes_student(student):
            continue

        grades = snapshot.grades_of(student.code)
        subjects = [scope.subject] if scope.subject else snapshot.subjects_of(student.code)

        for subject in subjects:
            for per in periods:
                weights = [
                    snapshot.weight_of(g) for g in grades
                    if g.subject == subject and g.period == per
                ]
                total = sum(w for w in weights if w is not None and w > 0)

                if 0 < total < FULL_PERCENTAGE:
                    registered = _round_points(total)
                    missing = FULL_PERCENTAGE - registered
                    details.append(CompletenessDetail(
                        subject=subject,
                        student=student.full_name,
                        student_code=student.code,
                        period=per,
                        registered_percentage=registered,
                        missing_percentage=missing,
                        description=(
                            f"{subject} (P{per}) - {student.full_name}: {registered}% de actividades "
                            f"registradas, faltan {missing}%"
                        ),
                    ))

        if len(details) > MAX_DETAILS:
            break

    truncated = len(details) > MAX_DETAILS
    return CompletenessResult(
        complete=not details,
        details=details[:MAX_DETAILS],
        truncated=truncated,
    )


# --- Assignment-driven audit ---

SIN_ESTUDIANTES = "sin_estudiantes"
SIN_ACTIVIDADES = "sin_actividades"
PORCENTAJE_INCOMPLETO = "porcentaje_incompleto"
NOTA_FALTANTE = "nota_faltante"


@dataclass(frozen=True)
class AuditIssue:
    kind: str
    description: str
    subject: str
    teacher: str
    grade_level: str
    classroom: str
    period: Optional[int] = None
    student: Optional[str] = None
    activity: Optional[str] = None
    missing_percentage: Optional[int] = None


@dataclass
class AuditResult:
    complete: bool
    issues: List[AuditIssue]
    truncated: bool
    summary: Dict[str, object] = field(default_factory=dict)


def audit_assignments(snapshot: Snapshot, period: Period, scope: Scope = ALL) -> AuditResult:
    """
    Audits completeness from the teachers' assignments outward.

    For every assigned subject/grade/classroom slot in scope it checks, per period:
      1. the classroom has students            -> sin_estudiantes
      2. weighted activities exist             -> sin_actividades
      3. their percentages reach 100%          -> porcentaje_incompleto
      4. every student has every activity      -> nota_faltante

    The audit is only "complete" when no issue was found AND at least one
    slot was actually verified.
    """
    issues: List[AuditIssue] = []
    verified_slots = 0
    verified_classrooms = set()
    verified_teachers = set()

    slots = [slot for a in snapshot.assignments for slot in a.expand()]
    if scope.grade_level:
        slots = [s for s in slots if s.grade_level == scope.grade_level]
    if scope.classroom:
        slots = [s for s in slots if s.classroom == scope.classroom]
    if scope.subject:
        slots = [s for s in slots if s.subject == scope.subject]

    periods = periods_for(period)

    def add(kind, description, slot, **extra):
        issues.append(AuditIssue(kind=kind, description=description, subject=slot.subject,
                                 teacher=slot.teacher_name, grade_level=slot.grade_level,
                                 classroom=slot.classroom, **extra))

    for slot in slots:
        header = f"{slot.subject} ({slot.grade_level} - {slot.classroom})"
        students = [
            s for s in snapshot.students
            if s.grade_level == slot.grade_level and s.classroom == slot.classroom
            and (scope.student_code is None or s.code == scope.student_code)
        ]

        if not students:
            add(SIN_ESTUDIANTES, f"{header}: No hay estudiantes registrados en este salón", slot)
            if len(issues) > MAX_AUDIT_ISSUES:
                break
            continue

        verified_slots += 1
        verified_classrooms.add((slot.grade_level, slot.classroom))
        verified_teachers.add(slot.teacher_name)

        for per in periods:
            activities = [
                a for a in snapshot.activities_for(slot.subject, slot.grade_level, slot.classroom, per)
                if a.is_weighted
            ]

            if not activities:
                add(SIN_ACTIVIDADES, f"{header} P{per}: No hay actividades registradas", slot, period=per)
                continue

            total = sum(a.percentage for a in activities)
            if total < FULL_PERCENTAGE:
                registered = _round_points(total)
                missing = FULL_PERCENTAGE - registered
                add(PORCENTAJE_INCOMPLETO,
                    f"{header} P{per}: Las actividades solo suman {registered}%, faltan {missing}%",
                    slot, period=per, missing_percentage=missing)

            for student in students:
                for activity in activities:
                    if snapshot.grade_for(student.code, activity) is None:
                        add(NOTA_FALTANTE,
                            f'{header} P{per}: {student.full_name} sin nota en "{activity.name}" '
                            f'({activity.percentage:g}%)',
                            slot, period=per, student=student.full_name, activity=activity.name)

            if len(issues) > MAX_AUDIT_ISSUES:
                break
        if len(issues) > MAX_AUDIT_ISSUES:
            break

    truncated = len(issues) > MAX_AUDIT_ISSUES
    kept = issues[:MAX_AUDIT_ISSUES]

    summary = {
        "materias_incompletas": len({i.subject for i in kept}),
        "profesores_pendientes": sorted({i.teacher for i in kept}),
        "grados_afectados": sort_grade_levels(i.grade_level for i in kept),
        "salones_afectados": sorted({i.classroom for i in kept}),
        "asignaciones_verificadas": verified_slots,
        "salones_verificados": len(verified_classrooms),
        "profesores_verificados": len(verified_teachers),
    }

    return AuditResult(
        complete=not issues and verified_slots > 0 and bool(slots),
        issues=kept,
        truncated=truncated,
        summary=summary,
    )
