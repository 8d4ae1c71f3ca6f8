from typing import Any, Callable, Dict, Iterable

from normy_analytics.api.client import fetch_table
from normy_analytics.indicators.aggregation import AggregationService
from normy_analytics.indicators.completeness import check_completeness
from normy_analytics.indicators.finals import recompute_finals
from normy_analytics.indicators.risk import at_risk_students, has_sufficient_data_for_risk_view
from normy_analytics.models import ALL, Grade, Scope
from normy_analytics.snapshot import Snapshot
from normy_analytics.utils.db import save_grade_rows_to_db
from normy_analytics.utils.logger import get_logger
from normy_analytics.utils.periods import PERIODS, parse_period

logger = get_logger(__name__)

# --- Tablas del store ---
TABLA_NOTAS = "Notas"
TABLA_ACTIVIDADES = "Nombre de Actividades"
TABLA_ESTUDIANTES = "Estudiantes"
TABLA_ASIGNACIONES = "Asignación Profesores"
TABLA_INTERNOS = "Internos"

RANKING_LIMIT = 10


def load_snapshot(config) -> Snapshot:
    """
    Downloads the grade book and builds the Snapshot for one session.

    Grades, activities and students are required: a failed download raises
    ConnectionError. Teacher assignments are optional (only the audit and
    the subject list use them).
    """
    supabase = config['SUPABASE']
    page_size = int(config['ANALISIS']['page_size']) if 'ANALISIS' in config else 1000

    def required(table):
        rows = fetch_table(supabase, table, page_size=page_size)
        if rows is None:
            raise ConnectionError(f"No se pudo descargar la tabla '{table}'")
        return rows

    def optional(table):
        rows = fetch_table(supabase, table, page_size=page_size)
        if rows is None:
            logger.warning(f"Tabla '{table}' no disponible; se continúa sin ella")
            return []
        return rows

    grade_rows = required(TABLA_NOTAS)
    activity_rows = required(TABLA_ACTIVIDADES)
    student_rows = required(TABLA_ESTUDIANTES)
    assignment_rows = optional(TABLA_ASIGNACIONES)
    internal_rows = optional(TABLA_INTERNOS)

    teacher_names = {str(r.get('id')): str(r.get('nombre') or '') for r in internal_rows}

    snapshot = Snapshot.from_rows(grade_rows, activity_rows, student_rows, assignment_rows, teacher_names)
    logger.info(f"Snapshot listo: {snapshot!r}")
    return snapshot


def build_report(snapshot: Snapshot, period=None, scope: Scope = ALL) -> Dict[str, Any]:
    """
    ORQUESTADOR DE ESTADÍSTICAS
    Every view of the statistics dashboard for one (period, scope), as a dict.
    `period` accepts 1..4, "anual", "all" or None.
    """
    period = parse_period(period)
    service = AggregationService(snapshot)

    ranking = service.ranking(period, scope, limit=RANKING_LIMIT)
    risk = at_risk_students(service, period, scope)
    completeness = check_completeness(snapshot, period, scope)

    return {
        "periodo": period,
        "promedio_institucional": service.institution_average(period),
        "promedio_filtro": service.scope_average(period, scope),
        "promedios_grado": [
            {"grado": g.grade_level, "promedio": g.average, "estudiantes": g.student_count}
            for g in service.grade_averages(period)
        ],
        "promedios_salon": [
            {"grado": c.grade_level, "salon": c.classroom, "promedio": c.average, "estudiantes": c.student_count}
            for c in service.classroom_averages(period, scope.grade_level)
        ],
        "promedios_asignatura": [
            {"asignatura": s.subject, "promedio": s.average, "notas": s.grade_count}
            for s in service.subject_averages(period, scope)
        ],
        "ranking": [
            {
                "posicion": pos,
                "codigo_estudiantil": v.student.student_code,
                "nombre": v.student.full_name,
                "grado": v.student.grade_level,
                "salon": v.student.classroom,
                "promedio": v.average,
            }
            for pos, v in enumerate(ranking, 1)
        ],
        "distribucion": service.distribution(period, scope),
        "evolucion": [
            {"periodo": p.period, "etiqueta": p.label, "promedio": p.display_value}
            for p in service.evolution(scope)
        ],
        "estudiantes_en_riesgo": [
            {
                "codigo_estudiantil": v.student.student_code,
                "nombre": v.student.full_name,
                "grado": v.student.grade_level,
                "salon": v.student.classroom,
                "promedio": v.average,
                "porcentaje_evaluado": v.total_percentage,
                "actividades": v.count_weighted,
            }
            for v in risk
        ],
        "datos_suficientes_riesgo": has_sufficient_data_for_risk_view(service, period, scope),
        "completitud": {
            "completo": completeness.complete,
            "truncado": completeness.truncated,
            "detalles": [d.description for d in completeness.details],
        },
    }


def apply_grade_edit(
    snapshot: Snapshot,
    grade: Grade,
    save_fn: Callable[[Iterable[Dict[str, Any]]], Any] = save_grade_rows_to_db,
) -> Snapshot:
    """
    Write path for one teacher edit:
      1. persist the grade
      2. patch the snapshot
      3. recompute "Final Periodo" (edited period) and "Final Definitiva" (period 0)
      4. persist the derived rows

    Returns the patched snapshot. Errors from `save_fn` propagate; nothing is
    recomputed if the grade itself could not be saved.
    """
    if grade.is_derived:
        raise ValueError(f"'{grade.activity_name}' es una nota calculada y no se edita a mano")
    if grade.period not in PERIODS:
        raise ValueError(f"Periodo inválido para una nota: {grade.period}")

    save_fn([grade.to_row()])
    patched = snapshot.with_grade(grade)

    derived = recompute_finals(grade.student_code, grade.subject, grade.period, patched)
    if derived:
        save_fn([d.to_row() for d in derived])
        patched = patched.with_derived(derived)

    logger.info(f"Nota guardada: {grade.student_code} / {grade.subject} / P{grade.period} / "
                f"{grade.activity_name} = {grade.grade} ({len(derived)} finales recalculadas)")
    return patched

