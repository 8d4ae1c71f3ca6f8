from normy_analytics.models import Activity, Grade, Student, TeacherAssignment
from normy_analytics.snapshot import Snapshot


def student(code, first_name, last_name, grade_level="Primero", classroom="A"):
    return Student(code, first_name, last_name, grade_level, classroom)


def activity(subject, name, percentage, period=1, grade_level="Primero", classroom="A"):
    return Activity(subject, grade_level, classroom, period, name, percentage)


def grade_on(student_code, act, value, percentage=None):
    """A grade for `act`; its own percentage mirrors the activity's unless given."""
    return Grade(
        student_code=student_code,
        subject=act.subject,
        grade_level=act.grade_level,
        classroom=act.classroom,
        period=act.period,
        activity_name=act.name,
        percentage=act.percentage if percentage is None else percentage,
        grade=value,
    )


def assignment(code, name, subjects, grade_levels, classrooms):
    return TeacherAssignment(code, name, tuple(subjects), tuple(grade_levels), tuple(classrooms))


def make_snapshot(students=(), activities=(), grades=(), assignments=()):
    return Snapshot(grades=grades, activities=activities, students=students, assignments=assignments)


def grade_row(**overrides):
    row = {
        'codigo_estudiantil': 'E001',
        'asignatura': 'Matemáticas',
        'grado': 'Primero',
        'salon': 'A',
        'periodo': 1,
        'nombre_actividad': 'Taller',
        'porcentaje': 20,
        'nota': 4.0,
        'comentario': None,
        'notificado': False,
    }
    row.update(overrides)
    return row


def student_row(**overrides):
    row = {
        'codigo_estudiantil': 'E001',
        'nombre_estudiante': 'Ana',
        'apellidos_estudiante': 'Pérez',
        'grado_estudiante': 'Primero',
        'salon_estudiante': 'A',
    }
    row.update(overrides)
    return row


def activity_row(**overrides):
    row = {
        'asignatura': 'Matemáticas',
        'grado': 'Primero',
        'salon': 'A',
        'periodo': 1,
        'nombre_actividad': 'Taller',
        'porcentaje': 20,
    }
    row.update(overrides)
    return row
