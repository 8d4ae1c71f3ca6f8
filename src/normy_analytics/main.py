import argparse
import json
import sys
from dataclasses import asdict

from normy_analytics.api.services import build_report, load_snapshot
from normy_analytics.indicators.completeness import audit_assignments
from normy_analytics.indicators.finals import student_finals
from normy_analytics.models import Scope
from normy_analytics.pipeline import run_pipeline
from normy_analytics.utils.config_loader import load_config
from normy_analytics.utils.db import ping_database
from normy_analytics.utils.periods import parse_period


def _scope_from_args(args) -> Scope:
    return Scope(
        grade_level=getattr(args, 'grado', None),
        classroom=getattr(args, 'salon', None),
        subject=getattr(args, 'asignatura', None),
        student_code=getattr(args, 'estudiante', None),
    )


def _print_json(data):
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def cmd_reporte(args):
    snapshot = load_snapshot(load_config())
    _print_json(build_report(snapshot, args.periodo, _scope_from_args(args)))


def cmd_auditoria(args):
    snapshot = load_snapshot(load_config())
    result = audit_assignments(snapshot, parse_period(args.periodo), _scope_from_args(args))
    _print_json({
        "completo": result.complete,
        "truncado": result.truncated,
        "resumen": result.summary,
        "problemas": [asdict(i) for i in result.issues],
    })


def cmd_consolidado(args):
    snapshot = load_snapshot(load_config())
    _print_json(student_finals(args.estudiante, snapshot))


def cmd_recalcular(args):
    summary = run_pipeline()
    return 1 if summary.get("error") else 0


def cmd_ping(args):
    return 0 if ping_database() else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="normy-analytics", description="Notas Normy - estadísticas académicas")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_filters(p):
        p.add_argument("--periodo", default="anual", help="1..4 o 'anual'")
        p.add_argument("--grado")
        p.add_argument("--salon")
        p.add_argument("--asignatura")

    p = sub.add_parser("reporte", help="Estadísticas para un periodo y filtro")
    add_filters(p)
    p.add_argument("--estudiante")
    p.set_defaults(func=cmd_reporte)

    p = sub.add_parser("auditoria", help="Completitud de notas según la asignación de profesores")
    add_filters(p)
    p.set_defaults(func=cmd_auditoria)

    p = sub.add_parser("consolidado", help="Notas finales de un estudiante")
    p.add_argument("estudiante")
    p.set_defaults(func=cmd_consolidado)

    p = sub.add_parser("recalcular", help="Recalcula y guarda todas las notas finales")
    p.set_defaults(func=cmd_recalcular)

    p = sub.add_parser("ping", help="Verifica la conexión a la base de datos")
    p.set_defaults(func=cmd_ping)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())
