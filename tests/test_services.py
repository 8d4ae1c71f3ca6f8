import configparser
import unittest
from unittest.mock import MagicMock, patch

from normy_analytics.api import services
from normy_analytics.models import FINAL_DEFINITIVA, FINAL_PERIODO, Grade, Scope
from tests.factories import activity, activity_row, grade_on, grade_row, make_snapshot, student, student_row


def _config():
    config = configparser.ConfigParser()
    config['SUPABASE'] = {'url': 'https://demo.supabase.co', 'key': 'secreto'}
    config['ANALISIS'] = {'max_workers': '2', 'page_size': '500'}
    return config


class TestLoadSnapshot(unittest.TestCase):

    @patch('normy_analytics.api.services.fetch_table')
    def test_builds_snapshot_from_tables(self, mock_fetch):
        tables = {
            services.TABLA_NOTAS: [grade_row(), grade_row(nombre_actividad=FINAL_DEFINITIVA, periodo=0)],
            services.TABLA_ACTIVIDADES: [activity_row()],
            services.TABLA_ESTUDIANTES: [student_row()],
            services.TABLA_ASIGNACIONES: [{'id': 3, 'Asignatura(s)': ['Matemáticas'],
                                          'Grado(s)': ['Primero'], 'Salon(es)': ['A']}],
            services.TABLA_INTERNOS: [{'id': 3, 'codigo': 'P03', 'nombre': 'Marta Gómez'}],
        }
        mock_fetch.side_effect = lambda config, table, page_size: tables[table]

        snapshot = services.load_snapshot(_config())

        self.assertEqual(len(snapshot.grades), 1)
        self.assertEqual(len(snapshot.derived), 1)
        self.assertEqual(snapshot.student('E001').full_name, 'Pérez Ana')
        self.assertEqual(snapshot.assignments[0].teacher_name, 'Marta Gómez')
        self.assertEqual(mock_fetch.call_args.kwargs['page_size'], 500)

    @patch('normy_analytics.api.services.fetch_table')
    def test_required_table_failure_raises(self, mock_fetch):
        mock_fetch.return_value = None

        with self.assertRaises(ConnectionError):
            services.load_snapshot(_config())

    @patch('normy_analytics.api.services.fetch_table')
    def test_optional_tables_may_fail(self, mock_fetch):
        def fetch(config, table, page_size):
            if table in (services.TABLA_ASIGNACIONES, services.TABLA_INTERNOS):
                return None
            return []
        mock_fetch.side_effect = fetch

        snapshot = services.load_snapshot(_config())
        self.assertEqual(snapshot.assignments, ())


class TestBuildReport(unittest.TestCase):

    def setUp(self):
        acts = [activity('Matemáticas', n, 20) for n in ('Taller', 'Quiz', 'Tarea')]
        self.snapshot = make_snapshot(
            [student('E001', 'Lucía', 'Mora'), student('E002', 'Pablo', 'Díaz')],
            acts,
            [grade_on('E001', a, 2.0) for a in acts] + [grade_on('E002', acts[0], 4.8)],
        )

    def test_report_sections(self):
        report = services.build_report(self.snapshot, '1')

        self.assertEqual(report['periodo'], 1)
        self.assertEqual(report['promedio_institucional'], 3.4)
        self.assertEqual([r['codigo_estudiantil'] for r in report['ranking']], ['E002', 'E001'])
        self.assertEqual(report['ranking'][0]['posicion'], 1)
        self.assertEqual(report['distribucion'], {'bajo': 1, 'basico': 0, 'alto': 0, 'superior': 1})
        self.assertEqual([r['codigo_estudiantil'] for r in report['estudiantes_en_riesgo']], ['E001'])
        self.assertTrue(report['datos_suficientes_riesgo'])
        self.assertFalse(report['completitud']['completo'])
        self.assertEqual(len(report['completitud']['detalles']), 2)
        self.assertEqual(report['evolucion'][1]['promedio'], 0)

    def test_report_with_scope(self):
        report = services.build_report(self.snapshot, None, Scope(student_code='E002'))

        self.assertEqual(report['periodo'], 'anual')
        self.assertEqual(report['promedio_filtro'], 1.2)
        self.assertEqual(len(report['ranking']), 1)

    def test_invalid_period(self):
        with self.assertRaises(ValueError):
            services.build_report(self.snapshot, 9)


class TestApplyGradeEdit(unittest.TestCase):

    def setUp(self):
        self.taller = activity('Matemáticas', 'Taller', 20)
        self.snapshot = make_snapshot([student('E001', 'Ana', 'Pérez')], [self.taller], [])

    def test_persists_grade_then_finals(self):
        save_fn = MagicMock()

        patched = services.apply_grade_edit(self.snapshot, grade_on('E001', self.taller, 4.0), save_fn)

        self.assertEqual(save_fn.call_count, 2)
        first_rows = save_fn.call_args_list[0].args[0]
        derived_rows = save_fn.call_args_list[1].args[0]
        self.assertEqual(first_rows[0]['nombre_actividad'], 'Taller')
        self.assertEqual([(r['nombre_actividad'], r['periodo'], r['nota']) for r in derived_rows], [
            (FINAL_PERIODO, 1, 0.8),
            (FINAL_DEFINITIVA, 0, 0.2),
        ])
        self.assertEqual(patched.grade_for('E001', self.taller).grade, 4.0)
        self.assertEqual(len(patched.derived), 2)
        self.assertEqual(self.snapshot.grades, ())

    def test_derived_rows_cannot_be_edited(self):
        save_fn = MagicMock()
        final = Grade('E001', 'Matemáticas', 'Primero', 'A', 1, FINAL_PERIODO, None, 4.0)

        with self.assertRaises(ValueError):
            services.apply_grade_edit(self.snapshot, final, save_fn)
        save_fn.assert_not_called()

    def test_save_failure_propagates(self):
        save_fn = MagicMock(side_effect=RuntimeError("db caída"))

        with self.assertRaises(RuntimeError):
            services.apply_grade_edit(self.snapshot, grade_on('E001', self.taller, 4.0), save_fn)
        save_fn.assert_called_once()


if __name__ == '__main__':
    unittest.main()
