import unittest

from normy_analytics.indicators.finals import (
    all_finals, annual_final, annual_percentage_average, period_final,
    period_percentage_used, recompute_finals, student_finals,
)
from normy_analytics.indicators.weighted import relative_average
from normy_analytics.models import FINAL_DEFINITIVA, FINAL_PERIODO
from tests.factories import activity, grade_on, make_snapshot, student


class TestPeriodFinal(unittest.TestCase):

    def setUp(self):
        self.ana = student('E001', 'Ana', 'Pérez')
        self.taller = activity('Matemáticas', 'Taller', 20)
        self.examen = activity('Matemáticas', 'Examen', 30)
        self.quiz = activity('Matemáticas', 'Quiz', 50)
        self.activities = [self.taller, self.examen, self.quiz]

    def test_partial_period_keeps_raw_contribution(self):
        snapshot = make_snapshot([self.ana], self.activities, [grade_on('E001', self.taller, 4.0)])

        self.assertEqual(period_final('E001', 'Matemáticas', 1, snapshot), 0.8)
        # Same data, extrapolated view
        self.assertEqual(relative_average(snapshot.weighted_pairs(snapshot.grades)).average, 4.0)

    def test_full_coverage_matches_relative_average(self):
        grades = [
            grade_on('E001', self.taller, 4.0),
            grade_on('E001', self.examen, 3.0),
            grade_on('E001', self.quiz, 5.0),
        ]
        snapshot = make_snapshot([self.ana], self.activities, grades)

        final = period_final('E001', 'Matemáticas', 1, snapshot)
        relative = relative_average(snapshot.weighted_pairs(snapshot.grades)).average
        self.assertEqual(final, 4.2)
        self.assertEqual(final, relative)

    def test_nothing_graded_is_none(self):
        snapshot = make_snapshot([self.ana], self.activities, [])
        self.assertIsNone(period_final('E001', 'Matemáticas', 1, snapshot))

    def test_unknown_student_is_none(self):
        snapshot = make_snapshot([self.ana], self.activities, [grade_on('E001', self.taller, 4.0)])
        self.assertIsNone(period_final('E999', 'Matemáticas', 1, snapshot))

    def test_unweighted_activity_and_orphan_grade_are_ignored(self):
        bonus = activity('Matemáticas', 'Bonus', 0)
        orphan = activity('Matemáticas', 'Sin definir', 40)
        grades = [
            grade_on('E001', self.taller, 5.0),
            grade_on('E001', bonus, 5.0),
            grade_on('E001', orphan, 5.0),
        ]
        snapshot = make_snapshot([self.ana], self.activities + [bonus], grades)

        self.assertEqual(period_final('E001', 'Matemáticas', 1, snapshot), 1.0)

    def test_activity_from_another_classroom_is_ignored(self):
        other_room = activity('Matemáticas', 'Taller', 20, classroom='B')
        snapshot = make_snapshot([self.ana], [other_room], [grade_on('E001', other_room, 5.0)])
        self.assertIsNone(period_final('E001', 'Matemáticas', 1, snapshot))


class TestAnnualFinal(unittest.TestCase):

    def setUp(self):
        self.ana = student('E001', 'Ana', 'Pérez')

    def test_missing_periods_count_as_zero(self):
        final_exam = activity('Matemáticas', 'Examen final', 100, period=4)
        snapshot = make_snapshot([self.ana], [final_exam], [grade_on('E001', final_exam, 4.0)])

        self.assertEqual(annual_final('E001', 'Matemáticas', snapshot), 1.0)

    def test_all_periods_missing_is_none(self):
        snapshot = make_snapshot([self.ana], [], [])
        self.assertIsNone(annual_final('E001', 'Matemáticas', snapshot))

    def test_four_full_periods(self):
        acts = [activity('Matemáticas', 'Examen', 100, period=p) for p in (1, 2, 3, 4)]
        grades = [grade_on('E001', a, v) for a, v in zip(acts, (3.0, 4.0, 4.5, 5.0))]
        snapshot = make_snapshot([self.ana], acts, grades)

        self.assertEqual(annual_final('E001', 'Matemáticas', snapshot), 4.13)


class TestDerivedRows(unittest.TestCase):

    def setUp(self):
        self.ana = student('E001', 'Ana', 'Pérez')
        self.taller = activity('Matemáticas', 'Taller', 20)
        self.proyecto = activity('Matemáticas', 'Proyecto', 100, period=2)
        self.snapshot = make_snapshot(
            [self.ana],
            [self.taller, self.proyecto],
            [grade_on('E001', self.taller, 4.0), grade_on('E001', self.proyecto, 3.0)],
        )

    def test_recompute_finals_returns_period_and_annual_rows(self):
        rows = recompute_finals('E001', 'Matemáticas', 1, self.snapshot)

        self.assertEqual([(r.activity_name, r.period, r.grade) for r in rows], [
            (FINAL_PERIODO, 1, 0.8),
            (FINAL_DEFINITIVA, 0, 0.95),
        ])
        self.assertTrue(all(r.grade_level == 'Primero' and r.classroom == 'A' for r in rows))

    def test_recompute_finals_unknown_student(self):
        self.assertEqual(recompute_finals('E999', 'Matemáticas', 1, self.snapshot), [])

    def test_all_finals(self):
        rows = all_finals('E001', 'Matemáticas', self.snapshot)
        self.assertEqual([(r.period, r.grade) for r in rows], [(1, 0.8), (2, 3.0), (0, 0.95)])

    def test_derived_row_is_stored_without_percentage(self):
        row = recompute_finals('E001', 'Matemáticas', 1, self.snapshot)[0].to_row()
        self.assertIsNone(row['porcentaje'])
        self.assertEqual(row['nombre_actividad'], 'Final Periodo')

    def test_student_finals_sheet(self):
        sheet = student_finals('E001', self.snapshot)

        self.assertEqual(list(sheet), ['Matemáticas'])
        self.assertEqual(sheet['Matemáticas']['periodos'], {1: 0.8, 2: 3.0, 3: None, 4: None})
        self.assertEqual(sheet['Matemáticas']['final_definitiva'], 0.95)


class TestPercentageUsed(unittest.TestCase):

    def test_period_and_annual_percentages(self):
        acts = [
            activity('Matemáticas', 'Taller', 40),
            activity('Matemáticas', 'Examen', 60),
            activity('Matemáticas', 'Proyecto', 50, period=2),
            activity('Matemáticas', 'Sin peso', None, period=2),
        ]
        self.assertEqual(period_percentage_used(acts, 1), 100)
        self.assertEqual(period_percentage_used(acts, 2), 50)
        self.assertEqual(period_percentage_used(acts, 3), 0)
        self.assertEqual(annual_percentage_average(acts), 37.5)


if __name__ == '__main__':
    unittest.main()
