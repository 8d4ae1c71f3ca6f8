import unittest

from normy_analytics.indicators.aggregation import AggregationService
from normy_analytics.indicators.risk import (
    RiskDetector, at_risk_students, has_sufficient_data_for_risk_view,
)
from normy_analytics.models import Scope
from tests.factories import activity, grade_on, make_snapshot, student


class TestRiskDetector(unittest.TestCase):

    def test_low_average_with_enough_evidence(self):
        self.assertTrue(RiskDetector.is_at_risk(2.9, 40, 3))

    def test_not_enough_percentage(self):
        self.assertFalse(RiskDetector.is_at_risk(2.9, 39.9, 3))

    def test_not_enough_activities(self):
        self.assertFalse(RiskDetector.is_at_risk(2.9, 40, 2))

    def test_passing_average(self):
        self.assertFalse(RiskDetector.is_at_risk(3.0, 80, 6))

    def test_no_average(self):
        self.assertFalse(RiskDetector.is_at_risk(None, 80, 6))


class TestAtRiskStudents(unittest.TestCase):

    def setUp(self):
        self.lucia = student('E001', 'Lucía', 'Mora')
        self.pablo = student('E002', 'Pablo', 'Díaz')
        self.acts = [activity('Matemáticas', name, 20) for name in ('Taller', 'Quiz', 'Tarea')]
        self.solo = activity('Español', 'Lectura', 50)

    def test_flags_only_students_with_evidence(self):
        grades = [grade_on('E001', a, v) for a, v in zip(self.acts, (2.0, 2.5, 2.0))]
        grades.append(grade_on('E002', self.solo, 1.0))
        service = AggregationService(make_snapshot([self.lucia, self.pablo], self.acts + [self.solo], grades))

        flagged = at_risk_students(service, 1)

        self.assertEqual([(v.student.student_code, v.average) for v in flagged], [('E001', 2.17)])
        self.assertTrue(has_sufficient_data_for_risk_view(service, 1))

    def test_subject_filter_uses_subject_evidence(self):
        grades = [grade_on('E001', a, v) for a, v in zip(self.acts, (2.0, 2.5, 2.0))]
        service = AggregationService(make_snapshot([self.lucia], self.acts, grades))

        self.assertEqual(len(at_risk_students(service, 1, subject='Matemáticas')), 1)
        self.assertEqual(at_risk_students(service, 1, subject='Español'), [])

    def test_too_early_to_say(self):
        service = AggregationService(make_snapshot([self.pablo], [self.solo], [grade_on('E002', self.solo, 1.0)]))

        self.assertEqual(at_risk_students(service, 1), [])
        self.assertFalse(has_sufficient_data_for_risk_view(service, 1))

    def test_sufficient_data_without_anyone_flagged(self):
        grades = [grade_on('E001', a, 4.5) for a in self.acts]
        service = AggregationService(make_snapshot([self.lucia], self.acts, grades))

        self.assertEqual(at_risk_students(service, 1), [])
        self.assertTrue(has_sufficient_data_for_risk_view(service, 1))

    def test_scope_outside_students(self):
        grades = [grade_on('E001', a, v) for a, v in zip(self.acts, (2.0, 2.5, 2.0))]
        service = AggregationService(make_snapshot([self.lucia], self.acts, grades))

        self.assertFalse(has_sufficient_data_for_risk_view(service, 1, Scope(classroom='B')))


if __name__ == '__main__':
    unittest.main()
