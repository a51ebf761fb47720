from decimal import Decimal

from django.test import SimpleTestCase, override_settings

from apps.performance.services import scoring
from apps.performance.services.validation import KpiValidator, ValidationRules


class HigherBetterScoringTests(SimpleTestCase):

    def test_92_percent_is_good(self):
        result = scoring.calculate_higher_better(92, 100)
        self.assertEqual(result.percentage, 92.0)
        self.assertEqual(result.score, 3)
        self.assertEqual(result.band, 'Good')
        self.assertIn('92.0%', result.explanation)

    def test_band_boundaries(self):
        self.assertEqual(scoring.calculate_higher_better(120, 100).score, 5)
        self.assertEqual(scoring.calculate_higher_better(100, 100).score, 4)
        self.assertEqual(scoring.calculate_higher_better(80, 100).score, 3)
        self.assertEqual(scoring.calculate_higher_better(60, 100).score, 2)
        result = scoring.calculate_higher_better(59.9, 100)
        self.assertEqual(result.score, 1)
        self.assertEqual(result.band, 'Needs Improvement')

    def test_percentage_is_capped(self):
        result = scoring.calculate_higher_better(500, 100)
        self.assertEqual(result.percentage, 150.0)
        self.assertEqual(result.score, 5)

    def test_custom_cap(self):
        self.assertEqual(scoring.calculate_higher_better(500, 100, cap=200).percentage, 200.0)

    def test_non_positive_target_is_invalid(self):
        result = scoring.calculate_higher_better(10, 0)
        self.assertEqual(result.score, 0)
        self.assertEqual(result.band, 'Invalid')


class LowerBetterScoringTests(SimpleTestCase):

    def test_zero_actual_is_perfect(self):
        result = scoring.calculate_lower_better(0, 5)
        self.assertEqual(result.percentage, 150.0)
        self.assertEqual(result.score, 5)
        self.assertEqual(result.band, 'Excellent')

    def test_below_target_scores_above_100(self):
        result = scoring.calculate_lower_better(4, 5)
        self.assertEqual(result.percentage, 125.0)
        self.assertEqual(result.score, 5)

    def test_above_target_scores_lower(self):
        result = scoring.calculate_lower_better(10, 5)
        self.assertEqual(result.percentage, 50.0)
        self.assertEqual(result.score, 1)


class BooleanAndDispatchTests(SimpleTestCase):

    def test_boolean(self):
        self.assertEqual(scoring.calculate_boolean(True).score, 4)
        self.assertEqual(scoring.calculate_boolean(False).band, 'Not Achieved')

    def test_dispatch_boolean_uses_nonzero(self):
        self.assertEqual(scoring.calculate_score(scoring.BOOLEAN, 1, 1).percentage, 100.0)
        self.assertEqual(scoring.calculate_score(scoring.BOOLEAN, 0, 1).score, 0)

    def test_behavior_scored_like_higher_better(self):
        self.assertEqual(
            scoring.calculate_score(scoring.BEHAVIOR, 92, 100),
            scoring.calculate_higher_better(92, 100),
        )

    def test_unknown_type_is_invalid(self):
        self.assertEqual(scoring.calculate_score('OTHER', 1, 1).band, 'Invalid')


class MilestoneScoringTests(SimpleTestCase):
    ascending = [
        {'threshold': 10, 'score_level': 60},
        {'threshold': 20, 'score_level': 80},
        {'threshold': 30, 'score_level': 100},
    ]
    descending = [(5, 60), (3, 80), (1, 100)]

    def test_highest_satisfied_level_wins(self):
        result = scoring.calculate_milestone(25, self.ascending)
        self.assertEqual(result.score, 80)
        self.assertEqual(result.percentage, 80.0)
        self.assertEqual(result.band, 'Milestone Achieved')

    def test_nothing_reached(self):
        result = scoring.calculate_milestone(5, self.ascending)
        self.assertEqual(result.score, 0)
        self.assertEqual(result.band, 'Not Achieved')

    def test_descending_scale(self):
        self.assertEqual(scoring.calculate_milestone(2, self.descending).score, 80)
        self.assertEqual(scoring.calculate_milestone(0.5, self.descending).score, 100)

    def test_camel_case_score_level_accepted(self):
        result = scoring.calculate_milestone(12, [{'threshold': 10, 'scoreLevel': 3}])
        self.assertEqual(result.score, 3)

    def test_empty_scale_is_invalid(self):
        self.assertEqual(scoring.calculate_milestone(12, []).band, 'Invalid')

    def test_scale_validation(self):
        self.assertEqual(scoring.validate_milestone_scale(self.ascending), [])
        self.assertTrue(scoring.validate_milestone_scale([]))
        self.assertTrue(scoring.validate_milestone_scale([(10, 60), (10, 80)]))
        self.assertTrue(scoring.validate_milestone_scale([(10, 80), (20, 60)]))
        self.assertTrue(scoring.validate_milestone_scale([(i, i) for i in range(11)]))
        self.assertTrue(scoring.validate_milestone_scale([{'threshold': 'x'}]))


def _kpi(title='Increase monthly revenue', weight=25, **overrides):
    kpi = {
        'title': title,
        'unit': 'USD',
        'target': 1000,
        'weight': weight,
        'type': scoring.HIGHER_BETTER,
        'data_source': 'CRM',
        'description': 'Revenue booked in the CRM',
    }
    kpi.update(overrides)
    return kpi


class KpiValidatorTests(SimpleTestCase):

    def setUp(self):
        self.validator = KpiValidator(ValidationRules())

    def test_valid_set(self):
        kpis = [_kpi(f'Increase metric number {i}', 25) for i in range(4)]
        result = self.validator.validate_set(kpis)
        self.assertTrue(result.valid)
        self.assertEqual(result.warnings, [])

    def test_too_few_kpis(self):
        result = self.validator.validate_set([_kpi(weight=50), _kpi('Reduce customer churn', weight=50)])
        self.assertIn('You must create at least 3 KPIs (currently 2)', result.errors)

    def test_total_weight_must_be_100(self):
        kpis = [_kpi(f'Increase metric number {i}', 30) for i in range(3)]
        result = self.validator.validate_set(kpis)
        self.assertIn('Total weight must equal 100% (currently 90%)', result.errors)

    def test_weight_bounds_are_reported_per_kpi(self):
        kpis = [_kpi('Increase metric one', 50), _kpi('Increase metric two', 45), _kpi('Increase metric three', 5)]
        result = self.validator.validate_set(kpis)
        self.assertIn('KPI 1: Weight must be between 5% and 40% (currently 50%)', result.errors)

    def test_duplicate_titles(self):
        kpis = [_kpi('Same title here', 40), _kpi('same title here ', 30), _kpi('Other title here', 30)]
        result = self.validator.validate_set(kpis)
        self.assertIn('KPI titles must be unique', result.errors)

    def test_missing_fields(self):
        kpis = [_kpi(title='', unit='', target=0, weight=40), _kpi('Metric two title', 30), _kpi('Metric three title', 30)]
        result = self.validator.validate_set(kpis)
        self.assertIn('KPI 1: Title is required', result.errors)
        self.assertIn('KPI 1: Unit of measurement is required', result.errors)
        self.assertIn('KPI 1: Target must be greater than 0', result.errors)

    def test_unbalanced_weights_warn(self):
        kpis = [_kpi('Increase metric one', 40), _kpi('Increase metric two', 40), _kpi('Increase metric three', 15), _kpi('Increase metric four', 5)]
        result = self.validator.validate_set(kpis)
        self.assertTrue(result.valid)
        self.assertIn('Consider balancing weights more evenly across KPIs', result.warnings)

    def test_content_warnings(self):
        kpis = [_kpi('Short', 40, data_source='', description=''), _kpi('Metric two title', 30), _kpi('Metric three title', 30)]
        result = self.validator.validate_set(kpis)
        self.assertIn('KPI 1: Data source is recommended for tracking', result.warnings)
        self.assertIn('KPI 1: Title could be more specific', result.warnings)
        self.assertIn('KPI 1: Adding a description helps clarify the objective', result.warnings)

    def test_validate_single_rejects_sixth_kpi(self):
        current = [_kpi(f'Metric number {i}', 20) for i in range(5)]
        result = self.validator.validate_single(_kpi('Another metric', 10), current)
        self.assertIn('Cannot add more than 5 KPIs', result.errors)

    def test_smart_score(self):
        self.assertEqual(self.validator.smart_score(_kpi()), 100)
        self.assertEqual(self.validator.smart_score(_kpi('Sales', unit='', data_source='', description='')), 50)

    def test_suggest_weights(self):
        self.assertEqual(self.validator.suggest_weights(3), [34, 33, 33])
        self.assertEqual(self.validator.suggest_weights(4), [25, 25, 25, 25])
        with self.assertRaises(ValueError):
            self.validator.suggest_weights(6)

    def test_fractional_weights_summing_to_100(self):
        weights = [20.17, Decimal('25.05'), '35.01', Decimal('19.77')]
        kpis = [_kpi(f'Increase metric number {i}', weight) for i, weight in enumerate(weights)]
        result = self.validator.validate_set(kpis)
        self.assertEqual(result.errors, [])
        self.assertEqual(self.validator.summary(kpis), '4/3-5 KPIs | Weight 100%')

    def test_fractional_total_is_reported_exactly(self):
        kpis = [_kpi(f'Increase metric number {i}', weight) for i, weight in enumerate([33.3, 33.3, 33.3])]
        result = self.validator.validate_set(kpis)
        self.assertIn('Total weight must equal 100% (currently 99.9%)', result.errors)

    def test_summary(self):
        kpis = [_kpi(weight=40), _kpi(weight=30)]
        self.assertEqual(self.validator.summary(kpis), '2/3-5 KPIs | Weight: 70% (30% remaining)')

    @override_settings(KPI_MIN_KPIS=1, KPI_MAX_KPIS=2)
    def test_rules_from_settings(self):
        rules = ValidationRules.from_settings()
        self.assertEqual((rules.min_kpis, rules.max_kpis), (1, 2))
