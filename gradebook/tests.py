import json
from dataclasses import FrozenInstanceError
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, TestCase, override_settings

from .batch import bundle_from_mapping, calculate_batch
from .calculations import (
    ScoreBundle, ScoreItem, WeightConfig,
    aggregate_category, rescale_percentage, compose_weighted_grade,
    compute_term_grade, compute_midterm_grade, compute_finals_grade,
)
from .choices import Term
from .exceptions import ConfigurationMissing, InvalidGradeScale, InvalidWeightConfig
from .lookups import get_active_weights, get_grade_scale, require_active_weights
from .models import GradeWeights, GradePointEquivalent
from .scales import GradeScale, GradeScaleEntry, resolve_grade_point
from .tasks import calculate_term_grades_task
from .utils import round2, round_whole, to_decimal


def default_weights():
    return WeightConfig(
        quiz='0.30', class_standing='0.25', sep='0.05', project='0.10', exam_portion='0.30'
    )


def default_scale_entries():
    """Grade point table supplied highest range first."""
    return [
        GradeScaleEntry(min_percentage=97, max_percentage=100, grade_point='1.00'),
        GradeScaleEntry(min_percentage=94, max_percentage=96, grade_point='1.25'),
        GradeScaleEntry(min_percentage=91, max_percentage=93, grade_point='1.50'),
        GradeScaleEntry(min_percentage=88, max_percentage=90, grade_point='1.75'),
        GradeScaleEntry(min_percentage=85, max_percentage=87, grade_point='2.00'),
        GradeScaleEntry(min_percentage=82, max_percentage=84, grade_point='2.25'),
        GradeScaleEntry(min_percentage=79, max_percentage=81, grade_point='2.50'),
        GradeScaleEntry(min_percentage=76, max_percentage=78, grade_point='2.75'),
        GradeScaleEntry(min_percentage=74, max_percentage=75, grade_point='3.00'),
    ]


def scenario_a_bundle(**overrides):
    values = {
        'quizzes': [ScoreItem(80, 100, 'Quiz 1')],
        'class_standing_items': [ScoreItem(45, 50, 'SW 1')],
        'recitation_score': 90,
        'attendance_score': 95,
        'sep_score': 100,
        'project_score': 90,
        'prelim_score': 70,
        'prelim_total': 100,
        'midterm_score': 80,
        'midterm_total': 100,
    }
    values.update(overrides)
    return ScoreBundle(**values)


class RoundingTest(SimpleTestCase):
    """Tests for the shared rounding helpers."""

    def test_round2_halves_away_from_zero(self):
        self.assertEqual(round2(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(round2(Decimal('-2.345')), Decimal('-2.35'))
        self.assertEqual(round2('23.1675'), Decimal('23.17'))

    def test_round_whole_halves_away_from_zero(self):
        """86.5 rounds up, not to the nearest even number."""
        self.assertEqual(round_whole(Decimal('86.50')), 87)
        self.assertEqual(round_whole(Decimal('87.49')), 87)
        self.assertEqual(round_whole(Decimal('-0.5')), -1)

    def test_to_decimal_defaults_blank_values(self):
        self.assertEqual(to_decimal(None), Decimal('0'))
        self.assertEqual(to_decimal('  '), Decimal('0'))
        self.assertEqual(to_decimal(0.1), Decimal('0.1'))

    def test_to_decimal_rejects_non_numeric(self):
        with self.assertRaises(ValueError):
            to_decimal('abc')
        with self.assertRaises(ValueError):
            to_decimal(True)
        with self.assertRaises(ValueError):
            to_decimal('NaN')


class AggregateCategoryTest(SimpleTestCase):
    """Tests for summing a category's items."""

    def test_empty_list(self):
        self.assertEqual(aggregate_category([]), (Decimal('0'), Decimal('0')))

    def test_sums_scores_and_totals(self):
        items = [ScoreItem(8, 10), ScoreItem(15, 20), ScoreItem(45, 50)]
        self.assertEqual(aggregate_category(items), (Decimal('68'), Decimal('80')))

    def test_missing_values_count_as_zero(self):
        items = [ScoreItem(None, 10), ScoreItem(5, None), ScoreItem(7, 10)]
        self.assertEqual(aggregate_category(items), (Decimal('12'), Decimal('20')))


class RescalePercentageTest(SimpleTestCase):
    """Tests for the 30-100 percentage grade scale."""

    def test_zero_total_is_zero(self):
        self.assertEqual(rescale_percentage(0, 0), Decimal('0'))
        self.assertEqual(rescale_percentage(15, 0), Decimal('0'))

    def test_perfect_score_is_100(self):
        for total in (1, 7, 50, 200):
            self.assertEqual(rescale_percentage(total, total), Decimal('100.00'))

    def test_zero_score_is_30(self):
        for total in (1, 7, 50, 200):
            self.assertEqual(rescale_percentage(0, total), Decimal('30.00'))

    def test_partial_score(self):
        self.assertEqual(rescale_percentage(80, 100), Decimal('86.00'))
        self.assertEqual(rescale_percentage(45, 50), Decimal('93.00'))
        self.assertEqual(rescale_percentage(1, 3), Decimal('53.33'))


class ComposeWeightedGradeTest(SimpleTestCase):
    """Tests for applying weights to the category grades."""

    def test_scenario_a_breakdown(self):
        breakdown = compose_weighted_grade(
            quiz_pg=Decimal('86.00'),
            class_standing_pg=Decimal('93.00'),
            sep_pg=100,
            project_pg=90,
            exam_pg=Decimal('82.50'),
            recitation_score=90,
            attendance_score=95,
            weights=default_weights(),
        )
        self.assertEqual(breakdown.quiz_weighted, Decimal('25.80'))
        self.assertEqual(breakdown.class_standing_average, Decimal('92.67'))
        self.assertEqual(breakdown.class_standing_weighted, Decimal('23.17'))
        self.assertEqual(breakdown.sep_weighted, Decimal('5.00'))
        self.assertEqual(breakdown.project_weighted, Decimal('9.00'))
        self.assertEqual(breakdown.exam_weighted, Decimal('24.75'))
        self.assertEqual(breakdown.final_percentage, Decimal('87.72'))
        self.assertEqual(breakdown.final_rounded, 88)

    def test_missing_weights_raise(self):
        with self.assertRaises(ConfigurationMissing):
            compose_weighted_grade(86, 93, 100, 90, 82, 90, 95, None)


class WeightConfigTest(SimpleTestCase):
    """Tests for weight validation."""

    def test_valid_weights(self):
        weights = default_weights().validate()
        self.assertEqual(weights.total, Decimal('1.00'))

    def test_weights_must_sum_to_one(self):
        weights = WeightConfig(quiz='0.40', class_standing='0.25', sep='0.05',
                               project='0.10', exam_portion='0.30')
        with self.assertRaises(InvalidWeightConfig):
            weights.validate()

    def test_weight_out_of_range(self):
        weights = WeightConfig(quiz='1.20', class_standing='-0.20', sep='0',
                               project='0', exam_portion='0')
        with self.assertRaises(InvalidWeightConfig):
            weights.validate()

    def test_sum_check_can_be_relaxed(self):
        weights = WeightConfig(quiz='0.40', class_standing='0.25', sep='0.05',
                               project='0.10', exam_portion='0.30')
        with self.assertLogs('gradebook.calculations', level='WARNING'):
            weights.validate(enforce_sum=False)


class GradeScaleTest(SimpleTestCase):
    """Tests for the ordered grade point table."""

    def test_find_entry(self):
        scale = GradeScale(default_scale_entries())
        self.assertEqual(scale.find(88).grade_point, Decimal('1.75'))
        self.assertEqual(scale.find(100).grade_point, Decimal('1.00'))
        self.assertEqual(scale.find(74).grade_point, Decimal('3.00'))

    def test_lookup_ignores_supplied_order(self):
        """Shuffled input resolves the same as the descending table."""
        entries = default_scale_entries()
        shuffled = entries[3:] + entries[:3]
        ascending = list(reversed(entries))
        for value in range(74, 101):
            expected = GradeScale(entries).find(value)
            self.assertEqual(GradeScale(shuffled).find(value), expected)
            self.assertEqual(GradeScale(ascending).find(value), expected)

    def test_gap_matches_nothing(self):
        entries = [e for e in default_scale_entries() if e.min_percentage != 91]
        scale = GradeScale(entries)
        self.assertIsNone(scale.find(91))
        self.assertIsNone(scale.find(101))
        self.assertIsNone(scale.find(10))

    def test_unbounded_minimum(self):
        scale = GradeScale([
            GradeScaleEntry(min_percentage=None, max_percentage=80, grade_point='3.00'),
            GradeScaleEntry(min_percentage=81, max_percentage=100, grade_point='1.00'),
        ])
        self.assertEqual(scale.find(-5).grade_point, Decimal('3.00'))
        self.assertEqual(scale.find(80).grade_point, Decimal('3.00'))
        self.assertEqual(scale.find(81).grade_point, Decimal('1.00'))

    def test_overlapping_ranges_rejected(self):
        with self.assertRaises(InvalidGradeScale):
            GradeScale([
                GradeScaleEntry(min_percentage=85, max_percentage=90, grade_point='1.75'),
                GradeScaleEntry(min_percentage=88, max_percentage=95, grade_point='1.50'),
            ])

    def test_two_unbounded_ranges_rejected(self):
        with self.assertRaises(InvalidGradeScale):
            GradeScale([
                GradeScaleEntry(min_percentage=None, max_percentage=80, grade_point='3.00'),
                GradeScaleEntry(min_percentage=None, max_percentage=90, grade_point='2.00'),
            ])

    def test_inverted_range_rejected(self):
        with self.assertRaises(InvalidGradeScale):
            GradeScale([GradeScaleEntry(min_percentage=90, max_percentage=80, grade_point='2.00')])

    def test_accepts_mappings(self):
        scale = GradeScale([{'min_percentage': 74, 'max_percentage': 100, 'grade_point': '2.00'}])
        self.assertEqual(len(scale), 1)


class ResolveGradePointTest(SimpleTestCase):
    """Tests for resolving the grade point of a final rounded percentage."""

    def test_at_or_below_73_always_fails(self):
        """The failing floor wins even when the table covers the value."""
        generous = [GradeScaleEntry(min_percentage=0, max_percentage=100, grade_point='1.00')]
        for value in (0, 50, 73):
            resolution = resolve_grade_point(value, generous)
            self.assertEqual(resolution.grade_point, Decimal('5.00'))
            self.assertFalse(resolution.matched)
            self.assertFalse(resolution.fallback)

        self.assertEqual(resolve_grade_point(74, generous).grade_point, Decimal('1.00'))

    def test_matching_entry(self):
        resolution = resolve_grade_point(88, GradeScale(default_scale_entries()))
        self.assertEqual(resolution.grade_point, Decimal('1.75'))
        self.assertTrue(resolution.matched)

    def test_unmatched_range_falls_back_and_warns(self):
        entries = [e for e in default_scale_entries() if e.min_percentage != 91]
        with self.assertLogs('gradebook.scales', level='WARNING'):
            resolution = resolve_grade_point(91, entries)
        self.assertEqual(resolution.grade_point, Decimal('5.00'))
        self.assertTrue(resolution.fallback)
        self.assertFalse(resolution.matched)

    def test_empty_table_falls_back(self):
        with self.assertLogs('gradebook.scales', level='WARNING'):
            resolution = resolve_grade_point(95, [])
        self.assertTrue(resolution.fallback)

    def test_threshold_boundary(self):
        scale = default_scale_entries()
        self.assertFalse(resolve_grade_point(73, scale).matched)
        self.assertEqual(resolve_grade_point(74, scale).grade_point, Decimal('3.00'))


class ComputeTermGradeTest(SimpleTestCase):
    """Tests for the full term grade calculation."""

    def setUp(self):
        self.weights = default_weights()
        self.scale = GradeScale(default_scale_entries())

    def test_scenario_a_midterm(self):
        grade = compute_term_grade(scenario_a_bundle(), self.weights, self.scale, Term.MIDTERM)

        self.assertEqual(grade.term, 'MIDTERM')
        self.assertEqual(grade.quiz_pg, Decimal('86.00'))
        self.assertEqual(grade.quiz_weighted, Decimal('25.80'))
        self.assertEqual(grade.class_standing_pg, Decimal('93.00'))
        self.assertEqual(grade.class_standing_average, Decimal('92.67'))
        self.assertEqual(grade.class_standing_weighted, Decimal('23.17'))
        self.assertEqual(grade.sep_weighted, Decimal('5.00'))
        self.assertEqual(grade.project_weighted, Decimal('9.00'))
        self.assertEqual(grade.exam_score_total, Decimal('150'))
        self.assertEqual(grade.exam_possible_total, Decimal('200'))
        self.assertEqual(grade.exam_pg, Decimal('82.50'))
        self.assertEqual(grade.exam_weighted, Decimal('24.75'))
        self.assertEqual(grade.final_percentage, Decimal('87.72'))
        self.assertEqual(grade.final_rounded, 88)
        self.assertEqual(grade.grade_point, Decimal('1.75'))
        self.assertTrue(grade.scale_matched)
        self.assertFalse(grade.scale_fallback)

    def test_audit_totals_keep_score_and_possible(self):
        grade = compute_midterm_grade(scenario_a_bundle(), self.weights, self.scale)
        self.assertEqual(grade.quiz_score_total, Decimal('80'))
        self.assertEqual(grade.quiz_possible_total, Decimal('100'))
        self.assertEqual(grade.class_standing_score_total, Decimal('45'))
        self.assertEqual(grade.class_standing_possible_total, Decimal('50'))

    def test_finals_uses_final_exam_only(self):
        bundle = scenario_a_bundle(finals_score=150, finals_total=200)
        grade = compute_finals_grade(bundle, self.weights, self.scale)
        self.assertEqual(grade.term, 'FINALS')
        self.assertEqual(grade.exam_pg, Decimal('82.50'))
        self.assertEqual(grade.final_percentage, Decimal('87.72'))

        # Prelim and midterm scores do not affect the finals exam portion
        other = compute_finals_grade(
            scenario_a_bundle(prelim_score=0, midterm_score=0, finals_score=150, finals_total=200),
            self.weights, self.scale,
        )
        self.assertEqual(other, grade)

    def test_finals_without_exam_total(self):
        grade = compute_finals_grade(scenario_a_bundle(), self.weights, self.scale)
        self.assertEqual(grade.exam_pg, Decimal('0'))
        self.assertEqual(grade.exam_weighted, Decimal('0'))

    def test_scenario_b_everything_empty(self):
        grade = compute_term_grade(ScoreBundle(), self.weights, self.scale, Term.MIDTERM)
        self.assertEqual(grade.final_percentage, Decimal('0'))
        self.assertEqual(grade.final_rounded, 0)
        self.assertEqual(grade.grade_point, Decimal('5.00'))
        self.assertFalse(grade.scale_matched)
        self.assertFalse(grade.scale_fallback)

    def test_scenario_c_gap_in_table(self):
        """92 sits in a gap: failing grade point via the fallback, not the floor."""
        scale = [e for e in default_scale_entries() if e.min_percentage != 91]
        bundle = ScoreBundle(
            quizzes=[ScoreItem(91, 100)],
            class_standing_items=[ScoreItem(91, 100)],
            recitation_score=91,
            attendance_score=91,
            sep_score=91,
            project_score=91,
            finals_score=87,
            finals_total=100,
        )
        with self.assertLogs('gradebook.scales', level='WARNING'):
            grade = compute_term_grade(bundle, self.weights, scale, Term.FINALS)
        self.assertEqual(grade.final_rounded, 92)
        self.assertEqual(grade.grade_point, Decimal('5.00'))
        self.assertTrue(grade.scale_fallback)

    def test_gap_at_exactly_91(self):
        """Table covers 88-90 and 92-93 only, and every category lands on 91."""
        scale = [e for e in default_scale_entries() if e.min_percentage != 91]
        scale.append(GradeScaleEntry(min_percentage=92, max_percentage=93, grade_point='1.50'))
        bundle = ScoreBundle(
            quizzes=[ScoreItem(61, 70)],
            class_standing_items=[ScoreItem(61, 70)],
            recitation_score=91,
            attendance_score=91,
            sep_score=91,
            project_score=91,
            finals_score=61,
            finals_total=70,
        )
        with self.assertLogs('gradebook.scales', level='WARNING'):
            grade = compute_term_grade(bundle, self.weights, scale, Term.FINALS)

        self.assertEqual(grade.quiz_pg, Decimal('91.00'))
        self.assertEqual(grade.final_percentage, Decimal('91.00'))
        self.assertEqual(grade.final_rounded, 91)
        self.assertEqual(grade.grade_point, Decimal('5.00'))
        self.assertTrue(grade.scale_fallback)
        self.assertFalse(grade.scale_matched)

    def test_overlapping_table_rejected_for_every_student(self):
        """A bad table fails the same way whether the student passes or not."""
        overlapping = [
            GradeScaleEntry(min_percentage=80, max_percentage=100, grade_point='1.00'),
            GradeScaleEntry(min_percentage=90, max_percentage=100, grade_point='1.50'),
        ]
        perfect = ScoreBundle(
            quizzes=[ScoreItem(100, 100)],
            class_standing_items=[ScoreItem(100, 100)],
            recitation_score=100,
            attendance_score=100,
            sep_score=100,
            project_score=100,
            prelim_score=100,
            prelim_total=100,
        )
        for bundle in (ScoreBundle(), perfect):
            with self.assertRaises(InvalidGradeScale):
                compute_term_grade(bundle, self.weights, overlapping, Term.MIDTERM)

    @override_settings(
        GRADEBOOK_PG_FLOOR=0,
        GRADEBOOK_FAILING_THRESHOLD=90,
        GRADEBOOK_FAILING_GRADE_POINT='9.99',
        GRADEBOOK_ENFORCE_WEIGHT_SUM=False,
    )
    def test_django_settings_do_not_change_results(self):
        self.assertEqual(rescale_percentage(0, 100), Decimal('30.00'))

        empty = compute_term_grade(ScoreBundle(), self.weights, self.scale, Term.MIDTERM)
        self.assertEqual(empty.grade_point, Decimal('5.00'))

        grade = compute_term_grade(scenario_a_bundle(), self.weights, self.scale, Term.MIDTERM)
        self.assertEqual(grade.grade_point, Decimal('1.75'))

        off_sum = WeightConfig(quiz='0.50', class_standing='0.25', sep='0.05',
                               project='0.10', exam_portion='0.30')
        with self.assertRaises(InvalidWeightConfig):
            compute_term_grade(scenario_a_bundle(), off_sum, self.scale, Term.MIDTERM)

    def test_relaxed_weight_sum_is_explicit(self):
        off_sum = WeightConfig(quiz='0.50', class_standing='0.25', sep='0.05',
                               project='0.10', exam_portion='0.30')
        with self.assertLogs('gradebook.calculations', level='WARNING'):
            grade = compute_term_grade(scenario_a_bundle(), off_sum, self.scale,
                                       Term.MIDTERM, enforce_weight_sum=False)
        self.assertEqual(grade.quiz_weighted, Decimal('43.00'))

    def test_deterministic(self):
        first = compute_term_grade(scenario_a_bundle(), self.weights, self.scale, 'MIDTERM')
        second = compute_term_grade(scenario_a_bundle(), self.weights, self.scale, 'MIDTERM')
        self.assertEqual(first, second)
        self.assertEqual(first.as_dict(), second.as_dict())

    def test_computed_grade_is_immutable(self):
        grade = compute_term_grade(scenario_a_bundle(), self.weights, self.scale, Term.MIDTERM)
        with self.assertRaises(FrozenInstanceError):
            grade.final_percentage = Decimal('99.00')

    def test_monotonic_in_each_category(self):
        previous = None
        for score in range(0, 101, 5):
            grade = compute_term_grade(
                scenario_a_bundle(quizzes=[ScoreItem(score, 100)]),
                self.weights, self.scale, Term.MIDTERM,
            )
            if previous is not None:
                self.assertGreaterEqual(grade.final_percentage, previous)
            previous = grade.final_percentage

        previous = None
        for project in range(0, 101, 5):
            grade = compute_term_grade(
                scenario_a_bundle(project_score=project),
                self.weights, self.scale, Term.MIDTERM,
            )
            if previous is not None:
                self.assertGreaterEqual(grade.final_percentage, previous)
            previous = grade.final_percentage

    def test_missing_weights(self):
        with self.assertRaises(ConfigurationMissing):
            compute_term_grade(scenario_a_bundle(), None, self.scale, Term.MIDTERM)

    def test_invalid_weights(self):
        weights = WeightConfig(quiz='0.50', class_standing='0.25', sep='0.05',
                               project='0.10', exam_portion='0.30')
        with self.assertRaises(InvalidWeightConfig):
            compute_term_grade(scenario_a_bundle(), weights, self.scale, Term.MIDTERM)

    def test_unknown_term(self):
        with self.assertRaises(ValueError):
            compute_term_grade(scenario_a_bundle(), self.weights, self.scale, 'SUMMER')

    def test_as_dict_is_json_safe(self):
        grade = compute_term_grade(scenario_a_bundle(student_ref='42'), self.weights, self.scale, Term.MIDTERM)
        data = json.loads(json.dumps(grade.as_dict()))
        self.assertEqual(data['final_percentage'], '87.72')
        self.assertEqual(data['final_rounded'], 88)
        self.assertEqual(data['grade_point'], '1.75')
        self.assertEqual(data['student_ref'], '42')


class CalculateBatchTest(SimpleTestCase):
    """Tests for per-row bulk calculation."""

    def setUp(self):
        self.weights = default_weights()
        self.scale = default_scale_entries()
        self.good_row = {
            'student_ref': 'Juan Dela Cruz',
            'quizzes': [{'score': 80, 'total': 100}],
            'class_standing_items': [{'score': 45, 'total': 50}],
            'recitation_score': 90,
            'attendance_score': 95,
            'sep_score': 100,
            'project_score': 90,
            'prelim_score': 70,
            'prelim_total': 100,
            'midterm_score': 80,
            'midterm_total': 100,
        }

    def test_bundle_from_mapping(self):
        bundle = bundle_from_mapping(self.good_row)
        self.assertEqual(bundle.quizzes[0].label, 'Quiz 1')
        self.assertEqual(bundle.class_standing_items[0].total, Decimal('50'))
        self.assertEqual(bundle.student_ref, 'Juan Dela Cruz')

    def test_malformed_row_is_skipped(self):
        bad_row = dict(self.good_row, quizzes=[{'score': 'abc', 'total': 100}])
        result = calculate_batch([self.good_row, bad_row, 'not a row', self.good_row],
                                 self.weights, self.scale, Term.MIDTERM)

        self.assertEqual(len(result.grades), 2)
        self.assertEqual(len(result.warnings), 2)
        self.assertTrue(result.warnings[0].startswith('Row 2:'))
        self.assertTrue(result.warnings[1].startswith('Row 3:'))
        self.assertEqual(result.grades[0].final_percentage, Decimal('87.72'))

    def test_unmatched_student_is_skipped(self):
        known = {'Juan Dela Cruz': 7}
        other = dict(self.good_row, student_ref='Nobody')
        result = calculate_batch([self.good_row, other], self.weights, self.scale,
                                 Term.MIDTERM, resolve_student=known.get)

        self.assertEqual(len(result.grades), 1)
        self.assertEqual(result.grades[0].student_ref, '7')
        self.assertEqual(result.warnings, ["Student with name 'Nobody' not found. Skipping row."])

    def test_unmatched_scale_range_is_reported(self):
        scale = [e for e in self.scale if e.min_percentage != 88]
        with self.assertLogs('gradebook.scales', level='WARNING'):
            result = calculate_batch([self.good_row], self.weights, scale, Term.MIDTERM)
        self.assertEqual(len(result.unmatched), 1)
        self.assertEqual(result.grades[0].grade_point, Decimal('5.00'))

    def test_missing_weights_fail_whole_batch(self):
        with self.assertRaises(ConfigurationMissing):
            calculate_batch([self.good_row], None, self.scale, Term.MIDTERM)

    def test_invalid_scale_fails_whole_batch(self):
        scale = self.scale + [GradeScaleEntry(min_percentage=90, max_percentage=95, grade_point='1.40')]
        with self.assertRaises(InvalidGradeScale):
            calculate_batch([self.good_row], self.weights, scale, Term.MIDTERM)

    def test_out_of_range_scores_are_skipped(self):
        rows = [
            dict(self.good_row, quizzes=[{'score': 150, 'total': 100}]),
            dict(self.good_row, quizzes=[{'score': -50, 'total': 100}]),
            dict(self.good_row, class_standing_items=[{'score': 5}]),
            dict(self.good_row, prelim_score=120),
            dict(self.good_row, midterm_total=-100),
            scenario_a_bundle(quizzes=[ScoreItem(150, 100)]),
            self.good_row,
        ]
        result = calculate_batch(rows, self.weights, self.scale, Term.MIDTERM)

        self.assertEqual(len(result.grades), 1)
        self.assertEqual(len(result.warnings), 6)
        for row_num, warning in enumerate(result.warnings, 1):
            self.assertTrue(warning.startswith(f'Row {row_num}:'))
        self.assertIn('exceeds total', result.warnings[0])
        self.assertIn('cannot be negative', result.warnings[1])

    def test_bundle_from_mapping_rejects_score_above_total(self):
        with self.assertRaises(ValueError):
            bundle_from_mapping(dict(self.good_row, finals_score=10))


class GradeWeightsModelTest(TestCase):
    """Tests for GradeWeights model."""

    def test_defaults_are_valid(self):
        weights = GradeWeights(name='Default')
        weights.full_clean()
        config = weights.to_weight_config()
        self.assertEqual(config.quiz, Decimal('0.30'))
        self.assertEqual(config.exam_portion, Decimal('0.30'))

    def test_sum_must_be_one(self):
        weights = GradeWeights(name='Heavy quizzes', quiz_weight=Decimal('0.50'))
        with self.assertRaises(ValidationError):
            weights.clean()

    def test_single_active_scheme(self):
        GradeWeights.objects.create(name='Default')
        second = GradeWeights(name='Alternate')
        with self.assertRaises(ValidationError):
            second.clean()

        second.is_active = False
        second.clean()

    @override_settings(GRADEBOOK_ENFORCE_WEIGHT_SUM=False)
    def test_sum_check_follows_setting(self):
        weights = GradeWeights(name='Heavy quizzes', quiz_weight=Decimal('0.50'))
        with self.assertLogs('gradebook.calculations', level='WARNING'):
            weights.clean()


class GradePointEquivalentModelTest(TestCase):
    """Tests for GradePointEquivalent model."""

    def setUp(self):
        self.failing = GradePointEquivalent.objects.create(
            min_percentage=None, max_percentage=Decimal('73'), grade_point=Decimal('5.00'), label='Failed'
        )
        self.top = GradePointEquivalent.objects.create(
            min_percentage=Decimal('97'), max_percentage=Decimal('100'), grade_point=Decimal('1.00')
        )

    def test_non_overlapping_range(self):
        row = GradePointEquivalent(
            min_percentage=Decimal('74'), max_percentage=Decimal('75'), grade_point=Decimal('3.00')
        )
        row.clean()

    def test_overlap_with_unbounded_range(self):
        row = GradePointEquivalent(
            min_percentage=Decimal('70'), max_percentage=Decimal('80'), grade_point=Decimal('3.00')
        )
        with self.assertRaises(ValidationError):
            row.clean()

    def test_overlap_with_bounded_range(self):
        row = GradePointEquivalent(
            min_percentage=Decimal('95'), max_percentage=Decimal('98'), grade_point=Decimal('1.25')
        )
        with self.assertRaises(ValidationError):
            row.clean()

    def test_inverted_range(self):
        row = GradePointEquivalent(
            min_percentage=Decimal('90'), max_percentage=Decimal('80'), grade_point=Decimal('2.00')
        )
        with self.assertRaises(ValidationError):
            row.clean()

    def test_str_representation(self):
        self.top.refresh_from_db()
        self.assertEqual(str(self.top), '1.00 (97.00-100.00%)')


class LookupsTest(TestCase):
    """Tests for the cached configuration lookups."""

    def setUp(self):
        cache.clear()

    def test_missing_weights(self):
        self.assertIsNone(get_active_weights())
        with self.assertRaises(ConfigurationMissing):
            require_active_weights()

    def test_inactive_weights_are_ignored(self):
        GradeWeights.objects.create(name='Old', is_active=False)
        self.assertIsNone(get_active_weights())

    def test_weights_cache_invalidated_on_save(self):
        self.assertIsNone(get_active_weights())

        row = GradeWeights.objects.create(name='Default')
        self.assertEqual(require_active_weights().quiz, Decimal('0.30'))

        row.quiz_weight = Decimal('0.25')
        row.exam_weight = Decimal('0.35')
        row.save()
        weights = require_active_weights()
        self.assertEqual(weights.quiz, Decimal('0.25'))
        self.assertEqual(weights.exam_portion, Decimal('0.35'))

        row.delete()
        self.assertIsNone(get_active_weights())

    def test_grade_scale_cache_invalidated_on_save(self):
        self.assertEqual(len(get_grade_scale()), 0)

        GradePointEquivalent.objects.create(
            min_percentage=Decimal('74'), max_percentage=Decimal('100'), grade_point=Decimal('2.00')
        )
        scale = get_grade_scale()
        self.assertEqual(len(scale), 1)
        self.assertEqual(scale.find(80).grade_point, Decimal('2.00'))


class SeedGradingDataCommandTest(TestCase):
    """Tests for the seed_grading_data management command."""

    def setUp(self):
        cache.clear()

    def test_seed_and_calculate(self):
        call_command('seed_grading_data', stdout=StringIO())

        self.assertEqual(GradeWeights.objects.count(), 1)
        self.assertEqual(GradePointEquivalent.objects.count(), 10)

        grade = compute_term_grade(
            scenario_a_bundle(), require_active_weights(), get_grade_scale(), Term.MIDTERM
        )
        self.assertEqual(grade.grade_point, Decimal('1.75'))

    def test_seed_is_idempotent_without_force(self):
        call_command('seed_grading_data', stdout=StringIO())
        call_command('seed_grading_data', stdout=StringIO())
        self.assertEqual(GradeWeights.objects.count(), 1)
        self.assertEqual(GradePointEquivalent.objects.count(), 10)

    def test_force_reseeds(self):
        call_command('seed_grading_data', stdout=StringIO())
        GradePointEquivalent.objects.filter(min_percentage__isnull=True).delete()
        call_command('seed_grading_data', '--force', stdout=StringIO())
        self.assertEqual(GradePointEquivalent.objects.count(), 10)


class CalculateTermGradeCommandTest(TestCase):
    """Tests for the calculate_term_grade management command."""

    def setUp(self):
        cache.clear()
        self.row = json.dumps({
            'quizzes': [{'score': 80, 'total': 100}],
            'class_standing_items': [{'score': 45, 'total': 50}],
            'recitation_score': 90,
            'attendance_score': 95,
            'sep_score': 100,
            'project_score': 90,
            'finals_score': 150,
            'finals_total': 200,
        })

    def test_prints_computed_grade(self):
        call_command('seed_grading_data', stdout=StringIO())
        out = StringIO()
        call_command('calculate_term_grade', self.row, '--term', 'FINALS', stdout=out)

        data = json.loads(out.getvalue())
        self.assertEqual(data['term'], 'FINALS')
        self.assertEqual(data['final_percentage'], '87.72')
        self.assertEqual(data['grade_point'], '1.75')

    def test_missing_configuration(self):
        with self.assertRaises(CommandError):
            call_command('calculate_term_grade', self.row, stdout=StringIO())

    def test_invalid_json(self):
        with self.assertRaises(CommandError):
            call_command('calculate_term_grade', '{not json', stdout=StringIO())


class CalculateTermGradesTaskTest(TestCase):
    """Tests for the bulk calculation Celery task."""

    def setUp(self):
        cache.clear()
        self.rows = [
            {
                'student_ref': 'S-1',
                'quizzes': [{'score': 80, 'total': 100}],
                'class_standing_items': [{'score': 45, 'total': 50}],
                'recitation_score': 90,
                'attendance_score': 95,
                'sep_score': 100,
                'project_score': 90,
                'prelim_score': 70,
                'prelim_total': 100,
                'midterm_score': 80,
                'midterm_total': 100,
            },
            {'student_ref': 'S-2', 'recitation_score': 'absent'},
        ]

    def test_task_returns_grades_and_warnings(self):
        call_command('seed_grading_data', stdout=StringIO())

        result = calculate_term_grades_task(self.rows, 'MIDTERM')

        self.assertTrue(result['success'])
        self.assertEqual(len(result['grades']), 1)
        self.assertEqual(result['grades'][0]['student_ref'], 'S-1')
        self.assertEqual(result['grades'][0]['grade_point'], '1.75')
        self.assertEqual(len(result['warnings']), 1)
        self.assertEqual(result['unmatched'], [])

    def test_task_without_configuration(self):
        result = calculate_term_grades_task(self.rows, 'MIDTERM')
        self.assertFalse(result['success'])
        self.assertIn('Grade weights not found', result['error'])

    def test_task_with_unknown_term(self):
        call_command('seed_grading_data', stdout=StringIO())

        result = calculate_term_grades_task(self.rows, 'SUMMER')

        self.assertFalse(result['success'])
        self.assertIn('SUMMER', result['error'])
