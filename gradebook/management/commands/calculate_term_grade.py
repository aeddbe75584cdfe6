"""
Management command to calculate one term grade against the active configuration.

Useful for checking a weight or grade point change before a bulk run.

Usage:
    python manage.py calculate_term_grade --term MIDTERM '{"quizzes": [{"score": 80, "total": 100}],
        "recitation_score": 90, "attendance_score": 95, "prelim_score": 70, "prelim_total": 100,
        "midterm_score": 80, "midterm_total": 100}'
"""
import json

from django.core.management.base import BaseCommand, CommandError

from gradebook import config
from gradebook.batch import bundle_from_mapping
from gradebook.calculations import compute_term_grade
from gradebook.choices import Term
from gradebook.exceptions import GradeCalculationError
from gradebook.lookups import get_grade_scale, require_active_weights


class Command(BaseCommand):
    help = 'Calculate a single term grade from a JSON score row'

    def add_arguments(self, parser):
        parser.add_argument(
            'row',
            type=str,
            help='JSON object with the raw scores for one student',
        )
        parser.add_argument(
            '--term',
            choices=Term.values,
            default=Term.MIDTERM,
            help='Grading term (default: MIDTERM)',
        )

    def handle(self, *args, **options):
        try:
            row = json.loads(options['row'])
        except json.JSONDecodeError as e:
            raise CommandError(f'Invalid JSON row: {e}')

        try:
            bundle = bundle_from_mapping(row)
        except (ValueError, TypeError) as e:
            raise CommandError(f'Invalid score row: {e}')

        try:
            grade = compute_term_grade(
                bundle,
                require_active_weights(),
                get_grade_scale(),
                options['term'],
                enforce_weight_sum=config.ENFORCE_WEIGHT_SUM,
            )
        except (GradeCalculationError, ValueError) as e:
            raise CommandError(str(e))

        self.stdout.write(json.dumps(grade.as_dict(), indent=2))

        if grade.scale_fallback:
            self.stderr.write(self.style.WARNING(
                f'No grade scale entry covers {grade.final_rounded}%; '
                f'the failing grade point was used.'
            ))
