"""
Management command to seed the default grade weights and grade point table.

Usage:
    python manage.py seed_grading_data
    python manage.py seed_grading_data --force
"""
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from gradebook.models import GradeWeights, GradePointEquivalent


DEFAULT_WEIGHTS = {
    'name': 'Default',
    'quiz_weight': Decimal('0.30'),
    'class_standing_weight': Decimal('0.25'),
    'sep_weight': Decimal('0.05'),
    'project_weight': Decimal('0.10'),
    'exam_weight': Decimal('0.30'),
}

# Highest range first; rounded percentages of 73 and below fail regardless
DEFAULT_GRADE_POINTS = [
    {'min': 97, 'max': 100, 'point': '1.00', 'label': 'Excellent'},
    {'min': 94, 'max': 96, 'point': '1.25', 'label': 'Excellent'},
    {'min': 91, 'max': 93, 'point': '1.50', 'label': 'Very Good'},
    {'min': 88, 'max': 90, 'point': '1.75', 'label': 'Very Good'},
    {'min': 85, 'max': 87, 'point': '2.00', 'label': 'Good'},
    {'min': 82, 'max': 84, 'point': '2.25', 'label': 'Good'},
    {'min': 79, 'max': 81, 'point': '2.50', 'label': 'Satisfactory'},
    {'min': 76, 'max': 78, 'point': '2.75', 'label': 'Satisfactory'},
    {'min': 74, 'max': 75, 'point': '3.00', 'label': 'Passed'},
    {'min': None, 'max': 73, 'point': '5.00', 'label': 'Failed'},
]


class Command(BaseCommand):
    help = 'Seed the default grade weights and grade point equivalents'

    def add_arguments(self, parser):
        parser.add_argument(
            '--force',
            action='store_true',
            help='Overwrite existing grading data',
        )

    def handle(self, *args, **options):
        force = options['force']

        with transaction.atomic():
            self.create_weights(force)
            self.create_grade_points(force)

        self.stdout.write(self.style.SUCCESS('Successfully seeded grading data'))

    def create_weights(self, force):
        """Create the default weighting scheme (30/25/5/10/30)."""
        if GradeWeights.objects.exists() and not force:
            self.stdout.write('Grade weights already exist. Use --force to overwrite.')
            return

        if force:
            GradeWeights.objects.all().delete()

        weights = GradeWeights(**DEFAULT_WEIGHTS)
        weights.full_clean()
        weights.save()

        self.stdout.write(self.style.SUCCESS(f'Created grade weights: {weights}'))

    def create_grade_points(self, force):
        """Create the grade point equivalent table."""
        if GradePointEquivalent.objects.exists() and not force:
            self.stdout.write('Grade point equivalents already exist. Use --force to overwrite.')
            return

        if force:
            GradePointEquivalent.objects.all().delete()

        for i, row in enumerate(DEFAULT_GRADE_POINTS):
            GradePointEquivalent.objects.create(
                min_percentage=row['min'],
                max_percentage=row['max'],
                grade_point=Decimal(row['point']),
                label=row['label'],
                order=i,
            )

        self.stdout.write(self.style.SUCCESS(
            f'Created {len(DEFAULT_GRADE_POINTS)} grade point equivalents'
        ))
