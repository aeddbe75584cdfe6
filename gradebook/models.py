import uuid
from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.core.exceptions import ValidationError
from decimal import Decimal

from . import config
from .calculations import WeightConfig
from .exceptions import InvalidWeightConfig
from .scales import GradeScaleEntry


class GradeWeights(models.Model):
    """Weight fractions applied to each graded category (must total 1.00)"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(
        max_length=100,
        default='Default',
        help_text='Name of this weighting scheme'
    )
    quiz_weight = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('0.30'),
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text='Quiz weight as a fraction (e.g., 0.30)'
    )
    class_standing_weight = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('0.25'),
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text='Class standing weight (recitation, attendance, activities)'
    )
    sep_weight = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('0.05'),
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text='Special project (SEP) weight'
    )
    project_weight = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('0.10'),
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text='Project weight'
    )
    exam_weight = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('0.30'),
        validators=[MinValueValidator(0), MaxValueValidator(1)],
        help_text='Exam portion weight (prelim + midterm, or finals)'
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return (
            f"{self.name} (Quiz {self.quiz_weight}, CS {self.class_standing_weight}, "
            f"SEP {self.sep_weight}, Project {self.project_weight}, Exam {self.exam_weight})"
        )

    def to_weight_config(self):
        return WeightConfig(
            quiz=self.quiz_weight,
            class_standing=self.class_standing_weight,
            sep=self.sep_weight,
            project=self.project_weight,
            exam_portion=self.exam_weight,
        )

    def clean(self):
        """Validate the weights total 1.00 and only one scheme is active"""
        try:
            self.to_weight_config().validate(enforce_sum=config.ENFORCE_WEIGHT_SUM)
        except InvalidWeightConfig as e:
            raise ValidationError(str(e))

        if self.is_active:
            other_active = GradeWeights.objects.filter(is_active=True).exclude(pk=self.pk)
            if other_active.exists():
                raise ValidationError(
                    f'Another weighting scheme is already active: {other_active.first()}'
                )

    class Meta:
        db_table = 'grade_weights'
        ordering = ['-is_active', 'name']
        verbose_name = 'Grade Weights'
        verbose_name_plural = 'Grade Weights'


class GradePointEquivalent(models.Model):
    """Maps a final percentage range to a grade point (e.g., 1.75 = 88-90)"""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    label = models.CharField(
        max_length=50,
        blank=True,
        help_text='Interpretation (e.g., Excellent, Very Good, Passed)'
    )
    min_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Minimum percentage (inclusive). Leave blank for no lower bound.'
    )
    max_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
        help_text='Maximum percentage (inclusive)'
    )
    grade_point = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        help_text='Grade point equivalent (1.00 is best, 5.00 is failing)'
    )
    order = models.IntegerField(
        default=0,
        help_text='Display order (lower numbers appear first)'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        low = '' if self.min_percentage is None else self.min_percentage
        return f"{self.grade_point} ({low}-{self.max_percentage}%)"

    def to_entry(self):
        return GradeScaleEntry(
            min_percentage=self.min_percentage,
            max_percentage=self.max_percentage,
            grade_point=self.grade_point,
            label=self.label,
        )

    def clean(self):
        """Validate that min <= max and ranges don't overlap"""
        if self.max_percentage is None:
            return

        if self.min_percentage is not None and self.min_percentage > self.max_percentage:
            raise ValidationError('Minimum percentage cannot be greater than maximum percentage')

        overlapping = GradePointEquivalent.objects.exclude(pk=self.pk).filter(
            models.Q(min_percentage__isnull=True) | models.Q(min_percentage__lte=self.max_percentage)
        )
        if self.min_percentage is not None:
            overlapping = overlapping.filter(max_percentage__gte=self.min_percentage)

        if overlapping.exists():
            raise ValidationError(
                f'Grade range overlaps with existing grade: {overlapping.first()}'
            )

    class Meta:
        db_table = 'grade_point_equivalent'
        ordering = ['order', '-min_percentage']
        verbose_name = 'Grade Point Equivalent'
        verbose_name_plural = 'Grade Point Equivalents'
        indexes = [
            models.Index(fields=['min_percentage', 'max_percentage'], name='grade_point_range_idx'),
        ]
