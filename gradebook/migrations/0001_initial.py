from decimal import Decimal
import uuid

import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="GradeWeights",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(default="Default", help_text="Name of this weighting scheme", max_length=100)),
                ("quiz_weight", models.DecimalField(decimal_places=2, default=Decimal("0.30"), help_text="Quiz weight as a fraction (e.g., 0.30)", max_digits=4, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ("class_standing_weight", models.DecimalField(decimal_places=2, default=Decimal("0.25"), help_text="Class standing weight (recitation, attendance, activities)", max_digits=4, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ("sep_weight", models.DecimalField(decimal_places=2, default=Decimal("0.05"), help_text="Special project (SEP) weight", max_digits=4, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ("project_weight", models.DecimalField(decimal_places=2, default=Decimal("0.10"), help_text="Project weight", max_digits=4, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ("exam_weight", models.DecimalField(decimal_places=2, default=Decimal("0.30"), help_text="Exam portion weight (prelim + midterm, or finals)", max_digits=4, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(1)])),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Grade Weights",
                "verbose_name_plural": "Grade Weights",
                "db_table": "grade_weights",
                "ordering": ["-is_active", "name"],
            },
        ),
        migrations.CreateModel(
            name="GradePointEquivalent",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("label", models.CharField(blank=True, help_text="Interpretation (e.g., Excellent, Very Good, Passed)", max_length=50)),
                ("min_percentage", models.DecimalField(blank=True, decimal_places=2, help_text="Minimum percentage (inclusive). Leave blank for no lower bound.", max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ("max_percentage", models.DecimalField(decimal_places=2, help_text="Maximum percentage (inclusive)", max_digits=5, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ("grade_point", models.DecimalField(decimal_places=2, help_text="Grade point equivalent (1.00 is best, 5.00 is failing)", max_digits=3, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ("order", models.IntegerField(default=0, help_text="Display order (lower numbers appear first)")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Grade Point Equivalent",
                "verbose_name_plural": "Grade Point Equivalents",
                "db_table": "grade_point_equivalent",
                "ordering": ["order", "-min_percentage"],
                "indexes": [models.Index(fields=["min_percentage", "max_percentage"], name="grade_point_range_idx")],
            },
        ),
    ]
