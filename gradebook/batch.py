"""
Bulk grade calculation.

Runs the engine once per row of an already-parsed score sheet. Each row is
independent: a row that cannot be converted or whose student cannot be
matched is reported as a warning and skipped, and the remaining rows still
produce grades. Configuration problems fail the whole batch before any row is
processed.
"""
import logging
from dataclasses import dataclass, field, replace
from decimal import InvalidOperation
from typing import List

from .calculations import ScoreBundle, ScoreItem, compute_term_grade
from .choices import Term
from .exceptions import ConfigurationMissing
from .scales import GradeScale
from .utils import to_decimal

logger = logging.getLogger(__name__)

ROW_ERRORS = (ValueError, TypeError, KeyError, InvalidOperation)

_SCALAR_FIELDS = (
    'recitation_score', 'attendance_score', 'sep_score', 'project_score',
    'prelim_score', 'prelim_total', 'midterm_score', 'midterm_total',
    'finals_score', 'finals_total',
)
_REF_FIELDS = ('student_ref', 'subject_ref', 'semester', 'academic_year')
_EXAM_PAIRS = (
    ('Prelim exam', 'prelim_score', 'prelim_total'),
    ('Midterm exam', 'midterm_score', 'midterm_total'),
    ('Final exam', 'finals_score', 'finals_total'),
)


@dataclass
class BatchResult:
    grades: List = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unmatched: List = field(default_factory=list)

    def as_dict(self):
        return {
            'grades': [g.as_dict() for g in self.grades],
            'warnings': list(self.warnings),
            'unmatched': [g.as_dict() for g in self.unmatched],
        }


def _check_score_pair(score, total, label):
    """Reject negative values and a score above its total (a missing value counts as 0)."""
    score = to_decimal(score)
    total = to_decimal(total)
    if score < 0 or total < 0:
        raise ValueError(f"{label}: scores and totals cannot be negative")
    if score > total:
        raise ValueError(f"{label}: score {score} exceeds total {total}")


def validate_bundle(bundle):
    """
    Check every score/total pair of a bundle lies within range.

    Returns:
        The bundle unchanged

    Raises:
        ValueError: If a score or total is negative or a score exceeds its total
    """
    for item in bundle.quizzes + bundle.class_standing_items:
        _check_score_pair(item.score, item.total, item.label or 'Score item')
    for label, score_name, total_name in _EXAM_PAIRS:
        _check_score_pair(getattr(bundle, score_name), getattr(bundle, total_name), label)
    return bundle


def _build_items(raw_items, default_label):
    items = []
    for index, raw in enumerate(raw_items or (), 1):
        if isinstance(raw, ScoreItem):
            items.append(raw)
            continue
        if not isinstance(raw, dict):
            raise TypeError(f"Score item must be a mapping, got {type(raw).__name__}")
        items.append(ScoreItem(
            score=raw.get('score'),
            total=raw.get('total'),
            label=raw.get('label') or f"{default_label} {index}",
        ))
    return items


def bundle_from_mapping(row):
    """
    Build a ScoreBundle from a parsed row.

    Args:
        row: dict with 'quizzes' and 'class_standing_items' lists of
             {'score', 'total', 'label'} dicts plus the scalar score fields

    Returns:
        ScoreBundle

    Raises:
        ValueError/TypeError: If the row holds non-numeric or out of range values
    """
    if not isinstance(row, dict):
        raise TypeError(f"Row must be a mapping, got {type(row).__name__}")

    kwargs = {
        'quizzes': _build_items(row.get('quizzes'), 'Quiz'),
        'class_standing_items': _build_items(row.get('class_standing_items'), 'Class Standing'),
    }
    for name in _SCALAR_FIELDS:
        if row.get(name) is not None:
            kwargs[name] = row[name]
    for name in _REF_FIELDS:
        if row.get(name) is not None:
            kwargs[name] = str(row[name])

    return validate_bundle(ScoreBundle(**kwargs))


def calculate_batch(rows, weights, scale, term, resolve_student=None, enforce_weight_sum=True):
    """
    Calculate grades for every row of a score sheet.

    Args:
        rows: Iterable of ScoreBundle or dict rows
        weights: WeightConfig (None raises ConfigurationMissing)
        scale: GradeScale or iterable of GradeScaleEntry
        term: Term.MIDTERM or Term.FINALS
        resolve_student: Optional callable taking the row's student_ref and
                         returning the matched reference, or None to skip
        enforce_weight_sum: Reject weights that do not sum to 1.00

    Returns:
        BatchResult
    """
    if weights is None:
        raise ConfigurationMissing()
    weights.validate(enforce_sum=enforce_weight_sum)
    term = Term(term)
    if not isinstance(scale, GradeScale):
        scale = GradeScale(scale or ())

    result = BatchResult()

    for row_num, row in enumerate(rows, 1):
        try:
            if isinstance(row, ScoreBundle):
                bundle = validate_bundle(row)
            else:
                bundle = bundle_from_mapping(row)
        except ROW_ERRORS as e:
            result.warnings.append(f"Row {row_num}: {e}. Skipping row.")
            continue

        if resolve_student is not None:
            matched = resolve_student(bundle.student_ref)
            if matched is None:
                result.warnings.append(
                    f"Student with name '{bundle.student_ref}' not found. Skipping row."
                )
                continue
            bundle = replace(bundle, student_ref=str(matched))

        try:
            grade = compute_term_grade(bundle, weights, scale, term, enforce_weight_sum)
        except ROW_ERRORS as e:
            result.warnings.append(f"Row {row_num}: {e}. Skipping row.")
            continue

        result.grades.append(grade)
        if grade.scale_fallback:
            result.unmatched.append(grade)

    logger.info(
        f"Calculated {len(result.grades)} grades "
        f"({len(result.warnings)} skipped, {len(result.unmatched)} unmatched)"
    )

    return result
