"""
Term grade calculation engine.

Computes a student's weighted term grade from raw component scores:

    quizzes             -> percentage grade -> x quiz weight
    class standing      -> percentage grade, averaged with recitation and
                           attendance -> x class standing weight
    SEP, project        -> taken as-is -> x their weights
    exam portion        -> percentage grade -> x exam weight

The weighted values are summed into the final percentage, rounded to a whole
number and resolved to a grade point. Every step is a pure function; the
engine reads no Django settings and performs no I/O. Weights and the grade
scale are passed in on every call. Midterm and finals share the same path and
differ only in which exam scores make up the exam portion.
"""
import logging
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Optional, Tuple

from .choices import Term
from .exceptions import ConfigurationMissing, InvalidWeightConfig
from .scales import GradeScale, resolve_grade_point
from .utils import ZERO, round2, round_whole, to_decimal

logger = logging.getLogger(__name__)

CLASS_STANDING_PARTS = Decimal('3')

# Percentage-grade rescaling: PG = score / total * PG_SPAN + PG_FLOOR
PG_FLOOR = Decimal('30')
PG_SPAN = Decimal('70')

WEIGHT_SUM_TOLERANCE = Decimal('0.0001')


# ============ Value types ============

@dataclass(frozen=True)
class ScoreItem:
    """A single quiz or class standing activity."""
    score: Optional[Decimal] = None
    total: Optional[Decimal] = None
    label: str = ''

    def __post_init__(self):
        if self.score is not None:
            object.__setattr__(self, 'score', to_decimal(self.score))
        if self.total is not None:
            object.__setattr__(self, 'total', to_decimal(self.total))


@dataclass(frozen=True)
class WeightConfig:
    """Weight fractions for the five graded categories."""
    quiz: Decimal
    class_standing: Decimal
    sep: Decimal
    project: Decimal
    exam_portion: Decimal

    def __post_init__(self):
        for f in fields(self):
            object.__setattr__(self, f.name, to_decimal(getattr(self, f.name)))

    @property
    def total(self):
        return sum((getattr(self, f.name) for f in fields(self)), ZERO)

    def validate(self, enforce_sum=True):
        """
        Check each fraction lies in [0, 1] and the five sum to 1.00.

        With enforce_sum=False an off-sum configuration is logged and accepted.

        Raises:
            InvalidWeightConfig
        """
        for f in fields(self):
            value = getattr(self, f.name)
            if value < 0 or value > 1:
                raise InvalidWeightConfig(
                    f"Weight '{f.name}' must be between 0 and 1, got {value}"
                )

        total = self.total
        if abs(total - Decimal('1')) > WEIGHT_SUM_TOLERANCE:
            message = f"Grade weights must sum to 1.00, got {total}"
            if enforce_sum:
                raise InvalidWeightConfig(message)
            logger.warning(message)
        return self


@dataclass(frozen=True)
class ScoreBundle:
    """Raw scores for one student, subject and term."""
    quizzes: Tuple[ScoreItem, ...] = ()
    class_standing_items: Tuple[ScoreItem, ...] = ()
    recitation_score: Decimal = ZERO
    attendance_score: Decimal = ZERO
    sep_score: Decimal = ZERO
    project_score: Decimal = ZERO
    prelim_score: Decimal = ZERO
    prelim_total: Decimal = ZERO
    midterm_score: Decimal = ZERO
    midterm_total: Decimal = ZERO
    finals_score: Decimal = ZERO
    finals_total: Decimal = ZERO

    # Identifiers carried through to the ComputedGrade untouched
    student_ref: Optional[str] = None
    subject_ref: Optional[str] = None
    semester: Optional[str] = None
    academic_year: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'quizzes', tuple(self.quizzes))
        object.__setattr__(self, 'class_standing_items', tuple(self.class_standing_items))
        for name in (
            'recitation_score', 'attendance_score', 'sep_score', 'project_score',
            'prelim_score', 'prelim_total', 'midterm_score', 'midterm_total',
            'finals_score', 'finals_total',
        ):
            object.__setattr__(self, name, to_decimal(getattr(self, name)))


@dataclass(frozen=True)
class WeightedBreakdown:
    quiz_weighted: Decimal
    class_standing_average: Decimal
    class_standing_weighted: Decimal
    sep_weighted: Decimal
    project_weighted: Decimal
    exam_weighted: Decimal
    final_percentage: Decimal
    final_rounded: int


@dataclass(frozen=True)
class ComputedGrade:
    """Result of one engine run. Recalculation produces a new instance."""
    term: str

    quiz_score_total: Decimal
    quiz_possible_total: Decimal
    quiz_pg: Decimal
    quiz_weighted: Decimal

    class_standing_score_total: Decimal
    class_standing_possible_total: Decimal
    class_standing_pg: Decimal
    recitation_score: Decimal
    attendance_score: Decimal
    class_standing_average: Decimal
    class_standing_weighted: Decimal

    sep_pg: Decimal
    sep_weighted: Decimal
    project_pg: Decimal
    project_weighted: Decimal

    exam_score_total: Decimal
    exam_possible_total: Decimal
    exam_pg: Decimal
    exam_weighted: Decimal

    final_percentage: Decimal
    final_rounded: int
    grade_point: Decimal
    scale_matched: bool = False
    scale_fallback: bool = False

    student_ref: Optional[str] = None
    subject_ref: Optional[str] = None
    semester: Optional[str] = None
    academic_year: Optional[str] = None

    def as_dict(self):
        """JSON-safe representation; Decimals are rendered as strings."""
        data = {}
        for f in fields(self):
            value = getattr(self, f.name)
            data[f.name] = str(value) if isinstance(value, Decimal) else value
        return data


# ============ Calculation steps ============

def aggregate_category(items):
    """
    Sum a category's items into (score, total).

    Missing scores or totals on an included item count as 0.
    """
    score_sum = ZERO
    total_sum = ZERO
    for item in items:
        score_sum += to_decimal(item.score)
        total_sum += to_decimal(item.total)
    return score_sum, total_sum


def rescale_percentage(score, total):
    """
    Map a raw score/total onto the percentage-grade scale.

    A partial score lands between PG_FLOOR and 100; a category with no total
    yields 0 instead of dividing by zero.
    """
    score = to_decimal(score)
    total = to_decimal(total)
    if total <= 0:
        return round2(ZERO)
    return round2(score / total * PG_SPAN + PG_FLOOR)


def compose_weighted_grade(quiz_pg, class_standing_pg, sep_pg, project_pg, exam_pg,
                           recitation_score, attendance_score, weights):
    """
    Apply the category weights and total them.

    Each weighted value is rounded to 2 places before summing; the sum is
    rounded to 2 places and then to a whole number.

    Raises:
        ConfigurationMissing: If no weights were supplied
    """
    if weights is None:
        raise ConfigurationMissing()

    quiz_weighted = round2(to_decimal(quiz_pg) * weights.quiz)

    class_standing_average = round2(
        (to_decimal(recitation_score) + to_decimal(attendance_score) + to_decimal(class_standing_pg))
        / CLASS_STANDING_PARTS
    )
    class_standing_weighted = round2(class_standing_average * weights.class_standing)

    sep_weighted = round2(to_decimal(sep_pg) * weights.sep)
    project_weighted = round2(to_decimal(project_pg) * weights.project)
    exam_weighted = round2(to_decimal(exam_pg) * weights.exam_portion)

    final_percentage = round2(
        quiz_weighted
        + class_standing_weighted
        + sep_weighted
        + project_weighted
        + exam_weighted
    )

    return WeightedBreakdown(
        quiz_weighted=quiz_weighted,
        class_standing_average=class_standing_average,
        class_standing_weighted=class_standing_weighted,
        sep_weighted=sep_weighted,
        project_weighted=project_weighted,
        exam_weighted=exam_weighted,
        final_percentage=final_percentage,
        final_rounded=round_whole(final_percentage),
    )


def _midterm_exam_portion(bundle):
    return (
        bundle.prelim_score + bundle.midterm_score,
        bundle.prelim_total + bundle.midterm_total,
    )


def _finals_exam_portion(bundle):
    return bundle.finals_score, bundle.finals_total


# Which raw exam fields feed the exam portion for each term
EXAM_PORTION_SELECTORS = {
    Term.MIDTERM: _midterm_exam_portion,
    Term.FINALS: _finals_exam_portion,
}


def compute_term_grade(bundle, weights, scale, term, enforce_weight_sum=True):
    """
    Compute the term grade for one student.

    Args:
        bundle: ScoreBundle of raw scores
        weights: WeightConfig (None raises ConfigurationMissing)
        scale: GradeScale or iterable of GradeScaleEntry
        term: Term.MIDTERM or Term.FINALS (or their string values)
        enforce_weight_sum: Reject weights that do not sum to 1.00

    Returns:
        ComputedGrade

    Raises:
        ConfigurationMissing: No weights supplied
        InvalidWeightConfig: Weights out of range or not summing to 1.00
        InvalidGradeScale: Overlapping or inverted grade scale entries
        ValueError: Unknown term
    """
    if weights is None:
        raise ConfigurationMissing()
    weights.validate(enforce_sum=enforce_weight_sum)
    if not isinstance(scale, GradeScale):
        scale = GradeScale(scale or ())

    try:
        term = Term(term)
    except ValueError:
        raise ValueError(f"Unknown term: {term!r}") from None

    quiz_score, quiz_possible = aggregate_category(bundle.quizzes)
    cs_score, cs_possible = aggregate_category(bundle.class_standing_items)
    exam_score, exam_possible = EXAM_PORTION_SELECTORS[term](bundle)

    quiz_pg = rescale_percentage(quiz_score, quiz_possible)
    class_standing_pg = rescale_percentage(cs_score, cs_possible)
    exam_pg = rescale_percentage(exam_score, exam_possible)
    sep_pg = bundle.sep_score
    project_pg = bundle.project_score

    breakdown = compose_weighted_grade(
        quiz_pg=quiz_pg,
        class_standing_pg=class_standing_pg,
        sep_pg=sep_pg,
        project_pg=project_pg,
        exam_pg=exam_pg,
        recitation_score=bundle.recitation_score,
        attendance_score=bundle.attendance_score,
        weights=weights,
    )

    resolution = resolve_grade_point(breakdown.final_rounded, scale)

    grade = ComputedGrade(
        term=term.value,
        quiz_score_total=quiz_score,
        quiz_possible_total=quiz_possible,
        quiz_pg=quiz_pg,
        quiz_weighted=breakdown.quiz_weighted,
        class_standing_score_total=cs_score,
        class_standing_possible_total=cs_possible,
        class_standing_pg=class_standing_pg,
        recitation_score=bundle.recitation_score,
        attendance_score=bundle.attendance_score,
        class_standing_average=breakdown.class_standing_average,
        class_standing_weighted=breakdown.class_standing_weighted,
        sep_pg=sep_pg,
        sep_weighted=breakdown.sep_weighted,
        project_pg=project_pg,
        project_weighted=breakdown.project_weighted,
        exam_score_total=exam_score,
        exam_possible_total=exam_possible,
        exam_pg=exam_pg,
        exam_weighted=breakdown.exam_weighted,
        final_percentage=breakdown.final_percentage,
        final_rounded=breakdown.final_rounded,
        grade_point=resolution.grade_point,
        scale_matched=resolution.matched,
        scale_fallback=resolution.fallback,
        student_ref=bundle.student_ref,
        subject_ref=bundle.subject_ref,
        semester=bundle.semester,
        academic_year=bundle.academic_year,
    )

    logger.debug(
        f"Calculated {term.label} grade for {bundle.student_ref or 'student'}: "
        f"{grade.final_percentage}% ({grade.final_rounded}) -> {grade.grade_point}"
    )

    return grade


def compute_midterm_grade(bundle, weights, scale, enforce_weight_sum=True):
    """Midterm grade: the exam portion is prelim + midterm combined."""
    return compute_term_grade(bundle, weights, scale, Term.MIDTERM, enforce_weight_sum)


def compute_finals_grade(bundle, weights, scale, enforce_weight_sum=True):
    """Finals grade: the exam portion is the final exam alone."""
    return compute_term_grade(bundle, weights, scale, Term.FINALS, enforce_weight_sum)
