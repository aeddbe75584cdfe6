"""
Grade point resolution.

Maps a final rounded percentage to the institution's grade point equivalent.
Rounded percentages at or below the failing threshold always resolve to the
failing grade point; above it the grade scale table is consulted.
"""
import logging
from bisect import bisect_right
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .exceptions import InvalidGradeScale
from .utils import to_decimal

logger = logging.getLogger(__name__)

_UNBOUNDED = Decimal('-Infinity')

# Rounded percentages at or below this always get the failing grade point
FAILING_THRESHOLD = 73
FAILING_GRADE_POINT = Decimal('5.00')


@dataclass(frozen=True)
class GradeScaleEntry:
    """One row of the grade point table (e.g. 1.75 = 88-90%)."""
    max_percentage: Decimal
    grade_point: Decimal
    min_percentage: Optional[Decimal] = None
    label: str = ''

    def __post_init__(self):
        object.__setattr__(self, 'max_percentage', to_decimal(self.max_percentage))
        object.__setattr__(self, 'grade_point', to_decimal(self.grade_point))
        if self.min_percentage is not None:
            object.__setattr__(self, 'min_percentage', to_decimal(self.min_percentage))

    @property
    def lower_bound(self):
        """Effective minimum; an absent minimum is unbounded below."""
        return _UNBOUNDED if self.min_percentage is None else self.min_percentage

    def covers(self, percentage):
        percentage = to_decimal(percentage)
        return self.lower_bound <= percentage <= self.max_percentage

    def __str__(self):
        low = '' if self.min_percentage is None else self.min_percentage
        return f"{self.grade_point} ({low}-{self.max_percentage}%)"


@dataclass(frozen=True)
class ScaleResolution:
    grade_point: Decimal
    entry: Optional[GradeScaleEntry] = None
    fallback: bool = False

    @property
    def matched(self):
        return self.entry is not None


class GradeScale:
    """
    Validated, ordered grade point table.

    Entries are sorted by their effective minimum and checked for inverted or
    overlapping ranges, so lookups never depend on the order the rows were
    supplied in. Gaps are allowed; a percentage that falls in a gap matches
    nothing.
    """

    def __init__(self, entries=()):
        ordered = sorted(
            (e if isinstance(e, GradeScaleEntry) else GradeScaleEntry(**e) for e in entries),
            key=lambda e: (e.lower_bound, e.max_percentage),
        )

        for entry in ordered:
            if entry.min_percentage is not None and entry.min_percentage > entry.max_percentage:
                raise InvalidGradeScale(
                    f'Minimum percentage cannot be greater than maximum percentage: {entry}'
                )

        for lower, upper in zip(ordered, ordered[1:]):
            if upper.lower_bound <= lower.max_percentage:
                raise InvalidGradeScale(
                    f'Grade range {upper} overlaps with existing grade: {lower}'
                )

        self._entries = tuple(ordered)
        self._lower_bounds = [e.lower_bound for e in ordered]

    def __len__(self):
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def __repr__(self):
        return f"GradeScale({list(self._entries)!r})"

    def find(self, percentage):
        """Return the entry covering ``percentage`` or None."""
        percentage = to_decimal(percentage)
        index = bisect_right(self._lower_bounds, percentage) - 1
        if index < 0:
            return None
        entry = self._entries[index]
        if percentage <= entry.max_percentage:
            return entry
        return None


def resolve_grade_point(final_rounded, scale):
    """
    Resolve the grade point for a final rounded percentage.

    Args:
        final_rounded: Whole-number final percentage
        scale: GradeScale or an iterable of GradeScaleEntry

    Returns:
        ScaleResolution
    """
    if final_rounded <= FAILING_THRESHOLD:
        return ScaleResolution(grade_point=FAILING_GRADE_POINT)

    if not isinstance(scale, GradeScale):
        scale = GradeScale(scale or ())

    entry = scale.find(final_rounded)
    if entry is None:
        logger.warning(
            f"No grade scale entry covers {final_rounded}%; "
            f"falling back to {FAILING_GRADE_POINT}. Check the grade point table."
        )
        return ScaleResolution(grade_point=FAILING_GRADE_POINT, fallback=True)

    return ScaleResolution(grade_point=entry.grade_point, entry=entry)
