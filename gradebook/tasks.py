"""
Celery tasks for gradebook app.
Handles async term grade calculation for a whole score sheet.
"""
import logging

from celery import shared_task

from . import config
from .batch import calculate_batch
from .exceptions import GradeCalculationError
from .lookups import get_grade_scale, require_active_weights


logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=0,
    soft_time_limit=config.TASK_SOFT_TIME_LIMIT,
    time_limit=config.TASK_TIME_LIMIT,
)
def calculate_term_grades_task(self, rows, term):
    """
    Calculate term grades for every row of a parsed score sheet.

    Uses the active weights and grade point table. Rows that cannot be
    calculated are returned as warnings; the computed grades are returned
    for the caller to store.

    Args:
        rows: List of row dicts (see gradebook.batch.bundle_from_mapping)
        term: 'MIDTERM' or 'FINALS'

    Returns:
        dict: {'success', 'grades', 'warnings', 'unmatched'} or
              {'success': False, 'error'} when the configuration or term is unusable
    """
    try:
        weights = require_active_weights()
        scale = get_grade_scale()
        result = calculate_batch(
            rows, weights, scale, term,
            enforce_weight_sum=config.ENFORCE_WEIGHT_SUM,
        )
    except (GradeCalculationError, ValueError) as e:
        logger.error(f"Term grade calculation failed: {e}")
        return {'success': False, 'error': str(e)}

    if result.unmatched:
        logger.warning(
            f"{len(result.unmatched)} grade(s) matched no grade scale entry; "
            f"check the grade point table"
        )

    return {'success': True, **result.as_dict()}
