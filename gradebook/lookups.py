"""
Cached lookups for the active grading configuration.

The engine itself never reads the database; callers use these helpers to
fetch the active weights and grade point table and pass them in explicitly.
Both are cached to avoid repeated queries during bulk calculation and are
invalidated by signals whenever the underlying rows change.
"""
import logging

from django.core.cache import cache

from . import config
from .exceptions import ConfigurationMissing
from .scales import GradeScale

logger = logging.getLogger(__name__)

WEIGHTS_CACHE_KEY = 'gradebook_active_weights'
GRADE_SCALE_CACHE_KEY = 'gradebook_grade_scale'

# Cached in place of None so a missing configuration is not re-queried
_MISSING = 'NONE'


def get_active_weights():
    """
    Get the active weight configuration with caching.

    Returns:
        WeightConfig or None if no active GradeWeights row exists
    """
    weights = cache.get(WEIGHTS_CACHE_KEY)

    if weights is None:
        from .models import GradeWeights

        row = GradeWeights.objects.filter(is_active=True).first()
        weights = row.to_weight_config() if row else None

        cache.set(WEIGHTS_CACHE_KEY, weights if weights else _MISSING, config.CONFIG_CACHE_TIMEOUT)
    elif weights == _MISSING:
        weights = None

    return weights


def require_active_weights():
    """
    Get the active weight configuration or fail.

    Raises:
        ConfigurationMissing: If no active weights are configured
    """
    weights = get_active_weights()
    if weights is None:
        logger.error("Grade weights not found in the database.")
        raise ConfigurationMissing('Grade weights not found in the database.')
    return weights


def get_grade_scale():
    """
    Get the grade point table with caching.

    Returns:
        GradeScale built from GradePointEquivalent rows (may be empty)
    """
    scale = cache.get(GRADE_SCALE_CACHE_KEY)

    if scale is None:
        from .models import GradePointEquivalent

        rows = GradePointEquivalent.objects.all().order_by('-min_percentage')
        scale = GradeScale(row.to_entry() for row in rows)
        cache.set(GRADE_SCALE_CACHE_KEY, scale, config.CONFIG_CACHE_TIMEOUT)

    return scale


def invalidate_weights_cache():
    cache.delete(WEIGHTS_CACHE_KEY)


def invalidate_grade_scale_cache():
    cache.delete(GRADE_SCALE_CACHE_KEY)
