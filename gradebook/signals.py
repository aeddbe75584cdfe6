"""
Signals for cache invalidation when grading configuration changes.

Saving or deleting GradeWeights or GradePointEquivalent rows clears the
cached lookups so the next calculation sees the new configuration.
"""
import logging

from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver

from .models import GradeWeights, GradePointEquivalent
from .lookups import invalidate_weights_cache, invalidate_grade_scale_cache

logger = logging.getLogger(__name__)


@receiver(post_save, sender=GradeWeights)
@receiver(post_delete, sender=GradeWeights)
def weights_changed(sender, instance, **kwargs):
    """Invalidate weights cache when a weighting scheme is modified."""
    invalidate_weights_cache()
    logger.debug(f"Weights cache invalidated due to {sender.__name__} change")


@receiver(post_save, sender=GradePointEquivalent)
@receiver(post_delete, sender=GradePointEquivalent)
def grade_scale_changed(sender, instance, **kwargs):
    """Invalidate grade scale cache when a grade point row is modified."""
    invalidate_grade_scale_cache()
    logger.debug(f"Grade scale cache invalidated due to {sender.__name__} change")
