"""
Exceptions raised by the grade calculation engine.

Only configuration problems are fatal. Empty categories and unmatched
grade-scale ranges are recovered inside the engine and never raise.
"""


class GradeCalculationError(Exception):
    """Base class for grade calculation failures."""


class ConfigurationMissing(GradeCalculationError):
    """No active grade weight configuration was supplied or found."""

    def __init__(self, message='Grade weights not found.'):
        super().__init__(message)


class InvalidWeightConfig(GradeCalculationError, ValueError):
    """Weight fractions are out of range or do not sum to 1.00."""


class InvalidGradeScale(GradeCalculationError, ValueError):
    """Grade scale entries are inverted or overlap each other."""
