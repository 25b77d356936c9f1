"""Validation utilities for stage transitions."""

from .collection import CollectionDraft, validate_collection
from .geofence import find_zone, in_zone
from .issues import ValidationIssue, ValidationSeverity
from .quality import QualityMeasurement, QualityResult, evaluate_quality

__all__ = [
    "CollectionDraft",
    "QualityMeasurement",
    "QualityResult",
    "ValidationIssue",
    "ValidationSeverity",
    "evaluate_quality",
    "find_zone",
    "in_zone",
    "validate_collection",
]
