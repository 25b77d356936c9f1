"""Quality gate evaluation against a herb's registered limits."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from ..config import QualityStandards


@dataclass(frozen=True)
class QualityMeasurement:
    moisture: float
    pesticide: float
    heavy_metal: float


@dataclass(frozen=True)
class QualityResult:
    passed: bool
    failing_metrics: Tuple[str, ...] = ()


def evaluate_quality(
    measurement: QualityMeasurement, standard: QualityStandards
) -> QualityResult:
    """Compare *measurement* with *standard*.

    A value equal to its limit passes; a value that is not comparable (NaN) fails.
    """

    checks = (
        ("moisture", measurement.moisture, standard.moisture.max),
        ("pesticide", measurement.pesticide, standard.pesticides.max),
        ("heavyMetal", measurement.heavy_metal, standard.heavy_metals.max),
    )
    failing = tuple(name for name, value, limit in checks if not value <= limit)
    return QualityResult(passed=not failing, failing_metrics=failing)
