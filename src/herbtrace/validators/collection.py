"""Rule checks for a collection event before it is committed."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence

from ..config import HerbSpec, RulesConfig, Zone
from .geofence import find_zone
from .issues import ValidationIssue


@dataclass(frozen=True)
class CollectionDraft:
    herb: HerbSpec
    weight: float
    latitude: float
    longitude: float
    timestamp: datetime


def validate_collection(
    draft: CollectionDraft,
    zones: Sequence[Zone],
    rules: RulesConfig,
    *,
    zone_yield: Optional[float] = None,
) -> List[ValidationIssue]:
    """Return every rule the draft breaks.

    *zones* must already be filtered to active zones. *zone_yield* is the weight
    already collected in the matched zone; the aggregate check is skipped when
    it is None.
    """

    issues: List[ValidationIssue] = []
    herb = draft.herb

    if not herb.active:
        issues.append(
            ValidationIssue(
                code="E_HERB_INACTIVE",
                message=f"herb {herb.name} is not accepted for collection",
                location="herbId",
            )
        )

    weight_ok = math.isfinite(draft.weight) and draft.weight > 0
    if not weight_ok:
        issues.append(
            ValidationIssue(
                code="E_WEIGHT_NOT_POSITIVE",
                message="weight must be a finite number > 0",
                location="weight",
            )
        )
    elif not draft.weight <= herb.max_yield_per_collection:
        issues.append(
            ValidationIssue(
                code="E_WEIGHT_OVER_LIMIT",
                message=(
                    f"weight {draft.weight:g} exceeds {herb.name} limit "
                    f"{herb.max_yield_per_collection:g} per collection"
                ),
                location="weight",
            )
        )

    if not (-90 <= draft.latitude <= 90 and -180 <= draft.longitude <= 180):
        issues.append(
            ValidationIssue(
                code="E_COORDINATE_RANGE",
                message=f"coordinate ({draft.latitude}, {draft.longitude}) out of range",
                location="lat,lng",
            )
        )
        return issues

    zone = find_zone(draft.latitude, draft.longitude, zones)
    if zone is None:
        issues.append(
            ValidationIssue(
                code="E_OUTSIDE_ZONE",
                message=(
                    f"coordinate ({draft.latitude}, {draft.longitude}) is not in an "
                    "approved zone"
                ),
                location="lat,lng",
            )
        )
    elif (
        rules.enforce_zone_yield
        and zone_yield is not None
        and weight_ok
        and not zone_yield + draft.weight <= zone.max_yield
    ):
        issues.append(
            ValidationIssue(
                code="E_ZONE_YIELD_EXCEEDED",
                message=(
                    f"zone {zone.id} has {zone_yield:g} of {zone.max_yield:g} collected; "
                    f"{draft.weight:g} more would exceed it"
                ),
                location="weight",
            )
        )

    if rules.enforce_season and not herb.in_season(draft.timestamp.month):
        issues.append(
            ValidationIssue(
                code="E_OUT_OF_SEASON",
                message=(
                    f"{herb.name} may be collected in months "
                    f"{herb.season_start}..{herb.season_end}, not {draft.timestamp.month}"
                ),
                location="timestamp",
            )
        )

    return issues
