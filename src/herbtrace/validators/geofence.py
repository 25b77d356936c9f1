"""Rectangular geofence checks."""

from __future__ import annotations

from typing import Iterable, Optional

from ..config import Zone


def in_zone(lat: float, lng: float, zone: Zone) -> bool:
    """Return True when the point lies inside *zone*; every edge is inclusive."""

    return zone.min_lat <= lat <= zone.max_lat and zone.min_lng <= lng <= zone.max_lng


def find_zone(lat: float, lng: float, zones: Iterable[Zone]) -> Optional[Zone]:
    for zone in zones:
        if in_zone(lat, lng, zone):
            return zone
    return None
