"""Zone and herb catalog helpers."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..config import ConfigBundle, HerbSpec, Zone

logger = logging.getLogger(__name__)


class Registry:
    """Lookup view over permitted zones and registered herbs.

    Zones keep their configured order; geofence matching relies on it. A
    deactivated zone stays in the registry and only drops out of
    :meth:`active_zones`.
    """

    def __init__(self, zones: Iterable[Zone], herbs: Iterable[HerbSpec]):
        self._zones: List[Zone] = list(zones)
        self._herbs: List[HerbSpec] = list(herbs)
        self._herbs_by_id: Dict[str, HerbSpec] = {herb.id: herb for herb in self._herbs}
        self._herbs_by_name: Dict[str, HerbSpec] = {
            herb.name.lower(): herb for herb in self._herbs
        }

    @classmethod
    def from_config(cls, config: ConfigBundle) -> "Registry":
        return cls(config.zones.zones, config.herbs.herbs)

    def zones(self) -> List[Zone]:
        return list(self._zones)

    def active_zones(self) -> List[Zone]:
        return [zone for zone in self._zones if zone.active]

    def zone(self, zone_id: str) -> Zone:
        for zone in self._zones:
            if zone.id == zone_id:
                return zone
        raise KeyError(zone_id)

    def herb(self, key: str) -> HerbSpec:
        """Return the herb registered under *key* (id, or case-insensitive name)."""

        herb = self._herbs_by_id.get(key) or self._herbs_by_name.get(key.strip().lower())
        if herb is None:
            raise KeyError(key)
        return herb

    def find_herb(self, key: str) -> Optional[HerbSpec]:
        try:
            return self.herb(key)
        except KeyError:
            return None

    def deactivate_zone(self, zone_id: str, when: Optional[datetime] = None) -> Zone:
        when = when or datetime.now(timezone.utc)
        for index, zone in enumerate(self._zones):
            if zone.id != zone_id:
                continue
            if not zone.active:
                return zone
            updated = zone.model_copy(update={"active": False, "deactivated_at": when})
            self._zones[index] = updated
            logger.info("zone %s deactivated at %s", zone_id, when.isoformat())
            return updated
        raise KeyError(zone_id)
