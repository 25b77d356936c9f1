"""Tests for the zone and herb registry."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from herbtrace.config import load_config_bundle
from herbtrace.registry import Registry

CONFIG = load_config_bundle(Path(__file__).resolve().parents[1] / "config")


def test_herb_lookup_by_id_and_name() -> None:
    registry = Registry.from_config(CONFIG)
    assert registry.herb("herb_138").name == "Ashwagandha"
    assert registry.herb("ashwagandha").id == "herb_138"
    assert registry.herb(" Tulsi ").id == "herb_041"
    assert registry.find_herb("Mandrake") is None
    with pytest.raises(KeyError):
        registry.herb("Mandrake")


def test_zone_lookup_keeps_configured_order() -> None:
    registry = Registry.from_config(CONFIG)
    assert [zone.name for zone in registry.zones()] == ["Rajasthan", "Gujarat", "Maharashtra"]
    assert registry.zone("ZONE_GJ_01").max_yield == 400
    with pytest.raises(KeyError):
        registry.zone("ZONE_XX")


def test_deactivate_zone_is_soft() -> None:
    registry = Registry.from_config(CONFIG)
    when = datetime(2025, 11, 1, tzinfo=timezone.utc)

    zone = registry.deactivate_zone("ZONE_RJ_01", when)

    assert zone.active is False
    assert zone.deactivated_at == when
    assert "ZONE_RJ_01" not in [z.id for z in registry.active_zones()]
    assert registry.zone("ZONE_RJ_01").active is False
    assert len(registry.zones()) == 3
    # the configured bundle is untouched
    assert CONFIG.zones.zones[0].active is True


def test_deactivate_zone_twice_keeps_first_timestamp() -> None:
    registry = Registry.from_config(CONFIG)
    first = registry.deactivate_zone("ZONE_MH_01", datetime(2025, 1, 1, tzinfo=timezone.utc))
    second = registry.deactivate_zone("ZONE_MH_01", datetime(2026, 1, 1, tzinfo=timezone.utc))
    assert second.deactivated_at == first.deactivated_at


def test_deactivate_unknown_zone_raises() -> None:
    registry = Registry.from_config(CONFIG)
    with pytest.raises(KeyError):
        registry.deactivate_zone("ZONE_XX")
