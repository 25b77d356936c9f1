"""Unit tests for configuration loading."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from herbtrace.config import ConfigBundle, load_config_bundle
from herbtrace.exceptions import ConfigError


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


@pytest.fixture(autouse=True)
def _clear_ledger_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("HERBTRACE_LEDGER_MODE", raising=False)
    monkeypatch.delenv("HERBTRACE_GATEWAY_URL", raising=False)


def test_load_config_bundle_success() -> None:
    bundle = load_config_bundle(CONFIG_DIR)
    assert isinstance(bundle, ConfigBundle)
    assert [zone.id for zone in bundle.zones.zones][0] == "ZONE_RJ_01"
    ashwagandha = bundle.herbs.herbs[0]
    assert ashwagandha.name == "Ashwagandha"
    assert (ashwagandha.season_start, ashwagandha.season_end) == (10, 3)
    assert ashwagandha.quality_standards.moisture.max == 12
    assert bundle.ledger.mode == "auto"
    assert bundle.rules.enforce_season is True


def test_season_window_wraps_year_end() -> None:
    herb = load_config_bundle(CONFIG_DIR).herbs.herbs[0]
    assert herb.in_season(10)
    assert herb.in_season(1)
    assert herb.in_season(3)
    assert not herb.in_season(4)
    assert not herb.in_season(9)


def test_optional_files_fall_back_to_defaults(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    bundle = load_config_bundle(tmp_path)
    assert bundle.ledger.simulated_submit_delay_ms == 500
    assert bundle.ledger.history_limit == 100
    assert bundle.rules.enforce_zone_yield is True


def test_missing_zones_file_is_reported(tmp_path: Path) -> None:
    shutil.copy(CONFIG_DIR / "herbs.toml", tmp_path / "herbs.toml")
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    assert "zones.toml" in str(exc.value)
    assert "not found" in str(exc.value)


def test_inverted_zone_rectangle_is_rejected(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    (tmp_path / "zones.toml").write_text(
        """
[[zones]]
id = "Z1"
name = "Broken"
min_lat = 27.0
min_lng = 75.0
max_lat = 26.0
max_lng = 76.0
max_yield = 100
""".strip()
    )
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    message = str(exc.value)
    assert "zones.toml" in message
    assert "zones[0]" in message
    assert "min_lat" in message


def test_duplicate_herb_names_are_rejected(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    text = (CONFIG_DIR / "herbs.toml").read_text()
    (tmp_path / "herbs.toml").write_text(text.replace('id = "herb_041"\nname = "Tulsi"', 'id = "herb_041"\nname = "ashwagandha"'))
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    assert "duplicates herb name" in str(exc.value)


def test_unknown_month_is_rejected(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    text = (CONFIG_DIR / "herbs.toml").read_text()
    (tmp_path / "herbs.toml").write_text(text.replace('"October"', '"Octember"', 1))
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    assert "Octember" in str(exc.value)


def test_environment_overrides_ledger_mode(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    _copy_required(tmp_path)
    monkeypatch.setenv("HERBTRACE_LEDGER_MODE", "simulated")
    monkeypatch.setenv("HERBTRACE_GATEWAY_URL", "http://gateway.local:8801")
    bundle = load_config_bundle(tmp_path)
    assert bundle.ledger.mode == "simulated"
    assert bundle.ledger.gateway_url == "http://gateway.local:8801"


def test_fabric_mode_requires_gateway_url(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    (tmp_path / "ledger.toml").write_text('mode = "fabric"\n')
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    assert "ledger.toml" in str(exc.value)
    assert "gateway_url" in str(exc.value)


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    _copy_required(tmp_path)
    (tmp_path / "rules.toml").write_text("enforce_season = \n")
    with pytest.raises(ConfigError) as exc:
        load_config_bundle(tmp_path)
    assert "rules.toml" in str(exc.value)


def _copy_required(target: Path) -> None:
    shutil.copy(CONFIG_DIR / "zones.toml", target / "zones.toml")
    shutil.copy(CONFIG_DIR / "herbs.toml", target / "herbs.toml")
