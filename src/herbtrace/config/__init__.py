"""Public configuration API."""

from .loader import ConfigFiles, load_config_bundle
from .models import (
    ConfigBundle,
    HerbSpec,
    HerbsConfig,
    LedgerConfig,
    Limit,
    QualityStandards,
    RulesConfig,
    Zone,
    ZonesConfig,
)

__all__ = [
    "ConfigFiles",
    "ConfigBundle",
    "HerbSpec",
    "HerbsConfig",
    "LedgerConfig",
    "Limit",
    "QualityStandards",
    "RulesConfig",
    "Zone",
    "ZonesConfig",
    "load_config_bundle",
]
