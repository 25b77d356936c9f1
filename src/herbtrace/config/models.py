"""Pydantic models describing configuration files."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


MONTHS = {
    name: index
    for index, name in enumerate(
        [
            "january",
            "february",
            "march",
            "april",
            "may",
            "june",
            "july",
            "august",
            "september",
            "october",
            "november",
            "december",
        ],
        start=1,
    )
}


class Zone(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    min_lat: float = Field(ge=-90, le=90)
    min_lng: float = Field(ge=-180, le=180)
    max_lat: float = Field(ge=-90, le=90)
    max_lng: float = Field(ge=-180, le=180)
    max_yield: float = Field(gt=0)
    active: bool = True
    deactivated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def ensure_rectangle(self) -> "Zone":
        if self.min_lat > self.max_lat:
            raise ValueError("min_lat must not exceed max_lat")
        if self.min_lng > self.max_lng:
            raise ValueError("min_lng must not exceed max_lng")
        return self


class ZonesConfig(BaseModel):
    zones: List[Zone]

    @model_validator(mode="after")
    def ensure_unique_ids(self) -> "ZonesConfig":
        seen: Dict[str, Zone] = {}
        for idx, zone in enumerate(self.zones):
            if zone.id in seen:
                raise ValueError(f"zones[{idx}].id duplicates zone id {zone.id}")
            seen[zone.id] = zone
        return self


class Limit(BaseModel):
    model_config = ConfigDict(frozen=True)

    max: float = Field(ge=0)
    unit: str = ""


class QualityStandards(BaseModel):
    model_config = ConfigDict(frozen=True)

    moisture: Limit
    pesticides: Limit
    heavy_metals: Limit


class HerbSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    scientific_name: str = ""
    season_start: int
    season_end: int
    max_yield_per_collection: float = Field(gt=0)
    quality_standards: QualityStandards
    active: bool = True

    @field_validator("season_start", "season_end", mode="before")
    @classmethod
    def parse_month(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip().isdigit():
            month = MONTHS.get(value.strip().lower())
            if month is None:
                raise ValueError(f"unknown month '{value}'")
            return month
        return value

    @field_validator("season_start", "season_end")
    @classmethod
    def check_month(cls, value: int) -> int:
        if not 1 <= value <= 12:
            raise ValueError("month must be within 1..12")
        return value

    def in_season(self, month: int) -> bool:
        if self.season_start <= self.season_end:
            return self.season_start <= month <= self.season_end
        # window wraps the year end, e.g. October..March
        return month >= self.season_start or month <= self.season_end


class HerbsConfig(BaseModel):
    herbs: List[HerbSpec]

    @model_validator(mode="after")
    def ensure_unique(self) -> "HerbsConfig":
        seen_ids: Dict[str, HerbSpec] = {}
        seen_names: Dict[str, HerbSpec] = {}
        for idx, herb in enumerate(self.herbs):
            if herb.id in seen_ids:
                raise ValueError(f"herbs[{idx}].id duplicates herb id {herb.id}")
            key = herb.name.lower()
            if key in seen_names:
                raise ValueError(f"herbs[{idx}].name duplicates herb name {herb.name}")
            seen_ids[herb.id] = herb
            seen_names[key] = herb
        return self


class LedgerConfig(BaseModel):
    mode: Literal["auto", "fabric", "simulated"] = "auto"
    gateway_url: Optional[str] = None
    channel: str = "ayurveda-channel"
    chaincode: str = "herbtraceability"
    identity: str = "admin"
    probe_timeout_s: float = Field(default=3.0, gt=0)
    request_timeout_s: float = Field(default=30.0, gt=0)
    simulated_submit_delay_ms: int = Field(default=500, ge=0)
    simulated_evaluate_delay_ms: int = Field(default=300, ge=0)
    history_limit: int = Field(default=100, gt=0)

    @model_validator(mode="after")
    def check_gateway(self) -> "LedgerConfig":
        if self.mode == "fabric" and not self.gateway_url:
            raise ValueError("gateway_url is required when mode = 'fabric'")
        return self


class RulesConfig(BaseModel):
    enforce_season: bool = True
    enforce_zone_yield: bool = True


class ConfigBundle(BaseModel):
    zones: ZonesConfig
    herbs: HerbsConfig
    ledger: LedgerConfig
    rules: RulesConfig
