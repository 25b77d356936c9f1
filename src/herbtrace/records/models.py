"""Data models for chain-of-custody stage records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover
    from ..ledger.base import Receipt


class Stage(Enum):
    COLLECTION = "collection"
    QUALITY = "quality"
    PROCESSING = "processing"
    MANUFACTURING = "manufacturing"


class ChainState(Enum):
    COLLECTED = "COLLECTED"
    QUALITY_PASSED = "QUALITY_PASSED"
    QUALITY_FAILED = "QUALITY_FAILED"
    PROCESSED = "PROCESSED"
    MANUFACTURED = "MANUFACTURED"

    @property
    def terminal(self) -> bool:
        return self in (ChainState.QUALITY_FAILED, ChainState.MANUFACTURED)


class Role(Enum):
    COLLECTOR = "collector"
    LAB = "lab"
    PROCESSOR = "processor"
    MANUFACTURER = "manufacturer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    id: str
    role: Role


@dataclass(frozen=True)
class CollectionEvent:
    chain_id: str
    herb_id: str
    weight: float
    latitude: float
    longitude: float
    zone_id: str
    collector_id: str
    timestamp: datetime
    image_hash: Optional[str] = None
    metadata_hash: Optional[str] = None


@dataclass(frozen=True)
class QualityRecord:
    chain_id: str
    moisture: float
    pesticide: float
    heavy_metal: float
    passed: bool
    failing_metrics: Tuple[str, ...]
    tester_id: str
    timestamp: datetime
    image_hash: Optional[str] = None
    metadata_hash: Optional[str] = None


@dataclass(frozen=True)
class ProcessingRecord:
    chain_id: str
    method: str
    temperature: float
    duration: float
    yield_amount: float
    operator_id: str
    timestamp: datetime
    image_hash: Optional[str] = None
    metadata_hash: Optional[str] = None


@dataclass(frozen=True)
class ManufacturingRecord:
    chain_id: str
    product_name: str
    batch_size: int
    expiry_date: date
    manufacturer_id: str
    timestamp: datetime
    image_hash: Optional[str] = None
    metadata_hash: Optional[str] = None


StageRecord = Union[CollectionEvent, QualityRecord, ProcessingRecord, ManufacturingRecord]


@dataclass(frozen=True)
class CommittedRecord:
    """A stage record together with the ledger receipt that committed it."""

    record: StageRecord
    receipt: "Receipt"
