"""Stage records and their wire format."""

from .models import (
    Actor,
    ChainState,
    CollectionEvent,
    CommittedRecord,
    ManufacturingRecord,
    ProcessingRecord,
    QualityRecord,
    Role,
    Stage,
    StageRecord,
)
from .serialization import deserialize_record, serialize_record

__all__ = [
    "Actor",
    "ChainState",
    "CollectionEvent",
    "CommittedRecord",
    "ManufacturingRecord",
    "ProcessingRecord",
    "QualityRecord",
    "Role",
    "Stage",
    "StageRecord",
    "deserialize_record",
    "serialize_record",
]
