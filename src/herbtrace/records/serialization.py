"""Serialization helpers for stage records.

Wire keys follow the ledger's transaction argument names (camelCase).
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, Optional

from .models import (
    CollectionEvent,
    ManufacturingRecord,
    ProcessingRecord,
    QualityRecord,
    Stage,
    StageRecord,
)


def serialize_record(record: StageRecord) -> Dict:
    if isinstance(record, CollectionEvent):
        return {
            "chainId": record.chain_id,
            "herbId": record.herb_id,
            "weight": record.weight,
            "lat": record.latitude,
            "lng": record.longitude,
            "zoneId": record.zone_id,
            "collectorId": record.collector_id,
            "timestamp": _serialize_datetime(record.timestamp),
            **_serialize_evidence(record),
        }
    if isinstance(record, QualityRecord):
        return {
            "chainId": record.chain_id,
            "moisture": record.moisture,
            "pesticide": record.pesticide,
            "heavyMetal": record.heavy_metal,
            "passed": record.passed,
            "failingMetrics": list(record.failing_metrics),
            "testerId": record.tester_id,
            "timestamp": _serialize_datetime(record.timestamp),
            **_serialize_evidence(record),
        }
    if isinstance(record, ProcessingRecord):
        return {
            "chainId": record.chain_id,
            "method": record.method,
            "temperature": record.temperature,
            "duration": record.duration,
            "yield": record.yield_amount,
            "operatorId": record.operator_id,
            "timestamp": _serialize_datetime(record.timestamp),
            **_serialize_evidence(record),
        }
    if isinstance(record, ManufacturingRecord):
        return {
            "chainId": record.chain_id,
            "productName": record.product_name,
            "batchSize": record.batch_size,
            "expiryDate": record.expiry_date.isoformat(),
            "manufacturerId": record.manufacturer_id,
            "timestamp": _serialize_datetime(record.timestamp),
            **_serialize_evidence(record),
        }
    raise TypeError(f"Unsupported record type: {type(record)!r}")


def deserialize_record(stage: Stage, data: Dict) -> StageRecord:
    if stage is Stage.COLLECTION:
        return CollectionEvent(
            chain_id=data["chainId"],
            herb_id=data["herbId"],
            weight=float(data["weight"]),
            latitude=float(data["lat"]),
            longitude=float(data["lng"]),
            zone_id=data.get("zoneId", ""),
            collector_id=data["collectorId"],
            timestamp=_deserialize_datetime(data["timestamp"]),
            image_hash=data.get("imageHash"),
            metadata_hash=data.get("metadataHash"),
        )
    if stage is Stage.QUALITY:
        return QualityRecord(
            chain_id=data["chainId"],
            moisture=float(data["moisture"]),
            pesticide=float(data["pesticide"]),
            heavy_metal=float(data["heavyMetal"]),
            passed=bool(data["passed"]),
            failing_metrics=tuple(data.get("failingMetrics", ())),
            tester_id=data["testerId"],
            timestamp=_deserialize_datetime(data["timestamp"]),
            image_hash=data.get("imageHash"),
            metadata_hash=data.get("metadataHash"),
        )
    if stage is Stage.PROCESSING:
        return ProcessingRecord(
            chain_id=data["chainId"],
            method=data["method"],
            temperature=float(data["temperature"]),
            duration=float(data["duration"]),
            yield_amount=float(data["yield"]),
            operator_id=data["operatorId"],
            timestamp=_deserialize_datetime(data["timestamp"]),
            image_hash=data.get("imageHash"),
            metadata_hash=data.get("metadataHash"),
        )
    if stage is Stage.MANUFACTURING:
        return ManufacturingRecord(
            chain_id=data["chainId"],
            product_name=data["productName"],
            batch_size=int(data["batchSize"]),
            expiry_date=date.fromisoformat(data["expiryDate"]),
            manufacturer_id=data["manufacturerId"],
            timestamp=_deserialize_datetime(data["timestamp"]),
            image_hash=data.get("imageHash"),
            metadata_hash=data.get("metadataHash"),
        )
    raise ValueError(f"Unknown stage: {stage}")


def _serialize_evidence(record: StageRecord) -> Dict:
    return {"imageHash": record.image_hash, "metadataHash": record.metadata_hash}


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _deserialize_datetime(value: Optional[str]) -> datetime:
    if value is None:
        raise ValueError("timestamp required")
    return datetime.fromisoformat(value)
