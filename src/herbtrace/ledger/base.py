"""Ledger adapter contract and the values it exchanges."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping

from ..records.models import Stage


class StageOperation(Enum):
    """Transaction functions that commit a stage."""

    RECORD_COLLECTION = "RecordCollectionEvent"
    QUALITY_ATTESTATION = "QualityAttestation"
    TRANSFER_CUSTODY = "TransferCustody"
    BATCH_CREATION = "BatchCreation"

    @property
    def stage(self) -> Stage:
        return _STAGE_FOR_OPERATION[self]

    @classmethod
    def for_stage(cls, stage: Stage) -> "StageOperation":
        for operation, candidate in _STAGE_FOR_OPERATION.items():
            if candidate is stage:
                return operation
        raise KeyError(stage)


_STAGE_FOR_OPERATION = {
    StageOperation.RECORD_COLLECTION: Stage.COLLECTION,
    StageOperation.QUALITY_ATTESTATION: Stage.QUALITY,
    StageOperation.TRANSFER_CUSTODY: Stage.PROCESSING,
    StageOperation.BATCH_CREATION: Stage.MANUFACTURING,
}


class QueryFunction(Enum):
    GET_PROVENANCE = "GetProvenance"
    GET_ZONE_YIELD = "GetZoneYield"
    GET_TRANSACTION_HISTORY = "GetTransactionHistory"


@dataclass(frozen=True)
class Receipt:
    transaction_id: str
    sequence_number: int
    timestamp: datetime
    simulated: bool

    def as_dict(self) -> Dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "blockNumber": self.sequence_number,
            "timestamp": self.timestamp.isoformat(),
            "simulated": self.simulated,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Receipt":
        return cls(
            transaction_id=str(data["transactionId"]),
            sequence_number=int(data["blockNumber"]),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
            simulated=bool(data.get("simulated", False)),
        )


@dataclass(frozen=True)
class LedgerTransaction:
    """Commit envelope: the function, its arguments and the receipt."""

    operation: StageOperation
    args: Dict[str, Any] = field(hash=False)
    receipt: Receipt

    @property
    def chain_id(self) -> str:
        return str(self.args.get("chainId", ""))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "function": self.operation.value,
            "args": dict(self.args),
            **self.receipt.as_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LedgerTransaction":
        return cls(
            operation=StageOperation(data["function"]),
            args=dict(data.get("args", {})),
            receipt=Receipt.from_dict(data),
        )


class LedgerAdapter(ABC):
    """Executes stage transactions and queries against a backing ledger."""

    name: str = "ledger"

    @abstractmethod
    async def submit(self, operation: StageOperation, args: Mapping[str, Any]) -> Receipt:
        """Commit *operation* with *args* and return its receipt."""

    @abstractmethod
    async def evaluate(self, query: QueryFunction, args: Mapping[str, Any]) -> Any:
        """Run a read-only query; returns None when the ledger has no data."""

    def describe(self) -> Dict[str, Any]:
        return {"mode": self.name}

    async def close(self) -> None:
        return None
