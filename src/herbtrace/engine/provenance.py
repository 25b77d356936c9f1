"""Fold per-stage ledger data into one chain-of-custody view."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..exceptions import LedgerError, NotFoundError
from ..identifiers import ChainIdentifier, parse_identifier
from ..ledger.base import LedgerAdapter, QueryFunction, Receipt
from ..records import (
    ChainState,
    CommittedRecord,
    QualityRecord,
    Stage,
    deserialize_record,
    serialize_record,
)

logger = logging.getLogger(__name__)


ORGANIZATIONS = {
    Stage.COLLECTION: "FarmersCoop",
    Stage.QUALITY: "LabsOrg",
    Stage.PROCESSING: "ProcessorsOrg",
    Stage.MANUFACTURING: "ManufacturersOrg",
}

_HIDDEN_DETAIL_KEYS = {"chainId", "timestamp", "imageHash", "metadataHash"}


@dataclass(frozen=True)
class ProvenanceStep:
    stage: Stage
    timestamp: datetime
    organization: str
    transaction_id: str
    simulated: bool
    details: Dict[str, Any] = field(hash=False)
    image_hash: Optional[str] = None
    metadata_hash: Optional[str] = None


@dataclass(frozen=True)
class ProvenanceChain:
    chain_id: str
    collection: CommittedRecord
    quality: Optional[CommittedRecord] = None
    processing: Optional[CommittedRecord] = None
    manufacturing: Optional[CommittedRecord] = None

    @property
    def state(self) -> ChainState:
        if self.manufacturing is not None:
            return ChainState.MANUFACTURED
        if self.processing is not None:
            return ChainState.PROCESSED
        if self.quality is not None:
            record = self.quality.record
            assert isinstance(record, QualityRecord)
            return ChainState.QUALITY_PASSED if record.passed else ChainState.QUALITY_FAILED
        return ChainState.COLLECTED

    @property
    def simulated(self) -> bool:
        return any(committed.receipt.simulated for _, committed in self.stages())

    def stages(self) -> List[Tuple[Stage, CommittedRecord]]:
        entries = [
            (Stage.COLLECTION, self.collection),
            (Stage.QUALITY, self.quality),
            (Stage.PROCESSING, self.processing),
            (Stage.MANUFACTURING, self.manufacturing),
        ]
        return [(stage, committed) for stage, committed in entries if committed is not None]

    def timeline(self) -> List[ProvenanceStep]:
        steps: List[ProvenanceStep] = []
        for stage, committed in self.stages():
            data = serialize_record(committed.record)
            steps.append(
                ProvenanceStep(
                    stage=stage,
                    timestamp=committed.record.timestamp,
                    organization=ORGANIZATIONS[stage],
                    transaction_id=committed.receipt.transaction_id,
                    simulated=committed.receipt.simulated,
                    details={k: v for k, v in data.items() if k not in _HIDDEN_DETAIL_KEYS},
                    image_hash=committed.record.image_hash,
                    metadata_hash=committed.record.metadata_hash,
                )
            )
        return steps

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "chainId": self.chain_id,
            "state": self.state.value,
            "simulated": self.simulated,
        }
        for stage in Stage:
            committed = getattr(self, stage.value)
            payload[stage.value] = (
                None
                if committed is None
                else {
                    "record": serialize_record(committed.record),
                    "receipt": committed.receipt.as_dict(),
                }
            )
        return payload


class ProvenanceAssembler:
    """Reconstruct a chain from the ledger's ``GetProvenance`` answer."""

    def __init__(self, ledger: LedgerAdapter) -> None:
        self.ledger = ledger

    async def find(self, chain_id: Union[ChainIdentifier, str]) -> Optional[ProvenanceChain]:
        identifier = _identifier(chain_id)
        stages = await self.ledger.evaluate(
            QueryFunction.GET_PROVENANCE, {"chainId": identifier.value}
        )
        if not stages:
            return None
        return fold_stages(identifier.value, stages)

    async def get_provenance(self, chain_id: Union[ChainIdentifier, str]) -> ProvenanceChain:
        chain = await self.find(chain_id)
        if chain is None:
            logger.info("provenance query for unknown chain %s", chain_id)
            raise NotFoundError(str(chain_id))
        return chain


def fold_stages(chain_id: str, stages: Mapping[str, Any]) -> Optional[ProvenanceChain]:
    """Build a :class:`ProvenanceChain` from per-stage ledger entries.

    Returns None when the collection entry is missing; stages after the last
    reached one stay None.
    """

    committed: Dict[Stage, Optional[CommittedRecord]] = {}
    for stage in Stage:
        entry = stages.get(stage.value)
        if not entry:
            committed[stage] = None
            continue
        try:
            committed[stage] = CommittedRecord(
                record=deserialize_record(stage, entry["data"]),
                receipt=Receipt.from_dict(entry["transaction"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerError(f"malformed {stage.value} entry for {chain_id}: {exc}") from exc

    collection = committed[Stage.COLLECTION]
    if collection is None:
        return None
    return ProvenanceChain(
        chain_id=chain_id,
        collection=collection,
        quality=committed[Stage.QUALITY],
        processing=committed[Stage.PROCESSING],
        manufacturing=committed[Stage.MANUFACTURING],
    )


def _identifier(chain_id: Union[ChainIdentifier, str]) -> ChainIdentifier:
    if isinstance(chain_id, ChainIdentifier):
        return chain_id
    return parse_identifier(chain_id)
