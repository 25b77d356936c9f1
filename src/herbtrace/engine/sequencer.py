"""Stage state machine: validate, commit, return the chain's QR artifact."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional, Union

from ..config import RulesConfig
from ..exceptions import AuthorizationError, SequenceError, ValidationError
from ..identifiers import ChainIdentifier, IdentifierMinter, QRArtifact, encode, parse_identifier
from ..ledger.base import LedgerAdapter, QueryFunction, Receipt, StageOperation
from ..records import (
    Actor,
    ChainState,
    CollectionEvent,
    ManufacturingRecord,
    ProcessingRecord,
    QualityRecord,
    Role,
    Stage,
    StageRecord,
    serialize_record,
)
from ..registry import Registry
from ..validators import (
    CollectionDraft,
    QualityMeasurement,
    ValidationIssue,
    evaluate_quality,
    find_zone,
    validate_collection,
)
from .provenance import ProvenanceAssembler, ProvenanceChain

logger = logging.getLogger(__name__)


STAGE_ROLES: Dict[Stage, Role] = {
    Stage.COLLECTION: Role.COLLECTOR,
    Stage.QUALITY: Role.LAB,
    Stage.PROCESSING: Role.PROCESSOR,
    Stage.MANUFACTURING: Role.MANUFACTURER,
}

REQUIRED_STATE: Dict[Stage, ChainState] = {
    Stage.QUALITY: ChainState.COLLECTED,
    Stage.PROCESSING: ChainState.QUALITY_PASSED,
    Stage.MANUFACTURING: ChainState.PROCESSED,
}

_RECORD_STAGES = {
    CollectionEvent: Stage.COLLECTION,
    QualityRecord: Stage.QUALITY,
    ProcessingRecord: Stage.PROCESSING,
    ManufacturingRecord: Stage.MANUFACTURING,
}


@dataclass(frozen=True)
class StageResult:
    chain_id: str
    state: ChainState
    record: StageRecord
    receipt: Receipt
    artifact: QRArtifact

    @property
    def simulated(self) -> bool:
        return self.receipt.simulated


class StageSequencer:
    """Drive a chain through Collection, Quality, Processing and Manufacturing.

    The current state of a chain is always read back from the ledger. Callers
    serialize transitions for one identifier; a transition whose predecessor is
    missing is rejected rather than awaited. Collections in the same zone are
    serialized from the yield check to the commit so the zone cap holds under
    concurrency within this process.
    """

    def __init__(
        self,
        ledger: LedgerAdapter,
        registry: Registry,
        *,
        rules: Optional[RulesConfig] = None,
        minter: Optional[IdentifierMinter] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.ledger = ledger
        self.registry = registry
        self.rules = rules or RulesConfig()
        self.minter = minter or IdentifierMinter()
        self.assembler = ProvenanceAssembler(ledger)
        self._clock = clock
        self._zone_locks: Dict[str, asyncio.Lock] = {}

    async def state(self, chain_id: Union[ChainIdentifier, str]) -> Optional[ChainState]:
        chain = await self.assembler.find(chain_id)
        return chain.state if chain is not None else None

    # ------------------------------------------------------------------
    async def record_collection(
        self,
        actor: Actor,
        herb: str,
        weight: float,
        latitude: float,
        longitude: float,
        *,
        timestamp: Optional[datetime] = None,
        image_hash: Optional[str] = None,
        metadata_hash: Optional[str] = None,
    ) -> StageResult:
        """Validate a harvest and open a new chain for it."""

        self._authorize(actor, Stage.COLLECTION)
        herb_spec = self.registry.find_herb(herb)
        if herb_spec is None:
            raise self._reject(
                Stage.COLLECTION,
                ValidationIssue(
                    code="E_HERB_UNKNOWN",
                    message=f"herb {herb!r} is not registered",
                    location="herbId",
                ),
            )

        timestamp = timestamp or self._clock()
        zones = self.registry.active_zones()
        zone = find_zone(latitude, longitude, zones)
        guard = self._zone_lock(zone.id) if zone is not None else contextlib.nullcontext()
        async with guard:
            zone_yield: Optional[float] = None
            if zone is not None and self.rules.enforce_zone_yield:
                collected = await self.ledger.evaluate(
                    QueryFunction.GET_ZONE_YIELD, {"zoneId": zone.id}
                )
                zone_yield = float(collected or 0)

            draft = CollectionDraft(
                herb=herb_spec,
                weight=weight,
                latitude=latitude,
                longitude=longitude,
                timestamp=timestamp,
            )
            issues = validate_collection(draft, zones, self.rules, zone_yield=zone_yield)
            if issues:
                raise self._reject(Stage.COLLECTION, *issues)
            assert zone is not None

            chain_id = self.minter.mint()
            record = CollectionEvent(
                chain_id=chain_id.value,
                herb_id=herb_spec.id,
                weight=weight,
                latitude=latitude,
                longitude=longitude,
                zone_id=zone.id,
                collector_id=actor.id,
                timestamp=timestamp,
                image_hash=image_hash,
                metadata_hash=metadata_hash,
            )
            return await self._commit(record, ChainState.COLLECTED)

    async def attest_quality(
        self,
        actor: Actor,
        chain_id: Union[ChainIdentifier, str],
        moisture: float,
        pesticide: float,
        heavy_metal: float,
        *,
        timestamp: Optional[datetime] = None,
        image_hash: Optional[str] = None,
        metadata_hash: Optional[str] = None,
    ) -> StageResult:
        """Record lab results; a failing result is committed too."""

        self._authorize(actor, Stage.QUALITY)
        chain = await self._require(chain_id, Stage.QUALITY)
        collection = chain.collection.record
        assert isinstance(collection, CollectionEvent)
        herb_spec = self.registry.find_herb(collection.herb_id)
        if herb_spec is None:
            raise self._reject(
                Stage.QUALITY,
                ValidationIssue(
                    code="E_HERB_UNKNOWN",
                    message=f"herb {collection.herb_id!r} is no longer registered",
                    location="herbId",
                ),
            )

        result = evaluate_quality(
            QualityMeasurement(moisture=moisture, pesticide=pesticide, heavy_metal=heavy_metal),
            herb_spec.quality_standards,
        )
        record = QualityRecord(
            chain_id=chain.chain_id,
            moisture=moisture,
            pesticide=pesticide,
            heavy_metal=heavy_metal,
            passed=result.passed,
            failing_metrics=result.failing_metrics,
            tester_id=actor.id,
            timestamp=timestamp or self._clock(),
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )
        if not result.passed:
            logger.info(
                "quality gate failed for %s on %s", chain.chain_id, ", ".join(result.failing_metrics)
            )
        next_state = ChainState.QUALITY_PASSED if result.passed else ChainState.QUALITY_FAILED
        return await self._commit(record, next_state)

    async def transfer_custody(
        self,
        actor: Actor,
        chain_id: Union[ChainIdentifier, str],
        method: str,
        temperature: float,
        duration: float,
        yield_amount: float,
        *,
        timestamp: Optional[datetime] = None,
        image_hash: Optional[str] = None,
        metadata_hash: Optional[str] = None,
    ) -> StageResult:
        self._authorize(actor, Stage.PROCESSING)
        chain = await self._require(chain_id, Stage.PROCESSING)
        record = ProcessingRecord(
            chain_id=chain.chain_id,
            method=method,
            temperature=temperature,
            duration=duration,
            yield_amount=yield_amount,
            operator_id=actor.id,
            timestamp=timestamp or self._clock(),
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )
        return await self._commit(record, ChainState.PROCESSED)

    async def create_batch(
        self,
        actor: Actor,
        chain_id: Union[ChainIdentifier, str],
        product_name: str,
        batch_size: int,
        expiry_date: date,
        *,
        timestamp: Optional[datetime] = None,
        image_hash: Optional[str] = None,
        metadata_hash: Optional[str] = None,
    ) -> StageResult:
        self._authorize(actor, Stage.MANUFACTURING)
        chain = await self._require(chain_id, Stage.MANUFACTURING)
        record = ManufacturingRecord(
            chain_id=chain.chain_id,
            product_name=product_name,
            batch_size=batch_size,
            expiry_date=expiry_date,
            manufacturer_id=actor.id,
            timestamp=timestamp or self._clock(),
            image_hash=image_hash,
            metadata_hash=metadata_hash,
        )
        return await self._commit(record, ChainState.MANUFACTURED)

    # ------------------------------------------------------------------
    def _zone_lock(self, zone_id: str) -> asyncio.Lock:
        lock = self._zone_locks.get(zone_id)
        if lock is None:
            lock = self._zone_locks[zone_id] = asyncio.Lock()
        return lock

    def _authorize(self, actor: Actor, stage: Stage) -> None:
        required = STAGE_ROLES[stage]
        if actor.role is not required:
            logger.info("%s denied: %s has role %s", stage.value, actor.id, actor.role.value)
            raise AuthorizationError(actor.id, actor.role.value, stage.value)

    def _reject(self, stage: Stage, *issues: ValidationIssue) -> ValidationError:
        logger.info("%s rejected: %s", stage.value, ", ".join(issue.code for issue in issues))
        return ValidationError(issues)

    async def _require(
        self, chain_id: Union[ChainIdentifier, str], stage: Stage
    ) -> ProvenanceChain:
        identifier = chain_id if isinstance(chain_id, ChainIdentifier) else parse_identifier(chain_id)
        expected = REQUIRED_STATE[stage]
        chain = await self.assembler.find(identifier)
        if chain is None:
            logger.info("%s rejected: %s has no collection record", stage.value, identifier)
            raise SequenceError(
                chain_id=identifier.value,
                state=None,
                message=f"{stage.value} requires an existing {expected.value} chain",
            )
        state = chain.state
        if state is not expected:
            if state.terminal:
                message = f"chain is {state.value}; no {stage.value} may follow"
            else:
                message = f"{stage.value} requires state {expected.value}"
            logger.info("%s rejected for %s: %s", stage.value, identifier, message)
            raise SequenceError(chain_id=identifier.value, state=state.value, message=message)
        return chain

    async def _commit(self, record: StageRecord, state: ChainState) -> StageResult:
        operation = StageOperation.for_stage(_RECORD_STAGES[type(record)])
        receipt = await self.ledger.submit(operation, serialize_record(record))
        logger.info(
            "%s committed for %s (tx %s, simulated=%s)",
            operation.value,
            record.chain_id,
            receipt.transaction_id,
            receipt.simulated,
        )
        return StageResult(
            chain_id=record.chain_id,
            state=state,
            record=record,
            receipt=receipt,
            artifact=encode(record.chain_id),
        )
