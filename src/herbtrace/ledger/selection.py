"""Startup selection between the network ledger and the simulation."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import requests

from ..config import LedgerConfig
from ..exceptions import NetworkError
from .base import LedgerAdapter, QueryFunction, Receipt, StageOperation
from .fabric import FabricGatewayLedger
from .simulated import SimulatedLedger
from .storage import TransactionJournal

logger = logging.getLogger(__name__)


JOURNAL_FILENAME = "transactions.jsonl"


class FallbackLedger(LedgerAdapter):
    """Route calls to *primary* until it raises NetworkError, then to *fallback*.

    The switch is permanent for the lifetime of the instance; the call that hit
    the network failure is re-issued against the fallback.
    """

    def __init__(self, primary: LedgerAdapter, fallback: LedgerAdapter) -> None:
        self.primary = primary
        self.fallback = fallback
        self._active = primary

    @property
    def name(self) -> str:  # type: ignore[override]
        return self._active.name

    @property
    def active(self) -> LedgerAdapter:
        return self._active

    @property
    def degraded(self) -> bool:
        return self._active is self.fallback

    async def submit(self, operation: StageOperation, args: Mapping[str, Any]) -> Receipt:
        adapter = self._active
        try:
            return await adapter.submit(operation, args)
        except NetworkError as exc:
            self._degrade(adapter, exc)
        return await self._active.submit(operation, args)

    async def evaluate(self, query: QueryFunction, args: Mapping[str, Any]) -> Any:
        adapter = self._active
        try:
            return await adapter.evaluate(query, args)
        except NetworkError as exc:
            self._degrade(adapter, exc)
        return await self._active.evaluate(query, args)

    def describe(self) -> Dict[str, Any]:
        return {
            **self._active.describe(),
            "degraded": self.degraded,
            "primary": self.primary.describe(),
        }

    async def close(self) -> None:
        await self.primary.close()
        await self.fallback.close()

    def _degrade(self, adapter: LedgerAdapter, exc: NetworkError) -> None:
        if adapter is not self.primary:
            raise exc
        logger.warning("%s ledger failed (%s); switching to %s", adapter.name, exc, self.fallback.name)
        self._active = self.fallback


def build_simulated(config: LedgerConfig, workspace: Optional[Path] = None) -> SimulatedLedger:
    journal = TransactionJournal(Path(workspace) / JOURNAL_FILENAME) if workspace else None
    return SimulatedLedger(
        submit_delay=config.simulated_submit_delay_ms / 1000,
        evaluate_delay=config.simulated_evaluate_delay_ms / 1000,
        journal=journal,
        history_limit=config.history_limit,
    )


async def probe_network(adapter: FabricGatewayLedger, timeout: float) -> bool:
    """Run the gateway health probe; a timeout counts as unavailable."""

    try:
        return await asyncio.wait_for(asyncio.to_thread(adapter.probe, timeout), timeout)
    except asyncio.TimeoutError:
        logger.debug("gateway probe timed out after %.1fs", timeout)
        return False


async def select_ledger(
    config: LedgerConfig,
    workspace: Optional[Path] = None,
    *,
    session: Optional[requests.Session] = None,
) -> LedgerAdapter:
    """Pick the ledger adapter once for the life of the process."""

    simulated = build_simulated(config, workspace)
    if config.mode == "simulated" or not config.gateway_url:
        logger.info("using simulated ledger (mode=%s)", config.mode)
        return simulated

    fabric = FabricGatewayLedger(
        config.gateway_url,
        channel=config.channel,
        chaincode=config.chaincode,
        identity=config.identity,
        request_timeout=config.request_timeout_s,
        session=session,
    )
    if not await probe_network(fabric, config.probe_timeout_s):
        level = logging.ERROR if config.mode == "fabric" else logging.WARNING
        logger.log(
            level, "ledger network at %s unavailable; using simulated ledger", config.gateway_url
        )
        await fabric.close()
        return simulated

    logger.info("connected to ledger gateway %s", config.gateway_url)
    return FallbackLedger(fabric, simulated)
