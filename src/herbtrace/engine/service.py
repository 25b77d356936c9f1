"""Wire configuration, registry and ledger into a ready-to-use engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..config import ConfigBundle, load_config_bundle
from ..ledger import LedgerAdapter, select_ledger
from ..registry import Registry
from .provenance import ProvenanceAssembler
from .sequencer import StageSequencer

logger = logging.getLogger(__name__)


@dataclass
class TraceabilityEngine:
    config: ConfigBundle
    registry: Registry
    ledger: LedgerAdapter
    sequencer: StageSequencer
    assembler: ProvenanceAssembler

    async def close(self) -> None:
        await self.ledger.close()

    async def __aenter__(self) -> "TraceabilityEngine":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


async def build_engine(
    config: ConfigBundle,
    workspace: Optional[Path] = None,
    *,
    ledger: Optional[LedgerAdapter] = None,
) -> TraceabilityEngine:
    """Assemble an engine; the ledger is selected once unless one is given."""

    if ledger is None:
        ledger = await select_ledger(config.ledger, workspace)
    registry = Registry.from_config(config)
    sequencer = StageSequencer(ledger, registry, rules=config.rules)
    logger.debug("engine ready on %s ledger", ledger.name)
    return TraceabilityEngine(
        config=config,
        registry=registry,
        ledger=ledger,
        sequencer=sequencer,
        assembler=sequencer.assembler,
    )


async def open_engine(
    config_dir: Path,
    workspace: Optional[Path] = None,
    *,
    ledger: Optional[LedgerAdapter] = None,
) -> TraceabilityEngine:
    return await build_engine(load_config_bundle(Path(config_dir)), workspace, ledger=ledger)
