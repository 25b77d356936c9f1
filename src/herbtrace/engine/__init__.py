"""Chain-of-custody orchestration."""

from .provenance import (
    ORGANIZATIONS,
    ProvenanceAssembler,
    ProvenanceChain,
    ProvenanceStep,
    fold_stages,
)
from .sequencer import STAGE_ROLES, StageResult, StageSequencer
from .service import TraceabilityEngine, build_engine, open_engine

__all__ = [
    "ORGANIZATIONS",
    "ProvenanceAssembler",
    "ProvenanceChain",
    "ProvenanceStep",
    "STAGE_ROLES",
    "StageResult",
    "StageSequencer",
    "TraceabilityEngine",
    "build_engine",
    "fold_stages",
    "open_engine",
]
