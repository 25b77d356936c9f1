"""Ledger adapters: network gateway, in-process simulation and selection."""

from .base import LedgerAdapter, LedgerTransaction, QueryFunction, Receipt, StageOperation
from .fabric import FabricGatewayLedger
from .selection import FallbackLedger, build_simulated, probe_network, select_ledger
from .simulated import SIMULATED_TX_PATTERN, SimulatedLedger
from .storage import TransactionJournal, export_csv, transactions_frame

__all__ = [
    "FabricGatewayLedger",
    "FallbackLedger",
    "LedgerAdapter",
    "LedgerTransaction",
    "QueryFunction",
    "Receipt",
    "SIMULATED_TX_PATTERN",
    "SimulatedLedger",
    "StageOperation",
    "TransactionJournal",
    "build_simulated",
    "export_csv",
    "probe_network",
    "select_ledger",
    "transactions_frame",
]
