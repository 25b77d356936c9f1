"""In-process ledger used when no network is reachable."""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
import threading
import time
from collections import deque
from datetime import datetime, timezone
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional, Tuple

import pandas as pd

from ..exceptions import DuplicateError, LedgerError
from .base import LedgerAdapter, LedgerTransaction, QueryFunction, Receipt, StageOperation
from .storage import TransactionJournal, transactions_frame

logger = logging.getLogger(__name__)


SIMULATED_TX_PATTERN = re.compile(r"^sim_tx_\d+_[0-9a-f]{10}$")


class SimulatedLedger(LedgerAdapter):
    """Append-only transaction log owned by this instance.

    Writes are serialized behind one lock, so every operation is linearizable
    within the process. Each (operation, chain id) pair accepts one record.
    With a *journal*, committed transactions are also appended to a JSON-lines
    file and replayed on construction.
    """

    name = "simulated"

    def __init__(
        self,
        *,
        submit_delay: float = 0.5,
        evaluate_delay: float = 0.3,
        journal: Optional[TransactionJournal] = None,
        history_limit: int = 100,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.submit_delay = submit_delay
        self.evaluate_delay = evaluate_delay
        self.journal = journal
        self._clock = clock
        self._lock = threading.Lock()
        self._log: List[LedgerTransaction] = []
        self._index: Dict[Tuple[StageOperation, str], LedgerTransaction] = {}
        self._recent: Deque[LedgerTransaction] = deque(maxlen=history_limit)
        self._sequence = 0
        if journal is not None:
            for transaction in journal.read():
                self._append(transaction)
            if self._log:
                logger.info("replayed %d simulated transactions from %s", len(self._log), journal.path)

    # ------------------------------------------------------------------
    async def submit(self, operation: StageOperation, args: Mapping[str, Any]) -> Receipt:
        operation = StageOperation(operation)
        chain_id = args.get("chainId")
        if not chain_id:
            raise LedgerError(f"{operation.value} requires a chainId argument")

        if self.submit_delay:
            await asyncio.sleep(self.submit_delay)

        with self._lock:
            if (operation, chain_id) in self._index:
                raise DuplicateError(f"{operation.value} already recorded for {chain_id}")
            receipt = Receipt(
                transaction_id=_transaction_id(),
                sequence_number=self._sequence + 1,
                timestamp=self._clock(),
                simulated=True,
            )
            transaction = LedgerTransaction(operation=operation, args=dict(args), receipt=receipt)
            if self.journal is not None:
                self.journal.append(transaction)
            self._append(transaction)

        logger.debug(
            "simulated %s for %s -> %s #%d",
            operation.value,
            chain_id,
            receipt.transaction_id,
            receipt.sequence_number,
        )
        return receipt

    async def evaluate(self, query: QueryFunction, args: Mapping[str, Any]) -> Any:
        query = QueryFunction(query)
        if self.evaluate_delay:
            await asyncio.sleep(self.evaluate_delay)
        handler = self._queries[query]
        with self._lock:
            return handler(self, args)

    def describe(self) -> Dict[str, Any]:
        return {
            "mode": self.name,
            "transactions": len(self._log),
            "last_sequence": self._sequence,
            "journal": str(self.journal.path) if self.journal is not None else None,
        }

    # ------------------------------------------------------------------
    def transactions(self) -> List[LedgerTransaction]:
        with self._lock:
            return list(self._log)

    def recent(self) -> List[LedgerTransaction]:
        with self._lock:
            return list(reversed(self._recent))

    def export_frame(self) -> pd.DataFrame:
        return transactions_frame(self.transactions())

    # ------------------------------------------------------------------
    def _append(self, transaction: LedgerTransaction) -> None:
        key = (transaction.operation, transaction.chain_id)
        if key in self._index:
            logger.warning(
                "ignoring duplicate %s for %s", transaction.operation.value, transaction.chain_id
            )
            return
        self._log.append(transaction)
        self._index[key] = transaction
        self._recent.append(transaction)
        self._sequence = max(self._sequence, transaction.receipt.sequence_number)

    def _provenance(self, args: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        chain_id = args.get("chainId")
        stages: Dict[str, Any] = {}
        for operation in StageOperation:
            transaction = self._index.get((operation, chain_id))
            stages[operation.stage.value] = (
                None
                if transaction is None
                else {"data": dict(transaction.args), "transaction": transaction.receipt.as_dict()}
            )
        if all(value is None for value in stages.values()):
            return None
        return stages

    def _zone_yield(self, args: Mapping[str, Any]) -> float:
        zone_id = args.get("zoneId")
        return float(
            sum(
                float(tx.args.get("weight", 0))
                for tx in self._log
                if tx.operation is StageOperation.RECORD_COLLECTION
                and tx.args.get("zoneId") == zone_id
            )
        )

    def _history(self, args: Mapping[str, Any]) -> List[Dict[str, Any]]:
        limit = int(args.get("limit", len(self._recent)))
        entries = list(reversed(self._recent))[:limit]
        return [
            {
                "function": tx.operation.value,
                "chainId": tx.chain_id,
                **tx.receipt.as_dict(),
            }
            for tx in entries
        ]

    _queries: Dict[QueryFunction, Callable[["SimulatedLedger", Mapping[str, Any]], Any]] = {
        QueryFunction.GET_PROVENANCE: _provenance,
        QueryFunction.GET_ZONE_YIELD: _zone_yield,
        QueryFunction.GET_TRANSACTION_HISTORY: _history,
    }


def _transaction_id() -> str:
    return f"sim_tx_{int(time.time() * 1000)}_{secrets.token_hex(5)}"
