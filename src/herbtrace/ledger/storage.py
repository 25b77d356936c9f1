"""Append-only journal backing the simulated ledger."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from .base import LedgerTransaction

logger = logging.getLogger(__name__)


FRAME_COLUMNS = [
    "sequence_number",
    "transaction_id",
    "function",
    "chain_id",
    "timestamp",
    "simulated",
    "args",
]


class TransactionJournal:
    """JSON-lines file holding one committed transaction per line."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, transaction: LedgerTransaction) -> None:
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(transaction.as_dict(), sort_keys=True) + "\n")

    def read(self) -> List[LedgerTransaction]:
        if not self.path.exists():
            return []
        transactions: List[LedgerTransaction] = []
        with self.path.open("r", encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    transactions.append(LedgerTransaction.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError) as exc:
                    logger.warning("skipping journal line %d in %s: %s", line_no, self.path, exc)
        return transactions


def transactions_frame(transactions: Iterable[LedgerTransaction]) -> pd.DataFrame:
    records = [
        {
            "sequence_number": tx.receipt.sequence_number,
            "transaction_id": tx.receipt.transaction_id,
            "function": tx.operation.value,
            "chain_id": tx.chain_id,
            "timestamp": tx.receipt.timestamp.isoformat(),
            "simulated": tx.receipt.simulated,
            "args": json.dumps(tx.args, sort_keys=True),
        }
        for tx in transactions
    ]
    df = pd.DataFrame(records, columns=FRAME_COLUMNS)
    if not df.empty:
        df = df.sort_values("sequence_number", kind="mergesort").reset_index(drop=True)
        for column in ["transaction_id", "function", "chain_id", "args"]:
            df[column] = df[column].astype("string")
    return df


def export_csv(transactions: Iterable[LedgerTransaction], path: Path) -> int:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = transactions_frame(transactions)
    df.to_csv(path, index=False)
    return len(df)
