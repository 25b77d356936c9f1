"""Custom exception hierarchy for herbtrace."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:  # pragma: no cover
    from .validators.issues import ValidationIssue


class HerbtraceError(Exception):
    """Base error for the herbtrace package."""


class ConfigError(HerbtraceError):
    """Raised when a configuration file fails validation."""

    def __init__(self, path: Path, message: str):
        self.path = Path(path)
        self.message = message
        super().__init__(f"{self.path.name}: {self.message}")


class ValidationError(HerbtraceError):
    """Raised when a stage payload breaks a domain rule before any ledger write."""

    def __init__(self, issues: Sequence["ValidationIssue"]):
        self.issues = list(issues)
        summary = "; ".join(f"{issue.code}: {issue.message}" for issue in self.issues)
        super().__init__(summary or "validation failed")

    @property
    def codes(self) -> list[str]:
        return [issue.code for issue in self.issues]


class AuthorizationError(HerbtraceError):
    """Raised when an actor's role may not perform a stage."""

    def __init__(self, actor_id: str, role: str, stage: str):
        self.actor_id = actor_id
        self.role = role
        self.stage = stage
        super().__init__(f"{actor_id} ({role}) may not record {stage}")


@dataclass
class SequenceError(HerbtraceError):
    """Raised when a stage is attempted out of order."""

    chain_id: str
    state: Optional[str]
    message: str

    def __post_init__(self) -> None:
        current = self.state or "NONE"
        super().__init__(f"{self.chain_id} [{current}]: {self.message}")


@dataclass
class NotFoundError(HerbtraceError):
    """Raised when a query names an identifier the ledger does not know."""

    chain_id: str

    def __post_init__(self) -> None:
        super().__init__(f"no collection record for {self.chain_id}")


class DuplicateError(HerbtraceError):
    """Raised on identifier collision or a second record for the same stage."""


class LedgerError(HerbtraceError):
    """Raised when the ledger rejects a call."""


class NetworkError(LedgerError):
    """Raised when the ledger network cannot be reached."""
