"""Shared validation issue types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


ValidationSeverity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    code: str
    message: str
    location: str
    severity: ValidationSeverity = "error"
