"""Tests for startup ledger selection and network fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Mapping

import pytest
import requests

from herbtrace.config import LedgerConfig
from herbtrace.exceptions import LedgerError, NetworkError
from herbtrace.ledger import (
    FabricGatewayLedger,
    FallbackLedger,
    LedgerAdapter,
    QueryFunction,
    Receipt,
    SimulatedLedger,
    StageOperation,
    select_ledger,
)


class StubResponse:
    def __init__(self, status_code: int) -> None:
        self.status_code = status_code

    @property
    def ok(self) -> bool:
        return self.status_code < 400


class HealthSession:
    def __init__(self, status_code: int = 200, error: Exception | None = None, delay: float = 0):
        self.status_code = status_code
        self.error = error
        self.delay = delay
        self.closed = False

    def get(self, url: str, timeout: float) -> StubResponse:
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return StubResponse(self.status_code)

    def close(self) -> None:
        self.closed = True


class FlakyLedger(LedgerAdapter):
    """Primary that fails with a network error after *healthy_calls* calls."""

    name = "flaky"

    def __init__(self, healthy_calls: int = 0, error: Exception | None = None) -> None:
        self.healthy_calls = healthy_calls
        self.error = error or NetworkError("connection reset")
        self.calls = 0

    async def submit(self, operation: StageOperation, args: Mapping[str, Any]) -> Receipt:
        self._tick()
        raise AssertionError("FlakyLedger never commits")

    async def evaluate(self, query: QueryFunction, args: Mapping[str, Any]) -> Any:
        self._tick()
        return "primary"

    def _tick(self) -> None:
        self.calls += 1
        if self.calls > self.healthy_calls:
            raise self.error


def _config(**overrides) -> LedgerConfig:
    values = dict(simulated_submit_delay_ms=0, simulated_evaluate_delay_ms=0)
    values.update(overrides)
    return LedgerConfig(**values)


def test_simulated_mode_skips_probe() -> None:
    session = HealthSession()
    ledger = asyncio.run(
        select_ledger(_config(mode="simulated", gateway_url="http://g"), session=session)
    )
    assert isinstance(ledger, SimulatedLedger)
    assert ledger.submit_delay == 0


def test_auto_without_gateway_url_uses_simulation() -> None:
    ledger = asyncio.run(select_ledger(_config()))
    assert isinstance(ledger, SimulatedLedger)


def test_workspace_attaches_journal(tmp_path: Path) -> None:
    ledger = asyncio.run(select_ledger(_config(mode="simulated"), tmp_path / "ws"))
    assert isinstance(ledger, SimulatedLedger)
    assert ledger.journal is not None
    assert ledger.journal.path == tmp_path / "ws" / "transactions.jsonl"


def test_unreachable_gateway_falls_back(caplog: pytest.LogCaptureFixture) -> None:
    session = HealthSession(error=requests.ConnectionError("refused"))
    with caplog.at_level(logging.WARNING, logger="herbtrace.ledger"):
        ledger = asyncio.run(
            select_ledger(_config(gateway_url="http://g"), session=session)
        )
    assert isinstance(ledger, SimulatedLedger)
    assert session.closed
    assert any(record.levelno == logging.WARNING for record in caplog.records)


def test_fabric_mode_logs_error_when_unreachable(caplog: pytest.LogCaptureFixture) -> None:
    session = HealthSession(status_code=503)
    with caplog.at_level(logging.WARNING, logger="herbtrace.ledger"):
        ledger = asyncio.run(
            select_ledger(_config(mode="fabric", gateway_url="http://g"), session=session)
        )
    assert isinstance(ledger, SimulatedLedger)
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_slow_probe_times_out() -> None:
    session = HealthSession(delay=0.3)
    ledger = asyncio.run(
        select_ledger(_config(gateway_url="http://g", probe_timeout_s=0.05), session=session)
    )
    assert isinstance(ledger, SimulatedLedger)


def test_reachable_gateway_is_wrapped_with_fallback() -> None:
    ledger = asyncio.run(select_ledger(_config(gateway_url="http://g"), session=HealthSession()))
    assert isinstance(ledger, FallbackLedger)
    assert isinstance(ledger.active, FabricGatewayLedger)
    assert ledger.name == "fabric"
    assert ledger.degraded is False


def test_network_failure_switches_permanently() -> None:
    primary = FlakyLedger(healthy_calls=1)
    fallback = SimulatedLedger(submit_delay=0, evaluate_delay=0)
    ledger = FallbackLedger(primary, fallback)

    async def scenario():
        first = await ledger.evaluate(QueryFunction.GET_ZONE_YIELD, {"zoneId": "Z"})
        second = await ledger.evaluate(QueryFunction.GET_ZONE_YIELD, {"zoneId": "Z"})
        receipt = await ledger.submit(StageOperation.RECORD_COLLECTION, {"chainId": "EVT_1"})
        return first, second, receipt

    first, second, receipt = asyncio.run(scenario())
    assert first == "primary"
    assert second == 0
    assert receipt.simulated is True
    assert ledger.degraded is True
    assert ledger.name == "simulated"
    assert primary.calls == 2
    assert ledger.describe()["degraded"] is True


def test_ledger_rejection_does_not_trigger_fallback() -> None:
    primary = FlakyLedger(error=LedgerError("chaincode rejected"))
    ledger = FallbackLedger(primary, SimulatedLedger(submit_delay=0, evaluate_delay=0))
    with pytest.raises(LedgerError):
        asyncio.run(ledger.evaluate(QueryFunction.GET_PROVENANCE, {"chainId": "EVT_1"}))
    assert ledger.degraded is False


def test_fallback_network_error_propagates() -> None:
    ledger = FallbackLedger(FlakyLedger(), FlakyLedger())
    with pytest.raises(NetworkError):
        asyncio.run(ledger.evaluate(QueryFunction.GET_PROVENANCE, {"chainId": "EVT_1"}))
