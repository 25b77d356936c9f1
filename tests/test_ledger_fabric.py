"""Tests for the Fabric gateway client using a stub HTTP session."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import pytest
import requests

from herbtrace.exceptions import DuplicateError, LedgerError, NetworkError
from herbtrace.ledger import FabricGatewayLedger, QueryFunction, StageOperation


class StubResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._body = body
        self.text = text
        self.reason = "stub"

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._body is None:
            raise ValueError("no JSON body")
        return self._body


class StubSession:
    def __init__(self, responses: Optional[List[Any]] = None, health: Any = None) -> None:
        self.responses = list(responses or [])
        self.health = health if health is not None else StubResponse(200, {"status": "ok"})
        self.calls: List[tuple] = []
        self.closed = False

    def get(self, url: str, timeout: float) -> StubResponse:
        self.calls.append(("GET", url, None, timeout))
        if isinstance(self.health, Exception):
            raise self.health
        return self.health

    def post(self, url: str, json: Any, timeout: float) -> StubResponse:
        self.calls.append(("POST", url, json, timeout))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self) -> None:
        self.closed = True


def _ledger(session: StubSession) -> FabricGatewayLedger:
    return FabricGatewayLedger("http://gateway.local:8801/", request_timeout=5, session=session)


def test_submit_posts_chaincode_call_and_builds_receipt() -> None:
    session = StubSession(
        [
            StubResponse(
                200,
                {
                    "transactionId": "a1b2c3",
                    "blockNumber": 42,
                    "timestamp": "2025-11-10T09:30:00Z",
                },
            )
        ]
    )
    ledger = _ledger(session)

    receipt = asyncio.run(
        ledger.submit(StageOperation.RECORD_COLLECTION, {"chainId": "EVT_1_A", "weight": 25})
    )

    assert receipt.transaction_id == "a1b2c3"
    assert receipt.sequence_number == 42
    assert receipt.simulated is False
    assert receipt.timestamp.tzinfo is not None
    method, url, payload, timeout = session.calls[0]
    assert (method, url, timeout) == ("POST", "http://gateway.local:8801/submit", 5)
    assert payload == {
        "channel": "ayurveda-channel",
        "chaincode": "herbtraceability",
        "identity": "admin",
        "function": "RecordCollectionEvent",
        "args": {"chainId": "EVT_1_A", "weight": 25},
    }


def test_evaluate_returns_result_and_none_on_404() -> None:
    session = StubSession(
        [StubResponse(200, {"result": 125.0}), StubResponse(404, {"error": "no such chain"})]
    )
    ledger = _ledger(session)

    async def scenario():
        yield_total = await ledger.evaluate(QueryFunction.GET_ZONE_YIELD, {"zoneId": "Z"})
        missing = await ledger.evaluate(QueryFunction.GET_PROVENANCE, {"chainId": "EVT_1"})
        return yield_total, missing

    assert asyncio.run(scenario()) == (125.0, None)
    assert session.calls[1][2]["function"] == "GetProvenance"


def test_unreachable_gateway_raises_network_error() -> None:
    session = StubSession([requests.ConnectionError("refused")])
    with pytest.raises(NetworkError):
        asyncio.run(_ledger(session).submit(StageOperation.BATCH_CREATION, {"chainId": "EVT_1"}))


def test_server_error_raises_network_error() -> None:
    session = StubSession([StubResponse(503, text="unavailable")])
    with pytest.raises(NetworkError):
        asyncio.run(_ledger(session).evaluate(QueryFunction.GET_PROVENANCE, {"chainId": "EVT_1"}))


def test_conflict_raises_duplicate_error() -> None:
    session = StubSession([StubResponse(409, {"error": "already recorded"})])
    with pytest.raises(DuplicateError, match="already recorded"):
        asyncio.run(
            _ledger(session).submit(StageOperation.QUALITY_ATTESTATION, {"chainId": "EVT_1"})
        )


def test_client_error_raises_ledger_error() -> None:
    session = StubSession([StubResponse(400, text="bad args")])
    with pytest.raises(LedgerError) as exc:
        asyncio.run(
            _ledger(session).submit(StageOperation.TRANSFER_CUSTODY, {"chainId": "EVT_1"})
        )
    assert not isinstance(exc.value, NetworkError)
    assert "bad args" in str(exc.value)


def test_non_json_body_raises_ledger_error() -> None:
    session = StubSession([StubResponse(200, None, text="<html>")])
    with pytest.raises(LedgerError):
        asyncio.run(_ledger(session).submit(StageOperation.RECORD_COLLECTION, {"chainId": "E"}))


def test_receipt_without_transaction_id_is_rejected() -> None:
    session = StubSession([StubResponse(200, {"blockNumber": 3})])
    with pytest.raises(LedgerError):
        asyncio.run(_ledger(session).submit(StageOperation.RECORD_COLLECTION, {"chainId": "E"}))


def test_probe_and_close() -> None:
    healthy = StubSession()
    assert _ledger(healthy).probe(1.0) is True
    assert healthy.calls[0][:2] == ("GET", "http://gateway.local:8801/health")

    down = StubSession(health=requests.Timeout("slow"))
    assert _ledger(down).probe(1.0) is False

    failing = StubSession(health=StubResponse(500))
    ledger = _ledger(failing)
    assert ledger.probe(1.0) is False
    asyncio.run(ledger.close())
    assert failing.closed
