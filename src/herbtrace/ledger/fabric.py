"""Client for a Hyperledger Fabric REST gateway."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

import requests

from ..exceptions import DuplicateError, LedgerError, NetworkError
from .base import LedgerAdapter, QueryFunction, Receipt, StageOperation

logger = logging.getLogger(__name__)


class FabricGatewayLedger(LedgerAdapter):
    """Submit and evaluate chaincode functions through the gateway's HTTP API.

    The gateway exposes ``POST /submit``, ``POST /evaluate`` and ``GET
    /health``. Requests run in a worker thread so callers on the event loop are
    not blocked. Unreachable gateways, timeouts and 5xx answers raise
    :class:`NetworkError`.
    """

    name = "fabric"

    def __init__(
        self,
        gateway_url: str,
        *,
        channel: str = "ayurveda-channel",
        chaincode: str = "herbtraceability",
        identity: str = "admin",
        request_timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.gateway_url = gateway_url.rstrip("/")
        self.channel = channel
        self.chaincode = chaincode
        self.identity = identity
        self.request_timeout = request_timeout
        self._session = session or requests.Session()

    def probe(self, timeout: float) -> bool:
        """Return True when the gateway answers its health check in time."""

        try:
            response = self._session.get(f"{self.gateway_url}/health", timeout=timeout)
        except requests.RequestException as exc:
            logger.debug("gateway probe failed: %s", exc)
            return False
        logger.debug("gateway probe answered %s", response.status_code)
        return response.ok

    async def submit(self, operation: StageOperation, args: Mapping[str, Any]) -> Receipt:
        operation = StageOperation(operation)
        payload = self._payload(operation.value, args)
        data = await asyncio.to_thread(self._post, "submit", payload)
        if data is None:
            raise LedgerError(f"gateway returned no receipt for {operation.value}")
        try:
            return Receipt(
                transaction_id=str(data["transactionId"]),
                sequence_number=int(data.get("blockNumber", 0)),
                timestamp=_parse_timestamp(data.get("timestamp")),
                simulated=False,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise LedgerError(f"malformed receipt from gateway: {data!r}") from exc

    async def evaluate(self, query: QueryFunction, args: Mapping[str, Any]) -> Any:
        query = QueryFunction(query)
        payload = self._payload(query.value, args)
        data = await asyncio.to_thread(self._post, "evaluate", payload, allow_not_found=True)
        if data is None:
            return None
        return data.get("result")

    def describe(self) -> Dict[str, Any]:
        return {
            "mode": self.name,
            "gateway_url": self.gateway_url,
            "channel": self.channel,
            "chaincode": self.chaincode,
        }

    async def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    def _payload(self, function: str, args: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "chaincode": self.chaincode,
            "identity": self.identity,
            "function": function,
            "args": dict(args),
        }

    def _post(
        self, path: str, payload: Dict[str, Any], *, allow_not_found: bool = False
    ) -> Optional[Dict[str, Any]]:
        url = f"{self.gateway_url}/{path}"
        try:
            response = self._session.post(url, json=payload, timeout=self.request_timeout)
        except requests.RequestException as exc:
            raise NetworkError(f"{payload['function']}: gateway unreachable ({exc})") from exc

        status = response.status_code
        if status >= 500:
            raise NetworkError(f"{payload['function']}: gateway answered {status}")
        if status == 404 and allow_not_found:
            return None
        if status == 409:
            raise DuplicateError(f"{payload['function']}: {_error_message(response)}")
        if status >= 400:
            raise LedgerError(f"{payload['function']} rejected ({status}): {_error_message(response)}")
        try:
            data = response.json()
        except ValueError as exc:
            raise LedgerError(f"{payload['function']}: gateway returned non-JSON body") from exc
        if not isinstance(data, dict):
            return {"result": data}
        return data


def _error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason or "no detail"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)


def _parse_timestamp(value: Any) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
