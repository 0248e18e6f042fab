"""
HTTP ledger client for the node's REST value API.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from cwallet.backends.base import (
    FaucetResponse,
    LedgerClient,
    LedgerError,
    SendTransactionResponse,
    UnspentOutputsResponse,
)

DEFAULT_REQUEST_TIMEOUT = 30.0


class HttpLedgerClient(LedgerClient):
    """
    Ledger client talking JSON over HTTP.

    Endpoints:
    - POST value/sendTransaction {"txn_bytes": <base64>}
    - POST value/unspentOutputs {"addresses": [...]}
    - POST faucet {"address": <address>}
    """

    def __init__(
        self,
        api_endpoint: str = "http://127.0.0.1:8080",
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_endpoint = api_endpoint.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.api_endpoint}/{endpoint}"

        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Ledger API call failed: {endpoint} - {e}")
            raise LedgerError(f"{endpoint}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise LedgerError(
                f"{endpoint}: invalid response (HTTP {response.status_code})"
            ) from e

        # The API reports refusals as {"error": ...}, often with a 4xx/5xx status
        if response.is_error and not (isinstance(data, dict) and data.get("error")):
            raise LedgerError(f"{endpoint}: HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise LedgerError(f"{endpoint}: unexpected response {data!r}")

        return data

    async def send_transaction(self, txn_bytes: str) -> SendTransactionResponse:
        data = await self._post("value/sendTransaction", {"txn_bytes": txn_bytes})
        return self._parse(SendTransactionResponse, data)

    async def unspent_outputs(self, addresses: list[str]) -> UnspentOutputsResponse:
        data = await self._post("value/unspentOutputs", {"addresses": addresses})
        return self._parse(UnspentOutputsResponse, data)

    async def request_faucet_funds(self, address: str) -> FaucetResponse:
        data = await self._post("faucet", {"address": address})
        return self._parse(FaucetResponse, data)

    @staticmethod
    def _parse(model: type[Any], data: dict[str, Any]) -> Any:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise LedgerError(f"Malformed ledger response: {e}") from e

    async def close(self) -> None:
        await self.client.aclose()
