"""
Pytest configuration and fixtures for wallet tests.
"""

from __future__ import annotations

import base64
import hashlib

import pytest
from cwcore.constants import BASE_COLOR
from cwcore.crypto import encode_seed

from cwallet.backends.base import (
    FaucetResponse,
    InclusionState,
    LedgerClient,
    LedgerError,
    SendTransactionResponse,
    UnspentOutputsResponse,
    WireAddressOutputs,
    WireBalance,
    WireOutput,
)
from cwallet.config import SessionConfig
from cwallet.storage import MemoryJsonStorage
from cwallet.wallet.models import Wallet

TEST_SEED = bytes(range(32))


def make_id(label: str) -> str:
    """Deterministic 32-byte base58 id, usable as output id or asset color."""
    return encode_seed(hashlib.sha256(label.encode()).digest())


class FakeLedger(LedgerClient):
    """In-memory ledger API recording every call."""

    def __init__(self) -> None:
        self.outputs: dict[str, list[WireOutput]] = {}
        self.queries: list[list[str]] = []
        self.submitted: list[bytes] = []
        self.faucet_requests: list[str] = []
        self.submit_error: str | None = None
        self.query_error: str | None = None
        self.raise_on_query = False
        self.raise_on_submit = False
        self._tx_counter = 0

    def fund(
        self,
        address: str,
        balances: dict[str, int],
        output_id: str | None = None,
        confirmed: bool = True,
    ) -> str:
        output_id = output_id or make_id(f"{address}-{len(self.outputs.get(address, []))}")
        self.outputs.setdefault(address, []).append(
            WireOutput(
                id=output_id,
                balances=[WireBalance(color=c, value=v) for c, v in balances.items()],
                inclusion_state=InclusionState(confirmed=confirmed),
            )
        )
        return output_id

    async def unspent_outputs(self, addresses: list[str]) -> UnspentOutputsResponse:
        self.queries.append(list(addresses))
        if self.raise_on_query:
            raise LedgerError("connection refused")
        if self.query_error:
            return UnspentOutputsResponse(error=self.query_error)
        return UnspentOutputsResponse(
            unspent_outputs=[
                WireAddressOutputs(address=a, output_ids=list(self.outputs.get(a, [])))
                for a in addresses
            ]
        )

    async def send_transaction(self, txn_bytes: str) -> SendTransactionResponse:
        if self.raise_on_submit:
            raise LedgerError("connection reset")
        if self.submit_error:
            return SendTransactionResponse(error=self.submit_error)
        self.submitted.append(base64.b64decode(txn_bytes))
        self._tx_counter += 1
        return SendTransactionResponse(transaction_id=make_id(f"tx-{self._tx_counter}"))

    async def request_faucet_funds(self, address: str) -> FaucetResponse:
        self.faucet_requests.append(address)
        if self.submit_error:
            return FaucetResponse(error=self.submit_error)
        self.fund(address, {BASE_COLOR: 1_000_000})
        return FaucetResponse(id=make_id(f"faucet-{len(self.faucet_requests)}"))


@pytest.fixture
def seed() -> bytes:
    return TEST_SEED


@pytest.fixture
def wallet(seed: bytes) -> Wallet:
    return Wallet(seed=encode_seed(seed))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def storage() -> MemoryJsonStorage:
    return MemoryJsonStorage()


@pytest.fixture
def session_config() -> SessionConfig:
    # Long interval so the periodic refresh never fires during a test
    return SessionConfig(refresh_interval=3600)
