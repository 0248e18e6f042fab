"""
Base ledger client interface and wire models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel, Field


class LedgerError(Exception):
    """Transport or protocol failure talking to the ledger API."""


class WireBalance(BaseModel):
    color: str
    value: int = Field(..., ge=0)


class InclusionState(BaseModel):
    confirmed: bool = False
    liked: bool = False
    rejected: bool = False
    conflict: bool = False
    finalized: bool = False


class WireOutput(BaseModel):
    id: str
    balances: list[WireBalance] = Field(default_factory=list)
    inclusion_state: InclusionState = Field(default_factory=InclusionState)


class WireAddressOutputs(BaseModel):
    address: str
    output_ids: list[WireOutput] = Field(default_factory=list)


class UnspentOutputsResponse(BaseModel):
    unspent_outputs: list[WireAddressOutputs] = Field(default_factory=list)
    error: str | None = None


class SendTransactionResponse(BaseModel):
    transaction_id: str | None = None
    error: str | None = None


class FaucetResponse(BaseModel):
    id: str | None = None
    error: str | None = None


class LedgerClient(ABC):
    """
    Abstract ledger API client.

    Responses carry an `error` field when the ledger refuses a request;
    transport failures raise LedgerError.
    """

    @abstractmethod
    async def send_transaction(self, txn_bytes: str) -> SendTransactionResponse:
        """Submit a base64 serialized transaction"""

    @abstractmethod
    async def unspent_outputs(self, addresses: list[str]) -> UnspentOutputsResponse:
        """Get unspent outputs for given addresses"""

    @abstractmethod
    async def request_faucet_funds(self, address: str) -> FaucetResponse:
        """Ask the network faucet to fund an address"""

    async def close(self) -> None:
        """Close client connection"""
        pass
