"""
Ledger client implementations.

Available clients:
- HttpLedgerClient: node REST value API over HTTP (httpx)
"""

from cwallet.backends.base import (
    FaucetResponse,
    LedgerClient,
    LedgerError,
    SendTransactionResponse,
    UnspentOutputsResponse,
)
from cwallet.backends.http import HttpLedgerClient

__all__ = [
    "FaucetResponse",
    "HttpLedgerClient",
    "LedgerClient",
    "LedgerError",
    "SendTransactionResponse",
    "UnspentOutputsResponse",
]
