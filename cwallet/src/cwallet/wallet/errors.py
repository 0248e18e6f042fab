"""
Wallet engine errors.
"""

from __future__ import annotations


class WalletError(Exception):
    pass


class NoWalletError(WalletError):
    """Operation needs an open wallet but none is loaded."""


class InsufficientFundsError(WalletError):
    """Unspent outputs cannot cover the requested amounts."""

    def __init__(self, missing: dict[str, int]):
        self.missing = dict(missing)
        details = ", ".join(f"{color}: {amount}" for color, amount in self.missing.items())
        super().__init__(f"Not enough funds to create transaction (missing {details})")


class NoRemainderAddressError(WalletError):
    pass


class LedgerSubmissionError(WalletError):
    """The ledger rejected a transaction or faucet request, or could not be reached."""
