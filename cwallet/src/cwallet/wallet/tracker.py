"""
Address and balance tracking.

Keeps the derived view of a wallet (its addresses and per-color balances)
in line with the persisted record and the last fetched unspent outputs.
"""

from __future__ import annotations

from collections.abc import Collection

from cwcore.crypto import decode_seed, derive_address
from loguru import logger

from cwallet.wallet.models import (
    Address,
    AddressOutput,
    Asset,
    Balance,
    Wallet,
    base_asset,
    unknown_asset,
)


class AddressTracker:
    """
    Derived addresses and balances for one wallet.

    Addresses 0..wallet.last_address_index are derived from the seed, and the
    index is raised to cover every funded address the ledger reports; an
    address is spent when it is listed in wallet.spent_addresses. After every
    recalculation at least one unspent address exists.
    """

    def __init__(self, wallet: Wallet):
        self.wallet = wallet
        self._seed = decode_seed(wallet.seed)
        self._address_cache: dict[int, str] = {}
        self._addresses: list[Address] = []
        self._balances: list[Balance] = []
        self._funded: set[str] = set()

    @property
    def addresses(self) -> list[Address]:
        return list(self._addresses)

    @property
    def balances(self) -> list[Balance]:
        return list(self._balances)

    def derive(self, index: int) -> str:
        """Get address for given index"""
        address = self._address_cache.get(index)
        if address is None:
            address = derive_address(self._seed, index)
            self._address_cache[index] = address
        return address

    def recalculate(self, address_outputs: list[AddressOutput]) -> None:
        """Recompute addresses and balances from the wallet and unspent outputs."""
        # Funds found past the last derived index (e.g. an imported seed)
        highest = max(
            (entry.index for entry in address_outputs if entry.index is not None), default=-1
        )
        if highest > self.wallet.last_address_index:
            logger.info(f"Found funded address #{highest}, extending derived addresses")
            self.wallet.last_address_index = highest

        self._addresses = [
            Address(
                index=i,
                address=self.derive(i),
                is_spent=self.wallet.is_address_spent(self.derive(i)),
            )
            for i in range(self.wallet.last_address_index + 1)
        ]

        assets: dict[str, Asset] = {base_asset().color: base_asset()}
        for asset in self.wallet.assets:
            assets[asset.color] = asset

        by_color: dict[str, Balance] = {}
        for address_output in address_outputs:
            for output in address_output.outputs:
                for balance in output.balances:
                    entry = by_color.get(balance.color)
                    if entry is None:
                        asset = assets.get(balance.color)
                        if asset is None:
                            logger.warning(f"Balance with unregistered color {balance.color}")
                            asset = unknown_asset(balance.color)
                        entry = Balance(asset=asset)
                        by_color[balance.color] = entry
                    if output.confirmed:
                        entry.confirmed += balance.value
                    else:
                        entry.unconfirmed += balance.value

        self._balances = list(by_color.values())
        self._funded = {entry.address for entry in address_outputs if entry.outputs}

        if self.last_unspent_address() is None:
            self.new_receive_address()

    def index_of(self, address: str) -> int | None:
        for entry in self._addresses:
            if entry.address == address:
                return entry.index
        return None

    def first_unspent_address(self, exclude: Collection[str] = ()) -> str | None:
        for entry in self._addresses:
            if not entry.is_spent and entry.address not in exclude:
                return entry.address
        return None

    def receive_address(self) -> str:
        """
        First unspent address that held no outputs at the last recalculation.

        Derives a new address when every unspent one already holds value.
        """
        address = self.first_unspent_address(exclude=self._funded)
        if address is None:
            address = self.new_receive_address()
        return address

    def last_unspent_address(self) -> str | None:
        for entry in reversed(self._addresses):
            if not entry.is_spent:
                return entry.address
        return None

    def new_receive_address(self) -> str:
        """Derive the next address and append it as unspent."""
        self.wallet.last_address_index += 1
        index = self.wallet.last_address_index
        address = self.derive(index)
        self._addresses.append(Address(index=index, address=address, is_spent=False))

        logger.debug(f"Derived new receive address #{index}")
        return address
