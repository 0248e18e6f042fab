"""
Wallet data models.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from cwcore.constants import BASE_ASSET_NAME, BASE_ASSET_SYMBOL, BASE_COLOR
from pydantic import BaseModel, Field


class Asset(BaseModel):
    """A colored asset known to the wallet."""

    color: str
    name: str
    symbol: str
    precision: int = Field(default=0, ge=0)


class Wallet(BaseModel):
    """
    Persisted wallet record.

    last_address_index only grows and spent_addresses is never un-marked;
    everything else the wallet shows is derived from these fields and the
    ledger's unspent outputs.
    """

    seed: str
    last_address_index: int = Field(default=0, ge=0)
    spent_addresses: list[str] = Field(default_factory=list)
    assets: list[Asset] = Field(default_factory=list)

    def mark_address_spent(self, address: str) -> None:
        if address not in self.spent_addresses:
            self.spent_addresses.append(address)

    def is_address_spent(self, address: str) -> bool:
        return address in self.spent_addresses


def base_asset() -> Asset:
    return Asset(color=BASE_COLOR, name=BASE_ASSET_NAME, symbol=BASE_ASSET_SYMBOL, precision=0)


def unknown_asset(color: str) -> Asset:
    return Asset(color=color, name="Unknown", symbol="?", precision=0)


@dataclass
class Address:
    """A derived wallet address"""

    index: int
    address: str
    is_spent: bool = False


@dataclass(frozen=True)
class ColoredBalance:
    color: str
    value: int


@dataclass(frozen=True)
class Output:
    """Unspent output as observed on the ledger"""

    transaction_id: str
    balances: tuple[ColoredBalance, ...]
    confirmed: bool = False


@dataclass
class AddressOutput:
    """Outputs grouped by owning address"""

    address: str
    outputs: list[Output] = field(default_factory=list)
    # Derivation index, when the address was probed by index
    index: int | None = None


@dataclass
class Balance:
    """Aggregated balance of one asset"""

    asset: Asset
    confirmed: int = 0
    unconfirmed: int = 0


@dataclass
class SendFundsOptions:
    """
    Payment request.

    destinations maps address -> color -> amount. Amounts under NEW_COLOR are
    drawn from the base color and minted into a new asset.
    """

    destinations: dict[str, dict[str, int]]
    remainder_address: str | None = None

    @classmethod
    def single(cls, address: str, color: str, amount: int) -> SendFundsOptions:
        return cls(destinations={address: {color: amount}})


class ConsumedOutputs:
    """
    Ordered collection of (address, output) pairs chosen as transaction inputs.

    Adding the same (address, transaction id) twice is a no-op.
    """

    def __init__(self) -> None:
        self._by_address: dict[str, dict[str, Output]] = {}

    def add(self, address: str, output: Output) -> None:
        self._by_address.setdefault(address, {}).setdefault(output.transaction_id, output)

    def addresses(self) -> list[str]:
        return list(self._by_address)

    def outputs_for(self, address: str) -> list[Output]:
        return list(self._by_address.get(address, {}).values())

    def transaction_ids(self) -> list[str]:
        return [tx_id for outputs in self._by_address.values() for tx_id in outputs]

    def __contains__(self, address: object) -> bool:
        return address in self._by_address

    def __iter__(self) -> Iterator[tuple[str, Output]]:
        for address, outputs in self._by_address.items():
            for output in outputs.values():
                yield address, output

    def __len__(self) -> int:
        return sum(len(outputs) for outputs in self._by_address.values())

    def __bool__(self) -> bool:
        return bool(self._by_address)
