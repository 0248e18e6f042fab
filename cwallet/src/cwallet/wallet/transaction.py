"""
Value transaction building, serialization and signing.

Essence layout (the signed payload):
- version (1 byte)
- varint input count, then per input (sorted): varint length + UTF-8 output id
- varint output count, then per output (sorted by address bytes):
  address (33 bytes), varint balance count, then per balance (sorted by color):
  value (uint64 LE) + color (32 bytes)

Serialized transaction = essence + varint signature count, then per signing
address (sorted): address (33 bytes) + compressed pubkey (33 bytes) +
varint length + DER signature.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from dataclasses import dataclass, field

from cwcore.crypto import (
    KeyPair,
    address_to_bytes,
    color_to_bytes,
    derive_key_pair,
    verify_signature,
)
from loguru import logger

from cwallet.wallet.errors import InsufficientFundsError, NoRemainderAddressError, WalletError
from cwallet.wallet.models import ColoredBalance, ConsumedOutputs, SendFundsOptions
from cwallet.wallet.selection import funding_color

TRANSACTION_VERSION = 0
MAX_OUTPUT_VALUE = 0xFFFFFFFFFFFFFFFF


class TransactionError(WalletError):
    """Transaction cannot be encoded or signed."""


@dataclass
class Signature:
    key_pair: KeyPair
    signature: bytes


@dataclass
class Transaction:
    """Value transaction: consumed output ids, new outputs per address, signatures."""

    inputs: list[str]
    outputs: dict[str, list[ColoredBalance]]
    signatures: dict[str, Signature] = field(default_factory=dict)

    def essence(self) -> bytes:
        """Canonical signing payload"""
        parts = [bytes([TRANSACTION_VERSION]), encode_varint(len(self.inputs))]

        for output_id in sorted(self.inputs):
            raw_id = output_id.encode("utf-8")
            parts.append(encode_varint(len(raw_id)) + raw_id)

        encoded_outputs = sorted(
            (address_to_bytes(address), balances) for address, balances in self.outputs.items()
        )
        parts.append(encode_varint(len(encoded_outputs)))

        for raw_address, balances in encoded_outputs:
            parts.append(raw_address)
            parts.append(encode_varint(len(balances)))
            for raw_color, value in sorted((color_to_bytes(b.color), b.value) for b in balances):
                parts.append(encode_value(value) + raw_color)

        return b"".join(parts)

    def to_bytes(self, essence: bytes | None = None) -> bytes:
        if essence is None:
            essence = self.essence()

        parts = [essence, encode_varint(len(self.signatures))]
        for address in sorted(self.signatures, key=address_to_bytes):
            sig = self.signatures[address]
            parts.append(address_to_bytes(address))
            parts.append(sig.key_pair.public_key_bytes())
            parts.append(encode_varint(len(sig.signature)) + sig.signature)
        return b"".join(parts)

    def to_base64(self, essence: bytes | None = None) -> str:
        return base64.b64encode(self.to_bytes(essence)).decode("ascii")


def encode_varint(value: int) -> bytes:
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + value.to_bytes(2, "little")
    if value <= 0xFFFFFFFF:
        return b"\xfe" + value.to_bytes(4, "little")
    return b"\xff" + value.to_bytes(8, "little")


def encode_value(value: int) -> bytes:
    if value < 0 or value > MAX_OUTPUT_VALUE:
        raise TransactionError(f"Output value out of range: {value}")
    return value.to_bytes(8, "little")


def build_inputs(consumed: ConsumedOutputs) -> tuple[list[str], dict[str, int]]:
    """Input ids and the total funds they carry per color."""
    inputs: list[str] = []
    consumed_funds: dict[str, int] = {}

    for _address, output in consumed:
        inputs.append(output.transaction_id)
        for balance in output.balances:
            consumed_funds[balance.color] = consumed_funds.get(balance.color, 0) + balance.value

    return inputs, consumed_funds


def build_outputs(
    options: SendFundsOptions,
    consumed_funds: dict[str, int],
    remainder_address: str | None,
) -> dict[str, list[ColoredBalance]]:
    """
    Outputs for every destination plus the remainder.

    NEW stays a bucket of its own in the outputs but is paid from the base
    color. Whatever is left of the consumed funds goes to the remainder
    address.

    Raises:
        NoRemainderAddressError: If funds are left over but there is no remainder address
    """
    leftover = dict(consumed_funds)
    amounts: dict[str, dict[str, int]] = {}

    for address, colors in options.destinations.items():
        by_color = amounts.setdefault(address, {})
        for color, amount in colors.items():
            if amount == 0:
                continue
            by_color[color] = by_color.get(color, 0) + amount

            col = funding_color(color)
            remaining = leftover.get(col, 0) - amount
            if remaining < 0:
                raise InsufficientFundsError({col: -remaining})
            if remaining == 0:
                leftover.pop(col, None)
            else:
                leftover[col] = remaining

    if leftover:
        if not remainder_address:
            raise NoRemainderAddressError("No remainder address available")
        by_color = amounts.setdefault(remainder_address, {})
        for color, value in leftover.items():
            by_color[color] = by_color.get(color, 0) + value

    return {
        address: [ColoredBalance(color, value) for color, value in by_color.items()]
        for address, by_color in amounts.items()
        if by_color
    }


def sign_transaction(
    tx: Transaction,
    seed: bytes,
    signing_addresses: list[str],
    index_of: Callable[[str], int | None],
    essence: bytes | None = None,
) -> bytes:
    """
    Sign the essence once per consumed address.

    Returns:
        The essence that was signed
    """
    if essence is None:
        essence = tx.essence()

    for address in signing_addresses:
        index = index_of(address)
        if index is None:
            raise TransactionError(f"Address {address} does not belong to this wallet")
        key_pair = derive_key_pair(seed, index)
        tx.signatures[address] = Signature(key_pair=key_pair, signature=key_pair.sign(essence))

    logger.debug(f"Signed transaction with {len(tx.signatures)} keys")
    return essence


def verify_signatures(tx: Transaction) -> bool:
    """Check that every signature matches its address and the essence."""
    essence = tx.essence()
    for address, sig in tx.signatures.items():
        if sig.key_pair.address() != address:
            return False
        if not verify_signature(sig.key_pair.public_key_bytes(), essence, sig.signature):
            return False
    return True
