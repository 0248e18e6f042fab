"""
Unspent output selection for multi-color payments.
"""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass

from cwcore.constants import BASE_COLOR, NEW_COLOR
from loguru import logger

from cwallet.wallet.errors import InsufficientFundsError
from cwallet.wallet.models import AddressOutput, ConsumedOutputs, SendFundsOptions
from cwallet.wallet.tracker import AddressTracker


@dataclass
class Selection:
    """Result of output selection"""

    consumed: ConsumedOutputs
    remainder_address: str


def funding_color(color: str) -> str:
    """Color the funds for `color` are drawn from. Minting consumes base funds."""
    return BASE_COLOR if color == NEW_COLOR else color


def required_funds(options: SendFundsOptions) -> dict[str, int]:
    """Total amount needed per funding color across all destinations."""
    required: dict[str, int] = {}
    for colors in options.destinations.values():
        for color, amount in colors.items():
            if amount < 0:
                raise ValueError(f"Negative amount {amount} for color {color}")
            if amount == 0:
                continue
            col = funding_color(color)
            required[col] = required.get(col, 0) + amount
    return required


def select_outputs(
    options: SendFundsOptions,
    unspent_outputs: list[AddressOutput],
    spent_transaction_ids: Collection[str],
    tracker: AddressTracker,
    reusable_addresses: bool = False,
) -> Selection:
    """
    Choose the outputs to consume for a payment and resolve the remainder address.

    Outputs are scanned in snapshot order, skipping ones already spent
    locally. An output is taken when it holds any color that is still
    required. Unless addresses are reusable, taking one output from an
    address takes all of that address's outputs.

    Raises:
        InsufficientFundsError: If any color is still required after the scan
    """
    required = required_funds(options)
    consumed = ConsumedOutputs()

    for address_output in unspent_outputs:
        address_used = False

        for output in address_output.outputs:
            if output.transaction_id in spent_transaction_ids:
                continue

            matched = False
            for balance in output.balances:
                outstanding = required.get(balance.color)
                if outstanding:
                    if outstanding > balance.value:
                        required[balance.color] = outstanding - balance.value
                    else:
                        del required[balance.color]
                    matched = True

            if matched:
                consumed.add(address_output.address, output)
                address_used = True

        # Spend each address only once: sweep everything it still holds
        if address_used and not reusable_addresses:
            for output in address_output.outputs:
                if output.transaction_id not in spent_transaction_ids:
                    consumed.add(address_output.address, output)

    if required:
        raise InsufficientFundsError(required)

    remainder_address = resolve_remainder_address(
        options.remainder_address,
        consumed,
        tracker,
        reusable_addresses,
        destinations=options.destinations.keys(),
    )

    logger.debug(
        f"Selected {len(consumed)} outputs from {len(consumed.addresses())} addresses, "
        f"remainder to {remainder_address}"
    )
    return Selection(consumed=consumed, remainder_address=remainder_address)


def resolve_remainder_address(
    requested: str | None,
    consumed: ConsumedOutputs,
    tracker: AddressTracker,
    reusable_addresses: bool = False,
    destinations: Collection[str] = (),
) -> str:
    """
    Pick the remainder address.

    Preference: the requested address, then the first unspent wallet address
    that is neither consumed nor a destination, then a freshly derived one. An
    address being consumed is never used for the remainder unless addresses
    are reusable.
    """
    consumed_addresses: Collection[str] = () if reusable_addresses else consumed.addresses()

    if requested and requested not in consumed_addresses:
        return requested

    remainder = tracker.first_unspent_address(
        exclude={*consumed_addresses, *destinations}
    )
    if remainder is None:
        remainder = tracker.new_receive_address()
    return remainder
