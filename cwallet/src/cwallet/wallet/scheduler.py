"""
Ledger synchronization: paginated unspent output fetching, periodic refresh
and change notification.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Callable

from cwcore.constants import ACTIVE_ADDRESS_MARGIN, ADDRESS_BLOCK_SIZE, REFRESH_INTERVAL
from cwcore.crypto import derive_address, generate_subscription_id
from loguru import logger

from cwallet.backends.base import LedgerClient, LedgerError, UnspentOutputsResponse
from cwallet.wallet.models import AddressOutput, ColoredBalance, Output


def to_address_outputs(
    response: UnspentOutputsResponse, indexes: dict[str, int] | None = None
) -> list[AddressOutput]:
    """Convert a ledger response, keeping only addresses that hold outputs."""
    indexes = indexes or {}
    return [
        AddressOutput(
            address=entry.address,
            outputs=[
                Output(
                    transaction_id=wire.id,
                    balances=tuple(ColoredBalance(b.color, b.value) for b in wire.balances),
                    confirmed=wire.inclusion_state.confirmed,
                )
                for wire in entry.output_ids
            ],
            index=indexes.get(entry.address),
        )
        for entry in response.unspent_outputs
        if entry.output_ids
    ]


async def fetch_unspent_outputs(
    client: LedgerClient,
    seed: bytes,
    block_size: int = ADDRESS_BLOCK_SIZE,
    active_margin: int = ACTIVE_ADDRESS_MARGIN,
) -> list[AddressOutput] | None:
    """
    Fetch unspent outputs of a wallet, probing addresses block by block.

    The next block is only requested while more than (block_size -
    active_margin) addresses of the latest block held outputs. Exact
    block-aligned usage may therefore stop early.

    Each entry carries the derivation index of its address. A failed query
    is logged and yields None, so callers can keep their previous snapshot.
    """
    unspent: list[AddressOutput] = []
    start = 0

    try:
        while True:
            indexes = {derive_address(seed, start + i): start + i for i in range(block_size)}
            response = await client.unspent_outputs(list(indexes))
            if response.error:
                raise LedgerError(response.error)

            active = to_address_outputs(response, indexes)
            unspent.extend(active)

            logger.debug(
                f"Probed addresses {start}-{start + block_size - 1}: {len(active)} active"
            )

            if len(active) <= block_size - active_margin:
                break
            start += block_size

    except LedgerError as e:
        logger.error(f"Failed to fetch unspent outputs: {e}")
        return None

    return unspent


class SubscriberRegistry:
    """Callbacks invoked, without arguments, after every refresh."""

    def __init__(self) -> None:
        self._subscribers: dict[str, Callable[[], None]] = {}

    def subscribe(self, callback: Callable[[], None]) -> str:
        subscription_id = generate_subscription_id()
        self._subscribers[subscription_id] = callback
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> None:
        self._subscribers.pop(subscription_id, None)

    def notify(self) -> None:
        for subscription_id, callback in list(self._subscribers.items()):
            try:
                callback()
            except Exception as e:
                logger.error(f"Subscriber {subscription_id[:8]} failed: {e}")

    def __len__(self) -> int:
        return len(self._subscribers)


class RefreshScheduler:
    """
    Runs `tick` every `interval` seconds in a background task.

    Starting again replaces the running task, so at most one loop is active.
    """

    def __init__(
        self,
        tick: Callable[[], Awaitable[None]],
        interval: float = REFRESH_INTERVAL,
    ):
        self.tick = tick
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        await self.stop()
        self._task = asyncio.create_task(self._run())
        logger.debug(f"Periodic refresh every {self.interval}s")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        # Stopped from inside a tick: the cancellation lands at its next await
        if task is asyncio.current_task():
            return
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.tick()
            except Exception as e:
                logger.error(f"Periodic refresh failed: {e}")
