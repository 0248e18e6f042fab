"""
Wallet session: the live state of one open wallet.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from cwcore.constants import NEW_COLOR, WALLET_STORAGE_KEY
from cwcore.crypto import decode_seed
from loguru import logger

from cwallet.backends.base import LedgerClient, LedgerError
from cwallet.config import SessionConfig
from cwallet.storage import JsonStorage
from cwallet.wallet.errors import LedgerSubmissionError
from cwallet.wallet.models import (
    Address,
    AddressOutput,
    Asset,
    Balance,
    SendFundsOptions,
    Wallet,
)
from cwallet.wallet.scheduler import RefreshScheduler, SubscriberRegistry, fetch_unspent_outputs
from cwallet.wallet.selection import select_outputs
from cwallet.wallet.tracker import AddressTracker
from cwallet.wallet.transaction import (
    Transaction,
    build_inputs,
    build_outputs,
    sign_transaction,
)


class WalletSession:
    """
    Owns everything that changes while a wallet is open: the unspent output
    snapshot, the outputs spent locally, derived addresses and balances, and
    the periodic refresh. Subscribers are notified after each successful
    refresh; the registry can be shared with the owner of the session.

    Spending operations hold the session lock from their opening refresh to
    their bookkeeping update. A periodic tick that finds the lock taken is
    skipped.
    """

    def __init__(
        self,
        wallet: Wallet,
        client: LedgerClient,
        storage: JsonStorage,
        config: SessionConfig | None = None,
        subscribers: SubscriberRegistry | None = None,
    ):
        self.wallet = wallet
        self.client = client
        self.storage = storage
        self.config = config or SessionConfig()

        self._seed = decode_seed(wallet.seed)
        self.tracker = AddressTracker(wallet)
        self.subscribers = subscribers if subscribers is not None else SubscriberRegistry()
        self.scheduler = RefreshScheduler(self._periodic_refresh, self.config.refresh_interval)

        self._lock = asyncio.Lock()
        self._unspent_outputs: list[AddressOutput] = []
        self._spent_output_ids: set[str] = set()

    @property
    def balances(self) -> list[Balance]:
        return self.tracker.balances

    @property
    def addresses(self) -> list[Address]:
        return self.tracker.addresses

    @property
    def unspent_outputs(self) -> list[AddressOutput]:
        return list(self._unspent_outputs)

    @property
    def spent_output_ids(self) -> frozenset[str]:
        return frozenset(self._spent_output_ids)

    def receive_address(self) -> str:
        return self.tracker.receive_address()

    def subscribe(self, callback: Callable[[], None]) -> str:
        return self.subscribers.subscribe(callback)

    def unsubscribe(self, subscription_id: str) -> None:
        self.subscribers.unsubscribe(subscription_id)

    async def open(self) -> None:
        """Initial refresh, then periodic refreshes until closed."""
        async with self._lock:
            self._spent_output_ids = set()
            await self._refresh()

        await self.scheduler.start()
        logger.info(
            f"Wallet session opened: {len(self._unspent_outputs)} funded addresses, "
            f"{len(self.tracker.balances)} assets"
        )

    async def close(self) -> None:
        await self.scheduler.stop()
        logger.debug("Wallet session closed")

    async def save(self) -> None:
        await self.storage.set(WALLET_STORAGE_KEY, self.wallet.model_dump(mode="json"))

    async def refresh(self) -> None:
        async with self._lock:
            await self._refresh()

    async def send_funds(self, address: str, color: str, amount: int) -> str:
        """Send one color to one address. Returns the transaction id."""
        async with self._lock:
            tx_id = await self._send(SendFundsOptions.single(address, color, amount))
            await self.save()
            await self._refresh()
        return tx_id

    async def send_funds_with_options(self, options: SendFundsOptions) -> str:
        """
        Select, build, sign and submit a transaction for `options`.

        Local bookkeeping (spent outputs and addresses) is only updated once
        the ledger accepts the transaction. The wallet record is not saved.
        """
        async with self._lock:
            return await self._send(options)

    async def create_asset(self, name: str, symbol: str, amount: int) -> Asset:
        """Mint `amount` tokens of a new asset to a fresh receive address."""
        async with self._lock:
            await self._sync()
            receive_address = self.tracker.receive_address()

            tx_id = await self._send(
                SendFundsOptions.single(receive_address, NEW_COLOR, amount), sync=False
            )

            asset = Asset(color=tx_id, name=name, symbol=symbol, precision=0)
            self.wallet.assets.append(asset)
            await self.save()
            await self._refresh()

        logger.info(f"Created asset {symbol} ({name}) with color {tx_id}")
        return asset

    async def request_funds(self) -> str:
        """Ask the faucet to fund the receive address. Returns the faucet request id."""
        async with self._lock:
            receive_address = self.tracker.receive_address()

            try:
                response = await self.client.request_faucet_funds(receive_address)
            except LedgerError as e:
                raise LedgerSubmissionError(f"Faucet request failed: {e}") from e
            if response.error:
                raise LedgerSubmissionError(response.error)

            # A new receive address may have been derived
            await self.save()
            await self._refresh()

        logger.info(f"Requested faucet funds for {receive_address}")
        return response.id or ""

    async def _fetch(self) -> list[AddressOutput] | None:
        return await fetch_unspent_outputs(
            self.client,
            self._seed,
            self.config.address_block_size,
            self.config.active_address_margin,
        )

    async def _sync(self) -> bool:
        """
        Fetch unspent outputs and recompute addresses and balances.

        On a failed fetch the previous snapshot is kept. Returns whether the
        fetch succeeded.
        """
        unspent_outputs = await self._fetch()
        if unspent_outputs is None:
            logger.warning("Ledger query failed, keeping previous unspent outputs")
        else:
            self._unspent_outputs = unspent_outputs

        last_address_index = self.wallet.last_address_index
        self.tracker.recalculate(self._unspent_outputs)
        if self.wallet.last_address_index != last_address_index:
            await self.save()

        logger.debug(f"Refreshed: {len(self._unspent_outputs)} funded addresses")
        return unspent_outputs is not None

    async def _refresh(self) -> None:
        if await self._sync():
            self.subscribers.notify()

    async def _periodic_refresh(self) -> None:
        if self._lock.locked():
            logger.warning("Wallet busy, skipping periodic refresh")
            return
        async with self._lock:
            await self._refresh()

    async def _send(self, options: SendFundsOptions, sync: bool = True) -> str:
        if sync:
            await self._sync()

        reusable = self.config.reusable_addresses
        selection = select_outputs(
            options,
            self._unspent_outputs,
            self._spent_output_ids,
            self.tracker,
            reusable,
        )

        inputs, consumed_funds = build_inputs(selection.consumed)
        outputs = build_outputs(options, consumed_funds, selection.remainder_address)

        tx = Transaction(inputs=inputs, outputs=outputs)
        essence = sign_transaction(
            tx, self._seed, selection.consumed.addresses(), self.tracker.index_of
        )

        try:
            response = await self.client.send_transaction(tx.to_base64(essence))
        except LedgerError as e:
            raise LedgerSubmissionError(f"Transaction submission failed: {e}") from e
        if response.error:
            raise LedgerSubmissionError(response.error)
        if not response.transaction_id:
            raise LedgerSubmissionError("Ledger returned no transaction id")

        self._spent_output_ids.update(selection.consumed.transaction_ids())
        if not reusable:
            for address in selection.consumed.addresses():
                self.wallet.mark_address_spent(address)

        logger.info(
            f"Submitted transaction {response.transaction_id}: "
            f"{len(inputs)} inputs, {len(outputs)} outputs"
        )
        return response.transaction_id
