"""
Wallet service: public surface for creating, loading and using a wallet.
"""

from __future__ import annotations

from collections.abc import Callable

from cwcore.constants import WALLET_STORAGE_KEY
from cwcore.crypto import decode_seed, encode_seed, generate_seed
from loguru import logger

from cwallet.backends.base import LedgerClient
from cwallet.config import SessionConfig
from cwallet.storage import JsonStorage
from cwallet.wallet.errors import NoWalletError
from cwallet.wallet.models import Address, Asset, Balance, SendFundsOptions, Wallet
from cwallet.wallet.scheduler import SubscriberRegistry
from cwallet.wallet.session import WalletSession


class WalletService:
    """
    Colored-coin wallet service.

    At most one wallet is open at a time; opening another one closes the
    current session first. Wallet state lives in the session, so separate
    service instances never share it. Subscriptions belong to the service and
    carry over to every wallet it opens.
    """

    def __init__(
        self,
        client: LedgerClient,
        storage: JsonStorage,
        config: SessionConfig | None = None,
    ):
        self.client = client
        self.storage = storage
        self.config = config or SessionConfig()
        self.subscribers = SubscriberRegistry()
        self._session: WalletSession | None = None

    @property
    def session(self) -> WalletSession:
        if self._session is None:
            raise NoWalletError("No wallet loaded")
        return self._session

    @property
    def wallet(self) -> Wallet | None:
        return self._session.wallet if self._session else None

    async def create(self, seed: str | None = None) -> Wallet:
        """
        Create a new wallet, or import one from a base58 seed, and make it current.
        """
        if seed is None:
            seed = encode_seed(generate_seed())
        else:
            decode_seed(seed)

        wallet = Wallet(seed=seed, last_address_index=0, spent_addresses=[], assets=[])
        await self._open(wallet)
        await self.session.save()

        logger.info("Created new wallet")
        return wallet

    async def get(self) -> Wallet | None:
        """Get the current wallet, loading it from storage if needed."""
        if self._session is not None:
            return self._session.wallet

        record = await self.storage.get(WALLET_STORAGE_KEY)
        if record is None:
            return None

        wallet = Wallet.model_validate(record)
        await self._open(wallet)

        logger.info(f"Loaded wallet with {wallet.last_address_index + 1} addresses")
        return wallet

    async def delete(self) -> None:
        """Close the current wallet and remove it from storage."""
        await self.close()
        await self.storage.remove(WALLET_STORAGE_KEY)
        logger.info("Wallet deleted")

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _open(self, wallet: Wallet) -> None:
        await self.close()
        session = WalletSession(
            wallet, self.client, self.storage, self.config, self.subscribers
        )
        await session.open()
        self._session = session

    def balances(self) -> list[Balance]:
        return self.session.balances if self._session else []

    def addresses(self) -> list[Address]:
        return self.session.addresses if self._session else []

    def receive_address(self) -> str:
        return self.session.receive_address()

    async def refresh(self) -> None:
        await self.session.refresh()

    async def create_asset(self, name: str, symbol: str, amount: int) -> Asset:
        if amount <= 0:
            raise ValueError(f"Asset amount must be positive, got {amount}")
        return await self.session.create_asset(name, symbol, amount)

    async def send_funds(self, address: str, color: str, amount: int) -> str:
        if amount <= 0:
            raise ValueError(f"Amount must be positive, got {amount}")
        return await self.session.send_funds(address, color, amount)

    async def send_funds_with_options(self, options: SendFundsOptions) -> str:
        return await self.session.send_funds_with_options(options)

    async def request_funds(self) -> str:
        return await self.session.request_funds()

    def subscribe(self, callback: Callable[[], None]) -> str:
        return self.subscribers.subscribe(callback)

    def unsubscribe(self, subscription_id: str) -> None:
        self.subscribers.unsubscribe(subscription_id)
