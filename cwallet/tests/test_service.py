"""
Tests for the wallet service and session.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from cwcore.constants import BASE_COLOR, WALLET_STORAGE_KEY
from cwcore.crypto import address_to_bytes, derive_address, encode_seed

from cwallet.backends.base import LedgerClient
from cwallet.config import SessionConfig
from cwallet.storage import MemoryJsonStorage
from cwallet.wallet.errors import (
    InsufficientFundsError,
    LedgerSubmissionError,
    NoWalletError,
)
from cwallet.wallet.models import SendFundsOptions
from cwallet.wallet.service import WalletService

DEST = derive_address(b"\x42" * 32, 0)


@pytest_asyncio.fixture
async def service(ledger: LedgerClient, storage: MemoryJsonStorage, session_config: SessionConfig):
    service = WalletService(ledger, storage, session_config)
    yield service
    await service.close()


async def open_funded(service: WalletService, ledger, seed: bytes, **balances: int) -> str:
    """Fund address 0 of the test seed and open the wallet."""
    a0 = derive_address(seed, 0)
    ledger.fund(a0, balances or {BASE_COLOR: 100})
    await service.create(encode_seed(seed))
    return a0


class TestLifecycle:
    """Tests for create, load and delete."""

    @pytest.mark.asyncio
    async def test_create_persists_wallet(self, service, storage) -> None:
        wallet = await service.create()

        record = await storage.get(WALLET_STORAGE_KEY)
        assert record is not None
        assert record["seed"] == wallet.seed
        assert record["last_address_index"] == 0
        assert service.session.scheduler.running

    @pytest.mark.asyncio
    async def test_create_refreshes_immediately(self, service, ledger, seed) -> None:
        """Balances are known as soon as the wallet is created."""
        await open_funded(service, ledger, seed, IOTA=100)

        [balance] = service.balances()
        assert balance.confirmed == 100
        assert len(ledger.queries) == 1

    @pytest.mark.asyncio
    async def test_create_rejects_bad_seed(self, service) -> None:
        with pytest.raises(Exception, match="seed"):
            await service.create("not-a-seed")

    @pytest.mark.asyncio
    async def test_get_loads_from_storage(self, ledger, storage, session_config, seed) -> None:
        first = WalletService(ledger, storage, session_config)
        created = await first.create(encode_seed(seed))
        await first.close()

        second = WalletService(ledger, storage, session_config)
        try:
            loaded = await second.get()
            assert loaded is not None
            assert loaded.seed == created.seed
            assert second.addresses()[0].address == derive_address(seed, 0)
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_get_without_wallet(self, service) -> None:
        assert await service.get() is None
        assert service.balances() == []
        with pytest.raises(NoWalletError):
            service.receive_address()

    @pytest.mark.asyncio
    async def test_delete(self, service, storage) -> None:
        await service.create()
        session = service.session

        await service.delete()

        assert await storage.get(WALLET_STORAGE_KEY) is None
        assert service.wallet is None
        assert not session.scheduler.running

    @pytest.mark.asyncio
    async def test_create_replaces_previous_session(self, service) -> None:
        await service.create()
        old_session = service.session
        await service.create()

        assert service.session is not old_session
        assert not old_session.scheduler.running


class TestSendFunds:
    """Tests for sending funds."""

    @pytest.mark.asyncio
    async def test_simple_send(self, service, ledger, seed) -> None:
        """One output of 100 pays 40 and returns 60 to a fresh address."""
        a0 = await open_funded(service, ledger, seed, IOTA=100)
        notifications = []
        service.subscribe(lambda: notifications.append(1))

        tx_id = await service.send_funds(DEST, BASE_COLOR, 40)

        assert tx_id
        assert len(ledger.submitted) == 1
        assert service.wallet.spent_addresses == [a0]
        assert service.session.spent_output_ids == {ledger.outputs[a0][0].id}
        assert notifications == [1]
        assert service.wallet.last_address_index == 1

        record = await service.storage.get(WALLET_STORAGE_KEY)
        assert record["spent_addresses"] == [a0]

    @pytest.mark.asyncio
    async def test_submitted_transaction_layout(self, service, ledger, seed) -> None:
        """The submitted bytes hold the destination and remainder amounts."""
        await open_funded(service, ledger, seed, IOTA=100)

        await service.send_funds(DEST, BASE_COLOR, 40)

        raw = ledger.submitted[0]
        assert (40).to_bytes(8, "little") + bytes(32) in raw
        assert (60).to_bytes(8, "little") + bytes(32) in raw

    @pytest.mark.asyncio
    async def test_output_never_consumed_twice(self, service, ledger, seed) -> None:
        """The ledger still reports the spent output; it is not selected again."""
        await open_funded(service, ledger, seed, IOTA=100)
        await service.send_funds(DEST, BASE_COLOR, 40)

        with pytest.raises(InsufficientFundsError):
            await service.send_funds(DEST, BASE_COLOR, 10)
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_insufficient_funds_has_no_side_effects(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed, IOTA=10)

        with pytest.raises(InsufficientFundsError):
            await service.send_funds(DEST, BASE_COLOR, 11)

        assert service.wallet.spent_addresses == []
        assert service.session.spent_output_ids == frozenset()
        assert ledger.submitted == []

    @pytest.mark.asyncio
    async def test_ledger_error_has_no_side_effects(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed, IOTA=100)
        ledger.submit_error = "conflicting transaction"

        with pytest.raises(LedgerSubmissionError, match="conflicting"):
            await service.send_funds(DEST, BASE_COLOR, 40)

        assert service.wallet.spent_addresses == []
        assert service.session.spent_output_ids == frozenset()

    @pytest.mark.asyncio
    async def test_transport_error_surfaces(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed, IOTA=100)
        ledger.raise_on_submit = True

        with pytest.raises(LedgerSubmissionError):
            await service.send_funds(DEST, BASE_COLOR, 40)
        assert service.session.spent_output_ids == frozenset()

    @pytest.mark.asyncio
    async def test_send_with_options(self, service, ledger, seed) -> None:
        """Multiple destinations are paid in one transaction."""
        await open_funded(service, ledger, seed, IOTA=100)
        other = derive_address(b"\x43" * 32, 0)

        tx_id = await service.send_funds_with_options(
            SendFundsOptions(destinations={DEST: {BASE_COLOR: 30}, other: {BASE_COLOR: 70}})
        )

        assert tx_id
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed)

        with pytest.raises(ValueError):
            await service.send_funds(DEST, BASE_COLOR, 0)

    @pytest.mark.asyncio
    async def test_send_without_wallet(self, service) -> None:
        with pytest.raises(NoWalletError):
            await service.send_funds(DEST, BASE_COLOR, 1)


class TestImportedWallet:
    """Tests for wallets whose funds sit past the stored address index."""

    @pytest.mark.asyncio
    async def test_import_finds_higher_addresses(self, service, ledger, seed) -> None:
        a3 = derive_address(seed, 3)
        ledger.fund(a3, {BASE_COLOR: 100})

        await service.create(encode_seed(seed))

        assert service.wallet.last_address_index == 3
        assert [a.address for a in service.addresses()][-1] == a3
        record = await service.storage.get(WALLET_STORAGE_KEY)
        assert record["last_address_index"] == 3

    @pytest.mark.asyncio
    async def test_send_from_imported_higher_address(self, service, ledger, seed) -> None:
        """Funds at a higher index can be spent right after import."""
        a3 = derive_address(seed, 3)
        ledger.fund(a3, {BASE_COLOR: 100})
        await service.create(encode_seed(seed))

        tx_id = await service.send_funds(DEST, BASE_COLOR, 40)

        assert tx_id
        assert len(ledger.submitted) == 1
        assert service.wallet.spent_addresses == [a3]


class TestCreateAsset:
    """Tests for minting assets."""

    @pytest.mark.asyncio
    async def test_create_asset(self, service, ledger, seed) -> None:
        """Minting registers the asset under the minting transaction id."""
        a0 = await open_funded(service, ledger, seed, IOTA=50)

        asset = await service.create_asset("Coin", "C", 10)
        a1, a2 = derive_address(seed, 1), derive_address(seed, 2)

        assert asset.name == "Coin"
        assert asset.symbol == "C"
        assert asset.precision == 0
        assert service.wallet.assets == [asset]
        assert service.wallet.spent_addresses == [a0]

        raw = ledger.submitted[0]
        assert b"\xff" * 32 in raw
        assert (10).to_bytes(8, "little") + b"\xff" * 32 in raw
        assert (40).to_bytes(8, "little") + bytes(32) in raw
        # Minted tokens and the base remainder land on different addresses
        assert address_to_bytes(a1) + b"\x01" + (10).to_bytes(8, "little") in raw
        assert address_to_bytes(a2) + b"\x01" + (40).to_bytes(8, "little") in raw

        record = await service.storage.get(WALLET_STORAGE_KEY)
        assert record["assets"][0]["color"] == asset.color

    @pytest.mark.asyncio
    async def test_minted_balance_shows_asset(self, service, ledger, seed) -> None:
        """Once the ledger reports the new color it is shown with its metadata."""
        await open_funded(service, ledger, seed, IOTA=50)
        asset = await service.create_asset("Coin", "C", 10)

        ledger.fund(derive_address(seed, 1), {asset.color: 10, BASE_COLOR: 40})
        await service.refresh()

        balances = {b.asset.color: b for b in service.balances()}
        assert balances[asset.color].asset.symbol == "C"
        assert balances[asset.color].confirmed == 10

    @pytest.mark.asyncio
    async def test_create_asset_insufficient(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed, IOTA=5)

        with pytest.raises(InsufficientFundsError):
            await service.create_asset("Coin", "C", 10)
        assert service.wallet.assets == []


class TestFaucetAndSubscriptions:
    """Tests for faucet requests and notifications."""

    @pytest.mark.asyncio
    async def test_request_funds(self, service, ledger, seed) -> None:
        await service.create(encode_seed(seed))

        request_id = await service.request_funds()

        assert request_id
        assert ledger.faucet_requests == [derive_address(seed, 0)]
        assert service.balances()[0].confirmed == 1_000_000

    @pytest.mark.asyncio
    async def test_request_funds_error(self, service, ledger) -> None:
        await service.create()
        ledger.submit_error = "faucet empty"

        with pytest.raises(LedgerSubmissionError, match="faucet empty"):
            await service.request_funds()

    @pytest.mark.asyncio
    async def test_receive_address_moves_on_after_funding(self, service, ledger, seed) -> None:
        await service.create(encode_seed(seed))
        await service.request_funds()

        assert service.receive_address() == derive_address(seed, 1)

    @pytest.mark.asyncio
    async def test_unsubscribe(self, service) -> None:
        await service.create()
        calls = []
        sub_id = service.subscribe(lambda: calls.append("a"))

        await service.refresh()
        service.unsubscribe(sub_id)
        await service.refresh()

        assert calls == ["a"]

    @pytest.mark.asyncio
    async def test_subscribe_before_wallet_exists(self, service) -> None:
        """Subscribers registered early see the initial refresh."""
        calls = []
        service.subscribe(lambda: calls.append(1))

        await service.create()

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_subscription_survives_new_wallet(self, service) -> None:
        await service.create()
        calls = []
        service.subscribe(lambda: calls.append(1))

        await service.delete()
        await service.create()
        await service.refresh()

        assert calls == [1, 1]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_previous_state(self, service, ledger, seed) -> None:
        """A failed query leaves balances as they were and notifies nobody."""
        await open_funded(service, ledger, seed, IOTA=100)
        calls = []
        service.subscribe(lambda: calls.append(1))
        ledger.raise_on_query = True

        await service.refresh()

        [balance] = service.balances()
        assert balance.confirmed == 100
        assert calls == []

    @pytest.mark.asyncio
    async def test_send_during_query_outage_uses_snapshot(self, service, ledger, seed) -> None:
        await open_funded(service, ledger, seed, IOTA=100)
        ledger.raise_on_query = True

        tx_id = await service.send_funds(DEST, BASE_COLOR, 40)

        assert tx_id
        assert len(ledger.submitted) == 1

    @pytest.mark.asyncio
    async def test_query_failure_keeps_wallet_usable(self, service, ledger, seed) -> None:
        """A failed query yields no outputs instead of an error."""
        ledger.raise_on_query = True
        await service.create(encode_seed(seed))

        assert service.balances() == []
        assert service.receive_address() == derive_address(seed, 0)
