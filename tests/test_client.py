"""Tests for the web3-backed chain client."""

from unittest.mock import MagicMock, PropertyMock

import pytest
from web3.exceptions import TransactionNotFound

from sponsorswap.chain.client import DEFAULT_PRIORITY_FEE, Web3ChainClient
from sponsorswap.config import GWEI

POOL = "0x353B35a3362Dff8174cd9679BC4a46365CcD4dA7"
ACCOUNT = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TX_HASH = "0x" + "ab" * 32


@pytest.fixture
def web3():
    mock = MagicMock()
    mock.to_checksum_address.side_effect = lambda address: address
    mock.eth.gas_price = 25 * GWEI
    return mock


@pytest.fixture
def client(web3):
    client = Web3ChainClient("http://localhost:8545")
    client._web3 = web3
    return client


class TestFeeData:
    """Tests for the EIP-1559 fee suggestion."""

    @pytest.mark.asyncio
    async def test_base_fee_doubled_plus_tip(self, client, web3):
        web3.eth.get_block.return_value = {"baseFeePerGas": 10 * GWEI}
        web3.eth.max_priority_fee = 2 * GWEI

        data = await client.get_fee_data()

        assert data.gas_price == 25 * GWEI
        assert data.max_fee_per_gas == 22 * GWEI
        assert data.max_priority_fee_per_gas == 2 * GWEI
        web3.eth.get_block.assert_called_once_with("latest")

    @pytest.mark.asyncio
    async def test_default_tip_when_unsupported(self, client, web3):
        web3.eth.get_block.return_value = {"baseFeePerGas": 10 * GWEI}
        type(web3.eth).max_priority_fee = PropertyMock(side_effect=ValueError("method not found"))

        data = await client.get_fee_data()

        assert data.max_priority_fee_per_gas == DEFAULT_PRIORITY_FEE
        assert data.max_fee_per_gas == 20 * GWEI + DEFAULT_PRIORITY_FEE

    @pytest.mark.asyncio
    async def test_legacy_chain_reports_gas_price_only(self, client, web3):
        web3.eth.get_block.return_value = {"number": 100}

        data = await client.get_fee_data()

        assert data.gas_price == 25 * GWEI
        assert data.max_fee_per_gas is None
        assert data.max_priority_fee_per_gas is None


class TestEstimateGas:
    """Tests for raw eth_estimateGas."""

    @pytest.mark.asyncio
    async def test_payload_hex_encoded(self, client, web3):
        web3.manager.request_blocking.return_value = "0x5208"
        meta = {"gasPerPubdata": "0xc350"}

        gas = await client.estimate_gas(
            {"from": ACCOUNT, "to": POOL, "data": b"\x12\x34", "value": 0, "eip712Meta": meta}
        )

        assert gas == 21_000
        method, params = web3.manager.request_blocking.call_args.args
        assert method == "eth_estimateGas"
        assert params == [
            {"from": ACCOUNT, "to": POOL, "data": "0x1234", "value": "0x0", "eip712Meta": meta}
        ]

    @pytest.mark.asyncio
    async def test_integer_result(self, client, web3):
        web3.manager.request_blocking.return_value = 1_000_000

        assert await client.estimate_gas({"to": POOL}) == 1_000_000


class TestBroadcast:
    """Tests for transaction hash normalisation."""

    @pytest.mark.asyncio
    async def test_hash_without_prefix(self, client, web3):
        web3.eth.send_raw_transaction.return_value = bytes.fromhex("ab" * 32)

        assert await client.broadcast(b"\x71\x01") == TX_HASH
        web3.eth.send_raw_transaction.assert_called_once_with(b"\x71\x01")

    @pytest.mark.asyncio
    async def test_hash_with_prefix(self, client, web3):
        tx_hash = MagicMock()
        tx_hash.hex.return_value = TX_HASH
        web3.eth.send_raw_transaction.return_value = tx_hash

        assert await client.broadcast(b"\x71\x01") == TX_HASH


class TestAwaitReceipt:
    """Tests for receipt polling."""

    @pytest.mark.asyncio
    async def test_receipt_mapped(self, client, web3):
        web3.eth.get_transaction_receipt.return_value = {"status": 1, "blockNumber": 101}

        receipt = await client.await_receipt(TX_HASH, timeout=5, poll_interval=0)

        assert receipt.tx_hash == TX_HASH
        assert receipt.succeeded is True
        assert receipt.block_number == 101

    @pytest.mark.asyncio
    async def test_polls_until_mined(self, client, web3):
        web3.eth.get_transaction_receipt.side_effect = [
            None,
            TransactionNotFound("not yet"),
            {"status": 0, "blockNumber": 102},
        ]

        receipt = await client.await_receipt(TX_HASH, timeout=5, poll_interval=0)

        assert receipt.status == 0
        assert receipt.block_number == 102
        assert web3.eth.get_transaction_receipt.call_count == 3

    @pytest.mark.asyncio
    async def test_timeout(self, client, web3):
        web3.eth.get_transaction_receipt.side_effect = TransactionNotFound("not found")

        with pytest.raises(TimeoutError):
            await client.await_receipt(TX_HASH, timeout=0.01, poll_interval=0.005)


class TestReads:
    """Tests for contract and account reads."""

    @pytest.mark.asyncio
    async def test_reserves(self, client, web3):
        contract = web3.eth.contract.return_value
        contract.functions.getReserves.return_value.call.return_value = (10, 20)

        assert await client.get_reserves(POOL) == (10, 20)
        assert web3.eth.contract.call_args.kwargs["address"] == POOL

    @pytest.mark.asyncio
    async def test_native_balance_defaults_to_latest(self, client, web3):
        web3.eth.get_balance.return_value = 5

        assert await client.native_balance(ACCOUNT) == 5
        assert await client.native_balance(ACCOUNT, 100) == 5
        assert [c.args for c in web3.eth.get_balance.call_args_list] == [
            (ACCOUNT, "latest"),
            (ACCOUNT, 100),
        ]

    @pytest.mark.asyncio
    async def test_chain_id_cached(self, client, web3):
        web3.eth.chain_id = 50104

        assert await client.chain_id() == 50104
        web3.eth.chain_id = 1
        assert await client.chain_id() == 50104


class TestCall:
    """Tests for eth_call replays."""

    @pytest.mark.asyncio
    async def test_call_at_block(self, client, web3):
        web3.eth.call.return_value = b"\x00" * 32

        result = await client.call({"from": ACCOUNT, "to": POOL, "data": b"\x01", "value": 0}, 101)

        assert result == b"\x00" * 32
        web3.eth.call.assert_called_once_with({"to": POOL, "data": b"\x01", "from": ACCOUNT}, 101)

    @pytest.mark.asyncio
    async def test_revert_propagates(self, client, web3):
        web3.eth.call.side_effect = ValueError("execution reverted: TooLittleReceived()")

        with pytest.raises(ValueError, match="TooLittleReceived"):
            await client.call({"to": POOL, "data": b"\x01"})

        assert web3.eth.call.call_args.args[1] == "latest"
