"""Pytest configuration and fixtures."""

import os
from typing import Optional

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from sponsorswap.chain.client import BlockId, ChainClient, FeeData
from sponsorswap.config import GWEI, RoutingConfig
from sponsorswap.models import Asset, Pool, Receipt, SponsoredTransactionRequest, ZERO_ADDRESS
from sponsorswap.signing.base import SignedTransaction, SignerType, TransactionSigner
from sponsorswap.swap.supervisor import ExecutionSupervisor

USDC_ADDRESS = "0x9Aa0F72392B5784Ad86c6f3E899bCc053D00Db4F"
USDT_ADDRESS = "0x6386dA73545ae4E2B2E0393688fA8B65Bb9a7169"
WETH_ADDRESS = "0x72af9f169b619d85a47dfa8fefbcd39de55c567d"

USDC_ETH_POOL = "0x353B35a3362Dff8174cd9679BC4a46365CcD4dA7"
USDC_USDT_POOL = "0x61a87fa6Dd89a23c78F0754EF3372d35ccde5935"
USDT_ETH_POOL = "0xc6B9d3814b5A32e41Eb778C0E5b742a8d9E5E94b"

ROUTER_ADDRESS = "0x455FFfa180D50D8a1AdaaA46Eb2bfb4C1bb28602"
FACTORY_ADDRESS = "0xfe146Ec9863C9A7AF38c75216DE19CFA82E560B6"
PAYMASTER_ADDRESS = "0x98546B226dbbA8230cf620635a1e4ab01F6A99B2"

# Well-known development key (anvil / hardhat account #0)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

CHAIN_ID = 50104
HEAD_BLOCK = 100
FIXED_NOW = 1_700_000_000

USDC = Asset(USDC_ADDRESS, "USDC", 6)
USDT = Asset(USDT_ADDRESS, "USDT", 6)
ETH = Asset(WETH_ADDRESS, "ETH", 18)


def make_config(pools: Optional[tuple] = None, **overrides) -> RoutingConfig:
    """Routing config for the USDC / USDT / ETH registry."""
    if pools is None:
        pools = (
            Pool(USDC_ETH_POOL, USDC, ETH),
            Pool(USDC_USDT_POOL, USDC, USDT),
            Pool(USDT_ETH_POOL, USDT, ETH),
        )
    values = dict(
        assets=(USDC, USDT, ETH),
        pools=pools,
        bridge_assets=(USDT,),
        wrapped_native=ETH,
        router_address=ROUTER_ADDRESS,
        pool_factory_address=FACTORY_ADDRESS,
        sponsor_address=PAYMASTER_ADDRESS,
        explorer_tx_url="https://sophscan.xyz/tx/",
    )
    values.update(overrides)
    return RoutingConfig(**values)


class FakeChainClient(ChainClient):
    """In-memory chain with scriptable reserves, balances and failures."""

    def __init__(self):
        self.reserves: dict[str, tuple[int, int]] = {}
        self.reserve_errors: set[str] = set()
        self.factory_pools: dict[frozenset, str] = {}
        self.balances: dict[tuple[str, str], int] = {}
        self.block_balances: dict[tuple[str, str, int], int] = {}
        self.allowances: dict[tuple[str, str, str], int] = {}
        self.token_decimals: dict[str, int] = {
            USDC_ADDRESS.lower(): 6,
            USDT_ADDRESS.lower(): 6,
            WETH_ADDRESS.lower(): 18,
        }
        self.fee_data = FeeData(gas_price=25 * GWEI, max_fee_per_gas=50 * GWEI, max_priority_fee_per_gas=GWEI)
        self.fee_error: Optional[Exception] = None
        self.gas_estimate = 1_000_000
        self.gas_error: Optional[Exception] = None
        self.broadcast_errors: list[Optional[Exception]] = []
        self.receipt_statuses: list[int] = []
        self.receipt_timeout = False
        self.nonce = 7
        self.head = HEAD_BLOCK
        self.head_error: Optional[Exception] = None
        self.call_error: Optional[Exception] = None

        self.broadcasts: list[bytes] = []
        self.reserve_calls: list[str] = []
        self.balance_calls: list[tuple[str, str, BlockId]] = []
        self.estimate_calls: list[dict] = []
        self.call_calls: list[tuple[dict, BlockId]] = []

    # -- scripting helpers --

    def set_liquidity(self, pool: str, token_a: str, reserve_a: int, token_b: str, reserve_b: int) -> None:
        """Store reserves in the pool's address-sorted storage order."""
        if token_a.lower() < token_b.lower():
            self.reserves[pool.lower()] = (reserve_a, reserve_b)
        else:
            self.reserves[pool.lower()] = (reserve_b, reserve_a)

    def set_balance(self, asset: str, account: str, amount: int, block: Optional[int] = None) -> None:
        if block is None:
            self.balances[(asset.lower(), account.lower())] = amount
        else:
            self.block_balances[(asset.lower(), account.lower(), block)] = amount

    def set_native_balance(self, account: str, amount: int, block: Optional[int] = None) -> None:
        self.set_balance("native", account, amount, block)

    def set_allowance(self, asset: str, owner: str, spender: str, amount: int) -> None:
        self.allowances[(asset.lower(), owner.lower(), spender.lower())] = amount

    def _balance(self, asset: str, account: str, block: BlockId) -> int:
        self.balance_calls.append((asset, account, block))
        pinned = self.block_balances.get((asset.lower(), account.lower(), block))
        if pinned is not None:
            return pinned
        return self.balances.get((asset.lower(), account.lower()), 0)

    # -- ChainClient --

    async def get_reserves(self, pool: str) -> tuple[int, int]:
        self.reserve_calls.append(pool)
        if pool.lower() in self.reserve_errors:
            raise ConnectionError(f"RPC unreachable reading {pool}")
        return self.reserves.get(pool.lower(), (0, 0))

    async def get_pool(self, factory: str, token_a: str, token_b: str) -> str:
        return self.factory_pools.get(frozenset((token_a.lower(), token_b.lower())), ZERO_ADDRESS)

    async def balance_of(self, asset: str, account: str, block: BlockId = None) -> int:
        return self._balance(asset, account, block)

    async def native_balance(self, account: str, block: BlockId = None) -> int:
        return self._balance("native", account, block)

    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        return self.allowances.get((asset.lower(), owner.lower(), spender.lower()), 0)

    async def decimals(self, asset: str) -> int:
        if asset.lower() not in self.token_decimals:
            raise ValueError(f"decimals() reverted for {asset}")
        return self.token_decimals[asset.lower()]

    async def get_fee_data(self) -> FeeData:
        if self.fee_error:
            raise self.fee_error
        return self.fee_data

    async def estimate_gas(self, tx: dict) -> int:
        self.estimate_calls.append(tx)
        if self.gas_error:
            raise self.gas_error
        return self.gas_estimate

    async def broadcast(self, raw_tx: bytes) -> str:
        index = len(self.broadcasts)
        if index < len(self.broadcast_errors) and self.broadcast_errors[index] is not None:
            self.broadcasts.append(raw_tx)
            raise self.broadcast_errors[index]
        self.broadcasts.append(raw_tx)
        return f"0x{index + 1:064x}"

    async def await_receipt(self, tx_hash: str, timeout: float, poll_interval: float = 2.0) -> Receipt:
        if self.receipt_timeout:
            raise TimeoutError(f"Transaction {tx_hash} not confirmed after {timeout}s")
        index = int(tx_hash, 16) - 1
        status = self.receipt_statuses[index] if index < len(self.receipt_statuses) else 1
        return Receipt(tx_hash=tx_hash, status=status, block_number=self.head + 1 + index)

    async def get_transaction_count(self, account: str) -> int:
        return self.nonce

    async def chain_id(self) -> int:
        return CHAIN_ID

    async def block_number(self) -> int:
        if self.head_error:
            raise self.head_error
        return self.head

    async def call(self, tx: dict, block: BlockId = None) -> bytes:
        self.call_calls.append((tx, block))
        if self.call_error:
            raise self.call_error
        return b""


class FakeSigner(TransactionSigner):
    """Signer that records requests instead of signing them."""

    def __init__(self, address: str = TEST_ADDRESS):
        super().__init__(SignerType.EXTERNAL)
        self._address = address
        self.requests: list[SponsoredTransactionRequest] = []

    @property
    def address(self) -> str:
        return self._address

    async def sign(self, request: SponsoredTransactionRequest) -> SignedTransaction:
        self.requests.append(request)
        return SignedTransaction(raw_transaction=b"\x71" + request.data, signature=b"\x00" * 65)


@pytest.fixture
def routing_config() -> RoutingConfig:
    return make_config()


@pytest.fixture
def chain() -> FakeChainClient:
    """Chain with healthy liquidity in all three pools."""
    client = FakeChainClient()
    client.set_liquidity(USDC_ETH_POOL, USDC_ADDRESS, 1_000_000 * 10**6, WETH_ADDRESS, 500 * 10**18)
    client.set_liquidity(USDC_USDT_POOL, USDC_ADDRESS, 1_000_000 * 10**6, USDT_ADDRESS, 1_000_000 * 10**6)
    client.set_liquidity(USDT_ETH_POOL, USDT_ADDRESS, 1_000_000 * 10**6, WETH_ADDRESS, 500 * 10**18)
    client.set_native_balance(PAYMASTER_ADDRESS, 10**18)
    return client


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def supervisor(routing_config, chain, signer) -> ExecutionSupervisor:
    return ExecutionSupervisor(routing_config, chain, signer, clock=lambda: FIXED_NOW)
