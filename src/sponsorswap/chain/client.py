"""Chain client capability.

``ChainClient`` is the read / broadcast surface the routing core consumes.
``Web3ChainClient`` implements it over JSON-RPC with web3.py; blocking web3
calls run in worker threads so independent reads can overlap.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Union

from sponsorswap.models import Receipt, ZERO_ADDRESS

logger = logging.getLogger(__name__)

BlockId = Union[int, str, None]

DEFAULT_PRIORITY_FEE = 10**9  # 1 gwei, used when the node has no tip suggestion

ERC20_ABI = [
    {
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "owner", "type": "address"}, {"name": "spender", "type": "address"}],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function",
    },
]

POOL_ABI = [
    {
        "inputs": [],
        "name": "getReserves",
        "outputs": [{"name": "", "type": "uint256"}, {"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

POOL_FACTORY_ABI = [
    {
        "inputs": [{"name": "tokenA", "type": "address"}, {"name": "tokenB", "type": "address"}],
        "name": "getPool",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class FeeData:
    """Network fee suggestion; any field may be missing."""

    gas_price: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None


class ChainClient(ABC):
    """Read and broadcast operations against one chain."""

    @abstractmethod
    async def get_reserves(self, pool: str) -> tuple[int, int]:
        """Raw pool reserves in the pool's address-sorted storage order."""

    @abstractmethod
    async def get_pool(self, factory: str, token_a: str, token_b: str) -> str:
        """Pool address from the factory (zero address when absent)."""

    @abstractmethod
    async def balance_of(self, asset: str, account: str, block: BlockId = None) -> int:
        """ERC-20 balance, optionally pinned to a block."""

    @abstractmethod
    async def native_balance(self, account: str, block: BlockId = None) -> int:
        """Native coin balance, optionally pinned to a block."""

    @abstractmethod
    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        """ERC-20 allowance."""

    @abstractmethod
    async def decimals(self, asset: str) -> int:
        """ERC-20 decimals."""

    @abstractmethod
    async def get_fee_data(self) -> FeeData:
        """Current fee-market suggestion."""

    @abstractmethod
    async def estimate_gas(self, tx: dict) -> int:
        """Gas estimate for a transaction dict."""

    @abstractmethod
    async def broadcast(self, raw_tx: bytes) -> str:
        """Broadcast a signed transaction and return its hash."""

    @abstractmethod
    async def await_receipt(self, tx_hash: str, timeout: float, poll_interval: float = 2.0) -> Receipt:
        """Poll for a receipt; raises TimeoutError when none arrives in time."""

    @abstractmethod
    async def get_transaction_count(self, account: str) -> int:
        """Next nonce for the account (pending)."""

    @abstractmethod
    async def chain_id(self) -> int:
        """Chain identifier."""

    @abstractmethod
    async def block_number(self) -> int:
        """Current head block number."""

    @abstractmethod
    async def call(self, tx: dict, block: BlockId = None) -> bytes:
        """Execute a call without broadcasting; raises when it reverts."""


class Web3ChainClient(ChainClient):
    """ChainClient backed by a web3.py HTTP provider."""

    def __init__(self, rpc_url: str, request_timeout: int = 30):
        self.rpc_url = rpc_url
        self.request_timeout = request_timeout
        self._web3 = None
        self._chain_id: Optional[int] = None

    @property
    def web3(self):
        """Lazy load web3 instance."""
        if self._web3 is None:
            from web3 import Web3
            self._web3 = Web3(
                Web3.HTTPProvider(self.rpc_url, request_kwargs={"timeout": self.request_timeout})
            )
        return self._web3

    def _checksum(self, address: str) -> str:
        return self.web3.to_checksum_address(address)

    def _contract(self, address: str, abi: list):
        return self.web3.eth.contract(address=self._checksum(address), abi=abi)

    @staticmethod
    def _block(block: BlockId):
        return "latest" if block is None else block

    async def get_reserves(self, pool: str) -> tuple[int, int]:
        contract = self._contract(pool, POOL_ABI)
        reserve0, reserve1 = await asyncio.to_thread(contract.functions.getReserves().call)
        return int(reserve0), int(reserve1)

    async def get_pool(self, factory: str, token_a: str, token_b: str) -> str:
        contract = self._contract(factory, POOL_FACTORY_ABI)
        call = contract.functions.getPool(self._checksum(token_a), self._checksum(token_b))
        address = await asyncio.to_thread(call.call)
        return address or ZERO_ADDRESS

    async def balance_of(self, asset: str, account: str, block: BlockId = None) -> int:
        contract = self._contract(asset, ERC20_ABI)
        call = contract.functions.balanceOf(self._checksum(account))
        return int(await asyncio.to_thread(call.call, block_identifier=self._block(block)))

    async def native_balance(self, account: str, block: BlockId = None) -> int:
        return int(
            await asyncio.to_thread(
                self.web3.eth.get_balance, self._checksum(account), self._block(block)
            )
        )

    async def allowance(self, asset: str, owner: str, spender: str) -> int:
        contract = self._contract(asset, ERC20_ABI)
        call = contract.functions.allowance(self._checksum(owner), self._checksum(spender))
        return int(await asyncio.to_thread(call.call))

    async def decimals(self, asset: str) -> int:
        contract = self._contract(asset, ERC20_ABI)
        return int(await asyncio.to_thread(contract.functions.decimals().call))

    async def get_fee_data(self) -> FeeData:
        """Fee suggestion following the EIP-1559 convention.

        max_fee = 2 * base_fee + priority_fee when the head block carries a
        base fee; otherwise only the legacy gas price is reported.
        """
        gas_price = await asyncio.to_thread(lambda: self.web3.eth.gas_price)
        block = await asyncio.to_thread(self.web3.eth.get_block, "latest")
        base_fee = block.get("baseFeePerGas")

        if base_fee is None:
            return FeeData(gas_price=int(gas_price))

        try:
            priority = int(await asyncio.to_thread(lambda: self.web3.eth.max_priority_fee))
        except Exception as e:
            logger.debug(f"eth_maxPriorityFeePerGas unavailable, using default tip: {e}")
            priority = DEFAULT_PRIORITY_FEE

        return FeeData(
            gas_price=int(gas_price),
            max_fee_per_gas=int(base_fee) * 2 + priority,
            max_priority_fee_per_gas=priority,
        )

    async def estimate_gas(self, tx: dict) -> int:
        """Estimate gas through raw eth_estimateGas so zkSync eip712Meta passes through."""
        payload = {}
        for key, value in tx.items():
            if isinstance(value, int) and not isinstance(value, bool):
                payload[key] = hex(value)
            elif isinstance(value, (bytes, bytearray)):
                payload[key] = "0x" + bytes(value).hex()
            else:
                payload[key] = value
        result = await asyncio.to_thread(
            self.web3.manager.request_blocking, "eth_estimateGas", [payload]
        )
        return int(result, 16) if isinstance(result, str) else int(result)

    async def broadcast(self, raw_tx: bytes) -> str:
        tx_hash = await asyncio.to_thread(self.web3.eth.send_raw_transaction, raw_tx)
        tx_hash_hex = tx_hash.hex()
        return tx_hash_hex if tx_hash_hex.startswith("0x") else "0x" + tx_hash_hex

    async def await_receipt(self, tx_hash: str, timeout: float, poll_interval: float = 2.0) -> Receipt:
        """Wait for transaction to be included.

        Args:
            tx_hash: Transaction hash to wait for
            timeout: Maximum seconds to wait
            poll_interval: Seconds between polls

        Returns:
            Receipt with status and block number

        Raises:
            TimeoutError: If no receipt within timeout
        """
        from web3.exceptions import TransactionNotFound

        loop = asyncio.get_running_loop()
        start_time = loop.time()

        while True:
            try:
                receipt = await asyncio.to_thread(self.web3.eth.get_transaction_receipt, tx_hash)
            except TransactionNotFound:
                receipt = None

            if receipt is not None:
                return Receipt(
                    tx_hash=tx_hash,
                    status=int(receipt["status"]),
                    block_number=int(receipt["blockNumber"]),
                )

            if loop.time() - start_time > timeout:
                raise TimeoutError(f"Transaction {tx_hash} not confirmed after {timeout}s")

            await asyncio.sleep(poll_interval)

    async def get_transaction_count(self, account: str) -> int:
        return int(
            await asyncio.to_thread(
                self.web3.eth.get_transaction_count, self._checksum(account), "pending"
            )
        )

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await asyncio.to_thread(lambda: self.web3.eth.chain_id))
        return self._chain_id

    async def block_number(self) -> int:
        return int(await asyncio.to_thread(lambda: self.web3.eth.block_number))

    async def call(self, tx: dict, block: BlockId = None) -> bytes:
        payload = {"to": self._checksum(tx["to"]), "data": tx.get("data", b"")}
        if tx.get("from"):
            payload["from"] = self._checksum(tx["from"])
        if tx.get("value"):
            payload["value"] = int(tx["value"])
        return bytes(await asyncio.to_thread(self.web3.eth.call, payload, self._block(block)))
