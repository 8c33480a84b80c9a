"""Live pool reserve reads.

Nothing is cached: each call reads current chain state so quotes are never
built on stale reserves.
"""

import logging
from typing import Optional

from sponsorswap.chain.client import ChainClient
from sponsorswap.models import Asset, Pool, ReservePair, ZERO_ADDRESS, same_address

logger = logging.getLogger(__name__)


class PoolReserveReader:
    """Reads and orients pool reserves for a requested token direction."""

    def __init__(self, client: ChainClient, factory_address: Optional[str] = None):
        self.client = client
        self.factory_address = factory_address

    async def reserves(self, pool: str, token_a: Asset, token_b: Asset) -> ReservePair:
        """Get reserves ordered as (token_a, token_b).

        Pools store reserves in address-sorted order (token0 < token1), which
        need not match the caller's direction.

        Returns:
            ReservePair; on read failure ReservePair(0, 0, available=False)
        """
        try:
            reserve0, reserve1 = await self.client.get_reserves(pool)
        except Exception as e:
            logger.warning(f"Failed to read reserves of pool {pool}: {e}")
            return ReservePair(0, 0, available=False)

        if token_a.address.lower() < token_b.address.lower():
            pair = ReservePair(reserve0, reserve1)
        else:
            pair = ReservePair(reserve1, reserve0)

        logger.debug(
            f"Reserves {pool}: {token_a.symbol}={pair.reserve_in} {token_b.symbol}={pair.reserve_out}"
        )
        return pair

    async def resolve_pool_address(self, token_a: Asset, token_b: Asset) -> Optional[str]:
        """Look up a pool address through the factory.

        Returns:
            Pool address, or None if the pool does not exist or lookup failed
        """
        if not self.factory_address:
            return None

        try:
            address = await self.client.get_pool(self.factory_address, token_a.address, token_b.address)
        except Exception as e:
            logger.error(f"Pool lookup failed for {token_a.symbol}/{token_b.symbol}: {e}")
            return None

        if not address or same_address(address, ZERO_ADDRESS):
            logger.info(f"No pool exists for {token_a.symbol}/{token_b.symbol}")
            return None

        return address

    async def resolve(self, pool: Pool) -> Optional[Pool]:
        """Return the pool with a concrete address, looking it up if needed."""
        if pool.address and not same_address(pool.address, ZERO_ADDRESS):
            return pool
        address = await self.resolve_pool_address(pool.token_a, pool.token_b)
        return pool.with_address(address) if address else None
