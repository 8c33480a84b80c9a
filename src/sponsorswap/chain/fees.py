"""Fee-market bids and gas limits for sponsored transactions."""

import logging

from sponsorswap.chain.client import ChainClient
from sponsorswap.config import GWEI, RoutingConfig
from sponsorswap.errors import FeeMarketUnavailableError
from sponsorswap.models import FeeParams

logger = logging.getLogger(__name__)


class FeeMarketAdapter:
    """Derives a safety-margined fee bid from the network's suggestion.

    The suggested max fee is multiplied by ``fee_multiplier`` to absorb a
    spike between quoting and inclusion, and the priority fee equals the max
    fee (the network has no separate tip market). When fee data cannot be
    read the static fallback is used; a fee bid is always produced.
    """

    def __init__(self, config: RoutingConfig):
        self.config = config

    def fallback(self, reason: str) -> FeeParams:
        degraded = FeeMarketUnavailableError(reason)
        fee = self.config.fallback_max_fee_per_gas
        logger.warning(
            f"{degraded.kind.value}: {degraded.detail}; "
            f"using static fee {fee / GWEI:.0f} gwei (degraded mode)"
        )
        return FeeParams(max_fee_per_gas=fee, max_priority_fee_per_gas=fee, degraded=True)

    async def fee_params(self, client: ChainClient) -> FeeParams:
        try:
            data = await client.get_fee_data()
        except Exception as e:
            return self.fallback(f"fee data read failed: {e}")

        if not data.max_fee_per_gas:
            return self.fallback("network returned no max fee suggestion")

        max_fee = data.max_fee_per_gas * self.config.fee_multiplier
        logger.info(
            f"Suggested max fee {data.max_fee_per_gas / GWEI:.4f} gwei, "
            f"bidding {max_fee / GWEI:.4f} gwei"
        )
        return FeeParams(max_fee_per_gas=max_fee, max_priority_fee_per_gas=max_fee)

    async def gas_limit(self, client: ChainClient, tx: dict) -> int:
        """Fixed gas limit if configured, else a buffered estimate."""
        if self.config.gas_limit:
            return self.config.gas_limit

        try:
            estimate = await client.estimate_gas(tx)
        except Exception as e:
            logger.warning(
                f"Gas estimation failed, using fallback limit {self.config.fallback_gas_limit}: {e}"
            )
            return self.config.fallback_gas_limit

        limit = estimate * self.config.gas_buffer_percent // 100
        logger.debug(f"Gas estimate {estimate}, limit {limit}")
        return limit
