"""Application configuration using pydantic-settings.

``Settings`` is read from the environment / .env. The routing core never
reads it directly: it receives an immutable ``RoutingConfig`` built from the
settings, so several configurations (e.g. per network) can coexist.
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from sponsorswap.models import Asset, Pool, same_address

GWEI = 10**9
ETHER = 10**18


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")

    # ======================
    # Network
    # ======================
    network_name: str = Field(default="Sophon", description="Human-readable network name")
    rpc_url: str = Field(default="https://rpc.sophon.xyz", description="zkSync-family RPC URL")
    explorer_tx_url: str = Field(
        default="https://sophscan.xyz/tx/", description="Explorer prefix for transaction links"
    )

    # ======================
    # Signer credentials
    # ======================
    private_key: Optional[str] = Field(default=None, description="Hex private key of the acting account")
    wallet_seed_phrase: Optional[str] = Field(
        default=None, description="BIP-39 seed phrase (used when no private key is set)"
    )
    wallet_index: int = Field(default=0, description="BIP-44 address index for the seed phrase")

    # ======================
    # Contracts
    # ======================
    router_address: str = Field(
        default="0x455FFfa180D50D8a1AdaaA46Eb2bfb4C1bb28602", description="SyncSwap router"
    )
    pool_factory_address: str = Field(
        default="0xfe146Ec9863C9A7AF38c75216DE19CFA82E560B6", description="Classic pool factory"
    )
    paymaster_address: str = Field(
        default="0x98546B226dbbA8230cf620635a1e4ab01F6A99B2", description="General paymaster"
    )

    # ======================
    # Tokens
    # ======================
    usdc_address: str = Field(default="0x9Aa0F72392B5784Ad86c6f3E899bCc053D00Db4F")
    usdt_address: str = Field(default="0x6386dA73545ae4E2B2E0393688fA8B65Bb9a7169")
    weth_address: str = Field(
        default="0x72af9f169b619d85a47dfa8fefbcd39de55c567d",
        description="Wrapped-native ETH token; swaps into it unwrap to native",
    )

    # ======================
    # Pools (empty = look up through the factory)
    # ======================
    usdc_eth_pool_address: str = Field(default="0x353B35a3362Dff8174cd9679BC4a46365CcD4dA7")
    usdc_usdt_pool_address: str = Field(default="0x61a87fa6Dd89a23c78F0754EF3372d35ccde5935")
    usdt_eth_pool_address: str = Field(default="0xc6B9d3814b5A32e41Eb778C0E5b742a8d9E5E94b")

    # ======================
    # Gas & fees
    # ======================
    gas_limit: Optional[int] = Field(
        default=None, description="Fixed gas limit (estimated with a buffer when unset)"
    )
    fallback_gas_limit: int = Field(default=10_000_000, description="Gas limit when estimation fails")
    gas_buffer_percent: int = Field(default=130, description="Estimated gas multiplier in percent")
    fee_multiplier: int = Field(default=2, description="Safety factor on the suggested max fee")
    fallback_max_fee_gwei: int = Field(default=2100, description="Static max fee when fee data is unavailable")
    min_sponsor_balance_wei: int = Field(
        default=ETHER // 100, description="Sponsor balance below this is reported as low"
    )

    # ======================
    # Execution
    # ======================
    slippage_floor_percent: int = Field(
        default=80, ge=1, le=100, description="Minimum accepted output as percent of the quote"
    )
    deadline_seconds: int = Field(default=1200, description="Swap deadline from submission time")
    confirmation_timeout: int = Field(default=120, description="Seconds to wait for a receipt")
    poll_interval: float = Field(default=2.0, description="Seconds between receipt polls")

    @property
    def has_wallet(self) -> bool:
        """Check if signer credentials are configured."""
        if self.private_key:
            return True
        return bool(self.wallet_seed_phrase and len(self.wallet_seed_phrase.split()) >= 12)

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "network": self.network_name,
            "rpc_url": self.rpc_url,
            "private_key": "***" if self.private_key else "(not set)",
            "wallet_seed_phrase": "***" if self.wallet_seed_phrase else "(not set)",
            "contracts": {
                "router": self.router_address,
                "pool_factory": self.pool_factory_address,
                "paymaster": self.paymaster_address,
            },
            "gas": {
                "gas_limit": self.gas_limit or "(estimated)",
                "fallback_gas_limit": self.fallback_gas_limit,
                "fallback_max_fee_gwei": self.fallback_max_fee_gwei,
            },
            "execution": {
                "slippage_floor_percent": self.slippage_floor_percent,
                "deadline_seconds": self.deadline_seconds,
                "confirmation_timeout": self.confirmation_timeout,
            },
        }


@dataclass(frozen=True)
class RoutingConfig:
    """Immutable registry and execution constants for one network."""

    assets: tuple[Asset, ...]
    pools: tuple[Pool, ...]
    bridge_assets: tuple[Asset, ...]
    wrapped_native: Asset
    router_address: str
    pool_factory_address: Optional[str]
    sponsor_address: str
    chain_name: str = "Sophon"
    explorer_tx_url: str = ""
    slippage_floor_percent: int = 80
    deadline_seconds: int = 1200
    fee_multiplier: int = 2
    fallback_max_fee_per_gas: int = 2100 * GWEI
    gas_limit: Optional[int] = None
    fallback_gas_limit: int = 10_000_000
    gas_buffer_percent: int = 130
    confirmation_timeout: float = 120
    poll_interval: float = 2.0
    min_sponsor_balance: int = ETHER // 100

    def asset(self, key: str) -> Asset:
        """Look up a registered asset by symbol or address."""
        for asset in self.assets:
            if asset.symbol.upper() == key.upper() or same_address(asset.address, key):
                return asset
        raise KeyError(f"Unknown asset: {key}")

    def find_pool(self, a: Asset, b: Asset) -> Optional[Pool]:
        """Return the registered pool connecting two assets, if any."""
        for pool in self.pools:
            if pool.connects(a, b):
                return pool
        return None

    def is_wrapped_native(self, asset: Asset) -> bool:
        return same_address(asset.address, self.wrapped_native.address)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "RoutingConfig":
        """Build the default USDC / USDT / ETH registry from settings."""
        settings = settings or get_settings()

        usdc = Asset(settings.usdc_address, "USDC", 6)
        usdt = Asset(settings.usdt_address, "USDT", 6)
        eth = Asset(settings.weth_address, "ETH", 18)

        pools = (
            Pool(settings.usdc_eth_pool_address or None, usdc, eth),
            Pool(settings.usdc_usdt_pool_address or None, usdc, usdt),
            Pool(settings.usdt_eth_pool_address or None, usdt, eth),
        )

        return cls(
            assets=(usdc, usdt, eth),
            pools=pools,
            bridge_assets=(usdt,),
            wrapped_native=eth,
            router_address=settings.router_address,
            pool_factory_address=settings.pool_factory_address or None,
            sponsor_address=settings.paymaster_address,
            chain_name=settings.network_name,
            explorer_tx_url=settings.explorer_tx_url,
            slippage_floor_percent=settings.slippage_floor_percent,
            deadline_seconds=settings.deadline_seconds,
            fee_multiplier=settings.fee_multiplier,
            fallback_max_fee_per_gas=settings.fallback_max_fee_gwei * GWEI,
            gas_limit=settings.gas_limit,
            fallback_gas_limit=settings.fallback_gas_limit,
            gas_buffer_percent=settings.gas_buffer_percent,
            confirmation_timeout=settings.confirmation_timeout,
            poll_interval=settings.poll_interval,
            min_sponsor_balance=settings.min_sponsor_balance_wei,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
