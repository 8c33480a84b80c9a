"""Chain access, fee market and sponsored transaction composition."""

from sponsorswap.chain.client import ChainClient, FeeData, Web3ChainClient
from sponsorswap.chain.fees import FeeMarketAdapter
from sponsorswap.chain.sponsor import SponsoredTransactionComposer, general_paymaster_input

__all__ = [
    "ChainClient",
    "FeeData",
    "FeeMarketAdapter",
    "SponsoredTransactionComposer",
    "Web3ChainClient",
    "general_paymaster_input",
]
