"""Sponsored AMM swaps on zkSync-family chains.

Discovers direct and bridged routes across constant-product pools, picks the
one with the highest expected output, and executes it as a paymaster-sponsored
transaction.
"""

__version__ = "0.1.0"
