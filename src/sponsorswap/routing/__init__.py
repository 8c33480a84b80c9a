"""Route discovery over constant-product pools.

- quote: single-hop and chained output math
- PoolReserveReader: live, direction-oriented reserve reads
- RouteEnumerator: direct and one-bridge candidate routes
- RouteSelector: ranking by expected output
"""

from sponsorswap.routing.enumerator import CandidatePath, RouteEnumerator
from sponsorswap.routing.quote import quote, quote_path
from sponsorswap.routing.reserves import PoolReserveReader
from sponsorswap.routing.selector import RouteComparison, RouteSelector

__all__ = [
    "CandidatePath",
    "PoolReserveReader",
    "RouteComparison",
    "RouteEnumerator",
    "RouteSelector",
    "quote",
    "quote_path",
]
