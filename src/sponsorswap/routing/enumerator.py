"""Candidate route enumeration over the known pool registry.

Search is bounded at two hops: the direct pool, then one designated bridge
asset at a time (source -> bridge -> destination).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sponsorswap.config import RoutingConfig
from sponsorswap.models import Asset, Hop, Pool, ReservePair, Route, RouteKind, same_address
from sponsorswap.routing.quote import quote
from sponsorswap.routing.reserves import PoolReserveReader

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Leg:
    """A pool traversal in a fixed direction, before reserves are known."""

    pool: Pool
    token_in: Asset
    token_out: Asset


@dataclass(frozen=True)
class CandidatePath:
    """A topologically possible path, not yet quoted."""

    kind: RouteKind
    legs: tuple[Leg, ...]

    @property
    def label(self) -> str:
        return " -> ".join([self.legs[0].token_in.symbol] + [leg.token_out.symbol for leg in self.legs])


class RouteEnumerator:
    """Builds quoted candidate routes between two assets."""

    def __init__(self, config: RoutingConfig, reader: PoolReserveReader):
        self.config = config
        self.reader = reader

    def candidate_paths(self, source: Asset, destination: Asset) -> list[CandidatePath]:
        """List registry paths from source to destination, direct first."""
        if same_address(source.address, destination.address):
            return []

        paths = []

        direct = self.config.find_pool(source, destination)
        if direct is not None:
            paths.append(CandidatePath(RouteKind.DIRECT, (Leg(direct, source, destination),)))

        for bridge in self.config.bridge_assets:
            if same_address(bridge.address, source.address) or same_address(
                bridge.address, destination.address
            ):
                continue
            first = self.config.find_pool(source, bridge)
            second = self.config.find_pool(bridge, destination)
            if first is None or second is None:
                continue
            paths.append(
                CandidatePath(
                    RouteKind.INDIRECT,
                    (Leg(first, source, bridge), Leg(second, bridge, destination)),
                )
            )

        return paths

    async def enumerate(self, source: Asset, destination: Asset, amount_in: int) -> list[Route]:
        """Quote every candidate path and keep the viable ones.

        Reserve reads for distinct pools are issued concurrently; routes are
        built only after all reads complete. A route is dropped when any hop
        has unavailable or zero reserves, or when it quotes zero output.

        Returns:
            Viable routes in enumeration order (possibly empty)
        """
        if amount_in < 0:
            raise ValueError("amount_in must be non-negative")

        paths = self.candidate_paths(source, destination)
        logger.info(
            f"Enumerating routes {source.symbol} -> {destination.symbol} for {amount_in} units: "
            f"{len(paths)} candidate path(s)"
        )
        if not paths:
            return []

        resolved = await self._resolve_pools(paths)
        reserves = await self._read_reserves(paths, resolved)

        routes = []
        for path in paths:
            route = self._quote_path(path, resolved, reserves, amount_in)
            if route is not None:
                routes.append(route)
        return routes

    async def _resolve_pools(self, paths: list[CandidatePath]) -> dict[Pool, Optional[Pool]]:
        pools = list(dict.fromkeys(leg.pool for path in paths for leg in path.legs))
        resolved = await asyncio.gather(*(self.reader.resolve(pool) for pool in pools))
        return dict(zip(pools, resolved))

    async def _read_reserves(
        self,
        paths: list[CandidatePath],
        resolved: dict[Pool, Optional[Pool]],
    ) -> dict[tuple[str, str, str], ReservePair]:
        # each (pool, direction) is read once even when shared by several paths
        reads = {}
        for path in paths:
            for leg in path.legs:
                pool = resolved.get(leg.pool)
                if pool is None:
                    continue
                key = (pool.address.lower(), leg.token_in.address.lower(), leg.token_out.address.lower())
                reads.setdefault(key, (pool.address, leg.token_in, leg.token_out))

        results = await asyncio.gather(
            *(self.reader.reserves(address, token_in, token_out) for address, token_in, token_out in reads.values())
        )
        return dict(zip(reads.keys(), results))

    def _quote_path(
        self,
        path: CandidatePath,
        resolved: dict[Pool, Optional[Pool]],
        reserves: dict[tuple[str, str, str], ReservePair],
        amount_in: int,
    ) -> Optional[Route]:
        hops = []
        amount = amount_in

        for leg in path.legs:
            pool = resolved.get(leg.pool)
            if pool is None:
                logger.info(f"Route {path.label} skipped: no pool for {leg.pool.label}")
                return None

            key = (pool.address.lower(), leg.token_in.address.lower(), leg.token_out.address.lower())
            pair = reserves[key]
            if not pair.available:
                logger.warning(f"Route {path.label} skipped: reserves of {pool.address} unavailable")
                return None
            if pair.is_empty:
                logger.info(f"Route {path.label} skipped: pool {pool.address} has no liquidity")
                return None

            amount_out = quote(
                amount, pair.reserve_in, pair.reserve_out, pool.fee_numerator, pool.fee_denominator
            )
            hops.append(Hop(pool, leg.token_in, leg.token_out, amount, amount_out))
            amount = amount_out

        if amount == 0:
            logger.info(f"Route {path.label} skipped: quotes zero output")
            return None

        route = Route(kind=path.kind, hops=tuple(hops), amount_in=amount_in, amount_out=amount)
        logger.info(f"Route {route.path_label} ({route.kind.value}): expected output {route.amount_out}")
        return route
