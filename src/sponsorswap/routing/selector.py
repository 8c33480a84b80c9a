"""Route ranking and selection."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from sponsorswap.errors import NoRouteError
from sponsorswap.models import Route

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteComparison:
    """One line of the route comparison report."""

    rank: int
    path: str
    kind: str
    amount_out: int
    percent_of_best: Decimal


class RouteSelector:
    """Ranks routes by expected output using exact integer comparison."""

    def rank(self, routes: list[Route]) -> list[Route]:
        """Sort routes best first. Equal outputs keep enumeration order."""
        return sorted(routes, key=lambda route: route.amount_out, reverse=True)

    def select(self, routes: list[Route]) -> Route:
        """Return the best route.

        Raises:
            NoRouteError: If there are no routes
        """
        if not routes:
            raise NoRouteError("No route available for the requested assets")

        ranked = self.rank(routes)
        best = ranked[0]
        logger.info(f"Best route: {best.path_label} with expected output {best.amount_out}")

        if len(ranked) > 1:
            for line in self.comparison(ranked):
                logger.info(
                    f"{line.rank}. {line.path}: {line.amount_out} ({line.percent_of_best}% of best)"
                )
        return best

    def comparison(self, routes: list[Route]) -> list[RouteComparison]:
        """Build the comparison report for ranked routes."""
        ranked = self.rank(routes)
        if not ranked:
            return []

        best_out = ranked[0].amount_out
        report = []
        for index, route in enumerate(ranked, start=1):
            if best_out == 0:
                percent = Decimal("0.00")
            else:
                percent = (Decimal(route.amount_out) * 100 / Decimal(best_out)).quantize(Decimal("0.01"))
            report.append(
                RouteComparison(
                    rank=index,
                    path=route.path_label,
                    kind=route.kind.value,
                    amount_out=route.amount_out,
                    percent_of_best=percent,
                )
            )
        return report
