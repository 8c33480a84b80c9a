"""Converts a selected route into the router's SwapPath structure."""

import logging
from enum import IntEnum

from eth_abi import decode, encode

from sponsorswap.config import RoutingConfig
from sponsorswap.models import Asset, Route, SwapPath, SwapStep, ZERO_ADDRESS
from sponsorswap.swap.calldata import checksum

logger = logging.getLogger(__name__)

STEP_DATA_TYPES = ["address", "address", "uint8"]


class WithdrawMode(IntEnum):
    """What the pool does with a step's output."""

    INTERNAL = 0  # keep inside the vault / deliver as a token
    UNWRAP = 1  # unwrap to the chain's native coin
    WRAPPED = 2  # withdraw as the wrapped-native token


def encode_step_data(token_in: str, recipient: str, withdraw_mode: int) -> bytes:
    """Per-step payload: abi.encode(tokenIn, recipient, withdrawMode)."""
    return encode(STEP_DATA_TYPES, [checksum(token_in), checksum(recipient), int(withdraw_mode)])


def decode_step_data(data: bytes) -> tuple[str, str, int]:
    """Inverse of ``encode_step_data``."""
    token_in, recipient, withdraw_mode = decode(STEP_DATA_TYPES, data)
    return token_in, recipient, withdraw_mode


class SwapPlanBuilder:
    """Builds router swap paths.

    A multi-hop path forwards proceeds between steps inside the router: every
    step except the last names the zero address as recipient with
    withdraw mode 0, and only the last step pays the real recipient.
    """

    def __init__(self, config: RoutingConfig):
        self.config = config

    def withdraw_mode(self, destination: Asset) -> WithdrawMode:
        if self.config.is_wrapped_native(destination):
            return WithdrawMode.UNWRAP
        return WithdrawMode.INTERNAL

    def build(self, route: Route, recipient: str) -> SwapPath:
        """Encode a route for the router.

        Args:
            route: Selected route (1 or 2 hops)
            recipient: Address receiving the final output

        Returns:
            SwapPath whose amount_in is the first hop's input
        """
        final_mode = self.withdraw_mode(route.destination)
        last = len(route.hops) - 1

        steps = []
        for index, hop in enumerate(route.hops):
            if index == last:
                data = encode_step_data(hop.token_in.address, recipient, final_mode)
            else:
                data = encode_step_data(hop.token_in.address, ZERO_ADDRESS, WithdrawMode.INTERNAL)
            steps.append(SwapStep(pool=hop.pool.address, data=data))

        path = SwapPath(
            steps=tuple(steps),
            token_in=route.hops[0].token_in.address,
            amount_in=route.hops[0].amount_in,
        )
        logger.debug(
            f"Swap plan {route.path_label}: {len(steps)} step(s), "
            f"withdraw mode {final_mode.value} ({final_mode.name.lower()})"
        )
        return path
