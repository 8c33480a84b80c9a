"""Domain models for route discovery and sponsored swap execution.

All entities are created fresh for a single swap attempt and never shared
between attempts. Amounts are integers in the asset's smallest unit.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from sponsorswap.errors import ErrorReport

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    """Case-insensitive address comparison."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


@dataclass(frozen=True)
class Asset:
    """An on-chain fungible token and its decimal precision."""

    address: str
    symbol: str
    decimals: int = 18

    def to_units(self, amount: Decimal) -> int:
        """Convert a human-readable amount to integer units."""
        return int(Decimal(amount) * Decimal(10 ** self.decimals))

    def from_units(self, units: int) -> Decimal:
        """Convert integer units to a human-readable amount."""
        return Decimal(units) / Decimal(10 ** self.decimals)

    def with_decimals(self, decimals: int) -> "Asset":
        return Asset(address=self.address, symbol=self.symbol, decimals=decimals)

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True)
class Pool:
    """A constant-product pool holding an unordered pair of assets.

    ``address`` is None when the pool is not registered by address and must
    be looked up through the pool factory.
    """

    address: Optional[str]
    token_a: Asset
    token_b: Asset
    fee_numerator: int = 997
    fee_denominator: int = 1000

    def holds(self, asset: Asset) -> bool:
        return same_address(asset.address, self.token_a.address) or same_address(
            asset.address, self.token_b.address
        )

    def connects(self, a: Asset, b: Asset) -> bool:
        return self.holds(a) and self.holds(b) and not same_address(a.address, b.address)

    def with_address(self, address: str) -> "Pool":
        return Pool(
            address=address,
            token_a=self.token_a,
            token_b=self.token_b,
            fee_numerator=self.fee_numerator,
            fee_denominator=self.fee_denominator,
        )

    @property
    def label(self) -> str:
        return f"{self.token_a.symbol}/{self.token_b.symbol}"


@dataclass(frozen=True)
class ReservePair:
    """Reserves of one pool ordered as (token_in, token_out) for a quote.

    ``available`` is False when the reserves could not be read at all, which
    keeps a failed read distinguishable from a genuinely empty pool.
    """

    reserve_in: int
    reserve_out: int
    available: bool = True

    @property
    def is_empty(self) -> bool:
        return self.reserve_in == 0 or self.reserve_out == 0


@dataclass(frozen=True)
class Hop:
    """One traversal of a pool."""

    pool: Pool
    token_in: Asset
    token_out: Asset
    amount_in: int
    amount_out: int


class RouteKind(str, Enum):
    """Whether a route goes straight through one pool or via a bridge asset."""

    DIRECT = "direct"
    INDIRECT = "indirect"


@dataclass(frozen=True)
class Route:
    """An ordered sequence of 1 or 2 hops from source to destination."""

    kind: RouteKind
    hops: tuple[Hop, ...]
    amount_in: int
    amount_out: int

    def __post_init__(self):
        if not 1 <= len(self.hops) <= 2:
            raise ValueError(f"Route must have 1 or 2 hops, got {len(self.hops)}")
        for current, following in zip(self.hops, self.hops[1:]):
            if not same_address(current.token_out.address, following.token_in.address):
                raise ValueError(
                    f"Broken route: hop output {current.token_out.symbol} "
                    f"does not feed hop input {following.token_in.symbol}"
                )
        if self.kind == RouteKind.DIRECT and len(self.hops) != 1:
            raise ValueError("Direct route must have exactly one hop")

    @property
    def source(self) -> Asset:
        return self.hops[0].token_in

    @property
    def destination(self) -> Asset:
        return self.hops[-1].token_out

    @property
    def path_label(self) -> str:
        symbols = [self.hops[0].token_in.symbol] + [hop.token_out.symbol for hop in self.hops]
        return " -> ".join(symbols)


@dataclass(frozen=True)
class SwapStep:
    """Router-facing encoding of one hop."""

    pool: str
    data: bytes
    callback: str = ZERO_ADDRESS
    callback_data: bytes = b""

    def as_abi_tuple(self) -> tuple:
        return (self.pool, self.data, self.callback, self.callback_data)


@dataclass(frozen=True)
class SwapPath:
    """The unit submitted to the router: steps plus the path input."""

    steps: tuple[SwapStep, ...]
    token_in: str
    amount_in: int

    def as_abi_tuple(self) -> tuple:
        return ([step.as_abi_tuple() for step in self.steps], self.token_in, self.amount_in)


@dataclass(frozen=True)
class FeeParams:
    """EIP-1559 fee bid. ``degraded`` marks the static fallback."""

    max_fee_per_gas: int
    max_priority_fee_per_gas: int
    degraded: bool = False


@dataclass(frozen=True)
class SponsorParams:
    """Fee sponsor (paymaster) reference carried in the transaction."""

    paymaster: str
    paymaster_input: bytes


@dataclass
class SponsoredTransactionRequest:
    """A pending transaction whose fees are paid by a sponsor."""

    from_address: str
    to: str
    data: bytes
    value: int
    nonce: int
    chain_id: int
    fee: FeeParams
    gas_limit: int
    sponsor: SponsorParams
    gas_per_pubdata: int
    eip712_domain: dict = field(default_factory=dict)

    def to_debug_dict(self) -> dict:
        """Decoded transaction body for logs and failure diagnosis."""
        data_hex = "0x" + self.data.hex()
        return {
            "from": self.from_address,
            "to": self.to,
            "value": str(self.value),
            "nonce": self.nonce,
            "chain_id": self.chain_id,
            "gas_limit": str(self.gas_limit),
            "max_fee_per_gas": str(self.fee.max_fee_per_gas),
            "max_priority_fee_per_gas": str(self.fee.max_priority_fee_per_gas),
            "data": data_hex[:66] + ("..." if len(data_hex) > 66 else ""),
            "custom_data": {
                "gas_per_pubdata": self.gas_per_pubdata,
                "paymaster": self.sponsor.paymaster,
                "paymaster_input": "0x" + self.sponsor.paymaster_input.hex(),
                "factory_deps": [],
            },
        }


@dataclass(frozen=True)
class Receipt:
    """Minimal transaction receipt."""

    tx_hash: str
    status: int
    block_number: int

    @property
    def succeeded(self) -> bool:
        return self.status == 1


class ExecutionState(str, Enum):
    """States of a single swap attempt."""

    IDLE = "idle"
    ALLOWANCE_CHECKED = "allowance_checked"
    ALLOWANCE_GRANTED = "allowance_granted"
    ROUTE_PLANNED = "route_planned"
    FEE_ESTIMATED = "fee_estimated"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class ExecutionOutcome:
    """Result of one swap attempt, successful or not."""

    success: bool = False
    state: ExecutionState = ExecutionState.IDLE
    transitions: list[ExecutionState] = field(default_factory=lambda: [ExecutionState.IDLE])
    tx_hash: Optional[str] = None
    approval_tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    route: Optional[Route] = None
    swap_path: Optional[SwapPath] = None
    min_amount_out: Optional[int] = None
    deadline: Optional[int] = None
    fee: Optional[FeeParams] = None
    source_balance_before: Optional[int] = None
    source_balance_after: Optional[int] = None
    destination_balance_before: Optional[int] = None
    destination_balance_after: Optional[int] = None
    amount_received: Optional[int] = None
    error: Optional["ErrorReport"] = None

    def advance(self, state: ExecutionState) -> None:
        self.state = state
        self.transitions.append(state)

    def to_dict(self) -> dict:
        """Convert to dictionary for reporting."""
        return {
            "success": self.success,
            "state": self.state.value,
            "transitions": [s.value for s in self.transitions],
            "tx_hash": self.tx_hash,
            "approval_tx_hash": self.approval_tx_hash,
            "block_number": self.block_number,
            "route": self.route.path_label if self.route else None,
            "expected_amount_out": str(self.route.amount_out) if self.route else None,
            "min_amount_out": None if self.min_amount_out is None else str(self.min_amount_out),
            "deadline": self.deadline,
            "source_balance_before": _str_or_none(self.source_balance_before),
            "source_balance_after": _str_or_none(self.source_balance_after),
            "destination_balance_before": _str_or_none(self.destination_balance_before),
            "destination_balance_after": _str_or_none(self.destination_balance_after),
            "amount_received": _str_or_none(self.amount_received),
            "error": self.error.to_dict() if self.error else None,
        }


def _str_or_none(value: Optional[int]) -> Optional[str]:
    return None if value is None else str(value)
