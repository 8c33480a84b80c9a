"""Typed failures for a swap attempt.

Every failure of an attempt is reported to the caller as an ErrorReport
(kind + detail + enrichment). Raw node and library exceptions are mapped to
the typed errors below by ``classify_error``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    NO_LIQUIDITY = "NoLiquidityError"
    NO_ROUTE = "NoRouteError"
    INSUFFICIENT_BALANCE = "InsufficientBalanceError"
    ALLOWANCE_GRANT_FAILED = "AllowanceGrantFailedError"
    FEE_MARKET_UNAVAILABLE = "FeeMarketUnavailableError"
    SPONSOR_REJECTED = "SponsorRejectedError"
    SLIPPAGE_EXCEEDED = "SlippageExceededError"
    FEE_TOO_LOW = "FeeTooLowError"
    CONFIRMATION_TIMEOUT = "ConfirmationTimeoutError"
    CONTRACT_REVERT = "ContractRevertError"
    SIGNING_FAILED = "SigningFailedError"


@dataclass
class ErrorReport:
    """Structured failure handed back to the caller."""

    kind: ErrorKind
    detail: str
    enrichment: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "detail": self.detail,
            "enrichment": self.enrichment,
        }


class SwapError(Exception):
    """Base class for classified swap failures."""

    kind: ErrorKind = ErrorKind.CONTRACT_REVERT

    def __init__(self, detail: str, enrichment: Optional[dict] = None):
        self.detail = detail
        self.enrichment = dict(enrichment or {})
        super().__init__(detail)

    def enrich(self, **data) -> "SwapError":
        self.enrichment.update(data)
        return self

    def to_report(self) -> ErrorReport:
        return ErrorReport(kind=self.kind, detail=self.detail, enrichment=dict(self.enrichment))


class NoLiquidityError(SwapError):
    """A pool read yields zero reserves, or no candidate route is viable."""

    kind = ErrorKind.NO_LIQUIDITY


class NoRouteError(SwapError):
    """The registry has no path between the requested assets."""

    kind = ErrorKind.NO_ROUTE


class InsufficientBalanceError(SwapError):
    """Source asset balance is below the requested amount."""

    kind = ErrorKind.INSUFFICIENT_BALANCE


class AllowanceGrantFailedError(SwapError):
    """The approval transaction reverted or did not confirm."""

    kind = ErrorKind.ALLOWANCE_GRANT_FAILED


class FeeMarketUnavailableError(SwapError):
    """Fee data could not be read. Recovered locally by the static fallback."""

    kind = ErrorKind.FEE_MARKET_UNAVAILABLE


class SponsorRejectedError(SwapError):
    """The fee sponsor refused to pay for the transaction."""

    kind = ErrorKind.SPONSOR_REJECTED


class SlippageExceededError(SwapError):
    """Realized output would fall below the submitted minimum."""

    kind = ErrorKind.SLIPPAGE_EXCEEDED


class FeeTooLowError(SwapError):
    """Submitted max fee is below the current base fee."""

    kind = ErrorKind.FEE_TOO_LOW


class ConfirmationTimeoutError(SwapError):
    """The receipt did not arrive within the confirmation timeout."""

    kind = ErrorKind.CONFIRMATION_TIMEOUT


class ContractRevertError(SwapError):
    """Any other on-chain revert or unrecognized submission failure."""

    kind = ErrorKind.CONTRACT_REVERT


class SigningFailedError(SwapError):
    """The signer could not sign the transaction; nothing was broadcast."""

    kind = ErrorKind.SIGNING_FAILED


# Substrings of node / paymaster messages, checked in order.
SPONSOR_MARKERS = (
    "paymaster validation",
    "validateandpayforpaymastertransaction",
    "failed to transfer tx fee to the bootloader",
    "insufficient_funds",
    "insufficient funds",
)
FEE_TOO_LOW_MARKERS = (
    "max fee per gas less than block base fee",
    "fee cap less than block base fee",
)
SLIPPAGE_MARKERS = (
    "toolittlereceived",
    "insufficient_output_amount",
    "slippage",
)


def error_message(exc: BaseException) -> str:
    """Flatten an exception, including nested node errors, into one message."""
    parts = [str(exc)]
    code = getattr(exc, "code", None)
    if isinstance(code, str):
        parts.append(code)
    for arg in getattr(exc, "args", ()):
        if isinstance(arg, dict):
            message = arg.get("message")
            if message:
                parts.append(str(message))
            data = arg.get("data")
            if isinstance(data, str):
                parts.append(data)
    nested = getattr(exc, "error", None)
    if isinstance(nested, dict) and nested.get("message"):
        parts.append(str(nested["message"]))
    return " | ".join(p for p in parts if p)


def classify_error(exc: BaseException) -> SwapError:
    """Map a raw exception to a typed SwapError.

    Already-classified errors are returned unchanged.
    """
    if isinstance(exc, SwapError):
        return exc

    message = error_message(exc)
    lowered = message.lower()

    if any(marker in lowered for marker in SPONSOR_MARKERS):
        return SponsorRejectedError(f"Fee sponsor rejected the transaction: {message}")

    if any(marker in lowered for marker in FEE_TOO_LOW_MARKERS):
        return FeeTooLowError(f"Max fee below current base fee: {message}")

    if any(marker in lowered for marker in SLIPPAGE_MARKERS):
        return SlippageExceededError(f"Output below minimum: {message}")

    if isinstance(exc, TimeoutError):
        return ConfirmationTimeoutError(str(exc) or "Timed out waiting for receipt")

    logger.debug(f"Unclassified failure treated as revert: {type(exc).__name__}: {message}")
    return ContractRevertError(
        f"Transaction failed: {message}",
        enrichment={"revert_reason": message},
    )
