"""ABI calldata for the router and ERC-20 surfaces.

Also classifies calldata into a closed set of operation kinds by 4-byte
selector, for human-readable transaction summaries.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from sponsorswap.models import SwapPath

MAX_UINT256 = 2**256 - 1

SWAP_PATH_TYPE = "((address,bytes,address,bytes)[],address,uint256)[]"
SWAP_SIGNATURE = f"swap({SWAP_PATH_TYPE},uint256,uint256)"
APPROVE_SIGNATURE = "approve(address,uint256)"
TRANSFER_SIGNATURE = "transfer(address,uint256)"

SWAP_SELECTOR = function_signature_to_4byte_selector(SWAP_SIGNATURE)
APPROVE_SELECTOR = function_signature_to_4byte_selector(APPROVE_SIGNATURE)  # 0x095ea7b3
TRANSFER_SELECTOR = function_signature_to_4byte_selector(TRANSFER_SIGNATURE)  # 0xa9059cbb
# swap(tuple,address,uint256,uint256,uint256) on older router deployments
LEGACY_SWAP_SELECTOR = bytes.fromhex("2cc4081e")


def checksum(address: str) -> str:
    return to_checksum_address(address)


def encode_swap(paths: list[SwapPath], amount_out_min: int, deadline: int) -> bytes:
    """Encode router ``swap(SwapPath[] paths, uint256 amountOutMin, uint256 deadline)``."""
    abi_paths = []
    for path in paths:
        steps = [
            (checksum(step.pool), step.data, checksum(step.callback), step.callback_data)
            for step in path.steps
        ]
        abi_paths.append((steps, checksum(path.token_in), path.amount_in))
    return SWAP_SELECTOR + encode([SWAP_PATH_TYPE, "uint256", "uint256"], [abi_paths, amount_out_min, deadline])


def decode_swap(data: bytes) -> tuple[list, int, int]:
    """Decode swap calldata into (paths, amount_out_min, deadline)."""
    if data[:4] != SWAP_SELECTOR:
        raise ValueError("Calldata is not a router swap call")
    paths, amount_out_min, deadline = decode([SWAP_PATH_TYPE, "uint256", "uint256"], data[4:])
    return list(paths), amount_out_min, deadline


def encode_approve(spender: str, amount: int = MAX_UINT256) -> bytes:
    """Encode ERC-20 ``approve(address spender, uint256 amount)``."""
    return APPROVE_SELECTOR + encode(["address", "uint256"], [checksum(spender), amount])


def encode_transfer(to: str, amount: int) -> bytes:
    """Encode ERC-20 ``transfer(address to, uint256 amount)``."""
    return TRANSFER_SELECTOR + encode(["address", "uint256"], [checksum(to), amount])


class OperationKind(str, Enum):
    """Closed set of transaction operation kinds."""

    APPROVE = "approve"
    SWAP = "swap"
    TRANSFER = "transfer"
    NATIVE_TRANSFER = "native_transfer"
    UNKNOWN = "unknown"


OPERATION_BY_SELECTOR: dict[bytes, OperationKind] = {
    SWAP_SELECTOR: OperationKind.SWAP,
    LEGACY_SWAP_SELECTOR: OperationKind.SWAP,
    APPROVE_SELECTOR: OperationKind.APPROVE,
    TRANSFER_SELECTOR: OperationKind.TRANSFER,
}


def classify_operation(data: Optional[bytes], value: int = 0) -> OperationKind:
    """Determine the operation kind of a transaction."""
    if data and len(data) >= 4:
        return OPERATION_BY_SELECTOR.get(bytes(data[:4]), OperationKind.UNKNOWN)
    if value > 0:
        return OperationKind.NATIVE_TRANSFER
    return OperationKind.UNKNOWN


@dataclass(frozen=True)
class TransactionDescription:
    """Human-readable summary of a transaction."""

    kind: OperationKind
    from_address: str
    to: str
    value: str
    gas_payment: str
    network: str

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "from": self.from_address,
            "to": self.to,
            "value": self.value,
            "gas_payment": self.gas_payment,
            "network": self.network,
        }
