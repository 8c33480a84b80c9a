"""Constant-product quote math.

Integer arithmetic only; floor division matches the pool contract.
"""

from typing import Iterable


def quote(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_numerator: int = 997,
    fee_denominator: int = 1000,
) -> int:
    """Calculate output amount for one hop.

    Formula: out = (in * fee * res_out) / (res_in * denom + in * fee)

    Args:
        amount_in: Input token amount
        reserve_in: Reserve of input token in pool
        reserve_out: Reserve of output token in pool
        fee_numerator: Fraction of input kept after the pool fee (997 = 0.3% fee)
        fee_denominator: Denominator of the fee fraction

    Returns:
        Output token amount, 0 for an empty pool or zero input
    """
    if amount_in < 0 or reserve_in < 0 or reserve_out < 0:
        raise ValueError("quote inputs must be non-negative")
    if amount_in == 0 or reserve_in == 0 or reserve_out == 0:
        return 0

    amount_in_with_fee = amount_in * fee_numerator
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * fee_denominator + amount_in_with_fee
    return numerator // denominator


def quote_path(
    amount_in: int,
    reserves: Iterable[tuple[int, int]],
    fee_numerator: int = 997,
    fee_denominator: int = 1000,
) -> int:
    """Chain ``quote`` across hops; each hop's output feeds the next."""
    amount = amount_in
    for reserve_in, reserve_out in reserves:
        amount = quote(amount, reserve_in, reserve_out, fee_numerator, fee_denominator)
    return amount
