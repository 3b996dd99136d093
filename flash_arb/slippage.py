"""
Price-impact model for constant-product pools.

Swap simulation and slippage from the x*y=k invariant with the fee taken on
the input side. Everything here is pure and deterministic; invalid inputs
raise ImpactModelError / NoLiquidityError and the caller decides the fallback.
"""

from decimal import Decimal, getcontext

from .exceptions import ImpactModelError, NoLiquidityError

# Set high precision for all decimal operations
getcontext().prec = 50

ZERO = Decimal("0")
ONE = Decimal("1")


def _check_fee(fee: Decimal) -> None:
    if fee < 0 or fee >= 1:
        raise ImpactModelError(f"Fee must be in [0, 1): {fee}")


def swap_out(
    amount_in: Decimal, reserve_in: Decimal, reserve_out: Decimal, fee: Decimal
) -> Decimal:
    """
    Calculate output amount for a swap using the constant-product formula.

    Formula (with fee embedded):
        amountInWithFee = amountIn * (1 - fee)
        amountOut = (amountInWithFee * reserveOut) / (reserveIn + amountInWithFee)

    Args:
        amount_in: Input token amount
        reserve_in: Reserve of input token
        reserve_out: Reserve of output token
        fee: Fee as decimal (e.g., 0.0025 for 25 bps)

    Returns:
        Output token amount, always strictly below reserve_out

    Raises:
        NoLiquidityError: If either reserve is not positive
        ImpactModelError: If amount_in is negative or fee is outside [0, 1)
    """
    if reserve_in <= 0 or reserve_out <= 0:
        raise NoLiquidityError(
            f"Reserves must be positive: in={reserve_in}, out={reserve_out}"
        )
    if amount_in < 0:
        raise ImpactModelError(f"amount_in must not be negative: {amount_in}")
    _check_fee(fee)

    if amount_in == 0:
        return ZERO

    amount_in_with_fee = amount_in * (ONE - fee)

    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in + amount_in_with_fee

    return numerator / denominator


def slippage_fraction(amount_in: Decimal, reserve_in: Decimal) -> Decimal:
    """
    Fractional price move caused by pushing amount_in into the pool.

    slippage = amount_in / (reserve_in + amount_in)

    Raises:
        NoLiquidityError: If reserve_in is not positive
        ImpactModelError: If amount_in is negative
    """
    if reserve_in <= 0:
        raise NoLiquidityError(f"reserve_in must be positive: {reserve_in}")
    if amount_in < 0:
        raise ImpactModelError(f"amount_in must not be negative: {amount_in}")
    if amount_in == 0:
        return ZERO
    return amount_in / (reserve_in + amount_in)


def max_amount_for_slippage(reserve_in: Decimal, max_slippage: Decimal) -> Decimal:
    """
    Largest trade whose slippage_fraction stays at or below max_slippage.

    Inverse of slippage_fraction: a / (R + a) <= s  <=>  a <= R * s / (1 - s)

    Args:
        reserve_in: Input token reserve
        max_slippage: Slippage tolerance as a fraction in [0, 1)

    Returns:
        Maximum trade size in input token units

    Example:
        >>> # 0.5% slippage budget on an 800k reserve
        >>> amount = max_amount_for_slippage(Decimal("800000"), Decimal("0.005"))
        >>> assert Decimal("4020") < amount < Decimal("4021")
    """
    if reserve_in <= 0:
        raise NoLiquidityError(f"reserve_in must be positive: {reserve_in}")
    if max_slippage < 0 or max_slippage >= 1:
        raise ImpactModelError(f"max_slippage must be in [0, 1): {max_slippage}")
    return reserve_in * max_slippage / (ONE - max_slippage)
