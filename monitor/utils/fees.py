"""
Fee accrual from fee-growth accumulators.

Fee-growth values are Q128 fixed point and live in uint256 space on chain,
so every subtraction here is taken modulo 2^256. Amounts come back in the
token's native integer unit.
"""
from typing import Tuple

from monitor.exceptions import FeeDataError

Q128 = 1 << 128
Q256 = 1 << 256
MAX_UINT128 = Q128 - 1

# A wrapped delta this large means the accumulator stepped backwards.
MAX_FEE_GROWTH_DELTA = 1 << 255


class FeeAccrual:
    """Pure helpers for unclaimed fee accounting."""

    @staticmethod
    def fee_growth_delta(fee_growth_inside_last: int, fee_growth_inside_current: int) -> int:
        """
        Unsigned difference of two accumulator snapshots, modulo 2^256.

        Raises:
            FeeDataError: If the wrapped delta exceeds the sanity bound.
        """
        delta = (fee_growth_inside_current - fee_growth_inside_last) % Q256
        if delta >= MAX_FEE_GROWTH_DELTA:
            raise FeeDataError(
                f"Implausible fee growth delta {delta} "
                f"(last={fee_growth_inside_last}, current={fee_growth_inside_current})"
            )
        return delta

    @staticmethod
    def unclaimed_amount(
        fee_growth_inside_last: int,
        fee_growth_inside_current: int,
        liquidity: int,
    ) -> int:
        """
        Fees accrued since the last checkpoint: delta * liquidity / 2^128.

        Args:
            fee_growth_inside_last: Accumulator stored on the position (X128)
            fee_growth_inside_current: Accumulator for the range now (X128)
            liquidity: Position liquidity

        Returns:
            Unclaimed amount in the token's smallest unit
        """
        if liquidity < 0:
            raise FeeDataError(f"Negative liquidity {liquidity}")
        delta = FeeAccrual.fee_growth_delta(fee_growth_inside_last, fee_growth_inside_current)
        amount = (delta * liquidity) // Q128
        if amount > MAX_UINT128:
            raise FeeDataError(f"Unclaimed amount {amount} exceeds uint128")
        return amount

    @staticmethod
    def unclaimed_amounts(
        fee_growth_inside_last: Tuple[int, int],
        fee_growth_inside_current: Tuple[int, int],
        liquidity: int,
        tokens_owed: Tuple[int, int] = (0, 0),
    ) -> Tuple[int, int]:
        """Per-token unclaimed fees, each token corrected independently."""
        amount0 = FeeAccrual.unclaimed_amount(
            fee_growth_inside_last[0], fee_growth_inside_current[0], liquidity
        )
        amount1 = FeeAccrual.unclaimed_amount(
            fee_growth_inside_last[1], fee_growth_inside_current[1], liquidity
        )
        return amount0 + tokens_owed[0], amount1 + tokens_owed[1]

    @staticmethod
    def fee_growth_inside(
        fee_growth_global: int,
        fee_growth_outside_lower: int,
        fee_growth_outside_upper: int,
        current_tick: int,
        tick_lower: int,
        tick_upper: int,
    ) -> int:
        """
        Fee growth inside [tick_lower, tick_upper) from pool globals and tick
        outside values, as the v3 pool computes it.
        """
        if current_tick >= tick_lower:
            fee_growth_below = fee_growth_outside_lower
        else:
            fee_growth_below = (fee_growth_global - fee_growth_outside_lower) % Q256

        if current_tick < tick_upper:
            fee_growth_above = fee_growth_outside_upper
        else:
            fee_growth_above = (fee_growth_global - fee_growth_outside_upper) % Q256

        return (fee_growth_global - fee_growth_below - fee_growth_above) % Q256
