"""
Tick, price and liquidity math for concentrated-liquidity positions.

Two layers live here:
- PriceMath: float conversions between ticks and display prices.
- UniswapV3Math: int-only Q96 helpers that mirror the on-chain libraries.
"""
import math
from typing import Tuple

LOG_TICK_BASE = math.log(1.0001)


class PriceMath:
    """
    Tick <-> price conversions.

    Prices are always token0 denominated in token1. The tick read from the
    pool is the source of truth; prices are derived display values.
    """

    TICK_BASE = 1.0001

    @staticmethod
    def tick_to_raw_price(tick: int) -> float:
        """Raw (unadjusted) price at a tick: 1.0001^tick."""
        return math.exp(tick * LOG_TICK_BASE)

    @staticmethod
    def decimal_adjusted_price(raw_price: float, decimals0: int, decimals1: int) -> float:
        """Scale a raw price into a human price: raw * 10^(decimals0 - decimals1)."""
        return raw_price * (10 ** (decimals0 - decimals1))

    @staticmethod
    def tick_to_price(tick: int, decimals0: int, decimals1: int) -> float:
        return PriceMath.decimal_adjusted_price(
            PriceMath.tick_to_raw_price(tick), decimals0, decimals1
        )

    @staticmethod
    def price_to_tick(price: float) -> int:
        """
        Inverse of tick_to_raw_price, rounded down.

        Diagnostic helper only; valuation never derives the tick from price.
        """
        if price <= 0:
            raise ValueError(f"Price must be positive, got {price}")
        return math.floor(math.log(price) / LOG_TICK_BASE)

    @staticmethod
    def sqrt_price_x96_to_price(sqrt_price_x96: int, decimals0: int = 18, decimals1: int = 18) -> float:
        """
        Convert sqrtPriceX96 to human-readable price (token1/token0).

        Args:
            sqrt_price_x96: The sqrtPriceX96 value from slot0
            decimals0: Decimals of token0 (default 18)
            decimals1: Decimals of token1 (default 18)

        Returns:
            Price as float (token1 per token0)
        """
        price = (sqrt_price_x96 / UniswapV3Math.Q96) ** 2
        return PriceMath.decimal_adjusted_price(price, decimals0, decimals1)

    @staticmethod
    def is_in_range(current_tick: int, tick_lower: int, tick_upper: int) -> bool:
        """Range membership by tick comparison, inclusive on both ends."""
        return tick_lower <= current_tick <= tick_upper


class UniswapV3Math:
    """
    Int-only Uniswap V3 math helpers (Q96 fixed point).
    """

    Q96 = 1 << 96
    MIN_TICK = -887272
    MAX_TICK = 887272

    MIN_SQRT_RATIO = 4295128739
    MAX_SQRT_RATIO = 1461446703485210103287273052203988822378723970342

    @staticmethod
    def get_sqrt_ratio_at_tick(tick: int) -> int:
        if tick < UniswapV3Math.MIN_TICK or tick > UniswapV3Math.MAX_TICK:
            raise ValueError(f"Tick {tick} outside [{UniswapV3Math.MIN_TICK}, {UniswapV3Math.MAX_TICK}]")

        abs_tick = -tick if tick < 0 else tick

        ratio = (
            0xFFFCB933BD6FAD37AA2D162D1A594001
            if abs_tick & 0x1 != 0
            else 0x100000000000000000000000000000000
        )

        for bit, multiplier in _TICK_MULTIPLIERS:
            if abs_tick & bit:
                ratio = (ratio * multiplier) >> 128

        if tick > 0:
            ratio = ((1 << 256) - 1) // ratio

        # round up to match Solidity
        return (ratio >> 32) + (1 if ratio & ((1 << 32) - 1) != 0 else 0)

    @staticmethod
    def get_amounts_for_liquidity(
        sqrtP: int,
        sqrtPA: int,
        sqrtPB: int,
        L: int,
    ) -> Tuple[int, int]:
        """
        Amounts from liquidity (Uniswap V3 exact logic).
        Returns (amount0, amount1)
        """

        if sqrtPA > sqrtPB:
            sqrtPA, sqrtPB = sqrtPB, sqrtPA

        if L <= 0:
            return 0, 0

        if sqrtP <= sqrtPA:
            amount0 = (L * (sqrtPB - sqrtPA) * UniswapV3Math.Q96) // (sqrtPA * sqrtPB)
            return amount0, 0

        elif sqrtP < sqrtPB:
            amount0 = (L * (sqrtPB - sqrtP) * UniswapV3Math.Q96) // (sqrtP * sqrtPB)
            amount1 = (L * (sqrtP - sqrtPA)) // UniswapV3Math.Q96
            return amount0, amount1

        else:
            amount1 = (L * (sqrtPB - sqrtPA)) // UniswapV3Math.Q96
            return 0, amount1

    @staticmethod
    def position_amounts(
        tick_lower: int,
        tick_upper: int,
        sqrt_price_x96: int,
        liquidity: int,
    ) -> Tuple[int, int]:
        """Raw token amounts held by a position at the given pool price."""
        return UniswapV3Math.get_amounts_for_liquidity(
            sqrt_price_x96,
            UniswapV3Math.get_sqrt_ratio_at_tick(tick_lower),
            UniswapV3Math.get_sqrt_ratio_at_tick(tick_upper),
            liquidity,
        )


_TICK_MULTIPLIERS = (
    (0x2, 0xFFF97272373D413259A46990580E213A),
    (0x4, 0xFFF2E50F5F656932EF12357CF3C7FDCC),
    (0x8, 0xFFE5CACA7E10E4E61C3624EAA0941CD0),
    (0x10, 0xFFCB9843D60F6159C9DB58835C926644),
    (0x20, 0xFF973B41FA98C081472E6896DFB254C0),
    (0x40, 0xFF2EA16466C96A3843EC78B326B52861),
    (0x80, 0xFE5DEE046A99A2A811C461F1969C3053),
    (0x100, 0xFCBE86C7900A88AEDCFFC83B479AA3A4),
    (0x200, 0xF987A7253AC413176F2B074CF7815E54),
    (0x400, 0xF3392B0822B70005940C7A398E4B70F3),
    (0x800, 0xE7159475A2C29B7443B29C7FA6E889D9),
    (0x1000, 0xD097F3BDFD2022B8845AD8F792AA5825),
    (0x2000, 0xA9F746462D870FDF8A65DC1F90E061E5),
    (0x4000, 0x70D869A156D2A1B890BB3DF62BAF32F7),
    (0x8000, 0x31BE135F97D08FD981231505542FCFA6),
    (0x10000, 0x9AA508B5B7A84E1C677DE54F3E99BC9),
    (0x20000, 0x5D6AF8DEDB81196699C329225EE604),
    (0x40000, 0x2216E584F5FA1EA926041BEDFE98),
    (0x80000, 0x48A170391F7DC42444E8FA2),
)
