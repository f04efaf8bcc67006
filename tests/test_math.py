import math

import pytest
from monitor.utils.math import PriceMath, UniswapV3Math


class TestUniswapV3Math:
    def test_get_sqrt_ratio_at_tick_zero(self):
        # Tick 0 should be exactly 2^96
        expected = 1 << 96
        assert UniswapV3Math.get_sqrt_ratio_at_tick(0) == expected

    def test_get_sqrt_ratio_at_tick_min(self):
        tick = UniswapV3Math.MIN_TICK
        ratio = UniswapV3Math.get_sqrt_ratio_at_tick(tick)
        assert ratio == UniswapV3Math.MIN_SQRT_RATIO

    def test_get_sqrt_ratio_at_tick_max(self):
        tick = UniswapV3Math.MAX_TICK
        ratio = UniswapV3Math.get_sqrt_ratio_at_tick(tick)
        assert ratio == UniswapV3Math.MAX_SQRT_RATIO

    def test_get_sqrt_ratio_out_of_bounds(self):
        with pytest.raises(ValueError):
            UniswapV3Math.get_sqrt_ratio_at_tick(UniswapV3Math.MAX_TICK + 1)

    def test_sqrt_ratio_matches_float_price(self):
        sqrt_price = UniswapV3Math.get_sqrt_ratio_at_tick(12345)
        price = PriceMath.sqrt_price_x96_to_price(sqrt_price)
        assert price == pytest.approx(1.0001 ** 12345, rel=1e-9)

    def test_amounts_in_range(self):
        # Price at tick 0 inside [-100, 100]: both tokens are held
        amount0, amount1 = UniswapV3Math.position_amounts(-100, 100, 1 << 96, 10**18)
        assert amount0 > 0
        assert amount1 > 0
        # Symmetric range around price 1 holds roughly equal amounts
        assert amount0 == pytest.approx(amount1, rel=1e-3)

    def test_amounts_below_range(self):
        # Price below range: the position is 100% token0
        sqrt_price_x96 = UniswapV3Math.get_sqrt_ratio_at_tick(0)
        amount0, amount1 = UniswapV3Math.position_amounts(1000, 2000, sqrt_price_x96, 10**18)
        assert amount1 == 0
        assert amount0 > 0

    def test_amounts_above_range(self):
        # Price above range: the position is 100% token1
        sqrt_price_x96 = UniswapV3Math.get_sqrt_ratio_at_tick(0)
        amount0, amount1 = UniswapV3Math.position_amounts(-2000, -1000, sqrt_price_x96, 10**18)
        assert amount0 == 0
        assert amount1 > 0

    def test_amounts_zero_liquidity(self):
        assert UniswapV3Math.position_amounts(-100, 100, 1 << 96, 0) == (0, 0)

    def test_amounts_swapped_bounds(self):
        sqrtPA = UniswapV3Math.get_sqrt_ratio_at_tick(-100)
        sqrtPB = UniswapV3Math.get_sqrt_ratio_at_tick(100)
        assert UniswapV3Math.get_amounts_for_liquidity(
            1 << 96, sqrtPB, sqrtPA, 10**18
        ) == UniswapV3Math.get_amounts_for_liquidity(1 << 96, sqrtPA, sqrtPB, 10**18)


class TestPriceMath:
    def test_tick_zero_is_parity(self):
        assert PriceMath.tick_to_raw_price(0) == 1.0

    def test_tick_to_raw_price(self):
        assert PriceMath.tick_to_raw_price(100) == pytest.approx(1.0001 ** 100)
        assert PriceMath.tick_to_raw_price(-100) == pytest.approx(1.0001 ** -100)

    def test_strictly_increasing(self):
        ticks = [-887272, -500000, -1, 0, 1, 500000, 887272]
        prices = [PriceMath.tick_to_raw_price(t) for t in ticks]
        assert prices == sorted(prices)
        assert len(set(prices)) == len(prices)

    @pytest.mark.parametrize(
        "tick", [-887272, -887220, -400001, -12345, -1, 0, 1, 60, 12345, 400001, 887220, 887272]
    )
    def test_price_to_tick_round_trip(self, tick):
        assert abs(PriceMath.price_to_tick(PriceMath.tick_to_raw_price(tick)) - tick) <= 1

    def test_price_to_tick_rounds_down(self):
        price = (PriceMath.tick_to_raw_price(10) + PriceMath.tick_to_raw_price(11)) / 2
        assert PriceMath.price_to_tick(price) == 10

    def test_price_to_tick_rejects_non_positive(self):
        with pytest.raises(ValueError):
            PriceMath.price_to_tick(0)
        with pytest.raises(ValueError):
            PriceMath.price_to_tick(-1.5)

    def test_decimal_adjusted_price(self):
        # 6-decimal token0 against 18-decimal token1
        assert PriceMath.decimal_adjusted_price(1.0, 6, 18) == pytest.approx(1e-12)
        assert PriceMath.decimal_adjusted_price(2.0, 18, 6) == pytest.approx(2e12)
        assert PriceMath.decimal_adjusted_price(3.0, 8, 8) == 3.0

    def test_tick_to_price_with_decimals(self):
        assert PriceMath.tick_to_price(0, 6, 18) == pytest.approx(1e-12)
        assert math.isfinite(PriceMath.tick_to_price(887272, 0, 77))

    def test_in_range_is_inclusive_on_ticks(self):
        assert PriceMath.is_in_range(100, -100, 100)
        assert PriceMath.is_in_range(-100, -100, 100)
        assert not PriceMath.is_in_range(101, -100, 100)
        assert not PriceMath.is_in_range(-101, -100, 100)

    @pytest.mark.parametrize("tick", [-887220, -500000, -1, 0, 1, 500000, 887220])
    def test_full_range_always_in_range(self, tick):
        assert PriceMath.is_in_range(tick, -887220, 887220)
