"""
Position snapshot builder.

Turns a RawPoolReading plus the position's static configuration into a
PositionSnapshot. Price and range membership are always produced when the
core reading is sound; token amounts, USD values, fees and analytics are
best-effort and degrade to zero / None on failure.
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from protocol.models import (
    AnalyticsConfig,
    FeeSource,
    PositionConfig,
    PositionSnapshot,
    RawPoolReading,
    ReferenceToken,
)
from monitor.exceptions import DataError, FeeDataError
from monitor.utils.fees import FeeAccrual
from monitor.utils.math import PriceMath, UniswapV3Math

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotBuilder:
    """
    Builds valuation snapshots for configured positions.

    Args:
        now: Clock used for analytics (days elapsed); defaults to UTC now
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow):
        self.now = now

    def build(self, config: PositionConfig, reading: RawPoolReading) -> PositionSnapshot:
        """
        Build a snapshot from one cycle's chain reading.

        Raises:
            DataError: If the core reading violates protocol invariants
        """
        self._validate_reading(reading)

        d0, d1 = config.token0_decimals, config.token1_decimals
        current_tick = reading.current_tick
        current_price = PriceMath.tick_to_price(current_tick, d0, d1)
        price_lower = PriceMath.tick_to_price(config.tick_lower, d0, d1)
        price_upper = PriceMath.tick_to_price(config.tick_upper, d0, d1)

        is_in_range = PriceMath.is_in_range(current_tick, config.tick_lower, config.tick_upper)
        deviation_percent = self._deviation_percent(
            current_tick, config.tick_lower, current_price, price_lower, price_upper, is_in_range
        )

        snapshot = PositionSnapshot(
            config=config,
            current_tick=current_tick,
            current_price=current_price,
            price_lower=price_lower,
            price_upper=price_upper,
            is_in_range=is_in_range,
            deviation_percent=deviation_percent,
            liquidity=reading.position_liquidity,
            observed_at=self.now(),
        )

        try:
            self._apply_valuation(snapshot, config, reading)
        except Exception as e:
            logger.warning(f"[{config.name}] Valuation degraded: {e}")
            self._reset_valuation(snapshot)

        return snapshot

    # -----------------------------
    # Range
    # -----------------------------

    @staticmethod
    def _validate_reading(reading: RawPoolReading) -> None:
        if reading.sqrt_price_x96 <= 0:
            raise DataError(f"Invalid sqrtPriceX96 {reading.sqrt_price_x96}")
        if reading.position_liquidity < 0 or reading.pool_liquidity < 0:
            raise DataError(
                f"Negative liquidity (position={reading.position_liquidity}, "
                f"pool={reading.pool_liquidity})"
            )
        if not UniswapV3Math.MIN_TICK <= reading.current_tick <= UniswapV3Math.MAX_TICK:
            raise DataError(f"Tick {reading.current_tick} outside protocol bounds")

    @staticmethod
    def _deviation_percent(
        current_tick: int,
        tick_lower: int,
        current_price: float,
        price_lower: float,
        price_upper: float,
        is_in_range: bool,
    ) -> float:
        """Distance past the breached bound, relative to that bound."""
        if is_in_range:
            return 0.0
        boundary = price_lower if current_tick < tick_lower else price_upper
        if boundary == 0:
            return 0.0
        return (boundary - current_price) / boundary * 100

    # -----------------------------
    # Valuation
    # -----------------------------

    def _apply_valuation(
        self, snapshot: PositionSnapshot, config: PositionConfig, reading: RawPoolReading
    ) -> None:
        d0, d1 = config.token0_decimals, config.token1_decimals
        liquidity = reading.position_liquidity

        if liquidity > 0:
            raw0, raw1 = UniswapV3Math.position_amounts(
                config.tick_lower, config.tick_upper, reading.sqrt_price_x96, liquidity
            )
            snapshot.amount0 = raw0 / 10 ** d0
            snapshot.amount1 = raw1 / 10 ** d1

        token0_usd, token1_usd = self._token_prices_usd(config.analytics, snapshot.current_price)
        snapshot.token0_price_usd = token0_usd
        snapshot.token1_price_usd = token1_usd
        snapshot.current_value_usd = snapshot.amount0 * token0_usd + snapshot.amount1 * token1_usd

        fees = self._pending_fees(config, reading)
        if fees is not None:
            snapshot.fees_available = True
            snapshot.fees_pending0 = fees[0] / 10 ** d0
            snapshot.fees_pending1 = fees[1] / 10 ** d1
            snapshot.fees_pending_usd = (
                snapshot.fees_pending0 * token0_usd + snapshot.fees_pending1 * token1_usd
            )

        if config.analytics is not None and config.analytics.has_baseline:
            self._apply_analytics(snapshot, config.analytics)

    @staticmethod
    def _reset_valuation(snapshot: PositionSnapshot) -> None:
        snapshot.amount0 = snapshot.amount1 = 0.0
        snapshot.token0_price_usd = snapshot.token1_price_usd = 0.0
        snapshot.current_value_usd = 0.0
        snapshot.fees_available = False
        snapshot.fees_pending0 = snapshot.fees_pending1 = snapshot.fees_pending_usd = 0.0
        snapshot.roi = snapshot.apr = snapshot.breakeven_days = None

    @staticmethod
    def _token_prices_usd(
        analytics: Optional[AnalyticsConfig], current_price: float
    ) -> Tuple[float, float]:
        """
        USD prices of (token0, token1) derived from the configured reference token.

        current_price is token0 denominated in token1.
        """
        if analytics is None or not analytics.reference_token_price_usd:
            return 0.0, 0.0
        reference_usd = analytics.reference_token_price_usd
        if analytics.reference_token == ReferenceToken.TOKEN1:
            return current_price * reference_usd, reference_usd
        if current_price <= 0:
            return reference_usd, 0.0
        return reference_usd, reference_usd / current_price

    @staticmethod
    def _pending_fees(config: PositionConfig, reading: RawPoolReading) -> Optional[Tuple[int, int]]:
        """Raw unclaimed fee amounts, or None when no usable fee data exists."""
        if config.fee_source == FeeSource.COLLECT and reading.has_collect:
            return reading.collected0, reading.collected1
        if reading.has_fee_growth:
            try:
                return FeeAccrual.unclaimed_amounts(
                    (reading.fee_growth_inside_last0, reading.fee_growth_inside_last1),
                    (reading.fee_growth_inside0, reading.fee_growth_inside1),
                    reading.position_liquidity,
                    (reading.tokens_owed0, reading.tokens_owed1),
                )
            except FeeDataError as e:
                logger.warning(f"[{config.name}] Ignoring fee data this cycle: {e}")
                return None
        if reading.has_collect:
            return reading.collected0, reading.collected1
        return None

    def _apply_analytics(self, snapshot: PositionSnapshot, analytics: AnalyticsConfig) -> None:
        initial = analytics.initial_value_usd
        fees_usd = snapshot.fees_pending_usd

        snapshot.roi = (snapshot.current_value_usd + fees_usd - initial) / initial * 100

        days_elapsed = (self.now() - analytics.start_time_utc).total_seconds() / SECONDS_PER_DAY
        if days_elapsed > 0:
            snapshot.apr = (fees_usd / initial) / days_elapsed * 365 * 100
            daily_fees = fees_usd / days_elapsed
            if daily_fees > 0:
                snapshot.breakeven_days = initial / daily_fees


def format_position_status(snapshot: PositionSnapshot) -> str:
    """One-line status summary for logs."""
    config = snapshot.config
    pair = f"{config.token0_symbol}/{config.token1_symbol}"
    status = "IN RANGE" if snapshot.is_in_range else f"OUT OF RANGE ({snapshot.deviation_percent:+.2f}%)"
    line = (
        f"[{config.name}] {config.protocol} tick={snapshot.current_tick} "
        f"price={snapshot.current_price:.8f} {pair} "
        f"range={snapshot.price_lower:.8f}-{snapshot.price_upper:.8f} {status}"
    )
    if snapshot.current_value_usd > 0:
        line += f" value=${snapshot.current_value_usd:.2f}"
    if snapshot.fees_available:
        line += f" fees=${snapshot.fees_pending_usd:.2f}"
    if snapshot.roi is not None:
        line += f" roi={snapshot.roi:.2f}%"
    if snapshot.apr is not None:
        line += f" apr={snapshot.apr:.2f}%"
    return line
