"""
Shared fixtures and builders for monitor tests.
"""
import pytest

from protocol.models import (
    AnalyticsConfig,
    AutomationConfig,
    PositionSnapshot,
    RawPoolReading,
    V3PositionConfig,
    V4PositionConfig,
)
from monitor.utils.math import UniswapV3Math

POOL_ADDR = "0x2234567890123456789012345678901234567890"
NFT_MANAGER_ADDR = "0x7234567890123456789012345678901234567890"
STATE_VIEW_ADDR = "0x8234567890123456789012345678901234567890"
POS_MANAGER_ADDR = "0x6234567890123456789012345678901234567890"
POOL_ID = "0x" + "ab" * 32


def make_v3_config(**overrides) -> V3PositionConfig:
    fields = dict(
        id="eth-usdc",
        name="ETH/USDC V3",
        chain_id=8453,
        token0_decimals=18,
        token1_decimals=18,
        tick_lower=-100,
        tick_upper=100,
        pool_address=POOL_ADDR,
        nft_id=42,
        position_manager_address=NFT_MANAGER_ADDR,
    )
    fields.update(overrides)
    return V3PositionConfig(**fields)


def make_v4_config(**overrides) -> V4PositionConfig:
    fields = dict(
        id="mon-ausd",
        name="MON/AUSD V4",
        chain_id=143,
        token0_decimals=18,
        token1_decimals=18,
        tick_lower=-100,
        tick_upper=100,
        pool_id=POOL_ID,
        position_token_id=7,
        state_view_address=STATE_VIEW_ADDR,
        position_manager_address=POS_MANAGER_ADDR,
    )
    fields.update(overrides)
    return V4PositionConfig(**fields)


def make_reading(tick: int = 0, liquidity: int = 10**18, **overrides) -> RawPoolReading:
    fields = dict(
        current_tick=tick,
        sqrt_price_x96=UniswapV3Math.get_sqrt_ratio_at_tick(tick),
        pool_liquidity=10**20,
        position_liquidity=liquidity,
    )
    fields.update(overrides)
    return RawPoolReading(**fields)


def make_snapshot(config=None, in_range: bool = True, **overrides) -> PositionSnapshot:
    fields = dict(
        config=config or make_v3_config(),
        current_tick=0 if in_range else 500,
        current_price=1.0 if in_range else 1.05,
        price_lower=0.99,
        price_upper=1.01,
        is_in_range=in_range,
        deviation_percent=0.0 if in_range else -3.96,
    )
    fields.update(overrides)
    return PositionSnapshot(**fields)


@pytest.fixture
def v3_config():
    return make_v3_config()


@pytest.fixture
def v4_config():
    return make_v4_config()


@pytest.fixture
def automation_config():
    return AutomationConfig(
        enabled=True,
        auto_claim=True,
        auto_compound=False,
        auto_rebalance=False,
        min_fee_to_claim_usd=5.0,
        rebalance_threshold_percent=10.0,
    )


@pytest.fixture
def stable_analytics():
    """Token1 priced at $1."""
    return AnalyticsConfig(reference_token_price_usd=1.0)
