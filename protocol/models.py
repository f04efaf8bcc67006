"""
Shared data models for the LP range monitor.

Position configuration is a tagged union on `protocol`; everything past the
chain adapters works on the normalized RawPoolReading / PositionSnapshot
shapes and never branches on the protocol variant.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProtocolVersion(str, Enum):
    """Supported concentrated-liquidity protocol variants."""
    V3 = "v3"
    V4 = "v4"


class ReferenceToken(str, Enum):
    """Token whose USD price is supplied by configuration."""
    TOKEN0 = "token0"
    TOKEN1 = "token1"


class FeeSource(str, Enum):
    """Where pending fees are read from."""
    ACCUMULATOR = "accumulator"
    COLLECT = "collect"


class AutomationConfig(BaseModel):
    """Automation switches and thresholds for a position."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    enabled: bool = Field(False, description="Master switch for automation")
    auto_claim: bool = Field(False, alias="autoClaim", description="Claim fees when above threshold")
    auto_compound: bool = Field(
        False, alias="autoCompound", description="Claim and re-add fees as liquidity"
    )
    auto_rebalance: bool = Field(
        False, alias="autoRebalance", description="Signal rebalances when far out of range"
    )
    min_fee_to_claim_usd: float = Field(
        0.0, ge=0.0, alias="minFeeToClaimUSD", description="Pending fee USD value to act on"
    )
    rebalance_threshold_percent: float = Field(
        0.0, ge=0.0, alias="rebalanceThresholdPercent",
        description="Out-of-range deviation (percent) that triggers a rebalance",
    )


class AnalyticsConfig(BaseModel):
    """Optional valuation baseline for ROI / APR reporting."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    initial_value_usd: Optional[float] = Field(
        None, gt=0.0, alias="initialValueUSD", description="Position value at entry"
    )
    start_time: Optional[datetime] = Field(
        None, alias="startTime", description="Position entry time"
    )
    reference_token: ReferenceToken = Field(
        ReferenceToken.TOKEN1, alias="referenceToken",
        description="Token whose USD price is configured",
    )
    reference_token_price_usd: Optional[float] = Field(
        None, ge=0.0, alias="referenceTokenPriceUSD",
        description="Manual USD price for the reference token",
    )

    @model_validator(mode="before")
    @classmethod
    def accept_token1_price(cls, data: Any) -> Any:
        """Map the older token1-only price key onto the explicit reference fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("token1PriceUSD", "token1_price_usd"):
            if key in data:
                legacy = data.pop(key)
                if "reference_token_price_usd" not in data and "referenceTokenPriceUSD" not in data:
                    data["reference_token_price_usd"] = legacy
                    if "reference_token" not in data and "referenceToken" not in data:
                        data["reference_token"] = ReferenceToken.TOKEN1
        return data

    @property
    def has_baseline(self) -> bool:
        """ROI needs the entry value, the entry time and a USD price to value the position now."""
        return (
            self.initial_value_usd is not None
            and self.start_time is not None
            and bool(self.reference_token_price_usd)
        )

    @property
    def start_time_utc(self) -> Optional[datetime]:
        if self.start_time is None:
            return None
        if self.start_time.tzinfo is None:
            return self.start_time.replace(tzinfo=timezone.utc)
        return self.start_time


class BasePositionConfig(BaseModel):
    """Fields shared by every position variant."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Unique identifier for the position")
    name: str = Field(..., description="Human readable name e.g. 'MON/AUSD V4'")
    chain_id: int = Field(..., alias="chainId", description="EVM chain id")
    rpc_url: Optional[str] = Field(None, alias="rpcUrl", description="Optional RPC override")
    token0_decimals: int = Field(..., ge=0, le=77, alias="token0Decimals")
    token1_decimals: int = Field(..., ge=0, le=77, alias="token1Decimals")
    token0_symbol: str = Field("T0", alias="token0Symbol")
    token1_symbol: str = Field("T1", alias="token1Symbol")
    tick_lower: int = Field(..., alias="tickLower", description="Lower tick bound")
    tick_upper: int = Field(..., alias="tickUpper", description="Upper tick bound")
    fee_source: FeeSource = Field(FeeSource.ACCUMULATOR, alias="feeSource")
    automation: AutomationConfig = Field(default_factory=AutomationConfig)
    analytics: Optional[AnalyticsConfig] = Field(None)

    @model_validator(mode="after")
    def validate_tick_range(self) -> "BasePositionConfig":
        """Ensure tick_upper > tick_lower."""
        if self.tick_upper <= self.tick_lower:
            raise ValueError("tick_upper must be greater than tick_lower")
        return self


class V3PositionConfig(BasePositionConfig):
    """Position held as an NFT on a v3 NonfungiblePositionManager."""
    protocol: Literal["v3"] = Field("v3")
    pool_address: str = Field(..., alias="poolAddress", description="v3 pool contract")
    nft_id: int = Field(..., ge=0, alias="nftId", description="Position NFT token id")
    position_manager_address: str = Field(
        ..., alias="nonfungiblePositionManagerAddress",
        description="NonfungiblePositionManager contract",
    )


class V4PositionConfig(BasePositionConfig):
    """Position held on a v4 PositionManager, read through StateView."""
    protocol: Literal["v4"] = Field("v4")
    pool_id: str = Field(..., alias="poolId", description="bytes32 pool id")
    position_token_id: int = Field(..., ge=0, alias="positionTokenId")
    state_view_address: str = Field(..., alias="stateViewAddress")
    position_manager_address: str = Field(..., alias="positionManagerAddress")
    token0_address: Optional[str] = Field(None, alias="token0Address")
    token1_address: Optional[str] = Field(None, alias="token1Address")


PositionConfig = Annotated[
    Union[V3PositionConfig, V4PositionConfig],
    Field(discriminator="protocol"),
]


class RawPoolReading(BaseModel):
    """
    Integer readings for one position, fetched fresh every cycle.

    Fee fields are None when fee accounting was not requested or could not
    be read.
    """
    current_tick: int = Field(..., description="Pool tick from slot0")
    sqrt_price_x96: int = Field(..., description="Pool sqrtPriceX96 from slot0")
    pool_liquidity: int = Field(0, description="Active liquidity of the pool")
    position_liquidity: int = Field(0, description="Liquidity held by the position")
    fee_growth_inside_last0: Optional[int] = None
    fee_growth_inside_last1: Optional[int] = None
    fee_growth_inside0: Optional[int] = None
    fee_growth_inside1: Optional[int] = None
    tokens_owed0: int = 0
    tokens_owed1: int = 0
    collected0: Optional[int] = Field(None, description="Simulated collect amount0")
    collected1: Optional[int] = Field(None, description="Simulated collect amount1")

    @property
    def has_fee_growth(self) -> bool:
        return None not in (
            self.fee_growth_inside_last0,
            self.fee_growth_inside_last1,
            self.fee_growth_inside0,
            self.fee_growth_inside1,
        )

    @property
    def has_collect(self) -> bool:
        return self.collected0 is not None and self.collected1 is not None


class PositionSnapshot(BaseModel):
    """Valuation of a position for one check cycle."""
    config: PositionConfig = Field(..., description="Owning position configuration")
    current_tick: int
    current_price: float
    price_lower: float
    price_upper: float
    is_in_range: bool
    deviation_percent: float = Field(
        0.0, description="Percent past the breached bound; positive below, negative above"
    )
    liquidity: int = 0
    amount0: float = 0.0
    amount1: float = 0.0
    token0_price_usd: float = 0.0
    token1_price_usd: float = 0.0
    current_value_usd: float = 0.0
    fees_available: bool = Field(False, description="Whether fee data was read this cycle")
    fees_pending0: float = 0.0
    fees_pending1: float = 0.0
    fees_pending_usd: float = 0.0
    roi: Optional[float] = None
    apr: Optional[float] = None
    breakeven_days: Optional[float] = None
    observed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
