"""
Monitor-specific data models.

These models are used by the decision engine and its collaborators:
automation decisions, notification payloads, transaction results and the
per-cycle report.
"""
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from protocol.models import PositionConfig, PositionSnapshot


class RangeState(str, Enum):
    """Last observed range classification of a position."""
    UNKNOWN = "unknown"
    IN_RANGE = "in_range"
    OUT_OF_RANGE = "out_of_range"


class ActionType(str, Enum):
    """Fee action chosen by the automation policy."""
    NONE = "none"
    CLAIM = "claim"
    COMPOUND = "compound"


class AutomationDecision(BaseModel):
    """Outcome of evaluating one snapshot against its automation settings."""
    action: ActionType = Field(ActionType.NONE, description="Fee action to take")
    rebalance_needed: bool = Field(False, description="Whether a rebalance should be requested")
    reason: str = Field("", description="Human readable explanation")

    @property
    def is_noop(self) -> bool:
        return self.action == ActionType.NONE and not self.rebalance_needed


class MonitorConfig(BaseModel):
    """Positions to watch plus global scheduling settings."""
    model_config = ConfigDict(populate_by_name=True)

    positions: List[PositionConfig] = Field(..., description="Positions to monitor")
    check_interval_minutes: float = Field(
        5.0, gt=0.0, alias="checkIntervalMinutes", description="Minutes between cycles"
    )
    error_alert_after_failures: int = Field(
        3, ge=1, alias="errorAlertAfterFailures",
        description="Consecutive failed checks before an error alert is sent",
    )

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "MonitorConfig":
        """Position ids key the range state, so they must be unique."""
        ids = [p.id for p in self.positions]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate position ids: {', '.join(duplicates)}")
        return self


class PositionState(BaseModel):
    """Per-position values read from the position manager / state view."""
    liquidity: int = Field(..., description="Position liquidity")
    fee_growth_inside_last0: int = Field(0, description="feeGrowthInside0LastX128")
    fee_growth_inside_last1: int = Field(0, description="feeGrowthInside1LastX128")
    tokens_owed0: int = Field(0, description="Fees already credited, token0")
    tokens_owed1: int = Field(0, description="Fees already credited, token1")
    tick_lower: Optional[int] = Field(None, description="Lower tick reported on chain")
    tick_upper: Optional[int] = Field(None, description="Upper tick reported on chain")


class TxResult(BaseModel):
    """Result of a confirmed (or skipped) position transaction."""
    tx_hash: Optional[str] = Field(None, description="Transaction hash, None if nothing was sent")
    amount0: int = Field(0, description="Token0 amount moved, smallest unit")
    amount1: int = Field(0, description="Token1 amount moved, smallest unit")
    liquidity: Optional[int] = Field(None, description="Liquidity added or removed")


# -----------------------------
# Notification payloads
# -----------------------------


class OutOfRangeAlert(BaseModel):
    position_name: str
    current_price: float
    lower_price: float
    upper_price: float
    deviation_percent: float
    initial: bool = Field(False, description="Raised on the first check of the position")


class BackInRangeAlert(BaseModel):
    position_name: str
    current_price: float


class AutomationCompletedAlert(BaseModel):
    action: ActionType
    position_name: str
    amount0: float
    amount1: float
    token0_symbol: str = "T0"
    token1_symbol: str = "T1"
    tx_hash: Optional[str] = None


class RebalanceNeededAlert(BaseModel):
    position_name: str
    current_price: float
    deviation_percent: float
    threshold_percent: float


class ErrorAlert(BaseModel):
    message: str


class MonitorStartedAlert(BaseModel):
    position_count: int
    check_interval_minutes: float


class CycleReport(BaseModel):
    """What happened to each position in one check cycle."""
    cycle: int
    snapshots: Dict[str, PositionSnapshot] = Field(default_factory=dict)
    decisions: Dict[str, AutomationDecision] = Field(default_factory=dict)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def checked(self) -> int:
        return len(self.snapshots)
