"""
Package containing the shared data models for the LP range monitor.

Position configuration, raw chain readings and valuation snapshots are
defined here so chain adapters and the decision engine agree on one shape.

NOTE: Monitor-specific models (alerts, decisions, reports) are in
      monitor.models
"""

from protocol.models import (
    ProtocolVersion,
    ReferenceToken,
    FeeSource,
    AutomationConfig,
    AnalyticsConfig,
    BasePositionConfig,
    V3PositionConfig,
    V4PositionConfig,
    PositionConfig,
    RawPoolReading,
    PositionSnapshot,
)

__all__ = [
    "ProtocolVersion",
    "ReferenceToken",
    "FeeSource",
    "AutomationConfig",
    "AnalyticsConfig",
    "BasePositionConfig",
    "V3PositionConfig",
    "V4PositionConfig",
    "PositionConfig",
    "RawPoolReading",
    "PositionSnapshot",
]
