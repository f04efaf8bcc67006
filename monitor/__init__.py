"""
LP Range Monitor Package

Async monitor for concentrated-liquidity positions: valuation snapshots,
edge-triggered range alerts and threshold-driven fee automation.
"""
from monitor.orchestrator import MonitorOrchestrator
from monitor.policy import AutomationPolicy
from monitor.range_tracker import RangeStateStore, RangeStateTracker
from monitor.snapshot import SnapshotBuilder

__all__ = [
    "MonitorOrchestrator",
    "AutomationPolicy",
    "RangeStateStore",
    "RangeStateTracker",
    "SnapshotBuilder",
]
