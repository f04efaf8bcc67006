"""
Per-cycle driver for the LP range monitor.

Positions are checked one after another. Each check is awaited to
completion and isolated in its own try/except, so one failing position never
blocks the others or touches their range state.
"""
import asyncio
import logging
from typing import Callable, Dict, Optional

from pydantic import BaseModel

from protocol.models import PositionConfig, PositionSnapshot
from monitor.exceptions import CompoundError
from monitor.models import (
    ActionType,
    AutomationCompletedAlert,
    AutomationDecision,
    CycleReport,
    ErrorAlert,
    MonitorConfig,
    MonitorStartedAlert,
    RebalanceNeededAlert,
    TxResult,
)
from monitor.policy import AutomationPolicy
from monitor.range_tracker import RangeStateStore, RangeStateTracker
from monitor.services.executor import PositionExecutor
from monitor.services.notifier import TelegramNotifier
from monitor.services.pool_reader import PoolReader, make_pool_reader
from monitor.services.rebalancer import RebalanceStrategy
from monitor.snapshot import SnapshotBuilder, format_position_status

logger = logging.getLogger(__name__)

ReaderFactory = Callable[[PositionConfig], PoolReader]
ExecutorFactory = Callable[[PositionConfig], PositionExecutor]


class MonitorOrchestrator:
    """
    Runs check cycles over all configured positions.

    Owns the range state store; separate orchestrators never share state.
    """

    def __init__(
        self,
        config: MonitorConfig,
        notifier: TelegramNotifier,
        reader_factory: Optional[ReaderFactory] = None,
        executor_factory: Optional[ExecutorFactory] = None,
        rebalancer: Optional[RebalanceStrategy] = None,
        builder: Optional[SnapshotBuilder] = None,
        policy: Optional[AutomationPolicy] = None,
        store: Optional[RangeStateStore] = None,
        dry_run: bool = False,
    ):
        """
        Initialize the orchestrator.

        Args:
            config: Positions and scheduling settings
            notifier: Alert sink
            reader_factory: Builds a chain reader per position
            executor_factory: Builds a chain-write executor per position;
                automation actions are skipped when None
            rebalancer: Strategy invoked on rebalance-needed decisions;
                an alert is sent instead when None
            builder: Snapshot builder
            policy: Automation policy
            store: Range state store
            dry_run: Log automation decisions without sending transactions
        """
        self.config = config
        self.notifier = notifier
        self.reader_factory = reader_factory or make_pool_reader
        self.executor_factory = executor_factory
        self.rebalancer = rebalancer
        self.builder = builder or SnapshotBuilder()
        self.policy = policy or AutomationPolicy()
        self.store = store or RangeStateStore()
        self.tracker = RangeStateTracker(self.store)
        self.dry_run = dry_run

        self.cycle = 0
        self.consecutive_failures: Dict[str, int] = {}
        self._readers: Dict[str, PoolReader] = {}
        self._executors: Dict[str, PositionExecutor] = {}

    # -----------------------------
    # Scheduling
    # -----------------------------

    async def run_forever(self, max_cycles: Optional[int] = None):
        """
        Check immediately, then again each interval after the previous cycle ends.

        Args:
            max_cycles: Stop after this many cycles (run until cancelled if None)
        """
        interval_seconds = self.config.check_interval_minutes * 60
        logger.info(
            f"Starting monitor: {len(self.config.positions)} positions, "
            f"check interval {self.config.check_interval_minutes:g} minutes"
        )
        await self._notify(
            MonitorStartedAlert(
                position_count=len(self.config.positions),
                check_interval_minutes=self.config.check_interval_minutes,
            )
        )

        while True:
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error in cycle #{self.cycle}: {e}", exc_info=True)

            if max_cycles is not None and self.cycle >= max_cycles:
                logger.info(f"Stopping after {self.cycle} cycles")
                return

            logger.info(f"Sleeping for {interval_seconds:.0f}s")
            await asyncio.sleep(interval_seconds)

    async def run_cycle(self) -> CycleReport:
        """Check every position once, sequentially."""
        self.cycle += 1
        report = CycleReport(cycle=self.cycle)

        logger.info("=" * 60)
        logger.info(f"Cycle #{self.cycle}: checking {len(self.config.positions)} positions")
        logger.info("=" * 60)

        for position in self.config.positions:
            try:
                snapshot = await self.check_position(position)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[{position.name}] Check failed: {e}", exc_info=True)
                report.failures[position.id] = str(e)
                await self._record_failure(position, e)
                continue

            self.consecutive_failures[position.id] = 0
            report.snapshots[position.id] = snapshot
            report.decisions[position.id] = await self.automate(snapshot)

        logger.info(
            f"Cycle #{self.cycle} complete: {report.checked} checked, "
            f"{len(report.failures)} failed"
        )
        return report

    # -----------------------------
    # Per-position steps
    # -----------------------------

    async def check_position(self, position: PositionConfig) -> PositionSnapshot:
        """
        Read, value and classify one position, notifying on range transitions.

        Range state is only updated once the snapshot has been built.
        """
        reader = self._reader(position)
        reading = await reader.read(include_fees=True)
        snapshot = self.builder.build(position, reading)
        logger.info(format_position_status(snapshot))

        event = self.tracker.observe(snapshot)
        if event is not None:
            await self._notify(event)
        return snapshot

    async def automate(self, snapshot: PositionSnapshot) -> AutomationDecision:
        """Decide and dispatch automation for a freshly built snapshot."""
        position = snapshot.config
        decision = self.policy.decide(snapshot, position.automation)
        if decision.is_noop:
            return decision

        if self.dry_run:
            logger.info(f"[{position.name}] Dry run, not executing: {decision.reason}")
            return decision

        try:
            if decision.action != ActionType.NONE:
                await self._run_fee_action(snapshot, decision.action)
            if decision.rebalance_needed:
                await self._run_rebalance(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"[{position.name}] Automation failed: {e}", exc_info=True)
            await self._notify(ErrorAlert(message=f"{position.name}: automation failed: {e}"))
        return decision

    async def _run_fee_action(self, snapshot: PositionSnapshot, action: ActionType):
        position = snapshot.config
        executor = self._executor(position)
        if executor is None:
            logger.warning(f"[{position.name}] No wallet configured, skipping {action.value}")
            return

        if action == ActionType.COMPOUND:
            try:
                result = await executor.compound()
            except CompoundError as e:
                # The collect is on chain even though the re-add failed
                await self._notify_completed(position, ActionType.CLAIM, e.claimed)
                raise
        else:
            result = await executor.claim_fees()

        if result.tx_hash is None:
            return
        await self._notify_completed(position, action, result)

    async def _notify_completed(self, position: PositionConfig, action: ActionType, result: TxResult):
        await self._notify(
            AutomationCompletedAlert(
                action=action,
                position_name=position.name,
                amount0=result.amount0 / 10 ** position.token0_decimals,
                amount1=result.amount1 / 10 ** position.token1_decimals,
                token0_symbol=position.token0_symbol,
                token1_symbol=position.token1_symbol,
                tx_hash=result.tx_hash,
            )
        )

    async def _run_rebalance(self, snapshot: PositionSnapshot):
        position = snapshot.config
        executor = self._executor(position)
        if self.rebalancer is None or executor is None:
            await self._notify(
                RebalanceNeededAlert(
                    position_name=position.name,
                    current_price=snapshot.current_price,
                    deviation_percent=snapshot.deviation_percent,
                    threshold_percent=position.automation.rebalance_threshold_percent,
                )
            )
            return

        result = await self.rebalancer.rebalance(snapshot, executor)
        logger.info(f"[{position.name}] Rebalance finished: tx={result.tx_hash}")

    async def _record_failure(self, position: PositionConfig, error: Exception):
        count = self.consecutive_failures.get(position.id, 0) + 1
        self.consecutive_failures[position.id] = count
        if count == self.config.error_alert_after_failures:
            await self._notify(
                ErrorAlert(message=f"{position.name}: {count} consecutive failed checks: {error}")
            )

    async def _notify(self, alert: BaseModel) -> bool:
        try:
            return await self.notifier.notify(alert)
        except Exception as e:
            logger.error(f"Notification failed: {e}")
            return False

    def _reader(self, position: PositionConfig) -> PoolReader:
        if position.id not in self._readers:
            self._readers[position.id] = self.reader_factory(position)
        return self._readers[position.id]

    def _executor(self, position: PositionConfig) -> Optional[PositionExecutor]:
        if self.executor_factory is None:
            return None
        if position.id not in self._executors:
            self._executors[position.id] = self.executor_factory(position)
        return self._executors[position.id]
