"""
Threshold-driven automation policy.
"""
import logging

from protocol.models import AutomationConfig, PositionSnapshot
from monitor.models import ActionType, AutomationDecision

logger = logging.getLogger(__name__)


class AutomationPolicy:
    """
    Decides whether a position should be claimed, compounded or rebalanced.

    The policy is stateless: every call re-evaluates the current snapshot.
    Repeated decisions across cycles are safe because claiming a position
    with nothing pending is a no-op for the executor.
    """

    def decide(self, snapshot: PositionSnapshot, automation: AutomationConfig) -> AutomationDecision:
        """
        Evaluate a snapshot against the automation configuration.

        Args:
            snapshot: Current valuation of the position
            automation: Automation switches and thresholds

        Returns:
            AutomationDecision with at most one fee action
        """
        if not automation.enabled:
            return AutomationDecision(reason="automation disabled")

        reasons = []
        action = self._fee_action(snapshot, automation, reasons)
        rebalance_needed = self._rebalance_needed(snapshot, automation, reasons)

        decision = AutomationDecision(
            action=action,
            rebalance_needed=rebalance_needed,
            reason="; ".join(reasons),
        )
        if not decision.is_noop:
            logger.info(f"[{snapshot.config.name}] Automation decision: {decision.reason}")
        return decision

    @staticmethod
    def _fee_action(snapshot: PositionSnapshot, automation: AutomationConfig, reasons: list) -> ActionType:
        if not snapshot.fees_available:
            reasons.append("no fee data")
            return ActionType.NONE

        if snapshot.fees_pending_usd <= automation.min_fee_to_claim_usd:
            reasons.append(
                f"fees ${snapshot.fees_pending_usd:.2f} <= ${automation.min_fee_to_claim_usd:.2f}"
            )
            return ActionType.NONE

        # Compounding claims first, so it wins when both are enabled.
        if automation.auto_compound:
            action = ActionType.COMPOUND
        elif automation.auto_claim:
            action = ActionType.CLAIM
        else:
            reasons.append("fees above threshold but claim/compound disabled")
            return ActionType.NONE

        reasons.append(
            f"{action.value}: fees ${snapshot.fees_pending_usd:.2f} > "
            f"${automation.min_fee_to_claim_usd:.2f}"
        )
        return action

    @staticmethod
    def _rebalance_needed(snapshot: PositionSnapshot, automation: AutomationConfig, reasons: list) -> bool:
        if not automation.auto_rebalance or snapshot.is_in_range:
            return False
        deviation = abs(snapshot.deviation_percent)
        if deviation <= automation.rebalance_threshold_percent:
            return False
        reasons.append(
            f"rebalance: deviation {deviation:.2f}% > {automation.rebalance_threshold_percent:.2f}%"
        )
        return True
