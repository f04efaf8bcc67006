"""
Rebalance collaborators.

The monitor only detects that a rebalance is needed. Choosing the new range
and re-deploying capital belongs to a RebalanceStrategy implementation.
"""
import logging
from abc import ABC, abstractmethod

from protocol.models import PositionSnapshot
from monitor.models import TxResult
from monitor.services.executor import PositionExecutor

logger = logging.getLogger(__name__)


class RebalanceStrategy(ABC):
    """Executes a rebalance for a position that drifted out of range."""

    @abstractmethod
    async def rebalance(self, snapshot: PositionSnapshot, executor: PositionExecutor) -> TxResult:
        """
        Act on a rebalance-needed decision.

        Args:
            snapshot: Snapshot that triggered the decision
            executor: Chain-write executor for the position

        Returns:
            Result of the final transaction sent
        """


class WithdrawRebalanceStrategy(RebalanceStrategy):
    """
    Withdraws the whole position to the owner wallet.

    Removes all liquidity and collects the released tokens plus fees. Minting
    the replacement range is left to the operator.
    """

    async def rebalance(self, snapshot: PositionSnapshot, executor: PositionExecutor) -> TxResult:
        name = snapshot.config.name
        liquidity = await executor.position_liquidity()
        if liquidity > 0:
            logger.info(f"[{name}] Withdrawing {liquidity} liquidity for rebalance")
            await executor.decrease_liquidity(liquidity)
        else:
            logger.info(f"[{name}] Position has no liquidity, collecting only")
        return await executor.claim_fees()
