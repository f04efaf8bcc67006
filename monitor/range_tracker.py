"""
Edge-triggered range state tracking.

RangeStateStore holds the last observed classification per position id and
belongs to a single orchestrator instance. RangeStateTracker compares a new
snapshot against the store and returns the alert for the transition, if any.
"""
import logging
from typing import Dict, Optional, Union

from protocol.models import PositionSnapshot
from monitor.models import BackInRangeAlert, OutOfRangeAlert, RangeState

logger = logging.getLogger(__name__)

RangeEvent = Union[OutOfRangeAlert, BackInRangeAlert]


class RangeStateStore:
    """Mapping of position id -> RangeState."""

    def __init__(self) -> None:
        self._states: Dict[str, RangeState] = {}

    def get(self, position_id: str) -> RangeState:
        return self._states.get(position_id, RangeState.UNKNOWN)

    def set(self, position_id: str, state: RangeState) -> None:
        self._states[position_id] = state

    def snapshot(self) -> Dict[str, RangeState]:
        """Copy of the current states, safe to hand to readers."""
        return dict(self._states)

    def __len__(self) -> int:
        return len(self._states)


class RangeStateTracker:
    """Emits range entry/exit events from successive snapshots."""

    def __init__(self, store: RangeStateStore):
        self.store = store

    def observe(self, snapshot: PositionSnapshot) -> Optional[RangeEvent]:
        """
        Record a successful snapshot and return the transition event.

        Transitions:
            UNKNOWN -> OUT_OF_RANGE: initial out-of-range alert
            UNKNOWN -> IN_RANGE: nothing
            IN_RANGE -> OUT_OF_RANGE: out-of-range alert
            OUT_OF_RANGE -> IN_RANGE: back-in-range alert
            self transitions: nothing

        The stored state is updated whether or not an event is returned.
        """
        config = snapshot.config
        previous = self.store.get(config.id)
        current = RangeState.IN_RANGE if snapshot.is_in_range else RangeState.OUT_OF_RANGE

        event: Optional[RangeEvent] = None
        if current != previous:
            if current == RangeState.OUT_OF_RANGE:
                initial = previous == RangeState.UNKNOWN
                if initial:
                    logger.warning(f"[{config.name}] Initial check: OUT of range")
                else:
                    logger.warning(f"[{config.name}] moved OUT of range")
                event = OutOfRangeAlert(
                    position_name=config.name,
                    current_price=snapshot.current_price,
                    lower_price=snapshot.price_lower,
                    upper_price=snapshot.price_upper,
                    deviation_percent=snapshot.deviation_percent,
                    initial=initial,
                )
            elif previous == RangeState.OUT_OF_RANGE:
                logger.info(f"[{config.name}] moved BACK into range")
                event = BackInRangeAlert(
                    position_name=config.name,
                    current_price=snapshot.current_price,
                )

        self.store.set(config.id, current)
        return event
