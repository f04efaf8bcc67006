"""
Exception hierarchy for the position monitor.

Nothing raised here is fatal to a running monitor: the orchestrator catches
MonitorError (and anything else) at each position boundary. ConfigError is
only raised while loading configuration at startup.
"""


class MonitorError(Exception):
    """Base class for monitor errors."""


class TransportError(MonitorError):
    """A chain or notification call failed."""


class DataError(MonitorError):
    """Decoded on-chain values violate an expected invariant."""


class FeeDataError(DataError):
    """Fee accumulator values are implausible (e.g. a backwards step)."""


class ConfigError(MonitorError):
    """Monitor configuration is missing or invalid."""


class CompoundError(TransportError):
    """Fees were collected but adding them back as liquidity failed.

    `claimed` holds the confirmed collect result.
    """

    def __init__(self, message: str, claimed):
        super().__init__(message)
        self.claimed = claimed
