"""
Main entry point for the LP range monitor.
"""
import sys
import signal
import asyncio
import logging
import argparse
from functools import partial

from eth_account import Account

from monitor.config import load_monitor_config
from monitor.exceptions import ConfigError
from monitor.orchestrator import MonitorOrchestrator
from monitor.services.executor import make_executor
from monitor.services.notifier import TelegramNotifier
from monitor.services.pool_reader import make_pool_reader
from monitor.services.rebalancer import WithdrawRebalanceStrategy
from monitor.utils.env import (
    CHECK_INTERVAL_MINUTES,
    LOG_LEVEL,
    MONITOR_CONFIG_PATH,
    PRIVATE_KEY,
    TG_BOT_TOKEN,
    TG_CHAT_ID,
    TX_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


def setup_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler('monitor.log'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def get_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Concentrated liquidity position monitor')
    parser.add_argument('--config', type=str, default=MONITOR_CONFIG_PATH, help='Path to positions JSON file')
    parser.add_argument('--interval', type=float, default=CHECK_INTERVAL_MINUTES, help='Check interval in minutes (overrides config)')
    parser.add_argument('--once', action='store_true', help='Run a single check cycle and exit')
    parser.add_argument('--dry-run', action='store_true', help='Log automation decisions without sending transactions')
    parser.add_argument('--withdraw-on-rebalance', action='store_true', help='Withdraw positions that need a rebalance instead of only alerting')
    return parser.parse_args(argv)


def build_orchestrator(args) -> MonitorOrchestrator:
    """Wire configuration, chain adapters and notifier into an orchestrator."""
    config = load_monitor_config(args.config, check_interval_minutes=args.interval)

    owner_address = None
    executor_factory = None
    if PRIVATE_KEY:
        owner_address = Account.from_key(PRIVATE_KEY).address
        executor_factory = partial(make_executor, private_key=PRIVATE_KEY, tx_timeout=TX_TIMEOUT_SECONDS)
        logger.info(f"Wallet: {owner_address}")
    else:
        logger.warning("PRIVATE_KEY not set: automation and simulated collects are disabled")

    rebalancer = WithdrawRebalanceStrategy() if args.withdraw_on_rebalance else None

    return MonitorOrchestrator(
        config=config,
        notifier=TelegramNotifier(TG_BOT_TOKEN, TG_CHAT_ID),
        reader_factory=partial(make_pool_reader, owner_address=owner_address),
        executor_factory=executor_factory,
        rebalancer=rebalancer,
        dry_run=args.dry_run,
    )


async def run(orchestrator: MonitorOrchestrator, max_cycles=None):
    """Run the monitor until done, cancelling cleanly on SIGTERM."""
    task = asyncio.ensure_future(orchestrator.run_forever(max_cycles=max_cycles))
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, task.cancel)
    except (NotImplementedError, RuntimeError):
        # add_signal_handler is unavailable on some platforms (e.g. Windows)
        pass
    try:
        await task
    except asyncio.CancelledError:
        logger.info("Shutting down")


def main(argv=None):
    """Main monitor loop."""
    setup_logging()
    logger.info("Starting LP range monitor")

    args = get_args(argv)
    try:
        orchestrator = build_orchestrator(args)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(1)

    try:
        asyncio.run(run(orchestrator, max_cycles=1 if args.once else None))
    except KeyboardInterrupt:
        logger.info("Shutting down")

    logger.info("Monitor finished")


if __name__ == '__main__':
    main()
