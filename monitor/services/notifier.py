"""
Telegram notifier for range and automation alerts.

Delivery is best-effort: failures are logged and reported through the
return value, never raised.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import requests
from pydantic import BaseModel

from monitor.models import (
    ActionType,
    AutomationCompletedAlert,
    BackInRangeAlert,
    ErrorAlert,
    MonitorStartedAlert,
    OutOfRangeAlert,
    RebalanceNeededAlert,
)

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _short_hash(tx_hash: str) -> str:
    if len(tx_hash) <= 12:
        return tx_hash
    return f"{tx_hash[:6]}...{tx_hash[-4:]}"


def format_alert(alert: BaseModel) -> str:
    """Render an alert payload as a Markdown message."""
    if isinstance(alert, OutOfRangeAlert):
        title = "Initial check: LP position OUT of range" if alert.initial else "LP position OUT of range"
        return (
            f"🚨 *{title}*\n\n"
            f"Position: `{alert.position_name}`\n"
            f"Current price: `{alert.current_price:.8f}`\n"
            f"Range: `{alert.lower_price:.8f}` - `{alert.upper_price:.8f}`\n"
            f"Deviation: `{alert.deviation_percent:.2f}%`\n\n"
            f"The position is not earning fees. Consider rebalancing.\n"
            f"Time: {_timestamp()}"
        )
    if isinstance(alert, BackInRangeAlert):
        return (
            f"✅ *LP position back in range*\n\n"
            f"Position: `{alert.position_name}`\n"
            f"Current price: `{alert.current_price:.8f}`\n\n"
            f"Time: {_timestamp()}"
        )
    if isinstance(alert, AutomationCompletedAlert):
        verb = "Compound" if alert.action == ActionType.COMPOUND else "Claim"
        message = (
            f"{'🔄' if alert.action == ActionType.COMPOUND else '💰'} *Auto {verb} executed*\n\n"
            f"Position: `{alert.position_name}`\n"
            f"Amount:\n"
            f"• {alert.amount0:.6f} {alert.token0_symbol}\n"
            f"• {alert.amount1:.6f} {alert.token1_symbol}\n"
            f"Time: {_timestamp()}"
        )
        if alert.tx_hash:
            message += f"\nTx: `{_short_hash(alert.tx_hash)}`"
        return message
    if isinstance(alert, RebalanceNeededAlert):
        return (
            f"⚖️ *Rebalance needed*\n\n"
            f"Position: `{alert.position_name}`\n"
            f"Current price: `{alert.current_price:.8f}`\n"
            f"Deviation: `{alert.deviation_percent:.2f}%` "
            f"(threshold `{alert.threshold_percent:.2f}%`)\n"
            f"Time: {_timestamp()}"
        )
    if isinstance(alert, ErrorAlert):
        return (
            f"❌ *Monitor error*\n\n"
            f"`{alert.message}`\n\n"
            f"Check the logs for details.\n"
            f"Time: {_timestamp()}"
        )
    if isinstance(alert, MonitorStartedAlert):
        return (
            f"🤖 *LP monitor started*\n\n"
            f"Positions: `{alert.position_count}`\n"
            f"Check interval: {alert.check_interval_minutes:g} min\n\n"
            f"You will be notified when a position leaves or re-enters its range "
            f"and when automation runs.\n"
            f"Time: {_timestamp()}"
        )
    raise ValueError(f"Unsupported alert type {type(alert).__name__}")


class TelegramNotifier:
    """Sends alerts to a Telegram chat through the Bot API."""

    def __init__(self, bot_token: Optional[str], chat_id: Optional[str], timeout: int = 10):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def notify(self, alert: BaseModel) -> bool:
        """Format and send an alert; returns whether Telegram accepted it."""
        try:
            message = format_alert(alert)
        except ValueError as e:
            logger.error(f"Cannot format alert: {e}")
            return False
        return await self.send_message(message)

    async def send_message(self, message: str, parse_mode: str = "Markdown") -> bool:
        if not self.configured:
            logger.warning("Telegram not configured. Skipping notification.")
            logger.info(f"Message would be sent:\n{message}")
            return False

        url = f"{TELEGRAM_API_URL}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        try:
            # requests is blocking; run it off the event loop so cancellation stays prompt
            response = await asyncio.to_thread(
                requests.post, url, json=payload, timeout=self.timeout
            )
            if response.status_code == 200 and response.json().get("ok"):
                logger.info("Telegram notification sent")
                return True
            logger.error(f"Telegram error: {response.status_code} - {response.text}")
            return False
        except Exception as e:
            logger.error(f"Failed to send Telegram message: {e}")
            return False
