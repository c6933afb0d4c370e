"""Telegram notifications for alerts and closed trades. Never log token or chat_id."""

from __future__ import annotations
import logging
from typing import Callable

import requests

from pattern_trader.core.types import Alert, Trade

logger = logging.getLogger("pattern_trader.utils.telegram")


def send_telegram(text: str, bot_token: str = "", chat_id: str = "") -> bool:
    """Send message to Telegram. Returns True on success. Uses empty strings if not configured."""
    if not bot_token or not chat_id:
        logger.debug("Telegram not configured, skipping message (len=%d)", len(text))
        return False
    url = f"https://api.telegram.org/bot{bot_token}/sendMessage"
    try:
        r = requests.post(url, json={"chat_id": chat_id, "text": text}, timeout=10)
    except requests.RequestException as e:
        logger.warning("Telegram error: %s", e.__class__.__name__)
        return False
    if r.status_code != 200:
        logger.warning("Telegram send failed: %s %s", r.status_code, r.text[:200])
        return False
    return True


def format_alert(alert: Alert) -> str:
    lines = [
        f"{alert.signal.value.upper()} {alert.symbol}: {alert.pattern.value.replace('_', ' ')}",
        f"Confidence {alert.confidence}%",
    ]
    if alert.message:
        lines.append(alert.message)
    if alert.rule_id:
        lines.append(f"Rule {alert.rule_id}")
    return "\n".join(lines)


def format_trade(trade: Trade) -> str:
    return (
        f"Closed {trade.direction.value} {trade.symbol} ({trade.exit_reason.value})\n"
        f"{trade.shares:g} @ {trade.entry_price:.4f} -> {trade.exit_price:.4f}\n"
        f"PnL {trade.pnl:+.2f} ({trade.pnl_pct:+.2f}%)"
    )


def telegram_notifier(bot_token: str, chat_id: str) -> Callable[[str], bool]:
    """Bind credentials into a one-argument notifier for the scanner and monitor."""
    def notify(text: str) -> bool:
        return send_telegram(text, bot_token, chat_id)
    return notify
