"""Utils: Telegram notifications."""

from pattern_trader.utils.telegram import format_alert, format_trade, send_telegram, telegram_notifier

__all__ = ["format_alert", "format_trade", "send_telegram", "telegram_notifier"]
