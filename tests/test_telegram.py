"""Unit tests for utils.telegram."""

from datetime import datetime

import requests

from pattern_trader.core.types import Alert, PatternKind, Signal
from pattern_trader.utils import telegram
from pattern_trader.utils.telegram import format_alert, send_telegram, telegram_notifier


class FakeResponse:
    def __init__(self, status_code, text=""):
        self.status_code = status_code
        self.text = text


def test_not_configured_skips():
    assert send_telegram("hi") is False


def test_send_posts_payload(monkeypatch):
    sent = {}

    def fake_post(url, json, timeout):
        sent.update(url=url, json=json, timeout=timeout)
        return FakeResponse(200)

    monkeypatch.setattr(telegram.requests, "post", fake_post)
    assert telegram_notifier("TOKEN", "42")("hello") is True
    assert sent["url"].endswith("/botTOKEN/sendMessage")
    assert sent["json"] == {"chat_id": "42", "text": "hello"}


def test_send_failure_returns_false(monkeypatch):
    monkeypatch.setattr(telegram.requests, "post", lambda url, json, timeout: FakeResponse(401, "Unauthorized"))
    assert send_telegram("x", "t", "c") is False

    def boom(url, json, timeout):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(telegram.requests, "post", boom)
    assert send_telegram("x", "t", "c") is False


def test_format_alert():
    alert = Alert("BTCUSDT", PatternKind.BULLISH_ENGULFING, Signal.BUY, 80, datetime(2024, 1, 1), "r1")
    text = format_alert(alert)
    assert text.startswith("BUY BTCUSDT: bullish engulfing")
    assert "Confidence 80%" in text and "Rule r1" in text
