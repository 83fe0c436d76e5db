import asyncio
from datetime import datetime

import aiohttp
import pytest

import config
import notify
from catalog import PaymentMethod, zero_stock
from errors import NotificationFailed
from models import SaleRecord

NOW = datetime(2026, 10, 17, 15, 5, 9)


def _record(method=PaymentMethod.CASH, **qty):
    quantities = zero_stock()
    quantities.update(qty)
    return SaleRecord(quantities, sum(qty.values()), 227.0, method)


def test_alert_lists_sale_stock_and_timestamp():
    stock = {"S": 10, "M": 3, "L": 0, "XL": 1, "XXL": 2, "Black": 2, "Beige": 5}
    text = notify.format_sale_alert(_record(PaymentMethod.QR, M=2, Black=1), stock, NOW)

    assert text.splitlines() == [
        "🛍️ NEW SALE ALERT!",
        "",
        "👕 T-Shirts: M: 2",
        "🧢 Caps: Black: 1",
        "💰 Total Amount: RM227.00",
        "📊 Total Items: 3",
        "💳 QR Code Payment Method",
        "",
        "📦 T-Shirt Balance:",
        "S: 10, M: 3, L: 0, XL: 1, XXL: 2",
        "",
        "🧢 Cap Balance:",
        "Black: 2, Beige: 5",
        "",
        "✅ Sale recorded successfully",
        "🕐 17/10/2026, 03:05:09 pm",
    ]


def test_alert_without_stock_uses_placeholders():
    text = notify.format_sale_alert(_record(S=1), None, NOW)
    assert "👕 T-Shirts: S: 1" in text
    assert "🧢 Caps" not in text
    assert "💵 Cash Payment Method" in text
    assert "No T-Shirt data" in text
    assert "No Cap data" in text


def test_send_uses_html_and_closes_session(settings, telegram):
    asyncio.run(notify.send_sale_alert("hello"))
    assert telegram.sent == [{"chat_id": "-100200", "text": "hello", "parse_mode": "HTML"}]
    assert "message_thread_id" not in telegram.sent[0]
    assert telegram.Session.closed


def test_send_routes_to_thread_when_configured(monkeypatch, telegram):
    monkeypatch.setattr(config, "settings", config.Settings(
        telegram_bot_token="123456:ABC", telegram_chat_id="-100200", telegram_thread_id=" 42 "))
    asyncio.run(notify.send_sale_alert("hello"))
    assert telegram.sent[0]["message_thread_id"] == 42


@pytest.mark.parametrize("token, chat", [(None, "-100200"), ("123456:ABC", None)])
def test_send_without_config_fails(monkeypatch, telegram, token, chat):
    monkeypatch.setattr(config, "settings", config.Settings(telegram_bot_token=token, telegram_chat_id=chat))
    with pytest.raises(NotificationFailed, match="is not set"):
        asyncio.run(notify.send_sale_alert("hello"))
    assert telegram.sent == []


def test_bad_thread_id(monkeypatch, telegram):
    monkeypatch.setattr(config, "settings", config.Settings(
        telegram_bot_token="123456:ABC", telegram_chat_id="-100200", telegram_thread_id="general"))
    with pytest.raises(NotificationFailed, match="TELEGRAM_THREAD_ID"):
        asyncio.run(notify.send_sale_alert("hello"))


def test_transport_error_is_wrapped(settings, telegram):
    telegram.error = aiohttp.ClientConnectionError("no route")
    with pytest.raises(NotificationFailed, match="no route"):
        asyncio.run(notify.send_sale_alert("hello"))
    assert telegram.Session.closed


def test_unknown_timezone_is_a_notification_failure():
    with pytest.raises(NotificationFailed, match="Mars/Olympus"):
        notify.format_sale_alert(_record(S=1), None, tz="Mars/Olympus")
