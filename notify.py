# notify.py — alerte de vente Telegram
# - Échec d'envoi = NotificationFailed ; l'appelant se contente de le logger
import asyncio
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import aiohttp
from aiogram import Bot
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.utils.token import TokenValidationError

import config
from catalog import CURRENCY, Family, PaymentMethod
from errors import ConfigurationMissing, NotificationFailed
from models import SaleRecord

PAYMENT_TEXT = {
    PaymentMethod.QR: "💳 QR Code",
    PaymentMethod.CASH: "💵 Cash",
}


def money(v: float) -> str:
    return f"{CURRENCY}{float(v):.2f}"


def _timestamp(now: datetime) -> str:
    # en-MY style: 17/10/2026, 03:15:22 pm
    return f"{now:%d/%m/%Y, %I:%M:%S} {now.strftime('%p').lower()}"


def _pairs(m: dict[str, int]) -> str:
    return ", ".join(f"{k}: {v}" for k, v in m.items())


def format_sale_alert(record: SaleRecord, stock: dict[str, int]|None, now: datetime|None = None,
                      tz: str|None = None) -> str:
    """Fixed-template sale summary. `stock` is None when the ledger re-read failed."""
    if now is None:
        name = tz or config.settings.timezone
        try:
            now = datetime.now(ZoneInfo(name))
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise NotificationFailed(f"Unknown TIMEZONE {name!r}") from e

    parts = []
    shirts = {k: v for k, v in record.sold(Family.TSHIRT).items() if v}
    caps = {k: v for k, v in record.sold(Family.CAP).items() if v}
    if shirts:
        parts.append("👕 T-Shirts: " + _pairs(shirts))
    if caps:
        parts.append("🧢 Caps: " + _pairs(caps))

    shirt_stock = cap_stock = ""
    if stock:
        shirt_stock = _pairs({k: v for k, v in stock.items() if k in record.sold(Family.TSHIRT)})
        cap_stock = _pairs({k: v for k, v in stock.items() if k in record.sold(Family.CAP)})

    lines = [
        "🛍️ NEW SALE ALERT!",
        "",
        *parts,
        f"💰 Total Amount: {money(record.total_price)}",
        f"📊 Total Items: {record.total_items}",
        f"{PAYMENT_TEXT[record.payment_method]} Payment Method",
        "",
        "📦 T-Shirt Balance:",
        shirt_stock or "No T-Shirt data",
        "",
        "🧢 Cap Balance:",
        cap_stock or "No Cap data",
        "",
        "✅ Sale recorded successfully",
        f"🕐 {_timestamp(now)}",
    ]
    return "\n".join(lines)


async def send_sale_alert(text: str, cfg: config.Settings|None = None) -> None:
    cfg = cfg or config.settings
    try:
        token = config.require(cfg.telegram_bot_token, "TELEGRAM_BOT_TOKEN")
        chat_id = config.require(cfg.telegram_chat_id, "TELEGRAM_CHAT_ID")
    except ConfigurationMissing as e:
        raise NotificationFailed(str(e)) from e

    extra = {}
    thread_id = (cfg.telegram_thread_id or "").strip()
    if thread_id:
        try:
            extra["message_thread_id"] = int(thread_id)
        except ValueError as e:
            raise NotificationFailed(f"TELEGRAM_THREAD_ID must be an integer, got {thread_id!r}") from e

    try:
        bot = Bot(token)
    except TokenValidationError as e:
        raise NotificationFailed(f"Invalid TELEGRAM_BOT_TOKEN: {e}") from e
    try:
        await bot.send_message(chat_id, text, parse_mode=ParseMode.HTML, **extra)
    except (TelegramAPIError, aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise NotificationFailed(f"Failed to send Telegram message: {e}") from e
    finally:
        await bot.session.close()
