# sales.py — agrégation panier -> SaleRecord, puis pipeline de vente
# - Pipeline linéaire, sans retry : écriture ledger -> relecture stock -> alerte Telegram
# - Seule l'écriture ledger est bloquante ; relecture et notification continuent en cas d'échec
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum

import config
import notify
import sheets
from catalog import family_of, parse_label, unit_price, zero_stock
from errors import AggregationInvalid, LedgerUnavailable, LedgerWriteFailed, NotificationFailed
from models import Order, SaleRecord, coerce_qty, order_from_payload


# -------- aggregation ----------
def _totals(quantities: dict[str, int]) -> tuple[int, float]:
    items = sum(quantities.values())
    price = sum(q * unit_price(family_of(k)) for k, q in quantities.items())
    return items, round(price, 2)


def order_totals(order: Order) -> tuple[int, float]:
    """(total items, total price) of the order, priced from the catalog."""
    return _totals(aggregate_sale(order).quantities)


def aggregate_sale(order: Order) -> SaleRecord:
    if order.payment_method is None:
        raise AggregationInvalid("Invalid sale request: paymentMethod is required")

    quantities = zero_stock()
    unknown = []
    for line in order.lines:
        label = parse_label(line.label, line.family)
        if label is None:
            unknown.append(line.label)
            continue
        quantities[label] += coerce_qty(line.quantity)
    if unknown:
        logging.warning("⚠️ Unknown labels dropped from sale: %s", unknown)

    items, price = _totals(quantities)
    if order.total_items != items or abs(order.total_price - price) >= 0.005:
        logging.warning(
            "⚠️ Client totals (%s items, %.2f) differ from catalog totals (%s items, %.2f); recording catalog totals",
            order.total_items, order.total_price, items, price,
        )
    return SaleRecord(
        quantities=quantities,
        total_items=items,
        total_price=price,
        payment_method=order.payment_method,
        unknown_labels=tuple(unknown),
    )


# -------- orchestration ----------
class SaleStage(str, Enum):
    RECEIVED = "received"
    AGGREGATED = "aggregated"
    LEDGER_WRITTEN = "ledger_written"
    LEDGER_REREAD = "ledger_reread"
    NOTIFICATION_ATTEMPTED = "notification_attempted"
    COMPLETED = "completed"
    # failures
    AGGREGATION_INVALID = "aggregation_invalid"
    LEDGER_WRITE_FAILED = "ledger_write_failed"
    LEDGER_REREAD_FAILED = "ledger_reread_failed"


@dataclass
class SaleOutcome:
    stage: SaleStage = SaleStage.RECEIVED
    success: bool = False
    message: str|None = None
    error: str|None = None
    notified: bool = False
    record: SaleRecord|None = None
    stock: dict[str, int]|None = None
    trail: list[SaleStage] = field(default_factory=lambda: [SaleStage.RECEIVED])

    def advance(self, stage: SaleStage) -> None:
        self.stage = stage
        self.trail.append(stage)

    def fail(self, stage: SaleStage, error: str) -> "SaleOutcome":
        self.advance(stage)
        self.success = False
        self.error = error or "Unknown error occurred"
        return self

    @property
    def status_code(self) -> int:
        return 200 if self.success else 500

    def to_response(self) -> dict:
        out = {"success": self.success}
        if self.message is not None:
            out["message"] = self.message
        if self.error is not None:
            out["error"] = self.error
        return out


async def process_sale(payload, cfg: config.Settings|None = None) -> SaleOutcome:
    """Record one sale in the ledger, re-read stock and send the alert.

    `payload` is the raw POST /process-sale body or an already built Order.
    """
    cfg = cfg or config.settings
    outcome = SaleOutcome()

    try:
        order = payload if isinstance(payload, Order) else order_from_payload(payload)
        record = aggregate_sale(order)
    except AggregationInvalid as e:
        logging.error("❌ %s", e)
        return outcome.fail(SaleStage.AGGREGATION_INVALID, str(e))
    outcome.record = record
    outcome.advance(SaleStage.AGGREGATED)

    try:
        reply = await sheets.record_sale(record, cfg)
    except LedgerWriteFailed as e:
        logging.error("❌ Error sending sale to Apps Script: %s", e)
        return outcome.fail(SaleStage.LEDGER_WRITE_FAILED, str(e))
    outcome.message = reply
    outcome.advance(SaleStage.LEDGER_WRITTEN)

    # la vente est enregistrée : tout ce qui suit est best-effort
    try:
        outcome.stock = await asyncio.to_thread(sheets.read_stock, cfg)
        outcome.advance(SaleStage.LEDGER_REREAD)
    except LedgerUnavailable as e:
        logging.warning("⚠️ Ledger re-read failed after sale: %s", e)
        outcome.advance(SaleStage.LEDGER_REREAD_FAILED)
    except Exception as e:
        logging.exception("⚠️ Unexpected error re-reading ledger after sale: %s", e)
        outcome.advance(SaleStage.LEDGER_REREAD_FAILED)

    try:
        text = notify.format_sale_alert(record, outcome.stock, tz=cfg.timezone)
        await notify.send_sale_alert(text, cfg)
        outcome.notified = True
    except NotificationFailed as e:
        logging.error("❌ %s", e)
    except Exception as e:
        logging.exception("❌ Unexpected error sending sale alert: %s", e)
    outcome.advance(SaleStage.NOTIFICATION_ATTEMPTED)

    outcome.success = True
    outcome.advance(SaleStage.COMPLETED)
    return outcome
