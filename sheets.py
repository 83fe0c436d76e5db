# sheets.py — Ledger (Google Sheets) : lecture du stock + enregistrement des ventes
# - Stock par libellé (taille / coloris) depuis l'onglet "Balance" (colonnes A: libellé, B: quantité)
# - L'écriture passe par le webhook Google Apps Script, qui décrémente le Balance
import asyncio
import logging

import aiohttp
import gspread
from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from gspread.exceptions import GSpreadException

import config
from catalog import Family, labels, parse_label, zero_stock
from errors import ConfigurationMissing, LedgerUnavailable, LedgerWriteFailed
from models import SaleRecord

_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
_gc = _sh = None
_sh_key = _gc_key = None


# -------- Sheets client --------
def _ensure_client(cfg: config.Settings):
    global _gc, _sh, _sh_key, _gc_key
    try:
        sheet_id = config.require(cfg.sheet_id, "GOOGLE_SHEET_ID")
    except ConfigurationMissing as e:
        raise LedgerUnavailable(str(e)) from e
    if _gc is None or _gc_key != cfg.service_account_file:
        creds = Credentials.from_service_account_file(cfg.service_account_file, scopes=_SCOPES)
        _gc = gspread.authorize(creds)
        _gc_key = cfg.service_account_file
        _sh = None
    if _sh is None or _sh_key != sheet_id:
        _sh = _gc.open_by_key(sheet_id)
        _sh_key = sheet_id
    return _sh


def _fetch_rows(cfg: config.Settings) -> list[list]:
    sh = _ensure_client(cfg)
    data = sh.values_get(cfg.ledger_range)
    return data.get("values", [])


# -------- parsing --------
def _parse_qty(raw) -> int|None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    s = str(raw or "").strip().replace(",", "")
    if not s:
        return None
    try:
        return int(s)
    except ValueError:
        pass
    try:
        f = float(s)
    except ValueError:
        return None
    return int(f) if f.is_integer() else None


def parse_stock_rows(rows, policy: str = "zero") -> dict[str, int]:
    """Rows of (label, quantity) -> stock for every known label.

    Unknown labels are ignored. A malformed quantity cell is read as 0
    (`zero`), leaves the label untouched (`skip`) or fails the whole read
    (`strict`).
    """
    stock = zero_stock()
    for row in rows or []:
        if len(row) < 2:
            continue
        label = parse_label(row[0])
        if label is None:
            logging.debug("Ledger label ignored: %r", row[0])
            continue
        q = _parse_qty(row[1])
        if q is None:
            if policy == "strict":
                raise LedgerUnavailable(f"Malformed quantity for {label}: {row[1]!r}")
            if policy == "skip":
                logging.warning("⚠️ Malformed quantity for %s skipped: %r", label, row[1])
                continue
            logging.warning("⚠️ Malformed quantity for %s read as 0: %r", label, row[1])
            q = 0
        stock[label] = q
    return stock


def split_stock(stock: dict[str, int]) -> tuple[dict[str, int], dict[str, int]]:
    inventory = {k: int(stock.get(k, 0)) for k in labels(Family.TSHIRT)}
    cap_inventory = {k: int(stock.get(k, 0)) for k in labels(Family.CAP)}
    return inventory, cap_inventory


# ---------- STOCK ----------
def read_stock(cfg: config.Settings|None = None) -> dict[str, int]:
    cfg = cfg or config.settings
    try:
        rows = _fetch_rows(cfg)
    except LedgerUnavailable:
        raise
    except (GSpreadException, GoogleAuthError, OSError, ValueError) as e:
        raise LedgerUnavailable(f"Google Sheets API error: {e}") from e
    logging.info("Sheet data from %s: %s", cfg.ledger_range, rows)
    if not rows:
        raise LedgerUnavailable(f"No data found in {cfg.ledger_range}")
    return parse_stock_rows(rows, cfg.qty_policy)


def inventory_snapshot(cfg: config.Settings|None = None) -> dict:
    """Payload of GET /inventory. Never partial: ledger errors give the zero maps."""
    try:
        inventory, cap_inventory = split_stock(read_stock(cfg))
    except LedgerUnavailable as e:
        logging.error("❌ Error fetching inventory: %s", e)
        inventory, cap_inventory = split_stock(zero_stock())
        return {
            "inventory": inventory,
            "capInventory": cap_inventory,
            "fallback": True,
            "error": str(e),
        }
    return {"inventory": inventory, "capInventory": cap_inventory}


# -------- Sales ----------
async def _post_json(url: str, payload: dict, timeout: float) -> tuple[int, str]:
    async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
        async with session.post(url, json=payload) as res:
            return res.status, await res.text()


async def record_sale(record: SaleRecord, cfg: config.Settings|None = None) -> str:
    """Single POST of the sale to the Apps Script webhook; returns its reply text."""
    cfg = cfg or config.settings
    try:
        url = config.require(cfg.apps_script_url, "GOOGLE_APPS_SCRIPT_URL")
    except ConfigurationMissing as e:
        raise LedgerWriteFailed(str(e)) from e

    payload = record.to_payload()
    logging.info("📦 Final payload to sheet: %s", payload)
    try:
        status, text = await _post_json(url, payload, cfg.ledger_timeout)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise LedgerWriteFailed(f"Google Apps Script unreachable: {e!r}") from e

    logging.info("📝 Google Apps Script response: %s %s", status, text)
    if not 200 <= status < 300:
        logging.error("❌ Google Apps Script error: %s %s", status, text)
        raise LedgerWriteFailed(f"Google Apps Script error: {status} - {text}")
    return text
