# cart.py — panier côté client (kiosque / front) + client HTTP du backend
# - Le stock affiché est décrémenté de façon optimiste, sans appel serveur ; il est remplacé à chaque refresh
# - Le panier est persisté à chaque modification (équivalent du localStorage du navigateur)
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable

import aiohttp

from catalog import Family, PaymentMethod, family_of, parse_label, unit_price, zero_stock
from errors import EmptyCart
from models import CartLine, Order, coerce_qty

CART_KEY = "cart"
CHECKOUT_KEY = "checkoutData"


class LocalStore:
    """Key/value JSON store; in memory when no path is given."""

    def __init__(self, path: str|os.PathLike|None = None):
        self.path = Path(path) if path else None
        self._mem: dict = {}

    def _load(self) -> dict:
        if self.path is None:
            return self._mem
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError:
            logging.warning("⚠️ Local store %s is corrupted, starting empty", self.path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict) -> None:
        if self.path is None:
            self._mem = data
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self.path)

    def get(self, key: str, default=None):
        return self._load().get(key, default)

    def set(self, key: str, value) -> None:
        data = dict(self._load())
        data[key] = value
        self._save(data)

    def remove(self, key: str) -> None:
        data = dict(self._load())
        if data.pop(key, None) is not None:
            self._save(data)


def _lines_from_payload(data: dict|None) -> list[CartLine]:
    out = []
    for it in (data or {}).get("cart") or []:
        out.append(CartLine(Family.TSHIRT, str(it.get("size", "")), coerce_qty(it.get("quantity"))))
    for it in (data or {}).get("capCart") or []:
        out.append(CartLine(Family.CAP, str(it.get("color", "")), coerce_qty(it.get("quantity"))))
    return out


class CartState:
    def __init__(self, store: LocalStore, stock: dict[str, int]|None = None):
        self.store = store
        self.stock = zero_stock()
        self.fallback = False
        self.lines: dict[str, int] = {}  # canonical label -> qty, in insertion order
        if stock:
            self._set_stock(stock)
        self._restore()

    # ---------- persistence ----------
    def _restore(self) -> None:
        for line in _lines_from_payload(self.store.get(CART_KEY)):
            label = parse_label(line.label, line.family)
            if label and line.quantity > 0:
                self.lines[label] = self.lines.get(label, 0) + line.quantity

    def _persist(self) -> None:
        self.store.set(CART_KEY, self._snapshot_lines())

    def _snapshot_lines(self) -> dict:
        return {
            "cart": [{"size": k, "quantity": q} for k, q in self.lines.items() if family_of(k) == Family.TSHIRT],
            "capCart": [{"color": k, "quantity": q} for k, q in self.lines.items() if family_of(k) == Family.CAP],
        }

    def _set_stock(self, stock: dict) -> None:
        for k, v in stock.items():
            label = parse_label(k)
            if label is None:
                logging.debug("Stock label ignored: %r", k)
                continue
            self.stock[label] = int(v)

    # ---------- stock ----------
    def refresh(self, snapshot: dict) -> None:
        """Replace the displayed stock with a GET /inventory payload; empties the cart."""
        self.lines.clear()
        self.stock = zero_stock()
        self._set_stock(snapshot.get("inventory") or {})
        self._set_stock(snapshot.get("capInventory") or {})
        self.fallback = bool(snapshot.get("fallback"))
        self._persist()

    async def reload(self, client: "StorefrontClient") -> None:
        self.lines.clear()
        self._persist()
        try:
            snapshot = await client.fetch_inventory()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logging.error("❌ Error fetching inventory: %s", e)
            return
        self.refresh(snapshot)

    # ---------- lines ----------
    def add_line(self, label: str) -> bool:
        key = parse_label(label)
        if key is None or self.stock.get(key, 0) <= 0:
            return False
        self.lines[key] = self.lines.get(key, 0) + 1
        self.stock[key] -= 1
        self._persist()
        return True

    def remove_line(self, label: str) -> bool:
        key = parse_label(label)
        if key is None or key not in self.lines:
            return False
        if self.lines[key] > 1:
            self.lines[key] -= 1
        else:
            del self.lines[key]
        self.stock[key] += 1
        self._persist()
        return True

    def total_items(self) -> int:
        return sum(self.lines.values())

    def total_price(self) -> float:
        return round(sum(q * unit_price(family_of(k)) for k, q in self.lines.items()), 2)

    # ---------- checkout ----------
    def checkout(self) -> Order:
        if not self.lines:
            raise EmptyCart("Cart is empty")
        order = Order(
            lines=tuple(CartLine(family_of(k), k, q) for k, q in self.lines.items()),
            total_price=self.total_price(),
            total_items=self.total_items(),
        )
        data = order.to_payload()
        data.pop("paymentMethod")
        self.store.set(CHECKOUT_KEY, data)
        return order

    def pending_order(self) -> Order|None:
        data = self.store.get(CHECKOUT_KEY)
        if not data:
            return None
        return Order(
            lines=tuple(_lines_from_payload(data)),
            total_price=float(data.get("totalPrice", 0)),
            total_items=int(data.get("totalItems", 0)),
        )

    async def confirm_payment(self, method: PaymentMethod|str,
                              submit: Callable[[dict], Awaitable[dict]]) -> dict|None:
        """Send the pending order, then clear the cart whatever happened.

        A network failure is only logged: the caller moves on to the success
        screen either way, so a lost sale is visible in logs only.
        """
        order = self.pending_order()
        if order is None:
            raise EmptyCart("No checkout in progress")
        order = order.with_payment(PaymentMethod(method))

        result = None
        try:
            result = await submit(order.to_payload())
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            # ValueError: non-JSON reply (proxy error page)
            logging.error("❌ Error processing payment: %s", e)
        finally:
            self.reset()

        if not isinstance(result, dict):
            if result is not None:
                logging.error("❌ Unexpected reply from /process-sale: %r", result)
            return None
        if not result.get("success"):
            logging.error("❌ Sale not recorded: %s", result.get("error"))
        return result

    def reset(self) -> None:
        self.lines.clear()
        self.store.remove(CART_KEY)
        self.store.remove(CHECKOUT_KEY)


class StorefrontClient:
    def __init__(self, base_url: str, timeout: float = 15.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def fetch_inventory(self) -> dict:
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.get(f"{self.base_url}/inventory") as res:
                res.raise_for_status()
                return await res.json()

    async def submit_sale(self, payload: dict) -> dict:
        # 500 carries a JSON body too
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(f"{self.base_url}/process-sale", json=payload) as res:
                return await res.json(content_type=None)
