# models.py — order / sale record values + request body schema
# - Order et SaleRecord sont immuables : construits une fois au checkout, jamais modifiés ensuite
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from catalog import Family, PaymentMethod, all_labels, labels
from errors import AggregationInvalid


def coerce_qty(v) -> int:
    """Whole, non-negative quantity; anything malformed counts as 0."""
    if v is None or isinstance(v, bool):
        return 0
    if isinstance(v, int):
        return max(v, 0)
    if isinstance(v, float):
        return int(v) if v.is_integer() and v > 0 else 0
    s = str(v).strip()
    if s.isdigit():
        return int(s)
    return 0


@dataclass(frozen=True)
class CartLine:
    family: Family
    label: str
    quantity: int


@dataclass(frozen=True)
class Order:
    lines: tuple[CartLine, ...]
    total_price: float
    total_items: int
    payment_method: PaymentMethod|None = None

    def of(self, family: Family) -> tuple[CartLine, ...]:
        return tuple(ln for ln in self.lines if ln.family == family)

    def with_payment(self, method: PaymentMethod) -> "Order":
        return Order(self.lines, self.total_price, self.total_items, PaymentMethod(method))

    def to_payload(self) -> dict:
        """Body of POST /process-sale."""
        return {
            "cart": [{"size": ln.label, "quantity": ln.quantity} for ln in self.of(Family.TSHIRT)],
            "capCart": [{"color": ln.label, "quantity": ln.quantity} for ln in self.of(Family.CAP)],
            "totalPrice": self.total_price,
            "totalItems": self.total_items,
            "paymentMethod": self.payment_method.value if self.payment_method else None,
        }


@dataclass(frozen=True)
class SaleRecord:
    quantities: dict[str, int]
    total_items: int
    total_price: float
    payment_method: PaymentMethod
    unknown_labels: tuple[str, ...] = field(default=())

    def sold(self, family: Family|None = None) -> dict[str, int]:
        keys = labels(family) if family is not None else all_labels()
        return {k: self.quantities[k] for k in keys}

    def to_payload(self) -> dict:
        """Flat JSON sent to the ledger webhook."""
        out: dict[str, Any] = {k: int(self.quantities[k]) for k in all_labels()}
        out["totalItems"] = int(self.total_items)
        out["totalPrice"] = float(self.total_price)
        out["paymentMethod"] = self.payment_method.value
        return out


# -------- request body (POST /process-sale) --------
class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CartLineIn(_Lenient):
    size: Any = None
    quantity: Any = 0


class CapLineIn(_Lenient):
    color: Any = None
    quantity: Any = 0


class ProcessSaleIn(_Lenient):
    cart: list[CartLineIn]
    capCart: list[CapLineIn]|None = None
    totalPrice: float|None = None
    totalItems: int|None = None
    paymentMethod: PaymentMethod


def _first_error(e: ValidationError) -> str:
    err = e.errors()[0]
    where = ".".join(str(x) for x in err.get("loc", ())) or "body"
    return f"Invalid sale request: {where}: {err.get('msg', 'invalid')}"


def order_from_payload(payload) -> Order:
    """Build the immutable Order from a raw JSON body.

    Labels are kept as sent (normalisation happens in aggregation); the
    totals are the client's and get checked against the catalog later.
    """
    if not isinstance(payload, dict):
        raise AggregationInvalid("Invalid sale request: body must be a JSON object")
    try:
        body = ProcessSaleIn.model_validate(payload)
    except ValidationError as e:
        raise AggregationInvalid(_first_error(e)) from e

    lines = [CartLine(Family.TSHIRT, str(it.size or ""), coerce_qty(it.quantity)) for it in body.cart]
    lines += [CartLine(Family.CAP, str(it.color or ""), coerce_qty(it.quantity)) for it in body.capCart or []]
    return Order(
        lines=tuple(lines),
        total_price=float(body.totalPrice or 0),
        total_items=int(body.totalItems or 0),
        payment_method=body.paymentMethod,
    )
