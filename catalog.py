# catalog.py — fixed label sets and unit prices
# - Les libellés (tailles, coloris) sont figés au déploiement : tout libellé inconnu est rejeté ici
from enum import Enum


class Family(str, Enum):
    TSHIRT = "tshirt"
    CAP = "cap"


class Size(str, Enum):
    S = "S"
    M = "M"
    L = "L"
    XL = "XL"
    XXL = "XXL"


class CapColor(str, Enum):
    BLACK = "Black"
    BEIGE = "Beige"


class PaymentMethod(str, Enum):
    QR = "qr"
    CASH = "cash"


CURRENCY = "RM"

UNIT_PRICES = {
    Family.TSHIRT: 89.0,
    Family.CAP: 49.0,
}

_LABELS = {
    Family.TSHIRT: Size,
    Family.CAP: CapColor,
}

# normalised key -> (family, canonical label)
_INDEX = {
    member.value.strip().lower(): (family, member.value)
    for family, enum_cls in _LABELS.items()
    for member in enum_cls
}


def _norm(s) -> str:
    return str(s or "").strip().lower()


def labels(family: Family) -> list[str]:
    return [m.value for m in _LABELS[family]]


def all_labels() -> list[str]:
    return labels(Family.TSHIRT) + labels(Family.CAP)


def parse_label(raw, family: Family|None = None) -> str|None:
    """Canonical label for `raw` ("  m " -> "M"), or None when unknown.

    When `family` is given, a label of the other family counts as unknown.
    """
    hit = _INDEX.get(_norm(raw))
    if hit is None:
        return None
    fam, label = hit
    if family is not None and fam != family:
        return None
    return label


def family_of(label: str) -> Family|None:
    hit = _INDEX.get(_norm(label))
    return hit[0] if hit else None


def unit_price(family: Family) -> float:
    return UNIT_PRICES[family]


def zero_stock(family: Family|None = None) -> dict[str, int]:
    keys = labels(family) if family is not None else all_labels()
    return {k: 0 for k in keys}
