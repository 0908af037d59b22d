"""
Checkout price arithmetic: duration discounts, add-on totals, promo deduction, display formatting.
Pure functions; callers load catalog rows and pass them in.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

# Smallest displayed unit per currency (IDR: whole rupiah, USD: cents)
CURRENCY_DECIMALS = {"IDR": 0, "USD": 2}
NO_PRICE = "—"


def round_money(value: float | Decimal, currency: str = "IDR") -> float:
    """Half-up rounding to the currency's smallest displayed unit."""
    places = CURRENCY_DECIMALS.get((currency or "IDR").upper(), 2)
    quant = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quant, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def _num(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        n = float(value)
    except (TypeError, ValueError):
        return default
    return n if n == n and n not in (float("inf"), float("-inf")) else default


def _get(row: Any, name: str, default: Any = None) -> Any:
    if isinstance(row, Mapping):
        return row.get(name, default)
    return getattr(row, name, default)


def discount_by_months(rows: Iterable[Any]) -> dict[int, float]:
    """{duration_months: discount_percent} from active duration rows (dicts or PackageDuration)."""
    out: dict[int, float] = {}
    for row in rows or []:
        if _get(row, "is_active", True) is False:
            continue
        months = int(_num(_get(row, "duration_months"), 0))
        if months <= 0:
            continue
        out[months] = _num(_get(row, "discount_percent"), 0)
    return out


def duration_factor(months: int, billing_period: str = "monthly") -> float:
    if billing_period == "annual":
        return months / 12
    return float(months)


def compute_duration_price(
    base_price: float | None,
    months: int | None,
    discount_percent: float = 0,
    billing_period: str = "monthly",
    currency: str = "IDR",
    override_price: float | None = None,
) -> float | None:
    """
    max(0, base × factor × (1 − discount/100)), rounded for the currency.
    None when the duration is missing (rendered as "—").
    A positive override_price (manual plan price) wins over the computed discount.
    """
    if months is None or int(months) <= 0:
        return None
    if override_price is not None and _num(override_price) > 0:
        return round_money(max(0.0, _num(override_price)), currency)
    if base_price is None:
        return None
    discount = min(100.0, max(0.0, _num(discount_percent)))
    factor = duration_factor(int(months), billing_period)
    total = Decimal(str(_num(base_price))) * Decimal(str(factor)) * (Decimal(100) - Decimal(str(discount))) / Decimal(100)
    return round_money(max(Decimal(0), total), currency)


def compute_discounted_total(monthly_price: float, months: int, discount_percent: float = 0) -> float | None:
    return compute_duration_price(monthly_price, months, discount_percent, billing_period="monthly")


def add_ons_total(
    package_add_ons: Iterable[Any],
    quantities: Mapping[str, Any] | None,
    subscription_add_ons: Iterable[Any] = (),
    selected: Mapping[str, bool] | None = None,
    months: int = 1,
) -> float:
    """
    (Σ price_per_unit × qty + Σ selected subscription add-on price) × months.
    Unknown ids and non-positive quantities are ignored; quantities above max_quantity are capped.
    """
    quantities = quantities or {}
    selected = selected or {}
    per_month = 0.0
    for add_on in package_add_ons or []:
        qty = int(_num(quantities.get(str(_get(add_on, "id"))), 0))
        if qty <= 0:
            continue
        max_qty = _get(add_on, "max_quantity")
        if max_qty is not None and qty > int(max_qty):
            qty = int(max_qty)
        per_month += _num(_get(add_on, "price_per_unit")) * qty
    for add_on in subscription_add_ons or []:
        if selected.get(str(_get(add_on, "id"))):
            per_month += _num(_get(add_on, "price_idr"))
    return max(0.0, per_month) * max(0, int(months or 0))


@dataclass
class OrderQuote:
    duration_price: float | None
    add_ons_total: float
    base_total: float | None
    discount: float
    total: float | None
    currency: str = "IDR"

    def as_dict(self) -> dict:
        return {
            "currency": self.currency,
            "duration_price": self.duration_price,
            "add_ons_total": self.add_ons_total,
            "base_total": self.base_total,
            "discount": self.discount,
            "total": self.total,
            "total_display": format_price(self.total, self.currency),
        }


def build_quote(
    duration_price: float | None,
    add_ons: float = 0,
    promo_discount: float = 0,
    currency: str = "IDR",
) -> OrderQuote:
    if duration_price is None:
        return OrderQuote(None, round_money(add_ons, currency), None, 0, None, currency)
    base_total = round_money(duration_price + add_ons, currency)
    discount = round_money(min(max(0.0, _num(promo_discount)), base_total), currency)
    total = round_money(max(0.0, base_total - discount), currency)
    return OrderQuote(duration_price, round_money(add_ons, currency), base_total, discount, total, currency)


def format_price(value: float | None, currency: str = "IDR") -> str:
    """'Rp 1.250.000' / '$1,250.00'; '—' when there is no price."""
    if value is None:
        return NO_PRICE
    currency = (currency or "IDR").upper()
    if currency == "IDR":
        whole = int(round_money(value, "IDR"))
        return "Rp " + f"{whole:,}".replace(",", ".")
    if currency == "USD":
        return f"${round_money(value, 'USD'):,.2f}"
    return f"{round_money(value, currency):,.2f} {currency}"


def usd_to_idr(amount_usd: float, rate: float) -> int:
    """Amount charged through Midtrans: at least 1 rupiah."""
    return max(1, int(round_money(_num(amount_usd) * _num(rate), "IDR")))
