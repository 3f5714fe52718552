"""
Invoice Reconciliation

Tax is levied on the estimated profit of a bank's POS transaction volume:
tax = volume x (profit% / 100) x rate. When a rejected report is revised,
whatever was already paid is carried over and only the difference is due.
Overpayments are never refunded here.
"""

from dataclasses import dataclass
from typing import Optional, Union
import math
import re

TAX_RATE = 0.05  # 5%

Number = Union[int, float]

_AMOUNT_NOISE = re.compile(r"[₦,\s]|NGN", re.IGNORECASE)


@dataclass(frozen=True)
class InvoiceFigures:
    tax_rate: float
    tax_amount: float
    previous_payment_amount: float
    additional_tax_amount: float


def compute_tax(volume: Number, profit_pct: Number, rate: float = TAX_RATE) -> float:
    """
    Tax on a declared volume and profit baseline.

    Inputs are expected to be validated already; out-of-range values raise
    ValueError instead of being coerced.
    """
    if volume < 0:
        raise ValueError("Transaction volume cannot be negative")
    if not 0 <= profit_pct <= 100:
        raise ValueError("Profit baseline must be between 0 and 100")
    return volume * (profit_pct / 100) * rate


def additional_due(tax_amount: Number, previous_payment: Number) -> float:
    """Amount still owed after previous payments, floored at zero"""
    return max(0.0, float(tax_amount) - float(previous_payment))


def reconcile(
    volume: Number,
    profit_pct: Number,
    previous_payment: Number = 0.0,
    rate: float = TAX_RATE
) -> InvoiceFigures:
    """Invoice figures for a (re)submission, rounded to kobo"""
    if previous_payment < 0:
        raise ValueError("Previous payment cannot be negative")
    tax_amount = round(compute_tax(volume, profit_pct, rate), 2)
    previous_payment = round(float(previous_payment), 2)
    return InvoiceFigures(
        tax_rate=rate,
        tax_amount=tax_amount,
        previous_payment_amount=previous_payment,
        additional_tax_amount=round(additional_due(tax_amount, previous_payment), 2),
    )


def parse_amount(raw: Union[str, Number, None]) -> Optional[float]:
    """
    Parse a currency input such as '₦ 25,000,000' or 25000000.

    Returns None for blank or non-numeric input.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw) if math.isfinite(raw) else None
    cleaned = _AMOUNT_NOISE.sub("", str(raw))
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_percentage(raw: Union[str, Number, None]) -> Optional[float]:
    """Parse a percentage input such as '20%' or 20. Returns None when blank or non-numeric."""
    if isinstance(raw, str):
        raw = raw.strip().rstrip("%").strip()
    return parse_amount(raw)
