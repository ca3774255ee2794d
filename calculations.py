"""
calculations.py
Invoice valuation: fixed fee, excess, VAT split and commission.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from loguru import logger

from models import (
    FIXED_FEE_SCHEDULE,
    PLAN_CODES,
    VAT_RATE,
    DerivedValues,
    InvalidPlanError,
)


def to_decimal(value) -> Decimal:
    """
    Convert a money amount to Decimal through its string form, so 500, 500.0
    and "500" produce the same value. Non-finite amounts are rejected.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a monetary amount: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount


def normalize_plan(value) -> str:
    """
    Map a stored plan value to its canonical code.

    Older records stored the duration as a bare integer. Those are turned into
    "1"/"2"/"3"; a Cayambe contract saved that way cannot be told apart and is
    priced as the plain plan.
    """
    if isinstance(value, str):
        code = value.strip().lower()
        if code in PLAN_CODES:
            return code
        raise InvalidPlanError(f"Unknown plan code: {value!r}")

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if float(value).is_integer() and str(int(value)) in PLAN_CODES:
            logger.debug("Legacy numeric plan {!r} coerced to '{}'", value, int(value))
            return str(int(value))

    raise InvalidPlanError(f"Unknown plan code: {value!r}")


def plan_years(plan: str) -> int:
    """Contract duration in years; malformed codes fall back to 1."""
    head = str(plan).replace("-cayambe", "").strip()
    years = int(head[0]) if head[:1].isdigit() else 0
    if not 1 <= years <= 3:
        logger.warning("Cannot read duration from plan {!r}, assuming 1 year", plan)
        return 1
    return years


def plan_label(plan: str) -> str:
    if "cayambe" in plan:
        return f"{plan.split('-')[0]} año(s) Cayambe"
    return f"{plan} año(s)"


def compute_invoice_values(
    gross_total,
    plan: str,
    schedule: Mapping[str, Decimal] = FIXED_FEE_SCHEDULE,
) -> DerivedValues:
    """
    Split a gross invoice amount for the given plan.

    The order of operations is fixed (commission is gross - fee - VAT on excess)
    and nothing is rounded here; rounding belongs to display.
    Negative excess is valid (under-priced invoice).
    """
    try:
        fixed_fee = schedule[plan]
    except KeyError:
        raise InvalidPlanError(f"Unknown plan code: {plan!r}") from None

    gross = to_decimal(gross_total)
    excess = gross - fixed_fee
    vat_on_excess = excess * VAT_RATE
    commission = gross - fixed_fee - vat_on_excess
    vat_on_fee = fixed_fee * VAT_RATE
    total_vat = vat_on_fee + vat_on_excess

    return DerivedValues(
        fixed_fee=fixed_fee,
        excess=excess,
        vat_on_excess=vat_on_excess,
        commission=commission,
        vat_on_fee=vat_on_fee,
        total_vat=total_vat,
    )
