"""
utils.py
Dates, renewal arithmetic, money formatting, search/sort helpers, validation, exports.
"""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

import pandas as pd

from calculations import plan_years, to_decimal
from models import (
    RENEWAL_ALERT_DAYS,
    STATUS_CURRENT,
    STATUS_DUE_SOON,
    STATUS_OVERDUE,
    Invoice,
)

_LEADING_NUMBER = re.compile(r"\d+")
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


# ---------- Dates ----------

def today() -> date:
    return date.today()


def parse_local_date(value) -> date | None:
    """
    Read a calendar date from "YYYY-MM-DD" (or an ISO timestamp, whose time
    part is ignored). Returns None when the value is not a valid date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    head = value.strip().split("T")[0].split(" ")[0]
    # fromisoformat also takes "20240315" and week dates on newer Pythons
    if not _ISO_DATE.fullmatch(head):
        return None
    try:
        return date.fromisoformat(head)
    except ValueError:
        return None


def format_date(d: date | None) -> str:
    if d is None:
        return "—"
    return d.strftime("%d/%m/%Y")


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def add_years(start: date, years: int) -> date:
    # Feb 29 lands on Feb 28 in non-leap years
    return add_months(start, years * 12)


def semester_window_of(d: date) -> tuple[date, date]:
    if d.month <= 6:
        return date(d.year, 1, 1), date(d.year, 6, 30)
    return date(d.year, 7, 1), date(d.year, 12, 31)


def month_bounds(d: date) -> tuple[date, date]:
    start = d.replace(day=1)
    end = add_months(start, 1) - timedelta(days=1)
    return start, end


def previous_month_bounds(d: date) -> tuple[date, date]:
    return month_bounds(d.replace(day=1) - timedelta(days=1))


# ---------- Renewals ----------

def due_date(installation_date: date, plan: str) -> date:
    return add_years(installation_date, plan_years(plan))


def days_remaining(due: date, ref: date | None = None) -> int:
    return (due - (ref or today())).days


def classify_renewal(days: int) -> str:
    if days < 0:
        return STATUS_OVERDUE
    if days <= RENEWAL_ALERT_DAYS:
        return STATUS_DUE_SOON
    return STATUS_CURRENT


# ---------- Invoices ----------

def profit(invoice: Invoice) -> Decimal:
    return invoice.gross_total - invoice.derived.commission - invoice.derived.total_vat


def invoice_number_key(number) -> int:
    match = _LEADING_NUMBER.search(str(number or ""))
    return int(match.group()) if match else 0


def sort_by_invoice_number(invoices: list[Invoice]) -> list[Invoice]:
    return sorted(invoices, key=lambda inv: invoice_number_key(inv.invoice_number), reverse=True)


def filter_by_period(invoices: list[Invoice], start: date, end: date) -> list[Invoice]:
    """Invoices dated within [start, end], oldest first. Undated invoices are left out."""
    selected = [
        inv for inv in invoices
        if inv.invoice_date is not None and start <= inv.invoice_date <= end
    ]
    return sorted(selected, key=lambda inv: inv.invoice_date)


def normalize_search(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def matches_search(text: str | None, query: str) -> bool:
    if not query or not query.strip():
        return True
    if not text:
        return False
    return normalize_search(query) in normalize_search(text)


# ---------- Formatting ----------

def format_currency(amount) -> str:
    """$1.234,56 style, two decimals, half-up."""
    value = to_decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    body = f"{abs(value):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    return f"{sign}${body}"


# ---------- Validation ----------

def validate_invoice_inputs(dealer: str, invoice_number: str, gross_total, client: str, invoice_date) -> list[str]:
    errors: list[str] = []
    if not dealer.strip():
        errors.append("La comercializadora es obligatoria.")
    if not invoice_number.strip():
        errors.append("El número de factura es obligatorio.")
    if not client.strip():
        errors.append("El cliente es obligatorio.")
    try:
        if to_decimal(gross_total) <= 0:
            errors.append("El valor total debe ser mayor que cero.")
    except ValueError:
        errors.append("El valor total debe ser numérico.")
    if parse_local_date(invoice_date) is None:
        errors.append("La fecha de factura no es válida (AAAA-MM-DD).")
    return errors


# ---------- Exports ----------

def to_csv_bytes(df: pd.DataFrame) -> bytes:
    return df.to_csv(index=False).encode("utf-8")
