"""
models.py
Domain constants (plans, fee schedule) and dataclasses.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from types import MappingProxyType

# Plan codes: contract years, optionally with the Cayambe regional surcharge
PLAN_CODES = ("1", "2", "3", "1-cayambe", "2-cayambe", "3-cayambe")

# Fixed fee per plan (VAT included)
FIXED_FEE_SCHEDULE = MappingProxyType({
    "1": Decimal("208"),
    "2": Decimal("301"),
    "3": Decimal("394"),
    "1-cayambe": Decimal("228"),  # 208 + 20
    "2-cayambe": Decimal("321"),  # 301 + 20
    "3-cayambe": Decimal("414"),  # 394 + 20
})

VAT_RATE = Decimal("0.15")

RENEWAL_ALERT_DAYS = 15

STATUS_OVERDUE = "Vencido"
STATUS_DUE_SOON = "Próximo a vencer"
STATUS_CURRENT = "Vigente"
RENEWAL_STATUSES = (STATUS_OVERDUE, STATUS_DUE_SOON, STATUS_CURRENT)

FUEL_TYPES = {
    "DIESEL": "Diesel",
    "GASOLINA": "Gasolina",
    "ELECTRICO": "Eléctrico",
    "HIBRIDO": "Híbrido",
}


class InvalidPlanError(ValueError):
    """Plan code outside the fee schedule."""


class InvoiceNotFoundError(LookupError):
    pass


@dataclass(frozen=True)
class DerivedValues:
    fixed_fee: Decimal
    excess: Decimal
    vat_on_excess: Decimal
    commission: Decimal
    vat_on_fee: Decimal
    total_vat: Decimal


@dataclass(frozen=True)
class VehicleData:
    model: str | None = None
    year: int | None = None
    fuel_type: str | None = None  # key of FUEL_TYPES
    plate: str | None = None
    color: str | None = None
    city: str | None = None
    address: str | None = None
    phone: str | None = None
    delivery_date: date | None = None  # installation date

    def is_empty(self) -> bool:
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                value = value.strip()
            if value not in (None, ""):
                return False
        return True


@dataclass(frozen=True)
class InvoiceInput:
    """What a caller supplies; derived values are never part of it."""
    dealer: str
    invoice_number: str
    gross_total: Decimal
    plan: str
    invoice_date: date
    client: str
    vehicle: VehicleData | None = None
    paid: bool = False
    will_not_renew: bool = False


@dataclass(frozen=True)
class Invoice:
    id: int | None
    dealer: str
    invoice_number: str
    gross_total: Decimal
    plan: str
    invoice_date: date | None  # None when the stored value is not a valid date
    client: str
    derived: DerivedValues
    vehicle: VehicleData | None = None
    paid: bool = False
    will_not_renew: bool = False
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def installation_date(self) -> date | None:
        return self.vehicle.delivery_date if self.vehicle else None


@dataclass(frozen=True)
class SemesterCut:
    start: date
    end: date
    invoices: list[Invoice] = field(default_factory=list)
    total_vat: Decimal = Decimal("0")

    @property
    def label(self) -> str:
        half = "Enero-Junio" if self.start.month < 7 else "Julio-Diciembre"
        return f"{half} {self.start.year}"


@dataclass(frozen=True)
class RenewalInfo:
    invoice: Invoice
    due_date: date
    days_remaining: int
    status: str  # one of RENEWAL_STATUSES
