"""
reports.py
Report builders: semester VAT cuts, renewals, installation/payment summary, profit.
Each returns plain data; *_frame helpers turn it into DataFrames for display/CSV.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pandas as pd

import utils
from calculations import plan_label
from models import FUEL_TYPES, RENEWAL_STATUSES, Invoice, RenewalInfo, SemesterCut


# ---------- VAT ----------

def bucket_invoices_by_semester(invoices: list[Invoice]) -> list[SemesterCut]:
    groups: dict[date, list[Invoice]] = {}
    for inv in invoices:
        if inv.invoice_date is None:
            continue
        start, _ = utils.semester_window_of(inv.invoice_date)
        groups.setdefault(start, []).append(inv)

    cuts = []
    for start in sorted(groups):
        members = groups[start]
        _, end = utils.semester_window_of(start)
        total = sum((inv.derived.total_vat for inv in members), Decimal("0"))
        cuts.append(SemesterCut(start=start, end=end, invoices=members, total_vat=total))
    return cuts


def period_vat_total(invoices: list[Invoice], start: date, end: date) -> tuple[int, Decimal]:
    selected = utils.filter_by_period(invoices, start, end)
    return len(selected), sum((inv.derived.total_vat for inv in selected), Decimal("0"))


def semester_detail_frame(cut: SemesterCut) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Fecha": utils.format_date(inv.invoice_date),
                "Comercial": inv.dealer,
                "N° Fact": inv.invoice_number,
                "Cliente": inv.client,
                "Valor Total": utils.format_currency(inv.gross_total),
                "IVA Ganancia Propia": utils.format_currency(inv.derived.vat_on_fee),
                "IVA Excedente": utils.format_currency(inv.derived.vat_on_excess),
                "Total IVA": utils.format_currency(inv.derived.total_vat),
            }
            for inv in sorted(cut.invoices, key=lambda i: i.invoice_date)
        ],
        columns=["Fecha", "Comercial", "N° Fact", "Cliente", "Valor Total",
                 "IVA Ganancia Propia", "IVA Excedente", "Total IVA"],
    )


# ---------- Renewals ----------

def renewal_info(invoice: Invoice, ref: date | None = None) -> RenewalInfo | None:
    """None when the vehicle has no installation date: renewal does not apply yet."""
    installed = invoice.installation_date
    if installed is None:
        return None
    due = utils.due_date(installed, invoice.plan)
    days = utils.days_remaining(due, ref)
    return RenewalInfo(invoice=invoice, due_date=due, days_remaining=days, status=utils.classify_renewal(days))


def renewal_report(
    invoices: list[Invoice],
    ref: date | None = None,
    status: str | None = None,
    will_renew: bool | None = None,
) -> list[RenewalInfo]:
    """
    Renewal rows for installed vehicles, soonest due first.
    status filters to one of RENEWAL_STATUSES; will_renew=False keeps only
    clients who said they will not renew, True the rest.
    """
    if status is not None and status not in RENEWAL_STATUSES:
        raise ValueError(f"Unknown renewal status: {status!r}")

    rows = []
    for inv in invoices:
        info = renewal_info(inv, ref)
        if info is None:
            continue
        if status is not None and info.status != status:
            continue
        if will_renew is not None and inv.will_not_renew == will_renew:
            continue
        rows.append(info)
    return sorted(rows, key=lambda r: r.days_remaining)


def count_without_installation(invoices: list[Invoice]) -> int:
    return sum(1 for inv in invoices if inv.installation_date is None)


def renewal_frame(rows: list[RenewalInfo]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Comercial": r.invoice.dealer,
                "N° Fact": r.invoice.invoice_number,
                "Cliente": r.invoice.client,
                "Placa": (r.invoice.vehicle.plate if r.invoice.vehicle else None) or "—",
                "Fecha Instal.": utils.format_date(r.invoice.installation_date),
                "Fecha Venc.": utils.format_date(r.due_date),
                "Días": r.days_remaining,
                "Estado": r.status,
                "Renovación": "No renovará" if r.invoice.will_not_renew else "Pendiente",
                "Valor Total": utils.format_currency(r.invoice.gross_total),
            }
            for r in rows
        ],
        columns=["Comercial", "N° Fact", "Cliente", "Placa", "Fecha Instal.", "Fecha Venc.",
                 "Días", "Estado", "Renovación", "Valor Total"],
    )


# ---------- Installation / payment summary ----------

def installation_report(
    invoices: list[Invoice],
    installed: bool | None = None,
    paid: bool | None = None,
    plate: str = "",
    client: str = "",
    city: str = "",
) -> list[Invoice]:
    rows = []
    for inv in invoices:
        vehicle = inv.vehicle
        if installed is not None and (inv.installation_date is not None) != installed:
            continue
        if paid is not None and inv.paid != paid:
            continue
        if plate and not utils.matches_search(vehicle.plate if vehicle else None, plate):
            continue
        if client and not utils.matches_search(inv.client, client):
            continue
        if city and not utils.matches_search(vehicle.city if vehicle else None, city):
            continue
        rows.append(inv)
    return rows


def unique_cities(invoices: list[Invoice]) -> list[str]:
    cities = {inv.vehicle.city.strip() for inv in invoices if inv.vehicle and inv.vehicle.city and inv.vehicle.city.strip()}
    return sorted(cities, key=utils.normalize_search)


def installation_frame(invoices: list[Invoice]) -> pd.DataFrame:
    def vehicle_field(inv: Invoice, name: str):
        value = getattr(inv.vehicle, name) if inv.vehicle else None
        return value if value not in (None, "") else "—"

    return pd.DataFrame(
        [
            {
                "Comercial": inv.dealer,
                "Fecha factura": utils.format_date(inv.invoice_date),
                "Fecha instal.": utils.format_date(inv.installation_date),
                "N° Fact": inv.invoice_number,
                "Cliente": inv.client,
                "Valor Total": utils.format_currency(inv.gross_total),
                "Años Serv.": inv.plan.replace("-cayambe", ""),
                "Instalación": "Instalado" if inv.installation_date else "Pendiente",
                "Pago": "Pagada" if inv.paid else "Pendiente",
                "Modelo": vehicle_field(inv, "model"),
                "Tipo": FUEL_TYPES.get(vehicle_field(inv, "fuel_type"), vehicle_field(inv, "fuel_type")),
                "Color": vehicle_field(inv, "color"),
                "Placa": vehicle_field(inv, "plate"),
                "Ciudad": vehicle_field(inv, "city"),
            }
            for inv in invoices
        ],
        columns=["Comercial", "Fecha factura", "Fecha instal.", "N° Fact", "Cliente", "Valor Total",
                 "Años Serv.", "Instalación", "Pago", "Modelo", "Tipo", "Color", "Placa", "Ciudad"],
    )


# ---------- Profit ----------

@dataclass(frozen=True)
class ProfitTotals:
    gross_total: Decimal
    commission: Decimal
    total_vat: Decimal
    profit: Decimal


def profit_report(invoices: list[Invoice], start: date, end: date) -> tuple[list[Invoice], ProfitTotals]:
    rows = utils.filter_by_period(invoices, start, end)
    zero = Decimal("0")
    totals = ProfitTotals(
        gross_total=sum((inv.gross_total for inv in rows), zero),
        commission=sum((inv.derived.commission for inv in rows), zero),
        total_vat=sum((inv.derived.total_vat for inv in rows), zero),
        profit=sum((utils.profit(inv) for inv in rows), zero),
    )
    return rows, totals


def profit_frame(rows: list[Invoice], totals: ProfitTotals) -> pd.DataFrame:
    records = [
        {
            "Fecha": utils.format_date(inv.invoice_date),
            "N° Fact": inv.invoice_number,
            "Cliente": inv.client,
            "Valor Total": utils.format_currency(inv.gross_total),
            "Comisión Val": utils.format_currency(inv.derived.commission),
            "Total IVA": utils.format_currency(inv.derived.total_vat),
            "Ganancia": utils.format_currency(utils.profit(inv)),
        }
        for inv in rows
    ]
    records.append({
        "Fecha": "TOTAL",
        "N° Fact": "",
        "Cliente": "",
        "Valor Total": utils.format_currency(totals.gross_total),
        "Comisión Val": utils.format_currency(totals.commission),
        "Total IVA": utils.format_currency(totals.total_vat),
        "Ganancia": utils.format_currency(totals.profit),
    })
    return pd.DataFrame(records)


# ---------- Invoice list ----------

def invoices_frame(invoices: list[Invoice]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "ID": inv.id,
                "Fecha": utils.format_date(inv.invoice_date),
                "Comercial": inv.dealer,
                "N° Fact": inv.invoice_number,
                "Cliente": inv.client,
                "Valor Total": utils.format_currency(inv.gross_total),
                "Años": plan_label(inv.plan),
                "Valor Fijo": utils.format_currency(inv.derived.fixed_fee),
                "Excedente": utils.format_currency(inv.derived.excess),
                "Comisión Val": utils.format_currency(inv.derived.commission),
                "Total IVA": utils.format_currency(inv.derived.total_vat),
                "Pago": "Pagada" if inv.paid else "Pendiente",
                "No renovará": "Sí" if inv.will_not_renew else "",
            }
            for inv in invoices
        ],
        columns=["ID", "Fecha", "Comercial", "N° Fact", "Cliente", "Valor Total", "Años", "Valor Fijo",
                 "Excedente", "Comisión Val", "Total IVA", "Pago", "No renovará"],
    )
