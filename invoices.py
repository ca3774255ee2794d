"""
invoices.py
Invoice storage: create/update/delete/list on SQLite, row <-> Invoice mapping.

Derived values are always recomputed here from gross total and plan, in the
same statement that writes them; whatever a caller supplies is ignored.
"""

from __future__ import annotations

import dataclasses
import json
from datetime import date, timedelta
from decimal import Decimal

from loguru import logger

import db
from calculations import compute_invoice_values, normalize_plan, to_decimal
from models import (
    DerivedValues,
    InvalidPlanError,
    Invoice,
    InvoiceInput,
    InvoiceNotFoundError,
    VehicleData,
)
from utils import parse_local_date

_UPDATABLE = {f.name for f in dataclasses.fields(InvoiceInput)}


# ---------- Mapping ----------

def vehicle_to_json(vehicle: VehicleData | None) -> str | None:
    if vehicle is None or vehicle.is_empty():
        return None
    doc = {}
    for f in dataclasses.fields(vehicle):
        value = getattr(vehicle, f.name)
        if isinstance(value, str):
            value = value.strip() or None
        if value is None:
            continue
        doc[f.name] = value.isoformat() if isinstance(value, date) else value
    return json.dumps(doc, ensure_ascii=False)


def vehicle_from_json(raw: str | None) -> VehicleData | None:
    if not raw:
        return None
    doc = json.loads(raw)
    if doc.get("delivery_date") is not None:
        doc["delivery_date"] = parse_local_date(doc["delivery_date"])
    known = {f.name for f in dataclasses.fields(VehicleData)}
    vehicle = VehicleData(**{k: v for k, v in doc.items() if k in known})
    return None if vehicle.is_empty() else vehicle


def row_to_invoice(row) -> Invoice:
    """Load boundary: plan codes and dates are normalized here, once."""
    raw_plan = row["plan"]
    try:
        plan = normalize_plan(raw_plan)
    except InvalidPlanError:
        logger.warning("Invoice {} has unknown plan {!r}", row["id"], raw_plan)
        plan = str(raw_plan)

    invoice_date = parse_local_date(row["invoice_date"])
    if invoice_date is None:
        logger.warning("Invoice {} has unparseable date {!r}", row["id"], row["invoice_date"])

    return Invoice(
        id=row["id"],
        dealer=row["dealer"],
        invoice_number=row["invoice_number"],
        gross_total=Decimal(row["gross_total"]),
        plan=plan,
        invoice_date=invoice_date,
        client=row["client"],
        derived=DerivedValues(
            fixed_fee=Decimal(row["fixed_fee"]),
            excess=Decimal(row["excess"]),
            vat_on_excess=Decimal(row["vat_on_excess"]),
            commission=Decimal(row["commission"]),
            vat_on_fee=Decimal(row["vat_on_fee"]),
            total_vat=Decimal(row["total_vat"]),
        ),
        vehicle=vehicle_from_json(row["vehicle"]),
        paid=bool(row["paid"]),
        will_not_renew=bool(row["will_not_renew"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _derived_params(gross_total: Decimal, plan: str) -> tuple:
    d = compute_invoice_values(gross_total, plan)
    return (
        str(d.fixed_fee), str(d.excess), str(d.vat_on_excess),
        str(d.commission), str(d.vat_on_fee), str(d.total_vat),
    )


# ---------- Storage operations ----------

def _insert_invoice(conn, data: InvoiceInput) -> int:
    plan = normalize_plan(data.plan)
    gross = to_decimal(data.gross_total)
    now = db.utc_now_iso()
    cur = conn.execute(
        """
        INSERT INTO invoices(dealer, invoice_number, gross_total, plan, invoice_date, client,
            fixed_fee, excess, vat_on_excess, commission, vat_on_fee, total_vat,
            vehicle, paid, will_not_renew, created_at, updated_at)
        VALUES(?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            data.dealer.strip(), data.invoice_number.strip(), str(gross), plan,
            data.invoice_date.isoformat(), data.client.strip(),
            *_derived_params(gross, plan),
            vehicle_to_json(data.vehicle), int(data.paid), int(data.will_not_renew), now, now,
        ),
    )
    logger.info("Created invoice {} ({}, plan {})", cur.lastrowid, data.invoice_number, plan)
    return cur.lastrowid


def create_invoice(data: InvoiceInput) -> int:
    with db.get_conn() as conn:
        return _insert_invoice(conn, data)


def update_invoice(invoice_id: int, **changes) -> None:
    """
    Partial update. Any InvoiceInput field may be passed; derived values are
    recomputed from the resulting gross total and plan in the same write.
    vehicle=None (or an empty VehicleData) removes the vehicle data.
    """
    unknown = set(changes) - _UPDATABLE
    if unknown:
        raise ValueError(f"Unknown invoice fields: {sorted(unknown)}")

    current = get_invoice(invoice_id)
    if current is None:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} does not exist")

    gross = to_decimal(changes.get("gross_total", current.gross_total))
    plan = normalize_plan(changes.get("plan", current.plan))

    columns = {"gross_total": str(gross), "plan": plan}
    for name in ("dealer", "invoice_number", "client"):
        if name in changes:
            columns[name] = changes[name].strip()
    if "invoice_date" in changes:
        columns["invoice_date"] = changes["invoice_date"].isoformat()
    if "vehicle" in changes:
        columns["vehicle"] = vehicle_to_json(changes["vehicle"])
    for name in ("paid", "will_not_renew"):
        if name in changes:
            columns[name] = int(bool(changes[name]))

    derived_names = ("fixed_fee", "excess", "vat_on_excess", "commission", "vat_on_fee", "total_vat")
    columns.update(zip(derived_names, _derived_params(gross, plan)))
    columns["updated_at"] = db.utc_now_iso()

    assignments = ", ".join(f"{name}=?" for name in columns)
    db.execute(
        f"UPDATE invoices SET {assignments} WHERE id=?",
        (*columns.values(), invoice_id),
    )
    logger.info("Updated invoice {} ({})", invoice_id, ", ".join(sorted(changes)) or "recompute")


def delete_invoice(invoice_id: int) -> None:
    deleted = db.execute_rowcount("DELETE FROM invoices WHERE id = ?", (invoice_id,))
    logger.info("Deleted invoice {} (rows: {})", invoice_id, deleted)


def get_invoice(invoice_id: int) -> Invoice | None:
    row = db.fetch_one("SELECT * FROM invoices WHERE id = ?", (invoice_id,))
    return row_to_invoice(row) if row else None


def list_invoices() -> list[Invoice]:
    rows = db.fetch_all("SELECT * FROM invoices ORDER BY substr(invoice_date, 1, 10) DESC, id DESC")
    return [row_to_invoice(r) for r in rows]


def list_invoices_by_date_range(start: date, end: date) -> list[Invoice]:
    """Invoices dated start..end, both days included, newest first."""
    rows = db.fetch_all(
        """
        SELECT * FROM invoices
        WHERE substr(invoice_date, 1, 10) BETWEEN ? AND ?
        ORDER BY substr(invoice_date, 1, 10) DESC, id DESC
        """,
        (start.isoformat(), end.isoformat()),
    )
    # Text that sorts inside the range may still not be a real date
    found = [row_to_invoice(r) for r in rows]
    return [inv for inv in found if inv.invoice_date is not None and start <= inv.invoice_date <= end]


# ---------- Legacy import ----------

def document_to_input(doc: dict) -> InvoiceInput:
    """
    Build an InvoiceInput from an exported document of the previous system
    (Spanish keys, plan possibly stored as a bare integer).
    """
    invoice_date = parse_local_date(doc.get("fechaFactura"))
    if invoice_date is None:
        raise ValueError(f"Invalid invoice date: {doc.get('fechaFactura')!r}")

    vehicle = None
    raw_vehicle = doc.get("datosVehiculo") or {}
    if raw_vehicle:
        vehicle = VehicleData(
            model=raw_vehicle.get("modelo"),
            year=raw_vehicle.get("ano"),
            fuel_type=raw_vehicle.get("tipo"),
            plate=raw_vehicle.get("placa"),
            color=raw_vehicle.get("color"),
            city=raw_vehicle.get("ciudad"),
            address=raw_vehicle.get("direccion"),
            phone=raw_vehicle.get("telefono"),
            delivery_date=parse_local_date(raw_vehicle.get("fechaEntrega")),
        )

    return InvoiceInput(
        dealer=str(doc.get("comercializadora", "")),
        invoice_number=str(doc.get("numeroFactura", "")),
        gross_total=to_decimal(doc.get("valorTotal")),
        plan=normalize_plan(doc.get("anosServicio")),
        invoice_date=invoice_date,
        client=str(doc.get("cliente", "")),
        vehicle=vehicle,
        paid=bool(doc.get("pagada", False)),
        will_not_renew=bool(doc.get("noDeseaRenovar", False)),
    )


def import_documents(docs: list[dict]) -> list[int]:
    """All-or-nothing: every document is validated first, then inserted in one transaction."""
    inputs = [document_to_input(d) for d in docs]
    with db.get_conn() as conn:
        ids = [_insert_invoice(conn, data) for data in inputs]
    logger.info("Imported {} invoice(s)", len(ids))
    return ids


# ---------- Sample data ----------

def insert_sample_data() -> None:
    """
    Insert 4 invoices covering each renewal status (adds new rows each time).
    """
    today = date.today()
    samples = [
        InvoiceInput("AutoSeguro", "001-001-000120", Decimal("500"), "1", today - timedelta(days=40),
                     "José Pérez",
                     VehicleData(model="Hilux", year=2022, fuel_type="DIESEL", plate="PBA-1234",
                                 color="Blanco", city="Quito",
                                 delivery_date=today - timedelta(days=355)),
                     paid=True),
        InvoiceInput("AutoSeguro", "001-001-000121", Decimal("301"), "2", today - timedelta(days=10),
                     "María Gómez"),
        InvoiceInput("Rastreo Norte", "000-77", Decimal("650"), "3-cayambe", today - timedelta(days=200),
                     "Andrés Ñúñez",
                     VehicleData(model="Sportage", year=2021, fuel_type="GASOLINA", plate="IBC-0981",
                                 color="Gris", city="Cayambe",
                                 delivery_date=today - timedelta(days=190))),
        InvoiceInput("Rastreo Norte", "000-80", Decimal("420"), "1-cayambe", today - timedelta(days=400),
                     "Lucía Andrade",
                     VehicleData(plate="PCD-5521", city="Cayambe",
                                 delivery_date=today - timedelta(days=370)),
                     paid=True, will_not_renew=True),
    ]
    for s in samples:
        create_invoice(s)
