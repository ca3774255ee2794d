import os
import sys
from datetime import date
from decimal import Decimal

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import db  # noqa: E402
from calculations import compute_invoice_values  # noqa: E402
from models import Invoice, VehicleData  # noqa: E402


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Fresh SQLite file with tables and a default admin."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db("not-a-real-hash")
    return tmp_path / "test.db"


@pytest.fixture
def make_invoice():
    """Build an in-memory Invoice with consistent derived values."""
    counter = iter(range(1, 10_000))

    def _make(
        gross="500",
        plan="1",
        invoice_date=date(2024, 3, 15),
        number=None,
        client="José Pérez",
        installed=None,
        plate=None,
        city=None,
        paid=False,
        will_not_renew=False,
    ):
        invoice_id = next(counter)
        vehicle = None
        if installed or plate or city:
            vehicle = VehicleData(plate=plate, city=city, delivery_date=installed)
        return Invoice(
            id=invoice_id,
            dealer="AutoSeguro",
            invoice_number=number or f"INV-{invoice_id:03d}",
            gross_total=Decimal(gross),
            plan=plan,
            invoice_date=invoice_date,
            client=client,
            derived=compute_invoice_values(Decimal(gross), plan),
            vehicle=vehicle,
            paid=paid,
            will_not_renew=will_not_renew,
        )

    return _make
