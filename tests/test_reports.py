"""
Tests for report builders.
"""

from datetime import date
from decimal import Decimal

import pytest

import reports
from models import STATUS_CURRENT, STATUS_DUE_SOON, STATUS_OVERDUE


class TestSemesterCuts:
    def test_groups_and_sums(self, make_invoice):
        invs = [
            make_invoice(gross="500", plan="1", invoice_date=date(2024, 3, 15)),
            make_invoice(gross="301", plan="2", invoice_date=date(2024, 6, 30)),
            make_invoice(gross="301", plan="2", invoice_date=date(2024, 7, 1)),
            make_invoice(gross="500", plan="1", invoice_date=date(2023, 12, 31)),
        ]
        cuts = reports.bucket_invoices_by_semester(invs)

        assert [(c.start, c.end) for c in cuts] == [
            (date(2023, 7, 1), date(2023, 12, 31)),
            (date(2024, 1, 1), date(2024, 6, 30)),
            (date(2024, 7, 1), date(2024, 12, 31)),
        ]
        assert [len(c.invoices) for c in cuts] == [1, 2, 1]
        assert cuts[1].total_vat == Decimal("75.0") + Decimal("45.15")
        assert cuts[1].label == "Enero-Junio 2024"
        assert cuts[2].label == "Julio-Diciembre 2024"

    def test_skips_invalid_dates(self, make_invoice):
        cuts = reports.bucket_invoices_by_semester([make_invoice(invoice_date=None)])
        assert cuts == []

    def test_period_total(self, make_invoice):
        invs = [
            make_invoice(gross="500", plan="1", invoice_date=date(2024, 3, 15)),
            make_invoice(gross="301", plan="2", invoice_date=date(2024, 4, 1)),
        ]
        count, total = reports.period_vat_total(invs, date(2024, 3, 1), date(2024, 3, 31))
        assert count == 1
        assert total == Decimal("75.0")

    def test_detail_frame(self, make_invoice):
        cut = reports.bucket_invoices_by_semester([make_invoice(gross="500", plan="1")])[0]
        df = reports.semester_detail_frame(cut)
        assert df.iloc[0]["Total IVA"] == "$75,00"


class TestRenewalReport:
    REF = date(2024, 12, 27)

    @pytest.fixture
    def invoices(self, make_invoice):
        return [
            make_invoice(plan="1", installed=date(2024, 1, 10), number="A-1"),            # 14 days
            make_invoice(plan="1", installed=date(2023, 12, 1), number="A-2",
                         will_not_renew=True),                                              # overdue
            make_invoice(plan="2", installed=date(2024, 1, 10), number="A-3"),            # current
            make_invoice(plan="3", installed=None, number="A-4"),                          # excluded
            make_invoice(plan="3", plate="PBA-1", installed=None, number="A-5"),           # excluded
        ]

    def test_statuses_and_order(self, invoices):
        rows = reports.renewal_report(invoices, ref=self.REF)
        assert [r.invoice.invoice_number for r in rows] == ["A-2", "A-1", "A-3"]
        assert [r.status for r in rows] == [STATUS_OVERDUE, STATUS_DUE_SOON, STATUS_CURRENT]
        assert rows[1].due_date == date(2025, 1, 10)
        assert rows[1].days_remaining == 14

    def test_uninstalled_never_appear(self, invoices):
        for status in (None, STATUS_OVERDUE, STATUS_DUE_SOON, STATUS_CURRENT):
            numbers = {r.invoice.invoice_number for r in reports.renewal_report(invoices, ref=self.REF, status=status)}
            assert not numbers & {"A-4", "A-5"}
        assert reports.renewal_info(invoices[3], self.REF) is None

    def test_filter_by_status(self, invoices):
        rows = reports.renewal_report(invoices, ref=self.REF, status=STATUS_DUE_SOON)
        assert [r.invoice.invoice_number for r in rows] == ["A-1"]

    def test_filter_by_renewal_intent(self, invoices):
        not_renewing = reports.renewal_report(invoices, ref=self.REF, will_renew=False)
        renewing = reports.renewal_report(invoices, ref=self.REF, will_renew=True)
        assert [r.invoice.invoice_number for r in not_renewing] == ["A-2"]
        assert [r.invoice.invoice_number for r in renewing] == ["A-1", "A-3"]

    def test_unknown_status(self, invoices):
        with pytest.raises(ValueError):
            reports.renewal_report(invoices, status="Expired")

    def test_count_without_installation(self, invoices):
        assert reports.count_without_installation(invoices) == 2

    def test_frame(self, invoices):
        df = reports.renewal_frame(reports.renewal_report(invoices, ref=self.REF))
        assert list(df["Renovación"]) == ["No renovará", "Pendiente", "Pendiente"]
        assert list(df["Días"])[1] == 14


class TestInstallationReport:
    @pytest.fixture
    def invoices(self, make_invoice):
        return [
            make_invoice(client="José Pérez", installed=date(2024, 2, 1), plate="PBA-1234", city="Quito", paid=True),
            make_invoice(client="María Gómez", plate="IBC-0981", city="Cayambe"),
            make_invoice(client="Andrés Núñez", city="quito"),
            make_invoice(client="Lucía Andrade"),
        ]

    def test_installed_and_paid_filters(self, invoices):
        assert len(reports.installation_report(invoices, installed=True)) == 1
        assert len(reports.installation_report(invoices, installed=False)) == 3
        assert len(reports.installation_report(invoices, paid=True)) == 1
        assert len(reports.installation_report(invoices, paid=False)) == 3

    def test_text_filters(self, invoices):
        assert [i.client for i in reports.installation_report(invoices, client="jose")] == ["José Pérez"]
        assert [i.client for i in reports.installation_report(invoices, client="NUNEZ")] == ["Andrés Núñez"]
        assert len(reports.installation_report(invoices, city="Quito")) == 2
        assert [i.client for i in reports.installation_report(invoices, plate="ibc")] == ["María Gómez"]

    def test_unique_cities(self, invoices):
        cities = reports.unique_cities(invoices)
        assert cities[0] == "Cayambe"
        assert set(cities) == {"Cayambe", "Quito", "quito"}

    def test_frame(self, invoices):
        df = reports.installation_frame(invoices)
        assert list(df["Instalación"]) == ["Instalado", "Pendiente", "Pendiente", "Pendiente"]
        assert df.iloc[3]["Placa"] == "—"


class TestProfitReport:
    def test_totals(self, make_invoice):
        invs = [
            make_invoice(gross="500", plan="1", invoice_date=date(2024, 3, 2)),
            make_invoice(gross="301", plan="2", invoice_date=date(2024, 3, 1)),
            make_invoice(gross="999", plan="3", invoice_date=date(2024, 4, 1)),
        ]
        rows, totals = reports.profit_report(invs, date(2024, 3, 1), date(2024, 3, 31))
        assert [r.invoice_date for r in rows] == [date(2024, 3, 1), date(2024, 3, 2)]
        assert totals.gross_total == Decimal("801")
        assert totals.commission == Decimal("248.2")
        assert totals.total_vat == Decimal("120.15")
        assert totals.profit == totals.gross_total - totals.commission - totals.total_vat

    def test_frame_has_total_row(self, make_invoice):
        rows, totals = reports.profit_report([make_invoice()], date(2024, 1, 1), date(2024, 12, 31))
        df = reports.profit_frame(rows, totals)
        assert df.iloc[-1]["Fecha"] == "TOTAL"
        assert df.iloc[-1]["Ganancia"] == "$176,80"


def test_invoices_frame_labels(make_invoice):
    df = reports.invoices_frame([make_invoice(plan="2-cayambe", gross="321")])
    assert df.iloc[0]["Años"] == "2 año(s) Cayambe"
    assert df.iloc[0]["Valor Fijo"] == "$321,00"
