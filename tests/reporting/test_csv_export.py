"""Tests for payroll CSV export."""

from datetime import date
from decimal import Decimal

import pytest

from personnel_ledger.ledger.ledger import PayrollLedger
from personnel_ledger.ledger.schemas import CorrectionRequest, HoursBreakdown
from personnel_ledger.reporting.csv_export import CSV_COLUMNS, PayrollCsvExporter

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)

HEADER = (
    "employee_number,employee_name,project_name,report_date,regular_hours,"
    "overtime_hours,doubletime_hours,total_hours,hourly_rate,overtime_rate,total_pay"
)


@pytest.fixture
async def ana(make_identity):
    return await make_identity("Ana Perez", employee_number="E-1", hourly_rate="30.00")


async def post(
    ledger: PayrollLedger,
    identity_id: str,
    day: date,
    regular: str,
    overtime: str = "0",
    report_id: str = "r-1",
    project_id: str = "p-1",
):
    posted = await ledger.post_entry(
        report_id,
        identity_id,
        HoursBreakdown(regular=Decimal(regular), overtime=Decimal(overtime)),
        [],
        project_id,
        day,
        project_name="Main St Tower",
    )
    return posted.entry


def lines(csv_text: str) -> list[str]:
    return csv_text.rstrip("\n").split("\n")


class TestExport:
    @pytest.mark.asyncio
    async def test_empty_export_is_header_only(self, exporter: PayrollCsvExporter):
        text = await exporter.export()

        assert text == HEADER + "\n"
        assert ",".join(CSV_COLUMNS) == HEADER

    @pytest.mark.asyncio
    async def test_row_format(self, exporter: PayrollCsvExporter, ledger: PayrollLedger, ana):
        await post(ledger, ana.id, MONDAY, "8", "1")

        rows = lines(await exporter.export())

        assert rows == [
            HEADER,
            "E-1,Ana Perez,Main St Tower,2026-03-02,8.00,1.00,0.00,9.00,30.00,45.00,285.00",
        ]

    @pytest.mark.asyncio
    async def test_incomplete_identity_has_blank_employee_number(
        self, exporter: PayrollCsvExporter, ledger: PayrollLedger, make_identity
    ):
        tommy = await make_identity("Tommy Rodriguez")
        await post(ledger, tommy.id, MONDAY, "8")

        rows = lines(await exporter.export())

        assert rows[1] == ",Tommy Rodriguez,Main St Tower,2026-03-02,8.00,0.00,0.00,8.00,0.00,0.00,0.00"

    @pytest.mark.asyncio
    async def test_superseded_and_rejected_excluded(
        self, exporter: PayrollCsvExporter, ledger: PayrollLedger, ana
    ):
        original = await post(ledger, ana.id, MONDAY, "8")
        await ledger.correct_entry(
            original.id, CorrectionRequest(regular_hours=Decimal("7"), reason="typo", actor="pm")
        )
        rejected = await post(ledger, ana.id, TUESDAY, "3", report_id="r-2")
        await ledger.reject(rejected.id, actor="pm", reason="not on site")

        rows = lines(await exporter.export())

        assert rows[1:] == [
            "E-1,Ana Perez,Main St Tower,2026-03-02,7.00,0.00,0.00,7.00,30.00,45.00,210.00",
        ]

    @pytest.mark.asyncio
    async def test_sorted_by_date_then_name(
        self, exporter: PayrollCsvExporter, ledger: PayrollLedger, make_identity, ana
    ):
        zed = await make_identity("Zed Young", employee_number="E-9", hourly_rate="20.00")
        await post(ledger, ana.id, TUESDAY, "4", report_id="r-2")
        await post(ledger, zed.id, MONDAY, "8")
        await post(ledger, ana.id, MONDAY, "8")

        rows = lines(await exporter.export())

        assert [(r.split(",")[1], r.split(",")[3]) for r in rows[1:]] == [
            ("Ana Perez", "2026-03-02"),
            ("Zed Young", "2026-03-02"),
            ("Ana Perez", "2026-03-03"),
        ]

    @pytest.mark.asyncio
    async def test_filters_by_range_and_project(
        self, exporter: PayrollCsvExporter, ledger: PayrollLedger, ana
    ):
        await post(ledger, ana.id, MONDAY, "8")
        await post(ledger, ana.id, TUESDAY, "6", report_id="r-2")
        await post(ledger, ana.id, TUESDAY, "2", report_id="r-3", project_id="p-2")

        tuesday = lines(await exporter.export(TUESDAY, TUESDAY))
        tuesday_p1 = lines(await exporter.export(TUESDAY, TUESDAY, project_id="p-1"))

        assert len(tuesday) == 3
        assert len(tuesday_p1) == 2
        assert tuesday_p1[1].split(",")[4] == "6.00"
