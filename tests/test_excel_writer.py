"""Tests for the 2-sheet workbook export."""

from io import BytesIO

import pytest
from openpyxl import load_workbook

from invoice_engine.errors import RenderError
from invoice_engine.excel_writer import LINE_ITEM_COLUMNS, write_excel


def _load(document):
    return load_workbook(BytesIO(document.content))


class TestWorkbook:
    def test_file_name_and_sheets(self, computed_invoice, business_config):
        document = write_excel(computed_invoice, business_config)
        assert document.file_name == "Invoice_INV_D_2025_01_05_007.xlsx"
        assert _load(document).sheetnames == ["Invoice Summary", "Line Items"]

    def test_summary_sheet(self, computed_invoice, business_config):
        ws = _load(write_excel(computed_invoice, business_config))["Invoice Summary"]
        summary = {ws.cell(row=r, column=1).value: ws.cell(row=r, column=2).value for r in range(3, ws.max_row + 1)}
        assert summary["Invoice Number"] == "INV-D-2025-01-05-007"
        assert summary["Invoice Date"] == "05/01/2025"
        assert summary["Business"] == "Order Appu"
        assert summary["Customer"] == "Sri Lakshmi Stores"
        assert summary["GST Method"] == "Inclusive GST"
        assert summary["Total Items"] == 2
        assert summary["Taxable Value"] == pytest.approx(338.98)
        assert summary["GST Amount"] == pytest.approx(61.02)
        assert summary["CGST"] == pytest.approx(30.51)
        assert summary["SGST"] == pytest.approx(30.51)
        assert summary["Grand Total"] == pytest.approx(400.00)
        assert summary["Amount in Words"] == "Four Hundred Rupees Only"

    def test_line_items_sheet(self, computed_invoice, business_config):
        ws = _load(write_excel(computed_invoice, business_config))["Line Items"]
        headers = [ws.cell(row=1, column=c).value for c in range(1, len(LINE_ITEM_COLUMNS) + 1)]
        assert headers == [col["header"] for col in LINE_ITEM_COLUMNS]

        first = [ws.cell(row=2, column=c).value for c in range(1, len(LINE_ITEM_COLUMNS) + 1)]
        assert first[:4] == [1, "Basmati Rice 5kg", "1006", 2]
        assert first[5] == pytest.approx(200.0)
        assert first[6] == pytest.approx(169.49)
        assert first[8] == pytest.approx(30.51)
        assert first[9] == pytest.approx(200.0)
        assert ws.auto_filter.ref == "A1:J3"

    def test_totals_row_sums_money_columns(self, computed_invoice, business_config):
        ws = _load(write_excel(computed_invoice, business_config))["Line Items"]
        assert ws.max_row == 4
        assert ws.cell(row=4, column=2).value == "Total"
        assert ws.cell(row=4, column=6).value == "=SUM(F2:F3)"
        assert ws.cell(row=4, column=10).value == "=SUM(J2:J3)"
        assert ws.cell(row=4, column=5).value is None

    def test_failure_raises_render_error(self, computed_invoice, business_config, monkeypatch):
        def broken(*args, **kwargs):
            raise KeyError("sheet")

        monkeypatch.setattr("invoice_engine.excel_writer._write_line_items_sheet", broken)
        with pytest.raises(RenderError):
            write_excel(computed_invoice, business_config)
