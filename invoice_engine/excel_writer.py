"""Excel export - a 2-sheet workbook (summary + line items) for a computed invoice."""

import logging
from io import BytesIO

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .errors import RenderError
from .schema import BusinessConfig, ComputedInvoice, RenderedDocument
from .utils import format_invoice_date, sanitize_file_name

logger = logging.getLogger(__name__)

# Same palette as the PDF invoice
PRIMARY_HEX = "003366"
TINT_HEX = "F2F2F2"

TITLE_FONT = Font(bold=True, size=14, color=PRIMARY_HEX)
LABEL_FONT = Font(bold=True, size=11)
HEADER_FONT = Font(bold=True, size=11, color="FFFFFF")
TOTAL_FONT = Font(bold=True, size=11, color=PRIMARY_HEX)
HEADER_FILL = PatternFill(start_color=PRIMARY_HEX, end_color=PRIMARY_HEX, fill_type="solid")
TINT_FILL = PatternFill(start_color=TINT_HEX, end_color=TINT_HEX, fill_type="solid")
TOTAL_BORDER = Border(top=Side(style="thin", color=PRIMARY_HEX), bottom=Side(style="double", color=PRIMARY_HEX))
RIGHT = Alignment(horizontal="right", vertical="center")
LEFT = Alignment(horizontal="left", vertical="center")
WRAP = Alignment(horizontal="left", vertical="top", wrap_text=True)

MONEY_FORMAT = '#,##0.00'
RATE_FORMAT = '0.##"%"'

# Columns summed in the totals row of the Line Items sheet
TOTALLED_HEADERS = {"Item Total", "Taxable Value", "GST Amount", "Total"}

LINE_ITEM_COLUMNS = [
    {"header": "#", "width": 6, "format": None, "align": "right"},
    {"header": "Description", "width": 35, "format": None, "align": "left"},
    {"header": "HSN", "width": 12, "format": None, "align": "left"},
    {"header": "Qty", "width": 8, "format": None, "align": "right"},
    {"header": "Rate", "width": 14, "format": MONEY_FORMAT, "align": "right"},
    {"header": "Item Total", "width": 14, "format": MONEY_FORMAT, "align": "right"},
    {"header": "Taxable Value", "width": 14, "format": MONEY_FORMAT, "align": "right"},
    {"header": "GST Rate", "width": 10, "format": RATE_FORMAT, "align": "right"},
    {"header": "GST Amount", "width": 14, "format": MONEY_FORMAT, "align": "right"},
    {"header": "Total", "width": 14, "format": MONEY_FORMAT, "align": "right"},
]


def write_excel(invoice: ComputedInvoice, config: BusinessConfig) -> RenderedDocument:
    """
    Build a workbook from a computed invoice.

    Sheet 1: Invoice Summary (label / value rows, rounded totals)
    Sheet 2: Line Items (one row per line, unrounded values shown to 2dp,
             followed by a totals row)

    Raises:
        RenderError: If the workbook cannot be built.
    """
    try:
        wb = Workbook()

        summary_sheet = wb.active
        summary_sheet.title = "Invoice Summary"
        summary_sheet.sheet_properties.tabColor = PRIMARY_HEX
        _write_summary_sheet(summary_sheet, invoice, config)

        items_sheet = wb.create_sheet(title="Line Items")
        items_sheet.sheet_properties.tabColor = "666666"
        _write_line_items_sheet(items_sheet, invoice)

        buffer = BytesIO()
        wb.save(buffer)
    except Exception as e:
        raise RenderError(f"Failed to build workbook for '{invoice.invoice_number}': {e}") from e

    logger.info(f"Workbook built for invoice {invoice.invoice_number} ({invoice.item_count} line(s))")
    return RenderedDocument(
        content=buffer.getvalue(),
        file_name=f"Invoice_{sanitize_file_name(invoice.invoice_number)}.xlsx",
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def _write_summary_sheet(ws, invoice: ComputedInvoice, config: BusinessConfig) -> None:
    ws.column_dimensions["A"].width = 22
    ws.column_dimensions["B"].width = 64

    ws["A1"] = f"Tax Invoice {invoice.invoice_number}"
    ws["A1"].font = TITLE_FONT
    ws.merge_cells("A1:B1")

    computation = invoice.computation
    rows = [
        ("Invoice Number", invoice.invoice_number),
        ("Invoice Date", format_invoice_date(invoice.request.created_at)),
        ("Business", config.client_name),
        ("Business GSTIN", config.gst_no),
        ("Customer", invoice.customer.name),
        ("GST Method", computation.gst_method.value),
        ("Total Items", invoice.item_count),
    ]
    rows += [(label, float(value)) for label, value in computation.display_totals().items()]
    rows.append(("Amount in Words", invoice.amount_in_words))

    for row, (label, value) in enumerate(rows, start=3):
        label_cell = ws.cell(row=row, column=1, value=label)
        label_cell.font = LABEL_FONT
        label_cell.fill = TINT_FILL

        value_cell = ws.cell(row=row, column=2, value=value)
        if isinstance(value, float):
            value_cell.number_format = MONEY_FORMAT
            value_cell.alignment = RIGHT
        else:
            value_cell.alignment = WRAP if label == "Amount in Words" else LEFT

        if label == "Grand Total":
            label_cell.font = TOTAL_FONT
            value_cell.font = TOTAL_FONT


def _write_line_items_sheet(ws, invoice: ComputedInvoice) -> None:
    for col, spec in enumerate(LINE_ITEM_COLUMNS, start=1):
        header = ws.cell(row=1, column=col, value=spec["header"])
        header.font = HEADER_FONT
        header.fill = HEADER_FILL
        header.alignment = RIGHT if spec["align"] == "right" else LEFT
        ws.column_dimensions[get_column_letter(col)].width = spec["width"]
    ws.freeze_panes = "A2"

    lines = invoice.computation.lines
    for row, line in enumerate(lines, start=2):
        item = line.item
        values = [
            row - 1,
            item.name,
            item.hsn_code or "",
            item.quantity,
            float(item.unit_price),
            float(line.item_total),
            round(float(line.taxable_value), 2),
            float(item.gst_rate),
            round(float(line.gst_amount), 2),
            round(float(line.taxable_value + line.gst_amount), 2),
        ]
        for col, (value, spec) in enumerate(zip(values, LINE_ITEM_COLUMNS), start=1):
            cell = ws.cell(row=row, column=col, value=value)
            if spec["format"]:
                cell.number_format = spec["format"]
            cell.alignment = RIGHT if spec["align"] == "right" else LEFT
            # Shade every second line, as on the PDF
            if row % 2 == 1:
                cell.fill = TINT_FILL

    last_item_row = len(lines) + 1
    ws.auto_filter.ref = f"A1:{get_column_letter(len(LINE_ITEM_COLUMNS))}{last_item_row}"
    _write_totals_row(ws, last_item_row)


def _write_totals_row(ws, last_item_row: int) -> None:
    """SUM formulas under the money columns, so edits to the sheet stay consistent."""
    row = last_item_row + 1
    ws.cell(row=row, column=2, value="Total").font = TOTAL_FONT

    for col, spec in enumerate(LINE_ITEM_COLUMNS, start=1):
        cell = ws.cell(row=row, column=col)
        cell.border = TOTAL_BORDER
        if spec["header"] in TOTALLED_HEADERS:
            letter = get_column_letter(col)
            cell.value = f"=SUM({letter}2:{letter}{last_item_row})"
            cell.number_format = MONEY_FORMAT
            cell.alignment = RIGHT
            cell.font = TOTAL_FONT
