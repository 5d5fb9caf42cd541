"""PDF invoice rendering on A4 pages with reportlab's canvas (absolute coordinates)."""

import logging
from io import BytesIO
from typing import List, Tuple

from reportlab.lib.colors import Color, black, white
from reportlab.lib.pagesizes import A4
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from .errors import RenderError
from .schema import BusinessConfig, ComputedInvoice, LineComputation, RenderedDocument
from .utils import format_invoice_date, format_money, format_rate, sanitize_file_name

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 50
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN
TOP_Y = PAGE_HEIGHT - 50
# Lowest y that body content may reach; the footer lives below it
BODY_BOTTOM = 130

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"

PRIMARY_COLOR = Color(0, 0.2, 0.4)
TEXT_COLOR = black
SECONDARY_COLOR = Color(0.4, 0.4, 0.4)
TINT_COLOR = Color(0.95, 0.95, 0.95)

ROW_HEIGHT = 18
HEADER_ROW_HEIGHT = 22

DESCRIPTION_MAX = 28
DESCRIPTION_KEEP = 25

# (header, x, width, align)
TABLE_COLUMNS = [
    ("#", 50, 25, "center"),
    ("Description", 75, 165, "left"),
    ("Qty", 240, 40, "right"),
    ("Rate", 280, 60, "right"),
    ("Taxable", 340, 70, "right"),
    ("GST%", 410, 45, "right"),
    ("Total", 455, 90, "right"),
]

TOTALS_BOX_X = 345
TOTALS_BOX_WIDTH = PAGE_WIDTH - MARGIN - TOTALS_BOX_X


def truncate_description(name: str) -> str:
    """Names longer than 28 characters keep their first 25 plus an ellipsis."""
    if len(name) > DESCRIPTION_MAX:
        return name[:DESCRIPTION_KEEP] + "..."
    return name


def pdf_file_name(invoice_number: str) -> str:
    return f"Invoice_{sanitize_file_name(invoice_number)}.pdf"


class PDFInvoiceRenderer:
    """Projects a computed invoice onto one or more A4 pages."""

    def render(self, invoice: ComputedInvoice, config: BusinessConfig) -> RenderedDocument:
        """
        Render the invoice to PDF bytes.

        Output is byte-identical for identical input.

        Raises:
            RenderError: If any step of the layout fails. No partial document is returned.
        """
        buffer = BytesIO()
        try:
            c = canvas.Canvas(buffer, pagesize=A4, invariant=1)
            c.setTitle(f"Invoice {invoice.invoice_number}")
            c.setAuthor(config.client_name or "Invoice Engine")
            c.setSubject("Tax Invoice")

            y = self._draw_title_band(c, invoice)
            y = self._draw_parties(c, invoice, config, y)
            y = self._draw_metadata(c, invoice, y)
            y = self._draw_items_table(c, invoice, y)
            y = self._draw_totals_box(c, invoice, y)
            y = self._draw_amount_in_words(c, invoice, y)
            self._draw_terms(c, config, y)
            self._draw_footer(c, config)

            c.showPage()
            c.save()
        except Exception as e:
            raise RenderError(f"Failed to lay out PDF for '{invoice.invoice_number}': {e}") from e

        content = buffer.getvalue()
        logger.info(f"Rendered PDF for invoice {invoice.invoice_number} ({len(content)} bytes)")
        return RenderedDocument(
            content=content,
            file_name=pdf_file_name(invoice.invoice_number),
            media_type="application/pdf",
        )

    # -- page handling ------------------------------------------------------

    def _new_page(self, c: canvas.Canvas) -> float:
        c.setFont(FONT, 8)
        c.setFillColor(SECONDARY_COLOR)
        c.drawRightString(PAGE_WIDTH - MARGIN, 20, f"Page {c.getPageNumber()}")
        c.showPage()
        return TOP_Y

    def _ensure_space(self, c: canvas.Canvas, y: float, needed: float) -> float:
        if y - needed < BODY_BOTTOM:
            return self._new_page(c)
        return y

    # -- sections -----------------------------------------------------------

    def _draw_title_band(self, c: canvas.Canvas, invoice: ComputedInvoice) -> float:
        band_height = 62
        c.setFillColor(PRIMARY_COLOR)
        c.rect(0, PAGE_HEIGHT - band_height, PAGE_WIDTH, band_height, stroke=0, fill=1)

        c.setFillColor(white)
        c.setFont(FONT_BOLD, 24)
        c.drawString(MARGIN, PAGE_HEIGHT - 40, "TAX INVOICE")

        tag = invoice.computation.gst_method.value.upper()
        tag_width = c.stringWidth(tag, FONT_BOLD, 9) + 16
        tag_x = PAGE_WIDTH - MARGIN - tag_width
        c.setStrokeColor(white)
        c.roundRect(tag_x, PAGE_HEIGHT - 44, tag_width, 18, 4, stroke=1, fill=0)
        c.setFont(FONT_BOLD, 9)
        c.drawCentredString(tag_x + tag_width / 2, PAGE_HEIGHT - 38, tag)

        return PAGE_HEIGHT - band_height - 28

    def _draw_parties(self, c: canvas.Canvas, invoice: ComputedInvoice, config: BusinessConfig, y: float) -> float:
        from_lines = [config.client_address] if config.client_address else []
        if config.gst_no:
            from_lines.append(f"GSTIN: {config.gst_no}")
        if config.phone:
            from_lines.append(f"Phone: {config.phone}")

        customer = invoice.customer
        to_lines = [part for part in (customer.address, customer.route) if part]
        if customer.phone:
            to_lines.append(f"Phone: {customer.phone}")
        if customer.gstin:
            to_lines.append(f"GSTIN: {customer.gstin}")
        if customer.state:
            to_lines.append(f"State: {customer.state}")

        left_y = self._draw_party_block(c, MARGIN, y, "FROM", config.client_name or "-", from_lines)
        right_y = self._draw_party_block(c, 300, y, "TO", customer.name, to_lines)
        return min(left_y, right_y) - 16

    def _draw_party_block(
        self, c: canvas.Canvas, x: float, y: float, heading: str, name: str, lines: List[str]
    ) -> float:
        block_width = 230
        c.setFillColor(PRIMARY_COLOR)
        c.setFont(FONT_BOLD, 10)
        c.drawString(x, y, heading)
        y -= 18

        c.setFillColor(TEXT_COLOR)
        c.setFont(FONT_BOLD, 12)
        for part in simpleSplit(name, FONT_BOLD, 12, block_width):
            c.drawString(x, y, part)
            y -= 15

        c.setFillColor(SECONDARY_COLOR)
        c.setFont(FONT, 9)
        for line in lines:
            for part in simpleSplit(line, FONT, 9, block_width):
                c.drawString(x, y, part)
                y -= 12
        return y

    def _draw_metadata(self, c: canvas.Canvas, invoice: ComputedInvoice, y: float) -> float:
        c.setFillColor(PRIMARY_COLOR)
        c.setFont(FONT_BOLD, 12)
        c.drawString(MARGIN, y, "Invoice Details")
        c.setStrokeColor(PRIMARY_COLOR)
        c.setLineWidth(1)
        c.line(MARGIN, y - 5, PAGE_WIDTH - MARGIN, y - 5)
        y -= 22

        grid: List[Tuple[Tuple[str, str], Tuple[str, str]]] = [
            (("Invoice No:", invoice.invoice_number), ("Date:", format_invoice_date(invoice.request.created_at))),
            (("GST Method:", invoice.computation.gst_method.value), ("Total Items:", str(invoice.item_count))),
        ]
        for (left_label, left_value), (right_label, right_value) in grid:
            self._draw_label_value(c, MARGIN, y, left_label, left_value)
            self._draw_label_value(c, 300, y, right_label, right_value)
            y -= 16
        return y - 14

    def _draw_label_value(self, c: canvas.Canvas, x: float, y: float, label: str, value: str) -> None:
        c.setFillColor(TEXT_COLOR)
        c.setFont(FONT_BOLD, 10)
        c.drawString(x, y, label)
        c.setFont(FONT, 10)
        c.drawString(x + 80, y, value)

    def _draw_items_table(self, c: canvas.Canvas, invoice: ComputedInvoice, y: float) -> float:
        y = self._ensure_space(c, y, HEADER_ROW_HEIGHT + ROW_HEIGHT)
        segment_top = y
        y = self._draw_table_header(c, y)

        for index, line in enumerate(invoice.computation.lines, start=1):
            if y - ROW_HEIGHT < BODY_BOTTOM:
                self._draw_column_separators(c, segment_top, y)
                y = self._new_page(c)
                segment_top = y
                y = self._draw_table_header(c, y)
            y = self._draw_table_row(c, index, line, y)

        self._draw_column_separators(c, segment_top, y)
        return y - 20

    def _draw_table_header(self, c: canvas.Canvas, y: float) -> float:
        c.setFillColor(PRIMARY_COLOR)
        c.rect(MARGIN, y - HEADER_ROW_HEIGHT, CONTENT_WIDTH, HEADER_ROW_HEIGHT, stroke=0, fill=1)
        c.setFillColor(white)
        c.setFont(FONT_BOLD, 9)
        for header, x, width, align in TABLE_COLUMNS:
            self._draw_cell(c, header, x, width, align, y - HEADER_ROW_HEIGHT + 7)
        return y - HEADER_ROW_HEIGHT

    def _draw_table_row(self, c: canvas.Canvas, index: int, line: LineComputation, y: float) -> float:
        if index % 2 == 0:
            c.setFillColor(TINT_COLOR)
            c.rect(MARGIN, y - ROW_HEIGHT, CONTENT_WIDTH, ROW_HEIGHT, stroke=0, fill=1)

        item = line.item
        cells = [
            str(index),
            truncate_description(item.name),
            str(item.quantity),
            format_money(item.unit_price),
            format_money(line.taxable_value),
            f"{format_rate(item.gst_rate)}%",
            format_money(line.taxable_value + line.gst_amount),
        ]
        c.setFillColor(TEXT_COLOR)
        c.setFont(FONT, 9)
        for value, (_, x, width, align) in zip(cells, TABLE_COLUMNS):
            self._draw_cell(c, value, x, width, align, y - ROW_HEIGHT + 6)

        c.setStrokeColor(TINT_COLOR)
        c.setLineWidth(0.5)
        c.line(MARGIN, y - ROW_HEIGHT, PAGE_WIDTH - MARGIN, y - ROW_HEIGHT)
        return y - ROW_HEIGHT

    def _draw_cell(self, c: canvas.Canvas, text: str, x: float, width: float, align: str, baseline: float) -> None:
        if align == "right":
            c.drawRightString(x + width - 4, baseline, text)
        elif align == "center":
            c.drawCentredString(x + width / 2, baseline, text)
        else:
            c.drawString(x + 4, baseline, text)

    def _draw_column_separators(self, c: canvas.Canvas, top: float, bottom: float) -> None:
        c.setStrokeColor(SECONDARY_COLOR)
        c.setLineWidth(0.5)
        for _, x, _, _ in TABLE_COLUMNS:
            c.line(x, top, x, bottom)
        c.line(PAGE_WIDTH - MARGIN, top, PAGE_WIDTH - MARGIN, bottom)
        c.line(MARGIN, bottom, PAGE_WIDTH - MARGIN, bottom)

    def _draw_totals_box(self, c: canvas.Canvas, invoice: ComputedInvoice, y: float) -> float:
        rows = list(invoice.computation.display_totals().items())
        box_height = len(rows) * ROW_HEIGHT + 8
        y = self._ensure_space(c, y, box_height)

        c.setStrokeColor(PRIMARY_COLOR)
        c.setLineWidth(1)
        c.rect(TOTALS_BOX_X, y - box_height, TOTALS_BOX_WIDTH, box_height, stroke=1, fill=0)

        row_y = y - 4
        for label, value in rows:
            is_grand_total = label == "Grand Total"
            if is_grand_total:
                c.setFillColor(PRIMARY_COLOR)
                c.rect(TOTALS_BOX_X, row_y - ROW_HEIGHT, TOTALS_BOX_WIDTH, ROW_HEIGHT, stroke=0, fill=1)
                c.setFillColor(white)
                c.setFont(FONT_BOLD, 11)
            else:
                c.setFillColor(TEXT_COLOR)
                c.setFont(FONT, 10)
            baseline = row_y - ROW_HEIGHT + 5
            c.drawString(TOTALS_BOX_X + 8, baseline, f"{label}:")
            c.drawRightString(TOTALS_BOX_X + TOTALS_BOX_WIDTH - 8, baseline, f"Rs. {value}")
            row_y -= ROW_HEIGHT

        return y - box_height - 22

    def _draw_amount_in_words(self, c: canvas.Canvas, invoice: ComputedInvoice, y: float) -> float:
        lines = simpleSplit(invoice.amount_in_words, FONT, 10, CONTENT_WIDTH)
        y = self._ensure_space(c, y, 16 + 13 * len(lines))

        c.setFillColor(PRIMARY_COLOR)
        c.setFont(FONT_BOLD, 10)
        c.drawString(MARGIN, y, "Amount in Words:")
        y -= 15
        c.setFillColor(TEXT_COLOR)
        c.setFont(FONT, 10)
        for line in lines:
            c.drawString(MARGIN, y, line)
            y -= 13
        return y - 12

    def _draw_terms(self, c: canvas.Canvas, config: BusinessConfig, y: float) -> float:
        sections = []
        if config.declaration:
            sections.append(("Declaration", simpleSplit(config.declaration, FONT, 8, CONTENT_WIDTH)))
        if config.terms:
            term_lines: List[str] = []
            for number, term in enumerate(config.terms, start=1):
                term_lines += simpleSplit(f"{number}. {term}", FONT, 8, CONTENT_WIDTH)
            sections.append(("Terms & Conditions", term_lines))

        for heading, lines in sections:
            y = self._ensure_space(c, y, 14 + 11 * len(lines))
            c.setFillColor(PRIMARY_COLOR)
            c.setFont(FONT_BOLD, 9)
            c.drawString(MARGIN, y, heading)
            y -= 13
            c.setFillColor(SECONDARY_COLOR)
            c.setFont(FONT, 8)
            for line in lines:
                c.drawString(MARGIN, y, line)
                y -= 11
            y -= 8
        return y

    def _draw_footer(self, c: canvas.Canvas, config: BusinessConfig) -> None:
        c.setStrokeColor(PRIMARY_COLOR)
        c.setLineWidth(1)
        c.line(MARGIN, 118, PAGE_WIDTH - MARGIN, 118)

        c.setFillColor(PRIMARY_COLOR)
        c.setFont(FONT_BOLD, 12)
        c.drawCentredString(PAGE_WIDTH / 2, 100, "Thank you for your business!")

        signature_x = PAGE_WIDTH - MARGIN - 150
        c.setFillColor(TEXT_COLOR)
        c.setFont(FONT, 9)
        c.drawString(signature_x, 78, f"For {config.client_name}" if config.client_name else "")
        c.setStrokeColor(SECONDARY_COLOR)
        c.line(signature_x, 48, PAGE_WIDTH - MARGIN, 48)
        c.setFont(FONT_BOLD, 9)
        c.drawString(signature_x, 36, "Authorized Signatory")

        c.setFont(FONT, 8)
        c.setFillColor(SECONDARY_COLOR)
        c.drawRightString(PAGE_WIDTH - MARGIN, 20, f"Page {c.getPageNumber()}")
