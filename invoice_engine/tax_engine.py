"""GST computation for invoice lines under the Inclusive and Exclusive conventions."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List

from .schema import GstMethod, InvoiceComputation, LineComputation, LineItem
from .utils import PAISA, money

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
ZERO = Decimal("0")


class TaxEngine:
    """
    Computes per-line and aggregate taxable value, GST, CGST, SGST and grand total.

    Line values stay unrounded; rounding happens once, when lines are
    aggregated into an InvoiceComputation. Inputs are assumed valid (the
    LineItem schema rejects negative quantities, prices and rates).
    """

    def compute_line(self, item: LineItem, gst_method: GstMethod) -> LineComputation:
        """Compute taxable value and GST for a single line item."""
        item_total = Decimal(item.quantity) * item.unit_price
        rate = item.gst_rate

        if rate == ZERO:
            taxable_value = item_total
            gst_amount = ZERO
        elif gst_method is GstMethod.INCLUSIVE:
            # Stated price already contains the tax
            taxable_value = item_total / (1 + rate / HUNDRED)
            gst_amount = item_total - taxable_value
        else:
            taxable_value = item_total
            gst_amount = item_total * rate / HUNDRED

        logger.debug(
            f"Line '{item.name}': total={item_total} taxable={taxable_value} "
            f"gst={gst_amount} ({gst_method.value}, {rate}%)"
        )
        return LineComputation(
            item=item,
            item_total=item_total,
            taxable_value=taxable_value,
            gst_amount=gst_amount,
        )

    def aggregate(self, lines: List[LineComputation], gst_method: GstMethod) -> InvoiceComputation:
        """
        Aggregate line computations into rounded invoice totals.

        The grand total and taxable value are rounded from the unrounded line
        sums; the reported GST is their difference, so taxable_value +
        gst_amount == grand_total exactly. CGST is half the GST amount and SGST
        is the remainder, so cgst + sgst == gst_amount exactly.
        """
        subtotal = sum((line.item_total for line in lines), ZERO)
        taxable_value = sum((line.taxable_value for line in lines), ZERO)
        gst_amount = sum((line.gst_amount for line in lines), ZERO)

        grand_total = money(taxable_value + gst_amount)
        taxable_rounded = money(taxable_value)
        gst_rounded = grand_total - taxable_rounded
        cgst = (gst_rounded / 2).quantize(PAISA, rounding=ROUND_HALF_UP)
        sgst = gst_rounded - cgst

        computation = InvoiceComputation(
            gst_method=gst_method,
            lines=list(lines),
            subtotal=money(subtotal),
            taxable_value=taxable_rounded,
            gst_amount=gst_rounded,
            cgst=cgst,
            sgst=sgst,
            grand_total=grand_total,
        )

        logger.info(
            f"Computed {len(lines)} line(s) ({gst_method.value}): "
            f"taxable={computation.taxable_value} gst={computation.gst_amount} "
            f"grand_total={computation.grand_total}"
        )
        return computation

    def compute(self, items: Iterable[LineItem], gst_method: GstMethod) -> InvoiceComputation:
        """Compute every line and aggregate them in one call."""
        lines = [self.compute_line(item, gst_method) for item in items]
        return self.aggregate(lines, gst_method)
