"""
Invoice engine facade.

Ties the tax engine, amount-in-words converter, invoice numbering and the
renderers together. Every public operation returns an EngineResult instead of
raising, so callers branch on `result.success`.
"""

import logging
from typing import Any, Callable, Optional, Union

from .amount_words import to_words
from .config import EngineSettings
from .errors import (
    ArithmeticMismatchError,
    InvalidInvoiceStructureError,
    MissingInvoiceNumberError,
    NoLineItemsError,
    RenderError,
)
from .excel_writer import write_excel
from .numbering import HttpSequenceClient, InvoiceNumberAllocator, JsonFileCounterStore
from .pdf_renderer import PDFInvoiceRenderer
from .pos_renderer import POSReceiptRenderer, PrinterTransport
from .schema import BusinessConfig, ComputedInvoice, EngineResult, InvoiceRequest
from .tax_engine import TaxEngine
from .validator import parse_invoice_payload, validate_computation, validate_invoice_request

logger = logging.getLogger(__name__)

ENGINE_ERRORS = (
    InvalidInvoiceStructureError,
    MissingInvoiceNumberError,
    NoLineItemsError,
    ArithmeticMismatchError,
    RenderError,
)

InvoiceInput = Union[InvoiceRequest, dict]


class InvoiceEngine:
    """Computes and renders invoices for one business configuration."""

    def __init__(
        self,
        config: BusinessConfig,
        tax_engine: Optional[TaxEngine] = None,
        allocator: Optional[InvoiceNumberAllocator] = None,
        pdf_renderer: Optional[PDFInvoiceRenderer] = None,
        pos_renderer: Optional[POSReceiptRenderer] = None,
    ) -> None:
        self.config = config
        self.tax_engine = tax_engine or TaxEngine()
        self.allocator = allocator or InvoiceNumberAllocator()
        self.pdf_renderer = pdf_renderer or PDFInvoiceRenderer()
        self.pos_renderer = pos_renderer or POSReceiptRenderer()

    @classmethod
    def from_settings(cls, config: BusinessConfig, settings: EngineSettings) -> "InvoiceEngine":
        """Wire the HTTP sequence client, file counter store and printer tuning from settings."""
        sequence_client = None
        if settings.sequence_api_url:
            sequence_client = HttpSequenceClient(
                settings.sequence_api_url,
                token=settings.api_token,
                timeout=settings.request_timeout,
            )
        allocator = InvoiceNumberAllocator(
            sequence_client=sequence_client,
            counter_store=JsonFileCounterStore(settings.counter_store_path),
        )
        pos_renderer = POSReceiptRenderer(
            chunk_size=settings.printer_chunk_size,
            chunk_delay=settings.printer_chunk_delay,
        )
        return cls(config, allocator=allocator, pos_renderer=pos_renderer)

    def build_invoice(self, invoice: InvoiceInput) -> ComputedInvoice:
        """
        Validate a request and compute its tax breakdown and amount in words.

        Raises:
            InvalidInvoiceStructureError, MissingInvoiceNumberError,
            NoLineItemsError, ArithmeticMismatchError
        """
        request = self._coerce_request(invoice)
        validate_invoice_request(request)

        computation = self.tax_engine.compute(request.line_items, self.config.gst_method)
        validate_computation(computation)

        return ComputedInvoice(
            request=request,
            computation=computation,
            amount_in_words=to_words(computation.grand_total),
        )

    def compute(self, invoice: InvoiceInput) -> EngineResult:
        """Compute an invoice; data is the ComputedInvoice."""
        return self._run(invoice, lambda computed: computed)

    def render_pdf(self, invoice: InvoiceInput) -> EngineResult:
        """Render the invoice as PDF; data is a RenderedDocument (see `to_base64()`)."""
        return self._run(invoice, lambda computed: self.pdf_renderer.render(computed, self.config))

    def render_xlsx(self, invoice: InvoiceInput) -> EngineResult:
        """Render the invoice as a 2-sheet workbook; data is a RenderedDocument."""
        return self._run(invoice, lambda computed: write_excel(computed, self.config))

    def render_receipt(self, invoice: InvoiceInput) -> EngineResult:
        """Render the ESC/POS receipt bytes without sending them; data is a RenderedDocument."""
        return self._run(invoice, lambda computed: self.pos_renderer.render(computed, self.config))

    async def print_receipt(
        self,
        invoice: InvoiceInput,
        device_id: str,
        transport: PrinterTransport,
    ) -> EngineResult:
        """Compute the invoice and print it on a connected thermal printer."""
        try:
            computed = self.build_invoice(invoice)
        except ENGINE_ERRORS as e:
            logger.error(f"Cannot print invoice: {type(e).__name__}: {e}")
            return EngineResult.fail(e)
        return await self.pos_renderer.print_receipt(computed, self.config, device_id, transport)

    async def allocate_invoice_number(self, date_string: Optional[str] = None) -> str:
        """Allocate the next invoice number for the configured prefix. Never raises."""
        return await self.allocator.allocate(self.config.inv_prefix, date_string)

    async def aclose(self) -> None:
        """Close the HTTP client held by the sequence client, if any."""
        client = self.allocator.sequence_client
        if isinstance(client, HttpSequenceClient):
            await client.aclose()

    def _run(self, invoice: InvoiceInput, produce: Callable[[ComputedInvoice], Any]) -> EngineResult:
        try:
            computed = self.build_invoice(invoice)
            return EngineResult.ok(produce(computed))
        except ENGINE_ERRORS as e:
            logger.error(f"Invoice operation failed: {type(e).__name__}: {e}")
            return EngineResult.fail(e)

    @staticmethod
    def _coerce_request(invoice: InvoiceInput) -> InvoiceRequest:
        if isinstance(invoice, InvoiceRequest):
            return invoice
        return parse_invoice_payload(invoice)
