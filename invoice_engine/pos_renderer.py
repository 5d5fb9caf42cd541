"""ESC/POS receipt rendering and chunked transmission to a 32-column thermal printer."""

import asyncio
import logging
from typing import Iterable, List, Protocol

from .errors import (
    InvalidInvoiceStructureError,
    MissingInvoiceNumberError,
    NoLineItemsError,
    PrinterDisconnectedError,
    PrinterNotConnectedError,
    PrinterWriteError,
    RenderError,
)
from .escpos import (
    ALIGN_CENTER,
    ALIGN_LEFT,
    CUT_PAPER,
    FEED,
    INITIALIZE,
    MODE_BOLD,
    MODE_BOLD_DOUBLE_HEIGHT,
    MODE_NORMAL,
    align_right,
    center_text,
    divider,
    wrap_text,
)
from .schema import (
    BusinessConfig,
    ComputedInvoice,
    EngineResult,
    LineComputation,
    PaymentCollections,
    RenderedDocument,
)
from .utils import (
    format_invoice_date,
    format_invoice_time,
    format_money,
    format_rate,
    mask_account_number,
    sanitize_file_name,
)
from .validator import validate_invoice_request

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
DEFAULT_CHUNK_DELAY = 0.05


class PrinterTransport(Protocol):
    """Byte transport to a paired thermal printer (e.g. Bluetooth SPP)."""

    async def connected_devices(self) -> Iterable[str]:
        ...

    async def write(self, device_id: str, data: bytes) -> None:
        ...


class POSReceiptRenderer:
    """Projects a computed invoice onto a 32-column ESC/POS receipt."""

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_delay: float = DEFAULT_CHUNK_DELAY,
        encoding: str = "utf-8",
    ) -> None:
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.encoding = encoding

    def build_receipt(self, invoice: ComputedInvoice, config: BusinessConfig) -> str:
        """Assemble the full receipt as text interleaved with ESC/POS control codes."""
        try:
            parts: List[str] = [INITIALIZE]
            parts += self._header(config)
            parts += self._metadata(invoice)
            parts += self._customer(invoice)
            parts += self._items(invoice)
            parts += self._totals(invoice)
            if invoice.request.collections is not None:
                parts += self._payments(invoice.request.collections)
            parts += self._footer()
        except Exception as e:
            raise RenderError(f"Failed to lay out receipt for '{invoice.invoice_number}': {e}") from e
        return "".join(parts)

    def render(self, invoice: ComputedInvoice, config: BusinessConfig) -> RenderedDocument:
        """Render the receipt as raw ESC/POS bytes, e.g. for saving to a file."""
        payload = self.build_receipt(invoice, config)
        return RenderedDocument(
            content=payload.encode(self.encoding, errors="replace"),
            file_name=f"Receipt_{sanitize_file_name(invoice.invoice_number)}.bin",
            media_type="application/octet-stream",
        )

    def chunks(self, payload: str) -> List[str]:
        """Slice a payload into fixed-size chunks for the printer's receive buffer."""
        return [payload[i:i + self.chunk_size] for i in range(0, len(payload), self.chunk_size)]

    async def print_receipt(
        self,
        invoice: ComputedInvoice,
        config: BusinessConfig,
        device_id: str,
        transport: PrinterTransport,
    ) -> EngineResult:
        """
        Print a receipt on a connected device.

        The whole payload is built and the device's connectivity checked before
        the first write. Chunks already sent are not rolled back if the printer
        drops mid-receipt.

        Returns:
            EngineResult with {"device_id", "chunks", "bytes"} on success, or a
            failure naming the error type (PrinterNotConnectedError,
            PrinterDisconnectedError, PrinterWriteError, ...).
        """
        try:
            validate_invoice_request(invoice.request)
            payload = self.build_receipt(invoice, config)
            chunks = self.chunks(payload)

            if not device_id or not await self._is_connected(device_id, transport):
                raise PrinterNotConnectedError(
                    f"Printer '{device_id or '<none>'}' is not connected. Pair and connect the printer before printing."
                )

            logger.info(f"Printing invoice {invoice.invoice_number} on {device_id} ({len(chunks)} chunks)")
            sent_bytes = await self._transmit(chunks, device_id, transport)
        except (
            InvalidInvoiceStructureError,
            MissingInvoiceNumberError,
            NoLineItemsError,
            RenderError,
            PrinterNotConnectedError,
            PrinterDisconnectedError,
            PrinterWriteError,
        ) as e:
            logger.error(f"Receipt printing failed: {type(e).__name__}: {e}")
            return EngineResult.fail(e)

        logger.info(f"Invoice {invoice.invoice_number} printed ({sent_bytes} bytes)")
        return EngineResult.ok({"device_id": device_id, "chunks": len(chunks), "bytes": sent_bytes})

    async def _transmit(self, chunks: List[str], device_id: str, transport: PrinterTransport) -> int:
        sent_bytes = 0
        for index, chunk in enumerate(chunks):
            data = chunk.encode(self.encoding, errors="replace")
            try:
                await transport.write(device_id, data)
            except Exception as e:
                if not await self._is_connected(device_id, transport):
                    raise PrinterDisconnectedError(
                        f"Printer '{device_id}' disconnected mid-print after {index} of "
                        f"{len(chunks)} chunks; the receipt is incomplete. Reconnect and reprint."
                    ) from e
                raise PrinterWriteError(
                    f"Write to printer '{device_id}' failed at chunk {index + 1} of {len(chunks)}: {e}"
                ) from e
            sent_bytes += len(data)
            if index < len(chunks) - 1 and self.chunk_delay > 0:
                await asyncio.sleep(self.chunk_delay)
        return sent_bytes

    async def _is_connected(self, device_id: str, transport: PrinterTransport) -> bool:
        try:
            devices = await transport.connected_devices()
        except Exception as e:
            logger.warning(f"Could not list connected printers: {e}")
            return False
        return device_id in set(devices)

    # -- receipt sections -------------------------------------------------

    def _header(self, config: BusinessConfig) -> List[str]:
        parts = [ALIGN_CENTER, MODE_BOLD_DOUBLE_HEIGHT]
        parts += _lines(wrap_text(config.client_name or "INVOICE"))
        parts.append(MODE_NORMAL)
        if config.client_address:
            parts += _lines(wrap_text(config.client_address))
        if config.gst_no:
            parts += _lines([f"GST: {config.gst_no}"])
        if config.phone:
            parts += _lines([f"Ph: {config.phone}"])
        parts.append(ALIGN_LEFT)
        parts += _lines([divider(), center_text("TAX INVOICE"), divider()])
        return parts

    def _metadata(self, invoice: ComputedInvoice) -> List[str]:
        created_at = invoice.request.created_at
        lines = wrap_text(f"Invoice: {invoice.invoice_number}")
        lines.append(align_right(f"Date: {format_invoice_date(created_at)}", f"Time: {format_invoice_time(created_at)}"))
        lines.append(f"GST Method: {invoice.computation.gst_method.value}")
        lines.append(divider())
        return _lines(lines)

    def _customer(self, invoice: ComputedInvoice) -> List[str]:
        customer = invoice.customer
        lines = wrap_text(f"Customer: {customer.name}")
        if customer.phone:
            lines.append(f"Phone: {customer.phone}")
        if customer.gstin:
            lines.append(f"GSTIN: {customer.gstin}")
        address = customer.address or customer.route
        if address:
            lines += wrap_text(address)
        lines.append(divider())
        return _lines(lines)

    def _items(self, invoice: ComputedInvoice) -> List[str]:
        parts = [MODE_BOLD]
        parts += _lines([center_text("ITEMS")])
        parts.append(MODE_NORMAL)
        parts += _lines([divider()])
        for index, line in enumerate(invoice.computation.lines, start=1):
            parts += _lines(self._item_block(index, line))
        parts += _lines([divider()])
        return parts

    def _item_block(self, index: int, line: LineComputation) -> List[str]:
        item = line.item
        lines = wrap_text(f"{index}. {item.name}")
        lines.append(align_right(f"HSN: {item.hsn_code or 'N/A'}", f"GST: {format_rate(item.gst_rate)}%"))
        lines.append(align_right(f"Qty: {item.quantity} {item.uom}", f"Price: {format_money(item.unit_price)}"))
        lines.append(align_right("Amount:", format_money(line.item_total)))
        if item.discount > 0:
            lines.append(align_right("Discount:", f"-{format_money(item.discount)}"))
        return lines

    def _totals(self, invoice: ComputedInvoice) -> List[str]:
        computation = invoice.computation
        parts = _lines([
            align_right(f"GST ({computation.gst_method.short_label}):", format_money(computation.gst_amount)),
            align_right("Subtotal:", format_money(computation.subtotal)),
        ])
        parts.append(MODE_BOLD)
        parts += _lines([align_right("GRAND TOTAL:", f"Rs. {format_money(computation.grand_total)}")])
        parts.append(MODE_NORMAL)
        parts += _lines(wrap_text(f"In words: {invoice.amount_in_words}"))
        parts += _lines([
            divider(),
            align_right("CGST:", format_money(computation.cgst)),
            align_right("SGST:", format_money(computation.sgst)),
            divider(),
        ])
        return parts

    def _payments(self, collections: PaymentCollections) -> List[str]:
        lines = [center_text("PAYMENT")]
        for label, amount in (
            ("Cash", collections.cash),
            ("Credit", collections.credit),
            ("UPI", collections.upi),
            ("Cheque", collections.cheque),
        ):
            if amount > 0:
                lines.append(align_right(f"{label}:", format_money(amount)))

        for detail in collections.bank_details:
            heading = " ".join(part for part in (detail.method, detail.bank_name) if part)
            if heading:
                lines += wrap_text(f"  {heading}")
            if detail.account_number:
                lines.append(f"  A/c: {mask_account_number(detail.account_number)}")
            if detail.reference:
                lines += wrap_text(f"  Ref: {detail.reference}")

        lines.append(align_right("Collected:", format_money(collections.total_collected)))
        if collections.tendered is not None:
            lines.append(align_right("Tendered:", format_money(collections.tendered)))
        if collections.balance > 0:
            lines.append(align_right("Change:", format_money(collections.balance)))
        elif collections.balance < 0:
            lines.append(align_right("Due:", format_money(-collections.balance)))
        lines.append(divider())
        return _lines(lines)

    def _footer(self) -> List[str]:
        return [ALIGN_CENTER] + _lines(["THANK YOU FOR VISITING!", "VISIT AGAIN"]) + [FEED, CUT_PAPER]


def _lines(lines: List[str]) -> List[str]:
    return [line + "\n" for line in lines]
