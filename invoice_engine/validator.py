"""Validation module for invoice payloads, requests and tax arithmetic."""

import logging
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import ValidationError

from .errors import (
    ArithmeticMismatchError,
    InvalidInvoiceStructureError,
    MissingInvoiceNumberError,
    NoLineItemsError,
)
from .schema import (
    CustomerInfo,
    GstMethod,
    InvoiceComputation,
    InvoiceRequest,
    LineComputation,
    LineItem,
    PaymentCollections,
)
from .utils import money

logger = logging.getLogger(__name__)

LINE_TOLERANCE = Decimal("0.01")


def parse_invoice_payload(payload: Any) -> InvoiceRequest:
    """
    Build an InvoiceRequest from a raw payload.

    Two shapes are accepted:
    - backend shape: {"invoice_info": {...}, "products": [...], "customer": {...}}
    - flat shape: {"invoice_number": ..., "line_items": [...], "customer": {...}}

    Raises:
        InvalidInvoiceStructureError: If the payload matches neither shape, or a
            line item / customer / collections section is malformed.
    """
    if not isinstance(payload, dict):
        raise InvalidInvoiceStructureError(
            f"Invoice payload must be a mapping, got {type(payload).__name__}."
        )

    has_info = "invoice_info" in payload
    has_products = "products" in payload

    if has_info and not has_products:
        raise InvalidInvoiceStructureError("Invoice payload has 'invoice_info' but no 'products' list.")
    if has_products and not has_info:
        raise InvalidInvoiceStructureError("Invoice payload has 'products' but no 'invoice_info' section.")

    if has_info:
        info = payload["invoice_info"]
        if not isinstance(info, dict):
            raise InvalidInvoiceStructureError("'invoice_info' must be a mapping.")
        raw_items = payload["products"]
        invoice_number = info.get("invoice_number")
        created_at = info.get("created_at")
    elif "invoice_number" in payload or "line_items" in payload:
        raw_items = payload.get("line_items", [])
        invoice_number = payload.get("invoice_number")
        created_at = payload.get("created_at")
    else:
        raise InvalidInvoiceStructureError(
            "Unrecognised invoice payload: expected 'invoice_info' + 'products' "
            "or 'invoice_number' + 'line_items'."
        )

    if raw_items is None:
        raw_items = []
    if not isinstance(raw_items, list):
        raise InvalidInvoiceStructureError("Line items must be a list.")

    line_items = [_line_item_from_product(product, i) for i, product in enumerate(raw_items)]

    customer = _customer_from_payload(payload.get("customer"))
    collections = _collections_from_payload(payload.get("collections"))

    try:
        return InvoiceRequest(
            invoice_number=invoice_number,
            created_at=created_at,
            line_items=line_items,
            customer=customer,
            collections=collections,
        )
    except ValidationError as e:
        raise InvalidInvoiceStructureError(f"Invoice header is invalid: {e}") from e


def _line_item_from_product(product: Any, index: int) -> LineItem:
    """Map one product record onto a LineItem, honouring approved quantity/price overrides."""
    if not isinstance(product, dict):
        raise InvalidInvoiceStructureError(f"Line item {index} must be a mapping.")

    quantity = product.get("approved_qty")
    if quantity is None:
        quantity = product.get("quantity")
    price = product.get("approved_price")
    if price is None:
        price = product.get("price", product.get("unit_price"))

    fields = {
        "product_id": product.get("product_id", product.get("id")),
        "name": product.get("name") or product.get("product_name") or "Item",
        "quantity": quantity,
        "unit_price": price,
        "gst_rate": product.get("gst_rate", 0),
        "hsn_code": product.get("hsn_code"),
        "discount": product.get("discount", 0),
        "uom": product.get("uom") or "Pkts",
    }

    try:
        return LineItem(**fields)
    except ValidationError as e:
        raise InvalidInvoiceStructureError(f"Line item {index} ('{fields['name']}') is invalid: {e}") from e


def _customer_from_payload(customer: Any) -> Optional[CustomerInfo]:
    if not customer:
        return None
    if not isinstance(customer, dict):
        raise InvalidInvoiceStructureError("'customer' must be a mapping.")
    fields = dict(customer)
    fields.setdefault("name", customer.get("username") or customer.get("customer_name"))
    try:
        return CustomerInfo(**{k: v for k, v in fields.items() if k in CustomerInfo.model_fields})
    except ValidationError as e:
        raise InvalidInvoiceStructureError(f"Customer section is invalid: {e}") from e


def _collections_from_payload(collections: Any) -> Optional[PaymentCollections]:
    if not collections:
        return None
    if not isinstance(collections, dict):
        raise InvalidInvoiceStructureError("'collections' must be a mapping.")
    try:
        return PaymentCollections(**collections)
    except ValidationError as e:
        raise InvalidInvoiceStructureError(f"Collections section is invalid: {e}") from e


def validate_invoice_request(request: InvoiceRequest) -> None:
    """
    Reject requests that cannot be rendered.

    Raises:
        MissingInvoiceNumberError: If the invoice number is empty.
        NoLineItemsError: If there are no line items.
    """
    if not request.invoice_number.strip():
        raise MissingInvoiceNumberError("Invoice has no invoice number.")

    if len(request.line_items) == 0:
        raise NoLineItemsError(f"Invoice '{request.invoice_number}' has no line items.")

    logger.info(f"Invoice request '{request.invoice_number}' passed structure checks ({len(request.line_items)} items).")


def validate_computation(computation: InvoiceComputation) -> None:
    """
    Check the tax invariants of a computed invoice.

    Checks:
    1. Per line: the item total is reproduced (within 0.01)
    2. cgst + sgst == gst_amount exactly
    3. grand_total == round(sum of taxable values + sum of GST amounts)
    4. taxable_value + gst_amount == grand_total exactly

    Raises:
        ArithmeticMismatchError: If any check fails.
    """
    for i, line in enumerate(computation.lines):
        _validate_line_arithmetic(line, i, computation.gst_method)

    split_total = computation.cgst + computation.sgst
    if split_total != computation.gst_amount:
        raise ArithmeticMismatchError(
            f"CGST ({computation.cgst}) + SGST ({computation.sgst}) = {split_total} "
            f"!= GST amount ({computation.gst_amount})."
        )

    expected_grand = _expected_grand_total(computation.lines)
    if expected_grand != computation.grand_total:
        raise ArithmeticMismatchError(
            f"Grand total ({computation.grand_total}) != taxable + GST ({expected_grand})."
        )

    reported_total = computation.taxable_value + computation.gst_amount
    if reported_total != computation.grand_total:
        raise ArithmeticMismatchError(
            f"Taxable value ({computation.taxable_value}) + GST ({computation.gst_amount}) = "
            f"{reported_total} != grand total ({computation.grand_total})."
        )

    logger.info("All tax arithmetic checks passed.")


def _validate_line_arithmetic(line: LineComputation, index: int, gst_method: GstMethod) -> None:
    """
    Inclusive: taxable_value + gst_amount must reproduce the tax-inclusive item total.
    Exclusive: taxable_value must equal the pre-tax item total.
    """
    if gst_method is GstMethod.INCLUSIVE:
        reproduced = line.taxable_value + line.gst_amount
        label = "taxable + GST"
    else:
        reproduced = line.taxable_value
        label = "taxable"

    diff = abs(reproduced - line.item_total)
    if diff > LINE_TOLERANCE:
        raise ArithmeticMismatchError(
            f"Line item {index} ('{line.item.name}'): {label} ({reproduced}) "
            f"!= item total ({line.item_total}). Difference: {diff}"
        )


def _expected_grand_total(lines: List[LineComputation]) -> Decimal:
    total = sum((line.taxable_value + line.gst_amount for line in lines), Decimal("0"))
    return money(total)

