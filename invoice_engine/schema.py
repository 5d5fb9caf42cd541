"""Pydantic models for invoice data schema."""

import base64
import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .utils import clean_text, parse_decimal, parse_percentage

logger = logging.getLogger(__name__)


class GstMethod(str, Enum):
    """Accounting convention applied to every line item of an invoice."""

    INCLUSIVE = "Inclusive GST"
    EXCLUSIVE = "Exclusive GST"

    @classmethod
    def parse(cls, value: Any) -> "GstMethod":
        """Parse a configuration value; absent or unknown values default to Inclusive."""
        if isinstance(value, cls):
            return value
        text = clean_text(value).lower()
        if not text:
            return cls.INCLUSIVE
        if text.startswith("exclusive"):
            return cls.EXCLUSIVE
        if not text.startswith("inclusive"):
            logger.warning(f"Unknown GST method '{value}', defaulting to Inclusive GST")
        return cls.INCLUSIVE

    @property
    def short_label(self) -> str:
        return "Incl" if self is GstMethod.INCLUSIVE else "Excl"


class LineItem(BaseModel):
    """A single product line of an invoice."""

    product_id: Optional[Union[int, str]] = None
    name: str
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    gst_rate: Decimal = Field(default=Decimal("0"), ge=0)
    hsn_code: Optional[str] = None
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    uom: str = "Pkts"

    class Config:
        frozen = True

    @field_validator("unit_price", "discount", mode="before")
    @classmethod
    def parse_money_fields(cls, v: Any) -> Decimal:
        return parse_decimal(v, strict=True)

    @field_validator("gst_rate", mode="before")
    @classmethod
    def parse_rate(cls, v: Any) -> Decimal:
        return parse_percentage(v, strict=True)

    @field_validator("hsn_code", mode="before")
    @classmethod
    def blank_hsn_is_none(cls, v: Any) -> Optional[str]:
        text = clean_text(v)
        return text or None


class LineComputation(BaseModel):
    """Tax breakdown of one line item. Values are unrounded."""

    item: LineItem
    item_total: Decimal
    taxable_value: Decimal
    gst_amount: Decimal

    class Config:
        frozen = True


class InvoiceComputation(BaseModel):
    """Aggregate tax breakdown of an invoice, rounded to 2 decimals."""

    gst_method: GstMethod
    lines: List[LineComputation]
    subtotal: Decimal
    taxable_value: Decimal
    gst_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    grand_total: Decimal

    class Config:
        frozen = True

    def display_totals(self) -> Dict[str, str]:
        """Rounded totals keyed by label, in display order."""
        return {
            "Subtotal": f"{self.subtotal:.2f}",
            "Taxable Value": f"{self.taxable_value:.2f}",
            "GST Amount": f"{self.gst_amount:.2f}",
            "CGST": f"{self.cgst:.2f}",
            "SGST": f"{self.sgst:.2f}",
            "Grand Total": f"{self.grand_total:.2f}",
        }


class InvoiceNumber(BaseModel):
    """An allocated invoice number: <prefix>-D-<date>-<sequence>."""

    prefix: str
    date: str
    sequence: int = Field(ge=1)

    class Config:
        frozen = True

    def __str__(self) -> str:
        return f"{self.prefix}-D-{self.date}-{self.sequence:03d}"


class BusinessConfig(BaseModel):
    """Issuing business details and invoice settings (the client configuration)."""

    client_name: str = ""
    client_address: str = ""
    gst_no: str = ""
    phone: str = ""
    inv_prefix: str = "INV"
    gst_method: GstMethod = GstMethod.INCLUSIVE
    declaration: str = (
        "We hereby certify that the products mentioned in this invoice are "
        "warranted to be of the nature and quality which they are purported to be."
    )
    terms: List[str] = Field(default_factory=list)

    @field_validator("gst_method", mode="before")
    @classmethod
    def parse_gst_method(cls, v: Any) -> GstMethod:
        return GstMethod.parse(v)

    @field_validator("inv_prefix", mode="before")
    @classmethod
    def default_prefix(cls, v: Any) -> str:
        return clean_text(v) or "INV"

    @field_validator("client_name", "client_address", "gst_no", "phone", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return clean_text(v)

    @classmethod
    def from_client_status(cls, response: dict) -> "BusinessConfig":
        """
        Build a configuration from a client-status response.

        Accepts either the full envelope ({"success": ..., "data": [record]})
        or a single client record.

        Raises:
            ConfigLoadError: If the response reports failure or the client is inactive.
        """
        from .errors import ConfigLoadError

        record = response
        if "data" in response:
            if not response.get("success", True):
                raise ConfigLoadError("Client status request reported failure.")
            data = response["data"]
            if isinstance(data, list):
                if not data:
                    raise ConfigLoadError("Client status response contains no client record.")
                data = data[0]
            record = data

        status = record.get("status")
        if status is not None and status != "Active":
            raise ConfigLoadError(f"Client account is inactive (status '{status}').")

        fields = {k: record[k] for k in cls.model_fields if k in record}
        return cls(**fields)


class CustomerInfo(BaseModel):
    """Invoice recipient."""

    name: str = "Walk-in Customer"
    address: str = ""
    route: str = ""
    phone: str = ""
    gstin: str = ""
    state: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def default_name(cls, v: Any) -> str:
        return clean_text(v) or "Walk-in Customer"

    @field_validator("address", "route", "phone", "gstin", "state", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return clean_text(v)


class BankDetail(BaseModel):
    """Bank details recorded against a UPI / cheque / transfer collection."""

    method: str = ""
    bank_name: str = ""
    account_number: str = ""
    reference: str = ""

    @field_validator("method", "bank_name", "account_number", "reference", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return clean_text(v)


class PaymentCollections(BaseModel):
    """Payment collected against an invoice, by method."""

    cash: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")
    upi: Decimal = Decimal("0")
    cheque: Decimal = Decimal("0")
    tendered: Optional[Decimal] = None
    balance: Decimal = Decimal("0")
    bank_details: List[BankDetail] = Field(default_factory=list)

    @field_validator("cash", "credit", "upi", "cheque", "balance", mode="before")
    @classmethod
    def parse_amounts(cls, v: Any) -> Decimal:
        return parse_decimal(v, strict=True)

    @field_validator("tendered", mode="before")
    @classmethod
    def parse_tendered(cls, v: Any) -> Optional[Decimal]:
        if v is None or v == "":
            return None
        return parse_decimal(v, strict=True)

    @property
    def total_collected(self) -> Decimal:
        return self.cash + self.credit + self.upi + self.cheque


class InvoiceRequest(BaseModel):
    """Caller-supplied invoice input, before tax computation."""

    invoice_number: str = ""
    created_at: Optional[Union[datetime, int, float, str]] = None
    line_items: List[LineItem] = Field(default_factory=list)
    customer: Optional[CustomerInfo] = None
    collections: Optional[PaymentCollections] = None

    @field_validator("invoice_number", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> str:
        return clean_text(v)


class ComputedInvoice(BaseModel):
    """An invoice request together with its tax breakdown and amount in words."""

    request: InvoiceRequest
    computation: InvoiceComputation
    amount_in_words: str

    @property
    def invoice_number(self) -> str:
        return self.request.invoice_number

    @property
    def customer(self) -> CustomerInfo:
        return self.request.customer or CustomerInfo()

    @property
    def item_count(self) -> int:
        return len(self.request.line_items)


class RenderedDocument(BaseModel):
    """A rendered artifact: raw bytes plus a suggested file name."""

    content: bytes
    file_name: str
    media_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.content).decode("ascii")


class EngineResult(BaseModel):
    """Discriminated result returned across the engine boundary."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    class Config:
        arbitrary_types_allowed = True

    @classmethod
    def ok(cls, data: Any = None) -> "EngineResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, exc: Exception) -> "EngineResult":
        return cls(success=False, error=str(exc), error_type=type(exc).__name__)
