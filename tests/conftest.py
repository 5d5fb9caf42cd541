"""
Pytest fixtures for the invoice engine tests.

Provides a business configuration, sample line items and requests, and
in-memory fakes for the sequence service, counter storage and printer.
"""

from decimal import Decimal
from typing import Dict, List, Optional

import pytest

from invoice_engine.engine import InvoiceEngine
from invoice_engine.errors import CounterStorageError, SequenceAllocationError
from invoice_engine.schema import (
    BankDetail,
    BusinessConfig,
    CustomerInfo,
    GstMethod,
    InvoiceRequest,
    LineItem,
    PaymentCollections,
)


# =============================================================================
# FAKES
# =============================================================================

class FakeSequenceClient:
    """Remote sequence service that counts up per (prefix, date), or fails on demand."""

    def __init__(self, start: int = 1, fail: bool = False) -> None:
        self.next_values: Dict[str, int] = {}
        self.start = start
        self.fail = fail
        self.calls: List[tuple] = []

    async def next_number(self, prefix: str, date_string: str) -> int:
        self.calls.append((prefix, date_string))
        if self.fail:
            raise SequenceAllocationError("service unavailable")
        key = f"{prefix}/{date_string}"
        value = self.next_values.get(key, self.start)
        self.next_values[key] = value + 1
        return value


class MemoryCounterStore:
    """Counter store kept in a dict; can be told to fail reads or writes."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False) -> None:
        self.values: Dict[str, str] = {}
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise CounterStorageError("storage read failed")
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise CounterStorageError("storage write failed")
        self.values[key] = value


class FakePrinterTransport:
    """Printer transport recording writes; can drop the device after N writes."""

    def __init__(self, connected: Optional[List[str]] = None, fail_after: Optional[int] = None,
                 disconnect_on_failure: bool = True) -> None:
        self.connected = set(connected or [])
        self.fail_after = fail_after
        self.disconnect_on_failure = disconnect_on_failure
        self.writes: List[bytes] = []

    async def connected_devices(self) -> List[str]:
        return list(self.connected)

    async def write(self, device_id: str, data: bytes) -> None:
        if self.fail_after is not None and len(self.writes) >= self.fail_after:
            if self.disconnect_on_failure:
                self.connected.discard(device_id)
            raise IOError("write failed")
        self.writes.append(data)

    @property
    def received(self) -> bytes:
        return b"".join(self.writes)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def business_config() -> BusinessConfig:
    return BusinessConfig(
        client_name="Order Appu",
        client_address="12 Hosur Road, Koramangala, Bangalore - 560068",
        gst_no="29ABCDE1234F1Z5",
        phone="9845012345",
        inv_prefix="INV",
        gst_method="Inclusive GST",
        terms=["Goods once sold will not be taken back.", "Subject to Bangalore jurisdiction."],
    )


@pytest.fixture
def exclusive_config(business_config: BusinessConfig) -> BusinessConfig:
    return business_config.model_copy(update={"gst_method": GstMethod.EXCLUSIVE})


@pytest.fixture
def line_items() -> List[LineItem]:
    return [
        LineItem(product_id=1, name="Basmati Rice 5kg", quantity=2, unit_price=Decimal("100"),
                 gst_rate=Decimal("18"), hsn_code="1006"),
        LineItem(product_id=2, name="Sunflower Oil 1L", quantity=2, unit_price=Decimal("100"),
                 gst_rate=Decimal("18"), hsn_code="1512"),
    ]


@pytest.fixture
def invoice_request(line_items: List[LineItem]) -> InvoiceRequest:
    return InvoiceRequest(
        invoice_number="INV-D-2025-01-05-007",
        created_at="2025-01-05T10:30:00",
        line_items=line_items,
        customer=CustomerInfo(name="Sri Lakshmi Stores", phone="9876543210", route="Route 4"),
    )


@pytest.fixture
def collections() -> PaymentCollections:
    return PaymentCollections(
        cash=Decimal("250"),
        upi=Decimal("150"),
        tendered=Decimal("450"),
        balance=Decimal("50"),
        bank_details=[
            BankDetail(method="UPI", bank_name="State Bank of India",
                       account_number="123456789012", reference="UTR4455"),
        ],
    )


@pytest.fixture
def engine(business_config: BusinessConfig) -> InvoiceEngine:
    return InvoiceEngine(business_config)


@pytest.fixture
def computed_invoice(engine: InvoiceEngine, invoice_request: InvoiceRequest):
    return engine.build_invoice(invoice_request)


@pytest.fixture
def sequence_client() -> FakeSequenceClient:
    return FakeSequenceClient()


@pytest.fixture
def counter_store() -> MemoryCounterStore:
    return MemoryCounterStore()


@pytest.fixture
def printer() -> FakePrinterTransport:
    return FakePrinterTransport(connected=["00:11:22:33:44:55"])
