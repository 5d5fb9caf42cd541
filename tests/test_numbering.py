"""
Tests for invoice number allocation.

Covers the remote → local counter → random tier order, number formatting,
the file-backed counter store and the HTTP sequence client.
"""

import asyncio
import json
import random
from datetime import date
from unittest.mock import AsyncMock

import httpx
import pytest

from conftest import FakeSequenceClient, MemoryCounterStore
from invoice_engine.errors import CounterStorageError, SequenceAllocationError
from invoice_engine.numbering import (
    HttpSequenceClient,
    InvoiceNumberAllocator,
    JsonFileCounterStore,
    counter_key,
)
from invoice_engine.schema import InvoiceNumber

DATE = "2025-01-05"


def _http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestInvoiceNumberFormat:
    def test_sequence_is_zero_padded(self):
        assert str(InvoiceNumber(prefix="INV", date=DATE, sequence=7)) == "INV-D-2025-01-05-007"

    def test_sequence_above_999_is_not_truncated(self):
        assert str(InvoiceNumber(prefix="ORD", date=DATE, sequence=1000)) == "ORD-D-2025-01-05-1000"

    def test_counter_key(self):
        assert counter_key("INV", DATE) == "invoice_counter_INV_2025-01-05"


class TestRemoteTier:
    @pytest.mark.asyncio
    async def test_remote_client_is_called_with_prefix_and_date(self):
        client = AsyncMock()
        client.next_number.return_value = 3
        allocator = InvoiceNumberAllocator(sequence_client=client)
        assert await allocator.allocate("OA", DATE) == "OA-D-2025-01-05-003"
        client.next_number.assert_awaited_once_with("OA", DATE)

    @pytest.mark.asyncio
    async def test_remote_number_is_used(self):
        allocator = InvoiceNumberAllocator(sequence_client=FakeSequenceClient(start=7))
        assert await allocator.allocate("INV", DATE) == "INV-D-2025-01-05-007"

    @pytest.mark.asyncio
    async def test_sequential_calls_increase(self, sequence_client, counter_store):
        allocator = InvoiceNumberAllocator(sequence_client=sequence_client, counter_store=counter_store)
        first = await allocator.allocate_number("INV", DATE)
        second = await allocator.allocate_number("INV", DATE)
        assert second.sequence == first.sequence + 1
        assert counter_store.values == {}

    @pytest.mark.asyncio
    async def test_empty_prefix_defaults_to_inv(self, sequence_client):
        allocator = InvoiceNumberAllocator(sequence_client=sequence_client)
        number = await allocator.allocate("", DATE)
        assert number.startswith("INV-D-2025-01-05-")
        assert sequence_client.calls == [("INV", DATE)]

    @pytest.mark.asyncio
    async def test_date_defaults_to_today(self, sequence_client):
        allocator = InvoiceNumberAllocator(sequence_client=sequence_client)
        number = await allocator.allocate("INV")
        assert number == f"INV-D-{date.today().isoformat()}-001"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("returned", [0, -3, None, "7", 2.5, True])
    async def test_unusable_remote_value_falls_back_to_counter(self, counter_store, returned):
        client = AsyncMock()
        client.next_number.return_value = returned
        allocator = InvoiceNumberAllocator(sequence_client=client, counter_store=counter_store)
        assert await allocator.allocate("INV", DATE) == "INV-D-2025-01-05-001"

    @pytest.mark.asyncio
    async def test_unusable_remote_value_without_counter_uses_random(self):
        client = AsyncMock()
        client.next_number.return_value = 0
        allocator = InvoiceNumberAllocator(sequence_client=client, rng=random.Random(7))
        number = await allocator.allocate_number("INV", DATE)
        assert number.sequence == random.Random(7).randint(1, 999)


class TestLocalCounterTier:
    @pytest.mark.asyncio
    async def test_falls_back_when_remote_fails(self, counter_store):
        allocator = InvoiceNumberAllocator(
            sequence_client=FakeSequenceClient(fail=True),
            counter_store=counter_store,
        )
        assert await allocator.allocate("INV", DATE) == "INV-D-2025-01-05-001"
        assert await allocator.allocate("INV", DATE) == "INV-D-2025-01-05-002"
        assert counter_store.values[counter_key("INV", DATE)] == "2"

    @pytest.mark.asyncio
    async def test_counters_are_scoped_by_prefix_and_date(self, counter_store):
        allocator = InvoiceNumberAllocator(counter_store=counter_store)
        await allocator.allocate("INV", DATE)
        await allocator.allocate("INV", DATE)
        assert await allocator.allocate("ORD", DATE) == "ORD-D-2025-01-05-001"
        assert await allocator.allocate("INV", "2025-01-06") == "INV-D-2025-01-06-001"

    @pytest.mark.asyncio
    async def test_concurrent_allocations_are_unique(self, counter_store):
        allocator = InvoiceNumberAllocator(counter_store=counter_store)
        numbers = await asyncio.gather(*[allocator.allocate("INV", DATE) for _ in range(20)])
        assert len(set(numbers)) == 20
        assert counter_store.values[counter_key("INV", DATE)] == "20"

    @pytest.mark.asyncio
    async def test_locks_are_released_after_use(self, counter_store):
        allocator = InvoiceNumberAllocator(counter_store=counter_store)
        await asyncio.gather(*[allocator.allocate("INV", DATE) for _ in range(5)])
        await allocator.allocate("INV", "2025-01-06")
        await allocator.allocate("ORD", DATE)
        assert allocator._locks == {}

    @pytest.mark.asyncio
    async def test_lock_released_when_storage_fails(self):
        allocator = InvoiceNumberAllocator(counter_store=MemoryCounterStore(fail_reads=True))
        await allocator.allocate("INV", DATE)
        assert allocator._locks == {}

    @pytest.mark.asyncio
    async def test_file_store_persists_between_allocators(self, tmp_path):
        path = tmp_path / "counters.json"
        first = InvoiceNumberAllocator(counter_store=JsonFileCounterStore(str(path)))
        await first.allocate("INV", DATE)

        second = InvoiceNumberAllocator(counter_store=JsonFileCounterStore(str(path)))
        assert await second.allocate("INV", DATE) == "INV-D-2025-01-05-002"

        with open(path, encoding="utf-8") as f:
            assert json.load(f) == {"invoice_counter_INV_2025-01-05": "2"}


class TestRandomTier:
    @pytest.mark.asyncio
    async def test_negative_counter_uses_random_sequence(self, counter_store):
        counter_store.values[counter_key("INV", DATE)] = "-5"
        allocator = InvoiceNumberAllocator(counter_store=counter_store, rng=random.Random(3))
        number = await allocator.allocate_number("INV", DATE)
        assert number.sequence == random.Random(3).randint(1, 999)
        assert counter_store.values[counter_key("INV", DATE)] == "-5"

    @pytest.mark.asyncio
    async def test_corrupt_counter_uses_random_sequence(self, counter_store):
        counter_store.values[counter_key("INV", DATE)] = "not-a-number"
        allocator = InvoiceNumberAllocator(counter_store=counter_store, rng=random.Random(42))

        expected = random.Random(42).randint(1, 999)
        number = await allocator.allocate_number("INV", DATE)
        assert number.sequence == expected

    @pytest.mark.asyncio
    async def test_storage_failure_uses_random_sequence(self):
        allocator = InvoiceNumberAllocator(
            sequence_client=FakeSequenceClient(fail=True),
            counter_store=MemoryCounterStore(fail_writes=True),
        )
        number = await allocator.allocate_number("INV", DATE)
        assert 1 <= number.sequence <= 999

    @pytest.mark.asyncio
    async def test_no_collaborators_still_allocates(self, caplog):
        allocator = InvoiceNumberAllocator()
        number = await allocator.allocate("INV", DATE)
        assert number.startswith("INV-D-2025-01-05-")
        assert "not guaranteed unique" in caplog.text


class TestJsonFileCounterStore:
    @pytest.mark.asyncio
    async def test_missing_file_reads_as_empty(self, tmp_path):
        store = JsonFileCounterStore(str(tmp_path / "missing.json"))
        assert await store.get("anything") is None

    @pytest.mark.asyncio
    async def test_set_creates_parent_directories(self, tmp_path):
        store = JsonFileCounterStore(str(tmp_path / "nested" / "counters.json"))
        await store.set("k", "3")
        assert await store.get("k") == "3"

    @pytest.mark.asyncio
    async def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "counters.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(CounterStorageError):
            await JsonFileCounterStore(str(path)).get("k")

    @pytest.mark.asyncio
    async def test_non_object_raises(self, tmp_path):
        path = tmp_path / "counters.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(CounterStorageError):
            await JsonFileCounterStore(str(path)).get("k")


class TestHttpSequenceClient:
    @pytest.mark.asyncio
    async def test_returns_next_number(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = request.url
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"success": True, "next_number": 12})

        async with HttpSequenceClient("https://api.example.test/", token="secret",
                                      client=_http_client(handler)) as client:
            assert await client.next_number("INV", DATE) == 12

        assert seen["url"].path == "/get_next_invoice_number"
        assert seen["url"].params["prefix"] == "INV"
        assert seen["url"].params["date"] == DATE
        assert seen["auth"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_no_token_sends_no_auth_header(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert "Authorization" not in request.headers
            return httpx.Response(200, json={"success": True, "next_number": 1})

        client = HttpSequenceClient("https://api.example.test", client=_http_client(handler))
        assert await client.next_number("INV", DATE) == 1
        await client.aclose()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, body", [
        (500, {"success": False, "message": "db down"}),
        (200, {"success": False, "message": "quota"}),
        (200, {"success": True}),
        (200, {"success": True, "next_number": "abc"}),
        (200, {"success": True, "next_number": 0}),
    ])
    async def test_bad_responses_raise(self, status, body):
        client = HttpSequenceClient(
            "https://api.example.test",
            client=_http_client(lambda request: httpx.Response(status, json=body)),
        )
        with pytest.raises(SequenceAllocationError):
            await client.next_number("INV", DATE)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = HttpSequenceClient("https://api.example.test", client=_http_client(handler))
        with pytest.raises(SequenceAllocationError):
            await client.next_number("INV", DATE)
        await client.aclose()

    @pytest.mark.asyncio
    async def test_allocator_falls_back_from_http_failure(self, counter_store):
        client = HttpSequenceClient(
            "https://api.example.test",
            client=_http_client(lambda request: httpx.Response(503, text="unavailable")),
        )
        allocator = InvoiceNumberAllocator(sequence_client=client, counter_store=counter_store)
        assert await allocator.allocate("INV", DATE) == "INV-D-2025-01-05-001"
        await client.aclose()
