"""
Invoice number allocation with remote, local-counter and random fallback tiers.

Numbers have the form <prefix>-D-<YYYY-MM-DD>-<sequence padded to 3 digits>.
"""

import asyncio
import json
import logging
import os
import random
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

import httpx

from .errors import CounterStorageError, SequenceAllocationError
from .schema import InvoiceNumber

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "INV"
RANDOM_SEQUENCE_MAX = 999


class SequenceClient(Protocol):
    """Remote collaborator handing out the next sequence for (prefix, date)."""

    async def next_number(self, prefix: str, date_string: str) -> int:
        ...


class CounterStore(Protocol):
    """Local key/value storage holding integer strings."""

    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


def today_string() -> str:
    """Today's local date as YYYY-MM-DD."""
    return date.today().isoformat()


def counter_key(prefix: str, date_string: str) -> str:
    return f"invoice_counter_{prefix}_{date_string}"


class HttpSequenceClient:
    """Sequence client backed by the order backend's get_next_invoice_number endpoint."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def __aenter__(self) -> "HttpSequenceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def next_number(self, prefix: str, date_string: str) -> int:
        """
        Request the next sequence number.

        Raises:
            SequenceAllocationError: On transport errors, non-2xx responses,
                an unsuccessful payload or a missing/invalid next_number.
        """
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            response = await self._client.get(
                f"{self.base_url}/get_next_invoice_number",
                params={"prefix": prefix, "date": date_string},
                headers=headers,
            )
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SequenceAllocationError(f"Sequence request failed: {e}") from e

        if not response.is_success or not data.get("success"):
            raise SequenceAllocationError(
                f"Sequence service returned status {response.status_code}: "
                f"{data.get('message', 'no message')}"
            )

        try:
            next_number = int(data["next_number"])
        except (KeyError, TypeError, ValueError) as e:
            raise SequenceAllocationError(f"Invalid next_number in response: {data!r}") from e

        if next_number < 1:
            raise SequenceAllocationError(f"Sequence service returned non-positive number {next_number}")

        return next_number


class JsonFileCounterStore:
    """Counter store persisted as a flat JSON object of key → integer string."""

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    async def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    async def set(self, key: str, value: str) -> None:
        counters = self._read()
        counters[key] = value
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(counters, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise CounterStorageError(f"Failed to write counter file {self.path}: {e}") from e

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise CounterStorageError(f"Failed to read counter file {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CounterStorageError(f"Counter file {self.path} does not hold a JSON object")
        return data


class InvoiceNumberAllocator:
    """
    Allocates invoice numbers scoped to (prefix, date).

    Tiers, each tried only when the previous one fails:

    1. the remote sequence client,
    2. a local counter (read, increment, write back) guarded by a per-key lock,
    3. a random sequence in [1, 999], which is not unique.

    allocate() never raises.
    """

    def __init__(
        self,
        sequence_client: Optional[SequenceClient] = None,
        counter_store: Optional[CounterStore] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.sequence_client = sequence_client
        self.counter_store = counter_store
        self._rng = rng or random.Random()
        # key -> (lock, number of coroutines using it)
        self._locks: Dict[str, Tuple[asyncio.Lock, int]] = {}

    async def allocate(self, prefix: str, date_string: Optional[str] = None) -> str:
        """Allocate and format an invoice number."""
        return str(await self.allocate_number(prefix, date_string))

    async def allocate_number(self, prefix: str, date_string: Optional[str] = None) -> InvoiceNumber:
        prefix = prefix or DEFAULT_PREFIX
        date_string = date_string or today_string()

        sequence = await self._remote_sequence(prefix, date_string)
        if sequence is None:
            sequence = await self._local_sequence(prefix, date_string)
        if sequence is None:
            sequence = self._random_sequence(prefix, date_string)

        number = InvoiceNumber(prefix=prefix, date=date_string, sequence=sequence)
        logger.info(f"Allocated invoice number {number}")
        return number

    async def _remote_sequence(self, prefix: str, date_string: str) -> Optional[int]:
        if self.sequence_client is None:
            return None
        try:
            sequence = await self.sequence_client.next_number(prefix, date_string)
        except Exception as e:
            logger.warning(f"Remote sequence allocation failed, using local counter: {e}")
            return None
        if not _is_valid_sequence(sequence):
            logger.warning(f"Remote service returned unusable sequence {sequence!r}, using local counter")
            return None
        logger.info(f"Sequence {sequence} allocated by remote service")
        return sequence

    async def _local_sequence(self, prefix: str, date_string: str) -> Optional[int]:
        if self.counter_store is None:
            return None

        key = counter_key(prefix, date_string)
        lock = self._acquire_lock(key)
        try:
            async with lock:
                current = await self.counter_store.get(key)
                try:
                    sequence = int(current) + 1 if current else 1
                except ValueError as e:
                    raise CounterStorageError(f"Corrupt counter value {current!r} for {key}") from e
                if sequence < 1:
                    raise CounterStorageError(f"Counter value {current!r} for {key} is not positive")
                await self.counter_store.set(key, str(sequence))
        except Exception as e:
            logger.warning(f"Local counter allocation failed, using random sequence: {e}")
            return None
        finally:
            self._release_lock(key)

        logger.info(f"Sequence {sequence} allocated from local counter {key}")
        return sequence

    def _acquire_lock(self, key: str) -> asyncio.Lock:
        lock, users = self._locks.get(key, (asyncio.Lock(), 0))
        self._locks[key] = (lock, users + 1)
        return lock

    def _release_lock(self, key: str) -> None:
        # Drop the lock once no coroutine holds or awaits it
        lock, users = self._locks[key]
        if users <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, users - 1)

    def _random_sequence(self, prefix: str, date_string: str) -> int:
        sequence = self._rng.randint(1, RANDOM_SEQUENCE_MAX)
        logger.warning(
            f"Using random sequence {sequence} for {prefix}/{date_string}; "
            f"the resulting invoice number is not guaranteed unique"
        )
        return sequence


def _is_valid_sequence(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1
