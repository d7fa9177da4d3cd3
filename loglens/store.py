"""Thread-safe in-memory record store with running statistics."""

import dataclasses
import logging
import threading
from collections import defaultdict
from itertools import islice
from typing import Iterator

from loglens.errors import DuplicateRecordError, RecordNotFoundError, StoreFullError
from loglens.models import Record, Stats
from loglens.values import now_ms

logger = logging.getLogger(__name__)


class RecordStore:
    """Append-only record store.

    Inserts and the Stats update happen under one lock, so stats never run
    ahead of the visible records. Scans read a snapshot of the record count
    taken under the same lock; since the list is only ever appended to, the
    snapshot stays valid without copying it.
    """

    def __init__(self, max_records: int = 0):
        self._lock = threading.Lock()
        self._records: list[Record] = []
        self._by_id: dict[str, int] = {}
        self._next_seq = 1
        self._max_records = max_records
        self._level_counts: dict[str, int] = defaultdict(int)
        self._last_updated: int | None = None

    def insert(self, record: Record) -> str:
        """Append a record, assigning an id if it has none. Returns the id."""
        with self._lock:
            if self._max_records and len(self._records) >= self._max_records:
                logger.warning("Rejecting insert, store holds %d records", len(self._records))
                raise StoreFullError(f"store is full ({self._max_records} records)")

            if record.id:
                if record.id in self._by_id:
                    raise DuplicateRecordError(f"duplicate record id: {record.id}")
            else:
                record = dataclasses.replace(record, id=self._generate_id())

            self._by_id[record.id] = len(self._records)
            self._records.append(record)
            self._level_counts[record.level] += 1
            self._last_updated = now_ms()
            return record.id

    def _generate_id(self) -> str:
        # Zero padding keeps string order equal to insertion order
        while True:
            candidate = f"{self._next_seq:012d}"
            self._next_seq += 1
            if candidate not in self._by_id:
                return candidate

    def scan(self) -> Iterator[Record]:
        """Yield the records present when the scan starts, in insertion order."""
        with self._lock:
            count = len(self._records)
        return islice(self._records, count)

    def get(self, record_id: str) -> Record:
        with self._lock:
            index = self._by_id.get(record_id)
            if index is None:
                raise RecordNotFoundError(f"record not found: {record_id}")
            return self._records[index]

    def stats(self) -> Stats:
        """Return a point-in-time snapshot of the running statistics."""
        with self._lock:
            return Stats(
                total_records=len(self._records),
                level_counts=dict(self._level_counts),
                last_updated=self._last_updated,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
