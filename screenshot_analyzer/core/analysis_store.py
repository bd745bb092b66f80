"""
In-memory store of enriched screenshot records.

Holds AnalysisRecords keyed by ID together with the request counter and the
last-activity timestamp. Locks are held only for the duration of a single
read or write and never across an await.
"""
import heapq
import logging
import threading
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from screenshot_analyzer.models.dtos import AnalysisRecord

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECORDS = 500
DEFAULT_RECENT_LIMIT = 50


class AnalysisStore:
    """
    Thread-safe keyed container of AnalysisRecords with bounded retention.

    When the store is full, inserting a new record evicts the record with the
    oldest creation timestamp.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS):
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self.max_records = max_records

        self._records: Dict[str, AnalysisRecord] = {}
        self._by_age: List[Tuple[datetime, str]] = []
        self._records_lock = threading.Lock()

        self._request_count = 0
        self._counter_lock = threading.Lock()

        self._last_request: Optional[datetime] = None
        self._activity_lock = threading.Lock()

    def insert(self, record: AnalysisRecord) -> bool:
        """
        Store a record.

        Args:
            record: The record to store.

        Returns:
            bool: True if stored, False if a record with the same ID already exists.
        """
        evicted: List[str] = []
        with self._records_lock:
            if record.id in self._records:
                return False
            while len(self._records) >= self.max_records:
                _, oldest = heapq.heappop(self._by_age)
                del self._records[oldest]
                evicted.append(oldest)
            self._records[record.id] = record
            heapq.heappush(self._by_age, (record.timestamp, record.id))

        for record_id in evicted:
            logger.debug(f"Evicted analysis {record_id} (retention limit {self.max_records})")
        return True

    def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[AnalysisRecord]:
        """
        Return up to ``limit`` records, newest first.
        """
        with self._records_lock:
            records = list(self._records.values())
        records.sort(key=lambda record: record.timestamp, reverse=True)
        return records[:max(limit, 0)]

    def count(self) -> int:
        with self._records_lock:
            return len(self._records)

    def record_request(self, at: datetime) -> int:
        """
        Count a submission and mark it as the latest activity.

        Returns:
            int: The running request number, starting at 1.
        """
        with self._counter_lock:
            self._request_count += 1
            count = self._request_count
        with self._activity_lock:
            if self._last_request is None or at > self._last_request:
                self._last_request = at
        return count

    @property
    def request_count(self) -> int:
        with self._counter_lock:
            return self._request_count

    @property
    def last_request(self) -> Optional[datetime]:
        with self._activity_lock:
            return self._last_request
