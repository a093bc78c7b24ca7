"""
Record store for enriched leads
"""

import threading
from typing import Dict, List, Optional, Protocol

from .models.schemas import EnrichedRecord


class LeadStore(Protocol):
    """Persistence collaborator: upsert by raw_lead_id, read back"""

    def upsert(self, record: EnrichedRecord) -> EnrichedRecord:
        ...

    def fetch_all(self) -> List[EnrichedRecord]:
        ...

    def get(self, raw_lead_id: str) -> Optional[EnrichedRecord]:
        ...


class InMemoryLeadStore:
    """
    Process-local store. A re-run for the same raw_lead_id fully replaces
    the previous record.
    """

    def __init__(self):
        self._records: Dict[str, EnrichedRecord] = {}
        self._lock = threading.Lock()

    def upsert(self, record: EnrichedRecord) -> EnrichedRecord:
        with self._lock:
            self._records[record.raw_lead_id] = record
        return record

    def fetch_all(self) -> List[EnrichedRecord]:
        """All records, newest first"""
        with self._lock:
            records = list(self._records.values())
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def get(self, raw_lead_id: str) -> Optional[EnrichedRecord]:
        with self._lock:
            return self._records.get(raw_lead_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
