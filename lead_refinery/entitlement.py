"""
Entitlement hooks
=================
The engine asks an entitlement hook before a resolution runs and again
before its record is kept. Either call may raise InsufficientEntitlement;
a rejection after classification means the record is not persisted.
"""

import logging
import threading
from typing import Protocol

from .models.schemas import LeadIdentity, EnrichedRecord
from .exceptions import InsufficientEntitlement

logger = logging.getLogger(__name__)


class EntitlementHook(Protocol):
    def before_resolution(self, identity: LeadIdentity) -> None:
        ...

    def after_resolution(self, record: EnrichedRecord) -> None:
        ...


class AllowAllEntitlement:
    """Default hook: every resolution is allowed"""

    def before_resolution(self, identity: LeadIdentity) -> None:
        return None

    def after_resolution(self, record: EnrichedRecord) -> None:
        return None


class QuotaEntitlement:
    """
    Fixed quota of kept records.

    The quota is checked before resolution and consumed only once a record
    is about to be kept.
    """

    def __init__(self, quota: int):
        self.remaining = quota
        self._lock = threading.Lock()

    def before_resolution(self, identity: LeadIdentity) -> None:
        with self._lock:
            if self.remaining <= 0:
                raise InsufficientEntitlement(f"No enrichment quota left for {identity.email}")

    def after_resolution(self, record: EnrichedRecord) -> None:
        with self._lock:
            if self.remaining <= 0:
                raise InsufficientEntitlement(f"Quota exhausted before {record.raw_lead_id} could be kept")
            self.remaining -= 1
            logger.debug("Quota consumed by %s, %s left", record.raw_lead_id, self.remaining)
