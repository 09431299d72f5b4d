from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from visitor_stats.clock import TimeNormalizer
from visitor_stats.schemas import VisitRecord
from visitor_stats.services.address_resolver import AddressResolver, RequestMetadata
from visitor_stats.services.denylist import DenylistGuard
from visitor_stats.services.visitor_store import VisitorStore

logger = logging.getLogger(__name__)


NO_VISIT_RECORDED = "no visit recorded yet"
REASON_RESTRICTED = "restricted"
REASON_STORAGE_ERROR = "storage_error"


@dataclass
class RecordOutcome:
    ok: bool
    address: Optional[str] = None
    timestamp: Optional[str] = None
    reason: Optional[str] = None


@dataclass
class Statistics:
    total_count: int
    last_visit: str
    records: List[VisitRecord] = field(default_factory=list)


class RecordService:
    def __init__(
        self,
        resolver: AddressResolver,
        denylist: DenylistGuard,
        clock: TimeNormalizer,
        store: VisitorStore,
    ) -> None:
        self.resolver = resolver
        self.denylist = denylist
        self.clock = clock
        self.store = store

    def record_visit(self, metadata: RequestMetadata) -> RecordOutcome:
        address = self.resolver.resolve_visitor(metadata).address
        if self.denylist.is_denied(address):
            logger.info("Visit from denylisted address %s not recorded", address)
            return RecordOutcome(ok=False, address=address, reason=REASON_RESTRICTED)

        timestamp = self.clock.now()
        result = self.store.insert(address, timestamp)
        if not result.ok:
            return RecordOutcome(ok=False, address=address, reason=REASON_STORAGE_ERROR)
        return RecordOutcome(ok=True, address=address, timestamp=timestamp)

    def get_statistics(self) -> Statistics:
        total = self.store.count()
        records = self.store.list_all()
        # A failed count reads as 0; the listed records are the better figure.
        total = max(total, len(records))
        last_visit = records[0].visit_time if records else NO_VISIT_RECORDED
        return Statistics(total_count=total, last_visit=last_visit, records=records)
