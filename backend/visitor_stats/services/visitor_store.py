from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, insert, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from visitor_stats.schemas import VisitRecord
from visitor_stats.storage import UNKNOWN_ADDRESS, Database, visitors

logger = logging.getLogger(__name__)

# SQLite caps bound parameters per statement (999 on older builds).
DELETE_CHUNK_SIZE = 500


@dataclass
class StoreResult:
    ok: bool
    message: str = ""
    affected: int = 0
    record_id: Optional[int] = None


def _chunks(values: List[int], size: int) -> Iterable[List[int]]:
    for start in range(0, len(values), size):
        yield values[start : start + size]


class VisitorStore:
    """CRUD over the visit records table.

    Every operation degrades to a result value instead of raising.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    def insert(self, address: str, timestamp: str) -> StoreResult:
        statement = insert(visitors).values(
            ip=(address or "").strip() or UNKNOWN_ADDRESS,
            visit_time=timestamp,
            remark="",
        )
        try:
            with self.database.engine.begin() as conn:
                cursor = conn.execute(statement)
                record_id = cursor.inserted_primary_key[0]
        except SQLAlchemyError:
            logger.exception("Failed to insert visit record")
            return StoreResult(ok=False, message="Failed to record visit.")
        return StoreResult(ok=True, message="Visit recorded.", affected=1, record_id=record_id)

    def count(self) -> int:
        try:
            with self.database.engine.connect() as conn:
                total = conn.execute(select(func.count()).select_from(visitors)).scalar()
        except SQLAlchemyError:
            logger.exception("Failed to count visit records")
            return 0
        return int(total or 0)

    def list_all(self) -> List[VisitRecord]:
        query = select(visitors).order_by(visitors.c.visit_time.desc(), visitors.c.id.desc())
        try:
            with self.database.engine.connect() as conn:
                rows = conn.execute(query).mappings().all()
        except SQLAlchemyError:
            logger.exception("Failed to list visit records")
            return []
        return [
            VisitRecord(
                id=row["id"],
                ip=row["ip"],
                visit_time=row["visit_time"],
                remark=row["remark"] or "",
            )
            for row in rows
        ]

    def delete_one(self, record_id: int) -> StoreResult:
        statement = delete(visitors).where(visitors.c.id == record_id)
        try:
            with self.database.engine.begin() as conn:
                affected = conn.execute(statement).rowcount
        except SQLAlchemyError:
            logger.exception("Failed to delete visit record %s", record_id)
            return StoreResult(ok=False, message="Failed to delete visit record.")
        return StoreResult(ok=True, message="Visit record deleted.", affected=affected)

    def delete_many(self, record_ids: Iterable[int]) -> StoreResult:
        ids = sorted(set(record_ids))
        if not ids:
            return StoreResult(ok=False, message="No visit record ids supplied.")

        affected = 0
        try:
            with self.database.engine.begin() as conn:
                for chunk in _chunks(ids, DELETE_CHUNK_SIZE):
                    affected += conn.execute(
                        delete(visitors).where(visitors.c.id.in_(chunk))
                    ).rowcount
        except SQLAlchemyError:
            logger.exception("Failed to batch delete %d visit records", len(ids))
            return StoreResult(ok=False, message="Failed to delete visit records.")
        return StoreResult(
            ok=True,
            message=f"Deleted {affected} visit records.",
            affected=affected,
        )

    def set_annotation(self, record_id: int, remark: Optional[str]) -> StoreResult:
        statement = (
            update(visitors).where(visitors.c.id == record_id).values(remark=remark or "")
        )
        try:
            with self.database.engine.begin() as conn:
                affected = conn.execute(statement).rowcount
        except SQLAlchemyError:
            logger.exception("Failed to update remark of visit record %s", record_id)
            return StoreResult(ok=False, message="Failed to update remark.")
        if not affected:
            return StoreResult(ok=False, message="Visit record not found.")
        return StoreResult(ok=True, message="Remark updated.", affected=affected)

    def reset_all(self) -> StoreResult:
        try:
            with self.database.engine.begin() as conn:
                affected = conn.execute(delete(visitors)).rowcount
        except SQLAlchemyError:
            logger.exception("Failed to clear visit records")
            return StoreResult(ok=False, message="Failed to reset visit records.")

        message = "Visit records reset."
        if not self._reclaim_storage():
            message = "Visit records reset; storage compaction skipped."
        return StoreResult(ok=True, message=message, affected=affected)

    def _reclaim_storage(self) -> bool:
        if self.database.dialect not in {"sqlite", "postgresql"}:
            return False
        try:
            # VACUUM cannot run inside a transaction block.
            with self.database.engine.connect() as conn:
                conn.execution_options(isolation_level="AUTOCOMMIT").execute(text("VACUUM"))
        except SQLAlchemyError as exc:
            logger.warning("Storage compaction failed after reset: %s", exc)
            return False
        return True
