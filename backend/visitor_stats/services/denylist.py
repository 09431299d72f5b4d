from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from visitor_stats.clock import TimeNormalizer
from visitor_stats.config import Settings
from visitor_stats.storage import Database, blacklist

logger = logging.getLogger(__name__)


@dataclass
class ReplaceResult:
    ok: bool
    stored: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    message: str = ""


def _distinct_addresses(addresses: Iterable[str]) -> List[str]:
    seen: dict[str, None] = {}
    for address in addresses:
        cleaned = (address or "").strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


class DenylistGuard:
    """Set of addresses barred from generating visit records.

    ``replace_all`` clears the table and reinserts row by row. It is not atomic
    with respect to concurrent ``is_denied`` calls: a reader may see an empty or
    partially populated denylist while a replacement is in flight.
    """

    def __init__(
        self,
        settings: Settings,
        database: Database,
        clock: TimeNormalizer | None = None,
    ) -> None:
        self.settings = settings
        self.database = database
        self.clock = clock or TimeNormalizer()

    def is_denied(self, address: str) -> bool:
        query = select(blacklist.c.id).where(blacklist.c.ip == address).limit(1)
        try:
            with self.database.engine.connect() as conn:
                row = conn.execute(query).first()
        except SQLAlchemyError:
            denied = not self.settings.fail_open_on_error
            logger.exception(
                "Denylist lookup failed for %s; treating as %s",
                address,
                "denied" if denied else "allowed",
            )
            return denied
        return row is not None

    def list_all(self) -> List[str]:
        query = select(blacklist.c.ip).order_by(blacklist.c.id)
        try:
            with self.database.engine.connect() as conn:
                return [row.ip for row in conn.execute(query)]
        except SQLAlchemyError:
            logger.exception("Failed to load denylist")
            return []

    def replace_all(self, addresses: Iterable[str]) -> ReplaceResult:
        try:
            with self.database.engine.begin() as conn:
                conn.execute(delete(blacklist))
        except SQLAlchemyError:
            logger.exception("Failed to clear denylist")
            return ReplaceResult(ok=False, message="Failed to clear denylist.")

        result = ReplaceResult(ok=True)
        created_at = self.clock.now()
        for address in _distinct_addresses(addresses):
            try:
                with self.database.engine.begin() as conn:
                    conn.execute(insert(blacklist).values(ip=address, create_time=created_at))
            except IntegrityError:
                # Already present, e.g. written by a concurrent replacement.
                continue
            except SQLAlchemyError as exc:
                logger.warning("Failed to store denylist entry %s: %s", address, exc)
                result.failed.append(address)
                continue
            result.stored.append(address)

        if result.failed:
            result.message = f"Denylist saved with {len(result.failed)} failed entries."
        else:
            result.message = f"Denylist saved ({len(result.stored)} entries)."
        logger.info(
            "Denylist replaced: %d stored, %d failed",
            len(result.stored),
            len(result.failed),
        )
        return result
