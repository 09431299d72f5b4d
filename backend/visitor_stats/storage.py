from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown-public-address (fallback)"

metadata = MetaData()

visitors = Table(
    "visitors",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("ip", String(255), nullable=False, default=UNKNOWN_ADDRESS),
    Column("visit_time", String(19), nullable=False, index=True),
    Column("remark", Text, nullable=False, default=""),
    # Ids stay monotonic across deletes and resets.
    sqlite_autoincrement=True,
)

blacklist = Table(
    "blacklist",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("ip", String(255), nullable=False, unique=True),
    Column("create_time", String(19), nullable=False),
    sqlite_autoincrement=True,
)


def _engine_for(url: str) -> Engine:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    database = parsed.database or ""
    if database in {"", ":memory:"}:
        # A single shared connection keeps an in-memory database alive.
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(database).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False})


class Database:
    """Process-scoped storage handle shared by every service."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.engine = _engine_for(url)
        self.dialect = self.engine.dialect.name

    def init_schema(self) -> None:
        metadata.create_all(self.engine)
        logger.info("Storage schema ready at %s", make_url(self.url).render_as_string())

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Storage ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
        logger.debug("Storage connections closed")
