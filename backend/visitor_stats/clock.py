from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable


# Static civil offset; no zone database and no daylight-saving shifts.
UTC_OFFSET = timedelta(hours=8)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TimeNormalizer:
    """Canonical ``YYYY-MM-DD HH:MM:SS`` timestamps in UTC+8.

    The host instant is taken in UTC and shifted by a fixed offset, so the
    result does not depend on the host's local timezone.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock

    def now(self) -> str:
        return self.format(self._clock())

    @staticmethod
    def format(instant: datetime) -> str:
        if instant.tzinfo is not None:
            instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
        shifted = (instant + UTC_OFFSET).replace(microsecond=0)
        return shifted.strftime(TIMESTAMP_FORMAT)
