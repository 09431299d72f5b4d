import re
from datetime import datetime, timedelta, timezone

from visitor_stats.clock import TimeNormalizer


def test_now_shifts_utc_instant_by_eight_hours():
    clock = TimeNormalizer(clock=lambda: datetime(2024, 12, 31, 20, 15, 30, 987654, tzinfo=timezone.utc))
    assert clock.now() == "2025-01-01 04:15:30"


def test_format_ignores_host_timezone_of_aware_instants():
    eastern = timezone(timedelta(hours=-5))
    instant = datetime(2024, 6, 1, 7, 0, 0, tzinfo=eastern)
    assert TimeNormalizer.format(instant) == "2024-06-01 20:00:00"


def test_default_clock_produces_canonical_shape():
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", TimeNormalizer().now())
