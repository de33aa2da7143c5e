"""Clock helpers; timestamps are stored as epoch seconds."""

from __future__ import annotations

import time as _time
from datetime import datetime, timezone


def now_ts() -> float:
	return _time.time()


def to_datetime(ts: float) -> datetime:
	return datetime.fromtimestamp(ts, tz=timezone.utc)


def day_key(ts: float) -> str:
	return to_datetime(ts).strftime("%Y-%m-%d")
