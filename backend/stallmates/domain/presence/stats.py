"""Visit events opened and closed by the availability toggle."""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from stallmates.domain.common import clock
from stallmates.domain.presence.models import VisitStats
from stallmates.infra.documents import DocumentMissing, get_store, increment, where

logger = logging.getLogger(__name__)

EVENTS = "visitEvents"
STATS = "visitStats"


async def open_visit(identity_id: str, *, now: Optional[float] = None) -> str:
	ts = now if now is not None else clock.now_ts()
	event_id = uuid.uuid4().hex
	await get_store().create(
		EVENTS,
		event_id,
		{
			"userId": identity_id,
			"startTime": ts,
			"endTime": None,
			"duration": None,
			"date": clock.day_key(ts),
		},
	)
	return event_id


async def close_visit(identity_id: str, event_id: str, *, now: Optional[float] = None) -> None:
	store = get_store()
	ts = now if now is not None else clock.now_ts()
	event = await store.get(EVENTS, event_id)
	if event is None or event.get("endTime") is not None:
		logger.info("visit event already closed", extra={"event_id": event_id, "user_id": identity_id})
		return
	start = float(event.get("startTime") or ts)
	await store.update(EVENTS, event_id, {"endTime": ts, "duration": max(0.0, ts - start)})
	day = clock.day_key(ts)
	try:
		await store.update(STATS, identity_id, {"totalVisits": increment(1), "lastVisitDate": day})
	except DocumentMissing:
		await store.set(STATS, identity_id, {"totalVisits": 1, "lastVisitDate": day})


async def visit_stats(identity_id: str) -> VisitStats:
	store = get_store()
	summary = await store.get(STATS, identity_id)
	events = await store.query(EVENTS, [where("userId", "==", identity_id)])
	days = {event.get("date") for event in events if event.get("date")}
	total = int(summary.get("totalVisits", 0)) if summary else 0
	return VisitStats(
		identity_id=identity_id,
		total_visits=total,
		distinct_days=len(days),
		average_per_day=round(total / len(days), 2) if days else 0.0,
		last_visit_date=summary.get("lastVisitDate") if summary else None,
	)
