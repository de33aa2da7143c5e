"""Pydantic schemas for presence lookups and availability toggles."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from stallmates.domain.presence.models import PresenceRecord, VisitStats


class AvailabilityRequest(BaseModel):
	available: bool


class PresenceLookup(BaseModel):
	user_ids: List[str] = Field(..., min_length=1, max_length=100)


class PresenceOut(BaseModel):
	user_id: str
	online: bool
	is_shitting: bool
	available: bool
	session_count: int = 0
	last_active: Optional[float] = None

	@classmethod
	def from_record(cls, record: PresenceRecord) -> "PresenceOut":
		return cls(**record.to_payload())


class VisitStatsOut(BaseModel):
	user_id: str
	total_visits: int
	distinct_days: int
	average_per_day: float
	last_visit_date: Optional[str] = None

	@classmethod
	def from_stats(cls, stats: VisitStats) -> "VisitStatsOut":
		return cls(
			user_id=stats.identity_id,
			total_visits=stats.total_visits,
			distinct_days=stats.distinct_days,
			average_per_day=stats.average_per_day,
			last_visit_date=stats.last_visit_date,
		)
