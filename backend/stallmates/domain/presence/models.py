"""Presence value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True, slots=True)
class ClientSession:
	"""One connected client (browser tab) of an identity."""

	identity_id: str
	session_token: str


@dataclass(slots=True)
class PresenceRecord:
	"""Snapshot of an identity's presence node.

	Online state is derived from the session map; nothing stores it.
	"""

	identity_id: str
	sessions: Dict[str, float] = field(default_factory=dict)
	is_shitting: bool = False
	last_active: Optional[float] = None
	current_event_id: Optional[str] = None

	@property
	def is_online(self) -> bool:
		return len(self.sessions) > 0

	@property
	def is_available(self) -> bool:
		return self.is_online and self.is_shitting

	@classmethod
	def from_hashes(cls, identity_id: str, status: Dict[str, str], sessions: Dict[str, str]) -> "PresenceRecord":
		# legacy nodes may carry a stored isOnline/is_online flag; it is ignored
		last_active = status.get("last_active")
		parsed_sessions: Dict[str, float] = {}
		for token, raw in sessions.items():
			try:
				parsed_sessions[token] = float(raw)
			except (TypeError, ValueError):
				parsed_sessions[token] = 0.0
		return cls(
			identity_id=identity_id,
			sessions=parsed_sessions,
			is_shitting=status.get("is_shitting") == "1",
			last_active=float(last_active) if last_active else None,
			current_event_id=status.get("current_event_id") or None,
		)

	def to_payload(self) -> Dict[str, Any]:
		return {
			"user_id": self.identity_id,
			"online": self.is_online,
			"is_shitting": self.is_shitting,
			"available": self.is_available,
			"session_count": len(self.sessions),
			"last_active": self.last_active,
		}


@dataclass(slots=True)
class VisitStats:
	identity_id: str
	total_visits: int = 0
	distinct_days: int = 0
	average_per_day: float = 0.0
	last_visit_date: Optional[str] = None
