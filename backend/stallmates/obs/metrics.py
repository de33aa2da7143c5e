"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"stallmates_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"stallmates_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

SOCKET_CLIENTS = Gauge(
	"stallmates_socketio_clients",
	"Active Socket.IO clients per namespace",
	["namespace"],
)

SOCKET_EVENTS = Counter(
	"stallmates_socketio_events_total",
	"Socket.IO events emitted per namespace",
	["namespace", "event"],
)

PRESENCE_SESSIONS = Counter(
	"stallmates_presence_sessions_total",
	"Presence sessions attached and released",
	["action"],
)

PRESENCE_SWEEPER_TRIMS = Counter(
	"stallmates_presence_sweeper_trim_total",
	"Presence sessions removed by the stale sweeper",
)

AVAILABILITY_TOGGLES = Counter(
	"stallmates_availability_toggles_total",
	"Availability flag changes",
	["state"],
)

IDENTITY_EVENTS = Counter(
	"stallmates_identity_events_total",
	"Registration and sign-in outcomes",
	["action", "result"],
)

FRIEND_REQUESTS = Counter(
	"stallmates_friend_requests_total",
	"Friend request transitions",
	["action"],
)

FRIENDSHIP_WRITES = Counter(
	"stallmates_friendship_writes_total",
	"Friendship mutations by outcome",
	["operation", "outcome"],
)

RECOMMENDATION_CACHE = Counter(
	"stallmates_recommendation_cache_total",
	"Recommendation cache lookups",
	["result"],
)

GAME_INVITES = Counter(
	"stallmates_game_invites_total",
	"Game invite transitions",
	["action"],
)

GAMES = Counter(
	"stallmates_games_total",
	"Game lifecycle events",
	["event"],
)

STALE_INVITES_COLLECTED = Counter(
	"stallmates_stale_invites_collected_total",
	"Accepted invites removed after their game completed",
)

POSTS = Counter(
	"stallmates_posts_total",
	"Timeline post mutations",
	["action"],
)

TIMELINE_CACHE = Counter(
	"stallmates_timeline_cache_total",
	"Timeline cache lookups",
	["result"],
)

RATE_LIMITED_EVENTS = Counter(
	"stallmates_rate_limited_total",
	"Events dropped due to rate limiting",
	["kind"],
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def socket_connected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).inc()


def socket_disconnected(namespace: str) -> None:
	SOCKET_CLIENTS.labels(namespace=namespace).dec()


def socket_event(namespace: str, event: str) -> None:
	SOCKET_EVENTS.labels(namespace=namespace, event=event).inc()


def inc_presence_session(action: str) -> None:
	PRESENCE_SESSIONS.labels(action=action).inc()


def inc_presence_sweeper_trim(count: int = 1) -> None:
	if count > 0:
		PRESENCE_SWEEPER_TRIMS.inc(count)


def inc_availability(state: bool) -> None:
	AVAILABILITY_TOGGLES.labels(state="on" if state else "off").inc()


def inc_identity(action: str, result: str) -> None:
	IDENTITY_EVENTS.labels(action=action, result=result).inc()


def inc_friend_request(action: str) -> None:
	FRIEND_REQUESTS.labels(action=action).inc()


def inc_friendship_write(operation: str, outcome: str) -> None:
	FRIENDSHIP_WRITES.labels(operation=operation, outcome=outcome).inc()


def inc_recommendation_cache(result: str) -> None:
	RECOMMENDATION_CACHE.labels(result=result).inc()


def inc_game_invite(action: str) -> None:
	GAME_INVITES.labels(action=action).inc()


def inc_game(event: str) -> None:
	GAMES.labels(event=event).inc()


def inc_stale_invite_collected() -> None:
	STALE_INVITES_COLLECTED.inc()


def inc_post(action: str) -> None:
	POSTS.labels(action=action).inc()


def inc_timeline_cache(result: str) -> None:
	TIMELINE_CACHE.labels(result=result).inc()


def inc_rate_limited(kind: str) -> None:
	RATE_LIMITED_EVENTS.labels(kind=kind).inc()
