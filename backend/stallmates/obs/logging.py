"""JSON logs with request, user and session context.

Context is carried in one ContextVar so anything logged while a request (or a
coordinator task) is running picks up the same ``request_id``/``user_id``
without threading them through call signatures.
"""

from __future__ import annotations

import json
import logging
import random
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Mapping, Optional

from stallmates.settings import settings

_CONTEXT: ContextVar[Mapping[str, str]] = ContextVar("stallmates_log_context", default={})

ROOT_LOGGER = "stallmates"

# substrings of extra keys whose values never reach the log stream
REDACTED_KEYS = ("password", "token", "secret", "authorization", "email", "word", "guess", "content")

MAX_VALUE_CHARS = 200
MAX_ITEMS = 20

_RECORD_FIELDS = frozenset(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


@contextmanager
def log_context(**fields: Optional[str]) -> Iterator[Mapping[str, str]]:
	"""Merge ``fields`` (None values skipped) into the logging context for the block."""
	merged = dict(_CONTEXT.get())
	merged.update({key: str(value) for key, value in fields.items() if value is not None})
	token = _CONTEXT.set(merged)
	try:
		yield merged
	finally:
		_CONTEXT.reset(token)


def _clip(value: Any) -> Any:
	if isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
		return value[:MAX_VALUE_CHARS] + "..."
	if isinstance(value, Mapping):
		return {str(key): scrub(str(key), item) for key, item in list(value.items())[:MAX_ITEMS]}
	if isinstance(value, (list, tuple, set, frozenset)):
		items = list(value)
		clipped = [_clip(item) for item in items[:MAX_ITEMS]]
		if len(items) > MAX_ITEMS:
			clipped.append(f"+{len(items) - MAX_ITEMS} more")
		return clipped
	return value


def scrub(key: str, value: Any) -> Any:
	lowered = key.lower()
	if any(marker in lowered for marker in REDACTED_KEYS):
		return "[redacted]"
	return _clip(value)


class JSONLogFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:  # noqa: A003
		payload: Dict[str, Any] = {
			"ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
			"level": record.levelname.lower(),
			"logger": record.name,
			"msg": record.getMessage(),
			"service": settings.service_name,
			"env": settings.environment,
		}
		if settings.git_commit:
			payload["commit"] = settings.git_commit
		payload.update(_CONTEXT.get())
		for key, value in vars(record).items():
			if key not in _RECORD_FIELDS and key not in payload:
				payload[key] = scrub(key, value)
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, separators=(",", ":"), default=str)


class InfoSamplingFilter(logging.Filter):
	"""Keep a fraction of info records; everything else passes."""

	def __init__(self, rate: float) -> None:
		super().__init__()
		self.rate = max(0.0, min(1.0, rate))

	def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
		if record.levelno != logging.INFO or self.rate >= 1.0:
			return True
		return random.random() < self.rate


def configure_logging() -> logging.Logger:
	root = logging.getLogger()
	root.handlers.clear()
	handler = logging.StreamHandler()
	handler.setFormatter(JSONLogFormatter())
	handler.addFilter(InfoSamplingFilter(settings.obs_log_sampling_rate_info))
	root.addHandler(handler)
	root.setLevel(settings.obs_log_level)
	return logging.getLogger(ROOT_LOGGER)


def get_logger(name: Optional[str] = None) -> logging.Logger:
	return logging.getLogger(name or ROOT_LOGGER)
