"""Stable fingerprints for friend sets, used as cache keys."""

from __future__ import annotations

import hashlib
from typing import Iterable


def friends_hash(friend_ids: Iterable[str]) -> str:
	joined = "|".join(sorted(set(friend_ids)))
	return hashlib.sha1(joined.encode("utf-8")).hexdigest()
