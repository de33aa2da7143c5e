"""Domain-level error taxonomy shared by every feature package."""

from __future__ import annotations


class StallmatesError(Exception):
    """Base class for expected, user-facing domain failures."""

    reason: str = "unknown"

    def __init__(self, reason: str | None = None) -> None:
        super().__init__(reason or self.reason)
        if reason:
            self.reason = reason


class NotAuthenticated(StallmatesError):
    reason = "not_authenticated"


class NotFound(StallmatesError):
    reason = "not_found"


class PermissionDenied(StallmatesError):
    reason = "forbidden"


class AlreadyExists(StallmatesError):
    reason = "already_exists"


class DuplicateRequest(AlreadyExists):
    reason = "duplicate_request"


class AlreadyFriends(AlreadyExists):
    reason = "already_friends"


class NotYourTurn(StallmatesError):
    reason = "not_your_turn"


class InvalidInput(StallmatesError):
    reason = "invalid_input"


class Stale(StallmatesError):
    """The referenced invite, request or game is no longer valid."""

    reason = "stale"


class RateLimited(StallmatesError):
    reason = "rate_limited"


class PartialFailure(StallmatesError):
    """One side of a two-document write committed and the other did not."""

    reason = "partial_failure"

    def __init__(self, reason: str | None = None, *, committed: tuple[str, ...] = (), failed: tuple[str, ...] = ()) -> None:
        super().__init__(reason)
        self.committed = committed
        self.failed = failed
