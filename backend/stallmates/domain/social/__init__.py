"""Social domain exports."""

from .models import FriendRequest, FriendshipOutcome, FriendshipResult, RequestStatus  # noqa: F401
