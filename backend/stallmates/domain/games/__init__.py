"""Games domain exports."""

from .models import GameInvite, GameState, GameStatus, InviteStatus, LetterResult  # noqa: F401
