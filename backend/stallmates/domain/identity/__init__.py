"""Identity domain exports."""

from .models import SignInResult, UserProfile  # noqa: F401
