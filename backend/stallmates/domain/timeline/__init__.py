"""Timeline domain exports."""

from .models import Activity, Post, TimelinePage  # noqa: F401
