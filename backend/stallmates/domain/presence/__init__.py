"""Presence domain exports."""

from .models import ClientSession, PresenceRecord, VisitStats  # noqa: F401
