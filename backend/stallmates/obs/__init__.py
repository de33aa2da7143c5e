"""Logging and request instrumentation bootstrap."""

from __future__ import annotations

from fastapi import FastAPI

from stallmates.obs import logging as obs_logging
from stallmates.obs import middleware
from stallmates.settings import settings


def init(app: FastAPI) -> bool:
	"""Configure JSON logging and request metrics once per app; False when disabled."""
	if not settings.obs_enabled:
		return False
	if getattr(app.state, "obs_installed", False):
		return True
	obs_logging.configure_logging()
	middleware.install(app)
	app.state.obs_installed = True
	return True


__all__ = ["init"]
