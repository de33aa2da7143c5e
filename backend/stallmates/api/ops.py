"""Operations endpoints: health checks and Prometheus metrics."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from stallmates.infra import postgres
from stallmates.infra.documents import PostgresDocumentStore, get_store
from stallmates.infra.redis import redis_client
from stallmates.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ops"])


def _resolve_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
	if x_admin_token:
		return x_admin_token
	if authorization and authorization.lower().startswith("bearer "):
		return authorization.split(" ", 1)[1]
	return None


async def require_metrics_access(
	x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if settings.obs_metrics_public:
		return
	if not settings.obs_admin_token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="admin_token_not_configured")
	if _resolve_token(x_admin_token, authorization) != settings.obs_admin_token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="forbidden")


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok", "service": settings.service_name}


@router.get("/health/ready")
async def health_ready() -> Response:
	checks: dict[str, str] = {}
	try:
		await redis_client.ping()
		checks["redis"] = "ok"
	except Exception:
		logger.exception("readiness: redis unreachable")
		checks["redis"] = "error"
	if isinstance(get_store(), PostgresDocumentStore):
		try:
			await postgres.ping()
			checks["postgres"] = "ok"
		except Exception:
			logger.exception("readiness: postgres unreachable")
			checks["postgres"] = "error"
	ok = all(value == "ok" for value in checks.values())
	code = status.HTTP_200_OK if ok else status.HTTP_503_SERVICE_UNAVAILABLE
	return JSONResponse(content={"status": "ok" if ok else "degraded", "checks": checks}, status_code=code)


@router.get("/metrics")
async def prometheus_metrics(_: None = Depends(require_metrics_access)) -> Response:
	payload = generate_latest()
	return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
