"""Operations endpoints: health checks, metrics, and the pending-code debug view."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from matching_api.domain.identity import code_store
from matching_api.obs import health
from matching_api.settings import settings

router = APIRouter(prefix="", tags=["ops"])


async def require_metrics_access() -> None:
	if settings.obs_metrics_public or not settings.is_prod():
		return
	raise HTTPException(status.HTTP_404_NOT_FOUND, detail="not_found")


async def require_debug_routes() -> None:
	# Hidden rather than forbidden so production does not advertise it.
	if not settings.debug_routes_allowed():
		raise HTTPException(status.HTTP_404_NOT_FOUND, detail="not_found")


@router.get("/health")
async def health_live() -> dict:
	return {"success": True, "status": "OK", "message": f"{settings.service_name} is running"}


@router.get("/health/ready")
async def health_ready() -> Response:
	payload = await health.readiness()
	return JSONResponse(content=payload, status_code=200 if payload["success"] else 503)


@router.get("/metrics", dependencies=[Depends(require_metrics_access)])
async def metrics_endpoint() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/api/debug/codes", dependencies=[Depends(require_debug_routes)])
async def debug_codes() -> dict:
	entries = await code_store.list_pending()
	return {
		"success": True,
		"codes": [
			{"phone": entry.phone, "code": entry.code, "expires": entry.expires_at.isoformat()}
			for entry in entries
		],
	}
