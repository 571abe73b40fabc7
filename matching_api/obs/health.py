"""Health check helpers for liveness and readiness probes."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict

from matching_api.infra import postgres
from matching_api.infra.redis import redis_client
from matching_api.obs import metrics

LOGGER = logging.getLogger(__name__)


async def _redis_status(timeout: float = 0.2) -> Dict[str, Any]:
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=timeout)
		metrics.mark_redis(True)
		return {"ok": True}
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.mark_redis(False)
		LOGGER.warning("Redis readiness check failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def _postgres_status(timeout: float = 0.3) -> Dict[str, Any]:
	try:
		pool = await postgres.get_pool()
		async with pool.acquire() as conn:
			await asyncio.wait_for(conn.execute("SELECT 1"), timeout=timeout)
		metrics.mark_postgres(True)
		return {"ok": True}
	except Exception as exc:  # pragma: no cover - depends on runtime
		metrics.mark_postgres(False)
		LOGGER.warning("Postgres readiness query failed", exc_info=True)
		return {"ok": False, "error": str(exc)}


async def readiness() -> Dict[str, Any]:
	redis_state, postgres_state = await asyncio.gather(_redis_status(), _postgres_status())
	ok = bool(redis_state["ok"] and postgres_state["ok"])
	return {"success": ok, "status": "ready" if ok else "degraded", "redis": redis_state, "postgres": postgres_state}
