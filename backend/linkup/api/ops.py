"""Operations endpoints: health probes and Prometheus metrics."""

from __future__ import annotations

import asyncio
import logging
from time import perf_counter

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from redis.exceptions import RedisError

from linkup.infra.redis import redis_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return {"status": "ok"}


@router.get("/health/ready")
async def health_ready() -> Response:
	start = perf_counter()
	try:
		await asyncio.wait_for(redis_client.ping(), timeout=0.5)
	except (RedisError, asyncio.TimeoutError) as exc:
		logger.warning("Redis readiness check failed", exc_info=True)
		return JSONResponse({"status": "degraded", "redis": {"ok": False, "error": str(exc)}}, status_code=503)
	latency_ms = round((perf_counter() - start) * 1000, 2)
	return JSONResponse({"status": "ok", "redis": {"ok": True, "latency_ms": latency_ms}})


@router.get("/metrics")
async def prometheus_metrics() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
