# blindstore/api/routers/health.py

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request

from blindstore.api.dependencies import Components, get_components

router = APIRouter()
logger = logging.getLogger(__name__)


async def _redis_status(components: Components) -> str:
    if components.redis is None:
        return "disabled"
    try:
        await components.redis.ping()
    except Exception as e:
        logger.warning("health_redis_unavailable", extra={"error": str(e)})
        return "unavailable"
    return "ok"


@router.get("/health")
async def health(
    request: Request,
    components: Annotated[Components, Depends(get_components)],
):
    """Liveness plus sweeper, audit queue and Redis state. Degraded while sweeps keep failing or Redis is down."""
    stats = components.sweeper.stats
    redis_status = await _redis_status(components)
    degraded = stats.consecutive_failures > 0 or redis_status == "unavailable"
    return {
        "status": "degraded" if degraded else "ok",
        "correlation_id": request.state.correlation_id,
        "environment": components.settings.environment,
        "version": components.settings.version,
        "redis": redis_status,
        "sweeper": {"running": components.sweeper.running, **stats.to_dict()},
        "audit": {
            "pending": components.audit_logger.pending,
            "dead_lettered": components.audit_logger.dead_lettered,
        },
    }


@router.get("/metrics")
async def metrics(components: Annotated[Components, Depends(get_components)]):
    return components.metrics.export_metrics()
