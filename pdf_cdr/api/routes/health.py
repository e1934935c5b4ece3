"""Health check and monitoring routes"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

HEALTH_MESSAGE = "Web server is up"


def create_health_router() -> APIRouter:
    """Create health check router.

    Returns:
        FastAPI router with health and metrics endpoints
    """
    router = APIRouter()

    @router.get("/management/health", response_class=PlainTextResponse)
    async def health_check():
        """Liveness check"""
        return HEALTH_MESSAGE

    @router.get("/metrics")
    async def get_metrics():
        """Prometheus metrics endpoint"""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return router
