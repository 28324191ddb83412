"""
GET /metrics: Prometheus scrape target for the agent API.

Exposes HTTP RED metrics, agent classification/branch metrics and process
resource gauges from the shared registry.
"""
from fastapi import APIRouter, Response

from crypto_auditor.core.logging import get_logger
from crypto_auditor.core.metrics import get_metrics, get_metrics_content_type

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def scrape() -> Response:
    content_type = get_metrics_content_type()
    try:
        body = get_metrics()
    except Exception as e:
        # A failed collection still answers the scraper so the target stays up
        logger.error("metrics_collection_failed", error=str(e), error_type=type(e).__name__)
        body = b"# metrics collection failed\n"
    return Response(content=body, media_type=content_type)
