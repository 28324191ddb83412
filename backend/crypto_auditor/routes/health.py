"""
Health check endpoint.
"""
from fastapi import APIRouter

from crypto_auditor.core.config import get_settings
from crypto_auditor.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/providers")
async def providers_health():
    """
    Configured upstream providers.

    Reports where the agent sends knowledge-base and price requests. Does not
    probe them; provider failures surface per request as empty branches.
    """
    settings = get_settings()
    return {
        "status": "ok",
        "knowledge_base": {
            "url": settings.kb_api_url,
            "name": settings.kb_name,
            "timeout_seconds": settings.kb_timeout_seconds,
        },
        "prices": {
            "url": settings.price_api_url,
            "timeout_seconds": settings.price_timeout_seconds,
        },
    }
