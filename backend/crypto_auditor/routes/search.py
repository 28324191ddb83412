"""
Raw knowledge-base search endpoint.

POST /api/search  {question, searchMode?, alpha?}

Pass-through to the knowledge base's semantic search without classification
or price data. Returns a list of {metadata, relevance}.
"""
import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from crypto_auditor.core.logging import get_logger
from crypto_auditor.services.agent.knowledge_base import get_kb_client
from crypto_auditor.services.agent.schema import KnowledgeBaseError

logger = get_logger(__name__)

router = APIRouter()

SEARCH_LIMIT = 10


class SearchRequest(BaseModel):
    """Raw search request model."""
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = Field(None, description="Free-text question")
    search_mode: Optional[str] = Field(None, alias="searchMode", description="semantic, keyword or hybrid (informational)")
    alpha: Optional[float] = Field(None, ge=0.0, le=1.0, description="Hybrid search weighting")


class SearchHit(BaseModel):
    """Knowledge-base hit."""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    relevance: Optional[float] = None


@router.post("", response_model=List[SearchHit])
async def search(body: SearchRequest):
    """
    Run a semantic search against the knowledge base.

    `alpha`, when given, is forwarded as the hybrid search weighting.
    """
    start_time = time.time()
    question = body.question.strip() if body.question else ""

    if not question:
        logger.warning("search_question_empty")
        return JSONResponse(status_code=400, content={"error": "No question provided"})

    try:
        hits = await get_kb_client().semantic_search(question, limit=SEARCH_LIMIT, alpha=body.alpha)
    except KnowledgeBaseError as e:
        logger.error(
            "search_error",
            question=question,
            error=str(e),
            error_type=type(e).__name__,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        return JSONResponse(status_code=500, content={"error": str(e)})

    logger.info(
        "search_completed",
        question=question,
        search_mode=body.search_mode,
        alpha=body.alpha,
        results_count=len(hits),
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return hits
