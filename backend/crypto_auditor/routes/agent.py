"""
Agent query endpoint.

POST /api/agent/query  {query, context?: {searchMode?, maxResults?, timeout?}}
GET  /api/agent/query  capability document
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from crypto_auditor.core.logging import get_logger
from crypto_auditor.services.agent.orchestration import (
    generate_query_id,
    get_agent_orchestration_service,
)
from crypto_auditor.services.agent.schema import AgentQueryRequest, InvalidQueryError

logger = get_logger(__name__)

router = APIRouter()

AGENT_NAME = "crypto-auditor-agent-v1"
CAPABILITIES = ["kb_search", "price_fetch", "query_classification", "parallel_execution"]


@router.post("/query")
async def agent_query(request: Request):
    """
    Classify a question and answer it from the knowledge base, live prices, or both.

    Returns the AgentResponse envelope. Branch failures degrade to empty
    results; only a missing query (400) or an unexpected failure (500) is
    reported as an error.
    """
    query_id = generate_query_id()

    try:
        body = await request.json()
        try:
            payload = AgentQueryRequest.model_validate(body)
        except ValidationError as exc:
            logger.warning("agent_query_invalid", query_id=query_id, error=str(exc))
            return JSONResponse(
                status_code=400,
                content={"error": "Invalid request", "details": str(exc)},
            )

        logger.info(
            "agent_query_received",
            query_id=query_id,
            query=payload.query,
            search_mode=payload.context.search_mode.value if payload.context.search_mode else None,
        )

        service = get_agent_orchestration_service()
        response = await service.handle(payload.query, payload.context, query_id=query_id)
        return JSONResponse(content=response.to_payload())

    except InvalidQueryError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except Exception as exc:
        logger.error(
            "agent_query_failed",
            query_id=query_id,
            error=str(exc),
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Agent processing failed",
                "queryId": query_id,
                "details": str(exc) or type(exc).__name__,
            },
        )


@router.get("/query")
async def agent_capabilities():
    """Static status and usage document for the agent."""
    return {
        "status": "healthy",
        "agent": AGENT_NAME,
        "capabilities": CAPABILITIES,
        "endpoints": {
            "query_endpoint": "POST /api/agent/query",
            "kb_only": 'POST /api/agent/query with context.searchMode="kb_only"',
            "price_only": 'POST /api/agent/query with context.searchMode="price_only"',
            "combined": 'POST /api/agent/query with context.searchMode="combined"',
            "auto": 'POST /api/agent/query with context.searchMode="auto" (default)',
        },
    }
