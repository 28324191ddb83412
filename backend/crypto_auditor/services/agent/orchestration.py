"""
Agent orchestration layer.

Responsibilities:
- Classify the query and resolve which branches to dispatch
- Run the knowledge-base and price branches concurrently and join them
- Assemble the AgentResponse envelope with per-branch and total timings

NON-responsibilities:
- Does NOT retry, time out or cancel branch calls
- Does NOT rank or merge results across branches

Branch failures are absorbed by the clients and only show up as empty
results; they never fail the request.
"""
import asyncio
import random
import string
import time
from typing import Optional

from crypto_auditor.core.config import get_settings
from crypto_auditor.core.logging import get_logger
from crypto_auditor.core.metrics import record_agent_query, record_branch_call
from crypto_auditor.core.tracing import get_tracer, set_span_attribute, set_span_status, StatusCode
from crypto_auditor.services.agent.classification import classify_query
from crypto_auditor.services.agent.knowledge_base import KnowledgeBaseClient, get_kb_client
from crypto_auditor.services.agent.prices import PriceClient, get_price_client
from crypto_auditor.services.agent.schema import (
    AgentResponse,
    AgentResults,
    BranchOutcome,
    Classification,
    ExecutionTimings,
    InvalidQueryError,
    KBResult,
    PriceResult,
    QueryCategory,
    QueryContext,
)

logger = get_logger(__name__)

DEFAULT_MAX_RESULTS = 5

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_query_id() -> str:
    """
    Process-unique query id: `q_<epoch ms>_<9 random base36 chars>`.
    """
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"q_{int(time.time() * 1000)}_{suffix}"


def should_search_kb(effective: QueryCategory, classification: Classification) -> bool:
    if effective in (QueryCategory.KB_ONLY, QueryCategory.COMBINED):
        return True
    return effective == QueryCategory.AUTO and classification.category != QueryCategory.PRICE_ONLY


def should_fetch_prices(effective: QueryCategory, classification: Classification) -> bool:
    if effective in (QueryCategory.PRICE_ONLY, QueryCategory.COMBINED):
        return True
    return effective == QueryCategory.AUTO and bool(classification.detected_projects)


class AgentOrchestrationService:
    """
    Fan-out orchestration for agent queries.

    Clients default to the process-wide singletons; tests pass stubs.
    """

    def __init__(
        self,
        kb_client: Optional[KnowledgeBaseClient] = None,
        price_client: Optional[PriceClient] = None,
        default_max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self._kb_client = kb_client or get_kb_client()
        self._price_client = price_client or get_price_client()
        self.default_max_results = default_max_results

    async def _search_kb(
        self, query: str, max_results: int, classification: Classification
    ) -> BranchOutcome[KBResult]:
        with get_tracer().start_as_current_span("agent.kb_search"):
            set_span_attribute("agent.max_results", max_results)
            outcome = await self._kb_client.search(query, max_results, classification=classification)
            self._record_branch("kb", outcome)
            return outcome

    async def _fetch_prices(self, classification: Classification) -> BranchOutcome[PriceResult]:
        with get_tracer().start_as_current_span("agent.price_fetch"):
            set_span_attribute("agent.projects", classification.detected_projects)
            outcome = await self._price_client.fetch(classification.detected_projects)
            self._record_branch("price", outcome)
            return outcome

    @staticmethod
    async def _skip() -> BranchOutcome:
        return BranchOutcome()

    @staticmethod
    def _record_branch(branch: str, outcome: BranchOutcome) -> None:
        set_span_attribute("agent.results_count", len(outcome.results))
        set_span_attribute("agent.duration_ms", outcome.duration_ms)
        record_branch_call(branch, outcome.ok, outcome.duration_ms, len(outcome.results))
        if not outcome.ok:
            set_span_status(StatusCode.ERROR, outcome.error)
            logger.warning(
                "agent_branch_degraded",
                branch=branch,
                reason=outcome.error,
                duration_ms=outcome.duration_ms,
            )

    async def handle(
        self,
        query: Optional[str],
        context: Optional[QueryContext] = None,
        query_id: Optional[str] = None,
    ) -> AgentResponse:
        """
        Answer one agent query.

        Args:
            query: Raw query text
            context: Optional search-mode override and result cap
            query_id: Id to report; generated when omitted

        Returns:
            AgentResponse envelope

        Raises:
            InvalidQueryError if the query is missing or empty
        """
        start_time = time.time()
        query_id = query_id or generate_query_id()
        context = context or QueryContext()

        if not query:
            logger.warning("agent_query_empty", query_id=query_id)
            raise InvalidQueryError(query_id)

        with get_tracer().start_as_current_span("agent.handle"):
            classification = classify_query(query)
            effective = context.search_mode or classification.category
            max_results = context.max_results or self.default_max_results

            execute_kb = should_search_kb(effective, classification)
            execute_price = should_fetch_prices(effective, classification)

            record_agent_query(classification.category.value)
            set_span_attribute("agent.query_id", query_id)
            set_span_attribute("agent.classification", classification.category.value)
            set_span_attribute("agent.search_mode", effective.value)
            logger.info(
                "agent_query_classified",
                query_id=query_id,
                query=query,
                classification=classification.category.value,
                search_mode=effective.value,
                detected_projects=classification.detected_projects or "none",
                execute_kb=execute_kb,
                execute_price=execute_price,
            )

            kb_outcome, price_outcome = await asyncio.gather(
                self._search_kb(query, max_results, classification) if execute_kb else self._skip(),
                self._fetch_prices(classification) if execute_price else self._skip(),
            )

            total_ms = int((time.time() - start_time) * 1000)

            response = AgentResponse(
                query_id=query_id,
                original_query=query,
                classified_as=classification.category,
                results=AgentResults(
                    kb_results=kb_outcome.results or None,
                    price_results=price_outcome.results or None,
                    kb_search_complete=execute_kb,
                    price_search_complete=execute_price,
                ),
                executed_at=ExecutionTimings(
                    kb_search_ms=kb_outcome.duration_ms,
                    price_fetch_ms=price_outcome.duration_ms,
                    total_ms=total_ms,
                ),
                agent_reasoning=classification.reasoning,
            )

            logger.info(
                "agent_query_completed",
                query_id=query_id,
                kb_results=len(kb_outcome.results),
                price_results=len(price_outcome.results),
                kb_search_ms=kb_outcome.duration_ms,
                price_fetch_ms=price_outcome.duration_ms,
                total_ms=total_ms,
            )
            return response


_agent_orchestration_service: Optional[AgentOrchestrationService] = None


def get_agent_orchestration_service() -> AgentOrchestrationService:
    """Global singleton accessor for the agent orchestration service."""
    global _agent_orchestration_service
    if _agent_orchestration_service is None:
        _agent_orchestration_service = AgentOrchestrationService(
            default_max_results=get_settings().default_max_results,
        )
    return _agent_orchestration_service
