"""
Knowledge-base client.

Talks to a MindsDB-style SQL endpoint that exposes the crypto protocol
knowledge base. Two entry points:
- search(): the agent's KB branch. Never raises; failures become an empty
  BranchOutcome with the error reason recorded.
- semantic_search(): raw pass-through used by POST /api/search. Raises
  KnowledgeBaseError so the route can report the failure.

Environment configuration (see core/config.py):
- KB_API_URL: Base URL (default: http://127.0.0.1:47335)
- KB_NAME: Knowledge base table (default: web3_kb)
- KB_TIMEOUT_SECONDS: Request timeout in seconds (default: 10.0)
"""
import json
import time
from typing import Any, Dict, List, Optional

import httpx

from crypto_auditor.core.config import get_settings
from crypto_auditor.core.logging import get_logger
from crypto_auditor.core.tracing import inject_trace_context
from crypto_auditor.services.agent.classification import classify_query
from crypto_auditor.services.agent.schema import (
    BranchOutcome,
    Classification,
    KBResult,
    KnowledgeBaseError,
    QueryCategory,
)

logger = get_logger(__name__)

ALPHA_SEMANTIC = 0.7
ALPHA_HYBRID = 0.5
ALPHA_KEYWORD = 0.3

UNKNOWN_SOURCE = "Unknown Source"


def alpha_for(classification: Classification) -> float:
    """
    Similarity weighting for a classification.

    Price-leaning queries favour literal term matching, technical ones favour
    meaning-based matching.
    """
    if classification.category == QueryCategory.PRICE_ONLY:
        return ALPHA_KEYWORD
    if classification.category == QueryCategory.COMBINED:
        return ALPHA_HYBRID
    return ALPHA_SEMANTIC


def search_mode_label(alpha: float) -> str:
    if alpha == ALPHA_SEMANTIC:
        return "semantic"
    if alpha == ALPHA_KEYWORD:
        return "keyword"
    return "hybrid"


def quote_sql(value: str) -> str:
    """Escape a value for use inside a single-quoted SQL literal."""
    return value.replace("'", "''")


def parse_relevance(value: Any) -> Optional[float]:
    """Relevance as a float, or None when missing or unparseable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_metadata(value: Any) -> Dict[str, Any]:
    """
    Decode a metadata column into a mapping.

    JSON strings are decoded; anything that does not decode to an object
    becomes an empty mapping so the row still counts.
    """
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.debug("kb_metadata_undecodable", metadata=value[:200])
            return {}
    return value if isinstance(value, dict) else {}


def normalize_rows(data: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Turn a tabular SQL response into row mappings.

    Accepts either a list of row objects under `data`, or MindsDB's
    `column_names` plus `data` as lists of values.
    """
    rows = data.get("data") or []
    column_names = data.get("column_names")
    records = []
    for row in rows:
        if isinstance(row, dict):
            records.append(row)
        elif column_names and isinstance(row, (list, tuple)):
            records.append(dict(zip(column_names, row)))
    return records


def to_kb_result(row: Dict[str, Any], search_mode: str) -> KBResult:
    """Build a KBResult from one row; missing or odd fields fall back to defaults."""
    metadata = parse_metadata(row.get("metadata"))
    content = row.get("content")
    source = metadata.get("_source")
    return KBResult(
        content=content if isinstance(content, str) else ("" if content is None else str(content)),
        relevance=parse_relevance(row.get("relevance")),
        metadata=metadata,
        source=source if isinstance(source, str) and source else UNKNOWN_SOURCE,
        search_mode=search_mode,
    )


class KnowledgeBaseClient:
    """Async HTTP client for the knowledge-base SQL endpoint."""

    def __init__(
        self,
        api_base: str,
        kb_name: str = "web3_kb",
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.kb_name = kb_name
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def build_search_sql(self, query: str, alpha: float, max_results: int) -> str:
        """
        Hybrid-search SQL for the agent's KB branch.

        Filters on the first three words of the query and lets the knowledge
        base blend keyword and semantic relevance with `alpha`.
        """
        pattern = "%".join(quote_sql(word) for word in query.split()[:3])
        return (
            "SELECT content, relevance, metadata "
            f"FROM {self.kb_name} "
            f"WHERE content LIKE '%{pattern}%' "
            "AND hybrid_search = true "
            f"AND hybrid_search_alpha = {alpha} "
            "ORDER BY relevance DESC "
            f"LIMIT {int(max_results)};"
        )

    def build_semantic_sql(self, question: str, limit: int, alpha: Optional[float] = None) -> str:
        sql = (
            "SELECT metadata, relevance "
            f"FROM {self.kb_name} "
            f"WHERE content = '{quote_sql(question)}'"
        )
        if alpha is not None:
            sql += f" AND hybrid_search_alpha = {float(alpha)}"
        return sql + f" LIMIT {int(limit)};"

    async def run_query(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute SQL against the knowledge base and return row mappings.

        Raises:
            KnowledgeBaseError on transport, HTTP status or decoding failure.
        """
        headers = {"Content-Type": "application/json"}
        inject_trace_context(headers)
        url = f"{self.api_base}/api/sql/query"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json={"query": sql})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise KnowledgeBaseError(
                f"Knowledge base query failed: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise KnowledgeBaseError(f"Knowledge base unreachable: {exc}") from exc
        except ValueError as exc:
            raise KnowledgeBaseError(f"Knowledge base returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise KnowledgeBaseError("Knowledge base returned an unexpected payload")
        if data.get("type") == "error":
            raise KnowledgeBaseError(data.get("error_message") or "Knowledge base reported an error")
        return normalize_rows(data)

    async def search(
        self,
        query: str,
        max_results: int = 5,
        classification: Optional[Classification] = None,
    ) -> BranchOutcome[KBResult]:
        """
        Run the agent's hybrid knowledge-base search.

        Args:
            query: Raw query text
            max_results: Result cap passed to the knowledge base
            classification: Classification of the query (computed if omitted)

        Returns:
            BranchOutcome with normalized KB results and elapsed milliseconds
        """
        start_time = time.time()
        classification = classification or classify_query(query)
        alpha = alpha_for(classification)
        search_mode = search_mode_label(alpha)

        try:
            rows = await self.run_query(self.build_search_sql(query, alpha, max_results))
            results = [to_kb_result(row, search_mode) for row in rows]
        except Exception as exc:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "kb_search_failed",
                query=query,
                alpha=alpha,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=duration_ms,
            )
            return BranchOutcome[KBResult](duration_ms=duration_ms, error=str(exc))

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "kb_search_completed",
            query=query,
            alpha=alpha,
            search_mode=search_mode,
            results_count=len(results),
            duration_ms=duration_ms,
        )
        return BranchOutcome[KBResult](results=results, duration_ms=duration_ms)

    async def semantic_search(
        self,
        question: str,
        limit: int = 10,
        alpha: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        Raw semantic search returning `{metadata, relevance}` rows.

        Raises:
            KnowledgeBaseError if the call fails or the response is not a row set.
        """
        rows = await self.run_query(self.build_semantic_sql(question, limit, alpha))
        return [
            {
                "metadata": parse_metadata(row.get("metadata")),
                "relevance": parse_relevance(row.get("relevance")),
            }
            for row in rows
        ]


_kb_client: Optional[KnowledgeBaseClient] = None


def get_kb_client() -> KnowledgeBaseClient:
    """Global knowledge-base client accessor."""
    global _kb_client
    if _kb_client is None:
        settings = get_settings()
        _kb_client = KnowledgeBaseClient(
            api_base=settings.kb_api_url,
            kb_name=settings.kb_name,
            timeout_seconds=settings.kb_timeout_seconds,
        )
    return _kb_client
