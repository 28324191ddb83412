"""
Pydantic models for the agent query pipeline.

Wire names follow the front end's contract: the envelope uses camelCase
(`queryId`, `kbSearchComplete`), result records keep the provider's
snake_case fields (`price_usd`, `kb_results`).
"""
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class QueryCategory(str, Enum):
    """Categories a query can be classified (or overridden) into."""

    KB_ONLY = "kb_only"
    PRICE_ONLY = "price_only"
    COMBINED = "combined"
    AUTO = "auto"


class Classification(BaseModel):
    """Classifier decision plus the evidence that drove it."""

    category: QueryCategory
    reasoning: str
    detected_projects: List[str] = Field(default_factory=list)


class QueryContext(BaseModel):
    """Optional caller directives sent alongside a query."""

    model_config = ConfigDict(populate_by_name=True)

    search_mode: Optional[QueryCategory] = Field(None, alias="searchMode")
    max_results: Optional[int] = Field(None, alias="maxResults", ge=1)
    # Accepted for compatibility; the orchestrator enforces no timeout.
    timeout: Optional[int] = None


class AgentQueryRequest(BaseModel):
    """Body of POST /api/agent/query."""

    query: Optional[str] = None
    context: QueryContext = Field(default_factory=QueryContext)


class KBResult(BaseModel):
    """One matched knowledge-base chunk."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = ""
    relevance: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    source: str = "Unknown Source"
    search_mode: str = Field("hybrid", alias="searchMode")


class PriceResult(BaseModel):
    """
    Market data for one project.

    Values are carried exactly as the price service sent them (USD floats,
    ISO strings or epoch numbers for `last_updated`); nothing is coerced.
    """

    project: Any = None
    price_usd: Any = None
    market_cap_usd: Any = None
    volume_24h_usd: Any = None
    price_change_24h: Any = None
    price_change_7d: Any = None
    last_updated: Any = None


ResultT = TypeVar("ResultT")


class BranchOutcome(BaseModel, Generic[ResultT]):
    """
    Result of one branch call.

    `error` is set only when the provider call failed; `results` is then
    empty. Callers that only need data can ignore `error`.
    """

    results: List[ResultT] = Field(default_factory=list)
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AgentResults(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kb_results: Optional[List[KBResult]] = None
    price_results: Optional[List[PriceResult]] = None
    kb_search_complete: bool = Field(False, alias="kbSearchComplete")
    price_search_complete: bool = Field(False, alias="priceSearchComplete")


class ExecutionTimings(BaseModel):
    kb_search_ms: int = 0
    price_fetch_ms: int = 0
    total_ms: int = 0


class AgentResponse(BaseModel):
    """Envelope returned by the agent query endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    query_id: str = Field(..., alias="queryId")
    original_query: str = Field(..., alias="originalQuery")
    classified_as: QueryCategory = Field(..., alias="classifiedAs")
    results: AgentResults
    executed_at: ExecutionTimings = Field(..., alias="executedAt")
    agent_reasoning: str = Field(..., alias="agentReasoning")

    def to_payload(self) -> Dict[str, Any]:
        """
        Serialize with wire names, dropping absent result arrays.
        """
        payload = self.model_dump(mode="json", by_alias=True)
        results = payload["results"]
        for key in ("kb_results", "price_results"):
            if results.get(key) is None:
                results.pop(key, None)
        return payload


class AgentError(Exception):
    """Base class for agent pipeline errors."""


class InvalidQueryError(AgentError):
    """Raised when a query is missing or empty."""

    def __init__(self, query_id: str, message: str = "Query is required"):
        super().__init__(message)
        self.query_id = query_id


class KnowledgeBaseError(AgentError):
    """Raised when the knowledge-base service call or its response fails."""


class PriceServiceError(AgentError):
    """Raised when the price service call or its response fails."""
