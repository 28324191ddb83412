"""
Price service client.

One batched request per agent query for all detected projects. The price
service owns caching; requests ask it not to force a refresh.
"""
import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from crypto_auditor.core.config import get_settings
from crypto_auditor.core.logging import get_logger
from crypto_auditor.core.tracing import inject_trace_context
from crypto_auditor.services.agent.schema import BranchOutcome, PriceResult, PriceServiceError

logger = get_logger(__name__)

PRICE_FIELDS = (
    "project",
    "price_usd",
    "market_cap_usd",
    "volume_24h_usd",
    "price_change_24h",
    "price_change_7d",
    "last_updated",
)


class PriceClient:
    """Async HTTP client for the price service."""

    def __init__(
        self,
        api_base: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    async def _post_prices(self, projects: List[str]) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        inject_trace_context(headers)
        url = f"{self.api_base}/api/prices"
        payload = {"projects": projects, "forceRefresh": False}
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self.transport) as client:
                response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            raise PriceServiceError(
                f"Price API failed: {exc.response.status_code} {exc.response.reason_phrase}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PriceServiceError(f"Price API unreachable: {exc}") from exc
        except ValueError as exc:
            raise PriceServiceError(f"Price API returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise PriceServiceError("Price API returned an unexpected payload")
        return data

    async def fetch(self, projects: Sequence[str]) -> BranchOutcome[PriceResult]:
        """
        Fetch current market data for the given canonical project ids.

        Empty input returns immediately without a network call.

        Args:
            projects: Canonical project ids, e.g. ["bitcoin", "ethereum"]

        Returns:
            BranchOutcome with normalized price results and elapsed milliseconds
        """
        if not projects:
            return BranchOutcome[PriceResult]()

        start_time = time.time()
        projects = list(projects)

        try:
            data = await self._post_prices(projects)
            results = [
                PriceResult(**{field: price.get(field) for field in PRICE_FIELDS})
                for price in (data.get("prices") or [])
                if isinstance(price, dict)
            ]
        except Exception as exc:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.error(
                "price_fetch_failed",
                projects=projects,
                error=str(exc),
                error_type=type(exc).__name__,
                duration_ms=duration_ms,
            )
            return BranchOutcome[PriceResult](duration_ms=duration_ms, error=str(exc))

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(
            "price_fetch_completed",
            projects=projects,
            results_count=len(results),
            duration_ms=duration_ms,
        )
        return BranchOutcome[PriceResult](results=results, duration_ms=duration_ms)


_price_client: Optional[PriceClient] = None


def get_price_client() -> PriceClient:
    """Global price client accessor."""
    global _price_client
    if _price_client is None:
        settings = get_settings()
        _price_client = PriceClient(
            api_base=settings.price_api_url,
            timeout_seconds=settings.price_timeout_seconds,
        )
    return _price_client
