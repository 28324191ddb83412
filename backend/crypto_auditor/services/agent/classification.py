"""
Query classification for the agent pipeline.

Rule-based classification of free-text crypto questions:
- kb_only: technical/protocol questions answered from the knowledge base
- price_only: market questions answered from live price data
- combined: both kinds of terms present
- auto: no keyword signal; dispatch adapts to detected projects

Matching is plain substring containment on the lower-cased query, so a
keyword inside a longer word also counts ("usd" in "usdc", "op" in
"proof"). Existing classifications depend on this; keep it.
"""
from types import MappingProxyType
from typing import List, Mapping

from crypto_auditor.core.logging import get_logger
from crypto_auditor.services.agent.schema import Classification, QueryCategory

logger = get_logger(__name__)

PRICE_KEYWORDS = (
    "price",
    "cost",
    "worth",
    "market",
    "trading",
    "bullish",
    "bearish",
    "chart",
    "volume",
    "marketcap",
    "market cap",
    "usd",
    "expensive",
)

TECHNICAL_KEYWORDS = (
    "consensus",
    "whitepaper",
    "protocol",
    "algorithm",
    "mechanism",
    "network",
    "validation",
    "mining",
    "stake",
    "hash",
    "block",
    "transaction",
    "security",
    "cryptography",
    "smart contract",
    "proof of work",
    "proof of stake",
    # Compared against the lower-cased query, so this entry never matches
    "Byzantine",
)

# Surface form -> canonical project id. Scanned in declaration order.
PROJECT_ALIASES: Mapping[str, str] = MappingProxyType({
    "bitcoin": "bitcoin",
    "btc": "bitcoin",
    "ethereum": "ethereum",
    "eth": "ethereum",
    "solana": "solana",
    "sol": "solana",
    "cardano": "cardano",
    "ada": "cardano",
    "polkadot": "polkadot",
    "dot": "polkadot",
    "ripple": "ripple",
    "xrp": "ripple",
    "litecoin": "litecoin",
    "ltc": "litecoin",
    "dogecoin": "dogecoin",
    "doge": "dogecoin",
    "polygon": "polygon",
    "matic": "polygon",
    "arbitrum": "arbitrum",
    "arb": "arbitrum",
    "optimism": "optimism",
    "op": "optimism",
})


def detect_projects(query_lower: str) -> List[str]:
    """
    Return canonical project ids mentioned in the query, first-seen order, no duplicates.
    """
    detected: List[str] = []
    for alias, project in PROJECT_ALIASES.items():
        if alias in query_lower and project not in detected:
            detected.append(project)
    return detected


def count_keywords(query_lower: str, keywords) -> int:
    """Count how many of the keywords occur in the query as substrings."""
    return sum(1 for keyword in keywords if keyword in query_lower)


def classify_query(query: str) -> Classification:
    """
    Classify a query into kb_only, price_only, combined, or auto.

    Never raises; empty or keyword-free input yields an `auto` result.

    Args:
        query: Raw query text

    Returns:
        Classification with category, reasoning string and detected projects
    """
    query_lower = (query or "").lower()

    detected_projects = detect_projects(query_lower)
    price_count = count_keywords(query_lower, PRICE_KEYWORDS)
    technical_count = count_keywords(query_lower, TECHNICAL_KEYWORDS)

    if price_count > 0 and technical_count > 0:
        category = QueryCategory.COMBINED
        reasoning = (
            f"Query contains both price terms ({price_count}) and technical terms "
            f"({technical_count}). Executing both KB search and price fetch."
        )
    elif price_count > 0:
        category = QueryCategory.PRICE_ONLY
        reasoning = f"Query contains {price_count} price-related keywords. Fetching live price data."
    elif technical_count > 0:
        category = QueryCategory.KB_ONLY
        reasoning = f"Query contains {technical_count} technical keywords. Searching knowledge base."
    elif detected_projects:
        category = QueryCategory.AUTO
        reasoning = (
            f"Detected crypto project mentions ({', '.join(detected_projects)}). "
            "Using adaptive detection."
        )
    else:
        category = QueryCategory.AUTO
        reasoning = "No clear classification. Using adaptive mode."

    logger.debug(
        "query_classified",
        category=category.value,
        price_keywords=price_count,
        technical_keywords=technical_count,
        detected_projects=detected_projects,
    )

    return Classification(
        category=category,
        reasoning=reasoning,
        detected_projects=detected_projects,
    )
