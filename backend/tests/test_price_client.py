"""
Unit tests for the price service client.
"""
import json

import httpx
import pytest

from crypto_auditor.services.agent.prices import PriceClient

BITCOIN_PRICE = {
    "project": "bitcoin",
    "price_usd": 67250.12,
    "market_cap_usd": 1.32e12,
    "volume_24h_usd": 2.8e10,
    "price_change_24h": -1.25,
    "price_change_7d": 4.1,
    "last_updated": "2024-05-01T12:00:00Z",
    "source": "coingecko",
}


def make_client(handler, calls=None):
    def recording_handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)

    return PriceClient(api_base="http://prices.test", transport=httpx.MockTransport(recording_handler))


@pytest.mark.asyncio
async def test_fetch_sends_batched_request():
    """All projects go out in one request without forcing a refresh."""
    calls = []
    client = make_client(lambda request: httpx.Response(200, json={"prices": [BITCOIN_PRICE]}), calls)

    outcome = await client.fetch(["bitcoin", "ethereum"])

    assert len(calls) == 1
    assert str(calls[0].url) == "http://prices.test/api/prices"
    assert json.loads(calls[0].content) == {"projects": ["bitcoin", "ethereum"], "forceRefresh": False}
    assert outcome.ok


@pytest.mark.asyncio
async def test_fetch_maps_fields_without_conversion():
    client = make_client(lambda request: httpx.Response(200, json={"prices": [BITCOIN_PRICE]}))

    outcome = await client.fetch(["bitcoin"])

    assert len(outcome.results) == 1
    price = outcome.results[0]
    assert price.project == "bitcoin"
    assert price.price_usd == 67250.12
    assert price.market_cap_usd == 1.32e12
    assert price.volume_24h_usd == 2.8e10
    assert price.price_change_24h == -1.25
    assert price.price_change_7d == 4.1
    assert price.last_updated == "2024-05-01T12:00:00Z"
    # Provider extras are not part of the normalized shape
    assert "source" not in price.model_dump()


@pytest.mark.asyncio
async def test_fetch_empty_projects_short_circuits():
    """No projects means no network call and zero duration."""
    calls = []
    client = make_client(lambda request: httpx.Response(500), calls)

    outcome = await client.fetch([])

    assert calls == []
    assert outcome.ok
    assert outcome.results == []
    assert outcome.duration_ms == 0


@pytest.mark.asyncio
async def test_fetch_missing_prices_key_is_empty():
    outcome = await make_client(lambda request: httpx.Response(200, json={})).fetch(["solana"])

    assert outcome.ok
    assert outcome.results == []


@pytest.mark.asyncio
async def test_fetch_absorbs_http_errors():
    outcome = await make_client(lambda request: httpx.Response(502)).fetch(["bitcoin"])

    assert not outcome.ok
    assert outcome.results == []
    assert "502" in outcome.error


@pytest.mark.asyncio
async def test_fetch_absorbs_timeouts():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    outcome = await make_client(handler).fetch(["bitcoin"])

    assert not outcome.ok
    assert outcome.results == []
    assert outcome.duration_ms >= 0


@pytest.mark.asyncio
async def test_fetch_absorbs_invalid_json():
    outcome = await make_client(lambda request: httpx.Response(200, content=b"<html>")).fetch(["bitcoin"])

    assert not outcome.ok
    assert outcome.results == []


@pytest.mark.asyncio
async def test_fetch_passes_mixed_record_shapes_through():
    """Records with unexpected value types are kept as sent, alongside normal ones."""
    prices = [
        BITCOIN_PRICE,
        {"project": "ethereum", "price_usd": "3120.50", "last_updated": 1714521600},
        {"price_usd": 0.52},
        "not-a-record",
    ]
    client = make_client(lambda request: httpx.Response(200, json={"prices": prices}))

    outcome = await client.fetch(["bitcoin", "ethereum", "cardano"])

    assert outcome.ok
    assert len(outcome.results) == 3
    bitcoin, ethereum, unnamed = outcome.results
    assert bitcoin.price_usd == 67250.12
    assert ethereum.price_usd == "3120.50"
    assert ethereum.last_updated == 1714521600
    assert unnamed.project is None
    assert unnamed.price_usd == 0.52

    dumped = ethereum.model_dump(mode="json")
    assert dumped["last_updated"] == 1714521600
    assert dumped["price_usd"] == "3120.50"
