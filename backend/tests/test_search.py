"""
Integration tests for the raw knowledge-base search endpoint.
"""
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from crypto_auditor.main import app
from crypto_auditor.services.agent.schema import KnowledgeBaseError

client = TestClient(app)


def test_search_returns_hits():
    """Hits are returned as a list of {metadata, relevance}."""
    kb_client = AsyncMock()
    kb_client.semantic_search.return_value = [
        {"metadata": {"_source": "eth.pdf", "project_name": "Ethereum"}, "relevance": 0.91},
    ]
    with patch("crypto_auditor.routes.search.get_kb_client", return_value=kb_client):
        response = client.post("/api/search", json={"question": "How does Ethereum finalize blocks?", "alpha": 0.3})

    assert response.status_code == 200
    data = response.json()
    assert isinstance(data, list)
    assert data[0]["metadata"]["project_name"] == "Ethereum"
    assert data[0]["relevance"] == 0.91
    kb_client.semantic_search.assert_awaited_once_with(
        "How does Ethereum finalize blocks?", limit=10, alpha=0.3
    )


def test_search_missing_question():
    """Missing question returns 400."""
    response = client.post("/api/search", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "No question provided"}


def test_search_empty_question():
    response = client.post("/api/search", json={"question": "  "})

    assert response.status_code == 400


def test_search_alpha_out_of_range():
    response = client.post("/api/search", json={"question": "consensus", "alpha": 2})

    assert response.status_code == 422


def test_search_knowledge_base_failure():
    """Knowledge-base errors are reported, not swallowed."""
    kb_client = AsyncMock()
    kb_client.semantic_search.side_effect = KnowledgeBaseError("Knowledge base unreachable")
    with patch("crypto_auditor.routes.search.get_kb_client", return_value=kb_client):
        response = client.post("/api/search", json={"question": "consensus"})

    assert response.status_code == 500
    assert response.json() == {"error": "Knowledge base unreachable"}


def test_search_empty_result():
    kb_client = AsyncMock()
    kb_client.semantic_search.return_value = []
    with patch("crypto_auditor.routes.search.get_kb_client", return_value=kb_client):
        response = client.post("/api/search", json={"question": "unknown topic"})

    assert response.status_code == 200
    assert response.json() == []
