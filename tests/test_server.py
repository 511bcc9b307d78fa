"""HTTP tests for the FastAPI server (pipeline injected)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.server import create_app
from conftest import FakeEmbedder, FakeGenerator, make_chunk
from taxrag.errors import GENERIC_QUERY_ERROR
from taxrag.retrieval.retriever import ExhaustiveRetriever
from taxrag.serving.pipeline import QueryPipeline


def _client(pipeline) -> TestClient:
    return TestClient(create_app(pipeline=pipeline))


@pytest.fixture
def pipeline(memory_store) -> QueryPipeline:
    memory_store.insert(make_chunk("TaxAct.pdf", 0, [1.0, 0.0], "VAT is charged at 7.5%."))
    return QueryPipeline(
        embedder=FakeEmbedder(),
        retriever=ExhaustiveRetriever(memory_store),
        generator=FakeGenerator(answer="VAT is 7.5% [TaxAct]."),
    )


class TestRoutes:

    def test_root(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.get("/")
        assert response.status_code == 200
        assert response.json() == {"message": "Nigeria Tax Chatbot API"}

    def test_health(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.text == "OK"


class TestChat:

    def test_answer_with_sources(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.post("/chat", json={"message": "What is the VAT rate?"})

        assert response.status_code == 200
        assert response.json() == {
            "answer": "VAT is 7.5% [TaxAct].",
            "sources": [{"source": "TaxAct", "similarity": "1.0000"}],
        }

    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": "   "}, {"message": None}])
    def test_missing_message_is_400(self, pipeline, body) -> None:
        with _client(pipeline) as client:
            response = client.post("/chat", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    def test_no_body_is_400(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.post("/chat")
        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}

    def test_non_string_message_is_400(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.post("/chat", json={"message": 123})

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        assert "detail" not in response.text

    def test_unparseable_body_is_400(self, pipeline) -> None:
        with _client(pipeline) as client:
            response = client.post(
                "/chat",
                content=b"{message: 'What is VAT?'",
                headers={"Content-Type": "application/json"},
            )

        assert response.status_code == 400
        assert response.json() == {"error": "Message is required"}
        assert "Expecting" not in response.text

    def test_upstream_failure_is_generic_500(self, memory_store) -> None:
        memory_store.insert(make_chunk("TaxAct.pdf", 0))
        failing = QueryPipeline(
            embedder=FakeEmbedder(fail_on=("q",)),
            retriever=ExhaustiveRetriever(memory_store),
            generator=FakeGenerator(),
        )
        with _client(failing) as client:
            response = client.post("/chat", json={"message": "q"})

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_QUERY_ERROR}

    def test_unexpected_exception_is_generic_500(self) -> None:
        broken = MagicMock(spec=QueryPipeline)
        broken.respond.side_effect = RuntimeError("segfault in driver")

        with _client(broken) as client:
            response = client.post("/chat", json={"message": "q"})

        assert response.status_code == 500
        assert response.json() == {"error": GENERIC_QUERY_ERROR}
        assert "segfault" not in response.text
