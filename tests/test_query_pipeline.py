"""Tests for the query orchestrator."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from conftest import FakeEmbedder, FakeGenerator, make_chunk
from taxrag.errors import GENERIC_QUERY_ERROR, ChunkStoreError, MalformedResponseError, QueryFailedError
from taxrag.generation.prompts import FALLBACK_ANSWER
from taxrag.retrieval.retriever import ExhaustiveRetriever, IndexedRetriever
from taxrag.serving.pipeline import MISSING_QUESTION_ERROR, QueryPipeline
from taxrag.storage.mongo_store import MongoChunkStore


def _pipeline(store, generator=None, embedder=None, top_k=5) -> QueryPipeline:
    return QueryPipeline(
        embedder=embedder or FakeEmbedder(default=[1.0, 0.0]),
        retriever=ExhaustiveRetriever(store, top_k=top_k),
        generator=generator or FakeGenerator(),
    )


class TestQuery:

    def test_empty_store_gets_fallback_answer(self, memory_store) -> None:
        generator = FakeGenerator(answer=FALLBACK_ANSWER)

        status, payload = _pipeline(memory_store, generator).respond("What is the VAT rate?")

        assert status == 200
        assert payload == {"answer": FALLBACK_ANSWER, "sources": []}
        assert FALLBACK_ANSWER in generator.prompts[0]

    def test_single_matching_chunk(self, memory_store) -> None:
        memory_store.insert(make_chunk("TaxAct.pdf", 0, [1.0, 0.0], "VAT is charged at 7.5%."))
        generator = FakeGenerator(answer="VAT is 7.5% [TaxAct].")

        status, payload = _pipeline(memory_store, generator).respond("What is the VAT rate?")

        assert status == 200
        assert payload["answer"] == "VAT is 7.5% [TaxAct]."
        assert payload["sources"] == [{"source": "TaxAct", "similarity": "1.0000"}]

        prompt = generator.prompts[0]
        assert "[SRC-1]\nSource: TaxAct\nContent:\nVAT is charged at 7.5%." in prompt
        assert '"TaxAct"' in prompt
        assert "What is the VAT rate?" in prompt

    def test_sources_one_per_chunk_in_rank_order(self, memory_store) -> None:
        memory_store.insert(make_chunk("Levy Act.pdf", 0, [0.0, 1.0]))
        memory_store.insert(make_chunk("Tax Act.pdf", 0, [1.0, 0.0]))
        memory_store.insert(make_chunk("Tax Act.pdf", 1, [1.0, 1.0]))

        result = _pipeline(memory_store).query("q")

        assert [s.source for s in result.sources] == ["Tax Act", "Tax Act", "Levy Act"]
        assert [s.similarity for s in result.sources] == ["1.0000", "0.7071", "0.0000"]

    def test_embeds_question_exactly_once(self, memory_store) -> None:
        embedder = FakeEmbedder()
        _pipeline(memory_store, embedder=embedder).query("  What is the VAT rate?  ")
        assert embedder.calls == ["  What is the VAT rate?  "]

    def test_indexed_strategy_same_sources(self, memory_store) -> None:
        memory_store.insert(make_chunk("TaxAct.pdf", 0, [1.0, 0.0]))
        pipeline = QueryPipeline(
            embedder=FakeEmbedder(),
            retriever=IndexedRetriever(memory_store, top_k=5, candidate_pool=50),
            generator=FakeGenerator(),
        )
        assert pipeline.respond("q")[1]["sources"] == [{"source": "TaxAct", "similarity": "1.0000"}]

    def test_blank_question_rejected_before_any_call(self, memory_store) -> None:
        embedder = FakeEmbedder()
        with pytest.raises(ValueError):
            _pipeline(memory_store, embedder=embedder).query("   ")
        assert embedder.calls == []


class TestFailures:

    def test_generation_failure_is_generic(self, memory_store, failing_generator) -> None:
        memory_store.insert(make_chunk("TaxAct.pdf", 0))

        status, payload = _pipeline(memory_store, failing_generator).respond("q")

        assert status == 500
        assert payload == {"error": GENERIC_QUERY_ERROR}
        assert "overloaded" not in str(payload)

    def test_malformed_generation_is_generic(self, memory_store) -> None:
        generator = FakeGenerator(error=MalformedResponseError("no candidates", "gemini"))
        with pytest.raises(QueryFailedError) as exc_info:
            _pipeline(memory_store, generator).query("q")
        assert str(exc_info.value) == GENERIC_QUERY_ERROR

    def test_embedding_failure_skips_generation(self, memory_store) -> None:
        generator = FakeGenerator()
        embedder = FakeEmbedder(fail_on=("q",))

        status, payload = _pipeline(memory_store, generator, embedder).respond("q")

        assert (status, payload) == (500, {"error": GENERIC_QUERY_ERROR})
        assert generator.prompts == []

    def test_store_failure_is_generic(self, memory_store, monkeypatch) -> None:
        def broken_scan():
            raise ChunkStoreError("connection reset", "mongodb")

        monkeypatch.setattr(memory_store, "scan_all", broken_scan)
        status, payload = _pipeline(memory_store).respond("q")
        assert (status, payload) == (500, {"error": GENERIC_QUERY_ERROR})

    def test_malformed_mongo_record_is_generic(self) -> None:
        collection = MagicMock()
        collection.find.return_value.sort.return_value = [
            {"_id": "x", "content": "VAT is 7.5%.", "embedding": [1.0, 0.0], "source": "TaxAct.pdf"}
        ]
        client = MagicMock()
        client.__getitem__.return_value.__getitem__.return_value = collection
        generator = FakeGenerator()

        status, payload = _pipeline(MongoChunkStore(client=client), generator).respond("q")

        assert (status, payload) == (500, {"error": GENERIC_QUERY_ERROR})
        assert "chunkIndex" not in str(payload)
        assert generator.prompts == []


class TestRespond:

    @pytest.mark.parametrize("message", [None, "", "   \n"])
    def test_missing_message(self, memory_store, message) -> None:
        generator = FakeGenerator()
        status, payload = _pipeline(memory_store, generator).respond(message)

        assert (status, payload) == (400, {"error": MISSING_QUESTION_ERROR})
        assert generator.prompts == []
