"""
Query Pipeline
---------------
One question in, one grounded answer plus its sources out:

    question
        |
        v
    Embedder.embed              (exactly one call)
        |
        v
    Retriever.retrieve          (top_k chunks, SRC-1..SRC-n)
        |
        v
    ContextAssembler.assemble   (context block + source map)
        |
        v
    build_prompt                (pure)
        |
        v
    Generator.generate
        |
        v
    QueryResult {answer, sources: [{source, similarity}]}

Each stage waits for the previous one.  Any TaxRagError short-circuits the
run: the cause is logged and the caller gets QueryFailedError, whose
message is the generic "An error occurred while processing your request".

The pipeline holds no per-query state, so one instance serves concurrent
requests as long as its collaborators do.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from langsmith import traceable
from loguru import logger

from taxrag.embedding.embedder import Embedder
from taxrag.errors import GENERIC_QUERY_ERROR, GenerationServiceError, QueryFailedError, TaxRagError
from taxrag.generation.context import ContextAssembler
from taxrag.generation.generator import Generator
from taxrag.generation.prompt_builder import PromptInput, RuleSet, build_prompt
from taxrag.retrieval.retriever import Retriever
from taxrag.schemas import SourceCitation
from taxrag.utils.helpers import truncate_text

MISSING_QUESTION_ERROR = "Message is required"


# ---------------------------------------------------------------------------
# Result schema
# ---------------------------------------------------------------------------

@dataclass
class QueryResult:
    """
    Full output from a single query.  Timing fields are in milliseconds.
    """

    question: str
    answer: str
    sources: list[SourceCitation] = field(default_factory=list)

    embedding_ms: float = 0.0
    retrieval_ms: float = 0.0
    generation_ms: float = 0.0

    @property
    def total_ms(self) -> float:
        return self.embedding_ms + self.retrieval_ms + self.generation_ms

    def to_dict(self) -> dict:
        """The public response shape: {answer, sources: [{source, similarity}]}."""
        return {
            "answer": self.answer,
            "sources": [s.model_dump() for s in self.sources],
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class QueryPipeline:
    """
    Usage:
        pipeline = QueryPipeline(embedder, retriever, generator)
        result = pipeline.query("What is the VAT rate?")
        print(result.answer)
    """

    def __init__(
        self,
        embedder: Embedder,
        retriever: Retriever,
        generator: Generator,
        assembler: Optional[ContextAssembler] = None,
        rules: Optional[RuleSet] = None,
    ) -> None:
        self.embedder = embedder
        self.retriever = retriever
        self.generator = generator
        self.assembler = assembler or ContextAssembler()
        self.rules = rules or RuleSet()

    @traceable(name="rag_query", run_type="chain")
    def query(self, question: str) -> QueryResult:
        """
        Run the full pipeline for one question.

        Raises:
            ValueError:       blank question (nothing was called).
            QueryFailedError: any stage failed; details are in the logs.
        """
        if not question or not question.strip():
            raise ValueError(MISSING_QUESTION_ERROR)

        logger.info(f"[QueryPipeline] Query: {truncate_text(question, 100)!r}")
        try:
            t0 = time.perf_counter()
            query_vector = self.embedder.embed(question)
            t1 = time.perf_counter()

            chunks = self.retriever.retrieve(query_vector)
            assembled = self.assembler.assemble(chunks)
            prompt = build_prompt(
                PromptInput(
                    context=assembled.context,
                    question=question,
                    source_names=tuple(assembled.source_names),
                    rules=self.rules,
                )
            )
            t2 = time.perf_counter()

            answer = self.generator.generate(prompt)
            t3 = time.perf_counter()
        except GenerationServiceError as exc:
            logger.error(
                f"[QueryPipeline] Generation failed | status={exc.status_code} | {exc} | "
                f"body={truncate_text(exc.body, 500)!r}"
            )
            raise QueryFailedError() from exc
        except TaxRagError as exc:
            logger.error(f"[QueryPipeline] {exc.__class__.__name__}: {exc}")
            raise QueryFailedError() from exc

        result = QueryResult(
            question=question,
            answer=answer,
            sources=assembled.citations,
            embedding_ms=(t1 - t0) * 1000,
            retrieval_ms=(t2 - t1) * 1000,
            generation_ms=(t3 - t2) * 1000,
        )
        logger.info(
            f"[QueryPipeline] Complete | "
            f"embed={result.embedding_ms:.0f}ms "
            f"retrieve={result.retrieval_ms:.0f}ms "
            f"generate={result.generation_ms:.0f}ms | "
            f"sources={len(result.sources)}"
        )
        return result

    def respond(self, message: Optional[str]) -> tuple[int, dict]:
        """
        HTTP-shaped wrapper: (status, payload).

            200 {"answer": ..., "sources": [...]}
            400 {"error": "Message is required"}
            500 {"error": "An error occurred while processing your request"}
        """
        if not message or not message.strip():
            return 400, {"error": MISSING_QUESTION_ERROR}
        try:
            return 200, self.query(message).to_dict()
        except QueryFailedError:
            return 500, {"error": GENERIC_QUERY_ERROR}
