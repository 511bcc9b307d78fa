"""Tests for settings loading and the provider factory."""

from __future__ import annotations

from pathlib import Path

import pytest

from taxrag.config import load_settings
from taxrag.embedding.embedder import GeminiEmbedder, OpenAIEmbedder
from taxrag.errors import ConfigurationError
from taxrag.generation.generator import AnthropicGenerator, GeminiGenerator
from taxrag.providers import build_query_pipeline, make_embedder, make_generator, make_store
from taxrag.retrieval.retriever import ExhaustiveRetriever, IndexedRetriever
from taxrag.storage.local_store import LocalChunkStore

PROJECT_CONFIG = Path(__file__).parent.parent / "config" / "config.yaml"


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


class TestLoadSettings:

    def test_project_config_is_valid(self) -> None:
        settings = load_settings(PROJECT_CONFIG, environ={})

        assert settings.chunking.chunk_size == 500
        assert settings.retrieval.top_k == 5
        assert settings.retrieval.candidate_pool == 50
        assert settings.embedding.model == "text-embedding-004"
        assert settings.generation.model == "gemini-2.5-flash-lite"

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "absent.yaml", environ={})
        assert settings.retrieval.strategy == "exhaustive"
        assert settings.store.backend == "local"

    def test_environment_overlay(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "store:\n  backend: mongodb\ncredentials:\n")
        settings = load_settings(
            path,
            environ={"GEMINI_API_KEY": "g-key", "MONGO_URI": "mongodb://db:27017"},
        )

        assert settings.credentials.gemini_api_key == "g-key"
        assert settings.store.backend == "mongodb"
        assert settings.store.mongo_uri == "mongodb://db:27017"

    def test_model_defaults_follow_provider(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path,
            "embedding:\n  provider: openai\ngeneration:\n  provider: anthropic\n",
        )
        settings = load_settings(path, environ={})

        assert settings.embedding.model == "text-embedding-3-small"
        assert settings.generation.model == "claude-haiku-4-5-20251001"

    def test_explicit_model_kept(self, tmp_path: Path) -> None:
        path = _write(
            tmp_path, "embedding:\n  provider: openai\n  model: text-embedding-3-large\n"
        )
        settings = load_settings(path, environ={})
        assert settings.embedding.model == "text-embedding-3-large"

    def test_pool_smaller_than_top_k_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "retrieval:\n  top_k: 10\n  candidate_pool: 5\n")
        with pytest.raises(ConfigurationError):
            load_settings(path, environ={})

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "retrieval: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_settings(path, environ={})

    def test_unknown_strategy_rejected(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "retrieval:\n  strategy: bm25\n")
        with pytest.raises(ConfigurationError):
            load_settings(path, environ={})


class TestProviders:

    def test_missing_key_is_configuration_error(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "absent.yaml", environ={})
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            make_embedder(settings)

    def test_builds_configured_clients(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "generation:\n  provider: anthropic\n  model: claude-haiku-4-5\n")
        settings = load_settings(
            path, environ={"GEMINI_API_KEY": "g-key", "ANTHROPIC_API_KEY": "a-key"}
        )

        assert isinstance(make_embedder(settings), GeminiEmbedder)
        generator = make_generator(settings)
        assert isinstance(generator, AnthropicGenerator)
        assert generator.model == "claude-haiku-4-5"

    def test_openai_embedder_gets_openai_model(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "embedding:\n  provider: openai\n")
        settings = load_settings(path, environ={"OPENAI_API_KEY": "o-key"})

        embedder = make_embedder(settings)

        assert isinstance(embedder, OpenAIEmbedder)
        assert embedder.model == "text-embedding-3-small"

    def test_gemini_generator_default(self, tmp_path: Path) -> None:
        settings = load_settings(tmp_path / "absent.yaml", environ={"GEMINI_API_KEY": "k"})
        assert isinstance(make_generator(settings), GeminiGenerator)

    @pytest.mark.parametrize(
        "strategy, expected", [("exhaustive", ExhaustiveRetriever), ("indexed", IndexedRetriever)]
    )
    def test_query_pipeline_strategy(self, tmp_path: Path, strategy, expected) -> None:
        path = _write(
            tmp_path,
            f"retrieval:\n  strategy: {strategy}\nstore:\n  local_dir: {tmp_path / 'store'}\n",
        )
        settings = load_settings(path, environ={"GEMINI_API_KEY": "k"})

        store = make_store(settings)
        pipeline = build_query_pipeline(settings, store)

        assert isinstance(store, LocalChunkStore)
        assert isinstance(pipeline.retriever, expected)

    def test_mongo_backend_needs_uri(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "store:\n  backend: mongodb\n")
        settings = load_settings(path, environ={})
        with pytest.raises(ConfigurationError, match="MONGO_URI"):
            make_store(settings)
