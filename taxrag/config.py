"""
Settings
---------
Non-secret defaults live in config/config.yaml; credentials and the Mongo
connection string come from the environment (a .env file is loaded by the
entry points via python-dotenv).

    settings = load_settings("config/config.yaml")
    settings.retrieval.strategy   # "exhaustive" | "indexed"
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from taxrag.embedding.embedder import GEMINI_EMBED_MODEL, OPENAI_EMBED_MODEL
from taxrag.errors import ConfigurationError
from taxrag.generation.generator import ANTHROPIC_MODEL, GEMINI_MODEL, OPENAI_MODEL

DEFAULT_CONFIG_PATH = "config/config.yaml"

# environment variable -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "GEMINI_API_KEY": ("credentials", "gemini_api_key"),
    "OPENAI_API_KEY": ("credentials", "openai_api_key"),
    "ANTHROPIC_API_KEY": ("credentials", "anthropic_api_key"),
    "MONGO_URI": ("store", "mongo_uri"),
    "TAXRAG_LOG_LEVEL": ("logging", "level"),
}

# A model name only makes sense for its own provider
_EMBEDDING_MODELS = {"gemini": GEMINI_EMBED_MODEL, "openai": OPENAI_EMBED_MODEL}
_GENERATION_MODELS = {
    "gemini": GEMINI_MODEL,
    "openai": OPENAI_MODEL,
    "anthropic": ANTHROPIC_MODEL,
}


class ChunkingSettings(BaseModel):
    chunk_size: int = Field(default=500, ge=1)


class EmbeddingSettings(BaseModel):
    provider: Literal["gemini", "openai"] = "gemini"
    model: Optional[str] = None         # None -> the provider's default model
    max_attempts: int = Field(default=3, ge=1)
    timeout_seconds: float = 30.0

    @model_validator(mode="after")
    def _default_model(self) -> "EmbeddingSettings":
        if not self.model:
            self.model = _EMBEDDING_MODELS[self.provider]
        return self


class GenerationSettings(BaseModel):
    provider: Literal["gemini", "openai", "anthropic"] = "gemini"
    model: Optional[str] = None
    max_tokens: int = 1024
    temperature: float = 0.1
    timeout_seconds: float = 60.0

    @model_validator(mode="after")
    def _default_model(self) -> "GenerationSettings":
        if not self.model:
            self.model = _GENERATION_MODELS[self.provider]
        return self


class RetrievalSettings(BaseModel):
    strategy: Literal["exhaustive", "indexed"] = "exhaustive"
    top_k: int = Field(default=5, ge=1)
    candidate_pool: int = Field(default=50, ge=1)

    @model_validator(mode="after")
    def _pool_covers_top_k(self) -> "RetrievalSettings":
        if self.candidate_pool < self.top_k:
            raise ValueError(
                f"candidate_pool ({self.candidate_pool}) must be >= top_k ({self.top_k})"
            )
        return self


class StoreSettings(BaseModel):
    backend: Literal["local", "mongodb"] = "local"
    local_dir: str = "data/store"
    mongo_uri: Optional[str] = None
    database: str = "taxrag"
    collection: str = "documentchunks"
    vector_index: str = "vector_index"


class IngestionSettings(BaseModel):
    pdf_dir: str = "pdfs"
    delay_seconds: float = Field(default=0.1, ge=0)
    report_path: str = "data/ingestion_report.json"


class LoggingSettings(BaseModel):
    level: str = "INFO"
    file: str = "logs/taxrag.log"


class Credentials(BaseModel):
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None


class Settings(BaseModel):
    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    credentials: Credentials = Field(default_factory=Credentials)


def load_settings(
    path: str | Path = DEFAULT_CONFIG_PATH,
    environ: Optional[dict[str, str]] = None,
) -> Settings:
    """
    Read the YAML config (a missing file means all defaults), overlay the
    environment and validate.

    Raises:
        ConfigurationError: unreadable YAML or values that fail validation.
    """
    environ = os.environ if environ is None else environ
    raw: dict = {}

    config_path = Path(path)
    if config_path.exists():
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(f"{config_path} must contain a mapping at top level")

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            raw[section] = {**(raw.get(section) or {}), key: value}

    try:
        return Settings(**raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
