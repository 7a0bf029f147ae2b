"""Application configuration and the config structs injected into the engine"""
from dataclasses import dataclass
from typing import Optional

from pydantic_settings import BaseSettings
from utils.common import get_log_file_path

class Settings(BaseSettings):
    """Application configuration"""

    # Logger configuration
    LOGGER_NAME: str = "tender_engine"
    LOG_FILE_PATH: str = get_log_file_path()

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./tender_engine.db"
    DB_ECHO: bool = False

    # Vector store
    VECTOR_STORE_TYPE: str = "sql"  # Options: sql, chromadb
    VECTOR_DB_PATH: str = "./vector_db"
    CHROMA_COLLECTION_NAME: str = "tender_chunks"

    # Embedding model
    EMBEDDING_MODEL_NAME: str = "all-MiniLM-L6-v2"
    EMBEDDING_DIMENSION: int = 384
    EMBEDDING_DELAY_SECONDS: float = 0.1  # Pause between per-chunk embedding calls

    # Chunking (words)
    CHUNK_SIZE: int = 512
    CHUNK_OVERLAP: int = 50
    MIN_CHUNK_WORDS: int = 30

    # Retrieval
    TOP_K: int = 5
    RETRIEVAL_QUERY_MAX_CHARS: int = 500
    RETRIEVAL_CONTEXT_CHAR_BUDGET: int = 12000

    # LLM (OpenAI-compatible chat completions endpoint)
    LLM_BASE_URL: str = "https://api.groq.com/openai/v1"
    LLM_MODEL_NAME: str = "llama-3.3-70b-versatile"
    LLM_API_KEY: Optional[str] = None
    LLM_CONTEXT_TOKENS: int = 8000
    REQUEST_TIMEOUT: int = 60

    # Drafting
    DRAFT_TEMPERATURE: float = 0.4
    DRAFT_MAX_TOKENS: int = 2000

    # Validation
    VALIDATION_TEMPERATURE: float = 0.1
    VALIDATION_MAX_TOKENS: int = 500
    VALIDITY_THRESHOLD: int = 70
    MISSING_BELOW_WORDS: int = 50
    INCOMPLETE_BELOW_WORDS: int = 100
    COMPLETE_AT_WORDS: int = 200

    # App metadata
    APP_TITLE: str = "Tender Grounding Engine"
    APP_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()


# ============= Injected Config Structs =============

@dataclass(frozen=True)
class ChunkingConfig:
    """Word-window chunking. Defaults: 512-word window, 50-word overlap."""
    chunk_size: int = 512
    overlap: int = 50
    min_words: int = 30

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "ChunkingConfig":
        return cls(chunk_size=s.CHUNK_SIZE, overlap=s.CHUNK_OVERLAP, min_words=s.MIN_CHUNK_WORDS)


@dataclass(frozen=True)
class IngestionConfig:
    embedding_delay_seconds: float = 0.1
    embedding_dimension: Optional[int] = None  # None skips the dimension check

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "IngestionConfig":
        return cls(
            embedding_delay_seconds=s.EMBEDDING_DELAY_SECONDS,
            embedding_dimension=s.EMBEDDING_DIMENSION,
        )


@dataclass(frozen=True)
class RetrievalConfig:
    top_k: int = 5
    query_max_chars: int = 500
    context_char_budget: int = 12000

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "RetrievalConfig":
        return cls(
            top_k=s.TOP_K,
            query_max_chars=s.RETRIEVAL_QUERY_MAX_CHARS,
            context_char_budget=s.RETRIEVAL_CONTEXT_CHAR_BUDGET,
        )


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.4
    max_tokens: int = 2000
    context_tokens: int = 8000

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "GenerationConfig":
        return cls(
            temperature=s.DRAFT_TEMPERATURE,
            max_tokens=s.DRAFT_MAX_TOKENS,
            context_tokens=s.LLM_CONTEXT_TOKENS,
        )


@dataclass(frozen=True)
class ValidationConfig:
    """
    Scoring thresholds. Defaults: 70-point validity threshold and
    50/100/200-word missing/incomplete/complete breakpoints.
    """
    validity_threshold: int = 70
    missing_below_words: int = 50
    incomplete_below_words: int = 100
    complete_at_words: int = 200
    incomplete_score: int = 30
    mandatory_weight: float = 1.0
    optional_weight: float = 0.5
    max_unaddressed: int = 10
    max_items_per_section: int = 5
    response_char_limit: int = 2000
    temperature: float = 0.1
    max_tokens: int = 500

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "ValidationConfig":
        return cls(
            validity_threshold=s.VALIDITY_THRESHOLD,
            missing_below_words=s.MISSING_BELOW_WORDS,
            incomplete_below_words=s.INCOMPLETE_BELOW_WORDS,
            complete_at_words=s.COMPLETE_AT_WORDS,
            temperature=s.VALIDATION_TEMPERATURE,
            max_tokens=s.VALIDATION_MAX_TOKENS,
        )
