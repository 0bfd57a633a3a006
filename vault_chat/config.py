"""
Configuration Management Module
-------------------------------
Handles application-wide settings using Pydantic for validation.
The runtime configuration is a mutable singleton hydrated from environment
variables; every request receives a frozen SettingsSnapshot of it so that
agents never observe settings changing mid-flight.
"""

from pydantic import BaseModel, ConfigDict, field_validator
from typing import Optional
import os
import logging

logger = logging.getLogger(__name__)

class OllamaConfig(BaseModel):
    """Configuration for a specific Ollama host and model."""
    model_config = ConfigDict(frozen=True)

    host: str
    model_name: str

class MemoryPolicy(BaseModel):
    """Bounds for the conversation window sent to the model on each turn."""
    model_config = ConfigDict(frozen=True)

    max_messages: int
    max_chars: int

    @classmethod
    def for_platform(cls, platform: str) -> "MemoryPolicy":
        if platform == "mobile":
            return MOBILE_MEMORY_POLICY
        return DESKTOP_MEMORY_POLICY

DESKTOP_MEMORY_POLICY = MemoryPolicy(max_messages=50, max_chars=16000)
MOBILE_MEMORY_POLICY = MemoryPolicy(max_messages=15, max_chars=6000)

class RetrievalSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    similarity_threshold: float = 0.25
    max_k: int = 10
    display_k: int = 5
    web_max_results: int = 5
    reranking_enabled: bool = True
    reranker_model: str = "ms-marco-TinyBERT-L-2-v2"
    query_rewriting_enabled: bool = False
    multi_query_enabled: bool = False

    @field_validator("similarity_threshold")
    @classmethod
    def clamp_threshold(cls, v):
        return min(max(v, 0.0), 1.0)

class StudySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    max_flashcards_per_note: int = 10
    max_notes: int = 50

class SettingsSnapshot(BaseModel):
    """Immutable view of the settings, captured once per request."""
    model_config = ConfigDict(frozen=True)

    main_model: Optional[OllamaConfig] = None
    embedding_model: Optional[OllamaConfig] = None
    platform: str = "desktop"
    memory: MemoryPolicy = DESKTOP_MEMORY_POLICY
    retrieval: RetrievalSettings = RetrievalSettings()
    study: StudySettings = StudySettings()

    @property
    def provider(self) -> str:
        return "ollama"

    @property
    def main_model_name(self) -> str:
        return self.main_model.model_name if self.main_model else ""

def _normalize_platform(value: str) -> str:
    value = value.lower()
    if value not in ["desktop", "mobile"]:
        return "desktop"
    return value

class AppConfig(BaseModel):
    """
    Global Application Configuration.
    Stores model settings, vault location, retrieval tuning and storage paths.
    """
    main_model: Optional[OllamaConfig] = None
    embedding_model: Optional[OllamaConfig] = None

    # Default vault used by the CLI and the tool routes when a request omits one.
    vault_path: Optional[str] = None

    # Platform decides the memory policy: "desktop" or "mobile".
    platform: str = "desktop"

    # RAG Tuning
    similarity_threshold: float = 0.25
    retrieval_max_k: int = 10
    retrieval_display_k: int = 5
    reranking_enabled: bool = True
    reranker_model: str = "ms-marco-TinyBERT-L-2-v2"
    query_rewriting_enabled: bool = False
    multi_query_enabled: bool = False

    # Web search (Tavily). Web and hybrid retrieval degrade to empty without a key.
    tavily_api_key: Optional[str] = None
    web_max_results: int = 5

    max_flashcards_per_note: int = 10

    # Storage
    chroma_dir: str = "chroma_db"
    history_db_path: str = "vault_chat.db"

    @field_validator("platform")
    @classmethod
    def validate_platform(cls, v):
        return _normalize_platform(v)

    @property
    def is_configured(self) -> bool:
        return self.main_model is not None and self.embedding_model is not None

    def snapshot(self) -> SettingsSnapshot:
        return SettingsSnapshot(
            main_model=self.main_model,
            embedding_model=self.embedding_model,
            platform=self.platform,
            memory=MemoryPolicy.for_platform(self.platform),
            retrieval=RetrievalSettings(
                similarity_threshold=self.similarity_threshold,
                max_k=self.retrieval_max_k,
                display_k=self.retrieval_display_k,
                web_max_results=self.web_max_results,
                reranking_enabled=self.reranking_enabled,
                reranker_model=self.reranker_model,
                query_rewriting_enabled=self.query_rewriting_enabled,
                multi_query_enabled=self.multi_query_enabled,
            ),
            study=StudySettings(max_flashcards_per_note=self.max_flashcards_per_note),
        )

# Singleton instance
_runtime_config = AppConfig()

def _env_number(name: str, current, cast):
    raw = os.getenv(name)
    if raw is None:
        return current
    try:
        return cast(raw)
    except ValueError:
        logger.warning(f"Invalid {name} in env. Using default.")
        return current

def _env_flag(name: str, current: bool) -> bool:
    raw = os.getenv(name)
    if not raw:
        return current
    return raw.lower() == "true"

def get_config() -> AppConfig:
    # If not configured in memory, check env vars (in case of uvicorn worker)
    if not _runtime_config.is_configured:
        main_host = os.getenv("VAULT_MAIN_HOST")
        main_model = os.getenv("VAULT_MAIN_MODEL")
        embed_host = os.getenv("VAULT_EMBED_HOST")
        embed_model = os.getenv("VAULT_EMBED_MODEL")

        if main_host and main_model and embed_host and embed_model:
            _runtime_config.main_model = OllamaConfig(host=main_host, model_name=main_model)
            _runtime_config.embedding_model = OllamaConfig(host=embed_host, model_name=embed_model)

    _runtime_config.vault_path = os.getenv("VAULT_PATH", _runtime_config.vault_path)
    _runtime_config.platform = _normalize_platform(os.getenv("VAULT_PLATFORM", _runtime_config.platform))
    _runtime_config.tavily_api_key = os.getenv("TAVILY_API_KEY", _runtime_config.tavily_api_key)
    _runtime_config.reranker_model = os.getenv("VAULT_RERANKER_MODEL", _runtime_config.reranker_model)
    _runtime_config.chroma_dir = os.getenv("VAULT_CHROMA_DIR", _runtime_config.chroma_dir)
    _runtime_config.history_db_path = os.getenv("VAULT_HISTORY_DB", _runtime_config.history_db_path)

    _runtime_config.reranking_enabled = _env_flag("VAULT_RERANKING", _runtime_config.reranking_enabled)
    _runtime_config.query_rewriting_enabled = _env_flag("VAULT_QUERY_REWRITING", _runtime_config.query_rewriting_enabled)
    _runtime_config.multi_query_enabled = _env_flag("VAULT_MULTI_QUERY", _runtime_config.multi_query_enabled)

    threshold = _env_number("VAULT_SIMILARITY_THRESHOLD", _runtime_config.similarity_threshold, float)
    _runtime_config.similarity_threshold = min(max(threshold, 0.0), 1.0)
    _runtime_config.retrieval_max_k = _env_number("VAULT_RETRIEVAL_MAX_K", _runtime_config.retrieval_max_k, int)
    _runtime_config.retrieval_display_k = _env_number("VAULT_RETRIEVAL_DISPLAY_K", _runtime_config.retrieval_display_k, int)
    _runtime_config.web_max_results = _env_number("VAULT_WEB_MAX_RESULTS", _runtime_config.web_max_results, int)
    _runtime_config.max_flashcards_per_note = _env_number(
        "VAULT_MAX_FLASHCARDS_PER_NOTE", _runtime_config.max_flashcards_per_note, int
    )

    return _runtime_config

def set_main_model(host: str, model: str):
    _runtime_config.main_model = OllamaConfig(host=host, model_name=model)

def set_embedding_model(host: str, model: str):
    _runtime_config.embedding_model = OllamaConfig(host=host, model_name=model)

def set_vault_path(path: str):
    """Sets the default vault used when a request does not name one."""
    _runtime_config.vault_path = path
