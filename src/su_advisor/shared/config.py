"""
Configuration Module - Load and validate application settings.
==============================================================

Loads configuration from:
1. config/settings.yaml (defaults)
2. Environment variables from .env file
3. Environment variables from system

Environment variables override YAML defaults. API keys are only ever read
from the environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file early
load_dotenv()


def _find_project_root() -> Path:
    """Find the project root directory by looking for pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path.cwd()


PROJECT_ROOT = _find_project_root()
CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_CONFIG_FILE = CONFIG_DIR / "settings.yaml"
PACKAGE_PROMPTS_DIR = Path(__file__).resolve().parent.parent / "prompts"


# ─────────────────────────────────────────────────────────────────────────────
# Nested Configuration Models
# ─────────────────────────────────────────────────────────────────────────────


class MistralEmbeddingConfig(BaseModel):
    """Mistral embeddings settings."""

    model_name: str = "mistral-embed"
    base_url: str = "https://api.mistral.ai/v1"
    timeout: float = 30.0
    max_retries: int = 3


class GeminiEmbeddingConfig(BaseModel):
    """Gemini embeddings settings."""

    model_name: str = "text-embedding-004"
    task_type: str = "RETRIEVAL_DOCUMENT"
    max_retries: int = 3


class EmbeddingCacheConfig(BaseModel):
    """Durable embedding cache settings."""

    backend: str = "sqlite"
    path: str = "data/cache/embeddings.sqlite3"
    max_entries: int = 50_000
    ttl_days: int = 0


class EmbeddingsConfig(BaseModel):
    """Embeddings provider settings."""

    provider: str = "mistral"
    mistral: MistralEmbeddingConfig = Field(default_factory=MistralEmbeddingConfig)
    gemini: GeminiEmbeddingConfig = Field(default_factory=GeminiEmbeddingConfig)
    cache: EmbeddingCacheConfig = Field(default_factory=EmbeddingCacheConfig)


class CollectionsConfig(BaseModel):
    """Named vector store collections."""

    reviews: str = "su_reviews"
    exams: str = "su_exams"


class VectorStoreConfig(BaseModel):
    """ChromaDB connection settings."""

    mode: str = "http"
    host: str = "localhost"
    port: int = 8000
    persist_dir: str = "data/index"
    collections: CollectionsConfig = Field(default_factory=CollectionsConfig)


class RetrievalConfig(BaseModel):
    """Retrieval settings."""

    hybrid_top_k: int = 8
    rerank_top_n: int = 4
    max_context_passages: int = 6
    similar_default_top_k: int = 8
    lexical_boost: float = 0.05


class QueryExpansionConfig(BaseModel):
    """Query expansion tables. Empty values mean the built-in defaults."""

    synonyms: dict[str, list[str]] = Field(default_factory=dict)
    interrogatives: list[str] = Field(default_factory=list)


class LocalContextConfig(BaseModel):
    """Local structured context settings."""

    catalog_file: str = "data/catalog/courses.jsonl"
    max_course_codes: int = 4
    description_cap: int = 500
    web_snippet_enabled: bool = False
    web_snippet_cap: int = 420
    web_timeout: float = 4.0
    web_search_url: str = "https://api.duckduckgo.com/"


class MistralGenerationConfig(BaseModel):
    """Mistral chat completion settings."""

    model_name: str = "mistral-small-latest"
    base_url: str = "https://api.mistral.ai/v1"
    max_tokens: int = 2048
    temperature: float = 0.3
    timeout: float = 120.0


class GeminiGenerationConfig(BaseModel):
    """Gemini generation settings."""

    model_name: str = "gemini-2.0-flash"
    max_output_tokens: int = 2048
    temperature: float = 0.3
    chunk_size: int = 40


class GenerationConfig(BaseModel):
    """LLM generation settings."""

    provider: str = "mistral"
    rate_limit_interval: float = 1.0
    mistral: MistralGenerationConfig = Field(default_factory=MistralGenerationConfig)
    gemini: GeminiGenerationConfig = Field(default_factory=GeminiGenerationConfig)


class PromptsConfig(BaseModel):
    """Prompt template location. Empty means the templates shipped with the package."""

    prompts_dir: str = ""


class IngestionConfig(BaseModel):
    """Document ingestion settings."""

    target_tokens: int = 300
    overlap_tokens: int = 50
    tokens_per_word: float = 1.3


class ApiConfig(BaseModel):
    """HTTP surface settings."""

    host: str = "0.0.0.0"
    port: int = 50052


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: str = "INFO"
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    rich_console: bool = True
    file: str = ""


# ─────────────────────────────────────────────────────────────────────────────
# Main Settings Class
# ─────────────────────────────────────────────────────────────────────────────


class Settings(BaseSettings):
    """
    Main application settings.

    Loads from:
    1. config/settings.yaml (defaults)
    2. Environment variables

    Environment variables override YAML settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # API Keys (from environment only)
    mistral_api_key: str = Field(default="", validation_alias="MISTRAL_API_KEY")
    gemini_api_key: str = Field(default="", validation_alias="GEMINI_API_KEY")

    # Top-level environment overrides
    embedding_provider: Optional[str] = Field(default=None, validation_alias="EMBEDDING_PROVIDER")
    generation_provider: Optional[str] = Field(default=None, validation_alias="GENERATION_PROVIDER")
    chroma_host: Optional[str] = Field(default=None, validation_alias="CHROMA_HOST")
    chroma_port: Optional[int] = Field(default=None, validation_alias="CHROMA_PORT")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")

    # Nested configurations (from YAML)
    embeddings: EmbeddingsConfig = Field(default_factory=EmbeddingsConfig)
    vector_store: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    query_expansion: QueryExpansionConfig = Field(default_factory=QueryExpansionConfig)
    local_context: LocalContextConfig = Field(default_factory=LocalContextConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    prompts: PromptsConfig = Field(default_factory=PromptsConfig)
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    _project_root: Path = PROJECT_ROOT

    @field_validator("mistral_api_key", "gemini_api_key", mode="before")
    @classmethod
    def validate_api_key(cls, v: Any) -> str:
        """Allow empty API keys; providers complain when they are used."""
        if v is None:
            return ""
        return str(v)

    @property
    def project_root(self) -> Path:
        """Get the project root directory."""
        return self._project_root

    def resolve_path(self, path: str) -> Path:
        """Resolve a configured path relative to the project root."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self._project_root / candidate

    def get_prompts_dir(self) -> Path:
        """Get the prompt template directory (package templates by default)."""
        if self.prompts.prompts_dir:
            return self.resolve_path(self.prompts.prompts_dir)
        return PACKAGE_PROMPTS_DIR

    def get_effective_embedding_provider(self) -> str:
        """Get the effective embedding provider (env override or config)."""
        if self.embedding_provider:
            return self.embedding_provider.lower()
        return self.embeddings.provider.lower()

    def get_effective_generation_provider(self) -> str:
        """Get the effective generation provider (env override or config)."""
        if self.generation_provider:
            return self.generation_provider.lower()
        return self.generation.provider.lower()

    def get_chroma_address(self) -> tuple[str, int]:
        """Get the ChromaDB host and port (env override or config)."""
        host = self.chroma_host or self.vector_store.host
        port = self.chroma_port or self.vector_store.port
        return host, port

    def get_effective_log_level(self) -> str:
        """Get the effective log level (env override or config)."""
        if self.log_level:
            return self.log_level.upper()
        return self.logging.level.upper()


def _load_yaml_config(config_path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if data else {}


def _create_settings(config_path: Optional[Path] = None) -> Settings:
    """Create settings instance by merging YAML defaults with environment."""
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    yaml_config = _load_yaml_config(config_path)
    return Settings(**yaml_config)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get the singleton settings instance.

    Returns:
        Settings instance with merged configuration

    Example:
        >>> settings = get_settings()
        >>> print(settings.retrieval.hybrid_top_k)
        8
    """
    return _create_settings()


def reload_settings() -> Settings:
    """
    Force reload of settings (clears cache).

    Returns:
        Fresh Settings instance
    """
    get_settings.cache_clear()
    return get_settings()
