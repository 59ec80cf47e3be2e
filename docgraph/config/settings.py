"""
docgraph - Configuration Management
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===========================================
    # LLM Configuration (OpenRouter, OpenAI-compatible)
    # ===========================================
    openrouter_api_key: Optional[str] = Field(default=None)
    openrouter_model: str = Field(default="openai/gpt-4o-mini")
    openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1")

    # ===========================================
    # Neo4j Configuration
    # ===========================================
    neo4j_uri: str = Field(default="bolt://localhost:7687")
    neo4j_user: str = Field(default="neo4j")
    neo4j_password: str = Field(default="docgraph_password")
    neo4j_clear: bool = Field(default=False)

    # ===========================================
    # ChromaDB Configuration
    # ===========================================
    chroma_host: str = Field(default="localhost")
    chroma_port: int = Field(default=8000)

    # ===========================================
    # Embedding Configuration
    # ===========================================
    embedding_model: str = Field(default="all-MiniLM-L6-v2")
    embedding_batch_size: int = Field(default=100)

    # ===========================================
    # Processing Configuration
    # ===========================================
    chunk_size: int = Field(default=1000)
    chunk_overlap: int = Field(default=200)
    extraction_concurrency: int = Field(default=3)
    extraction_timeout: float = Field(default=120.0)
    graph_limit: int = Field(default=100)

    # ===========================================
    # Application Settings
    # ===========================================
    log_level: str = Field(default="INFO")


# Global settings instance
settings = Settings()
