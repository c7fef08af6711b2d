# Path: config/settings.py
# Purpose: Provide typed application configuration models.
# Layer: config.
# Details: Centralizes settings for embedders, vector stores, metadata storage, ingestion, search, and uploads.

from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbedderSettings(BaseModel):
    """Settings describing which embedder implementation to use and how to reach it."""

    name: str = Field(default="pixel", description="Identifier of the embedder implementation (pixel or http).")
    url: str = Field(
        default="https://ark.cn-beijing.volces.com/api/v3/embeddings/multimodal",
        description="Endpoint of the remote multimodal embedding API.",
    )
    api_key: Optional[str] = Field(default=None, description="Bearer token for the remote embedding API.")
    model: str = Field(default="doubao-embedding-vision-250615", description="Model variant used by the embedder.")
    timeout_seconds: float = Field(default=30.0, gt=0, description="Per-request timeout for embedding calls.")


class VectorStoreSettings(BaseModel):
    """Settings controlling vector store selection and persistence paths."""

    name: str = Field(default="numpy", description="Identifier of the vector store implementation.")
    dim: int = Field(default=1024, gt=0, description="Expected embedding dimensionality for the index.")
    metric: Literal["l2"] = Field(default="l2", description="Distance metric the index ranks by.")
    index_path: Path = Field(
        default=Path("storage/indexes/image_embeddings"), description="Path prefix of the serialized index files."
    )
    persist: bool = Field(
        default=True, description="Commit every vector write to the on-disk index shared by all processes."
    )


class IngestionSettings(BaseModel):
    """Settings bounding ingestion concurrency and collaborator timeouts."""

    max_concurrency: int = Field(default=4, ge=1, description="Maximum number of concurrent ingestion units.")
    call_timeout_seconds: float = Field(default=30.0, gt=0, description="Default timeout for collaborator calls.")
    compensation_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Independent timeout for compensating deletes."
    )
    orphan_grace_seconds: float = Field(
        default=300.0, ge=0, description="Age an unreferenced vector must reach before reconciliation purges it."
    )


class SearchSettings(BaseModel):
    """Settings for search defaults and clamping."""

    default_top_k: int = Field(default=10, ge=1, description="top_k used when the caller does not provide one.")
    max_top_k: int = Field(default=100, ge=1, description="Upper bound applied to caller-supplied top_k.")


class UploadSettings(BaseModel):
    """Settings for stored image files."""

    directory: Path = Field(default=Path("uploads"), description="Directory holding uploaded image files.")
    max_size_mb: int = Field(default=10, ge=1, description="Maximum accepted upload size in megabytes.")
    allowed_extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".webp"],
        description="Lower-case file extensions accepted for upload.",
    )


class AppSettings(BaseSettings):
    """Top-level application settings shared across services and interfaces."""

    model_config = SettingsConfigDict(
        env_prefix="IMGREC_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_path: Path = Field(default=Path("storage/db/metadata.sqlite3"), description="Path to the metadata database.")
    embedder: EmbedderSettings = Field(default_factory=EmbedderSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Verbosity level for application logs."
    )
    log_format: Literal["text", "json"] = Field(default="text", description="Log output format.")

    @classmethod
    def from_env(cls) -> "AppSettings":
        """Instantiate settings from IMGREC_* environment variables and an optional .env file."""

        return cls()

    def clamp_top_k(self, top_k: Optional[int]) -> int:
        """Return top_k bounded to [1, max_top_k], falling back to the default when missing."""

        if top_k is None:
            return self.search.default_top_k
        return max(1, min(int(top_k), self.search.max_top_k))


__all__ = [
    "AppSettings",
    "EmbedderSettings",
    "IngestionSettings",
    "SearchSettings",
    "UploadSettings",
    "VectorStoreSettings",
]
