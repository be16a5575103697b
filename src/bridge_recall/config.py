"""
Configuration for bridge-recall.

Settings are read from the environment with the ``BRIDGE_`` prefix; nested
values use ``__`` as a delimiter, e.g. ``BRIDGE_SEMANTIC__DEFAULT_THRESHOLD=0.6``
or ``BRIDGE_VECTOR_STORE__BACKEND=qdrant``. Settings objects are passed
explicitly to the pipeline and service constructors.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringWeights(BaseModel):
    """Weights and constants for the composite relevance score."""

    text: float = Field(default=0.4, ge=0.0)
    vector: float = Field(default=0.3, ge=0.0)
    semantic: float = Field(default=0.2, ge=0.0)
    filter: float = Field(default=0.1, ge=0.0)

    filter_mismatch_penalty: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Multiplier applied per failed structural filter"
    )
    exact_match_score: float = Field(default=0.9, ge=0.0, le=1.0)
    word_match_factor: float = Field(default=0.7, ge=0.0, le=1.0)
    partial_match_factor: float = Field(default=0.4, ge=0.0, le=1.0)


class SemanticSearchPolicy(BaseModel):
    """Thresholds and limits for the semantic search step."""

    default_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    fallback_threshold: float = Field(default=0.4, ge=-1.0, le=1.0)
    fallback_enabled: bool = True
    default_limit: int = Field(default=50, ge=1)
    auto_remove_invalid: bool = Field(
        default=True, description="Remove stored vectors whose dimension differs from the query"
    )


class ClusteringSettings(BaseModel):
    """Parameters for hierarchical and per-dimension clustering."""

    hierarchical_threshold: float = Field(default=0.6, ge=-1.0, le=1.0)
    level_threshold_step: float = Field(default=0.05, ge=0.0)
    min_cluster_size: int = Field(default=3, ge=1)
    max_hierarchy_depth: int = Field(default=3, ge=1)
    max_clusters_per_level: int = Field(default=8, ge=1)

    dimension_threshold: float = Field(default=0.5, ge=-1.0, le=1.0)
    dimension_prominence: float = Field(default=0.4, ge=0.0, le=1.0)
    max_dimension_clusters: int = Field(default=5, ge=1)

    max_cluster_members: int = Field(default=20, ge=1)
    max_keywords: int = Field(default=10, ge=1)
    parallel: bool = True


class VectorStoreSettings(BaseModel):
    """Which vector store backend to use and how to reach it."""

    backend: Literal["memory", "json", "qdrant"] = "memory"
    json_path: str = "vectors.json"
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    qdrant_collection: str = "bridge_embeddings"


class RecallSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    debug: bool = Field(default=False, description="Attach diagnostics to search responses")
    strict_quality_filter: bool = Field(
        default=False, description="Raise on invalid quality filters instead of ignoring them"
    )
    snippet_length: int = Field(default=200, ge=1)

    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    semantic: SemanticSearchPolicy = Field(default_factory=SemanticSearchPolicy)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
