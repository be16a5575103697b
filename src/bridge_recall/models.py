from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bridge_recall.qualities.registry import VECTOR_DIMENSIONS, normalize_label, resolve_dimension


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VectorStoreHealth(BaseModel):
    """Vector counts relative to a vector store's working dimensionality."""

    total_vectors: int = Field(default=0, ge=0)
    valid_vectors: int = Field(default=0, ge=0)
    invalid_vectors: int = Field(default=0, ge=0)
    dimension: Optional[int] = Field(
        default=None, description="Working dimensionality, None while the store is empty"
    )


class QualityVector(BaseModel):
    """Prominence of each quality dimension, one value in [0, 1] per dimension."""

    model_config = ConfigDict(frozen=True)

    embodied: float = Field(default=0.0, ge=0.0, le=1.0)
    attentional: float = Field(default=0.0, ge=0.0, le=1.0)
    affective: float = Field(default=0.0, ge=0.0, le=1.0)
    purposive: float = Field(default=0.0, ge=0.0, le=1.0)
    spatial: float = Field(default=0.0, ge=0.0, le=1.0)
    temporal: float = Field(default=0.0, ge=0.0, le=1.0)
    intersubjective: float = Field(default=0.0, ge=0.0, le=1.0)

    @model_validator(mode="before")
    @classmethod
    def _accept_sequence_and_aliases(cls, data: Any) -> Any:
        if isinstance(data, (list, tuple)):
            if len(data) != len(VECTOR_DIMENSIONS):
                raise ValueError(
                    f"Quality vector needs {len(VECTOR_DIMENSIONS)} components, got {len(data)}"
                )
            return dict(zip(VECTOR_DIMENSIONS, data))
        if isinstance(data, dict):
            normalized = {}
            for key, value in data.items():
                dimension = resolve_dimension(key)
                if dimension is None:
                    raise ValueError(f"Unknown quality dimension: '{key}'")
                normalized[dimension.vector_name] = value
            return normalized
        return data

    @classmethod
    def from_list(cls, values: List[float]) -> "QualityVector":
        return cls.model_validate(values)

    def as_list(self) -> List[float]:
        return [getattr(self, name) for name in VECTOR_DIMENSIONS]

    def get(self, dimension: str) -> float:
        """Prominence for a dimension given by label name or vector name."""
        resolved = resolve_dimension(dimension)
        if resolved is None:
            raise KeyError(dimension)
        return getattr(self, resolved.vector_name)


class ExperienceRecord(BaseModel):
    """
    A captured experiential record.

    Records are immutable once created; the recall pipeline only reads them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Opaque unique identifier")
    text: str = Field(..., description="Free-form content")
    created_at: datetime = Field(..., description="When the record was captured")
    occurred_at: Optional[datetime] = Field(
        default=None, description="When the experience happened, if different"
    )
    type: str = Field(default="experience", description="Record type")
    who: Optional[Union[str, List[str]]] = Field(
        default=None, description="Experiencer(s)"
    )
    perspective: Optional[str] = None
    processing_stage: Optional[str] = None
    content_type: Optional[str] = None
    crafted: Optional[bool] = None
    qualities: List[str] = Field(
        default_factory=list, description="Quality labels such as 'mood.closed' or 'embodied'"
    )
    quality_vector: Optional[QualityVector] = None
    semantic_embedding: Optional[List[float]] = None
    reflects: Optional[List[str]] = Field(
        default=None, description="IDs of records this pattern realization synthesizes"
    )

    @field_validator("created_at", "occurred_at")
    @classmethod
    def _ensure_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @field_validator("qualities")
    @classmethod
    def _normalize_qualities(cls, value: List[str]) -> List[str]:
        return [normalize_label(label) for label in value]

    @property
    def is_pattern_realization(self) -> bool:
        return bool(self.reflects)

    def who_list(self) -> List[str]:
        if self.who is None:
            return []
        if isinstance(self.who, str):
            return [self.who]
        return list(self.who)

    def timestamp(self, field: str) -> datetime:
        """Timestamp used for temporal filters and sorting; occurred_at falls back to created_at."""
        if field == "occurred_at":
            return self.occurred_at or self.created_at
        return self.created_at


class TimeRange(BaseModel):
    """Inclusive time range; bounds may be datetimes or parseable strings."""

    start: Union[datetime, str]
    end: Union[datetime, str]


TemporalFilter = Union[datetime, str, TimeRange]


class RecallQuery(BaseModel):
    """A recall request. Every field is optional; an empty query returns everything."""

    query: Optional[str] = Field(default=None, description="Free-text query")

    # Structural filters
    type: Optional[List[str]] = None
    who: Optional[str] = None
    perspective: Optional[str] = None
    processing_stage: Optional[str] = None
    content_type: Optional[str] = None
    crafted: Optional[bool] = None
    id: Optional[str] = None
    reflects: Optional[Literal["only"]] = Field(
        default=None, description="'only' restricts results to pattern realizations"
    )
    reflected_by: Optional[Union[str, List[str]]] = Field(
        default=None, description="Records reflected by these pattern realization IDs"
    )

    # Temporal filters
    created_at: Optional[TemporalFilter] = None
    occurred_at: Optional[TemporalFilter] = None

    # Quality filters
    qualities: Optional[Union[str, Dict[str, Any], List[Union[str, Dict[str, Any]]]]] = Field(
        default=None, description="Quality filter expression; a list is an AND of its items"
    )
    quality_min: Dict[str, float] = Field(default_factory=dict)
    quality_max: Dict[str, float] = Field(default_factory=dict)

    # Similarity search
    vector: Optional[QualityVector] = None
    vector_similarity_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    semantic_query: Optional[str] = None
    semantic_threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)

    # Presentation
    sort: Literal["relevance", "created_at", "occurred_at"] = "relevance"
    limit: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    include_full_content: bool = False
    include_context: bool = False
    as_clusters: bool = False

    @model_validator(mode="before")
    @classmethod
    def _fold_threshold_keys(cls, data: Any) -> Any:
        # Accept flat min_<dimension>/max_<dimension> keys
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in list(data):
            prefix, _, name = key.partition("_")
            if prefix in ("min", "max") and resolve_dimension(name) is not None:
                target = "quality_min" if prefix == "min" else "quality_max"
                thresholds = dict(data.get(target) or {})
                thresholds[name] = data.pop(key)
                data[target] = thresholds
        return data

    @field_validator("quality_min", "quality_max")
    @classmethod
    def _resolve_threshold_dimensions(cls, value: Dict[str, float]) -> Dict[str, float]:
        resolved = {}
        for name, threshold in value.items():
            dimension = resolve_dimension(name)
            if dimension is None:
                raise ValueError(f"Unknown quality dimension: '{name}'")
            resolved[dimension.vector_name] = threshold
        return resolved

    @property
    def has_text(self) -> bool:
        return bool(self.query and self.query.strip())

    def reflected_by_ids(self) -> List[str]:
        if self.reflected_by is None:
            return []
        if isinstance(self.reflected_by, str):
            return [self.reflected_by]
        return list(self.reflected_by)

    def applied_filters(self) -> Dict[str, Any]:
        """Non-empty query fields, echoed back on the response."""
        fields = type(self).model_fields
        return {
            name: value
            for name, value in self.model_dump(mode="json", exclude_none=True).items()
            if value not in ("", [], {})
            and value != fields[name].get_default(call_default_factory=True)
        }


class RelevanceBreakdown(BaseModel):
    """Per-signal components of a relevance score."""

    text_match: float = 0.0
    vector_similarity: Optional[float] = None
    semantic_similarity: Optional[float] = None
    filter_relevance: float = 1.0


class RankedRecord(BaseModel):
    """A record in a search response."""

    id: str
    type: str
    snippet: str
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    relevance_score: float = Field(..., ge=0.0, le=1.0)
    relevance_breakdown: RelevanceBreakdown


class ClusterResult(BaseModel):
    """
    A group of records discovered by clustering.

    Hierarchical clusters reference their parent by id; the full tree is
    held flat in a ClusterArena rather than nested.
    """

    id: str
    summary: str
    member_ids: List[str]
    common_qualities: List[str] = Field(default_factory=list)
    size: int = Field(..., ge=0)
    coherence: float = Field(default=1.0, ge=0.0, le=1.0)
    centroid: Optional[List[float]] = None
    kind: Literal["signature", "hierarchical", "dimension"] = "signature"
    level: int = 0
    parent_id: Optional[str] = None
    dimension: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    semantic_label: Optional[str] = None


class SimilaritySample(BaseModel):
    id: str
    score: float
    type: Literal["vector", "semantic"]


class DiagnosticError(BaseModel):
    context: str
    message: str
    details: Optional[Dict[str, Any]] = None


class DebugLogEntry(BaseModel):
    timestamp: datetime
    message: str
    data: Optional[Any] = None


class SearchDiagnostics(BaseModel):
    """Structured per-stage information about one search invocation."""

    search_started: datetime
    total_records: int = 0
    filtered_records: int = 0
    vector_search_performed: bool = False
    semantic_search_performed: bool = False
    semantic_fallback_used: bool = False
    quality_filter_ignored: bool = False
    invalid_vectors_removed: int = 0
    vector_store_stats: Optional[VectorStoreHealth] = None
    query_embedding_dimension: Optional[int] = None
    similarity_scores: List[SimilaritySample] = Field(default_factory=list)
    filter_breakdown: Dict[str, int] = Field(default_factory=dict)
    no_results_reason: Optional[str] = None
    errors: List[DiagnosticError] = Field(default_factory=list)
    debug_logs: List[DebugLogEntry] = Field(default_factory=list)


class SearchResponse(BaseModel):
    results: List[RankedRecord]
    total: int
    query: str = ""
    applied_filters: Dict[str, Any] = Field(default_factory=dict)
    no_results_reason: Optional[str] = None
    clusters: Optional[List[ClusterResult]] = None
    diagnostics: Optional[SearchDiagnostics] = None
