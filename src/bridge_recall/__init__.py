"""
bridge-recall: Recall and pattern discovery over experiential records.

Core components:
- qualities: The seven quality dimensions and the quality filter algebra
- search: Filter, score and rank pipeline with structured diagnostics
- clustering: Signature, hierarchical and per-dimension pattern discovery
- storage: Protocols and implementations for record and vector stores
- models: Core data models (ExperienceRecord, RecallQuery, SearchResponse, etc.)
"""

__version__ = "0.1.0"

from bridge_recall.models import (
    ClusterResult,
    ExperienceRecord,
    QualityVector,
    RankedRecord,
    RecallQuery,
    SearchDiagnostics,
    SearchResponse,
    TimeRange,
)
from bridge_recall.config import RecallSettings
from bridge_recall.exceptions import (
    CollaboratorError,
    QualityFilterError,
    RecallError,
    TemporalFilterError,
)
from bridge_recall.recall_service import RecallService

__all__ = [
    "__version__",
    # Models
    "ExperienceRecord",
    "QualityVector",
    "RecallQuery",
    "TimeRange",
    "RankedRecord",
    "ClusterResult",
    "SearchDiagnostics",
    "SearchResponse",
    # Configuration and errors
    "RecallSettings",
    "RecallError",
    "QualityFilterError",
    "TemporalFilterError",
    "CollaboratorError",
    "RecallService",
]
