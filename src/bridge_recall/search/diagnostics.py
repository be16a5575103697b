"""
Diagnostics collection for search requests.

Each search gets a fresh recorder. It accumulates per-stage removal counts,
similarity samples, caught collaborator errors and structured debug entries.
The pipeline attaches the result to the response only when debug is enabled;
nothing is ever printed.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bridge_recall.models import (
    DebugLogEntry,
    DiagnosticError,
    RecallQuery,
    SearchDiagnostics,
    SimilaritySample,
)

logger = logging.getLogger(__name__)

# Similarity values at or above this are considered too strict to match anything
STRICT_THRESHOLD = 0.9

REASON_EMPTY_STORE = "Vector store is empty - no records available"
REASON_NO_VECTORS = "Vector store has no vectors for semantic search"
REASON_SEMANTIC_THRESHOLD = "Semantic similarity threshold too high - try lowering threshold"
REASON_VECTOR_THRESHOLD = "Vector similarity threshold too high - try lowering threshold"
REASON_TEXT_QUERY = "Text query too restrictive - no records match the query"
REASON_ALL_FILTERED = "All records filtered out by applied filters"
REASON_UNKNOWN = "Unknown reason - check debug information for details"


class DiagnosticsRecorder:
    """Mutable builder for one search's SearchDiagnostics."""

    def __init__(self):
        self.diagnostics = SearchDiagnostics(search_started=datetime.now(timezone.utc))

    def log(self, message: str, data: Optional[Any] = None):
        self.diagnostics.debug_logs.append(
            DebugLogEntry(timestamp=datetime.now(timezone.utc), message=message, data=data)
        )
        logger.debug(message if data is None else f"{message}: {data}")

    def record_error(self, context: str, error: Exception, details: Optional[Dict[str, Any]] = None):
        self.diagnostics.errors.append(
            DiagnosticError(context=context, message=str(error), details=details)
        )
        logger.error(f"Search step '{context}' failed: {error}")

    def record_removed(self, stage: str, before: int, after: int):
        self.diagnostics.filter_breakdown[stage] = (
            self.diagnostics.filter_breakdown.get(stage, 0) + before - after
        )
        self.log(f"{stage} applied: {before} -> {after} records")

    def record_similarities(self, kind: str, scores: List[tuple]):
        """Keep the top 10 (id, score) pairs for one similarity signal."""
        top = sorted(scores, key=lambda s: -s[1])[:10]
        self.diagnostics.similarity_scores.extend(
            SimilaritySample(id=record_id, score=score, type=kind) for record_id, score in top
        )
        self.log(f"Top {len(top)} {kind} similarity scores", [[i, s] for i, s in top])


def determine_no_results_reason(query: RecallQuery, diagnostics: SearchDiagnostics) -> str:
    """
    Best-effort explanation for an empty result set.

    Checks run from the most to the least specific cause; the first that
    applies wins.
    """
    if diagnostics.total_records == 0:
        return REASON_EMPTY_STORE

    stats = diagnostics.vector_store_stats
    if query.semantic_query and stats is not None and stats.total_vectors == 0:
        return REASON_NO_VECTORS

    if query.semantic_threshold is not None and query.semantic_threshold > STRICT_THRESHOLD:
        return REASON_SEMANTIC_THRESHOLD

    if (
        query.vector_similarity_threshold is not None
        and query.vector_similarity_threshold > STRICT_THRESHOLD
    ):
        return REASON_VECTOR_THRESHOLD

    breakdown = diagnostics.filter_breakdown
    if query.has_text and breakdown.get("text_filter", 0) > 0:
        return REASON_TEXT_QUERY

    if sum(breakdown.values()) >= diagnostics.total_records:
        return REASON_ALL_FILTERED

    return REASON_UNKNOWN
