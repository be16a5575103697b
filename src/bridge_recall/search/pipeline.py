"""
The recall search pipeline.

One pass per query:

1. load every record from the record store
2. structural filters (type, who, perspective, ...) as hard excludes
3. temporal filters on created_at / occurred_at
4. quality filter expression, then per-dimension min/max thresholds
5. similarity to a target quality vector, with an optional threshold
6. semantic nearest-neighbour search through the vector store
7. composite scoring, then the post-hoc text filter
8. stable sort
9. offset and limit
10. a best-effort reason when nothing is left

Only invalid quality filters in strict mode raise. Failures of the record
store, embedding provider or vector store are caught, logged and recorded in
the diagnostics, and the search carries on with whatever signals remain.
"""

import asyncio
import logging
import math
from typing import Any, Dict, List, Optional, Tuple, Union

from bridge_recall.clustering import ClusteringEngine
from bridge_recall.config import RecallSettings
from bridge_recall.embeddings.protocol import TextEmbedding
from bridge_recall.exceptions import TemporalFilterError
from bridge_recall.models import (
    ExperienceRecord,
    RankedRecord,
    RecallQuery,
    SearchResponse,
)
from bridge_recall.qualities.filter import (
    FilterExpression,
    compile_filter,
    describe,
    evaluate,
    validate,
)
from bridge_recall.scoring.relevance import RelevanceScorer, ScoredRecord
from bridge_recall.scoring.similarity import quality_vector_similarity
from bridge_recall.search.diagnostics import DiagnosticsRecorder, determine_no_results_reason
from bridge_recall.search.temporal import apply_temporal_filter
from bridge_recall.storage.protocols import RecordStore, VectorStore

logger = logging.getLogger(__name__)

CONTEXT_FIELDS = {
    "who",
    "perspective",
    "processing_stage",
    "content_type",
    "crafted",
    "created_at",
    "occurred_at",
    "qualities",
    "quality_vector",
    "reflects",
}


class RecallSearchPipeline:
    """
    Filter, score and rank records for a RecallQuery.

    The pipeline only reads from its stores, apart from removing stale
    vectors when the vector store's dimension no longer matches the
    embedding provider. Concurrent searches share nothing mutable.
    """

    def __init__(
        self,
        record_store: RecordStore,
        vector_store: Optional[VectorStore] = None,
        embedding: Optional[TextEmbedding] = None,
        settings: Optional[RecallSettings] = None,
        clustering_engine: Optional[ClusteringEngine] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            record_store: Source of candidate records
            vector_store: Semantic embeddings; semantic queries are skipped without it
            embedding: Embeds semantic queries; semantic queries are skipped without it
            settings: Scoring, semantic search and clustering settings
            clustering_engine: Used when a query asks for clusters
        """
        self.record_store = record_store
        self.vector_store = vector_store
        self.embedding = embedding
        self.settings = settings or RecallSettings()
        self.scorer = RelevanceScorer(self.settings.scoring)
        self.clustering_engine = clustering_engine or ClusteringEngine(self.settings.clustering)

    async def search(self, query: Union[RecallQuery, Dict[str, Any]]) -> SearchResponse:
        """
        Run one recall query.

        Args:
            query: RecallQuery or a dict that validates into one

        Returns:
            SearchResponse; diagnostics are attached when settings.debug is set

        Raises:
            QualityFilterError: Invalid quality filter with strict_quality_filter enabled
            pydantic.ValidationError: A dict query that does not validate
        """
        if not isinstance(query, RecallQuery):
            query = RecallQuery.model_validate(query)

        recorder = DiagnosticsRecorder()
        diagnostics = recorder.diagnostics
        expression = self._compile_quality_filter(query, recorder)

        records = await self._load_records(recorder)
        diagnostics.total_records = len(records)
        recorder.log(f"Loaded {len(records)} records")

        candidates = self._apply_structural_filters(records, query, recorder)
        candidates = self._apply_temporal_filters(candidates, query, recorder)
        candidates = self._apply_quality_filters(candidates, query, expression, recorder)
        vector_scores, candidates = self._apply_vector_similarity(candidates, query, recorder)
        semantic_scores, candidates = await self._apply_semantic_search(candidates, query, recorder)

        scored = [
            self.scorer.score(r, query, vector_scores.get(r.id), semantic_scores.get(r.id))
            for r in candidates
        ]
        if query.has_text:
            before = len(scored)
            scored = [s for s in scored if s.breakdown.text_match > 0]
            recorder.record_removed("text_filter", before, len(scored))

        scored = self._sort(scored, query)
        total = len(scored)
        end = query.offset + query.limit if query.limit is not None else None
        page = scored[query.offset:end]
        diagnostics.filtered_records = len(page)

        no_results_reason = None
        if not page:
            no_results_reason = determine_no_results_reason(query, diagnostics)
            diagnostics.no_results_reason = no_results_reason
            recorder.log("No results found", {"reason": no_results_reason})

        clusters = None
        if query.as_clusters:
            result = await asyncio.to_thread(
                self.clustering_engine.cluster, [s.record for s in page]
            )
            clusters = result.clusters

        logger.info(
            f"Search returned {len(page)} of {total} matching records "
            f"({diagnostics.total_records} loaded)"
        )

        return SearchResponse(
            results=[self._to_ranked(s, query) for s in page],
            total=total,
            query=query.query or "",
            applied_filters=query.applied_filters(),
            no_results_reason=no_results_reason,
            clusters=clusters,
            diagnostics=diagnostics if self.settings.debug else None,
        )

    def _compile_quality_filter(
        self, query: RecallQuery, recorder: DiagnosticsRecorder
    ) -> Optional[FilterExpression]:
        if query.qualities is None:
            return None

        if self.settings.strict_quality_filter:
            return compile_filter(query.qualities)

        validation = validate(query.qualities)
        if not validation.valid:
            recorder.diagnostics.quality_filter_ignored = True
            recorder.log("Invalid quality filter ignored", {"errors": validation.errors})
            logger.warning(f"Ignoring invalid quality filter: {'; '.join(validation.errors)}")
            return None

        expression = compile_filter(query.qualities)
        recorder.log(f"Quality filter: {describe(query.qualities)}")
        return expression

    async def _load_records(self, recorder: DiagnosticsRecorder) -> List[ExperienceRecord]:
        try:
            return await self.record_store.get_all_records()
        except Exception as e:
            recorder.record_error("load_records", e)
            return []

    @staticmethod
    def _narrow(records, stage: str, keep, recorder: DiagnosticsRecorder) -> List[ExperienceRecord]:
        kept = [r for r in records if keep(r)]
        recorder.record_removed(stage, len(records), len(kept))
        return kept

    def _apply_structural_filters(
        self, records: List[ExperienceRecord], query: RecallQuery, recorder: DiagnosticsRecorder
    ) -> List[ExperienceRecord]:
        candidates = records

        if query.id is not None:
            candidates = self._narrow(candidates, "id_filter", lambda r: r.id == query.id, recorder)
        if query.type:
            candidates = self._narrow(
                candidates, "type_filter", lambda r: r.type in query.type, recorder
            )
        if query.who:
            candidates = self._narrow(
                candidates, "who_filter", lambda r: query.who in r.who_list(), recorder
            )
        if query.perspective:
            candidates = self._narrow(
                candidates,
                "perspective_filter",
                lambda r: r.perspective == query.perspective,
                recorder,
            )
        if query.processing_stage:
            candidates = self._narrow(
                candidates,
                "processing_stage_filter",
                lambda r: r.processing_stage == query.processing_stage,
                recorder,
            )
        if query.content_type:
            candidates = self._narrow(
                candidates,
                "content_type_filter",
                lambda r: r.content_type == query.content_type,
                recorder,
            )
        if query.crafted is not None:
            candidates = self._narrow(
                candidates, "crafted_filter", lambda r: r.crafted == query.crafted, recorder
            )
        if query.reflects == "only":
            candidates = self._narrow(
                candidates, "reflects_filter", lambda r: r.is_pattern_realization, recorder
            )

        realization_ids = query.reflected_by_ids()
        if realization_ids:
            reflected = {
                record_id
                for r in records
                if r.id in realization_ids
                for record_id in (r.reflects or [])
            }
            candidates = self._narrow(
                candidates, "reflected_by_filter", lambda r: r.id in reflected, recorder
            )

        return candidates

    def _apply_temporal_filters(
        self, records: List[ExperienceRecord], query: RecallQuery, recorder: DiagnosticsRecorder
    ) -> List[ExperienceRecord]:
        candidates = records
        for field in ("created_at", "occurred_at"):
            temporal_filter = getattr(query, field)
            if temporal_filter is None:
                continue
            try:
                kept = apply_temporal_filter(candidates, temporal_filter, field=field)
            except TemporalFilterError as e:
                recorder.record_error(f"{field}_filter", e, {"value": str(temporal_filter)})
                continue
            recorder.record_removed(f"{field}_filter", len(candidates), len(kept))
            candidates = kept
        return candidates

    def _apply_quality_filters(
        self,
        records: List[ExperienceRecord],
        query: RecallQuery,
        expression: Optional[FilterExpression],
        recorder: DiagnosticsRecorder,
    ) -> List[ExperienceRecord]:
        candidates = records
        if expression is not None:
            candidates = self._narrow(
                candidates, "quality_filter", lambda r: evaluate(expression, r), recorder
            )

        if query.quality_min or query.quality_max:
            candidates = self._narrow(
                candidates,
                "quality_threshold_filter",
                lambda r: self._within_thresholds(r, query),
                recorder,
            )
        return candidates

    @staticmethod
    def _within_thresholds(record: ExperienceRecord, query: RecallQuery) -> bool:
        # A record without a quality vector never satisfies a threshold
        if record.quality_vector is None:
            return False
        for dimension, minimum in query.quality_min.items():
            if getattr(record.quality_vector, dimension) < minimum:
                return False
        for dimension, maximum in query.quality_max.items():
            if getattr(record.quality_vector, dimension) > maximum:
                return False
        return True

    def _apply_vector_similarity(
        self, records: List[ExperienceRecord], query: RecallQuery, recorder: DiagnosticsRecorder
    ) -> Tuple[Dict[str, float], List[ExperienceRecord]]:
        if query.vector is None:
            return {}, records

        recorder.diagnostics.vector_search_performed = True
        scores = {}
        for record in records:
            similarity = quality_vector_similarity(query.vector, record.quality_vector)
            if similarity is not None:
                scores[record.id] = similarity
        recorder.record_similarities("vector", list(scores.items()))

        threshold = query.vector_similarity_threshold
        if threshold is None:
            return scores, records

        candidates = self._narrow(
            records,
            "vector_similarity_filter",
            lambda r: r.id in scores and scores[r.id] >= threshold,
            recorder,
        )
        return scores, candidates

    async def _apply_semantic_search(
        self, records: List[ExperienceRecord], query: RecallQuery, recorder: DiagnosticsRecorder
    ) -> Tuple[Dict[str, float], List[ExperienceRecord]]:
        if not query.semantic_query:
            return {}, records

        if self.embedding is None or self.vector_store is None:
            recorder.log("Semantic search skipped: no embedding provider or vector store")
            return {}, records

        policy = self.settings.semantic
        diagnostics = recorder.diagnostics

        try:
            query_embedding = await self.embedding.embed_query(query.semantic_query)
            # An empty vector would make every stored vector look stale
            if not query_embedding or not all(math.isfinite(v) for v in query_embedding):
                raise ValueError("Embedding provider returned an empty or non-finite query vector")
            diagnostics.query_embedding_dimension = len(query_embedding)
            diagnostics.vector_store_stats = await self.vector_store.get_health_stats()

            if policy.auto_remove_invalid:
                validation = await self.vector_store.validate_vectors(len(query_embedding))
                if validation.invalid:
                    removed = await self.vector_store.remove_invalid_vectors(len(query_embedding))
                    diagnostics.invalid_vectors_removed = removed
                    recorder.log(
                        f"Removed {removed} vectors not matching dimension {len(query_embedding)}",
                        {"details": validation.details},
                    )

            threshold = (
                query.semantic_threshold
                if query.semantic_threshold is not None
                else policy.default_threshold
            )
            neighbour_limit = (
                query.limit + query.offset if query.limit is not None else policy.default_limit
            )

            hits = await self.vector_store.find_similar(
                query_embedding, limit=neighbour_limit, min_similarity=threshold
            )
            if not hits and policy.fallback_enabled and threshold > policy.fallback_threshold:
                recorder.log(
                    f"No semantic matches at {threshold:.2f}, retrying at {policy.fallback_threshold:.2f}"
                )
                hits = await self.vector_store.find_similar(
                    query_embedding, limit=neighbour_limit, min_similarity=policy.fallback_threshold
                )
                diagnostics.semantic_fallback_used = True

            diagnostics.semantic_search_performed = True
        except Exception as e:
            recorder.record_error("semantic_search", e, {"semantic_query": query.semantic_query})
            return {}, records

        scores = {hit.id: hit.similarity for hit in hits}
        recorder.record_similarities("semantic", list(scores.items()))
        candidates = self._narrow(records, "semantic_filter", lambda r: r.id in scores, recorder)
        return scores, candidates

    @staticmethod
    def _sort(scored: List[ScoredRecord], query: RecallQuery) -> List[ScoredRecord]:
        # sorted() is stable, also with reverse=True
        if query.sort == "relevance":
            return sorted(scored, key=lambda s: -s.value)
        return sorted(scored, key=lambda s: s.record.timestamp(query.sort), reverse=True)

    def _to_ranked(self, scored: ScoredRecord, query: RecallQuery) -> RankedRecord:
        record = scored.record
        text = record.text
        limit = self.settings.snippet_length

        if query.include_full_content:
            snippet = text
        else:
            snippet = text[:limit] + ("..." if len(text) > limit else "")

        metadata = None
        if query.include_context:
            metadata = record.model_dump(mode="json", include=CONTEXT_FIELDS, exclude_none=True)

        return RankedRecord(
            id=record.id,
            type=record.type,
            snippet=snippet,
            content=text if query.include_full_content else None,
            metadata=metadata,
            relevance_score=scored.value,
            relevance_breakdown=scored.breakdown,
        )
