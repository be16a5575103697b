"""
Unit tests for the recall search pipeline.

Uses in-memory stores with a mocked embedding provider; collaborator
failures are simulated with AsyncMock side effects.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from bridge_recall.config import RecallSettings, SemanticSearchPolicy
from bridge_recall.exceptions import QualityFilterError
from bridge_recall.models import RecallQuery, VectorStoreHealth
from bridge_recall.search import diagnostics as reasons
from bridge_recall.search.pipeline import RecallSearchPipeline
from bridge_recall.storage.records import InMemoryRecordStore
from bridge_recall.storage.vector import InMemoryVectorStore, SimilarVector, VectorValidation


@pytest.fixture
def records(make_record):
    """A small corpus with varied filters, qualities and embeddings."""
    return [
        make_record(
            id="a",
            text="Closed off after the tense meeting at work",
            qualities=["mood.closed", "embodied.sensing"],
            quality_vector={"affective": 0.9, "embodied": 0.6},
            who="Alicia",
            perspective="I",
            semantic_embedding=[1.0, 0.0, 0.0],
        ),
        make_record(
            id="b",
            text="Open and curious on a morning walk",
            qualities=["mood.open", "embodied.thinking"],
            quality_vector={"purposive": 0.8, "affective": 0.4},
            who="Miguel",
            perspective="we",
            semantic_embedding=[0.0, 1.0, 0.0],
        ),
        make_record(
            id="c",
            text="Remembering the old house",
            qualities=["time.past"],
            who=["Alicia", "Miguel"],
            perspective="I",
            semantic_embedding=[0.0, 0.0, 1.0],
        ),
        make_record(
            id="d",
            type="pattern",
            text="Tension at work and openness on walks keep alternating",
            reflects=["a", "b"],
        ),
    ]


@pytest.fixture
def record_store(records):
    return InMemoryRecordStore(records)


@pytest_asyncio.fixture
async def vector_store(records):
    store = InMemoryVectorStore()
    for record in records:
        if record.semantic_embedding:
            await store.upsert(record.id, record.semantic_embedding)
    return store


@pytest.fixture
def mock_embedding():
    """Mock embedding provider returning a query close to record a."""
    embedding = Mock()
    embedding.dimension = 3
    embedding.model_name = "mock-embedding"
    embedding.embed_query = AsyncMock(return_value=[0.9, 0.1, 0.0])
    embedding.embed_document = AsyncMock(return_value=[0.9, 0.1, 0.0])
    return embedding


@pytest.fixture
def debug_settings():
    return RecallSettings(debug=True)


@pytest.fixture
def pipeline(record_store, vector_store, mock_embedding, debug_settings):
    return RecallSearchPipeline(
        record_store, vector_store=vector_store, embedding=mock_embedding, settings=debug_settings
    )


def ids(response):
    return [r.id for r in response.results]


@pytest.fixture
def mock_vector_store():
    """Vector store that never finds anything."""
    store = Mock()
    store.get_health_stats = AsyncMock(
        return_value=VectorStoreHealth(total_vectors=3, valid_vectors=3, dimension=3)
    )
    store.validate_vectors = AsyncMock(return_value=VectorValidation(valid=3, invalid=0))
    store.remove_invalid_vectors = AsyncMock(return_value=0)
    store.find_similar = AsyncMock(return_value=[])
    return store


# --- basics -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_empty_query_returns_everything(pipeline):
    """No filters and no signals returns all records in store order."""
    response = await pipeline.search(RecallQuery())

    assert ids(response) == ["a", "b", "c", "d"]
    assert response.total == 4
    assert all(r.relevance_score == pytest.approx(1.0) for r in response.results)
    assert response.no_results_reason is None


@pytest.mark.asyncio
async def test_accepts_dict_query(pipeline):
    response = await pipeline.search({"who": "Miguel"})

    assert ids(response) == ["b", "c"]


@pytest.mark.asyncio
async def test_diagnostics_only_in_debug(record_store):
    pipeline = RecallSearchPipeline(record_store)

    response = await pipeline.search(RecallQuery())

    assert response.diagnostics is None


@pytest.mark.asyncio
async def test_applied_filters_echo_query(pipeline):
    response = await pipeline.search(RecallQuery(query="walk", perspective="we", limit=5))

    assert response.query == "walk"
    assert response.applied_filters == {"query": "walk", "perspective": "we", "limit": 5}


# --- structural filters -------------------------------------------------------


@pytest.mark.asyncio
async def test_structural_filters_are_hard_excludes(pipeline):
    response = await pipeline.search(RecallQuery(perspective="I", who="Alicia"))

    assert ids(response) == ["a", "c"]
    assert response.diagnostics.filter_breakdown["who_filter"] == 2
    assert response.diagnostics.filter_breakdown["perspective_filter"] == 0


@pytest.mark.asyncio
async def test_type_and_id_filters(pipeline):
    assert ids(await pipeline.search(RecallQuery(type=["pattern"]))) == ["d"]
    assert ids(await pipeline.search(RecallQuery(id="b"))) == ["b"]


@pytest.mark.asyncio
async def test_reflects_only(pipeline):
    response = await pipeline.search(RecallQuery(reflects="only"))

    assert ids(response) == ["d"]


@pytest.mark.asyncio
async def test_reflected_by(pipeline):
    """reflected_by returns the records a pattern realization synthesizes."""
    response = await pipeline.search(RecallQuery(reflected_by="d"))

    assert ids(response) == ["a", "b"]


@pytest.mark.asyncio
async def test_adding_a_filter_never_widens_results(pipeline):
    broad = await pipeline.search(RecallQuery(who="Alicia"))
    narrow = await pipeline.search(RecallQuery(who="Alicia", qualities={"mood": "closed"}))

    assert set(ids(narrow)) <= set(ids(broad))


# --- temporal filters ---------------------------------------------------------


@pytest.mark.asyncio
async def test_created_at_single_value(pipeline, records):
    """A single timestamp keeps records created at or after it."""
    response = await pipeline.search(RecallQuery(created_at=records[2].created_at))

    assert ids(response) == ["c", "d"]


@pytest.mark.asyncio
async def test_invalid_temporal_filter_is_skipped(pipeline):
    response = await pipeline.search(RecallQuery(created_at="zzqx-flurb"))

    assert response.total == 4
    assert response.diagnostics.errors[0].context == "created_at_filter"


# --- quality filters ------------------------------------------------------------


@pytest.mark.asyncio
async def test_quality_filter(pipeline):
    response = await pipeline.search(RecallQuery(qualities={"mood": "closed"}))

    assert ids(response) == ["a"]


@pytest.mark.asyncio
async def test_quality_presence_filter(pipeline):
    response = await pipeline.search(RecallQuery(qualities={"embodied": {"present": True}}))

    assert ids(response) == ["a", "b"]


@pytest.mark.asyncio
async def test_quality_filter_list_of_expressions(pipeline):
    """A top-level list of expressions is an AND of its items."""
    response = await pipeline.search(
        {"qualities": [{"mood": "closed"}, {"embodied": {"present": True}}]}
    )

    assert ids(response) == ["a"]
    assert response.diagnostics.quality_filter_ignored is False


@pytest.mark.asyncio
async def test_invalid_quality_filter_is_ignored(pipeline):
    """An invalid filter behaves like no filter and is flagged in diagnostics."""
    response = await pipeline.search(RecallQuery(qualities={"mood": "happy"}))

    assert response.total == 4
    assert response.diagnostics.quality_filter_ignored is True


@pytest.mark.asyncio
async def test_strict_quality_filter_raises_before_loading():
    record_store = Mock()
    record_store.get_all_records = AsyncMock(return_value=[])
    pipeline = RecallSearchPipeline(record_store, settings=RecallSettings(strict_quality_filter=True))

    with pytest.raises(QualityFilterError) as exc_info:
        await pipeline.search(RecallQuery(qualities={"mood": "happy"}))

    assert exc_info.value.code == "UNKNOWN_SUBTYPE"
    record_store.get_all_records.assert_not_called()


@pytest.mark.asyncio
async def test_quality_thresholds_exclude_missing_vectors(pipeline):
    """Records without a quality vector never satisfy a threshold."""
    response = await pipeline.search(RecallQuery(min_affective=0.3))

    assert ids(response) == ["a", "b"]


@pytest.mark.asyncio
async def test_quality_min_and_max(pipeline):
    response = await pipeline.search(RecallQuery(quality_min={"mood": 0.3}, quality_max={"purpose": 0.5}))

    assert ids(response) == ["a"]


# --- quality vector similarity -------------------------------------------------


@pytest.mark.asyncio
async def test_vector_similarity_without_threshold_keeps_all(pipeline):
    """Without a threshold, records lacking a vector stay in with no similarity."""
    response = await pipeline.search(RecallQuery(vector={"affective": 1.0}))
    by_id = {r.id: r for r in response.results}

    # Records without a vector are scored on filter relevance alone
    assert ids(response) == ["c", "d", "a", "b"]
    assert by_id["a"].relevance_breakdown.vector_similarity == pytest.approx(0.832, abs=1e-3)
    assert by_id["c"].relevance_breakdown.vector_similarity is None
    assert response.diagnostics.vector_search_performed is True


@pytest.mark.asyncio
async def test_vector_similarity_threshold(pipeline):
    response = await pipeline.search(
        RecallQuery(vector={"affective": 1.0}, vector_similarity_threshold=0.8)
    )

    assert ids(response) == ["a"]


# --- semantic search -----------------------------------------------------------


@pytest.mark.asyncio
async def test_semantic_search_intersects_candidates(pipeline):
    response = await pipeline.search(RecallQuery(semantic_query="stress at work"))

    assert ids(response) == ["a"]
    assert response.results[0].relevance_breakdown.semantic_similarity > 0.9
    assert response.diagnostics.semantic_search_performed is True
    assert response.diagnostics.query_embedding_dimension == 3


@pytest.mark.asyncio
async def test_semantic_fallback_retries_once(record_store, mock_vector_store, mock_embedding):
    """Zero hits at 0.9 triggers exactly one retry at 0.4."""
    pipeline = RecallSearchPipeline(
        record_store, mock_vector_store, mock_embedding, RecallSettings(debug=True)
    )

    response = await pipeline.search(RecallQuery(semantic_query="x", semantic_threshold=0.9))

    assert mock_vector_store.find_similar.await_count == 2
    thresholds = [c.kwargs["min_similarity"] for c in mock_vector_store.find_similar.await_args_list]
    assert thresholds == [0.9, 0.4]
    assert response.diagnostics.semantic_fallback_used is True
    assert response.results == []


@pytest.mark.asyncio
async def test_semantic_fallback_hits_are_returned(record_store, mock_vector_store, mock_embedding):
    """Hits found by the retry at the fallback threshold become results."""
    mock_vector_store.find_similar = AsyncMock(
        side_effect=[[], [SimilarVector(id="a", similarity=0.5)]]
    )
    pipeline = RecallSearchPipeline(
        record_store, mock_vector_store, mock_embedding, RecallSettings(debug=True)
    )

    response = await pipeline.search(RecallQuery(semantic_query="x"))

    assert mock_vector_store.find_similar.await_count == 2
    assert ids(response) == ["a"]
    assert response.results[0].relevance_breakdown.semantic_similarity == 0.5
    assert response.diagnostics.semantic_fallback_used is True


@pytest.mark.asyncio
@pytest.mark.parametrize("bad_embedding", [[], [float("nan"), 0.0, 0.0]])
async def test_bad_query_embedding_leaves_store_intact(
    record_store, vector_store, mock_embedding, bad_embedding
):
    """An empty or non-finite query vector degrades the search without touching stored vectors."""
    mock_embedding.embed_query = AsyncMock(return_value=bad_embedding)
    pipeline = RecallSearchPipeline(
        record_store, vector_store, mock_embedding, RecallSettings(debug=True)
    )

    response = await pipeline.search(RecallQuery(semantic_query="walk"))

    assert await vector_store.count() == 3
    assert vector_store.dimension == 3
    assert ids(response) == ["a", "b", "c", "d"]
    assert response.diagnostics.semantic_search_performed is False
    assert response.diagnostics.errors[0].context == "semantic_search"


@pytest.mark.asyncio
async def test_semantic_no_retry_at_or_below_fallback(record_store, mock_vector_store, mock_embedding):
    pipeline = RecallSearchPipeline(record_store, mock_vector_store, mock_embedding)

    await pipeline.search(RecallQuery(semantic_query="x", semantic_threshold=0.4))

    assert mock_vector_store.find_similar.await_count == 1


@pytest.mark.asyncio
async def test_semantic_default_threshold_and_limit(record_store, mock_vector_store, mock_embedding):
    """Without a threshold or limit, the policy defaults are used."""
    pipeline = RecallSearchPipeline(
        record_store,
        mock_vector_store,
        mock_embedding,
        RecallSettings(semantic=SemanticSearchPolicy(fallback_enabled=False)),
    )

    await pipeline.search(RecallQuery(semantic_query="x"))

    mock_vector_store.find_similar.assert_awaited_once_with(
        [0.9, 0.1, 0.0], limit=50, min_similarity=0.7
    )


@pytest.mark.asyncio
async def test_semantic_neighbour_limit_covers_page(record_store, mock_vector_store, mock_embedding):
    mock_vector_store.find_similar = AsyncMock(
        return_value=[SimilarVector(id="a", similarity=0.95)]
    )
    pipeline = RecallSearchPipeline(record_store, mock_vector_store, mock_embedding)

    await pipeline.search(RecallQuery(semantic_query="x", limit=5, offset=10))

    assert mock_vector_store.find_similar.await_args.kwargs["limit"] == 15


@pytest.mark.asyncio
async def test_semantic_failure_degrades(record_store, vector_store, mock_embedding):
    """An embedding failure is recorded and the search continues without semantics."""
    mock_embedding.embed_query = AsyncMock(side_effect=RuntimeError("model offline"))
    pipeline = RecallSearchPipeline(
        record_store, vector_store, mock_embedding, RecallSettings(debug=True)
    )

    response = await pipeline.search(RecallQuery(semantic_query="x", query="work"))

    assert ids(response) == ["a", "d"]
    assert response.diagnostics.semantic_search_performed is False
    assert response.diagnostics.errors[0].context == "semantic_search"
    assert "model offline" in response.diagnostics.errors[0].message


@pytest.mark.asyncio
async def test_semantic_removes_stale_vectors(record_store, vector_store, mock_embedding):
    await vector_store.upsert("stale", [1.0, 0.0])
    pipeline = RecallSearchPipeline(
        record_store, vector_store, mock_embedding, RecallSettings(debug=True)
    )

    response = await pipeline.search(RecallQuery(semantic_query="x"))

    assert response.diagnostics.invalid_vectors_removed == 1
    assert await vector_store.count() == 3


@pytest.mark.asyncio
async def test_semantic_skipped_without_provider(record_store):
    pipeline = RecallSearchPipeline(record_store, settings=RecallSettings(debug=True))

    response = await pipeline.search(RecallQuery(semantic_query="x"))

    assert response.total == 4
    assert response.diagnostics.semantic_search_performed is False


# --- scoring, sorting and paging ------------------------------------------------


@pytest.mark.asyncio
async def test_text_query_drops_zero_matches(pipeline):
    response = await pipeline.search(RecallQuery(query="work"))

    assert ids(response) == ["a", "d"]
    assert response.diagnostics.filter_breakdown["text_filter"] == 2


@pytest.mark.asyncio
async def test_relevance_sort_is_stable(pipeline):
    """Equal scores keep store order."""
    response = await pipeline.search(RecallQuery(query="walk"))

    assert ids(response) == ["b", "d"]


@pytest.mark.asyncio
async def test_relevance_sort_by_score(pipeline):
    response = await pipeline.search(RecallQuery(query="tense meeting"))

    assert ids(response)[0] == "a"
    scores = [r.relevance_score for r in response.results]
    assert scores == sorted(scores, reverse=True)


@pytest.mark.asyncio
async def test_sort_by_timestamp_descending(pipeline):
    response = await pipeline.search(RecallQuery(sort="created_at"))

    assert ids(response) == ["d", "c", "b", "a"]


@pytest.mark.asyncio
async def test_timestamp_sort_ties_are_stable(make_record):
    same = datetime(2024, 1, 1, tzinfo=timezone.utc)
    store = InMemoryRecordStore(
        [make_record(id=rid, created_at=same) for rid in ("x", "y", "z")]
    )

    response = await RecallSearchPipeline(store).search(RecallQuery(sort="created_at"))

    assert ids(response) == ["x", "y", "z"]


@pytest.mark.asyncio
async def test_offset_and_limit(pipeline):
    response = await pipeline.search(RecallQuery(offset=1, limit=2))

    assert ids(response) == ["b", "c"]
    assert response.total == 4


# --- result shaping ------------------------------------------------------------


@pytest.mark.asyncio
async def test_snippet_truncation(make_record):
    store = InMemoryRecordStore([make_record(id="long", text="x" * 250)])
    pipeline = RecallSearchPipeline(store)

    short = await pipeline.search(RecallQuery())
    full = await pipeline.search(RecallQuery(include_full_content=True))

    assert short.results[0].snippet == "x" * 200 + "..."
    assert short.results[0].content is None
    assert full.results[0].snippet == "x" * 250
    assert full.results[0].content == "x" * 250


@pytest.mark.asyncio
async def test_include_context_metadata(pipeline):
    response = await pipeline.search(RecallQuery(id="a", include_context=True))
    metadata = response.results[0].metadata

    assert metadata["who"] == "Alicia"
    assert metadata["perspective"] == "I"
    assert metadata["qualities"] == ["mood.closed", "embodied.sensing"]
    assert "semantic_embedding" not in metadata


@pytest.mark.asyncio
async def test_metadata_absent_by_default(pipeline):
    response = await pipeline.search(RecallQuery(id="a"))

    assert response.results[0].metadata is None


@pytest.mark.asyncio
async def test_as_clusters(pipeline):
    response = await pipeline.search(RecallQuery(as_clusters=True))

    assert response.clusters is not None
    member_ids = {mid for c in response.clusters if c.kind == "signature" for mid in c.member_ids}
    assert member_ids == {"a", "b", "c", "d"}


# --- no-results reasons --------------------------------------------------------


@pytest.mark.asyncio
async def test_reason_empty_store():
    response = await RecallSearchPipeline(InMemoryRecordStore()).search(RecallQuery())

    assert response.results == []
    assert response.no_results_reason == reasons.REASON_EMPTY_STORE


@pytest.mark.asyncio
async def test_reason_no_vectors(record_store, mock_embedding):
    pipeline = RecallSearchPipeline(record_store, InMemoryVectorStore(), mock_embedding)

    response = await pipeline.search(RecallQuery(semantic_query="x"))

    assert response.no_results_reason == reasons.REASON_NO_VECTORS


@pytest.mark.asyncio
async def test_reason_semantic_threshold(record_store, mock_vector_store, mock_embedding):
    pipeline = RecallSearchPipeline(record_store, mock_vector_store, mock_embedding)

    response = await pipeline.search(RecallQuery(semantic_query="x", semantic_threshold=0.95))

    assert response.no_results_reason == reasons.REASON_SEMANTIC_THRESHOLD


@pytest.mark.asyncio
async def test_reason_vector_threshold(pipeline):
    response = await pipeline.search(
        RecallQuery(vector={"spatial": 1.0}, vector_similarity_threshold=0.95)
    )

    assert response.no_results_reason == reasons.REASON_VECTOR_THRESHOLD


@pytest.mark.asyncio
async def test_reason_text_query(pipeline):
    response = await pipeline.search(RecallQuery(query="submarine"))

    assert response.no_results_reason == reasons.REASON_TEXT_QUERY


@pytest.mark.asyncio
async def test_reason_all_filtered(pipeline):
    response = await pipeline.search(RecallQuery(type=["dream"]))

    assert response.no_results_reason == reasons.REASON_ALL_FILTERED
    assert response.diagnostics.no_results_reason == reasons.REASON_ALL_FILTERED


@pytest.mark.asyncio
async def test_reason_unknown_when_offset_past_end(pipeline):
    response = await pipeline.search(RecallQuery(offset=10))

    assert response.total == 4
    assert response.no_results_reason == reasons.REASON_UNKNOWN


@pytest.mark.asyncio
async def test_record_store_failure_is_recorded():
    record_store = Mock()
    record_store.get_all_records = AsyncMock(side_effect=OSError("disk gone"))
    pipeline = RecallSearchPipeline(record_store, settings=RecallSettings(debug=True))

    response = await pipeline.search(RecallQuery())

    assert response.results == []
    assert response.diagnostics.errors[0].context == "load_records"
    assert response.no_results_reason == reasons.REASON_EMPTY_STORE
