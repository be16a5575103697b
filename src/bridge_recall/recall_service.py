import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from bridge_recall.clustering import ClusteringEngine, ClusteringResult
from bridge_recall.config import ClusteringSettings, RecallSettings
from bridge_recall.embeddings import TextEmbedding
from bridge_recall.models import ExperienceRecord, RecallQuery, SearchResponse
from bridge_recall.search import RecallSearchPipeline
from bridge_recall.storage import RecordStore, VectorStore

logger = logging.getLogger(__name__)


class RecallService:
    """
    Entry point for storing, searching and clustering experience records.

    Wraps a record store, a vector store and an optional embedding provider,
    and owns the search pipeline and clustering engine built from the settings.
    """

    def __init__(
        self,
        record_store: RecordStore,
        vector_store: VectorStore,
        embedding: Optional[TextEmbedding] = None,
        settings: Optional[RecallSettings] = None,
    ):
        self.record_store = record_store
        self.vector_store = vector_store
        self.embedding = embedding
        self.settings = settings or RecallSettings()
        self.clustering_engine = ClusteringEngine(self.settings.clustering)
        self.pipeline = RecallSearchPipeline(
            record_store,
            vector_store=vector_store,
            embedding=embedding,
            settings=self.settings,
            clustering_engine=self.clustering_engine,
        )

    async def search(self, query: Union[RecallQuery, Dict[str, Any]]) -> SearchResponse:
        """
        Run a recall query.

        Args:
            query: RecallQuery or a dict that validates into one

        Returns:
            SearchResponse with ranked results, and clusters when `as_clusters` is set
        """
        return await self.pipeline.search(query)

    async def cluster(
        self,
        records: Optional[List[ExperienceRecord]] = None,
        options: Optional[ClusteringSettings] = None,
    ) -> ClusteringResult:
        """
        Discover patterns across records.

        Args:
            records: Records to cluster (default: every stored record)
            options: Clustering settings for this call (default: service settings)

        Returns:
            ClusteringResult with clusters, outliers and statistics
        """
        if records is None:
            records = await self.record_store.get_all_records()
        return await asyncio.to_thread(self.clustering_engine.cluster, records, options)

    async def remember(self, record: ExperienceRecord) -> ExperienceRecord:
        """
        Store a record and index its semantic embedding.

        When the record has no embedding and an embedding provider is
        configured, one is generated from the record text and stored on
        the record.

        Returns:
            The stored record, including any generated embedding
        """
        try:
            record = await self._with_embedding(record)
            await self.record_store.save_record(record)
            if record.semantic_embedding:
                await self.vector_store.upsert(
                    record.id, record.semantic_embedding, self._vector_metadata(record)
                )

            logger.info(
                f"Remembered record {record.id}, "
                f"embedded={record.semantic_embedding is not None}"
            )
            return record

        except Exception as e:
            logger.error(f"Failed to remember record {record.id}: {e}")
            raise

    async def reindex(self) -> int:
        """
        Re-upsert every stored record's embedding into the vector store.

        Records without an embedding are embedded first when a provider is
        configured, and saved back with it.

        Returns:
            Number of vectors written
        """
        indexed = 0
        for record in await self.record_store.get_all_records():
            updated = await self._with_embedding(record)
            if updated is not record:
                await self.record_store.save_record(updated)
            if not updated.semantic_embedding:
                continue
            await self.vector_store.upsert(
                updated.id, updated.semantic_embedding, self._vector_metadata(updated)
            )
            indexed += 1

        logger.info(f"Reindexed {indexed} record embeddings")
        return indexed

    async def status(self) -> Dict[str, Any]:
        """Record count, embedded record count, vector store health and embedding model."""
        records = await self.record_store.get_all_records()
        health = await self.vector_store.get_health_stats()
        return {
            "records": len(records),
            "embedded_records": sum(1 for r in records if r.semantic_embedding),
            "vector_store": health.model_dump(),
            "embedding_model": self.embedding.model_name if self.embedding else None,
        }

    async def _with_embedding(self, record: ExperienceRecord) -> ExperienceRecord:
        if record.semantic_embedding or self.embedding is None:
            return record
        embedding = await self.embedding.embed_document(record.text)
        return record.model_copy(update={"semantic_embedding": embedding})

    @staticmethod
    def _vector_metadata(record: ExperienceRecord) -> Dict[str, Any]:
        return {"type": record.type, "created_at": record.created_at.isoformat()}
