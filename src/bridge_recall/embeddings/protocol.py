"""
Text embedding protocol for bridge-recall.

Embedding generation happens outside this package; the recall pipeline only
needs something that turns text into a fixed-length vector.
"""

from typing import List, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding providers.

    Implementations must:

    1. Return vectors of the same length for every input
    2. Expose that length as `dimension` for store consistency checks
    3. Implement async methods so embedding calls don't block other requests

    Calls may raise; the search pipeline catches failures and falls back to
    non-semantic results.

    Example:
        >>> vector = await embedder.embed_query("quiet morning focus")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> int:
        """Vector dimension produced by this embedder."""
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the embedding model."""
        ...

    async def embed_document(self, text: str) -> List[float]:
        """
        Generate the embedding stored for a record's text.

        Args:
            text: Record text to embed

        Returns:
            Embedding vector of length `dimension`
        """
        ...

    async def embed_query(self, text: str) -> List[float]:
        """
        Generate the embedding for a semantic search query.

        Args:
            text: Query text to embed

        Returns:
            Embedding vector of length `dimension`
        """
        ...
