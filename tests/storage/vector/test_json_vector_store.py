"""
Unit tests for the JSON file vector store.
"""

import json

import pytest

from bridge_recall.exceptions import CollaboratorError
from bridge_recall.storage.vector.json_store import JSONVectorStore


@pytest.fixture
def vector_path(tmp_path):
    return tmp_path / "vectors.json"


@pytest.mark.asyncio
async def test_missing_file_gives_empty_store(vector_path):
    """Initializing without a file is not an error."""
    store = JSONVectorStore(vector_path)
    await store.initialize()

    assert await store.count() == 0
    assert store.dimension is None


@pytest.mark.asyncio
async def test_writes_persist_across_instances(vector_path):
    """Vectors and their order survive a reload."""
    store = JSONVectorStore(vector_path)
    await store.initialize()
    await store.upsert("a", [1.0, 0.0], {"type": "experience"})
    await store.upsert("b", [1.0, 0.0])

    reloaded = JSONVectorStore(vector_path)
    await reloaded.initialize()
    results = await reloaded.find_similar([1.0, 0.0])

    assert reloaded.dimension == 2
    assert [r.id for r in results] == ["a", "b"]
    assert results[0].metadata == {"type": "experience"}


@pytest.mark.asyncio
async def test_file_layout(vector_path):
    """The file holds the dimension and a list of vectors."""
    store = JSONVectorStore(vector_path)
    await store.upsert("a", [0.5, 0.5, 0.0])

    data = json.loads(vector_path.read_text())

    assert data["dimension"] == 3
    assert data["vectors"][0]["id"] == "a"
    assert data["vectors"][0]["vector"] == [0.5, 0.5, 0.0]
    assert not vector_path.with_name("vectors.json.tmp").exists()


@pytest.mark.asyncio
async def test_loads_bare_list_format(vector_path):
    """A plain list of vector objects is accepted."""
    vector_path.write_text(
        json.dumps([{"id": "x", "vector": [1.0, 0.0]}, {"id": "y", "vector": [0.0, 1.0]}])
    )

    store = JSONVectorStore(vector_path)
    await store.initialize()

    assert await store.count() == 2
    assert store.dimension == 2


@pytest.mark.asyncio
async def test_remove_invalid_vectors_is_persisted(vector_path):
    """Removing stale vectors rewrites the file."""
    store = JSONVectorStore(vector_path)
    await store.upsert("old", [1.0, 0.0])
    await store.upsert("new", [1.0, 0.0, 0.0])

    removed = await store.remove_invalid_vectors(3)

    data = json.loads(vector_path.read_text())
    assert removed == 1
    assert data["dimension"] == 3
    assert [v["id"] for v in data["vectors"]] == ["new"]


@pytest.mark.asyncio
async def test_corrupt_file_raises_collaborator_error(vector_path):
    """An unreadable file is reported as a collaborator failure."""
    vector_path.write_text("{not json")

    store = JSONVectorStore(vector_path)

    with pytest.raises(CollaboratorError):
        await store.initialize()


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ['{"vectors": [1, 2]}', '"vectors"', '{"vectors": 5}'])
async def test_malformed_file_raises_collaborator_error(vector_path, content):
    """Well-formed JSON of the wrong shape is reported like a corrupt file."""
    vector_path.write_text(content)

    store = JSONVectorStore(vector_path)

    with pytest.raises(CollaboratorError):
        await store.initialize()
