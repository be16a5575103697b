"""
File-backed vector storage.

Keeps the in-memory store's behaviour and persists every write to a JSON
file. Writes go to a temporary file which is then renamed over the target,
so a crash never leaves a half-written file behind.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Union

from bridge_recall.exceptions import CollaboratorError
from bridge_recall.storage.vector.memory import InMemoryVectorStore, _Snapshot
from bridge_recall.storage.vector.models import VectorPoint

logger = logging.getLogger(__name__)


class JSONVectorStore(InMemoryVectorStore):
    """
    JSON file implementation of the VectorStore protocol.

    File layout::

        {"dimension": 3, "vectors": [{"id": ..., "vector": [...], ...}]}

    A bare list of vector objects is also accepted when loading.
    """

    def __init__(self, path: Union[str, Path]):
        super().__init__()
        self.path = Path(path)

    def _read_file(self) -> _Snapshot:
        if not self.path.exists():
            return _Snapshot()

        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, list):
            data = {"vectors": data}
        if not isinstance(data, dict) or not isinstance(data.get("vectors", []), list):
            raise ValueError(f"{self.path} is not a vector store file")

        points = {}
        for sequence, item in enumerate(data.get("vectors", [])):
            if not isinstance(item, dict):
                raise ValueError(f"Vector entry {sequence} in {self.path} is not an object")
            item.setdefault("sequence", sequence)
            point = VectorPoint.model_validate(item)
            points[point.id] = point

        dimension = data.get("dimension")
        if dimension is None and points:
            dimension = len(next(iter(points.values())).vector)

        next_sequence = max((p.sequence for p in points.values()), default=-1) + 1
        return _Snapshot(points=points, dimension=dimension, next_sequence=next_sequence)

    def _write_file(self, state: _Snapshot):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "dimension": state.dimension,
            "vectors": [
                point.model_dump(mode="json")
                for point in sorted(state.points.values(), key=lambda p: p.sequence)
            ],
        }

        temp_path = self.path.with_name(f"{self.path.name}.tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(temp_path, self.path)

    async def initialize(self) -> None:
        """Load vectors from the file; a missing file gives an empty store."""
        try:
            state = await asyncio.to_thread(self._read_file)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load vectors from {self.path}: {e}")
            raise CollaboratorError("Initialize JSON vector store", e) from e

        async with self._write_lock:
            self._state = state

        logger.info(f"Loaded {len(state.points)} vectors from {self.path}")

    async def _commit(self, state: _Snapshot) -> None:
        await asyncio.to_thread(self._write_file, state)
        self._state = state
