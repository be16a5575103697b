"""
Models for vector storage.

Defines the data structures shared by vector store implementations:
stored points, similarity hits, and health/validation reports.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from bridge_recall.models import VectorStoreHealth

__all__ = ["VectorPoint", "SimilarVector", "VectorStoreHealth", "VectorValidation"]


class VectorPoint(BaseModel):
    """
    A vector held by a store.

    `sequence` is the insertion order within the store and is used to break
    similarity ties deterministically.
    """

    id: str
    vector: List[float]
    metadata: Dict[str, Any] = Field(default_factory=dict)
    sequence: int = 0
    created_at: Optional[datetime] = None


class SimilarVector(BaseModel):
    """A nearest-neighbour hit returned by `find_similar`."""

    id: str
    similarity: float
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VectorValidation(BaseModel):
    """Result of checking stored vectors against an expected dimensionality."""

    valid: int = 0
    invalid: int = 0
    details: List[str] = Field(default_factory=list)
