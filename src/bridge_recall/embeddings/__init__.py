"""
Text embedding abstractions for bridge-recall.

Only the provider protocol lives here; concrete models are supplied by callers.
"""

from bridge_recall.embeddings.protocol import TextEmbedding

__all__ = [
    "TextEmbedding",
]
