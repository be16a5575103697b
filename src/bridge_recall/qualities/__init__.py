"""
Quality model: the seven experiential dimensions and the filter algebra over them.
"""

from bridge_recall.qualities.filter import (
    AndExpression,
    FilterExpression,
    FilterValidation,
    NotExpression,
    OrExpression,
    PresenceFilter,
    ValueFilter,
    compile_filter,
    describe,
    evaluate,
    parse,
    validate,
)
from bridge_recall.qualities.registry import (
    DIMENSION_LABELS,
    DIMENSIONS,
    KNOWN_QUALITIES,
    VECTOR_DIMENSIONS,
    Dimension,
    is_known_quality,
    normalize_label,
    quality_signature,
    resolve_dimension,
    split_label,
)

__all__ = [
    # Registry
    "Dimension",
    "DIMENSIONS",
    "DIMENSION_LABELS",
    "VECTOR_DIMENSIONS",
    "KNOWN_QUALITIES",
    "resolve_dimension",
    "split_label",
    "normalize_label",
    "is_known_quality",
    "quality_signature",
    # Filter expressions
    "PresenceFilter",
    "ValueFilter",
    "AndExpression",
    "OrExpression",
    "NotExpression",
    "FilterExpression",
    "FilterValidation",
    "parse",
    "validate",
    "evaluate",
    "describe",
    "compile_filter",
]
