"""
Registry of the seven experiential quality dimensions.

Each dimension has two names: the label name used in record quality labels
and filter expressions ("mood", "mood.closed") and the vector name used for
the dense quality vector ("affective"). Either name is accepted anywhere a
dimension is named.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple


@dataclass(frozen=True)
class Dimension:
    """One quality dimension and its registered subtypes."""

    label: str
    vector_name: str
    subtypes: Tuple[str, ...]
    description: str

    def has_subtype(self, subtype: str) -> bool:
        return subtype in self.subtypes


DIMENSIONS: Tuple[Dimension, ...] = (
    Dimension("embodied", "embodied", ("thinking", "sensing"), "Body-mind unity in this moment"),
    Dimension("focus", "attentional", ("narrow", "broad"), "Attention's direction and quality"),
    Dimension("mood", "affective", ("open", "closed"), "Emotional atmosphere"),
    Dimension("purpose", "purposive", ("goal", "wander"), "Direction or drift"),
    Dimension("space", "spatial", ("here", "there"), "Where the experiencer is"),
    Dimension("time", "temporal", ("past", "future"), "Temporal orientation"),
    Dimension("presence", "intersubjective", ("individual", "collective"), "Social field"),
)

DIMENSION_LABELS: Tuple[str, ...] = tuple(d.label for d in DIMENSIONS)
VECTOR_DIMENSIONS: Tuple[str, ...] = tuple(d.vector_name for d in DIMENSIONS)

KNOWN_QUALITIES: Tuple[str, ...] = tuple(
    label
    for d in DIMENSIONS
    for label in (d.label, *(f"{d.label}.{s}" for s in d.subtypes))
)

_BY_NAME: Dict[str, Dimension] = {}
for _dimension in DIMENSIONS:
    _BY_NAME[_dimension.label] = _dimension
    _BY_NAME[_dimension.vector_name] = _dimension


def resolve_dimension(name: str) -> Optional[Dimension]:
    """Look up a dimension by label name or vector name (case-insensitive)."""
    if not isinstance(name, str):
        return None
    return _BY_NAME.get(name.strip().lower())


def split_label(label: str) -> Tuple[str, Optional[str]]:
    """Split "mood.closed" into ("mood", "closed"); bare labels have no subtype."""
    base, _, subtype = label.partition(".")
    return base, (subtype or None)


def normalize_label(label: str) -> str:
    """
    Normalize a quality label to its canonical label-name form.

    "affective.closed" becomes "mood.closed". Unknown dimensions raise
    ValueError; unknown subtypes are kept as given.
    """
    base, subtype = split_label(label.strip().lower())
    dimension = resolve_dimension(base)
    if dimension is None:
        raise ValueError(f"Unknown quality dimension: '{base}'")
    return f"{dimension.label}.{subtype}" if subtype else dimension.label


def is_known_quality(label: str) -> bool:
    """True if the label is a registered base dimension or dimension.subtype."""
    try:
        return normalize_label(label) in KNOWN_QUALITIES
    except ValueError:
        return False


def quality_signature(labels: Iterable[str]) -> str:
    """Sorted, pipe-joined label set used for exact-signature grouping."""
    return "|".join(sorted(set(labels)))
