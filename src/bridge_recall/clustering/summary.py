"""
Human-readable summaries and labels for clusters.
"""

from collections import Counter
from typing import Dict, List, Optional, Sequence, Tuple

from bridge_recall.models import ExperienceRecord

# Dimension used for the dominant-quality summary, most telling first
DOMINANT_PRIORITY = ("purpose", "mood", "focus", "embodied", "presence", "space", "time")

DIMENSION_TEMPLATES: Dict[str, Tuple[str, ...]] = {
    "embodied": ("Physical states", "Bodily sensations", "Energy levels", "Movement patterns"),
    "attentional": ("Mental models", "Focus patterns", "Awareness styles", "Cognitive approaches"),
    "affective": ("Emotional states", "Feeling patterns", "Mood clusters", "Emotional responses"),
    "purposive": ("Goal orientations", "Intention patterns", "Purpose clusters", "Motivation types"),
    "spatial": ("Environmental contexts", "Location patterns", "Spatial relationships", "Place associations"),
    "temporal": ("Time patterns", "Temporal rhythms", "Timing clusters", "Chronological contexts"),
    "intersubjective": ("Relationship patterns", "Social contexts", "Interpersonal dynamics", "Collaborative modes"),
}

# Checked in order; the first label whose trigger words appear among the keywords wins
KEYWORD_LABELS: Tuple[Tuple[frozenset, str], ...] = (
    (frozenset({"morning", "afternoon", "evening"}), "Time-of-day patterns"),
    (frozenset({"work", "office", "meeting"}), "Work context patterns"),
    (frozenset({"learning", "discovery", "insight"}), "Learning experience patterns"),
    (frozenset({"focus", "attention", "concentrate"}), "Attention management patterns"),
)

LEVEL_DESCRIPTIONS = (
    "Broad experiential themes",
    "Specific pattern clusters",
    "Detailed sub-patterns",
    "Fine-grained variations",
)


def _experiences(count: int) -> str:
    return f"{count} experience{'' if count == 1 else 's'}"


def common_qualities(records: Sequence[ExperienceRecord]) -> List[str]:
    """Quality labels carried by every record, sorted."""
    if not records:
        return []
    shared = set(records[0].qualities)
    for record in records[1:]:
        shared &= set(record.qualities)
    return sorted(shared)


def dominant_quality(records: Sequence[ExperienceRecord]) -> Optional[Tuple[str, int]]:
    """Most frequent label, preferring dimensions earlier in DOMINANT_PRIORITY."""
    counts = Counter(label for record in records for label in record.qualities)
    if not counts:
        return None

    by_frequency = [label for label, _ in counts.most_common()]
    for priority in DOMINANT_PRIORITY:
        for label in by_frequency:
            if label == priority or label.startswith(f"{priority}."):
                return label, counts[label]
    return by_frequency[0], counts[by_frequency[0]]


def summarize(
    records: Sequence[ExperienceRecord],
    shared: Optional[List[str]] = None,
    keywords: Optional[List[str]] = None,
) -> str:
    """
    One-line summary of a cluster.

    Shared labels take precedence, then keywords, then the dominant label
    with its share of the members.
    """
    count = len(records)
    shared = common_qualities(records) if shared is None else shared

    if shared:
        return f"{_experiences(count)} with {', '.join(shared)}"

    if keywords:
        return f"{_experiences(count)} about {', '.join(keywords[:3])}"

    dominant = dominant_quality(records)
    if dominant is not None:
        label, label_count = dominant
        percentage = round(label_count / count * 100)
        return f"{_experiences(count)} ({percentage}% {label})"

    return _experiences(count)


def dimension_label(dimension: str, keywords: Sequence[str]) -> str:
    """Semantic label for a per-dimension cluster; falls back to the dimension's first template."""
    keyword_set = set(keywords)
    for triggers, label in KEYWORD_LABELS:
        if keyword_set & triggers:
            return label
    return DIMENSION_TEMPLATES.get(dimension, ("Experience clusters",))[0]


def level_label(level: int, keywords: Sequence[str]) -> str:
    """Semantic label for a hierarchical cluster at a 1-based level."""
    index = min(max(level - 1, 0), len(LEVEL_DESCRIPTIONS) - 1)
    base = LEVEL_DESCRIPTIONS[index]
    if keywords:
        return f"{base} around {', '.join(keywords[:3])}"
    return base
