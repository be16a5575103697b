"""
Presentational groupings of records.

Unlike clustering these never look at embeddings; they bucket records by a
single attribute so a caller can show, say, who had which experiences or
what happened on which day.
"""

from dataclasses import dataclass, field
from datetime import timezone
from typing import Callable, Dict, List, Sequence

from bridge_recall.clustering.summary import common_qualities
from bridge_recall.models import ExperienceRecord
from bridge_recall.qualities.registry import quality_signature

UNKNOWN = "Unknown"

PERSPECTIVE_LABELS = {
    "I": "First person (I)",
    "we": "Collective (we)",
    "you": "Second person (you)",
    "they": "Third person (they)",
    UNKNOWN: "Unknown perspective",
}


@dataclass
class GroupedResult:
    """
    One group of records.

    Attributes:
        key: Value the records were grouped on
        label: Display label including the count
        count: Number of records
        record_ids: Member IDs in input order
        common_qualities: Quality labels every member carries
    """

    key: str
    label: str
    count: int
    record_ids: List[str] = field(default_factory=list)
    common_qualities: List[str] = field(default_factory=list)


def _counted(text: str, count: int) -> str:
    return f"{text} ({count} experience{'' if count == 1 else 's'})"


def _group(
    records: Sequence[ExperienceRecord],
    key_of: Callable[[ExperienceRecord], str],
    label_of: Callable[[str], str],
) -> List[GroupedResult]:
    buckets: Dict[str, List[ExperienceRecord]] = {}
    for record in records:
        buckets.setdefault(key_of(record), []).append(record)

    return [
        GroupedResult(
            key=key,
            label=_counted(label_of(key), len(members)),
            count=len(members),
            record_ids=[r.id for r in members],
            common_qualities=common_qualities(members),
        )
        for key, members in buckets.items()
    ]


def group_by_who(records: Sequence[ExperienceRecord]) -> List[GroupedResult]:
    """Group by experiencer; several experiencers form one "A & B" key. Largest first."""
    groups = _group(records, lambda r: " & ".join(r.who_list()) or UNKNOWN, str)
    return sorted(groups, key=lambda g: -g.count)


def group_by_date(records: Sequence[ExperienceRecord]) -> List[GroupedResult]:
    """Group by UTC creation day (YYYY-MM-DD), newest day first."""
    groups = _group(records, lambda r: r.created_at.astimezone(timezone.utc).date().isoformat(), str)
    return sorted(groups, key=lambda g: g.key, reverse=True)


def group_by_perspective(records: Sequence[ExperienceRecord]) -> List[GroupedResult]:
    groups = _group(
        records,
        lambda r: r.perspective or UNKNOWN,
        lambda key: PERSPECTIVE_LABELS.get(key, key),
    )
    return sorted(groups, key=lambda g: -g.count)


def group_by_quality_signature(records: Sequence[ExperienceRecord]) -> List[GroupedResult]:
    """Group by exact quality label set; records without labels share the "no qualities" group."""
    groups = _group(
        records,
        lambda r: quality_signature(r.qualities),
        lambda key: key.replace("|", ", ") if key else "no qualities",
    )
    return sorted(groups, key=lambda g: -g.count)
