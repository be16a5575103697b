"""
Temporal filters for recall queries.

Filter values may be datetimes or strings. Strings are read as ISO 8601
first and then with dateparser, so natural-language values such as
"yesterday" or "last week" work too. All comparisons happen in UTC.

- A single value matches records on or after that instant.
- A TimeRange matches records between its bounds, inclusive. A date-only end
  bound ("2024-01-31") covers the whole of that day.
"""

import logging
import re
from datetime import datetime, time, timezone
from typing import List, Optional, Tuple, Union

import dateparser

from bridge_recall.exceptions import TemporalFilterError
from bridge_recall.models import ExperienceRecord, TemporalFilter, TimeRange

logger = logging.getLogger(__name__)

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Union[datetime, str], reference: Optional[datetime] = None) -> datetime:
    """
    Parse a filter value into a timezone-aware UTC datetime.

    Args:
        value: A datetime, an ISO 8601 string or a natural-language date
        reference: Base for relative expressions (default: now)

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        TemporalFilterError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return _as_utc(value)

    if not isinstance(value, str) or not value.strip():
        raise TemporalFilterError(f"Invalid date format for filter: {value!r}")

    text = value.strip()
    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    settings = {
        "TIMEZONE": "UTC",
        "TO_TIMEZONE": "UTC",
        "RETURN_AS_TIMEZONE_AWARE": True,
        "PREFER_DATES_FROM": "past",
    }
    if reference is not None:
        settings["RELATIVE_BASE"] = _as_utc(reference).replace(tzinfo=None)

    parsed = dateparser.parse(text, settings=settings)
    if parsed is None:
        raise TemporalFilterError(
            f"Invalid date format for filter: '{value}'. "
            f"Example valid formats: '2024-01-15', 'yesterday', 'last week'."
        )

    logger.debug(f"Parsed temporal value '{value}' -> {parsed.isoformat()}")
    return _as_utc(parsed)


def resolve_bounds(
    temporal_filter: TemporalFilter, reference: Optional[datetime] = None
) -> Tuple[datetime, Optional[datetime]]:
    """
    Turn a filter into (start, end) bounds; end is None for a single value.

    Raises:
        TemporalFilterError: If either bound cannot be parsed or start is after end
    """
    if isinstance(temporal_filter, dict):
        temporal_filter = TimeRange.model_validate(temporal_filter)

    if not isinstance(temporal_filter, TimeRange):
        return parse_timestamp(temporal_filter, reference), None

    start = parse_timestamp(temporal_filter.start, reference)
    end = parse_timestamp(temporal_filter.end, reference)

    if isinstance(temporal_filter.end, str) and DATE_ONLY_PATTERN.match(temporal_filter.end.strip()):
        end = end_of_day(end)

    if start > end:
        raise TemporalFilterError(
            f"Invalid date range: start {start.isoformat()} is after end {end.isoformat()}"
        )
    return start, end


def matches_temporal_filter(
    record: ExperienceRecord, start: datetime, end: Optional[datetime], field: str
) -> bool:
    timestamp = _as_utc(record.timestamp(field))
    if timestamp < start:
        return False
    return end is None or timestamp <= end


def apply_temporal_filter(
    records: List[ExperienceRecord],
    temporal_filter: TemporalFilter,
    field: str = "created_at",
    reference: Optional[datetime] = None,
) -> List[ExperienceRecord]:
    """
    Keep the records whose timestamp satisfies the filter.

    Args:
        records: Candidate records
        temporal_filter: Single value or TimeRange
        field: "created_at" or "occurred_at" (occurred_at falls back to created_at)
        reference: Base for relative expressions (default: now)

    Raises:
        TemporalFilterError: If the filter cannot be parsed
    """
    start, end = resolve_bounds(temporal_filter, reference)
    return [r for r in records if matches_temporal_filter(r, start, end, field)]


def end_of_day(value: datetime) -> datetime:
    """Last instant of the UTC day containing `value`."""
    return datetime.combine(_as_utc(value).date(), time.max, tzinfo=timezone.utc)

