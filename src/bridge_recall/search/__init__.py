"""Recall search: filtering, scoring and ranking of records."""

from bridge_recall.search.diagnostics import DiagnosticsRecorder, determine_no_results_reason
from bridge_recall.search.pipeline import RecallSearchPipeline
from bridge_recall.search.temporal import apply_temporal_filter, parse_timestamp, resolve_bounds

__all__ = [
    "RecallSearchPipeline",
    "DiagnosticsRecorder",
    "determine_no_results_reason",
    "apply_temporal_filter",
    "parse_timestamp",
    "resolve_bounds",
]
