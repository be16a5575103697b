"""
Relevance scoring for recall results.

Combines up to four signals into one score in [0, 1]:

- text match against the free-text query
- quality-vector cosine similarity to a target vector
- semantic-embedding cosine similarity to the semantic query
- structural filter relevance

Only the signals the query actually supplied take part; the weights of absent
signals are dropped from both numerator and denominator, so the result is a
renormalized weighted average rather than a zero-padded one. Filter relevance
always takes part.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from bridge_recall.config import ScoringWeights
from bridge_recall.models import ExperienceRecord, RecallQuery, RelevanceBreakdown

logger = logging.getLogger(__name__)

# Query words shorter than this are ignored
MIN_QUERY_WORD_LENGTH = 3
# Only query words at least this long count towards partial matches
MIN_PARTIAL_WORD_LENGTH = 4


@dataclass
class ScoredRecord:
    """
    A record with its composite relevance score.

    Attributes:
        record: The scored record
        value: Composite score (0.0-1.0)
        breakdown: Per-signal components that went into the score
    """

    record: ExperienceRecord
    value: float
    breakdown: RelevanceBreakdown


def text_relevance(text: str, query: Optional[str], weights: Optional[ScoringWeights] = None) -> float:
    """
    Score how well a record's text matches a free-text query.

    An exact case-insensitive substring match of the whole query scores
    `exact_match_score`. Otherwise the score is the larger of the word-match
    ratio (query words found anywhere in the text) and the partial-match
    ratio (longer query words found inside a single text word), each scaled
    by its factor.

    Args:
        text: Record content
        query: Free-text query; blank means no text signal
        weights: Scoring constants (defaults used when omitted)

    Returns:
        Text match score between 0.0 and 1.0
    """
    if not query or not query.strip():
        return 0.0

    weights = weights or ScoringWeights()
    query_lower = query.lower()
    content_lower = text.lower()

    if query_lower in content_lower:
        return weights.exact_match_score

    query_words = [w for w in query_lower.split() if len(w) >= MIN_QUERY_WORD_LENGTH]
    if not query_words:
        return 0.0

    matched_words = sum(1 for word in query_words if word in content_lower)
    word_ratio = matched_words / len(query_words)

    content_words = content_lower.split()
    partial_matches = sum(
        1
        for word in query_words
        if len(word) >= MIN_PARTIAL_WORD_LENGTH and any(word in cw for cw in content_words)
    )
    partial_ratio = partial_matches / len(query_words)

    return max(word_ratio * weights.word_match_factor, partial_ratio * weights.partial_match_factor)


def filter_relevance(
    record: ExperienceRecord, query: RecallQuery, weights: Optional[ScoringWeights] = None
) -> float:
    """
    Soft score for the structural filters a query applies.

    Starts at 1.0 and is multiplied by `filter_mismatch_penalty` for every
    applied filter the record fails. No filters gives 1.0.
    """
    weights = weights or ScoringWeights()
    penalty = weights.filter_mismatch_penalty
    relevance = 1.0

    if query.type and record.type not in query.type:
        relevance *= penalty
    if query.who and query.who not in record.who_list():
        relevance *= penalty
    if query.perspective and record.perspective != query.perspective:
        relevance *= penalty
    if query.processing_stage and record.processing_stage != query.processing_stage:
        relevance *= penalty
    if query.content_type and record.content_type != query.content_type:
        relevance *= penalty
    if query.crafted is not None and record.crafted != query.crafted:
        relevance *= penalty

    return relevance


class RelevanceScorer:
    """Composite relevance scorer with configurable weights."""

    def __init__(self, weights: Optional[ScoringWeights] = None):
        self.weights = weights or ScoringWeights()

    def score(
        self,
        record: ExperienceRecord,
        query: RecallQuery,
        vector_similarity: Optional[float] = None,
        semantic_similarity: Optional[float] = None,
    ) -> ScoredRecord:
        """
        Score one record against a query.

        Args:
            record: Record to score
            query: The recall query
            vector_similarity: Quality-vector similarity, None if not computed
            semantic_similarity: Semantic similarity, None if not computed

        Returns:
            ScoredRecord with the clamped composite value and its breakdown
        """
        text_match = text_relevance(record.text, query.query, self.weights)
        filter_match = filter_relevance(record, query, self.weights)

        total = 0.0
        total_weight = 0.0

        if query.has_text:
            total += text_match * self.weights.text
            total_weight += self.weights.text

        if vector_similarity is not None:
            total += vector_similarity * self.weights.vector
            total_weight += self.weights.vector

        if semantic_similarity is not None:
            total += semantic_similarity * self.weights.semantic
            total_weight += self.weights.semantic

        total += filter_match * self.weights.filter
        total_weight += self.weights.filter

        value = total / total_weight if total_weight > 0 else 0.0
        value = min(1.0, max(0.0, value))

        return ScoredRecord(
            record=record,
            value=value,
            breakdown=RelevanceBreakdown(
                text_match=text_match,
                vector_similarity=vector_similarity,
                semantic_similarity=semantic_similarity,
                filter_relevance=filter_match,
            ),
        )
