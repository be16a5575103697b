"""
Keyword extraction for clusters.

Two extractors:

- `frequent_keywords`: plain word frequency, used to name hierarchical
  clusters.
- `QualityAwareKeywordExtractor`: combines in-cluster frequency, contrast
  against the rest of the corpus and per-dimension indicator words, so
  per-dimension clusters get keywords that say something about that
  dimension rather than words every record shares.

Term counting is done with scikit-learn's CountVectorizer over words and
adjacent two-word phrases; ties in every ranking are broken alphabetically.
"""

import logging
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import numpy as np
from sklearn.feature_extraction.text import CountVectorizer

from bridge_recall.models import ExperienceRecord
from bridge_recall.qualities.registry import resolve_dimension

logger = logging.getLogger(__name__)

FREQUENT_STOP_WORDS = frozenset({"feeling", "about", "through", "would", "could", "should"})

COMMON_WORDS = frozenset(
    {
        "captain", "captains", "design", "bridge", "through", "about",
        "would", "could", "should", "really", "where", "which", "their",
        "there", "these", "those", "feeling", "being", "having", "doing",
        "with", "from", "that", "this", "what", "when", "very", "much",
    }
)

COMMON_PHRASES = frozenset(
    {
        "with the", "in the", "of the", "and the", "to the",
        "from the", "on the", "at the", "for the", "by the",
    }
)

# Keyed by vector dimension name
QUALITY_INDICATORS: Dict[str, FrozenSet[str]] = {
    "spatial": frozenset({"location", "space", "environment", "visual", "mapping", "structure", "layout", "position", "distance", "navigation"}),
    "temporal": frozenset({"time", "moment", "future", "past", "present", "sequence", "duration", "timing", "rhythm", "schedule"}),
    "affective": frozenset({"emotion", "mood", "feeling", "joy", "sadness", "excitement", "calm", "tension", "warmth", "satisfaction"}),
    "purposive": frozenset({"goal", "intention", "purpose", "drive", "motivation", "desire", "objective", "mission", "aim", "target"}),
    "attentional": frozenset({"focus", "awareness", "attention", "notice", "observe", "concentrate", "mindful", "conscious", "alert", "perception"}),
    "embodied": frozenset({"body", "physical", "sensation", "movement", "energy", "tension", "relaxation", "breath", "posture", "gesture"}),
    "intersubjective": frozenset({"together", "relationship", "connection", "interaction", "communication", "understanding", "empathy", "collaboration", "dialogue", "social"}),
}

WORD_PATTERN = r"(?u)\b[a-z0-9]+\b"

# Score multipliers for the three keyword sources
FREQUENCY_WEIGHT = 3
CONTRAST_WEIGHT = 2
INDICATOR_BONUS = 5
CANDIDATES_PER_SOURCE = 20


def _phrase_vectorizer(stop_words: Optional[Iterable[str]] = None) -> CountVectorizer:
    return CountVectorizer(
        token_pattern=WORD_PATTERN,
        ngram_range=(1, 2),
        stop_words=sorted(stop_words) if stop_words else None,
    )


def _is_candidate(token: str) -> bool:
    """Words longer than three characters, or phrases of two words longer than two."""
    if " " not in token:
        return len(token) > 3
    first, second = token.split(" ", 1)
    return len(first) > 2 and len(second) > 2 and token not in COMMON_PHRASES


def _term_counts(vectorizer: CountVectorizer, texts: Sequence[str]) -> Dict[str, int]:
    """Total count of each term across texts."""
    texts = [t for t in texts if t and t.strip()]
    if not texts:
        return {}
    try:
        matrix = vectorizer.fit_transform(texts)
    except ValueError:
        # Every token was a stop word
        return {}
    counts = np.asarray(matrix.sum(axis=0)).ravel()
    return {
        term: int(count)
        for term, count in zip(vectorizer.get_feature_names_out(), counts)
        if count > 0
    }


def _ranked(scores: Dict[str, float]) -> List[str]:
    return [token for token, _ in sorted(scores.items(), key=lambda item: (-item[1], item[0]))]


def frequent_keywords(texts: Iterable[str], limit: int = 5) -> List[str]:
    """Most frequent words of five letters or more that occur more than once."""
    vectorizer = CountVectorizer(
        token_pattern=r"(?u)\b[a-z]{5,}\b",
        stop_words=sorted(FREQUENT_STOP_WORDS),
    )
    counts = _term_counts(vectorizer, list(texts))
    return _ranked({word: count for word, count in counts.items() if count > 1})[:limit]


def tokenize(text: str) -> List[str]:
    """Words longer than three characters plus adjacent two-word phrases."""
    analyzer = _phrase_vectorizer().build_analyzer()
    return [token for token in analyzer(text) if _is_candidate(token)]


class QualityAwareKeywordExtractor:
    """Keywords that characterize a cluster within one quality dimension."""

    def __init__(
        self,
        common_words: FrozenSet[str] = COMMON_WORDS,
        indicators: Dict[str, FrozenSet[str]] = QUALITY_INDICATORS,
    ):
        self.common_words = common_words
        self.indicators = indicators

    def extract_keywords(
        self,
        cluster_records: Sequence[ExperienceRecord],
        all_records: Sequence[ExperienceRecord],
        dimension: str,
        max_keywords: int = 10,
    ) -> List[str]:
        """
        Rank keywords for a cluster.

        Args:
            cluster_records: Members of the cluster
            all_records: The whole corpus the cluster was drawn from
            dimension: Dimension the cluster belongs to (label or vector name)
            max_keywords: Maximum keywords to return

        Returns:
            Keywords, best first
        """
        resolved = resolve_dimension(dimension)
        vector_name = resolved.vector_name if resolved else dimension

        member_ids = {r.id for r in cluster_records}
        target = self._counts([r.text for r in cluster_records])
        others = self._counts([r.text for r in all_records if r.id not in member_ids])

        frequent = self._frequent_tokens(target)
        distinctive = self._distinctive_tokens(target, others)
        indicators = self._indicator_words(cluster_records, vector_name)

        scores: Dict[str, float] = {}
        for index, token in enumerate(frequent):
            scores[token] = scores.get(token, 0) + (len(frequent) - index) * FREQUENCY_WEIGHT
        for index, token in enumerate(distinctive):
            scores[token] = scores.get(token, 0) + (len(distinctive) - index) * CONTRAST_WEIGHT
        for token in indicators:
            scores[token] = scores.get(token, 0) + INDICATOR_BONUS

        ranked = [t for t in _ranked(scores) if t not in self.common_words]
        return ranked[:max_keywords]

    def _counts(self, texts: Sequence[str]) -> Dict[str, int]:
        counts = _term_counts(_phrase_vectorizer(self.common_words), texts)
        return {term: count for term, count in counts.items() if _is_candidate(term)}

    @staticmethod
    def _frequent_tokens(counts: Dict[str, int]) -> List[str]:
        repeated = {t: c for t, c in counts.items() if c > 1}
        return _ranked(repeated)[:CANDIDATES_PER_SOURCE]

    @staticmethod
    def _distinctive_tokens(target: Dict[str, int], others: Dict[str, int]) -> List[str]:
        """Terms weighted by in-cluster frequency times rarity in the rest of the corpus."""
        if not target:
            return []

        terms = sorted(target)
        tf = np.array([target[t] for t in terms], dtype=float) / sum(target.values())
        df = np.array([others.get(t, 0) for t in terms], dtype=float) / max(
            1, sum(others.values())
        )
        # Terms absent from the rest of the corpus get a flat rarity of 3.0
        idf = np.where(df > 0, np.log(1 / (df + 0.01)), 3.0)

        scores = dict(zip(terms, (tf * idf).tolist()))
        return _ranked(scores)[:CANDIDATES_PER_SOURCE]

    def _indicator_words(self, records: Sequence[ExperienceRecord], vector_name: str) -> List[str]:
        text = " ".join(r.text for r in records).lower()
        return sorted(word for word in self.indicators.get(vector_name, ()) if word in text)
