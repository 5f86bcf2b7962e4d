"""
MERIDIAN Similarity: String Similarity Metrics

Fast string similarity using RapidFuzz, plus the composite payee score
used by the duplicate tiering engine:
- Levenshtein: edit distance
- Jaro-Winkler: short strings, typos at the end, shared prefixes
- Token sort / token set: reordered or extra words
- Phonetic agreement and obvious same-entity floor on top
"""

from typing import NamedTuple

from rapidfuzz import fuzz
from rapidfuzz.distance import JaroWinkler, Levenshtein

from .config import SAME_ENTITY_FLOOR
from .phonetic import AmericanSoundex

DEFAULT_WEIGHTS = {
    'levenshtein': 0.10,
    'jaro_winkler': 0.20,
    'token_sort': 0.35,
    'token_set': 0.35,
}


class SimilarityMetrics:
    """
    String similarity calculator using RapidFuzz. All scores are 0-1.

    Example:
        >>> metrics = SimilarityMetrics()
        >>> metrics.token_set("ACME WIDGET", "WIDGET ACME")
        1.0
    """

    def __init__(self, score_cutoff: float = 0.0):
        """
        Initialize metrics calculator.

        Args:
            score_cutoff: Minimum score to return (returns 0 if below).
        """
        self.score_cutoff = score_cutoff

    def jaro_winkler(self, s1: str, s2: str, prefix_weight: float = 0.1) -> float:
        """
        Jaro-Winkler similarity (0-1).

        Best for:
        - Short strings
        - Names with typos at the end
        - Prefix matching
        """
        if not s1 or not s2:
            return 0.0

        return JaroWinkler.similarity(
            s1, s2,
            prefix_weight=prefix_weight,
            score_cutoff=self.score_cutoff
        )

    def levenshtein_ratio(self, s1: str, s2: str) -> float:
        """Normalized Levenshtein similarity (0-1)."""
        if not s1 or not s2:
            return 0.0

        return Levenshtein.normalized_similarity(
            s1, s2,
            score_cutoff=self.score_cutoff
        )

    def token_sort(self, s1: str, s2: str) -> float:
        """
        Token Sort Ratio normalized to 0-1.

        Sorts tokens before comparing, so "SMITH JOHN" == "JOHN SMITH".
        """
        if not s1 or not s2:
            return 0.0

        return fuzz.token_sort_ratio(
            s1, s2,
            score_cutoff=self.score_cutoff * 100
        ) / 100.0

    def token_set(self, s1: str, s2: str) -> float:
        """
        Token Set Ratio normalized to 0-1.

        Compares token sets, ignoring order and duplicates.
        Very permissive; one name being a subset of the other scores 1.0.
        """
        if not s1 or not s2:
            return 0.0

        return fuzz.token_set_ratio(
            s1, s2,
            score_cutoff=self.score_cutoff * 100
        ) / 100.0

    def jaccard_tokens(self, s1: str, s2: str) -> float:
        """|intersection| / |union| of token sets."""
        if not s1 or not s2:
            return 0.0

        tokens1 = set(s1.split())
        tokens2 = set(s2.split())
        union = len(tokens1 | tokens2)
        return len(tokens1 & tokens2) / union if union > 0 else 0.0

    def hybrid_score(
        self,
        s1: str,
        s2: str,
        weights: dict[str, float] | None = None
    ) -> float:
        """
        Weighted combination of multiple metrics (0-1).

        Args:
            s1: First string
            s2: Second string
            weights: Metric name -> weight; defaults to DEFAULT_WEIGHTS

        Returns:
            Weighted similarity score 0-1
        """
        return self.blend(self.all_scores(s1, s2), weights or DEFAULT_WEIGHTS)

    @staticmethod
    def blend(scores: dict[str, float], weights: dict[str, float]) -> float:
        """Weighted mean of already computed metric scores (0-1)."""
        total_weight = sum(weights.get(k, 0) for k in scores)
        if total_weight == 0:
            return 0.0

        weighted_sum = sum(scores[k] * weights.get(k, 0) for k in scores)
        return weighted_sum / total_weight

    def rapidfuzz_scores(self, s1: str, s2: str) -> dict[str, float]:
        """The four RapidFuzz metrics that feed the composite payee score."""
        return {
            'levenshtein': self.levenshtein_ratio(s1, s2),
            'jaro_winkler': self.jaro_winkler(s1, s2),
            'token_sort': self.token_sort(s1, s2),
            'token_set': self.token_set(s1, s2),
        }

    def all_scores(self, s1: str, s2: str) -> dict[str, float]:
        scores = self.rapidfuzz_scores(s1, s2)
        scores['jaccard'] = self.jaccard_tokens(s1, s2)
        return scores


class SimilarityScores(NamedTuple):
    """Per-metric breakdown of a composite score, all on a 0-100 scale."""
    levenshtein: float
    jaro_winkler: float
    token_sort: float
    token_set: float
    phonetic_match: bool
    same_entity: bool
    composite: float

    def to_dict(self) -> dict:
        return self._asdict()


class PayeeMatcher:
    """
    Composite 0-100 score between two duplicate-detection keys.

    The weighted RapidFuzz blend gets the phonetic boost when every token
    encodes to the same Soundex code, and is floored at same_entity_floor
    when the keys are equal or one key's tokens are a subset of the other's.
    """

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        same_entity_floor: float = SAME_ENTITY_FLOOR,
    ):
        self.weights = weights or DEFAULT_WEIGHTS
        self.same_entity_floor = same_entity_floor
        self.metrics = SimilarityMetrics()
        self.soundex = AmericanSoundex()

    def phonetic_key(self, key: str) -> str:
        return ' '.join(self.soundex.encode(token) for token in key.split())

    @staticmethod
    def is_same_entity(key1: str, key2: str) -> bool:
        """Equal keys, or the shorter key's tokens all appear in the longer one."""
        if not key1 or not key2:
            return False
        if key1 == key2:
            return True
        tokens1, tokens2 = key1.split(), key2.split()
        if len(tokens1) == len(tokens2):
            return False
        shorter, longer = sorted((tokens1, tokens2), key=len)
        return set(shorter).issubset(longer)

    def score(
        self,
        key1: str,
        key2: str,
        phonetic1: str | None = None,
        phonetic2: str | None = None,
    ) -> SimilarityScores:
        """
        Score two normalized keys.

        Args:
            key1: First duplicate-detection key
            key2: Second duplicate-detection key
            phonetic1: Precomputed phonetic key for key1 (optional)
            phonetic2: Precomputed phonetic key for key2 (optional)
        """
        raw = self.metrics.rapidfuzz_scores(key1, key2)
        blended = self.metrics.blend(raw, self.weights) * 100

        if phonetic1 is None:
            phonetic1 = self.phonetic_key(key1)
        if phonetic2 is None:
            phonetic2 = self.phonetic_key(key2)
        phonetic_match = bool(phonetic1) and phonetic1 == phonetic2

        # Boost toward 100
        if phonetic_match:
            blended = blended * 0.9 + 10

        same_entity = self.is_same_entity(key1, key2)
        if same_entity:
            blended = max(blended, self.same_entity_floor)
        if key1 and key1 == key2:
            blended = 100.0

        return SimilarityScores(
            levenshtein=round(raw['levenshtein'] * 100, 2),
            jaro_winkler=round(raw['jaro_winkler'] * 100, 2),
            token_sort=round(raw['token_sort'] * 100, 2),
            token_set=round(raw['token_set'] * 100, 2),
            phonetic_match=phonetic_match,
            same_entity=same_entity,
            composite=round(min(blended, 100.0), 2),
        )
