"""Deterministic weighted matching between an original row and candidates.

The score is a weighted sum of four sub-scores, each normalized to [0, 1]:

    - title similarity   (40%): keyword coverage with position weighting
    - price proximity    (20%): a 50% price gap zeroes the sub-score
    - specs overlap      (20%): per-key exact or fuzzy value agreement
    - criteria fit       (20%): origin / delivery / price range preferences

String distances use RapidFuzz's Levenshtein implementation.
"""
import math
from typing import List, Mapping, Optional, Sequence, TypeVar

from rapidfuzz.distance import Levenshtein

from sourcing_matcher.models.matching import ProductQuery, ProviderResult, SearchCriteria

TITLE_WEIGHT = 0.4
PRICE_WEIGHT = 0.2
SPECS_WEIGHT = 0.2
CRITERIA_WEIGHT = 0.2

# Keywords shorter than this are ignored for title coverage
MIN_KEYWORD_LENGTH = 3
# Share of the candidate title that counts as its "start"
LEADING_TITLE_SHARE = 0.3
SPEC_SIMILARITY_THRESHOLD = 0.7

T = TypeVar("T")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (0.5 → 1, 88.5 → 89)."""
    return int(math.floor(value + 0.5))


def _keywords(text: str) -> set:
    return {word for word in text.split() if len(word) >= MIN_KEYWORD_LENGTH}


def calculate_title_score(original_name: str, candidate_title: str) -> float:
    """Title similarity in [0, 1].

    Exact match scores 1.0 and containment in either direction 0.95.
    Otherwise keyword coverage and a bonus for original keywords found in the
    leading part of the candidate title are blended 70/30, then boosted when
    every keyword is covered and halved when less than half are.
    """
    original = original_name.lower().strip()
    candidate = candidate_title.lower().strip()

    if original == candidate:
        return 1.0

    if original and candidate and (original in candidate or candidate in original):
        return 0.95

    original_words = _keywords(original)
    candidate_words = _keywords(candidate)
    common_words = original_words & candidate_words
    coverage = len(common_words) / len(original_words) if original_words else 0.0

    candidate_sequence = candidate.split()
    leading_count = math.floor(len(candidate_sequence) * LEADING_TITLE_SHARE)
    position_score = 0.5
    for word in original_words:
        try:
            index = candidate_sequence.index(word)
        except ValueError:
            continue
        if index < leading_count:
            position_score += 0.3 / len(original_words)
    position_score = min(1.0, position_score)

    score = coverage * 0.7 + position_score * 0.3

    if original_words and len(common_words) == len(original_words):
        score *= 1.2

    if coverage < 0.5:
        score *= 0.5

    return min(1.0, max(0.0, score))


def calculate_price_score(original_price: Optional[float], candidate_price: Optional[float]) -> float:
    """Price proximity in [0, 1]; 0 when either price is missing."""
    if not original_price or not candidate_price or original_price <= 0:
        return 0.0
    difference = abs(original_price - candidate_price) / original_price
    return max(0.0, 1 - difference * 2)


def string_similarity(first: str, second: str) -> float:
    """Fuzzy similarity of two spec values in [0, 1].

    Normalized Levenshtein similarity, floored at 0.7 when one value contains
    the other, then blended 70/30 with whole-word coverage.
    """
    s1 = first.lower().strip()
    s2 = second.lower().strip()

    if s1 == s2:
        return 1.0

    if not s1 or not s2:
        return 0.0

    distance = Levenshtein.distance(s1, s2)
    similarity = 1 - distance / max(len(s1), len(s2))

    if s1 in s2 or s2 in s1:
        similarity = max(similarity, 0.7)

    s1_words = set(s1.split())
    s2_words = set(s2.split())
    coverage = len(s1_words & s2_words) / max(len(s1_words), len(s2_words))

    similarity = similarity * 0.7 + coverage * 0.3
    return max(0.0, similarity)


def calculate_specs_score(
    original_specs: Optional[Mapping[str, str]],
    candidate_specs: Optional[Mapping[str, object]],
) -> float:
    """Specs overlap in [0, 1]; 0.5 when the original has no specs."""
    if not original_specs:
        return 0.5

    lookup = {
        str(key).lower().strip(): value
        for key, value in (candidate_specs or {}).items()
    }

    matches = 0.0
    for key, value in original_specs.items():
        candidate_value = lookup.get(str(key).lower().strip())
        if candidate_value is None or candidate_value == "":
            continue

        expected = str(value).lower().strip()
        actual = str(candidate_value).lower().strip()
        if expected == actual:
            matches += 1
            continue

        similarity = string_similarity(expected, actual)
        if similarity > SPEC_SIMILARITY_THRESHOLD:
            matches += similarity

    return matches / len(original_specs)


def calculate_criteria_score(candidate: ProviderResult, criteria: SearchCriteria) -> float:
    """Average fit over the criteria actually supplied; 1.0 when none are."""
    score = 0.0
    factors = 0

    if criteria.shipping_origin:
        factors += 1
        score += 1.0 if candidate.shipping_origin in criteria.shipping_origin else 0.3

    if criteria.max_delivery_days is not None:
        factors += 1
        if candidate.estimated_delivery_days is None:
            score += 0.5
        elif candidate.estimated_delivery_days <= criteria.max_delivery_days:
            score += 1.0
        else:
            score += 0.2

    if criteria.price_range is not None:
        factors += 1
        score += 1.0 if criteria.price_range.contains(candidate.price) else 0.3

    return score / factors if factors else 1.0


def calculate_match_score(
    original: ProductQuery,
    candidate: ProviderResult,
    criteria: SearchCriteria,
) -> int:
    """Match score between the original row and a candidate (0-100)."""
    score = (
        calculate_title_score(original.name, candidate.title) * TITLE_WEIGHT
        + calculate_price_score(original.price, candidate.price) * PRICE_WEIGHT
        + calculate_specs_score(original.specs, candidate.specs) * SPECS_WEIGHT
        + calculate_criteria_score(candidate, criteria) * CRITERIA_WEIGHT
    )
    return min(100, max(0, round_half_up(score * 100)))


def score_candidates(
    original: ProductQuery,
    candidates: Sequence[ProviderResult],
    criteria: SearchCriteria,
) -> List[ProviderResult]:
    """Return copies of the candidates with ``match_score`` filled in."""
    return [
        candidate.model_copy(
            update={"match_score": calculate_match_score(original, candidate, criteria)}
        )
        for candidate in candidates
    ]


def _score_of(candidate: object, key: str) -> float:
    value = getattr(candidate, key, None)
    return value if value is not None else 0


def find_best_match(candidates: Sequence[T], key: str = "match_score") -> Optional[T]:
    """Highest-scoring candidate; the earliest one wins ties."""
    if not candidates:
        return None
    return rank_matches(candidates, key=key)[0]


def rank_matches(candidates: Sequence[T], key: str = "match_score") -> List[T]:
    """Stable descending sort by a score attribute (missing scores count as 0)."""
    return sorted(candidates, key=lambda c: _score_of(c, key), reverse=True)
