"""Weighted text/price/spec/criteria matching of candidates to rows."""
from sourcing_matcher.services.matching.matcher import (
    calculate_match_score,
    calculate_title_score,
    calculate_price_score,
    calculate_specs_score,
    calculate_criteria_score,
    string_similarity,
    score_candidates,
    find_best_match,
    rank_matches,
    round_half_up,
)

__all__ = [
    "calculate_match_score",
    "calculate_title_score",
    "calculate_price_score",
    "calculate_specs_score",
    "calculate_criteria_score",
    "string_similarity",
    "score_candidates",
    "find_best_match",
    "rank_matches",
    "round_half_up",
]
