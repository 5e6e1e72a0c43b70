"""Unit tests for the weighted matcher.

Tests cover:
    - Title, price, specs and criteria sub-scores
    - Composite match score bounds and the identical-pair maximum
    - Stable ranking and best-match selection
    - Half-up rounding
"""
import pytest

from sourcing_matcher.models.matching import PriceRange, ProductQuery, SearchCriteria
from sourcing_matcher.services.matching import (
    calculate_criteria_score,
    calculate_match_score,
    calculate_price_score,
    calculate_specs_score,
    calculate_title_score,
    find_best_match,
    rank_matches,
    round_half_up,
    score_candidates,
    string_similarity,
)


class TestRoundHalfUp:
    """Tests for half-up rounding of scores."""

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (88.5, 89), (87.49, 87), (2.4999, 2), (0, 0), (100.0, 100)],
    )
    def test_rounds_half_up(self, value, expected):
        """Test .5 always rounds up."""
        assert round_half_up(value) == expected


class TestTitleScore:
    """Tests for calculate_title_score."""

    def test_exact_match_case_insensitive(self):
        """Test identical titles score 1.0 regardless of case and padding."""
        assert calculate_title_score("Wireless Earbuds", "  wireless earbuds ") == 1.0

    def test_containment_scores_095(self):
        """Test one title contained in the other scores 0.95."""
        assert calculate_title_score("earbuds", "Wireless Earbuds Pro") == 0.95
        assert calculate_title_score("Wireless Earbuds Pro", "earbuds") == 0.95

    def test_empty_original_is_not_containment(self):
        """Test an empty original title does not count as contained."""
        score = calculate_title_score("", "Wireless Earbuds")

        assert score == pytest.approx(0.075)

    def test_full_keyword_coverage_is_boosted(self):
        """Test every keyword covered boosts the score to the cap."""
        score = calculate_title_score("Wireless Earbuds", "Wireless Bluetooth Earbuds")

        assert score == 1.0

    def test_low_coverage_is_halved(self):
        """Test coverage under 50% halves the blended score."""
        score = calculate_title_score("red leather wallet", "blue canvas wallet")

        # (1/3 * 0.7 + 0.5 * 0.3) * 0.5
        assert score == pytest.approx((0.7 / 3 + 0.15) * 0.5)

    def test_short_words_are_ignored(self):
        """Test words under three characters are not keywords."""
        score = calculate_title_score("TV", "Smart Television")

        assert score == pytest.approx(0.075)

    def test_leading_keywords_add_position_bonus(self):
        """Test keywords early in a long candidate title raise the score."""
        leading = calculate_title_score(
            "lamp desk",
            "lamp with adjustable arm and clamp for office tables extra",
        )
        trailing = calculate_title_score(
            "lamp desk",
            "adjustable arm and clamp for office tables extra with lamp",
        )

        assert leading > trailing


class TestPriceScore:
    """Tests for calculate_price_score."""

    def test_five_percent_gap(self):
        """Test a 5% price gap gives 0.9."""
        assert calculate_price_score(20, 19) == pytest.approx(0.9)

    def test_fifty_percent_gap_is_zero(self):
        """Test a 50% gap or more floors at 0."""
        assert calculate_price_score(20, 30) == 0.0
        assert calculate_price_score(20, 100) == 0.0

    @pytest.mark.parametrize("original,candidate", [(None, 10), (10, None), (0, 10), (10, 0)])
    def test_missing_price_is_zero(self, original, candidate):
        """Test a missing or zero price scores 0."""
        assert calculate_price_score(original, candidate) == 0.0


class TestSpecsScore:
    """Tests for calculate_specs_score and string_similarity."""

    def test_no_original_specs_is_neutral(self):
        """Test rows without specs get the neutral 0.5."""
        assert calculate_specs_score(None, {"color": "black"}) == 0.5
        assert calculate_specs_score({}, None) == 0.5

    def test_keys_match_case_insensitively(self):
        """Test candidate spec keys are compared lower-cased and trimmed."""
        assert calculate_specs_score({"color": "Black"}, {"Color ": "black"}) == 1.0

    def test_missing_keys_count_zero(self):
        """Test original specs absent from the candidate contribute nothing."""
        score = calculate_specs_score(
            {"color": "black", "weight": "1kg"},
            {"color": "black"},
        )

        assert score == 0.5

    def test_dissimilar_values_do_not_count(self):
        """Test values under the similarity threshold contribute nothing."""
        assert calculate_specs_score({"color": "black"}, {"color": "white"}) == 0.0

    def test_similar_values_count_partially(self):
        """Test close values contribute their similarity."""
        score = calculate_specs_score({"size": "10 x 20 cm"}, {"size": "10 x 20 cm approx"})

        assert 0.7 < score < 1.0

    def test_string_similarity_bounds(self):
        """Test identical strings give 1.0 and an empty side gives 0."""
        assert string_similarity("Black", "black ") == 1.0
        assert string_similarity("", "black") == 0.0
        assert 0.0 <= string_similarity("black", "blank") <= 1.0


class TestCriteriaScore:
    """Tests for calculate_criteria_score."""

    def test_no_criteria_is_full_score(self, candidate_factory):
        """Test unset criteria score 1.0."""
        assert calculate_criteria_score(candidate_factory(), SearchCriteria()) == 1.0

    def test_origin_mismatch(self, candidate_factory):
        """Test an origin outside the set scores 0.3."""
        criteria = SearchCriteria(shipping_origin=["US"])

        assert calculate_criteria_score(candidate_factory(), criteria) == pytest.approx(0.3)

    def test_unknown_delivery_is_half(self, candidate_factory):
        """Test an unknown delivery time scores 0.5 against a maximum."""
        criteria = SearchCriteria(max_delivery_days=10)

        assert calculate_criteria_score(candidate_factory(), criteria) == 0.5

    def test_averages_supplied_factors(self, candidate_factory):
        """Test the score averages only the criteria supplied."""
        candidate = candidate_factory(estimated_delivery_days=20)
        criteria = SearchCriteria(
            shipping_origin=["CN"],
            max_delivery_days=10,
            price_range=PriceRange(min=10, max=25),
        )

        # origin 1.0, delivery late 0.2, price in range 1.0
        assert calculate_criteria_score(candidate, criteria) == pytest.approx(2.2 / 3)


class TestMatchScore:
    """Tests for calculate_match_score."""

    def test_identical_pair_scores_100(self, candidate_factory):
        """Test identical title, price and specs score 100 without criteria."""
        query = ProductQuery(name="Wireless Earbuds", price=20, specs={"color": "black"})
        candidate = candidate_factory(title="Wireless Earbuds", price=20, specs={"color": "black"})

        assert calculate_match_score(query, candidate, SearchCriteria()) == 100

    def test_earbuds_scenario_scores_88(self, candidate_factory):
        """Test the earbuds row against a close catalog listing scores 88."""
        query = ProductQuery(name="Wireless Earbuds", price=20)
        candidate = candidate_factory(title="Wireless Bluetooth Earbuds", price=19)

        score = calculate_match_score(query, candidate, SearchCriteria(ship_to="US"))

        # title 1.0*0.4 + price 0.9*0.2 + neutral specs 0.5*0.2 + criteria 1.0*0.2
        assert score == 88

    def test_score_is_bounded(self, candidate_factory):
        """Test scores stay within 0-100 for unrelated candidates."""
        query = ProductQuery(name="Ceramic Coffee Mug", price=12, specs={"color": "white"})
        criteria = SearchCriteria(shipping_origin=["US"], max_delivery_days=3)
        candidates = [
            candidate_factory(title="Garden Hose 50ft", price=0.0),
            candidate_factory(title="Ceramic Coffee Mug", price=12, specs={"color": "white"}),
            candidate_factory(title="", price=5000, estimated_delivery_days=60),
        ]

        for candidate in candidates:
            assert 0 <= calculate_match_score(query, candidate, criteria) <= 100

    def test_is_deterministic(self, candidate_factory):
        """Test repeated evaluation yields identical scores."""
        query = ProductQuery(name="Wireless Earbuds", price=20)
        candidate = candidate_factory()
        criteria = SearchCriteria(shipping_origin=["CN"])

        scores = {calculate_match_score(query, candidate, criteria) for _ in range(5)}

        assert len(scores) == 1

    def test_score_candidates_copies(self, candidate_factory):
        """Test scoring returns copies and leaves the inputs untouched."""
        query = ProductQuery(name="Wireless Earbuds", price=20)
        candidate = candidate_factory()

        scored = score_candidates(query, [candidate], SearchCriteria())

        assert scored[0].match_score == 88
        assert candidate.match_score is None


class TestRanking:
    """Tests for rank_matches and find_best_match."""

    def test_rank_is_stable_descending(self, candidate_factory):
        """Test equal scores keep their original relative order."""
        candidates = [
            candidate_factory(product_id="a", ranking_score=70),
            candidate_factory(product_id="b", ranking_score=90),
            candidate_factory(product_id="c", ranking_score=70),
            candidate_factory(product_id="d", ranking_score=90),
        ]

        ranked = rank_matches(candidates, key="ranking_score")

        assert [c.product_id for c in ranked] == ["b", "d", "a", "c"]

    def test_missing_scores_sort_last(self, candidate_factory):
        """Test candidates without a score count as 0."""
        candidates = [
            candidate_factory(product_id="none"),
            candidate_factory(product_id="low", match_score=1),
        ]

        assert [c.product_id for c in rank_matches(candidates)] == ["low", "none"]

    def test_find_best_match_prefers_earliest_tie(self, candidate_factory):
        """Test the first of equally scored candidates wins."""
        candidates = [
            candidate_factory(product_id="first", match_score=80),
            candidate_factory(product_id="second", match_score=80),
        ]

        assert find_best_match(candidates).product_id == "first"

    def test_find_best_match_empty(self):
        """Test an empty candidate list has no best match."""
        assert find_best_match([]) is None
