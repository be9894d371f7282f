"""
Tests for the matching engine.
"""

import pytest

from skillswap.embeddings import LazyEmbeddingProvider
from skillswap.matching import BOOST_RULES, MatchingEngine, apply_boost
from skillswap.models import Location, MatchingConfig, SkillLevel, WeightVector


@pytest.fixture
def engine():
    """Engine with embeddings disabled."""
    return MatchingEngine()


class BrokenGeoScorer:
    def score(self, loc_a, loc_b):
        raise RuntimeError("geo service down")


class BrokenSimilarityScorer:
    def directional_aggregate(self, offers, wants):
        raise RuntimeError("similarity failed")


class TestBoostRules:
    """Floor rules on the combined score."""

    @pytest.mark.parametrize("a_to_b, b_to_a, floor, rule", [
        (0.96, 0.96, 0.8, "perfect_bidirectional"),
        (0.85, 0.85, 0.7, "strong_bidirectional"),
        (0.96, 0.85, 0.7, "strong_bidirectional"),
        (0.96, 0.1, 0.6, "perfect_one_way"),
        (0.0, 0.95, 0.6, "perfect_one_way"),
        (0.85, 0.0, 0.5, "strong_one_way"),
        (0.1, 0.0, 0.3, "any_skill_match"),
    ])
    def test_first_matching_rule_sets_floor(self, a_to_b, b_to_a, floor, rule):
        total, name = apply_boost(0.0, a_to_b, b_to_a)
        assert total == floor
        assert name == rule

    def test_no_skill_match_no_boost(self):
        assert apply_boost(0.25, 0.0, 0.0) == (0.25, None)

    def test_floor_never_lowers_total(self):
        total, name = apply_boost(0.9, 0.96, 0.96)
        assert total == 0.9
        assert name == "perfect_bidirectional"

    def test_rules_in_priority_order(self):
        floors = [rule.floor for rule in BOOST_RULES]
        assert floors == sorted(floors, reverse=True)


class TestScore:
    """Scoring a single pair."""

    def test_perfect_mutual_exchange(self, engine, js_mentor, python_mentor):
        """Each side offers exactly what the other wants."""
        score = engine.score(js_mentor, python_mentor)

        assert score.offer_to_want == pytest.approx(1.0)
        assert score.want_to_offer == pytest.approx(1.0)
        assert score.total == pytest.approx(0.875)
        assert score.total >= 0.8
        assert score.boost_rule == "perfect_bidirectional"

    def test_one_directional(self, engine, js_mentor, profile_factory):
        """A candidate wanting nothing gives a zero forward score."""
        candidate = profile_factory("carol", offers=["Python"], wants=[])
        score = engine.score(js_mentor, candidate)

        assert score.offer_to_want == 0.0
        assert score.want_to_offer == pytest.approx(1.0)
        assert score.total >= 0.6

    def test_missing_location_is_neutral(self, engine, js_mentor, python_mentor):
        assert engine.score(js_mentor, python_mentor).location == 0.5

    def test_location_signal_used(self, engine, profile_factory, berlin):
        a = profile_factory("a", offers=["Chess"], wants=["Go"], location=berlin)
        b = profile_factory("b", offers=["Go"], wants=["Chess"],
                            location=Location(city="Berlin", country="Germany"))
        assert engine.score(a, b).location == 1.0

    def test_no_skill_overlap(self, engine, profile_factory):
        a = profile_factory("a", offers=["Cooking"], wants=["Knitting"])
        b = profile_factory("b", offers=["Surfing"], wants=["Chess"])
        score = engine.score(a, b)

        assert score.offer_to_want == 0.0
        assert score.want_to_offer == 0.0
        assert score.total == pytest.approx(0.15 * 0.5 + 0.15 * 1.0 + 0.1 * 0.5)
        assert score.boost_rule is None

    def test_embeddings_unavailable_uses_lexical(self, fake_provider, profile_factory):
        provider = LazyEmbeddingProvider(fake_provider(ready=False))
        engine = MatchingEngine(embedding_provider=provider)
        a = profile_factory("a", offers=["java"], wants=["Piano"])
        b = profile_factory("b", offers=["Piano"], wants=["javascript"])

        score = engine.score(a, b)
        assert score.offer_to_want == pytest.approx(0.7)
        assert score.want_to_offer == pytest.approx(1.0)

    def test_boost_ignores_other_weights(self, engine, js_mentor, python_mentor):
        """A perfect exchange reaches the floor even with every weight at zero."""
        score = engine.score(js_mentor, python_mentor, WeightVector(0, 0, 0, 0, 0))
        assert score.total == pytest.approx(0.8)

    def test_total_clamped(self, engine, js_mentor, python_mentor):
        score = engine.score(js_mentor, python_mentor, WeightVector(5, 5, 5, 5, 5))
        assert score.total == 1.0

    def test_level_weighting(self, engine, profile_factory):
        a = profile_factory("a", offers=["Python"], wants=["Art"], level=SkillLevel.INTERMEDIATE)
        b = profile_factory("b", offers=["Art"], wants=["Python"])
        assert engine.score(a, b).offer_to_want == pytest.approx(0.75)

    def test_failing_signal_uses_default(self, js_mentor, python_mentor):
        engine = MatchingEngine(geo_scorer=BrokenGeoScorer())
        score = engine.score(js_mentor, python_mentor)
        assert score.location == 0.5
        assert score.total == pytest.approx(0.875)

    def test_failing_skill_signal_scores_zero(self, profile_factory):
        engine = MatchingEngine(similarity_scorer=BrokenSimilarityScorer())
        a = profile_factory("a", offers=["Python"], wants=["Go"])
        b = profile_factory("b", offers=["Go"], wants=["Python"])
        score = engine.score(a, b)

        assert score.offer_to_want == 0.0
        assert score.want_to_offer == 0.0
        assert score.total == pytest.approx(0.275)

    def test_never_raises(self, engine, js_mentor, python_mentor):
        score = engine.score(js_mentor, python_mentor, weights="not weights")
        assert score.total == 0.0

    def test_components_bounded(self, engine, profile_factory):
        a = profile_factory("a", offers=["Python", "Go", "Rust"], wants=["Piano"], trust=3.0)
        b = profile_factory("b", offers=["Piano"], wants=["python3", "go"], trust=7.0)
        score = engine.score(a, b)
        for value in (score.total, score.offer_to_want, score.want_to_offer,
                      score.location, score.language, score.trust):
            assert 0.0 <= value <= 1.0


class TestFindMatches:
    """Ranking a candidate pool."""

    @pytest.fixture
    def pool(self, profile_factory):
        return [
            profile_factory("c1", offers=["Cooking"], wants=["Knitting"]),
            profile_factory("c2", offers=["Python"], wants=["JavaScript"]),
            profile_factory("c3", offers=["Python"], wants=[]),
            profile_factory("c4", offers=["python3"], wants=["java"]),
        ]

    def test_sorted_best_first(self, engine, js_mentor, pool):
        results = engine.find_matches(js_mentor, pool)
        totals = [r.score.total for r in results]

        assert totals == sorted(totals, reverse=True)
        assert results[0].candidate.id == "c2"

    def test_excludes_subject(self, engine, js_mentor, pool):
        results = engine.find_matches(js_mentor, pool + [js_mentor])
        assert all(r.candidate.id != js_mentor.id for r in results)
        assert len(results) == len(pool)

    def test_max_results(self, engine, js_mentor, pool):
        results = engine.find_matches(js_mentor, pool, MatchingConfig(max_results=2))
        assert len(results) == 2

    def test_min_match_score(self, engine, js_mentor, pool):
        results = engine.find_matches(js_mentor, pool, MatchingConfig(min_match_score=0.5))
        assert results
        assert all(r.score.total >= 0.5 for r in results)
        assert "c1" not in {r.candidate.id for r in results}

    def test_ties_keep_input_order(self, engine, js_mentor, profile_factory):
        twins = [
            profile_factory("t1", offers=["Python"], wants=["JavaScript"]),
            profile_factory("t2", offers=["Python"], wants=["JavaScript"]),
        ]
        assert [r.candidate.id for r in engine.find_matches(js_mentor, twins)] == ["t1", "t2"]
        twins.reverse()
        assert [r.candidate.id for r in engine.find_matches(js_mentor, twins)] == ["t2", "t1"]

    def test_empty_pool(self, engine, js_mentor):
        assert engine.find_matches(js_mentor, []) == []
        assert engine.find_matches(js_mentor, None) == []

    def test_bad_candidate_skipped(self, engine, js_mentor, pool):
        report = engine.match_report(js_mentor, [None] + pool)

        assert report.failed == 1
        assert report.total_candidates == len(pool) + 1
        assert report.scored == len(pool)
        assert len(report.results) == len(pool)

    def test_report_counts_without_results(self, engine, js_mentor, pool):
        report = engine.match_report(js_mentor, pool, MatchingConfig(min_match_score=1.0))
        assert report.results == []
        assert report.total_candidates == len(pool)
        assert report.failed == 0

    def test_parallel_matches_serial(self, js_mentor, pool):
        serial = MatchingEngine().find_matches(js_mentor, pool)
        parallel = MatchingEngine(max_workers=4).find_matches(js_mentor, pool)

        assert [r.candidate.id for r in parallel] == [r.candidate.id for r in serial]
        assert [r.score.total for r in parallel] == [r.score.total for r in serial]

    def test_custom_weights_recorded(self, engine, js_mentor, pool):
        weights = WeightVector(0.5, 0.5, 0, 0, 0)
        results = engine.find_matches(js_mentor, pool, MatchingConfig(weights=weights))
        assert all(r.score.weights == weights for r in results)


class TestValidateBidirectional:
    """Both-ways skill check."""

    def test_mutual_exchange(self, engine, js_mentor, python_mentor):
        assert engine.validate_bidirectional(js_mentor, python_mentor)

    def test_one_way_fails(self, engine, js_mentor, profile_factory):
        candidate = profile_factory("carol", offers=["Python"], wants=[])
        assert not engine.validate_bidirectional(js_mentor, candidate)

    def test_threshold(self, engine, profile_factory):
        a = profile_factory("a", offers=["java"], wants=["Piano"])
        b = profile_factory("b", offers=["Piano"], wants=["javascript"])
        assert engine.validate_bidirectional(a, b, min_score=0.5)
        assert not engine.validate_bidirectional(a, b, min_score=0.8)

    def test_skill_failure_is_false(self, js_mentor, python_mentor):
        engine = MatchingEngine(similarity_scorer=BrokenSimilarityScorer())
        assert not engine.validate_bidirectional(js_mentor, python_mentor)


class TestWeightVector:
    """Weight validation."""

    @pytest.mark.parametrize("bad", [-0.1, float("nan"), float("inf")])
    def test_rejects_unusable_weights(self, bad):
        with pytest.raises(ValueError):
            WeightVector(0.3, 0.3, bad, 0.15, 0.1)

    def test_parse_rejects_nan(self):
        with pytest.raises(ValueError):
            WeightVector.parse("nan,0.3,0.15,0.15,0.1")

    def test_parse(self):
        assert WeightVector.parse("0.5, 0.5, 0, 0, 0") == WeightVector(0.5, 0.5, 0, 0, 0)
