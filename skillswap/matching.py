"""
Matching engine for SkillSwap - scores and ranks exchange partners.

Final score = w1*SA->B + w2*SB->A + w3*location + w4*language + w5*trust

where SA->B is how well the subject's offers cover the candidate's wants and
SB->A the reverse. Strong skill matches then lift the total to a floor given
by the first matching boost rule, and everything is clamped to [0, 1].
"""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from rich.console import Console
from rich.progress import Progress

from .config import get_config_manager
from .embeddings import EmbeddingProvider, NullEmbeddingProvider, get_embedding_provider
from .exceptions import ProfileFormatError
from .location import GeoScorer
from .models import (
    DEFAULT_WEIGHTS, MatchingConfig, MatchReport, MatchResult, MatchScore, Profile, WeightVector
)
from .signals import NEUTRAL_SCORE, LanguageScorer, SignalResult, TrustScorer, clamp, guarded
from .similarity import SkillSimilarityScorer

console = Console()

# Neutral values substituted for unavailable signals
SKILL_DEFAULT = 0.0
LOCATION_DEFAULT = NEUTRAL_SCORE
LANGUAGE_DEFAULT = NEUTRAL_SCORE
TRUST_DEFAULT = NEUTRAL_SCORE


@dataclass(frozen=True)
class BoostRule:
    """Raise the total to ``floor`` when ``applies(a_to_b, b_to_a)`` holds."""
    name: str
    floor: float
    applies: Callable[[float, float], bool]


# Evaluated top to bottom; the first rule that applies wins
BOOST_RULES = [
    BoostRule("perfect_bidirectional", 0.8, lambda ab, ba: ab >= 0.95 and ba >= 0.95),
    BoostRule("strong_bidirectional", 0.7, lambda ab, ba: ab >= 0.8 and ba >= 0.8),
    BoostRule("perfect_one_way", 0.6, lambda ab, ba: ab >= 0.95 or ba >= 0.95),
    BoostRule("strong_one_way", 0.5, lambda ab, ba: ab >= 0.8 or ba >= 0.8),
    BoostRule("any_skill_match", 0.3, lambda ab, ba: ab > 0 or ba > 0),
]


def apply_boost(total: float, a_to_b: float, b_to_a: float,
                rules: List[BoostRule] = BOOST_RULES) -> Tuple[float, Optional[str]]:
    """Apply the first matching boost rule. Returns the new total and the rule name."""
    for rule in rules:
        if rule.applies(a_to_b, b_to_a):
            return max(total, rule.floor), rule.name
    return total, None


class MatchingEngine:
    """Scores candidate profiles against a subject and ranks them."""

    def __init__(self,
                 embedding_provider: Optional[EmbeddingProvider] = None,
                 similarity_scorer: Optional[SkillSimilarityScorer] = None,
                 geo_scorer: Optional[GeoScorer] = None,
                 language_scorer: Optional[LanguageScorer] = None,
                 trust_scorer: Optional[TrustScorer] = None,
                 max_workers: int = 1,
                 verbose: bool = False):
        self.similarity_scorer = similarity_scorer or SkillSimilarityScorer(
            embedding_provider or NullEmbeddingProvider(), verbose=verbose
        )
        self.geo_scorer = geo_scorer or GeoScorer()
        self.language_scorer = language_scorer or LanguageScorer()
        self.trust_scorer = trust_scorer or TrustScorer()
        self.max_workers = max(1, int(max_workers))
        self.verbose = verbose

    # Signals

    def _signal(self, label: str, compute: Callable[[], SignalResult]) -> SignalResult:
        try:
            result = compute()
        except Exception as e:
            result = SignalResult.unavailable(f"{type(e).__name__}: {e}")
        if not result.available and self.verbose:
            console.print(f"[dim]{label} unavailable: {result.reason}[/dim]")
        return result

    def offer_to_want(self, subject: Profile, candidate: Profile) -> SignalResult:
        """SA->B: subject's offers against candidate's wants."""
        return guarded(lambda: self.similarity_scorer.directional_aggregate(subject.offers, candidate.wants))

    def _signals(self, subject: Profile, candidate: Profile) -> Tuple[float, float, float, float, float]:
        a_to_b = self._signal("offer->want", lambda: self.offer_to_want(subject, candidate))
        b_to_a = self._signal("want->offer", lambda: self.offer_to_want(candidate, subject))
        location = self._signal("location", lambda: self.geo_scorer.score(subject.location, candidate.location))
        language = self._signal("language", lambda: self.language_scorer.score(subject, candidate))
        trust = self._signal("trust", lambda: self.trust_scorer.score(subject, candidate))

        return (
            a_to_b.or_default(SKILL_DEFAULT),
            b_to_a.or_default(SKILL_DEFAULT),
            location.or_default(LOCATION_DEFAULT),
            language.or_default(LANGUAGE_DEFAULT),
            trust.or_default(TRUST_DEFAULT),
        )

    # Scoring

    def _score(self, subject: Profile, candidate: Profile, weights: WeightVector) -> MatchScore:
        a_to_b, b_to_a, location, language, trust = self._signals(subject, candidate)

        total = (weights.w1 * a_to_b
                 + weights.w2 * b_to_a
                 + weights.w3 * location
                 + weights.w4 * language
                 + weights.w5 * trust)
        total, boost_rule = apply_boost(total, a_to_b, b_to_a)

        score = MatchScore(
            total=clamp(total),
            offer_to_want=clamp(a_to_b),
            want_to_offer=clamp(b_to_a),
            location=clamp(location),
            language=clamp(language),
            trust=clamp(trust),
            weights=weights,
            boost_rule=boost_rule
        )

        if self.verbose:
            console.print(
                f"[dim]{candidate.display_name}: total={score.total:.3f} "
                f"(A->B {score.offer_to_want:.3f}, B->A {score.want_to_offer:.3f}, "
                f"loc {score.location:.3f}, lang {score.language:.3f}, trust {score.trust:.3f}"
                f"{', boost ' + boost_rule if boost_rule else ''})[/dim]"
            )
        return score

    def score(self, subject: Profile, candidate: Profile,
              weights: Optional[WeightVector] = None) -> MatchScore:
        """Score one candidate for ``subject``. Never raises."""
        weights = weights or DEFAULT_WEIGHTS
        try:
            return self._score(subject, candidate, weights)
        except Exception as e:
            console.print(f"[red]Error calculating match score: {e}[/red]")
            return MatchScore(
                total=0.0,
                offer_to_want=SKILL_DEFAULT,
                want_to_offer=SKILL_DEFAULT,
                location=LOCATION_DEFAULT,
                language=LANGUAGE_DEFAULT,
                trust=TRUST_DEFAULT,
                weights=weights
            )

    def validate_bidirectional(self, subject: Profile, candidate: Profile, min_score: float = 0.3) -> bool:
        """True when both directional skill scores individually reach ``min_score``."""
        try:
            a_to_b = self.offer_to_want(subject, candidate)
            b_to_a = self.offer_to_want(candidate, subject)
        except Exception as e:
            console.print(f"[red]Error validating bidirectional match: {e}[/red]")
            return False
        if not (a_to_b.available and b_to_a.available):
            return False
        return a_to_b.value >= min_score and b_to_a.value >= min_score

    # Ranking

    def _score_candidate(self, subject: Profile, candidate: Profile,
                         weights: WeightVector) -> MatchResult:
        if not isinstance(candidate, Profile) or not candidate.id:
            raise ProfileFormatError(f"Not a usable profile: {candidate!r:.80}")
        return MatchResult(subject=subject, candidate=candidate,
                           score=self._score(subject, candidate, weights))

    def _evaluate(self, subject: Profile, candidates: List[Profile], weights: WeightVector,
                  show_progress: bool) -> Tuple[List[MatchResult], int, int]:
        """Score every non-self candidate in input order. Returns (results, attempted, failed)."""
        pool = [c for c in candidates if getattr(c, "id", None) != subject.id]
        outcomes: List[Optional[MatchResult]] = [None] * len(pool)
        failed = 0

        def run(index: int) -> Optional[Exception]:
            try:
                outcomes[index] = self._score_candidate(subject, pool[index], weights)
                return None
            except Exception as e:
                return e

        def record(index: int, error: Optional[Exception]):
            nonlocal failed
            if error is not None:
                failed += 1
                candidate_id = getattr(pool[index], "id", "?")
                console.print(f"[red]Error scoring candidate {candidate_id}: {error}[/red]")

        with Progress(disable=not show_progress, transient=True) as progress:
            task = progress.add_task("Scoring candidates...", total=len(pool))
            if self.max_workers > 1 and len(pool) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                    for index, error in enumerate(executor.map(run, range(len(pool)))):
                        record(index, error)
                        progress.update(task, advance=1)
            else:
                for index in range(len(pool)):
                    record(index, run(index))
                    progress.update(task, advance=1)

        return [r for r in outcomes if r is not None], len(pool), failed

    def match_report(self, subject: Profile, candidates: List[Profile],
                     config: Optional[MatchingConfig] = None,
                     show_progress: bool = False) -> MatchReport:
        """
        Rank candidates for ``subject`` and report how many were attempted.

        Candidates sharing the subject's id are skipped. A candidate that
        fails to score is reported and dropped; the batch itself never raises.
        """
        config = config or MatchingConfig()
        start_time = time.perf_counter()
        results, attempted, failed = [], 0, 0

        try:
            results, attempted, failed = self._evaluate(subject, list(candidates or []),
                                                        config.weights, show_progress)
            results = [r for r in results if r.score.total >= config.min_match_score]
            # sorted() is stable, so ties keep input order
            results = sorted(results, key=lambda r: r.score.total, reverse=True)
            results = results[:max(0, config.max_results)]
        except Exception as e:
            console.print(f"[red]Error during matching: {e}[/red]")
            results = sorted(results, key=lambda r: r.score.total, reverse=True)[:max(0, config.max_results)]

        return MatchReport(
            results=results,
            total_candidates=attempted,
            scored=attempted - failed,
            failed=failed,
            processing_time_ms=(time.perf_counter() - start_time) * 1000
        )

    def find_matches(self, subject: Profile, candidates: List[Profile],
                     config: Optional[MatchingConfig] = None,
                     show_progress: bool = False) -> List[MatchResult]:
        """Ranked matches for ``subject``, best first, at most ``config.max_results``."""
        return self.match_report(subject, candidates, config, show_progress).results


def get_matching_engine(use_embeddings: bool = True) -> MatchingEngine:
    """Build a matching engine from configuration."""
    config = get_config_manager()
    provider = get_embedding_provider() if use_embeddings else NullEmbeddingProvider()
    return MatchingEngine(
        embedding_provider=provider,
        max_workers=config.get('matching', 'max_workers') or 1,
        verbose=bool(config.get('matching', 'verbose'))
    )
