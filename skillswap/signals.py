"""
Typed signal results and the simple profile-level scorers.

Each scorer returns a SignalResult that is either a value in [0, 1] or
marked unavailable; the matching engine swaps unavailable signals for
their neutral default.
"""

import math
from dataclasses import dataclass
from typing import Callable, Optional, Set

from .models import Profile

NEUTRAL_SCORE = 0.5


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return max(low, min(high, value))


@dataclass(frozen=True)
class SignalResult:
    """Outcome of one signal: a score, or the reason it could not be computed."""
    value: Optional[float] = None
    reason: Optional[str] = None

    @property
    def available(self) -> bool:
        return self.value is not None

    @classmethod
    def of(cls, value: float) -> "SignalResult":
        return cls(value=clamp(float(value)))

    @classmethod
    def unavailable(cls, reason: str) -> "SignalResult":
        return cls(value=None, reason=reason)

    def or_default(self, default: float) -> float:
        return self.value if self.value is not None else default


def guarded(compute: Callable[[], float]) -> SignalResult:
    """Run a scorer, turning any exception into an unavailable result."""
    try:
        return SignalResult.of(compute())
    except Exception as e:
        return SignalResult.unavailable(f"{type(e).__name__}: {e}")


def _normalize_languages(profile: Profile) -> Set[str]:
    return {str(lang).strip().lower() for lang in (profile.languages or []) if str(lang).strip()}


class LanguageScorer:
    """Scores how well two profiles can communicate."""

    def score(self, subject: Profile, candidate: Profile) -> SignalResult:
        try:
            langs_a = _normalize_languages(subject)
            langs_b = _normalize_languages(candidate)
        except Exception as e:
            return SignalResult.unavailable(f"bad language data: {e}")

        if not langs_a or not langs_b:
            return SignalResult.unavailable("missing language data")

        shared = langs_a & langs_b
        return SignalResult.of(len(shared) / min(len(langs_a), len(langs_b)))


class TrustScorer:
    """Passes the candidate's stored reliability value through."""

    def score(self, subject: Profile, candidate: Profile) -> SignalResult:
        trust = getattr(candidate, "trust", None)
        if isinstance(trust, bool) or not isinstance(trust, (int, float)):
            return SignalResult.unavailable("missing trust value")
        if math.isnan(trust):
            return SignalResult.unavailable("trust value is NaN")
        return SignalResult.of(trust)
