"""
Skill similarity scoring.

Two skills are compared through a cascade that stops at the first confident
answer: exact name match, near-exact containment, embedding cosine
similarity, then a lexical fallback used whenever embeddings are missing.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from rich.console import Console

from .embeddings import EmbeddingProvider, NullEmbeddingProvider
from .exceptions import EmbeddingUnavailableError
from .models import Skill, SkillLevel
from .signals import clamp

console = Console()

LEVEL_WEIGHTS = {
    SkillLevel.BEGINNER: 0.5,
    SkillLevel.INTERMEDIATE: 0.75,
    SkillLevel.ADVANCED: 0.9,
    SkillLevel.EXPERT: 1.0,
}
DEFAULT_LEVEL_WEIGHT = 0.5

NEAR_EXACT_RATIO = 0.8
NEAR_EXACT_CAP = 0.95
EXACT_MATCH_THRESHOLD = 0.99

_TOKEN_SPLIT = re.compile(r"[\s\-_/]+")


@dataclass
class SkillMatch:
    """Best counterpart found for a skill."""
    skill: Skill
    score: float


def level_weight(level) -> float:
    """Trust placed in a skill given its self-assessed level."""
    return LEVEL_WEIGHTS.get(SkillLevel.parse(level), DEFAULT_LEVEL_WEIGHT)


def skill_to_text(skill: Skill) -> str:
    """Text representation sent to the embedding provider."""
    parts = [skill.name]
    if skill.description:
        parts.append(skill.description)
    if skill.category:
        parts.append(skill.category)
    level = skill.level.value if isinstance(skill.level, SkillLevel) else str(skill.level or "")
    if level:
        parts.append(level)
    return " ".join(parts).lower()


def cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Calculate cosine similarity between two vectors."""
    a = np.asarray(a, dtype=np.float32)
    b = np.asarray(b, dtype=np.float32)
    if a.shape != b.shape:
        raise ValueError(f"Vector shapes differ: {a.shape} vs {b.shape}")

    denominator = float(np.linalg.norm(a) * np.linalg.norm(b))
    if denominator == 0:
        return 0.0
    similarity = float(np.dot(a, b) / denominator)
    if not np.isfinite(similarity):
        raise ValueError("Vector contains non-finite values")
    return similarity


def _containment_ratio(name_a: str, name_b: str) -> Optional[float]:
    """len(shorter)/len(longer) when one name contains the other, else None."""
    if not (name_a in name_b or name_b in name_a):
        return None
    shorter, longer = sorted((name_a, name_b), key=len)
    if not longer:
        return None
    return len(shorter) / len(longer)


def _tokens(name: str) -> List[str]:
    return [token for token in _TOKEN_SPLIT.split(name) if token]


def lexical_similarity(name_a: str, name_b: str) -> float:
    """Name-only similarity used when embeddings are unavailable."""
    name_a = name_a.strip().lower()
    name_b = name_b.strip().lower()

    if name_a == name_b:
        return 1.0

    ratio = _containment_ratio(name_a, name_b)
    if ratio is not None:
        return 0.9 if ratio > NEAR_EXACT_RATIO else 0.7

    tokens_a = set(_tokens(name_a))
    tokens_b = set(_tokens(name_b))
    shared = tokens_a & tokens_b
    if not shared:
        return 0.0

    overlap = len(shared) / len(tokens_a | tokens_b)
    if overlap > 0.5:
        return overlap * 0.8
    return overlap * 0.5


class SkillSimilarityScorer:
    """Compares skills and aggregates offer -> want similarity for a profile pair."""

    def __init__(self, embedding_provider: Optional[EmbeddingProvider] = None, verbose: bool = False):
        self.embedding_provider = embedding_provider or NullEmbeddingProvider()
        self.verbose = verbose

    def similarity(self, skill_a: Skill, skill_b: Skill) -> float:
        """Similarity of two skills in [0, 1]."""
        name_a = skill_a.normalized_name
        name_b = skill_b.normalized_name

        if name_a == name_b:
            return 1.0

        ratio = _containment_ratio(name_a, name_b)
        if ratio is not None and ratio > NEAR_EXACT_RATIO:
            return min(NEAR_EXACT_CAP, ratio)

        try:
            return self._embedding_similarity(skill_a, skill_b)
        except (EmbeddingUnavailableError, ValueError) as e:
            if self.verbose:
                console.print(f"[dim]Embedding unavailable for '{skill_a.name}' vs '{skill_b.name}': {e}[/dim]")

        return lexical_similarity(name_a, name_b)

    def _embedding_similarity(self, skill_a: Skill, skill_b: Skill) -> float:
        vector_a = self.embedding_provider.embed(skill_to_text(skill_a))
        vector_b = self.embedding_provider.embed(skill_to_text(skill_b))
        return clamp(cosine_similarity(vector_a, vector_b))

    def best_match(self, target: Skill, candidates: List[Skill]) -> Optional[SkillMatch]:
        """Highest scoring candidate for ``target``; ties keep the first seen."""
        best = None
        for candidate in candidates:
            score = self.similarity(target, candidate)
            if best is None or score > best.score:
                best = SkillMatch(skill=candidate, score=score)
        return best

    def directional_aggregate(self, offers: List[Skill], wants: List[Skill]) -> float:
        """
        How well one side's offered skills cover the other side's wanted skills.

        Each offered skill is paired with its best wanted skill and scaled by
        the offering level. The per-skill scores are blended 70/30 mean/max;
        when any pair is an exact name match the blend becomes 80/20 max/mean
        so the exact match dominates.
        """
        if not offers or not wants:
            return 0.0

        weighted = []
        exact_match = False
        for offer in offers:
            match = self.best_match(offer, wants)
            if match is None:
                continue
            if match.score >= EXACT_MATCH_THRESHOLD:
                exact_match = True
            weighted.append(match.score * level_weight(offer.level))
            if self.verbose:
                console.print(f"[dim]  {offer.name} -> {match.skill.name}: {match.score:.3f} "
                              f"(level {offer.level}, weighted {weighted[-1]:.3f})[/dim]")

        if not weighted:
            return 0.0

        mean = sum(weighted) / len(weighted)
        best = max(weighted)
        if exact_match:
            return clamp(0.8 * best + 0.2 * mean)
        return clamp(0.7 * mean + 0.3 * best)
