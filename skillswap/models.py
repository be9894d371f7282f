"""
Value objects shared by the scorers and the matching engine.

Everything here is request-scoped: profiles are built from caller supplied
records, scored, and discarded once results are returned.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class SkillLevel(str, Enum):
    """Self-assessed proficiency for an offered or wanted skill."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @classmethod
    def parse(cls, value: Any, default: "SkillLevel" = None) -> "SkillLevel":
        """Parse a level name, falling back to ``default`` (beginner) when unknown."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return default or cls.BEGINNER


@dataclass
class Skill:
    """A skill a profile can teach or wants to learn."""
    name: str
    level: SkillLevel = SkillLevel.BEGINNER
    description: Optional[str] = None
    category: Optional[str] = None
    id: Optional[str] = None

    @property
    def normalized_name(self) -> str:
        return self.name.strip().lower()


@dataclass
class Location:
    """Where a profile lives. Any field may be missing."""
    city: Optional[str] = None
    country: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass
class Profile:
    """A person taking part in skill exchange."""
    id: str
    offers: List[Skill] = field(default_factory=list)
    wants: List[Skill] = field(default_factory=list)
    languages: List[str] = field(default_factory=lambda: ["en"])
    location: Optional[Location] = None
    trust: float = 0.5
    username: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.username or self.id


@dataclass(frozen=True)
class WeightVector:
    """
    Weights for the five match signals.

    w1: subject offers -> candidate wants
    w2: candidate offers -> subject wants
    w3: location proximity
    w4: language overlap
    w5: trust

    Weights need not sum to 1; the engine clamps the combined score instead.
    """
    w1: float = 0.30
    w2: float = 0.30
    w3: float = 0.15
    w4: float = 0.15
    w5: float = 0.10

    def __post_init__(self):
        for name, value in self.as_dict().items():
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"Weight {name} must be a finite non-negative number, got {value}")

    def as_dict(self) -> Dict[str, float]:
        return {"w1": self.w1, "w2": self.w2, "w3": self.w3, "w4": self.w4, "w5": self.w5}

    @classmethod
    def parse(cls, text: str) -> "WeightVector":
        """Build a vector from a comma-separated string like ``0.3,0.3,0.15,0.15,0.1``."""
        parts = [p.strip() for p in text.split(",") if p.strip()]
        if len(parts) != 5:
            raise ValueError(f"Expected 5 comma-separated weights, got {len(parts)}")
        return cls(*(float(p) for p in parts))


DEFAULT_WEIGHTS = WeightVector()


@dataclass
class MatchScore:
    """Per-signal breakdown of a match, kept so rankings can be audited."""
    total: float
    offer_to_want: float
    want_to_offer: float
    location: float
    language: float
    trust: float
    weights: WeightVector = DEFAULT_WEIGHTS
    boost_rule: Optional[str] = None

    def to_dict(self, precision: Optional[int] = None) -> Dict[str, Any]:
        data = asdict(self)
        if precision is not None:
            for key in ("total", "offer_to_want", "want_to_offer", "location", "language", "trust"):
                data[key] = round(data[key], precision)
        return data


@dataclass
class MatchResult:
    """A scored candidate for one subject."""
    subject: Profile
    candidate: Profile
    score: MatchScore
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class MatchingConfig:
    """Request-time settings for a ranking run."""
    weights: WeightVector = DEFAULT_WEIGHTS
    min_match_score: float = 0.0
    max_results: int = 50


@dataclass
class MatchReport:
    """Ranked results plus the counts a caller needs to tell empty from failed."""
    results: List[MatchResult]
    total_candidates: int
    scored: int
    failed: int
    processing_time_ms: float
