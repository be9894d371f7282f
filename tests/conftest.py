"""
Pytest configuration and shared fixtures.
"""

import os
import threading
import time

import numpy as np
import pytest

from skillswap.config import get_config_manager
from skillswap.embeddings import EmbeddingProvider, get_embedding_provider
from skillswap.exceptions import EmbeddingUnavailableError
from skillswap.models import Location, Profile, Skill, SkillLevel


class FakeEmbeddingProvider(EmbeddingProvider):
    """Deterministic provider backed by a text -> vector table."""

    name = "fake"

    def __init__(self, vectors=None, ready=True, init_delay=0.0, init_error=None):
        self.vectors = {k: np.asarray(v, dtype=np.float32) for k, v in (vectors or {}).items()}
        self.ready = ready
        self.init_delay = init_delay
        self.init_error = init_error
        self.init_calls = 0
        self.embed_calls = []
        self._lock = threading.Lock()
        self._initialized = False

    def initialize(self) -> bool:
        with self._lock:
            self.init_calls += 1
        if self.init_delay:
            time.sleep(self.init_delay)
        if self.init_error:
            raise self.init_error
        self._initialized = self.ready
        return self.ready

    def is_ready(self) -> bool:
        return self._initialized

    def embed(self, text: str) -> np.ndarray:
        self.embed_calls.append(text)
        if text not in self.vectors:
            raise EmbeddingUnavailableError(f"no vector for {text!r}")
        return self.vectors[text]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Run every test in a clean directory with no SKILLSWAP_* settings."""
    for key in list(os.environ):
        if key.startswith("SKILLSWAP_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("SKILLSWAP_EMBEDDING_PROVIDER", "none")
    monkeypatch.chdir(tmp_path)
    monkeypatch.delattr(get_config_manager, "_instance", raising=False)
    monkeypatch.delattr(get_embedding_provider, "_instance", raising=False)
    yield
    # Settings written through .env during the test bypass monkeypatch
    for key in list(os.environ):
        if key.startswith("SKILLSWAP_"):
            os.environ.pop(key, None)


@pytest.fixture
def fake_provider():
    return FakeEmbeddingProvider


def make_profile(profile_id, offers=(), wants=(), level=SkillLevel.EXPERT,
                 languages=("en",), location=None, trust=0.5):
    """Build a profile from skill names, all offered at ``level``."""
    return Profile(
        id=profile_id,
        username=f"user-{profile_id}",
        offers=[Skill(name=name, level=level) for name in offers],
        wants=[Skill(name=name, level=SkillLevel.BEGINNER) for name in wants],
        languages=list(languages),
        location=location,
        trust=trust,
    )


@pytest.fixture
def profile_factory():
    return make_profile


@pytest.fixture
def js_mentor():
    """Offers JavaScript, wants Python."""
    return make_profile("alice", offers=["JavaScript"], wants=["Python"])


@pytest.fixture
def python_mentor():
    """Offers Python, wants JavaScript."""
    return make_profile("bob", offers=["Python"], wants=["JavaScript"])


@pytest.fixture
def berlin():
    return Location(city="Berlin", country="Germany", latitude=52.52, longitude=13.405)


@pytest.fixture
def sample_records():
    """Raw profile records in the shapes the loader accepts."""
    return [
        {
            "id": "u1",
            "username": "ana",
            "offers": [{"name": "Guitar", "level": "expert"}],
            "wants": ["Spanish"],
            "languages": ["en", "es"],
            "location": {"city": "Madrid", "country": "Spain", "latitude": 40.4168, "longitude": -3.7038},
            "trust": 0.9,
        },
        {
            "_id": "u2",
            "name": "Ben",
            "offer_skill": "Spanish",
            "want_skill": "Guitar",
            "skill_level": 9,
            "languages": ["es"],
            "location": {"city": "madrid", "country": "spain"},
            "trustScore": 0.8,
        },
        {
            "id": "u3",
            "username": "cleo",
            "offers": ["Cooking"],
            "wants": ["Knitting"],
        },
        {
            "id": "u4",
            "username": "dev",
            "offers": [{"name": "Guitar lessons", "level": "advanced"}],
            "wants": [{"name": "Spanish conversation"}],
            "languages": ["en"],
        },
    ]
