"""
Tests for embedding providers.
"""

import threading

import numpy as np
import pytest

from skillswap.embeddings import (
    LazyEmbeddingProvider,
    NullEmbeddingProvider,
    OllamaEmbeddingClient,
    build_embedding_provider,
    get_embedding_provider,
)
from skillswap.exceptions import EmbeddingUnavailableError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeOllamaClient:
    """Stands in for ollama.Client."""

    def __init__(self, models=None, embedding=None, fail_list=False):
        self.models = models if models is not None else [{"name": "nomic-embed-text:latest"}]
        self.embedding = embedding if embedding is not None else [0.1, 0.2, 0.3]
        self.fail_list = fail_list
        self.pulled = []

    def list(self):
        if self.fail_list:
            raise ConnectionError("connection refused")
        return {"models": self.models}

    def pull(self, model):
        self.pulled.append(model)

    def embeddings(self, model, prompt):
        return {"embedding": self.embedding}


class TestNullProvider:
    """Disabled embeddings."""

    def test_never_ready(self):
        provider = NullEmbeddingProvider()
        assert provider.initialize() is False
        assert provider.is_ready() is False

    def test_embed_raises(self):
        with pytest.raises(EmbeddingUnavailableError):
            NullEmbeddingProvider().embed("python")


class TestLazyInitialization:
    """Single-flight start-up and retry window."""

    def test_not_initialized_until_first_use(self, fake_provider):
        inner = fake_provider({"python": [1.0, 0.0]})
        lazy = LazyEmbeddingProvider(inner)

        assert inner.init_calls == 0
        assert lazy.state == LazyEmbeddingProvider.UNINITIALIZED

        lazy.embed("python")
        assert inner.init_calls == 1
        assert lazy.is_ready()

    def test_concurrent_first_calls_initialize_once(self, fake_provider):
        inner = fake_provider({"python": [1.0, 0.0]}, init_delay=0.05)
        lazy = LazyEmbeddingProvider(inner, cache_size=0)
        barrier = threading.Barrier(8)
        errors = []

        def worker():
            barrier.wait()
            try:
                lazy.embed("python")
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert inner.init_calls == 1

    def test_failure_marks_unavailable(self, fake_provider):
        inner = fake_provider(ready=False)
        lazy = LazyEmbeddingProvider(inner)

        with pytest.raises(EmbeddingUnavailableError):
            lazy.embed("python")
        assert lazy.state == LazyEmbeddingProvider.UNAVAILABLE
        assert lazy.last_error

    def test_initialize_exception_is_contained(self, fake_provider):
        inner = fake_provider(init_error=RuntimeError("server exploded"))
        lazy = LazyEmbeddingProvider(inner)

        assert lazy.initialize() is False
        assert "server exploded" in lazy.last_error

    def test_no_retry_inside_window(self, fake_provider):
        clock = FakeClock()
        inner = fake_provider(ready=False)
        lazy = LazyEmbeddingProvider(inner, retry_after_seconds=300, clock=clock)

        for _ in range(3):
            with pytest.raises(EmbeddingUnavailableError):
                lazy.embed("python")
        assert inner.init_calls == 1

        clock.now += 299
        assert lazy.initialize() is False
        assert inner.init_calls == 1

    def test_retry_after_window(self, fake_provider):
        clock = FakeClock()
        inner = fake_provider({"python": [1.0]}, ready=False)
        lazy = LazyEmbeddingProvider(inner, retry_after_seconds=300, clock=clock)
        assert lazy.initialize() is False

        inner.ready = True
        clock.now += 300
        np.testing.assert_allclose(lazy.embed("python"), [1.0])
        assert inner.init_calls == 2
        assert lazy.is_ready()

    def test_zero_retry_disables_retries(self, fake_provider):
        clock = FakeClock()
        inner = fake_provider(ready=False)
        lazy = LazyEmbeddingProvider(inner, retry_after_seconds=0, clock=clock)
        lazy.initialize()

        clock.now += 10_000
        assert lazy.initialize() is False
        assert inner.init_calls == 1

    def test_embed_failure_after_ready(self, fake_provider):
        inner = fake_provider({"python": [1.0]})
        lazy = LazyEmbeddingProvider(inner)
        lazy.embed("python")

        with pytest.raises(EmbeddingUnavailableError):
            lazy.embed("unknown text")
        assert lazy.state == LazyEmbeddingProvider.UNAVAILABLE


class TestCache:
    """Bounded vector cache."""

    def test_repeated_text_hits_cache(self, fake_provider):
        inner = fake_provider({"python": [1.0, 0.0]})
        lazy = LazyEmbeddingProvider(inner)

        lazy.embed("python")
        lazy.embed("python")
        assert inner.embed_calls == ["python"]
        assert lazy.cache_info() == {"entries": 1, "max_entries": 4096}

    def test_oldest_entry_evicted(self, fake_provider):
        inner = fake_provider({"a": [1.0], "b": [2.0], "c": [3.0]})
        lazy = LazyEmbeddingProvider(inner, cache_size=2)

        lazy.embed("a")
        lazy.embed("b")
        lazy.embed("c")
        lazy.embed("a")
        assert inner.embed_calls == ["a", "b", "c", "a"]
        assert lazy.cache_info()["entries"] == 2


class TestOllamaClient:
    """Ollama client against a fake server."""

    @pytest.fixture
    def client(self):
        client = OllamaEmbeddingClient(host="http://localhost:11434", model="nomic-embed-text", timeout=1)
        client.client = FakeOllamaClient()
        return client

    def test_model_ready(self, client):
        assert client.initialize() is True
        assert client.is_ready()

    def test_pulls_missing_model(self, client):
        client.client = FakeOllamaClient(models=[])
        assert client.ensure_model_ready() is True
        assert client.client.pulled == ["nomic-embed-text"]

    def test_embed_returns_float32(self, client):
        vector = client.embed("  python   programming ")
        assert vector.dtype == np.float32
        np.testing.assert_allclose(vector, [0.1, 0.2, 0.3], rtol=1e-6)

    def test_connection_failure(self, client):
        client.client = FakeOllamaClient(fail_list=True)
        assert client.initialize() is False
        with pytest.raises(EmbeddingUnavailableError):
            client.embed("python")

    def test_reset_rechecks_server(self, client):
        client.client = FakeOllamaClient(fail_list=True)
        assert client.initialize() is False
        client.client = FakeOllamaClient()
        client.reset()
        assert client.initialize() is True

    def test_status(self, client):
        status = client.get_status()
        assert status["connection"] is True
        assert status["model_ready"] is True
        assert status["model"] == "nomic-embed-text"


class TestFactory:
    """Providers built from configuration."""

    def test_none_provider(self):
        provider = build_embedding_provider("none")
        assert isinstance(provider.provider, NullEmbeddingProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            build_embedding_provider("word2vec")

    def test_singleton_uses_config(self):
        provider = get_embedding_provider()
        assert provider is get_embedding_provider()
        assert provider.name == "none"
