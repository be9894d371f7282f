"""
Embedding providers for skill similarity.

The matching code only needs ``initialize() / is_ready() / embed()``. The
Ollama client talks to a local server; LazyEmbeddingProvider wraps any
provider with single-flight initialization, a retry window after failures
and a bounded vector cache.
"""

import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

import numpy as np
import ollama
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import get_config_manager
from .exceptions import EmbeddingUnavailableError

console = Console()


class EmbeddingProvider:
    """Interface for text -> vector providers."""

    name = "base"

    def initialize(self) -> bool:
        """Prepare the provider. Returns True when it can serve embeddings."""
        raise NotImplementedError

    def is_ready(self) -> bool:
        raise NotImplementedError

    def embed(self, text: str) -> np.ndarray:
        """Return a vector for ``text`` or raise EmbeddingUnavailableError."""
        raise NotImplementedError


class NullEmbeddingProvider(EmbeddingProvider):
    """Provider used when embeddings are disabled; never ready."""

    name = "none"

    def initialize(self) -> bool:
        return False

    def is_ready(self) -> bool:
        return False

    def embed(self, text: str) -> np.ndarray:
        raise EmbeddingUnavailableError("Embeddings are disabled")


class OllamaEmbeddingClient(EmbeddingProvider):
    """Client for generating embeddings using Ollama with nomic-embed-text model."""

    name = "ollama"

    def __init__(self,
                 host: Optional[str] = None,
                 model: Optional[str] = None,
                 timeout: Optional[float] = None):
        config = get_config_manager()

        if host is None:
            host = f"http://{config.get('embeddings', 'host')}:{config.get('embeddings', 'port')}"
        if model is None:
            model = config.get('embeddings', 'model')
        if timeout is None:
            timeout = config.get('embeddings', 'timeout')
        self.host = host
        self.model = model
        self.timeout = timeout
        self.client = ollama.Client(host=host, timeout=timeout)
        self._model_ready = None

    def initialize(self) -> bool:
        return self.ensure_model_ready()

    def is_ready(self) -> bool:
        return bool(self._model_ready)

    def ensure_model_ready(self) -> bool:
        """Ensure the embedding model is available."""
        if self._model_ready is not None:
            return self._model_ready

        try:
            models = self.client.list()
            model_names = [model.get('name', model.get('model', '')) for model in models.get('models', [])]

            if self.model in model_names or f"{self.model}:latest" in model_names:
                self._model_ready = True
                console.print(f"[green]✓ Model {self.model} is ready[/green]")
                return True

            console.print(f"[yellow]Pulling model {self.model}... This may take a while.[/yellow]")

            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
            ) as progress:
                task = progress.add_task(f"Downloading {self.model}", total=None)

                try:
                    self.client.pull(self.model)
                    progress.update(task, description="Model downloaded successfully")
                    self._model_ready = True
                    console.print(f"[green]✓ Model {self.model} is now ready[/green]")
                    return True
                except Exception as e:
                    progress.update(task, description=f"Failed to download model: {e}")
                    self._model_ready = False
                    return False

        except Exception as e:
            console.print(f"[red]Error checking model availability: {e}[/red]")
            self._model_ready = False
            return False

    def reset(self):
        """Forget the cached readiness so the next check hits the server again."""
        self._model_ready = None

    def embed(self, text: str) -> np.ndarray:
        embedding = self.generate_embedding(text)
        if embedding is None:
            raise EmbeddingUnavailableError(f"No embedding returned by {self.model}")
        return embedding

    def generate_embedding(self, text: str) -> Optional[np.ndarray]:
        """Generate embedding for a single text."""
        if not self.ensure_model_ready():
            return None

        cleaned_text = self._clean_text(text)
        if not cleaned_text.strip():
            return None

        try:
            response = self.client.embeddings(model=self.model, prompt=cleaned_text)
        except Exception as e:
            console.print(f"[red]Error generating embedding: {e}[/red]")
            return None

        if 'embedding' in response and response['embedding']:
            return np.array(response['embedding'], dtype=np.float32)

        console.print("[red]No embedding returned from Ollama[/red]")
        return None

    def _clean_text(self, text: str) -> str:
        """Collapse whitespace; skill texts are short so no truncation is needed."""
        if not text:
            return ""
        return " ".join(text.split())

    def get_status(self) -> dict:
        """Get comprehensive status of the Ollama client."""
        status = {
            "provider": self.name,
            "host": self.host,
            "model": self.model,
            "connection": False,
            "model_ready": False,
            "error": None
        }

        try:
            self.client.list()
            status["connection"] = True
        except Exception as e:
            status["error"] = f"Connection failed: {e}"
            return status

        try:
            status["model_ready"] = self.ensure_model_ready()
        except Exception as e:
            status["error"] = f"Model check failed: {e}"

        return status


class LazyEmbeddingProvider(EmbeddingProvider):
    """
    Process-wide handle around another provider.

    The first ``embed()`` triggers initialization; concurrent first calls
    wait on one lock so the inner provider is initialized once. A failed
    initialization (or a failed embed call) marks the handle unavailable;
    after ``retry_after_seconds`` the next call tries again. A value of 0
    disables retries for the lifetime of the handle.
    """

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    UNAVAILABLE = "unavailable"

    def __init__(self,
                 provider: EmbeddingProvider,
                 retry_after_seconds: float = 300,
                 cache_size: int = 4096,
                 clock: Callable[[], float] = time.monotonic):
        self.provider = provider
        self.name = provider.name
        self.retry_after_seconds = retry_after_seconds
        self.cache_size = cache_size
        self._clock = clock
        self._state = self.UNINITIALIZED
        self._failed_at = None
        self.last_error = None
        self._init_lock = threading.Lock()
        self._cache_lock = threading.Lock()
        self._cache = OrderedDict()

    @property
    def state(self) -> str:
        return self._state

    def is_ready(self) -> bool:
        return self._state == self.READY

    def _retry_due(self) -> bool:
        if self._state != self.UNAVAILABLE:
            return self._state == self.UNINITIALIZED
        if not self.retry_after_seconds:
            return False
        return self._clock() - self._failed_at >= self.retry_after_seconds

    def initialize(self) -> bool:
        if self._state == self.READY:
            return True
        if not self._retry_due():
            return False

        with self._init_lock:
            # Another thread may have finished while we waited
            if self._state == self.READY:
                return True
            if not self._retry_due():
                return False

            if hasattr(self.provider, "reset"):
                self.provider.reset()
            try:
                ready = bool(self.provider.initialize())
                error = None if ready else f"{self.provider.name} provider not ready"
            except Exception as e:
                ready = False
                error = f"{type(e).__name__}: {e}"

            if ready:
                self._state = self.READY
                self.last_error = None
            else:
                self._mark_unavailable(error)
            return ready

    def _mark_unavailable(self, error: str):
        self._state = self.UNAVAILABLE
        self._failed_at = self._clock()
        self.last_error = error
        console.print(f"[yellow]Warning: embeddings unavailable, using lexical fallback ({error})[/yellow]")

    def embed(self, text: str) -> np.ndarray:
        with self._cache_lock:
            cached = self._cache.get(text)
            if cached is not None:
                self._cache.move_to_end(text)
                return cached

        if not self.initialize():
            raise EmbeddingUnavailableError(self.last_error or "Embedding provider unavailable")

        try:
            vector = np.asarray(self.provider.embed(text), dtype=np.float32)
        except Exception as e:
            with self._init_lock:
                if self._state == self.READY:
                    self._mark_unavailable(f"{type(e).__name__}: {e}")
            raise EmbeddingUnavailableError(str(e)) from e

        if self.cache_size > 0:
            with self._cache_lock:
                self._cache[text] = vector
                while len(self._cache) > self.cache_size:
                    self._cache.popitem(last=False)
        return vector

    def cache_info(self) -> dict:
        with self._cache_lock:
            return {"entries": len(self._cache), "max_entries": self.cache_size}

    def get_status(self) -> dict:
        status = {}
        if hasattr(self.provider, "get_status"):
            status.update(self.provider.get_status())
        status.update({
            "provider": self.name,
            "state": self._state,
            "error": self.last_error or status.get("error"),
        })
        status.update(self.cache_info())
        return status


def build_embedding_provider(provider: Optional[str] = None) -> LazyEmbeddingProvider:
    """Build a lazy provider from configuration."""
    config = get_config_manager()
    if provider is None:
        provider = config.get('embeddings', 'provider')

    if provider == "ollama":
        inner = OllamaEmbeddingClient()
    elif provider == "none":
        inner = NullEmbeddingProvider()
    else:
        raise ValueError(f"Unknown embedding provider: {provider}")

    return LazyEmbeddingProvider(
        inner,
        retry_after_seconds=config.get('embeddings', 'retry_after_seconds'),
        cache_size=config.get('embeddings', 'cache_size')
    )


_provider_lock = threading.Lock()


def get_embedding_provider() -> LazyEmbeddingProvider:
    """Get the process-wide embedding provider."""
    if not hasattr(get_embedding_provider, '_instance'):
        with _provider_lock:
            if not hasattr(get_embedding_provider, '_instance'):
                get_embedding_provider._instance = build_embedding_provider()
    return get_embedding_provider._instance


def test_embedding_provider(text: str = "Python programming intermediate") -> bool:
    """Test the configured embedding provider."""
    provider = get_embedding_provider()
    console.print(f"[cyan]Testing {provider.name} embedding provider...[/cyan]")

    if not provider.initialize():
        console.print(f"[red]✗ Provider not ready: {provider.last_error}[/red]")
        return False

    console.print("[green]✓ Provider ready[/green]")

    try:
        embedding = provider.embed(text)
    except EmbeddingUnavailableError as e:
        console.print(f"[red]✗ Embedding generation failed: {e}[/red]")
        return False

    console.print(f"[green]✓ Generated embedding with shape: {embedding.shape}[/green]")
    console.print("[green]✓ Embedding provider test passed![/green]")

    return True
