"""Generation model selection with a time-stamped cache."""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from groq import Groq, APIError

from config import (
    GROQ_API_KEY,
    GENERATION_MODEL_PRIORITY,
    DEFAULT_GENERATION_MODEL,
    MODEL_CACHE_TTL_SECONDS,
)

logger = logging.getLogger(__name__)

# Listed models that cannot do chat completion
NON_CHAT_MARKERS = ("whisper", "tts", "guard")


@dataclass(frozen=True)
class ModelCache:
    """Selected model name and when it was chosen."""
    model: str
    fetched_at: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.fetched_at < ttl_seconds


class GenerationModelSelector:
    """
    Picks the best available chat model from the provider's model list.

    The choice is cached for ``ttl_seconds`` (24 hours by default). When the
    list cannot be fetched the default model is returned and nothing is cached,
    so the next call tries again.
    """

    def __init__(
        self,
        client: Optional[Groq] = None,
        api_key: Optional[str] = None,
        priority: Sequence[str] = GENERATION_MODEL_PRIORITY,
        default_model: str = DEFAULT_GENERATION_MODEL,
        ttl_seconds: float = MODEL_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        if client is None:
            api_key = api_key or GROQ_API_KEY
            if not api_key:
                raise ValueError("GROQ_API_KEY must be provided or set in environment")
            client = Groq(api_key=api_key)

        self.client = client
        self.priority = list(priority)
        self.default_model = default_model
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._cache: Optional[ModelCache] = None

    @property
    def current_model(self) -> Optional[str]:
        """Cached model name, fresh or not."""
        return self._cache.model if self._cache else None

    def get_model(self) -> str:
        """Return the cached model while fresh, otherwise refresh."""
        if self._cache and self._cache.is_fresh(self._clock(), self.ttl_seconds):
            return self._cache.model
        return self.refresh()

    def refresh(self) -> str:
        """Re-read the provider's model list and re-select."""
        available = self._list_models()

        if not available:
            logger.warning(f"Could not fetch models, using default: {self.default_model}")
            return self.default_model

        selected = None
        for preferred in self.priority:
            selected = next((name for name in available if preferred in name), None)
            if selected:
                logger.info(f"Selected generation model: {selected}")
                break

        if selected is None:
            selected = available[0]
            logger.info(f"Using fallback model: {selected}")

        self._cache = ModelCache(model=selected, fetched_at=self._clock())
        return selected

    def invalidate(self) -> None:
        """Drop the cached selection."""
        self._cache = None
        logger.info("Model cache cleared")

    def _list_models(self) -> List[str]:
        try:
            response = self.client.models.list()
        except APIError as e:
            logger.warning(f"Failed to fetch models list: {e}")
            return []

        names = []
        for model in response.data:
            if getattr(model, "active", True) is False:
                continue
            if any(marker in model.id for marker in NON_CHAT_MARKERS):
                continue
            names.append(model.id)

        logger.debug(f"Found {len(names)} available chat models")
        return names
