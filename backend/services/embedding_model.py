"""Embedding model integration with Hugging Face Inference API."""
import time
import logging
from typing import Callable, List, Optional, Sequence, Tuple
import httpx
import numpy as np
from config import (
    HUGGINGFACE_API_KEY,
    EMBEDDING_MODEL,
    EMBEDDING_DIMENSIONS,
    EMBEDDING_BATCH_SIZE,
    EMBEDDING_BATCH_DELAY,
    EMBEDDING_ITEM_DELAY,
)

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """Embedding request failure carrying the HTTP status and an error code."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class EmbeddingValidationError(EmbeddingError, ValueError):
    """Input rejected before any request was made."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_INPUT")


def zero_vector(dimensions: int = EMBEDDING_DIMENSIONS) -> List[float]:
    """Placeholder embedding for items that could not be embedded."""
    return np.zeros(dimensions, dtype=float).tolist()


def validate_embedding(
    embedding: Sequence[float],
    dimensions: int = EMBEDDING_DIMENSIONS
) -> Tuple[bool, Optional[str]]:
    """
    Check an embedding's shape and values.

    Returns:
        (valid, error message or None)
    """
    try:
        vector = np.asarray(embedding, dtype=float)
    except (TypeError, ValueError):
        return False, "Embedding contains invalid values"

    if vector.ndim != 1:
        return False, "Embedding is not a flat vector"
    if vector.shape[0] != dimensions:
        return False, f"Expected {dimensions} dimensions, got {vector.shape[0]}"
    if not np.all(np.isfinite(vector)):
        return False, "Embedding contains invalid values"

    return True, None


class EmbeddingModel:
    """Wrapper for Hugging Face Inference API embedding model."""

    def __init__(
        self,
        api_key: str = HUGGINGFACE_API_KEY,
        model_name: str = EMBEDDING_MODEL,
        max_retries: int = 5,
        initial_delay: float = 5.0,
        timeout: float = 120.0,
        batch_size: int = EMBEDDING_BATCH_SIZE,
        dimensions: int = EMBEDDING_DIMENSIONS
    ):
        """
        Initialize the embedding model client.

        Args:
            api_key: Hugging Face API key
            model_name: Model identifier (default: sentence-transformers/all-mpnet-base-v2)
            max_retries: Maximum number of retry attempts for 503 errors
            initial_delay: Initial delay in seconds for exponential backoff
            timeout: Request timeout in seconds
            batch_size: Upper bound on texts per API call
            dimensions: Expected embedding size
        """
        if not api_key:
            raise ValueError("HUGGINGFACE_API_KEY environment variable is required")

        self.api_key = api_key
        self.model_name = model_name
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self.batch_size = batch_size
        self.dimensions = dimensions
        self.api_url = f"https://api-inference.huggingface.co/models/{model_name}"

        logger.info(f"Initialized EmbeddingModel with model: {model_name}")

    def embed_text(self, text: str) -> List[float]:
        """
        Generate embedding for a single text string.

        Args:
            text: Text to embed

        Returns:
            Embedding vector as list of floats

        Raises:
            EmbeddingValidationError: If text is empty
            EmbeddingError: If API request fails after all retries
        """
        if not text or not text.strip():
            raise EmbeddingValidationError("Text cannot be empty")

        return self._embed_with_retry([text])[0]

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Generate embeddings for multiple texts in a single API call.

        Empty strings are sent as a single space so the output stays aligned
        with the input.

        Args:
            texts: List of texts to embed (at most ``batch_size``)

        Returns:
            List of embedding vectors, one per input text

        Raises:
            EmbeddingValidationError: If the batch is empty, too large or all blank
            EmbeddingError: If API request fails after all retries
        """
        if not texts:
            raise EmbeddingValidationError("Texts list cannot be empty")

        if len(texts) > self.batch_size:
            raise EmbeddingValidationError(
                f"Batch of {len(texts)} texts exceeds the limit of {self.batch_size}"
            )

        blank = [i for i, t in enumerate(texts) if not t or not t.strip()]
        if len(blank) == len(texts):
            raise EmbeddingValidationError("All texts in batch are empty")
        if blank:
            logger.warning(f"Replacing {len(blank)} empty texts in batch with a space")

        payload_texts = [t if t and t.strip() else " " for t in texts]
        return self._embed_with_retry(payload_texts)

    def embed_many(
        self,
        texts: List[str],
        on_progress: Optional[Callable[[int, int], None]] = None,
        delay_seconds: float = EMBEDDING_BATCH_DELAY,
        item_delay_seconds: float = EMBEDDING_ITEM_DELAY
    ) -> List[List[float]]:
        """
        Embed any number of texts in rate-limited batches.

        A failed batch is retried one text at a time; texts that still fail get
        a zero vector so one bad chunk never aborts an ingestion run.

        Args:
            texts: Texts to embed
            on_progress: Called with (texts submitted so far, total)
            delay_seconds: Pause between batches
            item_delay_seconds: Pause between individual retries

        Returns:
            One embedding per input text, in input order
        """
        if not texts:
            return []

        embeddings: List[List[float]] = []
        failures = 0
        total_batches = (len(texts) + self.batch_size - 1) // self.batch_size

        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            batch_num = start // self.batch_size + 1

            if on_progress:
                on_progress(start + len(batch), len(texts))

            try:
                embeddings.extend(self.embed_batch(batch))
            except EmbeddingError as e:
                logger.error(
                    f"Batch {batch_num}/{total_batches} failed ({e.message}), "
                    f"retrying {len(batch)} texts individually"
                )
                for offset, text in enumerate(batch):
                    try:
                        embeddings.append(self.embed_text(text))
                    except EmbeddingError as item_error:
                        failures += 1
                        logger.error(
                            f"Failed to embed text {start + offset}: {item_error.message}",
                            extra={"error_code": item_error.code, "status": item_error.status}
                        )
                        embeddings.append(zero_vector(self.dimensions))

                    if offset < len(batch) - 1 and item_delay_seconds > 0:
                        time.sleep(item_delay_seconds)

            if start + self.batch_size < len(texts) and delay_seconds > 0:
                time.sleep(delay_seconds)

        if failures:
            logger.warning(f"Failed to generate {failures} out of {len(texts)} embeddings")

        return embeddings

    def _embed_with_retry(self, texts: List[str]) -> List[List[float]]:
        """
        Internal method to call HF API with exponential backoff retry strategy.

        HF free tier models "sleep" and take 15-20s to load on first query.
        This implements aggressive retry with exponential backoff for 503 errors.

        Args:
            texts: List of texts to embed

        Returns:
            List of embedding vectors

        Raises:
            EmbeddingError: If API request fails after all retries
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

        payload = {
            "inputs": texts,
            "options": {
                "wait_for_model": True  # Wait for model to load if sleeping
            }
        }

        delay = self.initial_delay
        last_error = None
        last_status = None

        for attempt in range(self.max_retries):
            try:
                start_time = time.time()

                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(
                        self.api_url,
                        headers=headers,
                        json=payload
                    )

                elapsed = time.time() - start_time

                # Handle 503 Service Unavailable (model loading)
                if response.status_code == 503:
                    last_status = 503
                    logger.warning(
                        f"Model loading (503) on attempt {attempt + 1}/{self.max_retries}. "
                        f"Retrying in {delay}s..."
                    )

                    if attempt < self.max_retries - 1:
                        time.sleep(delay)
                        delay = min(delay * 2, 60.0)  # Exponential backoff, max 60s
                        continue
                    else:
                        last_error = f"Model failed to load after {self.max_retries} attempts"
                        break

                if response.status_code == 429:
                    logger.error("Rate limit exceeded for Hugging Face API")
                    raise EmbeddingError("Rate limit exceeded. Please try again later.", 429, "RATE_LIMIT")

                if response.status_code == 401:
                    logger.error("Authentication failed for Hugging Face API")
                    raise EmbeddingError("Invalid API key", 401, "AUTHENTICATION_ERROR")

                if response.status_code != 200:
                    error_msg = f"API request failed with status {response.status_code}: {response.text}"
                    logger.error(error_msg)
                    raise EmbeddingError(error_msg, response.status_code, "HTTP_ERROR")

                try:
                    data = response.json()
                except ValueError:
                    raise EmbeddingError("Malformed embedding response", 200, "INVALID_RESPONSE")
                embeddings = self._parse_embeddings(data, len(texts))

                if elapsed > 10.0:
                    logger.info(
                        f"Model loading delay detected: {elapsed:.1f}s for {len(texts)} texts "
                        f"(attempt {attempt + 1})"
                    )
                else:
                    logger.debug(f"Generated embeddings for {len(texts)} texts in {elapsed:.2f}s")

                return embeddings

            except httpx.TimeoutException:
                last_error = f"Request timeout after {self.timeout}s"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

                if attempt < self.max_retries - 1:
                    time.sleep(delay)
                    delay = min(delay * 2, 60.0)
                    continue

            except httpx.RequestError as e:
                last_error = f"Network error: {str(e)}"
                logger.error(f"{last_error} on attempt {attempt + 1}/{self.max_retries}")

                if attempt < self.max_retries - 1:
                    time.sleep(delay)
                    delay = min(delay * 2, 60.0)
                    continue

        # All retries exhausted
        error_msg = f"Failed to generate embeddings after {self.max_retries} attempts. Last error: {last_error}"
        logger.error(error_msg)
        raise EmbeddingError(error_msg, last_status, "RETRIES_EXHAUSTED")

    def _parse_embeddings(self, data: object, expected: int) -> List[List[float]]:
        """Check the response is one vector per input text."""
        if isinstance(data, dict) and "error" in data:
            raise EmbeddingError(str(data["error"]), None, "API_ERROR")

        if not isinstance(data, list) or len(data) != expected:
            raise EmbeddingError("Invalid embedding response", None, "INVALID_RESPONSE")

        for vector in data:
            valid, error = validate_embedding(vector, self.dimensions)
            if not valid:
                raise EmbeddingError(f"Invalid embedding response: {error}", None, "INVALID_RESPONSE")

        return data

    def warmup(self) -> bool:
        """
        Warm up the model with a dummy query to avoid cold start delays.

        Returns:
            True if warmup successful, False otherwise
        """
        try:
            logger.info("Warming up embedding model...")
            start_time = time.time()

            self.embed_text("warmup query")

            elapsed = time.time() - start_time
            logger.info(f"Model warmup completed in {elapsed:.1f}s")
            return True

        except EmbeddingError as e:
            logger.error(f"Model warmup failed: {e.message}")
            return False
