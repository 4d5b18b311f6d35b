"""
Ollama embeddings API client.

One request per text, no retries. Every response is validated before it is
allowed into the cache.
"""
import logging
import time

import requests

from product_search.embeddings.cache import EmbeddingCache
from product_search.embeddings.vectors import as_vector, is_valid_vector
from product_search.metrics import embedding_errors, embedding_latency

logger = logging.getLogger(__name__)


class EmbeddingFailure(Exception):
    def __init__(self, text: str, reason: str, error_type: str):
        self.text = text
        self.reason = reason
        self.error_type = error_type  # timeout, connection, http, invalid_body, invalid_vector
        super().__init__(f"Embedding failed for {text[:60]!r}: {reason}")


def request_embedding(base_url: str, model: str, text: str, dimension: int,
                      timeout: float = 10) -> tuple[float, ...]:
    """
    Call the Ollama embeddings API and return the validated vector.
    Raises EmbeddingFailure on transport errors, non-2xx status or a bad body.
    """
    url = f"{base_url}/api/embeddings"
    payload = {
        'model': model,
        'prompt': text,
    }

    start = time.time()
    try:
        resp = requests.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
    except requests.Timeout as e:
        raise _failure(text, f"timed out after {timeout}s", 'timeout') from e
    except requests.HTTPError as e:
        raise _failure(text, f"Ollama API error: {e.response.status_code}", 'http') from e
    except requests.RequestException as e:
        raise _failure(text, f"Ollama unreachable: {e}", 'connection') from e
    elapsed = time.time() - start
    embedding_latency.observe(elapsed)

    try:
        data = resp.json()
    except ValueError as e:
        raise _failure(text, 'response is not JSON', 'invalid_body') from e

    if not isinstance(data, dict) or 'embedding' not in data:
        raise _failure(text, 'no embedding returned from Ollama', 'invalid_body')

    embedding = data['embedding']
    if not is_valid_vector(embedding, dimension):
        size = len(embedding) if isinstance(embedding, list) else type(embedding).__name__
        raise _failure(text, f"invalid embedding ({size}, expected {dimension} finite numbers)",
                       'invalid_vector')

    logger.debug(f"Embedding for {text[:40]!r} in {elapsed:.2f}s")
    return as_vector(embedding)


def _failure(text: str, reason: str, error_type: str) -> EmbeddingFailure:
    embedding_errors.labels(error_type=error_type).inc()
    return EmbeddingFailure(text, reason, error_type)


class EmbeddingClient:
    """Cache-first access to the embedding provider."""

    def __init__(self, cache: EmbeddingCache, base_url: str, model: str,
                 timeout: float = 10):
        self.cache = cache
        self.base_url = base_url
        self.model = model
        self.timeout = timeout

    @property
    def dimension(self) -> int:
        return self.cache.dimension

    def fetch_embedding(self, text: str) -> tuple[float, ...]:
        """
        Return the vector for text, from the cache if present, otherwise from
        Ollama. A fetched vector is put into the cache but not persisted;
        callers batch persistence.
        """
        cached = self.cache.get(text)
        if cached is not None:
            return cached

        vector = request_embedding(self.base_url, self.model, text, self.dimension, self.timeout)
        self.cache.put(text, vector)
        return vector
