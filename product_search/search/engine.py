"""
Search engine core logic. Framework-agnostic.

Ranks the catalog against a query by cosine similarity of cached embeddings.
Only the query text may trigger a call to Ollama; catalog descriptions are
read from the cache and skipped when absent.
"""
import logging
import math
import time
from dataclasses import dataclass

from product_search.catalog import CatalogRecord
from product_search.embeddings.cache import EmbeddingCache
from product_search.embeddings.ollama_client import EmbeddingClient, EmbeddingFailure
from product_search.embeddings.vectors import is_valid_vector
from product_search.metrics import search_latency
from product_search.search.similarity import cosine_similarity

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class ValidationError(Exception):
    pass


@dataclass(frozen=True)
class SearchResult:
    id: str
    name: str
    created_by: str
    description: str
    similarity: float

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'createdBy': self.created_by,
            'description': self.description,
            'similarity': self.similarity,
        }


class SearchEngine:
    def __init__(self, cache: EmbeddingCache, client: EmbeddingClient,
                 catalog: list[CatalogRecord], top_k: int = DEFAULT_TOP_K):
        self.cache = cache
        self.client = client
        self.catalog = tuple(catalog)
        self.top_k = top_k

    def search(self, query) -> list[SearchResult]:
        """
        Return up to top_k products ranked by similarity to query.

        Raises:
            ValidationError: query is not a non-empty string
            EmbeddingFailure: query vector could not be obtained
        """
        if not isinstance(query, str) or not query.strip():
            raise ValidationError('Valid query string is required.')

        start = time.time()
        query_vector = self.client.fetch_embedding(query)
        if not is_valid_vector(query_vector, self.cache.dimension):
            raise EmbeddingFailure(query, 'query embedding is invalid', 'invalid_vector')

        results = self.rank(query_vector)

        elapsed = time.time() - start
        search_latency.observe(elapsed)
        logger.info(f"Search {query[:60]!r}: {len(results)} results ({elapsed:.2f}s)")
        return results

    def rank(self, query_vector) -> list[SearchResult]:
        scored = []
        for record in self.catalog:
            vector = self.cache.get(record.description or '')
            if vector is None:
                continue

            similarity = cosine_similarity(query_vector, vector)
            if not math.isfinite(similarity):
                logger.warning(f"Discarding non-finite similarity for product {record.id}")
                continue

            scored.append(SearchResult(
                id=record.id,
                name=record.name,
                created_by=record.created_by,
                description=record.description,
                similarity=similarity,
            ))

        # sorted() is stable: ties keep catalog order
        scored = sorted(scored, key=lambda r: r.similarity, reverse=True)
        return scored[:self.top_k]
