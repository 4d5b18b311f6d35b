"""
Startup preload: make sure every catalog description has a cached embedding.

Runs once per process. Missing descriptions are fetched through a bounded
thread pool so Ollama never sees more than max_workers requests at a time,
then the cache is persisted in a single write.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable

from product_search.catalog import CatalogRecord
from product_search.embeddings.cache import CacheLoadResult, EmbeddingCache
from product_search.embeddings.ollama_client import EmbeddingClient, EmbeddingFailure
from product_search.metrics import preload_duration, preload_failed, preload_fetched

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


@dataclass
class PreloadReport:
    catalog: list[CatalogRecord]
    cache_load: CacheLoadResult
    missing: int = 0
    fetched: int = 0
    failed: list[str] = field(default_factory=list)
    persisted: bool = False

    @property
    def degraded(self) -> bool:
        return bool(self.failed) or self.cache_load.degraded

    def summary(self) -> dict:
        return {
            'catalog_size': len(self.catalog),
            'cache_source': self.cache_load.source,
            'missing': self.missing,
            'fetched': self.fetched,
            'failed': len(self.failed),
            'persisted': self.persisted,
            'degraded': self.degraded,
        }


def missing_texts(catalog: list[CatalogRecord], cache: EmbeddingCache) -> list[str]:
    """Distinct descriptions with no cached vector, in catalog order."""
    seen = set()
    missing = []
    for record in catalog:
        text = record.description or ''
        if text in seen:
            continue
        seen.add(text)
        if text not in cache:
            missing.append(text)
    return missing


class Preloader:
    def __init__(self, cache: EmbeddingCache, client: EmbeddingClient,
                 catalog_loader: Callable[[], list[CatalogRecord]],
                 max_workers: int = DEFAULT_MAX_WORKERS):
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.cache = cache
        self.client = client
        self.catalog_loader = catalog_loader
        self.max_workers = max_workers
        self._lock = threading.Lock()
        self._report: PreloadReport | None = None

    @property
    def done(self) -> bool:
        return self._report is not None

    def run(self) -> PreloadReport:
        """
        Load the cache, fetch embeddings for uncached catalog descriptions and
        persist once. Later calls return the first completed report.

        Raises CatalogLoadFailure if the catalog can't be loaded; the preload
        is then not marked done and may be retried.
        """
        with self._lock:
            if self._report is not None:
                return self._report

            start = time.time()
            cache_load = self.cache.load()
            catalog = self.catalog_loader()

            report = PreloadReport(catalog=catalog, cache_load=cache_load)
            texts = missing_texts(catalog, self.cache)
            report.missing = len(texts)

            if texts:
                logger.info(f"Fetching {len(texts)} missing embeddings "
                            f"({self.max_workers} workers)")
                self._fetch_all(texts, report)
            else:
                logger.info("All catalog embeddings already cached")

            # One batched write for everything admitted above
            if self.cache.dirty:
                report.persisted = self.cache.persist()

            elapsed = time.time() - start
            preload_duration.observe(elapsed)
            logger.info(
                f"Preload done in {elapsed:.1f}s: {report.fetched} fetched, "
                f"{len(report.failed)} failed, {len(catalog)} products"
            )
            self._report = report
            return report

    def _fetch_all(self, texts: list[str], report: PreloadReport):
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self.client.fetch_embedding, text): text for text in texts}
            for future in as_completed(futures):
                text = futures[future]
                try:
                    future.result()
                except EmbeddingFailure as e:
                    preload_failed.inc()
                    logger.warning(f"Skipping product embedding: {e}")
                    report.failed.append(text)
                    continue
                except Exception:
                    preload_failed.inc()
                    logger.exception(f"Unexpected error embedding {text[:60]!r}")
                    report.failed.append(text)
                    continue
                preload_fetched.inc()
                report.fetched += 1

        # as_completed order is arbitrary
        order = {text: i for i, text in enumerate(texts)}
        report.failed.sort(key=order.__getitem__)
