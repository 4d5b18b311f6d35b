"""
Warm the embedding cache without starting the API.
Run before deploying, or after the catalog changes:
    python -m scripts.warm_cache

Fetches embeddings for every uncached catalog description and saves the
cache to CACHE_PATH. Safe to re-run: cached descriptions are not fetched again.
"""
import logging
import sys

from product_search import config
from product_search.catalog import CatalogLoadFailure
from product_search.search.main import build_services


def warm_cache() -> int:
    logging.basicConfig(level=config.LOG_LEVEL)
    cache, _, preloader = build_services()

    try:
        report = preloader.run()
    except CatalogLoadFailure as e:
        print(f"  FAIL catalog: {e}")
        return 1

    print(f"  Catalog:   {len(report.catalog)} products ({config.CATALOG_SOURCE})")
    print(f"  Cache:     {len(cache)} embeddings (loaded from {report.cache_load.source})")
    print(f"  Fetched:   {report.fetched}/{report.missing}")
    for text in report.failed:
        print(f"  FAIL {text[:70]!r}")
    if report.fetched and not report.persisted:
        print(f"  WARN cache not saved to {config.CACHE_PATH}")
        return 1
    print("Cache warm." if not report.failed else "Cache partially warm.")
    return 0


if __name__ == "__main__":
    sys.exit(warm_cache())
