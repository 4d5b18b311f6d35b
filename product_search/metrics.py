from prometheus_client import Counter, Histogram, Gauge

# Embedding provider
embedding_latency = Histogram(
    'embedding_request_latency_seconds',
    'Embedding provider request latency',
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10)
)

embedding_errors = Counter(
    'embedding_errors_total',
    'Embedding provider failures',
    ['error_type']  # timeout, connection, http, invalid_body, invalid_vector
)

# Embedding cache
cache_lookups = Counter(
    'embedding_cache_lookups_total',
    'Embedding cache lookups',
    ['result']  # hit, miss
)

cache_size = Gauge(
    'embedding_cache_entries',
    'Number of vectors held in the embedding cache'
)

cache_persistence_errors = Counter(
    'embedding_cache_persistence_errors_total',
    'Embedding cache snapshot read/write failures',
    ['operation']  # load_local, load_remote, persist
)

# Preload
preload_duration = Histogram(
    'preload_duration_seconds',
    'Startup preload duration',
    buckets=(1, 5, 10, 30, 60, 300)
)

preload_fetched = Counter(
    'preload_embeddings_fetched_total',
    'Catalog embeddings fetched during preload'
)

preload_failed = Counter(
    'preload_embeddings_failed_total',
    'Catalog embeddings that could not be fetched during preload'
)

# Search
search_latency = Histogram(
    'search_latency_seconds',
    'Product search latency',
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 5, 10)
)

search_errors = Counter(
    'search_errors_total',
    'Product search failures',
    ['error_type']  # validation, embedding, catalog, internal
)
