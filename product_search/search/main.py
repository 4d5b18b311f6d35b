"""
Product Search service: FastAPI app.

Start with:
    uvicorn product_search.search.main:app --port 8000 --reload

On startup the embedding cache is loaded and every catalog description is
embedded (see preload.py). If the catalog can't be loaded the service still
starts, but /search answers 503 until it is restarted with a working catalog.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from prometheus_client import make_asgi_app
from starlette.concurrency import run_in_threadpool

from product_search import config
from product_search.catalog import CatalogLoadFailure, load_catalog
from product_search.embeddings.cache import EmbeddingCache
from product_search.embeddings.ollama_client import EmbeddingClient, EmbeddingFailure
from product_search.metrics import search_errors
from product_search.search.engine import SearchEngine, ValidationError
from product_search.search.preload import Preloader

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def build_services(cache: EmbeddingCache | None = None, catalog_loader=None):
    """Wire cache, client and preloader from config. Arguments override for tests."""
    if cache is None:
        cache = EmbeddingCache(
            dimension=config.EMBEDDING_DIM,
            path=config.CACHE_PATH,
            remote_url=config.REMOTE_CACHE_URL,
        )
    client = EmbeddingClient(
        cache,
        base_url=config.OLLAMA_BASE_URL,
        model=config.EMBED_MODEL,
        timeout=config.EMBED_TIMEOUT,
    )
    if catalog_loader is None:
        def catalog_loader():
            return load_catalog(config.CATALOG_SOURCE)
    preloader = Preloader(cache, client, catalog_loader, max_workers=config.PRELOAD_MAX_WORKERS)
    return cache, client, preloader


@asynccontextmanager
async def lifespan(app: FastAPI):
    cache, client, preloader = build_services(
        cache=getattr(app.state, 'cache', None),
        catalog_loader=getattr(app.state, 'catalog_loader', None),
    )
    app.state.cache = cache
    app.state.preloader = preloader
    app.state.engine = None
    app.state.catalog_error = None

    try:
        report = await run_in_threadpool(preloader.run)
    except CatalogLoadFailure as e:
        logger.error(f"Catalog could not be loaded, search disabled: {e}")
        app.state.catalog_error = str(e)
    else:
        app.state.engine = SearchEngine(cache, client, report.catalog, top_k=config.SEARCH_TOP_K)
        logger.info(f"Product search ready: {report.summary()}")

    yield

    # Query embeddings fetched during searches
    if cache.dirty:
        await run_in_threadpool(cache.persist)
    logger.info("Product search shutting down")


app = FastAPI(title='Product Search', version='0.1.0', lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=['*'],
    allow_headers=['*'],
)
app.mount('/metrics', make_asgi_app())


class SearchRequest(BaseModel):
    query: str | None = None


class SearchResultModel(BaseModel):
    id: str
    name: str
    createdBy: str
    description: str
    similarity: float


@app.get('/health')
def health():
    return {'status': 'ok', 'service': 'product-search'}


@app.get('/')
def root(request: Request):
    state = request.app.state
    engine = getattr(state, 'engine', None)
    preloader = getattr(state, 'preloader', None)
    cache = getattr(state, 'cache', None)
    return {
        'service': 'product-search',
        'catalog_source': config.CATALOG_SOURCE,
        'cache_path': str(config.CACHE_PATH),
        'catalog_loaded': engine is not None,
        'catalog_size': len(engine.catalog) if engine is not None else 0,
        'cache_size': len(cache) if cache is not None else 0,
        'preload_done': bool(preloader and preloader.done),
        'catalog_error': getattr(state, 'catalog_error', None),
    }


@app.post('/search', response_model=list[SearchResultModel])
def search(req: SearchRequest, request: Request):
    """
    Rank catalog products by semantic similarity to the query.

    - 200: up to 5 results, best match first
    - 400: missing or empty query
    - 502: embedding provider failed for the query
    - 503: catalog not loaded
    - 500: unexpected error
    """
    engine = getattr(request.app.state, 'engine', None)
    if engine is None:
        search_errors.labels(error_type='catalog').inc()
        raise HTTPException(status_code=503, detail={
            'error': 'Catalog not loaded',
            'details': getattr(request.app.state, 'catalog_error', None) or 'preload has not completed',
        })

    try:
        results = engine.search(req.query)
        return [r.to_dict() for r in results]

    except ValidationError as e:
        search_errors.labels(error_type='validation').inc()
        raise HTTPException(status_code=400, detail={
            'error': 'Invalid query',
            'details': str(e),
        })

    except EmbeddingFailure as e:
        search_errors.labels(error_type='embedding').inc()
        logger.error(f"Search failed: {e}")
        raise HTTPException(status_code=502, detail={
            'error': 'Search failed',
            'details': f'Embedding provider error: {e.reason}',
        })

    except Exception as e:
        search_errors.labels(error_type='internal').inc()
        logger.exception(f"Unexpected error searching {req.query!r}")
        raise HTTPException(status_code=500, detail={
            'error': 'Internal server error',
            'details': str(e),
        })
