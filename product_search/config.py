import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / 'data'

# Embedding provider (Ollama)
OLLAMA_BASE_URL = os.getenv('OLLAMA_BASE_URL', 'http://localhost:11434')
EMBED_MODEL = os.getenv('EMBED_MODEL', 'nomic-embed-text')
EMBEDDING_DIM = int(os.getenv('EMBEDDING_DIM', 768))
EMBED_TIMEOUT = float(os.getenv('EMBED_TIMEOUT', 10))

# Preload
PRELOAD_MAX_WORKERS = int(os.getenv('PRELOAD_MAX_WORKERS', 4))

# Catalog: local CSV path or http(s) URL
CATALOG_SOURCE = os.getenv('CATALOG_SOURCE', str(DATA_DIR / 'products.csv'))

# Embedding cache snapshot
CACHE_PATH = Path(os.getenv('CACHE_PATH', str(DATA_DIR / 'embeddings.json')))
# Optional seed for a fresh instance with no local snapshot
REMOTE_CACHE_URL = os.getenv('REMOTE_CACHE_URL')

# Search
SEARCH_TOP_K = int(os.getenv('SEARCH_TOP_K', 5))

# HTTP
CORS_ORIGINS = [o.strip() for o in os.getenv('CORS_ORIGINS', '*').split(',') if o.strip()]

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
