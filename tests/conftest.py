import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import requests

from product_search.catalog import CatalogRecord
from product_search.embeddings.cache import EmbeddingCache
from product_search.embeddings.ollama_client import EmbeddingClient

DIM = 4

VECTORS = {
    'red shoes': [1.0, 0.0, 0.0, 0.0],
    'blue hat': [0.0, 1.0, 0.0, 0.0],
    'red hat': [0.7, 0.7, 0.0, 0.0],
    'green socks': [0.0, 0.0, 1.0, 0.0],
    'running shoes': [0.9, 0.1, 0.0, 0.0],
    '': [0.01, 0.01, 0.01, 0.01],
}


class FakeOllama:
    """Stands in for requests.post against /api/embeddings."""

    def __init__(self, vectors, fail=(), delay=0.0):
        self.vectors = dict(vectors)
        self.fail = set(fail)
        self.delay = delay
        self.prompts = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, url, json=None, timeout=None):
        text = json['prompt']
        with self._lock:
            self.prompts.append(text)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self._response(text)
        finally:
            with self._lock:
                self.in_flight -= 1

    def _response(self, text):
        resp = MagicMock()
        if text in self.fail or text not in self.vectors:
            resp.status_code = 500
            resp.raise_for_status.side_effect = requests.HTTPError('500 Server Error', response=resp)
        else:
            resp.status_code = 200
            resp.raise_for_status.return_value = None
            resp.json.return_value = {'embedding': list(self.vectors[text])}
        return resp


def record(id, description, name=None):
    return CatalogRecord(id=id, name=name or f'Product {id}', created_by='tester', description=description)


@pytest.fixture
def fake_ollama():
    fake = FakeOllama(VECTORS)
    with patch('product_search.embeddings.ollama_client.requests.post', side_effect=fake):
        yield fake


@pytest.fixture
def cache(tmp_path):
    return EmbeddingCache(dimension=DIM, path=tmp_path / 'embeddings.json')


@pytest.fixture
def client(cache):
    return EmbeddingClient(cache, base_url='http://ollama.test', model='nomic-embed-text', timeout=5)
