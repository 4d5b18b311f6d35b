"""
Durable text -> vector cache for embeddings.

The in-memory map is the source of truth for the process lifetime. It is
seeded at startup from a local JSON snapshot, or from a remote snapshot of
the same shape when no local one is usable, and written back as a whole by
persist().

Snapshot format: a JSON list of [text, [float, ...]] pairs.
"""
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path

import requests

from product_search.embeddings.vectors import as_vector, is_valid_vector
from product_search.metrics import cache_lookups, cache_persistence_errors, cache_size

logger = logging.getLogger(__name__)

SNAPSHOT_MODE = 0o644


class PersistenceFailure(Exception):
    def __init__(self, operation: str, location: str, reason: str):
        self.operation = operation
        self.location = location
        self.reason = reason
        super().__init__(f"{operation} failed for {location}: {reason}")


@dataclass
class CacheLoadResult:
    source: str  # local, remote, none
    loaded: int = 0
    skipped: int = 0
    errors: list[PersistenceFailure] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.errors)


class EmbeddingCache:
    def __init__(self, dimension: int, path: Path | str | None = None,
                 remote_url: str | None = None, timeout: float = 30):
        self.dimension = dimension
        self.path = Path(path) if path else None
        self.remote_url = remote_url
        self.timeout = timeout
        self._vectors: dict[str, tuple[float, ...]] = {}
        self._lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._dirty = False

    def __len__(self) -> int:
        return len(self._vectors)

    def __contains__(self, text) -> bool:
        return text in self._vectors

    @property
    def dirty(self) -> bool:
        return self._dirty

    def get(self, text: str) -> tuple[float, ...] | None:
        vector = self._vectors.get(text)
        cache_lookups.labels(result='hit' if vector is not None else 'miss').inc()
        return vector

    def put(self, text: str, vector) -> bool:
        """
        Store a vector for text. Invalid vectors are ignored.
        Returns True if the vector was admitted.
        """
        if not isinstance(text, str) or not is_valid_vector(vector, self.dimension):
            logger.debug(f"Rejected vector for {text!r}")
            return False

        value = as_vector(vector)
        with self._lock:
            if self._vectors.get(text) != value:
                self._vectors[text] = value
                self._dirty = True
            size = len(self._vectors)
        cache_size.set(size)
        return True

    def snapshot(self) -> list[tuple[str, tuple[float, ...]]]:
        with self._lock:
            return list(self._vectors.items())

    # --- Durable storage ---

    def load(self) -> CacheLoadResult:
        """
        Populate the cache from the local snapshot, falling back to the
        remote snapshot. Never raises: failures are reported in the result.
        """
        errors = []

        if self.path is not None and self.path.exists():
            try:
                entries = self._read_local()
            except PersistenceFailure as e:
                cache_persistence_errors.labels(operation='load_local').inc()
                logger.error(f"Could not read local embedding cache: {e}")
                errors.append(e)
            else:
                loaded, skipped = self._admit(entries)
                self._dirty = False
                logger.info(f"Loaded {loaded} cached embeddings from {self.path} ({skipped} skipped)")
                return CacheLoadResult(source='local', loaded=loaded, skipped=skipped, errors=errors)

        if self.remote_url:
            try:
                entries = self._read_remote()
            except PersistenceFailure as e:
                cache_persistence_errors.labels(operation='load_remote').inc()
                logger.error(f"Could not read remote embedding cache: {e}")
                errors.append(e)
            else:
                loaded, skipped = self._admit(entries)
                logger.info(f"Seeded {loaded} embeddings from {self.remote_url} ({skipped} skipped)")
                # Save locally so later starts don't depend on the remote copy
                if self.path is not None and not self.persist():
                    errors.append(PersistenceFailure('persist', str(self.path), 'seed snapshot not saved'))
                return CacheLoadResult(source='remote', loaded=loaded, skipped=skipped, errors=errors)

        logger.info("No embedding cache snapshot available, starting empty")
        return CacheLoadResult(source='none', errors=errors)

    def persist(self) -> bool:
        """
        Overwrite the local snapshot with the full map.
        Returns False (and logs) on failure; the cache keeps working in memory.
        """
        if self.path is None:
            logger.warning("No CACHE_PATH configured, embedding cache kept in memory only")
            return False

        with self._persist_lock:
            with self._lock:
                entries = list(self._vectors.items())
                self._dirty = False

            try:
                data = json.dumps([[text, list(vector)] for text, vector in entries])
                _atomic_write_text(self.path, data)
            except (OSError, TypeError, ValueError) as e:
                with self._lock:
                    self._dirty = True
                cache_persistence_errors.labels(operation='persist').inc()
                logger.error(f"Error saving embedding cache to {self.path}: {e}")
                return False

        logger.info(f"Saved {len(entries)} embeddings to {self.path}")
        return True

    def _read_local(self) -> list:
        try:
            data = json.loads(self.path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise PersistenceFailure('load_local', str(self.path), str(e)) from e
        if not isinstance(data, list):
            raise PersistenceFailure('load_local', str(self.path), 'snapshot is not a list')
        return data

    def _read_remote(self) -> list:
        try:
            resp = requests.get(self.remote_url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise PersistenceFailure('load_remote', self.remote_url, str(e)) from e
        if not isinstance(data, list):
            raise PersistenceFailure('load_remote', self.remote_url, 'snapshot is not a list')
        return data

    def _admit(self, entries: list) -> tuple[int, int]:
        loaded = 0
        skipped = 0
        for entry in entries:
            if not isinstance(entry, (list, tuple)) or len(entry) != 2:
                logger.warning(f"Skipping malformed cache entry: {str(entry)[:80]}")
                skipped += 1
                continue
            text, vector = entry
            if not self.put(text, vector):
                logger.warning(f"Skipping cache entry with invalid vector for {str(text)[:80]!r}")
                skipped += 1
                continue
            loaded += 1
        return loaded, skipped


def _atomic_write_text(dst: Path, data: str):
    """Write to disk atomically. The temp file is removed if anything fails."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile('w', encoding='utf-8', delete=False,
                                      dir=dst.parent, suffix='.tmp')
    tmp_path = Path(tmp.name)
    try:
        with tmp:
            tmp.write(data)
        # NamedTemporaryFile creates 0600
        os.chmod(tmp_path, SNAPSHOT_MODE)
        tmp_path.replace(dst)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
