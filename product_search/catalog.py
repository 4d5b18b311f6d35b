"""
Product catalog loader.

Reads the products CSV (local path or http/https URL) into an ordered list
of CatalogRecord. Expected header: PRODUCT_ID,NAME,CREATEDBY,DESCRIPTION.
"""
import csv
import logging
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('PRODUCT_ID', 'NAME', 'CREATEDBY', 'DESCRIPTION')


class CatalogLoadFailure(Exception):
    pass


@dataclass(frozen=True)
class CatalogRecord:
    id: str
    name: str
    created_by: str
    description: str


def _is_url(source: str) -> bool:
    return urlparse(source).scheme in ('http', 'https')


def _read_source(source: str, timeout: float) -> str:
    if _is_url(source):
        try:
            resp = requests.get(source, timeout=timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise CatalogLoadFailure(f"Failed to download catalog from {source}: {e}") from e
        return resp.text

    try:
        return Path(source).read_text(encoding='utf-8-sig')
    except OSError as e:
        raise CatalogLoadFailure(f"Failed to read catalog file {source}: {e}") from e


def parse_catalog(text: str) -> list[CatalogRecord]:
    """Parse catalog CSV text. Blank lines are skipped; missing cells become ''."""
    reader = csv.DictReader(StringIO(text))
    if reader.fieldnames is None:
        return []

    headers = [h.strip() for h in reader.fieldnames]
    missing = [c for c in REQUIRED_COLUMNS if c not in headers]
    if missing:
        raise CatalogLoadFailure(f"Catalog is missing columns: {', '.join(missing)}")
    reader.fieldnames = headers

    records = []
    for row in reader:
        if not any((v or '').strip() for k, v in row.items() if k is not None):
            continue
        records.append(CatalogRecord(
            id=row.get('PRODUCT_ID') or '',
            name=row.get('NAME') or '',
            created_by=row.get('CREATEDBY') or '',
            description=row.get('DESCRIPTION') or '',
        ))
    return records


def load_catalog(source: str, timeout: float = 30) -> list[CatalogRecord]:
    """
    Load the catalog from a CSV path or URL.
    Raises CatalogLoadFailure if the source can't be read or parsed.
    """
    try:
        records = parse_catalog(_read_source(source, timeout))
    except csv.Error as e:
        raise CatalogLoadFailure(f"Malformed catalog CSV at {source}: {e}") from e

    logger.info(f"Loaded {len(records)} products from {source}")
    return records
