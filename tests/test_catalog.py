from unittest.mock import MagicMock, patch

import pytest
import requests

from product_search.catalog import CatalogLoadFailure, CatalogRecord, load_catalog, parse_catalog

CSV = (
    "PRODUCT_ID,NAME,CREATEDBY,DESCRIPTION\n"
    "1,Trail Runner,Anna,red shoes\n"
    "\n"
    "2,Wool Beanie,Ben,blue hat\n"
    "3,Mystery Box,Cara,\n"
)


def test_parse_catalog_keeps_order():
    records = parse_catalog(CSV)
    assert [r.id for r in records] == ['1', '2', '3']
    assert records[0] == CatalogRecord(id='1', name='Trail Runner', created_by='Anna', description='red shoes')


def test_missing_description_becomes_empty_string():
    records = parse_catalog("PRODUCT_ID,NAME,CREATEDBY,DESCRIPTION\n4,Odd Row,Dan\n")
    assert records[0].description == ''


def test_missing_columns_fail():
    with pytest.raises(CatalogLoadFailure, match='DESCRIPTION'):
        parse_catalog("PRODUCT_ID,NAME,CREATEDBY\n1,a,b\n")


def test_empty_text_is_empty_catalog():
    assert parse_catalog('') == []


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / 'products.csv'
    path.write_text(CSV, encoding='utf-8')
    records = load_catalog(str(path))
    assert len(records) == 3


def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(CatalogLoadFailure):
        load_catalog(str(tmp_path / 'nope.csv'))


def test_load_catalog_from_url():
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    resp.text = CSV
    with patch('product_search.catalog.requests.get', return_value=resp) as mock_get:
        records = load_catalog('https://shop.test/data/products.csv', timeout=7)
    mock_get.assert_called_once_with('https://shop.test/data/products.csv', timeout=7)
    assert [r.description for r in records] == ['red shoes', 'blue hat', '']


def test_load_catalog_url_failure():
    with patch('product_search.catalog.requests.get', side_effect=requests.ConnectionError('down')):
        with pytest.raises(CatalogLoadFailure, match='download'):
            load_catalog('https://shop.test/data/products.csv')
