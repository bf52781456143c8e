"""Tests for fetching the corpus over HTTP."""

import httpx
import pytest

from docsearch.exceptions import CorpusFormatError, CorpusUnavailableError
from docsearch.retrievers.corpus_source import CorpusSource
from tests.fakes import SAMPLE_DOCUMENTS, VERSIONED_INDEX, json_transport

BASE_URL = "https://docs.example.com/assets"


def make_source(routes, calls=None):
    client = httpx.AsyncClient(transport=json_transport(routes, calls))
    return CorpusSource(BASE_URL, http_client=client)


@pytest.mark.asyncio
async def test_enhanced_index_preferred():
    calls = []
    source = make_source(
        {"enhanced-search-index.json": SAMPLE_DOCUMENTS, "search-index.json": []},
        calls,
    )

    documents = await source.fetch_documents()

    assert len(documents) == len(SAMPLE_DOCUMENTS)
    assert source.last_resource == "enhanced-search-index.json"
    assert calls == ["/assets/enhanced-search-index.json"]
    await source.http_client.aclose()


@pytest.mark.asyncio
async def test_falls_back_to_standard_index():
    calls = []
    source = make_source({"/search-index.json": SAMPLE_DOCUMENTS}, calls)

    documents = await source.fetch_documents()

    assert documents[0].slug == "getting-started"
    assert source.last_resource == "search-index.json"
    assert calls == ["/assets/enhanced-search-index.json", "/assets/search-index.json"]
    await source.http_client.aclose()


@pytest.mark.asyncio
async def test_malformed_enhanced_index_falls_back():
    source = make_source({
        "enhanced-search-index.json": "{truncated",
        "/search-index.json": SAMPLE_DOCUMENTS,
    })

    documents = await source.fetch_documents()

    assert len(documents) == len(SAMPLE_DOCUMENTS)
    assert source.last_resource == "search-index.json"
    await source.http_client.aclose()


@pytest.mark.asyncio
async def test_both_indexes_unavailable():
    source = make_source({"enhanced-search-index.json": 500, "/search-index.json": 503})

    with pytest.raises(CorpusUnavailableError):
        await source.fetch_documents()
    assert source.last_resource is None
    await source.http_client.aclose()


@pytest.mark.asyncio
async def test_fetch_versioned_index():
    source = make_source({"docs-index-versioned.json": VERSIONED_INDEX})

    assert await source.fetch_versioned_index() == VERSIONED_INDEX
    await source.http_client.aclose()


@pytest.mark.asyncio
async def test_versioned_index_errors():
    source = make_source({"docs-index-versioned.json": "not json"})
    with pytest.raises(CorpusFormatError):
        await source.fetch_versioned_index()
    await source.http_client.aclose()

    source = make_source({})
    with pytest.raises(httpx.HTTPStatusError):
        await source.fetch_versioned_index()
    await source.http_client.aclose()


def test_resource_url():
    source = CorpusSource(BASE_URL, http_client=httpx.AsyncClient())

    assert source.resource_url("search-index.json") == "https://docs.example.com/assets/search-index.json"


@pytest.mark.asyncio
async def test_close_leaves_injected_client_open():
    client = httpx.AsyncClient(transport=json_transport({}))
    source = CorpusSource(BASE_URL, http_client=client)

    await source.close()

    assert not client.is_closed
    await client.aclose()
