"""Shared fixtures: sample corpus, in-memory Redis, search config."""

import json

import pytest

from docsearch.common.config import SearchConfig
from docsearch.models import parse_documents

from tests.fakes import SAMPLE_DOCUMENTS, VERSIONED_INDEX, FakeRedis


@pytest.fixture
def sample_payload():
    return json.loads(json.dumps(SAMPLE_DOCUMENTS))


@pytest.fixture
def sample_documents(sample_payload):
    return parse_documents(sample_payload)


@pytest.fixture
def versioned_index():
    return json.loads(json.dumps(VERSIONED_INDEX))


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def config():
    return SearchConfig(
        docsearch_enhancement_delay=0,
        docsearch_ready_message_ttl=60,
        docsearch_default_version="v1.0.0",
    )
