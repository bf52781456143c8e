"""Tests for the keyword index."""

import pytest

from docsearch.keyword.index import KeywordIndex, bounded_edit_distance, tokenize


def build_index(**kwargs) -> KeywordIndex:
    index = KeywordIndex(**kwargs)
    index.add("install", {"title": "Getting Started", "category": "Guides", "content": "Install the CLI and run init"})
    index.add("config-title", {"title": "Configuration", "category": "Reference", "content": "Options and defaults"})
    index.add("config-content", {"title": "Overview", "category": "Guides", "content": "The configuration file lives here"})
    return index


def test_tokenize():
    """Terms are split on whitespace and punctuation, lower-cased and length-filtered."""
    assert tokenize("Install the CLI, run `init`!") == ["install", "the", "cli", "run", "init"]
    assert tokenize("a b cd") == ["cd"]
    assert tokenize("") == []
    assert tokenize("snake_case-word") == ["snake", "case", "word"]


def test_bounded_edit_distance():
    assert bounded_edit_distance("kitten", "sitting", 3) == 3
    assert bounded_edit_distance("kitten", "sitting", 2) is None
    assert bounded_edit_distance("same", "same", 0) == 0
    assert bounded_edit_distance("ab", "abcdef", 2) is None


def test_single_chunk_scenario():
    """A single matching chunk is returned with a positive score."""
    index = KeywordIndex()
    index.add("getting-started-chunk-0", {"title": "", "category": "", "content": "Install the CLI and run init"})

    hits = index.search("install cli")

    assert [hit.id for hit in hits] == ["getting-started-chunk-0"]
    assert hits[0].score > 0
    assert set(hits[0].terms) == {"install", "cli"}


def test_query_terms_combine_with_and():
    index = build_index()
    assert [hit.id for hit in index.search("install cli")] == ["install"]
    assert index.search("install configuration") == []


def test_short_terms_are_ignored():
    index = build_index()
    assert [hit.id for hit in index.search("a cli")] == ["install"]
    assert index.search("a") == []
    assert index.search("   ") == []


def test_empty_index_returns_nothing():
    assert KeywordIndex().search("anything") == []


def test_title_outranks_content():
    """Field boosts weigh a title match above a content match."""
    hits = build_index().search("configuration", fuzzy=0, prefix=False)
    assert [hit.id for hit in hits] == ["config-title", "config-content"]
    assert hits[0].match["configuration"] == ["title"]


def test_field_boost_override():
    hits = build_index().search("configuration", fuzzy=0, prefix=False, boost={"title": 0.0, "content": 5.0})
    assert hits[0].id == "config-content"


def test_fuzzy_matching():
    index = build_index()

    hits = index.search("instull")
    assert [hit.id for hit in hits] == ["install"]
    assert hits[0].terms == ["install"]

    assert index.search("instull", fuzzy=0) == []


def test_fuzzy_distance_bounds_matched_lengths():
    index = KeywordIndex(prefix=False)
    index.add("exact", {"content": "plugin"})
    index.add("longer", {"content": "plugins"})
    index.add("shorter", {"content": "plug"})
    index.add("doubled", {"content": "plugging"})

    assert {h.id for h in index.search("plugin", fuzzy=1)} == {"exact", "longer"}
    assert {h.id for h in index.search("plugin", fuzzy=2)} == {"exact", "longer", "shorter", "doubled"}


def test_removed_terms_stop_matching_fuzzily():
    index = KeywordIndex(prefix=False)
    index.add("a", {"content": "deploy"})
    index.add("b", {"content": "deploys"})

    index.remove("b")
    assert [h.id for h in index.search("deploys", fuzzy=1)] == ["a"]

    index.remove("a")
    assert index.search("deploys", fuzzy=1) == []
    assert index._terms_by_length == {}

    index.add("c", {"content": "deployed"})
    assert [h.id for h in index.search("deploys", fuzzy=2)] == ["c"]


def test_prefix_matching():
    index = build_index()

    hits = index.search("confi", fuzzy=0)
    assert {hit.id for hit in hits} == {"config-title", "config-content"}

    assert index.search("confi", fuzzy=0, prefix=False) == []


def test_exact_match_beats_fuzzy_match():
    index = KeywordIndex()
    index.add("exact", {"content": "cache"})
    index.add("fuzzy", {"content": "cachy"})

    hits = index.search("cache")

    assert [hit.id for hit in hits] == ["exact", "fuzzy"]
    assert hits[0].score > hits[1].score


def test_duplicate_id_rejected():
    index = build_index()
    with pytest.raises(ValueError):
        index.add("install", {"content": "again"})


def test_remove_item():
    index = build_index()
    vocabulary = index.vocabulary_size

    assert index.remove("install") is True
    assert "install" not in index
    assert index.search("install") == []
    assert index.vocabulary_size < vocabulary
    assert index.remove("install") is False


def test_clear():
    index = build_index()
    index.clear()
    assert len(index) == 0
    assert index.vocabulary_size == 0
    assert index.search("configuration") == []


def test_rebuild_is_idempotent():
    """Two indexes built from the same items answer identically."""
    first = build_index()
    second = build_index()

    for query in ("configuration", "install cli", "confi", "guides"):
        assert [(h.id, h.score) for h in first.search(query)] == [(h.id, h.score) for h in second.search(query)]


def test_auto_suggest():
    suggestions = build_index().auto_suggest("confi")

    assert suggestions
    assert suggestions[0].suggestion == "configuration"
    assert suggestions[0].terms == ["configuration"]


def test_auto_suggest_limit():
    index = KeywordIndex()
    index.add("a", {"content": "deploy deployment"})
    index.add("b", {"content": "deployer"})
    index.add("c", {"content": "deploying"})

    assert len(index.auto_suggest("deplo", limit=2)) == 2
