"""
Tests for the duckduckresearch.search module.

This module tests:
- Result annotation heuristics (content type, language, topics)
- Result processing and metadata
- perform_search against a mocked ddgs client, including retries
"""

import json

import pytest
from unittest.mock import MagicMock, patch

from duckduckresearch.config import ResearchConfig
from duckduckresearch.exceptions import SearchError
from duckduckresearch.schemas import SafeSearch, SearchArgs, SearchOptions
from duckduckresearch.search import (
    detect_content_type,
    detect_language,
    detect_topics,
    perform_search,
    process_search_results,
)


RAW_RESULTS = [
    {
        "title": "Python &amp; asyncio docs",
        "href": "https://docs.python.org/3/library/asyncio.html",
        "body": "  asyncio is a library to write concurrent code.  ",
    },
    {
        "title": "GitHub - python/cpython",
        "href": "https://github.com/python/cpython",
        "body": "The Python programming language",
    },
    {
        "title": "Python on Twitter",
        "href": "https://twitter.com/thepsf",
        "body": "News from the PSF",
    },
    {
        "title": "Real Python tutorial",
        "href": "https://realpython.com/async-io-python/",
        "body": "A walkthrough",
    },
]


def mock_ddgs(results=None, side_effect=None):
    """Patch the DDGS class used by the search module."""
    ddgs_cls = MagicMock()
    client = ddgs_cls.return_value.__enter__.return_value
    if side_effect is not None:
        client.text.side_effect = side_effect
    else:
        client.text.return_value = results if results is not None else RAW_RESULTS
    return patch("duckduckresearch.search.DDGS", ddgs_cls), client


# =============================================================================
# Heuristic Tests
# =============================================================================

class TestHeuristics:
    """Tests for detect_content_type, detect_language and detect_topics."""

    @pytest.mark.parametrize("url, expected", [
        ("https://docs.python.org/3/", "documentation"),
        ("https://example.com/docs/intro", "documentation"),
        ("https://example.com/documentation/api", "documentation"),
        ("https://github.com/python/cpython", "documentation"),
        ("https://stackoverflow.com/questions/1", "documentation"),
        ("https://twitter.com/user", "social"),
        ("https://www.facebook.com/page", "social"),
        ("https://www.linkedin.com/in/someone", "social"),
        ("https://example.com/blog/post", "article"),
    ])
    def test_detect_content_type(self, url, expected):
        assert detect_content_type(url) == expected

    def test_documentation_wins_over_social(self):
        assert detect_content_type("https://twitter.com/docs/api") == "documentation"

    def test_detect_language(self):
        assert detect_language("python-asyncio") == "zh-cn"
        assert detect_language("python asyncio") == "en"

    def test_detect_topics_ordered_and_unique(self):
        titles = ["Read the Docs", "GitHub repo", "More docs", "github again"]

        assert detect_topics(titles) == ["documentation", "technology"]

    def test_detect_topics_empty(self):
        assert detect_topics(["Nothing relevant"]) == []
        assert detect_topics([]) == []


# =============================================================================
# Result Processing Tests
# =============================================================================

class TestProcessSearchResults:
    """Tests for process_search_results."""

    def test_builds_annotated_response(self):
        options = SearchOptions(region="us-en", safe_search="strict", num_results=4)

        response = process_search_results(RAW_RESULTS, "python asyncio", options)

        assert response.type == "search_results"
        assert len(response.data) == 4
        first = response.data[0]
        assert first.title == "Python & asyncio docs"
        assert first.description == "asyncio is a library to write concurrent code."
        assert first.metadata.type == "documentation"
        assert first.metadata.source == "docs.python.org"
        assert response.data[2].metadata.type == "social"
        assert response.data[3].metadata.type == "article"

        metadata = response.metadata
        assert metadata.query == "python asyncio"
        assert metadata.result_count == 4
        assert metadata.timestamp.endswith("Z")
        assert metadata.search_context.region == "us-en"
        assert metadata.search_context.safe_search is SafeSearch.STRICT
        assert metadata.query_analysis.language == "en"
        assert metadata.query_analysis.topics == ["documentation", "technology"]

    def test_json_uses_camel_case(self):
        response = process_search_results(RAW_RESULTS[:1], "q", SearchOptions())

        payload = json.loads(response.to_json())

        assert payload["type"] == "search_results"
        assert payload["metadata"]["resultCount"] == 1
        assert payload["metadata"]["searchContext"] == {
            "region": "zh-cn", "safeSearch": "moderate", "numResults": 50,
        }
        assert "queryAnalysis" in payload["metadata"]
        assert payload["data"][0]["metadata"]["source"] == "docs.python.org"

    def test_empty_results(self):
        response = process_search_results([], "nothing", SearchOptions())

        assert response.data == []
        assert response.metadata.result_count == 0
        assert response.metadata.query_analysis.topics == []


# =============================================================================
# perform_search Tests
# =============================================================================

class TestPerformSearch:
    """Tests for perform_search with a mocked ddgs client."""

    @pytest.mark.asyncio
    async def test_defaults_are_applied_and_echoed(self):
        patcher, client = mock_ddgs()

        with patcher:
            response = await perform_search(SearchArgs(query="python"))

        client.text.assert_called_once_with(
            "python", region="zh-cn", safesearch="moderate", max_results=50
        )
        context = response.metadata.search_context
        assert (context.region, context.safe_search, context.num_results) == (
            "zh-cn", SafeSearch.MODERATE, 50,
        )

    @pytest.mark.asyncio
    async def test_strict_maps_to_on(self):
        patcher, client = mock_ddgs()
        args = SearchArgs.model_validate(
            {"query": "python", "options": {"region": "us-en", "safeSearch": "strict", "numResults": 5}}
        )

        with patcher:
            await perform_search(args)

        client.text.assert_called_once_with(
            "python", region="us-en", safesearch="on", max_results=5
        )

    @pytest.mark.asyncio
    async def test_partial_options_fall_back_to_config(self):
        patcher, client = mock_ddgs()
        config = ResearchConfig(default_region="us-en", default_safe_search="off", default_num_results=20)
        args = SearchArgs.model_validate({"query": "python", "options": {"numResults": 5}})

        with patcher:
            response = await perform_search(args, config)

        client.text.assert_called_once_with(
            "python", region="us-en", safesearch="off", max_results=5
        )
        assert response.metadata.search_context.region == "us-en"

    @pytest.mark.asyncio
    async def test_config_defaults_without_options(self):
        patcher, client = mock_ddgs()
        config = ResearchConfig(default_region="de-de", default_num_results=7)

        with patcher:
            await perform_search(SearchArgs(query="python"), config)

        client.text.assert_called_once_with(
            "python", region="de-de", safesearch="moderate", max_results=7
        )

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self):
        patcher, client = mock_ddgs(side_effect=[RuntimeError("202 Ratelimit"), RAW_RESULTS])

        with patcher:
            response = await perform_search(
                SearchArgs(query="python"), ResearchConfig(retry_delay_ms=0)
            )

        assert client.text.call_count == 2
        assert response.metadata.result_count == 4

    @pytest.mark.asyncio
    async def test_raises_search_error_after_all_attempts(self):
        patcher, client = mock_ddgs(side_effect=RuntimeError("202 Ratelimit"))

        with patcher:
            with pytest.raises(SearchError) as exc_info:
                await perform_search(
                    SearchArgs(query="python"), ResearchConfig(search_retries=3, retry_delay_ms=0)
                )

        assert client.text.call_count == 3
        assert str(exc_info.value) == "Search failed: 202 Ratelimit"
        assert exc_info.value.query == "python"

    @pytest.mark.asyncio
    async def test_none_from_client_is_empty(self):
        patcher, client = mock_ddgs()
        client.text.return_value = None

        with patcher:
            response = await perform_search(SearchArgs(query="python"))

        assert response.data == []
