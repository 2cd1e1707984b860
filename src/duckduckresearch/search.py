"""
DuckDuckGo search for the search_duckduckgo tool.

The scraping itself is delegated to the `ddgs` library. This module builds the
request from validated arguments, retries transient scraper failures, and
annotates each hit with a coarse content type plus query-level metadata.

Note:
    DuckDuckGo rate-limits automated clients aggressively. The retry policy in
    ResearchConfig smooths over single blocked requests; sustained use still
    gets throttled.
"""

import asyncio
import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ddgs import DDGS

from duckduckresearch.config import (
    DEFAULT_DOCUMENTATION_MARKERS,
    DEFAULT_SOCIAL_MARKERS,
    DEFAULT_TOPIC_KEYWORDS,
    ResearchConfig,
)
from duckduckresearch.exceptions import SearchError
from duckduckresearch.schemas import (
    QueryAnalysis,
    SafeSearch,
    SearchArgs,
    SearchContext,
    SearchMetadata,
    SearchOptions,
    SearchResponse,
    SearchResult,
    SearchResultMetadata,
)
from duckduckresearch.utils import with_retry

logger = logging.getLogger(__name__)

# ddgs spells "strict" as "on".
_DDGS_SAFESEARCH = {
    SafeSearch.OFF: "off",
    SafeSearch.MODERATE: "moderate",
    SafeSearch.STRICT: "on",
}


def detect_content_type(url: str) -> str:
    """Classify a result URL as documentation, social or article."""
    lowered = url.lower()
    if any(marker in lowered for marker in DEFAULT_DOCUMENTATION_MARKERS):
        return "documentation"
    if any(marker in lowered for marker in DEFAULT_SOCIAL_MARKERS):
        return "social"
    return "article"


def detect_language(query: str) -> str:
    """Guess the query language: a hyphen means Chinese, anything else English."""
    return "zh-cn" if "-" in query else "en"


def detect_topics(titles: List[str]) -> List[str]:
    """Topics whose keyword appears in at least one title, in first-seen order."""
    topics: List[str] = []
    for title in titles:
        lowered = title.lower()
        for keyword, topic in DEFAULT_TOPIC_KEYWORDS:
            if keyword in lowered and topic not in topics:
                topics.append(topic)
    return topics


def _hostname(url: str) -> str:
    try:
        return urlparse(url).hostname or ""
    except ValueError:
        return ""


def process_search_results(
    raw_results: List[Dict[str, Any]], query: str, options: SearchOptions
) -> SearchResponse:
    """
    Convert raw scraper hits into a SearchResponse.

    Args:
        raw_results: Dicts with 'title', 'href' and 'body' keys as returned by ddgs.
        query: The original query string.
        options: Effective search options, echoed in the metadata.
    """
    results = []
    titles = []
    for item in raw_results:
        url = item.get("href") or item.get("url") or ""
        title = html.unescape(item.get("title") or "")
        description = (item.get("body") or item.get("description") or "").strip()
        titles.append(title)
        results.append(
            SearchResult(
                title=title,
                url=url,
                description=description,
                metadata=SearchResultMetadata(type=detect_content_type(url), source=_hostname(url)),
            )
        )

    return SearchResponse(
        data=results,
        metadata=SearchMetadata(
            query=query,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            result_count=len(results),
            search_context=SearchContext(
                region=options.region,
                safe_search=options.safe_search,
                num_results=options.num_results,
            ),
            query_analysis=QueryAnalysis(
                language=detect_language(query),
                topics=detect_topics(titles),
            ),
        ),
    )


def _ddgs_text(query: str, options: SearchOptions) -> List[Dict[str, Any]]:
    with DDGS() as client:
        return list(
            client.text(
                query,
                region=options.region,
                safesearch=_DDGS_SAFESEARCH[options.safe_search],
                max_results=options.num_results,
            )
            or []
        )


async def perform_search(args: SearchArgs, config: Optional[ResearchConfig] = None) -> SearchResponse:
    """
    Search DuckDuckGo and return annotated results.

    Args:
        args: Validated search arguments.
        config: Supplies defaults for missing options and the retry policy.

    Returns:
        SearchResponse with one entry per hit.

    Raises:
        SearchError: If the scraper fails on every attempt.
    """
    cfg = config or ResearchConfig()
    # Fields the caller left out come from the config, not the model defaults.
    settings = {
        "region": cfg.default_region,
        "safe_search": cfg.default_safe_search,
        "num_results": cfg.default_num_results,
    }
    if args.options is not None:
        settings.update(
            {name: getattr(args.options, name) for name in args.options.model_fields_set}
        )
    options = SearchOptions(**settings)

    logger.info(f"DuckDuckGo search for: {args.query} (region={options.region}, results={options.num_results})")

    try:
        raw_results = await with_retry(
            lambda: asyncio.to_thread(_ddgs_text, args.query, options),
            retries=cfg.search_retries,
            delay_ms=cfg.retry_delay_ms,
        )
    except Exception as e:
        logger.error(f"DuckDuckGo search failed for '{args.query}': {e}")
        raise SearchError(str(e), query=args.query) from e

    logger.debug(f"DuckDuckGo returned {len(raw_results)} results for '{args.query}'")
    return process_search_results(raw_results, args.query, options)
