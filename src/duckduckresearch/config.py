"""
Configuration for the DuckDuckResearch MCP server.

This module defines the configuration class that controls the browser session,
navigation timeouts, screenshot size limits, retry policy, and the heuristic
tables used to judge whether a loaded page is usable content.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

# Element ids injected by common anti-automation interstitials.
DEFAULT_BOT_CHALLENGE_SELECTORS = [
    "#challenge-running",
    "#cf-challenge-running",
    "#px-captcha",
    "#ddos-protection",
    "#waf-challenge-html",
]

# Lower-cased title fragments of "please wait" / security check pages.
DEFAULT_SUSPICIOUS_TITLE_PHRASES = [
    "security check",
    "ddos protection",
    "please wait",
    "just a moment",
    "attention required",
]

# Probed in order; the first match is treated as the main content.
DEFAULT_CONTENT_SELECTORS = [
    "main",
    "article",
    '[role="main"]',
    "#content",
    ".content",
    ".main",
    ".post",
    ".article",
]

# Removed from the body copy when no main content element exists.
DEFAULT_NOISE_SELECTORS = [
    "header",
    "footer",
    "nav",
    '[role="navigation"]',
    "aside",
    ".sidebar",
    '[role="complementary"]',
    ".nav",
    ".menu",
    ".header",
    ".footer",
    ".advertisement",
    ".ads",
    ".cookie-notice",
]

DEFAULT_DOCUMENTATION_MARKERS = [
    "docs.",
    "/docs/",
    "/documentation/",
    "github.com",
    "stackoverflow.com",
]

DEFAULT_SOCIAL_MARKERS = [
    "twitter.com",
    "facebook.com",
    "linkedin.com",
]

# (keyword found in a result title, topic reported for the query)
DEFAULT_TOPIC_KEYWORDS = [
    ("github", "technology"),
    ("docs", "documentation"),
]

MAX_SCREENSHOT_BYTES = 5 * 1024 * 1024

_ENV_PREFIX = "DUCKDUCKRESEARCH_"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class ResearchConfig:
    """
    Configuration for the research server.

    Defaults reproduce the fixed constants of the tool behavior; tests and
    the command line override individual fields.
    """

    # === Browser Settings ===

    headless: bool = True
    """Launch Chromium without a visible window."""

    viewport_width: int = 1600
    """Viewport width used for the first screenshot capture."""

    viewport_height: int = 900
    """Viewport height used for the first screenshot capture."""

    # === Navigation Settings ===

    navigation_timeout_ms: int = 15_000
    """Timeout for the initial DOMContentLoaded navigation."""

    settle_timeout_ms: int = 5_000
    """Upper bound on the network-idle settle wait after navigation."""

    min_word_count: int = 10
    """Pages with fewer visible words are rejected as empty."""

    consent_cookie_name: str = "CONSENT"
    consent_cookie_value: str = "YES+"
    consent_cookie_domain: str = ".google.com"

    bot_challenge_selectors: List[str] = field(
        default_factory=lambda: DEFAULT_BOT_CHALLENGE_SELECTORS.copy()
    )
    suspicious_title_phrases: List[str] = field(
        default_factory=lambda: DEFAULT_SUSPICIOUS_TITLE_PHRASES.copy()
    )

    # === Content Extraction ===

    content_selectors: List[str] = field(
        default_factory=lambda: DEFAULT_CONTENT_SELECTORS.copy()
    )
    noise_selectors: List[str] = field(
        default_factory=lambda: DEFAULT_NOISE_SELECTORS.copy()
    )

    # === Screenshot Settings ===

    max_screenshot_bytes: int = MAX_SCREENSHOT_BYTES
    """Largest PNG (raw bytes) a screenshot may produce."""

    max_shrink_attempts: int = 3
    shrink_factor: float = 0.75
    min_dimension: int = 800
    max_dimension: int = 1920

    screenshot_dir: Optional[Path] = None
    """
    Directory for screenshots saved by visit_page. If None, a temporary
    directory is created on first use and removed on shutdown.
    """

    # === Search Settings ===

    default_region: str = "zh-cn"
    default_safe_search: str = "moderate"
    default_num_results: int = 50

    search_retries: int = 3
    """Attempts made against the search scraper before giving up."""

    retry_delay_ms: int = 1000
    """Fixed delay between retry attempts."""

    # === Logging ===

    log_level: int = logging.INFO

    @classmethod
    def from_env(cls, **overrides) -> "ResearchConfig":
        """
        Build a configuration from DUCKDUCKRESEARCH_* environment variables.

        Keyword arguments take precedence over the environment.
        """
        values = {}

        headless = os.getenv(f"{_ENV_PREFIX}HEADLESS")
        if headless is not None:
            values["headless"] = headless.strip().lower() in _TRUTHY

        log_level = os.getenv(f"{_ENV_PREFIX}LOG_LEVEL")
        if log_level:
            level = logging.getLevelName(log_level.strip().upper())
            if not isinstance(level, int):
                raise ValueError(f"Unknown log level: {log_level}")
            values["log_level"] = level

        screenshot_dir = os.getenv(f"{_ENV_PREFIX}SCREENSHOT_DIR")
        if screenshot_dir:
            values["screenshot_dir"] = Path(screenshot_dir)

        retries = os.getenv(f"{_ENV_PREFIX}SEARCH_RETRIES")
        if retries:
            values["search_retries"] = int(retries)

        delay = os.getenv(f"{_ENV_PREFIX}RETRY_DELAY_MS")
        if delay:
            values["retry_delay_ms"] = int(delay)

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
