"""
DuckDuckResearch Exception Hierarchy

Errors raised by the browser, search and screenshot components. The tool
dispatcher normalizes all of them into protocol errors, so every class carries
a stable error code and a serializable context for logging.

Categories:
1. Navigation errors (HTTP failures, bot-blocked or empty pages)
2. Resource errors (screenshots that cannot be reduced under the size limit)
3. Infrastructure errors (browser launch and search library failures)
"""

import time
from typing import Any, Dict, Optional


class DuckDuckResearchError(Exception):
    """
    Base exception class for all DuckDuckResearch errors.

    Attributes:
        error_code: Unique error code for programmatic handling
        timestamp: When the error occurred
        context: Additional context information
        user_message: User-friendly error message
        developer_message: Detailed technical error message
        suggestion: Suggested fix or next steps (if applicable)
    """

    def __init__(
        self,
        message: str,
        error_code: str = "DUCKDUCKRESEARCH_ERROR",
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.timestamp = time.time()
        self.context = context or {}
        self.user_message = user_message or message
        self.developer_message = message
        self.suggestion = suggestion

    @property
    def message(self) -> str:
        return self.developer_message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.developer_message,
            "user_message": self.user_message,
            "timestamp": self.timestamp,
            "context": self.context,
            "suggestion": self.suggestion,
        }

    def __str__(self) -> str:
        # Callers match on these messages, keep them free of decoration.
        return self.developer_message


# =============================================================================
# NAVIGATION ERRORS
# =============================================================================

class NavigationError(DuckDuckResearchError):
    """
    Raised when a page cannot be loaded or is not usable content.

    Examples:
    - No response from the server
    - HTTP status >= 400
    - Timeouts and other driver failures (wrapped)
    """

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        self.url = url

        context = kwargs.pop("context", {})
        if url:
            context["url"] = url

        error_code = kwargs.pop("error_code", "NAVIGATION_ERROR")
        super().__init__(
            message,
            error_code=error_code,
            context=context,
            **kwargs
        )


class BotProtectionError(NavigationError):
    """Raised when the loaded document contains anti-automation challenge markup."""

    def __init__(self, url: Optional[str] = None, **kwargs):
        super().__init__(
            "Bot protection detected",
            url=url,
            error_code="BOT_PROTECTION_ERROR",
            user_message="The page is protected by an anti-bot challenge.",
            suggestion="Try a different source for the same information.",
            **kwargs
        )


class SuspiciousTitleError(NavigationError):
    """Raised when the page title looks like a security check or waiting room."""

    def __init__(self, title: Optional[str] = None, url: Optional[str] = None, **kwargs):
        self.title = title

        context = kwargs.pop("context", {})
        if title is not None:
            context["title"] = title

        super().__init__(
            "Suspicious page title detected",
            url=url,
            error_code="SUSPICIOUS_TITLE_ERROR",
            context=context,
            suggestion="The site is probably showing an interstitial; try again later.",
            **kwargs
        )


class InsufficientContentError(NavigationError):
    """Raised when the page body has too few words to be useful."""

    def __init__(self, word_count: Optional[int] = None, url: Optional[str] = None, **kwargs):
        self.word_count = word_count

        context = kwargs.pop("context", {})
        if word_count is not None:
            context["word_count"] = word_count

        super().__init__(
            "Page contains insufficient content",
            url=url,
            error_code="INSUFFICIENT_CONTENT_ERROR",
            context=context,
            **kwargs
        )


# =============================================================================
# RESOURCE ERRORS
# =============================================================================

class ScreenshotSizeError(DuckDuckResearchError):
    """
    Raised when a screenshot stays over the size limit at the minimum viewport.
    """

    def __init__(self, size_bytes: Optional[int] = None, limit_bytes: Optional[int] = None, **kwargs):
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes

        context = kwargs.pop("context", {})
        if size_bytes is not None:
            context["size_bytes"] = size_bytes
        if limit_bytes is not None:
            context["limit_bytes"] = limit_bytes

        super().__init__(
            "Failed to reduce screenshot to under 5MB even with minimum settings",
            error_code="SCREENSHOT_SIZE_ERROR",
            context=context,
            user_message="The page is too large to capture as a screenshot.",
            **kwargs
        )


# =============================================================================
# INFRASTRUCTURE ERRORS
# =============================================================================

class BrowserLaunchError(DuckDuckResearchError):
    """
    Raised when Playwright cannot start Chromium.

    Examples:
    - Browser executable not downloaded
    - Missing system dependencies
    """

    def __init__(self, message: str, install_command: Optional[str] = "playwright install chromium", **kwargs):
        self.install_command = install_command

        context = kwargs.pop("context", {})
        if install_command:
            context["install_command"] = install_command

        super().__init__(
            f"Failed to launch browser: {message}",
            error_code="BROWSER_LAUNCH_ERROR",
            context=context,
            user_message="Failed to start the headless browser.",
            suggestion=f"Try running: {install_command}" if install_command else "Check browser installation and dependencies.",
            **kwargs
        )


class SearchError(DuckDuckResearchError):
    """Raised when the DuckDuckGo scraper fails after all retries."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        self.query = query

        context = kwargs.pop("context", {})
        if query is not None:
            context["query"] = query

        super().__init__(
            f"Search failed: {message}",
            error_code="SEARCH_ERROR",
            context=context,
            suggestion="DuckDuckGo rate-limits automated clients; wait a minute before retrying.",
            **kwargs
        )
