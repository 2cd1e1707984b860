"""
DuckDuckResearch - MCP server for web research

Combines DuckDuckGo search with page visits and screenshots in a headless
browser, exposed as Model Context Protocol tools.

License: MIT
"""

__version__ = "1.0.0"

from .browser import BrowserManager
from .config import ResearchConfig
from .exceptions import (
    BotProtectionError,
    BrowserLaunchError,
    DuckDuckResearchError,
    InsufficientContentError,
    NavigationError,
    ScreenshotSizeError,
    SearchError,
    SuspiciousTitleError,
)
from .search import perform_search
from .server import DuckDuckResearchServer
from .utils import is_valid_url, with_retry

__all__ = [
    # Version
    "__version__",
    # Server
    "DuckDuckResearchServer",
    "ResearchConfig",
    # Components
    "BrowserManager",
    "perform_search",
    "is_valid_url",
    "with_retry",
    # Errors
    "DuckDuckResearchError",
    "NavigationError",
    "BotProtectionError",
    "SuspiciousTitleError",
    "InsufficientContentError",
    "ScreenshotSizeError",
    "BrowserLaunchError",
    "SearchError",
]
