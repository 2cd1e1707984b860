"""
DuckDuckResearch CLI - runs the MCP server on stdio.

Usage:
    duckduckresearch --help
    duckduckresearch --log-level DEBUG
    duckduckresearch --headed --screenshot-dir ./screenshots
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import click

from duckduckresearch.config import ResearchConfig
from duckduckresearch.server import DuckDuckResearchServer
from duckduckresearch.utils import init_logging

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@click.command()
@click.version_option(package_name="duckduckresearch")
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level (logs go to stderr)"
)
@click.option(
    "--headless/--headed",
    default=None,
    help="Run Chromium without a window (default) or with one"
)
@click.option(
    "--screenshot-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Keep screenshots from visit_page here instead of a temporary directory"
)
def main(log_level: Optional[str], headless: Optional[bool], screenshot_dir: Optional[Path]):
    """DuckDuckResearch - DuckDuckGo search, page visits and screenshots over MCP."""
    config = ResearchConfig.from_env(
        log_level=logging.getLevelName(log_level.upper()) if log_level else None,
        headless=headless,
        screenshot_dir=screenshot_dir,
    )
    init_logging(config.log_level)

    server = DuckDuckResearchServer(config)
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
