import asyncio
import base64
import logging
import re
import shutil
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar
from urllib.parse import urlparse

from mcp.shared.exceptions import McpError
from mcp.types import INVALID_REQUEST, ErrorData

from duckduckresearch.config import MAX_SCREENSHOT_BYTES

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_RETRIES = 3
RETRY_DELAY_MS = 1000


class ToolLogFilter(logging.Filter):
    """
    A logging filter that ensures 'tool_name' is present in log records.

    Records logged outside a tool call get '-' so the shared format string
    never fails.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "tool_name"):
            record.tool_name = "-"
        return True


def init_logging(level: int = logging.INFO, clear_existing_handlers: bool = True) -> None:
    """
    Sets up console logging for the server.

    Log output goes to stderr: stdout is reserved for the protocol stream when
    the server runs over stdio.

    Args:
        level: The desired logging level for the root logger.
        clear_existing_handlers: If True, removes any handlers already attached to the
                                 root logger to prevent duplicate log outputs.
    """
    root_logger = logging.getLogger()

    if clear_existing_handlers:
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s - %(levelname)s - [%(name)s] [%(tool_name)s] %(message)s"
    )
    stream_handler.setFormatter(formatter)
    stream_handler.addFilter(ToolLogFilter())

    root_logger.addHandler(stream_handler)
    root_logger.setLevel(level)

    logging.getLogger(__name__).info(
        f"Logging setup complete. Root logger level set to {logging.getLevelName(level)}."
    )


def is_valid_url(url: Any) -> bool:
    """
    Check that a string is an absolute http or https URL.

    Args:
        url: Candidate address.

    Returns:
        True if the scheme is exactly http/https and a host is present.
    """
    if not isinstance(url, str) or not url:
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    retries: int = MAX_RETRIES,
    delay_ms: int = RETRY_DELAY_MS,
) -> T:
    """
    Run an async operation, retrying with a fixed delay on failure.

    Args:
        operation: Zero-argument callable returning an awaitable.
        retries: Maximum number of attempts (not additional retries).
        delay_ms: Delay between attempts in milliseconds. Not applied after the last attempt.

    Returns:
        The result of the first successful attempt.

    Raises:
        ValueError: If retries is less than 1.
        Exception: The error of the last attempt when all attempts fail.

    Example:
        ```python
        results = await with_retry(lambda: client.fetch(query), retries=3, delay_ms=1000)
        ```
    """
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")

    last_error: BaseException | None = None
    for attempt in range(1, retries + 1):
        try:
            return await operation()
        except Exception as e:
            last_error = e
            if attempt < retries:
                logger.warning(f"Attempt {attempt} failed, retrying in {delay_ms}ms: {e}")
                await asyncio.sleep(delay_ms / 1000.0)

    raise last_error


def save_screenshot(screenshot: str, title: str, directory: Path) -> Path:
    """
    Write a base64 PNG to disk under a name derived from the title.

    Args:
        screenshot: Base64 encoded PNG data.
        title: Used for the filename; lower-cased, non-alphanumerics replaced by '_'.
        directory: Target directory, created if missing.

    Returns:
        Path of the written file.

    Raises:
        McpError: If the decoded image exceeds the screenshot size limit.
    """
    data = base64.b64decode(screenshot)

    if len(data) > MAX_SCREENSHOT_BYTES:
        raise McpError(
            ErrorData(
                code=INVALID_REQUEST,
                message=(
                    f"Screenshot too large: {round(len(data) / (1024 * 1024))}MB exceeds "
                    f"{MAX_SCREENSHOT_BYTES // (1024 * 1024)}MB limit"
                ),
            )
        )

    safe_title = re.sub(r"[^a-z0-9]", "_", title, flags=re.IGNORECASE).lower()
    timestamp = int(time.time() * 1000)

    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{safe_title}-{timestamp}.png"
    path.write_bytes(data)
    logger.debug(f"Saved screenshot to {path}")
    return path


def cleanup_screenshots(directory: Path) -> None:
    """
    Remove a screenshot directory and everything in it.

    Failures are logged rather than raised; this runs during shutdown.
    """
    if not directory.exists():
        return
    try:
        shutil.rmtree(directory)
    except OSError as e:
        logger.error(f"Error cleaning up screenshots in {directory}: {e}")
