"""
Tests for the duckduckresearch.utils module.

This module tests:
- URL validation
- Retry helper
- Screenshot persistence and cleanup
- Logging filter and setup
"""

import base64
import logging

import pytest
from unittest.mock import AsyncMock

from mcp.shared.exceptions import McpError
from mcp.types import INVALID_REQUEST

from duckduckresearch.config import MAX_SCREENSHOT_BYTES
from duckduckresearch.utils import (
    ToolLogFilter,
    cleanup_screenshots,
    init_logging,
    is_valid_url,
    save_screenshot,
    with_retry,
)


# =============================================================================
# is_valid_url Tests
# =============================================================================

class TestIsValidUrl:
    """Tests for is_valid_url."""

    @pytest.mark.parametrize("url", [
        "https://example.com",
        "http://example.com/path?q=1",
        "https://sub.example.org:8443/a/b#frag",
    ])
    def test_accepts_http_and_https(self, url):
        assert is_valid_url(url) is True

    @pytest.mark.parametrize("url", [
        "",
        "not a url",
        "ftp://example.com",
        "file:///etc/passwd",
        "javascript:alert(1)",
        "https://",
        "example.com",
    ])
    def test_rejects_everything_else(self, url):
        assert is_valid_url(url) is False

    def test_rejects_non_strings(self):
        assert is_valid_url(None) is False
        assert is_valid_url(42) is False


# =============================================================================
# with_retry Tests
# =============================================================================

class TestWithRetry:
    """Tests for the with_retry helper."""

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        operation = AsyncMock(return_value="ok")

        result = await with_retry(operation, retries=3, delay_ms=0)

        assert result == "ok"
        assert operation.await_count == 1

    @pytest.mark.asyncio
    async def test_retries_until_success(self):
        operation = AsyncMock(side_effect=[RuntimeError("one"), RuntimeError("two"), "ok"])

        result = await with_retry(operation, retries=3, delay_ms=0)

        assert result == "ok"
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_raises_last_error_after_exhaustion(self):
        operation = AsyncMock(side_effect=[RuntimeError("first"), RuntimeError("last")])

        with pytest.raises(RuntimeError, match="last"):
            await with_retry(operation, retries=2, delay_ms=0)

        assert operation.await_count == 2

    @pytest.mark.asyncio
    async def test_rejects_zero_retries(self):
        operation = AsyncMock(return_value="never")

        with pytest.raises(ValueError):
            await with_retry(operation, retries=0)

        operation.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_logs_each_failed_attempt(self, caplog):
        operation = AsyncMock(side_effect=[RuntimeError("boom"), "ok"])

        with caplog.at_level(logging.WARNING, logger="duckduckresearch.utils"):
            await with_retry(operation, retries=2, delay_ms=0)

        assert any("Attempt 1 failed" in r.message for r in caplog.records)


# =============================================================================
# Screenshot Persistence Tests
# =============================================================================

class TestSaveScreenshot:
    """Tests for save_screenshot and cleanup_screenshots."""

    def test_writes_decoded_png(self, tmp_path):
        data = b"\x89PNG\r\n\x1a\nfake-image"
        encoded = base64.b64encode(data).decode("ascii")

        path = save_screenshot(encoded, "Example Domain", tmp_path)

        assert path.parent == tmp_path
        assert path.read_bytes() == data
        assert path.name.startswith("example_domain-")
        assert path.suffix == ".png"

    def test_creates_missing_directory(self, tmp_path):
        target = tmp_path / "nested" / "shots"
        encoded = base64.b64encode(b"png").decode("ascii")

        path = save_screenshot(encoded, "t", target)

        assert target.is_dir()
        assert path.exists()

    def test_replaces_unsafe_title_characters(self, tmp_path):
        encoded = base64.b64encode(b"png").decode("ascii")

        path = save_screenshot(encoded, "A/B: C?", tmp_path)

        assert path.name.startswith("a_b__c_-")

    def test_rejects_oversized_screenshot(self, tmp_path):
        encoded = base64.b64encode(bytes(MAX_SCREENSHOT_BYTES + 1)).decode("ascii")

        with pytest.raises(McpError) as exc_info:
            save_screenshot(encoded, "big", tmp_path)

        assert exc_info.value.error.code == INVALID_REQUEST
        assert "Screenshot too large" in exc_info.value.error.message
        assert list(tmp_path.iterdir()) == []

    def test_cleanup_removes_directory(self, tmp_path):
        target = tmp_path / "shots"
        save_screenshot(base64.b64encode(b"png").decode("ascii"), "t", target)

        cleanup_screenshots(target)

        assert not target.exists()

    def test_cleanup_of_missing_directory_is_noop(self, tmp_path):
        cleanup_screenshots(tmp_path / "missing")


# =============================================================================
# Logging Tests
# =============================================================================

class TestLogging:
    """Tests for ToolLogFilter and init_logging."""

    def test_filter_adds_default_tool_name(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

        assert ToolLogFilter().filter(record) is True
        assert record.tool_name == "-"

    def test_filter_keeps_existing_tool_name(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        record.tool_name = "visit_page"

        ToolLogFilter().filter(record)

        assert record.tool_name == "visit_page"

    def test_init_logging_adds_filtered_handler(self):
        root = logging.getLogger()
        saved_handlers = root.handlers[:]
        saved_level = root.level
        try:
            init_logging(logging.WARNING, clear_existing_handlers=False)

            added = [h for h in root.handlers if h not in saved_handlers]
            assert len(added) == 1
            assert root.level == logging.WARNING
            assert any(isinstance(f, ToolLogFilter) for f in added[0].filters)
        finally:
            for handler in root.handlers[:]:
                if handler not in saved_handlers:
                    root.removeHandler(handler)
            root.setLevel(saved_level)
