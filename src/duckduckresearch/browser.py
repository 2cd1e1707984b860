import asyncio
import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import markdownify
from bs4 import BeautifulSoup
from playwright.async_api import Browser, Page, Playwright, async_playwright

from duckduckresearch.config import ResearchConfig
from duckduckresearch.exceptions import (
    BotProtectionError,
    BrowserLaunchError,
    InsufficientContentError,
    NavigationError,
    ScreenshotSizeError,
    SuspiciousTitleError,
)

logger = logging.getLogger(__name__)

# Runs inside the page; receives [challenge selectors, title phrases].
_VALIDATION_SCRIPT = """
([challengeSelectors, titlePhrases]) => {
    const botProtection = challengeSelectors.some(
        (selector) => document.querySelector(selector) !== null
    );
    const title = document.title || "";
    const lowered = title.toLowerCase();
    const suspiciousTitle = titlePhrases.some((phrase) => lowered.includes(phrase));
    const bodyText = (document.body && document.body.innerText) || "";
    const trimmed = bodyText.trim();
    const wordCount = trimmed ? trimmed.split(/\\s+/).length : 0;
    return { wordCount, botProtection, suspiciousTitle, title };
}
"""


@dataclass
class NavigationValidation:
    """Result of inspecting a freshly loaded document."""

    word_count: int
    bot_protection: bool
    suspicious_title: bool
    title: str = ""

    @classmethod
    def from_page_result(cls, result: Dict[str, Any]) -> "NavigationValidation":
        return cls(
            word_count=int(result.get("wordCount", 0)),
            bot_protection=bool(result.get("botProtection", False)),
            suspicious_title=bool(result.get("suspiciousTitle", False)),
            title=result.get("title") or "",
        )


def check_navigation_validation(
    validation: NavigationValidation, min_word_count: int = 10, url: Optional[str] = None
) -> None:
    """
    Reject a page that looks bot-blocked or empty.

    Checks run in a fixed order: challenge markup, then title, then word count.

    Raises:
        BotProtectionError, SuspiciousTitleError, InsufficientContentError
    """
    if validation.bot_protection:
        raise BotProtectionError(url=url)
    if validation.suspicious_title:
        raise SuspiciousTitleError(title=validation.title, url=url)
    if validation.word_count < min_word_count:
        raise InsufficientContentError(word_count=validation.word_count, url=url)


def select_content_html(
    html: str,
    selector: Optional[str] = None,
    content_selectors: Optional[List[str]] = None,
    noise_selectors: Optional[List[str]] = None,
) -> str:
    """
    Pick the markup worth converting from a serialized document.

    Parameters:
        html: Full document (or fragment) markup.
        selector: Explicit CSS selector. When given, only that element is used.
        content_selectors: Main-content selectors probed in order.
        noise_selectors: Regions stripped from the body when no main content is found.

    Returns:
        Outer HTML of the selected element, the cleaned body, or "" when nothing matches.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    if selector:
        element = soup.select_one(selector)
        return str(element) if element is not None else ""

    for content_selector in content_selectors or []:
        element = soup.select_one(content_selector)
        if element is not None:
            return str(element)

    body = soup.body or soup
    for noise_selector in noise_selectors or []:
        for element in body.select(noise_selector):
            element.decompose()

    return str(body)


def html_to_markdown(html: str) -> str:
    """
    Convert HTML to Markdown and normalize whitespace.

    Scripts, styles and noscript blocks are dropped; links and images are kept inline.
    If conversion fails the raw HTML is returned.
    """
    if not html:
        return ""

    try:
        soup = BeautifulSoup(html, "html.parser")
        for element in soup(["script", "style", "noscript"]):
            element.decompose()

        markdown = markdownify.markdownify(
            str(soup),
            heading_style="ATX",
            bullets="-",
            autolinks=False,
        )
    except Exception as e:
        logger.error(f"Error converting HTML to Markdown: {e}")
        return html

    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    markdown = re.sub(r"^- $", "", markdown, flags=re.MULTILINE)
    markdown = re.sub(r"^[ \t]+$", "", markdown, flags=re.MULTILINE)
    return markdown.strip()


class BrowserManager:
    """
    Owns the single Playwright browser and page shared by all tool calls.

    The browser is launched lazily on first use and torn down by cleanup().
    Tool handlers hold `lock` while they use the page.
    """

    def __init__(self, config: Optional[ResearchConfig] = None) -> None:
        self.config = config or ResearchConfig()
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.page: Optional[Page] = None
        self.lock = asyncio.Lock()

    def reset_browser(self) -> None:
        """Forget the current browser and page without closing them."""
        self.playwright = None
        self.browser = None
        self.page = None

    async def ensure_browser(self) -> Page:
        """
        Return the shared page, launching Chromium and opening a page if needed.

        Returns:
            Page: A page backed by a live browser.

        Raises:
            BrowserLaunchError: If Playwright cannot start the browser.
        """
        if self.browser is None:
            try:
                if self.playwright is None:
                    self.playwright = await async_playwright().start()
                self.browser = await self.playwright.chromium.launch(
                    headless=self.config.headless
                )
            except Exception as e:
                logger.error(f"Browser launch failed: {e}")
                raise BrowserLaunchError(str(e)) from e

            logger.info(f"Launched Chromium (headless={self.config.headless})")
            context = await self.browser.new_context()
            self.page = await context.new_page()

        if self.page is None:
            context = await self.browser.new_context()
            self.page = await context.new_page()

        return self.page

    async def cleanup(self) -> None:
        """
        Close the browser and stop the Playwright driver.

        The driver is stopped and the handles are reset even if closing the
        browser fails; the close error is re-raised afterwards.
        """
        try:
            if self.browser is not None:
                await self.browser.close()
                logger.info("Browser closed")
        finally:
            try:
                if self.playwright is not None:
                    await self.playwright.stop()
            finally:
                self.reset_browser()

    async def safe_page_navigation(self, page: Page, url: str) -> None:
        """
        Navigate to a URL and verify that the result is real content.

        Parameters:
            page (Page): Page to navigate.
            url (str): Absolute http(s) URL.

        Raises:
            BotProtectionError: Challenge markup found in the document.
            SuspiciousTitleError: Title looks like a security check page.
            InsufficientContentError: Fewer than min_word_count visible words.
            NavigationError: Any other failure, including HTTP status >= 400.
        """
        cfg = self.config
        try:
            await page.context.add_cookies(
                [
                    {
                        "name": cfg.consent_cookie_name,
                        "value": cfg.consent_cookie_value,
                        "domain": cfg.consent_cookie_domain,
                        "path": "/",
                    }
                ]
            )

            response = await page.goto(
                url, wait_until="domcontentloaded", timeout=cfg.navigation_timeout_ms
            )
            if response is None:
                raise NavigationError("Navigation failed: no response received", url=url)

            status = response.status
            if status >= 400:
                raise NavigationError(f"HTTP {status}: {response.status_text}", url=url)

            await self._wait_for_settle(page)

            result = await page.evaluate(
                _VALIDATION_SCRIPT,
                [cfg.bot_challenge_selectors, cfg.suspicious_title_phrases],
            )
            validation = NavigationValidation.from_page_result(result)
            logger.debug(
                f"Validated {url}: words={validation.word_count} "
                f"bot={validation.bot_protection} suspicious_title={validation.suspicious_title}"
            )
            check_navigation_validation(validation, cfg.min_word_count, url=url)

        except (BotProtectionError, SuspiciousTitleError, InsufficientContentError):
            raise
        except Exception as e:
            logger.warning(f"Navigation to {url} failed: {e}")
            raise NavigationError(f"Navigation to {url} failed", url=url) from e

    async def _wait_for_settle(self, page: Page) -> None:
        """Wait for network idle or the settle timeout, whichever comes first."""
        timeout_ms = self.config.settle_timeout_ms

        async def wait_for_idle() -> None:
            try:
                await page.wait_for_load_state("networkidle", timeout=timeout_ms)
            except Exception as e:
                logger.debug(f"Network idle wait ended early: {e}")

        idle = asyncio.ensure_future(wait_for_idle())
        timer = asyncio.ensure_future(asyncio.sleep(timeout_ms / 1000.0))
        _, pending = await asyncio.wait({idle, timer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def extract_content_as_markdown(self, page: Page, selector: Optional[str] = None) -> str:
        """
        Convert the main content of the loaded page to Markdown.

        Parameters:
            page (Page): Page that has finished navigating.
            selector (Optional[str]): CSS selector that overrides main-content detection.

        Returns:
            str: Markdown text, possibly empty.
        """
        html = await page.content()
        selected = select_content_html(
            html,
            selector=selector,
            content_selectors=self.config.content_selectors,
            noise_selectors=self.config.noise_selectors,
        )
        return html_to_markdown(selected)

    async def take_screenshot_with_size_limit(self, page: Page) -> str:
        """
        Capture the viewport as PNG, shrinking the viewport until the image fits.

        Each shrink attempt scales the starting viewport by shrink_factor ** attempt
        and clamps both sides to [min_dimension, max_dimension]. After the attempts
        run out a final capture is made at min_dimension x min_dimension.

        Parameters:
            page (Page): Page to capture.

        Returns:
            str: Base64 encoded PNG.

        Raises:
            ScreenshotSizeError: If even the minimum viewport is over the limit.
        """
        cfg = self.config
        limit = cfg.max_screenshot_bytes

        await page.set_viewport_size({"width": cfg.viewport_width, "height": cfg.viewport_height})
        screenshot = await page.screenshot(type="png", full_page=False)

        attempts = 0
        while len(screenshot) > limit and attempts < cfg.max_shrink_attempts:
            attempts += 1
            scale = cfg.shrink_factor ** attempts
            width = self._clamp_dimension(round(cfg.viewport_width * scale))
            height = self._clamp_dimension(round(cfg.viewport_height * scale))
            logger.info(
                f"Screenshot is {len(screenshot)} bytes, retrying at {width}x{height} "
                f"(attempt {attempts}/{cfg.max_shrink_attempts})"
            )

            await page.set_viewport_size({"width": width, "height": height})
            screenshot = await page.screenshot(type="png", full_page=False)

        if len(screenshot) > limit:
            await page.set_viewport_size({"width": cfg.min_dimension, "height": cfg.min_dimension})
            screenshot = await page.screenshot(type="png", full_page=False)

            if len(screenshot) > limit:
                raise ScreenshotSizeError(size_bytes=len(screenshot), limit_bytes=limit)

        return base64.b64encode(screenshot).decode("ascii")

    def _clamp_dimension(self, value: int) -> int:
        return max(self.config.min_dimension, min(self.config.max_dimension, value))
