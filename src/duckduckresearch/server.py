"""
DuckDuckResearch MCP server.

Exposes three tools over the Model Context Protocol:

- search_duckduckgo: web search with result annotation
- visit_page: navigate to a URL and return its main content as Markdown
- take_screenshot: PNG of the page currently loaded in the shared browser

The server owns one BrowserManager for its lifetime. Requests are validated
before any browser or network work starts, and every failure leaves the
dispatcher as an McpError.
"""

import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union, assert_never

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, ErrorData

from duckduckresearch import __version__
from duckduckresearch.browser import BrowserManager
from duckduckresearch.config import ResearchConfig
from duckduckresearch.schemas import (
    TOOL_DESCRIPTIONS,
    ScreenshotCall,
    SearchCall,
    ToolName,
    VisitPageCall,
    parse_tool_call,
    tool_input_schema,
)
from duckduckresearch.search import perform_search
from duckduckresearch.utils import cleanup_screenshots, save_screenshot

logger = logging.getLogger(__name__)

ToolContent = Union[types.TextContent, types.ImageContent]


class DuckDuckResearchServer:
    """
    Tool dispatcher and protocol server.

    Parameters:
        config (Optional[ResearchConfig]): Server configuration. Defaults to ResearchConfig().
        browser_manager (Optional[BrowserManager]): Browser session to use. A new one
            is created from config if omitted.
    """

    def __init__(
        self,
        config: Optional[ResearchConfig] = None,
        browser_manager: Optional[BrowserManager] = None,
    ) -> None:
        self.config = config or ResearchConfig()
        self.browser_manager = browser_manager or BrowserManager(self.config)
        self._screenshot_dir: Optional[Path] = self.config.screenshot_dir
        self._owns_screenshot_dir = self._screenshot_dir is None

        self.server = Server("mcp-duckduckresearch", version=__version__)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return self.list_tools()

        # Registered without the call_tool decorator: it turns every raised
        # McpError into an isError result, dropping the JSON-RPC error code.
        async def handle_call_tool(request: types.CallToolRequest) -> types.ServerResult:
            content = await self.call_tool(request.params.name, request.params.arguments)
            return types.ServerResult(types.CallToolResult(content=content, isError=False))

        self.server.request_handlers[types.CallToolRequest] = handle_call_tool

    def list_tools(self) -> List[types.Tool]:
        """Descriptors for every tool, in ToolName order."""
        return [
            types.Tool(
                name=tool.value,
                description=TOOL_DESCRIPTIONS[tool],
                inputSchema=tool_input_schema(tool),
            )
            for tool in ToolName
        ]

    async def call_tool(self, name: Optional[str], arguments: Optional[Dict[str, Any]]) -> List[ToolContent]:
        """
        Validate and execute one tool call.

        Parameters:
            name: Tool name from the request.
            arguments: Raw argument object.

        Returns:
            List of content blocks for the tool result.

        Raises:
            McpError: Validation failures keep their protocol code; any other
                failure becomes INTERNAL_ERROR "Tool execution failed: ...".
        """
        log_extra = {"tool_name": name or "-"}
        logger.info(f"Tool call received with arguments: {arguments}", extra=log_extra)

        try:
            call = parse_tool_call(name, arguments)

            if isinstance(call, SearchCall):
                content = await self._search(call)
            elif isinstance(call, VisitPageCall):
                content = await self._visit_page(call)
            elif isinstance(call, ScreenshotCall):
                content = await self._take_screenshot()
            else:
                assert_never(call)

        except McpError as e:
            logger.warning(f"Tool call rejected: {e.error.message}", extra=log_extra)
            raise
        except Exception as e:
            logger.error(f"Tool execution failed: {e}", extra=log_extra, exc_info=True)
            raise McpError(
                ErrorData(
                    code=INTERNAL_ERROR,
                    message=f"Tool execution failed: {e}",
                    data=str(e),
                )
            ) from e

        logger.info(f"Tool call completed with {len(content)} content block(s)", extra=log_extra)
        return content

    async def _search(self, call: SearchCall) -> List[ToolContent]:
        response = await perform_search(call.args, self.config)
        return [types.TextContent(type="text", text=response.to_json())]

    async def _visit_page(self, call: VisitPageCall) -> List[ToolContent]:
        manager = self.browser_manager
        async with manager.lock:
            page = await manager.ensure_browser()
            await manager.safe_page_navigation(page, call.args.url)
            markdown = await manager.extract_content_as_markdown(page)

            content: List[ToolContent] = [types.TextContent(type="text", text=markdown)]
            if call.args.take_screenshot:
                screenshot = await manager.take_screenshot_with_size_limit(page)
                title = await page.title()
                path = save_screenshot(screenshot, title or "screenshot", self.screenshot_dir)
                logger.info(f"Saved page screenshot to {path}")
                content.append(types.ImageContent(type="image", data=screenshot, mimeType="image/png"))

        return content

    async def _take_screenshot(self) -> List[ToolContent]:
        manager = self.browser_manager
        async with manager.lock:
            page = await manager.ensure_browser()
            screenshot = await manager.take_screenshot_with_size_limit(page)
        return [types.ImageContent(type="image", data=screenshot, mimeType="image/png")]

    @property
    def screenshot_dir(self) -> Path:
        """Directory for saved screenshots, created on first access."""
        if self._screenshot_dir is None:
            self._screenshot_dir = Path(tempfile.mkdtemp(prefix="mcp-screenshots-"))
        return self._screenshot_dir

    async def cleanup(self) -> None:
        """Close the browser and remove screenshots this server created."""
        try:
            await self.browser_manager.cleanup()
        finally:
            if self._owns_screenshot_dir and self._screenshot_dir is not None:
                cleanup_screenshots(self._screenshot_dir)
                self._screenshot_dir = None

    async def run(self) -> None:
        """
        Serve over stdio until the client disconnects or the task is cancelled.

        The browser is always cleaned up on the way out, including on SIGINT
        (asyncio.run turns it into cancellation of this task).
        """
        try:
            async with stdio_server() as (read_stream, write_stream):
                logger.info("DuckDuckResearch MCP server running on stdio")
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.cleanup()
            logger.info("DuckDuckResearch MCP server stopped")
