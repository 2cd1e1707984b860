"""Tool names, argument models and the parsed tool-call variants."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from mcp.shared.exceptions import McpError
from mcp.types import INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, ErrorData
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from duckduckresearch.utils import is_valid_url


class ToolName(str, Enum):
    """The closed set of tools the server exposes, in listing order."""

    SEARCH = "search_duckduckgo"
    VISIT_PAGE = "visit_page"
    TAKE_SCREENSHOT = "take_screenshot"


class SafeSearch(str, Enum):
    OFF = "off"
    MODERATE = "moderate"
    STRICT = "strict"


# =============================================================================
# Argument models
# =============================================================================

class SearchOptions(BaseModel):
    """Optional DuckDuckGo search settings."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    region: str = Field(default="zh-cn", description="Search region")
    safe_search: SafeSearch = Field(
        default=SafeSearch.MODERATE, alias="safeSearch", description="Safe search level"
    )
    num_results: int = Field(
        default=50, ge=1, alias="numResults", description="Number of results to return"
    )

    @field_validator("safe_search", mode="before")
    @classmethod
    def _normalize_safe_search(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SearchArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    query: str = Field(min_length=1, description="Search query")
    options: Optional[SearchOptions] = None


class VisitPageArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    url: str = Field(description="URL to visit")
    take_screenshot: Optional[bool] = Field(
        default=None, alias="takeScreenshot", description="Whether to take a screenshot"
    )

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not is_valid_url(value):
            raise ValueError("url must be an absolute http or https URL")
        return value


class ScreenshotArgs(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =============================================================================
# Search response models
# =============================================================================

class SearchResultMetadata(BaseModel):
    type: Literal["documentation", "social", "article"]
    source: str


class SearchResult(BaseModel):
    title: str
    url: str
    description: str
    metadata: SearchResultMetadata


class SearchContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    region: str
    safe_search: SafeSearch = Field(alias="safeSearch")
    num_results: Optional[int] = Field(default=None, alias="numResults")


class QueryAnalysis(BaseModel):
    language: str
    topics: List[str]


class SearchMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    timestamp: str
    result_count: int = Field(alias="resultCount")
    search_context: SearchContext = Field(alias="searchContext")
    query_analysis: QueryAnalysis = Field(alias="queryAnalysis")


class SearchResponse(BaseModel):
    type: Literal["search_results"] = "search_results"
    data: List[SearchResult]
    metadata: SearchMetadata

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


# =============================================================================
# Parsed tool calls
# =============================================================================

@dataclass(frozen=True)
class SearchCall:
    args: SearchArgs


@dataclass(frozen=True)
class VisitPageCall:
    args: VisitPageArgs


@dataclass(frozen=True)
class ScreenshotCall:
    pass


ToolCall = Union[SearchCall, VisitPageCall, ScreenshotCall]

TOOL_DESCRIPTIONS: Dict[ToolName, str] = {
    ToolName.SEARCH: "Search the web using DuckDuckGo",
    ToolName.VISIT_PAGE: "Visit a webpage and extract its content",
    ToolName.TAKE_SCREENSHOT: "Take a screenshot of the current page",
}

_ARGUMENT_MODELS = {
    ToolName.SEARCH: SearchArgs,
    ToolName.VISIT_PAGE: VisitPageArgs,
    ToolName.TAKE_SCREENSHOT: ScreenshotArgs,
}


def tool_input_schema(tool: ToolName) -> Dict[str, Any]:
    """JSON schema advertised for a tool's arguments."""
    if tool is ToolName.TAKE_SCREENSHOT:
        return {"type": "object", "properties": {}, "required": []}
    return _ARGUMENT_MODELS[tool].model_json_schema(by_alias=True)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "arguments"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def parse_tool_call(name: Optional[str], arguments: Optional[Dict[str, Any]]) -> ToolCall:
    """
    Turn a raw tool name and argument payload into a typed tool call.

    Args:
        name: Tool name from the request.
        arguments: Raw argument object, may be None.

    Returns:
        One of SearchCall, VisitPageCall, ScreenshotCall.

    Raises:
        McpError: INVALID_REQUEST for a missing name, METHOD_NOT_FOUND for an
            unknown tool, INVALID_PARAMS for arguments that fail validation.
    """
    if not name:
        raise McpError(ErrorData(code=INVALID_REQUEST, message="Request params name is undefined"))

    try:
        tool = ToolName(name)
    except ValueError:
        raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}")) from None

    raw = arguments if arguments is not None else {}
    if not isinstance(raw, dict):
        raise McpError(ErrorData(code=INVALID_PARAMS, message=f"Arguments for {name} must be an object"))

    try:
        parsed = _ARGUMENT_MODELS[tool].model_validate(raw)
    except ValidationError as e:
        raise McpError(
            ErrorData(
                code=INVALID_PARAMS,
                message=f"Invalid arguments for {name}: {_format_validation_error(e)}",
            )
        ) from None

    if tool is ToolName.SEARCH:
        return SearchCall(args=parsed)
    if tool is ToolName.VISIT_PAGE:
        return VisitPageCall(args=parsed)
    return ScreenshotCall()
