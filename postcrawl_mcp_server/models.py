"""MCP protocol models and PostCrawl request models."""

from enum import Enum
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator


class MCPRequest(BaseModel):
    """MCP request model."""
    jsonrpc: str = "2.0"
    id: Optional[Union[str, int, float]] = None
    method: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


class MCPError(BaseModel):
    """MCP error model."""
    code: int
    message: str
    data: Optional[Any] = None


class MCPResponse(BaseModel):
    """MCP response model."""
    jsonrpc: str = "2.0"
    id: Optional[Union[str, int, float]] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[MCPError] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with exactly one of ``result``/``error`` and ``id`` always present."""
        payload: Dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            error: Dict[str, Any] = {"code": self.error.code, "message": self.error.message}
            if self.error.data is not None:
                error["data"] = self.error.data
            payload["error"] = error
        else:
            payload["result"] = self.result if self.result is not None else {}
        payload["id"] = self.id
        return payload


class ServerInfo(BaseModel):
    """Server information model."""
    name: str
    version: str


class InitializeResult(BaseModel):
    """Initialize method result."""
    protocolVersion: str
    capabilities: Dict[str, Any]
    serverInfo: ServerInfo


class Tool(BaseModel):
    """Tool definition model."""
    name: str
    description: str
    inputSchema: Dict[str, Any]


class ListToolsResult(BaseModel):
    """List tools result."""
    tools: List[Tool]


class CallToolRequest(BaseModel):
    """Call tool request."""
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("arguments", mode="before")
    @classmethod
    def _default_arguments(cls, value: Any) -> Any:
        return {} if value is None else value


class CallToolResult(BaseModel):
    """Call tool result."""
    content: List[Dict[str, Any]]
    isError: bool = False


class SocialPlatform(str, Enum):
    """Platforms the PostCrawl API can search."""
    REDDIT = "reddit"
    TIKTOK = "tiktok"


class ResponseMode(str, Enum):
    """Output format of extracted posts."""
    RAW = "raw"
    MARKDOWN = "markdown"


class _PostCrawlRequest(BaseModel):
    """Base for request bodies sent to the PostCrawl API."""

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class SearchRequest(_PostCrawlRequest):
    """Body of ``POST /v1/search``."""
    query: str
    page: int = 1
    results: int = 10
    social_platforms: Optional[List[SocialPlatform]] = None

    # Zero counts as unset
    @field_validator("page", mode="before")
    @classmethod
    def _default_page(cls, value: Any) -> Any:
        return value or 1

    @field_validator("results", mode="before")
    @classmethod
    def _default_results(cls, value: Any) -> Any:
        return value or 10


class _ExtractOptions(BaseModel):
    response_mode: ResponseMode = ResponseMode.RAW
    include_comments: bool = False

    @field_validator("response_mode", mode="before")
    @classmethod
    def _default_response_mode(cls, value: Any) -> Any:
        return value or ResponseMode.RAW

    @field_validator("include_comments", mode="before")
    @classmethod
    def _default_include_comments(cls, value: Any) -> Any:
        return False if value is None else value


class SearchAndExtractRequest(SearchRequest, _ExtractOptions):
    """Body of ``POST /v1/search-and-extract``."""


class ExtractRequest(_PostCrawlRequest, _ExtractOptions):
    """Body of ``POST /v1/extract``."""
    urls: List[str]
