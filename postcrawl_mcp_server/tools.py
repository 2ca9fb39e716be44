"""Tool registry and invocation dispatch for the PostCrawl MCP Server."""

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from .errors import classify, to_tool_content
from .models import CallToolResult, ResponseMode, SocialPlatform, Tool
from .postcrawl_client import PostCrawlClient


SOCIAL_PLATFORM_VALUES = [platform.value for platform in SocialPlatform]
RESPONSE_MODE_VALUES = [mode.value for mode in ResponseMode]


def _search_properties() -> Dict[str, Any]:
    return {
        "query": {"type": "string", "description": "Search query"},
        "page": {"type": "integer", "default": 1},
        "results": {"type": "integer", "default": 10},
        "social_platforms": {
            "type": "array",
            "items": {"type": "string", "enum": SOCIAL_PLATFORM_VALUES}
        }
    }


def _extract_option_properties() -> Dict[str, Any]:
    return {
        "response_mode": {
            "type": "string",
            "enum": RESPONSE_MODE_VALUES,
            "default": ResponseMode.RAW.value
        },
        "include_comments": {"type": "boolean", "default": False}
    }


TOOLS: List[Tool] = [
    Tool(
        name="search",
        description="Search for posts across social media platforms",
        inputSchema={
            "type": "object",
            "properties": _search_properties(),
            "required": ["query"]
        }
    ),
    Tool(
        name="search_and_extract",
        description="Search and extract content in a single operation",
        inputSchema={
            "type": "object",
            "properties": {**_search_properties(), **_extract_option_properties()},
            "required": ["query"]
        }
    ),
    Tool(
        name="extract",
        description="Extract content from specific URLs",
        inputSchema={
            "type": "object",
            "properties": {
                "urls": {"type": "array", "items": {"type": "string"}},
                **_extract_option_properties()
            },
            "required": ["urls"]
        }
    ),
    Tool(
        name="check_health",
        description="Check PostCrawl API health",
        inputSchema={
            "type": "object",
            "properties": {}
        }
    ),
]


class UnknownToolError(ValueError):
    """Raised when a tool name is not registered."""

    def __init__(self, name: Optional[str]):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


ToolHandler = Callable[[PostCrawlClient, Mapping[str, Any]], Awaitable[Any]]


class ToolRegistry:
    """Maps tool names to PostCrawl client operations.

    ``invoke`` lets failures propagate for the JSON-RPC handler to render;
    ``call_tool`` always returns a content envelope.
    """

    def __init__(self):
        self.tools = list(TOOLS)
        self._handlers: Dict[str, ToolHandler] = {
            "search": lambda client, args: client.search(args),
            "search_and_extract": lambda client, args: client.search_and_extract(args),
            "extract": lambda client, args: client.extract(args),
            "check_health": lambda client, args: client.check_health(),
        }
        self.logger = logging.getLogger("tool_registry")

    def list_tools(self) -> List[Tool]:
        return self.tools

    def names(self) -> List[str]:
        return [tool.name for tool in self.tools]

    async def invoke(self, client: PostCrawlClient, name: Optional[str], arguments: Optional[Mapping[str, Any]] = None) -> Any:
        """Run a tool and return its raw result.

        Raises:
            UnknownToolError: ``name`` is not a registered tool
            StructuredError: the arguments are invalid or the PostCrawl API call failed
        """
        handler = self._handlers.get(name) if name else None
        if handler is None:
            raise UnknownToolError(name)

        self.logger.info(f"Invoking tool: {name}")
        return await handler(client, arguments or {})

    async def call_tool(self, client: PostCrawlClient, name: Optional[str], arguments: Optional[Mapping[str, Any]] = None) -> CallToolResult:
        """Run a tool and package the outcome as text content, never raising."""
        try:
            result = await self.invoke(client, name, arguments)
        except Exception as e:
            if classify(e) is None:
                self.logger.error(f"Tool {name} failed: {e}", exc_info=True)
            else:
                self.logger.warning(f"Tool {name} failed: {e!r}")
            return CallToolResult(
                content=[{"type": "text", "text": to_tool_content(e)}],
                isError=True
            )

        return CallToolResult(content=[{"type": "text", "text": format_result(result)}])


def format_result(result: Any) -> str:
    """Pretty-print a tool result as JSON text."""
    return json.dumps(result, indent=2, ensure_ascii=False)
