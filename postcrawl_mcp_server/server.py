"""PostCrawl MCP server implementation."""

import logging
from typing import Any, Callable, Optional, Tuple

import pydantic
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from .models import (
    MCPRequest, MCPResponse, MCPError, InitializeResult,
    ServerInfo, ListToolsResult, CallToolRequest, CallToolResult
)
from .config import Config, load_config
from .docs import DOCS_HTML
from .errors import (
    JSONRPCErrorCode, StructuredError, classify, internal_error, invalid_api_key,
    missing_auth_header, not_found, to_jsonrpc_error
)
from .logging_config import setup_postcrawl_logging
from .postcrawl_client import PostCrawlClient
from .tools import ToolRegistry, format_result


PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "PostCrawl"
SERVER_VERSION = "1.0.0"

ClientFactory = Callable[[str], PostCrawlClient]


class MCPServer:
    """JSON-RPC front door for the PostCrawl API.

    Holds no per-caller state: every tool call builds its own PostCrawl client
    from the caller's bearer token.
    """

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[Config] = None,
        client_factory: Optional[ClientFactory] = None
    ):
        self.config = config if config is not None else load_config(config_path)

        setup_postcrawl_logging(self.config.to_dict())
        self.logger = logging.getLogger("mcp_server")

        self.client_factory = client_factory or self._default_client_factory
        self.registry = ToolRegistry()
        self.tools = self.registry.list_tools()

        self.app = FastAPI(title="PostCrawl MCP Server", version=SERVER_VERSION)
        self.setup_routes()
        self.logger.info(f"MCP Server initialized with {len(self.tools)} tools, API base URL {self.config.api_base_url}")

    def _default_client_factory(self, api_key: str) -> PostCrawlClient:
        return PostCrawlClient(self.config.client_config(api_key))

    def setup_routes(self):
        """Setup FastAPI routes."""

        @self.app.get("/mcp", response_class=HTMLResponse)
        async def mcp_reference():
            """Render the static tool reference page."""
            return HTMLResponse(content=DOCS_HTML)

        @self.app.post("/mcp")
        async def handle_mcp_request(request: Request):
            """Handle MCP JSON-RPC requests."""
            try:
                api_key, auth_error = self._authenticate(request)
                if auth_error is not None:
                    return self._auth_error_response(auth_error)

                body = await request.json()
                if not isinstance(body, dict):
                    raise ValueError("JSON-RPC request must be an object")
                mcp_request = MCPRequest(**body)

                if mcp_request.method == "initialize":
                    response = self._handle_initialize(mcp_request)
                elif mcp_request.method == "tools/list":
                    response = self._handle_list_tools(mcp_request)
                elif mcp_request.method == "tools/call":
                    response = await self._handle_call_tool(mcp_request, api_key)
                else:
                    response = self._handle_unknown_method(mcp_request)

                return JSONResponse(content=response.to_wire())

            except Exception as e:
                self.logger.error(f"Error handling MCP request: {e}", exc_info=True)
                error = internal_error("Failed to process MCP request")
                return JSONResponse(
                    status_code=error.status_code,
                    content=self._error_response(
                        None, error, include_details=False, include_user_message=False
                    ).to_wire()
                )

        @self.app.post("/mcp/tools/{tool_name}")
        async def handle_tool_request(tool_name: str, request: Request):
            """Invoke one tool with the JSON body as arguments and return its content."""
            api_key, auth_error = self._authenticate(request)
            if auth_error is not None:
                return self._auth_error_response(auth_error)

            raw_body = await request.body()
            try:
                arguments = await request.json() if raw_body else {}
            except ValueError as e:
                self.logger.warning(f"Malformed arguments for tool {tool_name}: {e}")
                error = internal_error("Failed to process tool request")
                return JSONResponse(
                    status_code=error.status_code,
                    content=self._error_response(
                        None, error, include_details=False, include_user_message=False
                    ).to_wire()
                )

            client = self.client_factory(api_key)
            try:
                result = await self.registry.call_tool(client, tool_name, arguments)
            finally:
                await client.close()
            return JSONResponse(content=result.model_dump())

    def _authenticate(self, request: Request) -> Tuple[Optional[str], Optional[StructuredError]]:
        """Extract the caller's API key from the Authorization header."""
        auth_header = request.headers.get("authorization")
        if not auth_header:
            return None, missing_auth_header()

        scheme, _, token = auth_header.partition(" ")
        token = token.strip() if scheme.lower() == "bearer" else auth_header.strip()
        if not token:
            return None, invalid_api_key()

        return token, None

    def _auth_error_response(self, error: StructuredError) -> JSONResponse:
        self.logger.warning(f"Rejected unauthenticated request: {error.code} - Request ID: {error.request_id}")
        return JSONResponse(
            status_code=error.status_code,
            content=self._error_response(None, error, include_details=False).to_wire()
        )

    def _handle_initialize(self, request: MCPRequest) -> MCPResponse:
        """Handle initialize method."""
        result = InitializeResult(
            protocolVersion=PROTOCOL_VERSION,
            capabilities={
                "tools": {}
            },
            serverInfo=ServerInfo(
                name=SERVER_NAME,
                version=SERVER_VERSION
            )
        )

        return MCPResponse(
            id=request.id,
            result=result.model_dump()
        )

    def _handle_list_tools(self, request: MCPRequest) -> MCPResponse:
        """Handle tools/list method."""
        result = ListToolsResult(tools=self.tools)

        return MCPResponse(
            id=request.id,
            result=result.model_dump()
        )

    async def _handle_call_tool(self, request: MCPRequest, api_key: str) -> MCPResponse:
        """Handle tools/call method."""
        if not request.params:
            return self._create_error_response(
                request.id, JSONRPCErrorCode.INVALID_PARAMS, "Missing params for tools/call"
            )

        try:
            tool_request = CallToolRequest(**request.params)
        except pydantic.ValidationError as e:
            return self._create_error_response(
                request.id, JSONRPCErrorCode.INVALID_PARAMS, f"Invalid tool call: {e}"
            )

        client = self.client_factory(api_key)
        try:
            result = await self.registry.invoke(client, tool_request.name, tool_request.arguments)
        except Exception as e:
            if classify(e) is None:
                self.logger.error(f"Tool {tool_request.name} failed: {e}", exc_info=True)
            else:
                self.logger.warning(f"Tool {tool_request.name} failed: {e!r}")
            return self._error_response(request.id, e)
        finally:
            await client.close()

        return MCPResponse(
            id=request.id,
            result=CallToolResult(
                content=[{"type": "text", "text": format_result(result)}]
            ).model_dump()
        )

    def _handle_unknown_method(self, request: MCPRequest) -> MCPResponse:
        error = not_found(f"Method not found: {request.method or 'unknown'}")
        return self._error_response(
            request.id, error, include_details=False, code=JSONRPCErrorCode.METHOD_NOT_FOUND,
            include_user_message=False
        )

    def _error_response(
        self,
        request_id: Any,
        exc: BaseException,
        include_details: bool = True,
        code: Optional[int] = None,
        include_user_message: bool = True
    ) -> MCPResponse:
        """Render any failure as a JSON-RPC error response."""
        return MCPResponse(
            id=request_id,
            error=MCPError(**to_jsonrpc_error(
                exc, include_details=include_details, code=code, include_user_message=include_user_message
            ))
        )

    def _create_error_response(self, request_id: Any, code: int, message: str) -> MCPResponse:
        """Create an error response."""
        return MCPResponse(
            id=request_id,
            error=MCPError(code=code, message=message)
        )


def create_app(
    config_path: Optional[str] = None,
    config: Optional[Config] = None,
    client_factory: Optional[ClientFactory] = None
) -> FastAPI:
    """Create and return the FastAPI app."""
    server = MCPServer(config_path, config=config, client_factory=client_factory)
    return server.app
