"""PostCrawl MCP Server: MCP tools for the PostCrawl search and extraction API."""

__version__ = "1.0.0"
