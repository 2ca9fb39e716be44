"""Command-line entry point for the PostCrawl MCP Server."""

import argparse

import uvicorn

from .server import create_app


def main():
    """Parse arguments and run the server."""
    parser = argparse.ArgumentParser(description="PostCrawl MCP Server")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    parser.add_argument("--config", default=None, help="Path to config.json (default: search the working directory)")
    args = parser.parse_args()

    app = create_app(args.config)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
